#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Provisioner using the AWS Cloud Control API to create, update and delete the resources.
"""

from __future__ import annotations

import json
from time import sleep
from uuid import uuid4

from botocore.exceptions import ClientError

from infragraph.common.logging import LOG
from infragraph.exceptions import ProvisioningError
from infragraph.kinds import ID_FIELD, cfn_properties, cfn_type, snake_case
from infragraph.provisioners import ApplyResult, Provisioner, ProvisioningRequest

PENDING_STATUSES = ["PENDING", "IN_PROGRESS", "CANCEL_IN_PROGRESS"]
SUCCESS_STATUSES = ["SUCCESS"]
FAILED_STATUSES = ["FAILED", "CANCEL_COMPLETE"]


def define_outputs(identifier: str, properties: dict) -> dict:
    """
    Outputs of the resource, with the properties names both as returned (PascalCase) and in snake_case.
    """
    outputs = {}
    for key, value in properties.items():
        outputs[key] = value
        outputs.setdefault(snake_case(key), value)
    outputs[ID_FIELD] = identifier
    return outputs


class CloudControlProvisioner(Provisioner):
    """
    Reconciles each resource through the Cloud Control API, waiting for the request to complete.

    :ivar client: the boto3 cloudcontrol client, shared across threads
    :ivar float poll_interval: seconds between two request status checks
    :ivar int max_attempts: number of status checks before giving up
    """

    def __init__(
        self,
        session,
        poll_interval: float = 5,
        max_attempts: int = 360,
        role_arn: str = None,
    ):
        """
        :param boto3.session.Session session: the session to create the client from
        :param float poll_interval:
        :param int max_attempts:
        :param str role_arn: IAM role Cloud Control assumes to perform the operations
        """
        self.client = session.client("cloudcontrol")
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.role_arn = role_arn

    def _type_name(self, request: ProvisioningRequest) -> str:
        type_name = cfn_type(request.kind)
        if not type_name:
            raise ProvisioningError(
                f"{request.identity} - kind {request.kind} has no known CloudFormation type"
            )
        return type_name

    def _role_args(self) -> dict:
        return {"RoleArn": self.role_arn} if self.role_arn else {}

    def wait_for_request(self, progress_event: dict, request: ProvisioningRequest) -> dict:
        """
        Polls the request status until it succeeded.

        :param dict progress_event: the ProgressEvent returned by the create/update/delete call
        :return: the final ProgressEvent
        :raises ProvisioningError: if the request failed or did not complete in time
        """
        attempts = 0
        while progress_event["OperationStatus"] in PENDING_STATUSES:
            if attempts >= self.max_attempts:
                raise ProvisioningError(
                    f"{request.identity} - request {progress_event['RequestToken']} "
                    f"did not complete after {attempts} checks"
                )
            LOG.debug(
                f"{request.identity} - {progress_event['OperationStatus']}. "
                f"Waiting {self.poll_interval} seconds"
            )
            sleep(self.poll_interval)
            attempts += 1
            progress_event = self.client.get_resource_request_status(
                RequestToken=progress_event["RequestToken"]
            )["ProgressEvent"]
        if progress_event["OperationStatus"] in FAILED_STATUSES:
            raise ProvisioningError(
                f"{request.identity} - {progress_event['OperationStatus']}: "
                f"{progress_event.get('ErrorCode', '')} {progress_event.get('StatusMessage', '')}".strip()
            )
        return progress_event

    def apply(self, request: ProvisioningRequest) -> ApplyResult:
        type_name = self._type_name(request)
        properties = cfn_properties(request.kind, request.properties)
        identifier = request.declaration.identifier
        try:
            if identifier:
                LOG.info(f"{request.identity} - Updating {type_name} {identifier}")
                patch = [
                    {"op": "add", "path": f"/{key}", "value": value}
                    for key, value in properties.items()
                ]
                progress_event = self.client.update_resource(
                    TypeName=type_name,
                    Identifier=identifier,
                    PatchDocument=json.dumps(patch),
                    ClientToken=str(uuid4()),
                    **self._role_args(),
                )["ProgressEvent"]
            else:
                LOG.info(f"{request.identity} - Creating {type_name}")
                progress_event = self.client.create_resource(
                    TypeName=type_name,
                    DesiredState=json.dumps(properties),
                    ClientToken=str(uuid4()),
                    **self._role_args(),
                )["ProgressEvent"]
            progress_event = self.wait_for_request(progress_event, request)
            identifier = progress_event.get("Identifier", identifier)
            description = self.client.get_resource(
                TypeName=type_name, Identifier=identifier, **self._role_args()
            )["ResourceDescription"]
        except ClientError as error:
            LOG.error(f"{request.identity} - {error}")
            raise ProvisioningError(f"{request.identity} - {error}") from error
        properties = json.loads(description.get("Properties") or "{}")
        LOG.info(f"{request.identity} - {type_name} {identifier} is ready")
        return ApplyResult(True, define_outputs(identifier, properties))

    def destroy(self, request: ProvisioningRequest) -> ApplyResult:
        type_name = self._type_name(request)
        identifier = request.declaration.identifier
        if not identifier:
            raise ProvisioningError(
                f"{request.identity} - no Identifier declared, cannot delete it"
            )
        try:
            LOG.info(f"{request.identity} - Deleting {type_name} {identifier}")
            progress_event = self.client.delete_resource(
                TypeName=type_name,
                Identifier=identifier,
                ClientToken=str(uuid4()),
                **self._role_args(),
            )["ProgressEvent"]
            self.wait_for_request(progress_event, request)
        except ClientError as error:
            LOG.error(f"{request.identity} - {error}")
            raise ProvisioningError(f"{request.identity} - {error}") from error
        return ApplyResult(True, {ID_FIELD: identifier})
