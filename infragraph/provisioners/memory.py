#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Provisioner that keeps everything in memory. Used for dry-runs.
"""

from __future__ import annotations

from threading import Lock

from infragraph.common.logging import LOG
from infragraph.exceptions import ProvisioningError
from infragraph.kinds import ID_FIELD
from infragraph.provisioners import ApplyResult, Provisioner, ProvisioningRequest
from infragraph.resources.values import ResourceIdentity


class PlaceholderOutputs(dict):
    """
    Outputs of a resource provisioned in memory. Outputs that were not fabricated resolve to a placeholder,
    as their value is only known once really provisioned.
    """

    def __init__(self, identity: ResourceIdentity, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.identity = identity

    def __contains__(self, key):
        return True

    def __missing__(self, key):
        return f"(known after apply: {self.identity}.{key})"


class InMemoryProvisioner(Provisioner):
    """
    Records the calls it gets and fabricates the outputs from the resource properties.

    :ivar list calls: the requests received, in the order they were received
    :ivar set fail_on: identities of the resources to fail, to simulate errors
    """

    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = {
            identity
            if isinstance(identity, ResourceIdentity)
            else ResourceIdentity.from_string(identity)
            for identity in (fail_on or [])
        }
        self._lock = Lock()

    def _record(self, request: ProvisioningRequest) -> None:
        with self._lock:
            self.calls.append(request)
        if request.identity in self.fail_on:
            raise ProvisioningError(
                f"Simulated failure to {request.action} {request.identity}"
            )

    def apply(self, request: ProvisioningRequest) -> ApplyResult:
        self._record(request)
        outputs = PlaceholderOutputs(
            request.identity,
            {
                key: value
                for key, value in request.properties.items()
                if isinstance(value, (str, int, float, bool))
            },
        )
        outputs[ID_FIELD] = f"{request.kind}-{request.name}"
        outputs["arn"] = f"arn:aws:infragraph:::{request.kind}/{request.name}"
        LOG.info(f"[dry-run] {request.identity} applied")
        return ApplyResult(True, outputs)

    def destroy(self, request: ProvisioningRequest) -> ApplyResult:
        self._record(request)
        LOG.info(f"[dry-run] {request.identity} destroyed")
        return ApplyResult(True, {})
