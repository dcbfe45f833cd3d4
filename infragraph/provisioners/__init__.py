#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Boundary to the external provisioning API.

The applier hands every resource over to a :class:`Provisioner`, one call per resource.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, NamedTuple

if TYPE_CHECKING:
    from infragraph.resources.registry import ResourceDeclaration
    from infragraph.resources.values import ResourceIdentity


class ApplyResult(NamedTuple):
    """
    Outcome of a provisioning call

    :ivar bool success: whether the resource was reconciled
    :ivar dict outputs: the outputs produced by the resource, if any, referenced by dependent resources
    :ivar str message: details, if any
    """

    success: bool
    outputs: Mapping = None
    message: str = None


class ProvisioningRequest:
    """
    What the provisioner gets for one resource

    :ivar ResourceDeclaration declaration: the resource declaration
    :ivar dict properties: the attributes with the references replaced by their values
    :ivar str action: apply or destroy
    """

    def __init__(
        self, declaration: ResourceDeclaration, properties: dict, action: str
    ):
        self.declaration = declaration
        self.properties = properties
        self.action = action

    def __repr__(self):
        return f"ProvisioningRequest({self.action} {self.identity})"

    @property
    def identity(self) -> ResourceIdentity:
        return self.declaration.identity

    @property
    def kind(self) -> str:
        return self.declaration.kind

    @property
    def name(self) -> str:
        return self.declaration.name


class Provisioner:
    """
    Base class for the provisioning API adapters.
    Implementations must be safe to call from several threads at once.
    """

    def apply(self, request: ProvisioningRequest) -> ApplyResult:
        """
        Creates or updates the resource

        :raises infragraph.exceptions.ProvisioningError: on failure
        """
        raise NotImplementedError

    def destroy(self, request: ProvisioningRequest) -> ApplyResult:
        """
        Deletes the resource

        :raises infragraph.exceptions.ProvisioningError: on failure
        """
        raise NotImplementedError
