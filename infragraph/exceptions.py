#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Custom exceptions for infragraph
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from infragraph.applier import ApplyReport
    from infragraph.resources.values import ResourceIdentity


class InfraGraphException(Exception):
    """
    Top class for infragraph Exceptions
    """

    def __init__(self, msg, *args):
        super().__init__(msg, *args)


class DuplicateResourceError(InfraGraphException):
    """
    Exception when a resource with the same kind and name is registered twice
    """

    def __init__(self, identity: ResourceIdentity):
        self.identity = identity
        super().__init__(f"Resource {identity} is already declared")


class NotFoundError(InfraGraphException):
    """
    Exception when looking up a resource that was not declared
    """

    def __init__(self, identity: ResourceIdentity, msg: str = None):
        self.identity = identity
        if msg is None:
            msg = f"Resource {identity} is not declared"
        super().__init__(msg)


class UnresolvedReferenceError(NotFoundError):
    """
    Exception when a declaration references a resource that does not exist
    """

    def __init__(self, identity: ResourceIdentity, referenced_by: ResourceIdentity):
        self.referenced_by = referenced_by
        super().__init__(
            identity,
            f"{referenced_by} references {identity} which is not declared",
        )


class CyclicDependencyError(InfraGraphException):
    """
    Exception when the dependencies between resources form a cycle

    :ivar list cycle: the resources on the cycle, the first one repeated at the end
    """

    def __init__(self, cycle: list):
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {self.path}")

    @property
    def path(self) -> str:
        return " -> ".join(str(identity) for identity in self.cycle)


class RegistryFrozenError(InfraGraphException):
    """
    Exception when trying to register a resource once the registry is read-only
    """


class OutputNotFoundError(InfraGraphException):
    """
    Exception when a reference points to an output the resource did not produce
    """


class ProvisioningError(InfraGraphException):
    """
    Exception raised by provisioners when the external API failed to reconcile a resource
    """


class ApplyFailure(InfraGraphException):
    """
    Exception raised once a failed batch drained. Carries the completed, failed and skipped resources.
    """

    def __init__(self, report: ApplyReport):
        self.report = report
        failed = ", ".join(str(identity) for identity in report.failed)
        super().__init__(
            f"Failed to apply {failed}. "
            f"{len(report.completed)} completed, {len(report.skipped)} skipped"
        )
