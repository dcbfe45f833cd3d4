#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Functions to resolve the references between resources declarations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from infragraph.resources.registry import ResourceDeclaration, ResourceRegistry

from collections.abc import Mapping

from infragraph.exceptions import OutputNotFoundError, UnresolvedReferenceError
from infragraph.resources.values import Reference, ResourceIdentity, to_plain


def resolve(declaration: ResourceDeclaration, registry: ResourceRegistry) -> set:
    """
    Finds all the references in the declaration attributes and checks they point to declared resources.

    :param declaration: the resource to resolve the references for
    :param registry: the registry to look the referenced resources up from
    :return: the references
    :rtype: set[Reference]
    :raises UnresolvedReferenceError: when a referenced resource is not declared
    """
    references = set(declaration.references)
    for reference in sorted(references):
        if reference.identity not in registry:
            raise UnresolvedReferenceError(reference.identity, declaration.identity)
    return references


def resolve_dependencies(
    declaration: ResourceDeclaration, registry: ResourceRegistry
) -> set:
    """
    Identities of all the resources the declaration depends on, from its references and DependsOn.

    :rtype: set[ResourceIdentity]
    :raises UnresolvedReferenceError: when a dependency is not declared
    """
    dependencies = {
        reference.identity for reference in resolve(declaration, registry)
    }
    for dependency in declaration.depends_on:
        if dependency not in registry:
            raise UnresolvedReferenceError(dependency, declaration.identity)
        dependencies.add(dependency)
    return dependencies


def get_output(reference: Reference, outputs: Mapping):
    """
    Looks up the value of a reference from the outputs produced by provisioned resources

    :param reference: the reference to look up
    :param dict outputs: outputs produced, per resource identity
    :raises OutputNotFoundError: when the resource did not produce the output
    """
    identity = ResourceIdentity(reference.kind, reference.name)
    if identity not in outputs:
        raise OutputNotFoundError(f"{identity} has not produced any outputs yet")
    resource_outputs = outputs[identity]
    if reference.field not in resource_outputs:
        raise OutputNotFoundError(
            f"{identity} did not produce output {reference.field}. "
            f"Available: {sorted(resource_outputs.keys())}"
        )
    return resource_outputs[reference.field]


def interpolate(declaration: ResourceDeclaration, outputs: Mapping) -> dict:
    """
    Renders the declaration attributes as plain values, replacing references with their output values.

    :param declaration: the resource to render the attributes of
    :param dict outputs: outputs produced, per resource identity
    :return: the attributes
    :rtype: dict
    """
    return to_plain(
        declaration.attributes, lambda reference: get_output(reference, outputs)
    )
