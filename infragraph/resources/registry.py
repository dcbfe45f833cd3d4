#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to hold the resources declarations, indexed by their (kind, name) identity.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Iterator, Union

from compose_x_common.compose_x_common import keyisset, set_else_none

from infragraph.common.logging import LOG
from infragraph.exceptions import (
    DuplicateResourceError,
    NotFoundError,
    RegistryFrozenError,
)
from infragraph.resources.values import (
    ResourceIdentity,
    iter_references,
    parse_attributes,
)

RESOURCES_KEY = "resources"
PROPERTIES_KEY = "Properties"
DEPENDS_ON_KEY = "DependsOn"
IDENTIFIER_KEY = "Identifier"


class ResourceDeclaration:
    """
    Class to represent a declared resource. Immutable once created.

    :ivar ResourceIdentity identity: the (kind, name) of the resource
    :ivar mapping attributes: read-only mapping of the attributes values
    :ivar tuple depends_on: explicit dependencies
    :ivar str identifier: identifier of the existing resource in the provisioning API, if any
    """

    __slots__ = ("_identity", "_attributes", "_depends_on", "_identifier")

    def __init__(
        self,
        kind: str,
        name: str,
        attributes: Mapping = None,
        depends_on: list = None,
        identifier: str = None,
    ):
        if not isinstance(kind, str) or not kind:
            raise TypeError("kind must be a non-empty string. Got", kind, type(kind))
        if not isinstance(name, str) or not name:
            raise TypeError("name must be a non-empty string. Got", name, type(name))
        self._identity = ResourceIdentity(kind, name)
        self._attributes = parse_attributes(attributes)
        self._depends_on = tuple(
            sorted(
                set(
                    dependency
                    if isinstance(dependency, ResourceIdentity)
                    else ResourceIdentity.from_string(dependency)
                    for dependency in (depends_on or [])
                )
            )
        )
        self._identifier = identifier

    def __repr__(self):
        return f"ResourceDeclaration({self._identity})"

    def __eq__(self, other):
        if not isinstance(other, ResourceDeclaration):
            return NotImplemented
        return (
            self._identity == other._identity
            and self._attributes == other._attributes
            and self._depends_on == other._depends_on
            and self._identifier == other._identifier
        )

    def __hash__(self):
        return hash(self._identity)

    @property
    def identity(self) -> ResourceIdentity:
        return self._identity

    @property
    def kind(self) -> str:
        return self._identity.kind

    @property
    def name(self) -> str:
        return self._identity.name

    @property
    def attributes(self) -> Mapping:
        return self._attributes

    @property
    def depends_on(self) -> tuple:
        return self._depends_on

    @property
    def identifier(self) -> Union[str, None]:
        return self._identifier

    @property
    def references(self) -> tuple:
        """All the references found in the attributes, in declaration order."""
        return tuple(iter_references(self._attributes))


class ResourceRegistry:
    """
    Class to keep track of all the resources declarations.
    Once frozen, no resource can be added, which allows to safely share it between readers.
    """

    def __init__(self):
        self._declarations = {}
        self._frozen = False

    def __contains__(self, identity):
        return identity in self._declarations

    def __iter__(self) -> Iterator[ResourceDeclaration]:
        return iter(self._declarations.values())

    def __len__(self):
        return len(self._declarations)

    def __repr__(self):
        return f"ResourceRegistry({len(self)} resources, frozen={self._frozen})"

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def identities(self) -> list:
        return sorted(self._declarations.keys())

    def register(
        self,
        kind: str,
        name: str,
        attributes: Mapping = None,
        depends_on: list = None,
        identifier: str = None,
    ) -> ResourceDeclaration:
        """
        Adds a new resource declaration

        :raises DuplicateResourceError: if (kind, name) is already registered
        :raises RegistryFrozenError: if the registry was frozen
        """
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register {kind}.{name}: the registry is read-only"
            )
        identity = ResourceIdentity(kind, name)
        if identity in self._declarations:
            raise DuplicateResourceError(identity)
        declaration = ResourceDeclaration(
            kind, name, attributes, depends_on=depends_on, identifier=identifier
        )
        self._declarations[identity] = declaration
        LOG.debug(f"Registered {identity}")
        return declaration

    def get(self, kind: str, name: str) -> ResourceDeclaration:
        """
        :raises NotFoundError: if the resource is not registered
        """
        identity = ResourceIdentity(kind, name)
        if identity not in self._declarations:
            raise NotFoundError(identity)
        return self._declarations[identity]

    def freeze(self) -> ResourceRegistry:
        self._frozen = True
        return self

    def snapshot(self) -> ResourceRegistry:
        """Returns a frozen copy of the registry, sharing the immutable declarations"""
        copy = ResourceRegistry()
        copy._declarations = dict(self._declarations)
        return copy.freeze()

    @classmethod
    def from_declarations(cls, declarations) -> ResourceRegistry:
        """
        Creates a frozen registry from existing declarations

        :param list[ResourceDeclaration] declarations:
        :raises DuplicateResourceError: if two declarations share the same identity
        """
        registry = cls()
        for declaration in declarations:
            if not isinstance(declaration, ResourceDeclaration):
                raise TypeError(
                    declaration, "is", type(declaration), "expected", ResourceDeclaration
                )
            if declaration.identity in registry._declarations:
                raise DuplicateResourceError(declaration.identity)
            registry._declarations[declaration.identity] = declaration
        return registry.freeze()

    @classmethod
    def from_definition(cls, content: dict) -> ResourceRegistry:
        """
        Creates the registry from the declarations content, i.e.

        .. code-block:: yaml

            resources:
              aws_vpc:
                main:
                  Properties:
                    cidr_block: 10.0.0.0/16

        :param dict content: the loaded declarations
        """
        registry = cls()
        if not keyisset(RESOURCES_KEY, content):
            LOG.warning("No resources declared.")
            return registry
        for kind, resources in content[RESOURCES_KEY].items():
            if not resources:
                continue
            for name, definition in resources.items():
                definition = definition or {}
                registry.register(
                    kind,
                    name,
                    set_else_none(PROPERTIES_KEY, definition, alt_value={}),
                    depends_on=set_else_none(DEPENDS_ON_KEY, definition, alt_value=[]),
                    identifier=set_else_none(IDENTIFIER_KEY, definition),
                )
        LOG.info(f"Loaded {len(registry)} resources declarations")
        return registry
