#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Attribute values of the resources declarations.

An attribute value is either a literal, a :class:`Reference` to another resource output,
a tuple of attribute values or a read-only mapping of attribute values.
References are written as ``<kind>.<name>.<output_field>``, i.e. ``aws_vpc.main.id``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable, Iterator, NamedTuple, Union

KIND_PATTERN = r"[A-Za-z][A-Za-z0-9_]*(?:::[A-Za-z0-9_]+)*"
NAME_PATTERN = r"[A-Za-z0-9_][A-Za-z0-9_-]*"
FIELD_PATTERN = r"[A-Za-z_][A-Za-z0-9_]*"

REFERENCE_RE = re.compile(
    rf"^(?P<kind>{KIND_PATTERN})\.(?P<name>{NAME_PATTERN})\.(?P<field>{FIELD_PATTERN})$"
)
IDENTITY_RE = re.compile(rf"^(?P<kind>{KIND_PATTERN})\.(?P<name>{NAME_PATTERN})$")
ESCAPE_CHAR = "\\"


class ResourceIdentity(NamedTuple):
    """Unique identity of a declared resource. Sorts on (kind, name)."""

    kind: str
    name: str

    def __str__(self):
        return f"{self.kind}.{self.name}"

    @classmethod
    def from_string(cls, value: str) -> ResourceIdentity:
        """
        :param str value: identity written as ``kind.name``
        :raises ValueError: when value is not a valid identity
        """
        parts = IDENTITY_RE.match(value) if isinstance(value, str) else None
        if not parts:
            raise ValueError(f"{value} is not a valid resource identity (kind.name)")
        return cls(parts.group("kind"), parts.group("name"))


class Reference(NamedTuple):
    """Pointer from an attribute to the output field of another resource."""

    kind: str
    name: str
    field: str

    def __str__(self):
        return f"{self.kind}.{self.name}.{self.field}"

    @property
    def identity(self) -> ResourceIdentity:
        return ResourceIdentity(self.kind, self.name)


AttributeValue = Union[Any, Reference, tuple, Mapping]


def parse_reference(value: str) -> Union[Reference, None]:
    parts = REFERENCE_RE.match(value)
    if not parts:
        return None
    return Reference(parts.group("kind"), parts.group("name"), parts.group("field"))


def parse_attribute(value) -> AttributeValue:
    """
    Turns a loaded value (from YAML/JSON) into an immutable attribute value.
    Strings matching the reference syntax become :class:`Reference`,
    unless prefixed with a backslash in which case the backslash is dropped.
    """
    if isinstance(value, str):
        if value.startswith(ESCAPE_CHAR) and REFERENCE_RE.match(value[1:]):
            return value[1:]
        reference = parse_reference(value)
        return reference if reference else value
    elif isinstance(value, Reference):
        return value
    elif isinstance(value, (list, tuple)):
        return tuple(parse_attribute(item) for item in value)
    elif isinstance(value, Mapping):
        return MappingProxyType(
            {str(key): parse_attribute(item) for key, item in value.items()}
        )
    return value


def parse_attributes(attributes) -> Mapping:
    if attributes is None:
        return MappingProxyType({})
    if not isinstance(attributes, Mapping):
        raise TypeError("attributes must be a mapping. Got", type(attributes))
    return parse_attribute(attributes)


def iter_references(value: AttributeValue) -> Iterator[Reference]:
    """Recursively yields all the references found in value"""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, tuple):
        for item in value:
            yield from iter_references(item)
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from iter_references(item)


def to_plain(value: AttributeValue, on_reference: Callable[[Reference], Any]):
    """
    Converts an attribute value back to plain python types.

    :param value: the attribute value
    :param on_reference: called for every reference, its return value replaces it.
    """
    if isinstance(value, Reference):
        return on_reference(value)
    elif isinstance(value, tuple):
        return [to_plain(item, on_reference) for item in value]
    elif isinstance(value, Mapping):
        return {key: to_plain(item, on_reference) for key, item in value.items()}
    return value
