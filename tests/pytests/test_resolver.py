#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

import pytest

from infragraph.exceptions import OutputNotFoundError, UnresolvedReferenceError
from infragraph.resources.registry import ResourceRegistry
from infragraph.resources.resolver import interpolate, resolve, resolve_dependencies
from infragraph.resources.values import Reference, ResourceIdentity


def test_resolve(abc_registry):
    assert resolve(abc_registry.get("aws_vpc", "a"), abc_registry) == set()
    assert resolve(abc_registry.get("aws_subnet", "b"), abc_registry) == {
        Reference("aws_vpc", "a", "id")
    }


def test_unresolved_reference_names_the_missing_resource():
    registry = ResourceRegistry()
    declaration = registry.register("aws_ecs_cluster", "z", {"name": "aws_vpc.q.output"})
    with pytest.raises(UnresolvedReferenceError) as error:
        resolve(declaration, registry)
    assert error.value.identity == ResourceIdentity("aws_vpc", "q")
    assert error.value.referenced_by == declaration.identity
    assert "aws_vpc.q" in str(error.value)


def test_resolve_dependencies_includes_depends_on():
    registry = ResourceRegistry()
    registry.register("aws_vpc", "main")
    registry.register("aws_cloudwatch_log_group", "app")
    rule = registry.register(
        "aws_cloudwatch_event_rule",
        "stopped",
        {"event_pattern": {"detail": {"vpc": ["aws_vpc.main.id", "aws_vpc.main.arn"]}}},
        depends_on=["aws_cloudwatch_log_group.app"],
    )
    assert resolve_dependencies(rule, registry) == {
        ResourceIdentity("aws_vpc", "main"),
        ResourceIdentity("aws_cloudwatch_log_group", "app"),
    }
    orphan = registry.register("aws_lb", "public", depends_on=["aws_vpc.missing"])
    with pytest.raises(UnresolvedReferenceError):
        resolve_dependencies(orphan, registry)


def test_interpolate(abc_registry):
    outputs = {ResourceIdentity("aws_vpc", "a"): {"id": "vpc-1234"}}
    assert interpolate(abc_registry.get("aws_subnet", "b"), outputs) == {
        "vpc_id": "vpc-1234"
    }
    with pytest.raises(OutputNotFoundError):
        interpolate(abc_registry.get("aws_subnet", "b"), {})
    with pytest.raises(OutputNotFoundError):
        interpolate(
            abc_registry.get("aws_subnet", "b"),
            {ResourceIdentity("aws_vpc", "a"): {"arn": "arn:aws:ec2"}},
        )
