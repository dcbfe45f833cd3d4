#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

from os import path

import pytest

from infragraph.resources.registry import ResourceRegistry


@pytest.fixture
def use_cases():
    return path.abspath(f"{path.dirname(__file__)}/../../use-cases")


@pytest.fixture
def abc_registry():
    """A has no references, B and C reference A"""
    registry = ResourceRegistry()
    registry.register("aws_vpc", "a", {"cidr_block": "10.0.0.0/16"})
    registry.register("aws_subnet", "b", {"vpc_id": "aws_vpc.a.id"})
    registry.register("aws_subnet", "c", {"vpc_id": "aws_vpc.a.id"})
    return registry.freeze()
