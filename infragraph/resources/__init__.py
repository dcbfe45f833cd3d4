#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Resources declarations, references resolution, dependency graph and execution plan.
"""

from infragraph.resources.graph import DependencyEdge, Graph, build
from infragraph.resources.planner import ExecutionPlan, plan
from infragraph.resources.registry import ResourceDeclaration, ResourceRegistry
from infragraph.resources.resolver import resolve
from infragraph.resources.values import Reference, ResourceIdentity

__all__ = [
    "DependencyEdge",
    "ExecutionPlan",
    "Graph",
    "Reference",
    "ResourceDeclaration",
    "ResourceIdentity",
    "ResourceRegistry",
    "build",
    "plan",
    "resolve",
]
