#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to compute the execution plan from the dependency graph.

The plan is a layered topological order: every resource lands in the first batch that comes strictly
after the batches of all its dependencies. Resources within a batch are independent from each other.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from tabulate import tabulate

from infragraph.common.logging import LOG
from infragraph.exceptions import CyclicDependencyError, NotFoundError
from infragraph.resources.graph import Graph
from infragraph.resources.values import ResourceIdentity

APPLY_ACTION = "apply"
DESTROY_ACTION = "destroy"


class ExecutionPlan:
    """
    Ordered batches of resources identities.

    :ivar tuple batches: the batches, each one sorted on (kind, name)
    :ivar str action: apply or destroy
    """

    def __init__(self, batches: Iterable[Iterable[ResourceIdentity]], action=APPLY_ACTION):
        if action not in (APPLY_ACTION, DESTROY_ACTION):
            raise ValueError(
                "action must be one of", [APPLY_ACTION, DESTROY_ACTION], "Got", action
            )
        self.action = action
        self.batches = tuple(tuple(sorted(batch)) for batch in batches)
        self._index = {}
        for index, batch in enumerate(self.batches):
            for identity in batch:
                if identity in self._index:
                    raise ValueError(f"{identity} is present in more than one batch")
                self._index[identity] = index

    def __iter__(self) -> Iterator[tuple]:
        return iter(self.batches)

    def __len__(self):
        return len(self.batches)

    def __eq__(self, other):
        if not isinstance(other, ExecutionPlan):
            return NotImplemented
        return self.action == other.action and self.batches == other.batches

    def __repr__(self):
        return f"ExecutionPlan({self.action}, {[[str(i) for i in b] for b in self.batches]})"

    @property
    def identities(self) -> list:
        """All the identities, in execution order"""
        return [identity for batch in self.batches for identity in batch]

    def batch_index(self, identity: ResourceIdentity) -> int:
        if identity not in self._index:
            raise NotFoundError(identity, f"{identity} is not part of the plan")
        return self._index[identity]

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "batches": [[str(identity) for identity in batch] for batch in self.batches],
        }


def plan(graph: Graph, targets: Iterable = None, destroy: bool = False) -> ExecutionPlan:
    """
    Computes the layered execution plan of the graph.

    :param graph: an acyclic dependency graph
    :param targets: if set, only plan for these resources and their dependencies. When destroying,
        these resources and the resources depending on them
    :param destroy: reverse the order so that dependents go before their dependencies
    :raises CyclicDependencyError: if not every resource could be placed
    :raises NotFoundError: if a target is not in the graph
    """
    if targets:
        targets = [
            target
            if isinstance(target, ResourceIdentity)
            else ResourceIdentity.from_string(target)
            for target in targets
        ]
        graph = graph.subgraph(targets, dependents=destroy)
        LOG.info(f"Planning for targets {', '.join(str(t) for t in targets)}")
    pending = {
        identity: len(graph.dependencies_of(identity)) for identity in graph.nodes
    }
    batches = []
    ready = sorted(identity for identity, count in pending.items() if count == 0)
    placed = 0
    while ready:
        batches.append(ready)
        placed += len(ready)
        next_ready = []
        for identity in ready:
            for dependent in graph.dependents_of(identity):
                pending[dependent] -= 1
                if pending[dependent] == 0:
                    next_ready.append(dependent)
        ready = sorted(next_ready)
    if placed != len(pending):
        cycle = graph.find_cycle()
        raise CyclicDependencyError(
            cycle if cycle else sorted(i for i, count in pending.items() if count)
        )
    if destroy:
        batches.reverse()
    execution_plan = ExecutionPlan(
        batches, action=DESTROY_ACTION if destroy else APPLY_ACTION
    )
    LOG.info(f"Planned {placed} resources in {len(execution_plan)} batches")
    return execution_plan


def render_plan_table(execution_plan: ExecutionPlan, graph: Graph) -> str:
    """
    Renders the plan as a table, one row per resource
    """
    rows = []
    for index, batch in enumerate(execution_plan):
        for identity in batch:
            if execution_plan.action == DESTROY_ACTION:
                related = graph.dependents_of(identity)
            else:
                related = graph.dependencies_of(identity)
            rows.append(
                [
                    index,
                    identity.kind,
                    identity.name,
                    ", ".join(str(item) for item in sorted(related)),
                ]
            )
    related_header = (
        "Dependents" if execution_plan.action == DESTROY_ACTION else "DependsOn"
    )
    return tabulate(
        rows,
        ["Batch", "Kind", "Name", related_header],
        tablefmt="rst",
    )
