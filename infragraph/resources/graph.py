#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to build the dependency graph between the resources declarations.

Edges go from the dependent resource to the resource it depends on.
"""

from __future__ import annotations

from typing import Iterable, NamedTuple, Union

from infragraph.common.logging import LOG
from infragraph.exceptions import CyclicDependencyError, NotFoundError
from infragraph.resources.registry import ResourceDeclaration, ResourceRegistry
from infragraph.resources.resolver import resolve_dependencies
from infragraph.resources.values import ResourceIdentity

UNVISITED = 0
IN_PROGRESS = 1
DONE = 2


class DependencyEdge(NamedTuple):
    dependent: ResourceIdentity
    dependency: ResourceIdentity

    def __str__(self):
        return f"{self.dependent} -> {self.dependency}"


class Graph:
    """
    Directed graph of the resources. Nodes are the resources identities.
    """

    def __init__(self):
        self._declarations = {}
        self._dependencies = {}
        self._dependents = {}

    def __contains__(self, identity):
        return identity in self._declarations

    def __len__(self):
        return len(self._declarations)

    def __repr__(self):
        return f"Graph({len(self)} nodes, {len(self.edges)} edges)"

    @property
    def nodes(self) -> list:
        """The resources identities, sorted on (kind, name)"""
        return sorted(self._declarations.keys())

    @property
    def edges(self) -> list:
        return sorted(
            DependencyEdge(dependent, dependency)
            for dependent, dependencies in self._dependencies.items()
            for dependency in dependencies
        )

    def add_node(self, declaration: ResourceDeclaration) -> None:
        if declaration.identity in self._declarations:
            return
        self._declarations[declaration.identity] = declaration
        self._dependencies[declaration.identity] = set()
        self._dependents[declaration.identity] = set()

    def add_edge(
        self, dependent: ResourceIdentity, dependency: ResourceIdentity
    ) -> DependencyEdge:
        for identity in (dependent, dependency):
            if identity not in self._declarations:
                raise NotFoundError(identity)
        self._dependencies[dependent].add(dependency)
        self._dependents[dependency].add(dependent)
        return DependencyEdge(dependent, dependency)

    def declaration(self, identity: ResourceIdentity) -> ResourceDeclaration:
        if identity not in self._declarations:
            raise NotFoundError(identity)
        return self._declarations[identity]

    def dependencies_of(self, identity: ResourceIdentity) -> frozenset:
        if identity not in self._dependencies:
            raise NotFoundError(identity)
        return frozenset(self._dependencies[identity])

    def dependents_of(self, identity: ResourceIdentity) -> frozenset:
        if identity not in self._dependents:
            raise NotFoundError(identity)
        return frozenset(self._dependents[identity])

    def find_cycle(self) -> Union[list, None]:
        """
        Depth-first traversal with three-color marking. Nodes and dependencies are visited in sorted
        order so that the same graph always reports the same cycle.

        :return: the cycle path, starting and ending with the same identity, or None if acyclic
        """
        state = {identity: UNVISITED for identity in self._declarations}
        for root in sorted(state):
            if state[root] != UNVISITED:
                continue
            path = [root]
            state[root] = IN_PROGRESS
            stack = [iter(sorted(self._dependencies[root]))]
            while stack:
                for dependency in stack[-1]:
                    if state[dependency] == IN_PROGRESS:
                        return path[path.index(dependency) :] + [dependency]
                    if state[dependency] == UNVISITED:
                        state[dependency] = IN_PROGRESS
                        path.append(dependency)
                        stack.append(iter(sorted(self._dependencies[dependency])))
                        break
                else:
                    state[path.pop()] = DONE
                    stack.pop()
        return None

    def assert_acyclic(self) -> None:
        cycle = self.find_cycle()
        if cycle:
            raise CyclicDependencyError(cycle)

    def _closure(self, targets: Iterable[ResourceIdentity], adjacency: dict) -> set:
        to_visit = list(targets)
        for target in to_visit:
            if target not in self._declarations:
                raise NotFoundError(target)
        closure = set()
        while to_visit:
            identity = to_visit.pop()
            if identity in closure:
                continue
            closure.add(identity)
            to_visit.extend(adjacency[identity] - closure)
        return closure

    def ancestors_closure(self, targets: Iterable[ResourceIdentity]) -> set:
        """
        The targets and all the resources they transitively depend on

        :raises NotFoundError: if a target is not in the graph
        """
        return self._closure(targets, self._dependencies)

    def descendants_closure(self, targets: Iterable[ResourceIdentity]) -> set:
        """
        The targets and all the resources that transitively depend on them

        :raises NotFoundError: if a target is not in the graph
        """
        return self._closure(targets, self._dependents)

    def subgraph(
        self, targets: Iterable[ResourceIdentity], dependents: bool = False
    ) -> Graph:
        """
        New graph with only the targets and their transitive dependencies, or their transitive
        dependents when ``dependents`` is set. Edges to resources left out are dropped.
        """
        if dependents:
            keep = self.descendants_closure(targets)
        else:
            keep = self.ancestors_closure(targets)
        graph = Graph()
        for identity in keep:
            graph.add_node(self._declarations[identity])
        for identity in keep:
            for dependency in self._dependencies[identity] & keep:
                graph.add_edge(identity, dependency)
        return graph


def build(declarations: Union[ResourceRegistry, Iterable[ResourceDeclaration]]) -> Graph:
    """
    Builds the dependency graph of the declarations and checks it has no cycle.

    :param declarations: the registry, or the declarations, to build the graph from
    :raises UnresolvedReferenceError: when a declaration references an undeclared resource
    :raises CyclicDependencyError: when the dependencies form a cycle
    """
    if isinstance(declarations, ResourceRegistry):
        registry = declarations.snapshot()
    else:
        registry = ResourceRegistry.from_declarations(declarations)
    graph = Graph()
    for declaration in registry:
        graph.add_node(declaration)
    for declaration in registry:
        for dependency in sorted(resolve_dependencies(declaration, registry)):
            edge = graph.add_edge(declaration.identity, dependency)
            LOG.debug(f"Dependency {edge}")
    graph.assert_acyclic()
    LOG.info(f"Built {graph}")
    return graph
