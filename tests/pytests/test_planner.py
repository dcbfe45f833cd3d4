#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

import random

import pytest

from infragraph.exceptions import CyclicDependencyError, NotFoundError
from infragraph.resources.graph import Graph, build
from infragraph.resources.planner import (
    APPLY_ACTION,
    DESTROY_ACTION,
    ExecutionPlan,
    plan,
    render_plan_table,
)
from infragraph.resources.registry import ResourceDeclaration, ResourceRegistry
from infragraph.resources.values import ResourceIdentity

A = ResourceIdentity("aws_vpc", "a")
B = ResourceIdentity("aws_subnet", "b")
C = ResourceIdentity("aws_subnet", "c")


def random_registry(seed: int, size: int = 40) -> ResourceRegistry:
    """
    Random DAG: each resource may only reference resources declared before it.
    """
    rand = random.Random(seed)
    registry = ResourceRegistry()
    names = []
    for index in range(size):
        kind = rand.choice(["aws_vpc", "aws_subnet", "aws_lb", "aws_iam_role"])
        parents = rand.sample(names, k=min(len(names), rand.randint(0, 3)))
        attributes = {
            f"ref_{count}": f"{parent}.id" for count, parent in enumerate(parents)
        }
        registry.register(kind, f"r{index}", attributes)
        names.append(f"{kind}.r{index}")
    return registry.freeze()


def test_plan(abc_registry):
    execution_plan = plan(build(abc_registry))
    assert execution_plan.batches == ((A,), (B, C))
    assert execution_plan.action == APPLY_ACTION
    assert execution_plan.batch_index(C) == 1
    assert execution_plan.identities == [A, B, C]
    assert execution_plan.to_dict() == {
        "action": "apply",
        "batches": [["aws_vpc.a"], ["aws_subnet.b", "aws_subnet.c"]],
    }
    with pytest.raises(NotFoundError):
        execution_plan.batch_index(ResourceIdentity("aws_vpc", "z"))


def test_batches_sorted_on_kind_then_name():
    registry = ResourceRegistry()
    for kind, name in [("b_kind", "a"), ("a_kind", "z"), ("a_kind", "b")]:
        registry.register(kind, name)
    execution_plan = plan(build(registry))
    assert [str(identity) for identity in execution_plan.batches[0]] == [
        "a_kind.b",
        "a_kind.z",
        "b_kind.a",
    ]


@pytest.mark.parametrize("seed", [1, 7, 42, 1337])
def test_random_dags(seed):
    graph = build(random_registry(seed))
    execution_plan = plan(graph)
    assert sorted(execution_plan.identities) == graph.nodes
    for edge in graph.edges:
        assert execution_plan.batch_index(edge.dependent) > execution_plan.batch_index(
            edge.dependency
        )
    for index, batch in enumerate(execution_plan):
        assert list(batch) == sorted(batch)
        for identity in batch:
            if index == 0:
                assert not graph.dependencies_of(identity)
            else:
                assert any(
                    execution_plan.batch_index(dependency) == index - 1
                    for dependency in graph.dependencies_of(identity)
                )
    assert plan(graph) == execution_plan
    assert plan(build(random_registry(seed))) == execution_plan


def test_empty_graph():
    execution_plan = plan(Graph())
    assert len(execution_plan) == 0
    assert execution_plan.to_dict() == {"action": "apply", "batches": []}


def test_targets(abc_registry):
    graph = build(abc_registry)
    assert plan(graph, targets=["aws_subnet.b"]).batches == ((A,), (B,))
    assert plan(graph, targets=[A]).batches == ((A,),)
    with pytest.raises(NotFoundError):
        plan(graph, targets=["aws_subnet.nope"])


def test_destroy(abc_registry):
    execution_plan = plan(build(abc_registry), destroy=True)
    assert execution_plan.action == DESTROY_ACTION
    assert execution_plan.batches == ((B, C), (A,))


def test_destroy_targets(abc_registry):
    graph = build(abc_registry)
    vpc_plan = plan(graph, targets=[A], destroy=True)
    assert vpc_plan.batches == ((B, C), (A,))
    subnet_plan = plan(graph, targets=["aws_subnet.b"], destroy=True)
    assert subnet_plan.batches == ((B,),)
    assert plan(graph, targets=[B, C], destroy=True).batches == ((B, C),)
    with pytest.raises(NotFoundError):
        plan(graph, targets=["aws_subnet.nope"], destroy=True)


@pytest.mark.parametrize("seed", [3, 11, 42])
def test_random_dags_destroy_targets(seed):
    graph = build(random_registry(seed))
    rand = random.Random(seed)
    targets = rand.sample(graph.nodes, k=3)
    execution_plan = plan(graph, targets=targets, destroy=True)
    planned = set(execution_plan.identities)
    assert planned == graph.descendants_closure(targets)
    for identity in planned:
        assert graph.dependents_of(identity) <= planned
        for dependent in graph.dependents_of(identity):
            assert execution_plan.batch_index(dependent) < execution_plan.batch_index(
                identity
            )


def test_plan_cyclic_graph():
    graph = Graph()
    graph.add_node(ResourceDeclaration("aws_vpc", "a"))
    graph.add_node(ResourceDeclaration("aws_subnet", "b"))
    graph.add_node(ResourceDeclaration("aws_subnet", "c"))
    graph.add_edge(B, A)
    graph.add_edge(A, B)
    with pytest.raises(CyclicDependencyError) as error:
        plan(graph)
    assert error.value.cycle == [B, A, B]


def test_execution_plan_validation():
    with pytest.raises(ValueError):
        ExecutionPlan([[A], [A]])
    with pytest.raises(ValueError):
        ExecutionPlan([[A]], action="recreate")


def test_render_plan_table(abc_registry):
    graph = build(abc_registry)
    table = render_plan_table(plan(graph), graph)
    assert "DependsOn" in table
    assert "aws_vpc.a" in table
    destroy_table = render_plan_table(plan(graph, destroy=True), graph)
    assert "Dependents" in destroy_table
    assert "aws_subnet.b, aws_subnet.c" in destroy_table


def test_use_case_plan(use_cases):
    from infragraph.common.settings import InfraGraphSettings

    settings = InfraGraphSettings(
        command="plan", DeclarationsFiles=[f"{use_cases}/ecs-cluster.yml"]
    )
    execution_plan = plan(build(settings.registry))
    assert execution_plan.to_dict()["batches"] == [
        ["aws_cloudwatch_log_group.app", "aws_ecs_cluster.app", "aws_vpc.main"],
        [
            "aws_cloudwatch_event_rule.ecs_task_stopped",
            "aws_lb_target_group.app",
            "aws_security_group.lb",
            "aws_subnet.public_a",
            "aws_subnet.public_b",
        ],
        ["aws_launch_template.ecs", "aws_lb.public"],
        ["aws_autoscaling_group.ecs", "aws_lb_listener.http"],
    ]
