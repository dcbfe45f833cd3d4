#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

from threading import Barrier, Lock

import pytest

from infragraph.applier import COMPLETED, FAILED, SKIPPED, Applier
from infragraph.exceptions import ApplyFailure
from infragraph.provisioners import ApplyResult, Provisioner
from infragraph.provisioners.memory import InMemoryProvisioner
from infragraph.resources.graph import build
from infragraph.resources.planner import plan
from infragraph.resources.registry import ResourceDeclaration, ResourceRegistry
from infragraph.resources.values import ResourceIdentity

A = ResourceIdentity("aws_vpc", "a")
B = ResourceIdentity("aws_subnet", "b")
C = ResourceIdentity("aws_subnet", "c")
D = ResourceIdentity("aws_lb", "d")


class BarrierProvisioner(Provisioner):
    """Subnets block until both of them are being provisioned at the same time"""

    def __init__(self):
        self.barrier = Barrier(2, timeout=5)
        self.calls = []
        self.lock = Lock()

    def apply(self, request):
        with self.lock:
            self.calls.append(request.identity)
        if request.kind == "aws_subnet":
            self.barrier.wait()
        return ApplyResult(True, {"id": str(request.identity)})


class UnsuccessfulProvisioner(InMemoryProvisioner):
    """Returns an unsuccessful result for the subnet b, rather than raising"""

    def apply(self, request):
        if request.identity == B:
            self._record(request)
            return ApplyResult(False, message="quota exceeded")
        return super().apply(request)


@pytest.fixture
def abcd_graph(abc_registry):
    registry = ResourceRegistry.from_declarations(
        [
            *abc_registry,
            ResourceDeclaration(
                "aws_lb", "d", {"subnets": ["aws_subnet.b.id", "aws_subnet.c.id"]}
            ),
        ]
    )
    return build(registry)


def test_execute(abcd_graph):
    provisioner = InMemoryProvisioner()
    report = Applier(provisioner, max_workers=4).execute(plan(abcd_graph), abcd_graph)
    assert report.success
    assert report.completed == [A, B, C, D]
    identities = [call.identity for call in provisioner.calls]
    assert identities[0] == A
    assert set(identities[1:3]) == {B, C}
    assert identities[3] == D
    requests = {call.identity: call for call in provisioner.calls}
    assert requests[B].properties == {"vpc_id": "aws_vpc-a"}
    assert requests[D].properties == {"subnets": ["aws_subnet-b", "aws_subnet-c"]}
    assert report.outputs[A]["cidr_block"] == "10.0.0.0/16"
    assert report.status_of(D) == COMPLETED
    assert "completed" in report.render_table()


def test_batch_runs_concurrently(abc_registry):
    graph = build(abc_registry)
    provisioner = BarrierProvisioner()
    report = Applier(provisioner, max_workers=2).execute(plan(graph), graph)
    assert report.completed == [A, B, C]
    assert provisioner.calls[0] == A


def test_failure_drains_batch_and_skips_the_rest(abcd_graph):
    provisioner = InMemoryProvisioner(fail_on=["aws_subnet.b"])
    with pytest.raises(ApplyFailure) as error:
        Applier(provisioner, max_workers=2).execute(plan(abcd_graph), abcd_graph)
    report = error.value.report
    assert report.failed == [B]
    assert report.completed == [A, C]
    assert report.skipped == [D]
    assert report.status_of(B) == FAILED
    assert report.status_of(D) == SKIPPED
    assert "Simulated failure" in report.errors[B]
    assert D not in [call.identity for call in provisioner.calls]
    assert report.to_dict() == {
        "action": "apply",
        "completed": ["aws_vpc.a", "aws_subnet.c"],
        "failed": ["aws_subnet.b"],
        "skipped": ["aws_lb.d"],
        "errors": {"aws_subnet.b": "Simulated failure to apply aws_subnet.b"},
    }


def test_unsuccessful_result(abcd_graph):
    with pytest.raises(ApplyFailure) as error:
        Applier(UnsuccessfulProvisioner()).execute(plan(abcd_graph), abcd_graph)
    assert error.value.report.errors[B] == "quota exceeded"
    assert error.value.report.skipped == [D]


def test_missing_output_fails_the_resource():
    registry = ResourceRegistry()
    registry.register("aws_vpc", "a")
    registry.register("aws_subnet", "b", {"vpc_id": "aws_vpc.a.vpc_id"})
    graph = build(registry)

    class NoOutputs(Provisioner):
        def apply(self, request):
            return ApplyResult(True, {})

    with pytest.raises(ApplyFailure) as error:
        Applier(NoOutputs()).execute(plan(graph), graph)
    assert error.value.report.failed == [B]
    assert "vpc_id" in error.value.report.errors[B]


def test_destroy(abcd_graph):
    provisioner = InMemoryProvisioner()
    report = Applier(provisioner).execute(plan(abcd_graph, destroy=True), abcd_graph)
    assert report.completed == [D, B, C, A]
    assert provisioner.calls[0].action == "destroy"
    assert provisioner.calls[0].properties == {
        "subnets": ["aws_subnet.b.id", "aws_subnet.c.id"]
    }


def test_applier_arguments():
    with pytest.raises(TypeError):
        Applier(object())
    with pytest.raises(ValueError):
        Applier(InMemoryProvisioner(), max_workers=0)


def test_result_without_outputs(abc_registry):
    assert ApplyResult(True).outputs is None

    class IdOnly(Provisioner):
        def apply(self, request):
            if request.kind == "aws_vpc":
                return ApplyResult(True, {"id": "vpc-1"})
            return ApplyResult(True)

    graph = build(abc_registry)
    report = Applier(IdOnly()).execute(plan(graph), graph)
    assert report.outputs[B] == {}
    assert report.outputs[A] == {"id": "vpc-1"}
