#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to execute an execution plan against a provisioner.

Batches run one after the other. The resources of a batch are provisioned concurrently, and the whole batch
completes before the next one starts. When a resource fails, the resources already started in the batch
complete, and no further batch is started.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from infragraph.resources.graph import Graph

from tabulate import tabulate

from infragraph.common.logging import LOG
from infragraph.exceptions import ApplyFailure, OutputNotFoundError, ProvisioningError
from infragraph.provisioners import ApplyResult, Provisioner, ProvisioningRequest
from infragraph.resources.planner import DESTROY_ACTION, ExecutionPlan
from infragraph.resources.resolver import interpolate
from infragraph.resources.values import to_plain

COMPLETED = "completed"
FAILED = "failed"
SKIPPED = "skipped"


class ApplyReport:
    """
    Outcome of the execution of a plan

    :ivar list completed: identities of the resources successfully provisioned
    :ivar list failed: identities of the resources that failed
    :ivar list skipped: identities of the resources that were not attempted
    :ivar dict errors: error message for each failed resource
    :ivar dict outputs: outputs produced by each completed resource
    """

    def __init__(self, action: str):
        self.action = action
        self.completed = []
        self.failed = []
        self.skipped = []
        self.errors = {}
        self.outputs = {}

    def __repr__(self):
        return (
            f"ApplyReport({self.action}, completed={len(self.completed)}, "
            f"failed={len(self.failed)}, skipped={len(self.skipped)})"
        )

    @property
    def success(self) -> bool:
        return not self.failed

    def status_of(self, identity) -> str:
        if identity in self.failed:
            return FAILED
        elif identity in self.skipped:
            return SKIPPED
        elif identity in self.completed:
            return COMPLETED
        raise KeyError(identity)

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            COMPLETED: [str(identity) for identity in self.completed],
            FAILED: [str(identity) for identity in self.failed],
            SKIPPED: [str(identity) for identity in self.skipped],
            "errors": {str(identity): msg for identity, msg in self.errors.items()},
        }

    def render_table(self) -> str:
        rows = [[str(identity), COMPLETED, ""] for identity in self.completed]
        rows += [
            [str(identity), FAILED, self.errors.get(identity, "")]
            for identity in self.failed
        ]
        rows += [[str(identity), SKIPPED, ""] for identity in self.skipped]
        return tabulate(rows, ["Resource", "Status", "Details"], tablefmt="rst")


class Applier:
    """
    Drives a provisioner through an execution plan.

    :ivar Provisioner provisioner: the provisioning API adapter
    :ivar int max_workers: maximum number of resources provisioned at the same time
    """

    def __init__(self, provisioner: Provisioner, max_workers: int = None):
        if not isinstance(provisioner, Provisioner):
            raise TypeError(
                "provisioner must be", Provisioner, "Got", type(provisioner)
            )
        if max_workers is not None and (
            not isinstance(max_workers, int) or max_workers < 1
        ):
            raise ValueError("max_workers must be a positive integer. Got", max_workers)
        self.provisioner = provisioner
        self.max_workers = max_workers

    def define_request(
        self, identity, graph: Graph, action: str, report: ApplyReport
    ) -> ProvisioningRequest:
        """
        Builds the request for the resource, with references replaced by the outputs of its dependencies.

        :raises OutputNotFoundError: if a referenced output was not produced
        """
        declaration = graph.declaration(identity)
        if action == DESTROY_ACTION:
            properties = to_plain(declaration.attributes, str)
        else:
            properties = interpolate(declaration, report.outputs)
        return ProvisioningRequest(declaration, properties, action)

    def provision(self, request: ProvisioningRequest) -> ApplyResult:
        if request.action == DESTROY_ACTION:
            result = self.provisioner.destroy(request)
        else:
            result = self.provisioner.apply(request)
        if not isinstance(result, ApplyResult):
            raise TypeError(
                f"{request.identity} - provisioner returned {type(result)}, expected {ApplyResult}"
            )
        return result

    def run_batch(
        self, executor, batch: tuple, graph: Graph, action: str, report: ApplyReport
    ) -> None:
        futures = {}
        for identity in batch:
            try:
                request = self.define_request(identity, graph, action, report)
            except OutputNotFoundError as error:
                LOG.error(f"{identity} - {error}")
                report.failed.append(identity)
                report.errors[identity] = str(error)
                continue
            futures[identity] = executor.submit(self.provision, request)
        wait(futures.values())
        for identity in sorted(futures):
            try:
                result = futures[identity].result()
            except ProvisioningError as error:
                LOG.error(f"{identity} - {action} failed: {error}")
                report.failed.append(identity)
                report.errors[identity] = str(error)
                continue
            if not result.success:
                LOG.error(f"{identity} - {action} failed: {result.message}")
                report.failed.append(identity)
                report.errors[identity] = result.message or f"{action} unsuccessful"
                continue
            report.completed.append(identity)
            report.outputs[identity] = result.outputs if result.outputs else {}

    def execute(self, execution_plan: ExecutionPlan, graph: Graph) -> ApplyReport:
        """
        Provisions the resources of the plan, batch by batch.

        :param execution_plan: the plan to execute
        :param graph: the graph the plan was computed from, to get the declarations from
        :return: the report, when all resources were provisioned
        :raises ApplyFailure: once the failed batch drained, with the report
        """
        report = ApplyReport(execution_plan.action)
        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="infragraph"
        ) as executor:
            for index, batch in enumerate(execution_plan):
                if report.failed:
                    report.skipped += list(batch)
                    continue
                LOG.info(
                    f"Batch {index} - {execution_plan.action} "
                    f"{', '.join(str(identity) for identity in batch)}"
                )
                self.run_batch(executor, batch, graph, execution_plan.action, report)
        if report.skipped:
            LOG.warning(
                f"Skipped {len(report.skipped)} resources after failures in previous batches"
            )
        if not report.success:
            raise ApplyFailure(report)
        LOG.info(f"{execution_plan.action} complete for {len(report.completed)} resources")
        return report
