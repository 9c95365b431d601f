"""
Execution Engine - Async workflow execution.

This module runs a workflow graph branch by branch. A branch is everything
behind one Output node: traversal, template resolution, count clamping and
dispatch. Each branch reports through a status callback:

- ``loading`` first, before any request for that branch
- then exactly one terminal ``success`` or ``error``

A failing branch never stops the others. Only a graph without any Output
node aborts the whole run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from image_flow.core.errors import NoOutputNodeError, WorkflowError
from image_flow.core.graph import MAX_IMAGES, MIN_IMAGES, NodeId, WorkflowGraph
from image_flow.core.template import resolve_template
from image_flow.core.traversal import collect_branch
from image_flow.providers import BackendDispatcher, Credentials


logger = logging.getLogger(__name__)


class OutputState(Enum):
    """Status of an Output node."""
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class BranchStatus:
    """
    Status payload written onto an Output node.

    Every write replaces ``status``, ``images`` and ``error`` together.
    """
    status: OutputState = OutputState.IDLE
    images: list[str] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def loading(cls) -> BranchStatus:
        return cls(status=OutputState.LOADING)

    @classmethod
    def success(cls, images: list[str]) -> BranchStatus:
        return cls(status=OutputState.SUCCESS, images=list(images))

    @classmethod
    def failure(cls, message: str) -> BranchStatus:
        return cls(status=OutputState.ERROR, error=message or "Unknown error")

    @property
    def is_terminal(self) -> bool:
        return self.status in (OutputState.SUCCESS, OutputState.ERROR)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "images": list(self.images),
            "error": self.error,
        }


StatusWriter = Callable[[NodeId, BranchStatus], None]


@dataclass
class ExecutionReport:
    """Final status of every branch of one run, keyed by Output node ID."""
    results: dict[NodeId, BranchStatus] = field(default_factory=dict)

    @property
    def succeeded(self) -> list[NodeId]:
        return [nid for nid, s in self.results.items() if s.status == OutputState.SUCCESS]

    @property
    def failed(self) -> list[NodeId]:
        return [nid for nid, s in self.results.items() if s.status == OutputState.ERROR]


def clamp_image_count(n: int) -> int:
    """Requested image count clamped into the range every backend accepts."""
    return min(max(n, MIN_IMAGES), MAX_IMAGES)


class ExecutionEngine:
    """
    Runs every branch of a workflow graph, one after another.

    The engine holds no per-run state: the graph, credentials and status
    callback are passed to ``run`` and nothing is shared between runs.
    """

    def __init__(self, dispatcher: BackendDispatcher | None = None):
        self.dispatcher = dispatcher or BackendDispatcher()

    async def run(
        self,
        graph: WorkflowGraph,
        credentials: Credentials,
        write_status: StatusWriter,
    ) -> ExecutionReport:
        """
        Execute all Output branches of ``graph``.

        Raises:
            NoOutputNodeError: The graph has no Output node
        """
        output_nodes = graph.get_output_nodes()
        if not output_nodes:
            raise NoOutputNodeError()

        logger.info("Starting workflow execution: %d output node(s)", len(output_nodes))

        report = ExecutionReport()
        for output in output_nodes:
            report.results[output.id] = await self.run_branch(
                graph, output.id, credentials, write_status
            )

        logger.info(
            "Workflow finished: %d succeeded, %d failed",
            len(report.succeeded), len(report.failed),
        )
        return report

    async def run_branch(
        self,
        graph: WorkflowGraph,
        output_id: NodeId,
        credentials: Credentials,
        write_status: StatusWriter,
    ) -> BranchStatus:
        """Execute one branch and write its statuses. Never raises WorkflowError."""
        write_status(output_id, BranchStatus.loading())

        try:
            images = await self._execute(graph, output_id, credentials)
            status = BranchStatus.success(images)
            logger.info("Output %s: %d image(s)", output_id, len(images))

        except asyncio.CancelledError:
            write_status(output_id, BranchStatus.failure("Execution cancelled"))
            raise

        except WorkflowError as e:
            logger.warning("Output %s failed: %s", output_id, e)
            status = BranchStatus.failure(str(e))

        except Exception as e:
            logger.exception("Output %s failed unexpectedly", output_id)
            status = BranchStatus.failure(str(e))

        write_status(output_id, status)
        return status

    async def _execute(
        self,
        graph: WorkflowGraph,
        output_id: NodeId,
        credentials: Credentials,
    ) -> list[str]:
        branch = collect_branch(graph, output_id)
        prompt = resolve_template(branch.template, branch.values)
        logger.debug("Output %s prompt: %s", output_id, prompt)

        return await self.dispatcher.dispatch(
            prompt=prompt,
            images=branch.images,
            model_id=branch.model.model,
            num_images=clamp_image_count(branch.model.n),
            credentials=credentials,
        )


async def run_workflow(
    graph: WorkflowGraph,
    credentials: Credentials,
    write_status: StatusWriter,
    dispatcher: BackendDispatcher | None = None,
) -> ExecutionReport:
    """Execute ``graph`` with a fresh engine. See ExecutionEngine.run."""
    return await ExecutionEngine(dispatcher).run(graph, credentials, write_status)
