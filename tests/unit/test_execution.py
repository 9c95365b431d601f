"""
Tests for the execution engine.

Backends are faked (see conftest.FakeBackend); every status write is
recorded in order.
"""

import asyncio
import json

import pytest

from image_flow.core.errors import NoOutputNodeError
from image_flow.core.execution import (
    BranchStatus,
    ExecutionEngine,
    OutputState,
    clamp_image_count,
    run_workflow,
)
from image_flow.core.graph import Edge, Node, NodeKind, WorkflowGraph
from image_flow.providers import (
    BackendDispatcher,
    BackendFamily,
    Credentials,
    GenerationError,
)


BOTH_KEYS = Credentials(gemini="g-key", openai="o-key")


def text(label, value):
    return {"id": label.lower(), "type": "text", "label": label, "value": value}


class StatusLog:
    """Records every write_status call."""

    def __init__(self):
        self.writes = []

    def __call__(self, node_id, status):
        self.writes.append((node_id, status))

    def for_node(self, node_id):
        return [s.status for nid, s in self.writes if nid == node_id]

    def final(self, node_id):
        return [s for nid, s in self.writes if nid == node_id][-1]


def execute(graph, backend, credentials=BOTH_KEYS):
    log = StatusLog()
    engine = ExecutionEngine(BackendDispatcher(backend.registry))
    report = asyncio.run(engine.run(graph, credentials, log))
    return report, log


class TestClamp:

    @pytest.mark.parametrize("requested,expected", [(-3, 1), (0, 1), (1, 1), (4, 4), (9, 4)])
    def test_clamp(self, requested, expected):
        assert clamp_image_count(requested) == expected


class TestBranchStatus:

    def test_failure_without_message(self):
        status = BranchStatus.failure("")
        assert status.error == "Unknown error"
        assert status.images == []

    def test_to_dict(self):
        assert BranchStatus.success(["a"]).to_dict() == {
            "status": "success", "images": ["a"], "error": None,
        }

    def test_loading_is_not_terminal(self):
        assert not BranchStatus.loading().is_terminal
        assert BranchStatus.failure("x").is_terminal


class TestRun:

    def test_shoe_on_a_beach(self, make_workflow, fake_backend):
        graph = make_workflow([text("Product", "Shoe")], "{{Product}} on a beach")

        report, log = execute(graph, fake_backend)

        assert fake_backend.requests[0].prompt == "Shoe on a beach"
        assert fake_backend.requests[0].model.id == "dall-e-3"
        assert log.for_node("output") == [OutputState.LOADING, OutputState.SUCCESS]
        assert log.final("output").images == ["openai-1-0"]
        assert report.succeeded == ["output"]
        assert report.failed == []

    def test_count_clamped_before_dispatch(self, make_workflow, fake_backend):
        graph = make_workflow([], "cat", "dall-e-3", n=9)

        _, log = execute(graph, fake_backend)

        assert len(fake_backend.requests) == 4
        assert len(log.final("output").images) == 4

    @pytest.mark.parametrize("stored", [json.loads('{"n": Infinity}')["n"], "1e9"])
    def test_unbounded_stored_count_clamped(self, make_workflow, fake_backend, stored):
        graph = make_workflow([], "cat", "dall-e-2", n=stored)

        _, log = execute(graph, fake_backend)

        final = log.final("output")
        assert final.status == OutputState.SUCCESS
        assert len(final.images) == 4
        assert [r.num_images for r in fake_backend.requests] == [4]

    def test_zero_count_means_one(self, make_workflow, fake_backend):
        graph = make_workflow([], "cat", "dall-e-2", n=0)

        execute(graph, fake_backend)

        assert [r.num_images for r in fake_backend.requests] == [1]

    def test_no_output_node(self, fake_backend):
        graph = WorkflowGraph([Node.create(NodeKind.PROMPT, {"template": "x"}, "p")])
        log = StatusLog()
        engine = ExecutionEngine(BackendDispatcher(fake_backend.registry))

        with pytest.raises(NoOutputNodeError, match="Add an Output Node to start."):
            asyncio.run(engine.run(graph, BOTH_KEYS, log))

        assert log.writes == []
        assert fake_backend.requests == []

    def test_branches_are_independent(self, fake_backend):
        nodes = [
            Node.create(NodeKind.INPUT, {"attributes": [text("Animal", "fox")]}, "in"),
            Node.create(NodeKind.PROMPT, {"template": "a {{Animal}}"}, "p"),
            Node.create(NodeKind.MODEL, {"model": "gemini-2.5-flash-image", "n": 1}, "m"),
            Node.create(NodeKind.OUTPUT, {}, "o1"),
            Node.create(NodeKind.OUTPUT, {}, "o2"),
        ]
        edges = [Edge.create("in", "p"), Edge.create("p", "m"), Edge.create("m", "o2")]

        report, log = execute(WorkflowGraph(nodes, edges), fake_backend)

        assert log.for_node("o1") == [OutputState.LOADING, OutputState.ERROR]
        assert log.final("o1").error == "Connect a Model Node to the Output."
        assert log.for_node("o2") == [OutputState.LOADING, OutputState.SUCCESS]
        assert fake_backend.requests[0].prompt == "a fox"
        assert report.failed == ["o1"]
        assert report.succeeded == ["o2"]

    def test_shared_model_runs_once_per_output(self, fake_backend):
        nodes = [
            Node.create(NodeKind.PROMPT, {"template": "cat"}, "p"),
            Node.create(NodeKind.MODEL, {"model": "dall-e-2", "n": 2}, "m"),
            Node.create(NodeKind.OUTPUT, {}, "o1"),
            Node.create(NodeKind.OUTPUT, {}, "o2"),
        ]
        edges = [Edge.create("p", "m"), Edge.create("m", "o1"), Edge.create("m", "o2")]

        report, _ = execute(WorkflowGraph(nodes, edges), fake_backend)

        assert len(fake_backend.requests) == 2
        assert report.succeeded == ["o1", "o2"]


class TestBranchErrors:

    def test_missing_variables(self, make_workflow, fake_backend):
        graph = make_workflow([text("Product", "Shoe")], "{{Color}} {{Product}} {{Size}}")

        _, log = execute(graph, fake_backend)

        final = log.final("output")
        assert final.status == OutputState.ERROR
        assert final.error == "Missing values for: Color, Size. Please fill in the Input Node."
        assert final.images == []
        assert fake_backend.requests == []

    def test_empty_prompt(self, make_workflow, fake_backend):
        _, log = execute(make_workflow([], "   "), fake_backend)
        assert log.final("output").error.startswith("Prompt is empty")

    def test_missing_credential(self, make_workflow, fake_backend):
        graph = make_workflow([], "cat", "dall-e-3")

        _, log = execute(graph, fake_backend, Credentials(gemini="g-key"))

        assert log.final("output").error == "OpenAI API Key is missing. Please add it in Settings."
        assert fake_backend.requests == []

    def test_unsupported_model(self, make_workflow, fake_backend):
        _, log = execute(make_workflow([], "cat", "imagen-4"), fake_backend)
        assert log.final("output").error == "Unsupported model: imagen-4"

    def test_partial_fan_out_failure(self, make_workflow, fake_backend):
        fake_backend.outcomes[BackendFamily.OPENAI] = [
            ["img-1"],
            GenerationError("OpenAI API Error: content policy"),
        ]
        graph = make_workflow([], "cat", "dall-e-3", n=3)

        _, log = execute(graph, fake_backend)

        final = log.final("output")
        assert final.status == OutputState.ERROR
        assert final.images == []
        assert final.error == "OpenAI API Error: content policy"

    def test_unexpected_exception_becomes_error(self, make_workflow, fake_backend):
        fake_backend.outcomes[BackendFamily.OPENAI] = [RuntimeError("socket exploded")]

        _, log = execute(make_workflow([], "cat"), fake_backend)

        assert log.final("output").error == "socket exploded"

    def test_exception_without_message(self, make_workflow, fake_backend):
        fake_backend.outcomes[BackendFamily.OPENAI] = [RuntimeError()]

        _, log = execute(make_workflow([], "cat"), fake_backend)

        assert log.final("output").error == "Unknown error"


class CancellingDispatcher:

    async def dispatch(self, **kwargs):
        raise asyncio.CancelledError()


def test_cancellation_writes_error_and_propagates(make_workflow):
    log = StatusLog()
    graph = make_workflow([], "cat")

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(run_workflow(graph, BOTH_KEYS, log, dispatcher=CancellingDispatcher()))

    assert log.for_node("output") == [OutputState.LOADING, OutputState.ERROR]
    assert log.final("output").error == "Execution cancelled"
