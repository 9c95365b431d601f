from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest


def pytest_configure() -> None:
    """
    Ensure `src/` is on sys.path so tests can import `image_flow`
    without requiring an editable install.
    """
    repo_root = Path(__file__).resolve().parents[1]
    src_root = repo_root / "src"
    sys.path.insert(0, str(src_root))


class FakeBackend:
    """
    Stand-in for both backend families.

    Every generate() call is recorded. ``outcomes[family]`` is a queue of
    per-call results: a list of image references, or an exception to raise.
    With an empty queue a call returns ``num_images`` made-up references.
    """

    def __init__(self) -> None:
        from image_flow.providers import BackendFamily

        self.requests: list[Any] = []
        self.api_keys: list[str] = []
        self.outcomes: dict[Any, list[Any]] = {family: [] for family in BackendFamily}

    def provider_class(self, provider_family):
        from image_flow.providers import GenerationResult, ImageProvider

        backend = self

        class FakeProvider(ImageProvider):
            family = provider_family
            name = provider_family.display_name

            async def generate(self, request):
                backend.requests.append(request)
                backend.api_keys.append(self.api_key)
                queue = backend.outcomes[self.family]
                outcome = queue.pop(0) if queue else None
                if isinstance(outcome, Exception):
                    raise outcome
                if outcome is None:
                    call = len(backend.requests)
                    outcome = [
                        f"{self.family.value}-{call}-{i}" for i in range(request.num_images)
                    ]
                return GenerationResult(
                    images=list(outcome),
                    model_id=request.model.id,
                    prompt=request.prompt,
                )

            async def validate_credentials(self):
                return True

            def _check_error(self, status, data):
                return None

        return FakeProvider

    @property
    def registry(self):
        from image_flow.providers import BackendFamily, ProviderRegistry

        registry = ProviderRegistry()
        for family in BackendFamily:
            registry.register_provider(self.provider_class(family))
        return registry


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_workflow():
    """
    Build a single-branch workflow: Input(s) -> Prompt -> Model -> Output.

    Node ids are "input", "input2", ..., "prompt", "model", "output".
    """
    from image_flow.core.graph import Edge, Node, NodeKind, WorkflowGraph

    def _make(
        attributes: list[dict] | None = None,
        template: str = "",
        model: str = "dall-e-3",
        n: Any = 1,
        extra_inputs: list[list[dict]] | None = None,
    ) -> WorkflowGraph:
        input_groups = [attributes or []] + list(extra_inputs or [])
        nodes = []
        edges = []
        for i, attrs in enumerate(input_groups):
            node_id = "input" if i == 0 else f"input{i + 1}"
            nodes.append(Node.create(NodeKind.INPUT, {"attributes": attrs}, node_id))
            edges.append(Edge.create(node_id, "prompt"))
        nodes += [
            Node.create(NodeKind.PROMPT, {"template": template}, "prompt"),
            Node.create(NodeKind.MODEL, {"model": model, "n": n}, "model"),
            Node.create(NodeKind.OUTPUT, {"status": "idle", "images": []}, "output"),
        ]
        edges += [Edge.create("prompt", "model"), Edge.create("model", "output")]
        return WorkflowGraph(nodes, edges)

    return _make
