"""
Workflow Graph Model - Core data structures for node-based image workflows.

This module defines the fundamental building blocks:
- NodeKind: The four pipeline stages (Input, Prompt, Model, Output)
- Attribute: A labeled text or image value held by an Input node
- ModelConfig: The model selection held by a Model node
- Node / Edge: Typed vertices and directed connections
- WorkflowGraph: An ordered snapshot of nodes and edges

Graphs are built by the editor and handed to the engine as snapshots.
The engine reads them and never mutates them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NewType
from uuid import uuid4


NodeId = NewType("NodeId", str)

DEFAULT_MODEL_ID = "dall-e-3"

# Images per Model node
MIN_IMAGES = 1
MAX_IMAGES = 4


def new_node_id() -> NodeId:
    """Generate a new unique node ID."""
    return NodeId(uuid4().hex)


class NodeKind(Enum):
    """Pipeline stage of a node. Edges only run Input→Prompt→Model→Output."""
    INPUT = "input"
    PROMPT = "prompt"
    MODEL = "model"
    OUTPUT = "output"

    @property
    def type_tag(self) -> str:
        """Type tag used by the editor's persisted workflow (e.g. "inputNode")."""
        return f"{self.value}Node"

    @classmethod
    def from_tag(cls, tag: str) -> NodeKind:
        """Parse either the editor tag ("promptNode") or the plain value ("prompt")."""
        normalized = tag.strip()
        if normalized.endswith("Node"):
            normalized = normalized[: -len("Node")]
        try:
            return cls(normalized.lower())
        except ValueError:
            raise ValueError(f"Unknown node type: {tag!r}") from None


# Allowed (source, target) pairs
_STAGE_ORDER: dict[NodeKind, NodeKind] = {
    NodeKind.INPUT: NodeKind.PROMPT,
    NodeKind.PROMPT: NodeKind.MODEL,
    NodeKind.MODEL: NodeKind.OUTPUT,
}


def is_valid_connection(source: NodeKind, target: NodeKind) -> bool:
    """Check that an edge connects two adjacent pipeline stages."""
    return _STAGE_ORDER.get(source) == target


class AttributeKind(Enum):
    TEXT = "text"
    IMAGE = "image"


@dataclass
class Attribute:
    """
    A labeled value on an Input node.

    Attributes:
        id: Unique attribute identifier within the node
        kind: Text or image
        label: Substitution key used by ``{{label}}`` placeholders
        value: Raw text, or an image reference (data URI or URL)
    """
    id: str
    kind: AttributeKind = AttributeKind.TEXT
    label: str = ""
    value: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attribute:
        kind = data.get("type", data.get("kind", AttributeKind.TEXT.value))
        try:
            parsed_kind = AttributeKind(kind)
        except ValueError:
            parsed_kind = AttributeKind.TEXT
        return cls(
            id=str(data.get("id", "")),
            kind=parsed_kind,
            label=data.get("label") or "",
            value=data.get("value") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "label": self.label,
            "value": self.value,
        }


@dataclass
class ModelConfig:
    """Model selection on a Model node: identifier and requested image count."""
    model: str = DEFAULT_MODEL_ID
    n: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModelConfig:
        return cls(
            model=data.get("model") or DEFAULT_MODEL_ID,
            n=_parse_count(data.get("n")),
        )


def _parse_count(raw: Any) -> int:
    # The editor bounds n to 1-4, but persisted data may hold anything,
    # including Infinity, NaN or numeric strings.
    try:
        n = float(raw)
    except (TypeError, ValueError):
        return MIN_IMAGES
    if math.isnan(n):
        return MIN_IMAGES
    return int(min(max(n, MIN_IMAGES), MAX_IMAGES))


@dataclass
class Point2D:
    """Canvas position. Carried through untouched for the editor."""
    x: float = 0.0
    y: float = 0.0


@dataclass
class Node:
    """
    A single node in the workflow graph.

    ``data`` is the type-specific payload exactly as the editor stores it;
    the typed accessors below read it without modifying it.
    """
    id: NodeId
    kind: NodeKind
    data: dict[str, Any] = field(default_factory=dict)
    position: Point2D = field(default_factory=Point2D)

    @classmethod
    def create(
        cls,
        kind: NodeKind,
        data: dict[str, Any] | None = None,
        node_id: str | None = None,
    ) -> Node:
        """Factory method to create a new node."""
        return cls(
            id=NodeId(node_id) if node_id else new_node_id(),
            kind=kind,
            data=dict(data or {}),
        )

    @property
    def attributes(self) -> list[Attribute]:
        """Attributes of an Input node, in their stored order."""
        return [Attribute.from_dict(a) for a in self.data.get("attributes") or []]

    @property
    def template(self) -> str:
        """Template of a Prompt node."""
        return self.data.get("template") or ""

    @property
    def model_config(self) -> ModelConfig:
        """Model selection of a Model node."""
        return ModelConfig.from_dict(self.data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        position = data.get("position") or {}
        return cls(
            id=NodeId(str(data["id"])),
            kind=NodeKind.from_tag(data["type"]),
            data=dict(data.get("data") or {}),
            position=Point2D(position.get("x", 0.0), position.get("y", 0.0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.type_tag,
            "position": {"x": self.position.x, "y": self.position.y},
            "data": dict(self.data),
        }


@dataclass
class Edge:
    """A directed connection from one node's output to another's input."""
    source: NodeId
    target: NodeId
    id: str = ""

    @classmethod
    def create(cls, source: str, target: str) -> Edge:
        return cls(
            source=NodeId(source),
            target=NodeId(target),
            id=f"e-{source}-{target}",
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Edge:
        return cls(
            source=NodeId(str(data["source"])),
            target=NodeId(str(data["target"])),
            id=str(data.get("id", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "source": self.source, "target": self.target}


class WorkflowGraph:
    """
    Ordered snapshot of workflow nodes and edges.

    Node order and edge order are preserved exactly as supplied. Edge order
    is the only ordering used to break ties during traversal.
    """

    def __init__(
        self,
        nodes: list[Node] | None = None,
        edges: list[Edge] | None = None,
    ):
        self._nodes: dict[NodeId, Node] = {}
        self._edges: list[Edge] = list(edges or [])
        for node in nodes or []:
            self._nodes[node.id] = node

    # --- Node operations ---

    @property
    def nodes(self) -> list[Node]:
        """All nodes in insertion order (copy)."""
        return list(self._nodes.values())

    def add_node(self, node: Node) -> None:
        self._nodes[node.id] = node

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(NodeId(node_id))

    def get_nodes_of_kind(self, kind: NodeKind) -> list[Node]:
        return [node for node in self._nodes.values() if node.kind == kind]

    def get_output_nodes(self) -> list[Node]:
        """Output nodes in node order. Each one is the end of a branch."""
        return self.get_nodes_of_kind(NodeKind.OUTPUT)

    # --- Edge operations ---

    @property
    def edges(self) -> list[Edge]:
        """All edges in insertion order (copy)."""
        return list(self._edges)

    def add_edge(self, edge: Edge) -> bool:
        """
        Add an edge between two existing nodes.

        Returns False if either node is missing or the stages are not
        adjacent in the Input→Prompt→Model→Output order.
        """
        source = self._nodes.get(edge.source)
        target = self._nodes.get(edge.target)
        if source is None or target is None:
            return False
        if not is_valid_connection(source.kind, target.kind):
            return False
        self._edges.append(edge)
        return True

    def connect(self, source: Node, target: Node) -> bool:
        """Shorthand for ``add_edge(Edge.create(source.id, target.id))``."""
        return self.add_edge(Edge.create(source.id, target.id))

    def get_incoming_edges(self, node_id: str) -> list[Edge]:
        """All edges whose target is ``node_id``, in edge order."""
        return [edge for edge in self._edges if edge.target == node_id]

    def get_input_edge(self, node_id: str) -> Edge | None:
        """The first edge feeding ``node_id``, if any."""
        for edge in self._edges:
            if edge.target == node_id:
                return edge
        return None

    # --- Serialization ---

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowGraph:
        """Build a graph from the editor's ``{"nodes": [...], "edges": [...]}``."""
        return cls(
            nodes=[Node.from_dict(n) for n in data.get("nodes") or []],
            edges=[Edge.from_dict(e) for e in data.get("edges") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self._nodes.values()],
            "edges": [edge.to_dict() for edge in self._edges],
        }

    # --- Utility ---

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes
