"""
Graph Traversal - Walk one branch backward from an Output node.

A branch is exactly one chain Output ← Model ← Prompt, plus any number of
Input nodes feeding the Prompt. Traversal is a pure function of the graph
snapshot: it reads nodes and edges and returns the collected inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from image_flow.core.errors import (
    InvalidConnectionError,
    MissingModelConnectionError,
    MissingPromptConnectionError,
)
from image_flow.core.graph import (
    AttributeKind,
    ModelConfig,
    Node,
    NodeId,
    NodeKind,
    WorkflowGraph,
)


@dataclass
class BranchInputs:
    """Everything one Output node needs before dispatch."""
    output_id: NodeId
    model_id: NodeId
    prompt_id: NodeId
    model: ModelConfig
    template: str
    values: dict[str, str] = field(default_factory=dict)
    images: list[str] = field(default_factory=list)


def _upstream_node(
    graph: WorkflowGraph,
    node: Node,
    expected: NodeKind,
    missing_error: Exception,
) -> Node:
    """Follow the first edge into ``node`` and check the source's kind."""
    edge = graph.get_input_edge(node.id)
    if edge is None:
        raise missing_error

    source = graph.get_node(edge.source)
    if source is None:
        raise InvalidConnectionError(f"Source node not found: {edge.source}")
    if source.kind != expected:
        raise InvalidConnectionError(
            f"{node.kind.value.capitalize()} must be connected to a "
            f"{expected.value.capitalize()} node."
        )
    return source


def collect_prompt_inputs(
    graph: WorkflowGraph,
    prompt_id: str,
) -> tuple[dict[str, str], list[str]]:
    """
    Flatten the attributes of every Input node feeding a Prompt node.

    Labels are trimmed. When two attributes share a label the last one
    discovered wins, walking edges in edge order and attributes in stored
    order. Image attributes with a value are collected in the same order.

    Returns:
        (label → value map, image references)
    """
    values: dict[str, str] = {}
    images: list[str] = []

    for edge in graph.get_incoming_edges(prompt_id):
        source = graph.get_node(edge.source)
        if source is None or source.kind != NodeKind.INPUT:
            continue
        for attr in source.attributes:
            if attr.kind == AttributeKind.IMAGE and attr.value:
                images.append(attr.value)
            label = attr.label.strip()
            if label:
                values[label] = attr.value

    return values, images


def collect_branch(graph: WorkflowGraph, output_id: str) -> BranchInputs:
    """
    Locate the Model and Prompt nodes behind an Output node and gather inputs.

    Raises:
        MissingModelConnectionError: Nothing feeds the Output node
        MissingPromptConnectionError: Nothing feeds the Model node
        InvalidConnectionError: An edge points at a missing or wrong-kind node
    """
    output = graph.get_node(output_id)
    if output is None or output.kind != NodeKind.OUTPUT:
        raise InvalidConnectionError(f"Output node not found: {output_id}")

    model_node = _upstream_node(
        graph, output, NodeKind.MODEL, MissingModelConnectionError()
    )
    prompt_node = _upstream_node(
        graph, model_node, NodeKind.PROMPT, MissingPromptConnectionError()
    )
    values, images = collect_prompt_inputs(graph, prompt_node.id)

    return BranchInputs(
        output_id=output.id,
        model_id=model_node.id,
        prompt_id=prompt_node.id,
        model=model_node.model_config,
        template=prompt_node.template,
        values=values,
        images=images,
    )
