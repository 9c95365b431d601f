"""
Core module - Graph model, template resolution, traversal and execution.

This module provides the fundamental building blocks for Image Flow:
- Graph: Workflow nodes, edges and their payloads
- Errors: Workflow errors reported on Output nodes
- Template: ``{{Label}}`` substitution
- Traversal: Collecting one branch's inputs

The execution engine lives in ``image_flow.core.execution``.
"""

from image_flow.core.errors import (
    EmptyPromptError,
    InvalidConnectionError,
    MissingModelConnectionError,
    MissingPromptConnectionError,
    MissingVariablesError,
    NoOutputNodeError,
    WorkflowError,
)

from image_flow.core.graph import (
    DEFAULT_MODEL_ID,
    Attribute,
    AttributeKind,
    Edge,
    ModelConfig,
    Node,
    NodeId,
    NodeKind,
    Point2D,
    WorkflowGraph,
    is_valid_connection,
    new_node_id,
)

from image_flow.core.template import (
    find_placeholders,
    resolve_template,
    substitute,
)

from image_flow.core.traversal import (
    BranchInputs,
    collect_branch,
    collect_prompt_inputs,
)


__all__ = [
    # errors.py
    "EmptyPromptError",
    "InvalidConnectionError",
    "MissingModelConnectionError",
    "MissingPromptConnectionError",
    "MissingVariablesError",
    "NoOutputNodeError",
    "WorkflowError",
    # graph.py
    "DEFAULT_MODEL_ID",
    "Attribute",
    "AttributeKind",
    "Edge",
    "ModelConfig",
    "Node",
    "NodeId",
    "NodeKind",
    "Point2D",
    "WorkflowGraph",
    "is_valid_connection",
    "new_node_id",
    # template.py
    "find_placeholders",
    "resolve_template",
    "substitute",
    # traversal.py
    "BranchInputs",
    "collect_branch",
    "collect_prompt_inputs",
]
