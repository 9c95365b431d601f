"""
Workflow Files - Load and save the editor's workflow JSON.

Two layouts are accepted:
- a plain document ``{"nodes": [...], "edges": [...]}``
- the editor's persisted store ``{"state": {"nodes": [...], "edges": [...]}, "version": 0}``

Anything else in the persisted store (such as saved API keys) is ignored.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from image_flow.core.execution import BranchStatus
from image_flow.core.graph import WorkflowGraph


def _graph_section(data: Any, source: Path | str) -> dict[str, Any]:
    if isinstance(data, dict) and isinstance(data.get("state"), dict):
        data = data["state"]
    if not isinstance(data, dict) or "nodes" not in data:
        raise ValueError(f"Invalid workflow format: {source}")
    return data


def load_workflow(path: Path) -> WorkflowGraph:
    """
    Load a workflow graph from a JSON file.

    Raises:
        ValueError: If the file is not valid workflow JSON
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse workflow: {path}: {e}") from e

    try:
        return WorkflowGraph.from_dict(_graph_section(data, path))
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid workflow format: {path}: {e}") from e


def apply_statuses(
    graph: WorkflowGraph,
    statuses: Mapping[str, BranchStatus],
) -> dict[str, Any]:
    """
    Serialize ``graph`` with each status merged into its Output node's data.

    Merging replaces ``status``, ``images`` and ``error`` and keeps any
    other keys the editor stored on the node. The graph itself is untouched.
    """
    document = graph.to_dict()
    for node in document["nodes"]:
        status = statuses.get(node["id"])
        if status is not None:
            node["data"] = {**node["data"], **status.to_dict()}
    return document


def save_workflow(
    path: Path,
    graph: WorkflowGraph,
    statuses: Mapping[str, BranchStatus] | None = None,
) -> Path:
    """Write ``graph`` (and optional statuses) as workflow JSON."""
    document = apply_statuses(graph, statuses or {})

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)

    return path
