"""
Image Flow - Execution engine for node-based AI image workflows.

A workflow is a small graph of Input, Prompt, Model and Output nodes.
Running it resolves each Output node's branch, fills the prompt template
from the connected Input nodes and generates images with the Gemini or
OpenAI backends.

Usage:
    from image_flow import Credentials, WorkflowGraph, run_workflow

    graph = WorkflowGraph.from_dict(document)
    report = await run_workflow(graph, Credentials(openai=key), write_status)
"""

from image_flow.core.execution import (
    BranchStatus,
    ExecutionEngine,
    ExecutionReport,
    OutputState,
    run_workflow,
)
from image_flow.core.graph import Edge, Node, NodeKind, WorkflowGraph
from image_flow.providers import BackendDispatcher, Credentials

__version__ = "0.1.0"

__all__ = [
    "BackendDispatcher",
    "BranchStatus",
    "Credentials",
    "Edge",
    "ExecutionEngine",
    "ExecutionReport",
    "Node",
    "NodeKind",
    "OutputState",
    "WorkflowGraph",
    "run_workflow",
]
