"""
Image Flow - Command-line entry point.

Usage:
    python -m image_flow run workflow.json [--save result.json]
    python -m image_flow optimize workflow.json PROMPT_NODE_ID
    python -m image_flow models
    python -m image_flow check
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from image_flow.core.errors import NoOutputNodeError, WorkflowError
from image_flow.core.execution import BranchStatus, run_workflow
from image_flow.core.graph import NodeId, NodeKind
from image_flow.core.workflow_file import load_workflow, save_workflow
from image_flow.optimizer import build_prompt_context, optimize_prompt
from image_flow.providers import BackendDispatcher, BackendFamily, get_registry


logger = logging.getLogger(__name__)


def _load_registry(config: Path | None):
    registry = get_registry()
    registry.load_config(config)
    return registry


async def _run(args: argparse.Namespace) -> int:
    registry = _load_registry(args.config)
    graph = load_workflow(args.workflow)

    statuses: dict[NodeId, BranchStatus] = {}

    def write_status(node_id: NodeId, status: BranchStatus) -> None:
        statuses[node_id] = status
        logger.info("%s -> %s", node_id, status.status.value)

    try:
        report = await run_workflow(
            graph,
            registry.credentials(),
            write_status,
            dispatcher=BackendDispatcher(registry),
        )
    except NoOutputNodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(json.dumps({nid: s.to_dict() for nid, s in statuses.items()}, indent=2))

    if args.save:
        save_workflow(args.save, graph, statuses)
        logger.info("Saved results to %s", args.save)

    return 1 if report.failed else 0


async def _optimize(args: argparse.Namespace) -> int:
    registry = _load_registry(args.config)
    graph = load_workflow(args.workflow)

    prompt_node = graph.get_node(args.prompt_id)
    if prompt_node is None or prompt_node.kind != NodeKind.PROMPT:
        print(f"Error: no Prompt node with id {args.prompt_id}", file=sys.stderr)
        return 2

    context = build_prompt_context(graph, prompt_node.id)
    try:
        optimized = await optimize_prompt(
            context,
            prompt_node.template,
            registry.credentials().openai,
            model=args.model,
            registry=registry,
        )
    except WorkflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(optimized)

    if args.save:
        prompt_node.data["template"] = optimized
        save_workflow(args.save, graph)
    return 0


def _models(args: argparse.Namespace) -> int:
    registry = _load_registry(args.config)
    for card in registry.list_models():
        batch = "1 per call" if card.max_images == 1 else f"up to {card.max_images} per call"
        image_input = "image input" if card.supports_image_input else "text only"
        print(f"{card.id:<28} {card.family.value:<7} {batch:<18} {image_input}")
    return 0


async def _check(args: argparse.Namespace) -> int:
    registry = _load_registry(args.config)
    credentials = registry.credentials()

    ok = True
    for family in BackendFamily:
        api_key = credentials.for_family(family)
        if not api_key:
            print(f"{family.display_name}: no API key")
            continue
        provider = registry.create_provider(family, api_key)
        valid = await provider.validate_credentials()
        ok = ok and valid
        print(f"{family.display_name}: {'valid' if valid else 'INVALID'}")
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image_flow",
        description="Run node-based image generation workflows",
    )
    parser.add_argument("--config", type=Path, default=None,
                        help="Provider config file (default: ~/.config/image_flow/providers.json)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Execute every Output node of a workflow")
    run.add_argument("workflow", type=Path)
    run.add_argument("--save", type=Path, default=None,
                     help="Write the workflow with statuses merged into Output nodes")

    opt = sub.add_parser("optimize", help="Rewrite a Prompt node's template")
    opt.add_argument("workflow", type=Path)
    opt.add_argument("prompt_id")
    opt.add_argument("--model", default="gpt-4o")
    opt.add_argument("--save", type=Path, default=None,
                     help="Write the workflow with the new template")

    sub.add_parser("models", help="List known models")
    sub.add_parser("check", help="Validate configured API keys")

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for Image Flow.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "run":
            return asyncio.run(_run(args))
        if args.command == "optimize":
            return asyncio.run(_optimize(args))
        if args.command == "check":
            return asyncio.run(_check(args))
        return _models(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
