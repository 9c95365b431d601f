"""
Prompt Optimizer - Rewrite a Prompt node's template with a chat model.

The optimizer reads the Input nodes feeding a Prompt node as plain
``label: value`` context and asks an OpenAI chat model for a tighter image
prompt. Its only output is a replacement template; it takes no part in
workflow execution.
"""

from __future__ import annotations

import logging

from image_flow.core.graph import NodeKind, WorkflowGraph
from image_flow.core.template import find_placeholders
from image_flow.providers import (
    BackendError,
    BackendFamily,
    MissingCredentialError,
    OptimizationError,
    ProviderRegistry,
    get_registry,
)


logger = logging.getLogger(__name__)

DEFAULT_OPTIMIZER_MODEL = "gpt-4o"

SYSTEM_PROMPT = (
    "You are an expert prompt engineer for image generation models such as "
    "DALL-E 3 and Gemini. Turn the user's context variables and rough "
    "template into one concise, high-quality image prompt. Focus on visual "
    "description, lighting, style and composition. Stay under 50 words "
    "where possible."
)


def build_prompt_context(graph: WorkflowGraph, prompt_id: str) -> str:
    """
    ``label: value`` lines for every attribute of the Input nodes feeding
    ``prompt_id``, in edge order then attribute order.
    """
    lines = []
    for edge in graph.get_incoming_edges(prompt_id):
        source = graph.get_node(edge.source)
        if source is None or source.kind != NodeKind.INPUT:
            continue
        for attr in source.attributes:
            lines.append(f"{attr.label}: {attr.value}\n")
    return "".join(lines)


def build_user_prompt(context: str, template: str) -> str:
    placeholders = find_placeholders(template)
    placeholder_line = ", ".join(placeholders) if placeholders else "(none)"
    return (
        f"Context variables (from connected inputs):\n{context}\n"
        f"Current draft/template:\n{template}\n\n"
        f"Placeholders in the draft: {placeholder_line}\n\n"
        "Task: write an optimized prompt that uses the context variables and "
        "improves the draft. Keep {{Key}} placeholders, or replace them when "
        "the context makes the value clear."
    )


async def optimize_prompt(
    context: str,
    template: str,
    api_key: str | None,
    *,
    model: str = DEFAULT_OPTIMIZER_MODEL,
    registry: ProviderRegistry | None = None,
) -> str:
    """
    Ask the chat model for a better template.

    Returns the current template unchanged when the model answers with
    nothing.

    Raises:
        MissingCredentialError: No OpenAI key
        OptimizationError: The request failed
    """
    if not api_key:
        raise MissingCredentialError(BackendFamily.OPENAI)

    provider = (registry or get_registry()).create_provider(BackendFamily.OPENAI, api_key)
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(context, template)},
    ]

    try:
        content = await provider.complete_chat(model, messages)
    except BackendError as e:
        logger.error("Prompt optimization failed: %s", e)
        raise OptimizationError(f"Optimization failed: {e.detail}") from e

    return content.strip() or template
