"""
Template Resolver - ``{{Label}}`` substitution for prompt templates.

Placeholders are replaced in a single pass: text coming from a value is
never scanned again, so a value containing ``{{...}}`` stays literal.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from image_flow.core.errors import EmptyPromptError, MissingVariablesError


PLACEHOLDER_PATTERN = re.compile(r"\{\{(.*?)\}\}")


def find_placeholders(template: str) -> list[str]:
    """Placeholder names in order of first appearance, trimmed."""
    names: list[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(template):
        name = match.group(1).strip()
        if name not in names:
            names.append(name)
    return names


def substitute(template: str, values: Mapping[str, str]) -> tuple[str, list[str]]:
    """
    Replace every placeholder and report the ones without a usable value.

    Missing or blank values are rendered as ``[Missing: X]``.

    Returns:
        (substituted text, missing keys in order of first appearance)
    """
    missing: list[str] = []

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1).strip()
        value = values.get(key)
        if value is None or not value.strip():
            if key not in missing:
                missing.append(key)
            return f"[Missing: {key}]"
        return value

    return PLACEHOLDER_PATTERN.sub(_replace, template), missing


def resolve_template(template: str, values: Mapping[str, str]) -> str:
    """
    Resolve a prompt template against a label → value mapping.

    Raises:
        MissingVariablesError: A placeholder has no value or a blank one
        EmptyPromptError: The resolved prompt is blank
    """
    text, missing = substitute(template, values)
    if missing:
        raise MissingVariablesError(missing)
    if not text.strip():
        raise EmptyPromptError()
    return text
