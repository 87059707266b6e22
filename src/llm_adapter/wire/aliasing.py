"""Vendor field aliasing applied to generically decoded payloads.

Some model families report hidden reasoning under ``reasoning_content``,
others under ``reasoning``. Both are renamed to ``thought`` before the
strict decode so the unified model only ever sees one name.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

# (source, target) pairs in priority order. For each target only the first
# source present is renamed.
REASONING_ALIASES: tuple[tuple[str, str], ...] = (
    ("reasoning_content", "thought"),
    ("reasoning", "thought"),
)


def apply_aliases(
    obj: dict[str, Any],
    aliases: Sequence[tuple[str, str]] = REASONING_ALIASES,
) -> dict[str, Any]:
    """Rename alias keys of *obj* in place and return it."""
    resolved: set[str] = set()
    for source, target in aliases:
        if target in resolved or source not in obj:
            continue
        obj[target] = obj.pop(source)
        resolved.add(target)
    return obj


def alias_choices(
    payload: dict[str, Any],
    container: str,
    aliases: Sequence[tuple[str, str]] = REASONING_ALIASES,
) -> dict[str, Any]:
    """Apply *aliases* to ``payload["choices"][*][container]``.

    *container* is ``"message"`` for buffered responses and ``"delta"`` for
    streamed chunks. Shapes that do not match are left untouched.
    """
    choices = payload.get("choices")
    if not isinstance(choices, list):
        return payload
    for choice in choices:
        if not isinstance(choice, dict):
            continue
        target = choice.get(container)
        if isinstance(target, dict):
            apply_aliases(target, aliases)
    return payload
