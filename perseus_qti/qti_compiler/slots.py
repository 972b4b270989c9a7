"""Slot placeholders and recursive slot filling.

Content is first rendered with ``<slot name="..."/>`` placeholders where
widgets and interactions belong. Filling replaces each placeholder with
its rendered slot content; slot content may itself contain placeholders
(a widget inside a choice inside an interaction), so filling recurses.
"""

from __future__ import annotations

import html
import logging
import re

from perseus_qti.config import get_settings
from perseus_qti.errors import StructuralError
from perseus_qti.utils.xml_utils import escape_attr

logger = logging.getLogger(__name__)

SLOT_TAG_RE = re.compile(r'<slot\s+name="([^"]*)"\s*/>')


def slot_placeholder(name: str) -> str:
    return f'<slot name="{escape_attr(name)}"/>'


def fill_slots(content: str, slots: dict[str, str], max_depth: int | None = None) -> str:
    """Replace every slot placeholder in *content*, recursively.

    Args:
        content: Markup containing placeholders.
        slots: Slot name -> rendered markup (which may hold placeholders).
        max_depth: Nesting limit; defaults to the configured value.

    Returns:
        Markup with no placeholders left.

    Raises:
        StructuralError: On a missing slot, a circular reference, nesting
            deeper than *max_depth*, or a slot that was never used.
    """
    if max_depth is None:
        max_depth = get_settings().max_slot_depth
    used: set[str] = set()

    def process(text: str, depth: int, stack: frozenset[str]) -> str:
        if depth > max_depth:
            raise StructuralError(f"Maximum slot nesting depth exceeded ({max_depth} levels)")

        def replace(match: re.Match[str]) -> str:
            name = html.unescape(match.group(1))
            if not name:
                raise StructuralError(f"Slot tag has an empty name: {match.group(0)}")
            if name in stack:
                raise StructuralError(f"Circular slot reference detected: '{name}'", location=name)
            if name not in slots:
                raise StructuralError(f"Missing content for slot: '{name}'", location=name)
            used.add(name)
            return process(slots[name], depth + 1, stack | {name})

        return SLOT_TAG_RE.sub(replace, text)

    filled = process(content, 0, frozenset())
    unused = sorted(set(slots) - used)
    if unused:
        raise StructuralError(
            f"Slot content provided but never placed: {', '.join(unused)}",
            location=unused[0],
        )
    logger.debug("Filled %d slot(s)", len(used))
    return filled
