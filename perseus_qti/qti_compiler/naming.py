"""Deterministic names for slots, choices and items."""

from __future__ import annotations

import string

from perseus_qti.config import get_settings
from perseus_qti.utils.xml_utils import sanitize_identifier


def slot_name_for_ref(ref: str) -> str:
    """Slot name for a source element key: ``"image 1"`` -> ``"image_1"``."""
    return sanitize_identifier(ref)


def choice_identifier(index: int) -> str:
    """``0`` -> ``"A"``, ``25`` -> ``"Z"``, ``26`` -> ``"AA"``."""
    letters = string.ascii_uppercase
    name = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        name = letters[remainder] + name
    return name


def choice_slot_name(response_identifier: str, choice_id: str, ordinal: int) -> str:
    """Widget slot embedded in a choice: ``<responseId>__<choiceId>__v<n>``."""
    return f"{response_identifier}__{choice_id}__v{ordinal}"


def parse_choice_slot_name(slot: str) -> tuple[str, str] | None:
    """Split a choice-level slot into ``(response_identifier, choice_id)``.

    Returns None for ordinary slot names.
    """
    parts = slot.split("__")
    if len(parts) < 3 or not parts[-1].startswith("v") or not parts[-1][1:].isdigit():
        return None
    return "__".join(parts[:-2]), parts[-2]


def qti_item_identifier(source_id: str) -> str:
    """Stable QTI item identifier for a source question id."""
    prefix = get_settings().identifier_prefix
    return f"{prefix}_{sanitize_identifier(source_id)}"
