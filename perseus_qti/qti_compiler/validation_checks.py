"""Structural checks over a merged ``AssessmentItem``.

Contains pure functions used by ``validate_item``: slot consistency,
slot placement, response correspondence, interaction pre-validation and
the walk that applies the banned-construct rules to every string field.
Every function returns the failing ``ValidationResult`` entries; an
empty list means the item passed.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Iterator

from perseus_qti.qti_compiler.content_rules import (
    ValidationResult,
    check_mathml_field,
    check_text_field,
)
from perseus_qti.qti_compiler.models import (
    BLOCK_INTERACTION_TYPES,
    AssessmentItem,
    BaseType,
    BlockSlotNode,
    Cardinality,
    ChoiceInteraction,
    InlineChoiceInteraction,
    InlineSlotNode,
    MathNode,
    OrderInteraction,
    ParagraphNode,
    TextNode,
)

# Block-level markup that cannot appear inside inline-only content
BLOCK_MARKUP_RE = re.compile(
    r"<\s*/?\s*(?:p|div|table|ul|ol|li|h[1-6]|blockquote|pre|figure|section)\b[^>]*>",
    re.IGNORECASE,
)


def _fail(rule_name: str, message: str, location: str | None = None) -> ValidationResult:
    return ValidationResult(passed=False, rule_name=rule_name, message=message, location=location)


# ---------------------------------------------------------------------------
# Content walk
# ---------------------------------------------------------------------------


def iter_inline(nodes: tuple, path: str) -> Iterator[tuple[Any, str]]:
    for index, node in enumerate(nodes):
        yield node, f"{path}[{index}]"


def iter_blocks(blocks: tuple, path: str) -> Iterator[tuple[Any, str]]:
    """Yield every block and inline node below *blocks* with its field path."""
    for index, block in enumerate(blocks):
        block_path = f"{path}[{index}]"
        yield block, block_path
        if isinstance(block, ParagraphNode):
            yield from iter_inline(block.content, f"{block_path}.content")


def iter_content(item: AssessmentItem) -> Iterator[tuple[Any, str, str]]:
    """Yield ``(node, path, context)`` for every content node of *item*.

    ``context`` is ``"block"`` for nodes in block-level content and
    ``"inline"`` for prompts, feedback and inline-choice text.
    """
    for node, path in iter_blocks(item.body, "body"):
        yield node, path, "block"
    for name in ("correct", "incorrect"):
        for node, path in iter_blocks(getattr(item.feedback, name), f"feedback.{name}"):
            yield node, path, "block"
    for slot, interaction in (item.interactions or {}).items():
        base = f"interactions.{slot}"
        if isinstance(interaction, (ChoiceInteraction, OrderInteraction)):
            for node, path in iter_inline(interaction.prompt, f"{base}.prompt"):
                yield node, path, "inline"
            for c_index, choice in enumerate(interaction.choices):
                choice_path = f"{base}.choices[{c_index}]"
                for node, path in iter_blocks(choice.content, f"{choice_path}.content"):
                    yield node, path, "block"
                for node, path in iter_inline(choice.feedback or (), f"{choice_path}.feedback"):
                    yield node, path, "inline"
        elif isinstance(interaction, InlineChoiceInteraction):
            for c_index, inline_choice in enumerate(interaction.choices):
                choice_path = f"{base}.choices[{c_index}].content"
                for node, path in iter_inline(inline_choice.content, choice_path):
                    yield node, path, "inline"


# ---------------------------------------------------------------------------
# Slot consistency and placement
# ---------------------------------------------------------------------------


def check_slot_consistency(item: AssessmentItem) -> list[ValidationResult]:
    """Every slot reference resolves to exactly one declared slot and back."""
    widgets = item.widgets or {}
    interactions = item.interactions or {}
    failures: list[ValidationResult] = []

    for slot in sorted(set(widgets) & set(interactions)):
        failures.append(_fail(
            "slot_consistency", f"Slot '{slot}' is declared as both a widget and an interaction", slot,
        ))

    references: Counter[str] = Counter()
    for node, path, _ in iter_content(item):
        if isinstance(node, (BlockSlotNode, InlineSlotNode)):
            references[node.slot_id] += 1
            if node.slot_id not in widgets and node.slot_id not in interactions:
                failures.append(_fail(
                    "slot_consistency", f"Slot '{node.slot_id}' is referenced but not declared", path,
                ))

    for slot in sorted(set(widgets) | set(interactions)):
        if references[slot] == 0:
            failures.append(_fail(
                "slot_consistency", f"Slot '{slot}' is declared but never referenced", slot,
            ))
        elif slot in interactions and references[slot] > 1:
            failures.append(_fail(
                "slot_consistency",
                f"Interaction slot '{slot}' is referenced {references[slot]} times",
                slot,
            ))
    return failures


def check_slot_placement(item: AssessmentItem) -> list[ValidationResult]:
    """Block-level slots and markup only where block content is allowed."""
    widgets = item.widgets or {}
    interactions = item.interactions or {}
    failures: list[ValidationResult] = []
    for node, path, context in iter_content(item):
        if isinstance(node, InlineSlotNode):
            interaction = interactions.get(node.slot_id)
            if node.slot_id in widgets:
                failures.append(_fail(
                    "placement", f"Widget '{node.slot_id}' must be placed in a block slot", path,
                ))
            elif interaction is not None and interaction.type in BLOCK_INTERACTION_TYPES:
                failures.append(_fail(
                    "placement",
                    f"Block interaction '{node.slot_id}' ({interaction.type}) placed inline",
                    path,
                ))
        elif isinstance(node, BlockSlotNode):
            interaction = interactions.get(node.slot_id)
            if interaction is not None and interaction.type not in BLOCK_INTERACTION_TYPES:
                failures.append(_fail(
                    "placement",
                    f"Inline interaction '{node.slot_id}' ({interaction.type}) placed as a block",
                    path,
                ))
        elif isinstance(node, TextNode) and BLOCK_MARKUP_RE.search(node.content):
            where = "inline-only field" if context == "inline" else "text"
            failures.append(_fail("placement", f"Block markup found in {where}", path))
    return failures


# ---------------------------------------------------------------------------
# Response correspondence
# ---------------------------------------------------------------------------


def _choice_ids(interaction: Any) -> list[str] | None:
    if isinstance(interaction, (ChoiceInteraction, OrderInteraction, InlineChoiceInteraction)):
        return [choice.identifier for choice in interaction.choices]
    return None


def check_response_correspondence(item: AssessmentItem) -> list[ValidationResult]:
    """Declarations and interactions pair up, and correct values agree."""
    failures: list[ValidationResult] = []
    by_response = {}
    for slot, interaction in (item.interactions or {}).items():
        if interaction.response_identifier in by_response:
            failures.append(_fail(
                "response_correspondence",
                f"Response identifier '{interaction.response_identifier}' used by more than one interaction",
                slot,
            ))
        by_response[interaction.response_identifier] = interaction

    declared = Counter(decl.identifier for decl in item.response_declarations)
    for identifier, count in sorted(declared.items()):
        if count > 1:
            failures.append(_fail(
                "response_correspondence", f"Response '{identifier}' is declared {count} times", identifier,
            ))
    for identifier in sorted(set(by_response) - set(declared)):
        failures.append(_fail(
            "response_correspondence", f"Interaction response '{identifier}' has no declaration", identifier,
        ))

    for decl in item.response_declarations:
        interaction = by_response.get(decl.identifier)
        if interaction is None:
            failures.append(_fail(
                "response_correspondence",
                f"Response declaration '{decl.identifier}' has no interaction",
                decl.identifier,
            ))
            continue
        values = decl.correct_values
        if decl.cardinality == Cardinality.SINGLE and len(values) != 1:
            failures.append(_fail(
                "response_correspondence",
                f"Single-cardinality response '{decl.identifier}' has {len(values)} correct values",
                decl.identifier,
            ))
        if decl.base_type != BaseType.IDENTIFIER:
            continue
        choice_ids = _choice_ids(interaction)
        if choice_ids is None:
            failures.append(_fail(
                "response_correspondence",
                f"Identifier response '{decl.identifier}' belongs to a {interaction.type} without choices",
                decl.identifier,
            ))
            continue
        unknown = [str(v) for v in values if v not in choice_ids]
        if unknown:
            failures.append(_fail(
                "response_correspondence",
                f"Response '{decl.identifier}' names unknown choice(s): {', '.join(unknown)}",
                decl.identifier,
            ))
        if decl.cardinality == Cardinality.ORDERED and sorted(map(str, values)) != sorted(choice_ids):
            failures.append(_fail(
                "response_correspondence",
                f"Ordered response '{decl.identifier}' must list every choice exactly once",
                decl.identifier,
            ))
        if isinstance(interaction, ChoiceInteraction):
            marked = {choice.identifier for choice in interaction.choices if choice.is_correct}
            if len(marked) != len(values) or marked != set(map(str, values)):
                failures.append(_fail(
                    "response_correspondence",
                    f"Response '{decl.identifier}' correct values {sorted(map(str, values))} "
                    f"disagree with choices marked correct {sorted(marked)}",
                    decl.identifier,
                ))
    return failures


# ---------------------------------------------------------------------------
# Pre-validation
# ---------------------------------------------------------------------------


def check_interaction_shape(item: AssessmentItem) -> list[ValidationResult]:
    """Choice counts, max-choices against cardinality, unique identifiers."""
    failures: list[ValidationResult] = []
    if not item.response_declarations:
        failures.append(_fail("pre_validation", "Item has no response declarations"))
    cardinality = {decl.identifier: decl.cardinality for decl in item.response_declarations}

    for slot, interaction in (item.interactions or {}).items():
        choice_ids = _choice_ids(interaction)
        if choice_ids is not None:
            duplicates = sorted(i for i, n in Counter(choice_ids).items() if n > 1)
            if duplicates:
                failures.append(_fail(
                    "pre_validation", f"Duplicate choice identifier(s): {', '.join(duplicates)}", slot,
                ))
        if isinstance(interaction, (ChoiceInteraction, OrderInteraction)) and len(interaction.choices) < 2:
            failures.append(_fail(
                "pre_validation", f"{interaction.type} needs at least 2 choices", slot,
            ))
        expected = cardinality.get(interaction.response_identifier)
        if isinstance(interaction, ChoiceInteraction):
            if expected == Cardinality.SINGLE and interaction.max_choices > 1:
                failures.append(_fail(
                    "pre_validation", "Single-cardinality choice interaction allows more than one choice", slot,
                ))
            if expected == Cardinality.MULTIPLE and interaction.max_choices == 1:
                failures.append(_fail(
                    "pre_validation", "Multiple-cardinality choice interaction allows only one choice", slot,
                ))
            if 0 < interaction.max_choices < interaction.min_choices:
                failures.append(_fail("pre_validation", "minChoices exceeds maxChoices", slot))
        if (expected == Cardinality.ORDERED) != isinstance(interaction, OrderInteraction) and expected:
            failures.append(_fail(
                "pre_validation",
                f"{interaction.type} cannot use '{expected.value}' cardinality",
                slot,
            ))
    return failures


# ---------------------------------------------------------------------------
# Banned constructs
# ---------------------------------------------------------------------------


def _widget_strings(value: Any, path: str) -> Iterator[tuple[str, str]]:
    if isinstance(value, str):
        yield value, path
    elif isinstance(value, dict):
        for key, child in value.items():
            yield from _widget_strings(child, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for index, child in enumerate(value):
            yield from _widget_strings(child, f"{path}[{index}]")


def check_banned_constructs(item: AssessmentItem) -> list[ValidationResult]:
    """Apply text rules to text fields and MathML rules to math fields."""
    failures: list[ValidationResult] = []

    def collect(results: list[ValidationResult], location: str) -> None:
        for result in results:
            result.location = location
            failures.append(result)

    collect(check_text_field(item.title), "title")
    for node, path, _ in iter_content(item):
        if isinstance(node, TextNode):
            collect(check_text_field(node.content), path)
        elif isinstance(node, MathNode):
            collect(check_mathml_field(node.mathml), path)
    for slot, widget in (item.widgets or {}).items():
        for value, path in _widget_strings(widget.model_dump(), f"widgets.{slot}"):
            collect(check_text_field(value), path)
    return failures
