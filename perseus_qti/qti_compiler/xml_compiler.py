"""QTI 3.0 XML emission for a merged ``AssessmentItem``.

Output is a pure function of the item: no timestamps, no random ids, and
dict iteration follows insertion order, so compiling the same item twice
yields byte-identical XML.
"""

from __future__ import annotations

import logging
from typing import Any, Union

from pydantic import ValidationError

from perseus_qti.config import MATHML_NAMESPACE, QTI_NAMESPACE, QTI_SCHEMA_LOCATION, XSI_NAMESPACE, get_settings
from perseus_qti.errors import CompilationError, StructuralError
from perseus_qti.qti_compiler.dedup import dedupe_prompt_paragraphs
from perseus_qti.qti_compiler.merge import validate_item
from perseus_qti.qti_compiler.models import (
    AssessmentItem,
    BlockSlotNode,
    ChoiceInteraction,
    InlineChoiceInteraction,
    InlineSlotNode,
    MathNode,
    OrderInteraction,
    ParagraphNode,
    ResponseDeclaration,
    SimpleChoice,
    TextEntryInteraction,
    TextNode,
)
from perseus_qti.qti_compiler.naming import qti_item_identifier
from perseus_qti.qti_compiler.response_processing import build_mapping, check_identifier_values
from perseus_qti.qti_compiler.slots import fill_slots, slot_placeholder
from perseus_qti.utils.xml_utils import encode_data_uri, escape_attr, escape_text, format_number
from perseus_qti.widgets import generate_widget

logger = logging.getLogger(__name__)

__all__ = ["compile_item", "emit_item_xml", "parse_item", "qti_item_identifier"]


def parse_item(data: Union[AssessmentItem, dict[str, Any]]) -> AssessmentItem:
    """Validate raw item JSON into an ``AssessmentItem``.

    Raises:
        StructuralError: If the data does not fit the content model.
    """
    if isinstance(data, AssessmentItem):
        return data
    try:
        return AssessmentItem.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise StructuralError(
            f"Item does not match the content model: {first['msg']}",
            location=location,
            details=[f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()],
        ) from e


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


def render_inline(nodes: tuple) -> str:
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, TextNode):
            parts.append(escape_text(node.content))
        elif isinstance(node, MathNode):
            parts.append(f'<math xmlns="{MATHML_NAMESPACE}">{node.mathml}</math>')
        elif isinstance(node, InlineSlotNode):
            parts.append(slot_placeholder(node.slot_id))
    return "".join(parts)


def render_blocks(blocks: tuple) -> str:
    parts: list[str] = []
    for block in blocks:
        if isinstance(block, ParagraphNode):
            parts.append(f"<p>{render_inline(block.content)}</p>")
        elif isinstance(block, BlockSlotNode):
            parts.append(slot_placeholder(block.slot_id))
    return "".join(parts)


def _bool(value: bool) -> str:
    return "true" if value else "false"


def _render_simple_choice(choice: SimpleChoice) -> str:
    content = render_blocks(choice.content)
    if choice.feedback:
        content += (
            f'<qti-feedback-inline outcome-identifier="FEEDBACK-INLINE" '
            f'identifier="{escape_attr(choice.identifier)}" show-hide="show">'
            f"{render_inline(choice.feedback)}</qti-feedback-inline>"
        )
    return f'<qti-simple-choice identifier="{escape_attr(choice.identifier)}">{content}</qti-simple-choice>'


def _render_prompt(prompt: tuple) -> str:
    if not prompt:
        return ""
    return f"<qti-prompt>{render_inline(prompt)}</qti-prompt>"


def render_interaction(interaction: Any) -> str:
    """Render one interaction; nested slots stay as placeholders."""
    response = escape_attr(interaction.response_identifier)
    if isinstance(interaction, ChoiceInteraction):
        choices = "".join(_render_simple_choice(choice) for choice in interaction.choices)
        return (
            f'<qti-choice-interaction response-identifier="{response}" '
            f'shuffle="{_bool(interaction.shuffle)}" min-choices="{interaction.min_choices}" '
            f'max-choices="{interaction.max_choices}">'
            f"{_render_prompt(interaction.prompt)}{choices}</qti-choice-interaction>"
        )
    if isinstance(interaction, OrderInteraction):
        choices = "".join(_render_simple_choice(choice) for choice in interaction.choices)
        return (
            f'<qti-order-interaction response-identifier="{response}" '
            f'shuffle="{_bool(interaction.shuffle)}" orientation="{interaction.orientation}">'
            f"{_render_prompt(interaction.prompt)}{choices}</qti-order-interaction>"
        )
    if isinstance(interaction, TextEntryInteraction):
        length = ""
        if interaction.expected_length is not None:
            length = f' expected-length="{interaction.expected_length}"'
        return f'<qti-text-entry-interaction response-identifier="{response}"{length}/>'
    if isinstance(interaction, InlineChoiceInteraction):
        choices = "".join(
            f'<qti-inline-choice identifier="{escape_attr(choice.identifier)}">'
            f"{render_inline(choice.content)}</qti-inline-choice>"
            for choice in interaction.choices
        )
        return (
            f'<qti-inline-choice-interaction response-identifier="{response}" '
            f'shuffle="{_bool(interaction.shuffle)}">{choices}</qti-inline-choice-interaction>'
        )
    raise StructuralError(f"Unknown interaction type: {type(interaction).__name__}")


def render_widget(slot: str, widget: Any) -> str:
    """Render a widget: SVG as a data-URI image, HTML widgets inline."""
    try:
        markup = generate_widget(widget)
    except CompilationError as e:
        if e.location is None:
            e.location = slot
        raise
    if not markup.startswith("<svg"):
        return markup
    alt = get_settings().widget_alt_template.format(widget_type=widget.type)
    return f'<p><img src="{escape_attr(encode_data_uri(markup))}" alt="{escape_attr(alt)}"/></p>'


# ---------------------------------------------------------------------------
# Declarations and response processing
# ---------------------------------------------------------------------------


def _value(value: Any) -> str:
    if isinstance(value, float):
        return format_number(value)
    return escape_text(str(value))


def render_response_declaration(decl: ResponseDeclaration) -> str:
    check_identifier_values(decl)
    values = "".join(f"<qti-value>{_value(v)}</qti-value>" for v in decl.correct_values)
    lines = [
        f'<qti-response-declaration identifier="{escape_attr(decl.identifier)}" '
        f'cardinality="{decl.cardinality.value}" base-type="{decl.base_type.value}">',
        f"<qti-correct-response>{values}</qti-correct-response>",
    ]
    mapping = build_mapping(decl, include_equivalents=get_settings().emit_equivalent_mappings)
    if mapping:
        entries = "".join(
            f'<qti-map-entry map-key="{escape_attr(key)}" mapped-value="{format_number(score)}"/>'
            for key, score in mapping.items()
        )
        lines.append(f'<qti-mapping default-value="0">{entries}</qti-mapping>')
    lines.append("</qti-response-declaration>")
    return "\n".join(lines)


OUTCOME_DECLARATIONS = (
    '<qti-outcome-declaration identifier="SCORE" cardinality="single" base-type="float">'
    "<qti-default-value><qti-value>0</qti-value></qti-default-value></qti-outcome-declaration>\n"
    '<qti-outcome-declaration identifier="FEEDBACK" cardinality="single" base-type="identifier"/>\n'
    '<qti-outcome-declaration identifier="FEEDBACK-INLINE" cardinality="multiple" base-type="identifier"/>'
)


def _set_outcome(identifier: str, base_type: str, value: str) -> str:
    return (
        f'<qti-set-outcome-value identifier="{identifier}">'
        f'<qti-base-value base-type="{base_type}">{value}</qti-base-value></qti-set-outcome-value>'
    )


def render_response_processing(item: AssessmentItem) -> str:
    """All responses correct -> SCORE 1 and CORRECT feedback, else 0/INCORRECT.

    Responses with a mapping (equivalent answers) are scored through
    ``qti-map-response`` so every accepted spelling counts.
    """
    include_equivalents = get_settings().emit_equivalent_mappings
    conditions: list[str] = []
    for decl in item.response_declarations:
        identifier = escape_attr(decl.identifier)
        if build_mapping(decl, include_equivalents=include_equivalents):
            conditions.append(
                f'<qti-gte><qti-map-response identifier="{identifier}"/>'
                f'<qti-base-value base-type="float">1</qti-base-value></qti-gte>'
            )
        else:
            conditions.append(
                f'<qti-match><qti-variable identifier="{identifier}"/>'
                f'<qti-correct identifier="{identifier}"/></qti-match>'
            )

    inline_feedback = [
        interaction.response_identifier
        for interaction in (item.interactions or {}).values()
        if isinstance(interaction, ChoiceInteraction) and any(c.feedback for c in interaction.choices)
    ]
    parts = ["<qti-response-processing>"]
    if inline_feedback:
        variables = "".join(f'<qti-variable identifier="{escape_attr(r)}"/>' for r in inline_feedback)
        parts.append(
            f'<qti-set-outcome-value identifier="FEEDBACK-INLINE">'
            f"<qti-multiple>{variables}</qti-multiple></qti-set-outcome-value>"
        )
    parts.append(
        "<qti-response-condition><qti-response-if>"
        f"<qti-and>{''.join(conditions)}</qti-and>"
        f"{_set_outcome('SCORE', 'float', '1')}{_set_outcome('FEEDBACK', 'identifier', 'CORRECT')}"
        "</qti-response-if><qti-response-else>"
        f"{_set_outcome('SCORE', 'float', '0')}{_set_outcome('FEEDBACK', 'identifier', 'INCORRECT')}"
        "</qti-response-else></qti-response-condition>"
    )
    parts.append("</qti-response-processing>")
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Item
# ---------------------------------------------------------------------------


def _feedback_block(identifier: str, blocks: tuple) -> str:
    return (
        f'<qti-feedback-block outcome-identifier="FEEDBACK" identifier="{identifier}" show-hide="show">'
        f"<qti-content-body>{render_blocks(blocks)}</qti-content-body></qti-feedback-block>"
    )


def compile_item(data: Union[AssessmentItem, dict[str, Any]]) -> str:
    """Compile a merged item into a QTI 3.0 ``qti-assessment-item`` document.

    Prompt/body duplicates are removed and the item is validated before
    anything is emitted.

    Args:
        data: An ``AssessmentItem`` or its JSON form.

    Returns:
        The XML document as a string.

    Raises:
        StructuralError: On any slot, placement or response violation.
        BannedConstructError: On forbidden content in a string field.
        GeometryPreconditionError: When a widget cannot be drawn.
    """
    item = parse_item(data)
    item, _ = dedupe_prompt_paragraphs(item)
    validate_item(item)
    return emit_item_xml(item)


def emit_item_xml(item: AssessmentItem) -> str:
    """Serialize an already validated item. Deterministic for equal items."""
    slots: dict[str, str] = {}
    for slot, widget in (item.widgets or {}).items():
        slots[slot] = render_widget(slot, widget)
    for slot, interaction in (item.interactions or {}).items():
        slots[slot] = render_interaction(interaction)

    body = render_blocks(item.body)
    body += _feedback_block("CORRECT", item.feedback.correct)
    body += _feedback_block("INCORRECT", item.feedback.incorrect)
    body = fill_slots(body, slots)

    settings = get_settings()
    declarations = "\n".join(render_response_declaration(d) for d in item.response_declarations)
    xml = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<qti-assessment-item xmlns="{QTI_NAMESPACE}" xmlns:xsi="{XSI_NAMESPACE}" '
        f'xsi:schemaLocation="{QTI_SCHEMA_LOCATION}" '
        f'identifier="{escape_attr(item.identifier)}" title="{escape_attr(item.title)}" '
        f'time-dependent="false" xml:lang="{escape_attr(settings.xml_lang)}">\n'
        f"{declarations}\n"
        f"{OUTCOME_DECLARATIONS}\n"
        f"<qti-item-body>{body}</qti-item-body>\n"
        f"{render_response_processing(item)}\n"
        "</qti-assessment-item>\n"
    )
    logger.info("Compiled item %s (%d bytes)", item.identifier, len(xml))
    return xml
