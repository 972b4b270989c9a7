"""Content realization: typed interactions, response declarations and widgets.

Interactions are realized first. Widget builders then receive a read-only
``RealizationContext`` holding the realized interactions, so a widget
slot embedded in a choice (``<responseId>__<choiceId>__v<n>``) can be
checked against the choice it belongs to.

Placement is enforced while building: prompts, per-choice feedback and
inline-choice text are inline-only, and standard choice content is always
block content (bare text is wrapped in a paragraph).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping

from pydantic import TypeAdapter, ValidationError

from perseus_qti.config import get_settings
from perseus_qti.errors import StructuralError, UnmappableWidgetError
from perseus_qti.qti_compiler.models import (
    BaseType,
    Cardinality,
    ChoiceInteraction,
    Feedback,
    InlineChoice,
    InlineChoiceInteraction,
    OrderInteraction,
    ParagraphNode,
    ResponseDeclaration,
    Shell,
    SimpleChoice,
    SourceElement,
    SourceItem,
    SourceText,
    TextEntryInteraction,
    TextNode,
    WidgetMapping,
    unmapped_slots,
)
from perseus_qti.qti_compiler.naming import choice_identifier, parse_choice_slot_name
from perseus_qti.qti_compiler.shell import INTERACTION_KINDS, choice_sources
from perseus_qti.qti_compiler.source_text import ChoiceSlotResolver, build_blocks, build_inline
from perseus_qti.qti_compiler.widget_mapping import image_url
from perseus_qti.widgets.models import Widget, WidgetType

logger = logging.getLogger(__name__)

_WIDGET_ADAPTER = TypeAdapter(Widget)


@dataclass(frozen=True)
class RealizationContext:
    """Read-only view of already realized interactions for widget builders."""

    source: SourceItem
    interactions: Mapping[str, Any]

    def require_choice(self, response_identifier: str, choice_id: str, slot: str) -> None:
        """Raise unless *choice_id* is a choice of the named interaction."""
        for interaction in self.interactions.values():
            if interaction.response_identifier != response_identifier:
                continue
            if any(choice.identifier == choice_id for choice in getattr(interaction, "choices", ())):
                return
            raise StructuralError(
                f"Choice-level widget refers to missing choice '{choice_id}' of '{response_identifier}'",
                location=slot,
            )
        raise StructuralError(
            f"Choice-level widget refers to unknown interaction '{response_identifier}'",
            location=slot,
        )


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------


def _number_text(value: Any, location: str) -> str:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise StructuralError(f"Numeric answer is not a number: {value!r}", location=location) from e
    return str(int(number)) if number.is_integer() else repr(number)


def _choice_content(slot: str, choice_id: str, text: str, path: str) -> tuple:
    """Block content of one choice; bare inline text is wrapped in a paragraph."""
    blocks = build_blocks((SourceText(content=text),), ChoiceSlotResolver(slot, choice_id), path)
    if not blocks:
        raise StructuralError("Choice has no content", location=path)
    return tuple(blocks)


def _optional_inline(value: Any, path: str) -> tuple | None:
    if not value:
        return None
    return build_inline(str(value), path) or None


def realize_radio(slot: str, element: SourceElement, path: str) -> tuple[ChoiceInteraction, ResponseDeclaration]:
    options = element.options
    choices: list[SimpleChoice] = []
    for index, raw in enumerate(options.get("choices") or []):
        choice_id = choice_identifier(index)
        choice_path = f"{path}.choices[{index}]"
        choices.append(SimpleChoice(
            identifier=choice_id,
            content=_choice_content(slot, choice_id, str(raw.get("content", "")), f"{choice_path}.content"),
            feedback=_optional_inline(raw.get("clue"), f"{choice_path}.clue"),
            is_correct=bool(raw.get("correct")),
        ))
    multiple = bool(options.get("multipleSelect"))
    correct = tuple(choice.identifier for choice in choices if choice.is_correct)
    interaction = ChoiceInteraction(
        response_identifier=slot,
        prompt=build_inline(str(options.get("prompt", "")), f"{path}.prompt"),
        choices=tuple(choices),
        shuffle=bool(options.get("randomize", False)),
        min_choices=1,
        max_choices=len(choices) if multiple else 1,
    )
    declaration = ResponseDeclaration(
        identifier=slot,
        cardinality=Cardinality.MULTIPLE if multiple else Cardinality.SINGLE,
        base_type=BaseType.IDENTIFIER,
        correct=correct[0] if len(correct) == 1 and not multiple else correct,
    )
    return interaction, declaration


def realize_order(slot: str, element: SourceElement, path: str) -> tuple[OrderInteraction, ResponseDeclaration]:
    options = element.options
    if options.get("otherOptions"):
        raise StructuralError("Distractor cards cannot be expressed in an order interaction", location=path)
    choices = tuple(
        SimpleChoice(
            identifier=choice_identifier(index),
            content=_choice_content(slot, choice_identifier(index), text, f"{path}.choices[{index}]"),
        )
        for index, text in enumerate(choice_sources(element))
    )
    interaction = OrderInteraction(
        response_identifier=slot,
        prompt=build_inline(str(options.get("prompt", "")), f"{path}.prompt"),
        choices=choices,
        shuffle=True,
        orientation="horizontal" if options.get("layout") == "horizontal" else "vertical",
    )
    declaration = ResponseDeclaration(
        identifier=slot,
        cardinality=Cardinality.ORDERED,
        base_type=BaseType.IDENTIFIER,
        correct=tuple(choice.identifier for choice in choices),
    )
    return interaction, declaration


def _accepted_answers(element: SourceElement, path: str) -> list[str]:
    options = element.options
    if element.kind == "numeric-input":
        return [
            _number_text(answer["value"], path)
            for answer in options.get("answers", [])
            if answer.get("status", "correct") == "correct" and answer.get("value") is not None
        ]
    if element.kind == "input-number":
        value = options.get("value")
        return [] if value is None else [_number_text(value, path)]
    # expression
    return [
        str(form["value"]).strip()
        for form in options.get("answerForms", [])
        if form.get("considered", "correct") == "correct" and str(form.get("value", "")).strip()
    ]


def realize_text_entry(
    slot: str, element: SourceElement, path: str,
) -> tuple[TextEntryInteraction, ResponseDeclaration]:
    answers = _accepted_answers(element, path)
    if not answers:
        raise StructuralError(f"No correct answer given for {element.kind}", location=path)
    interaction = TextEntryInteraction(
        response_identifier=slot,
        expected_length=max(len(answer) for answer in answers),
    )
    declaration = ResponseDeclaration(
        identifier=slot,
        cardinality=Cardinality.SINGLE,
        base_type=BaseType.STRING,
        correct=answers[0],
        mapping={answer: 1.0 for answer in answers[1:]} or None,
    )
    return interaction, declaration


def realize_inline_choice(
    slot: str, element: SourceElement, path: str,
) -> tuple[InlineChoiceInteraction, ResponseDeclaration]:
    raw_choices = element.options.get("choices") or []
    choices = tuple(
        InlineChoice(
            identifier=choice_identifier(index),
            content=build_inline(str(raw.get("content", "")), f"{path}.choices[{index}]"),
        )
        for index, raw in enumerate(raw_choices)
    )
    correct = tuple(choice_identifier(i) for i, raw in enumerate(raw_choices) if raw.get("correct"))
    interaction = InlineChoiceInteraction(response_identifier=slot, choices=choices, shuffle=False)
    declaration = ResponseDeclaration(
        identifier=slot,
        cardinality=Cardinality.SINGLE,
        base_type=BaseType.IDENTIFIER,
        correct=correct[0] if len(correct) == 1 else correct,
    )
    return interaction, declaration


INTERACTION_BUILDERS: dict[str, Callable[[str, SourceElement, str], tuple[Any, ResponseDeclaration]]] = {
    "choiceInteraction": realize_radio,
    "orderInteraction": realize_order,
    "textEntryInteraction": realize_text_entry,
    "inlineChoiceInteraction": realize_inline_choice,
}


def realize_interactions(
    source: SourceItem, shell: Shell,
) -> tuple[dict[str, Any], tuple[ResponseDeclaration, ...]]:
    """Build every interaction slot and its response declaration.

    Returns:
        ``(slot -> interaction, declarations)`` in shell slot order.

    Raises:
        StructuralError: On missing answers, unsupported options or
            block content in an inline-only field.
    """
    interactions: dict[str, Any] = {}
    declarations: list[ResponseDeclaration] = []
    for slot in shell.interaction_slot_names:
        ref = shell.slot_refs[slot]
        element = source.widgets[ref]
        builder = INTERACTION_BUILDERS[INTERACTION_KINDS[element.kind]]
        interaction, declaration = builder(slot, element, f"widgets.{ref}")
        interactions[slot] = interaction
        declarations.append(declaration)
        logger.debug("Realized %s for slot %s", interaction.type, slot)
    return interactions, tuple(declarations)


# ---------------------------------------------------------------------------
# Widgets
# ---------------------------------------------------------------------------


def _embedded(element: SourceElement) -> dict[str, Any] | None:
    embedded = element.options.get("widget")
    return dict(embedded) if isinstance(embedded, dict) else None


def _build_url_image(element: SourceElement) -> dict[str, Any] | None:
    options = element.options
    background = options.get("backgroundImage") or {}
    return {
        "url": image_url(options),
        "alt": str(options.get("alt") or options.get("title") or ""),
        "width": background.get("width") or None,
        "height": background.get("height") or None,
        "caption": options.get("caption") or None,
    }


def _build_polyhedron(element: SourceElement) -> dict[str, Any] | None:
    data = element.options.get("polyhedron")
    return dict(data) if isinstance(data, dict) else None


def _build_data_table(element: SourceElement) -> dict[str, Any] | None:
    options = element.options
    headers = options.get("headers") or []
    if not headers:
        return None
    return {
        "title": options.get("title") or None,
        "columns": [{"key": f"col{i}", "label": str(label)} for i, label in enumerate(headers)],
        "rows": [list(row) for row in options.get("answers") or []],
    }


def _build_number_line(element: SourceElement) -> dict[str, Any] | None:
    options = element.options
    bounds = options.get("range")
    if not bounds or len(bounds) != 2:
        return None
    data: dict[str, Any] = {
        "min": bounds[0],
        "max": bounds[1],
        "majorTickInterval": options.get("tickStep") or 1,
    }
    if options.get("snapDivisions"):
        data["minorTicksPerInterval"] = max(0, int(options["snapDivisions"]) - 1)
    return data


def _build_bar_chart(element: SourceElement) -> dict[str, Any] | None:
    options = element.options
    categories = options.get("categories") or []
    values = options.get("starting") or []
    if not categories or len(values) != len(categories):
        return None
    labels = list(options.get("labels") or []) + ["", ""]
    return {
        "title": options.get("title") or None,
        "xAxisLabel": labels[0] or None,
        "yAxis": {
            "label": labels[1] or None,
            "min": 0,
            "max": options.get("maxY") or max(values),
            "tickInterval": options.get("scaleY") or 1,
        },
        "data": [{"label": str(c), "value": v} for c, v in zip(categories, values)],
    }


WIDGET_BUILDERS: dict[WidgetType, Callable[[SourceElement], dict[str, Any] | None]] = {
    WidgetType.URL_IMAGE: _build_url_image,
    WidgetType.POLYHEDRON_DIAGRAM: _build_polyhedron,
    WidgetType.DATA_TABLE: _build_data_table,
    WidgetType.NUMBER_LINE: _build_number_line,
    WidgetType.BAR_CHART: _build_bar_chart,
}


def realize_widget(
    slot: str, element: SourceElement, widget_type: WidgetType, context: RealizationContext,
) -> Any:
    """Build one typed widget from its source element.

    Pre-extracted data under ``options["widget"]`` wins; otherwise a
    kind-specific builder reads the Perseus options.
    """
    parsed = parse_choice_slot_name(slot)
    if parsed is not None:
        context.require_choice(parsed[0], parsed[1], slot)

    data = _embedded(element)
    if data is None and widget_type in WIDGET_BUILDERS:
        data = WIDGET_BUILDERS[widget_type](element)
    if data is None:
        raise StructuralError(f"Source element has no data for a {widget_type.value} widget", location=slot)
    data["type"] = widget_type.value
    try:
        return _WIDGET_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise StructuralError(
            f"Invalid {widget_type.value} data",
            location=slot,
            details=[f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()],
        ) from e


def realize_widgets(
    source: SourceItem,
    shell: Shell,
    mapping: WidgetMapping,
    interactions: Mapping[str, Any],
) -> dict[str, Any]:
    """Build every widget slot; interactions must already be realized.

    Raises:
        UnmappableWidgetError: If any slot is mapped to ``WIDGET_NOT_FOUND``.
        StructuralError: If a widget's data is missing or invalid.
    """
    unmapped = unmapped_slots(mapping)
    if unmapped:
        raise UnmappableWidgetError(unmapped)
    context = RealizationContext(source=source, interactions=MappingProxyType(dict(interactions)))
    widgets: dict[str, Any] = {}
    for slot in shell.widget_slot_names:
        element = source.widgets[shell.slot_refs[slot]]
        widgets[slot] = realize_widget(slot, element, WidgetType(mapping[slot]), context)
        logger.debug("Realized %s for slot %s", widgets[slot].type, slot)
    return widgets


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


def _no_refs(ref: str, path: str) -> tuple[str, bool]:
    raise StructuralError(f"Feedback may not reference element '{ref}'", location=path)


def realize_feedback(source: SourceItem) -> Feedback:
    """Item-level feedback; configured defaults fill in what the source lacks."""
    settings = get_settings()

    def blocks(paragraphs: tuple, name: str, default: str) -> tuple:
        built: list = []
        for index, paragraph in enumerate(paragraphs):
            built.extend(build_blocks(paragraph.content, _no_refs, f"{name}[{index}]"))
        if not built:
            built.append(ParagraphNode(content=(TextNode(content=default),)))
        return tuple(built)

    return Feedback(
        correct=blocks(source.correct_feedback, "correctFeedback", settings.default_correct_feedback),
        incorrect=blocks(source.incorrect_feedback, "incorrectFeedback", settings.default_incorrect_feedback),
    )
