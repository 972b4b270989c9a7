"""Data models for the item compiler.

Covers the structured source tree consumed by the shell phase, the
intermediate phase outputs (shell, widget mapping), the compiled
``AssessmentItem`` content tree and the per-item compilation result.

Content nodes are frozen pydantic models discriminated by ``type``. Field
names are snake_case in Python and accept the camelCase spelling used by
item JSON (``slotId``, ``responseIdentifier``, ``baseType``...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from perseus_qti.widgets.models import WIDGET_NOT_FOUND, Widget, WidgetType


class ContentModel(BaseModel):
    """Base for content nodes (frozen, camelCase aliases)."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )


# ---------------------------------------------------------------------------
# Inline and block content
# ---------------------------------------------------------------------------


class TextNode(ContentModel):
    type: Literal["text"] = "text"
    content: str


class MathNode(ContentModel):
    """MathML children of ``<math>`` in normalized structural form."""

    type: Literal["math"] = "math"
    mathml: str


class InlineSlotNode(ContentModel):
    type: Literal["inlineSlot"] = "inlineSlot"
    slot_id: str


Inline = Annotated[Union[TextNode, MathNode, InlineSlotNode], Field(discriminator="type")]


class ParagraphNode(ContentModel):
    type: Literal["paragraph"] = "paragraph"
    content: tuple[Inline, ...]


class BlockSlotNode(ContentModel):
    type: Literal["blockSlot"] = "blockSlot"
    slot_id: str


Block = Annotated[Union[ParagraphNode, BlockSlotNode], Field(discriminator="type")]


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------


class SimpleChoice(ContentModel):
    """Choice of a choice or order interaction; content is block-level."""

    identifier: str
    content: tuple[Block, ...]
    feedback: tuple[Inline, ...] | None = None
    is_correct: bool = False


class ChoiceInteraction(ContentModel):
    type: Literal["choiceInteraction"] = "choiceInteraction"
    response_identifier: str
    prompt: tuple[Inline, ...] = ()
    choices: tuple[SimpleChoice, ...]
    shuffle: bool = True
    min_choices: int = Field(default=1, ge=0)
    max_choices: int = Field(default=1, ge=0)


class OrderInteraction(ContentModel):
    type: Literal["orderInteraction"] = "orderInteraction"
    response_identifier: str
    prompt: tuple[Inline, ...] = ()
    choices: tuple[SimpleChoice, ...]
    shuffle: bool = True
    orientation: Literal["horizontal", "vertical"] = "vertical"


class TextEntryInteraction(ContentModel):
    type: Literal["textEntryInteraction"] = "textEntryInteraction"
    response_identifier: str
    expected_length: int | None = Field(default=None, gt=0)


class InlineChoice(ContentModel):
    identifier: str
    content: tuple[Inline, ...]


class InlineChoiceInteraction(ContentModel):
    type: Literal["inlineChoiceInteraction"] = "inlineChoiceInteraction"
    response_identifier: str
    choices: tuple[InlineChoice, ...]
    shuffle: bool = True


Interaction = Annotated[
    Union[
        ChoiceInteraction,
        OrderInteraction,
        TextEntryInteraction,
        InlineChoiceInteraction,
    ],
    Field(discriminator="type"),
]

# Interaction types rendered as block-level elements
BLOCK_INTERACTION_TYPES = frozenset({"choiceInteraction", "orderInteraction"})


# ---------------------------------------------------------------------------
# Response declarations and feedback
# ---------------------------------------------------------------------------


class Cardinality(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"
    ORDERED = "ordered"


class BaseType(str, Enum):
    IDENTIFIER = "identifier"
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    DIRECTED_PAIR = "directedPair"


CorrectValue = Union[str, int, float]


class ResponseDeclaration(ContentModel):
    """Correct answer(s) for one interaction.

    ``mapping`` lists additional accepted values (value -> score). For
    string responses the XML compiler extends it with equivalent spellings.
    """

    identifier: str
    cardinality: Cardinality
    base_type: BaseType
    correct: Union[tuple[CorrectValue, ...], CorrectValue]
    mapping: dict[str, float] | None = None

    @property
    def correct_values(self) -> tuple[CorrectValue, ...]:
        if isinstance(self.correct, tuple):
            return self.correct
        return (self.correct,)


class Feedback(ContentModel):
    correct: tuple[Block, ...]
    incorrect: tuple[Block, ...]


class AssessmentItem(ContentModel):
    """A fully merged item, ready for validation and XML emission."""

    identifier: str
    title: str
    body: tuple[Block, ...]
    widgets: dict[str, Widget] | None = None
    interactions: dict[str, Interaction] | None = None
    response_declarations: tuple[ResponseDeclaration, ...]
    feedback: Feedback


# ---------------------------------------------------------------------------
# Source tree (input to the shell phase)
# ---------------------------------------------------------------------------


class SourceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class SourceText(SourceModel):
    """Text that may still contain ``$TeX$`` and ``[[☃ name]]`` references."""

    type: Literal["text"] = "text"
    content: str


class SourceMath(SourceModel):
    """A formula given either as TeX or as MathML (exactly one)."""

    type: Literal["math"] = "math"
    tex: str | None = None
    mathml: str | None = None

    @model_validator(mode="after")
    def _exactly_one_form(self) -> SourceMath:
        if (self.tex is None) == (self.mathml is None):
            raise ValueError("math node needs exactly one of 'tex' or 'mathml'")
        return self


class SourceWidgetRef(SourceModel):
    """Explicit reference to an entry of ``SourceItem.widgets``."""

    type: Literal["widgetRef"] = "widgetRef"
    ref: str


SourceInline = Annotated[
    Union[SourceText, SourceMath, SourceWidgetRef],
    Field(discriminator="type"),
]


class SourceParagraph(SourceModel):
    type: Literal["paragraph"] = "paragraph"
    content: tuple[SourceInline, ...]

    @field_validator("content", mode="before")
    @classmethod
    def _wrap_plain_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            return ({"type": "text", "content": value},)
        return value


class ElementOptions(BaseModel):
    """Shape of the option fields every element kind may carry.

    Only the containers the compiler walks are typed; unknown keys pass
    through untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)

    background_image: dict[str, Any] | None = None
    widget: dict[str, Any] | None = None


class ChoiceListOptions(ElementOptions):
    choices: list[dict[str, Any]] | None = None


class OrdererOptions(ElementOptions):
    correct_options: list[dict[str, Any]] | None = None
    other_options: list[dict[str, Any]] | None = None


class SorterOptions(ElementOptions):
    correct: list[Any] | None = None


class NumericInputOptions(ElementOptions):
    answers: list[dict[str, Any]] | None = None


class ExpressionOptions(ElementOptions):
    answer_forms: list[dict[str, Any]] | None = None


class NumberLineOptions(ElementOptions):
    range: list[float] | None = None
    tick_step: float | None = None
    snap_divisions: int | None = None


class PlotterOptions(ElementOptions):
    categories: list[Any] | None = None
    starting: list[float] | None = None
    labels: list[Any] | None = None


class TableOptions(ElementOptions):
    headers: list[Any] | None = None
    answers: list[list[Any]] | None = None


# Element kind -> shape its options must have
ELEMENT_OPTIONS: dict[str, type[ElementOptions]] = {
    "radio": ChoiceListOptions,
    "dropdown": ChoiceListOptions,
    "orderer": OrdererOptions,
    "sorter": SorterOptions,
    "numeric-input": NumericInputOptions,
    "expression": ExpressionOptions,
    "number-line": NumberLineOptions,
    "plotter": PlotterOptions,
    "table": TableOptions,
}


class SourceElement(SourceModel):
    """A Perseus widget entry: element kind plus its raw options.

    ``widget_type`` is an optional upstream hint naming the widget kind
    the element should compile to.
    """

    kind: str = Field(validation_alias=AliasChoices("kind", "type"))
    options: dict[str, Any] = Field(default_factory=dict)
    widget_type: str | None = None

    @model_validator(mode="after")
    def _check_option_shape(self) -> SourceElement:
        shape = ELEMENT_OPTIONS.get(self.kind, ElementOptions)
        try:
            shape.model_validate(self.options)
        except ValidationError as e:
            first = e.errors()[0]
            path = ".".join(str(part) for part in ("options", *first["loc"]))
            raise ValueError(f"{path}: {first['msg']}") from e
        return self


class SourceItem(SourceModel):
    """One source question, already parsed into a structured tree."""

    id: str
    title: str = ""
    exercise_id: str | None = None
    content: tuple[SourceParagraph, ...]
    widgets: dict[str, SourceElement] = Field(default_factory=dict)
    correct_feedback: tuple[SourceParagraph, ...] = ()
    incorrect_feedback: tuple[SourceParagraph, ...] = ()

    @field_validator("content", "correct_feedback", "incorrect_feedback", mode="before")
    @classmethod
    def _wrap_paragraph_strings(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple)):
            return [{"content": entry} if isinstance(entry, str) else entry for entry in value]
        return value


# ---------------------------------------------------------------------------
# Phase outputs
# ---------------------------------------------------------------------------


@dataclass
class Shell:
    """Output of the shell phase.

    Attributes:
        body: Block content with every visual/interactive element replaced
            by a slot.
        widget_slot_names: Widget slots in first-reference order.
        interaction_slot_names: Interaction slots in first-reference order.
        slot_refs: Slot name -> key of the source element it stands for.
    """

    body: tuple[Block, ...]
    widget_slot_names: tuple[str, ...]
    interaction_slot_names: tuple[str, ...]
    slot_refs: dict[str, str] = field(default_factory=dict)


# Slot -> widget type, or the WIDGET_NOT_FOUND bailout
WidgetMapping = dict[str, Union[WidgetType, str]]


def unmapped_slots(mapping: WidgetMapping) -> list[str]:
    """Slots whose mapping is the ``WIDGET_NOT_FOUND`` sentinel."""
    return sorted(slot for slot, value in mapping.items() if value == WIDGET_NOT_FOUND)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class PhaseResult:
    """Result of a single compilation phase.

    Attributes:
        phase_name: Human-readable phase identifier.
        success: Whether the phase completed without a blocking error.
        data: Phase-specific output payload.
        errors: Blocking errors that caused failure.
        warnings: Non-blocking warnings.
    """

    phase_name: str
    success: bool
    data: Any = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class CompilationStatus(str, Enum):
    """Outcome of compiling one source item."""

    COMPILED = "compiled"
    CANNOT_MIGRATE = "cannot_migrate"
    FAILED = "failed"


class ItemMetadata(BaseModel):
    """Identifiers recorded alongside the compiled XML."""

    source_id: str
    identifier: str
    title: str
    exercise_id: str | None = None
    widget_types: dict[str, str] = Field(default_factory=dict)
    interaction_types: dict[str, str] = Field(default_factory=dict)


class CompilationResult(BaseModel):
    """Complete per-item compilation result."""

    source_id: str
    status: CompilationStatus
    xml: str | None = None
    metadata: ItemMetadata | None = None
    stage_failed: str | None = None
    error: str | None = None
    error_location: str | None = None
    unmapped_slots: list[str] = Field(default_factory=list)
    removed_paragraphs: int = 0

    @property
    def success(self) -> bool:
        return self.status == CompilationStatus.COMPILED
