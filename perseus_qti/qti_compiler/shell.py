"""Shell phase: source tree -> body with named widget and interaction slots.

Every visual source element (image, graph, table...) becomes a widget
slot and every interactive element becomes an interaction slot; the body
never embeds images, SVG or tables directly. Slot names derive from the
source element key (``"image 1"`` -> ``image_1``), so the same source
always produces the same shell.
"""

from __future__ import annotations

import logging

from perseus_qti.errors import StructuralError
from perseus_qti.qti_compiler.models import (
    BLOCK_INTERACTION_TYPES,
    Shell,
    SourceElement,
    SourceItem,
    SourceText,
)
from perseus_qti.qti_compiler.naming import choice_identifier, slot_name_for_ref
from perseus_qti.qti_compiler.source_text import ChoiceSlotResolver, build_blocks

logger = logging.getLogger(__name__)

# Interactive element kind -> interaction type it realizes to
INTERACTION_KINDS = {
    "radio": "choiceInteraction",
    "orderer": "orderInteraction",
    "sorter": "orderInteraction",
    "numeric-input": "textEntryInteraction",
    "input-number": "textEntryInteraction",
    "expression": "textEntryInteraction",
    "dropdown": "inlineChoiceInteraction",
}

# Visual element kinds; each becomes a (block-level) widget slot
VISUAL_KINDS = frozenset({
    "image",
    "plotter",
    "graph",
    "interactive-graph",
    "number-line",
    "table",
    "measurer",
    "video",
})


def choice_sources(element: SourceElement) -> list[str]:
    """Raw content strings of an interactive element's block-level choices."""
    options = element.options
    if element.kind == "radio":
        return [str(choice.get("content", "")) for choice in options.get("choices", [])]
    if element.kind == "orderer":
        return [str(option.get("content", "")) for option in options.get("correctOptions", [])]
    if element.kind == "sorter":
        return [str(value) for value in options.get("correct", [])]
    return []


class ShellBuilder:
    """Builds the shell for one source item, tracking every slot it names."""

    def __init__(self, source: SourceItem) -> None:
        self.source = source
        self.widget_slots: list[str] = []
        self.interaction_slots: list[str] = []
        self.slot_refs: dict[str, str] = {}
        self._referenced: set[str] = set()

    def build(self) -> Shell:
        body: list = []
        for index, paragraph in enumerate(self.source.content):
            body.extend(build_blocks(paragraph.content, self._resolve_body_ref, f"content[{index}]"))
        for slot in list(self.interaction_slots):
            self._register_choice_slots(slot)

        unreferenced = sorted(set(self.source.widgets) - self._referenced)
        if unreferenced:
            logger.debug("Source %s: unreferenced element(s) ignored: %s", self.source.id, unreferenced)
        return Shell(
            body=tuple(body),
            widget_slot_names=tuple(self.widget_slots),
            interaction_slot_names=tuple(self.interaction_slots),
            slot_refs=dict(self.slot_refs),
        )

    def _element(self, ref: str, path: str) -> SourceElement:
        element = self.source.widgets.get(ref)
        if element is None:
            raise StructuralError(f"Reference to unknown element '{ref}'", location=path)
        if ref in self._referenced:
            raise StructuralError(f"Element '{ref}' is referenced more than once", location=path)
        self._referenced.add(ref)
        return element

    def _claim(self, slot: str, ref: str, path: str) -> None:
        if slot in self.slot_refs:
            raise StructuralError(
                f"Slot name '{slot}' for '{ref}' collides with '{self.slot_refs[slot]}'",
                location=path,
            )
        self.slot_refs[slot] = ref

    def _resolve_body_ref(self, ref: str, path: str) -> tuple[str, bool]:
        element = self._element(ref, path)
        try:
            slot = slot_name_for_ref(ref)
        except ValueError as e:
            raise StructuralError(str(e), location=path) from e
        self._claim(slot, ref, path)

        if element.kind in INTERACTION_KINDS:
            self.interaction_slots.append(slot)
            return slot, INTERACTION_KINDS[element.kind] in BLOCK_INTERACTION_TYPES
        if element.kind in VISUAL_KINDS:
            self.widget_slots.append(slot)
            return slot, True
        raise StructuralError(f"Unknown element kind '{element.kind}' for '{ref}'", location=path)

    def _register_choice_slots(self, slot: str) -> None:
        """Widget references inside choices become choice-level widget slots."""
        element = self.source.widgets[self.slot_refs[slot]]
        for index, text in enumerate(choice_sources(element)):
            resolver = ChoiceSlotResolver(slot, choice_identifier(index))
            path = f"widgets.{self.slot_refs[slot]}.choices[{index}]"
            # Only the slot names matter here; content is built by the realizer
            build_blocks((SourceText(content=text),), resolver, path)
            for choice_slot, ref in resolver.refs.items():
                element_ref = self._element(ref, path)
                if element_ref.kind not in VISUAL_KINDS:
                    raise StructuralError(
                        f"Choice content may only reference visual elements, found '{element_ref.kind}'",
                        location=path,
                    )
                self._claim(choice_slot, ref, path)
                self.widget_slots.append(choice_slot)


def build_shell(source: SourceItem) -> Shell:
    """Run the shell phase for *source*.

    Args:
        source: Structured source question.

    Returns:
        Shell with the slotted body and the widget/interaction slot names.

    Raises:
        StructuralError: On an unknown reference or element kind, a slot
            name collision or math that cannot be converted.
    """
    shell = ShellBuilder(source).build()
    logger.info(
        "Shell for %s: %d block(s), %d widget slot(s), %d interaction slot(s)",
        source.id, len(shell.body), len(shell.widget_slot_names), len(shell.interaction_slot_names),
    )
    return shell
