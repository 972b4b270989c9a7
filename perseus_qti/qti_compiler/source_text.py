"""Conversion of source text and math into compiled content nodes.

Source text may still carry Perseus conventions: ``$...$`` delimits TeX,
``\\$`` is a literal dollar sign and ``[[☃ name]]`` references an entry of
the item's ``widgets`` map. These helpers turn such text into inline and
block content, with references resolved to slot names by a caller-given
resolver.
"""

from __future__ import annotations

import re
from typing import Callable

from perseus_qti.errors import StructuralError
from perseus_qti.qti_compiler.models import (
    BlockSlotNode,
    InlineSlotNode,
    MathNode,
    ParagraphNode,
    SourceMath,
    SourceText,
    SourceWidgetRef,
    TextNode,
)
from perseus_qti.qti_compiler.naming import choice_slot_name
from perseus_qti.utils.mathml import MathMLError, normalize_mathml
from perseus_qti.utils.tex import TexError, tex_to_mathml

_TOKEN_RE = re.compile(
    r"\\\$"
    r"|\$(?P<tex>(?:\\\$|[^$])+?)\$"
    r"|\[\[☃\s*(?P<ref>[^\]]+?)\s*\]\]"
)

# (ref, path) -> (slot name, whether the slot is block-level)
RefResolver = Callable[[str, str], tuple[str, bool]]


def tokenize_source_text(text: str) -> list[SourceText | SourceMath | SourceWidgetRef]:
    """Split Perseus-flavoured text into text, TeX and reference nodes."""
    nodes: list[SourceText | SourceMath | SourceWidgetRef] = []
    buffer: list[str] = []

    def flush() -> None:
        if buffer:
            joined = "".join(buffer)
            if joined:
                nodes.append(SourceText(content=joined))
            buffer.clear()

    position = 0
    for match in _TOKEN_RE.finditer(text):
        buffer.append(text[position:match.start()])
        position = match.end()
        if match.group("tex") is not None:
            flush()
            nodes.append(SourceMath(tex=match.group("tex").strip()))
        elif match.group("ref") is not None:
            flush()
            nodes.append(SourceWidgetRef(ref=match.group("ref")))
        else:
            buffer.append("$")
    buffer.append(text[position:])
    flush()
    return nodes


def expand_source_inline(nodes: tuple) -> list[SourceText | SourceMath | SourceWidgetRef]:
    """Tokenize every text node; math and explicit references pass through."""
    expanded: list[SourceText | SourceMath | SourceWidgetRef] = []
    for node in nodes:
        if isinstance(node, SourceText):
            expanded.extend(tokenize_source_text(node.content))
        else:
            expanded.append(node)
    return expanded


def convert_math(node: SourceMath, path: str) -> str:
    """TeX or MathML source -> normalized MathML.

    Raises:
        StructuralError: If the formula uses unsupported TeX or is not
            well-formed MathML. Nothing is dropped silently.
    """
    try:
        mathml = tex_to_mathml(node.tex) if node.tex is not None else node.mathml or ""
        return normalize_mathml(mathml)
    except (TexError, MathMLError) as e:
        raise StructuralError(f"Cannot convert math to MathML: {e}", location=path) from e


def _trim(nodes: list) -> tuple:
    """Merge adjacent text, strip outer whitespace and drop empty text."""
    merged: list = []
    for node in nodes:
        if isinstance(node, TextNode) and merged and isinstance(merged[-1], TextNode):
            merged[-1] = TextNode(content=merged[-1].content + node.content)
        else:
            merged.append(node)
    if merged and isinstance(merged[0], TextNode):
        merged[0] = TextNode(content=merged[0].content.lstrip())
    if merged and isinstance(merged[-1], TextNode):
        merged[-1] = TextNode(content=merged[-1].content.rstrip())
    return tuple(node for node in merged if not (isinstance(node, TextNode) and not node.content))


def build_blocks(nodes: tuple, resolve: RefResolver, path: str) -> list:
    """Build block content, splitting paragraphs around block-level slots.

    ``text [[☃ image 1]] more`` becomes paragraph, blockSlot, paragraph.
    """
    blocks: list = []
    current: list = []

    def flush() -> None:
        content = _trim(current)
        if content:
            blocks.append(ParagraphNode(content=content))
        current.clear()

    for index, node in enumerate(expand_source_inline(nodes)):
        node_path = f"{path}[{index}]"
        if isinstance(node, SourceText):
            current.append(TextNode(content=node.content))
        elif isinstance(node, SourceMath):
            current.append(MathNode(mathml=convert_math(node, node_path)))
        else:
            slot, is_block = resolve(node.ref, node_path)
            if is_block:
                flush()
                blocks.append(BlockSlotNode(slot_id=slot))
            else:
                current.append(InlineSlotNode(slot_id=slot))
    flush()
    return blocks


def build_inline(text: str, path: str) -> tuple:
    """Inline-only content (prompts, feedback, inline choices).

    Raises:
        StructuralError: If the text references an element, which could
            only be placed at block level here.
    """
    content: list = []
    for index, node in enumerate(tokenize_source_text(text)):
        node_path = f"{path}[{index}]"
        if isinstance(node, SourceText):
            content.append(TextNode(content=node.content))
        elif isinstance(node, SourceMath):
            content.append(MathNode(mathml=convert_math(node, node_path)))
        else:
            raise StructuralError(
                f"Element '{node.ref}' referenced from inline-only content",
                location=node_path,
            )
    return _trim(content)


class ChoiceSlotResolver:
    """Names widget references inside one choice: ``<resp>__<choice>__v<n>``."""

    def __init__(self, response_identifier: str, choice_id: str) -> None:
        self.response_identifier = response_identifier
        self.choice_id = choice_id
        self.refs: dict[str, str] = {}

    def __call__(self, ref: str, path: str) -> tuple[str, bool]:
        slot = choice_slot_name(self.response_identifier, self.choice_id, len(self.refs) + 1)
        self.refs[slot] = ref
        return slot, True
