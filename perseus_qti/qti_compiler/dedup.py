"""Prompt/body paraphrase deduplication.

Source items often ask the question twice: once as a body paragraph and
once, reworded, as the interaction prompt ("Which ... ?" followed by
"Select the ... . Select one answer."). After merging, the paragraph
immediately preceding an interaction's block slot is removed when its
text is a close paraphrase of that interaction's prompt.

Similarity is the Jaccard index of the two normalized content-token sets:

1. lower-case, fold curly quotes, drop possessive ``'s``;
2. strip instruction phrases ("select all that apply", "select one
   answer"...);
3. tokenize on letters/digits, keeping hyphenated words whole;
4. drop stopwords and instruction verbs ("select", "choose", "pick");
5. fold plurals and a small synonym table.

A paragraph that adds content the prompt lacks is always kept. A long
extra instruction ("Justify your answer using evidence from the data.")
already pulls the score below the threshold; a short one ("Explain.")
may not, so any sentence of the paragraph whose tokens are all absent
from the prompt also keeps it.
"""

from __future__ import annotations

import logging
import re

from perseus_qti.config import get_settings
from perseus_qti.qti_compiler.models import (
    AssessmentItem,
    BlockSlotNode,
    InlineSlotNode,
    MathNode,
    ParagraphNode,
    TextNode,
)
from perseus_qti.utils.mathml import MathMLError, mathml_to_text

logger = logging.getLogger(__name__)

# Default similarity at or above which a body paragraph is dropped
PARAPHRASE_THRESHOLD = 0.8

INSTRUCTION_PHRASES = (
    "select all that apply",
    "choose all that apply",
    "check all that apply",
    "mark all that apply",
    "select the correct answer",
    "choose the correct answer",
    "select one answer",
    "choose one answer",
    "select two answers",
    "choose two answers",
    "select one",
    "choose one",
)

INSTRUCTION_VERBS = frozenset({"select", "choose", "pick"})

STOPWORDS = frozenset({
    "a", "an", "the", "of", "in", "on", "at", "to", "for", "by", "with",
    "from", "into", "as", "is", "are", "was", "were", "be", "been", "being",
    "which", "what", "where", "who", "whom", "whose", "when", "how",
    "that", "this", "these", "those", "it", "its", "they", "them", "their",
    "there", "do", "does", "did", "and", "or", "your", "you", "following",
})

SYNONYMS = {
    "differ": "different",
    "difference": "different",
    "believe": "belief",
    "locate": "located",
    "situated": "located",
    "largest": "greatest",
    "biggest": "greatest",
    "smallest": "least",
    "shown": "displayed",
    "pictured": "displayed",
}

_QUOTE_RE = re.compile(r"[\"“”‘’«»]")
_POSSESSIVE_RE = re.compile(r"'s\b")
_TOKEN_RE = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*")
_SENTENCE_RE = re.compile(r"(?<=[.?!])\s+")


def _fold(token: str) -> str:
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        token = token[:-1]
    return SYNONYMS.get(token, token)


def normalize_tokens(text: str) -> set[str]:
    """Content-token set of *text* used for paraphrase comparison."""
    lowered = _QUOTE_RE.sub("", text.lower().replace("’", "'"))
    lowered = _POSSESSIVE_RE.sub("", lowered)
    for phrase in INSTRUCTION_PHRASES:
        lowered = lowered.replace(phrase, " ")
    tokens = set()
    for token in _TOKEN_RE.findall(lowered):
        if token in STOPWORDS or token in INSTRUCTION_VERBS:
            continue
        tokens.add(_fold(token))
    return tokens


def paraphrase_similarity(first: str, second: str) -> float:
    """Jaccard similarity of the normalized token sets (0.0 - 1.0)."""
    a, b = normalize_tokens(first), normalize_tokens(second)
    if not a and not b:
        return 1.0 if first.strip() == second.strip() else 0.0
    return len(a & b) / len(a | b)


def adds_content(paragraph: str, prompt: str) -> bool:
    """True when some sentence of *paragraph* shares no token with *prompt*."""
    prompt_tokens = normalize_tokens(prompt)
    for sentence in _SENTENCE_RE.split(paragraph.strip()):
        tokens = normalize_tokens(sentence)
        if tokens and not tokens & prompt_tokens:
            return True
    return False


def inline_text(nodes: tuple) -> str | None:
    """Plain-text rendering of inline content.

    Returns None when the content holds a slot, since such a paragraph
    carries more than words.
    """
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, TextNode):
            parts.append(node.content)
        elif isinstance(node, MathNode):
            try:
                parts.append(f" {mathml_to_text(node.mathml)} ")
            except MathMLError:
                return None
        elif isinstance(node, InlineSlotNode):
            return None
    return "".join(parts)


def dedupe_prompt_paragraphs(
    item: AssessmentItem,
    threshold: float | None = None,
) -> tuple[AssessmentItem, list[str]]:
    """Remove body paragraphs that restate the following interaction's prompt.

    Args:
        item: Merged item.
        threshold: Similarity cut-off; defaults to the configured value.

    Returns:
        The item with duplicate paragraphs removed, and the removed texts.
    """
    if threshold is None:
        threshold = get_settings().paraphrase_threshold
    interactions = item.interactions or {}
    removed_indices: set[int] = set()
    removed_texts: list[str] = []

    for index, block in enumerate(item.body):
        if index == 0 or not isinstance(block, BlockSlotNode):
            continue
        interaction = interactions.get(block.slot_id)
        prompt_nodes = getattr(interaction, "prompt", None)
        if not prompt_nodes:
            continue
        previous = item.body[index - 1]
        if not isinstance(previous, ParagraphNode) or index - 1 in removed_indices:
            continue
        paragraph = inline_text(previous.content)
        prompt = inline_text(prompt_nodes)
        if paragraph is None or prompt is None:
            continue
        score = paraphrase_similarity(paragraph, prompt)
        logger.debug("Paraphrase score %.2f for slot %s", score, block.slot_id)
        if score >= threshold and not adds_content(paragraph, prompt):
            removed_indices.add(index - 1)
            removed_texts.append(paragraph.strip())
            logger.info(
                "Removed body paragraph duplicating prompt of %s (similarity %.2f)",
                block.slot_id, score,
            )

    if not removed_indices:
        return item, []
    body = tuple(block for i, block in enumerate(item.body) if i not in removed_indices)
    return item.model_copy(update={"body": body}), removed_texts
