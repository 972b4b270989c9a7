"""MathML parsing and normalization utilities.

Two jobs live here:

* ``mathml_to_text`` turns a MathML fragment into a readable text form
  (used by prompt/body dedup so math tokens take part in similarity).
* ``normalize_mathml`` rewrites source MathML into the structural form the
  compiler emits: named entities become numeric references, deprecated
  ``<mfenced>`` becomes an ``<mrow>`` with explicit ``<mo>`` delimiters,
  the MathML 2000 namespace is corrected and comparison operators are
  escaped.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from html.entities import name2codepoint

logger = logging.getLogger(__name__)

XML_PREDEFINED_ENTITIES = frozenset({"amp", "lt", "gt", "quot", "apos"})

_NAMED_ENTITY_RE = re.compile(r"&([A-Za-z][A-Za-z0-9]*);")
_MATH_WRAPPER_RE = re.compile(r"^\s*<math\b[^>]*>(.*)</math>\s*$", re.DOTALL)
_XMLNS_ATTR_RE = re.compile(r'\s+xmlns(?::\w+)?="[^"]*"')
_MO_LESS_THAN_RE = re.compile(r"<mo>\s*<\s*</mo>")
_MO_GREATER_THAN_RE = re.compile(r"<mo>\s*>\s*</mo>")
_MO_LE_RE = re.compile(r"<mo>\s*(?:<=|&lt;=)\s*</mo>")
_MO_GE_RE = re.compile(r"<mo>\s*(?:>=|&gt;=)\s*</mo>")


class MathMLError(ValueError):
    """Raised when a MathML fragment cannot be parsed."""


# ---------------------------------------------------------------------------
# MathML -> text
# ---------------------------------------------------------------------------


def process_mathml(element: ET.Element) -> str:
    """Recursively convert a MathML element to readable text.

    Args:
        element: An XML Element representing MathML content.

    Returns:
        A string representation of the mathematical expression.

    Examples:
        <mfrac><mn>1</mn><mn>2</mn></mfrac> -> "(1/2)"
        <msup><mi>x</mi><mn>2</mn></msup> -> "x^(2)"
        <msqrt><mn>4</mn></msqrt> -> "sqrt(4)"
    """
    tag = element.tag.split("}")[-1].lower()  # Handle namespaced tags

    if tag == "mfrac":
        return _process_pair(element, "({0}/{1})")
    elif tag == "msup":
        return _process_pair(element, "{0}^({1})")
    elif tag == "msub":
        return _process_pair(element, "{0}_({1})")
    elif tag == "msqrt":
        return f"sqrt({_process_children(element)})"
    elif tag == "mroot":
        return _process_pair(element, "root[{1}]({0})")
    elif tag == "mfenced":
        return f"({_process_children(element)})"
    elif tag in ("mi", "mn", "mo", "mtext", "ms"):
        return (element.text or "").strip()
    else:
        # mrow, math, mstyle and anything unknown: concatenate children
        return _process_children(element)


def _process_pair(element: ET.Element, template: str) -> str:
    children = list(element)
    if len(children) >= 2:
        return template.format(
            process_mathml(children[0]), process_mathml(children[1]),
        )
    return _process_children(element)


def _process_children(element: ET.Element) -> str:
    return "".join(process_mathml(child) for child in element)


def mathml_to_text(mathml: str) -> str:
    """Convert a MathML fragment (with or without ``<math>``) to text.

    Raises:
        MathMLError: If the fragment is not well-formed.
    """
    root = parse_mathml_fragment(mathml)
    return process_mathml(root)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def strip_math_wrapper(mathml: str) -> str:
    """Return the children of an outer ``<math>`` element, if present."""
    match = _MATH_WRAPPER_RE.match(mathml)
    if match:
        return match.group(1)
    return mathml


def convert_named_entities(text: str) -> str:
    """Replace HTML named entities with numeric character references.

    The five XML predefined entities are left untouched. Unknown names are
    left as-is so later validation can report them.
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in XML_PREDEFINED_ENTITIES:
            return match.group(0)
        codepoint = name2codepoint.get(name)
        if codepoint is None:
            return match.group(0)
        return f"&#{codepoint};"

    return _NAMED_ENTITY_RE.sub(_replace, text)


def parse_mathml_fragment(mathml: str) -> ET.Element:
    """Parse a MathML fragment into an un-namespaced ``<math>`` element.

    Raises:
        MathMLError: If the fragment is not well-formed XML.
    """
    inner = strip_math_wrapper(mathml.replace("2000/Math/MathML", "1998/Math/MathML"))
    inner = _XMLNS_ATTR_RE.sub("", inner)
    try:
        return ET.fromstring(f"<math>{inner}</math>")
    except ET.ParseError as e:
        raise MathMLError(f"MathML is not well-formed: {e}") from e


def serialize_children(root: ET.Element) -> str:
    """Serialize the content of *root* without the root tag itself."""
    parts = [_escape_text(root.text or "")]
    for child in root:
        # ET.tostring includes the child's tail text
        parts.append(ET.tostring(child, encoding="unicode"))
    return "".join(parts)


def _escape_text(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def sanitize_mathml_operators(mathml: str) -> str:
    """Escape raw comparison characters inside ``<mo>`` elements."""
    mathml = _MO_LE_RE.sub("<mo>≤</mo>", mathml)
    mathml = _MO_GE_RE.sub("<mo>≥</mo>", mathml)
    mathml = _MO_LESS_THAN_RE.sub("<mo>&lt;</mo>", mathml)
    mathml = _MO_GREATER_THAN_RE.sub("<mo>&gt;</mo>", mathml)
    return mathml


def replace_mfenced(parent: ET.Element) -> int:
    """Rewrite every ``<mfenced>`` below *parent* in place.

    ``<mfenced open="[" close="]">a b</mfenced>`` becomes
    ``<mrow><mo>[</mo>a<mo>,</mo>b<mo>]</mo></mrow>``.

    Returns:
        Number of elements rewritten.
    """
    count = 0
    for index, child in enumerate(list(parent)):
        count += replace_mfenced(child)
        if child.tag != "mfenced":
            continue
        separators = "".join((child.get("separators", ",") or "").split())
        mrow = ET.Element("mrow")
        mrow.tail = child.tail
        ET.SubElement(mrow, "mo").text = child.get("open", "(")
        for position, item in enumerate(list(child)):
            if position > 0 and separators:
                sep = separators[min(position - 1, len(separators) - 1)]
                ET.SubElement(mrow, "mo").text = sep
            item.tail = None
            mrow.append(item)
        ET.SubElement(mrow, "mo").text = child.get("close", ")")
        parent.remove(child)
        parent.insert(index, mrow)
        count += 1
    return count


def normalize_mathml(mathml: str) -> str:
    """Normalize a MathML fragment into the compiler's structural form.

    Args:
        mathml: MathML, either a bare fragment or wrapped in ``<math>``.

    Returns:
        The normalized children of ``<math>`` as a string.

    Raises:
        MathMLError: If the fragment cannot be parsed even after entity
            conversion and operator escaping.
    """
    prepared = sanitize_mathml_operators(convert_named_entities(mathml))
    root = parse_mathml_fragment(prepared)
    rewritten = replace_mfenced(root)
    if rewritten:
        logger.debug("Replaced %d deprecated mfenced element(s)", rewritten)
    return serialize_children(root).strip()
