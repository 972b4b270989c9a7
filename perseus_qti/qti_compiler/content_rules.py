"""Banned-construct rules applied to every string field of an item.

Each rule inspects one string and returns a ``ValidationResult``. Text
fields and MathML fields get different rule sets: plain text may not
carry TeX, Perseus artifacts or entity references; MathML additionally
has to be well-formed and free of deprecated or ambiguous markup.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Callable

from perseus_qti.utils.mathml import XML_PREDEFINED_ENTITIES, MathMLError, parse_mathml_fragment
from perseus_qti.utils.xml_utils import INVALID_XML_CHARS_RE

logger = logging.getLogger(__name__)

LATEX_LIKE_RE = re.compile(r"\\(?:[a-zA-Z]+|[(){}\[\]])")
PERSEUS_ARTIFACT_RE = re.compile(r"\[\[\u2603\s*[\s\S]*?\]\]")
CDATA_RE = re.compile(r"<!\[CDATA\[")
NAMED_ENTITY_RE = re.compile(r"&([A-Za-z][A-Za-z0-9]*);")
MFENCED_RE = re.compile(r"<mfenced(?:\s+[^>]*)?/?>", re.IGNORECASE)
RAW_ANGLE_IN_MO_RE = re.compile(r"<mo(?:\s+[^>]*)?>\s*(?:<|>)\s*</mo>")
HTML_IN_MATH_RE = re.compile(
    r"</?(?:p|div|span|br|b|i|u|em|strong|img|table|tr|td|th|ul|ol|li|a|sup|sub)\b[^>]*>",
    re.IGNORECASE,
)

_DOLLAR_PAIR_RE = re.compile(r"\$(?P<content>[^$]+)\$")
# "$" directly before a plain amount is currency, not a TeX delimiter
_CURRENCY_RE = re.compile(r"\$(?=\s*\d+(?:\.\d+)?(?:\s|$|[.,;:!?]))")
_MATH_INDICATORS = (
    re.compile(r"\\[a-zA-Z]+"),
    re.compile(r"[a-zA-Z0-9][_^]"),
    re.compile(r"[a-zA-Z]\s*[+\-*/=]\s*[a-zA-Z0-9]"),
    re.compile(r"\d+[a-zA-Z]"),
    re.compile(r"(?:sin|cos|tan|log|ln|sqrt|lim|sum|int)\s*\("),
    re.compile(r"[a-zA-Z0-9]\s*/\s*[a-zA-Z0-9]"),
    re.compile(r"^\s*\(\s*[^)]+\s*,\s*[^)]+\s*\)\s*$"),
)

# Exact child counts for MathML layout elements
MATHML_ARITY = {
    "msup": 2,
    "msub": 2,
    "mfrac": 2,
    "mroot": 2,
    "munder": 2,
    "mover": 2,
    "msubsup": 3,
    "munderover": 3,
}


@dataclass
class ValidationResult:
    """Outcome of one rule applied to one field.

    Attributes:
        passed: Whether the field satisfied the rule.
        rule_name: Short rule identifier (e.g. ``"no_latex"``).
        message: Human-readable failure description; empty on success.
        details: Extra context (matched text, offending element...).
        location: Field path or slot the result refers to.
    """

    passed: bool
    rule_name: str
    message: str = ""
    details: list[str] = field(default_factory=list)
    location: str | None = None


def _ok(rule_name: str) -> ValidationResult:
    return ValidationResult(passed=True, rule_name=rule_name)


def _fail(rule_name: str, message: str, *details: str) -> ValidationResult:
    return ValidationResult(passed=False, rule_name=rule_name, message=message, details=list(details))


# ---------------------------------------------------------------------------
# Rules shared by text and MathML
# ---------------------------------------------------------------------------


def check_no_latex(value: str) -> ValidationResult:
    match = LATEX_LIKE_RE.search(value)
    if match:
        return _fail("no_latex", f"LaTeX command-like content found: {match.group(0)!r}", value[:120])
    return _ok("no_latex")


def check_no_dollar_tex(value: str) -> ValidationResult:
    """Reject ``$...$`` pairs whose content looks like math."""
    processed = _CURRENCY_RE.sub("CURRENCY", value)
    for match in _DOLLAR_PAIR_RE.finditer(processed):
        content = match.group("content")
        if any(pattern.search(content) for pattern in _MATH_INDICATORS):
            return _fail("no_dollar_tex", f"Dollar-delimited TeX found: {match.group(0)!r}")
    return _ok("no_dollar_tex")


def check_no_perseus_artifacts(value: str) -> ValidationResult:
    match = PERSEUS_ARTIFACT_RE.search(value)
    if match:
        return _fail("no_perseus_artifacts", f"Unresolved Perseus placeholder: {match.group(0)!r}")
    return _ok("no_perseus_artifacts")


def check_no_cdata(value: str) -> ValidationResult:
    if CDATA_RE.search(value):
        return _fail("no_cdata", "CDATA section found")
    return _ok("no_cdata")


def check_valid_xml_chars(value: str) -> ValidationResult:
    match = INVALID_XML_CHARS_RE.search(value)
    if match:
        return _fail("valid_xml_chars", f"Invalid XML character U+{ord(match.group(0)):04X}")
    return _ok("valid_xml_chars")


def check_no_named_entities(value: str) -> ValidationResult:
    """Only the five XML predefined entities may appear by name."""
    names = sorted({m.group(1) for m in NAMED_ENTITY_RE.finditer(value)} - XML_PREDEFINED_ENTITIES)
    if names:
        return _fail("no_named_entities", "Named character entities found", *(f"&{n};" for n in names))
    return _ok("no_named_entities")


# ---------------------------------------------------------------------------
# MathML-only rules
# ---------------------------------------------------------------------------


def check_no_mfenced(value: str) -> ValidationResult:
    if MFENCED_RE.search(value):
        return _fail("no_mfenced", "Deprecated <mfenced> element found")
    return _ok("no_mfenced")


def check_no_raw_angle_in_mo(value: str) -> ValidationResult:
    match = RAW_ANGLE_IN_MO_RE.search(value)
    if match:
        return _fail("no_raw_angle_in_mo", f"Unescaped comparison operator: {match.group(0)!r}")
    return _ok("no_raw_angle_in_mo")


def check_no_html_in_math(value: str) -> ValidationResult:
    match = HTML_IN_MATH_RE.search(value)
    if match:
        return _fail("no_html_in_math", f"HTML tag inside MathML: {match.group(0)!r}")
    return _ok("no_html_in_math")


def check_mathml_structure(value: str) -> ValidationResult:
    """MathML must parse, and layout elements must have their exact arity."""
    try:
        root = parse_mathml_fragment(value)
    except MathMLError as e:
        return _fail("mathml_structure", str(e))
    for element in root.iter():
        expected = MATHML_ARITY.get(element.tag)
        if expected is not None and len(element) != expected:
            return _fail(
                "mathml_structure",
                f"<{element.tag}> needs {expected} children, found {len(element)}",
                ET.tostring(element, encoding="unicode")[:120],
            )
        if element.tag == "msqrt" and len(element) == 0 and not (element.text or "").strip():
            return _fail("mathml_structure", "<msqrt> is empty")
    return _ok("mathml_structure")


# ---------------------------------------------------------------------------
# Rule sets
# ---------------------------------------------------------------------------

Rule = Callable[[str], ValidationResult]

TEXT_RULES: tuple[Rule, ...] = (
    check_no_latex,
    check_no_dollar_tex,
    check_no_perseus_artifacts,
    check_no_cdata,
    check_valid_xml_chars,
    check_no_named_entities,
)

MATHML_RULES: tuple[Rule, ...] = (
    check_no_latex,
    check_no_perseus_artifacts,
    check_no_cdata,
    check_valid_xml_chars,
    check_no_named_entities,
    check_no_mfenced,
    check_no_raw_angle_in_mo,
    check_no_html_in_math,
)


def run_rules(value: str, rules: tuple[Rule, ...]) -> list[ValidationResult]:
    """Apply *rules* to *value* and return only the failures."""
    failures = [result for result in (rule(value) for rule in rules) if not result.passed]
    for failure in failures:
        logger.debug("Rule %s failed: %s", failure.rule_name, failure.message)
    return failures


def check_text_field(value: str) -> list[ValidationResult]:
    return run_rules(value, TEXT_RULES)


def check_mathml_field(value: str) -> list[ValidationResult]:
    """Apply MathML rules; structure is only checked once the markup is clean."""
    failures = run_rules(value, MATHML_RULES)
    if not failures:
        failures = run_rules(value, (check_mathml_structure,))
    return failures
