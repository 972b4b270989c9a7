"""Correct-response equivalents for free-text answers.

Students type answers in many equivalent spellings. For string responses
the compiler accepts, besides the authored value:

* leading-zero variants (``.5`` and ``0.5``),
* the decimal form of a terminating fraction (``3/4`` -> ``0.75``),
* ASCII and Unicode comparison operators and the flipped inequality
  (``x >= 3`` -> ``x ≥ 3``, ``3 <= x``...),
* the reversed equation (``y = 2x`` -> ``2x = y``).
"""

from __future__ import annotations

import logging
import math
import re

from perseus_qti.errors import StructuralError
from perseus_qti.qti_compiler.models import BaseType, ResponseDeclaration

logger = logging.getLogger(__name__)

_INEQUALITY_OPERATORS = (">=", "≥", "<=", "≤", ">", "<")
_INEQUALITY_RE = re.compile(r"^([^><=≥≤]+?)\s*(>=|≥|<=|≤|>|<)\s*([^><=≥≤]+)$")
_EQUATION_RE = re.compile(r"^([^=]+)=([^=]+)$")
_FRACTION_RE = re.compile(r"^\s*(-?\d+)\s*/\s*(\d+)\s*$")

REVERSED_OPERATORS = {
    ">": "<",
    "<": ">",
    ">=": "<=",
    "≥": "≤",
    "<=": ">=",
    "≤": "≥",
}


def is_terminating_fraction(numerator: int, denominator: int) -> bool:
    """Whether ``numerator/denominator`` has a finite decimal expansion."""
    if denominator == 0:
        return False
    denominator //= math.gcd(numerator, denominator)
    for factor in (2, 5):
        while denominator % factor == 0:
            denominator //= factor
    return denominator == 1


def _to_ascii(value: str) -> str:
    return value.replace("≥", ">=").replace("≤", "<=")


def _to_unicode(value: str) -> str:
    return value.replace(">=", "≥").replace("<=", "≤")


def _decimal_text(value: float) -> str:
    return f"{value:.12f}".rstrip("0").rstrip(".")


def equivalent_values(value: str) -> list[str]:
    """Alternative spellings of *value*, excluding *value* itself.

    Returned in a fixed order so emitted XML is deterministic.
    """
    found: list[str] = []

    def add(candidate: str) -> None:
        if candidate != value and candidate not in found:
            found.append(candidate)

    if value.startswith("."):
        add(f"0{value}")
    elif value.startswith("0."):
        add(value[1:])

    fraction = _FRACTION_RE.match(value)
    if fraction:
        numerator, denominator = int(fraction.group(1)), int(fraction.group(2))
        if is_terminating_fraction(numerator, denominator):
            decimal = _decimal_text(numerator / denominator)
            add(decimal)
            if decimal.startswith("0."):
                add(decimal[1:])

    if any(op in value for op in _INEQUALITY_OPERATORS):
        add(_to_ascii(value))
        add(_to_unicode(value))
        match = _INEQUALITY_RE.match(value.strip())
        if match:
            left, operator, right = match.group(1).strip(), match.group(2), match.group(3).strip()
            reversed_op = REVERSED_OPERATORS[operator]
            flipped = f"{right}{reversed_op}{left}"
            add(_to_ascii(flipped))
            add(_to_unicode(flipped))
            add(f"{right} {_to_ascii(reversed_op)} {left}")
            add(f"{right} {_to_unicode(reversed_op)} {left}")
    elif "=" in value:
        match = _EQUATION_RE.match(value.strip())
        if match:
            left, right = match.group(1).strip(), match.group(2).strip()
            add(f"{right}={left}")
            add(f"{left} = {right}")
            add(f"{right} = {left}")

    return found


def check_identifier_values(decl: ResponseDeclaration) -> None:
    """Identifier responses must name choices, not carry label text.

    Raises:
        StructuralError: If a correct value contains whitespace.
    """
    if decl.base_type != BaseType.IDENTIFIER:
        return
    offending = [v for v in decl.correct_values if isinstance(v, str) and re.search(r"\s", v)]
    if offending:
        raise StructuralError(
            f"Response '{decl.identifier}' expects choice identifier(s); "
            f"found label-like value(s): [{', '.join(offending)}]",
            location=decl.identifier,
        )


def build_mapping(decl: ResponseDeclaration, include_equivalents: bool = True) -> dict[str, float]:
    """Mapping entries (key -> score) emitted for *decl*.

    Empty when the response has neither authored alternatives nor, for
    string responses, any equivalent spellings.
    """
    mapping: dict[str, float] = dict(decl.mapping or {})
    if decl.base_type == BaseType.STRING and include_equivalents:
        extra: dict[str, float] = {}
        for value in [str(v) for v in decl.correct_values] + list(mapping):
            score = mapping.get(value, 1.0)
            for equivalent in equivalent_values(value):
                if equivalent not in mapping and equivalent not in extra:
                    extra[equivalent] = score
        if extra:
            logger.debug("Response %s: %d equivalent answer(s) added", decl.identifier, len(extra))
        mapping.update(extra)
    if mapping:
        # The authored values must map too, or they would score zero
        for value in decl.correct_values:
            mapping.setdefault(str(value), 1.0)
    return mapping
