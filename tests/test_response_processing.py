"""
Unit tests for qti_compiler.response_processing.

Tests for equivalent answer spellings and mapping construction.
"""

import pytest

from perseus_qti.errors import StructuralError
from perseus_qti.qti_compiler.models import BaseType, Cardinality, ResponseDeclaration
from perseus_qti.qti_compiler.response_processing import (
    build_mapping,
    check_identifier_values,
    equivalent_values,
    is_terminating_fraction,
)


def _decl(correct, base_type=BaseType.STRING, mapping=None):
    return ResponseDeclaration(
        identifier="RESPONSE",
        cardinality=Cardinality.SINGLE,
        base_type=base_type,
        correct=correct,
        mapping=mapping,
    )


class TestEquivalentValues:
    """Tests for equivalent_values()."""

    def test_leading_zero_both_ways(self):
        assert equivalent_values(".5") == ["0.5"]
        assert equivalent_values("0.25") == [".25"]

    def test_terminating_fraction_then_decimal_forms(self):
        assert equivalent_values("3/4") == ["0.75", ".75"]

    def test_repeating_fraction_then_no_decimal(self):
        assert equivalent_values("1/3") == []

    def test_inequality_then_unicode_and_flipped_forms(self):
        found = equivalent_values("x>=3")

        assert "x≥3" in found
        assert "3<=x" in found
        assert "3≤x" in found
        assert "x>=3" not in found

    def test_equation_then_reversed(self):
        assert equivalent_values("y=2x") == ["2x=y", "y = 2x", "2x = y"]

    def test_plain_value_then_nothing(self):
        assert equivalent_values("Anatolia") == []


class TestBuildMapping:
    """Tests for build_mapping()."""

    def test_string_response_then_equivalents_and_authored_value(self):
        mapping = build_mapping(_decl("0.5"))

        assert mapping == {".5": 1.0, "0.5": 1.0}

    def test_string_response_when_equivalents_disabled_then_empty(self):
        assert build_mapping(_decl("0.5"), include_equivalents=False) == {}

    def test_identifier_response_then_empty(self):
        assert build_mapping(_decl("A", base_type=BaseType.IDENTIFIER)) == {}

    def test_authored_mapping_on_float_then_correct_value_added(self):
        mapping = build_mapping(_decl(2.0, base_type=BaseType.FLOAT, mapping={"2.5": 0.5}))

        assert mapping == {"2.5": 0.5, "2.0": 1.0}

    def test_authored_alternatives_get_their_equivalents(self):
        mapping = build_mapping(_decl("7", mapping={"3/4": 1.0}))

        assert mapping["0.75"] == 1.0
        assert mapping["7"] == 1.0


class TestTerminatingFraction:
    @pytest.mark.parametrize(
        ("numerator", "denominator", "expected"),
        [(3, 4, True), (1, 3, False), (7, 20, True), (2, 6, False), (3, 6, True), (1, 0, False)],
    )
    def test_is_terminating_fraction(self, numerator, denominator, expected):
        assert is_terminating_fraction(numerator, denominator) is expected


class TestCheckIdentifierValues:
    def test_label_text_then_raises(self):
        with pytest.raises(StructuralError, match="label-like"):
            check_identifier_values(_decl("Choice A", base_type=BaseType.IDENTIFIER))

    def test_string_response_then_ignored(self):
        check_identifier_values(_decl("two words"))
