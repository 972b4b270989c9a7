"""
Unit tests for qti_compiler.merge.validate_item, validation_checks and
content_rules.

Tests for slot consistency, placement, response correspondence,
interaction shape and banned constructs.
"""

import pytest

from perseus_qti.errors import BannedConstructError, StructuralError
from perseus_qti.qti_compiler import content_rules
from perseus_qti.qti_compiler.merge import validate_item
from perseus_qti.qti_compiler.validation_checks import (
    check_response_correspondence,
    check_slot_consistency,
)
from perseus_qti.qti_compiler.xml_compiler import compile_item, parse_item


def _text(content):
    return {"type": "text", "content": content}


class TestSlotChecks:
    """Tests for slot consistency and placement."""

    def test_validate_when_item_sound_then_passes(self, merged_item):
        validate_item(parse_item(merged_item))

    def test_validate_when_slot_undeclared_then_structural(self, merged_item):
        merged_item["body"].append({"type": "blockSlot", "slotId": "ghost"})

        with pytest.raises(StructuralError, match="'ghost' is referenced but not declared"):
            validate_item(parse_item(merged_item))

    def test_validate_when_widget_unreferenced_then_structural(self, merged_item):
        merged_item["widgets"] = {"image_1": {"type": "urlImage", "url": "https://example.org/a.png", "alt": "x"}}

        with pytest.raises(StructuralError, match="never referenced"):
            validate_item(parse_item(merged_item))

    def test_validate_when_interaction_referenced_twice_then_structural(self, merged_item):
        merged_item["body"].append({"type": "blockSlot", "slotId": "choice_interaction"})

        failures = check_slot_consistency(parse_item(merged_item))

        assert any("referenced 2 times" in f.message for f in failures)

    def test_validate_when_widget_inline_then_placement_error(self, merged_item):
        merged_item["widgets"] = {"image_1": {"type": "urlImage", "url": "https://example.org/a.png", "alt": "x"}}
        merged_item["body"][0]["content"].append({"type": "inlineSlot", "slotId": "image_1"})

        with pytest.raises(StructuralError, match="must be placed in a block slot"):
            validate_item(parse_item(merged_item))

    def test_validate_when_block_markup_in_prompt_then_placement_error(self, merged_item):
        merged_item["interactions"]["choice_interaction"]["prompt"] = [_text("<p>Pick one</p>")]

        with pytest.raises(StructuralError, match="Block markup found in inline-only field"):
            validate_item(parse_item(merged_item))


class TestResponseChecks:
    """Tests for response correspondence and interaction shape."""

    def test_validate_when_correct_is_label_text_then_structural(self, merged_item):
        merged_item["responseDeclarations"][0]["correct"] = "Anatolia"

        failures = check_response_correspondence(parse_item(merged_item))

        messages = " ".join(f.message for f in failures)
        assert "unknown choice(s): Anatolia" in messages

    def test_validate_when_declaration_missing_then_structural(self, merged_item):
        merged_item["responseDeclarations"][0]["identifier"] = "OTHER"

        with pytest.raises(StructuralError) as excinfo:
            validate_item(parse_item(merged_item))

        everything = [excinfo.value.message, *excinfo.value.details]
        assert any("has no declaration" in text for text in everything)
        assert any("has no interaction" in text for text in everything)

    def test_validate_when_marked_correct_disagrees_then_structural(self, merged_item):
        merged_item["responseDeclarations"][0]["correct"] = "B"

        with pytest.raises(StructuralError, match="disagree"):
            validate_item(parse_item(merged_item))

    def test_compile_when_multiple_and_no_choice_marked_then_structural(self, merged_item):
        interaction = merged_item["interactions"]["choice_interaction"]
        for choice in interaction["choices"]:
            choice.pop("isCorrect", None)
        interaction["maxChoices"] = 3
        merged_item["responseDeclarations"][0].update(cardinality="multiple", correct=["A", "B"])

        with pytest.raises(StructuralError, match=r"disagree with choices marked correct \[\]"):
            compile_item(merged_item)

    def test_validate_when_single_and_no_choice_marked_then_structural(self, merged_item):
        del merged_item["interactions"]["choice_interaction"]["choices"][0]["isCorrect"]

        failures = check_response_correspondence(parse_item(merged_item))

        assert [f.location for f in failures] == ["RESPONSE"]

    def test_validate_when_single_with_two_values_then_structural(self, merged_item):
        merged_item["interactions"]["choice_interaction"]["choices"][1]["isCorrect"] = True
        merged_item["responseDeclarations"][0]["correct"] = ["A", "B"]

        with pytest.raises(StructuralError, match="has 2 correct values"):
            validate_item(parse_item(merged_item))

    def test_validate_when_one_choice_then_pre_validation_fails(self, merged_item):
        choices = merged_item["interactions"]["choice_interaction"]["choices"]
        del choices[1:]

        with pytest.raises(StructuralError, match="at least 2 choices"):
            validate_item(parse_item(merged_item))

    def test_validate_when_no_declarations_then_structural(self, merged_item):
        merged_item["interactions"] = None
        merged_item["body"] = merged_item["body"][:1]
        merged_item["responseDeclarations"] = []

        with pytest.raises(StructuralError, match="no response declarations"):
            validate_item(parse_item(merged_item))


class TestBannedConstructs:
    """Tests for the banned-construct walk."""

    def test_validate_when_mfenced_then_banned(self, merged_item):
        merged_item["body"][0]["content"].append({"type": "math", "mathml": "<mfenced><mi>a</mi></mfenced>"})

        with pytest.raises(BannedConstructError, match="mfenced") as excinfo:
            validate_item(parse_item(merged_item))

        assert excinfo.value.location == "body[0].content[1]"

    def test_validate_when_latex_in_choice_then_banned(self, merged_item):
        choice = merged_item["interactions"]["choice_interaction"]["choices"][2]
        choice["content"][0]["content"][0]["content"] = "\\frac{1}{2}"

        with pytest.raises(BannedConstructError, match="LaTeX"):
            validate_item(parse_item(merged_item))

    def test_validate_when_perseus_placeholder_in_title_then_banned(self, merged_item):
        merged_item["title"] = "Hittites [[☃ image 1]]"

        with pytest.raises(BannedConstructError, match="Perseus") as excinfo:
            validate_item(parse_item(merged_item))

        assert excinfo.value.location == "title"

    def test_validate_when_structure_and_banned_both_fail_then_structural_first(self, merged_item):
        merged_item["title"] = "\\alpha"
        merged_item["body"].append({"type": "blockSlot", "slotId": "ghost"})

        with pytest.raises(StructuralError):
            validate_item(parse_item(merged_item))


class TestContentRules:
    """Tests for individual string rules."""

    @pytest.mark.parametrize(
        ("rule", "value"),
        [
            (content_rules.check_no_latex, "\\frac{1}{2}"),
            (content_rules.check_no_latex, "\\(x\\)"),
            (content_rules.check_no_dollar_tex, "Solve $x^2 = 4$ now"),
            (content_rules.check_no_cdata, "<![CDATA[x]]>"),
            (content_rules.check_valid_xml_chars, "bad\x0bchar"),
            (content_rules.check_no_named_entities, "a&nbsp;b"),
            (content_rules.check_no_mfenced, "<mfenced open='('/>"),
            (content_rules.check_no_raw_angle_in_mo, "<mo><</mo>"),
            (content_rules.check_no_html_in_math, "<mi>x</mi><br/>"),
            (content_rules.check_mathml_structure, "<mfrac><mn>1</mn></mfrac>"),
            (content_rules.check_mathml_structure, "<msqrt></msqrt>"),
        ],
    )
    def test_rule_when_construct_present_then_fails(self, rule, value):
        assert not rule(value).passed

    @pytest.mark.parametrize(
        ("rule", "value"),
        [
            (content_rules.check_no_dollar_tex, "It costs $5 and $10 in total"),
            (content_rules.check_no_dollar_tex, "Pay $3.50 now."),
            (content_rules.check_no_named_entities, "Tom &amp; Jerry &lt;3"),
            (content_rules.check_no_raw_angle_in_mo, "<mo>&lt;</mo>"),
            (content_rules.check_mathml_structure, "<msubsup><mi>x</mi><mn>1</mn><mn>2</mn></msubsup>"),
        ],
    )
    def test_rule_when_clean_then_passes(self, rule, value):
        assert rule(value).passed

    def test_check_mathml_field_when_rules_fail_then_structure_skipped(self):
        failures = content_rules.check_mathml_field("<mfenced><mi>a")

        assert [f.rule_name for f in failures] == ["no_mfenced"]
