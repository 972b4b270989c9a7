"""
Unit tests for qti_compiler.xml_compiler and qti_compiler.slots.

Tests for deterministic QTI 3.0 emission, slot filling, response
processing and widget embedding.
"""

import copy
import xml.etree.ElementTree as ET

import pytest

from perseus_qti.errors import BannedConstructError, GeometryPreconditionError, StructuralError
from perseus_qti.qti_compiler.slots import fill_slots
from perseus_qti.qti_compiler.xml_compiler import compile_item, parse_item

QTI = "{http://www.imsglobal.org/xsd/imsqtiasi_v3p0}"


def _text_entry_item(correct):
    return {
        "identifier": "nice_decimal",
        "title": "Decimal form",
        "body": [{"type": "paragraph", "content": [
            {"type": "text", "content": "Write three quarters as a decimal: "},
            {"type": "inlineSlot", "slotId": "answer"},
        ]}],
        "interactions": {"answer": {
            "type": "textEntryInteraction", "responseIdentifier": "RESPONSE", "expectedLength": 4,
        }},
        "responseDeclarations": [{
            "identifier": "RESPONSE", "cardinality": "single", "baseType": "string", "correct": correct,
        }],
        "feedback": {
            "correct": [{"type": "paragraph", "content": [{"type": "text", "content": "Yes."}]}],
            "incorrect": [{"type": "paragraph", "content": [{"type": "text", "content": "No."}]}],
        },
    }


class TestCompileItem:
    """Tests for compile_item()."""

    def test_compile_when_same_item_twice_then_byte_identical(self, merged_item):
        first = compile_item(merged_item)
        second = compile_item(copy.deepcopy(merged_item))

        assert first == second

    def test_compile_then_well_formed_qti(self, merged_item):
        root = ET.fromstring(compile_item(merged_item).encode("utf-8"))

        assert root.tag == f"{QTI}qti-assessment-item"
        assert root.get("identifier") == "nice_x1a2b3c"
        assert root.get("time-dependent") == "false"
        assert root.find(f"{QTI}qti-item-body/{QTI}qti-choice-interaction") is not None
        values = root.findall(f"{QTI}qti-response-declaration/{QTI}qti-correct-response/{QTI}qti-value")
        assert [v.text for v in values] == ["A"]

    def test_compile_then_no_slot_placeholders_left(self, merged_item):
        assert "<slot" not in compile_item(merged_item)

    def test_compile_then_duplicate_paragraph_removed(self, merged_item):
        xml = compile_item(merged_item)

        # Only the prompt keeps the question text
        assert xml.count("heart of the Hittite empire") == 1
        assert "<qti-prompt>" in xml

    def test_compile_then_feedback_blocks_emitted(self, merged_item):
        xml = compile_item(merged_item)

        assert 'identifier="CORRECT" show-hide="show"' in xml
        assert "Review the Hittite empire." in xml

    def test_compile_when_choice_feedback_then_feedback_inline(self, merged_item):
        choice = merged_item["interactions"]["choice_interaction"]["choices"][1]
        choice["feedback"] = [{"type": "text", "content": "Egypt lies to the south."}]

        xml = compile_item(merged_item)

        assert '<qti-feedback-inline outcome-identifier="FEEDBACK-INLINE" identifier="B"' in xml
        assert '<qti-set-outcome-value identifier="FEEDBACK-INLINE">' in xml

    def test_compile_when_identifier_response_then_match_correct(self, merged_item):
        xml = compile_item(merged_item)

        assert '<qti-match><qti-variable identifier="RESPONSE"/><qti-correct identifier="RESPONSE"/></qti-match>' in xml
        assert "<qti-mapping" not in xml

    def test_compile_when_string_fraction_then_mapped_equivalents(self):
        xml = compile_item(_text_entry_item("3/4"))

        assert '<qti-map-entry map-key="0.75" mapped-value="1"/>' in xml
        assert '<qti-map-entry map-key=".75" mapped-value="1"/>' in xml
        assert '<qti-map-entry map-key="3/4" mapped-value="1"/>' in xml
        assert '<qti-map-response identifier="RESPONSE"/>' in xml

    def test_compile_when_equivalents_disabled_then_plain_match(self, monkeypatch):
        monkeypatch.setenv("PERSEUS_QTI_EMIT_EQUIVALENT_MAPPINGS", "false")

        xml = compile_item(_text_entry_item("3/4"))

        assert "<qti-mapping" not in xml
        assert "<qti-match>" in xml

    def test_compile_when_inline_interaction_then_inside_paragraph(self):
        xml = compile_item(_text_entry_item("0.75"))

        assert (
            '<p>Write three quarters as a decimal: '
            '<qti-text-entry-interaction response-identifier="RESPONSE" expected-length="4"/></p>'
        ) in xml

    def test_compile_when_math_then_namespaced_math(self, merged_item):
        merged_item["body"][0]["content"].append({"type": "math", "mathml": "<msup><mi>x</mi><mn>2</mn></msup>"})

        xml = compile_item(merged_item)

        assert '<math xmlns="http://www.w3.org/1998/Math/MathML"><msup><mi>x</mi><mn>2</mn></msup></math>' in xml

    def test_compile_when_svg_widget_then_data_uri_image(self, merged_item):
        merged_item["widgets"] = {"chart": {
            "type": "barChart",
            "yAxis": {"min": 0, "max": 10, "tickInterval": 2},
            "data": [{"label": "Mon", "value": 3}, {"label": "Tue", "value": 5}],
        }}
        merged_item["body"].insert(0, {"type": "blockSlot", "slotId": "chart"})

        xml = compile_item(merged_item)

        assert '<img src="data:image/svg+xml,' in xml
        assert 'alt="A visual element of type barChart."' in xml

    def test_compile_when_table_widget_then_inline_xhtml(self, merged_item):
        merged_item["widgets"] = {"table": {
            "type": "dataTable",
            "columns": [{"key": "a", "label": "Year"}, {"key": "b", "label": "Ruler"}],
            "rows": [["1650 BC", "Hattusili I"]],
        }}
        merged_item["body"].insert(0, {"type": "blockSlot", "slotId": "table"})

        xml = compile_item(merged_item)

        assert '<th scope="col">Year</th>' in xml
        assert "<td>Hattusili I</td>" in xml

    def test_compile_when_widget_geometry_invalid_then_error_at_slot(self, merged_item):
        merged_item["widgets"] = {"line": {"type": "numberLine", "min": 5, "max": 1, "majorTickInterval": 1}}
        merged_item["body"].insert(0, {"type": "blockSlot", "slotId": "line"})

        with pytest.raises(GeometryPreconditionError) as excinfo:
            compile_item(merged_item)

        assert excinfo.value.location == "line"

    def test_compile_when_mfenced_then_banned(self, merged_item):
        merged_item["body"][0]["content"].append({"type": "math", "mathml": "<mfenced><mi>a</mi></mfenced>"})

        with pytest.raises(BannedConstructError):
            compile_item(merged_item)

    def test_compile_when_slot_missing_then_structural(self, merged_item):
        merged_item["body"].append({"type": "blockSlot", "slotId": "missing"})

        with pytest.raises(StructuralError):
            compile_item(merged_item)

    def test_compile_when_label_as_identifier_then_structural(self, merged_item):
        merged_item["responseDeclarations"][0]["correct"] = "Anatolia"

        with pytest.raises(StructuralError):
            compile_item(merged_item)

    def test_parse_item_when_shape_invalid_then_structural(self, merged_item):
        del merged_item["feedback"]

        with pytest.raises(StructuralError) as excinfo:
            parse_item(merged_item)

        assert excinfo.value.location == "feedback"


class TestFillSlots:
    """Tests for fill_slots()."""

    def test_fill_when_nested_then_recursive(self):
        filled = fill_slots(
            '<div><slot name="outer"/></div>',
            {"outer": '<p><slot name="inner"/></p>', "inner": "x"},
        )

        assert filled == "<div><p>x</p></div>"

    def test_fill_when_circular_then_raises(self):
        with pytest.raises(StructuralError, match="Circular"):
            fill_slots('<slot name="a"/>', {"a": '<slot name="b"/>', "b": '<slot name="a"/>'})

    def test_fill_when_missing_then_raises(self):
        with pytest.raises(StructuralError, match="Missing content"):
            fill_slots('<slot name="a"/>', {})

    def test_fill_when_unused_then_raises(self):
        with pytest.raises(StructuralError, match="never placed"):
            fill_slots("<p/>", {"a": "x"})

    def test_fill_when_too_deep_then_raises(self):
        slots = {f"s{i}": f'<slot name="s{i + 1}"/>' for i in range(12)}
        slots["s12"] = "end"

        with pytest.raises(StructuralError, match="depth"):
            fill_slots('<slot name="s0"/>', slots)
