"""
Unit tests for qti_compiler.realizer.

Tests for interaction/response realization, widget realization from
source options and item-level feedback.
"""

import pytest

from perseus_qti.errors import StructuralError, UnmappableWidgetError
from perseus_qti.qti_compiler.models import (
    BaseType,
    BlockSlotNode,
    Cardinality,
    ChoiceInteraction,
    InlineChoiceInteraction,
    OrderInteraction,
    SourceItem,
    TextEntryInteraction,
)
from perseus_qti.qti_compiler.realizer import realize_feedback, realize_interactions, realize_widgets
from perseus_qti.qti_compiler.shell import build_shell
from perseus_qti.qti_compiler.widget_mapping import resolve_widget_mapping
from perseus_qti.widgets.models import WIDGET_NOT_FOUND, BarChart, DataTable, NumberLine, UrlImage


def _realize(content, widgets):
    source = SourceItem.model_validate({"id": "q1", "content": content, "widgets": widgets})
    shell = build_shell(source)
    interactions, declarations = realize_interactions(source, shell)
    return source, shell, interactions, declarations


def _widgets(content, widgets, proposed=None):
    source, shell, interactions, _ = _realize(content, widgets)
    mapping = resolve_widget_mapping(source, shell, proposed)
    return realize_widgets(source, shell, mapping, interactions)


class TestRealizeInteractions:
    """Tests for realize_interactions()."""

    def test_radio_when_single_select_then_identifier_response(self, radio_source):
        source = SourceItem.model_validate(radio_source)
        interactions, declarations = realize_interactions(source, build_shell(source))

        interaction = interactions["radio_1"]
        assert isinstance(interaction, ChoiceInteraction)
        assert [c.identifier for c in interaction.choices] == ["A", "B", "C"]
        assert interaction.max_choices == 1
        assert interaction.shuffle is False
        assert interaction.choices[1].feedback[0].content == "Egypt was ruled by pharaohs."
        decl = declarations[0]
        assert decl.identifier == "radio_1"
        assert decl.cardinality == Cardinality.SINGLE
        assert decl.base_type == BaseType.IDENTIFIER
        assert decl.correct == "A"

    def test_radio_when_multiple_select_then_multiple_cardinality(self):
        radio = {"type": "radio", "options": {
            "multipleSelect": True,
            "randomize": True,
            "choices": [
                {"content": "2", "correct": True},
                {"content": "3", "correct": True},
                {"content": "4"},
            ],
        }}
        _, _, interactions, declarations = _realize(["Which are prime? [[☃ radio 1]]"], {"radio 1": radio})

        assert interactions["radio_1"].max_choices == 3
        assert interactions["radio_1"].shuffle is True
        assert declarations[0].cardinality == Cardinality.MULTIPLE
        assert declarations[0].correct == ("A", "B")

    def test_radio_when_choice_empty_then_raises(self):
        radio = {"type": "radio", "options": {"choices": [{"content": "  ", "correct": True}, {"content": "x"}]}}

        with pytest.raises(StructuralError, match="no content"):
            _realize(["[[☃ radio 1]]"], {"radio 1": radio})

    def test_radio_when_choice_has_image_then_block_slot_content(self):
        radio = {"type": "radio", "options": {"choices": [
            {"content": "[[☃ image 1]]", "correct": True},
            {"content": "None of these"},
        ]}}
        image = {"type": "image", "options": {"url": "https://example.org/a.png"}}
        _, _, interactions, _ = _realize(["[[☃ radio 1]]"], {"radio 1": radio, "image 1": image})

        assert interactions["radio_1"].choices[0].content == (BlockSlotNode(slot_id="radio_1__A__v1"),)

    def test_orderer_then_ordered_permutation(self):
        orderer = {"type": "orderer", "options": {
            "correctOptions": [{"content": "$1$"}, {"content": "$2$"}, {"content": "$3$"}],
            "otherOptions": [],
            "layout": "horizontal",
        }}
        _, _, interactions, declarations = _realize(["Order them. [[☃ orderer 1]]"], {"orderer 1": orderer})

        assert isinstance(interactions["orderer_1"], OrderInteraction)
        assert interactions["orderer_1"].orientation == "horizontal"
        assert declarations[0].cardinality == Cardinality.ORDERED
        assert declarations[0].correct == ("A", "B", "C")

    def test_orderer_when_distractors_then_raises(self):
        orderer = {"type": "orderer", "options": {
            "correctOptions": [{"content": "a"}, {"content": "b"}],
            "otherOptions": [{"content": "c"}],
        }}

        with pytest.raises(StructuralError, match="Distractor"):
            _realize(["[[☃ orderer 1]]"], {"orderer 1": orderer})

    def test_numeric_input_when_several_answers_then_mapping(self):
        numeric = {"type": "numeric-input", "options": {"answers": [
            {"value": 2, "status": "correct"},
            {"value": 2.5, "status": "correct"},
            {"value": 3, "status": "wrong"},
        ]}}
        _, _, interactions, declarations = _realize(["x = [[☃ numeric-input 1]]"], {"numeric-input 1": numeric})

        assert isinstance(interactions["numeric-input_1"], TextEntryInteraction)
        assert interactions["numeric-input_1"].expected_length == 3
        assert declarations[0].base_type == BaseType.STRING
        assert declarations[0].correct == "2"
        assert declarations[0].mapping == {"2.5": 1.0}

    def test_numeric_input_when_no_correct_answer_then_raises(self):
        numeric = {"type": "numeric-input", "options": {"answers": [{"value": 3, "status": "wrong"}]}}

        with pytest.raises(StructuralError, match="No correct answer"):
            _realize(["[[☃ numeric-input 1]]"], {"numeric-input 1": numeric})

    def test_expression_then_considered_correct_forms(self):
        expression = {"type": "expression", "options": {"answerForms": [
            {"value": "x>=3", "considered": "correct"},
            {"value": "x>3", "considered": "wrong"},
        ]}}
        _, _, _, declarations = _realize(["[[☃ expression 1]]"], {"expression 1": expression})

        assert declarations[0].correct == "x>=3"
        assert declarations[0].mapping is None

    def test_dropdown_then_inline_choice(self):
        dropdown = {"type": "dropdown", "options": {"choices": [
            {"content": "greater", "correct": True},
            {"content": "less"},
        ]}}
        _, shell, interactions, declarations = _realize(
            ["The sum is [[☃ dropdown 1]] than 10."], {"dropdown 1": dropdown},
        )

        assert isinstance(interactions["dropdown_1"], InlineChoiceInteraction)
        assert interactions["dropdown_1"].shuffle is False
        assert declarations[0].correct == "A"
        assert shell.body[0].type == "paragraph"


class TestRealizeWidgets:
    """Tests for realize_widgets()."""

    def test_realize_when_sentinel_then_unmappable(self):
        image = {"type": "image", "options": {"url": "web+graphie://x"}}

        with pytest.raises(UnmappableWidgetError) as excinfo:
            _widgets(["[[☃ image 1]]"], {"image 1": image})

        assert excinfo.value.slots == ["image_1"]

    def test_realize_url_image(self):
        image = {"type": "image", "options": {
            "backgroundImage": {"url": "https://example.org/a.png", "width": 200, "height": 100},
            "alt": "A map of Anatolia",
        }}

        widgets = _widgets(["[[☃ image 1]]"], {"image 1": image})

        widget = widgets["image_1"]
        assert isinstance(widget, UrlImage)
        assert widget.alt == "A map of Anatolia"
        assert widget.width == 200

    def test_realize_number_line_from_options(self):
        line = {"type": "number-line", "options": {"range": [0, 10], "tickStep": 2, "snapDivisions": 2}}

        widget = _widgets(["[[☃ number-line 1]]"], {"number-line 1": line})["number-line_1"]

        assert isinstance(widget, NumberLine)
        assert (widget.min, widget.max, widget.major_tick_interval) == (0, 10, 2)
        assert widget.minor_ticks_per_interval == 1

    def test_realize_bar_chart_from_plotter(self):
        plotter = {"type": "plotter", "options": {
            "type": "bar",
            "categories": ["Mon", "Tue"],
            "starting": [3, 5],
            "labels": ["Day", "Visitors"],
            "maxY": 10,
            "scaleY": 2,
        }}

        widget = _widgets(["[[☃ plotter 1]]"], {"plotter 1": plotter})["plotter_1"]

        assert isinstance(widget, BarChart)
        assert [bar.label for bar in widget.data] == ["Mon", "Tue"]
        assert widget.y_axis.max == 10
        assert widget.x_axis_label == "Day"

    def test_realize_data_table(self):
        table = {"type": "table", "options": {"headers": ["x", "y"], "answers": [["1", "2"], ["3", "4"]]}}

        widget = _widgets(["[[☃ table 1]]"], {"table 1": table})["table_1"]

        assert isinstance(widget, DataTable)
        assert [c.label for c in widget.columns] == ["x", "y"]
        assert widget.rows == (("1", "2"), ("3", "4"))

    def test_realize_when_embedded_data_then_used(self):
        graph = {"type": "graph", "options": {"widget": {
            "type": "scatterPlot",
            "xAxis": {"min": 0, "max": 10, "tickInterval": 2},
            "yAxis": {"min": 0, "max": 10, "tickInterval": 2},
            "points": [{"x": 1, "y": 2}],
        }}}

        widget = _widgets(["[[☃ graph 1]]"], {"graph 1": graph})["graph_1"]

        assert widget.type == "scatterPlot"
        assert widget.points[0].y == 2

    def test_realize_when_data_invalid_then_raises_at_slot(self):
        graph = {"type": "graph", "options": {"widget": {"type": "scatterPlot", "points": []}}}

        with pytest.raises(StructuralError) as excinfo:
            _widgets(["[[☃ graph 1]]"], {"graph 1": graph})

        assert excinfo.value.location == "graph_1"
        assert any("xAxis" in detail or "x_axis" in detail for detail in excinfo.value.details)

    def test_realize_when_proposed_type_has_no_data_then_raises(self):
        image = {"type": "image", "options": {"url": "https://example.org/a.png"}}

        with pytest.raises(StructuralError, match="no data"):
            _widgets(["[[☃ image 1]]"], {"image 1": image}, proposed={"image_1": "scatterPlot"})

    def test_realize_when_proposal_keeps_sentinel_then_unmappable(self):
        image = {"type": "image", "options": {"url": "https://example.org/a.png"}}

        with pytest.raises(UnmappableWidgetError):
            _widgets(["[[☃ image 1]]"], {"image 1": image}, proposed={"image_1": WIDGET_NOT_FOUND})


class TestRealizeFeedback:
    """Tests for realize_feedback()."""

    def test_feedback_when_source_has_none_then_defaults(self, radio_source):
        feedback = realize_feedback(SourceItem.model_validate(radio_source))

        assert feedback.correct[0].content[0].content == "Correct! Well done."
        assert feedback.incorrect[0].content[0].content.startswith("Not quite")

    def test_feedback_when_env_override_then_used(self, radio_source, monkeypatch):
        monkeypatch.setenv("PERSEUS_QTI_DEFAULT_CORRECT_FEEDBACK", "Nice work.")

        feedback = realize_feedback(SourceItem.model_validate(radio_source))

        assert feedback.correct[0].content[0].content == "Nice work."

    def test_feedback_when_source_given_then_converted(self, radio_source):
        radio_source["correctFeedback"] = ["Anatolia is $\\approx$ modern Turkey."]

        feedback = realize_feedback(SourceItem.model_validate(radio_source))

        assert [node.type for node in feedback.correct[0].content] == ["text", "math", "text"]
