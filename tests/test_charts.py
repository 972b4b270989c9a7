"""
Unit tests for the chart, number line and HTML widget generators.

Tests for geometry preconditions, regression fitting and the dynamic
viewBox of rendered SVG.
"""

import html
import math
import re

import pytest

from perseus_qti.errors import GeometryPreconditionError
from perseus_qti.widgets import generate_widget
from perseus_qti.widgets.bar_chart import generate_bar_chart
from perseus_qti.widgets.conceptual_graph import generate_conceptual_graph, point_at_fraction
from perseus_qti.widgets.html_widgets import generate_data_table, generate_url_image
from perseus_qti.widgets.layout import LayoutExtent
from perseus_qti.widgets.models import (
    BarChart,
    ConceptualGraph,
    DataTable,
    NumberLine,
    Point,
    PolyhedronDiagram,
    ScatterPlot,
    UrlImage,
)
from perseus_qti.widgets.number_line import generate_number_line, major_ticks
from perseus_qti.widgets.scatter_plot import fit_regression, generate_scatter_plot

AXIS = {"min": 0, "max": 10, "tickInterval": 2}


class TestNumberLine:
    """Tests for generate_number_line()."""

    def test_ticks_from_range_and_interval(self):
        widget = NumberLine(min=0, max=1, major_tick_interval=0.1)

        assert major_ticks(widget) == [0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0]

    def test_long_end_label_then_view_box_widened(self):
        widget = NumberLine.model_validate({
            "min": 0, "max": 10, "majorTickInterval": 1,
            "specialTickLabels": [{"value": 10, "label": "ten thousand units"}],
        })

        svg = generate_number_line(widget)

        assert 'viewBox="0 0 493 100"' in svg
        assert ">ten thousand units</text>" in svg
        assert ">10</text>" not in svg

    def test_points_and_labels_rendered(self):
        widget = NumberLine.model_validate({
            "min": -5, "max": 5, "majorTickInterval": 1, "minorTicksPerInterval": 1,
            "points": [{"value": -2.5, "label": "A", "color": "#FF0000"}],
        })

        svg = generate_number_line(widget)

        assert 'fill="#FF0000"' in svg
        assert ">A</text>" in svg
        assert ">-5</text>" in svg

    def test_when_min_not_below_max_then_raises(self):
        with pytest.raises(GeometryPreconditionError, match="must be greater than min"):
            generate_number_line(NumberLine(min=3, max=3, major_tick_interval=1))

    def test_when_point_outside_range_then_raises(self):
        widget = NumberLine.model_validate({
            "min": 0, "max": 5, "majorTickInterval": 1, "points": [{"value": 7}],
        })

        with pytest.raises(GeometryPreconditionError, match="outside number line"):
            generate_number_line(widget)

    def test_when_interval_not_positive_then_raises(self):
        with pytest.raises(GeometryPreconditionError, match="majorTickInterval"):
            generate_number_line(NumberLine(min=0, max=5, major_tick_interval=0))


class TestBarChart:
    """Tests for generate_bar_chart()."""

    def _chart(self, data):
        return BarChart.model_validate({"yAxis": {**AXIS, "label": "Visitors"}, "data": data})

    def test_bars_and_labels_rendered(self):
        svg = generate_bar_chart(self._chart([
            {"label": "Mon", "value": 4},
            {"label": "Tue", "value": 6, "state": "unknown"},
        ]))

        assert svg.count('fill="#6495ED"') == 1
        assert 'stroke-dasharray="5 3"' in svg
        assert ">Mon</text>" in svg
        assert ">Visitors</text>" in svg

    def test_when_value_outside_axis_then_raises(self):
        with pytest.raises(GeometryPreconditionError, match="outside y axis"):
            generate_bar_chart(self._chart([{"label": "Mon", "value": 12}]))

    def test_when_no_data_then_raises(self):
        with pytest.raises(GeometryPreconditionError, match="at least one bar"):
            generate_bar_chart(self._chart([]))

    def test_when_tick_interval_not_positive_then_raises(self):
        widget = BarChart.model_validate({
            "yAxis": {"min": 0, "max": 10, "tickInterval": -1},
            "data": [{"label": "Mon", "value": 4}],
        })

        with pytest.raises(GeometryPreconditionError, match="tickInterval must be positive"):
            generate_bar_chart(widget)


class TestScatterPlot:
    """Tests for fit_regression() and generate_scatter_plot()."""

    def test_linear_fit(self):
        fitted, coefficients = fit_regression("linear", [0, 1, 2], [1, 3, 5])

        assert coefficients == pytest.approx([2.0, 1.0])
        assert fitted(3) == pytest.approx(7.0)

    def test_exponential_fit(self):
        fitted, coefficients = fit_regression("exponential", [0, 1, 2], [1, math.e, math.e ** 2])

        assert coefficients == pytest.approx([1.0, 1.0])
        assert fitted(1) == pytest.approx(math.e)

    @pytest.mark.parametrize(
        ("method", "xs", "ys", "message"),
        [
            ("linear", [1, 1], [2, 3], "2 distinct x values"),
            ("quadratic", [0, 1, 1], [0, 1, 2], "3 distinct x values"),
            ("exponential", [0, 1], [0, 2], "positive"),
            ("cubic", [0, 1, 2], [0, 1, 2], "Unknown regression method"),
        ],
    )
    def test_fit_when_data_unsuitable_then_raises(self, method, xs, ys, message):
        with pytest.raises(GeometryPreconditionError, match=message):
            fit_regression(method, xs, ys)

    def test_generate_with_best_fit_line(self):
        widget = ScatterPlot.model_validate({
            "xAxis": AXIS, "yAxis": AXIS,
            "points": [{"x": 1, "y": 2}, {"x": 3, "y": 4}, {"x": 5, "y": 7}],
            "lines": [{"type": "bestFit", "method": "quadratic", "label": "trend"}],
        })

        svg = generate_scatter_plot(widget)

        assert svg.count("<circle") == 3
        assert "<polyline" in svg
        assert 'clip-path="url(#scatter-plot-area)"' in svg
        assert ">trend</text>" in svg

    def test_generate_when_point_outside_axes_then_raises(self):
        widget = ScatterPlot.model_validate({"xAxis": AXIS, "yAxis": AXIS, "points": [{"x": 11, "y": 2}]})

        with pytest.raises(GeometryPreconditionError, match="outside the axis ranges"):
            generate_scatter_plot(widget)

    def test_generate_when_two_points_line_degenerate_then_raises(self):
        widget = ScatterPlot.model_validate({
            "xAxis": AXIS, "yAxis": AXIS, "points": [],
            "lines": [{"type": "twoPoints", "a": {"x": 1, "y": 1}, "b": {"x": 1, "y": 1}}],
        })

        with pytest.raises(GeometryPreconditionError, match="distinct points"):
            generate_scatter_plot(widget)


class TestConceptualGraph:
    """Tests for point_at_fraction() and generate_conceptual_graph()."""

    POINTS = (Point(x=0, y=0), Point(x=10, y=0), Point(x=10, y=10))

    @pytest.mark.parametrize(
        ("t", "expected"),
        [(0, (0, 0)), (0.25, (5, 0)), (0.5, (10, 0)), (0.75, (10, 5)), (1, (10, 10))],
    )
    def test_point_at_fraction_follows_arc_length(self, t, expected):
        assert point_at_fraction(self.POINTS, t) == pytest.approx(expected)

    def test_generate_with_highlight_points(self):
        widget = ConceptualGraph(
            x_axis_label="Time",
            y_axis_label="Distance",
            curve_points=self.POINTS,
            highlight_points=[{"t": 0.5, "label": "P"}],
        )

        svg = generate_conceptual_graph(widget)

        assert 'marker-end="url(#graph-arrow)"' in svg
        assert ">P</text>" in svg
        assert ">Time</text>" in svg


class TestHtmlWidgets:
    """Tests for the data table and URL image generators."""

    def test_data_table_when_row_width_wrong_then_raises(self):
        widget = DataTable.model_validate({
            "columns": [{"key": "a", "label": "A"}, {"key": "b", "label": "B"}],
            "rows": [["1"]],
        })

        with pytest.raises(GeometryPreconditionError, match="Row 0 has 1 cells, expected 2"):
            generate_data_table(widget)

    def test_data_table_numbers_formatted(self):
        widget = DataTable.model_validate({
            "title": "Heights",
            "columns": [{"key": "a", "label": "Height"}],
            "rows": [[2.0], [1.25]],
        })

        html = generate_data_table(widget)

        assert "<caption>Heights</caption>" in html
        assert "<td>2</td>" in html
        assert "<td>1.25</td>" in html

    def test_url_image_when_not_http_then_raises(self):
        with pytest.raises(GeometryPreconditionError, match="must be http"):
            generate_url_image(UrlImage(url="web+graphie://x", alt="graph"))

    def test_url_image_with_caption_then_figure(self):
        html = generate_url_image(UrlImage(url="https://example.org/a.png", alt="Map", caption="Anatolia"))

        assert html == (
            '<figure><img src="https://example.org/a.png" alt="Map"/>'
            "<figcaption>Anatolia</figcaption></figure>"
        )

    def test_generate_widget_dispatches_by_type(self):
        html = generate_widget(UrlImage(url="https://example.org/a.png", alt="Map", width=120))

        assert html == '<p><img src="https://example.org/a.png" alt="Map" width="120"/></p>'


def _view_box_x_range(svg_text):
    min_x, _, width, _ = map(float, re.search(r'<svg [^>]*viewBox="([^"]+)"', svg_text).group(1).split())
    return min_x, min_x + width


def _rendered_xs(svg_text):
    """Every x coordinate an element is anchored at or passes through."""
    xs = [float(value) for value in re.findall(r'\s(?:x|cx|x1|x2)="(-?[\d.]+)"', svg_text)]
    for points in re.findall(r'<poly(?:gon|line) points="([^"]+)"', svg_text):
        xs.extend(float(pair.split(",")[0]) for pair in points.split())
    return xs


def _text_spans(svg_text):
    """Estimated horizontal span of each unrotated text run."""
    spans = []
    for attributes, content in re.findall(r"<text ([^>]*)>([^<]*)</text>", svg_text):
        attrs = dict(re.findall(r'([\w-]+)="([^"]*)"', attributes))
        if "transform" in attrs:
            continue
        x = float(attrs["x"])
        run = LayoutExtent(x, x).include_text(x, html.unescape(content), attrs.get("text-anchor", "start"))
        spans.append((run.min_x, run.max_x))
    return spans


SVG_WIDGETS = [
    pytest.param(PolyhedronDiagram.model_validate({
        "shape": {"type": "rectangularPrism", "length": 4, "width": 10, "height": 6},
        "labels": [
            {"text": "length of the long side", "target": "length"},
            {"text": "height in centimetres", "target": "height"},
            {"text": "width", "target": "width"},
        ],
        "diagonals": [{"fromVertexIndex": 0, "toVertexIndex": 6, "label": "space diagonal d"}],
    }), id="rectangular-prism"),
    pytest.param(PolyhedronDiagram.model_validate({
        "shape": {"type": "triangularPyramid", "baseWidth": 8, "baseDepth": 6, "height": 5},
        "labels": [{"text": "perpendicular height h", "target": "height"}],
    }), id="triangular-pyramid"),
    pytest.param(NumberLine.model_validate({
        "min": 0, "max": 10, "majorTickInterval": 1,
        "specialTickLabels": [
            {"value": 0, "label": "starting point of the trail"},
            {"value": 10, "label": "ten thousand units"},
        ],
    }), id="number-line-horizontal"),
    pytest.param(NumberLine.model_validate({
        "orientation": "vertical", "height": 300, "min": -10, "max": 40, "majorTickInterval": 10,
        "points": [{"value": 0, "label": "freezing point of water", "labelPosition": "left"}],
    }), id="number-line-vertical"),
    pytest.param(BarChart.model_validate({
        "title": "Visitors to the museum during the first week of the summer holidays",
        "yAxis": {**AXIS, "label": "Visitors"},
        "data": [
            {"label": "Monday morning", "value": 4},
            {"label": "Tuesday afternoon", "value": 6},
            {"label": "Wednesday evening", "value": 8},
        ],
    }), id="bar-chart"),
    pytest.param(ScatterPlot.model_validate({
        "xAxis": {**AXIS, "label": "Hours studied"}, "yAxis": AXIS,
        "points": [{"x": 1, "y": 2}, {"x": 5, "y": 5}, {"x": 10, "y": 9, "label": "maximum recorded value"}],
        "lines": [{"type": "bestFit", "method": "linear", "label": "line of best fit"}],
    }), id="scatter-plot"),
    pytest.param(ConceptualGraph.model_validate({
        "xAxisLabel": "Time",
        "yAxisLabel": "Distance",
        "curvePoints": [{"x": 0, "y": 0}, {"x": 10, "y": 10}],
        "highlightPoints": [{"t": 0, "label": "starting position of the runner"}],
    }), id="conceptual-graph"),
]


class TestViewBoxBounds:
    """The dynamic viewBox covers everything a generator draws."""

    @pytest.mark.parametrize("widget", SVG_WIDGETS)
    def test_every_x_coordinate_inside_view_box(self, widget):
        svg_text = generate_widget(widget)
        left, right = _view_box_x_range(svg_text)

        xs = _rendered_xs(svg_text)

        assert xs
        assert all(left - 0.01 <= x <= right + 0.01 for x in xs)

    @pytest.mark.parametrize("widget", SVG_WIDGETS)
    def test_every_text_run_inside_view_box(self, widget):
        svg_text = generate_widget(widget)
        left, right = _view_box_x_range(svg_text)

        spans = _text_spans(svg_text)

        assert spans
        assert all(left - 0.01 <= start and end <= right + 0.01 for start, end in spans)

    def test_long_left_label_then_view_box_starts_left_of_origin(self):
        svg_text = generate_widget(SVG_WIDGETS[6].values[0])

        assert _view_box_x_range(svg_text)[0] < 0
