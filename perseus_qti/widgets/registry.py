"""Dispatch from widget type to its generator."""

from __future__ import annotations

from typing import Callable

from perseus_qti.widgets.bar_chart import generate_bar_chart
from perseus_qti.widgets.conceptual_graph import generate_conceptual_graph
from perseus_qti.widgets.html_widgets import generate_data_table, generate_url_image
from perseus_qti.widgets.models import Widget, WidgetType
from perseus_qti.widgets.number_line import generate_number_line
from perseus_qti.widgets.polyhedron import generate_polyhedron_diagram
from perseus_qti.widgets.scatter_plot import generate_scatter_plot

WIDGET_GENERATORS: dict[WidgetType, Callable[..., str]] = {
    WidgetType.POLYHEDRON_DIAGRAM: generate_polyhedron_diagram,
    WidgetType.SCATTER_PLOT: generate_scatter_plot,
    WidgetType.BAR_CHART: generate_bar_chart,
    WidgetType.CONCEPTUAL_GRAPH: generate_conceptual_graph,
    WidgetType.NUMBER_LINE: generate_number_line,
    WidgetType.DATA_TABLE: generate_data_table,
    WidgetType.URL_IMAGE: generate_url_image,
}


def generate_widget(widget: Widget) -> str:
    """Render *widget* to SVG (charts, diagrams) or XHTML (tables, images)."""
    return WIDGET_GENERATORS[WidgetType(widget.type)](widget)
