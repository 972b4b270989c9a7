"""Vertical bar chart generator."""

from __future__ import annotations

import logging

from perseus_qti.config import get_settings
from perseus_qti.errors import GeometryPreconditionError
from perseus_qti.widgets import svg
from perseus_qti.widgets.axes import (
    build_frame,
    render_axes,
    render_gridlines,
    render_titles,
    validate_axis,
)
from perseus_qti.widgets.layout import LayoutExtent, compute_dynamic_width, svg_open
from perseus_qti.widgets.models import BarChart

logger = logging.getLogger(__name__)

# Fraction of each category band occupied by its bar
BAR_WIDTH_RATIO = 0.8


def generate_bar_chart(widget: BarChart) -> str:
    """Render a bar chart widget to an SVG string.

    Bars in the "unknown" state are drawn as a dashed outline so the
    value can be asked about without being shown.

    Raises:
        GeometryPreconditionError: On an invalid y axis, no data, or a
            value outside the axis range.
    """
    validate_axis(widget.y_axis, "yAxis")
    if not widget.data:
        raise GeometryPreconditionError("Bar chart needs at least one bar")
    for bar in widget.data:
        if not widget.y_axis.min <= bar.value <= widget.y_axis.max:
            raise GeometryPreconditionError(
                f"Bar '{bar.label}' value {bar.value} outside y axis "
                f"[{widget.y_axis.min}, {widget.y_axis.max}]",
            )

    frame = build_frame(
        widget.width, widget.height,
        (0.0, float(len(widget.data))),
        (widget.y_axis.min, widget.y_axis.max),
    )
    extent = LayoutExtent.for_canvas(widget.width)

    gridlines = render_gridlines(frame, None, widget.y_axis)
    axes, extent = render_axes(frame, None, widget.y_axis, extent)

    baseline_value = min(max(0.0, widget.y_axis.min), widget.y_axis.max)
    baseline_y = frame.to_svg_y(baseline_value)
    band = frame.plot_width / len(widget.data)
    bar_width = band * BAR_WIDTH_RATIO

    bar_parts: list[str] = []
    label_parts: list[str] = []
    for index, bar in enumerate(widget.data):
        x = frame.left + index * band + (band - bar_width) / 2
        value_y = frame.to_svg_y(bar.value)
        top = min(value_y, baseline_y)
        bar_height = abs(baseline_y - value_y)
        if bar.state == "unknown":
            bar_parts.append(svg.rect(
                x, top, bar_width, bar_height,
                fill="none", stroke=widget.bar_color, stroke_width=2, stroke_dasharray="5 3",
            ))
        else:
            bar_parts.append(svg.rect(x, top, bar_width, bar_height, fill=widget.bar_color))
        center_x = x + bar_width / 2
        label_parts.append(svg.text(center_x, frame.bottom + 20, bar.label, text_anchor="middle"))
        extent = extent.include_text(center_x, bar.label, "middle")

    titles, extent = render_titles(
        frame, widget.title, widget.x_axis_label, widget.y_axis.label, extent,
    )

    view_box = compute_dynamic_width(extent, widget.height, get_settings().axis_viewbox_padding)
    logger.debug("Rendered barChart: %d bars, viewBox %s", len(widget.data), view_box.attribute)
    return (
        svg_open(view_box)
        + gridlines
        + axes
        + "".join(bar_parts)
        + "".join(label_parts)
        + titles
        + "</svg>"
    )
