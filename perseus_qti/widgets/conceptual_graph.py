"""Conceptual graph generator: an unscaled curve with labelled points.

Axes carry titles and arrowheads but no numbers. Highlight points sit at
a fraction ``t`` of the curve's arc length.
"""

from __future__ import annotations

import logging
import math

from perseus_qti.config import get_settings
from perseus_qti.widgets import svg
from perseus_qti.widgets.axes import build_frame, clip_group, render_titles
from perseus_qti.widgets.layout import LayoutExtent, compute_dynamic_width, svg_open
from perseus_qti.widgets.models import ConceptualGraph, Point

logger = logging.getLogger(__name__)

ARROW_MARKER = (
    '<defs><marker id="graph-arrow" viewBox="0 0 10 10" refX="8" refY="5" '
    'markerWidth="6" markerHeight="6" orient="auto-start-reverse">'
    '<path d="M 0 0 L 10 5 L 0 10 z" fill="#000000"/></marker></defs>'
)


def point_at_fraction(points: tuple[Point, ...], t: float) -> tuple[float, float]:
    """Point at fraction *t* (0..1) of the polyline's total length."""
    lengths = [0.0]
    for previous, current in zip(points, points[1:]):
        lengths.append(lengths[-1] + math.hypot(current.x - previous.x, current.y - previous.y))
    total = lengths[-1]
    if total == 0 or t <= 0:
        return points[0].x, points[0].y
    if t >= 1:
        return points[-1].x, points[-1].y
    target = t * total
    for index in range(len(points) - 1):
        start, end = lengths[index], lengths[index + 1]
        if start <= target <= end:
            local = 0.0 if end == start else (target - start) / (end - start)
            p0, p1 = points[index], points[index + 1]
            return p0.x + (p1.x - p0.x) * local, p0.y + (p1.y - p0.y) * local
    return points[-1].x, points[-1].y


def generate_conceptual_graph(widget: ConceptualGraph) -> str:
    """Render a conceptual graph widget to an SVG string."""
    xs = [p.x for p in widget.curve_points]
    ys = [p.y for p in widget.curve_points]
    x_range = (min(xs), max(xs))
    y_range = (min(ys), max(ys))
    # A flat curve still needs a non-empty range to map through
    if x_range[0] == x_range[1]:
        x_range = (x_range[0] - 1, x_range[1] + 1)
    if y_range[0] == y_range[1]:
        y_range = (y_range[0] - 1, y_range[1] + 1)
    frame = build_frame(widget.width, widget.height, x_range, y_range)
    extent = LayoutExtent.for_canvas(widget.width)

    axes = (
        ARROW_MARKER
        + svg.line(frame.left, frame.bottom, frame.left, frame.top,
                   stroke="#000000", stroke_width=2, marker_end="url(#graph-arrow)")
        + svg.line(frame.left, frame.bottom, frame.right, frame.bottom,
                   stroke="#000000", stroke_width=2, marker_end="url(#graph-arrow)")
    )
    extent = extent.include_point_x(frame.left).include_point_x(frame.right)

    curve = [(frame.to_svg_x(p.x), frame.to_svg_y(p.y)) for p in widget.curve_points]
    for x, _ in curve:
        extent = extent.include_point_x(x)
    curve_svg = svg.polyline(
        curve, fill="none", stroke=widget.curve_color, stroke_width=3,
        stroke_linejoin="round", stroke_linecap="round",
    )

    point_parts: list[str] = []
    label_parts: list[str] = []
    radius = widget.highlight_point_radius
    for highlight in widget.highlight_points:
        data_x, data_y = point_at_fraction(widget.curve_points, highlight.t)
        cx, cy = frame.to_svg_x(data_x), frame.to_svg_y(data_y)
        point_parts.append(svg.circle(cx, cy, radius, fill=widget.highlight_point_color))
        extent = extent.include_point_x(cx - radius).include_point_x(cx + radius)
        label_x = cx - radius - 5
        label_parts.append(svg.text(
            label_x, cy, highlight.label, text_anchor="end",
            dominant_baseline="middle", font_weight="bold",
        ))
        extent = extent.include_text(label_x, highlight.label, "end")

    titles, extent = render_titles(frame, None, widget.x_axis_label, widget.y_axis_label, extent)

    view_box = compute_dynamic_width(extent, widget.height, get_settings().axis_viewbox_padding)
    logger.debug(
        "Rendered conceptualGraph: %d curve points, viewBox %s",
        len(widget.curve_points), view_box.attribute,
    )
    return (
        svg_open(view_box, font_size=14)
        + axes
        + clip_group("conceptual-graph-area", frame, curve_svg)
        + "".join(point_parts)
        + "".join(label_parts)
        + titles
        + "</svg>"
    )
