"""Scatter plot generator with regression and literal trend lines."""

from __future__ import annotations

import logging
import math
from typing import Callable

import numpy as np

from perseus_qti.config import get_settings
from perseus_qti.errors import GeometryPreconditionError
from perseus_qti.widgets import svg
from perseus_qti.widgets.axes import (
    build_frame,
    clip_group,
    render_axes,
    render_gridlines,
    render_titles,
    validate_axis,
)
from perseus_qti.widgets.layout import LayoutExtent, compute_dynamic_width, svg_open
from perseus_qti.widgets.models import BestFitLine, ScatterPlot, TwoPointsLine

logger = logging.getLogger(__name__)

POINT_RADIUS = 4.0
CURVE_SAMPLES = 100


# ---------------------------------------------------------------------------
# Regression
# ---------------------------------------------------------------------------


def fit_regression(
    method: str,
    xs: list[float],
    ys: list[float],
) -> tuple[Callable[[float], float], list[float]]:
    """Least-squares fit of the scatter data.

    Args:
        method: "linear" (y = mx + b), "quadratic" (y = ax² + bx + c) or
            "exponential" (y = a·e^(bx)).
        xs: Point x values.
        ys: Point y values.

    Returns:
        The fitted function and its coefficients (highest power first for
        polynomials, ``[a, b]`` for exponential).

    Raises:
        GeometryPreconditionError: If the data cannot support the fit.
    """
    distinct_x = len(set(xs))
    if method == "linear":
        if distinct_x < 2:
            raise GeometryPreconditionError("Linear fit needs at least 2 distinct x values")
        slope, intercept = np.polyfit(xs, ys, 1)
        return (lambda x: float(slope * x + intercept)), [float(slope), float(intercept)]
    if method == "quadratic":
        if distinct_x < 3:
            raise GeometryPreconditionError("Quadratic fit needs at least 3 distinct x values")
        a, b, c = np.polyfit(xs, ys, 2)
        return (lambda x: float(a * x * x + b * x + c)), [float(a), float(b), float(c)]
    if method == "exponential":
        if distinct_x < 2:
            raise GeometryPreconditionError("Exponential fit needs at least 2 distinct x values")
        if any(y <= 0 for y in ys):
            raise GeometryPreconditionError("Exponential fit requires all y values to be positive")
        rate, log_scale = np.polyfit(xs, np.log(ys), 1)
        scale = math.exp(log_scale)
        return (lambda x: float(scale * math.exp(rate * x))), [scale, float(rate)]
    raise GeometryPreconditionError(f"Unknown regression method '{method}'")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _line_attrs(line: BestFitLine | TwoPointsLine) -> dict[str, object]:
    return {
        "stroke": line.style.color,
        "stroke_width": line.style.stroke_width,
        "stroke_dasharray": "6 4" if line.style.dash else None,
        "fill": "none",
    }


def generate_scatter_plot(widget: ScatterPlot) -> str:
    """Render a scatter plot widget to an SVG string.

    Raises:
        GeometryPreconditionError: On invalid axes, points outside the
            axis ranges, degenerate two-point lines or unfittable data.
    """
    validate_axis(widget.x_axis, "xAxis")
    validate_axis(widget.y_axis, "yAxis")
    for point in widget.points:
        if not (widget.x_axis.min <= point.x <= widget.x_axis.max
                and widget.y_axis.min <= point.y <= widget.y_axis.max):
            raise GeometryPreconditionError(
                f"Point ({point.x}, {point.y}) lies outside the axis ranges",
            )

    frame = build_frame(
        widget.width, widget.height,
        (widget.x_axis.min, widget.x_axis.max),
        (widget.y_axis.min, widget.y_axis.max),
    )
    extent = LayoutExtent.for_canvas(widget.width)

    gridlines = render_gridlines(frame, widget.x_axis, widget.y_axis)
    axes, extent = render_axes(frame, widget.x_axis, widget.y_axis, extent)

    trend_parts: list[str] = []
    label_parts: list[str] = []
    xs = [p.x for p in widget.points]
    ys = [p.y for p in widget.points]
    for line in widget.lines:
        if isinstance(line, TwoPointsLine):
            if line.a.x == line.b.x and line.a.y == line.b.y:
                raise GeometryPreconditionError(
                    f"twoPoints line needs distinct points, got ({line.a.x}, {line.a.y}) twice",
                )
            if line.a.x == line.b.x:
                x = frame.to_svg_x(line.a.x)
                trend_parts.append(svg.line(x, frame.top, x, frame.bottom, **_line_attrs(line)))
                end_x, end_y = x, frame.top
            else:
                slope = (line.b.y - line.a.y) / (line.b.x - line.a.x)
                x0, x1 = widget.x_axis.min, widget.x_axis.max
                y0 = line.a.y + slope * (x0 - line.a.x)
                y1 = line.a.y + slope * (x1 - line.a.x)
                trend_parts.append(svg.line(
                    frame.to_svg_x(x0), frame.to_svg_y(y0),
                    frame.to_svg_x(x1), frame.to_svg_y(y1),
                    **_line_attrs(line),
                ))
                end_x, end_y = frame.right, frame.to_svg_y(y1)
        else:
            fitted, coefficients = fit_regression(line.method, xs, ys)
            logger.debug("Fitted %s regression: %s", line.method, coefficients)
            samples = CURVE_SAMPLES if line.method != "linear" else 1
            step = (widget.x_axis.max - widget.x_axis.min) / samples
            curve = [
                (frame.to_svg_x(widget.x_axis.min + i * step),
                 frame.to_svg_y(fitted(widget.x_axis.min + i * step)))
                for i in range(samples + 1)
            ]
            trend_parts.append(svg.polyline(curve, **_line_attrs(line)))
            end_x, end_y = curve[-1]
        if line.label:
            label_x = end_x - 5
            label_y = min(max(end_y - 6, frame.top + 12), frame.bottom - 6)
            label_parts.append(svg.text(
                label_x, label_y, line.label, text_anchor="end",
                fill=line.style.color, style=svg.LABEL_HALO_STYLE,
            ))
            extent = extent.include_text(label_x, line.label, "end")

    point_parts: list[str] = []
    for point in widget.points:
        px, py = frame.to_svg_x(point.x), frame.to_svg_y(point.y)
        point_parts.append(svg.circle(px, py, POINT_RADIUS, fill=widget.point_color))
        extent = extent.include_point_x(px - POINT_RADIUS).include_point_x(px + POINT_RADIUS)
        if point.label:
            label_parts.append(svg.text(px + 5, py - 5, point.label, text_anchor="start"))
            extent = extent.include_text(px + 5, point.label, "start")

    titles, extent = render_titles(
        frame, widget.title, widget.x_axis.label, widget.y_axis.label, extent,
    )

    view_box = compute_dynamic_width(extent, widget.height, get_settings().axis_viewbox_padding)
    logger.debug(
        "Rendered scatterPlot: %d points, %d lines, viewBox %s",
        len(widget.points), len(widget.lines), view_box.attribute,
    )
    return (
        svg_open(view_box)
        + gridlines
        + axes
        + clip_group("scatter-plot-area", frame, "".join(trend_parts))
        + "".join(point_parts)
        + "".join(label_parts)
        + titles
        + "</svg>"
    )

