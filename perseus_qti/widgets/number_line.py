"""Number line generator (horizontal or vertical)."""

from __future__ import annotations

import logging
import math

from perseus_qti.config import get_settings
from perseus_qti.errors import GeometryPreconditionError
from perseus_qti.utils.xml_utils import format_number
from perseus_qti.widgets import svg
from perseus_qti.widgets.layout import LayoutExtent, compute_dynamic_width, svg_open
from perseus_qti.widgets.models import NumberLine

logger = logging.getLogger(__name__)

PADDING = 40.0
MAJOR_TICK = 8.0
MINOR_TICK = 4.0
POINT_RADIUS = 5.0
MAX_MAJOR_TICKS = 200


def _validate(widget: NumberLine) -> None:
    if not (widget.width > 0 and widget.height > 0):
        raise GeometryPreconditionError(
            f"Number line width and height must be positive, got {widget.width}x{widget.height}",
        )
    if not widget.max > widget.min:
        raise GeometryPreconditionError(
            f"Number line max ({widget.max}) must be greater than min ({widget.min})",
        )
    if not widget.major_tick_interval > 0:
        raise GeometryPreconditionError(
            f"majorTickInterval must be positive, got {widget.major_tick_interval}",
        )
    if (widget.max - widget.min) / widget.major_tick_interval > MAX_MAJOR_TICKS:
        raise GeometryPreconditionError("majorTickInterval yields too many ticks")
    for value in [p.value for p in widget.points] + [t.value for t in widget.special_tick_labels]:
        if not widget.min <= value <= widget.max:
            raise GeometryPreconditionError(
                f"Value {value} outside number line [{widget.min}, {widget.max}]",
            )
    length = widget.width if widget.orientation == "horizontal" else widget.height
    if length <= 2 * PADDING:
        raise GeometryPreconditionError(f"Number line is too short ({length}px) for its padding")


def major_ticks(widget: NumberLine) -> list[float]:
    count = math.floor((widget.max - widget.min) / widget.major_tick_interval + 1e-9)
    return [round(widget.min + i * widget.major_tick_interval, 10) for i in range(count + 1)]


def generate_number_line(widget: NumberLine) -> str:
    """Render a number line widget to an SVG string.

    Raises:
        GeometryPreconditionError: On an empty range, a non-positive tick
            interval or points outside the range.
    """
    _validate(widget)
    horizontal = widget.orientation == "horizontal"
    span = (widget.width if horizontal else widget.height) - 2 * PADDING

    def position(value: float) -> float:
        offset = (value - widget.min) / (widget.max - widget.min) * span
        # Vertical lines grow upward
        return PADDING + offset if horizontal else widget.height - PADDING - offset

    axis_coord = widget.height / 2 if horizontal else widget.width / 2
    special = {round(tick.value, 10): tick.label for tick in widget.special_tick_labels}

    def at(along: float, across: float) -> tuple[float, float]:
        return (along, across) if horizontal else (across, along)

    extent = LayoutExtent.for_canvas(widget.width)
    parts = [svg.line(*at(position(widget.min), axis_coord), *at(position(widget.max), axis_coord),
                      stroke="#000000", stroke_width=2)]

    ticks = major_ticks(widget)
    for index, value in enumerate(ticks):
        along = position(value)
        parts.append(svg.line(*at(along, axis_coord - MAJOR_TICK), *at(along, axis_coord + MAJOR_TICK),
                              stroke="#000000", stroke_width=1.5))
        if widget.minor_ticks_per_interval and index < len(ticks) - 1:
            step = widget.major_tick_interval / (widget.minor_ticks_per_interval + 1)
            for minor in range(1, widget.minor_ticks_per_interval + 1):
                minor_along = position(value + minor * step)
                parts.append(svg.line(
                    *at(minor_along, axis_coord - MINOR_TICK), *at(minor_along, axis_coord + MINOR_TICK),
                    stroke="#000000", stroke_width=1,
                ))
        label = special.get(round(value, 10))
        if label is None and widget.show_tick_labels:
            label = format_number(value)
        if label is None:
            continue
        if horizontal:
            x, y, anchor = along, axis_coord + MAJOR_TICK + 16, "middle"
        else:
            x, y, anchor = axis_coord - MAJOR_TICK - 6, along + 4, "end"
        parts.append(svg.text(x, y, label, text_anchor=anchor))
        extent = extent.include_text(x, label, anchor)

    # Special labels that do not fall on a major tick
    for value, label in special.items():
        if value in ticks:
            continue
        along = position(value)
        parts.append(svg.line(*at(along, axis_coord - MAJOR_TICK), *at(along, axis_coord + MAJOR_TICK),
                              stroke="#000000", stroke_width=1.5))
        if horizontal:
            x, y, anchor = along, axis_coord + MAJOR_TICK + 16, "middle"
        else:
            x, y, anchor = axis_coord - MAJOR_TICK - 6, along + 4, "end"
        parts.append(svg.text(x, y, label, text_anchor=anchor))
        extent = extent.include_text(x, label, anchor)

    for point in widget.points:
        cx, cy = at(position(point.value), axis_coord)
        parts.append(svg.circle(cx, cy, POINT_RADIUS, fill=point.color))
        extent = extent.include_point_x(cx - POINT_RADIUS).include_point_x(cx + POINT_RADIUS)
        if not point.label:
            continue
        placement = point.label_position or ("above" if horizontal else "right")
        if placement == "above":
            x, y, anchor = cx, cy - 12, "middle"
        elif placement == "below":
            x, y, anchor = cx, cy + 22, "middle"
        elif placement == "left":
            x, y, anchor = cx - 10, cy + 4, "end"
        else:
            x, y, anchor = cx + 10, cy + 4, "start"
        parts.append(svg.text(x, y, point.label, text_anchor=anchor, fill=point.color, font_weight="bold"))
        extent = extent.include_text(x, point.label, anchor)

    view_box = compute_dynamic_width(extent, widget.height, get_settings().axis_viewbox_padding)
    logger.debug("Rendered numberLine (%s), viewBox %s", widget.orientation, view_box.attribute)
    return svg_open(view_box) + "".join(parts) + "</svg>"
