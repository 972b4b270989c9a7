"""Shared chart frame: plot area, per-axis affine transforms, axes and ticks.

Every chart maps data space to pixel space through one fixed affine
transform per axis. Tick and gridline positions come straight from the
axis spec (``min``, ``max``, ``tick_interval``), never from the data.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from perseus_qti.errors import GeometryPreconditionError
from perseus_qti.utils.xml_utils import format_number
from perseus_qti.widgets import svg
from perseus_qti.widgets.layout import LayoutExtent
from perseus_qti.widgets.models import AxisSpec

MARGIN_LEFT = 60.0
MARGIN_RIGHT = 20.0
MARGIN_TOP = 40.0
MARGIN_BOTTOM = 50.0
TICK_LENGTH = 5.0
GRID_COLOR = "#DDDDDD"
AXIS_COLOR = "#000000"
MAX_TICKS = 200


@dataclass(frozen=True)
class ChartFrame:
    """Plot area inside the canvas plus the data ranges it displays."""

    width: float
    height: float
    left: float
    top: float
    plot_width: float
    plot_height: float
    x_min: float
    x_max: float
    y_min: float
    y_max: float

    @property
    def bottom(self) -> float:
        return self.top + self.plot_height

    @property
    def right(self) -> float:
        return self.left + self.plot_width

    def to_svg_x(self, value: float) -> float:
        return self.left + (value - self.x_min) / (self.x_max - self.x_min) * self.plot_width

    def to_svg_y(self, value: float) -> float:
        return self.bottom - (value - self.y_min) / (self.y_max - self.y_min) * self.plot_height


def validate_axis(axis: AxisSpec, name: str) -> None:
    """Reject empty ranges and tick intervals that cannot step the range."""
    if not axis.max > axis.min:
        raise GeometryPreconditionError(
            f"{name} max ({axis.max}) must be greater than min ({axis.min})",
        )
    if not axis.tick_interval > 0:
        raise GeometryPreconditionError(
            f"{name} tickInterval must be positive, got {axis.tick_interval}",
        )
    if (axis.max - axis.min) / axis.tick_interval > MAX_TICKS:
        raise GeometryPreconditionError(
            f"{name} tickInterval {axis.tick_interval} yields more than {MAX_TICKS} ticks",
        )


def tick_values(axis: AxisSpec) -> list[float]:
    """Tick positions from ``min`` to ``max`` inclusive, ``tick_interval`` apart."""
    count = math.floor((axis.max - axis.min) / axis.tick_interval + 1e-9)
    # Round away float accumulation noise (0.1 + 0.2 style)
    return [round(axis.min + i * axis.tick_interval, 10) for i in range(count + 1)]


def build_frame(
    width: float,
    height: float,
    x_range: tuple[float, float],
    y_range: tuple[float, float],
) -> ChartFrame:
    """Lay out the plot area for a chart of the given canvas size."""
    if not (width > 0 and height > 0):
        raise GeometryPreconditionError(
            f"Chart width and height must be positive, got {width}x{height}",
        )
    plot_width = width - MARGIN_LEFT - MARGIN_RIGHT
    plot_height = height - MARGIN_TOP - MARGIN_BOTTOM
    if plot_width <= 0 or plot_height <= 0:
        raise GeometryPreconditionError(
            f"Chart {width}x{height} is too small for its margins",
        )
    if not (x_range[1] > x_range[0] and y_range[1] > y_range[0]):
        raise GeometryPreconditionError(
            f"Empty data range: x={x_range}, y={y_range}",
        )
    return ChartFrame(
        width=width,
        height=height,
        left=MARGIN_LEFT,
        top=MARGIN_TOP,
        plot_width=plot_width,
        plot_height=plot_height,
        x_min=x_range[0],
        x_max=x_range[1],
        y_min=y_range[0],
        y_max=y_range[1],
    )


def render_gridlines(
    frame: ChartFrame,
    x_axis: AxisSpec | None,
    y_axis: AxisSpec | None,
) -> str:
    parts = []
    if x_axis is not None and x_axis.grid_lines:
        for value in tick_values(x_axis):
            x = frame.to_svg_x(value)
            parts.append(svg.line(x, frame.top, x, frame.bottom, stroke=GRID_COLOR, stroke_width=1))
    if y_axis is not None and y_axis.grid_lines:
        for value in tick_values(y_axis):
            y = frame.to_svg_y(value)
            parts.append(svg.line(frame.left, y, frame.right, y, stroke=GRID_COLOR, stroke_width=1))
    return "".join(parts)


def render_axes(
    frame: ChartFrame,
    x_axis: AxisSpec | None,
    y_axis: AxisSpec | None,
    extent: LayoutExtent,
    show_tick_labels: bool = True,
) -> tuple[str, LayoutExtent]:
    """Axis lines, tick marks and tick labels."""
    parts = [
        svg.line(frame.left, frame.bottom, frame.right, frame.bottom, stroke=AXIS_COLOR, stroke_width=1.5),
        svg.line(frame.left, frame.top, frame.left, frame.bottom, stroke=AXIS_COLOR, stroke_width=1.5),
    ]
    extent = extent.include_point_x(frame.left).include_point_x(frame.right)
    if x_axis is not None:
        for value in tick_values(x_axis):
            x = frame.to_svg_x(value)
            parts.append(svg.line(x, frame.bottom, x, frame.bottom + TICK_LENGTH, stroke=AXIS_COLOR))
            if show_tick_labels:
                label = format_number(value)
                parts.append(svg.text(x, frame.bottom + 20, label, text_anchor="middle"))
                extent = extent.include_text(x, label, "middle")
    if y_axis is not None:
        for value in tick_values(y_axis):
            y = frame.to_svg_y(value)
            parts.append(svg.line(frame.left - TICK_LENGTH, y, frame.left, y, stroke=AXIS_COLOR))
            if show_tick_labels:
                label = format_number(value)
                x = frame.left - TICK_LENGTH - 3
                parts.append(svg.text(x, y + 4, label, text_anchor="end"))
                extent = extent.include_text(x, label, "end")
    return "".join(parts), extent


def render_titles(
    frame: ChartFrame,
    title: str | None,
    x_label: str | None,
    y_label: str | None,
    extent: LayoutExtent,
) -> tuple[str, LayoutExtent]:
    """Chart title and axis titles (the y title is rotated)."""
    parts = []
    center_x = frame.left + frame.plot_width / 2
    if title:
        parts.append(svg.text(center_x, frame.top / 2, title, text_anchor="middle", font_weight="bold"))
        extent = extent.include_text(center_x, title, "middle")
    if x_label:
        y = frame.bottom + 40
        parts.append(svg.text(center_x, y, x_label, text_anchor="middle"))
        extent = extent.include_text(center_x, x_label, "middle")
    if y_label:
        x = 15.0
        y = frame.top + frame.plot_height / 2
        parts.append(svg.text(
            x, y, y_label, text_anchor="middle",
            transform=f"rotate(-90, {format_number(x)}, {format_number(y)})",
        ))
        # Rotated text spans roughly one line height horizontally
        extent = extent.include_point_x(x - 8).include_point_x(x + 8)
    return "".join(parts), extent


def clip_group(clip_id: str, frame: ChartFrame, content: str) -> str:
    """Wrap plot-area geometry in a clip path so lines stop at the frame."""
    return (
        f'<defs><clipPath id="{clip_id}">'
        f"{svg.rect(frame.left, frame.top, frame.plot_width, frame.plot_height)}"
        f"</clipPath></defs>"
        f'<g clip-path="url(#{clip_id})">{content}</g>'
    )
