"""Tiny SVG element builders shared by the widget generators."""

from __future__ import annotations

from perseus_qti.utils.xml_utils import escape_attr, escape_text, format_number

LABEL_HALO_STYLE = "paint-order: stroke; stroke: #fff; stroke-width: 3px; stroke-linejoin: round;"


def _attrs(attributes: dict[str, object]) -> str:
    parts = []
    for name, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, float):
            value = format_number(value)
        parts.append(f'{name}="{escape_attr(value)}"')
    return " ".join(parts)


def line(x1: float, y1: float, x2: float, y2: float, **attributes: object) -> str:
    base = {"x1": float(x1), "y1": float(y1), "x2": float(x2), "y2": float(y2)}
    base.update(_rename(attributes))
    return f"<line {_attrs(base)}/>"


def text(x: float, y: float, content: str, **attributes: object) -> str:
    base: dict[str, object] = {"x": float(x), "y": float(y)}
    base.update(_rename(attributes))
    return f"<text {_attrs(base)}>{escape_text(content)}</text>"


def circle(cx: float, cy: float, r: float, **attributes: object) -> str:
    base: dict[str, object] = {"cx": float(cx), "cy": float(cy), "r": float(r)}
    base.update(_rename(attributes))
    return f"<circle {_attrs(base)}/>"


def rect(x: float, y: float, width: float, height: float, **attributes: object) -> str:
    base: dict[str, object] = {
        "x": float(x), "y": float(y), "width": float(width), "height": float(height),
    }
    base.update(_rename(attributes))
    return f"<rect {_attrs(base)}/>"


def points_attr(points: list[tuple[float, float]]) -> str:
    return " ".join(f"{format_number(x)},{format_number(y)}" for x, y in points)


def polygon(points: list[tuple[float, float]], **attributes: object) -> str:
    base: dict[str, object] = {"points": points_attr(points)}
    base.update(_rename(attributes))
    return f"<polygon {_attrs(base)}/>"


def polyline(points: list[tuple[float, float]], **attributes: object) -> str:
    base: dict[str, object] = {"points": points_attr(points)}
    base.update(_rename(attributes))
    return f"<polyline {_attrs(base)}/>"


def _rename(attributes: dict[str, object]) -> dict[str, object]:
    """Map python keyword names to SVG attribute names (stroke_width -> stroke-width)."""
    return {name.rstrip("_").replace("_", "-"): value for name, value in attributes.items()}
