"""Polyhedron diagram generator.

Solids are modelled in 3D (x right, y up, z away from the viewer) and
drawn with a fixed oblique projection: a point at depth ``z`` is shifted
``z`` pixels right and ``z / 2`` pixels up. Widths and heights are
scaled by 5 px per unit, depths by 3 px per unit.

Vertex numbering is part of the widget contract: diagonals and labels
refer to vertices only by these indices.

rectangularPrism (8 vertices)::

    0 front-bottom-left   1 front-bottom-right   2 front-top-right   3 front-top-left
    4 back-bottom-left    5 back-bottom-right    6 back-top-right    7 back-top-left

triangularPrism (6 vertices)::

    0 front-bottom-left   1 front-bottom-right   2 front-apex
    3 back-bottom-left    4 back-bottom-right    5 back-apex

rectangularPyramid (5 vertices)::

    0 base-front-left   1 base-front-right   2 base-back-right   3 base-back-left   4 apex

triangularPyramid (4 vertices)::

    0 base-front-left   1 base-front-right   2 base-back   3 apex (above the base centroid)

A face is visible when its outward normal points toward the viewer along
the projection direction. Edges that belong to no visible face are hidden:
drawn dashed when ``show_hidden_edges`` is set, omitted otherwise.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from perseus_qti.config import get_settings
from perseus_qti.errors import GeometryPreconditionError
from perseus_qti.widgets import svg
from perseus_qti.widgets.layout import LayoutExtent, compute_dynamic_width, svg_open
from perseus_qti.widgets.models import (
    PolyhedronDiagram,
    RectangularPrism,
    RectangularPyramid,
    TriangularPrism,
    TriangularPyramid,
)

logger = logging.getLogger(__name__)

Vec3 = tuple[float, float, float]

WIDTH_SCALE = 5.0
HEIGHT_SCALE = 5.0
DEPTH_SCALE = 3.0

# Direction from the solid toward the viewer for the oblique projection
# (screen shift of (dx, dy, dz) is (dx + dz, -(dy + dz / 2))).
VIEW_DIRECTION: Vec3 = (1.0, 0.5, -1.0)

STROKE = {"stroke": "black", "stroke_width": 1.5}
HIDDEN_DASH = "4 2"
DIAGONAL_DASHES = {"solid": None, "dashed": "4 2", "dotted": "2 3"}
LABEL_OFFSET = 15.0
DIAGONAL_LABEL_OFFSET = 10.0

FACE_COLORS = {
    "front_face": "rgba(255,0,0,0.2)",
    "back_face": "rgba(128,128,128,0.2)",
    "top_face": "rgba(0,0,255,0.2)",
    "bottom_face": "rgba(255,255,0,0.2)",
    "base_face": "rgba(255,255,0,0.2)",
    "side_face": "rgba(0,255,0,0.2)",
    "left_face": "rgba(0,255,0,0.2)",
    "right_face": "rgba(0,0,255,0.2)",
    "side_face_left": "rgba(0,255,0,0.2)",
    "side_face_right": "rgba(0,0,255,0.2)",
}


@dataclass
class SolidGeometry:
    """3D vertices, named faces and label anchors of one solid."""

    vertices: list[Vec3]
    faces: dict[str, list[int]]
    # target -> (start, end) of the edge or altitude the label sits beside
    edge_targets: dict[str, tuple[int, int]] = field(default_factory=dict)
    altitude_targets: dict[str, tuple[Vec3, Vec3]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Shape definitions
# ---------------------------------------------------------------------------


def _require_positive(values: dict[str, float]) -> None:
    bad = [f"{name}={value}" for name, value in values.items() if not value > 0]
    if bad:
        raise GeometryPreconditionError(
            f"Polyhedron dimensions must be positive: {', '.join(bad)}",
        )


def rectangular_prism_geometry(shape: RectangularPrism) -> SolidGeometry:
    _require_positive({"length": shape.length, "width": shape.width, "height": shape.height})
    w = shape.width * WIDTH_SCALE
    h = shape.height * HEIGHT_SCALE
    d = shape.length * DEPTH_SCALE
    vertices = [
        (0, 0, 0), (w, 0, 0), (w, h, 0), (0, h, 0),
        (0, 0, d), (w, 0, d), (w, h, d), (0, h, d),
    ]
    faces = {
        "front_face": [0, 1, 2, 3],
        "back_face": [4, 7, 6, 5],
        "top_face": [3, 2, 6, 7],
        "bottom_face": [0, 4, 5, 1],
        "side_face": [1, 5, 6, 2],
        "left_face": [0, 3, 7, 4],
    }
    return SolidGeometry(
        vertices=vertices,
        faces=faces,
        edge_targets={"width": (0, 1), "height": (0, 3), "length": (1, 5)},
    )


def triangular_prism_geometry(shape: TriangularPrism) -> SolidGeometry:
    _require_positive({"base.b": shape.base.b, "base.h": shape.base.h, "length": shape.length})
    w = shape.base.b * WIDTH_SCALE
    h = shape.base.h * HEIGHT_SCALE
    d = shape.length * DEPTH_SCALE
    vertices = [
        (0, 0, 0), (w, 0, 0), (w / 2, h, 0),
        (0, 0, d), (w, 0, d), (w / 2, h, d),
    ]
    faces = {
        "front_face": [0, 1, 2],
        "back_face": [3, 5, 4],
        "bottom_face": [0, 3, 4, 1],
        "side_face_left": [0, 2, 5, 3],
        "side_face_right": [1, 4, 5, 2],
    }
    return SolidGeometry(
        vertices=vertices,
        faces=faces,
        edge_targets={"base": (0, 1), "length": (1, 4)},
        altitude_targets={"height": ((w / 2, 0, 0), (w / 2, h, 0))},
    )


def rectangular_pyramid_geometry(shape: RectangularPyramid) -> SolidGeometry:
    _require_positive({
        "baseLength": shape.base_length, "baseWidth": shape.base_width, "height": shape.height,
    })
    w = shape.base_width * WIDTH_SCALE
    d = shape.base_length * DEPTH_SCALE
    h = shape.height * HEIGHT_SCALE
    vertices = [
        (0, 0, 0), (w, 0, 0), (w, 0, d), (0, 0, d),
        (w / 2, h, d / 2),
    ]
    faces = {
        "base_face": [0, 3, 2, 1],
        "front_face": [0, 1, 4],
        "right_face": [1, 2, 4],
        "back_face": [2, 3, 4],
        "left_face": [3, 0, 4],
    }
    return SolidGeometry(
        vertices=vertices,
        faces=faces,
        edge_targets={"baseWidth": (0, 1), "baseLength": (1, 2)},
        altitude_targets={"height": ((w / 2, 0, d / 2), (w / 2, h, d / 2))},
    )


def triangular_pyramid_geometry(shape: TriangularPyramid) -> SolidGeometry:
    _require_positive({
        "baseWidth": shape.base_width, "baseDepth": shape.base_depth, "height": shape.height,
    })
    w = shape.base_width * WIDTH_SCALE
    d = shape.base_depth * DEPTH_SCALE
    h = shape.height * HEIGHT_SCALE
    centroid = (w / 2, 0.0, d / 3)
    vertices = [
        (0, 0, 0), (w, 0, 0), (w / 2, 0, d),
        (centroid[0], h, centroid[2]),
    ]
    faces = {
        "base_face": [0, 2, 1],
        "front_face": [0, 1, 3],
        "right_face": [1, 2, 3],
        "left_face": [2, 0, 3],
    }
    return SolidGeometry(
        vertices=vertices,
        faces=faces,
        edge_targets={"baseWidth": (0, 1), "baseDepth": (1, 2)},
        altitude_targets={"height": (centroid, vertices[3])},
    )


SHAPE_BUILDERS = {
    "rectangularPrism": rectangular_prism_geometry,
    "triangularPrism": triangular_prism_geometry,
    "rectangularPyramid": rectangular_pyramid_geometry,
    "triangularPyramid": triangular_pyramid_geometry,
}


# ---------------------------------------------------------------------------
# Projection and visibility
# ---------------------------------------------------------------------------


def _sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def _dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def _centroid(points: list[Vec3]) -> Vec3:
    n = len(points)
    return (
        sum(p[0] for p in points) / n,
        sum(p[1] for p in points) / n,
        sum(p[2] for p in points) / n,
    )


def visible_faces(geometry: SolidGeometry) -> set[str]:
    """Names of faces whose outward normal faces the viewer."""
    solid_center = _centroid(geometry.vertices)
    visible = set()
    for name, indices in geometry.faces.items():
        a, b, c = (geometry.vertices[i] for i in indices[:3])
        normal = _cross(_sub(b, a), _sub(c, a))
        face_center = _centroid([geometry.vertices[i] for i in indices])
        if _dot(normal, _sub(face_center, solid_center)) < 0:
            normal = (-normal[0], -normal[1], -normal[2])
        if _dot(normal, VIEW_DIRECTION) > 1e-9:
            visible.add(name)
    return visible


def _face_edges(indices: list[int]) -> set[tuple[int, int]]:
    return {
        tuple(sorted((indices[i], indices[(i + 1) % len(indices)])))
        for i in range(len(indices))
    }


def hidden_edges(geometry: SolidGeometry) -> list[tuple[int, int]]:
    """Edges that belong to no visible face, sorted for stable output."""
    visible = visible_faces(geometry)
    all_edges: set[tuple[int, int]] = set()
    shown: set[tuple[int, int]] = set()
    for name, indices in geometry.faces.items():
        edges = _face_edges(indices)
        all_edges |= edges
        if name in visible:
            shown |= edges
    return sorted(all_edges - shown)


class _Projector:
    """Oblique projection centred on the canvas."""

    def __init__(self, vertices: list[Vec3], width: float, height: float) -> None:
        raw = [self._raw(v) for v in vertices]
        min_x = min(p[0] for p in raw)
        max_x = max(p[0] for p in raw)
        min_y = min(p[1] for p in raw)
        max_y = max(p[1] for p in raw)
        self.x_offset = (width - (max_x - min_x)) / 2 - min_x
        self.y_offset = (height - (max_y - min_y)) / 2 - min_y

    @staticmethod
    def _raw(v: Vec3) -> tuple[float, float]:
        return (v[0] + v[2], -(v[1] + v[2] * 0.5))

    def __call__(self, v: Vec3) -> tuple[float, float]:
        x, y = self._raw(v)
        return (x + self.x_offset, y + self.y_offset)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _edge_label_position(
    start: tuple[float, float],
    end: tuple[float, float],
    center: tuple[float, float],
) -> tuple[float, float, str]:
    """Place a label beside an edge, pushed away from the solid's centre."""
    mid_x = (start[0] + end[0]) / 2
    mid_y = (start[1] + end[1]) / 2
    dx, dy = end[0] - start[0], end[1] - start[1]
    length = math.hypot(dx, dy) or 1.0
    nx, ny = -dy / length, dx / length
    if nx * (mid_x - center[0]) + ny * (mid_y - center[1]) < 0:
        nx, ny = -nx, -ny
    x = mid_x + nx * LABEL_OFFSET
    y = mid_y + ny * LABEL_OFFSET
    if abs(nx) > abs(ny):
        anchor = "start" if nx > 0 else "end"
    else:
        anchor = "middle"
    return x, y, anchor


def generate_polyhedron_diagram(widget: PolyhedronDiagram) -> str:
    """Render a polyhedron diagram widget to an SVG string.

    Raises:
        GeometryPreconditionError: On non-positive dimensions, vertex
            indices outside the shape's numbering, or unknown face/label
            targets.
    """
    _require_positive({"width": widget.width, "height": widget.height})
    geometry = SHAPE_BUILDERS[widget.shape.type](widget.shape)
    vertex_count = len(geometry.vertices)

    if widget.shaded_face is not None and widget.shaded_face not in geometry.faces:
        raise GeometryPreconditionError(
            f"Unknown face '{widget.shaded_face}' for {widget.shape.type}; "
            f"expected one of {sorted(geometry.faces)}",
        )
    for diagonal in widget.diagonals:
        for index in (diagonal.from_vertex_index, diagonal.to_vertex_index):
            if index >= vertex_count:
                raise GeometryPreconditionError(
                    f"Vertex index {index} out of range for {widget.shape.type} "
                    f"(0-{vertex_count - 1})",
                )

    project = _Projector(geometry.vertices, widget.width, widget.height)
    points = [project(v) for v in geometry.vertices]
    solid_center = project(_centroid(geometry.vertices))
    visible = visible_faces(geometry)

    extent = LayoutExtent.for_canvas(widget.width)
    for x, _ in points:
        extent = extent.include_point_x(x)

    parts: list[str] = []

    # Hidden geometry first so visible outlines draw over it
    if widget.shaded_face and widget.shaded_face not in visible:
        face_points = [points[i] for i in geometry.faces[widget.shaded_face]]
        parts.append(svg.polygon(
            face_points, fill=FACE_COLORS.get(widget.shaded_face, "rgba(0,0,0,0.2)"), stroke="none",
        ))
    if widget.show_hidden_edges:
        for a, b in hidden_edges(geometry):
            parts.append(svg.line(
                *points[a], *points[b], stroke_dasharray=HIDDEN_DASH, **STROKE,
            ))

    for name, indices in geometry.faces.items():
        if name not in visible:
            continue
        fill = FACE_COLORS.get(name, "rgba(0,0,0,0.2)") if name == widget.shaded_face else "none"
        parts.append(svg.polygon([points[i] for i in indices], fill=fill, **STROKE))

    for diagonal in widget.diagonals:
        start = points[diagonal.from_vertex_index]
        end = points[diagonal.to_vertex_index]
        parts.append(svg.line(
            *start, *end, stroke_dasharray=DIAGONAL_DASHES[diagonal.style], **STROKE,
        ))
        if diagonal.label:
            angle = math.atan2(end[1] - start[1], end[0] - start[0])
            label_x = (start[0] + end[0]) / 2 - math.sin(angle) * DIAGONAL_LABEL_OFFSET
            label_y = (start[1] + end[1]) / 2 + math.cos(angle) * DIAGONAL_LABEL_OFFSET
            parts.append(svg.text(
                label_x, label_y, diagonal.label,
                fill="black", text_anchor="middle", dominant_baseline="middle",
                font_size=12, style=svg.LABEL_HALO_STYLE,
            ))
            extent = extent.include_text(label_x, diagonal.label, "middle")

    for label in widget.labels:
        if label.target in geometry.edge_targets:
            a, b = geometry.edge_targets[label.target]
            x, y, anchor = _edge_label_position(points[a], points[b], solid_center)
        elif label.target in geometry.altitude_targets:
            base_point, top_point = (project(v) for v in geometry.altitude_targets[label.target])
            parts.append(svg.line(
                *base_point, *top_point, stroke="gray", stroke_width=1, stroke_dasharray="2 2",
            ))
            x = base_point[0] - 10
            y = (base_point[1] + top_point[1]) / 2
            anchor = "end"
        elif label.target in geometry.faces:
            x, y = project(_centroid([geometry.vertices[i] for i in geometry.faces[label.target]]))
            anchor = "middle"
        else:
            valid = sorted([*geometry.edge_targets, *geometry.altitude_targets, *geometry.faces])
            raise GeometryPreconditionError(
                f"Unknown label target '{label.target}' for {widget.shape.type}; "
                f"expected one of {valid}",
            )
        parts.append(svg.text(
            x, y, label.text, text_anchor=anchor, dominant_baseline="middle",
        ))
        extent = extent.include_text(x, label.text, anchor)

    view_box = compute_dynamic_width(extent, widget.height, get_settings().axis_viewbox_padding)
    logger.debug(
        "Rendered %s: %d visible faces, viewBox %s",
        widget.shape.type, len(visible), view_box.attribute,
    )
    return svg_open(view_box) + "".join(parts) + "</svg>"


def vertex_positions(widget: PolyhedronDiagram) -> list[tuple[float, float]]:
    """Projected pixel position of every vertex, in index order."""
    geometry = SHAPE_BUILDERS[widget.shape.type](widget.shape)
    project = _Projector(geometry.vertices, widget.width, widget.height)
    return [project(v) for v in geometry.vertices]
