"""Typed widget value objects.

Every widget kind is a frozen pydantic model with a literal ``type`` tag;
``Widget`` is the closed tagged union over all of them. Field names are
snake_case in Python and accept the camelCase spelling used by source
JSON (``fromVertexIndex``, ``tickInterval``...).

Widgets are built once from extracted source data, never mutated, and
consumed by exactly one generator call.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

HEX_COLOR_PATTERN = r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$"

HexColor = Annotated[str, Field(pattern=HEX_COLOR_PATTERN)]


class WidgetType(str, Enum):
    """Closed vocabulary of renderable widget kinds."""

    POLYHEDRON_DIAGRAM = "polyhedronDiagram"
    SCATTER_PLOT = "scatterPlot"
    BAR_CHART = "barChart"
    CONCEPTUAL_GRAPH = "conceptualGraph"
    NUMBER_LINE = "numberLine"
    DATA_TABLE = "dataTable"
    URL_IMAGE = "urlImage"


# Bailout returned by the mapping phase when no widget kind fits a slot.
WIDGET_NOT_FOUND = "WIDGET_NOT_FOUND"


class WidgetModel(BaseModel):
    """Base for all widget value objects (frozen, camelCase aliases)."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Point(WidgetModel):
    x: float
    y: float


# ---------------------------------------------------------------------------
# Polyhedron diagram
# ---------------------------------------------------------------------------


class RectangularPrism(WidgetModel):
    """Box; ``width`` faces the viewer, ``length`` is the depth."""

    type: Literal["rectangularPrism"] = "rectangularPrism"
    length: float
    width: float
    height: float


class TriangularBase(WidgetModel):
    """Triangular cross-section: base ``b`` and height ``h``."""

    b: float
    h: float
    hypotenuse: float | None = None


class TriangularPrism(WidgetModel):
    type: Literal["triangularPrism"] = "triangularPrism"
    base: TriangularBase
    length: float


class RectangularPyramid(WidgetModel):
    type: Literal["rectangularPyramid"] = "rectangularPyramid"
    base_length: float
    base_width: float
    height: float


class TriangularPyramid(WidgetModel):
    """Pyramid over a triangle ``base_width`` wide and ``base_depth`` deep."""

    type: Literal["triangularPyramid"] = "triangularPyramid"
    base_width: float
    base_depth: float
    height: float


PolyhedronShape = Annotated[
    Union[RectangularPrism, TriangularPrism, RectangularPyramid, TriangularPyramid],
    Field(discriminator="type"),
]


class DimensionLabel(WidgetModel):
    """Edge label; ``target`` names a shape-specific edge (e.g. "height")."""

    text: str
    target: str


class Diagonal(WidgetModel):
    """Segment between two vertices, referenced by vertex index."""

    from_vertex_index: int = Field(ge=0)
    to_vertex_index: int = Field(ge=0)
    label: str | None = None
    style: Literal["solid", "dashed", "dotted"] = "solid"


class PolyhedronDiagram(WidgetModel):
    type: Literal["polyhedronDiagram"] = "polyhedronDiagram"
    width: float = 300
    height: float = 200
    shape: PolyhedronShape
    labels: tuple[DimensionLabel, ...] = ()
    diagonals: tuple[Diagonal, ...] = ()
    shaded_face: str | None = None
    show_hidden_edges: bool = False


# ---------------------------------------------------------------------------
# Charts
# ---------------------------------------------------------------------------


class AxisSpec(WidgetModel):
    """Numeric axis: range, tick spacing and optional gridlines."""

    label: str | None = None
    min: float
    max: float
    tick_interval: float
    grid_lines: bool = True


class LineStyle(WidgetModel):
    color: HexColor = "#000000"
    stroke_width: float = Field(default=2.0, gt=0)
    dash: bool = False


class ScatterPoint(WidgetModel):
    x: float
    y: float
    label: str | None = None


class BestFitLine(WidgetModel):
    """Regression curve computed from the plotted points."""

    type: Literal["bestFit"] = "bestFit"
    method: Literal["linear", "quadratic", "exponential"]
    label: str | None = None
    style: LineStyle = LineStyle()


class TwoPointsLine(WidgetModel):
    """Line through two literal points, drawn across the plot area."""

    type: Literal["twoPoints"] = "twoPoints"
    a: Point
    b: Point
    label: str | None = None
    style: LineStyle = LineStyle()


ScatterLine = Annotated[Union[BestFitLine, TwoPointsLine], Field(discriminator="type")]


class ScatterPlot(WidgetModel):
    type: Literal["scatterPlot"] = "scatterPlot"
    width: float = 500
    height: float = 400
    title: str | None = None
    x_axis: AxisSpec
    y_axis: AxisSpec
    points: tuple[ScatterPoint, ...]
    lines: tuple[ScatterLine, ...] = ()
    point_color: HexColor = "#1E90FF"


class BarDatum(WidgetModel):
    label: str
    value: float
    state: Literal["normal", "unknown"] = "normal"


class BarChart(WidgetModel):
    type: Literal["barChart"] = "barChart"
    width: float = 480
    height: float = 340
    title: str | None = None
    x_axis_label: str | None = None
    y_axis: AxisSpec
    data: tuple[BarDatum, ...]
    bar_color: HexColor = "#6495ED"


class HighlightPoint(WidgetModel):
    """Point placed at fraction ``t`` of the curve's arc length."""

    t: float = Field(ge=0, le=1)
    label: str


class ConceptualGraph(WidgetModel):
    type: Literal["conceptualGraph"] = "conceptualGraph"
    width: float = 400
    height: float = 400
    x_axis_label: str
    y_axis_label: str
    curve_points: tuple[Point, ...] = Field(min_length=2)
    curve_color: HexColor = "#000000"
    highlight_points: tuple[HighlightPoint, ...] = ()
    highlight_point_color: HexColor = "#000000"
    highlight_point_radius: float = Field(default=5, gt=0)


class NumberLinePoint(WidgetModel):
    value: float
    label: str | None = None
    color: HexColor = "#000000"
    label_position: Literal["above", "below", "left", "right"] | None = None


class SpecialTickLabel(WidgetModel):
    """Replaces the numeric label at ``value`` (e.g. with a fraction)."""

    value: float
    label: str


class NumberLine(WidgetModel):
    type: Literal["numberLine"] = "numberLine"
    width: float = 460
    height: float = 100
    orientation: Literal["horizontal", "vertical"] = "horizontal"
    min: float
    max: float
    major_tick_interval: float
    minor_ticks_per_interval: int = Field(default=0, ge=0)
    show_tick_labels: bool = True
    points: tuple[NumberLinePoint, ...] = ()
    special_tick_labels: tuple[SpecialTickLabel, ...] = ()


# ---------------------------------------------------------------------------
# HTML widgets
# ---------------------------------------------------------------------------


class DataTableColumn(WidgetModel):
    key: str
    label: str


class DataTable(WidgetModel):
    type: Literal["dataTable"] = "dataTable"
    title: str | None = None
    columns: tuple[DataTableColumn, ...] = Field(min_length=1)
    rows: tuple[tuple[str | float, ...], ...]


class UrlImage(WidgetModel):
    type: Literal["urlImage"] = "urlImage"
    url: str
    alt: str
    width: float | None = None
    height: float | None = None
    caption: str | None = None


Widget = Annotated[
    Union[
        PolyhedronDiagram,
        ScatterPlot,
        BarChart,
        ConceptualGraph,
        NumberLine,
        DataTable,
        UrlImage,
    ],
    Field(discriminator="type"),
]
