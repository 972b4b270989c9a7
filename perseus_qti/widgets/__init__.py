"""Widget value objects and their SVG/XHTML generators."""

from perseus_qti.widgets.layout import LayoutExtent, ViewBox, compute_dynamic_width
from perseus_qti.widgets.models import WIDGET_NOT_FOUND, Widget, WidgetType
from perseus_qti.widgets.registry import WIDGET_GENERATORS, generate_widget

__all__ = [
    # Layout
    "LayoutExtent",
    "ViewBox",
    "compute_dynamic_width",
    # Models
    "Widget",
    "WidgetType",
    "WIDGET_NOT_FOUND",
    # Generators
    "WIDGET_GENERATORS",
    "generate_widget",
]
