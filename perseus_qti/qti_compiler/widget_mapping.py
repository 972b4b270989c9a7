"""Widget-mapping phase: assign a widget type (or the bailout) to each slot.

The resolver is a deterministic rule chain over the source element behind
each widget slot:

1. an explicit ``widgetType`` hint on the element;
2. the ``type`` of pre-extracted widget data under ``options["widget"]``;
3. element-kind rules (image with an http(s) URL -> ``urlImage``, bar
   plotter -> ``barChart``, table -> ``dataTable``...);
4. otherwise ``WIDGET_NOT_FOUND``.

``WIDGET_NOT_FOUND`` is an expected outcome, not an error: the pipeline
reports the item as "cannot migrate" and names the slots.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from perseus_qti.errors import StructuralError
from perseus_qti.qti_compiler.models import Shell, SourceElement, SourceItem, WidgetMapping
from perseus_qti.widgets.models import WIDGET_NOT_FOUND, WidgetType

logger = logging.getLogger(__name__)


def image_url(options: dict[str, Any]) -> str:
    """Image URL from either a flat ``url`` or Perseus ``backgroundImage``."""
    background = options.get("backgroundImage") or {}
    return str(options.get("url") or background.get("url") or "")


def _widget_type(value: Any) -> Optional[WidgetType]:
    try:
        return WidgetType(value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Element-kind rules
# ---------------------------------------------------------------------------


def _map_image(element: SourceElement) -> Optional[WidgetType]:
    if "polyhedron" in element.options:
        return WidgetType.POLYHEDRON_DIAGRAM
    if image_url(element.options).startswith(("https://", "http://")):
        return WidgetType.URL_IMAGE
    # Graphie and other non-URL images have no renderer
    return None


def _map_plotter(element: SourceElement) -> Optional[WidgetType]:
    if element.options.get("type") == "bar":
        return WidgetType.BAR_CHART
    return None


def _map_graph(element: SourceElement) -> Optional[WidgetType]:
    graph_type = element.options.get("graphType")
    if graph_type == "scatter":
        return WidgetType.SCATTER_PLOT
    if graph_type == "conceptual":
        return WidgetType.CONCEPTUAL_GRAPH
    return None


KIND_RULES: dict[str, Callable[[SourceElement], Optional[WidgetType]]] = {
    "image": _map_image,
    "plotter": _map_plotter,
    "graph": _map_graph,
    "interactive-graph": _map_graph,
    "number-line": lambda element: WidgetType.NUMBER_LINE,
    "table": lambda element: WidgetType.DATA_TABLE,
}


def map_element(element: SourceElement, slot: str) -> WidgetType | str:
    """Apply the rule chain to one element.

    Raises:
        StructuralError: If the element carries an unknown ``widgetType`` hint.
    """
    if element.widget_type is not None:
        hinted = _widget_type(element.widget_type)
        if hinted is None:
            raise StructuralError(f"Unknown widgetType hint '{element.widget_type}'", location=slot)
        return hinted

    embedded = element.options.get("widget")
    if isinstance(embedded, dict):
        embedded_type = _widget_type(embedded.get("type"))
        if embedded_type is not None:
            return embedded_type

    rule = KIND_RULES.get(element.kind)
    if rule is not None:
        mapped = rule(element)
        if mapped is not None:
            return mapped
    return WIDGET_NOT_FOUND


def _validate_proposal(shell: Shell, proposed: dict[str, Any]) -> WidgetMapping:
    expected = set(shell.widget_slot_names)
    missing = sorted(expected - set(proposed))
    extra = sorted(set(proposed) - expected)
    if missing or extra:
        raise StructuralError(
            "Proposed widget mapping does not match the widget slots",
            details=[f"missing: {missing}", f"unexpected: {extra}"],
        )
    mapping: WidgetMapping = {}
    for slot in shell.widget_slot_names:
        value = proposed[slot]
        if value == WIDGET_NOT_FOUND:
            mapping[slot] = WIDGET_NOT_FOUND
            continue
        widget_type = _widget_type(value)
        if widget_type is None:
            raise StructuralError(f"Proposed widget type '{value}' is not in the vocabulary", location=slot)
        mapping[slot] = widget_type
    return mapping


def resolve_widget_mapping(
    source: SourceItem,
    shell: Shell,
    proposed: dict[str, Any] | None = None,
) -> WidgetMapping:
    """Map every widget slot of *shell* to a widget type or ``WIDGET_NOT_FOUND``.

    Args:
        source: Source question holding the elements behind the slots.
        shell: Shell phase output.
        proposed: Optional externally produced mapping. It takes precedence
            over the rule chain but must cover exactly the widget slots and
            use only known values.

    Returns:
        Total mapping over ``shell.widget_slot_names``.

    Raises:
        StructuralError: On an invalid proposal or an unknown hint.
    """
    if proposed is not None:
        mapping = _validate_proposal(shell, proposed)
        logger.info("Using proposed widget mapping for %d slot(s)", len(mapping))
        return mapping

    mapping = {}
    for slot in shell.widget_slot_names:
        element = source.widgets[shell.slot_refs[slot]]
        mapping[slot] = map_element(element, slot)
        logger.debug("Slot %s (%s) -> %s", slot, element.kind, getattr(mapping[slot], "value", mapping[slot]))
    return mapping
