"""Widgets rendered as XHTML instead of SVG: data tables and URL images."""

from __future__ import annotations

from perseus_qti.errors import GeometryPreconditionError
from perseus_qti.utils.xml_utils import escape_attr, escape_text, format_number
from perseus_qti.widgets.models import DataTable, UrlImage


def _cell(value: str | float) -> str:
    if isinstance(value, str):
        return escape_text(value)
    return format_number(value)


def generate_data_table(widget: DataTable) -> str:
    """Render a data table widget as an XHTML ``<table>``.

    Raises:
        GeometryPreconditionError: If a row's cell count differs from the
            number of columns.
    """
    width = len(widget.columns)
    for index, row in enumerate(widget.rows):
        if len(row) != width:
            raise GeometryPreconditionError(
                f"Row {index} has {len(row)} cells, expected {width}",
            )
    parts = ["<table>"]
    if widget.title:
        parts.append(f"<caption>{escape_text(widget.title)}</caption>")
    header = "".join(
        f'<th scope="col">{escape_text(column.label)}</th>' for column in widget.columns
    )
    parts.append(f"<thead><tr>{header}</tr></thead>")
    parts.append("<tbody>")
    for row in widget.rows:
        parts.append("<tr>" + "".join(f"<td>{_cell(value)}</td>" for value in row) + "</tr>")
    parts.append("</tbody></table>")
    return "".join(parts)


def generate_url_image(widget: UrlImage) -> str:
    """Render a URL image widget as ``<img>`` (optionally with a caption).

    Raises:
        GeometryPreconditionError: On a non-http(s) URL or non-positive
            dimensions.
    """
    if not widget.url.startswith(("https://", "http://")):
        raise GeometryPreconditionError(f"Image URL must be http(s): {widget.url[:60]}")
    for name, value in (("width", widget.width), ("height", widget.height)):
        if value is not None and not value > 0:
            raise GeometryPreconditionError(f"Image {name} must be positive, got {value}")
    attrs = [f'src="{escape_attr(widget.url)}"', f'alt="{escape_attr(widget.alt)}"']
    if widget.width is not None:
        attrs.append(f'width="{format_number(widget.width)}"')
    if widget.height is not None:
        attrs.append(f'height="{format_number(widget.height)}"')
    image = f"<img {' '.join(attrs)}/>"
    if widget.caption:
        return f"<figure>{image}<figcaption>{escape_text(widget.caption)}</figcaption></figure>"
    return f"<p>{image}</p>"
