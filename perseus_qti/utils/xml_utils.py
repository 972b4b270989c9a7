"""Small XML/text helpers shared by the compiler and widget generators."""

from __future__ import annotations

import html
import re
from urllib.parse import quote

# Characters forbidden by XML 1.0 (everything below 0x20 except tab/LF/CR,
# plus the surrogate block and the two non-characters).
INVALID_XML_CHARS_RE = re.compile(
    "[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]"
)


def escape_text(text: str) -> str:
    """Escape ``&``, ``<`` and ``>`` for XML element content."""
    return html.escape(text, quote=False)


def escape_attr(value: object) -> str:
    """Escape a value for use inside a double-quoted XML attribute."""
    return html.escape(str(value), quote=True)


def format_number(value: float) -> str:
    """Format a number without trailing zeros (``2.0`` -> ``"2"``)."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.4f}".rstrip("0").rstrip(".")


def encode_data_uri(content: str) -> str:
    """Percent-encode SVG/HTML markup into a ``data:`` URI.

    SVG gets ``image/svg+xml``; anything else is treated as HTML.
    """
    encoded = quote(content, safe="-_.!~*()")
    media_type = "image/svg+xml" if content.lstrip().startswith("<svg") else "text/html"
    return f"data:{media_type},{encoded}"


def sanitize_identifier(raw: str) -> str:
    """Turn an arbitrary id into a QTI-safe identifier token.

    Runs of characters outside ``[A-Za-z0-9_-]`` collapse to ``_``; a
    leading digit gets an ``x`` prefix so the result is a valid NCName.
    """
    token = re.sub(r"[^A-Za-z0-9_-]+", "_", raw.strip()).strip("_")
    if not token:
        raise ValueError(f"Cannot derive an identifier from {raw!r}")
    if token[0].isdigit() or token[0] == "-":
        token = f"x{token}"
    return token
