"""Horizontal extent tracking for SVG widgets.

Generators fold a :class:`LayoutExtent` through their draw calls: every
rendered point or text anchor widens the extent, and the final
``viewBox`` is derived from it so nothing is clipped. The extent is an
immutable value; each ``include_*`` call returns a new one.
"""

from __future__ import annotations

from dataclasses import dataclass

from perseus_qti.utils.xml_utils import format_number

# Average glyph width in px for the 12-14px sans-serif text the widgets use.
DEFAULT_CHAR_WIDTH = 7.0


@dataclass(frozen=True)
class LayoutExtent:
    """Minimum and maximum x-coordinate touched by rendered content."""

    min_x: float
    max_x: float

    @classmethod
    def for_canvas(cls, width: float) -> LayoutExtent:
        """Start from the nominal canvas ``[0, width]``."""
        return cls(min_x=0.0, max_x=float(width))

    def include_point_x(self, x: float) -> LayoutExtent:
        """Return an extent that also covers *x*."""
        return LayoutExtent(min(self.min_x, x), max(self.max_x, x))

    def include_text(
        self,
        x: float,
        text: str,
        anchor: str = "start",
        char_width: float = DEFAULT_CHAR_WIDTH,
    ) -> LayoutExtent:
        """Return an extent covering a text run anchored at *x*.

        Args:
            x: The ``x`` attribute of the ``<text>`` element.
            text: Rendered text (its length drives the width estimate).
            anchor: SVG ``text-anchor`` value: start, middle or end.
            char_width: Estimated width of one character in pixels.
        """
        width = len(text) * char_width
        if anchor == "middle":
            left, right = x - width / 2, x + width / 2
        elif anchor == "end":
            left, right = x - width, x
        else:
            left, right = x, x + width
        return LayoutExtent(min(self.min_x, left), max(self.max_x, right))

    def merge(self, other: LayoutExtent) -> LayoutExtent:
        """Combine two extents (used when sub-renderers return their own)."""
        return LayoutExtent(min(self.min_x, other.min_x), max(self.max_x, other.max_x))


@dataclass(frozen=True)
class ViewBox:
    """Final SVG viewport derived from a layout extent."""

    min_x: float
    width: float
    height: float

    def contains_x(self, x: float) -> bool:
        return self.min_x <= x <= self.min_x + self.width

    @property
    def attribute(self) -> str:
        return (
            f"{format_number(self.min_x)} 0 "
            f"{format_number(self.width)} {format_number(self.height)}"
        )


def compute_dynamic_width(
    extent: LayoutExtent,
    height: float,
    padding: float,
) -> ViewBox:
    """Expand the viewport so every tracked x lies inside it.

    The viewport never shrinks below the extent's starting canvas, and
    grows by *padding* on whichever side content overflowed.
    """
    vb_min_x = extent.min_x - padding if extent.min_x < 0 else 0.0
    vb_max_x = extent.max_x + padding
    return ViewBox(min_x=vb_min_x, width=vb_max_x - vb_min_x, height=height)


def svg_open(view_box: ViewBox, font_size: int = 12) -> str:
    """Opening ``<svg>`` tag sized to *view_box*."""
    return (
        f'<svg width="{format_number(view_box.width)}" '
        f'height="{format_number(view_box.height)}" '
        f'viewBox="{view_box.attribute}" '
        f'xmlns="http://www.w3.org/2000/svg" '
        f'font-family="sans-serif" font-size="{font_size}">'
    )
