"""Error taxonomy for item compilation.

All errors are scoped to a single item. The pipeline turns
``UnmappableWidgetError`` into a "cannot migrate" result; every other
``CompilationError`` fails the item. Nothing is repaired silently.
"""

from __future__ import annotations


class CompilationError(Exception):
    """Base class for every per-item compilation failure.

    Attributes:
        location: Slot name or dotted field path the error refers to.
        details: Additional failure messages collected alongside this one.
    """

    def __init__(
        self,
        message: str,
        location: str | None = None,
        details: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.details = details or []

    def __str__(self) -> str:
        text = self.message
        if self.location:
            text = f"{text} (at {self.location})"
        if self.details:
            text += "\n  " + "\n  ".join(self.details)
        return text


class StructuralError(CompilationError):
    """Slot, placement or response-declaration invariant violated."""


class UnmappableWidgetError(CompilationError):
    """A widget slot resolved to ``WIDGET_NOT_FOUND``.

    Attributes:
        slots: Every slot that could not be mapped.
    """

    def __init__(self, slots: list[str]) -> None:
        self.slots = sorted(slots)
        super().__init__(
            f"No widget type available for slot(s): {', '.join(self.slots)}",
            location=self.slots[0] if self.slots else None,
        )


class BannedConstructError(CompilationError):
    """A forbidden token or pattern was found in a string field."""


class GeometryPreconditionError(CompilationError):
    """A widget received out-of-domain dimensions or data."""
