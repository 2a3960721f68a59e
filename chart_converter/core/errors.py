"""Exceptions raised while converting a single chart.

WHY: The pipeline isolates failures per chart. Every problem with one
chart's content (bad archetype, bad ease code, zero-width slide, broken
payload) must surface as a typed exception the driver can log and skip.

RULES:
- All conversion errors subclass ConversionError (a ValueError)
- Conversion errors are chart-fatal, never process-fatal
"""

from __future__ import annotations


class ConversionError(ValueError):
    """Base class for chart-fatal conversion failures."""


class UnknownArchetypeError(ConversionError):
    """Raised when a source entity carries an archetype code with no mapping.

    RULES:
    - archetype holds the offending code
    - index holds the source entity index
    """

    def __init__(self, archetype: int, index: int) -> None:
        self.archetype = archetype
        self.index = index
        super().__init__(f"Unknown archetype: {archetype} (entity {index})")


class UnknownEaseError(ConversionError):
    """Raised when a slide connector's ease code is outside the ease table."""

    def __init__(self, code: object) -> None:
        self.code = code
        super().__init__(f"Unknown ease type: {code}")


class DegenerateIntervalError(ConversionError):
    """Raised when inverse interpolation is asked for a zero-width interval.

    WHY: A connector whose start and end beats coincide has no defined
    progress for a hint sitting on that beat. Rather than let a NaN or
    ZeroDivisionError leak into the output, the chart is rejected.
    """


class MalformedSourceError(ConversionError):
    """Raised when a source payload cannot be decompressed or parsed."""
