"""Linear interpolation, its inverse, and the three slide easing curves.

WHY: Hidden-tick attachment has to know where along a slide connector a
timing hint would sit. Connectors move lane and size between their
endpoints along one of three curves.

RULES:
- lerp(a, b, t) = a + (b - a) * t
- unlerp(a, b, x) = (x - a) / (b - a); a == b raises DegenerateIntervalError
- Ease codes: 0 → easeIn, 1 → easeOut, 2 → linear; anything else raises
"""

from __future__ import annotations

from chart_converter.core.errors import DegenerateIntervalError, UnknownEaseError

LINEAR = "linear"
EASE_IN = "easeIn"
EASE_OUT = "easeOut"

# Source ease code -> curve. Not the same table as the
# connector "ease" field written to the target document (see resolver).
EASE_KINDS: dict[int, str] = {
    0: EASE_IN,
    1: EASE_OUT,
    2: LINEAR,
}


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def unlerp(a: float, b: float, x: float) -> float:
    """Return where x sits between a and b, as a fraction of the interval."""
    if a == b:
        raise DegenerateIntervalError(
            f"Cannot unlerp over a zero-width interval [{a}, {b}]"
        )
    return (x - a) / (b - a)


def ease(t: float, kind: str) -> float:
    """Apply an easing curve to a progress value in [0, 1]."""
    if kind == LINEAR:
        return t
    if kind == EASE_IN:
        return t * t
    if kind == EASE_OUT:
        return 1 - (1 - t) * (1 - t)
    raise UnknownEaseError(kind)


def ease_kind(code: object) -> str:
    """Look up the curve for a source ease code."""
    # bool is an int subclass; a JSON true/false here is still malformed
    if isinstance(code, bool) or not isinstance(code, (int, float)):
        raise UnknownEaseError(code)
    if code != int(code) or int(code) not in EASE_KINDS:
        raise UnknownEaseError(code)
    return EASE_KINDS[int(code)]
