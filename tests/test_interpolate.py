"""Unit tests for interpolation and easing.

WHY: Hidden-tick attachment scores connectors by their eased path, so a
wrong curve or a wrong ease-code lookup silently attaches hints to the
wrong slide.

RULES:
- Floating-point comparisons use pytest.approx with default tolerance.
"""

import pytest

from chart_converter.core.errors import DegenerateIntervalError, UnknownEaseError
from chart_converter.core.interpolate import (
    EASE_IN,
    EASE_OUT,
    LINEAR,
    ease,
    ease_kind,
    lerp,
    unlerp,
)


class TestLerp:
    def test_endpoints(self):
        assert lerp(2, 10, 0) == 2
        assert lerp(2, 10, 1) == 10

    def test_midpoint(self):
        assert lerp(2, 10, 0.5) == pytest.approx(6)

    def test_descending_range(self):
        assert lerp(10, 2, 0.25) == pytest.approx(8)


class TestUnlerp:
    def test_inverse_of_lerp(self):
        assert unlerp(2, 10, lerp(2, 10, 0.3)) == pytest.approx(0.3)

    def test_endpoints(self):
        assert unlerp(4, 8, 4) == 0
        assert unlerp(4, 8, 8) == 1

    def test_zero_width_interval_raises(self):
        with pytest.raises(DegenerateIntervalError):
            unlerp(3, 3, 3)


class TestEase:
    @pytest.mark.parametrize("kind", [LINEAR, EASE_IN, EASE_OUT])
    def test_curves_fix_endpoints(self, kind):
        assert ease(0, kind) == pytest.approx(0)
        assert ease(1, kind) == pytest.approx(1)

    def test_linear_is_identity(self):
        assert ease(0.4, LINEAR) == pytest.approx(0.4)

    def test_ease_in_is_quadratic(self):
        assert ease(0.5, EASE_IN) == pytest.approx(0.25)

    def test_ease_out_mirrors_ease_in(self):
        assert ease(0.5, EASE_OUT) == pytest.approx(0.75)

    def test_unknown_kind_raises(self):
        with pytest.raises(UnknownEaseError):
            ease(0.5, "bounce")


class TestEaseKind:
    """Source ease codes map 0 → easeIn, 1 → easeOut, 2 → linear."""

    def test_table(self):
        assert ease_kind(0) == EASE_IN
        assert ease_kind(1) == EASE_OUT
        assert ease_kind(2) == LINEAR

    def test_integral_float_accepted(self):
        assert ease_kind(2.0) == LINEAR

    @pytest.mark.parametrize("code", [3, -1, 0.5, None, "linear", True])
    def test_out_of_table_raises(self, code):
        with pytest.raises(UnknownEaseError) as exc_info:
            ease_kind(code)
        assert "Unknown ease type" in str(exc_info.value)
