"""Tests for tribunal.engine.arithmetic - checked integer helpers."""

from __future__ import annotations

import pytest

from tribunal.core.exceptions import InvariantViolation
from tribunal.engine.arithmetic import bps_of, checked_add, checked_sub, integer_sqrt, mul_div, pro_rata
from tribunal.engine.constants import ProtocolConstants

# ============================================================================
# integer_sqrt
# ============================================================================


class TestIntegerSqrt:
    """Tests for Newton's-method integer square root."""

    @pytest.mark.parametrize("n,expected", [(0, 0), (1, 1), (10000, 100)])
    def test_exact_values(self, n, expected):
        assert integer_sqrt(n) == expected

    @pytest.mark.parametrize("n,expected", [(2, 1), (3, 1), (4, 2), (8, 2), (9, 3), (50, 7), (99, 9), (200_000_000, 14142)])
    def test_floor(self, n, expected):
        assert integer_sqrt(n) == expected

    def test_large_perfect_square(self):
        root = 2**40 + 7
        assert integer_sqrt(root * root) == root
        assert integer_sqrt(root * root - 1) == root - 1

    def test_negative_rejected(self):
        with pytest.raises(InvariantViolation):
            integer_sqrt(-1)


# ============================================================================
# mul_div and friends
# ============================================================================


class TestMulDiv:
    """Tests for widened multiply-then-floor-divide."""

    def test_floors(self):
        assert mul_div(10, 1, 3) == 3
        assert mul_div(190, 5, 17) == 55

    def test_wide_intermediate(self):
        # value * numerator exceeds u64 but the result does not
        assert mul_div(ProtocolConstants.U64_MAX, 3, 4) == ProtocolConstants.U64_MAX * 3 // 4

    def test_division_by_zero(self):
        with pytest.raises(InvariantViolation, match="division by zero"):
            mul_div(1, 1, 0)

    def test_negative_operand(self):
        with pytest.raises(InvariantViolation, match="negative"):
            mul_div(-1, 1, 1)

    def test_overflow(self):
        with pytest.raises(InvariantViolation, match="overflow"):
            mul_div(ProtocolConstants.U64_MAX, 2, 1)

    def test_bps_of(self):
        assert bps_of(1000, 2000) == 200
        assert bps_of(999, 1) == 0

    def test_checked_add_sub(self):
        assert checked_add(2, 3) == 5
        assert checked_sub(5, 3) == 2
        with pytest.raises(InvariantViolation, match="underflow"):
            checked_sub(3, 5)
        with pytest.raises(InvariantViolation, match="overflow"):
            checked_add(ProtocolConstants.U64_MAX, 1)

    def test_pro_rata(self):
        assert pro_rata(190, 5, 17) == 55
        assert pro_rata(190, 5, 0) == 0
