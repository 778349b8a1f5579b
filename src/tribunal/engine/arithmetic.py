"""Checked integer arithmetic.

The engine never touches floating point: every amount, weight and
reputation is an ``int`` so that replaying the same inputs always yields the
same ledgers. Products are computed at full width and then floor-divided,
and results are bounded to the unsigned 64-bit range every deployment
stores amounts in.
"""

from __future__ import annotations

from ..core.exceptions import InvariantViolation
from .constants import ProtocolConstants


def _check_u64(value: int, operation: str) -> int:
    if value < 0:
        raise InvariantViolation(f"{operation} underflow", {"result": value})
    if value > ProtocolConstants.U64_MAX:
        raise InvariantViolation(f"{operation} overflow", {"result": value})
    return value


def integer_sqrt(n: int) -> int:
    """Floor square root by Newton's method.

    Iterates until the estimate stops decreasing, which is exact for
    perfect squares: ``integer_sqrt(10000) == 100``.
    """
    if n < 0:
        raise InvariantViolation("integer_sqrt of a negative number", {"n": n})
    if n == 0:
        return 0
    x = n
    y = (x + 1) // 2
    while y < x:
        x = y
        y = (x + n // x) // 2
    return x


def mul_div(value: int, numerator: int, denominator: int) -> int:
    """Return ``floor(value * numerator / denominator)``.

    Raises:
        InvariantViolation: On division by zero, negative operands or a
            result outside the u64 range.
    """
    if denominator == 0:
        raise InvariantViolation("division by zero", {"value": value, "numerator": numerator})
    if value < 0 or numerator < 0 or denominator < 0:
        raise InvariantViolation(
            "negative operand",
            {"value": value, "numerator": numerator, "denominator": denominator},
        )
    return _check_u64(value * numerator // denominator, "mul_div")


def bps_of(amount: int, bps: int) -> int:
    """Basis-point fraction of an amount, rounded down."""
    return mul_div(amount, bps, ProtocolConstants.BPS_SCALE)


def checked_add(a: int, b: int) -> int:
    return _check_u64(a + b, "add")


def checked_sub(a: int, b: int) -> int:
    return _check_u64(a - b, "sub")


def pro_rata(pool: int, weight: int, total_weight: int) -> int:
    """A participant's floor share of ``pool``.

    Zero when nobody holds weight, so empty sides never divide by zero.
    """
    if total_weight == 0:
        return 0
    return mul_div(pool, weight, total_weight)
