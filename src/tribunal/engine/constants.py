"""Fixed constants for the arbitration engine.

Everything tunable lives in ``tribunal.core.config.ProtocolConfig``; the
values here are part of the protocol's arithmetic and never change.
"""

from __future__ import annotations


class ProtocolConstants:
    """Constants shared by the engine's integer arithmetic."""

    # Scales
    BPS_SCALE = 10_000
    WEIGHT_PRECISION = 1_000_000_000

    # Amounts are 64-bit unsigned in every deployment
    U64_MAX = 2**64 - 1

    # Bond sizing: sqrt is taken at this precision, result clamped to [0.7x, 10x]
    BOND_CURVE_PRECISION = 10_000
    MIN_BOND_MULTIPLIER_BPS = 7_000
    MAX_BOND_MULTIPLIER_BPS = 100_000

    # Stacked smoothstep curve (fractions of the reputation ceiling, in bps)
    SMOOTHSTEP_LOW_MIDPOINT = 2_500
    SMOOTHSTEP_HIGH_MIDPOINT = 7_500
    SMOOTHSTEP_WIDTH = 2_000
    SMOOTHSTEP_HALF_OUTPUT = 5_000
