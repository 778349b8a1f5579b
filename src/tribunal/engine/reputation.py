"""Reputation, bond sizing and voting power.

All functions are pure and take the protocol configuration explicitly so
the same inputs always produce the same integers.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..core.config import MultiplierCurve, ProtocolConfig
from .arithmetic import bps_of, integer_sqrt, mul_div
from .constants import ProtocolConstants


# ============================================================================
# Bond and Stake Sizing
# ============================================================================

def calculate_min_bond(base_bond: int, reputation: int, config: ProtocolConfig) -> int:
    """Minimum bond a challenger must post.

    Formula: min_bond = base_bond × sqrt(half_scale / reputation),
    clamped to [0.7 × base, 10 × base]. Zero reputation pays the maximum.

    Args:
        base_bond: Bond at neutral reputation
        reputation: Challenger's current reputation
        config: Protocol configuration

    Returns:
        Minimum bond amount
    """
    ceiling_bond = bps_of(base_bond, ProtocolConstants.MAX_BOND_MULTIPLIER_BPS)
    floor_bond = bps_of(base_bond, ProtocolConstants.MIN_BOND_MULTIPLIER_BPS)
    if reputation <= 0:
        return ceiling_bond

    precision = ProtocolConstants.BOND_CURVE_PRECISION
    scaled_ratio = integer_sqrt(config.half_reputation * precision * precision // reputation)
    bond = base_bond * scaled_ratio // precision
    return max(floor_bond, min(ceiling_bond, bond))


def calculate_voting_power(stake_allocated: int, reputation: int, votes_cast: int, config: ProtocolConfig) -> int:
    """Voting power for one allocation.

    Formula: sqrt(stake) × (reputation / ceiling) × sqrt(votes_cast + 1)
    × WEIGHT_PRECISION. The participation term rewards sustained voting
    without letting frequent voters dominate linearly.
    """
    sqrt_stake = integer_sqrt(stake_allocated)
    sqrt_votes = integer_sqrt(votes_cast + 1)
    return mul_div(
        sqrt_stake * reputation * sqrt_votes,
        ProtocolConstants.WEIGHT_PRECISION,
        config.reputation_ceiling,
    )


@dataclass(frozen=True)
class WithdrawalSplit:
    """How a juror withdrawal divides between the juror and the treasury."""
    returned: int
    slashed: int


def calculate_withdrawal(amount: int, reputation: int, config: ProtocolConfig) -> WithdrawalSplit:
    """Split a withdrawal by reputation.

    Full return at or above the slash threshold; below it the returned
    fraction is ``2 × reputation / ceiling``, reaching zero at zero
    reputation.
    """
    if reputation >= config.slash_threshold:
        return WithdrawalSplit(returned=amount, slashed=0)
    returned = mul_div(amount, reputation * 2, config.reputation_ceiling)
    returned = min(returned, amount)
    return WithdrawalSplit(returned=returned, slashed=amount - returned)


# ============================================================================
# Reputation Multiplier
# ============================================================================

def zone_multiplier(reputation: int, config: ProtocolConfig) -> int:
    """Accountability multiplier in bps for the zone the reputation falls in.

    The grace zone around the midpoint damps changes, the extreme zones
    near the floor and ceiling damp them differently, everything else moves
    at the normal rate.
    """
    if config.grace_zone_low <= reputation <= config.grace_zone_high:
        return config.grace_multiplier
    if reputation < config.extreme_zone_low or reputation > config.extreme_zone_high:
        return config.extreme_multiplier
    return config.normal_multiplier


def _smoothstep(x: int, midpoint: int, width: int) -> int:
    half_width = width // 2
    start = midpoint - half_width
    end = midpoint + half_width
    if x <= start:
        return 0
    if x >= end:
        return ProtocolConstants.SMOOTHSTEP_HALF_OUTPUT
    n = (x - start) * ProtocolConstants.BPS_SCALE // (end - start)
    # 3n² - 2n³ on a 0..10000 input, scaled to 0..5000
    return n * n * (3 * ProtocolConstants.BPS_SCALE - 2 * n) // (2 * ProtocolConstants.BPS_SCALE**2)


def stacked_smoothstep_multiplier(reputation: int, config: ProtocolConfig) -> int:
    """Sum of two smoothstep sigmoids centred at 25% and 75% of the ceiling."""
    x = mul_div(min(reputation, config.reputation_ceiling), ProtocolConstants.BPS_SCALE, config.reputation_ceiling)
    low = _smoothstep(x, ProtocolConstants.SMOOTHSTEP_LOW_MIDPOINT, ProtocolConstants.SMOOTHSTEP_WIDTH)
    high = _smoothstep(x, ProtocolConstants.SMOOTHSTEP_HIGH_MIDPOINT, ProtocolConstants.SMOOTHSTEP_WIDTH)
    return low + high


def reputation_multiplier(reputation: int, config: ProtocolConfig) -> int:
    if config.multiplier_curve == MultiplierCurve.STACKED_SMOOTHSTEP:
        return stacked_smoothstep_multiplier(reputation, config)
    return zone_multiplier(reputation, config)


# ============================================================================
# Reputation Updates
# ============================================================================

def calculate_reputation_gain(reputation: int, config: ProtocolConfig) -> int:
    """Gain = (ceiling - rep) × gain_rate × multiplier / scale²."""
    headroom = max(0, config.reputation_ceiling - reputation)
    scale = ProtocolConstants.BPS_SCALE
    return mul_div(
        headroom * config.reputation_gain_rate,
        reputation_multiplier(reputation, config),
        scale * scale,
    )


def calculate_reputation_loss(reputation: int, config: ProtocolConfig) -> int:
    """Loss = rep × loss_rate × multiplier / scale²."""
    scale = ProtocolConstants.BPS_SCALE
    return mul_div(
        max(0, reputation) * config.reputation_loss_rate,
        reputation_multiplier(reputation, config),
        scale * scale,
    )


def apply_reputation_gain(reputation: int, config: ProtocolConfig) -> int:
    """New reputation after a correct call, never above the ceiling."""
    return min(config.reputation_ceiling, reputation + calculate_reputation_gain(reputation, config))


def apply_reputation_loss(reputation: int, config: ProtocolConfig) -> int:
    """New reputation after an incorrect call, never below zero."""
    return max(0, reputation - calculate_reputation_loss(reputation, config))
