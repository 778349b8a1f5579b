"""Outcome determination and fee splitting.

Pure functions over the pre-resolution snapshot of a case.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..core.config import ProtocolConfig
from .arithmetic import bps_of, checked_sub
from .enums import Outcome


def determine_outcome(weight_for: int, weight_against: int) -> Outcome:
    """Compare the two weight accumulators.

    FOR needs a strict majority of the total weight; a tie goes to the
    defender.
    """
    total = weight_for + weight_against
    if total == 0:
        return Outcome.NO_PARTICIPATION
    if weight_for > total // 2:
        return Outcome.CHALLENGER_WINS
    return Outcome.DEFENDER_WINS


def winning_weight(outcome: Outcome, weight_for: int, weight_against: int) -> int:
    if outcome == Outcome.CHALLENGER_WINS:
        return weight_for
    if outcome == Outcome.DEFENDER_WINS:
        return weight_against
    return 0


@dataclass(frozen=True)
class FeeSplit:
    """Division of a resolved pool.

    ``winner_pool + voter_pool + treasury_fee == total_pool``.
    """
    total_pool: int
    winner_pool: int
    voter_pool: int
    treasury_fee: int

    @property
    def total_fees(self) -> int:
        return self.voter_pool + self.treasury_fee


def compute_fee_split(total_pool: int, outcome: Outcome, config: ProtocolConfig) -> FeeSplit:
    """Carve fees out of a pool.

    Normal outcomes pay ``total_fee_bps`` of the pool as fees, of which
    ``voter_share_bps`` goes to correct voters and the rest to the
    treasury. Without votes there is nobody to pay, so only the treasury's
    platform cut is taken and everything else is refunded.
    """
    fees = bps_of(total_pool, config.total_fee_bps)
    if outcome == Outcome.NO_PARTICIPATION:
        treasury_fee = bps_of(fees, config.platform_share_bps)
        return FeeSplit(
            total_pool=total_pool,
            winner_pool=checked_sub(total_pool, treasury_fee),
            voter_pool=0,
            treasury_fee=treasury_fee,
        )

    voter_pool = bps_of(fees, config.voter_share_bps)
    return FeeSplit(
        total_pool=total_pool,
        winner_pool=checked_sub(total_pool, fees),
        voter_pool=voter_pool,
        treasury_fee=fees - voter_pool,
    )


def free_split() -> FeeSplit:
    """Free cases move no value."""
    return FeeSplit(total_pool=0, winner_pool=0, voter_pool=0, treasury_fee=0)
