"""Claim payouts against a resolved round.

Every payout is a floor-truncated pro-rata share of a pool recorded in the
round's ``RoundResult``, so the sum of all claims never exceeds what the
round funded. Truncation dust stays in escrow until the round is pruned
or swept.
"""

from __future__ import annotations

from .arithmetic import checked_add, pro_rata
from .enums import Outcome
from .models import RoundResult, VoteRecord


def direct_defender_payout(result: RoundResult, stake: int) -> int:
    """Payout for a direct defender who staked ``stake`` in the round.

    The defender's stake is split into an at-risk part and a safe part in
    proportion to what the round put at risk. The safe part always comes
    back; the at-risk part earns a share of the winner pool unless the
    challenger won.
    """
    if result.is_free:
        return 0
    direct_total = result.direct_total
    at_risk = pro_rata(result.direct_at_risk, stake, direct_total)
    safe = pro_rata(result.safe_stake, stake, direct_total)

    if result.outcome == Outcome.DEFENDER_WINS:
        return checked_add(pro_rata(result.winner_pool, at_risk, result.stake_at_risk), safe)
    if result.outcome == Outcome.NO_PARTICIPATION:
        return checked_add(pro_rata(result.winner_pool, at_risk, result.total_pool), safe)
    return safe


def pool_payout(result: RoundResult) -> int:
    """Payout for the linked defender pool. Pools have no safe share."""
    if result.is_free:
        return 0
    if result.outcome == Outcome.DEFENDER_WINS:
        return pro_rata(result.winner_pool, result.pool_at_risk, result.stake_at_risk)
    if result.outcome == Outcome.NO_PARTICIPATION:
        return pro_rata(result.winner_pool, result.pool_at_risk, result.total_pool)
    return 0


def challenger_payout(result: RoundResult, bond: int) -> int:
    """Payout for a challenger, restorer or appellant.

    On restoration and appeal rounds the restorer's stake is the only
    principal in the pool, so it comes back less fees whatever the outcome.
    """
    if result.is_free:
        return 0
    if result.is_reversal:
        return pro_rata(result.winner_pool, bond, result.total_bond)
    if result.outcome == Outcome.CHALLENGER_WINS:
        return pro_rata(result.winner_pool, bond, result.total_bond)
    if result.outcome == Outcome.NO_PARTICIPATION:
        return pro_rata(result.winner_pool, bond, result.total_pool)
    return 0


def voter_payout(result: RoundResult, vote: VoteRecord) -> int:
    """Correct voters share the voter pool by voting power."""
    if result.is_free or not vote.is_correct(result.outcome):
        return 0
    return pro_rata(result.voter_pool, vote.voting_power, result.winning_weight)
