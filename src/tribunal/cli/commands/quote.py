"""CLI commands that evaluate the engine's formulas without any state.

Supported sub-commands::

    tribunal quote min-bond --reputation R [--base-bond B]
    tribunal quote voting-power --stake S --reputation R [--votes-cast N]
    tribunal quote withdrawal --amount A --reputation R
    tribunal quote multiplier --reputation R [--curve zones|stacked_smoothstep]
    tribunal quote fees --pool P --outcome OUTCOME
"""

from __future__ import annotations

import argparse

from ...core.config import MultiplierCurve, ProtocolConfig, get_protocol_config
from ...engine.distribution import compute_fee_split
from ...engine.enums import Outcome
from ...engine.reputation import (
    calculate_min_bond,
    calculate_reputation_gain,
    calculate_reputation_loss,
    calculate_voting_power,
    calculate_withdrawal,
    reputation_multiplier,
)
from ..output import output_result

# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the ``quote`` command tree."""
    quote_parser = subparsers.add_parser(
        "quote",
        help="Evaluate bond, voting power, withdrawal, multiplier or fee formulas",
    )
    quote_sub = quote_parser.add_subparsers(
        dest="quote_command",
        required=True,
        metavar="CALCULATION",
    )

    # tribunal quote min-bond
    bond_p = quote_sub.add_parser("min-bond", help="Minimum challenger bond for a reputation")
    bond_p.add_argument("--reputation", "-r", type=int, required=True, help="Challenger reputation")
    bond_p.add_argument("--base-bond", type=int, default=None, help="Bond at neutral reputation (default: configured)")
    bond_p.set_defaults(func=cmd_quote_min_bond)

    # tribunal quote voting-power
    power_p = quote_sub.add_parser("voting-power", help="Voting power for one allocation")
    power_p.add_argument("--stake", "-s", type=int, required=True, help="Stake allocated to the vote")
    power_p.add_argument("--reputation", "-r", type=int, required=True, help="Juror reputation")
    power_p.add_argument("--votes-cast", type=int, default=0, help="Votes the juror has already cast")
    power_p.set_defaults(func=cmd_quote_voting_power)

    # tribunal quote withdrawal
    withdraw_p = quote_sub.add_parser("withdrawal", help="Returned and slashed parts of a juror withdrawal")
    withdraw_p.add_argument("--amount", "-a", type=int, required=True, help="Amount to withdraw")
    withdraw_p.add_argument("--reputation", "-r", type=int, required=True, help="Juror reputation")
    withdraw_p.set_defaults(func=cmd_quote_withdrawal)

    # tribunal quote multiplier
    mult_p = quote_sub.add_parser("multiplier", help="Reputation multiplier with the resulting gain and loss")
    mult_p.add_argument("--reputation", "-r", type=int, required=True, help="Reputation to evaluate")
    mult_p.add_argument(
        "--curve",
        choices=[c.value for c in MultiplierCurve],
        default=None,
        help="Multiplier curve (default: configured)",
    )
    mult_p.set_defaults(func=cmd_quote_multiplier)

    # tribunal quote fees
    fees_p = quote_sub.add_parser("fees", help="Winner, voter and treasury split of a pool")
    fees_p.add_argument("--pool", "-p", type=int, required=True, help="Total pool (bond plus stake at risk)")
    fees_p.add_argument(
        "--outcome",
        choices=[o.value for o in Outcome if o != Outcome.NONE],
        default=Outcome.CHALLENGER_WINS.value,
        help="Resolution outcome (default: challenger_wins)",
    )
    fees_p.set_defaults(func=cmd_quote_fees)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def cmd_quote_min_bond(args: argparse.Namespace) -> int:
    config = get_protocol_config()
    base_bond = args.base_bond if args.base_bond is not None else config.base_challenger_bond
    output_result(
        {
            "reputation": args.reputation,
            "base_bond": base_bond,
            "min_bond": calculate_min_bond(base_bond, args.reputation, config),
        },
        args.output,
    )
    return 0


def cmd_quote_voting_power(args: argparse.Namespace) -> int:
    config = get_protocol_config()
    output_result(
        {
            "stake": args.stake,
            "reputation": args.reputation,
            "votes_cast": args.votes_cast,
            "voting_power": calculate_voting_power(args.stake, args.reputation, args.votes_cast, config),
        },
        args.output,
    )
    return 0


def cmd_quote_withdrawal(args: argparse.Namespace) -> int:
    config = get_protocol_config()
    split = calculate_withdrawal(args.amount, args.reputation, config)
    output_result(
        {
            "amount": args.amount,
            "reputation": args.reputation,
            "returned": split.returned,
            "slashed": split.slashed,
        },
        args.output,
    )
    return 0


def cmd_quote_multiplier(args: argparse.Namespace) -> int:
    config: ProtocolConfig = get_protocol_config()
    if args.curve is not None:
        config = config.with_overrides(multiplier_curve=MultiplierCurve(args.curve))
    output_result(
        {
            "reputation": args.reputation,
            "curve": config.multiplier_curve.value,
            "multiplier_bps": reputation_multiplier(args.reputation, config),
            "gain": calculate_reputation_gain(args.reputation, config),
            "loss": calculate_reputation_loss(args.reputation, config),
        },
        args.output,
    )
    return 0


def cmd_quote_fees(args: argparse.Namespace) -> int:
    config = get_protocol_config()
    split = compute_fee_split(args.pool, Outcome(args.outcome), config)
    output_result(
        {
            "total_pool": split.total_pool,
            "outcome": args.outcome,
            "winner_pool": split.winner_pool,
            "voter_pool": split.voter_pool,
            "treasury_fee": split.treasury_fee,
        },
        args.output,
    )
    return 0
