"""CLI command that replays a scripted scenario on an in-memory engine.

Supported sub-commands::

    tribunal simulate SCENARIO.json

A scenario is a JSON object::

    {
      "config": {"total_fee_bps": 2000, "min_juror_stake": 10},
      "start": 0,
      "balances": {"alice": 5000, "bob": 1000},
      "steps": [
        {"op": "create_subject", "args": {"subject_id": "s1", "creator": "alice", "stake": 1000}},
        {"op": "open_dispute", "args": {"subject_id": "s1", "challenger": "bob", "bond": 500}},
        {"advance": 86400},
        {"op": "resolve", "args": {"subject_id": "s1"}, "expect_error": "VotingNotEndedError"}
      ]
    }

``balances`` fund participant wallets. Each step either calls a service
operation or advances the manual clock. A step with ``expect_error``
passes only if the operation fails with that exception class.
"""

from __future__ import annotations

import argparse
import dataclasses
import inspect
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ...core.config import get_protocol_config
from ...core.exceptions import ConfigException, TribunalException, ValidationException
from ...engine.enums import DisputeCategory, StakingMode, VoteChoice
from ...engine.ports import InMemoryValueStore, ManualClock, wallet
from ...engine.service import ArbitrationService
from ..output import output_result

logger = logging.getLogger(__name__)

# Service operations a scenario may call
SCENARIO_OPERATIONS = frozenset(
    {
        "register_juror",
        "deposit_juror_stake",
        "withdraw_juror_stake",
        "unregister_juror",
        "create_pool",
        "deposit_pool",
        "withdraw_pool",
        "set_pool_max_bond",
        "create_subject",
        "stake_subject",
        "open_dispute",
        "add_to_dispute",
        "submit_restoration",
        "submit_appeal",
        "vote",
        "add_to_vote",
        "resolve",
        "claim_defender",
        "claim_pool",
        "claim_challenger",
        "claim_voter",
        "unlock_vote_stake",
        "prune_round",
        "sweep_round_creator",
        "sweep_round_treasury",
        "close_vote_record",
        "close_challenger_record",
        "close_defender_record",
        "withdraw_treasury",
    }
)

# Arguments that arrive as strings and need converting to enums
_ENUM_ARGUMENTS = {
    "choice": VoteChoice,
    "mode": StakingMode,
    "category": DisputeCategory,
}

# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the ``simulate`` command."""
    sim_p = subparsers.add_parser(
        "simulate",
        help="Run a scripted scenario on an in-memory engine with a manual clock",
    )
    sim_p.add_argument("scenario", help="Path to a scenario JSON file")
    sim_p.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Only print the final state, not per-step results",
    )
    sim_p.set_defaults(func=cmd_simulate)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def cmd_simulate(args: argparse.Namespace) -> int:
    """Load and run a scenario file."""
    path = Path(args.scenario)
    if not path.exists():
        raise ValidationException(f"Scenario file not found: {path}", field="scenario", value=str(path))
    try:
        scenario = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ValidationException(f"Scenario is not valid JSON: {e}", field="scenario", value=str(path)) from e

    report = run_scenario(scenario)
    if args.quiet:
        report.pop("steps", None)
    output_result(report, args.output)
    return 0 if not report["ledger_violations"] else 1


def run_scenario(scenario: dict[str, Any]) -> dict[str, Any]:
    """Execute a scenario and return a report of every step and the final state.

    Raises:
        ConfigException: If the scenario's config overrides are invalid.
        ValidationException: If a step is malformed or an expected error
            did not occur.
        TribunalException: If a step fails without ``expect_error``.
    """
    try:
        config = get_protocol_config().with_overrides(**scenario.get("config", {}))
    except ValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigException(f"Invalid scenario configuration: {e.error_count()} error(s)", invalid_fields=fields) from e

    clock = ManualClock(start=scenario.get("start", 0))
    values = InMemoryValueStore()
    for owner, amount in scenario.get("balances", {}).items():
        values.mint(wallet(owner), amount)
    service = ArbitrationService(config=config, clock=clock, transfers=values)

    steps = []
    for index, step in enumerate(scenario.get("steps", [])):
        steps.append(_run_step(service, clock, index, step))

    return {
        "steps": steps,
        "now": clock.now(),
        "balances": values.balances(),
        "subjects": {sid: s.to_dict() for sid, s in service.store.subjects.items()},
        "escrows": {sid: e.to_dict() for sid, e in service.store.escrows.items()},
        "jurors": {owner: j.to_dict() for owner, j in service.store.jurors.items()},
        "challengers": {owner: c.to_dict() for owner, c in service.store.challengers.items()},
        "treasury": service.store.treasury.to_dict(),
        "ledger_violations": service.check_ledgers(),
    }


def _run_step(service: ArbitrationService, clock: ManualClock, index: int, step: dict[str, Any]) -> dict[str, Any]:
    if "advance" in step:
        try:
            seconds = int(step["advance"])
        except (TypeError, ValueError) as e:
            raise ValidationException(f"Step {index}: invalid advance: {e}", field="advance", value=step["advance"]) from e
        now = clock.advance(seconds)
        return {"step": index, "advance": seconds, "now": now}

    operation = step.get("op")
    if operation not in SCENARIO_OPERATIONS:
        raise ValidationException(f"Step {index}: unknown operation {operation!r}", field="op", value=operation)

    arguments = _coerce_arguments(index, step.get("args", {}))
    expected = step.get("expect_error")

    method = getattr(service, operation)
    try:
        inspect.signature(method).bind(**arguments)
    except TypeError as e:
        raise ValidationException(f"Step {index}: bad arguments for {operation}: {e}", field="args", value=sorted(arguments)) from e

    try:
        result = method(**arguments)
    except TribunalException as e:
        if expected != type(e).__name__:
            raise
        logger.info(f"Step {index}: {operation} failed as expected with {expected}")
        return {"step": index, "op": operation, "error": e.to_dict()}

    if expected is not None:
        raise ValidationException(f"Step {index}: expected {expected} from {operation}, but it succeeded", field="expect_error", value=expected)
    return {"step": index, "op": operation, "result": _serialize(result)}


def _coerce_arguments(index: int, arguments: Any) -> dict[str, Any]:
    if not isinstance(arguments, dict):
        raise ValidationException(f"Step {index}: args must be an object", field="args", value=arguments)
    coerced = {}
    for name, value in arguments.items():
        if name in _ENUM_ARGUMENTS and value is not None:
            try:
                value = _ENUM_ARGUMENTS[name](value)
            except ValueError as e:
                raise ValidationException(f"Step {index}: {e}", field=name, value=value) from e
        coerced[name] = value
    return coerced


def _serialize(result: Any) -> Any:
    if hasattr(result, "to_dict"):
        return result.to_dict()
    if dataclasses.is_dataclass(result) and not isinstance(result, type):
        return dataclasses.asdict(result)
    return result
