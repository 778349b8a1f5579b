"""Validation functions for the arbitration engine.

Each validator returns a list of error messages (empty if valid). The
service joins them into a single ``ValidationException`` before touching
any state.
"""

from __future__ import annotations

from ..core.config import ProtocolConfig
from .arithmetic import bps_of
from .models import Case, Subject


# ============================================================================
# Field Validators
# ============================================================================

def validate_cid(value: str, config: ProtocolConfig, field_name: str = "details_cid") -> list[str]:
    """Evidence references are opaque but bounded."""
    if not isinstance(value, str):
        return [f"{field_name} must be a string"]
    if len(value) > config.max_cid_length:
        return [f"{field_name} exceeds {config.max_cid_length} characters ({len(value)})"]
    return []


def validate_amount(amount: int, field_name: str = "amount", minimum: int = 1) -> list[str]:
    if not isinstance(amount, int) or isinstance(amount, bool):
        return [f"{field_name} must be an integer"]
    if amount < minimum:
        return [f"{field_name} {amount} below minimum {minimum}"]
    return []


# ============================================================================
# Operation Validators
# ============================================================================

def validate_subject_creation(
    subject_id: str,
    stake: int,
    voting_period: int,
    max_stake: int | None,
    free: bool,
    linked: bool,
    details_cid: str,
    config: ProtocolConfig,
) -> list[str]:
    """Validate a new subject.

    Checks:
    1. Subject id is present
    2. Free subjects carry no stake and no cap
    3. Standalone subjects start with at least the minimum defender stake
    4. Voting period and cap are positive
    5. Evidence reference fits
    """
    errors = []

    if not subject_id:
        errors.append("Subject id is required")

    if free:
        if stake:
            errors.append("Free subjects carry no stake")
        if max_stake is not None:
            errors.append("Free subjects have no stake cap")
        if linked:
            errors.append("Free subjects cannot link a defender pool")
    elif stake < 0:
        errors.append("Stake must not be negative")
    elif stake and stake < config.min_defender_stake:
        errors.append(f"Stake {stake} below minimum {config.min_defender_stake}")

    if voting_period <= 0:
        errors.append(f"Voting period must be positive, got {voting_period}")
    if max_stake is not None and max_stake <= 0:
        errors.append(f"Max stake must be positive, got {max_stake}")

    errors.extend(validate_cid(details_cid, config))
    return errors


def validate_defender_stake(subject: Subject, amount: int, details_cid: str, config: ProtocolConfig) -> list[str]:
    errors = []
    if subject.free:
        errors.append("Free subjects carry no stake")
    errors.extend(validate_amount(amount, "stake", max(1, config.min_defender_stake)))
    errors.extend(validate_cid(details_cid, config))
    return errors


def validate_bond(bond: int, min_bond: int, details_cid: str, config: ProtocolConfig) -> list[str]:
    """A challenger bond must meet the reputation-adjusted minimum."""
    errors = validate_amount(bond, "bond", max(1, min_bond))
    errors.extend(validate_cid(details_cid, config))
    return errors


def validate_vote_allocation(case: Case, stake_allocation: int, rationale_cid: str, config: ProtocolConfig) -> list[str]:
    """Validate a vote allocation.

    Checks:
    1. Allocation is a positive integer
    2. Non-free cases meet the minimum fraction of the case bond
    3. Rationale reference fits
    """
    errors = validate_amount(stake_allocation, "stake_allocation")
    if not errors and not case.is_free and config.min_vote_allocation_bps:
        minimum = bps_of(case.total_bond, config.min_vote_allocation_bps)
        if stake_allocation < minimum:
            errors.append(f"Allocation {stake_allocation} below minimum {minimum} for this case")
    errors.extend(validate_cid(rationale_cid, config, "rationale_cid"))
    return errors


def validate_reversal_stake(subject: Subject, stake: int, details_cid: str, config: ProtocolConfig) -> list[str]:
    """Restorers and appellants must stake at least the invalidating case's total."""
    errors = []
    if subject.free:
        if stake:
            errors.append("Free subjects are restored without stake")
    else:
        errors.extend(validate_amount(stake, "stake", max(1, subject.min_restoration_stake())))
    errors.extend(validate_cid(details_cid, config))
    return errors
