# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Custom exception hierarchy for Tribunal.

Errors fall into three families:

- validation errors (bad input, below-minimum amounts, wrong status, wrong
  caller), rejected before any state is touched
- state conflicts (already resolved, already voted, window closed), which
  mean the caller is working from a stale view and should re-fetch
- invariant violations (overflow, division by zero), which valid
  configuration can never trigger
"""

from __future__ import annotations

from typing import Any


class TribunalException(Exception):  # noqa: N818
    """Base exception for all Tribunal errors.

    All Tribunal-specific exceptions should inherit from this class.
    """

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# ============================================================================
# Validation errors
# ============================================================================


class ValidationException(TribunalException):
    """Exception for validation errors.

    Raised when:
    - An amount is below the required minimum
    - A record is in the wrong status for the requested operation
    - An evidence reference is too long
    - A caller is not allowed to perform the operation
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class InsufficientAvailableStake(ValidationException):
    """A ledger does not have enough available stake."""

    def __init__(self, owner: str, requested: int, available: int):
        super().__init__(
            f"Insufficient available stake for {owner}: requested {requested}, available {available}",
            field="amount",
            value=requested,
        )
        self.details.update({"owner": owner, "available": available})
        self.owner = owner
        self.requested = requested
        self.available = available


class InsufficientHeldStake(ValidationException):
    """A ledger does not have enough held stake to release or slash."""

    def __init__(self, owner: str, requested: int, held: int):
        super().__init__(
            f"Insufficient held stake for {owner}: requested {requested}, held {held}",
            field="amount",
            value=requested,
        )
        self.details.update({"owner": owner, "held": held})
        self.owner = owner
        self.requested = requested
        self.held = held


class InsufficientFunds(ValidationException):
    """The value transfer port could not move the requested amount."""

    def __init__(self, account: str, requested: int, balance: int):
        super().__init__(
            f"Insufficient funds in {account}: requested {requested}, balance {balance}",
            field="amount",
            value=requested,
        )
        self.details.update({"account": account, "balance": balance})
        self.account = account
        self.requested = requested
        self.balance = balance


class InvalidStatusError(ValidationException):
    """A record is not in a status that permits the operation."""

    def __init__(self, resource_type: str, resource_id: str, status: str, operation: str):
        super().__init__(
            f"Cannot {operation}: {resource_type} {resource_id} is {status}",
            field="status",
            value=status,
        )
        self.details.update({"resource_type": resource_type, "resource_id": resource_id, "operation": operation})
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.status = status
        self.operation = operation


class UnauthorizedError(ValidationException):
    """The caller may not perform this operation."""

    def __init__(self, message: str, caller: str | None = None):
        super().__init__(message, field="caller", value=caller)
        self.caller = caller


class ConfigException(TribunalException):
    """Exception for configuration errors.

    Raised when:
    - Environment variables hold values of the wrong type
    - Fee or share basis points exceed 100%
    - Reputation zones are out of order
    """

    def __init__(self, message: str, invalid_fields: list[str] | None = None):
        details = {}
        if invalid_fields:
            details["invalid_fields"] = invalid_fields
        super().__init__(message, details)
        self.invalid_fields = invalid_fields or []


class NotFoundError(TribunalException):
    """Exception for resource not found errors.

    Raised when:
    - Requested subject doesn't exist
    - Requested case or round doesn't exist
    - Requested participant account doesn't exist
    """

    def __init__(self, resource_type: str, resource_id: str):
        message = f"{resource_type} not found: {resource_id}"
        details = {
            "resource_type": resource_type,
            "resource_id": resource_id,
        }
        super().__init__(message, details)
        self.resource_type = resource_type
        self.resource_id = resource_id


# ============================================================================
# State conflicts
# ============================================================================


class ConflictError(TribunalException):
    """Exception for conflict errors.

    Raised when:
    - Attempting to create a duplicate record
    - The caller acted on a stale view of a case or round
    """

    def __init__(self, message: str, existing_id: str | None = None):
        details = {}
        if existing_id:
            details["existing_id"] = existing_id
        super().__init__(message, details)
        self.existing_id = existing_id


class CaseAlreadyOpenError(ConflictError):
    def __init__(self, subject_id: str, round: int):
        super().__init__(f"Subject {subject_id} already has an open case in round {round}", existing_id=f"{subject_id}#{round}")
        self.subject_id = subject_id
        self.round = round


class AlreadyResolvedError(ConflictError):
    def __init__(self, subject_id: str, round: int):
        super().__init__(f"Case {subject_id}#{round} is already resolved", existing_id=f"{subject_id}#{round}")
        self.subject_id = subject_id
        self.round = round


class AlreadyVotedError(ConflictError):
    def __init__(self, voter: str, subject_id: str, round: int):
        super().__init__(f"{voter} already voted on {subject_id}#{round}", existing_id=f"{subject_id}#{round}:{voter}")
        self.voter = voter
        self.subject_id = subject_id
        self.round = round


class AlreadyClaimedError(ConflictError):
    def __init__(self, role: str, owner: str, subject_id: str, round: int):
        super().__init__(
            f"{role} reward for {owner} on {subject_id}#{round} is already claimed",
            existing_id=f"{subject_id}#{round}:{owner}",
        )
        self.details["role"] = role
        self.role = role
        self.owner = owner
        self.subject_id = subject_id
        self.round = round


class VotingClosedError(ConflictError):
    def __init__(self, subject_id: str, round: int, voting_ends_at: int):
        super().__init__(f"Voting on {subject_id}#{round} closed at {voting_ends_at}")
        self.details["voting_ends_at"] = voting_ends_at
        self.voting_ends_at = voting_ends_at


class VotingNotEndedError(ConflictError):
    def __init__(self, subject_id: str, round: int, voting_ends_at: int):
        super().__init__(f"Voting on {subject_id}#{round} is open until {voting_ends_at}")
        self.details["voting_ends_at"] = voting_ends_at
        self.voting_ends_at = voting_ends_at


class StakeStillLockedError(ConflictError):
    def __init__(self, voter: str, unlock_at: int):
        super().__init__(f"Stake for {voter} is locked until {unlock_at}")
        self.details["unlock_at"] = unlock_at
        self.unlock_at = unlock_at


class StakeAlreadyUnlockedError(ConflictError):
    def __init__(self, voter: str, subject_id: str, round: int):
        super().__init__(f"Stake for {voter} on {subject_id}#{round} is already unlocked")


class ClaimsIncompleteError(ConflictError):
    def __init__(self, subject_id: str, round: int, outstanding: int):
        super().__init__(f"Round {subject_id}#{round} has {outstanding} outstanding claims")
        self.details["outstanding"] = outstanding
        self.outstanding = outstanding


# ============================================================================
# Invariant violations
# ============================================================================


class InvariantViolation(TribunalException):
    """Arithmetic or bookkeeping guard tripped.

    Never raised under valid configuration; seeing one means a bug or a
    corrupted record, not a user error.
    """
