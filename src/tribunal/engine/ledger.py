"""Balance ledger for staking parties.

A ledger is pure bookkeeping: ``total`` is what the party has committed,
``available`` is free to vote, withdraw or back a case, and ``held`` is
locked in open cases or votes. The value itself sits in a vault account
behind the transfer port; the service moves it in the same transaction as
the ledger mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..core.exceptions import (
    InsufficientAvailableStake,
    InsufficientHeldStake,
    InvariantViolation,
    ValidationException,
)
from .arithmetic import checked_add, checked_sub


def _require_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValidationException("Amount must be an integer", field="amount", value=amount)
    if amount < 0:
        raise ValidationException("Amount must not be negative", field="amount", value=amount)


@dataclass
class BalanceLedger:
    """Stake accounting for one party.

    Invariant: ``total == available + held``.
    """

    owner: str
    total: int = 0
    available: int = 0
    held: int = 0

    def __post_init__(self) -> None:
        if min(self.total, self.available, self.held) < 0:
            raise ValidationException("Ledger balances must not be negative", field="owner", value=self.owner)
        if not self.check_invariant():
            raise InvariantViolation(
                f"Ledger for {self.owner} is inconsistent",
                self.to_dict(),
            )

    def check_invariant(self) -> bool:
        return self.total == self.available + self.held

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def deposit(self, amount: int) -> None:
        """Add stake; it becomes available immediately."""
        _require_amount(amount)
        self.total = checked_add(self.total, amount)
        self.available = checked_add(self.available, amount)

    def withdraw(self, amount: int) -> None:
        """Remove available stake from the ledger."""
        _require_amount(amount)
        if amount > self.available:
            raise InsufficientAvailableStake(self.owner, amount, self.available)
        self.total = checked_sub(self.total, amount)
        self.available = checked_sub(self.available, amount)

    def hold(self, amount: int) -> None:
        """Lock available stake."""
        _require_amount(amount)
        if amount > self.available:
            raise InsufficientAvailableStake(self.owner, amount, self.available)
        self.available = checked_sub(self.available, amount)
        self.held = checked_add(self.held, amount)

    def release(self, amount: int) -> None:
        """Unlock held stake."""
        _require_amount(amount)
        if amount > self.held:
            raise InsufficientHeldStake(self.owner, amount, self.held)
        self.held = checked_sub(self.held, amount)
        self.available = checked_add(self.available, amount)

    def slash(self, amount: int) -> int:
        """Forfeit held stake irreversibly.

        Returns:
            The slashed amount, for the caller to route to escrow or treasury.
        """
        _require_amount(amount)
        if amount > self.held:
            raise InsufficientHeldStake(self.owner, amount, self.held)
        self.held = checked_sub(self.held, amount)
        self.total = checked_sub(self.total, amount)
        return amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "total": self.total,
            "available": self.available,
            "held": self.held,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BalanceLedger:
        return cls(
            owner=data["owner"],
            total=data.get("total", 0),
            available=data.get("available", 0),
            held=data.get("held", 0),
        )
