"""Ports to the engine's external collaborators.

The engine never reads the wall clock or moves value itself. It asks a
``Clock`` for the time and a ``ValueTransfer`` to move value between named
accounts. In-memory implementations are provided for tests, the CLI
simulator and embedding applications that keep balances themselves.
"""

from __future__ import annotations

import logging
import time
from typing import Protocol, runtime_checkable

from ..core.exceptions import InsufficientFunds, ValidationException

logger = logging.getLogger(__name__)


# =============================================================================
# ACCOUNT NAMES
# =============================================================================

TREASURY = "treasury"


def wallet(owner: str) -> str:
    """A participant's own spendable balance."""
    return f"wallet:{owner}"


def juror_vault(owner: str) -> str:
    """Value backing a juror's staking ledger."""
    return f"juror:{owner}"


def pool_vault(owner: str) -> str:
    """Value backing a defender pool's ledger."""
    return f"pool:{owner}"


def subject_vault(subject_id: str) -> str:
    """Value backing a subject's direct defender stake."""
    return f"subject:{subject_id}"


def escrow_vault(subject_id: str) -> str:
    """Value held for a subject's resolved and pending rounds."""
    return f"escrow:{subject_id}"


# =============================================================================
# CLOCK
# =============================================================================


@runtime_checkable
class Clock(Protocol):
    """Source of the current time in whole seconds."""

    def now(self) -> int:
        """Return the current timestamp."""
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: int = 0):
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValidationException("Clock cannot move backwards", field="seconds", value=seconds)
        self._now += seconds
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValidationException("Clock cannot move backwards", field="timestamp", value=timestamp)
        self._now = timestamp


# =============================================================================
# VALUE TRANSFER
# =============================================================================


@runtime_checkable
class ValueTransfer(Protocol):
    """Atomic movement of value between named accounts."""

    def transfer(self, source: str, dest: str, amount: int) -> None:
        """Move ``amount`` from ``source`` to ``dest``.

        Raises:
            InsufficientFunds: If ``source`` cannot cover the amount. No
                value moves in that case.
        """
        ...


class InMemoryValueStore:
    """Dictionary-backed value store.

    Accounts spring into existence at zero the first time they are named.
    """

    def __init__(self, balances: dict[str, int] | None = None):
        self._balances: dict[str, int] = dict(balances or {})

    def balance(self, account: str) -> int:
        return self._balances.get(account, 0)

    def balances(self) -> dict[str, int]:
        return {account: amount for account, amount in sorted(self._balances.items()) if amount}

    def total(self) -> int:
        return sum(self._balances.values())

    def mint(self, account: str, amount: int) -> None:
        """Create value out of nothing. Only for funding test and simulation wallets."""
        if amount < 0:
            raise ValidationException("Mint amount must not be negative", field="amount", value=amount)
        self._balances[account] = self.balance(account) + amount

    def transfer(self, source: str, dest: str, amount: int) -> None:
        if amount < 0:
            raise ValidationException("Transfer amount must not be negative", field="amount", value=amount)
        if amount == 0:
            return
        available = self.balance(source)
        if amount > available:
            raise InsufficientFunds(source, amount, available)
        self._balances[source] = available - amount
        self._balances[dest] = self.balance(dest) + amount
        logger.debug(f"Transferred {amount} from {source} to {dest}")
