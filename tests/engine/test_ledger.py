"""Tests for tribunal.engine.ledger - BalanceLedger."""

from __future__ import annotations

import pytest

from tribunal.core.exceptions import (
    InsufficientAvailableStake,
    InsufficientHeldStake,
    InvariantViolation,
    ValidationException,
)
from tribunal.engine.ledger import BalanceLedger


@pytest.fixture
def ledger() -> BalanceLedger:
    ledger = BalanceLedger(owner="carol")
    ledger.deposit(1000)
    return ledger


class TestBalanceLedger:
    """Tests for ledger bookkeeping."""

    def test_deposit(self, ledger):
        assert (ledger.total, ledger.available, ledger.held) == (1000, 1000, 0)
        assert ledger.check_invariant()

    def test_withdraw(self, ledger):
        ledger.withdraw(400)
        assert (ledger.total, ledger.available, ledger.held) == (600, 600, 0)

    def test_withdraw_more_than_available(self, ledger):
        ledger.hold(800)
        with pytest.raises(InsufficientAvailableStake) as exc_info:
            ledger.withdraw(300)
        assert exc_info.value.available == 200
        assert ledger.total == 1000

    def test_hold_and_release(self, ledger):
        ledger.hold(300)
        assert (ledger.total, ledger.available, ledger.held) == (1000, 700, 300)
        ledger.release(100)
        assert (ledger.total, ledger.available, ledger.held) == (1000, 800, 200)
        assert ledger.check_invariant()

    def test_hold_more_than_available(self, ledger):
        with pytest.raises(InsufficientAvailableStake):
            ledger.hold(1001)

    def test_release_more_than_held(self, ledger):
        ledger.hold(10)
        with pytest.raises(InsufficientHeldStake):
            ledger.release(11)

    def test_slash(self, ledger):
        ledger.hold(300)
        assert ledger.slash(250) == 250
        assert (ledger.total, ledger.available, ledger.held) == (750, 700, 50)
        assert ledger.check_invariant()

    def test_slash_more_than_held(self, ledger):
        with pytest.raises(InsufficientHeldStake):
            ledger.slash(1)

    def test_negative_amount_rejected(self, ledger):
        with pytest.raises(ValidationException):
            ledger.deposit(-5)
        with pytest.raises(ValidationException):
            ledger.hold(-1)

    def test_non_integer_rejected(self, ledger):
        with pytest.raises(ValidationException):
            ledger.deposit(1.5)

    def test_is_empty(self):
        ledger = BalanceLedger(owner="x")
        assert ledger.is_empty
        ledger.deposit(1)
        assert not ledger.is_empty

    def test_inconsistent_construction_rejected(self):
        with pytest.raises(InvariantViolation):
            BalanceLedger(owner="x", total=10, available=5, held=4)

    def test_dict_round_trip(self, ledger):
        ledger.hold(100)
        restored = BalanceLedger.from_dict(ledger.to_dict())
        assert restored == ledger
