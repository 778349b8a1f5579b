"""Tests for tribunal.engine.ports."""

from __future__ import annotations

import pytest

from tribunal.core.exceptions import InsufficientFunds, ValidationException
from tribunal.engine.ports import (
    TREASURY,
    Clock,
    InMemoryValueStore,
    ManualClock,
    SystemClock,
    ValueTransfer,
    escrow_vault,
    juror_vault,
    wallet,
)


class TestClocks:
    def test_protocol_conformance(self):
        assert isinstance(SystemClock(), Clock)
        assert isinstance(ManualClock(), Clock)

    def test_system_clock_is_integer(self):
        assert isinstance(SystemClock().now(), int)

    def test_manual_clock_advances(self):
        clock = ManualClock(start=10)
        assert clock.advance(5) == 15
        clock.set(100)
        assert clock.now() == 100

    def test_manual_clock_never_goes_back(self):
        clock = ManualClock(start=10)
        with pytest.raises(ValidationException):
            clock.advance(-1)
        with pytest.raises(ValidationException):
            clock.set(9)


class TestInMemoryValueStore:
    def test_protocol_conformance(self):
        assert isinstance(InMemoryValueStore(), ValueTransfer)

    def test_account_names_are_namespaced(self):
        assert wallet("alice") != juror_vault("alice")
        assert escrow_vault("s1").startswith("escrow:")
        assert TREASURY not in {wallet("treasury"), juror_vault("treasury")}

    def test_transfer(self):
        store = InMemoryValueStore({"a": 100})
        store.transfer("a", "b", 40)
        assert store.balance("a") == 60
        assert store.balance("b") == 40
        assert store.total() == 100

    def test_zero_transfer_is_noop(self):
        store = InMemoryValueStore()
        store.transfer("a", "b", 0)
        assert store.balances() == {}

    def test_insufficient_funds_moves_nothing(self):
        store = InMemoryValueStore({"a": 10})
        with pytest.raises(InsufficientFunds) as exc_info:
            store.transfer("a", "b", 11)
        assert exc_info.value.balance == 10
        assert store.balances() == {"a": 10}

    def test_negative_amounts_rejected(self):
        store = InMemoryValueStore()
        with pytest.raises(ValidationException):
            store.transfer("a", "b", -1)
        with pytest.raises(ValidationException):
            store.mint("a", -1)

    def test_balances_hide_empty_accounts(self):
        store = InMemoryValueStore({"a": 10, "b": 0})
        assert store.balances() == {"a": 10}
