"""Tests for vote unlocking, round pruning, sweeping and record closing."""

from __future__ import annotations

import pytest

from tribunal.core.exceptions import (
    ClaimsIncompleteError,
    ConflictError,
    InsufficientFunds,
    InvalidStatusError,
    NotFoundError,
    StakeAlreadyUnlockedError,
    StakeStillLockedError,
    UnauthorizedError,
    ValidationException,
)
from tribunal.engine.enums import VoteChoice
from tribunal.engine.ports import TREASURY, wallet

STARTING_BALANCE = 1_000_000


class TestUnlockVoteStake:
    def test_locked_until_buffer_passes(self, service, clock, invalidated):
        clock.advance(49)
        with pytest.raises(StakeStillLockedError):
            service.unlock_vote_stake("s1", 0, "carol")

    def test_unlock(self, service, clock, invalidated):
        clock.advance(50)
        assert service.unlock_vote_stake("s1", 0, "carol") == 100

        juror = service.get_juror("carol")
        assert juror.ledger.held == 0
        assert juror.ledger.available == 1_000
        with pytest.raises(StakeAlreadyUnlockedError):
            service.unlock_vote_stake("s1", 0, "carol")

    def test_unlock_is_independent_of_claim(self, service, clock, invalidated):
        clock.advance(50)
        service.unlock_vote_stake("s1", 0, "erin")
        assert service.claim_voter("s1", 0, "erin") == 0


class TestPruneRound:
    def test_outstanding_claims_block_prune(self, service, invalidated):
        service.claim_challenger("s1", 0, "bob")
        with pytest.raises(ClaimsIncompleteError) as exc_info:
            service.prune_round("s1", 0)
        assert exc_info.value.outstanding == 4

    def test_prune_sends_dust_to_treasury(self, service, invalidated):
        service.claim_challenger("s1", 0, "bob")
        service.claim_defender("s1", 0, "alice")
        for voter in ("carol", "dave", "erin"):
            service.claim_voter("s1", 0, voter)

        assert service.prune_round("s1", 0) == 1
        assert service.get_round_result("s1", 0) is None
        assert service.get_treasury().balance == 11


class TestSweeps:
    def test_creator_sweep_window(self, service, clock, invalidated):
        clock.advance(999)
        with pytest.raises(InvalidStatusError):
            service.sweep_round_creator("s1", 0, "alice")

        clock.advance(1)
        with pytest.raises(UnauthorizedError):
            service.sweep_round_creator("s1", 0, "bob")
        assert service.sweep_round_creator("s1", 0, "alice") == 1_490

    def test_creator_sweep_takes_only_unclaimed(self, service, clock, values, invalidated):
        service.claim_challenger("s1", 0, "bob")
        clock.advance(1_000)
        assert service.sweep_round_creator("s1", 0, "alice") == 690
        assert values.balance(wallet("alice")) == STARTING_BALANCE - 1_000 + 690
        with pytest.raises(NotFoundError):
            service.claim_defender("s1", 0, "alice")

    def test_creator_window_closes(self, service, clock, invalidated):
        clock.advance(5_000)
        with pytest.raises(InvalidStatusError):
            service.sweep_round_creator("s1", 0, "alice")

    def test_treasury_sweep(self, service, clock, values, invalidated):
        clock.advance(4_999)
        with pytest.raises(InvalidStatusError):
            service.sweep_round_treasury("s1", 0, "heidi")

        clock.advance(1)
        assert service.sweep_round_treasury("s1", 0, "heidi") == 14
        assert values.balance(wallet("heidi")) == STARTING_BALANCE + 14
        assert values.balance(TREASURY) == service.get_treasury().balance == 10 + 1_476
        assert service.get_escrow("s1").balance == 0


class TestCloseRecords:
    def test_vote_record_needs_claim_and_unlock(self, service, clock, invalidated):
        with pytest.raises(ConflictError):
            service.close_vote_record("s1", 0, "carol")

        service.claim_voter("s1", 0, "carol")
        with pytest.raises(StakeStillLockedError):
            service.close_vote_record("s1", 0, "carol")

        clock.advance(50)
        service.unlock_vote_stake("s1", 0, "carol")
        record = service.close_vote_record("s1", 0, "carol")
        assert record.voter == "carol"
        assert service.get_vote("s1", 0, "carol") is None

    def test_challenger_record(self, service, invalidated):
        service.claim_challenger("s1", 0, "bob")
        service.close_challenger_record("s1", 0, "bob")
        assert ("s1", 0, "bob") not in service.store.challenger_records

    def test_defender_record_after_sweep(self, service, clock, invalidated):
        clock.advance(1_000)
        service.sweep_round_creator("s1", 0, "alice")
        service.close_defender_record("s1", 0, "alice")
        assert ("s1", 0, "alice") not in service.store.defender_records

    def test_settled_round_leaves_no_records(self, service, clock, invalidated):
        service.claim_challenger("s1", 0, "bob")
        service.claim_defender("s1", 0, "alice")
        for voter in ("carol", "dave", "erin"):
            service.claim_voter("s1", 0, voter)
        clock.advance(50)
        for voter in ("carol", "dave", "erin"):
            service.unlock_vote_stake("s1", 0, voter)
        service.prune_round("s1", 0)

        for voter in ("carol", "dave", "erin"):
            service.close_vote_record("s1", 0, voter)
        service.close_challenger_record("s1", 0, "bob")
        service.close_defender_record("s1", 0, "alice")

        store = service.store
        assert store.votes == {}
        assert store.challenger_records == {}
        assert store.defender_records == {}
        assert store.escrows["s1"].find_round(0) is None

    def test_unresolved_case(self, service, disputed):
        with pytest.raises(InvalidStatusError):
            service.close_challenger_record("s1", 0, "bob")

    def test_missing_record(self, service, invalidated):
        with pytest.raises(NotFoundError):
            service.close_defender_record("s1", 0, "frank")


class TestTreasuryWithdrawal:
    def test_withdraw(self, service, values, invalidated):
        treasury = service.withdraw_treasury(4, "heidi")

        assert treasury.balance == 6
        assert treasury.total_withdrawn == 4
        assert values.balance(wallet("heidi")) == STARTING_BALANCE + 4

    def test_overdraw(self, service, invalidated):
        with pytest.raises(InsufficientFunds):
            service.withdraw_treasury(11, "heidi")

    def test_zero(self, service, invalidated):
        with pytest.raises(ValidationException):
            service.withdraw_treasury(0, "heidi")


def test_vote_choices_unaffected_by_cleanup(service, clock, invalidated):
    clock.advance(50)
    service.unlock_vote_stake("s1", 0, "dave")
    assert service.get_vote("s1", 0, "dave").choice == VoteChoice.FOR
