"""Tests for jurors, defender pools, subjects and disputes in ArbitrationService."""

from __future__ import annotations

import pytest

from tribunal.core.exceptions import (
    CaseAlreadyOpenError,
    ConflictError,
    InsufficientAvailableStake,
    InsufficientFunds,
    InvalidStatusError,
    NotFoundError,
    UnauthorizedError,
    ValidationException,
    VotingClosedError,
)
from tribunal.engine.enums import CaseKind, StakingMode, SubjectStatus, VoteChoice
from tribunal.engine.ports import TREASURY, escrow_vault, juror_vault, subject_vault, wallet

STARTING_BALANCE = 1_000_000


# ============================================================================
# Jurors
# ============================================================================


class TestJurors:
    """Tests for juror registration and stake management."""

    def test_register(self, service, values):
        juror = service.register_juror("carol", 500)

        assert juror.reputation == 5_000
        assert juror.ledger.available == 500
        assert values.balance(wallet("carol")) == STARTING_BALANCE - 500
        assert values.balance(juror_vault("carol")) == 500

    def test_register_twice(self, service):
        service.register_juror("carol", 500)
        with pytest.raises(ConflictError):
            service.register_juror("carol", 500)

    def test_register_below_minimum(self, service):
        with pytest.raises(ValidationException):
            service.register_juror("carol", 9)

    def test_register_without_funds(self, service):
        with pytest.raises(InsufficientFunds):
            service.register_juror("zed", 100)
        assert service.get_juror("zed") is None

    def test_deposit_and_withdraw(self, service, values):
        service.register_juror("carol", 500)
        service.deposit_juror_stake("carol", 200)
        split = service.withdraw_juror_stake("carol", 300)

        assert (split.returned, split.slashed) == (300, 0)
        assert service.get_juror("carol").ledger.total == 400
        assert values.balance(wallet("carol")) == STARTING_BALANCE - 400

    def test_low_reputation_withdrawal_is_slashed(self, service, values):
        service.register_juror("carol", 500)
        service.get_juror("carol").reputation = 1_000

        split = service.withdraw_juror_stake("carol", 100)

        assert (split.returned, split.slashed) == (20, 80)
        assert service.get_treasury().balance == 80
        assert values.balance(TREASURY) == 80

    def test_withdraw_more_than_available(self, service):
        service.register_juror("carol", 500)
        with pytest.raises(InsufficientAvailableStake):
            service.withdraw_juror_stake("carol", 501)

    def test_unregister(self, service, values):
        service.register_juror("carol", 500)
        split = service.unregister_juror("carol")

        assert split.returned == 500
        assert service.get_juror("carol") is None
        assert values.balance(wallet("carol")) == STARTING_BALANCE

    def test_unregister_with_held_stake(self, service, disputed):
        service.vote("s1", "carol", VoteChoice.FOR, 100)
        with pytest.raises(InvalidStatusError):
            service.unregister_juror("carol")

    def test_unknown_juror(self, service):
        with pytest.raises(NotFoundError):
            service.deposit_juror_stake("nobody", 10)


# ============================================================================
# Defender Pools
# ============================================================================


class TestDefenderPools:
    """Tests for defender pool management."""

    def test_create_and_fund(self, service):
        pool = service.create_pool("alice", 1_000, max_bond=400)
        service.deposit_pool("alice", 500)

        assert pool.ledger.available == 1_500
        assert pool.max_bond == 400

    def test_duplicate_pool(self, service):
        service.create_pool("alice")
        with pytest.raises(ConflictError):
            service.create_pool("alice")

    def test_withdraw(self, service, values):
        service.create_pool("alice", 1_000)
        service.withdraw_pool("alice", 400)
        assert service.get_pool("alice").ledger.total == 600
        assert values.balance(wallet("alice")) == STARTING_BALANCE - 600

    def test_set_max_bond(self, service):
        service.create_pool("alice", 1_000)
        service.set_pool_max_bond("alice", 300)
        assert service.get_pool("alice").max_bond == 300
        with pytest.raises(ValidationException):
            service.set_pool_max_bond("alice", 0)
        service.set_pool_max_bond("alice", None)
        assert service.get_pool("alice").max_bond is None


# ============================================================================
# Subjects
# ============================================================================


class TestCreateSubject:
    """Tests for subject creation."""

    def test_standalone_with_stake_is_valid(self, service, values):
        subject = service.create_subject("s1", "alice", stake=1_000)

        assert subject.status == SubjectStatus.VALID
        assert subject.defender_count == 1
        assert subject.ledger.available == 1_000
        assert values.balance(subject_vault("s1")) == 1_000

    def test_without_stake_is_dormant(self, service):
        assert service.create_subject("s1", "alice").status == SubjectStatus.DORMANT

    def test_free_subject_is_valid(self, service):
        assert service.create_subject("f1", "alice", free=True).status == SubjectStatus.VALID

    def test_free_subject_rejects_stake(self, service):
        with pytest.raises(ValidationException):
            service.create_subject("f1", "alice", free=True, stake=100)

    def test_linked_to_funded_pool_is_valid(self, service):
        service.create_pool("alice", 1_000)
        subject = service.create_subject("p1", "alice", pool_owner="alice")
        assert subject.status == SubjectStatus.VALID
        assert subject.is_linked

    def test_linked_to_empty_pool_is_dormant(self, service):
        service.create_pool("alice")
        assert service.create_subject("p1", "alice", pool_owner="alice").status == SubjectStatus.DORMANT

    def test_cannot_link_someone_elses_pool(self, service):
        service.create_pool("bob", 1_000)
        with pytest.raises(UnauthorizedError):
            service.create_subject("p1", "alice", pool_owner="bob")

    def test_missing_pool(self, service):
        with pytest.raises(NotFoundError):
            service.create_subject("p1", "alice", pool_owner="alice")

    def test_duplicate_subject(self, service):
        service.create_subject("s1", "alice")
        with pytest.raises(ConflictError):
            service.create_subject("s1", "alice")

    def test_stake_below_minimum(self, service):
        with pytest.raises(ValidationException):
            service.create_subject("s1", "alice", stake=99)

    def test_cid_too_long(self, service):
        with pytest.raises(ValidationException):
            service.create_subject("s1", "alice", details_cid="x" * 65)

    def test_default_voting_period(self, service):
        assert service.create_subject("s1", "alice").voting_period == 100


class TestStakeSubject:
    """Tests for adding direct defender stake."""

    def test_dormant_becomes_valid(self, service):
        service.create_subject("s1", "alice")
        subject = service.stake_subject("s1", "frank", 200)

        assert subject.status == SubjectStatus.VALID
        assert subject.defender_count == 1

    def test_repeat_stake_accumulates(self, service):
        service.create_subject("s1", "alice", stake=200)
        service.stake_subject("s1", "alice", 300)

        record = service.store.defender_records[("s1", 0, "alice")]
        assert record.stake == 500
        assert service.get_subject("s1").defender_count == 1

    def test_invalid_subject_cannot_be_staked(self, service, invalidated):
        with pytest.raises(InvalidStatusError):
            service.stake_subject("s1", "frank", 200)

    def test_challenger_cannot_defend(self, service, disputed):
        with pytest.raises(UnauthorizedError):
            service.stake_subject("s1", "bob", 200)

    def test_voter_cannot_defend(self, service, disputed):
        service.vote("s1", "carol", VoteChoice.FOR, 100)
        with pytest.raises(UnauthorizedError):
            service.stake_subject("s1", "carol", 200)

    def test_match_mode_stake_during_dispute_is_safe(self, service, disputed):
        service.stake_subject("s1", "frank", 200)

        subject = service.get_subject("s1")
        assert disputed.stake_at_risk == 500
        assert subject.ledger.available == 700
        assert service.get_case("s1", 0).defender_count == 2

    def test_proportional_stake_during_dispute_is_at_risk(self, service, jurors):
        service.create_subject("s2", "alice", mode=StakingMode.PROPORTIONAL, stake=1_000, max_stake=1_100)
        case = service.open_dispute("s2", "bob", 500)
        service.stake_subject("s2", "frank", 300)

        # Cap of 1100 lets only 100 of the new 300 go at risk
        assert case.stake_held_direct == 1_100
        assert service.get_subject("s2").ledger.available == 200


# ============================================================================
# Disputes
# ============================================================================


class TestOpenDispute:
    """Tests for opening disputes."""

    def test_match_mode(self, service, values, disputed):
        subject = service.get_subject("s1")

        assert disputed.kind == CaseKind.DISPUTE
        assert disputed.total_bond == 500
        assert disputed.stake_held_direct == 500
        assert disputed.voting_ends_at == disputed.voting_starts_at + 100
        assert subject.status == SubjectStatus.DISPUTED
        assert subject.ledger.held == 500
        assert values.balance(escrow_vault("s1")) == 500
        assert service.get_challenger("bob").cases_filed == 1

    def test_match_mode_respects_stake_cap(self, service):
        service.create_subject("s1", "alice", stake=1_000, max_stake=300)
        case = service.open_dispute("s1", "bob", 500)
        assert case.stake_at_risk == 300

    def test_match_mode_shortfall(self, service):
        service.create_subject("s1", "alice", stake=200)
        with pytest.raises(InsufficientAvailableStake):
            service.open_dispute("s1", "bob", 500)
        assert service.get_subject("s1").status == SubjectStatus.VALID

    def test_match_mode_takes_pool_first(self, service):
        service.create_pool("alice", 300)
        service.create_subject("p1", "alice", pool_owner="alice", stake=1_000)
        case = service.open_dispute("p1", "bob", 500)

        assert (case.stake_held_pool, case.stake_held_direct) == (300, 200)
        assert case.defender_count == 2

    def test_pool_max_bond_limits_commitment(self, service):
        service.create_pool("alice", 1_000, max_bond=100)
        service.create_subject("p1", "alice", pool_owner="alice", stake=1_000)
        case = service.open_dispute("p1", "bob", 500)
        assert (case.stake_held_pool, case.stake_held_direct) == (100, 400)

    def test_proportional_mode_holds_everything(self, service):
        service.create_subject("s2", "alice", mode=StakingMode.PROPORTIONAL, stake=1_000)
        case = service.open_dispute("s2", "bob", 500)
        assert case.stake_at_risk == 1_000
        assert case.total_pool == 1_500

    def test_bond_below_minimum(self, service):
        service.create_subject("s1", "alice", stake=1_000)
        with pytest.raises(ValidationException):
            service.open_dispute("s1", "bob", 499)

    def test_low_reputation_raises_minimum_bond(self, service):
        service.create_subject("s1", "alice", stake=1_000)
        assert service.min_bond_for("frank") == 500
        service.open_dispute("s1", "frank", 500)
        service.get_challenger("frank").reputation = 2_500
        assert service.min_bond_for("frank") == 707

    def test_creator_cannot_challenge(self, service):
        service.create_subject("s1", "alice", stake=1_000)
        with pytest.raises(UnauthorizedError):
            service.open_dispute("s1", "alice", 500)

    def test_defender_cannot_challenge(self, service):
        service.create_subject("s1", "alice", stake=1_000)
        service.stake_subject("s1", "frank", 200)
        with pytest.raises(UnauthorizedError):
            service.open_dispute("s1", "frank", 500)

    def test_second_dispute_rejected(self, service, disputed):
        with pytest.raises(CaseAlreadyOpenError):
            service.open_dispute("s1", "frank", 500)

    def test_dormant_subject_cannot_be_disputed(self, service):
        service.create_subject("s1", "alice")
        with pytest.raises(InvalidStatusError):
            service.open_dispute("s1", "bob", 500)

    def test_free_case_takes_no_bond(self, service):
        service.create_subject("f1", "alice", free=True)
        with pytest.raises(ValidationException):
            service.open_dispute("f1", "bob", 500)
        case = service.open_dispute("f1", "bob", 0)
        assert case.kind == CaseKind.FREE
        assert case.total_pool == 0


class TestAddToDispute:
    """Tests for adding bond to an open dispute."""

    def test_new_challenger_joins(self, service, disputed):
        case = service.add_to_dispute("s1", "frank", 500)

        assert case.total_bond == 1_000
        assert case.challenger_count == 2
        assert case.stake_held_direct == 1_000

    def test_existing_challenger_adds(self, service, disputed):
        service.add_to_dispute("s1", "bob", 500)

        assert service.store.challenger_records[("s1", 0, "bob")].bond == 1_000
        assert service.get_challenger("bob").cases_filed == 1

    def test_holds_what_is_left(self, service, disputed):
        case = service.add_to_dispute("s1", "frank", 800)
        assert case.stake_held_direct == 1_000
        assert case.total_bond == 1_300

    def test_after_voting_closed(self, service, clock, disputed):
        clock.advance(100)
        with pytest.raises(VotingClosedError):
            service.add_to_dispute("s1", "frank", 500)

    def test_voter_cannot_join(self, service, disputed):
        service.vote("s1", "carol", VoteChoice.FOR, 100)
        with pytest.raises(UnauthorizedError):
            service.add_to_dispute("s1", "carol", 500)

    def test_no_open_case(self, service):
        service.create_subject("s1", "alice", stake=1_000)
        with pytest.raises(InvalidStatusError):
            service.add_to_dispute("s1", "bob", 500)
