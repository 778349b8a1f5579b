"""Tests for tribunal.engine.models - accounts, subjects, cases and escrow."""

from __future__ import annotations

import pytest

from tribunal.core.exceptions import ConflictError, InsufficientFunds, InvariantViolation, NotFoundError, ValidationException
from tribunal.engine.enums import CaseKind, ClaimRole, Outcome, StakingMode, SubjectStatus, VoteChoice
from tribunal.engine.ledger import BalanceLedger
from tribunal.engine.models import (
    AppealTerms,
    Case,
    DefenderPool,
    DisputeTerms,
    Escrow,
    FreeTerms,
    RestorationTerms,
    RoundResult,
    Subject,
    Treasury,
    VoteRecord,
    terms_from_dict,
    terms_to_dict,
)


def _subject(**overrides) -> Subject:
    values = {"subject_id": "s1", "creator": "alice", "ledger": BalanceLedger(owner="s1")}
    values.update(overrides)
    return Subject(**values)


def _result(**overrides) -> RoundResult:
    values = {
        "subject_id": "s1",
        "round": 0,
        "kind": CaseKind.DISPUTE,
        "outcome": Outcome.CHALLENGER_WINS,
        "creator": "alice",
        "resolved_at": 1100,
    }
    values.update(overrides)
    return RoundResult(**values)


# ============================================================================
# Subject Tests
# ============================================================================


class TestSubject:
    """Tests for Subject status helpers."""

    def test_defaults(self):
        subject = _subject()
        assert subject.status == SubjectStatus.DORMANT
        assert subject.round == 0
        assert not subject.is_linked

    @pytest.mark.parametrize(
        "status,can_stake,can_dispute,can_restore",
        [
            (SubjectStatus.DORMANT, True, False, False),
            (SubjectStatus.VALID, True, True, False),
            (SubjectStatus.DISPUTED, True, False, False),
            (SubjectStatus.INVALID, False, False, True),
            (SubjectStatus.RESTORING, False, False, False),
        ],
    )
    def test_status_gates(self, status, can_stake, can_dispute, can_restore):
        subject = _subject(status=status)
        assert subject.can_stake() is can_stake
        assert subject.can_dispute() is can_dispute
        assert subject.can_restore() is can_restore

    def test_open_case_blocks_dispute(self):
        assert not _subject(status=SubjectStatus.VALID, active_case=0).can_dispute()

    def test_restoration_period_doubles(self):
        assert _subject(voting_period=100, last_voting_period=300).restoration_voting_period() == 600
        assert _subject(voting_period=100).restoration_voting_period() == 200

    def test_cap_remaining(self):
        assert _subject().cap_remaining(100) is None
        assert _subject(max_stake=300).cap_remaining(100) == 200
        assert _subject(max_stake=300).cap_remaining(400) == 0

    def test_reset_for_next_round(self):
        subject = _subject(status=SubjectStatus.DISPUTED, active_case=0, defender_count=2)
        subject.reset_for_next_round()
        assert (subject.round, subject.status, subject.active_case, subject.defender_count) == (
            1,
            SubjectStatus.DORMANT,
            None,
            0,
        )

    def test_reset_requires_drained_ledger(self):
        subject = _subject()
        subject.ledger.deposit(10)
        with pytest.raises(InvariantViolation):
            subject.reset_for_next_round()

    def test_invalid_voting_period(self):
        with pytest.raises(ValidationException):
            _subject(voting_period=0)


# ============================================================================
# Case Tests
# ============================================================================


class TestCase:
    """Tests for Case and its terms."""

    def test_kinds(self):
        assert Case("s1", 0, DisputeTerms(StakingMode.MATCH)).kind == CaseKind.DISPUTE
        assert Case("s1", 1, RestorationTerms("bob", 100, 1)).kind == CaseKind.RESTORATION
        assert Case("s1", 1, AppealTerms("bob", 100)).kind == CaseKind.APPEAL
        assert Case("s1", 0, FreeTerms()).kind == CaseKind.FREE

    def test_reversal_flags(self):
        assert not Case("s1", 0, DisputeTerms(StakingMode.MATCH)).is_reversal
        assert Case("s1", 1, RestorationTerms("bob", 100, 1)).is_reversal
        assert Case("s1", 1, AppealTerms("bob", 100)).is_reversal
        assert Case("s1", 1, FreeTerms(reversal=True)).is_reversal
        assert not Case("s1", 0, FreeTerms()).is_reversal

    def test_pool_totals(self):
        case = Case("s1", 0, DisputeTerms(StakingMode.MATCH), total_bond=500, stake_held_pool=200, stake_held_direct=300)
        assert case.stake_at_risk == 500
        assert case.total_pool == 1000

    def test_voting_window(self):
        case = Case("s1", 0, DisputeTerms(StakingMode.MATCH))
        case.start_voting(1000, 100)
        assert case.voting_period == 100
        assert case.is_voting_open(1099)
        assert not case.is_voting_open(1100)
        assert case.is_voting_ended(1100)

    def test_terms_dict_round_trip(self):
        for terms in (
            DisputeTerms(StakingMode.PROPORTIONAL),
            RestorationTerms("bob", 100, 1),
            AppealTerms("bob", 100),
            FreeTerms(reversal=True),
        ):
            assert terms_from_dict(terms_to_dict(terms)) == terms

    def test_to_dict(self):
        data = Case("s1", 0, DisputeTerms(StakingMode.MATCH)).to_dict()
        assert data["terms"] == {"kind": "dispute", "mode": "match"}
        assert data["status"] == "pending"
        assert data["outcome"] == "none"


# ============================================================================
# Vote Record Tests
# ============================================================================


class TestVoteRecord:
    """Tests for VoteRecord."""

    def _vote(self, choice: VoteChoice) -> VoteRecord:
        return VoteRecord("s1", 0, "carol", choice, 100, 5, unlock_at=1150)

    def test_correctness(self):
        assert self._vote(VoteChoice.FOR).is_correct(Outcome.CHALLENGER_WINS) is True
        assert self._vote(VoteChoice.AGAINST).is_correct(Outcome.CHALLENGER_WINS) is False
        assert self._vote(VoteChoice.AGAINST).is_correct(Outcome.DEFENDER_WINS) is True
        assert self._vote(VoteChoice.FOR).is_correct(Outcome.NO_PARTICIPATION) is None

    def test_can_unlock(self):
        vote = self._vote(VoteChoice.FOR)
        assert not vote.can_unlock(1149)
        assert vote.can_unlock(1150)
        vote.stake_unlocked = True
        assert not vote.can_unlock(2000)

    def test_dict_round_trip(self):
        vote = self._vote(VoteChoice.AGAINST)
        assert VoteRecord.from_dict(vote.to_dict()) == vote


# ============================================================================
# Round Result and Escrow Tests
# ============================================================================


class TestRoundResult:
    """Tests for RoundResult claim accounting."""

    def test_claim_counters(self):
        result = _result(funded=100, defender_count=1, challenger_count=1, voter_count=1)
        assert result.outstanding_claims == 3

        result.record_claim(ClaimRole.DEFENDER, 40)
        result.record_claim(ClaimRole.CHALLENGER, 30)
        assert not result.is_fully_claimed()
        result.record_claim(ClaimRole.VOTER, 20)

        assert result.is_fully_claimed()
        assert result.unclaimed == 10

    def test_pool_claim_counts_as_defender(self):
        result = _result(funded=10, defender_count=1)
        result.record_claim(ClaimRole.POOL, 10)
        assert result.defender_claims == 1

    def test_overpayment_rejected(self):
        result = _result(funded=10, voter_count=1)
        with pytest.raises(InvariantViolation):
            result.record_claim(ClaimRole.VOTER, 11)

    def test_reversal_kinds(self):
        assert _result(kind=CaseKind.RESTORATION).is_reversal
        assert _result(kind=CaseKind.APPEAL).is_reversal
        assert not _result().is_reversal

    def test_dict_round_trip(self):
        result = _result(winner_pool=800, pool_owner="alice")
        assert RoundResult.from_dict(result.to_dict()) == result


class TestEscrow:
    """Tests for Escrow round bookkeeping."""

    def test_add_and_find(self):
        escrow = Escrow("s1")
        escrow.add_round(_result())
        assert escrow.find_round(0) is not None
        assert escrow.find_round(1) is None

    def test_duplicate_round_rejected(self):
        escrow = Escrow("s1")
        escrow.add_round(_result())
        with pytest.raises(ConflictError):
            escrow.add_round(_result())

    def test_remove_missing_round(self):
        with pytest.raises(NotFoundError):
            Escrow("s1").remove_round(3)

    def test_debit_beyond_balance(self):
        escrow = Escrow("s1", balance=5)
        with pytest.raises(InvariantViolation):
            escrow.debit(6)


class TestTreasuryAndPool:
    def test_treasury(self):
        treasury = Treasury()
        treasury.collect(100)
        treasury.withdraw(30)
        assert treasury.to_dict() == {"balance": 70, "total_collected": 100, "total_withdrawn": 30}
        with pytest.raises(InsufficientFunds):
            treasury.withdraw(71)

    def test_pool_committable(self):
        pool = DefenderPool(owner="alice", ledger=BalanceLedger(owner="alice"), max_bond=300)
        pool.ledger.deposit(1000)
        assert pool.committable() == 300
        assert pool.committable(already_held=250) == 50
        pool.max_bond = None
        assert pool.committable() == 1000
