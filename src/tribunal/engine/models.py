"""Data models for the arbitration engine.

Records reference each other by handle (subject id, round number, owner
id) and live in the service's arena; none of them owns another.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from ..core.exceptions import ConflictError, InsufficientFunds, InvariantViolation, NotFoundError, ValidationException
from .distribution import determine_outcome
from .enums import (
    CaseKind,
    CaseStatus,
    ClaimRole,
    DisputeCategory,
    Outcome,
    StakingMode,
    SubjectStatus,
    VoteChoice,
)
from .ledger import BalanceLedger


# ============================================================================
# Participant Accounts
# ============================================================================

@dataclass
class JurorAccount:
    """A voter with a staking ledger and reputation."""
    owner: str
    ledger: BalanceLedger
    reputation: int
    votes_cast: int = 0
    correct_votes: int = 0
    joined_at: int = 0
    last_vote_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "ledger": self.ledger.to_dict(),
            "reputation": self.reputation,
            "votes_cast": self.votes_cast,
            "correct_votes": self.correct_votes,
            "joined_at": self.joined_at,
            "last_vote_at": self.last_vote_at,
        }


@dataclass
class ChallengerAccount:
    """Reputation record for challengers, reporters and restorers."""
    owner: str
    reputation: int
    cases_filed: int = 0
    cases_won: int = 0
    cases_lost: int = 0
    last_case_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "reputation": self.reputation,
            "cases_filed": self.cases_filed,
            "cases_won": self.cases_won,
            "cases_lost": self.cases_lost,
            "last_case_at": self.last_case_at,
        }


@dataclass
class DefenderPool:
    """Reusable defender balance backing every subject linked to it.

    Stake stays available in the pool until a case holds it.
    """
    owner: str
    ledger: BalanceLedger
    max_bond: int | None = None  # cap per case, None = unlimited
    created_at: int = 0

    def __post_init__(self):
        if self.max_bond is not None and self.max_bond <= 0:
            raise ValidationException("Pool max bond must be positive", field="max_bond", value=self.max_bond)

    def committable(self, already_held: int = 0) -> int:
        """How much more the pool can put at risk in one case."""
        available = self.ledger.available
        if self.max_bond is None:
            return available
        return max(0, min(available, self.max_bond - already_held))

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "ledger": self.ledger.to_dict(),
            "max_bond": self.max_bond,
            "created_at": self.created_at,
        }


# ============================================================================
# Subject
# ============================================================================

@dataclass
class Subject:
    """The accused entity.

    ``ledger`` carries direct defender stake for the current round;
    ``active_case`` is the round number of the open case, if any.
    """
    subject_id: str
    creator: str
    ledger: BalanceLedger
    mode: StakingMode = StakingMode.MATCH
    free: bool = False
    pool_owner: str | None = None
    max_stake: int | None = None
    voting_period: int = 86_400
    status: SubjectStatus = SubjectStatus.DORMANT
    round: int = 0
    defender_count: int = 0
    active_case: int | None = None
    latest_case_round: int | None = None
    last_case_total: int = 0
    last_voting_period: int = 0
    last_resolved_at: int | None = None
    details_cid: str = ""
    created_at: int = 0
    updated_at: int = 0

    def __post_init__(self):
        if self.voting_period <= 0:
            raise ValidationException("Voting period must be positive", field="voting_period", value=self.voting_period)
        if self.max_stake is not None and self.max_stake <= 0:
            raise ValidationException("Max stake must be positive", field="max_stake", value=self.max_stake)

    @property
    def is_linked(self) -> bool:
        return self.pool_owner is not None

    def can_stake(self) -> bool:
        return self.status in (SubjectStatus.DORMANT, SubjectStatus.VALID, SubjectStatus.DISPUTED)

    def can_dispute(self) -> bool:
        return self.status == SubjectStatus.VALID and self.active_case is None

    def can_restore(self) -> bool:
        return self.status == SubjectStatus.INVALID and self.active_case is None

    def has_active_case(self) -> bool:
        return self.active_case is not None

    def restoration_voting_period(self) -> int:
        """Restorations and appeals vote for twice as long as the case they reverse."""
        return (self.last_voting_period or self.voting_period) * 2

    def min_restoration_stake(self) -> int:
        return self.last_case_total

    def cap_remaining(self, already_at_risk: int) -> int | None:
        if self.max_stake is None:
            return None
        return max(0, self.max_stake - already_at_risk)

    def reset_for_next_round(self) -> None:
        """Start a fresh round with no backing.

        The direct ledger must already have been drained into escrow.
        """
        if not self.ledger.is_empty:
            raise InvariantViolation(
                f"Subject {self.subject_id} still holds direct stake at round reset",
                self.ledger.to_dict(),
            )
        self.round += 1
        self.defender_count = 0
        self.status = SubjectStatus.DORMANT
        self.active_case = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "creator": self.creator,
            "ledger": self.ledger.to_dict(),
            "mode": self.mode.value,
            "free": self.free,
            "pool_owner": self.pool_owner,
            "max_stake": self.max_stake,
            "voting_period": self.voting_period,
            "status": self.status.value,
            "round": self.round,
            "defender_count": self.defender_count,
            "active_case": self.active_case,
            "latest_case_round": self.latest_case_round,
            "last_case_total": self.last_case_total,
            "last_voting_period": self.last_voting_period,
            "last_resolved_at": self.last_resolved_at,
            "details_cid": self.details_cid,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


# ============================================================================
# Per-round Participant Records
# ============================================================================

@dataclass
class DefenderRecord:
    """Direct stake one defender put behind a subject for one round."""
    subject_id: str
    round: int
    defender: str
    stake: int
    details_cid: str = ""
    reward_claimed: bool = False
    staked_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "round": self.round,
            "defender": self.defender,
            "stake": self.stake,
            "details_cid": self.details_cid,
            "reward_claimed": self.reward_claimed,
            "staked_at": self.staked_at,
        }


@dataclass
class ChallengerRecord:
    """Bond one challenger (or restorer, appellant) posted for one round."""
    subject_id: str
    round: int
    challenger: str
    bond: int
    details_cid: str = ""
    reward_claimed: bool = False
    challenged_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "round": self.round,
            "challenger": self.challenger,
            "bond": self.bond,
            "details_cid": self.details_cid,
            "reward_claimed": self.reward_claimed,
            "challenged_at": self.challenged_at,
        }


@dataclass
class VoteRecord:
    """A voter's allocation on one case."""
    subject_id: str
    round: int
    voter: str
    choice: VoteChoice
    stake_allocated: int
    voting_power: int
    unlock_at: int
    rationale_cid: str = ""
    reputation_processed: bool = False
    reward_claimed: bool = False
    stake_unlocked: bool = False
    voted_at: int = 0

    def is_correct(self, outcome: Outcome) -> bool | None:
        """Whether the vote matched the outcome; None when there is nothing to judge."""
        if outcome == Outcome.CHALLENGER_WINS:
            return self.choice == VoteChoice.FOR
        if outcome == Outcome.DEFENDER_WINS:
            return self.choice == VoteChoice.AGAINST
        return None

    def can_unlock(self, now: int) -> bool:
        return now >= self.unlock_at and not self.stake_unlocked

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "round": self.round,
            "voter": self.voter,
            "choice": self.choice.value,
            "stake_allocated": self.stake_allocated,
            "voting_power": self.voting_power,
            "unlock_at": self.unlock_at,
            "rationale_cid": self.rationale_cid,
            "reputation_processed": self.reputation_processed,
            "reward_claimed": self.reward_claimed,
            "stake_unlocked": self.stake_unlocked,
            "voted_at": self.voted_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VoteRecord:
        return cls(
            subject_id=data["subject_id"],
            round=data["round"],
            voter=data["voter"],
            choice=VoteChoice(data["choice"]),
            stake_allocated=data["stake_allocated"],
            voting_power=data["voting_power"],
            unlock_at=data["unlock_at"],
            rationale_cid=data.get("rationale_cid", ""),
            reputation_processed=data.get("reputation_processed", False),
            reward_claimed=data.get("reward_claimed", False),
            stake_unlocked=data.get("stake_unlocked", False),
            voted_at=data.get("voted_at", 0),
        )


# ============================================================================
# Cases
# ============================================================================

@dataclass(frozen=True)
class DisputeTerms:
    """A challenge against a valid subject."""
    mode: StakingMode
    kind: ClassVar[CaseKind] = CaseKind.DISPUTE


@dataclass(frozen=True)
class RestorationTerms:
    """A paid request to reverse an invalidation."""
    restorer: str
    stake: int
    fee: int
    kind: ClassVar[CaseKind] = CaseKind.RESTORATION


@dataclass(frozen=True)
class AppealTerms:
    """A fee-free reversal request filed soon after invalidation."""
    appellant: str
    stake: int
    kind: ClassVar[CaseKind] = CaseKind.APPEAL


@dataclass(frozen=True)
class FreeTerms:
    """Advisory case with no value at stake."""
    reversal: bool = False
    kind: ClassVar[CaseKind] = CaseKind.FREE


CaseTerms = DisputeTerms | RestorationTerms | AppealTerms | FreeTerms


def terms_to_dict(terms: CaseTerms) -> dict[str, Any]:
    match terms:
        case DisputeTerms(mode=mode):
            return {"kind": terms.kind.value, "mode": mode.value}
        case RestorationTerms(restorer=restorer, stake=stake, fee=fee):
            return {"kind": terms.kind.value, "restorer": restorer, "stake": stake, "fee": fee}
        case AppealTerms(appellant=appellant, stake=stake):
            return {"kind": terms.kind.value, "appellant": appellant, "stake": stake}
        case FreeTerms(reversal=reversal):
            return {"kind": terms.kind.value, "reversal": reversal}
    raise ValidationException("Unknown case terms", field="terms", value=terms)


def terms_from_dict(data: dict[str, Any]) -> CaseTerms:
    kind = CaseKind(data["kind"])
    if kind == CaseKind.DISPUTE:
        return DisputeTerms(mode=StakingMode(data["mode"]))
    if kind == CaseKind.RESTORATION:
        return RestorationTerms(restorer=data["restorer"], stake=data["stake"], fee=data["fee"])
    if kind == CaseKind.APPEAL:
        return AppealTerms(appellant=data["appellant"], stake=data["stake"])
    return FreeTerms(reversal=data.get("reversal", False))


@dataclass
class Case:
    """One round's case against a subject.

    ``total_bond`` is the challenger side (restorer stake on reversals);
    ``stake_held_pool`` and ``stake_held_direct`` are the defender stake at
    risk, held in the pool and subject ledgers respectively.
    """
    subject_id: str
    round: int
    terms: CaseTerms
    category: DisputeCategory = DisputeCategory.OTHER
    status: CaseStatus = CaseStatus.PENDING
    outcome: Outcome = Outcome.NONE
    total_bond: int = 0
    stake_held_pool: int = 0
    stake_held_direct: int = 0
    vote_weight_for: int = 0
    vote_weight_against: int = 0
    vote_count: int = 0
    challenger_count: int = 0
    defender_count: int = 0
    voting_starts_at: int = 0
    voting_ends_at: int = 0
    resolved_at: int | None = None
    details_cid: str = ""

    @property
    def kind(self) -> CaseKind:
        return self.terms.kind

    @property
    def is_free(self) -> bool:
        return isinstance(self.terms, FreeTerms)

    @property
    def is_reversal(self) -> bool:
        """Restorations, appeals and free reversals: FOR means restore the subject."""
        if isinstance(self.terms, FreeTerms):
            return self.terms.reversal
        return isinstance(self.terms, (RestorationTerms, AppealTerms))

    @property
    def stake_at_risk(self) -> int:
        return self.stake_held_pool + self.stake_held_direct

    @property
    def total_pool(self) -> int:
        return self.total_bond + self.stake_at_risk

    @property
    def total_vote_weight(self) -> int:
        return self.vote_weight_for + self.vote_weight_against

    @property
    def voting_period(self) -> int:
        return self.voting_ends_at - self.voting_starts_at

    def start_voting(self, now: int, period: int) -> None:
        self.voting_starts_at = now
        self.voting_ends_at = now + period

    def is_voting_open(self, now: int) -> bool:
        return self.status == CaseStatus.PENDING and now < self.voting_ends_at

    def is_voting_ended(self, now: int) -> bool:
        return self.status == CaseStatus.PENDING and now >= self.voting_ends_at

    def determine_outcome(self) -> Outcome:
        return determine_outcome(self.vote_weight_for, self.vote_weight_against)

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "round": self.round,
            "terms": terms_to_dict(self.terms),
            "category": self.category.value,
            "status": self.status.value,
            "outcome": self.outcome.value,
            "total_bond": self.total_bond,
            "stake_held_pool": self.stake_held_pool,
            "stake_held_direct": self.stake_held_direct,
            "vote_weight_for": self.vote_weight_for,
            "vote_weight_against": self.vote_weight_against,
            "vote_count": self.vote_count,
            "challenger_count": self.challenger_count,
            "defender_count": self.defender_count,
            "voting_starts_at": self.voting_starts_at,
            "voting_ends_at": self.voting_ends_at,
            "resolved_at": self.resolved_at,
            "details_cid": self.details_cid,
        }


# ============================================================================
# Escrow and Round Results
# ============================================================================

@dataclass
class RoundResult:
    """Snapshot of a resolved round, used to settle every claim against it."""
    subject_id: str
    round: int
    kind: CaseKind
    outcome: Outcome
    creator: str
    resolved_at: int
    total_bond: int = 0
    stake_at_risk: int = 0
    pool_at_risk: int = 0
    direct_at_risk: int = 0
    safe_stake: int = 0
    total_vote_weight: int = 0
    winning_weight: int = 0
    winner_pool: int = 0
    voter_pool: int = 0
    treasury_fee: int = 0
    funded: int = 0
    distributed: int = 0
    pool_owner: str | None = None
    defender_count: int = 0
    challenger_count: int = 0
    voter_count: int = 0
    defender_claims: int = 0
    challenger_claims: int = 0
    voter_claims: int = 0
    pool_claimed: bool = False

    @property
    def total_pool(self) -> int:
        return self.total_bond + self.stake_at_risk

    @property
    def direct_total(self) -> int:
        return self.direct_at_risk + self.safe_stake

    @property
    def is_reversal(self) -> bool:
        return self.kind in (CaseKind.RESTORATION, CaseKind.APPEAL)

    @property
    def is_free(self) -> bool:
        return self.kind == CaseKind.FREE

    @property
    def unclaimed(self) -> int:
        return self.funded - self.distributed

    @property
    def outstanding_claims(self) -> int:
        return (
            (self.defender_count - self.defender_claims)
            + (self.challenger_count - self.challenger_claims)
            + (self.voter_count - self.voter_claims)
        )

    def is_fully_claimed(self) -> bool:
        return self.outstanding_claims == 0

    def record_claim(self, role: ClaimRole, amount: int) -> None:
        """Count a claim and the amount it paid out."""
        if self.distributed + amount > self.funded:
            raise InvariantViolation(
                f"Round {self.subject_id}#{self.round} would pay out more than it holds",
                {"funded": self.funded, "distributed": self.distributed, "amount": amount},
            )
        self.distributed += amount
        if role in (ClaimRole.DEFENDER, ClaimRole.POOL):
            self.defender_claims += 1
        elif role == ClaimRole.CHALLENGER:
            self.challenger_claims += 1
        else:
            self.voter_claims += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "round": self.round,
            "kind": self.kind.value,
            "outcome": self.outcome.value,
            "creator": self.creator,
            "resolved_at": self.resolved_at,
            "total_bond": self.total_bond,
            "stake_at_risk": self.stake_at_risk,
            "pool_at_risk": self.pool_at_risk,
            "direct_at_risk": self.direct_at_risk,
            "safe_stake": self.safe_stake,
            "total_vote_weight": self.total_vote_weight,
            "winning_weight": self.winning_weight,
            "winner_pool": self.winner_pool,
            "voter_pool": self.voter_pool,
            "treasury_fee": self.treasury_fee,
            "funded": self.funded,
            "distributed": self.distributed,
            "pool_owner": self.pool_owner,
            "defender_count": self.defender_count,
            "challenger_count": self.challenger_count,
            "voter_count": self.voter_count,
            "defender_claims": self.defender_claims,
            "challenger_claims": self.challenger_claims,
            "voter_claims": self.voter_claims,
            "pool_claimed": self.pool_claimed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoundResult:
        values = dict(data)
        values["kind"] = CaseKind(values["kind"])
        values["outcome"] = Outcome(values["outcome"])
        return cls(**values)


@dataclass
class Escrow:
    """Per-subject holding account with round results keyed by round."""
    subject_id: str
    balance: int = 0
    rounds: dict[int, RoundResult] = field(default_factory=dict)

    def credit(self, amount: int) -> None:
        self.balance += amount

    def debit(self, amount: int) -> None:
        if amount > self.balance:
            raise InvariantViolation(
                f"Escrow for {self.subject_id} cannot cover {amount}",
                {"balance": self.balance, "amount": amount},
            )
        self.balance -= amount

    def add_round(self, result: RoundResult) -> None:
        if result.round in self.rounds:
            raise ConflictError(f"Round {result.round} already recorded for {self.subject_id}", existing_id=str(result.round))
        self.rounds[result.round] = result

    def find_round(self, round: int) -> RoundResult | None:
        return self.rounds.get(round)

    def get_round(self, round: int) -> RoundResult:
        result = self.rounds.get(round)
        if result is None:
            raise NotFoundError("Round", f"{self.subject_id}#{round}")
        return result

    def remove_round(self, round: int) -> RoundResult:
        result = self.get_round(round)
        del self.rounds[round]
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "balance": self.balance,
            "rounds": {str(r): result.to_dict() for r, result in sorted(self.rounds.items())},
        }


@dataclass
class Treasury:
    """Protocol fee account."""
    balance: int = 0
    total_collected: int = 0
    total_withdrawn: int = 0

    def collect(self, amount: int) -> None:
        self.balance += amount
        self.total_collected += amount

    def withdraw(self, amount: int) -> None:
        if amount > self.balance:
            raise InsufficientFunds("treasury", amount, self.balance)
        self.balance -= amount
        self.total_withdrawn += amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "balance": self.balance,
            "total_collected": self.total_collected,
            "total_withdrawn": self.total_withdrawn,
        }
