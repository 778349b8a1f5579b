"""Arbitration service.

Orchestrates the staking, case, voting, resolution and settlement flows
over the record arena. Every public method is a single transaction: it
either commits all of its record mutations and value transfers or none.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from ..core.config import ProtocolConfig, get_protocol_config
from ..core.exceptions import (
    AlreadyClaimedError,
    AlreadyResolvedError,
    AlreadyVotedError,
    CaseAlreadyOpenError,
    ClaimsIncompleteError,
    ConflictError,
    InsufficientAvailableStake,
    InvalidStatusError,
    InvariantViolation,
    NotFoundError,
    StakeAlreadyUnlockedError,
    StakeStillLockedError,
    UnauthorizedError,
    ValidationException,
    VotingClosedError,
    VotingNotEndedError,
)
from ..core.logging import correlation_context, operation_logger
from .arithmetic import bps_of, checked_add, checked_sub
from .distribution import compute_fee_split, free_split, winning_weight
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
from .models import (
    AppealTerms,
    Case,
    ChallengerAccount,
    ChallengerRecord,
    DefenderPool,
    DefenderRecord,
    DisputeTerms,
    Escrow,
    FreeTerms,
    JurorAccount,
    RestorationTerms,
    RoundResult,
    Subject,
    Treasury,
    VoteRecord,
)
from .ports import (
    TREASURY,
    Clock,
    InMemoryValueStore,
    SystemClock,
    ValueTransfer,
    escrow_vault,
    juror_vault,
    pool_vault,
    subject_vault,
    wallet,
)
from .reputation import (
    WithdrawalSplit,
    apply_reputation_gain,
    apply_reputation_loss,
    calculate_min_bond,
    calculate_voting_power,
    calculate_withdrawal,
)
from .settlement import challenger_payout, direct_defender_payout, pool_payout, voter_payout
from .store import ArbitrationStore
from .validators import (
    validate_amount,
    validate_bond,
    validate_cid,
    validate_defender_stake,
    validate_reversal_stake,
    validate_subject_creation,
    validate_vote_allocation,
)

logger = logging.getLogger(__name__)


class ArbitrationService:
    """Service for managing subjects, cases, votes and settlements.

    State is held in an in-memory ``ArbitrationStore``; value moves through
    the injected ``ValueTransfer`` port and time comes from the injected
    ``Clock``. Callers are named on every mutating call; ownership checks
    beyond the role rules enforced here belong to the calling layer.
    """

    def __init__(
        self,
        config: ProtocolConfig | None = None,
        clock: Clock | None = None,
        transfers: ValueTransfer | None = None,
        store: ArbitrationStore | None = None,
    ):
        self.config = config if config is not None else get_protocol_config()
        self.clock = clock if clock is not None else SystemClock()
        self.transfers = transfers if transfers is not None else InMemoryValueStore()
        self.store = store if store is not None else ArbitrationStore()
        self._lock = threading.RLock()
        self._journal: list[tuple[str, str, int]] | None = None

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    @contextmanager
    def _transaction(self, operation: str, **arguments: Any) -> Iterator[None]:
        """Run one operation atomically.

        Snapshots the arena and journals transfers; on any exception the
        arena is restored, the journalled transfers are reversed and the
        exception propagates.

        The snapshot deep-copies every live record, so its cost grows with
        unsettled state. Pruning or sweeping rounds and closing their vote,
        challenger and defender records keeps the arena bounded.
        """
        with self._lock:
            if self._journal is not None:
                # Nested call joins the outer transaction
                yield
                return

            with correlation_context(operation=operation):
                snapshot = copy.deepcopy(self.store)
                self._journal = []
                operation_logger.log_call(operation, arguments)
                start = time.perf_counter()
                try:
                    yield
                except Exception as e:
                    self.store = snapshot
                    self._reverse_transfers()
                    duration_ms = (time.perf_counter() - start) * 1000
                    operation_logger.log_result(operation, False, duration_ms, error=type(e).__name__)
                    raise
                else:
                    duration_ms = (time.perf_counter() - start) * 1000
                    operation_logger.log_result(operation, True, duration_ms)
                finally:
                    self._journal = None

    def _reverse_transfers(self) -> None:
        if self._journal is None:
            raise InvariantViolation("Transfers reversed outside a transaction")
        for source, dest, amount in reversed(self._journal):
            self.transfers.transfer(dest, source, amount)
        self._journal.clear()

    def _move(self, source: str, dest: str, amount: int) -> None:
        if amount == 0:
            return
        if self._journal is None:
            raise InvariantViolation("Value moved outside a transaction", {"source": source, "dest": dest})
        self.transfers.transfer(source, dest, amount)
        self._journal.append((source, dest, amount))

    def _into_escrow(self, source: str, subject_id: str, amount: int) -> None:
        self._move(source, escrow_vault(subject_id), amount)
        self._escrow(subject_id).credit(amount)

    def _out_of_escrow(self, subject_id: str, dest: str, amount: int) -> None:
        self._escrow(subject_id).debit(amount)
        self._move(escrow_vault(subject_id), dest, amount)

    def _into_treasury(self, source: str, amount: int) -> None:
        self._move(source, TREASURY, amount)
        self.store.treasury.collect(amount)

    def _now(self) -> int:
        return self.clock.now()

    # =========================================================================
    # RECORD LOOKUP
    # =========================================================================

    def _require_juror(self, owner: str) -> JurorAccount:
        juror = self.store.jurors.get(owner)
        if juror is None:
            raise NotFoundError("Juror", owner)
        return juror

    def _require_pool(self, owner: str) -> DefenderPool:
        pool = self.store.pools.get(owner)
        if pool is None:
            raise NotFoundError("DefenderPool", owner)
        return pool

    def _require_subject(self, subject_id: str) -> Subject:
        subject = self.store.subjects.get(subject_id)
        if subject is None:
            raise NotFoundError("Subject", subject_id)
        return subject

    def _require_case(self, subject_id: str, round: int) -> Case:
        case = self.store.cases.get((subject_id, round))
        if case is None:
            raise NotFoundError("Case", f"{subject_id}#{round}")
        return case

    def _require_active_case(self, subject: Subject, operation: str) -> Case:
        if subject.active_case is None:
            raise InvalidStatusError("Subject", subject.subject_id, subject.status.value, operation)
        return self._require_case(subject.subject_id, subject.active_case)

    def _require_round(self, subject_id: str, round: int) -> RoundResult:
        escrow = self.store.escrows.get(subject_id)
        if escrow is None:
            raise NotFoundError("Escrow", subject_id)
        return escrow.get_round(round)

    def _escrow(self, subject_id: str) -> Escrow:
        escrow = self.store.escrows.get(subject_id)
        if escrow is None:
            escrow = Escrow(subject_id=subject_id)
            self.store.escrows[subject_id] = escrow
        return escrow

    def _challenger_account(self, owner: str) -> ChallengerAccount:
        account = self.store.challengers.get(owner)
        if account is None:
            account = ChallengerAccount(owner=owner, reputation=self.config.initial_reputation)
            self.store.challengers[owner] = account
        return account

    def _linked_pool(self, subject: Subject) -> DefenderPool | None:
        if subject.pool_owner is None:
            return None
        return self.store.pools.get(subject.pool_owner)

    def _check_not_party(self, subject: Subject, round: int, caller: str, role: str) -> None:
        """Creators, challengers, defenders and voters of a round cannot take another side in it."""
        if caller == subject.creator:
            raise UnauthorizedError(f"Subject creator cannot act as {role}", caller)
        key = (subject.subject_id, round, caller)
        if role != "challenger" and key in self.store.challenger_records:
            raise UnauthorizedError(f"Challengers cannot act as {role} in the same round", caller)
        if role != "defender" and key in self.store.defender_records:
            raise UnauthorizedError(f"Defenders cannot act as {role} in the same round", caller)
        if role != "voter" and key in self.store.votes:
            raise UnauthorizedError(f"Voters cannot act as {role} in the same round", caller)

    # =========================================================================
    # JURORS
    # =========================================================================

    def register_juror(self, owner: str, stake: int) -> JurorAccount:
        """Register a juror with an initial stake from their wallet."""
        with self._transaction("register_juror", owner=owner, stake=stake):
            if owner in self.store.jurors:
                raise ConflictError(f"Juror already registered: {owner}", existing_id=owner)
            errors = validate_amount(stake, "stake", max(1, self.config.min_juror_stake))
            if errors:
                raise ValidationException("; ".join(errors))

            juror = JurorAccount(
                owner=owner,
                ledger=BalanceLedger(owner=owner),
                reputation=self.config.initial_reputation,
                joined_at=self._now(),
            )
            self._move(wallet(owner), juror_vault(owner), stake)
            juror.ledger.deposit(stake)
            self.store.jurors[owner] = juror

            logger.info(f"Juror {owner} registered with stake {stake}")
            return juror

    def deposit_juror_stake(self, owner: str, amount: int) -> JurorAccount:
        with self._transaction("deposit_juror_stake", owner=owner, amount=amount):
            juror = self._require_juror(owner)
            errors = validate_amount(amount)
            if errors:
                raise ValidationException("; ".join(errors))
            self._move(wallet(owner), juror_vault(owner), amount)
            juror.ledger.deposit(amount)
            return juror

    def withdraw_juror_stake(self, owner: str, amount: int) -> WithdrawalSplit:
        """Withdraw available juror stake.

        Jurors below the slash threshold forfeit part of the withdrawal to
        the treasury.
        """
        with self._transaction("withdraw_juror_stake", owner=owner, amount=amount):
            juror = self._require_juror(owner)
            errors = validate_amount(amount)
            if errors:
                raise ValidationException("; ".join(errors))
            split = self._withdraw_from_juror(juror, amount)
            logger.info(f"Juror {owner} withdrew {split.returned} (slashed {split.slashed})")
            return split

    def unregister_juror(self, owner: str) -> WithdrawalSplit:
        """Close a juror account, withdrawing everything left in it."""
        with self._transaction("unregister_juror", owner=owner):
            juror = self._require_juror(owner)
            if juror.ledger.held:
                raise InvalidStatusError("Juror", owner, f"holding {juror.ledger.held} in votes", "unregister")
            split = self._withdraw_from_juror(juror, juror.ledger.available)
            del self.store.jurors[owner]
            logger.info(f"Juror {owner} unregistered")
            return split

    def _withdraw_from_juror(self, juror: JurorAccount, amount: int) -> WithdrawalSplit:
        juror.ledger.withdraw(amount)
        split = calculate_withdrawal(amount, juror.reputation, self.config)
        self._move(juror_vault(juror.owner), wallet(juror.owner), split.returned)
        self._into_treasury(juror_vault(juror.owner), split.slashed)
        return split

    # =========================================================================
    # DEFENDER POOLS
    # =========================================================================

    def create_pool(self, owner: str, amount: int = 0, max_bond: int | None = None) -> DefenderPool:
        with self._transaction("create_pool", owner=owner, amount=amount, max_bond=max_bond):
            if owner in self.store.pools:
                raise ConflictError(f"Defender pool already exists: {owner}", existing_id=owner)
            errors = validate_amount(amount, minimum=0)
            if errors:
                raise ValidationException("; ".join(errors))

            pool = DefenderPool(owner=owner, ledger=BalanceLedger(owner=owner), max_bond=max_bond, created_at=self._now())
            self._move(wallet(owner), pool_vault(owner), amount)
            pool.ledger.deposit(amount)
            self.store.pools[owner] = pool

            logger.info(f"Defender pool {owner} created with {amount}")
            return pool

    def deposit_pool(self, owner: str, amount: int) -> DefenderPool:
        """Add stake to a pool. Dormant subjects it backs become VALID again."""
        with self._transaction("deposit_pool", owner=owner, amount=amount):
            pool = self._require_pool(owner)
            errors = validate_amount(amount)
            if errors:
                raise ValidationException("; ".join(errors))
            self._move(wallet(owner), pool_vault(owner), amount)
            pool.ledger.deposit(amount)
            self._wake_pool_subjects(pool)
            return pool

    def withdraw_pool(self, owner: str, amount: int) -> DefenderPool:
        with self._transaction("withdraw_pool", owner=owner, amount=amount):
            pool = self._require_pool(owner)
            errors = validate_amount(amount)
            if errors:
                raise ValidationException("; ".join(errors))
            pool.ledger.withdraw(amount)
            self._move(pool_vault(owner), wallet(owner), amount)
            return pool

    def set_pool_max_bond(self, owner: str, max_bond: int | None) -> DefenderPool:
        with self._transaction("set_pool_max_bond", owner=owner, max_bond=max_bond):
            pool = self._require_pool(owner)
            if max_bond is not None and max_bond <= 0:
                raise ValidationException("Pool max bond must be positive", field="max_bond", value=max_bond)
            pool.max_bond = max_bond
            return pool

    # =========================================================================
    # SUBJECTS
    # =========================================================================

    def create_subject(
        self,
        subject_id: str,
        creator: str,
        mode: StakingMode = StakingMode.MATCH,
        stake: int = 0,
        voting_period: int | None = None,
        max_stake: int | None = None,
        pool_owner: str | None = None,
        free: bool = False,
        details_cid: str = "",
    ) -> Subject:
        """Create a subject.

        Subjects are standalone (backed by direct stake), linked (backed by
        the creator's defender pool) or free (no value at stake). A subject
        with backing starts VALID, anything else DORMANT.
        """
        with self._transaction(
            "create_subject",
            subject_id=subject_id,
            creator=creator,
            mode=mode,
            stake=stake,
            pool_owner=pool_owner,
            free=free,
        ):
            if subject_id in self.store.subjects:
                raise ConflictError(f"Subject already exists: {subject_id}", existing_id=subject_id)
            period = voting_period if voting_period is not None else self.config.default_voting_period
            errors = validate_subject_creation(
                subject_id, stake, period, max_stake, free, pool_owner is not None, details_cid, self.config
            )
            if errors:
                raise ValidationException("; ".join(errors))

            pool = None
            if pool_owner is not None:
                if pool_owner != creator:
                    raise UnauthorizedError("Subjects can only link their creator's pool", pool_owner)
                pool = self._require_pool(pool_owner)

            now = self._now()
            subject = Subject(
                subject_id=subject_id,
                creator=creator,
                ledger=BalanceLedger(owner=subject_id),
                mode=mode,
                free=free,
                pool_owner=pool_owner,
                max_stake=max_stake,
                voting_period=period,
                details_cid=details_cid,
                created_at=now,
                updated_at=now,
            )
            self.store.subjects[subject_id] = subject
            self._escrow(subject_id)

            if stake:
                self._add_direct_stake(subject, creator, stake, details_cid)

            if free or subject.ledger.available or (pool is not None and pool.ledger.available):
                subject.status = SubjectStatus.VALID

            logger.info(f"Subject {subject_id} created by {creator} ({subject.status.value})")
            return subject

    def stake_subject(self, subject_id: str, staker: str, amount: int, details_cid: str = "") -> Subject:
        """Add direct defender stake to a subject.

        A DORMANT subject becomes VALID. On a disputed proportional subject
        the new stake goes at risk immediately, up to the stake cap.
        """
        with self._transaction("stake_subject", subject_id=subject_id, staker=staker, amount=amount):
            subject = self._require_subject(subject_id)
            if not subject.can_stake():
                raise InvalidStatusError("Subject", subject_id, subject.status.value, "stake")
            errors = validate_defender_stake(subject, amount, details_cid, self.config)
            if errors:
                raise ValidationException("; ".join(errors))

            case = None
            if subject.active_case is not None:
                case = self._require_case(subject_id, subject.active_case)
                key = (subject_id, case.round, staker)
                if key in self.store.challenger_records or key in self.store.votes:
                    raise UnauthorizedError("Challengers and voters cannot defend the same round", staker)

            self._add_direct_stake(subject, staker, amount, details_cid)

            if subject.status == SubjectStatus.DORMANT:
                subject.status = SubjectStatus.VALID
            elif case is not None and isinstance(case.terms, DisputeTerms) and case.terms.mode == StakingMode.PROPORTIONAL:
                remaining = subject.cap_remaining(case.stake_at_risk)
                to_hold = amount if remaining is None else min(amount, remaining)
                subject.ledger.hold(to_hold)
                case.stake_held_direct = checked_add(case.stake_held_direct, to_hold)
            if case is not None:
                case.defender_count = self._count_defenders(subject, case)

            subject.updated_at = self._now()
            logger.info(f"{staker} staked {amount} on subject {subject_id}")
            return subject

    def _add_direct_stake(self, subject: Subject, staker: str, amount: int, details_cid: str) -> DefenderRecord:
        self._move(wallet(staker), subject_vault(subject.subject_id), amount)
        subject.ledger.deposit(amount)

        key = (subject.subject_id, subject.round, staker)
        record = self.store.defender_records.get(key)
        if record is None:
            record = DefenderRecord(
                subject_id=subject.subject_id,
                round=subject.round,
                defender=staker,
                stake=0,
                details_cid=details_cid,
                staked_at=self._now(),
            )
            self.store.defender_records[key] = record
            subject.defender_count += 1
        record.stake = checked_add(record.stake, amount)
        return record

    def _count_defenders(self, subject: Subject, case: Case) -> int:
        return subject.defender_count + (1 if case.stake_held_pool else 0)

    # =========================================================================
    # DISPUTES
    # =========================================================================

    def open_dispute(
        self,
        subject_id: str,
        challenger: str,
        bond: int,
        category: DisputeCategory = DisputeCategory.OTHER,
        details_cid: str = "",
    ) -> Case:
        """Open a case against a VALID subject.

        In match mode defender stake equal to the bond (capped by the
        subject's max stake) is put at risk, pool first; in proportional
        mode everything available is. Voting starts immediately.
        """
        with self._transaction("open_dispute", subject_id=subject_id, challenger=challenger, bond=bond, category=category):
            subject = self._require_subject(subject_id)
            if subject.active_case is not None:
                raise CaseAlreadyOpenError(subject_id, subject.active_case)
            if not subject.can_dispute():
                raise InvalidStatusError("Subject", subject_id, subject.status.value, "open dispute")
            self._check_not_party(subject, subject.round, challenger, "challenger")

            account = self._challenger_account(challenger)
            now = self._now()

            if subject.free:
                if bond:
                    raise ValidationException("Free cases take no bond", field="bond", value=bond)
                errors = validate_cid(details_cid, self.config)
                terms = FreeTerms()
            else:
                min_bond = calculate_min_bond(self.config.base_challenger_bond, account.reputation, self.config)
                errors = validate_bond(bond, min_bond, details_cid, self.config)
                terms = DisputeTerms(mode=subject.mode)
            if errors:
                raise ValidationException("; ".join(errors))

            case = Case(
                subject_id=subject_id,
                round=subject.round,
                terms=terms,
                category=category,
                details_cid=details_cid,
            )

            if not subject.free:
                if subject.mode == StakingMode.MATCH:
                    required = bond if subject.max_stake is None else min(bond, subject.max_stake)
                    self._hold_defender_stake(subject, case, required, exact=True)
                else:
                    self._hold_defender_stake(subject, case, None, exact=False)
                    if case.stake_at_risk == 0:
                        raise InsufficientAvailableStake(subject_id, 1, 0)
                self._into_escrow(wallet(challenger), subject_id, bond)

            self._record_challenger(case, challenger, bond, details_cid)
            case.defender_count = self._count_defenders(subject, case)
            case.start_voting(now, subject.voting_period)
            self.store.cases[(subject_id, case.round)] = case

            subject.status = SubjectStatus.DISPUTED
            subject.active_case = case.round
            subject.latest_case_round = case.round
            subject.updated_at = now
            account.cases_filed += 1
            account.last_case_at = now

            logger.info(f"Dispute opened on {subject_id} round {case.round} by {challenger} (bond {bond}, at risk {case.stake_at_risk})")
            return case

    def add_to_dispute(self, subject_id: str, challenger: str, bond: int, details_cid: str = "") -> Case:
        """Add bond to an open dispute, as a new or existing challenger."""
        with self._transaction("add_to_dispute", subject_id=subject_id, challenger=challenger, bond=bond):
            subject = self._require_subject(subject_id)
            case = self._require_active_case(subject, "add to dispute")
            if case.kind != CaseKind.DISPUTE:
                raise InvalidStatusError("Case", f"{subject_id}#{case.round}", case.kind.value, "add to dispute")
            now = self._now()
            if not case.is_voting_open(now):
                raise VotingClosedError(subject_id, case.round, case.voting_ends_at)
            self._check_not_party(subject, case.round, challenger, "challenger")

            account = self._challenger_account(challenger)
            min_bond = calculate_min_bond(self.config.base_challenger_bond, account.reputation, self.config)
            errors = validate_bond(bond, min_bond, details_cid, self.config)
            if errors:
                raise ValidationException("; ".join(errors))

            if subject.mode == StakingMode.MATCH:
                remaining = subject.cap_remaining(case.stake_at_risk)
                wanted = bond if remaining is None else min(bond, remaining)
                self._hold_defender_stake(subject, case, wanted, exact=False)

            self._into_escrow(wallet(challenger), subject_id, bond)
            if self._record_challenger(case, challenger, bond, details_cid):
                account.cases_filed += 1
            account.last_case_at = now
            case.defender_count = self._count_defenders(subject, case)
            subject.updated_at = now

            logger.info(f"{challenger} added {bond} to dispute on {subject_id} round {case.round}")
            return case

    def _hold_defender_stake(self, subject: Subject, case: Case, amount: int | None, exact: bool) -> None:
        """Put defender stake at risk, pool first.

        ``amount`` None means everything available up to the subject cap.
        With ``exact`` a shortfall raises instead of holding what there is.
        """
        pool = self._linked_pool(subject)
        remaining_cap = subject.cap_remaining(case.stake_at_risk)
        wanted = amount
        if wanted is None:
            wanted = remaining_cap
        pool_room = pool.committable(case.stake_held_pool) if pool is not None else 0
        direct_room = subject.ledger.available

        if wanted is None:
            from_pool, from_direct = pool_room, direct_room
        else:
            from_pool = min(wanted, pool_room)
            from_direct = min(wanted - from_pool, direct_room)
            if exact and from_pool + from_direct < wanted:
                raise InsufficientAvailableStake(subject.subject_id, wanted, pool_room + direct_room)

        if from_pool:
            pool.ledger.hold(from_pool)
            case.stake_held_pool = checked_add(case.stake_held_pool, from_pool)
        if from_direct:
            subject.ledger.hold(from_direct)
            case.stake_held_direct = checked_add(case.stake_held_direct, from_direct)

    def _record_challenger(self, case: Case, challenger: str, bond: int, details_cid: str) -> bool:
        """Add bond to the round's challenger record. Returns True for a new challenger."""
        key = (case.subject_id, case.round, challenger)
        record = self.store.challenger_records.get(key)
        created = record is None
        if record is None:
            record = ChallengerRecord(
                subject_id=case.subject_id,
                round=case.round,
                challenger=challenger,
                bond=0,
                details_cid=details_cid,
                challenged_at=self._now(),
            )
            self.store.challenger_records[key] = record
            case.challenger_count += 1
        record.bond = checked_add(record.bond, bond)
        case.total_bond = checked_add(case.total_bond, bond)
        return created

    # =========================================================================
    # RESTORATIONS AND APPEALS
    # =========================================================================

    def submit_restoration(
        self,
        subject_id: str,
        restorer: str,
        stake: int,
        category: DisputeCategory = DisputeCategory.OTHER,
        details_cid: str = "",
    ) -> Case:
        """Ask voters to reverse an invalidation.

        The restorer stakes at least the invalidating case's total and pays
        the restoration fee upfront. FOR votes favour restoring.
        """
        with self._transaction("submit_restoration", subject_id=subject_id, restorer=restorer, stake=stake):
            return self._submit_reversal(subject_id, restorer, stake, category, details_cid, appeal=False)

    def submit_appeal(
        self,
        subject_id: str,
        appellant: str,
        stake: int,
        category: DisputeCategory = DisputeCategory.OTHER,
        details_cid: str = "",
    ) -> Case:
        """Appeal a fresh invalidation without the restoration fee."""
        with self._transaction("submit_appeal", subject_id=subject_id, appellant=appellant, stake=stake):
            return self._submit_reversal(subject_id, appellant, stake, category, details_cid, appeal=True)

    def _submit_reversal(
        self,
        subject_id: str,
        requester: str,
        stake: int,
        category: DisputeCategory,
        details_cid: str,
        appeal: bool,
    ) -> Case:
        operation = "appeal" if appeal else "restore"
        subject = self._require_subject(subject_id)
        if subject.active_case is not None:
            raise CaseAlreadyOpenError(subject_id, subject.active_case)
        if not subject.can_restore():
            raise InvalidStatusError("Subject", subject_id, subject.status.value, operation)

        now = self._now()
        if appeal:
            if subject.last_resolved_at is None or now - subject.last_resolved_at >= self.config.appeal_window:
                raise InvalidStatusError("Subject", subject_id, "past appeal window", operation)

        errors = validate_reversal_stake(subject, stake, details_cid, self.config)
        if errors:
            raise ValidationException("; ".join(errors))

        account = self._challenger_account(requester)
        subject.round += 1

        if subject.free:
            terms = FreeTerms(reversal=True)
            net = 0
        elif appeal:
            terms = AppealTerms(appellant=requester, stake=stake)
            net = stake
        else:
            fee = bps_of(stake, self.config.restoration_fee_bps)
            terms = RestorationTerms(restorer=requester, stake=stake, fee=fee)
            net = checked_sub(stake, fee)
            self._into_treasury(wallet(requester), fee)

        case = Case(
            subject_id=subject_id,
            round=subject.round,
            terms=terms,
            category=category,
            details_cid=details_cid,
        )
        self._into_escrow(wallet(requester), subject_id, net)
        self._record_challenger(case, requester, net, details_cid)
        case.start_voting(now, subject.restoration_voting_period())
        self.store.cases[(subject_id, case.round)] = case

        subject.status = SubjectStatus.RESTORING
        subject.defender_count = 0
        subject.active_case = case.round
        subject.latest_case_round = case.round
        subject.updated_at = now
        account.cases_filed += 1
        account.last_case_at = now

        logger.info(f"{case.kind.value.capitalize()} filed on {subject_id} round {case.round} by {requester} (stake {stake})")
        return case

    # =========================================================================
    # VOTING
    # =========================================================================

    def vote(
        self,
        subject_id: str,
        voter: str,
        choice: VoteChoice,
        stake_allocation: int,
        rationale_cid: str = "",
    ) -> VoteRecord:
        """Cast a vote on the subject's open case.

        Voting power is fixed at the time of the vote from the juror's
        reputation and vote count. The allocated stake stays held until the
        record's ``unlock_at``.
        """
        with self._transaction("vote", subject_id=subject_id, voter=voter, choice=choice, stake_allocation=stake_allocation):
            juror = self._require_juror(voter)
            subject = self._require_subject(subject_id)
            case = self._require_active_case(subject, "vote")
            now = self._now()
            if not case.is_voting_open(now):
                raise VotingClosedError(subject_id, case.round, case.voting_ends_at)

            key = (subject_id, case.round, voter)
            if key in self.store.votes:
                raise AlreadyVotedError(voter, subject_id, case.round)
            self._check_not_party(subject, case.round, voter, "voter")

            errors = validate_vote_allocation(case, stake_allocation, rationale_cid, self.config)
            if errors:
                raise ValidationException("; ".join(errors))

            juror.ledger.hold(stake_allocation)
            power = calculate_voting_power(stake_allocation, juror.reputation, juror.votes_cast, self.config)
            self._add_weight(case, choice, power)
            case.vote_count += 1
            juror.votes_cast += 1
            juror.last_vote_at = now

            lock = 0 if case.is_free else self.config.stake_lock_buffer
            record = VoteRecord(
                subject_id=subject_id,
                round=case.round,
                voter=voter,
                choice=choice,
                stake_allocated=stake_allocation,
                voting_power=power,
                unlock_at=case.voting_ends_at + lock,
                rationale_cid=rationale_cid,
                voted_at=now,
            )
            self.store.votes[key] = record

            logger.info(f"{voter} voted {choice.value} on {subject_id} round {case.round} with power {power}")
            return record

    def add_to_vote(self, subject_id: str, voter: str, additional: int) -> VoteRecord:
        """Allocate more stake to an existing vote, on the same side."""
        with self._transaction("add_to_vote", subject_id=subject_id, voter=voter, additional=additional):
            juror = self._require_juror(voter)
            subject = self._require_subject(subject_id)
            case = self._require_active_case(subject, "add to vote")
            record = self.store.votes.get((subject_id, case.round, voter))
            if record is None:
                raise NotFoundError("Vote", f"{subject_id}#{case.round}:{voter}")
            if not case.is_voting_open(self._now()):
                raise VotingClosedError(subject_id, case.round, case.voting_ends_at)
            errors = validate_amount(additional, "additional")
            if errors:
                raise ValidationException("; ".join(errors))

            juror.ledger.hold(additional)
            power = calculate_voting_power(additional, juror.reputation, juror.votes_cast, self.config)
            self._add_weight(case, record.choice, power)
            record.stake_allocated = checked_add(record.stake_allocated, additional)
            record.voting_power = checked_add(record.voting_power, power)
            return record

    def _add_weight(self, case: Case, choice: VoteChoice, power: int) -> None:
        if choice == VoteChoice.FOR:
            case.vote_weight_for = checked_add(case.vote_weight_for, power)
        else:
            case.vote_weight_against = checked_add(case.vote_weight_against, power)

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def resolve(self, subject_id: str, round: int | None = None) -> RoundResult:
        """Resolve a case whose voting window has ended.

        Callable by anyone. Every amount is taken from the pre-resolution
        snapshot before statuses change.
        """
        with self._transaction("resolve", subject_id=subject_id, round=round):
            subject = self._require_subject(subject_id)
            if round is None:
                round = subject.latest_case_round
                if round is None:
                    raise NotFoundError("Case", subject_id)
            case = self._require_case(subject_id, round)
            if case.status == CaseStatus.RESOLVED:
                raise AlreadyResolvedError(subject_id, round)
            now = self._now()
            if not case.is_voting_ended(now):
                raise VotingNotEndedError(subject_id, round, case.voting_ends_at)

            outcome = case.determine_outcome()
            pool_at_risk = case.stake_held_pool
            direct_at_risk = case.stake_held_direct
            safe_stake = subject.ledger.available
            total_pool = case.total_pool

            if case.is_free:
                split = free_split()
                safe_stake = 0
            else:
                split = compute_fee_split(total_pool, outcome, self.config)
                self._collect_defender_stake(subject, pool_at_risk, direct_at_risk, safe_stake)
                self._out_of_escrow(subject_id, TREASURY, split.treasury_fee)
                self.store.treasury.collect(split.treasury_fee)

            result = RoundResult(
                subject_id=subject_id,
                round=round,
                kind=case.kind,
                outcome=outcome,
                creator=subject.creator,
                resolved_at=now,
                total_bond=case.total_bond,
                stake_at_risk=case.stake_at_risk,
                pool_at_risk=pool_at_risk,
                direct_at_risk=direct_at_risk,
                safe_stake=safe_stake,
                total_vote_weight=case.total_vote_weight,
                winning_weight=winning_weight(outcome, case.vote_weight_for, case.vote_weight_against),
                winner_pool=split.winner_pool,
                voter_pool=split.voter_pool,
                treasury_fee=split.treasury_fee,
                funded=0 if case.is_free else checked_sub(total_pool + safe_stake, split.treasury_fee),
                pool_owner=subject.pool_owner if pool_at_risk else None,
                defender_count=len(self.store.defenders_for(subject_id, round)) + (1 if pool_at_risk else 0),
                challenger_count=len(self.store.challengers_for(subject_id, round)),
                voter_count=len(self.store.votes_for(subject_id, round)),
            )
            self._escrow(subject_id).add_round(result)

            case.status = CaseStatus.RESOLVED
            case.outcome = outcome
            case.resolved_at = now
            self._apply_transition(subject, case)
            subject.last_resolved_at = now
            subject.updated_at = now

            logger.info(
                f"Case {subject_id}#{round} resolved: {outcome.value} "
                f"(pool {total_pool}, winners {split.winner_pool}, voters {split.voter_pool}, treasury {split.treasury_fee})"
            )
            return result

    def _collect_defender_stake(self, subject: Subject, pool_at_risk: int, direct_at_risk: int, safe_stake: int) -> None:
        """Move every defender contribution for the round into escrow."""
        if subject.ledger.held != direct_at_risk:
            raise InvariantViolation(
                f"Subject {subject.subject_id} holds {subject.ledger.held}, case recorded {direct_at_risk}",
                subject.ledger.to_dict(),
            )
        subject.ledger.slash(direct_at_risk)
        subject.ledger.withdraw(safe_stake)
        self._into_escrow(subject_vault(subject.subject_id), subject.subject_id, direct_at_risk + safe_stake)

        if pool_at_risk:
            pool = self._require_pool(subject.pool_owner)
            pool.ledger.slash(pool_at_risk)
            self._into_escrow(pool_vault(pool.owner), subject.subject_id, pool_at_risk)

    def _apply_transition(self, subject: Subject, case: Case) -> None:
        """Move the subject to its post-resolution status.

        A dispute the challenger wins invalidates the subject; a reversal
        the challenger side wins restores it. Everything else leaves the
        subject where it was before the case: disputes advance to a fresh
        round, reversals stay invalid.
        """
        challenger_won = case.outcome == Outcome.CHALLENGER_WINS
        if case.is_reversal == challenger_won:
            subject.reset_for_next_round()
            self._auto_rebond(subject)
            return

        subject.status = SubjectStatus.INVALID
        subject.active_case = None
        subject.last_case_total = 0 if case.is_free else case.total_pool
        subject.last_voting_period = case.voting_period

    def _auto_rebond(self, subject: Subject) -> None:
        """Bring a subject straight back to VALID if its backing allows.

        Conditions that prevent rebonding leave the subject DORMANT and are
        logged; they never fail the resolution. A subject left dormant by
        its pool wakes once the pool has stake again.
        """
        if subject.free:
            subject.status = SubjectStatus.VALID
            return
        reason = self._rebond_blocker(subject)
        if reason is not None:
            logger.info(f"Auto-rebond skipped for {subject.subject_id}: {reason}")
            return
        subject.status = SubjectStatus.VALID
        logger.info(f"Subject {subject.subject_id} rebonded from pool {subject.pool_owner}")

    def _rebond_blocker(self, subject: Subject) -> str | None:
        """Why the linked pool cannot back this subject, or None if it can."""
        if subject.pool_owner is None:
            return "no linked pool"
        pool = self.store.pools.get(subject.pool_owner)
        if pool is None:
            return f"pool {subject.pool_owner} not found"
        if pool.owner != subject.creator:
            return f"pool owned by {pool.owner}, not {subject.creator}"
        if pool.ledger.available == 0:
            return f"pool {pool.owner} has no available stake"
        return None

    def _wake_pool_subjects(self, pool: DefenderPool) -> list[str]:
        """Return DORMANT subjects linked to ``pool`` to VALID once it has stake."""
        woken = []
        for subject in self.store.subjects.values():
            if subject.status != SubjectStatus.DORMANT or subject.pool_owner != pool.owner:
                continue
            if subject.active_case is not None or self._rebond_blocker(subject) is not None:
                continue
            subject.status = SubjectStatus.VALID
            subject.updated_at = self._now()
            woken.append(subject.subject_id)
        if woken:
            logger.info(f"Pool {pool.owner} rebonded dormant subjects: {', '.join(woken)}")
        return woken

    # =========================================================================
    # CLAIMS
    # =========================================================================

    def claim_defender(self, subject_id: str, round: int, defender: str) -> int:
        """Pay a direct defender's share of a resolved round to their wallet."""
        with self._transaction("claim_defender", subject_id=subject_id, round=round, defender=defender):
            result = self._require_round(subject_id, round)
            record = self.store.defender_records.get((subject_id, round, defender))
            if record is None:
                raise NotFoundError("DefenderRecord", f"{subject_id}#{round}:{defender}")
            if record.reward_claimed:
                raise AlreadyClaimedError(ClaimRole.DEFENDER.value, defender, subject_id, round)

            amount = direct_defender_payout(result, record.stake)
            self._out_of_escrow(subject_id, wallet(defender), amount)
            result.record_claim(ClaimRole.DEFENDER, amount)
            record.reward_claimed = True

            logger.info(f"Defender {defender} claimed {amount} from {subject_id}#{round}")
            return amount

    def claim_pool(self, subject_id: str, round: int) -> int:
        """Return the linked pool's share of a resolved round to the pool ledger.

        Subjects left DORMANT by a drained pool become VALID once the share
        lands.
        """
        with self._transaction("claim_pool", subject_id=subject_id, round=round):
            result = self._require_round(subject_id, round)
            if result.pool_owner is None:
                raise NotFoundError("PoolStake", f"{subject_id}#{round}")
            if result.pool_claimed:
                raise AlreadyClaimedError(ClaimRole.POOL.value, result.pool_owner, subject_id, round)

            pool = self._require_pool(result.pool_owner)
            amount = pool_payout(result)
            self._out_of_escrow(subject_id, pool_vault(pool.owner), amount)
            pool.ledger.deposit(amount)
            result.record_claim(ClaimRole.POOL, amount)
            result.pool_claimed = True
            self._wake_pool_subjects(pool)

            logger.info(f"Pool {pool.owner} claimed {amount} from {subject_id}#{round}")
            return amount

    def claim_challenger(self, subject_id: str, round: int, challenger: str) -> int:
        """Pay a challenger (or restorer) and apply reputation feedback."""
        with self._transaction("claim_challenger", subject_id=subject_id, round=round, challenger=challenger):
            result = self._require_round(subject_id, round)
            record = self.store.challenger_records.get((subject_id, round, challenger))
            if record is None:
                raise NotFoundError("ChallengerRecord", f"{subject_id}#{round}:{challenger}")
            if record.reward_claimed:
                raise AlreadyClaimedError(ClaimRole.CHALLENGER.value, challenger, subject_id, round)

            amount = challenger_payout(result, record.bond)
            self._out_of_escrow(subject_id, wallet(challenger), amount)
            result.record_claim(ClaimRole.CHALLENGER, amount)
            record.reward_claimed = True

            if not result.is_free:
                account = self._challenger_account(challenger)
                if result.outcome == Outcome.CHALLENGER_WINS:
                    account.reputation = apply_reputation_gain(account.reputation, self.config)
                    account.cases_won += 1
                elif result.outcome == Outcome.DEFENDER_WINS:
                    account.reputation = apply_reputation_loss(account.reputation, self.config)
                    account.cases_lost += 1

            logger.info(f"Challenger {challenger} claimed {amount} from {subject_id}#{round}")
            return amount

    def claim_voter(self, subject_id: str, round: int, voter: str) -> int:
        """Credit a voter's reward to their juror ledger and update reputation.

        Voters who have since unregistered are paid to their wallet and
        their reputation is no longer tracked.
        """
        with self._transaction("claim_voter", subject_id=subject_id, round=round, voter=voter):
            result = self._require_round(subject_id, round)
            record = self.store.votes.get((subject_id, round, voter))
            if record is None:
                raise NotFoundError("Vote", f"{subject_id}#{round}:{voter}")
            if record.reward_claimed:
                raise AlreadyClaimedError(ClaimRole.VOTER.value, voter, subject_id, round)

            amount = voter_payout(result, record)
            juror = self.store.jurors.get(voter)
            if juror is None:
                self._out_of_escrow(subject_id, wallet(voter), amount)
            else:
                self._out_of_escrow(subject_id, juror_vault(voter), amount)
                juror.ledger.deposit(amount)
                if not result.is_free and not record.reputation_processed:
                    correct = record.is_correct(result.outcome)
                    if correct is True:
                        juror.reputation = apply_reputation_gain(juror.reputation, self.config)
                        juror.correct_votes += 1
                    elif correct is False:
                        juror.reputation = apply_reputation_loss(juror.reputation, self.config)

            record.reputation_processed = True
            record.reward_claimed = True
            result.record_claim(ClaimRole.VOTER, amount)

            logger.info(f"Voter {voter} claimed {amount} from {subject_id}#{round}")
            return amount

    def unlock_vote_stake(self, subject_id: str, round: int, voter: str) -> int:
        """Release a vote's held stake once its lock has passed."""
        with self._transaction("unlock_vote_stake", subject_id=subject_id, round=round, voter=voter):
            record = self.store.votes.get((subject_id, round, voter))
            if record is None:
                raise NotFoundError("Vote", f"{subject_id}#{round}:{voter}")
            if record.stake_unlocked:
                raise StakeAlreadyUnlockedError(voter, subject_id, round)
            if not record.can_unlock(self._now()):
                raise StakeStillLockedError(voter, record.unlock_at)

            juror = self._require_juror(voter)
            juror.ledger.release(record.stake_allocated)
            record.stake_unlocked = True
            return record.stake_allocated

    # =========================================================================
    # ROUND CLEANUP
    # =========================================================================

    def prune_round(self, subject_id: str, round: int) -> int:
        """Drop a fully claimed round, sending its dust to the treasury."""
        with self._transaction("prune_round", subject_id=subject_id, round=round):
            result = self._require_round(subject_id, round)
            if not result.is_fully_claimed():
                raise ClaimsIncompleteError(subject_id, round, result.outstanding_claims)
            dust = result.unclaimed
            self._out_of_escrow(subject_id, TREASURY, dust)
            self.store.treasury.collect(dust)
            self._escrow(subject_id).remove_round(round)
            logger.info(f"Round {subject_id}#{round} pruned (dust {dust})")
            return dust

    def sweep_round_creator(self, subject_id: str, round: int, caller: str) -> int:
        """Let the subject creator collect what nobody claimed within the grace period."""
        with self._transaction("sweep_round_creator", subject_id=subject_id, round=round, caller=caller):
            result = self._require_round(subject_id, round)
            if caller != result.creator:
                raise UnauthorizedError("Only the subject creator can sweep during the grace window", caller)
            elapsed = self._now() - result.resolved_at
            if elapsed < self.config.claim_grace_period:
                raise InvalidStatusError("Round", f"{subject_id}#{round}", "in claim grace period", "sweep")
            if elapsed >= self.config.treasury_sweep_period:
                raise InvalidStatusError("Round", f"{subject_id}#{round}", "past creator sweep window", "sweep")

            amount = result.unclaimed
            self._out_of_escrow(subject_id, wallet(caller), amount)
            self._escrow(subject_id).remove_round(round)
            logger.info(f"Creator {caller} swept {amount} from {subject_id}#{round}")
            return amount

    def sweep_round_treasury(self, subject_id: str, round: int, caller: str) -> int:
        """Sweep an abandoned round to the treasury, rewarding the caller."""
        with self._transaction("sweep_round_treasury", subject_id=subject_id, round=round, caller=caller):
            result = self._require_round(subject_id, round)
            if self._now() - result.resolved_at < self.config.treasury_sweep_period:
                raise InvalidStatusError("Round", f"{subject_id}#{round}", "not yet abandoned", "sweep")

            amount = result.unclaimed
            reward = bps_of(amount, self.config.sweeper_reward_bps)
            self._out_of_escrow(subject_id, wallet(caller), reward)
            self._out_of_escrow(subject_id, TREASURY, amount - reward)
            self.store.treasury.collect(amount - reward)
            self._escrow(subject_id).remove_round(round)
            logger.info(f"{caller} swept {amount} from {subject_id}#{round} (reward {reward})")
            return reward

    def close_vote_record(self, subject_id: str, round: int, voter: str) -> VoteRecord:
        with self._transaction("close_vote_record", subject_id=subject_id, round=round, voter=voter):
            key = (subject_id, round, voter)
            record = self.store.votes.get(key)
            if record is None:
                raise NotFoundError("Vote", f"{subject_id}#{round}:{voter}")
            self._check_closable(subject_id, round, record.reward_claimed)
            if not record.stake_unlocked:
                raise StakeStillLockedError(voter, record.unlock_at)
            return self.store.votes.pop(key)

    def close_challenger_record(self, subject_id: str, round: int, challenger: str) -> ChallengerRecord:
        with self._transaction("close_challenger_record", subject_id=subject_id, round=round, challenger=challenger):
            key = (subject_id, round, challenger)
            record = self.store.challenger_records.get(key)
            if record is None:
                raise NotFoundError("ChallengerRecord", f"{subject_id}#{round}:{challenger}")
            self._check_closable(subject_id, round, record.reward_claimed)
            return self.store.challenger_records.pop(key)

    def close_defender_record(self, subject_id: str, round: int, defender: str) -> DefenderRecord:
        with self._transaction("close_defender_record", subject_id=subject_id, round=round, defender=defender):
            key = (subject_id, round, defender)
            record = self.store.defender_records.get(key)
            if record is None:
                raise NotFoundError("DefenderRecord", f"{subject_id}#{round}:{defender}")
            self._check_closable(subject_id, round, record.reward_claimed)
            return self.store.defender_records.pop(key)

    def _check_closable(self, subject_id: str, round: int, claimed: bool) -> None:
        """A record can go once its claim is made or its round has been pruned or swept."""
        case = self.store.cases.get((subject_id, round))
        if case is None or case.status != CaseStatus.RESOLVED:
            raise InvalidStatusError("Case", f"{subject_id}#{round}", "unresolved", "close record")
        escrow = self.store.escrows.get(subject_id)
        round_gone = escrow is None or escrow.find_round(round) is None
        if not claimed and not round_gone:
            raise ConflictError(f"Record on {subject_id}#{round} has an unclaimed reward")

    # =========================================================================
    # TREASURY
    # =========================================================================

    def withdraw_treasury(self, amount: int, destination: str) -> Treasury:
        """Move collected fees out of the treasury to ``destination``'s wallet."""
        with self._transaction("withdraw_treasury", amount=amount, destination=destination):
            errors = validate_amount(amount)
            if errors:
                raise ValidationException("; ".join(errors))
            self.store.treasury.withdraw(amount)
            self._move(TREASURY, wallet(destination), amount)
            logger.info(f"Treasury withdrew {amount} to {destination}")
            return self.store.treasury

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_juror(self, owner: str) -> JurorAccount | None:
        return self.store.jurors.get(owner)

    def get_challenger(self, owner: str) -> ChallengerAccount | None:
        return self.store.challengers.get(owner)

    def get_pool(self, owner: str) -> DefenderPool | None:
        return self.store.pools.get(owner)

    def get_subject(self, subject_id: str) -> Subject | None:
        return self.store.subjects.get(subject_id)

    def get_case(self, subject_id: str, round: int) -> Case | None:
        return self.store.cases.get((subject_id, round))

    def get_vote(self, subject_id: str, round: int, voter: str) -> VoteRecord | None:
        return self.store.votes.get((subject_id, round, voter))

    def get_escrow(self, subject_id: str) -> Escrow | None:
        return self.store.escrows.get(subject_id)

    def get_round_result(self, subject_id: str, round: int) -> RoundResult | None:
        escrow = self.store.escrows.get(subject_id)
        return escrow.find_round(round) if escrow is not None else None

    def get_treasury(self) -> Treasury:
        return self.store.treasury

    def min_bond_for(self, challenger: str) -> int:
        """Minimum bond ``challenger`` would need to post right now."""
        account = self.store.challengers.get(challenger)
        reputation = account.reputation if account is not None else self.config.initial_reputation
        return calculate_min_bond(self.config.base_challenger_bond, reputation, self.config)

    def check_ledgers(self) -> list[str]:
        """Owners of any ledger whose total differs from available plus held."""
        with self._lock:
            return [ledger.owner for ledger in self.store.iter_ledgers() if not ledger.check_invariant()]

    def get_summary(self) -> dict[str, Any]:
        with self._lock:
            return {
                "jurors": len(self.store.jurors),
                "pools": len(self.store.pools),
                "subjects": {s.subject_id: s.status.value for s in self.store.subjects.values()},
                "open_cases": sum(1 for c in self.store.cases.values() if c.status == CaseStatus.PENDING),
                "treasury": self.store.treasury.to_dict(),
            }
