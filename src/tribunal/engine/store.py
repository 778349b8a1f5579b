"""Record arena for the arbitration engine.

Every record lives in one of the dictionaries below and is addressed by
handle: owner id, subject id, or ``(subject_id, round[, owner])`` tuples.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from .ledger import BalanceLedger
from .models import (
    Case,
    ChallengerAccount,
    ChallengerRecord,
    DefenderPool,
    DefenderRecord,
    Escrow,
    JurorAccount,
    Subject,
    Treasury,
    VoteRecord,
)

RoundKey = tuple[str, int]
ParticipantKey = tuple[str, int, str]


@dataclass
class ArbitrationStore:
    """All engine state, snapshotted as a unit by the service."""
    jurors: dict[str, JurorAccount] = field(default_factory=dict)
    challengers: dict[str, ChallengerAccount] = field(default_factory=dict)
    pools: dict[str, DefenderPool] = field(default_factory=dict)
    subjects: dict[str, Subject] = field(default_factory=dict)
    cases: dict[RoundKey, Case] = field(default_factory=dict)
    defender_records: dict[ParticipantKey, DefenderRecord] = field(default_factory=dict)
    challenger_records: dict[ParticipantKey, ChallengerRecord] = field(default_factory=dict)
    votes: dict[ParticipantKey, VoteRecord] = field(default_factory=dict)
    escrows: dict[str, Escrow] = field(default_factory=dict)
    treasury: Treasury = field(default_factory=Treasury)

    def iter_ledgers(self) -> Iterator[BalanceLedger]:
        for juror in self.jurors.values():
            yield juror.ledger
        for pool in self.pools.values():
            yield pool.ledger
        for subject in self.subjects.values():
            yield subject.ledger

    def defenders_for(self, subject_id: str, round: int) -> list[DefenderRecord]:
        return [r for (sid, rnd, _), r in self.defender_records.items() if sid == subject_id and rnd == round]

    def challengers_for(self, subject_id: str, round: int) -> list[ChallengerRecord]:
        return [r for (sid, rnd, _), r in self.challenger_records.items() if sid == subject_id and rnd == round]

    def votes_for(self, subject_id: str, round: int) -> list[VoteRecord]:
        return [r for (sid, rnd, _), r in self.votes.items() if sid == subject_id and rnd == round]
