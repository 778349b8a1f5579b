"""Stake-weighted, reputation-adjusted arbitration engine.

This package implements the case lifecycle where:
- Defenders back a subject with direct stake or a reusable pool
- Challengers post a reputation-sized bond to dispute it
- Jurors lock stake into votes weighted by reputation and participation
- Resolution splits the pooled stake into winner, voter and treasury shares
- Participants pull their share, which feeds back into reputation

Submodules:
- constants: Fixed arithmetic constants
- enums: Enumeration types for subjects, cases, votes and claims
- arithmetic: Checked integer helpers (integer_sqrt, mul_div)
- ledger: BalanceLedger with hold/release/slash
- reputation: Bond sizing, voting power, multipliers and reputation updates
- models: Data models for accounts, subjects, cases, votes and escrow
- distribution: Outcome determination and fee splitting
- settlement: Per-participant payouts
- ports: Clock and value transfer ports with in-memory implementations
- store: Record arena
- validators: Input validation
- service: ArbitrationService orchestrating every operation
"""

from .arithmetic import bps_of, integer_sqrt, mul_div, pro_rata
from .constants import ProtocolConstants
from .distribution import FeeSplit, compute_fee_split, determine_outcome
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
    ManualClock,
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
    calculate_reputation_gain,
    calculate_reputation_loss,
    calculate_voting_power,
    calculate_withdrawal,
    reputation_multiplier,
)
from .service import ArbitrationService
from .store import ArbitrationStore

__all__ = [
    # Arithmetic
    "bps_of",
    "integer_sqrt",
    "mul_div",
    "pro_rata",
    # Constants
    "ProtocolConstants",
    # Distribution
    "FeeSplit",
    "compute_fee_split",
    "determine_outcome",
    # Enums
    "CaseKind",
    "CaseStatus",
    "ClaimRole",
    "DisputeCategory",
    "Outcome",
    "StakingMode",
    "SubjectStatus",
    "VoteChoice",
    # Ledger
    "BalanceLedger",
    # Models
    "AppealTerms",
    "Case",
    "ChallengerAccount",
    "ChallengerRecord",
    "DefenderPool",
    "DefenderRecord",
    "DisputeTerms",
    "Escrow",
    "FreeTerms",
    "JurorAccount",
    "RestorationTerms",
    "RoundResult",
    "Subject",
    "Treasury",
    "VoteRecord",
    # Ports
    "TREASURY",
    "Clock",
    "InMemoryValueStore",
    "ManualClock",
    "SystemClock",
    "ValueTransfer",
    "escrow_vault",
    "juror_vault",
    "pool_vault",
    "subject_vault",
    "wallet",
    # Reputation
    "WithdrawalSplit",
    "apply_reputation_gain",
    "apply_reputation_loss",
    "calculate_min_bond",
    "calculate_reputation_gain",
    "calculate_reputation_loss",
    "calculate_voting_power",
    "calculate_withdrawal",
    "reputation_multiplier",
    # Service
    "ArbitrationService",
    "ArbitrationStore",
]
