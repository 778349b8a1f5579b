"""Enums for the arbitration engine.

Contains the enumeration types used by subjects, cases, votes and claims.
"""

from enum import Enum


class SubjectStatus(str, Enum):
    """Lifecycle status of a subject."""
    DORMANT = "dormant"          # No backing stake; cannot be disputed
    VALID = "valid"              # Backed and open to disputes
    DISPUTED = "disputed"        # A case is open
    INVALID = "invalid"          # Lost a dispute; may be restored
    RESTORING = "restoring"      # A restoration or appeal is open


class StakingMode(str, Enum):
    """How defender stake is put at risk when a case opens."""
    MATCH = "match"                # At-risk stake matches the challenger bond
    PROPORTIONAL = "proportional"  # All available stake is at risk


class CaseKind(str, Enum):
    """Variant of a case."""
    DISPUTE = "dispute"
    RESTORATION = "restoration"
    APPEAL = "appeal"
    FREE = "free"


class CaseStatus(str, Enum):
    """Status of a case within its round."""
    PENDING = "pending"          # Voting open or awaiting resolution
    RESOLVED = "resolved"        # Outcome determined


class Outcome(str, Enum):
    """Resolution outcome.

    CHALLENGER_WINS is "upheld" in report-style deployments and
    DEFENDER_WINS is "dismissed".
    """
    NONE = "none"
    CHALLENGER_WINS = "challenger_wins"
    DEFENDER_WINS = "defender_wins"
    NO_PARTICIPATION = "no_participation"


class VoteChoice(str, Enum):
    """A voter's side.

    On restorations and appeals FOR means for restoring the subject.
    """
    FOR = "for"
    AGAINST = "against"


class DisputeCategory(str, Enum):
    """Opaque category carried on a case for the calling layer."""
    OTHER = "other"
    BREACH = "breach"
    FRAUD = "fraud"
    QUALITY = "quality"
    NON_DELIVERY = "non_delivery"
    MISREPRESENTATION = "misrepresentation"
    POLICY_VIOLATION = "policy_violation"
    DAMAGES_CLAIM = "damages_claim"


class ClaimRole(str, Enum):
    """Participant role in a resolved round."""
    DEFENDER = "defender"
    POOL = "pool"
    CHALLENGER = "challenger"
    VOTER = "voter"
