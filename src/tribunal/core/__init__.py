"""Tribunal Core - configuration, logging and errors shared by the engine and CLI."""

from .config import (
    CoreSettings,
    MultiplierCurve,
    ProtocolConfig,
    clear_config_cache,
    get_config,
    get_protocol_config,
)
from .exceptions import (
    AlreadyClaimedError,
    AlreadyResolvedError,
    AlreadyVotedError,
    CaseAlreadyOpenError,
    ClaimsIncompleteError,
    ConfigException,
    ConflictError,
    InsufficientAvailableStake,
    InsufficientFunds,
    InsufficientHeldStake,
    InvalidStatusError,
    InvariantViolation,
    NotFoundError,
    StakeAlreadyUnlockedError,
    StakeStillLockedError,
    TribunalException,
    UnauthorizedError,
    ValidationException,
    VotingClosedError,
    VotingNotEndedError,
)
from .logging import (
    OperationLogger,
    configure_logging,
    correlation_context,
    get_operation,
    operation_logger,
)

__all__ = [
    # Config
    "CoreSettings",
    "MultiplierCurve",
    "ProtocolConfig",
    "clear_config_cache",
    "get_config",
    "get_protocol_config",
    # Exceptions
    "AlreadyClaimedError",
    "AlreadyResolvedError",
    "AlreadyVotedError",
    "CaseAlreadyOpenError",
    "ClaimsIncompleteError",
    "ConfigException",
    "ConflictError",
    "InsufficientAvailableStake",
    "InsufficientFunds",
    "InsufficientHeldStake",
    "InvalidStatusError",
    "InvariantViolation",
    "NotFoundError",
    "StakeAlreadyUnlockedError",
    "StakeStillLockedError",
    "TribunalException",
    "UnauthorizedError",
    "ValidationException",
    "VotingClosedError",
    "VotingNotEndedError",
    # Logging
    "OperationLogger",
    "configure_logging",
    "correlation_context",
    "get_operation",
    "operation_logger",
]
