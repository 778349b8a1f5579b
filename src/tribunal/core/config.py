# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Core configuration - centralized config for the tribunal package.

All environment-based configuration should flow through this module.
Two settings objects live here:

- ``CoreSettings``: process-level knobs (logging).
- ``ProtocolConfig``: the read-only parameters consumed by the arbitration
  engine (minimum stakes, bond bases, fee basis points, reputation rates,
  zone boundaries, voting and lock periods).

Usage:
    from tribunal.core.config import get_config, get_protocol_config
    protocol = get_protocol_config()
    fee_bps = protocol.total_fee_bps
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigException

BPS_SCALE = 10_000


class MultiplierCurve(str, Enum):
    """Shape of the reputation-change multiplier."""
    ZONES = "zones"                            # grace / extreme / normal bands
    STACKED_SMOOTHSTEP = "stacked_smoothstep"  # two smoothstep sigmoids at 25% and 75%


class CoreSettings(BaseSettings):
    """Core configuration settings for Tribunal.

    Settings can be configured via environment variables with the
    TRIBUNAL_ prefix.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="TRIBUNAL_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="TRIBUNAL_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="TRIBUNAL_LOG_FILE",
    )

    # ==========================================================================
    # CLI SETTINGS
    # ==========================================================================

    output_format: str = Field(
        default="json",
        description="CLI output format: 'json' or 'text'",
        validation_alias="TRIBUNAL_OUTPUT",
    )


class ProtocolConfig(BaseSettings):
    """Protocol parameters for the arbitration engine.

    Amounts are in the smallest value unit, periods in seconds, rates and
    shares in basis points (10000 = 100%), reputation in points where
    ``reputation_ceiling`` is 100%. Every field can be overridden from the
    environment, e.g. ``TRIBUNAL_TOTAL_FEE_BPS=1500``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRIBUNAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ==========================================================================
    # STAKES AND BONDS
    # ==========================================================================

    min_juror_stake: int = Field(default=100_000_000, ge=0, description="Minimum stake to register as a juror")
    min_defender_stake: int = Field(default=100_000_000, ge=0, description="Minimum direct stake per defender contribution")
    base_challenger_bond: int = Field(default=10_000_000, ge=0, description="Bond at neutral reputation")
    min_vote_allocation_bps: int = Field(
        default=1000,
        ge=0,
        description="Minimum vote allocation as a fraction of the case bond (0 disables)",
    )

    # ==========================================================================
    # PERIODS
    # ==========================================================================

    default_voting_period: int = Field(default=86_400, gt=0, description="Voting window for new subjects")
    stake_lock_buffer: int = Field(default=604_800, ge=0, description="Lock after voting ends before vote stake unlocks")
    appeal_window: int = Field(default=604_800, ge=0, description="Time after invalidation during which a fee-free appeal is allowed")
    claim_grace_period: int = Field(default=2_592_000, ge=0, description="Time before the creator may sweep unclaimed funds")
    treasury_sweep_period: int = Field(default=7_776_000, ge=0, description="Time before anyone may sweep unclaimed funds to the treasury")

    # ==========================================================================
    # REPUTATION
    # ==========================================================================

    reputation_ceiling: int = Field(default=10_000, gt=0, description="Reputation value representing 100%")
    initial_reputation: int = Field(default=5_000, ge=0)
    reputation_gain_rate: int = Field(default=100, ge=0, description="Gain rate in bps of the remaining headroom")
    reputation_loss_rate: int = Field(default=300, ge=0, description="Loss rate in bps of the current reputation")
    slash_threshold: int = Field(default=5_000, ge=0, description="Reputation below which juror withdrawals are slashed")

    multiplier_curve: MultiplierCurve = Field(default=MultiplierCurve.ZONES)
    grace_zone_low: int = Field(default=4_000, ge=0)
    grace_zone_high: int = Field(default=6_000, ge=0)
    grace_multiplier: int = Field(default=1_000, ge=0, description="Multiplier near the midpoint (bps)")
    extreme_zone_low: int = Field(default=2_500, ge=0)
    extreme_zone_high: int = Field(default=7_500, ge=0)
    extreme_multiplier: int = Field(default=3_000, ge=0, description="Multiplier near the floor and ceiling (bps)")
    normal_multiplier: int = Field(default=10_000, ge=0, description="Multiplier everywhere else (bps)")

    # ==========================================================================
    # FEES
    # ==========================================================================

    total_fee_bps: int = Field(default=2_000, ge=0, description="Fee carved from every resolved pool")
    voter_share_bps: int = Field(default=9_500, ge=0, description="Share of the fee paid to correct voters")
    restoration_fee_bps: int = Field(default=100, ge=0, description="Upfront fee on restoration stakes")
    sweeper_reward_bps: int = Field(default=100, ge=0, description="Reward for sweeping an abandoned round")

    # ==========================================================================
    # EVIDENCE
    # ==========================================================================

    max_cid_length: int = Field(default=64, gt=0, description="Maximum length of evidence references")

    @model_validator(mode="after")
    def _check_consistency(self) -> ProtocolConfig:
        for name in (
            "min_vote_allocation_bps",
            "total_fee_bps",
            "voter_share_bps",
            "restoration_fee_bps",
            "sweeper_reward_bps",
        ):
            if getattr(self, name) > BPS_SCALE:
                raise ValueError(f"{name} must not exceed {BPS_SCALE}")

        ceiling = self.reputation_ceiling
        if self.initial_reputation > ceiling:
            raise ValueError("initial_reputation must not exceed reputation_ceiling")
        if self.slash_threshold > ceiling:
            raise ValueError("slash_threshold must not exceed reputation_ceiling")
        if not (self.extreme_zone_low <= self.grace_zone_low <= self.grace_zone_high <= self.extreme_zone_high <= ceiling):
            raise ValueError("reputation zones must satisfy extreme_low <= grace_low <= grace_high <= extreme_high <= ceiling")
        if self.claim_grace_period >= self.treasury_sweep_period:
            raise ValueError("claim_grace_period must be shorter than treasury_sweep_period")
        return self

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def platform_share_bps(self) -> int:
        """Share of the fee kept by the treasury."""
        return BPS_SCALE - self.voter_share_bps

    @property
    def half_reputation(self) -> int:
        """Neutral reputation used by bond sizing."""
        return self.reputation_ceiling // 2

    def with_overrides(self, **overrides: Any) -> ProtocolConfig:
        """Return a validated copy with some fields replaced."""
        return ProtocolConfig(**{**self.model_dump(), **overrides})


# ==========================================================================
# GLOBAL CONFIG INSTANCES (lazy loaded)
# ==========================================================================

_config: CoreSettings | None = None
_protocol_config: ProtocolConfig | None = None


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.
    """
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def get_protocol_config() -> ProtocolConfig:
    """Get the global protocol configuration.

    Returns:
        The singleton ProtocolConfig instance.

    Raises:
        ConfigException: If environment values fail validation.
    """
    global _protocol_config
    if _protocol_config is None:
        try:
            _protocol_config = ProtocolConfig()
        except ValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ConfigException(f"Invalid protocol configuration: {e.error_count()} error(s)", invalid_fields=fields) from e
    return _protocol_config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config, _protocol_config
    _config = None
    _protocol_config = None
