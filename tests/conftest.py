"""Global test fixtures for the Tribunal test suite."""

from __future__ import annotations

import os

import pytest

from tribunal.core.config import ProtocolConfig, clear_config_cache
from tribunal.engine.enums import VoteChoice
from tribunal.engine.ports import InMemoryValueStore, ManualClock, wallet
from tribunal.engine.service import ArbitrationService

# Participants funded in every engine test
PARTICIPANTS = ("alice", "bob", "carol", "dave", "erin", "frank", "grace", "heidi")
STARTING_BALANCE = 1_000_000
START_TIME = 1_000


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all TRIBUNAL_ environment variables and reset cached config."""
    for key in list(os.environ.keys()):
        if key.startswith("TRIBUNAL_"):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def protocol_config(clean_env) -> ProtocolConfig:
    """Protocol parameters scaled down so amounts in tests stay readable."""
    return ProtocolConfig(
        min_juror_stake=10,
        min_defender_stake=100,
        base_challenger_bond=500,
        min_vote_allocation_bps=1000,
        default_voting_period=100,
        stake_lock_buffer=50,
        appeal_window=200,
        claim_grace_period=1_000,
        treasury_sweep_period=5_000,
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=START_TIME)


@pytest.fixture
def values() -> InMemoryValueStore:
    store = InMemoryValueStore()
    for name in PARTICIPANTS:
        store.mint(wallet(name), STARTING_BALANCE)
    return store


@pytest.fixture
def service(protocol_config, clock, values) -> ArbitrationService:
    return ArbitrationService(config=protocol_config, clock=clock, transfers=values)


@pytest.fixture
def jurors(service):
    """Register carol, dave and erin as jurors with 1000 each."""
    for name in ("carol", "dave", "erin"):
        service.register_juror(name, 1_000)
    return ("carol", "dave", "erin")


@pytest.fixture
def disputed(service, jurors):
    """Subject s1 backed by alice with 1000, disputed by bob with a 500 bond."""
    service.create_subject("s1", "alice", stake=1_000)
    return service.open_dispute("s1", "bob", 500)


@pytest.fixture
def invalidated(service, clock, disputed):
    """s1 after carol and dave voted FOR and erin AGAINST; the challenger won."""
    service.vote("s1", "carol", VoteChoice.FOR, 100)
    service.vote("s1", "dave", VoteChoice.FOR, 50)
    service.vote("s1", "erin", VoteChoice.AGAINST, 50)
    clock.advance(100)
    return service.resolve("s1")
