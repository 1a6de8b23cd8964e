"""
Shared fixtures for the FSP simulator test suite.

Timing used throughout: 20 second voting rounds, 5 rounds per reward epoch,
reward epoch 0 starting at voting round 0 (T0), next signing policy protocol
starting 45 seconds before each reward epoch ends.
"""

from unittest.mock import AsyncMock

import pytest

from fspsim.authority.base import Authority, HeartbeatResult, SignPolicyAck
from fspsim.authority.local import build_initial_policy
from fspsim.config import SkipConfig, TimingConfig
from fspsim.drivers.base import SharedState
from fspsim.protocol.epoch import EpochClock
from fspsim.protocol.participants import generate_participants
from fspsim.scheduler import Scheduler, VirtualClock

T0 = 1_700_000_000


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def epochs():
    return EpochClock(
        first_voting_round_start_ts=T0,
        voting_epoch_duration_seconds=20,
        first_reward_epoch_start_voting_round_id=0,
        reward_epoch_duration_in_voting_epochs=5,
        new_signing_policy_initialization_start_seconds=45,
        voter_registration_min_duration_seconds=10,
    )


@pytest.fixture
def late_epochs():
    """Same timing, with reward epoch 0 starting at voting round 10 (T0 + 200)."""
    return EpochClock(
        first_voting_round_start_ts=T0,
        voting_epoch_duration_seconds=20,
        first_reward_epoch_start_voting_round_id=10,
        reward_epoch_duration_in_voting_epochs=5,
        new_signing_policy_initialization_start_seconds=45,
        voter_registration_min_duration_seconds=10,
    )


@pytest.fixture
def participants():
    return generate_participants(3)


@pytest.fixture
def initial_policy(participants, epochs):
    return build_initial_policy(participants, reward_epoch_id=0, start_voting_round_id=0)


@pytest.fixture
def clock():
    return VirtualClock(T0 + 1)


@pytest.fixture
def state():
    return SharedState()


@pytest.fixture
def timing():
    return TimingConfig(ledger_poll_interval=0.5, event_poll_interval=0.5)


@pytest.fixture
def skip():
    return SkipConfig()


@pytest.fixture
def authority():
    """Authority mock answering every call successfully."""
    mock = AsyncMock(spec=Authority)
    mock.heartbeat.return_value = HeartbeatResult(block_timestamp=T0 + 1, logs=[])
    mock.current_reward_epoch.return_value = 0
    mock.randomness_quality.return_value = True
    mock.policy_hash.return_value = b'\x11' * 32
    mock.sign_policy.return_value = SignPolicyAck(acknowledged=True, threshold_reached=False)
    mock.confirmed_merkle_root.return_value = bytes(32)
    return mock


@pytest.fixture
def make_driver(authority, epochs, clock, state, participants, skip, timing):
    """Build a driver of the given class wired to the shared fixtures."""
    def factory(driver_class, **overrides):
        kwargs = dict(
            authority=authority,
            epochs=epochs,
            clock=clock,
            state=state,
            participants=participants,
            scheduler=Scheduler(clock),
            skip=skip,
            timing=timing,
        )
        kwargs.update(overrides)
        return driver_class(**kwargs)
    return factory
