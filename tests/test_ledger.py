"""
Event ledger, policy registry and event decoding tests.

Run with:
    pytest tests/test_ledger.py -v
"""

import threading

import pytest

from fspsim.exceptions import EncodingError
from fspsim.protocol.events import (
    EventKind,
    ProtocolEvent,
    RewardEpochStarted,
    SigningPolicyInitialized,
    SigningPolicySigned,
    VotingRoundInitiated,
    decode_event,
)
from fspsim.protocol.ledger import EventLedger, SigningPolicyRegistry


# ============================================================================
# EventLedger
# ============================================================================


class TestEventLedger:

    def test_record_then_has(self):
        ledger = EventLedger()
        ledger.record_event(3, EventKind.RANDOM_ACQUISITION_STARTED)
        assert ledger.has_event(3, EventKind.RANDOM_ACQUISITION_STARTED)
        assert not ledger.has_event(3, EventKind.VOTE_POWER_BLOCK_SELECTED)
        assert not ledger.has_event(4, EventKind.RANDOM_ACQUISITION_STARTED)

    def test_accepts_event_names(self):
        ledger = EventLedger()
        ledger.record_event(1, "RewardEpochStarted")
        assert ledger.has_event(1, EventKind.REWARD_EPOCH_STARTED)

    def test_duplicates_kept_in_order(self):
        ledger = EventLedger()
        ledger.record_event(1, EventKind.SIGNING_POLICY_SIGNED)
        ledger.record_event(1, EventKind.REWARD_EPOCH_STARTED)
        ledger.record_event(1, EventKind.SIGNING_POLICY_SIGNED)
        assert ledger.events_for(1) == [
            EventKind.SIGNING_POLICY_SIGNED,
            EventKind.REWARD_EPOCH_STARTED,
            EventKind.SIGNING_POLICY_SIGNED,
        ]

    def test_events_for_is_a_copy(self):
        ledger = EventLedger()
        ledger.record_event(1, EventKind.SIGNING_POLICY_SIGNED)
        ledger.events_for(1).clear()
        assert ledger.has_event(1, EventKind.SIGNING_POLICY_SIGNED)

    def test_latest_round_is_monotonic(self):
        ledger = EventLedger()
        assert ledger.latest_initialized_round() == -1
        ledger.mark_round_initialized(10)
        ledger.mark_round_initialized(7)
        assert ledger.latest_initialized_round() == 10
        ledger.mark_round_initialized(11)
        assert ledger.latest_initialized_round() == 11

    def test_concurrent_writers(self):
        ledger = EventLedger()

        def writer(epoch):
            for _ in range(500):
                ledger.record_event(epoch % 2, EventKind.SIGNING_POLICY_SIGNED)
                ledger.mark_round_initialized(epoch)

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ledger.events_for(0)) + len(ledger.events_for(1)) == 8 * 500
        assert ledger.latest_initialized_round() == 7


class TestSigningPolicyRegistry:

    def test_install_get_latest(self, initial_policy):
        registry = SigningPolicyRegistry()
        assert registry.get(0) is None
        assert registry.latest() is None

        registry.install(initial_policy)
        assert registry.get(0) == initial_policy
        assert registry.latest() == initial_policy
        assert 0 in registry
        assert len(registry) == 1


# ============================================================================
# Event decoding
# ============================================================================


class TestDecodeEvent:

    def test_base_event_is_abstract(self):
        with pytest.raises(TypeError):
            ProtocolEvent()

    def test_voting_round_initiated(self):
        assert isinstance(decode_event({"event": "NewVotingRoundInitiated", "args": {}}), VotingRoundInitiated)

    def test_reward_epoch_started(self):
        event = decode_event({
            "event": "RewardEpochStarted",
            "args": {"rewardEpochId": 4, "startVotingRoundId": 1020, "timestamp": 1},
        })
        assert event == RewardEpochStarted(reward_epoch_id=4, start_voting_round_id=1020, timestamp=1)
        assert event.kind is EventKind.REWARD_EPOCH_STARTED

    def test_signing_policy_initialized_carries_policy(self, initial_policy):
        event = decode_event({"event": "SigningPolicyInitialized", "args": initial_policy.to_dict()})
        assert isinstance(event, SigningPolicyInitialized)
        assert event.policy == initial_policy
        assert event.reward_epoch_id == 0

    def test_signing_policy_signed(self):
        event = decode_event({
            "event": "SigningPolicySigned",
            "args": {
                "rewardEpochId": 2,
                "signingPolicyAddress": "0x" + "11" * 20,
                "voter": "0x" + "22" * 20,
                "thresholdReached": True,
            },
        })
        assert isinstance(event, SigningPolicySigned)
        assert event.threshold_reached is True

    def test_unknown_event_skipped(self):
        assert decode_event({"event": "Transfer", "args": {}}) is None
        assert decode_event({}) is None

    def test_malformed_args(self):
        with pytest.raises(EncodingError):
            decode_event({"event": "RewardEpochStarted", "args": {"rewardEpochId": 1}})
        with pytest.raises(EncodingError):
            decode_event({"event": "RandomAcquisitionStarted", "args": {"rewardEpochId": "x"}})
