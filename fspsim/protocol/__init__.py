"""
FSP Protocol Module

Protocol data and arithmetic shared by the drivers:
- Epoch/round time arithmetic
- Signing policies, round messages and relay encodings
- Typed authority events and the event ledger
- Role-separated participant keys
- Reward offers
"""

from .epoch import EpochClock
from .signing_policy import SigningPolicy
from .messages import (
    ProtocolMessageMerkleRoot,
    SignatureWithIndex,
    RelayMessage,
    placeholder_merkle_root,
    relay_call_data,
    strip_relay_selector,
)
from .events import (
    EventKind,
    ProtocolEvent,
    RandomAcquisitionStarted,
    VotePowerBlockSelected,
    SigningPolicyInitialized,
    VotingRoundInitiated,
    SigningPolicySigned,
    RewardEpochStarted,
    InflationRewardsOffered,
    decode_event,
)
from .ledger import EventLedger, SigningPolicyRegistry
from .participants import (
    RoleKey,
    IdentityKey,
    SubmitKey,
    SubmitSignaturesKey,
    SigningPolicyKey,
    RegisteredParticipant,
    registration_hash,
    load_participants,
    generate_participants,
)
from .offers import RewardOffer, encode_feed_id, decode_feed_id, offers_total

__all__ = [
    "EpochClock",
    "SigningPolicy",
    "ProtocolMessageMerkleRoot",
    "SignatureWithIndex",
    "RelayMessage",
    "placeholder_merkle_root",
    "relay_call_data",
    "strip_relay_selector",
    "EventKind",
    "ProtocolEvent",
    "RandomAcquisitionStarted",
    "VotePowerBlockSelected",
    "SigningPolicyInitialized",
    "VotingRoundInitiated",
    "SigningPolicySigned",
    "RewardEpochStarted",
    "InflationRewardsOffered",
    "decode_event",
    "EventLedger",
    "SigningPolicyRegistry",
    "RoleKey",
    "IdentityKey",
    "SubmitKey",
    "SubmitSignaturesKey",
    "SigningPolicyKey",
    "RegisteredParticipant",
    "registration_hash",
    "load_participants",
    "generate_participants",
    "RewardOffer",
    "encode_feed_id",
    "decode_feed_id",
    "offers_total",
]
