"""
FSP Protocol Events

The closed set of authority events the simulation reacts to. Raw logs
(`{"event": name, "args": {...}}`) are decoded exactly once, in the ledger
watcher; everything downstream works with the typed variants.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Type

from ..exceptions import EncodingError
from ..logger import get_logger
from .signing_policy import SigningPolicy

logger = get_logger(__name__)


class EventKind(str, Enum):
    RANDOM_ACQUISITION_STARTED = "RandomAcquisitionStarted"
    VOTE_POWER_BLOCK_SELECTED = "VotePowerBlockSelected"
    SIGNING_POLICY_INITIALIZED = "SigningPolicyInitialized"
    VOTING_ROUND_INITIATED = "NewVotingRoundInitiated"
    SIGNING_POLICY_SIGNED = "SigningPolicySigned"
    REWARD_EPOCH_STARTED = "RewardEpochStarted"
    INFLATION_REWARDS_OFFERED = "InflationRewardsOffered"

    def __str__(self) -> str:
        return self.value


def _arg(args: Dict[str, Any], *keys: str, default: Any = None, required: bool = True) -> Any:
    for key in keys:
        if key in args:
            return args[key]
    if required:
        raise EncodingError(f"Event is missing argument '{keys[0]}'")
    return default


@dataclass(frozen=True)
class ProtocolEvent(ABC):
    """Base for typed authority events."""
    kind: ClassVar[EventKind]

    @classmethod
    @abstractmethod
    def from_args(cls, args: Dict[str, Any]) -> "ProtocolEvent":
        ...


@dataclass(frozen=True)
class RandomAcquisitionStarted(ProtocolEvent):
    kind: ClassVar[EventKind] = EventKind.RANDOM_ACQUISITION_STARTED
    reward_epoch_id: int
    timestamp: Optional[int] = None

    @classmethod
    def from_args(cls, args):
        return cls(
            reward_epoch_id=int(_arg(args, 'rewardEpochId', 'reward_epoch_id')),
            timestamp=_arg(args, 'timestamp', required=False),
        )


@dataclass(frozen=True)
class VotePowerBlockSelected(ProtocolEvent):
    kind: ClassVar[EventKind] = EventKind.VOTE_POWER_BLOCK_SELECTED
    reward_epoch_id: int
    vote_power_block: int
    timestamp: Optional[int] = None

    @classmethod
    def from_args(cls, args):
        return cls(
            reward_epoch_id=int(_arg(args, 'rewardEpochId', 'reward_epoch_id')),
            vote_power_block=int(_arg(args, 'votePowerBlock', 'vote_power_block', default=0, required=False)),
            timestamp=_arg(args, 'timestamp', required=False),
        )


@dataclass(frozen=True)
class SigningPolicyInitialized(ProtocolEvent):
    """Publication of the next signing policy; carries the full policy."""
    kind: ClassVar[EventKind] = EventKind.SIGNING_POLICY_INITIALIZED
    policy: SigningPolicy
    timestamp: Optional[int] = None

    @property
    def reward_epoch_id(self) -> int:
        return self.policy.reward_epoch_id

    @classmethod
    def from_args(cls, args):
        return cls(
            policy=SigningPolicy.from_dict(args),
            timestamp=_arg(args, 'timestamp', required=False),
        )


@dataclass(frozen=True)
class VotingRoundInitiated(ProtocolEvent):
    kind: ClassVar[EventKind] = EventKind.VOTING_ROUND_INITIATED

    @classmethod
    def from_args(cls, args):
        return cls()


@dataclass(frozen=True)
class SigningPolicySigned(ProtocolEvent):
    kind: ClassVar[EventKind] = EventKind.SIGNING_POLICY_SIGNED
    reward_epoch_id: int
    signing_policy_address: str
    voter: str
    threshold_reached: bool
    timestamp: Optional[int] = None

    @classmethod
    def from_args(cls, args):
        return cls(
            reward_epoch_id=int(_arg(args, 'rewardEpochId', 'reward_epoch_id')),
            signing_policy_address=_arg(args, 'signingPolicyAddress', 'signing_policy_address'),
            voter=_arg(args, 'voter'),
            threshold_reached=bool(_arg(args, 'thresholdReached', 'threshold_reached')),
            timestamp=_arg(args, 'timestamp', required=False),
        )


@dataclass(frozen=True)
class RewardEpochStarted(ProtocolEvent):
    kind: ClassVar[EventKind] = EventKind.REWARD_EPOCH_STARTED
    reward_epoch_id: int
    start_voting_round_id: int
    timestamp: Optional[int] = None

    @classmethod
    def from_args(cls, args):
        return cls(
            reward_epoch_id=int(_arg(args, 'rewardEpochId', 'reward_epoch_id')),
            start_voting_round_id=int(_arg(args, 'startVotingRoundId', 'start_voting_round_id')),
            timestamp=_arg(args, 'timestamp', required=False),
        )


@dataclass(frozen=True)
class InflationRewardsOffered(ProtocolEvent):
    kind: ClassVar[EventKind] = EventKind.INFLATION_REWARDS_OFFERED
    reward_epoch_id: int
    amount: int = 0

    @classmethod
    def from_args(cls, args):
        return cls(
            reward_epoch_id=int(_arg(args, 'rewardEpochId', 'reward_epoch_id')),
            amount=int(_arg(args, 'amount', default=0, required=False)),
        )


EVENT_TYPES: Dict[EventKind, Type[ProtocolEvent]] = {
    event_type.kind: event_type
    for event_type in (
        RandomAcquisitionStarted,
        VotePowerBlockSelected,
        SigningPolicyInitialized,
        VotingRoundInitiated,
        SigningPolicySigned,
        RewardEpochStarted,
        InflationRewardsOffered,
    )
}


def decode_event(raw: Dict[str, Any]) -> Optional[ProtocolEvent]:
    """
    Decode a raw authority log into its typed event.

    Returns None for event names outside the known set. Raises EncodingError
    when a known event carries malformed arguments.
    """
    name = raw.get('event')
    try:
        kind = EventKind(name)
    except ValueError:
        logger.debug(f"Skipping unknown event {name!r}")
        return None

    args = raw.get('args') or {}
    if not isinstance(args, dict):
        raise EncodingError(f"{name} arguments must be an object")
    try:
        return EVENT_TYPES[kind].from_args(args)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Malformed {name} event: {e}")
