"""
FSP Authority Interface

The protocol authority is the single source of truth for phase transitions
and signature validation. Drivers only talk to it through this interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from ..protocol.offers import RewardOffer
from ..protocol.participants import (
    RegisteredParticipant,
    SubmitKey,
    SubmitSignaturesKey,
)
from ..crypto import Signature


@dataclass(frozen=True)
class HeartbeatResult:
    """Authority block time plus the raw logs emitted since the last heartbeat."""
    block_timestamp: int
    logs: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class SignPolicyAck:
    """
    Response to a signing policy signature.

    Attributes:
        acknowledged: The authority accepted the signature as a SigningPolicySigned
        threshold_reached: Cumulative signed weight reached the policy threshold
    """
    acknowledged: bool
    threshold_reached: bool = False


class Authority(ABC):
    """Asynchronous protocol authority."""

    @abstractmethod
    async def heartbeat(self) -> HeartbeatResult:
        ...

    @abstractmethod
    async def current_reward_epoch(self) -> int:
        ...

    @abstractmethod
    async def randomness_quality(self) -> bool:
        """Whether the randomness for the next signing policy is secure."""

    @abstractmethod
    async def register_voter(
        self,
        reward_epoch_id: int,
        participant: RegisteredParticipant,
        signature: Signature,
    ) -> None:
        ...

    @abstractmethod
    async def sign_policy(
        self,
        reward_epoch_id: int,
        policy_hash: bytes,
        signature: Signature,
    ) -> SignPolicyAck:
        ...

    @abstractmethod
    async def policy_hash(self, reward_epoch_id: int) -> bytes:
        ...

    @abstractmethod
    async def submit1(self, key: SubmitKey) -> None:
        """Commit transaction from a participant's submit address."""

    @abstractmethod
    async def submit2(self, key: SubmitKey) -> None:
        """Reveal transaction from a participant's submit address."""

    @abstractmethod
    async def submit_signatures(self, key: SubmitSignaturesKey) -> None:
        ...

    @abstractmethod
    async def relay(self, data: bytes) -> None:
        """Submit relay call data (selector followed by a relay message)."""

    @abstractmethod
    async def offer_rewards(self, reward_epoch_id: int, offers: Sequence[RewardOffer]) -> None:
        ...

    @abstractmethod
    async def epoch_settings(self) -> Dict[str, Any]:
        """Genesis timing parameters, as accepted by EpochClock.from_dict."""

    @abstractmethod
    async def confirmed_merkle_root(self, protocol_id: int, voting_round_id: int) -> bytes:
        ...

    async def close(self) -> None:
        """Release transport resources."""
