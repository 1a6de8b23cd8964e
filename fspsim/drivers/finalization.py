"""
FSP Finalization Engine

Builds and relays the threshold-signed attestation of a voting round.
Signatures follow the voter order of the round's signing policy, so the
result does not depend on the order of the local participant list.
"""

from typing import Dict, Optional, Sequence

from ..authority.base import Authority
from ..constants import FTSO_PROTOCOL_ID
from ..logger import get_logger
from ..protocol.epoch import EpochClock
from ..protocol.messages import (
    ProtocolMessageMerkleRoot,
    RelayMessage,
    SignatureWithIndex,
    placeholder_merkle_root,
    relay_call_data,
)
from ..protocol.participants import RegisteredParticipant
from .base import SharedState

logger = get_logger(__name__)


class FinalizationEngine:

    def __init__(
        self,
        authority: Authority,
        epochs: EpochClock,
        state: SharedState,
        participants: Sequence[RegisteredParticipant],
        protocol_id: int = FTSO_PROTOCOL_ID,
    ):
        self.authority = authority
        self.epochs = epochs
        self.state = state
        self.protocol_id = protocol_id
        self._by_voter: Dict[str, RegisteredParticipant] = {
            p.voter_address.lower(): p for p in participants
        }

    def build(self, voting_round_id: int, merkle_root: Optional[bytes] = None) -> Optional[RelayMessage]:
        """Assemble the relay message for a round, or None without an installed policy."""
        try:
            reward_epoch_id = self.epochs.reward_epoch_for_round(voting_round_id)
        except ValueError as e:
            logger.warning(f"[finalize {voting_round_id}] {e}")
            return None

        policy = self.state.policies.get(reward_epoch_id)
        if policy is None:
            logger.warning(
                f"[finalize {voting_round_id}] no signing policy for reward epoch {reward_epoch_id}, skipping"
            )
            return None

        message = ProtocolMessageMerkleRoot(
            protocol_id=self.protocol_id,
            voting_round_id=voting_round_id,
            is_secure_random=True,
            merkle_root=merkle_root if merkle_root is not None else placeholder_merkle_root(voting_round_id),
        )
        digest = message.hash()

        signatures = []
        for index, voter in enumerate(policy.voters):
            participant = self._by_voter.get(voter.lower())
            if participant is None:
                logger.info(f"[finalize {voting_round_id}] voter {voter} not among registered accounts")
                continue
            signatures.append(SignatureWithIndex(index, participant.signing_policy.sign_hash(digest)))

        return RelayMessage(signing_policy=policy, message=message, signatures=tuple(signatures))

    async def finalize(self, voting_round_id: int) -> bool:
        """Build and relay the round's attestation. Failures are logged, never raised."""
        relay_message = self.build(voting_round_id)
        if relay_message is None:
            return False

        try:
            await self.authority.relay(relay_call_data(relay_message))
        except Exception as e:
            logger.error(f"[finalize {voting_round_id}] relay failed: {e}")
            return False

        logger.info(
            f"[finalize {voting_round_id}] relayed with {len(relay_message.signatures)} signatures "
            f"for reward epoch {relay_message.signing_policy.reward_epoch_id}"
        )
        return True
