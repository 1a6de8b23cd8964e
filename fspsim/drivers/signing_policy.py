"""
FSP Signing Policy Driver

Runs the signing policy handoff once per reward epoch. For the current
reward epoch E, the policy of E + 1 is defined in five phases:

1. wait for random acquisition, then require secure randomness
2. wait for the vote power block
3. register every participant for E + 1
4. wait for the policy to be published
5. sign the published policy until the threshold is reached

After each run for E the driver re-arms at the protocol start of E + 1,
also when a wait timed out or an authority call failed. Unsecure
randomness or an unacknowledged signature halts it.
"""

from typing import Optional

from ..exceptions import (
    AuthorityError,
    ProtocolInvariantError,
    RandomnessQualityError,
    WaitTimeoutError,
)
from ..logger import get_logger
from ..protocol.events import EventKind
from ..scheduler import poll_until
from .base import Driver

logger = get_logger(__name__)


class SigningPolicyDriver(Driver):

    name = "signing-policy"

    def first_fire_at(self) -> float:
        now = self.clock.now()
        try:
            protocol_start = self.epochs.signing_policy_protocol_start(self.epochs.reward_epoch_at(now))
        except ValueError:
            return now
        return max(now, protocol_start)

    async def _fire(self):
        try:
            current = await self.authority.current_reward_epoch()
        except AuthorityError as e:
            current = self._local_reward_epoch()
            logger.error(f"[epoch {current}] reward epoch lookup failed, using the local clock: {e}")

        try:
            await self.run(current)
        except (AuthorityError, WaitTimeoutError) as e:
            logger.error(f"[policy {current + 1}] signing policy protocol abandoned: {e}")
        self.arm(self.epochs.signing_policy_protocol_start(current + 1))

    def _local_reward_epoch(self) -> int:
        now = max(self.clock.now(), self.epochs.first_reward_epoch_start_ts)
        return self.epochs.reward_epoch_at(now)

    async def run(self, current: Optional[int] = None) -> int:
        """Define the next signing policy. Returns the reward epoch it ran in."""
        if current is None:
            current = await self.authority.current_reward_epoch()
        upcoming = current + 1
        logger.info(f"[policy {upcoming}] signing policy protocol armed in reward epoch {current}")

        await self._wait_for(current, EventKind.RANDOM_ACQUISITION_STARTED)
        if not await self.authority.randomness_quality():
            raise RandomnessQualityError(upcoming)

        await self._wait_for(current, EventKind.VOTE_POWER_BLOCK_SELECTED)
        await self.register_voters(upcoming)

        await self._wait_for(current, EventKind.SIGNING_POLICY_INITIALIZED)
        await self.ratify(upcoming)
        return current

    async def _wait_for(self, reward_epoch_id: int, kind: EventKind):
        ledger = self.state.ledger
        await poll_until(
            self.clock,
            lambda: ledger.has_event(reward_epoch_id, kind),
            self.timing.event_poll_interval,
            self.wait_timeout(self.epochs.reward_epoch_duration_seconds),
            f"{kind} in reward epoch {reward_epoch_id}",
        )
        logger.info(f"[epoch {reward_epoch_id}] observed {kind}")

    async def register_voters(self, reward_epoch_id: int) -> int:
        """Register every participant not in the registration skip set. Returns the count."""
        registered = 0
        for participant in self.participants:
            voter = participant.voter_address
            if self.skip.skips_registration(voter):
                logger.info(f"[policy {reward_epoch_id}] skipping registration of {voter}")
                continue
            try:
                signature = participant.signing_policy.sign_registration(
                    reward_epoch_id, participant.identity.address
                )
                await self.authority.register_voter(reward_epoch_id, participant, signature)
                registered += 1
                logger.info(f"[policy {reward_epoch_id}] registered voter {participant.identity.address}")
            except Exception as e:
                logger.error(
                    f"[policy {reward_epoch_id}] registration of {participant.identity.address} failed: {e}"
                )
        return registered

    async def ratify(self, reward_epoch_id: int) -> bool:
        """
        Sign the published policy, in local participant order, until the
        authority reports the threshold reached.

        Returns:
            True once the threshold was reached, False if the local
            signatures were exhausted first

        Raises:
            ProtocolInvariantError: a signature was not acknowledged
        """
        policy_hash = await self.authority.policy_hash(reward_epoch_id)

        for participant in self.participants:
            voter = participant.voter_address
            if self.skip.skips_policy_signing(voter):
                logger.info(f"[policy {reward_epoch_id}] skipping policy signature of {voter}")
                continue

            try:
                signature = participant.signing_policy.sign_hash(policy_hash)
                ack = await self.authority.sign_policy(reward_epoch_id, policy_hash, signature)
            except Exception as e:
                logger.error(f"[policy {reward_epoch_id}] signature of {voter} failed: {e}")
                continue

            if not ack.acknowledged:
                raise ProtocolInvariantError(
                    f"Signature of {voter} for reward epoch {reward_epoch_id} was not acknowledged"
                )
            logger.info(f"[policy {reward_epoch_id}] signed by {voter}")
            if ack.threshold_reached:
                logger.info(f"[policy {reward_epoch_id}] threshold reached")
                return True

        logger.warning(f"[policy {reward_epoch_id}] local signatures exhausted before the threshold")
        return False
