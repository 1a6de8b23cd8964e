"""
FSP Reward Offering

Offers community rewards for the next reward epoch once the current one has
started. Fires once per reward epoch, shortly after its start; a failed
offer is retried by the next firing.
"""

from typing import Optional, Sequence

from ..exceptions import WaitTimeoutError
from ..logger import get_logger
from ..protocol.events import EventKind
from ..protocol.offers import RewardOffer, offers_total
from ..scheduler import poll_until
from .base import Driver

logger = get_logger(__name__)


class RewardOfferingScheduler(Driver):

    name = "reward-offers"

    def __init__(self, *args, offers: Sequence[RewardOffer] = (), **kwargs):
        super().__init__(*args, **kwargs)
        self.offers = list(offers)

    def first_fire_at(self) -> float:
        now = self.clock.now()
        first = self.epochs.first_reward_epoch_start_ts
        if now < first:
            return first + self.timing.reward_offer_delay
        return self.epochs.next_reward_epoch_start(now) + self.timing.reward_offer_delay

    async def _fire(self):
        now = self.clock.now()
        self.arm(self.epochs.next_reward_epoch_start(now) + self.timing.reward_offer_delay)
        await self.offer()

    async def offer(self, reward_epoch_id: Optional[int] = None) -> bool:
        """
        Offer rewards for `reward_epoch_id`, by default the epoch after the
        current one. Without an explicit epoch, first waits for the current
        epoch to start.
        """
        if reward_epoch_id is None:
            reward_epoch_id = self.epochs.reward_epoch_at(self.clock.now()) + 1
            current = reward_epoch_id - 1
            ledger = self.state.ledger
            try:
                await poll_until(
                    self.clock,
                    lambda: ledger.has_event(current, EventKind.REWARD_EPOCH_STARTED),
                    self.timing.event_poll_interval,
                    self.wait_timeout(self.epochs.reward_epoch_duration_seconds),
                    f"start of reward epoch {current}",
                )
            except WaitTimeoutError as e:
                logger.error(f"[offers {reward_epoch_id}] not offered: {e}")
                return False

        if not self.offers:
            logger.warning(f"[offers {reward_epoch_id}] no offers configured")
            return False

        try:
            await self.authority.offer_rewards(reward_epoch_id, self.offers)
        except Exception as e:
            logger.error(f"[offers {reward_epoch_id}] offer failed: {e}")
            return False

        feeds = ", ".join(offer.feed_name for offer in self.offers)
        logger.info(f"[offers {reward_epoch_id}] offered {offers_total(self.offers)} for {feeds}")
        return True
