"""
FSP Simulation

Wires one authority, one clock and a participant set into a running
simulation: the ledger watcher plus the three self re-arming drivers on a
shared scheduler.
"""

import asyncio
from typing import List, Optional, Sequence

from .authority.base import Authority
from .config import SimulationConfig
from .constants import (
    RELAY_FUNCTION_SIGNATURE,
    SUBMIT1_FUNCTION_SIGNATURE,
    SUBMIT2_FUNCTION_SIGNATURE,
    SUBMIT_SIGNATURES_FUNCTION_SIGNATURE,
)
from .crypto import function_selector
from .drivers import (
    FinalizationEngine,
    LedgerWatcher,
    RewardOfferingScheduler,
    SharedState,
    SigningPolicyDriver,
    VotingRoundDriver,
)
from .logger import get_logger
from .protocol.epoch import EpochClock
from .protocol.participants import RegisteredParticipant
from .protocol.signing_policy import SigningPolicy
from .scheduler import Clock, Scheduler, SystemClock

logger = get_logger(__name__)


class Simulation:
    """
    A running protocol simulation.

    Args:
        authority: Protocol authority
        epochs: Epoch timing
        participants: Local voters, in the order they sign policies
        config: Simulation configuration
        clock: Time source, the wall clock by default
        initial_policy: Signing policy of the reward epoch the run starts in
    """

    def __init__(
        self,
        authority: Authority,
        epochs: EpochClock,
        participants: Sequence[RegisteredParticipant],
        config: Optional[SimulationConfig] = None,
        clock: Optional[Clock] = None,
        initial_policy: Optional[SigningPolicy] = None,
    ):
        self.authority = authority
        self.epochs = epochs
        self.participants: List[RegisteredParticipant] = list(participants)
        self.config = config or SimulationConfig()
        self.clock = clock or SystemClock()
        self.state = SharedState()
        self.scheduler = Scheduler(self.clock)

        if initial_policy is not None:
            self.state.policies.install(initial_policy)

        common = dict(
            authority=self.authority,
            epochs=self.epochs,
            clock=self.clock,
            state=self.state,
            participants=self.participants,
            scheduler=self.scheduler,
            skip=self.config.skip,
            timing=self.config.timing,
        )
        self.watcher = LedgerWatcher(
            self.authority, self.epochs, self.clock, self.state,
            poll_interval=self.config.timing.ledger_poll_interval,
        )
        self.finalizer = FinalizationEngine(
            self.authority, self.epochs, self.state, self.participants,
            protocol_id=self.config.protocol_id,
        )
        self.signing_policy_driver = SigningPolicyDriver(**common)
        self.voting_round_driver = VotingRoundDriver(
            **common, finalizer=self.finalizer, protocol_id=self.config.protocol_id,
        )
        self.reward_scheduler = RewardOfferingScheduler(**common, offers=self.config.offers)

        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def failures(self):
        """(driver name, exception) for every driver that halted."""
        return list(self.scheduler.failures)

    async def start(self):
        if self._running:
            logger.warning("Simulation already running")
            return

        logger.info("Starting simulation...")
        for signature in (
            SUBMIT1_FUNCTION_SIGNATURE,
            SUBMIT2_FUNCTION_SIGNATURE,
            SUBMIT_SIGNATURES_FUNCTION_SIGNATURE,
            RELAY_FUNCTION_SIGNATURE,
        ):
            logger.info(f"Function selector {signature}: 0x{function_selector(signature).hex()}")

        now = self.clock.now()
        try:
            logger.info(
                f"Now at voting round {self.epochs.voting_round_at(now)}, "
                f"reward epoch {self.epochs.reward_epoch_at(now)}, "
                f"{len(self.participants)} participants"
            )
        except ValueError as e:
            logger.warning(f"Starting before the first reward epoch: {e}")

        self._running = True
        await self.watcher.start()
        await self.scheduler.start()
        self.signing_policy_driver.arm()
        self.voting_round_driver.arm()
        self.reward_scheduler.arm()
        logger.info("Simulation started")

    async def stop(self):
        logger.info("Stopping simulation...")
        self._running = False
        await self.scheduler.stop()
        await self.watcher.stop()
        await self.authority.close()
        logger.info("Simulation stopped")

    async def run(self, duration: Optional[float] = None):
        """Run until `duration` seconds of clock time passed, or until cancelled."""
        await self.start()
        try:
            if duration is None:
                await asyncio.Event().wait()
            else:
                await self.clock.sleep(duration)
        finally:
            await self.stop()
