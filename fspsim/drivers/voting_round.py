"""
FSP Voting Round Driver

Drives participants through one voting round r:

    round_start(r)          wait for the authority to initialize r, then commit
    round_start(r + 1)      reveal
    + half a round          submit signatures, then finalize

Each firing re-arms at the next round boundary before working, so rounds
overlap as independent tasks.
"""

from typing import Awaitable, Callable, Optional

from ..constants import FTSO_PROTOCOL_ID
from ..exceptions import WaitTimeoutError
from ..logger import get_logger
from ..protocol.participants import RegisteredParticipant
from ..scheduler import poll_until
from .base import Driver
from .finalization import FinalizationEngine

logger = get_logger(__name__)


class VotingRoundDriver(Driver):

    name = "voting-round"

    def __init__(self, *args, finalizer: Optional[FinalizationEngine] = None,
                 protocol_id: int = FTSO_PROTOCOL_ID, **kwargs):
        super().__init__(*args, **kwargs)
        self.protocol_id = protocol_id
        self.finalizer = finalizer or FinalizationEngine(
            self.authority, self.epochs, self.state, self.participants, protocol_id
        )

    def first_fire_at(self) -> float:
        now = self.clock.now()
        if now < self.epochs.round_start(0):
            return self.epochs.round_start(0)
        return self.epochs.next_round_start(now)

    async def _fire(self):
        now = self.clock.now()
        self.arm(self.epochs.next_round_start(now))
        await self.run_round(self.epochs.voting_round_at(now))

    async def run_round(self, voting_round_id: int) -> bool:
        """Run all phases of a round. Returns False if the round was abandoned."""
        ledger = self.state.ledger
        try:
            await poll_until(
                self.clock,
                lambda: voting_round_id <= ledger.latest_initialized_round(),
                self.timing.event_poll_interval,
                self.wait_timeout(self.epochs.voting_epoch_duration_seconds),
                f"initialization of voting round {voting_round_id}",
            )
        except WaitTimeoutError as e:
            logger.error(f"[round {voting_round_id}] abandoned: {e}")
            return False

        logger.info(f"[round {voting_round_id}] started")
        await self._log_confirmed_root(voting_round_id - 2)

        if not self.skip.voting_round_actions:
            await self._for_each(voting_round_id, "submit1", lambda p: self.authority.submit1(p.submit))

        await self.clock.sleep_until(self.epochs.reveal_window_start(voting_round_id))
        if not self.skip.voting_round_actions:
            await self._for_each(voting_round_id, "submit2", lambda p: self.authority.submit2(p.submit))

        await self.clock.sleep_until(self.epochs.signature_deadline(voting_round_id))
        if not self.skip.voting_round_actions:
            await self._for_each(
                voting_round_id, "submitSignatures",
                lambda p: self.authority.submit_signatures(p.submit_signatures),
            )

        if not self.skip.finalizations:
            await self.finalizer.finalize(voting_round_id)

        logger.info(f"[round {voting_round_id}] finished")
        return True

    async def _for_each(
        self,
        voting_round_id: int,
        action: str,
        call: Callable[[RegisteredParticipant], Awaitable[None]],
    ) -> int:
        done = 0
        for participant in self.participants:
            try:
                await call(participant)
                done += 1
            except Exception as e:
                logger.error(f"[round {voting_round_id}] {action} by {participant.identity.address} failed: {e}")
        logger.debug(f"[round {voting_round_id}] {action} sent by {done}/{len(self.participants)} participants")
        return done

    async def _log_confirmed_root(self, voting_round_id: int):
        if voting_round_id < 0:
            return
        try:
            root = await self.authority.confirmed_merkle_root(self.protocol_id, voting_round_id)
            logger.info(f"[round {voting_round_id}] confirmed merkle root 0x{root.hex()}")
        except Exception as e:
            logger.warning(f"[round {voting_round_id}] cannot read confirmed merkle root: {e}")
