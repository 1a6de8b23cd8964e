"""
FSP Ledger Watcher

Polls the authority heartbeat, decodes each raw log once and records it in
the shared event ledger. Signing policy publications are also installed in
the policy registry. This is the only writer of SharedState.
"""

import asyncio
from typing import Any, Dict, Optional

from ..authority.base import Authority
from ..constants import LEDGER_POLL_INTERVAL
from ..exceptions import EncodingError
from ..logger import get_logger
from ..protocol.epoch import EpochClock
from ..protocol.events import SigningPolicyInitialized, VotingRoundInitiated, decode_event
from ..scheduler import Clock
from .base import SharedState

logger = get_logger(__name__)


class LedgerWatcher:
    """Continuous heartbeat loop. Runs until `stop()`."""

    def __init__(
        self,
        authority: Authority,
        epochs: EpochClock,
        clock: Clock,
        state: SharedState,
        poll_interval: float = LEDGER_POLL_INTERVAL,
    ):
        self.authority = authority
        self.epochs = epochs
        self.clock = clock
        self.state = state
        self.poll_interval = poll_interval

        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self):
        if self._running:
            logger.warning("LedgerWatcher already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._watch_loop())
        logger.info(f"[watcher] started, polling every {self.poll_interval}s")

    async def stop(self):
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[watcher] stopped")

    async def _watch_loop(self):
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"[watcher] heartbeat failed: {e}")
            try:
                await self.clock.sleep(self.poll_interval)
            except asyncio.CancelledError:
                break

    async def poll_once(self) -> int:
        """Fetch one heartbeat and process its logs. Returns the number of logs."""
        heartbeat = await self.authority.heartbeat()
        for raw in heartbeat.logs:
            self.process_log(raw, heartbeat.block_timestamp)
        return len(heartbeat.logs)

    def process_log(self, raw: Dict[str, Any], block_timestamp: int):
        try:
            event = decode_event(raw)
        except EncodingError as e:
            logger.error(f"[watcher] cannot decode {raw.get('event')}: {e}")
            return
        if event is None:
            return

        if isinstance(event, VotingRoundInitiated):
            try:
                voting_round = self.epochs.voting_round_at(block_timestamp)
            except ValueError as e:
                logger.debug(f"[watcher] ignoring round initialization: {e}")
                return
            self.state.ledger.mark_round_initialized(voting_round)
            logger.debug(f"[watcher] voting round {voting_round} initialized")
            return

        try:
            reward_epoch_id = self.epochs.reward_epoch_at(block_timestamp)
        except ValueError as e:
            logger.debug(f"[watcher] ignoring {event.kind}: {e}")
            return

        if isinstance(event, SigningPolicyInitialized):
            self.state.policies.install(event.policy)

        self.state.ledger.record_event(reward_epoch_id, event.kind)
        logger.info(f"[watcher] {event.kind} in reward epoch {reward_epoch_id}")
