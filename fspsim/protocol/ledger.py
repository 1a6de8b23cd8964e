"""
FSP Event Ledger

Shared record of what the authority has announced:
- EventLedger: events seen per reward epoch, and the latest initialized
  voting round
- SigningPolicyRegistry: installed signing policies per reward epoch

Both are written by the ledger watcher only and read by every driver.
"""

import threading
from collections import defaultdict
from typing import Dict, List, Optional

from ..logger import get_logger
from .events import EventKind
from .signing_policy import SigningPolicy

logger = get_logger(__name__)


class EventLedger:
    """
    Append-only event record keyed by reward epoch.

    Duplicate events are kept in arrival order. The latest initialized voting
    round only moves forward.
    """

    def __init__(self):
        self._events: Dict[int, List[EventKind]] = defaultdict(list)
        self._latest_initialized_round = -1
        self._lock = threading.Lock()

    def record_event(self, reward_epoch_id: int, kind: EventKind) -> None:
        kind = EventKind(kind)
        with self._lock:
            self._events[reward_epoch_id].append(kind)

    def has_event(self, reward_epoch_id: int, kind: EventKind) -> bool:
        kind = EventKind(kind)
        with self._lock:
            return kind in self._events.get(reward_epoch_id, ())

    def events_for(self, reward_epoch_id: int) -> List[EventKind]:
        """Copy of the events recorded for a reward epoch, in arrival order."""
        with self._lock:
            return list(self._events.get(reward_epoch_id, ()))

    def mark_round_initialized(self, voting_round_id: int) -> None:
        with self._lock:
            if voting_round_id > self._latest_initialized_round:
                self._latest_initialized_round = voting_round_id

    def latest_initialized_round(self) -> int:
        """Highest voting round the authority has initialized, -1 before any."""
        with self._lock:
            return self._latest_initialized_round

    def __repr__(self) -> str:
        with self._lock:
            epochs = sorted(self._events)
        return f"EventLedger(epochs={epochs}, latest_round={self.latest_initialized_round()})"


class SigningPolicyRegistry:
    """Signing policies by reward epoch. A re-published policy replaces the old one."""

    def __init__(self):
        self._policies: Dict[int, SigningPolicy] = {}
        self._lock = threading.Lock()

    def install(self, policy: SigningPolicy) -> None:
        with self._lock:
            previous = self._policies.get(policy.reward_epoch_id)
            self._policies[policy.reward_epoch_id] = policy
        if previous is not None and previous != policy:
            logger.warning(f"[policy {policy.reward_epoch_id}] replaced previously installed signing policy")

    def get(self, reward_epoch_id: int) -> Optional[SigningPolicy]:
        with self._lock:
            return self._policies.get(reward_epoch_id)

    def latest(self) -> Optional[SigningPolicy]:
        with self._lock:
            if not self._policies:
                return None
            return self._policies[max(self._policies)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._policies)

    def __contains__(self, reward_epoch_id: int) -> bool:
        with self._lock:
            return reward_epoch_id in self._policies
