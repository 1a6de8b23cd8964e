"""
FSP Driver Base

State shared between the ledger watcher and the protocol drivers, and the
common shape of a self re-arming driver.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..authority.base import Authority
from ..config import SkipConfig, TimingConfig
from ..protocol.epoch import EpochClock
from ..protocol.ledger import EventLedger, SigningPolicyRegistry
from ..protocol.participants import RegisteredParticipant
from ..scheduler import Clock, Scheduler


@dataclass
class SharedState:
    """The only mutable state shared across drivers. Written by the watcher only."""
    ledger: EventLedger = field(default_factory=EventLedger)
    policies: SigningPolicyRegistry = field(default_factory=SigningPolicyRegistry)


class Driver(ABC):
    """
    A protocol driver fired by the Scheduler.

    Subclasses implement `_fire`, which is responsible for arming the next
    firing; a driver whose `_fire` raises is not re-armed.
    """

    name = "driver"

    def __init__(
        self,
        authority: Authority,
        epochs: EpochClock,
        clock: Clock,
        state: SharedState,
        participants: Sequence[RegisteredParticipant],
        scheduler: Scheduler,
        skip: Optional[SkipConfig] = None,
        timing: Optional[TimingConfig] = None,
    ):
        self.authority = authority
        self.epochs = epochs
        self.clock = clock
        self.state = state
        self.participants = list(participants)
        self.scheduler = scheduler
        self.skip = skip or SkipConfig()
        self.timing = timing or TimingConfig()

    def first_fire_at(self) -> float:
        return self.clock.now()

    def arm(self, fire_at: Optional[float] = None):
        """Schedule the next firing, by default at `first_fire_at()`."""
        if fire_at is None:
            fire_at = self.first_fire_at()
        self.scheduler.schedule_at(fire_at, self.name, self._fire)

    def wait_timeout(self, default: float) -> float:
        if self.timing.wait_timeout is not None:
            return self.timing.wait_timeout
        return default

    @abstractmethod
    async def _fire(self):
        """Do one firing's work and arm the next one."""
