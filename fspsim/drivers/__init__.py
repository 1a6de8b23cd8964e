"""
FSP Drivers Module

The concurrent state machines of a simulation:
- LedgerWatcher: turns authority heartbeats into ledger events
- SigningPolicyDriver: signing policy handoff, once per reward epoch
- VotingRoundDriver: commit/reveal/sign/finalize, once per voting round
- FinalizationEngine: relay message assembly and submission
- RewardOfferingScheduler: reward offers, once per reward epoch
"""

from .base import Driver, SharedState
from .watcher import LedgerWatcher
from .signing_policy import SigningPolicyDriver
from .finalization import FinalizationEngine
from .voting_round import VotingRoundDriver
from .rewards import RewardOfferingScheduler

__all__ = [
    "Driver",
    "SharedState",
    "LedgerWatcher",
    "SigningPolicyDriver",
    "FinalizationEngine",
    "VotingRoundDriver",
    "RewardOfferingScheduler",
]
