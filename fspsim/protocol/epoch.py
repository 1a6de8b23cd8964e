"""
FSP Epoch Clock

Pure time arithmetic between wall-clock timestamps (unix seconds) and
(reward epoch, voting round) indices.

A voting round `r` covers `[round_start(r), round_start(r + 1))`. Reward
epoch 0 begins at voting round `first_reward_epoch_start_voting_round_id`
and every reward epoch spans `reward_epoch_duration_in_voting_epochs`
rounds.
"""

import json
import math
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Union

from ..exceptions import ConfigurationError

Timestamp = Union[int, float]


# Keys accepted by `EpochClock.from_dict`, including the camelCase names used in
# epoch-settings.json and by the system manager contract getters.
_SETTINGS_ALIASES = {
    'first_voting_round_start_ts': (
        'first_voting_round_start_ts', 'firstVotingRoundStartTs', 'firstVotingEpochStartSec',
    ),
    'voting_epoch_duration_seconds': (
        'voting_epoch_duration_seconds', 'votingEpochDurationSeconds', 'votingEpochDurationSec',
    ),
    'first_reward_epoch_start_voting_round_id': (
        'first_reward_epoch_start_voting_round_id', 'firstRewardEpochStartVotingRoundId',
        'firstRewardEpochStartVotingId',
    ),
    'reward_epoch_duration_in_voting_epochs': (
        'reward_epoch_duration_in_voting_epochs', 'rewardEpochDurationInVotingEpochs',
    ),
    'new_signing_policy_initialization_start_seconds': (
        'new_signing_policy_initialization_start_seconds',
        'newSigningPolicyInitializationStartSeconds',
    ),
    'voter_registration_min_duration_seconds': (
        'voter_registration_min_duration_seconds', 'voterRegistrationMinDurationSeconds',
    ),
}


def _lookup(data: Dict[str, Any], field_name: str):
    for key in _SETTINGS_ALIASES[field_name]:
        if key in data:
            return data[key]
    return None


@dataclass(frozen=True)
class EpochClock:
    """
    Immutable epoch timing parameters and the arithmetic derived from them.

    Attributes:
        first_voting_round_start_ts: Start of voting round 0 (unix seconds)
        voting_epoch_duration_seconds: Length of one voting round
        first_reward_epoch_start_voting_round_id: Voting round at which reward epoch 0 starts
        reward_epoch_duration_in_voting_epochs: Voting rounds per reward epoch
        new_signing_policy_initialization_start_seconds: How long before a reward
            epoch ends the next signing policy protocol starts
        voter_registration_min_duration_seconds: Minimum registration window
    """
    first_voting_round_start_ts: int
    voting_epoch_duration_seconds: int
    first_reward_epoch_start_voting_round_id: int
    reward_epoch_duration_in_voting_epochs: int
    new_signing_policy_initialization_start_seconds: int = 0
    voter_registration_min_duration_seconds: int = 0

    def __post_init__(self):
        if self.voting_epoch_duration_seconds <= 0:
            raise ConfigurationError("voting_epoch_duration_seconds must be positive")
        if self.reward_epoch_duration_in_voting_epochs <= 0:
            raise ConfigurationError("reward_epoch_duration_in_voting_epochs must be positive")
        if self.first_reward_epoch_start_voting_round_id < 0:
            raise ConfigurationError("first_reward_epoch_start_voting_round_id must not be negative")
        if self.new_signing_policy_initialization_start_seconds < 0:
            raise ConfigurationError("new_signing_policy_initialization_start_seconds must not be negative")
        if self.new_signing_policy_initialization_start_seconds > self.reward_epoch_duration_seconds:
            raise ConfigurationError(
                "new_signing_policy_initialization_start_seconds exceeds the reward epoch duration"
            )

    # =========================================================================
    # DERIVED DURATIONS
    # =========================================================================

    @property
    def reward_epoch_duration_seconds(self) -> int:
        return self.voting_epoch_duration_seconds * self.reward_epoch_duration_in_voting_epochs

    @property
    def first_reward_epoch_start_ts(self) -> int:
        return self.round_start(self.first_reward_epoch_start_voting_round_id)

    # =========================================================================
    # VOTING ROUNDS
    # =========================================================================

    def voting_round_at(self, timestamp: Timestamp) -> int:
        """Voting round containing `timestamp`."""
        if timestamp < self.first_voting_round_start_ts:
            raise ValueError(
                f"Timestamp {timestamp} precedes the first voting round "
                f"({self.first_voting_round_start_ts})"
            )
        return math.floor(
            (timestamp - self.first_voting_round_start_ts) / self.voting_epoch_duration_seconds
        )

    def round_start(self, voting_round_id: int) -> int:
        return self.first_voting_round_start_ts + voting_round_id * self.voting_epoch_duration_seconds

    def next_round_start(self, timestamp: Timestamp) -> int:
        return self.round_start(self.voting_round_at(timestamp) + 1)

    def reveal_window_start(self, voting_round_id: int) -> int:
        """Reveals for a round are accepted from the start of the following round."""
        return self.round_start(voting_round_id + 1)

    def signature_deadline(self, voting_round_id: int) -> float:
        """Half a round after the reveal window opens."""
        return self.reveal_window_start(voting_round_id) + self.voting_epoch_duration_seconds / 2

    # =========================================================================
    # REWARD EPOCHS
    # =========================================================================

    def reward_epoch_for_round(self, voting_round_id: int) -> int:
        offset = voting_round_id - self.first_reward_epoch_start_voting_round_id
        if offset < 0:
            raise ValueError(
                f"Voting round {voting_round_id} precedes the first reward epoch "
                f"(round {self.first_reward_epoch_start_voting_round_id})"
            )
        return offset // self.reward_epoch_duration_in_voting_epochs

    def reward_epoch_at(self, timestamp: Timestamp) -> int:
        """Reward epoch containing `timestamp`."""
        return self.reward_epoch_for_round(self.voting_round_at(timestamp))

    def reward_epoch_start_round(self, reward_epoch_id: int) -> int:
        return (
            self.first_reward_epoch_start_voting_round_id +
            reward_epoch_id * self.reward_epoch_duration_in_voting_epochs
        )

    def reward_epoch_start(self, reward_epoch_id: int) -> int:
        return self.round_start(self.reward_epoch_start_round(reward_epoch_id))

    def next_reward_epoch_start(self, timestamp: Timestamp) -> int:
        return self.reward_epoch_start(self.reward_epoch_at(timestamp) + 1)

    def signing_policy_protocol_start(self, reward_epoch_id: int) -> int:
        """When the protocol defining the policy for `reward_epoch_id + 1` begins."""
        return (
            self.reward_epoch_start(reward_epoch_id + 1) -
            self.new_signing_policy_initialization_start_seconds
        )

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EpochClock':
        """
        Create from a settings dictionary.

        Accepts snake_case field names as well as the camelCase keys written to
        epoch-settings.json. When only the reward epoch start timestamp and
        durations in seconds are given, the round offsets are derived from them.
        """
        values = {name: _lookup(data, name) for name in _SETTINGS_ALIASES}

        if values['voting_epoch_duration_seconds'] is None or values['first_voting_round_start_ts'] is None:
            raise ConfigurationError("Epoch settings require the first voting round start and round duration")

        round_duration = int(values['voting_epoch_duration_seconds'])
        if round_duration <= 0:
            raise ConfigurationError("voting_epoch_duration_seconds must be positive")
        first_round_start = int(values['first_voting_round_start_ts'])

        if values['first_reward_epoch_start_voting_round_id'] is None:
            reward_epoch_start = data.get('rewardEpochStartSec')
            if reward_epoch_start is None:
                raise ConfigurationError("Epoch settings do not locate the first reward epoch")
            values['first_reward_epoch_start_voting_round_id'] = (
                (int(reward_epoch_start) - first_round_start) // round_duration
            )

        if values['reward_epoch_duration_in_voting_epochs'] is None:
            reward_epoch_duration = data.get('rewardEpochDurationSec')
            if reward_epoch_duration is None:
                raise ConfigurationError("Epoch settings do not give the reward epoch duration")
            values['reward_epoch_duration_in_voting_epochs'] = int(reward_epoch_duration) // round_duration

        return cls(
            first_voting_round_start_ts=first_round_start,
            voting_epoch_duration_seconds=round_duration,
            first_reward_epoch_start_voting_round_id=int(values['first_reward_epoch_start_voting_round_id']),
            reward_epoch_duration_in_voting_epochs=int(values['reward_epoch_duration_in_voting_epochs']),
            new_signing_policy_initialization_start_seconds=int(
                values['new_signing_policy_initialization_start_seconds'] or 0
            ),
            voter_registration_min_duration_seconds=int(
                values['voter_registration_min_duration_seconds'] or 0
            ),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'EpochClock':
        """Load from an epoch-settings.json file."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Epoch settings file not found: {path}")
        with open(path) as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['reward_epoch_duration_seconds'] = self.reward_epoch_duration_seconds
        data['first_reward_epoch_start_ts'] = self.first_reward_epoch_start_ts
        return data
