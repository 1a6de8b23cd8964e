"""
FSP Signing Policy

The ratified, weighted, ordered voter set for a reward epoch, and its packed
byte encoding as understood by the relay contract:

    2 bytes  - number of voters
    3 bytes  - reward epoch id
    4 bytes  - start voting round id
    2 bytes  - threshold
    32 bytes - random seed
    then per voter: 20 bytes address, 2 bytes weight

The voter order is authoritative: finalization signatures carry indices into
this list.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from eth_utils import decode_hex, to_checksum_address

from ..constants import (
    MAX_UINT16,
    MAX_UINT24,
    MAX_UINT32,
    SEED_BYTES,
    VOTER_ADDRESS_BYTES,
)
from ..crypto import keccak256, normalize_address
from ..exceptions import EncodingError

HEADER_BYTES = 2 + 3 + 4 + 2 + SEED_BYTES
VOTER_ENTRY_BYTES = VOTER_ADDRESS_BYTES + 2


def _seed_bytes(seed: Any) -> bytes:
    if isinstance(seed, bytes):
        return seed
    if isinstance(seed, int):
        return seed.to_bytes(SEED_BYTES, 'big')
    if isinstance(seed, str):
        raw = decode_hex(seed)
        return raw.rjust(SEED_BYTES, b'\x00')
    raise EncodingError(f"Unsupported seed type: {type(seed).__name__}")


@dataclass(frozen=True)
class SigningPolicy:
    """
    Signing policy for one reward epoch.

    Attributes:
        reward_epoch_id: Reward epoch the policy is valid for
        start_voting_round_id: First voting round signed under this policy
        threshold: Minimum cumulative weight for a valid attestation
        seed: 32 random bytes from the random acquisition phase
        voters: Signing policy addresses, in protocol order
        weights: Normalized weights, parallel to `voters`
    """
    reward_epoch_id: int
    start_voting_round_id: int
    threshold: int
    seed: bytes
    voters: Tuple[str, ...]
    weights: Tuple[int, ...]

    def __post_init__(self):
        object.__setattr__(self, 'seed', _seed_bytes(self.seed))
        object.__setattr__(self, 'voters', tuple(to_checksum_address(v) for v in self.voters))
        object.__setattr__(self, 'weights', tuple(int(w) for w in self.weights))

        if len(self.voters) != len(self.weights):
            raise EncodingError(
                f"Signing policy has {len(self.voters)} voters but {len(self.weights)} weights"
            )
        if len(self.voters) > MAX_UINT16:
            raise EncodingError("Too many voters for a signing policy")
        if len(self.seed) != SEED_BYTES:
            raise EncodingError(f"Seed must be {SEED_BYTES} bytes, got {len(self.seed)}")
        if not 0 <= self.reward_epoch_id <= MAX_UINT24:
            raise EncodingError(f"Reward epoch id out of range: {self.reward_epoch_id}")
        if not 0 <= self.start_voting_round_id <= MAX_UINT32:
            raise EncodingError(f"Start voting round id out of range: {self.start_voting_round_id}")
        if not 0 <= self.threshold <= MAX_UINT16:
            raise EncodingError(f"Threshold out of range: {self.threshold}")
        for weight in self.weights:
            if not 0 <= weight <= MAX_UINT16:
                raise EncodingError(f"Voter weight out of range: {weight}")

    @property
    def total_weight(self) -> int:
        return sum(self.weights)

    def voter_index(self, address: str) -> Optional[int]:
        """Position of `address` in the voter list, or None."""
        needle = normalize_address(address)
        for index, voter in enumerate(self.voters):
            if normalize_address(voter) == needle:
                return index
        return None

    def weight_of(self, indices: Iterable[int]) -> int:
        return sum(self.weights[i] for i in set(indices))

    # =========================================================================
    # ENCODING
    # =========================================================================

    def encode(self) -> bytes:
        data = (
            len(self.voters).to_bytes(2, 'big') +
            self.reward_epoch_id.to_bytes(3, 'big') +
            self.start_voting_round_id.to_bytes(4, 'big') +
            self.threshold.to_bytes(2, 'big') +
            self.seed
        )
        for voter, weight in zip(self.voters, self.weights):
            data += decode_hex(voter) + weight.to_bytes(2, 'big')
        return data

    @classmethod
    def decode(cls, data: bytes) -> 'SigningPolicy':
        policy, consumed = cls.decode_prefix(data)
        if consumed != len(data):
            raise EncodingError(f"Trailing {len(data) - consumed} bytes after signing policy")
        return policy

    @classmethod
    def decode_prefix(cls, data: bytes) -> Tuple['SigningPolicy', int]:
        """Decode a policy from the start of `data`; returns it with the bytes consumed."""
        if len(data) < HEADER_BYTES:
            raise EncodingError("Signing policy encoding is shorter than its header")

        voter_count = int.from_bytes(data[0:2], 'big')
        end = HEADER_BYTES + voter_count * VOTER_ENTRY_BYTES
        if len(data) < end:
            raise EncodingError(f"Signing policy declares {voter_count} voters but is truncated")

        voters = []
        weights = []
        for offset in range(HEADER_BYTES, end, VOTER_ENTRY_BYTES):
            voters.append('0x' + data[offset:offset + VOTER_ADDRESS_BYTES].hex())
            weights.append(int.from_bytes(data[offset + VOTER_ADDRESS_BYTES:offset + VOTER_ENTRY_BYTES], 'big'))

        policy = cls(
            reward_epoch_id=int.from_bytes(data[2:5], 'big'),
            start_voting_round_id=int.from_bytes(data[5:9], 'big'),
            threshold=int.from_bytes(data[9:11], 'big'),
            seed=data[11:HEADER_BYTES],
            voters=tuple(voters),
            weights=tuple(weights),
        )
        return policy, end

    def hash(self) -> bytes:
        """
        Signing policy hash as computed by the relay contract.

        The encoding is zero-padded to whole 32 byte words; the first two
        words are hashed together and each further word is chained as
        keccak256(previous || word).
        """
        encoded = self.encode()
        if len(encoded) % 32:
            encoded += b'\x00' * (32 - len(encoded) % 32)

        digest = keccak256(encoded[:64])
        for offset in range(64, len(encoded), 32):
            digest = keccak256(digest + encoded[offset:offset + 32])
        return digest

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SigningPolicy':
        """
        Create from a dictionary with snake_case or camelCase keys, e.g. the
        arguments of a SigningPolicyInitialized event or a policy JSON file.
        """
        def pick(*keys):
            for key in keys:
                if key in data:
                    return data[key]
            raise EncodingError(f"Signing policy is missing '{keys[0]}'")

        return cls(
            reward_epoch_id=int(pick('reward_epoch_id', 'rewardEpochId')),
            start_voting_round_id=int(pick('start_voting_round_id', 'startVotingRoundId')),
            threshold=int(pick('threshold')),
            seed=pick('seed'),
            voters=tuple(pick('voters')),
            weights=tuple(int(w) for w in pick('weights')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'reward_epoch_id': self.reward_epoch_id,
            'start_voting_round_id': self.start_voting_round_id,
            'threshold': self.threshold,
            'seed': '0x' + self.seed.hex(),
            'voters': list(self.voters),
            'weights': list(self.weights),
        }
