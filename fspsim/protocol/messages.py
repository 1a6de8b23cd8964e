"""
FSP Protocol Messages

Round attestations and the relay payload that finalizes them.

ProtocolMessageMerkleRoot encoding (38 bytes):
    1 byte   - protocol id
    4 bytes  - voting round id
    1 byte   - is secure random
    32 bytes - merkle root

RelayMessage encoding:
    signing policy encoding
    protocol message encoding
    2 bytes  - number of signatures
    per signature: 1 byte v, 32 bytes r, 32 bytes s, 2 bytes voter index
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from ..constants import MAX_UINT32, MERKLE_ROOT_BYTES, RELAY_FUNCTION_SIGNATURE
from ..crypto import Signature, function_selector, keccak256, keccak256_text
from ..exceptions import EncodingError
from .signing_policy import SigningPolicy

MESSAGE_BYTES = 1 + 4 + 1 + MERKLE_ROOT_BYTES
SIGNATURE_WITH_INDEX_BYTES = 1 + 32 + 32 + 2


@dataclass(frozen=True)
class ProtocolMessageMerkleRoot:
    """
    The content a voting round attests to.

    Attributes:
        protocol_id: Protocol the result belongs to (FTSO is 100)
        voting_round_id: Round the result is bound to
        is_secure_random: Randomness quality flag for the round
        merkle_root: 32 byte result digest
    """
    protocol_id: int
    voting_round_id: int
    is_secure_random: bool
    merkle_root: bytes

    def __post_init__(self):
        if len(self.merkle_root) != MERKLE_ROOT_BYTES:
            raise EncodingError(f"Merkle root must be {MERKLE_ROOT_BYTES} bytes, got {len(self.merkle_root)}")
        if not 0 <= self.protocol_id <= 255:
            raise EncodingError(f"Protocol id out of range: {self.protocol_id}")
        if not 0 <= self.voting_round_id <= MAX_UINT32:
            raise EncodingError(f"Voting round id out of range: {self.voting_round_id}")

    def encode(self) -> bytes:
        return (
            self.protocol_id.to_bytes(1, 'big') +
            self.voting_round_id.to_bytes(4, 'big') +
            (b'\x01' if self.is_secure_random else b'\x00') +
            self.merkle_root
        )

    @classmethod
    def decode(cls, data: bytes) -> 'ProtocolMessageMerkleRoot':
        if len(data) != MESSAGE_BYTES:
            raise EncodingError(f"Protocol message must be {MESSAGE_BYTES} bytes, got {len(data)}")
        return cls(
            protocol_id=data[0],
            voting_round_id=int.from_bytes(data[1:5], 'big'),
            is_secure_random=data[5] != 0,
            merkle_root=data[6:],
        )

    def hash(self) -> bytes:
        return keccak256(self.encode())


def placeholder_merkle_root(voting_round_id: int) -> bytes:
    """Stand-in round result; the simulation does not compute real feed values."""
    return keccak256_text(f"root1{voting_round_id}")


@dataclass(frozen=True)
class SignatureWithIndex:
    """A voter signature tagged with the voter's position in the signing policy."""
    index: int
    signature: Signature

    def encode(self) -> bytes:
        sig = self.signature
        return (
            bytes([sig.v + 27]) +
            sig.r.to_bytes(32, 'big') +
            sig.s.to_bytes(32, 'big') +
            self.index.to_bytes(2, 'big')
        )

    @classmethod
    def decode(cls, data: bytes) -> 'SignatureWithIndex':
        if len(data) != SIGNATURE_WITH_INDEX_BYTES:
            raise EncodingError(f"Indexed signature must be {SIGNATURE_WITH_INDEX_BYTES} bytes")
        signature = Signature.from_vrs(
            data[0],
            int.from_bytes(data[1:33], 'big'),
            int.from_bytes(data[33:65], 'big'),
        )
        return cls(index=int.from_bytes(data[65:67], 'big'), signature=signature)


@dataclass(frozen=True)
class RelayMessage:
    """
    A submittable finalization: the active signing policy, the attested
    message and the voter signatures in policy order.
    """
    signing_policy: SigningPolicy
    message: ProtocolMessageMerkleRoot
    signatures: Tuple[SignatureWithIndex, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, 'signatures', tuple(self.signatures))
        voter_count = len(self.signing_policy.voters)
        if len(self.signatures) > voter_count:
            raise EncodingError("More signatures than voters in the signing policy")
        previous = -1
        for item in self.signatures:
            if not 0 <= item.index < voter_count:
                raise EncodingError(f"Signature index {item.index} outside the voter list")
            if item.index <= previous:
                raise EncodingError("Signatures must follow signing policy voter order")
            previous = item.index

    @property
    def signer_indices(self) -> List[int]:
        return [item.index for item in self.signatures]

    def encode(self) -> bytes:
        data = self.signing_policy.encode() + self.message.encode()
        data += len(self.signatures).to_bytes(2, 'big')
        for item in self.signatures:
            data += item.encode()
        return data

    @classmethod
    def decode(cls, data: bytes) -> 'RelayMessage':
        policy, offset = SigningPolicy.decode_prefix(data)

        if len(data) < offset + MESSAGE_BYTES + 2:
            raise EncodingError("Relay message is truncated after the signing policy")
        message = ProtocolMessageMerkleRoot.decode(data[offset:offset + MESSAGE_BYTES])
        offset += MESSAGE_BYTES

        count = int.from_bytes(data[offset:offset + 2], 'big')
        offset += 2
        if len(data) != offset + count * SIGNATURE_WITH_INDEX_BYTES:
            raise EncodingError(f"Relay message declares {count} signatures but has a different length")

        signatures = [
            SignatureWithIndex.decode(data[pos:pos + SIGNATURE_WITH_INDEX_BYTES])
            for pos in range(offset, len(data), SIGNATURE_WITH_INDEX_BYTES)
        ]
        return cls(signing_policy=policy, message=message, signatures=tuple(signatures))


def relay_call_data(message: RelayMessage) -> bytes:
    """Transaction data for the relay entry point: selector followed by the message."""
    return function_selector(RELAY_FUNCTION_SIGNATURE) + message.encode()


def strip_relay_selector(data: bytes) -> bytes:
    """Inverse of `relay_call_data`'s prefixing; rejects data for other functions."""
    if data[:4] != function_selector(RELAY_FUNCTION_SIGNATURE):
        raise EncodingError("Call data does not target the relay entry point")
    return data[4:]
