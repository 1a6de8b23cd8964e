"""
FSP Registered Participants

A voter acts through four separately registered keys. Each key is wrapped in
a handle type for its role, and only the signing policy handle can sign, so
using the wrong key for an action fails as a type error instead of producing
a signature the authority would reject.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Union

from eth_abi import encode as abi_encode

from ..crypto import PrivateKey, Signature, keccak256, same_address, sign_message
from ..exceptions import ConfigurationError, RoleMisuseError


class RoleKey:
    """A private key bound to one protocol role."""

    role: ClassVar[str] = "unbound"

    def __init__(self, private_key: PrivateKey):
        if not isinstance(private_key, PrivateKey):
            raise TypeError(f"{type(self).__name__} wraps a PrivateKey, got {type(private_key).__name__}")
        self._private_key = private_key

    @property
    def address(self) -> str:
        return self._private_key.address

    @classmethod
    def require(cls, key: "RoleKey") -> "RoleKey":
        """Return `key` if it holds this role, raise RoleMisuseError otherwise."""
        if not isinstance(key, cls):
            actual = key.role if isinstance(key, RoleKey) else type(key).__name__
            raise RoleMisuseError(cls.role, actual)
        return key

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address})"

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self._private_key == other._private_key

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.address))


class IdentityKey(RoleKey):
    """Entity identity; owns stake and names the other addresses."""
    role = "identity"


class SubmitKey(RoleKey):
    """Sends commit (submit1) and reveal (submit2) transactions."""
    role = "submit"


class SubmitSignaturesKey(RoleKey):
    """Sends round signature transactions and voter registrations."""
    role = "submit-signatures"


class SigningPolicyKey(RoleKey):
    """Signs registrations, signing policies and round results."""
    role = "signing-policy"

    def sign_hash(self, digest: bytes) -> Signature:
        """personal_sign over a 32 byte protocol hash."""
        if len(digest) != 32:
            raise ValueError(f"Protocol hashes are 32 bytes, got {len(digest)}")
        return sign_message(self._private_key, digest)

    def sign_registration(self, reward_epoch_id: int, identity_address: str) -> Signature:
        return self.sign_hash(registration_hash(reward_epoch_id, identity_address))


def registration_hash(reward_epoch_id: int, identity_address: str) -> bytes:
    """keccak256(abi.encode(uint24 rewardEpochId, address voter))."""
    return keccak256(abi_encode(['uint24', 'address'], [reward_epoch_id, identity_address]))


@dataclass(frozen=True)
class RegisteredParticipant:
    """One voter's role-separated key material. Immutable after startup."""
    identity: IdentityKey
    submit: SubmitKey
    submit_signatures: SubmitSignaturesKey
    signing_policy: SigningPolicyKey

    def __post_init__(self):
        IdentityKey.require(self.identity)
        SubmitKey.require(self.submit)
        SubmitSignaturesKey.require(self.submit_signatures)
        SigningPolicyKey.require(self.signing_policy)

        addresses = {key.address.lower() for key in self.keys}
        if len(addresses) != 4:
            raise ConfigurationError(
                f"Participant {self.identity.address} reuses one key for several roles"
            )

    @property
    def keys(self) -> List[RoleKey]:
        return [self.identity, self.submit, self.submit_signatures, self.signing_policy]

    @property
    def voter_address(self) -> str:
        """Address under which the participant appears in signing policies."""
        return self.signing_policy.address

    def owns_voter(self, address: str) -> bool:
        return same_address(self.signing_policy.address, address)

    @classmethod
    def generate(cls) -> "RegisteredParticipant":
        return cls(
            identity=IdentityKey(PrivateKey.generate()),
            submit=SubmitKey(PrivateKey.generate()),
            submit_signatures=SubmitSignaturesKey(PrivateKey.generate()),
            signing_policy=SigningPolicyKey(PrivateKey.generate()),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegisteredParticipant":
        """
        Create from one entry of an accounts file:

            {"identity": {"address": "0x..", "privateKey": "0x.."},
             "submit": {...}, "submitSignatures": {...}, "signingPolicy": {...}}
        """
        def load(role_key: str, handle: type) -> RoleKey:
            entry = data.get(role_key)
            if entry is None:
                raise ConfigurationError(f"Account entry is missing the '{role_key}' key")
            private_key = PrivateKey.from_hex(entry.get('privateKey') or entry.get('private_key', ''))
            declared = entry.get('address')
            if declared and not same_address(declared, private_key.address):
                raise ConfigurationError(
                    f"'{role_key}' address {declared} does not match its private key"
                )
            return handle(private_key)

        return cls(
            identity=load('identity', IdentityKey),
            submit=load('submit', SubmitKey),
            submit_signatures=load('submitSignatures', SubmitSignaturesKey),
            signing_policy=load('signingPolicy', SigningPolicyKey),
        )


def load_participants(path: Union[str, Path]) -> List[RegisteredParticipant]:
    """Read the participants of a simulation from an accounts JSON file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Accounts file not found: {path}")
    with open(path) as f:
        entries = json.load(f)
    if not isinstance(entries, list):
        raise ConfigurationError("Accounts file must contain a list of participants")
    return [RegisteredParticipant.from_dict(entry) for entry in entries]


def generate_participants(count: int) -> List[RegisteredParticipant]:
    return [RegisteredParticipant.generate() for _ in range(count)]
