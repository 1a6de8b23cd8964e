"""
FSP Simulator Keys

secp256k1 keys and recoverable signatures, wrapping eth-keys.
"""

import secrets
from typing import Tuple

from eth_keys import keys as eth_keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import decode_hex

from ..exceptions import InvalidKeyError


class PrivateKey:
    """
    secp256k1 private key.

    Wraps eth-keys PrivateKey; exposes only what the protocol needs: the
    derived checksum address and hash signing.
    """

    def __init__(self, key_bytes: bytes):
        if len(key_bytes) != 32:
            raise InvalidKeyError(f"Private key must be 32 bytes, got {len(key_bytes)}")

        try:
            self._key = eth_keys.PrivateKey(key_bytes)
        except ValidationError as e:
            raise InvalidKeyError(f"Invalid private key: {e}")
        self._address = self._key.public_key.to_checksum_address()

    @classmethod
    def from_hex(cls, hex_str: str) -> "PrivateKey":
        """
        Create from hex string.

        Args:
            hex_str: Hex-encoded private key (with or without 0x prefix)
        """
        try:
            key_bytes = decode_hex(hex_str)
        except ValueError as e:
            raise InvalidKeyError(f"Private key is not valid hex: {e}")
        return cls(key_bytes)

    @classmethod
    def generate(cls) -> "PrivateKey":
        """Generate a new random private key."""
        return cls(secrets.token_bytes(32))

    @property
    def address(self) -> str:
        """EIP-55 checksum address of the key."""
        return self._address

    def to_hex(self) -> str:
        return '0x' + self._key.to_bytes().hex()

    def sign_msg_hash(self, msg_hash: bytes) -> "Signature":
        """
        Sign a 32-byte message hash.

        Args:
            msg_hash: 32-byte hash to sign
        """
        if len(msg_hash) != 32:
            raise ValueError(f"Message hash must be 32 bytes, got {len(msg_hash)}")
        return Signature(self._key.sign_msg_hash(msg_hash))

    def __repr__(self) -> str:
        return f"PrivateKey({self._address})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PrivateKey):
            return False
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._address)


class Signature:
    """
    Recoverable ECDSA signature (v, r, s).

    `v` is stored as the recovery id (0 or 1); encodings that expect the
    Ethereum convention use `v + 27`.
    """

    def __init__(self, signature: eth_keys.Signature):
        self._signature = signature

    @classmethod
    def from_vrs(cls, v: int, r: int, s: int) -> "Signature":
        """
        Create from v, r, s components.

        Args:
            v: Recovery parameter (27 or 28, or 0/1)
        """
        if v >= 27:
            v -= 27
        try:
            return cls(eth_keys.Signature(vrs=(v, r, s)))
        except (ValidationError, BadSignature) as e:
            raise InvalidKeyError(f"Invalid signature components: {e}")

    @classmethod
    def from_bytes(cls, sig_bytes: bytes) -> "Signature":
        """
        Create from a 65-byte r || s || v signature.
        """
        if len(sig_bytes) != 65:
            raise ValueError(f"Signature must be 65 bytes, got {len(sig_bytes)}")

        r = int.from_bytes(sig_bytes[0:32], byteorder='big')
        s = int.from_bytes(sig_bytes[32:64], byteorder='big')
        return cls.from_vrs(sig_bytes[64], r, s)

    @property
    def v(self) -> int:
        """Recovery parameter (0 or 1)."""
        return self._signature.v

    @property
    def r(self) -> int:
        return self._signature.r

    @property
    def s(self) -> int:
        return self._signature.s

    @property
    def vrs(self) -> Tuple[int, int, int]:
        return (self.v, self.r, self.s)

    def to_bytes(self) -> bytes:
        """65-byte r || s || v with v in the 27/28 convention."""
        return (
            self.r.to_bytes(32, byteorder='big') +
            self.s.to_bytes(32, byteorder='big') +
            bytes([self.v + 27])
        )

    def to_hex(self) -> str:
        return '0x' + self.to_bytes().hex()

    def recover_address(self, msg_hash: bytes) -> str:
        """Checksum address of the key that produced this signature over `msg_hash`."""
        try:
            public_key = self._signature.recover_public_key_from_msg_hash(msg_hash)
        except (BadSignature, ValidationError) as e:
            raise InvalidKeyError(f"Cannot recover signer: {e}")
        return public_key.to_checksum_address()

    def __repr__(self) -> str:
        return f"Signature(v={self.v}, r={hex(self.r)[:10]}..., s={hex(self.s)[:10]}...)"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Signature):
            return False
        return self.vrs == other.vrs

    def __hash__(self) -> int:
        return hash(self.vrs)
