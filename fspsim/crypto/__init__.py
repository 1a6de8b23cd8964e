"""
FSP Simulator Crypto Module

Thin wrappers over eth-keys / eth-hash / eth-utils:
- secp256k1 keys and recoverable signatures
- Keccak-256 hashing and function selectors
- personal_sign message signing
- Address checksumming
"""

from .keys import PrivateKey, Signature
from .hashing import keccak256, keccak256_text, function_selector
from .signing import (
    sign_message,
    personal_message_hash,
    recover_message_signer,
)
from .address import (
    is_valid_address,
    to_checksum_address,
    normalize_address,
    same_address,
)

__all__ = [
    "PrivateKey",
    "Signature",
    "keccak256",
    "keccak256_text",
    "function_selector",
    "sign_message",
    "personal_message_hash",
    "recover_message_signer",
    "is_valid_address",
    "to_checksum_address",
    "normalize_address",
    "same_address",
]
