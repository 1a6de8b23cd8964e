"""
FSP Simulator Hashing

Keccak-256 as used by the relay contract and by Ethereum personal signatures.
"""

from typing import Union

from eth_hash.auto import keccak as _keccak
from eth_utils import decode_hex


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum standard).

    Args:
        data: Input bytes or hex string (with or without 0x prefix)

    Returns:
        32-byte hash
    """
    if isinstance(data, str):
        data = decode_hex(data)
    return _keccak(data)


def keccak256_text(text: str) -> bytes:
    """Keccak-256 of the UTF-8 encoding of `text`."""
    return _keccak(text.encode('utf-8'))


def function_selector(signature: str) -> bytes:
    """
    First four bytes of keccak256 over a function signature.

    Args:
        signature: Canonical signature, e.g. "relay()"
    """
    return keccak256_text(signature)[:4]
