"""
FSP Simulator Addresses

Ethereum-style 20 byte addresses with EIP-55 checksums.
"""

from eth_utils import is_address, to_checksum_address as _to_checksum_address


def is_valid_address(address: str) -> bool:
    """Check if `address` is a 20 byte hex address (checksum optional)."""
    return isinstance(address, str) and is_address(address)


def to_checksum_address(address: str) -> str:
    """Convert to EIP-55 checksum address."""
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address}")
    return _to_checksum_address(address)


def normalize_address(address: str) -> str:
    """Lower-cased form used for address comparisons and skip sets."""
    return address.lower()


def same_address(a: str, b: str) -> bool:
    """Case-insensitive address equality."""
    return normalize_address(a) == normalize_address(b)
