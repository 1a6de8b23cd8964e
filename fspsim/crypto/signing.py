"""
FSP Simulator Signing

Message signing in the Ethereum personal_sign style. This is how voters sign
registration hashes, signing policy hashes and protocol message hashes, and
how the relay recovers them.
"""

from .keys import PrivateKey, Signature
from .hashing import keccak256

PERSONAL_MESSAGE_PREFIX = b'\x19Ethereum Signed Message:\n'


def personal_message_hash(message: bytes) -> bytes:
    """
    Hash `message` with the personal_sign prefix.

    The message is prefixed with "\\x19Ethereum Signed Message:\\n{length}"
    before hashing.
    """
    return keccak256(PERSONAL_MESSAGE_PREFIX + str(len(message)).encode() + message)


def sign_message(private_key: PrivateKey, message: bytes) -> Signature:
    """
    Sign a message (Ethereum personal_sign style).

    Args:
        private_key: PrivateKey to sign with
        message: Raw message bytes; protocol hashes are signed as 32 raw bytes

    Returns:
        Signature
    """
    return private_key.sign_msg_hash(personal_message_hash(message))


def recover_message_signer(message: bytes, signature: Signature) -> str:
    """
    Recover the signer address of a personal_sign signature.

    Returns:
        Checksum address
    """
    return signature.recover_address(personal_message_hash(message))
