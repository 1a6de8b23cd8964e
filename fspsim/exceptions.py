"""
FSP Simulator Exceptions

Custom exception classes for the simulator.
"""


class FSPException(Exception):
    """Base exception for the simulator."""
    pass


class ConfigurationError(FSPException):
    """Configuration error."""
    pass


class InvalidKeyError(FSPException):
    """Invalid cryptographic key."""
    pass


class EncodingError(FSPException):
    """Payload could not be encoded or decoded."""
    pass


class RoleMisuseError(FSPException, TypeError):
    """A participant key was used outside the role it was registered for."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected a {expected} key, got a {actual} key")


class AuthorityError(FSPException):
    """The authority rejected a call or could not be reached."""
    pass


class ProtocolInvariantError(FSPException):
    """The authority responded in a way the protocol does not allow.

    Unrecoverable: the driver that observes it halts.
    """
    pass


class RandomnessQualityError(ProtocolInvariantError):
    """The authority reported randomness unfit for seeding a signing policy."""

    def __init__(self, reward_epoch_id: int):
        self.reward_epoch_id = reward_epoch_id
        super().__init__(
            f"Randomness for reward epoch {reward_epoch_id} is not secure, "
            f"signing policy protocol cannot proceed"
        )


class WaitTimeoutError(FSPException):
    """A ledger wait passed its deadline before the awaited transition happened."""

    def __init__(self, description: str, timeout: float):
        self.description = description
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:.1f}s waiting for {description}")
