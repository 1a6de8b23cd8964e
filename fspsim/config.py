"""
FSP Simulation Configuration

Loads the simulation TOML file with environment variable overrides.

    [skip]      voter_registration, signing_policy_signing, voting_round_actions, finalizations
    [timing]    ledger_poll_interval, event_poll_interval, wait_timeout, reward_offer_delay
    [authority] rpc_url, request_timeout
    [files]     accounts, epoch_settings, initial_signing_policy
    [[offers]]  one table per reward offer

Environment variable mapping:
    SKIP_VOTER_REGISTRATION_SET      → skip.voter_registration (comma-separated addresses)
    SKIP_SIGNING_POLICY_SIGNING_SET  → skip.signing_policy_signing (comma-separated addresses)
    SKIP_VOTING_EPOCH_ACTIONS        → skip.voting_round_actions (any non-empty value)
    SKIP_FINALIZATIONS               → skip.finalizations (any non-empty value)
    FSP_RPC_URL                      → authority.rpc_url
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli

from .constants import (
    DEFAULT_OFFERS,
    EVENT_POLL_INTERVAL,
    FSP_RPC_URL,
    FTSO_PROTOCOL_ID,
    LEDGER_POLL_INTERVAL,
    REWARD_OFFER_DELAY,
    VALID_ADDRESS_PATTERN,
)
from .exceptions import ConfigurationError
from .logger import get_logger
from .protocol.offers import RewardOffer, offers_from_dicts

logger = get_logger(__name__)


def parse_address_set(value: str) -> FrozenSet[str]:
    """
    Parse a comma-separated address list.

    Entries that are not plain 20 byte hex addresses are dropped; the rest
    are lower-cased.
    """
    entries = (entry.strip() for entry in value.split(','))
    return frozenset(entry.lower() for entry in entries if VALID_ADDRESS_PATTERN.match(entry))


def _address_set(values) -> FrozenSet[str]:
    if isinstance(values, str):
        return parse_address_set(values)
    return parse_address_set(','.join(values))


@dataclass
class SkipConfig:
    """[skip] section: participants and actions to leave out."""
    voter_registration: FrozenSet[str] = frozenset()
    signing_policy_signing: FrozenSet[str] = frozenset()
    voting_round_actions: bool = False
    finalizations: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SkipConfig":
        return cls(
            voter_registration=_address_set(data.get('voter_registration', ())),
            signing_policy_signing=_address_set(data.get('signing_policy_signing', ())),
            voting_round_actions=bool(data.get('voting_round_actions', False)),
            finalizations=bool(data.get('finalizations', False)),
        )

    def apply_env(self, environ: Mapping[str, str]) -> None:
        if v := environ.get('SKIP_VOTER_REGISTRATION_SET'):
            self.voter_registration = parse_address_set(v)
        if v := environ.get('SKIP_SIGNING_POLICY_SIGNING_SET'):
            self.signing_policy_signing = parse_address_set(v)
        if environ.get('SKIP_VOTING_EPOCH_ACTIONS'):
            self.voting_round_actions = True
        if environ.get('SKIP_FINALIZATIONS'):
            self.finalizations = True

    def skips_registration(self, address: str) -> bool:
        return address.lower() in self.voter_registration

    def skips_policy_signing(self, address: str) -> bool:
        return address.lower() in self.signing_policy_signing


@dataclass
class TimingConfig:
    """[timing] section."""

    # Seconds between authority heartbeats
    ledger_poll_interval: float = LEDGER_POLL_INTERVAL

    # Seconds between ledger predicate checks in driver waits
    event_poll_interval: float = EVENT_POLL_INTERVAL

    # Deadline for ledger waits; unset means one reward epoch for signing
    # policy waits and one voting round for round initialization waits
    wait_timeout: Optional[float] = None

    # Delay after a reward epoch starts before offering for the next one
    reward_offer_delay: float = REWARD_OFFER_DELAY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimingConfig":
        wait_timeout = data.get('wait_timeout')
        return cls(
            ledger_poll_interval=float(data.get('ledger_poll_interval', LEDGER_POLL_INTERVAL)),
            event_poll_interval=float(data.get('event_poll_interval', EVENT_POLL_INTERVAL)),
            wait_timeout=None if wait_timeout is None else float(wait_timeout),
            reward_offer_delay=float(data.get('reward_offer_delay', REWARD_OFFER_DELAY)),
        )


@dataclass
class AuthorityConfig:
    """[authority] section."""
    rpc_url: str = str(FSP_RPC_URL)
    request_timeout: float = 10.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthorityConfig":
        return cls(
            rpc_url=data.get('rpc_url', str(FSP_RPC_URL)),
            request_timeout=float(data.get('request_timeout', 10.0)),
        )


@dataclass
class FilesConfig:
    """[files] section. Relative paths resolve against the config file's directory."""
    accounts: str = ""
    epoch_settings: str = ""
    initial_signing_policy: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "FilesConfig":
        def resolve(value: str) -> str:
            if not value or base_dir is None or Path(value).is_absolute():
                return value
            return str(base_dir / value)

        return cls(
            accounts=resolve(data.get('accounts', "")),
            epoch_settings=resolve(data.get('epoch_settings', "")),
            initial_signing_policy=resolve(data.get('initial_signing_policy', "")),
        )


@dataclass
class SimulationConfig:
    """
    Complete simulation configuration.

    Loaded from a TOML file; environment variables override the file.
    """
    skip: SkipConfig = field(default_factory=SkipConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    authority: AuthorityConfig = field(default_factory=AuthorityConfig)
    files: FilesConfig = field(default_factory=FilesConfig)
    offers: List[RewardOffer] = field(default_factory=lambda: offers_from_dicts(DEFAULT_OFFERS))
    protocol_id: int = FTSO_PROTOCOL_ID

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "SimulationConfig":
        """Create from a parsed config dictionary."""
        offers = data.get('offers')
        try:
            return cls(
                skip=SkipConfig.from_dict(data.get('skip', {})),
                timing=TimingConfig.from_dict(data.get('timing', {})),
                authority=AuthorityConfig.from_dict(data.get('authority', {})),
                files=FilesConfig.from_dict(data.get('files', {}), base_dir),
                offers=offers_from_dicts(offers if offers is not None else DEFAULT_OFFERS),
                protocol_id=int(data.get('protocol_id', FTSO_PROTOCOL_ID)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid simulation config: {e}")

    @classmethod
    def from_file(cls, config_path: str) -> "SimulationConfig":
        """
        Load configuration from a TOML file and apply environment overrides.

        A missing file yields the defaults.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            config = cls()
            config.apply_env()
            return config

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Cannot parse {config_path}: {e}")

        config = cls.from_dict(raw, base_dir=path.parent)
        config.apply_env()
        return config

    def apply_env(self, environ: Optional[Mapping[str, str]] = None) -> None:
        """Override from environment variables."""
        environ = os.environ if environ is None else environ
        self.skip.apply_env(environ)
        if v := environ.get('FSP_RPC_URL'):
            self.authority.rpc_url = v

    def validate(self) -> bool:
        """
        Validate all sections.

        Raises:
            ConfigurationError: on invalid config
        """
        if self.timing.ledger_poll_interval <= 0:
            raise ConfigurationError("ledger_poll_interval must be positive")
        if self.timing.event_poll_interval <= 0:
            raise ConfigurationError("event_poll_interval must be positive")
        if self.timing.wait_timeout is not None and self.timing.wait_timeout <= 0:
            raise ConfigurationError("wait_timeout must be positive when set")
        if self.timing.reward_offer_delay < 0:
            raise ConfigurationError("reward_offer_delay must not be negative")
        if self.authority.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")
        if not 0 <= self.protocol_id <= 255:
            raise ConfigurationError(f"protocol_id out of range: {self.protocol_id}")
        for name in ('accounts', 'epoch_settings', 'initial_signing_policy'):
            value = getattr(self.files, name)
            if value and not Path(value).exists():
                raise ConfigurationError(f"{name} file not found: {value}")
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics)."""
        return {
            'skip': {
                'voter_registration': sorted(self.skip.voter_registration),
                'signing_policy_signing': sorted(self.skip.signing_policy_signing),
                'voting_round_actions': self.skip.voting_round_actions,
                'finalizations': self.skip.finalizations,
            },
            'timing': {
                'ledger_poll_interval': self.timing.ledger_poll_interval,
                'event_poll_interval': self.timing.event_poll_interval,
                'wait_timeout': self.timing.wait_timeout,
                'reward_offer_delay': self.timing.reward_offer_delay,
            },
            'authority': {
                'rpc_url': self.authority.rpc_url,
                'request_timeout': self.authority.request_timeout,
            },
            'files': {
                'accounts': self.files.accounts,
                'epoch_settings': self.files.epoch_settings,
                'initial_signing_policy': self.files.initial_signing_policy,
            },
            'offers': [offer.to_dict() for offer in self.offers],
            'protocol_id': self.protocol_id,
        }
