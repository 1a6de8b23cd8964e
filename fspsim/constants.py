"""
FSP Simulator Constants

This module consolidates the global constants and environment configuration
used throughout the simulator. Protocol constants mirror the on-chain
contracts the simulation drives; changing them produces payloads the relay
will reject.
"""
import ast
import re
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

SIMULATOR_DEFAULTS = {
    'FSP_RPC_URL':                     'http://127.0.0.1:9650/ext/fsp',
}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'True',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# PROTOCOL CONSTANTS
# ==================================================================================
FTSO_PROTOCOL_ID = 100

# Function signatures whose selectors prefix submission transactions
SUBMIT1_FUNCTION_SIGNATURE = 'submit1()'
SUBMIT2_FUNCTION_SIGNATURE = 'submit2()'
SUBMIT_SIGNATURES_FUNCTION_SIGNATURE = 'submitSignatures()'
RELAY_FUNCTION_SIGNATURE = 'relay()'

# Widths of the packed relay encodings (bytes)
VOTER_ADDRESS_BYTES = 20
MERKLE_ROOT_BYTES = 32
SEED_BYTES = 32
MAX_UINT16 = 2 ** 16 - 1
MAX_UINT24 = 2 ** 24 - 1
MAX_UINT32 = 2 ** 32 - 1

# Feed ids are 1 category byte followed by a 20 byte ASCII name
FEED_ID_NAME_BYTES = 20

PPM_MAX = 1_000_000


# ==================================================================================
# SCHEDULING DEFAULTS
# ==================================================================================
LEDGER_POLL_INTERVAL = 0.5  # seconds between authority heartbeats
EVENT_POLL_INTERVAL = 0.5   # seconds between ledger predicate checks
REWARD_OFFER_DELAY = 1.0    # seconds after reward epoch start before offering
TIMER_SLACK = 0.001         # fire just past a boundary, never on it


# ==================================================================================
# SIMULATION DEFAULTS
# ==================================================================================
VOTING_EPOCH_DURATION_SEC = 20
REWARD_EPOCH_DURATION_IN_VOTING_EPOCHS = 5
FIRST_REWARD_EPOCH_START_VOTING_ROUND_ID = 1000
NEW_SIGNING_POLICY_INITIALIZATION_START_SECONDS = 45
VOTER_REGISTRATION_MIN_DURATION_SECONDS = 10
SIGNING_POLICY_THRESHOLD_PPM = 500_000
SIGNING_POLICY_MIN_NUMBER_OF_VOTERS = 2

DEFAULT_OFFERS = [
    {
        'amount': 25_000_000,
        'feed_category': 1,
        'feed_name': 'BTC/USD',
        'min_rewarded_turnout_bips': 5000,
        'primary_band_reward_share_ppm': 450_000,
        'secondary_band_width_ppm': 50_000,
        'claim_back_address': '0x0000000000000000000000000000000000000000',
    },
    {
        'amount': 50_000_000,
        'feed_category': 1,
        'feed_name': 'XRP/USD',
        'min_rewarded_turnout_bips': 5000,
        'primary_band_reward_share_ppm': 650_000,
        'secondary_band_width_ppm': 20_000,
        'claim_back_address': '0x0000000000000000000000000000000000000000',
    },
]


# ==================================================================================
# VALIDATION PATTERNS
# ==================================================================================
# Skip-set entries must be plain 20 byte hex addresses
VALID_ADDRESS_PATTERN = re.compile(r'^0x[0-9a-fA-F]{40}$')


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = SIMULATOR_DEFAULTS | LOGGER_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
