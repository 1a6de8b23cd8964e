"""
Simulation configuration tests.

Run with:
    pytest tests/test_config.py -v
"""

import pytest

from fspsim.config import SimulationConfig, SkipConfig, parse_address_set
from fspsim.constants import FTSO_PROTOCOL_ID, SIMULATOR_DEFAULTS
from fspsim.exceptions import ConfigurationError

ADDR_A = "0x" + "Ab" * 20
ADDR_B = "0x" + "cd" * 20

ENV_VARS = (
    "SKIP_VOTER_REGISTRATION_SET",
    "SKIP_SIGNING_POLICY_SIGNING_SET",
    "SKIP_VOTING_EPOCH_ACTIONS",
    "SKIP_FINALIZATIONS",
    "FSP_RPC_URL",
)

CONFIG_TOML = f"""
protocol_id = 100

[skip]
voter_registration = ["{ADDR_A}"]
finalizations = true

[timing]
ledger_poll_interval = 2.0
wait_timeout = 30

[authority]
rpc_url = "http://node:9650/ext/fsp"

[files]
accounts = "accounts.json"

[[offers]]
amount = 1000
feed_name = "ETH/USD"
min_rewarded_turnout_bips = 5000
primary_band_reward_share_ppm = 400000
secondary_band_width_ppm = 10000
"""


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ============================================================================
# Address sets
# ============================================================================


class TestAddressSets:

    def test_parse_filters_and_lowercases(self):
        parsed = parse_address_set(f" {ADDR_A}, not-an-address, {ADDR_B},,0x1234")
        assert parsed == frozenset({ADDR_A.lower(), ADDR_B.lower()})

    def test_empty(self):
        assert parse_address_set("") == frozenset()

    def test_skip_lookup_ignores_case(self):
        skip = SkipConfig(voter_registration=parse_address_set(ADDR_A))
        assert skip.skips_registration(ADDR_A.upper().replace("0X", "0x"))
        assert not skip.skips_policy_signing(ADDR_A)


# ============================================================================
# Loading
# ============================================================================


class TestSimulationConfig:

    def test_defaults(self):
        config = SimulationConfig()
        assert config.protocol_id == FTSO_PROTOCOL_ID
        assert config.timing.wait_timeout is None
        assert [offer.feed_name for offer in config.offers] == ["BTC/USD", "XRP/USD"]
        assert config.validate()

    def test_every_simulator_default_is_configurable(self, clean_env):
        assert set(SIMULATOR_DEFAULTS) == {"FSP_RPC_URL"}
        assert SimulationConfig().authority.rpc_url == SIMULATOR_DEFAULTS["FSP_RPC_URL"]

    def test_from_file(self, tmp_path, clean_env):
        path = tmp_path / "fspsim.toml"
        path.write_text(CONFIG_TOML)
        (tmp_path / "accounts.json").write_text("[]")

        config = SimulationConfig.from_file(str(path))
        assert config.skip.voter_registration == frozenset({ADDR_A.lower()})
        assert config.skip.finalizations is True
        assert config.skip.voting_round_actions is False
        assert config.timing.ledger_poll_interval == 2.0
        assert config.timing.event_poll_interval == 0.5
        assert config.timing.wait_timeout == 30.0
        assert config.authority.rpc_url == "http://node:9650/ext/fsp"
        assert config.files.accounts == str(tmp_path / "accounts.json")
        assert [offer.feed_name for offer in config.offers] == ["ETH/USD"]
        assert config.validate()

    def test_missing_file_gives_defaults(self, tmp_path, clean_env):
        config = SimulationConfig.from_file(str(tmp_path / "absent.toml"))
        assert config.skip == SkipConfig()

    def test_unparseable_file(self, tmp_path, clean_env):
        path = tmp_path / "broken.toml"
        path.write_text("[skip\n")
        with pytest.raises(ConfigurationError):
            SimulationConfig.from_file(str(path))

    def test_invalid_values(self):
        with pytest.raises(ConfigurationError):
            SimulationConfig.from_dict({"timing": {"ledger_poll_interval": "fast"}})
        with pytest.raises(ConfigurationError):
            SimulationConfig.from_dict({"offers": [{"amount": 0, "feed_name": "BTC/USD",
                                                    "min_rewarded_turnout_bips": 0,
                                                    "primary_band_reward_share_ppm": 0,
                                                    "secondary_band_width_ppm": 0}]})

    def test_to_dict(self):
        config = SimulationConfig.from_dict({"skip": {"signing_policy_signing": ADDR_B}})
        data = config.to_dict()
        assert data["skip"]["signing_policy_signing"] == [ADDR_B.lower()]
        assert data["timing"]["wait_timeout"] is None
        assert len(data["offers"]) == 2


# ============================================================================
# Environment overrides
# ============================================================================


class TestEnvironment:

    def test_overrides(self):
        config = SimulationConfig()
        config.apply_env({
            "SKIP_VOTER_REGISTRATION_SET": f"{ADDR_A},bogus",
            "SKIP_SIGNING_POLICY_SIGNING_SET": ADDR_B.upper().replace("0X", "0x"),
            "SKIP_VOTING_EPOCH_ACTIONS": "1",
            "SKIP_FINALIZATIONS": "yes",
            "FSP_RPC_URL": "http://other:1234",
        })
        assert config.skip.voter_registration == frozenset({ADDR_A.lower()})
        assert config.skip.signing_policy_signing == frozenset({ADDR_B.lower()})
        assert config.skip.voting_round_actions is True
        assert config.skip.finalizations is True
        assert config.authority.rpc_url == "http://other:1234"

    def test_empty_values_ignored(self):
        config = SimulationConfig.from_dict({"skip": {"voter_registration": [ADDR_A]}})
        config.apply_env({"SKIP_VOTER_REGISTRATION_SET": "", "SKIP_FINALIZATIONS": ""})
        assert config.skip.voter_registration == frozenset({ADDR_A.lower()})
        assert config.skip.finalizations is False

    def test_env_applied_over_file(self, tmp_path, clean_env):
        path = tmp_path / "fspsim.toml"
        path.write_text(CONFIG_TOML)
        (tmp_path / "accounts.json").write_text("[]")
        clean_env.setenv("SKIP_VOTER_REGISTRATION_SET", ADDR_B)

        config = SimulationConfig.from_file(str(path))
        assert config.skip.voter_registration == frozenset({ADDR_B.lower()})


# ============================================================================
# Validation
# ============================================================================


class TestValidate:

    @pytest.mark.parametrize("section,field,value", [
        ("timing", "ledger_poll_interval", 0),
        ("timing", "event_poll_interval", -1),
        ("timing", "wait_timeout", 0),
        ("timing", "reward_offer_delay", -0.5),
        ("authority", "request_timeout", 0),
    ])
    def test_rejects(self, section, field, value):
        config = SimulationConfig()
        setattr(getattr(config, section), field, value)
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_protocol_id_range(self):
        config = SimulationConfig(protocol_id=256)
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_missing_accounts_file(self, tmp_path):
        config = SimulationConfig()
        config.files.accounts = str(tmp_path / "missing.json")
        with pytest.raises(ConfigurationError):
            config.validate()
