"""Settings resolution from environment and overrides"""

import pytest
from erc8004_register.config import (
    BASE_MAINNET,
    BASE_SEPOLIA,
    DEFAULT_RECEIPT_TIMEOUT,
    load_settings,
    normalize_private_key,
    resolve_network,
)
from erc8004_register.exceptions import (
    ConfigurationError,
    InvalidPrivateKeyError,
    MissingContractAddressError,
)

KEY = "ab" * 32


def test_network_defaults():
    assert BASE_SEPOLIA.chain_id == 84532
    assert BASE_SEPOLIA.rpc_url == "https://sepolia.base.org"
    assert BASE_SEPOLIA.registry_locator == "eip155:84532:0x8004AA63c570c570eBF15376c0dB199918BFe9Fb"
    assert BASE_SEPOLIA.tx_url("0xabc") == "https://sepolia.basescan.org/tx/0xabc"
    assert BASE_SEPOLIA.agent_url(42) == "https://www.8004scan.io/base-sepolia/agent/42"


@pytest.mark.parametrize("value", [KEY, "0x" + KEY, "  0X" + KEY.upper() + "\n"])
def test_normalize_private_key(value):
    assert normalize_private_key(value) == "0x" + KEY


@pytest.mark.parametrize("value", [None, "", "   ", "0x1234", "zz" * 32, "ab" * 33])
def test_normalize_private_key_rejects(value):
    with pytest.raises(InvalidPrivateKeyError) as exc_info:
        normalize_private_key(value)
    if value and value.strip():
        assert value.strip() not in str(exc_info.value)


def test_resolve_network_presets():
    assert resolve_network() is BASE_SEPOLIA
    assert resolve_network("BASE") is BASE_MAINNET


def test_resolve_network_unknown():
    with pytest.raises(ConfigurationError):
        resolve_network("goerli")


def test_resolve_network_overrides():
    registry = "0x1111111111111111111111111111111111111111"
    network = resolve_network(None, rpc_url="http://localhost:8545", identity_registry=registry)
    assert network.rpc_url == "http://localhost:8545"
    assert network.identity_registry == registry
    assert network.chain_id == 84532
    assert BASE_SEPOLIA.rpc_url == "https://sepolia.base.org"


def test_resolve_network_bad_registry():
    with pytest.raises(MissingContractAddressError):
        resolve_network(None, identity_registry="0xnot-an-address")


def test_load_settings_from_env():
    env = {"PRIVATE_KEY": KEY, "NETWORK": "base", "RECEIPT_TIMEOUT": "30"}
    settings = load_settings(env=env)
    assert settings.private_key == "0x" + KEY
    assert settings.network is BASE_MAINNET
    assert settings.receipt_timeout == 30.0
    assert settings.metadata_path == "registration.json"
    assert settings.output_path is None
    assert settings.check_network is True


def test_overrides_win_over_env():
    env = {"PRIVATE_KEY": KEY, "NETWORK": "base", "RPC_URL": "http://env"}
    settings = load_settings(
        env=env, network="base-sepolia", rpc_url="http://flag", receipt_timeout=5
    )
    assert settings.network.name == "base-sepolia"
    assert settings.network.rpc_url == "http://flag"
    assert settings.receipt_timeout == 5.0


def test_none_overrides_ignored():
    settings = load_settings(env={"PRIVATE_KEY": KEY}, network=None, receipt_timeout=None)
    assert settings.network is BASE_SEPOLIA
    assert settings.receipt_timeout == DEFAULT_RECEIPT_TIMEOUT


def test_missing_key_is_configuration_error():
    with pytest.raises(InvalidPrivateKeyError) as exc_info:
        load_settings(env={})
    assert exc_info.value.exit_code == 2


def test_dry_run_needs_no_key():
    settings = load_settings(env={}, dry_run=True)
    assert settings.private_key is None
    assert settings.dry_run is True


def test_dry_run_still_validates_given_key():
    with pytest.raises(InvalidPrivateKeyError):
        load_settings(env={"PRIVATE_KEY": "oops"}, dry_run=True)


@pytest.mark.parametrize("timeout", ["0", "-5", "abc", "nan", "inf"])
def test_invalid_timeout(timeout):
    with pytest.raises(ConfigurationError):
        load_settings(env={"PRIVATE_KEY": KEY, "RECEIPT_TIMEOUT": timeout})


def test_repr_hides_key():
    settings = load_settings(env={"PRIVATE_KEY": KEY})
    assert KEY not in repr(settings)
    assert "private_key=set" in repr(settings)
