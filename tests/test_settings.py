"""Tests for environment-driven configuration."""

import pytest
from pydantic import ValidationError

from config.settings import ConfigurationError, load_settings, split_origins

from conftest import KEY_HEX

BASE = {
    "rpc_url": "http://127.0.0.1:8545",
    "contract_address": "0x0000000000000000000000000000000000000001",
    "encryption_key": KEY_HEX,
}


def test_load_settings_decodes_hex_key():
    settings = load_settings(**BASE)

    assert settings.encryption_key == bytes.fromhex(KEY_HEX)
    assert settings.rpc_url == "http://127.0.0.1:8545"


@pytest.mark.parametrize("missing", ["rpc_url", "contract_address", "encryption_key"])
def test_missing_required_setting_fails_at_startup(missing):
    with pytest.raises(ConfigurationError, match=missing.upper()):
        load_settings(**{**BASE, missing: ""})


def test_malformed_key_fails_at_startup():
    with pytest.raises(ConfigurationError, match="64 hex characters"):
        load_settings(**{**BASE, "encryption_key": "abcd"})


def test_settings_are_immutable():
    settings = load_settings(**BASE)

    with pytest.raises(ValidationError):
        settings.port = 9999


def test_split_origins():
    assert split_origins("http://a.test, https://b.test ,") == ("http://a.test", "https://b.test")
    assert split_origins("") == ()
    assert split_origins(None) == ()
