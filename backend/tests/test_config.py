"""
Tests for settings loading and production validation.
"""
import pytest
from algosdk import account, mnemonic

from config import Settings


def _production(**overrides) -> Settings:
    private_key, address = account.generate_account()
    values = dict(
        _env_file=None,
        environment="production",
        cors_origins="https://app.example.com",
        payment_api_key="server-key",
        operator_api_key="op-key",
        app_wallet=address,
        app_wallet_mnemonic=mnemonic.from_private_key(private_key),
        chain_api_url="https://chain.example.com",
        payment_api_url="https://payments.example.com",
    )
    values.update(overrides)
    return Settings(**values)


class TestSettings:

    @pytest.mark.unit
    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.retry_limit == 3
        assert s.validity_window_seconds == 180
        assert s.environment == "development"

    @pytest.mark.unit
    def test_default_endpoints_are_local(self):
        s = Settings(_env_file=None)
        assert s.chain_api_url.startswith("http://localhost")
        assert s.payment_api_url.startswith("http://localhost")
        assert s.network_passphrase == "A2U Local Network"

    @pytest.mark.unit
    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("RETRY_LIMIT", "7")
        monkeypatch.setenv("NETWORK_PASSPHRASE", "Staging Network")
        s = Settings(_env_file=None)
        assert s.retry_limit == 7
        assert s.network_passphrase == "Staging Network"

    @pytest.mark.unit
    def test_cors_origins_list(self):
        s = Settings(_env_file=None, cors_origins="http://a.test, http://b.test")
        assert s.cors_origins_list == ["http://a.test", "http://b.test"]

    @pytest.mark.unit
    def test_private_key_from_mnemonic(self):
        private_key, address = account.generate_account()
        s = Settings(_env_file=None, app_wallet=address, app_wallet_mnemonic=mnemonic.from_private_key(private_key))
        assert s.app_private_key == private_key
        assert account.address_from_private_key(s.app_private_key) == address

    @pytest.mark.unit
    def test_private_key_requires_mnemonic(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None).app_private_key


class TestProductionValidation:

    @pytest.mark.unit
    def test_valid_production_settings(self):
        _production().validate_production_settings()

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "overrides",
        [
            {"cors_origins": "*"},
            {"payment_api_key": ""},
            {"operator_api_key": ""},
            {"app_wallet_mnemonic": ""},
            {"chain_api_url": "http://chain.example.com"},
        ],
    )
    def test_rejects_unsafe_settings(self, overrides):
        with pytest.raises(ValueError):
            _production(**overrides).validate_production_settings()

    @pytest.mark.unit
    def test_development_only_warns(self):
        Settings(_env_file=None, environment="development").validate_production_settings()
