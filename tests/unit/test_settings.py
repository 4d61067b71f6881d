"""Tests for configuration loading and the production safety checks."""

import pytest
from pydantic import SecretStr, ValidationError

from voucherswap.conf.config import Settings, validate_required_settings


pytestmark = pytest.mark.unit


class TestSettings:
    def test_defaults(self):
        config = Settings(DATABASE_URL="")
        assert config.TIMEZONE == "Europe/Dublin"
        assert config.STORE_MAX_TX_RETRIES == 5
        assert not config.postgres_enabled

    def test_postgres_enabled_by_url(self):
        assert Settings(DATABASE_URL="postgresql://localhost/x").postgres_enabled

    def test_pool_sizes_must_be_ordered(self):
        with pytest.raises(ValidationError):
            Settings(POSTGRES_POOL_MIN_SIZE=5, POSTGRES_POOL_MAX_SIZE=2)

    @pytest.mark.parametrize("environment", ["production", "staging"])
    def test_production_fails_fast_on_missing_secrets(self, environment):
        config = Settings(ENVIRONMENT=environment, DATABASE_URL="", OPENAI_API_KEY=SecretStr(""))
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            validate_required_settings(config)

    def test_development_only_warns(self, caplog):
        config = Settings(ENVIRONMENT="development", DATABASE_URL="", TELEGRAM_BOT_TOKEN=SecretStr(""))
        validate_required_settings(config)
        assert "TELEGRAM_BOT_TOKEN" in caplog.text

    def test_complete_production_config_passes(self):
        config = Settings(
            ENVIRONMENT="production",
            DATABASE_URL="postgresql://db/x",
            TELEGRAM_BOT_TOKEN=SecretStr("1:x"),
            OPENAI_API_KEY=SecretStr("sk-test"),
        )
        validate_required_settings(config)
