"""Tests for settings parsing and startup validation."""

import pytest

from common_lib.config import Settings
from src.core.errors import ConfigurationError


class TestSecrets:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("  abc-123  ", "abc-123"),
            ('"abc-123"', "abc-123"),
            ("NVD_API_KEY=abc-123", "abc-123"),
            ("VW_NVD_API_KEY='abc-123'", "abc-123"),
            (None, ""),
        ],
    )
    def test_api_key_is_cleaned(self, raw, expected):
        settings = Settings(_env_file=None, nvd_api_key=raw)
        assert settings.nvd_api_key == expected
        assert settings.has_nvd_api_key is bool(expected)

    def test_cron_secret_is_cleaned(self):
        assert Settings(_env_file=None, cron_secret=" CRON_SECRET=xyz ").cron_secret == "xyz"


class TestEnvironment:
    def test_prefixed_environment_variables(self, monkeypatch):
        monkeypatch.setenv("VW_BATCH_SIZE", "6")
        monkeypatch.setenv("VW_ALLOW_EXTERNAL_CALLS", "false")
        settings = Settings(_env_file=None)
        assert settings.batch_size == 6
        assert settings.allow_external_calls is False

    def test_log_format_normalized(self):
        assert Settings(_env_file=None, log_format=" JSON ").log_format == "json"

    def test_unknown_log_format_rejected(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, log_format="xml")


class TestValidateRuntime:
    def test_defaults_are_valid(self, settings):
        settings.validate_runtime(catalog_size=26)

    def test_bad_redis_url(self, settings):
        broken = settings.model_copy(update={"redis_url": "http://localhost:6379"})
        with pytest.raises(ConfigurationError) as exc_info:
            broken.validate_runtime()
        assert exc_info.value.field == "redis_url"

    def test_bad_source_url(self, settings):
        broken = settings.model_copy(update={"kev_url": "ftp://example.com/kev.json"})
        with pytest.raises(ConfigurationError) as exc_info:
            broken.validate_runtime()
        assert exc_info.value.field == "kev_url"

    def test_batch_size_must_be_positive(self, settings):
        with pytest.raises(ConfigurationError):
            settings.model_copy(update={"batch_size": 0}).validate_runtime()

    def test_ttl_must_outlive_rotation(self, settings):
        # 26 assets / 4 per batch = 7 batches * 600s = 4200s
        short = settings.model_copy(update={"cache_ttl_seconds": 4200})
        with pytest.raises(ConfigurationError) as exc_info:
            short.validate_runtime(catalog_size=26)
        assert exc_info.value.field == "cache_ttl_seconds"
