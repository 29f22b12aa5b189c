"""Tests for settings and logging setup."""

import pytest
import structlog

from relayboard.config import DEFAULT_RELAYS, DEFAULT_STORAGE_KEY, Settings, get_settings
from relayboard.identity import store
from relayboard.logging import setup_logging


class TestSettings:
    """Test settings defaults and environment overrides."""

    def test_defaults(self):
        settings = Settings()
        assert settings.relays == DEFAULT_RELAYS
        assert settings.publish_timeout_seconds == 5.0
        assert settings.feed_hashtag == "word5"
        assert settings.leaderboard_top_n == 50
        assert settings.streak_period_seconds == 86_400
        assert settings.streak_grace_periods == 2
        assert settings.storage_key == "spiders.nostr.player.v1"

    def test_identity_store_uses_settings_storage_key(self):
        assert store.DEFAULT_STORAGE_KEY is DEFAULT_STORAGE_KEY
        assert Settings().storage_key == DEFAULT_STORAGE_KEY

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("RELAYBOARD_QUERY_TIMEOUT_SECONDS", "1.5")
        monkeypatch.setenv("RELAYBOARD_RELAYS", '["wss://one.example", "wss://two.example"]')
        monkeypatch.setenv("RELAYBOARD_VERIFY_SIGNATURES", "false")
        settings = Settings()
        assert settings.query_timeout_seconds == 1.5
        assert settings.relays == ["wss://one.example", "wss://two.example"]
        assert settings.verify_signatures is False

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestLogging:
    """Test structlog configuration."""

    @pytest.fixture(autouse=True)
    def _reset_structlog(self):
        yield
        structlog.reset_defaults()

    def test_json_renderer(self, settings):
        setup_logging(settings.model_copy(update={"log_format": "json"}))
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer(self, settings):
        setup_logging(settings)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
