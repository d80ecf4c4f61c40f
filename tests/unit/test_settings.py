"""Tests for settings loading and stream URL derivation."""

import pytest

from runstream.exceptions import ConfigurationError
from runstream.settings import Settings, get_settings


class TestDefaults:
    def test_reconnect_policy_defaults(self):
        settings = Settings()
        assert settings.reconnect_base_delay == 0.5
        assert settings.reconnect_factor == 1.6
        assert settings.reconnect_max_delay == 8.0

    def test_provider_and_model_unset_by_default(self):
        settings = Settings()
        assert settings.default_provider is None
        assert settings.default_model is None


class TestStreamUrl:
    """stream_url swaps http(s) for ws(s) unless ws_url is given."""

    def test_derived_from_http(self):
        settings = Settings(api_url="http://localhost:8080/")
        assert settings.stream_url == "ws://localhost:8080"

    def test_derived_from_https(self):
        settings = Settings(api_url="https://agents.example.com")
        assert settings.stream_url == "wss://agents.example.com"

    def test_explicit_ws_url_wins(self):
        settings = Settings(api_url="http://localhost:8080", ws_url="ws://stream.local:9000/")
        assert settings.stream_url == "ws://stream.local:9000"

    def test_rejects_non_http_api_url(self):
        with pytest.raises(ConfigurationError):
            Settings(api_url="ftp://localhost")

    def test_rejects_non_ws_stream_url(self):
        with pytest.raises(ConfigurationError):
            Settings(ws_url="http://localhost:8080")


class TestEnvironment:
    def test_reads_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("RUNSTREAM_API_URL", "http://orchestrator:8080")
        monkeypatch.setenv("RUNSTREAM_DEFAULT_PROVIDER", "GOOGLE")
        settings = Settings()
        assert settings.api_url == "http://orchestrator:8080"
        assert settings.default_provider == "GOOGLE"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
