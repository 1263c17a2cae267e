"""Unit tests for environment configuration.

Run with: uv run pytest tests/test_config.py -v
"""

import json

import pytest

from meetingbaas_mcp import config


class TestApiBaseUrl:
    """Test environment and URL selection."""

    def test_default_is_production(self, monkeypatch):
        monkeypatch.delenv("MEETING_BAAS_ENV", raising=False)
        monkeypatch.delenv("MEETING_BAAS_API_URL", raising=False)
        assert config.get_api_base_url() == "https://api.meetingbaas.com"

    @pytest.mark.parametrize("env", ["prod", "preprod", "gmeetbot", "PREPROD"])
    def test_known_environments(self, monkeypatch, env: str):
        monkeypatch.delenv("MEETING_BAAS_API_URL", raising=False)
        monkeypatch.setenv("MEETING_BAAS_ENV", env)
        assert config.get_api_base_url() == config.API_BASE_URLS[env.lower()]

    def test_unknown_environment(self, monkeypatch):
        monkeypatch.setenv("MEETING_BAAS_ENV", "staging")
        with pytest.raises(ValueError, match="staging"):
            config.get_environment()

    def test_explicit_url_override(self, monkeypatch):
        monkeypatch.setenv("MEETING_BAAS_ENV", "staging")
        monkeypatch.setenv("MEETING_BAAS_API_URL", "http://localhost:3001/")
        assert config.get_api_base_url() == "http://localhost:3001"


class TestConfigFile:
    """Test the local JSON config file."""

    def test_missing_file(self, tmp_path):
        assert config.load_config_api_key(tmp_path / "absent.json") is None

    @pytest.mark.parametrize("field", ["api_key", "apiKey"])
    def test_key_field(self, tmp_path, field: str):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({field: "secret"}))
        assert config.load_config_api_key(path) == "secret"

    def test_non_object(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[]")
        with pytest.raises(ValueError):
            config.load_config_api_key(path)

    def test_path_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MEETING_BAAS_CONFIG", str(tmp_path / "c.json"))
        assert config.get_config_path() == tmp_path / "c.json"


class TestServerSettings:
    """Test transport and tuning getters."""

    def test_defaults(self, monkeypatch):
        for name in ("MEETING_BAAS_TRANSPORT", "MEETING_BAAS_HOST", "MEETING_BAAS_PORT", "MEETING_BAAS_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)
        assert config.get_transport() == "stdio"
        assert config.get_host() == "127.0.0.1"
        assert config.get_port() == 7017
        assert config.get_timeout() == 30.0

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("MEETING_BAAS_PORT", "9000")
        monkeypatch.setenv("MEETING_BAAS_TIMEOUT", "5")
        monkeypatch.setenv("MEETING_BAAS_VIEWER_URL", "https://viewer.test/")
        assert config.get_port() == 9000
        assert config.get_timeout() == 5.0
        assert config.get_viewer_url() == "https://viewer.test"

    @pytest.mark.parametrize("granularity,topics,divisor", [
        ("low", 3, 5),
        ("medium", 5, 10),
        ("high", 10, 20),
        ("bogus", 5, 10),
    ])
    def test_granularity_maps(self, granularity: str, topics: int, divisor: int):
        assert config.get_topic_count(granularity) == topics
        assert config.get_window_divisor(granularity) == divisor
