"""
Unit tests for configuration.
"""

import pytest

from httpminify.assets import AssetType
from httpminify.config import MinifyConfig, ServerConfig


class TestMinifyConfig:
    """Tests for MinifyConfig."""

    def test_defaults_validate(self):
        MinifyConfig().validate()

    def test_matchers_use_overrides(self):
        matchers = MinifyConfig(js_match=r"^text/x-template$", less_match=None).matchers()

        assert matchers.match("text/x-template") is AssetType.JS
        assert matchers.match("application/javascript") is AssetType.PLAIN
        assert matchers.match("text/x-less") is AssetType.PLAIN

    def test_invalid_pattern(self):
        with pytest.raises(ValueError):
            MinifyConfig(css_match="(unclosed").validate()

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            MinifyConfig(backends={"typescript": lambda s, o: s}).validate()

    def test_backend_keyed_by_asset_type(self):
        MinifyConfig(backends={AssetType.JS: lambda s, o: s}).validate()

    @pytest.mark.parametrize("kwargs", [
        {"cache": True},
        {"error_handler": "not callable"},
        {"stage_timeout": 0},
        {"stage_timeout": -1.0},
        {"stage_workers": 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            MinifyConfig(**kwargs).validate()

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HTTPMINIFY_CACHE_DIR", str(tmp_path))
        monkeypatch.setenv("HTTPMINIFY_STAGE_TIMEOUT", "2.5")

        config = MinifyConfig.from_env()

        assert config.cache == str(tmp_path)
        assert config.stage_timeout == 2.5

    def test_from_env_defaults(self, monkeypatch):
        monkeypatch.delenv("HTTPMINIFY_CACHE_DIR", raising=False)
        monkeypatch.delenv("HTTPMINIFY_STAGE_TIMEOUT", raising=False)

        config = MinifyConfig.from_env()

        assert config.cache is None
        assert config.stage_timeout is None


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults_validate(self):
        ServerConfig().validate()

    def test_port_zero_allowed(self):
        ServerConfig(port=0).validate()

    @pytest.mark.parametrize("kwargs", [
        {"port": 70000},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"buffer_size": 10},
        {"timeout": 0},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ServerConfig(**kwargs).validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HTTP_HOST", "0.0.0.0")
        monkeypatch.setenv("HTTP_PORT", "3000")
        monkeypatch.setenv("HTTP_STATIC_DIR", "/srv/www")
        monkeypatch.setenv("HTTP_LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 3000
        assert config.static_dir == "/srv/www"
        assert config.log_level == "DEBUG"
