"""
Unit tests for ServerConfig.
"""

import pytest

from httphandlers import __version__
from httphandlers.config import ServerConfig


class TestServerConfig:
    """Tests for ServerConfig defaults, environment and validation."""

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.max_workers == 16
        assert config.server_name == f"httphandlers/{__version__}"
        assert config.request_timeout is None
        assert config.log_format == "text"
        config.validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HTTP_HOST", "0.0.0.0")
        monkeypatch.setenv("HTTP_PORT", "3000")
        monkeypatch.setenv("HTTP_WORKERS", "4")
        monkeypatch.setenv("HTTP_TIMEOUT", "12.5")
        monkeypatch.setenv("HTTP_REQUEST_TIMEOUT", "0.5")
        monkeypatch.setenv("HTTP_SERVER_NAME", "jobs-api/2.0")
        monkeypatch.setenv("HTTP_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("HTTP_LOG_FORMAT", "json")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 3000
        assert config.max_workers == 4
        assert config.timeout == 12.5
        assert config.request_timeout == 0.5
        assert config.server_name == "jobs-api/2.0"
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_from_env_defaults(self, monkeypatch):
        for name in ("HTTP_HOST", "HTTP_PORT", "HTTP_REQUEST_TIMEOUT", "HTTP_LOG_FORMAT"):
            monkeypatch.delenv(name, raising=False)

        config = ServerConfig.from_env()

        assert config.port == 8080
        assert config.request_timeout is None

    @pytest.mark.parametrize("overrides", [
        {"port": -1},
        {"port": 65536},
        {"max_workers": 0},
        {"buffer_size": 512},
        {"timeout": 0},
        {"request_timeout": -0.1},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()

    def test_port_zero_allowed(self):
        ServerConfig(port=0).validate()
