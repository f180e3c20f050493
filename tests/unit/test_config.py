"""
Unit tests for server configuration.
"""

import pytest

from kvserver.config import ServerConfig, parse_address, DEFAULT_ADDR


class TestParseAddress:

    @pytest.mark.parametrize("addr,expected", [
        (":8080", ("0.0.0.0", 8080)),
        ("127.0.0.1:9000", ("127.0.0.1", 9000)),
        ("localhost:80", ("localhost", 80)),
        ("[::1]:8080", ("::1", 8080)),
    ])
    def test_valid(self, addr, expected):
        assert parse_address(addr) == expected

    @pytest.mark.parametrize("addr", ["8080", "localhost", "host:http", ":"])
    def test_invalid(self, addr):
        with pytest.raises(ValueError):
            parse_address(addr)

    def test_default(self):
        assert parse_address(DEFAULT_ADDR) == ("0.0.0.0", 8080)


class TestServerConfig:

    def test_defaults(self):
        config = ServerConfig()

        assert (config.host, config.port) == ("0.0.0.0", 8080)
        assert config.method_not_allowed is False
        assert config.log_format == "text"

    def test_address(self):
        assert ServerConfig(host="127.0.0.1", port=9000).address == "127.0.0.1:9000"
        assert ServerConfig(host="::1", port=9000).address == "[::1]:9000"

    def test_from_address(self):
        config = ServerConfig.from_address("127.0.0.1:9001", log_level="DEBUG")

        assert config.host == "127.0.0.1"
        assert config.port == 9001
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize("overrides", [
        {"port": 0},
        {"port": 70000},
        {"backlog": 0},
        {"min_workers": 0},
        {"min_workers": 4, "max_workers": 2},
        {"buffer_size": 10},
        {"timeout": 0},
        {"keep_alive_timeout": -1},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            ServerConfig(**overrides)

    def test_timeout_none_allowed(self):
        assert ServerConfig(timeout=None).timeout is None

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("KVSERVER_ADDR", "127.0.0.1:7000")
        monkeypatch.setenv("KVSERVER_WORKERS", "3")
        monkeypatch.setenv("KVSERVER_TIMEOUT", "12.5")
        monkeypatch.setenv("KVSERVER_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("KVSERVER_LOG_FORMAT", "json")

        config = ServerConfig.from_env()

        assert (config.host, config.port) == ("127.0.0.1", 7000)
        assert (config.min_workers, config.max_workers) == (3, 6)
        assert config.timeout == 12.5
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_from_env_defaults(self, monkeypatch):
        for name in ("ADDR", "WORKERS", "TIMEOUT", "LOG_LEVEL", "LOG_FORMAT"):
            monkeypatch.delenv(f"KVSERVER_{name}", raising=False)

        config = ServerConfig.from_env()

        assert (config.host, config.port) == ("0.0.0.0", 8080)
        assert config.min_workers == 4
