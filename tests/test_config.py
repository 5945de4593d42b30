"""
Configuration and CLI tests for keyfix.
"""

import pytest

from keyfix.channel.cli import create_parser, main
from keyfix.config import ConfigError, KeyfixConfig
from keyfix.crypto.group import MODP_1536_GROUP, SMALL_GROUP


class TestConfig:
    """Test configuration loading and validation."""

    def test_defaults(self):
        config = KeyfixConfig.from_env({})
        assert config.host == "127.0.0.1"
        assert config.responder_port == 9000
        assert config.relay_port == 9001
        assert config.group == SMALL_GROUP
        assert config.timeout is None

    def test_environment_overrides(self):
        config = KeyfixConfig.from_env({
            "KEYFIX_HOST": "0.0.0.0",
            "KEYFIX_RESPONDER_PORT": "7000",
            "KEYFIX_RELAY_PORT": "7001",
            "KEYFIX_GROUP": "modp1536",
            "KEYFIX_MESSAGE": "hola",
            "KEYFIX_LOG_LEVEL": "debug",
            "KEYFIX_TIMEOUT": "2.5",
        })
        assert config.host == "0.0.0.0"
        assert config.responder_port == 7000
        assert config.relay_port == 7001
        assert config.group == MODP_1536_GROUP
        assert config.message_bytes == b"hola"
        assert config.timeout == 2.5

    @pytest.mark.parametrize("env", [
        {"KEYFIX_RESPONDER_PORT": "http"},
        {"KEYFIX_RELAY_PORT": "70000"},
        {"KEYFIX_GROUP": "tiny"},
        {"KEYFIX_LOG_LEVEL": "LOUD"},
        {"KEYFIX_TIMEOUT": "soon"},
        {"KEYFIX_TIMEOUT": "-1"},
        {"KEYFIX_HOST": ""},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ConfigError):
            KeyfixConfig.from_env(env)

    def test_override_ignores_none(self):
        config = KeyfixConfig().override(host=None, group_name="modp1536")
        assert config.host == "127.0.0.1"
        assert config.group == MODP_1536_GROUP

    def test_override_validates(self):
        with pytest.raises(ConfigError):
            KeyfixConfig().override(group_name="nope")


class TestCLI:
    """Test the command-line entry point."""

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_relay_arguments(self):
        args = create_parser().parse_args(
            ["--host", "10.0.0.1", "relay", "--port", "9100", "--upstream-port", "9200"]
        )
        assert args.command == "relay"
        assert args.host == "10.0.0.1"
        assert args.port == 9100
        assert args.upstream_port == 9200

    def test_demo(self, capsys, monkeypatch):
        monkeypatch.delenv("KEYFIX_GROUP", raising=False)
        assert main(["--timeout", "5", "demo", "--message", "over the wire"]) == 0

        out = capsys.readouterr().out
        assert "Initiator got back: over the wire" in out
        assert "Relay read initiator->responder: over the wire" in out
        assert "da39a3ee5e6b4b0d3255bfef95601890" in out

    def test_invalid_config(self, capsys):
        assert main(["demo", "--group", "tiny"]) == 1
        assert "Invalid configuration" in capsys.readouterr().out

    def test_initiator_without_listener(self, capsys):
        import socket
        with socket.socket() as s:
            s.bind(("127.0.0.1", 0))
            port = s.getsockname()[1]
        assert main(["--timeout", "5", "initiator", "--port", str(port)]) == 1
        assert "TransportError" in capsys.readouterr().out
