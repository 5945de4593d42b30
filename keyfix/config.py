"""
Configuration management for keyfix.

Defaults can be overridden by environment variables, and the CLI overrides
both. Values are validated once, when the config is built.
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .crypto.group import DomainError, Group, get_group


class ConfigError(Exception):
    """Raised when configuration values are invalid."""
    pass


ENV_PREFIX = "KEYFIX_"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_RESPONDER_PORT = 9000
DEFAULT_RELAY_PORT = 9001
DEFAULT_GROUP = "small"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MESSAGE = "Go Ninja, Go Ninja, GO: Go Ninja, Go Ninja, GO!"


def _parse_port(name: str, value) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if not (0 <= port <= 65535):
        raise ConfigError(f"{name} must be 0-65535, got {port}")
    return port


@dataclass(frozen=True)
class KeyfixConfig:
    """
    Runtime settings shared by the CLI subcommands.

    Fields:
        host: Address the responder and relay bind to and the initiator dials
        responder_port: Responder listening port
        relay_port: Relay listening port
        group_name: Name of the DH group the initiator proposes
        message: Plaintext the initiator sends
        log_level: Logging level name
        timeout: Socket timeout in seconds, None for blocking
    """
    host: str = DEFAULT_HOST
    responder_port: int = DEFAULT_RESPONDER_PORT
    relay_port: int = DEFAULT_RELAY_PORT
    group_name: str = DEFAULT_GROUP
    message: str = DEFAULT_MESSAGE
    log_level: str = DEFAULT_LOG_LEVEL
    timeout: Optional[float] = None

    def __post_init__(self):
        _parse_port("responder_port", self.responder_port)
        _parse_port("relay_port", self.relay_port)
        if not self.host:
            raise ConfigError("host must not be empty")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError(f"Unknown log level {self.log_level!r}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        try:
            get_group(self.group_name)
        except DomainError as e:
            raise ConfigError(str(e))

    @property
    def group(self) -> Group:
        return get_group(self.group_name)

    @property
    def message_bytes(self) -> bytes:
        return self.message.encode('utf-8')

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'KeyfixConfig':
        """
        Build a config from KEYFIX_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ

        Raises:
            ConfigError: If a value is invalid
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        if f"{ENV_PREFIX}HOST" in env:
            kwargs['host'] = env[f"{ENV_PREFIX}HOST"]
        if f"{ENV_PREFIX}RESPONDER_PORT" in env:
            kwargs['responder_port'] = _parse_port("KEYFIX_RESPONDER_PORT", env[f"{ENV_PREFIX}RESPONDER_PORT"])
        if f"{ENV_PREFIX}RELAY_PORT" in env:
            kwargs['relay_port'] = _parse_port("KEYFIX_RELAY_PORT", env[f"{ENV_PREFIX}RELAY_PORT"])
        if f"{ENV_PREFIX}GROUP" in env:
            kwargs['group_name'] = env[f"{ENV_PREFIX}GROUP"]
        if f"{ENV_PREFIX}MESSAGE" in env:
            kwargs['message'] = env[f"{ENV_PREFIX}MESSAGE"]
        if f"{ENV_PREFIX}LOG_LEVEL" in env:
            kwargs['log_level'] = env[f"{ENV_PREFIX}LOG_LEVEL"]
        if f"{ENV_PREFIX}TIMEOUT" in env:
            try:
                kwargs['timeout'] = float(env[f"{ENV_PREFIX}TIMEOUT"])
            except ValueError:
                raise ConfigError(f"KEYFIX_TIMEOUT must be a number, got {env[f'{ENV_PREFIX}TIMEOUT']!r}")

        return cls(**kwargs)

    def override(self, **changes) -> 'KeyfixConfig':
        """Return a copy with non-None values replaced."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
