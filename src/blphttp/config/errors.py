"""Configuration error hierarchy.

Every error raised while building a :class:`GatewayConfig` derives from
:class:`ConfigError`; the CLI catches that base class and refuses to
start.  :class:`ReloadReadError` is the one exception that never leaves
the process boundary: the revocation-list watcher logs it and keeps the
previous buffer.
"""

from __future__ import annotations

from typing import Any


class ConfigError(Exception):
    """Base class for every configuration failure."""


class SchemaDefinitionError(ConfigError):
    """The schema itself is malformed (duplicate key, second ``define``)."""


class SourceParseError(ConfigError):
    """A config file was supplied but could not be read or parsed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load config file '{path}': {reason}")


class ConfigValidationError(ConfigError):
    """A resolved value does not match its declared format."""

    def __init__(self, key: str, expected: str, value: Any) -> None:  # noqa: ANN401
        self.key = key
        self.expected = expected
        self.value = value
        super().__init__(
            f"Configuration validation failed: {key} must be {expected} (got {value!r})",
        )


class AuthConfigError(ConfigError):
    """An application name was configured with an unsupported auth mode."""

    def __init__(self, mode: Any) -> None:  # noqa: ANN401
        self.mode = mode
        super().__init__(f"Bad value for api.authenticationMode: {mode}")


class MaterialReadError(ConfigError):
    """TLS key, certificate, trust anchor or CRL could not be loaded."""

    def __init__(self, setting: str, path: str, reason: str) -> None:
        self.setting = setting
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {setting} material from '{path}': {reason}")


class ReloadReadError(ConfigError):
    """The watched revocation list could not be re-read after a change."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot reload revocation list '{path}': {reason}")


class UnknownSettingError(ConfigError, KeyError):
    """Neither a bundle nor a schema entry exists under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown configuration setting: {name}")

    def __str__(self) -> str:
        return str(self.args[0])
