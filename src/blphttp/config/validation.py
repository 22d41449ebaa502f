"""Per-entry format validation backed by :mod:`jsonschema`."""

from __future__ import annotations

import ipaddress
from typing import TYPE_CHECKING, Any

from jsonschema import Draft202012Validator, FormatChecker, validators

from blphttp.config.errors import ConfigValidationError
from blphttp.config.store import ValidatedStore

if TYPE_CHECKING:
    from collections.abc import Mapping

    from blphttp.config.schema import SchemaRegistry


def _is_strict_integer(checker: Any, instance: Any) -> bool:  # noqa: ANN401, ARG001
    # JSON Schema counts 8080.0 as an integer; settings must be real ints.
    return isinstance(instance, int) and not isinstance(instance, bool)


_SettingValidator = validators.extend(
    Draft202012Validator,
    type_checker=Draft202012Validator.TYPE_CHECKER.redefine("integer", _is_strict_integer),
)


def _is_ip_address(value: Any) -> bool:  # noqa: ANN401
    if not isinstance(value, str):
        return True
    ipaddress.ip_address(value)
    return True


def build_format_checker(registry: SchemaRegistry) -> FormatChecker:
    """Return a checker knowing ``ipaddress`` plus every custom format."""
    checker = FormatChecker()
    checker.checks("ipaddress", raises=ValueError)(_is_ip_address)
    for entry in registry:
        fmt = entry.format
        if fmt.check is not None:
            checker.checks(fmt.name, raises=(ValueError, TypeError))(fmt.check)
    return checker


def validate(registry: SchemaRegistry, resolved: Mapping[str, Any]) -> ValidatedStore:
    """Check every resolved value against its entry's format.

    Entries are checked in declaration order and the first failure is
    raised as :class:`ConfigValidationError`.  Values are never altered.
    """
    checker = build_format_checker(registry)
    for entry in registry:
        value = resolved.get(entry.key)
        validator = _SettingValidator(
            dict(entry.format.json_schema),
            format_checker=checker,
        )
        error = next(iter(validator.iter_errors(value)), None)
        if error is not None:
            raise ConfigValidationError(entry.key, entry.format.description, value)
    return ValidatedStore({entry.key: resolved.get(entry.key) for entry in registry})
