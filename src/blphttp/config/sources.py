"""Layered source resolution.

Merges the four configuration layers into one flat ``{key: value}``
mapping, highest precedence first::

    command-line flag  >  environment variable  >  config file  >  default

Values coming from the environment or the command line are strings and
are coerced according to the entry's :class:`~blphttp.config.schema.Format`
before validation.  A config file that is supplied but cannot be read or
parsed aborts resolution with :class:`SourceParseError`.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from blphttp.config.errors import SourceParseError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from blphttp.config.schema import SchemaEntry, SchemaRegistry

log = logging.getLogger(__name__)

_MISSING = object()


# ---------------------------------------------------------------------------
# Config file
# ---------------------------------------------------------------------------


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML or JSON config file into a nested dict.

    JSON documents are valid YAML, so both are parsed by PyYAML.  An
    empty file is an empty configuration.
    """
    source = str(path)
    try:
        with open(source, encoding="utf-8") as f:  # noqa: PTH123
            data = yaml.safe_load(f)
    except OSError as exc:
        raise SourceParseError(source, exc.strerror or str(exc)) from exc
    except yaml.YAMLError as exc:
        raise SourceParseError(source, f"malformed document: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SourceParseError(
            source,
            f"top level must be a mapping, not {type(data).__name__}",
        )
    return data


def _lookup(tree: Mapping[str, Any], entry: SchemaEntry) -> Any:  # noqa: ANN401
    node: Any = tree
    for segment in entry.path:
        if not isinstance(node, dict) or segment not in node:
            return _MISSING
        node = node[segment]
    return node


def _warn_unknown_keys(
    tree: Mapping[str, Any],
    registry: SchemaRegistry,
    source: str,
    prefix: str = "",
) -> None:
    for name, value in tree.items():
        key = f"{prefix}{name}"
        if key in registry:
            continue
        if isinstance(value, dict):
            _warn_unknown_keys(value, registry, source, prefix=key + ".")
        else:
            log.warning("Ignoring unknown key '%s' in config file %s", key, source)


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------


def add_schema_arguments(
    parser: argparse.ArgumentParser,
    registry: SchemaRegistry,
) -> None:
    """Add one ``--<flag>`` option per entry that declares a flag.

    Defaults are suppressed so an option that was not given does not
    appear on the parsed namespace at all.
    """
    group = parser.add_argument_group("configuration settings")
    for entry in registry:
        if entry.arg is None:
            continue
        group.add_argument(
            f"--{entry.arg}",
            dest=entry.key,
            metavar=entry.format.name.upper(),
            default=argparse.SUPPRESS,
            help=f"{entry.doc} (default: {entry.default!r})",
        )


def schema_args(namespace: argparse.Namespace, registry: SchemaRegistry) -> dict[str, str]:
    """Extract the flags that were actually supplied, keyed by flag name."""
    supplied = vars(namespace)
    return {
        entry.arg: supplied[entry.key]
        for entry in registry
        if entry.arg is not None and entry.key in supplied
    }


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolve(
    registry: SchemaRegistry,
    config_file: str | Path | None,
    env: Mapping[str, str],
    args: Mapping[str, Any],
) -> dict[str, Any]:
    """Resolve every entry of *registry* to a raw, not yet validated value.

    Parameters
    ----------
    registry:
        The declared schema.
    config_file:
        Optional path to a YAML/JSON file mirroring the schema's tree.
    env:
        Environment lookup, normally :data:`os.environ`.
    args:
        Supplied command-line values keyed by flag name (see
        :func:`schema_args`).

    """
    file_data: dict[str, Any] = {}
    if config_file:
        file_data = load_config_file(config_file)
        _warn_unknown_keys(file_data, registry, str(config_file))
        log.debug("Loaded config file %s", config_file)

    resolved: dict[str, Any] = {}
    for entry in registry:
        if entry.arg is not None and entry.arg in args:
            value = args[entry.arg]
            if isinstance(value, str):
                value = entry.format.coerce(value)
            resolved[entry.key] = value
            continue

        if entry.env is not None and entry.env in env:
            resolved[entry.key] = entry.format.coerce(env[entry.env])
            continue

        from_file = _lookup(file_data, entry)
        if from_file is not _MISSING:
            resolved[entry.key] = from_file
            continue

        resolved[entry.key] = entry.default

    return resolved
