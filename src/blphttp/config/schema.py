"""Schema registry: the declared, typed set of configuration keys.

Each :class:`SchemaEntry` names one leaf of the configuration tree
together with its documentation, :class:`Format`, default and optional
environment-variable / command-line bindings.  The full set is declared
exactly once through :meth:`SchemaRegistry.define`::

    registry = SchemaRegistry().define(GATEWAY_SCHEMA)
    registry.entry("https.enable").default   # False
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from blphttp.config.errors import SchemaDefinitionError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Mapping

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


# ---------------------------------------------------------------------------
# Formats
# ---------------------------------------------------------------------------


def _coerce_int(raw: str) -> Any:  # noqa: ANN401
    try:
        return int(raw.strip())
    except ValueError:
        return raw


def _coerce_bool(raw: str) -> Any:  # noqa: ANN401
    lowered = raw.strip().lower()
    if lowered in _TRUE_STRINGS:
        return True
    if lowered in _FALSE_STRINGS:
        return False
    return raw


def _coerce_str(raw: str) -> str:
    return raw


@dataclass(frozen=True)
class Format:
    """Expected shape of a configuration value.

    ``json_schema`` is the fragment the validator checks the value
    against; ``coerce`` turns a raw string from the environment or the
    command line into the native type before validation.  ``check`` is
    only set for custom formats and is registered with the validator's
    format checker under ``name``.
    """

    name: str
    description: str
    json_schema: Mapping[str, Any]
    coerce: Callable[[str], Any] = field(default=_coerce_str, compare=False)
    check: Callable[[Any], bool] | None = field(default=None, compare=False)

    @classmethod
    def custom(
        cls,
        name: str,
        check: Callable[[Any], bool],
        description: str,
        *,
        coerce: Callable[[str], Any] = _coerce_str,
    ) -> Format:
        """Build a format validated by an arbitrary predicate."""
        return cls(
            name=name,
            description=description,
            json_schema={"format": name},
            coerce=coerce,
            check=check,
        )


IPADDRESS = Format(
    name="ipaddress",
    description="an IPv4 or IPv6 address",
    json_schema={"type": "string", "format": "ipaddress"},
)
PORT = Format(
    name="port",
    description="a port number between 1 and 65535",
    json_schema={"type": "integer", "minimum": 1, "maximum": 65535},
    coerce=_coerce_int,
)
INTEGER = Format(
    name="integer",
    description="an integer",
    json_schema={"type": "integer"},
    coerce=_coerce_int,
)
STRING = Format(
    name="string",
    description="a string",
    json_schema={"type": "string"},
)
BOOLEAN = Format(
    name="boolean",
    description="a boolean",
    json_schema={"type": "boolean"},
    coerce=_coerce_bool,
)


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SchemaEntry:
    """One declared configuration key."""

    path: tuple[str, ...]
    doc: str
    format: Format
    default: Any
    env: str | None = None
    arg: str | None = None

    @property
    def key(self) -> str:
        """Dotted key path, e.g. ``https.enable``."""
        return ".".join(self.path)


def setting(
    key: str,
    *,
    doc: str,
    format: Format,  # noqa: A002
    default: Any,  # noqa: ANN401
    env: str | None = None,
    arg: str | None = None,
) -> SchemaEntry:
    """Shorthand for declaring a :class:`SchemaEntry` from a dotted key."""
    return SchemaEntry(
        path=tuple(key.split(".")),
        doc=doc,
        format=format,
        default=default,
        env=env,
        arg=arg,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class SchemaRegistry:
    """In-memory table of every recognised configuration key."""

    def __init__(self) -> None:
        self._entries: dict[str, SchemaEntry] = {}
        self._defined = False

    def define(self, entries: Iterable[SchemaEntry]) -> SchemaRegistry:
        """Declare the complete schema in one call.

        Raises :class:`SchemaDefinitionError` on a second call, on an
        empty path segment, on two entries sharing a key path, on a key
        that is also a section of another key, and on two entries sharing
        an environment variable or command-line flag.
        """
        if self._defined:
            msg = "Schema has already been defined"
            raise SchemaDefinitionError(msg)

        table: dict[str, SchemaEntry] = {}
        envs: dict[str, str] = {}
        args: dict[str, str] = {}
        for entry in entries:
            key = entry.key
            if not entry.path or not all(entry.path):
                msg = f"Invalid key path {key!r}: empty path segment"
                raise SchemaDefinitionError(msg)
            if key in table:
                msg = f"Duplicate schema key '{key}'"
                raise SchemaDefinitionError(msg)
            if entry.env is not None:
                if entry.env in envs:
                    msg = (
                        f"Environment variable {entry.env} bound to both "
                        f"'{envs[entry.env]}' and '{key}'"
                    )
                    raise SchemaDefinitionError(msg)
                envs[entry.env] = key
            if entry.arg is not None:
                if entry.arg in args:
                    msg = f"Flag --{entry.arg} bound to both '{args[entry.arg]}' and '{key}'"
                    raise SchemaDefinitionError(msg)
                args[entry.arg] = key
            table[key] = entry

        for key, entry in table.items():
            for depth in range(1, len(entry.path)):
                section = ".".join(entry.path[:depth])
                if section in table:
                    msg = f"Schema key '{section}' is both a value and a section of '{key}'"
                    raise SchemaDefinitionError(msg)

        self._entries = table
        self._defined = True
        return self

    @property
    def entries(self) -> tuple[SchemaEntry, ...]:
        """All entries, in declaration order."""
        return tuple(self._entries.values())

    def entry(self, key: str) -> SchemaEntry:
        return self._entries[key]

    def defaults(self) -> dict[str, Any]:
        """Nested tree of every entry's default value."""
        tree: dict[str, Any] = {}
        for entry in self._entries.values():
            node = tree
            for segment in entry.path[:-1]:
                node = node.setdefault(segment, {})
            node[entry.path[-1]] = entry.default
        return tree

    def describe(self) -> Iterator[tuple[str, str, str, Any, str | None, str | None]]:
        """Yield ``(key, doc, format, default, env, arg)`` for documentation."""
        for entry in self._entries.values():
            yield entry.key, entry.doc, entry.format.name, entry.default, entry.env, entry.arg

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[SchemaEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
