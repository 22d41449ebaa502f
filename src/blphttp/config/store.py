"""Read-only store of validated configuration values."""

from __future__ import annotations

import copy
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from blphttp.config.errors import UnknownSettingError

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping


def _freeze(node: Any) -> Any:  # noqa: ANN401
    if isinstance(node, dict):
        return MappingProxyType({k: _freeze(v) for k, v in node.items()})
    return node


class ValidatedStore:
    """Nested tree of values that passed validation.

    Built from a flat ``{dotted_key: value}`` mapping; :meth:`get`
    walks dotted paths, so both leaves (``https.enable``) and whole
    sections (``https``) are addressable.  Sections are returned as
    read-only mapping views.
    """

    def __init__(self, values: Mapping[str, Any]) -> None:
        tree: dict[str, Any] = {}
        for key, value in values.items():
            node = tree
            *sections, leaf = key.split(".")
            for segment in sections:
                node = node.setdefault(segment, {})
            node[leaf] = value
        self._flat = dict(values)
        self._tree = _freeze(tree)

    def get(self, name: str) -> Any:  # noqa: ANN401
        """Return the value or section under the dotted *name*."""
        if name in self._flat:
            return self._flat[name]
        node: Any = self._tree
        for segment in name.split("."):
            if not isinstance(node, MappingProxyType) or segment not in node:
                raise UnknownSettingError(name)
            node = node[segment]
        return node

    def has(self, name: str) -> bool:
        try:
            self.get(name)
        except UnknownSettingError:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable deep copy of the nested tree."""

        def _thaw(node: Any) -> Any:  # noqa: ANN401
            if isinstance(node, MappingProxyType):
                return {k: _thaw(v) for k, v in node.items()}
            return copy.deepcopy(node)

        return _thaw(self._tree)

    def __iter__(self) -> Iterator[str]:
        return iter(self._flat)

    def __len__(self) -> int:
        return len(self._flat)

    def __repr__(self) -> str:
        return f"<ValidatedStore keys={len(self._flat)}>"
