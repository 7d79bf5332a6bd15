"""
Variable Store

Typed key/value registry of the variables declared by a funnel.

The store is copy-on-write: set() and apply() return a new store and
leave the original untouched, so an intermediate evaluation can be
discarded without rollback logic.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from funnel_logic.model import VariableDeclaration

logger = logging.getLogger(__name__)


class VariableStore:
    """
    Immutable mapping from declared variable name to current value.

    Properties:
        declared: Declarations the store was seeded from, by name
        diagnostics: Messages about writes that were ignored

    Unknown names are simply absent: get() returns None and set()
    returns a store with unchanged values plus a diagnostic.
    """

    __slots__ = ("_declared", "_values", "_diagnostics")

    def __init__(
        self,
        declared: Mapping[str, VariableDeclaration],
        values: Mapping[str, Any],
        diagnostics: Tuple[str, ...] = (),
    ):
        self._declared = MappingProxyType(dict(declared))
        self._values = MappingProxyType(dict(values))
        self._diagnostics = diagnostics

    @classmethod
    def initialize(cls, declared: Iterable[VariableDeclaration]) -> VariableStore:
        declarations = {d.name: d for d in declared}
        return cls(declarations, {name: d.default for name, d in declarations.items()})

    @property
    def declared(self) -> Mapping[str, VariableDeclaration]:
        return self._declared

    @property
    def diagnostics(self) -> Tuple[str, ...]:
        return self._diagnostics

    def get(self, name: str) -> Optional[Any]:
        return self._values.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def values(self) -> Dict[str, Any]:
        """Plain dict copy of the current values."""
        return dict(self._values)

    def set(self, name: str, value: Any) -> VariableStore:
        if name not in self._declared:
            message = f"Ignored write to undeclared variable '{name}'"
            logger.warning(message)
            return VariableStore(self._declared, self._values, self._diagnostics + (message,))

        values = dict(self._values)
        values[name] = value
        return VariableStore(self._declared, values, self._diagnostics)

    def apply(self, writes: Mapping[str, Any]) -> VariableStore:
        """Apply several writes in mapping order."""
        store = self
        for name, value in writes.items():
            store = store.set(name, value)
        return store

    def reset(self) -> VariableStore:
        """Fresh store seeded with the declared defaults."""
        return VariableStore.initialize(self._declared.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VariableStore):
            return NotImplemented
        return dict(self._values) == dict(other._values)

    def __repr__(self) -> str:
        return f"VariableStore({dict(self._values)!r})"
