"""Scoped key-value storage for minidao contracts.

Contracts persist their state through a ``KeyValueStore``. A store keeps two
scopes: ``INSTANCE`` for values tied to one deployed contract instance and
``PERSISTENT`` for per-entity records. All writes made between ``begin`` and
``commit`` are discarded by ``rollback``; transactions nest, and the
``transaction`` context manager rolls back when its block raises.

Values must be JSON-compatible (dicts, lists, strings, numbers, booleans,
``None``) so every backend stores them the same way.
"""

import copy
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, List

from ..errors.exceptions import StorageError


class StorageScope(Enum):
    """Lifetime class of a stored value."""

    INSTANCE = "instance"
    PERSISTENT = "persistent"


class KeyValueStore(ABC):
    """Abstract scoped key-value store with nested transactions."""

    @abstractmethod
    def get(self, scope: StorageScope, key: str, default: Any = None) -> Any:
        """Return the value under ``key`` or ``default`` when absent."""
        pass

    @abstractmethod
    def set(self, scope: StorageScope, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""
        pass

    @abstractmethod
    def has(self, scope: StorageScope, key: str) -> bool:
        """Check whether ``key`` is present."""
        pass

    @abstractmethod
    def remove(self, scope: StorageScope, key: str) -> None:
        """Delete ``key`` if present."""
        pass

    @abstractmethod
    def keys(self, scope: StorageScope, prefix: str = "") -> List[str]:
        """List keys in ``scope`` starting with ``prefix``."""
        pass

    @abstractmethod
    def begin(self) -> None:
        """Open a (possibly nested) transaction."""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Commit the innermost transaction."""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Discard the innermost transaction."""
        pass

    @property
    @abstractmethod
    def depth(self) -> int:
        """Number of open transactions."""
        pass

    def close(self) -> None:
        """Release backend resources."""

    @contextmanager
    def transaction(self) -> Iterator["KeyValueStore"]:
        """Run a block atomically: commit on success, roll back on error."""
        self.begin()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()


class InMemoryStore(KeyValueStore):
    """Dictionary-backed store.

    Values are deep-copied on the way in and out so callers never alias
    stored state. Each open transaction keeps a snapshot of the data it
    started from.
    """

    def __init__(self):
        self._data: Dict[StorageScope, Dict[str, Any]] = {
            scope: {} for scope in StorageScope
        }
        self._snapshots: List[Dict[StorageScope, Dict[str, Any]]] = []
        self._lock = threading.RLock()

    def get(self, scope: StorageScope, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data[scope]:
                return default
            return copy.deepcopy(self._data[scope][key])

    def set(self, scope: StorageScope, key: str, value: Any) -> None:
        with self._lock:
            self._data[scope][key] = copy.deepcopy(value)

    def has(self, scope: StorageScope, key: str) -> bool:
        with self._lock:
            return key in self._data[scope]

    def remove(self, scope: StorageScope, key: str) -> None:
        with self._lock:
            self._data[scope].pop(key, None)

    def keys(self, scope: StorageScope, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data[scope] if k.startswith(prefix))

    def begin(self) -> None:
        with self._lock:
            self._snapshots.append(copy.deepcopy(self._data))

    def commit(self) -> None:
        with self._lock:
            if not self._snapshots:
                raise StorageError("No open transaction to commit", operation="commit")
            self._snapshots.pop()

    def rollback(self) -> None:
        with self._lock:
            if not self._snapshots:
                raise StorageError("No open transaction to roll back", operation="rollback")
            self._data = self._snapshots.pop()

    @property
    def depth(self) -> int:
        return len(self._snapshots)


class ContractStorage:
    """View of a store restricted to one contract's keys."""

    SEPARATOR = "/"

    def __init__(self, store: KeyValueStore, contract_id: str):
        self.store = store
        self.contract_id = contract_id

    def _key(self, key: str) -> str:
        return f"{self.contract_id}{self.SEPARATOR}{key}"

    def get(self, scope: StorageScope, key: str, default: Any = None) -> Any:
        return self.store.get(scope, self._key(key), default)

    def set(self, scope: StorageScope, key: str, value: Any) -> None:
        self.store.set(scope, self._key(key), value)

    def has(self, scope: StorageScope, key: str) -> bool:
        return self.store.has(scope, self._key(key))

    def remove(self, scope: StorageScope, key: str) -> None:
        self.store.remove(scope, self._key(key))

    def keys(self, scope: StorageScope, prefix: str = "") -> List[str]:
        full_prefix = self._key(prefix)
        return [k[len(self._key("")):] for k in self.store.keys(scope, full_prefix)]

    def require(self, scope: StorageScope, key: str) -> Any:
        """Return a value that must exist."""
        sentinel = object()
        value = self.store.get(scope, self._key(key), sentinel)
        if value is sentinel:
            raise StorageError(
                f"Missing key {key!r} for contract {self.contract_id}",
                operation="get",
            )
        return value
