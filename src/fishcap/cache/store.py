"""Key-value stores backing the caching layer."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

from fishcap.errors import StorageQuotaExceededError

DEFAULT_BUDGET_BYTES = 5 * 1024 * 1024


class KeyValueStore(Protocol):
    """String key-value store with a size budget."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class InMemoryKeyValueStore:
    """
    Dict-backed store that refuses writes past ``budget_bytes``.

    Not shared across processes. Writes raise ``StorageQuotaExceededError``
    instead of evicting, so callers decide what a full store means.
    """

    def __init__(self, budget_bytes: int = DEFAULT_BUDGET_BYTES) -> None:
        self.budget_bytes = budget_bytes
        self._data: dict[str, str] = {}
        self._used_bytes = 0

    @property
    def used_bytes(self) -> int:
        return self._used_bytes

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        previous = self._data.get(key)
        freed = _entry_size(key, previous) if previous is not None else 0
        needed = _entry_size(key, value)
        if self._used_bytes - freed + needed > self.budget_bytes:
            raise StorageQuotaExceededError(
                f"Writing '{key}' needs {needed} bytes; "
                f"{self.budget_bytes - self._used_bytes + freed} of {self.budget_bytes} available."
            )
        self._data[key] = value
        self._used_bytes += needed - freed

    def delete(self, key: str) -> None:
        previous = self._data.pop(key, None)
        if previous is not None:
            self._used_bytes -= _entry_size(key, previous)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))
