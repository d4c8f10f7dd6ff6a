from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Generic, Protocol, TypeVar

V = TypeVar("V")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Store(Protocol[V]):
    def get(self, key: str) -> V | None: ...
    def put(self, key: str, value: V) -> None: ...
    def delete(self, key: str) -> None: ...
    def values(self) -> list[V]: ...
    def evict_expired(self) -> list[str]: ...


class InMemoryStore(Generic[V]):
    """Process-local keyed store with optional idle-time eviction.

    ``ttl_hours=0`` keeps entries for the process lifetime. Expiry is measured
    from the last ``put`` and checked lazily on access. ``on_evict`` is called
    with the key of every entry that leaves the store, whether it expired or
    was deleted.
    """

    def __init__(self, ttl_hours: int = 0, on_evict: Callable[[str], None] | None = None):
        self.ttl = timedelta(hours=max(int(ttl_hours), 0))
        self.on_evict = on_evict
        self._items: dict[str, tuple[V, datetime]] = {}

    def _expired(self, written_at: datetime) -> bool:
        if not self.ttl:
            return False
        return _utc_now() > written_at + self.ttl

    def _drop(self, key: str) -> None:
        del self._items[key]
        if self.on_evict is not None:
            self.on_evict(key)

    def get(self, key: str) -> V | None:
        entry = self._items.get(key)
        if entry is None:
            return None
        value, written_at = entry
        if self._expired(written_at):
            self._drop(key)
            return None
        return value

    def put(self, key: str, value: V) -> None:
        self._items[key] = (value, _utc_now())

    def delete(self, key: str) -> None:
        if key in self._items:
            self._drop(key)

    def values(self) -> list[V]:
        self.evict_expired()
        return [value for value, _ in self._items.values()]

    def evict_expired(self) -> list[str]:
        expired = [key for key, (_, written_at) in self._items.items() if self._expired(written_at)]
        for key in expired:
            self._drop(key)
        return expired

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._items)
