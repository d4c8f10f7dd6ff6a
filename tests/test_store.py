from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from intervox.services.store import InMemoryStore


def test_put_get_delete():
    store: InMemoryStore[str] = InMemoryStore()
    store.put("a", "alpha")

    assert store.get("a") == "alpha"
    assert "a" in store
    assert len(store) == 1

    store.delete("a")
    assert store.get("a") is None
    store.delete("a")


def test_zero_ttl_never_expires():
    store: InMemoryStore[int] = InMemoryStore(ttl_hours=0)
    store.put("k", 1)
    later = datetime.now(timezone.utc) + timedelta(days=365)
    with patch("intervox.services.store._utc_now", return_value=later):
        assert store.get("k") == 1


def test_entries_expire_after_ttl():
    store: InMemoryStore[int] = InMemoryStore(ttl_hours=1)
    store.put("old", 1)
    store.put("fresh", 2)

    later = datetime.now(timezone.utc) + timedelta(hours=2)
    with patch("intervox.services.store._utc_now", return_value=later):
        store.put("fresh", 2)
        assert store.get("old") is None
        assert store.values() == [2]


def test_evict_expired_returns_keys():
    store: InMemoryStore[int] = InMemoryStore(ttl_hours=1)
    store.put("a", 1)
    later = datetime.now(timezone.utc) + timedelta(hours=3)
    with patch("intervox.services.store._utc_now", return_value=later):
        assert store.evict_expired() == ["a"]
    assert len(store) == 0


def test_on_evict_sees_deletes_and_expiry():
    evicted = []
    store: InMemoryStore[int] = InMemoryStore(ttl_hours=1, on_evict=evicted.append)
    store.put("deleted", 1)
    store.put("expired", 2)
    store.put("read", 3)

    store.delete("deleted")
    store.delete("never-there")
    later = datetime.now(timezone.utc) + timedelta(hours=2)
    with patch("intervox.services.store._utc_now", return_value=later):
        assert store.get("read") is None
        store.evict_expired()

    assert evicted == ["deleted", "read", "expired"]
