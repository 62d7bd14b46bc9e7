"""
EXPIRING COUNTER STORE
======================
Fixed-window counters keyed by namespace and hashed key.
"""

# FLOW:
# - increment_or_create() opens a fresh window or bumps the live one.
# - sweep() drops windows that ended more than max_age_ms ago.
# WHY:
# - Backs every rate-limit bucket with O(1) memory per caller.
# HOW:
# - Each (namespace, key) holds a CounterEntry inside a ShardedKeyedStore;
#   the expiry check and the increment happen under one shard lock.

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Hashable, Optional

from Guard.keyed_store import ShardedKeyedStore


@dataclass
class CounterEntry:
    count: int
    reset_at: int

    def expired(self, now: int) -> bool:
        return now >= self.reset_at


class ExpiringKeyedCounterStore:
    def __init__(self, store: ShardedKeyedStore | None = None, shards: int | None = None):
        self._store = store or ShardedKeyedStore(shards)

    def increment_or_create(self, namespace: str, key: Hashable, now: int, window_ms: int) -> CounterEntry:
        """Count one event; returns a snapshot of the entry after the update."""

        snapshot = None

        def _bump(entry: Optional[CounterEntry]) -> CounterEntry:
            nonlocal snapshot
            if entry is None or entry.expired(now):
                entry = CounterEntry(count=1, reset_at=now + window_ms)
            else:
                entry.count += 1
            snapshot = replace(entry)
            return entry

        self._store.mutate(namespace, key, _bump)
        return snapshot

    def get(self, namespace: str, key: Hashable, now: int) -> Optional[CounterEntry]:
        """Live entry for the key, or None; expired entries are evicted on read."""
        snapshot = None

        def _check(entry: Optional[CounterEntry]) -> Optional[CounterEntry]:
            nonlocal snapshot
            if entry is None or entry.expired(now):
                return None
            snapshot = replace(entry)
            return entry

        self._store.mutate(namespace, key, _check)
        return snapshot

    def reset(self, namespace: str, key: Hashable) -> bool:
        return self._store.delete(namespace, key)

    def sweep(self, now: int, max_age_ms: int = 0) -> int:
        return self._store.sweep(lambda _ns, entry: now - entry.reset_at >= max_age_ms)

    def size(self, namespace: str | None = None) -> int:
        return self._store.size(namespace)

    def namespaces(self) -> set[str]:
        return self._store.namespaces()

    def clear(self) -> None:
        self._store.clear()
