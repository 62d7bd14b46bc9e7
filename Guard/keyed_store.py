"""
SHARDED KEYED STORE
===================
Thread-safe in-memory map from (namespace, hashed key) to a record.
"""

# FLOW:
# - mutate() runs a read-modify-write callback under the key's shard lock.
# - sweep() deletes records matching a predicate, shard by shard.
# WHY:
# - Concurrent requests from one caller must never both read a stale count.
# - Unrelated keys should not queue behind a single global lock.
# HOW:
# - Records are spread over N shards, each a dict with its own threading.Lock.

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from Guard.guard_config import GUARD_SETTINGS


StoreKey = Tuple[str, Hashable]


class _Shard:
    __slots__ = ("lock", "records")

    def __init__(self):
        self.lock = threading.Lock()
        self.records: Dict[StoreKey, Any] = {}


class ShardedKeyedStore:
    def __init__(self, shards: int | None = None):
        count = shards if shards is not None else GUARD_SETTINGS["STORE_SHARDS"]
        self._shards = [_Shard() for _ in range(max(1, count))]

    def _shard_for(self, store_key: StoreKey) -> _Shard:
        return self._shards[hash(store_key) % len(self._shards)]

    def mutate(self, namespace: str, key: Hashable, fn: Callable[[Optional[Any]], Optional[Any]]):
        """Atomically replace the record with ``fn(current)``; None deletes it."""
        store_key = (namespace, key)
        shard = self._shard_for(store_key)
        with shard.lock:
            updated = fn(shard.records.get(store_key))
            if updated is None:
                shard.records.pop(store_key, None)
            else:
                shard.records[store_key] = updated
            return updated

    def get(self, namespace: str, key: Hashable, project: Callable[[Any], Any] | None = None):
        """Fetch a record; ``project`` (e.g. a copy) is applied under the shard lock."""
        store_key = (namespace, key)
        shard = self._shard_for(store_key)
        with shard.lock:
            record = shard.records.get(store_key)
            if project is not None and record is not None:
                return project(record)
            return record

    def delete(self, namespace: str, key: Hashable) -> bool:
        store_key = (namespace, key)
        shard = self._shard_for(store_key)
        with shard.lock:
            return shard.records.pop(store_key, None) is not None

    def sweep(self, predicate: Callable[[str, Any], bool]) -> int:
        """Remove every record for which ``predicate(namespace, record)`` is true."""
        removed = 0
        for shard in self._shards:
            with shard.lock:
                doomed = [k for k, record in shard.records.items() if predicate(k[0], record)]
                for store_key in doomed:
                    del shard.records[store_key]
                removed += len(doomed)
        return removed

    def size(self, namespace: str | None = None) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                if namespace is None:
                    total += len(shard.records)
                else:
                    total += sum(1 for k in shard.records if k[0] == namespace)
        return total

    def namespaces(self) -> set[str]:
        found: set[str] = set()
        for shard in self._shards:
            with shard.lock:
                found.update(k[0] for k in shard.records)
        return found

    def clear(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.records.clear()
