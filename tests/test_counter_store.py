from concurrent.futures import ThreadPoolExecutor

from Guard.counter_store import CounterEntry, ExpiringKeyedCounterStore
from Guard.keyed_store import ShardedKeyedStore

NOW = 1_000_000
WINDOW = 60_000


def test_first_event_creates_entry(counter_store):
    entry = counter_store.increment_or_create("auth", "k", NOW, WINDOW)
    assert entry == CounterEntry(count=1, reset_at=NOW + WINDOW)


def test_live_entry_is_incremented(counter_store):
    counter_store.increment_or_create("auth", "k", NOW, WINDOW)
    entry = counter_store.increment_or_create("auth", "k", NOW + 10, WINDOW)
    assert entry.count == 2
    assert entry.reset_at == NOW + WINDOW


def test_expired_entry_is_replaced_not_incremented(counter_store):
    for _ in range(3):
        counter_store.increment_or_create("auth", "k", NOW, WINDOW)
    entry = counter_store.increment_or_create("auth", "k", NOW + WINDOW, WINDOW)
    assert entry.count == 1
    assert entry.reset_at == NOW + 2 * WINDOW


def test_returned_entry_is_a_snapshot(counter_store):
    first = counter_store.increment_or_create("auth", "k", NOW, WINDOW)
    counter_store.increment_or_create("auth", "k", NOW, WINDOW)
    assert first.count == 1


def test_namespaces_do_not_share_counters(counter_store):
    counter_store.increment_or_create("auth", "k", NOW, WINDOW)
    counter_store.increment_or_create("auth", "k", NOW, WINDOW)
    entry = counter_store.increment_or_create("registration", "k", NOW, WINDOW)
    assert entry.count == 1
    assert counter_store.namespaces() == {"auth", "registration"}


def test_get_evicts_expired_entry(counter_store):
    counter_store.increment_or_create("auth", "k", NOW, WINDOW)
    assert counter_store.get("auth", "k", NOW + 1).count == 1
    assert counter_store.get("auth", "k", NOW + WINDOW) is None
    assert counter_store.size("auth") == 0


def test_sweep_removes_only_expired_entries(counter_store):
    counter_store.increment_or_create("auth", "old", NOW, WINDOW)
    counter_store.increment_or_create("auth", "new", NOW + WINDOW, WINDOW)
    removed = counter_store.sweep(NOW + WINDOW + 1)
    assert removed == 1
    assert counter_store.size() == 1
    assert counter_store.get("auth", "new", NOW + WINDOW + 1) is not None


def test_sweep_respects_max_age(counter_store):
    counter_store.increment_or_create("auth", "k", NOW, WINDOW)
    assert counter_store.sweep(NOW + WINDOW + 10, max_age_ms=1000) == 0
    assert counter_store.sweep(NOW + WINDOW + 1000, max_age_ms=1000) == 1


def test_parallel_increments_lose_no_updates():
    store = ExpiringKeyedCounterStore(ShardedKeyedStore(shards=4))
    calls = 2000

    def bump(_):
        store.increment_or_create("auth", "hot-key", NOW, WINDOW)

    with ThreadPoolExecutor(max_workers=32) as pool:
        list(pool.map(bump, range(calls)))

    assert store.get("auth", "hot-key", NOW).count == calls


def test_parallel_increments_on_distinct_keys():
    store = ExpiringKeyedCounterStore(ShardedKeyedStore(shards=4))

    def bump(i):
        store.increment_or_create("auth", f"key-{i % 50}", NOW, WINDOW)

    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(bump, range(1000)))

    assert store.size("auth") == 50
    assert all(store.get("auth", f"key-{i}", NOW).count == 20 for i in range(50))


def test_mutate_returning_none_deletes():
    store = ShardedKeyedStore(shards=2)
    store.mutate("ns", "k", lambda _: {"v": 1})
    assert store.get("ns", "k") == {"v": 1}
    store.mutate("ns", "k", lambda _: None)
    assert store.get("ns", "k") is None
    assert store.delete("ns", "k") is False
