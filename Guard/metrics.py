"""
GUARD METRICS
=============
Prometheus-backed metrics for guard decisions.
"""

from __future__ import annotations

import os
from typing import Dict

from prometheus_client import Counter, Gauge


_GUARD_EVENTS = None
_STORE_ENTRIES = None


def _enabled() -> bool:
    return os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true"


def _init_metrics() -> None:
    global _GUARD_EVENTS, _STORE_ENTRIES
    if _GUARD_EVENTS or not _enabled():
        return
    _GUARD_EVENTS = Counter(
        "guard_events_total",
        "Count of guard decisions",
        ["feature", "outcome"],
    )
    _STORE_ENTRIES = Gauge(
        "guard_store_entries",
        "Live entries per guard store namespace",
        ["namespace"],
    )


def increment_guard_event(feature: str, outcome: str, amount: int = 1) -> None:
    _init_metrics()
    if not _GUARD_EVENTS:
        return
    _GUARD_EVENTS.labels(feature=feature, outcome=outcome).inc(amount)


def set_store_entries(namespace: str, count: int) -> None:
    _init_metrics()
    if not _STORE_ENTRIES:
        return
    _STORE_ENTRIES.labels(namespace=namespace).set(count)


def _counter_value(counter, feature: str, outcome: str) -> int:
    try:
        return int(counter.labels(feature=feature, outcome=outcome)._value.get())
    except (AttributeError, ValueError):
        return 0


def get_metrics_snapshot(features: list[str], outcomes: list[str]) -> Dict[str, Dict[str, int]]:
    _init_metrics()
    snapshot: Dict[str, Dict[str, int]] = {}
    for feature in features:
        snapshot[feature] = {
            outcome: _counter_value(_GUARD_EVENTS, feature, outcome) if _GUARD_EVENTS else 0
            for outcome in outcomes
        }
    return snapshot
