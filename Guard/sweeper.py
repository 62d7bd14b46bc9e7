"""
PERIODIC SWEEPER
================
Background eviction of expired guard state.
"""

# FLOW:
# - schedule() registers run_once() as an interval job on a scheduler.
# WHY:
# - Memory must stay bounded under sustained unique-key traffic even when
#   stale keys are never read again.
# HOW:
# - APScheduler interval job, one running instance at a time. A failing tick
#   is logged and retried on the next one.

from __future__ import annotations

from typing import Callable

from apscheduler.schedulers.base import BaseScheduler

from Guard.guard_logging import get_logger
from Guard.metrics import increment_guard_event


logger = get_logger("sweeper")


class PeriodicSweeper:
    def __init__(self, name: str, sweep: Callable[[], int], interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.sweep = sweep
        self.interval_seconds = interval_seconds

    @property
    def job_id(self) -> str:
        return f"guard-sweep-{self.name}"

    def run_once(self) -> int:
        try:
            removed = self.sweep()
        except Exception:
            logger.exception("sweep failed name=%s", self.name)
            increment_guard_event("sweeper", "error")
            return 0
        if removed:
            logger.info("sweep name=%s removed=%s", self.name, removed)
        return removed

    def schedule(self, scheduler: BaseScheduler):
        return scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self.interval_seconds,
            id=self.job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
