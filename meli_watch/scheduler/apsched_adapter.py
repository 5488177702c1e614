"""APScheduler wrapper exposing higher level helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..logging_conf import configure_logging

SNAPSHOT_JOB_ID = "snapshot"
POLL_EXECUTOR = "default"
SNAPSHOT_EXECUTOR = "snapshot"


def poll_job_id(endpoint: str) -> str:
    return f"poll::{endpoint}"


class APSchedulerAdapter:
    """Manage the recurring poll and snapshot jobs.

    Poll jobs share a pool of ``max_workers`` threads; the snapshot job has a
    single-thread executor of its own. A job that waits for a free thread runs
    late instead of being dropped as missed.
    """

    def __init__(self, max_workers: int = 8) -> None:
        self.scheduler = BackgroundScheduler(
            executors={
                POLL_EXECUTOR: ThreadPoolExecutor(max_workers=max_workers),
                SNAPSHOT_EXECUTOR: ThreadPoolExecutor(max_workers=1),
            },
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": None},
        )
        self.logger = configure_logging().bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self, wait: bool = True) -> None:
        if self.started:
            self.scheduler.shutdown(wait=wait)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_poll(
        self,
        endpoint: str,
        callback: Callable[[str], object],
        interval: float,
        run_immediately: bool = True,
    ) -> None:
        job_id = poll_job_id(endpoint)
        self._add_interval_job(callback, job_id, interval, [endpoint], POLL_EXECUTOR, run_immediately)
        self.logger.info("poll_scheduled", endpoint=endpoint, interval=interval)

    def schedule_snapshot(self, callback: Callable[[], object], interval: float) -> None:
        self._add_interval_job(callback, SNAPSHOT_JOB_ID, interval, [], SNAPSHOT_EXECUTOR, run_immediately=False)
        self.logger.info("snapshot_scheduled", interval=interval)

    def _add_interval_job(
        self,
        callback: Callable[..., object],
        job_id: str,
        interval: float,
        args: list,
        executor: str,
        run_immediately: bool,
    ) -> None:
        trigger = self._build_trigger(interval)
        kwargs = {}
        if run_immediately:
            kwargs["next_run_time"] = datetime.now(timezone.utc)
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=job_id,
            args=args,
            executor=executor,
            replace_existing=True,
            **kwargs,
        )

    @staticmethod
    def _build_trigger(interval: float) -> IntervalTrigger:
        if interval <= 0:
            raise ValueError("Interval must be positive")
        return IntervalTrigger(seconds=float(interval))


__all__ = ["APSchedulerAdapter", "SNAPSHOT_JOB_ID", "poll_job_id"]
