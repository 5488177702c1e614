"""Service wiring the registry to the fetcher, pollers, snapshots and scheduler."""

from __future__ import annotations

from threading import Event, Lock
from typing import Iterable

import structlog

from .config import ConfigRepository, WatcherConfig
from .engine import PollOutcome, Poller, Registry, Result, SearchFetcher, SnapshotManager
from .engine.poller import Fetcher
from .infra import StateStore
from .logging_conf import configure_logging
from .scheduler import APSchedulerAdapter


class WatchService:
    """Own the registry for the lifetime of the process.

    ``start()`` schedules one poll job per endpoint (run immediately, then
    every ``poll_interval``) and the snapshot job. ``stop()`` interrupts
    in-flight fetches, waits for running jobs and writes a final snapshot.
    """

    def __init__(
        self,
        config: WatcherConfig,
        store: StateStore,
        registry: Registry,
        fetcher: Fetcher | None = None,
        scheduler: APSchedulerAdapter | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.registry = registry
        self.stop_event = Event()
        self.logger = logger or configure_logging().bind(component="service")
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or SearchFetcher(config, stop_event=self.stop_event)
        self.poller = Poller(registry, self.fetcher)
        self.snapshots = SnapshotManager(registry, store)
        self.scheduler = scheduler or APSchedulerAdapter(config.max_workers)
        self._state_lock = Lock()
        self._running = False

    @classmethod
    def from_repository(cls, repository: ConfigRepository, **kwargs) -> "WatchService":
        """Load the state file and build a service. Load failures propagate."""

        config = repository.load_config()
        store = StateStore(repository.state_path())
        registry = Registry.from_document(store.load())
        return cls(config, store, registry, **kwargs)

    # ------------------------------------------------------------------
    def start(self) -> None:
        with self._state_lock:
            if self._running:
                return
            self.stop_event.clear()
            for endpoint in self.registry.endpoints():
                self.scheduler.schedule_poll(endpoint, self.poll, self.config.poll_interval)
            self.scheduler.schedule_snapshot(self.snapshot, self.config.snapshot_interval)
            self.scheduler.start()
            self._running = True
        self.logger.info(
            "service_started",
            queries=len(self.registry),
            state_path=str(self.store.path),
        )

    def stop(self, final_snapshot: bool = True) -> None:
        with self._state_lock:
            if not self._running:
                return
            self.stop_event.set()
            self.scheduler.shutdown(wait=True)
            self._running = False
        if final_snapshot:
            self.snapshot()
        if self._owns_fetcher and hasattr(self.fetcher, "close"):
            self.fetcher.close()
        self.logger.info("service_stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the stop signal is raised or ``timeout`` elapses."""

        return self.stop_event.wait(timeout)

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    def poll(self, endpoint: str) -> PollOutcome:
        return self.poller.poll(endpoint)

    def snapshot(self) -> bool:
        return self.snapshots.snapshot()

    # ------------------------------------------------------------------
    def list(self, endpoint: str, limit: int | None = None) -> list[Result]:
        return self.registry.list(endpoint, self.config.listing_limit if limit is None else limit)

    def mark_visited(self, endpoint: str, result_id: str) -> bool:
        moved = self.registry.mark_visited(endpoint, result_id)
        self.logger.info("result_visited", endpoint=endpoint, result_id=result_id, moved=moved)
        return moved

    def mark_visited_batch(self, endpoint: str, result_ids: Iterable[str]) -> int:
        ids = list(result_ids)
        moved = self.registry.mark_visited_batch(endpoint, ids)
        self.logger.info("results_visited", endpoint=endpoint, requested=len(ids), moved=moved)
        return moved


__all__ = ["WatchService"]
