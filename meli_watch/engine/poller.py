"""Fetch-then-refresh cycle for a single query."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import structlog

from ..errors import FetchCancelledError, FetchExhaustedError
from ..models import Result
from .registry import Registry
from .state import QueryState


class Fetcher(Protocol):
    def fetch(self, params, endpoint: str | None = None) -> list[Result]: ...


@dataclass(slots=True)
class PollOutcome:
    endpoint: str
    ok: bool
    fetched: int = 0
    available: int = 0
    error: str | None = None


class Poller:
    """Run one polling cycle for an endpoint.

    No lock is held while fetching; the query is only locked for the refresh.
    A failed cycle leaves the previous ``available`` set in place.
    """

    def __init__(
        self,
        registry: Registry,
        fetcher: Fetcher,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.registry = registry
        self.fetcher = fetcher
        self.logger = logger or structlog.get_logger("meli_watch.poller")

    def poll(self, endpoint: str) -> PollOutcome:
        state = self.registry.get(endpoint)
        # every line logged during the cycle, fetcher included, carries the endpoint
        with structlog.contextvars.bound_contextvars(endpoint=endpoint):
            return self._run_cycle(endpoint, state)

    def _run_cycle(self, endpoint: str, state: QueryState) -> PollOutcome:
        try:
            results = self.fetcher.fetch(state.params, endpoint=endpoint)
        except FetchCancelledError:
            self.logger.info("poll_cancelled")
            return PollOutcome(endpoint, ok=False, error="cancelled")
        except FetchExhaustedError as exc:
            self.logger.error("poll_failed", attempts=exc.attempts, offset=exc.offset)
            return PollOutcome(endpoint, ok=False, error=str(exc))
        available = state.refresh(results)
        self.logger.info("poll_finished", fetched=len(results), available=available)
        return PollOutcome(endpoint, ok=True, fetched=len(results), available=available)


__all__ = ["Fetcher", "PollOutcome", "Poller"]
