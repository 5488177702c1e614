from __future__ import annotations

import structlog

from meli_watch.engine import Poller, Registry
from meli_watch.errors import FetchCancelledError, FetchExhaustedError


class StubFetcher:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.calls: list[tuple[dict, str | None]] = []
        self.context: dict = {}

    def fetch(self, params, endpoint=None):
        self.calls.append((dict(params), endpoint))
        self.context = structlog.contextvars.get_contextvars()
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_poll_refreshes_state(sample_registry: Registry, make_result) -> None:
    fetcher = StubFetcher([make_result("V"), make_result("C"), make_result("D")])
    poller = Poller(sample_registry, fetcher)

    outcome = poller.poll("kona")

    assert outcome.ok
    assert outcome.fetched == 3
    assert outcome.available == 2
    assert fetcher.calls == [({"q": "kona"}, "kona")]
    assert {result.id for result in sample_registry.list("kona")} == {"C", "D"}


def test_poll_failure_keeps_previous_available(sample_registry: Registry) -> None:
    poller = Poller(sample_registry, StubFetcher(FetchExhaustedError("kona", 10)))

    outcome = poller.poll("kona")

    assert not outcome.ok
    assert "10 attempts" in (outcome.error or "")
    assert {result.id for result in sample_registry.list("kona")} == {"A", "B"}


def test_poll_cancelled(sample_registry: Registry) -> None:
    poller = Poller(sample_registry, StubFetcher(FetchCancelledError("stop")))

    outcome = poller.poll("kona")

    assert not outcome.ok
    assert outcome.error == "cancelled"
    assert len(sample_registry.list("kona")) == 2


def test_poll_binds_endpoint_for_the_cycle(sample_registry: Registry, make_result) -> None:
    fetcher = StubFetcher([make_result("C")])
    poller = Poller(sample_registry, fetcher)

    poller.poll("carpa")

    assert fetcher.context == {"endpoint": "carpa"}
    assert "endpoint" not in structlog.contextvars.get_contextvars()
