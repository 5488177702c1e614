"""Shared fixtures for the meli-watch test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest

from meli_watch.config import ConfigLocator, ConfigRepository, RetryPolicy, WatcherConfig
from meli_watch.engine import QueryState, Registry
from meli_watch.infra import StateStore
from meli_watch.models import QueryRecord, Result, StateDocument


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MELI_WATCH_HOME", str(tmp_path_factory.mktemp("home")))


@pytest.fixture
def make_result() -> Callable[..., Result]:
    def _builder(result_id: str, **overrides: Any) -> Result:
        base: dict[str, Any] = {
            "id": result_id,
            "permalink": f"https://articulo.mercadolibre.com.ar/{result_id}",
            "thumbnail": f"https://http2.mlstatic.com/{result_id}-I.jpg",
            "title": f"Bicicleta {result_id}",
            "price": 1000.0,
        }
        base.update(overrides)
        return Result(**base)

    return _builder


@pytest.fixture
def watcher_config(tmp_path: Path) -> WatcherConfig:
    return WatcherConfig(
        api_url="https://api.example.com/sites/MLA/search",
        page_size=100,
        page_delay=0.5,
        retry=RetryPolicy(max_attempts=4, base_delay=5.0, multiplier=1.0, jitter=0.0),
        state_path=tmp_path / "query.db",
    )


@pytest.fixture
def sample_registry(make_result) -> Registry:
    bikes = QueryState(
        "kona",
        params={"q": "kona"},
        available={"A": make_result("A"), "B": make_result("B")},
        visited={"V": make_result("V")},
    )
    tents = QueryState("carpa", params={"q": "carpa", "condition": "used"})
    return Registry([bikes, tents])


@pytest.fixture
def state_store(tmp_path: Path) -> StateStore:
    return StateStore(tmp_path / "query.db")


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("MELI_WATCH_HOME", str(tmp_path))
    repository = ConfigRepository(ConfigLocator(project_root=tmp_path))
    yield repository


@pytest.fixture
def seeded_repository(temp_config_repository: ConfigRepository, make_result) -> ConfigRepository:
    store = StateStore(temp_config_repository.state_path())
    store.save(
        StateDocument(
            {
                "kona": QueryRecord(
                    params={"q": "kona"},
                    available={"A": make_result("A"), "B": make_result("B")},
                    visited={"V": make_result("V")},
                )
            }
        )
    )
    return temp_config_repository


class FakeSearchApi:
    """Serve paged search responses and record every request."""

    def __init__(self, total: int, limit: int, failures: Iterable[Any] = ()) -> None:
        self.total = total
        self.limit = limit
        self.failures = list(failures)
        self.requests: list[dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> httpx.Response:
        self.requests.append(kwargs)
        request = httpx.Request(kwargs["method"], kwargs["url"], params=kwargs.get("params"))
        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            if isinstance(failure, int):
                return httpx.Response(failure, request=request, text="error")
            return httpx.Response(200, request=request, text=failure)
        offset = int(kwargs["params"].get("offset", 0))
        count = max(0, min(self.limit, self.total - offset))
        results = [
            {
                "id": f"MLA{offset + index}",
                "permalink": f"https://articulo.example/{offset + index}",
                "thumbnail": f"https://img.example/{offset + index}-I.jpg",
                "title": f"Item {offset + index}",
                "price": float(offset + index),
                "seller": {"id": 1},
            }
            for index in range(count)
        ]
        return httpx.Response(
            200,
            request=request,
            json={
                "query": "kona",
                "paging": {"total": self.total, "offset": offset, "limit": self.limit},
                "results": results,
            },
        )

    @property
    def offsets(self) -> list[int]:
        return [int(item["params"].get("offset", 0)) for item in self.requests]


@pytest.fixture
def fake_api() -> Callable[..., FakeSearchApi]:
    return FakeSearchApi
