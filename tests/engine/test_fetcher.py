from __future__ import annotations

import threading

import httpx
import pytest

from meli_watch.config import RetryPolicy
from meli_watch.engine.fetcher import SearchFetcher
from meli_watch.errors import FetchCancelledError, FetchExhaustedError


def _make_fetcher(config, api, monkeypatch, **kwargs):
    sleeps: list[float] = []
    fetcher = SearchFetcher(config, sleep=sleeps.append, rand=lambda: 0.0, **kwargs)
    monkeypatch.setattr(fetcher._client, "request", api)
    return fetcher, sleeps


def test_fetch_walks_every_page(watcher_config, fake_api, monkeypatch) -> None:
    api = fake_api(total=250, limit=100)
    fetcher, sleeps = _make_fetcher(watcher_config, api, monkeypatch)

    results = fetcher.fetch({"q": "kona"}, endpoint="kona")
    fetcher.close()

    assert len(api.requests) == 3
    assert api.offsets == [0, 100, 200]
    assert len(results) == 250
    assert len({result.id for result in results}) == 250
    assert sleeps == [0.5, 0.5]


def test_fetch_sends_params_verbatim_with_page_size(watcher_config, fake_api, monkeypatch) -> None:
    api = fake_api(total=3, limit=100)
    fetcher, _ = _make_fetcher(watcher_config, api, monkeypatch)

    fetcher.fetch({"q": "kona", "category": "MLA1292"})
    fetcher.close()

    first = api.requests[0]
    assert first["method"] == "GET"
    assert first["url"] == watcher_config.api_url
    assert first["params"] == {"q": "kona", "category": "MLA1292", "limit": "100"}


def test_fetch_upgrades_thumbnails(watcher_config, fake_api, monkeypatch) -> None:
    api = fake_api(total=1, limit=100)
    fetcher, _ = _make_fetcher(watcher_config, api, monkeypatch)

    [result] = fetcher.fetch({"q": "kona"})
    fetcher.close()

    assert result.thumbnail == "https://img.example/0-U.jpg"


def test_fetch_recovers_after_two_failures(watcher_config, fake_api, monkeypatch) -> None:
    api = fake_api(total=2, limit=100, failures=[httpx.ConnectError("boom"), 503])
    fetcher, sleeps = _make_fetcher(watcher_config, api, monkeypatch)

    results = fetcher.fetch({"q": "kona"})
    fetcher.close()

    assert [result.id for result in results] == ["MLA0", "MLA1"]
    assert len(api.requests) == 3
    assert sleeps == [5.0, 5.0]


def test_decode_failure_is_retried(watcher_config, fake_api, monkeypatch) -> None:
    api = fake_api(total=1, limit=100, failures=["<html>maintenance</html>", '{"results": []}'])
    fetcher, sleeps = _make_fetcher(watcher_config, api, monkeypatch)

    results = fetcher.fetch({"q": "kona"})
    fetcher.close()

    assert len(results) == 1
    assert len(sleeps) == 2


def test_retry_exhaustion_raises(watcher_config, fake_api, monkeypatch) -> None:
    api = fake_api(total=1, limit=100, failures=[500] * 10)
    fetcher, sleeps = _make_fetcher(watcher_config, api, monkeypatch)

    with pytest.raises(FetchExhaustedError) as excinfo:
        fetcher.fetch({"q": "kona"}, endpoint="kona")
    fetcher.close()

    assert excinfo.value.attempts == 4
    assert excinfo.value.endpoint == "kona"
    assert len(api.requests) == 4
    assert len(sleeps) == 3


def test_failure_on_later_page_retries_same_offset(watcher_config, fake_api, monkeypatch) -> None:
    api = fake_api(total=150, limit=100)
    fetcher, sleeps = _make_fetcher(watcher_config, api, monkeypatch)
    original = api.__call__

    calls = {"count": 0}

    def flaky(**kwargs):
        calls["count"] += 1
        if calls["count"] == 2:
            raise httpx.ReadTimeout("slow")
        return original(**kwargs)

    monkeypatch.setattr(fetcher._client, "request", flaky)
    results = fetcher.fetch({"q": "kona"})
    fetcher.close()

    assert len(results) == 150
    assert api.offsets == [0, 100]
    assert sleeps == [0.5, 5.0]


def test_invalid_results_are_skipped(watcher_config, monkeypatch) -> None:
    def api(**kwargs):
        return httpx.Response(
            200,
            request=httpx.Request("GET", kwargs["url"]),
            json={
                "paging": {"total": 2, "offset": 0, "limit": 50},
                "results": [{"id": "ok", "price": 10}, {"id": "bad", "price": -1}],
            },
        )

    fetcher, _ = _make_fetcher(watcher_config, api, monkeypatch)
    results = fetcher.fetch({"q": "kona"})
    fetcher.close()

    assert [result.id for result in results] == ["ok"]


def test_stop_event_cancels_retry_wait(watcher_config, fake_api, monkeypatch) -> None:
    stop = threading.Event()
    api = fake_api(total=1, limit=100, failures=[500, 500])
    fetcher = SearchFetcher(watcher_config, sleep=lambda _delay: stop.set(), stop_event=stop)
    monkeypatch.setattr(fetcher._client, "request", api)

    with pytest.raises(FetchCancelledError):
        fetcher.fetch({"q": "kona"})
    fetcher.close()
    assert len(api.requests) == 1


def test_backoff_grows_and_caps() -> None:
    policy = RetryPolicy(max_attempts=None, base_delay=5, multiplier=2, max_delay=30, jitter=0.5)
    assert [policy.delay_for(n) for n in range(1, 6)] == [5, 10, 20, 30, 30]
    assert policy.delay_for(1, rand=1.0) == pytest.approx(7.5)
    assert policy.should_retry(1000)


def test_failure_classification() -> None:
    class Dummy:
        def __init__(self, status_code):
            self.status_code = status_code

    assert SearchFetcher._is_failure(Dummy(500))
    assert SearchFetcher._is_failure(Dummy(302))
    assert not SearchFetcher._is_failure(Dummy(200))
