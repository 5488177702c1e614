"""Paginated search retrieval with retry and backoff."""

from __future__ import annotations

import random
import time
from threading import Event
from typing import Any, Callable, Mapping

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from ..config import RetryPolicy, WatcherConfig
from ..errors import FetchCancelledError, FetchExhaustedError
from ..models import Result


class Paging(BaseModel):
    total: int = 0
    offset: int = 0
    limit: int = 0


class SearchPage(BaseModel):
    """One decoded page of the search API."""

    paging: Paging
    results: list[dict[str, Any]] = Field(default_factory=list)


class PageDecodeError(ValueError):
    """The response body is not a search page."""


class SearchFetcher:
    """Retrieve every page of a search, retrying failed page requests.

    Transport errors, non-2xx statuses and undecodable bodies are all retried
    under the configured :class:`RetryPolicy`. Waits go through ``sleep`` and
    are interrupted by ``stop_event``.
    """

    def __init__(
        self,
        config: WatcherConfig,
        logger: structlog.BoundLogger | None = None,
        sleep: Callable[[float], None] | None = None,
        stop_event: Event | None = None,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.config = config
        self.policy: RetryPolicy = config.retry
        self.logger = logger or structlog.get_logger("meli_watch.fetcher")
        self._stop_event = stop_event
        self._sleep = sleep or self._default_sleep
        self._rand = rand
        headers = {"Accept": "application/json"}
        if config.user_agent:
            headers["User-Agent"] = config.user_agent
        self._client = httpx.Client(
            follow_redirects=True,
            timeout=config.request_timeout,
            headers=headers,
        )

    def close(self) -> None:
        self._client.close()

    def fetch(self, params: Mapping[str, str], endpoint: str | None = None) -> list[Result]:
        """Return the full result set of a search, page by page."""

        log = self.logger.bind(endpoint=endpoint) if endpoint else self.logger
        query = {str(key): str(value) for key, value in params.items()}
        query["limit"] = str(self.config.page_size)

        offset = 0
        page = self._fetch_page(query, endpoint, offset, log)
        results = self._build_results(page, log)
        while page.paging.offset + page.paging.limit < page.paging.total:
            next_offset = page.paging.offset + page.paging.limit
            if page.paging.limit <= 0 or next_offset <= offset:
                log.warning("pagination_stalled", offset=offset, paging=page.paging.model_dump())
                break
            self._wait(self.config.page_delay)
            offset = next_offset
            query["offset"] = str(offset)
            log.debug("fetch_page", offset=offset, total=page.paging.total)
            page = self._fetch_page(query, endpoint, offset, log)
            results.extend(self._build_results(page, log))
        log.info("fetch_complete", results=len(results), total=page.paging.total)
        return results

    # ------------------------------------------------------------------
    def _fetch_page(
        self,
        query: dict[str, str],
        endpoint: str | None,
        offset: int,
        log: structlog.BoundLogger,
    ) -> SearchPage:
        attempt = 0
        while True:
            attempt += 1
            self._check_stopped()
            try:
                response = self._client.request(
                    method="GET",
                    url=self.config.api_url,
                    params=dict(query),
                    timeout=self.config.request_timeout,
                )
                if self._is_failure(response):
                    reason = f"unexpected status {response.status_code}"
                else:
                    return self._decode(response)
            except httpx.HTTPError as exc:
                reason = f"{type(exc).__name__}: {exc}"
            except PageDecodeError as exc:
                reason = f"decode error: {exc}"

            if not self.policy.should_retry(attempt):
                log.error("fetch_exhausted", offset=offset, attempts=attempt, reason=reason)
                raise FetchExhaustedError(endpoint, attempt, offset)
            delay = self.policy.delay_for(attempt, self._rand())
            log.warning(
                "fetch_retry",
                offset=offset,
                attempt=attempt,
                delay=round(delay, 3),
                reason=reason,
            )
            self._wait(delay)

    @staticmethod
    def _decode(response: httpx.Response) -> SearchPage:
        try:
            payload = response.json()
        except ValueError as exc:
            raise PageDecodeError(f"invalid JSON ({exc})") from exc
        if not isinstance(payload, dict):
            raise PageDecodeError(f"expected an object, got {type(payload).__name__}")
        try:
            return SearchPage.model_validate(payload)
        except ValidationError as exc:
            raise PageDecodeError(f"{exc.error_count()} schema errors") from exc

    def _build_results(self, page: SearchPage, log: structlog.BoundLogger) -> list[Result]:
        results: list[Result] = []
        rule = self.config.thumbnail_rule
        for raw in page.results:
            item = dict(raw)
            if isinstance(item.get("thumbnail"), str):
                item["thumbnail"] = rule.apply(item["thumbnail"])
            try:
                results.append(Result.model_validate(item))
            except ValidationError as exc:
                log.warning("result_skipped", result_id=item.get("id"), error=str(exc))
        return results

    def _wait(self, delay: float) -> None:
        if delay > 0:
            self._sleep(delay)
        self._check_stopped()

    def _check_stopped(self) -> None:
        if self._stop_event is not None and self._stop_event.is_set():
            raise FetchCancelledError("Fetch cancelled by stop signal")

    def _default_sleep(self, delay: float) -> None:
        if self._stop_event is not None:
            self._stop_event.wait(delay)
        else:
            time.sleep(delay)

    @staticmethod
    def _is_failure(response: Any) -> bool:
        return getattr(response, "status_code", 0) >= 300


__all__ = ["PageDecodeError", "Paging", "SearchFetcher", "SearchPage"]
