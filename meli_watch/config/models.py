"""Pydantic models describing how the watcher polls, retries and persists."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_API_URL = "https://api.mercadolibre.com/sites/MLA/search"


class RetryPolicy(BaseModel):
    """Bounded exponential backoff applied to every page request.

    ``max_attempts=None`` retries forever. ``multiplier=1`` with ``jitter=0``
    gives a fixed delay between attempts.
    """

    max_attempts: int | None = 10
    base_delay: float = 5.0
    multiplier: float = 2.0
    max_delay: float = 300.0
    jitter: float = 0.1

    @model_validator(mode="after")
    def _validate_bounds(self) -> "RetryPolicy":
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1 or null")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must be non-negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if not 0 <= self.jitter <= 1:
            raise ValueError("jitter must be within [0, 1]")
        return self

    def should_retry(self, attempt: int) -> bool:
        """Return True if another attempt may follow attempt number ``attempt``."""

        return self.max_attempts is None or attempt < self.max_attempts

    def delay_for(self, attempt: int, rand: float = 0.0) -> float:
        """Delay to wait after failed attempt ``attempt`` (1-based).

        ``rand`` is a sample from [0, 1) scaling the jitter component.
        """

        delay = min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))
        return delay + delay * self.jitter * rand


class ThumbnailRule(BaseModel):
    """Literal substitution turning a small thumbnail URL into a larger one."""

    find: str = "-I.jpg"
    replace: str = "-U.jpg"

    def apply(self, url: str) -> str:
        if not self.find:
            return url
        return url.replace(self.find, self.replace)


class WatcherConfig(BaseModel):
    """Global controls for polling, snapshotting and the search client."""

    api_url: str = DEFAULT_API_URL
    page_size: int = 1000
    request_timeout: float = 15.0
    page_delay: float = 0.5
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    poll_interval: float = 25 * 60
    snapshot_interval: float = 10 * 60
    state_path: Path = Field(default=Path("data/query.db"))
    thumbnail_rule: ThumbnailRule = Field(default_factory=ThumbnailRule)
    listing_limit: int = 100
    max_workers: int = 8
    user_agent: str | None = "meli-watch/0.1"

    @field_validator("state_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_positive(self) -> "WatcherConfig":
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if self.poll_interval <= 0 or self.snapshot_interval <= 0:
            raise ValueError("poll_interval and snapshot_interval must be positive")
        if self.page_delay < 0:
            raise ValueError("page_delay must be non-negative")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.listing_limit < 1:
            raise ValueError("listing_limit must be >= 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        return self

    def resolved_state_path(self, base_dir: Path) -> Path:
        """Return the state file path relative to the project root."""

        if not self.state_path.is_absolute():
            return (base_dir / self.state_path).resolve()
        return self.state_path


__all__ = ["DEFAULT_API_URL", "RetryPolicy", "ThumbnailRule", "WatcherConfig"]
