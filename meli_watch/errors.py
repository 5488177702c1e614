"""Exception hierarchy shared across meli-watch."""

from __future__ import annotations


class MeliWatchError(Exception):
    """Base class for all errors raised by meli-watch."""


class FetchError(MeliWatchError):
    """Raised when a search could not be retrieved."""


class FetchExhaustedError(FetchError):
    """The retry policy gave up on a page request."""

    def __init__(self, endpoint: str | None, attempts: int, offset: int = 0) -> None:
        self.endpoint = endpoint
        self.attempts = attempts
        self.offset = offset
        label = endpoint or "<anonymous>"
        super().__init__(
            f"Search {label!r} failed at offset {offset} after {attempts} attempts"
        )


class FetchCancelledError(FetchError):
    """The stop signal was raised while a fetch was waiting."""


class UnknownEndpointError(MeliWatchError, LookupError):
    """No query is registered under the requested endpoint."""

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"Unknown endpoint: {endpoint!r}")

    def __str__(self) -> str:
        return self.args[0]


class StateLoadError(MeliWatchError):
    """The persisted state file is missing or unreadable."""


class SnapshotError(MeliWatchError):
    """Writing the state file failed."""


__all__ = [
    "FetchCancelledError",
    "FetchError",
    "FetchExhaustedError",
    "MeliWatchError",
    "SnapshotError",
    "StateLoadError",
    "UnknownEndpointError",
]
