"""Per-query available/visited partition guarded by a reader/writer lock."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from itertools import islice
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

import structlog

from .locks import ReadWriteLock
from ..models import QueryRecord, Result


@dataclass(frozen=True, slots=True)
class QueryView:
    """Read-only view of a query, valid only inside ``snapshot_view()``."""

    endpoint: str
    params: Mapping[str, str]
    available: Mapping[str, Result]
    visited: Mapping[str, Result]

    def to_record(self) -> QueryRecord:
        return QueryRecord(
            params=dict(self.params),
            available=dict(self.available),
            visited=dict(self.visited),
        )


@dataclass(frozen=True, slots=True)
class QueryStats:
    endpoint: str
    available: int
    visited: int


class QueryState:
    """One named search and its deduplication state.

    ``available`` and ``visited`` never share an id. Ids only move from
    available to visited, never back.
    """

    def __init__(
        self,
        endpoint: str,
        params: Mapping[str, str] | None = None,
        available: Mapping[str, Result] | None = None,
        visited: Mapping[str, Result] | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._params = MappingProxyType(dict(params or {}))
        self._visited: dict[str, Result] = dict(visited or {})
        self._available: dict[str, Result] = {
            key: value for key, value in (available or {}).items() if key not in self._visited
        }
        self._lock = ReadWriteLock()

    @classmethod
    def from_record(cls, endpoint: str, record: QueryRecord) -> "QueryState":
        overlap = record.available.keys() & record.visited.keys()
        if overlap:
            structlog.get_logger("meli_watch.state").warning(
                "state_overlap_repaired",
                endpoint=endpoint,
                dropped=sorted(overlap),
            )
        return cls(endpoint, record.params, record.available, record.visited)

    @property
    def params(self) -> Mapping[str, str]:
        return self._params

    # ------------------------------------------------------------------
    # Mutations (exclusive)
    # ------------------------------------------------------------------
    def refresh(self, results: Iterable[Result]) -> int:
        """Replace ``available`` with the fetched results not yet visited."""

        with self._lock.write():
            fresh: dict[str, Result] = {}
            for result in results:
                if result.id in self._visited:
                    continue
                fresh[result.id] = result
            self._available = fresh
            return len(fresh)

    def mark_visited(self, result_id: str) -> bool:
        with self._lock.write():
            return self._move_to_visited(result_id)

    def mark_visited_batch(self, result_ids: Iterable[str]) -> int:
        if isinstance(result_ids, str):
            raise TypeError("result_ids must be an iterable of ids, not a single string")
        with self._lock.write():
            return sum(1 for result_id in result_ids if self._move_to_visited(result_id))

    def _move_to_visited(self, result_id: str) -> bool:
        result = self._available.pop(result_id, None)
        if result is None:
            return False
        self._visited[result_id] = result
        return True

    # ------------------------------------------------------------------
    # Reads (shared)
    # ------------------------------------------------------------------
    def list(self, limit: int | None = None) -> list[Result]:
        with self._lock.read():
            values = self._available.values()
            if limit is None:
                return list(values)
            return list(islice(values, max(limit, 0)))

    def stats(self) -> QueryStats:
        with self._lock.read():
            return QueryStats(self.endpoint, len(self._available), len(self._visited))

    @contextmanager
    def snapshot_view(self) -> Iterator[QueryView]:
        """Hold shared access and yield a read-only view of the whole query."""

        with self._lock.read():
            yield QueryView(
                endpoint=self.endpoint,
                params=self._params,
                available=MappingProxyType(self._available),
                visited=MappingProxyType(self._visited),
            )

    def to_record(self) -> QueryRecord:
        with self.snapshot_view() as view:
            return view.to_record()

    def __repr__(self) -> str:
        return f"QueryState(endpoint={self.endpoint!r})"


__all__ = ["QueryState", "QueryStats", "QueryView"]
