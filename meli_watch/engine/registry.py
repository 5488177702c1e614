"""Fixed collection of query states keyed by endpoint."""

from __future__ import annotations

from typing import Iterable, Iterator, Mapping

from ..errors import UnknownEndpointError
from ..models import Result, StateDocument
from .state import QueryState, QueryStats


class Registry:
    """Endpoint -> QueryState map built once and never resized.

    Iteration order is sorted by endpoint. Anything that locks more than one
    query must acquire them in this order.
    """

    def __init__(self, states: Iterable[QueryState] = ()) -> None:
        ordered = sorted(states, key=lambda state: state.endpoint)
        mapping: dict[str, QueryState] = {}
        for state in ordered:
            if state.endpoint in mapping:
                raise ValueError(f"Duplicate endpoint: {state.endpoint!r}")
            mapping[state.endpoint] = state
        self._states: Mapping[str, QueryState] = mapping

    @classmethod
    def from_document(cls, document: StateDocument) -> "Registry":
        return cls(
            QueryState.from_record(endpoint, record)
            for endpoint, record in document.root.items()
        )

    def to_document(self) -> StateDocument:
        return StateDocument({state.endpoint: state.to_record() for state in self.states()})

    def get(self, endpoint: str) -> QueryState:
        try:
            return self._states[endpoint]
        except KeyError:
            raise UnknownEndpointError(endpoint) from None

    def endpoints(self) -> list[str]:
        return list(self._states)

    def states(self) -> list[QueryState]:
        return list(self._states.values())

    def stats(self) -> list[QueryStats]:
        return [state.stats() for state in self.states()]

    # ------------------------------------------------------------------
    # Surface consumed by request handlers
    # ------------------------------------------------------------------
    def list(self, endpoint: str, limit: int | None = None) -> list[Result]:
        return self.get(endpoint).list(limit)

    def mark_visited(self, endpoint: str, result_id: str) -> bool:
        return self.get(endpoint).mark_visited(result_id)

    def mark_visited_batch(self, endpoint: str, result_ids: Iterable[str]) -> int:
        return self.get(endpoint).mark_visited_batch(result_ids)

    def __contains__(self, endpoint: object) -> bool:
        return endpoint in self._states

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)


__all__ = ["Registry"]
