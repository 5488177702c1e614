"""Engine components: fetch -> refresh -> snapshot."""

from .fetcher import SearchFetcher
from .locks import ReadWriteLock
from ..models import QueryRecord, Result, StateDocument
from .poller import PollOutcome, Poller
from .registry import Registry
from .snapshot import SnapshotManager
from .state import QueryState, QueryStats, QueryView

__all__ = [
    "PollOutcome",
    "Poller",
    "QueryRecord",
    "QueryState",
    "QueryStats",
    "QueryView",
    "ReadWriteLock",
    "Registry",
    "Result",
    "SearchFetcher",
    "SnapshotManager",
    "StateDocument",
]
