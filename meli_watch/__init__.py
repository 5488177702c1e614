"""Poll marketplace searches and keep track of results already handled."""

from .engine import QueryState, Registry, Result, SearchFetcher, SnapshotManager
from .errors import MeliWatchError, UnknownEndpointError
from .orchestrator import WatchService

__version__ = "0.1.0"

__all__ = [
    "MeliWatchError",
    "QueryState",
    "Registry",
    "Result",
    "SearchFetcher",
    "SnapshotManager",
    "UnknownEndpointError",
    "WatchService",
    "__version__",
]
