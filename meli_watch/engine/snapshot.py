"""Consistent point-in-time persistence of every query."""

from __future__ import annotations

from contextlib import ExitStack

import structlog

from ..errors import SnapshotError
from ..infra.storage import StateStore, encode_document
from ..models import StateDocument
from .registry import Registry


class SnapshotManager:
    """Write the whole registry to the state file under shared locks.

    Shared access is taken on every query in sorted endpoint order and held
    until the state file has been replaced, so the file reflects a single
    instant across all queries.
    """

    def __init__(
        self,
        registry: Registry,
        store: StateStore,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.logger = logger or structlog.get_logger("meli_watch.snapshot")

    def snapshot(self) -> bool:
        """Persist all queries. Returns False if this cycle was skipped."""

        self.logger.info("snapshot_started", queries=len(self.registry))
        try:
            with ExitStack() as stack:
                views = [stack.enter_context(state.snapshot_view()) for state in self.registry.states()]
                document = StateDocument({view.endpoint: view.to_record() for view in views})
                payload = encode_document(document)
                self.store.write_bytes(payload)
        except (SnapshotError, OSError, ValueError) as exc:
            self.logger.error("snapshot_failed", path=str(self.store.path), error=str(exc))
            return False
        self.logger.info("snapshot_written", path=str(self.store.path), size=len(payload))
        return True


__all__ = ["SnapshotManager"]
