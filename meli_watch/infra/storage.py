"""State file persistence with atomic replacement."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from ..models import StateDocument
from ..errors import SnapshotError, StateLoadError


def encode_document(document: StateDocument) -> bytes:
    """Serialise a state document deterministically."""

    payload = document.model_dump(mode="json")
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=1).encode("utf-8")


class StateStore:
    """Read and atomically rewrite the JSON state file.

    Writes go to a temporary file in the same directory which is flushed,
    fsynced and then renamed over the canonical path, so readers only ever
    see the previous or the next complete file.
    """

    TEMP_SUFFIX = ".tmp"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> StateDocument:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError as exc:
            raise StateLoadError(f"State file not found: {self.path}") from exc
        except OSError as exc:
            raise StateLoadError(f"Could not read state file {self.path}: {exc}") from exc
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StateLoadError(f"State file is not valid JSON: {self.path}") from exc
        try:
            return StateDocument.model_validate(payload)
        except ValidationError as exc:
            raise StateLoadError(f"State file failed validation: {self.path}\n{exc}") from exc

    def save(self, document: StateDocument) -> Path:
        return self.write_bytes(encode_document(document))

    def write_bytes(self, payload: bytes) -> Path:
        temp_path = self.write_temp(payload)
        self.commit(temp_path)
        return self.path

    def write_temp(self, payload: bytes) -> Path:
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=self.TEMP_SUFFIX, dir=directory
            )
        except OSError as exc:
            raise SnapshotError(f"Could not create temporary state file in {directory}: {exc}") from exc
        temp_path = Path(name)
        try:
            with os.fdopen(fd, "wb") as stream:
                stream.write(payload)
                stream.flush()
                os.fsync(stream.fileno())
        except OSError as exc:
            self._discard(temp_path)
            raise SnapshotError(f"Could not write temporary state file {temp_path}: {exc}") from exc
        return temp_path

    def commit(self, temp_path: Path) -> None:
        try:
            os.replace(temp_path, self.path)
        except OSError as exc:
            self._discard(temp_path)
            raise SnapshotError(f"Could not replace {self.path}: {exc}") from exc

    @staticmethod
    def _discard(temp_path: Path) -> None:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass


__all__ = ["StateStore", "encode_document"]
