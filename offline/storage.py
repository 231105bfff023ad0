"""
Durable JSON storage for the offline queue.

One file per record kind under the data directory:
    <namespace>_queue.json      pending events
    <namespace>_sessions.json   sessions (durable tier)
    <namespace>_conflicts.json  entries rejected with 409
Every write goes to a temp file first and is moved into place with os.replace.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from constants import OFFLINE_STORAGE_NAMESPACE
from offline.models import QueueEntry, SessionRecord

logger = logging.getLogger(__name__)


class OfflineStorage:
    def __init__(self, directory: str | Path, namespace: str = OFFLINE_STORAGE_NAMESPACE):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.namespace = namespace
        self.queue_path = self.directory / f"{namespace}_queue.json"
        self.sessions_path = self.directory / f"{namespace}_sessions.json"
        self.conflicts_path = self.directory / f"{namespace}_conflicts.json"

    def _read(self, path: Path, default):
        if not path.exists():
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            corrupt = path.with_name(path.name + ".corrupt")
            os.replace(path, corrupt)
            logger.error(f"Offline store {path.name} unreadable ({e}); moved to {corrupt.name}")
            return default

    def _write(self, path: Path, data) -> None:
        tmp = path.with_name(path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)

    # --- Queue ---

    def load_queue(self) -> list[QueueEntry]:
        return [QueueEntry.from_dict(d) for d in self._read(self.queue_path, [])]

    def save_queue(self, entries: list[QueueEntry]) -> None:
        self._write(self.queue_path, [e.to_dict() for e in entries])

    # --- Sessions ---

    def load_sessions(self) -> dict[str, SessionRecord]:
        raw = self._read(self.sessions_path, {})
        return {sid: SessionRecord.from_dict(d) for sid, d in raw.items()}

    def save_sessions(self, sessions: dict[str, SessionRecord]) -> None:
        self._write(self.sessions_path, {sid: s.to_dict() for sid, s in sessions.items()})

    # --- Conflicts ---

    def load_conflicts(self) -> list[QueueEntry]:
        return [QueueEntry.from_dict(d) for d in self._read(self.conflicts_path, [])]

    def save_conflicts(self, entries: list[QueueEntry]) -> None:
        self._write(self.conflicts_path, [e.to_dict() for e in entries])

    # --- Housekeeping ---

    def usage(self) -> dict:
        sizes = {
            "queue": self.queue_path.stat().st_size if self.queue_path.exists() else 0,
            "sessions": self.sessions_path.stat().st_size if self.sessions_path.exists() else 0,
            "conflicts": self.conflicts_path.stat().st_size if self.conflicts_path.exists() else 0,
        }
        sizes["total"] = sum(sizes.values())
        return sizes

    def clear(self) -> None:
        for path in (self.queue_path, self.sessions_path, self.conflicts_path):
            if path.exists():
                path.unlink()
