"""Records persisted by the offline queue."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field


@dataclass
class QueueEntry:
    id: str
    timestamp: float
    event: dict
    retries: int = 0
    priority: str = "normal"
    last_error: str | None = None
    compressed: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> QueueEntry:
        return cls(
            id=data["id"],
            timestamp=float(data["timestamp"]),
            event=dict(data.get("event") or {}),
            retries=int(data.get("retries", 0)),
            priority=data.get("priority", "normal"),
            last_error=data.get("last_error"),
            compressed=bool(data.get("compressed", False)),
        )


@dataclass
class SessionRecord:
    id: str
    type: str
    start_time: float
    metadata: dict = field(default_factory=dict)
    synced: bool = False
    backend_id: str | None = None
    queued_at: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> SessionRecord:
        return cls(
            id=data["id"],
            type=data.get("type", "workout"),
            start_time=float(data.get("start_time", 0.0)),
            metadata=dict(data.get("metadata") or {}),
            synced=bool(data.get("synced", False)),
            backend_id=data.get("backend_id"),
            queued_at=float(data.get("queued_at", 0.0)),
        )


@dataclass
class SyncTally:
    synced: int = 0
    failed: int = 0
    retrying: int = 0
    conflicts: int = 0
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SyncReport:
    success: bool
    reason: str | None = None
    error: str | None = None
    retry_count: int = 0
    sessions: SyncTally | None = None
    events: SyncTally | None = None

    def to_dict(self) -> dict:
        data = {"success": self.success, "retry_count": self.retry_count}
        if self.reason:
            data["reason"] = self.reason
        if self.error:
            data["error"] = self.error
        if self.sessions is not None and self.events is not None:
            data["results"] = {"sessions": self.sessions.to_dict(), "events": self.events.to_dict()}
        return data
