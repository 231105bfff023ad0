"""
Offline event manager.

Durably queues recognised events and workout sessions, then pushes them to
the remote endpoints when connectivity allows:

  - sessions sync before events; an event goes out only once its session
    has a backend id
  - failed entries stay queued with a retry count and are dropped (and
    reported) after `max_retries`
  - 409 answers move the entry to a conflict list for the caller to resolve
  - `sync_queue` is reentrancy-guarded: a second trigger while a sync runs
    returns immediately with reason "offline_or_syncing"
  - `schedule_sync` runs it as a background task so request handlers never
    wait on the remote endpoints
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
from pathlib import Path

from constants import (
    DATA_DIR,
    OFFLINE_MAX_QUEUE_SIZE,
    OFFLINE_MAX_RETRIES,
    OFFLINE_STORAGE_NAMESPACE,
    SYNC_INTERVAL_S,
    SYNC_MAX_BACKOFF_S,
)
from offline.compression import compress_event, decompress_event
from offline.errors import InvalidEventError, SessionNotSyncedError, SyncConflictError, SyncError
from offline.models import QueueEntry, SessionRecord, SyncReport, SyncTally
from offline.storage import OfflineStorage
from offline.sync_client import SyncClient

logger = logging.getLogger(__name__)


class OfflineEventManager:
    def __init__(
        self,
        client: SyncClient | None,
        storage: OfflineStorage | None = None,
        data_dir: str | Path = DATA_DIR,
        namespace: str = OFFLINE_STORAGE_NAMESPACE,
        max_queue_size: int = OFFLINE_MAX_QUEUE_SIZE,
        max_retries: int = OFFLINE_MAX_RETRIES,
        sync_interval: float = SYNC_INTERVAL_S,
        max_backoff: float = SYNC_MAX_BACKOFF_S,
        compression_enabled: bool = True,
    ):
        self.client = client
        self.storage = storage or OfflineStorage(data_dir, namespace)
        self.max_queue_size = max_queue_size
        self.max_retries = max_retries
        self.sync_interval = sync_interval
        self.max_backoff = max_backoff
        self.compression_enabled = compression_enabled

        self.is_online = False
        self.sync_in_progress = False
        self.retry_count = 0
        self._sync_task: asyncio.Task | None = None
        self._sync_run: asyncio.Task | None = None

        # In-memory session tier, seeded from the durable one
        self._sessions: dict[str, SessionRecord] = self.storage.load_sessions()
        if self._sessions:
            logger.info(f"Reloaded {len(self._sessions)} offline sessions")

    # === Queueing ===

    def queue_event(self, event: dict) -> str:
        """Persist an event for later sync. Raises InvalidEventError for malformed events."""
        if not isinstance(event, dict):
            raise InvalidEventError(f"Event must be a dict, got {type(event).__name__}")
        if not event.get("session_id"):
            raise InvalidEventError("Event has no session_id")
        if not (event.get("intent") or event.get("type")):
            raise InvalidEventError("Event has neither intent nor type")
        timestamp = event.get("timestamp")
        if timestamp is not None and (
            isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)) or not math.isfinite(timestamp)
        ):
            raise InvalidEventError(f"Event timestamp must be epoch seconds, got {timestamp!r}")
        if event.get("payload") is not None and not isinstance(event["payload"], dict):
            raise InvalidEventError(f"Event payload must be an object, got {type(event['payload']).__name__}")

        payload = {"timestamp": time.time(), **event}
        compressed, encoded = compress_event(payload, self.compression_enabled)
        entry = QueueEntry(
            id=f"offline_{uuid.uuid4().hex[:12]}",
            timestamp=time.time(),
            event=compressed,
            priority=event.get("priority", "normal"),
            compressed=encoded,
        )

        queue = self.storage.load_queue()
        queue.append(entry)
        if len(queue) > self.max_queue_size:
            queue = self._bound(queue)
        self.storage.save_queue(queue)

        logger.info(f"Queued event {entry.id} (queue size: {len(queue)})")
        return entry.id

    def _bound(self, queue: list[QueueEntry]) -> list[QueueEntry]:
        """Keep every high-priority entry and the newest of the rest."""
        high = [e for e in queue if e.priority == "high"]
        others = [e for e in queue if e.priority != "high"]
        room = max(self.max_queue_size - len(high), 0)
        kept = {e.id for e in others[len(others) - room:]} if room else set()
        bounded = [e for e in queue if e.priority == "high" or e.id in kept]
        logger.warning(f"Offline queue over {self.max_queue_size}, evicted {len(queue) - len(bounded)} entries")
        return bounded

    def queue_session(self, session: dict | SessionRecord) -> SessionRecord:
        """Cache a session until it is synced (flushed to disk on shutdown / backend id)."""
        if isinstance(session, SessionRecord):
            record = session
        else:
            if not session.get("id"):
                raise InvalidEventError("Session has no id")
            record = SessionRecord(
                id=str(session["id"]),
                type=session.get("type", "workout"),
                start_time=float(session.get("start_time", time.time())),
                metadata=dict(session.get("metadata") or {}),
            )
        record.synced = False
        record.queued_at = time.time()
        self._sessions[record.id] = record
        logger.info(f"Queued session {record.id}")
        return record

    def get_session(self, session_id: str) -> SessionRecord | None:
        return self._sessions.get(session_id)

    def abandon_event(self, entry_id: str) -> bool:
        """Remove a not-yet-sent entry. Nothing outside this process has seen it."""
        queue = self.storage.load_queue()
        remaining = [e for e in queue if e.id != entry_id]
        if len(remaining) == len(queue):
            return False
        self.storage.save_queue(remaining)
        logger.info(f"Abandoned event {entry_id}")
        return True

    def pending_events(self) -> list[QueueEntry]:
        return self.storage.load_queue()

    def has_pending(self) -> bool:
        return bool(self.storage.load_queue()) or any(not s.synced for s in self._sessions.values())

    # === Sync ===

    async def sync_queue(self) -> SyncReport:
        if not self.is_online or self.sync_in_progress:
            return SyncReport(success=False, reason="offline_or_syncing", retry_count=self.retry_count)
        if self.client is None:
            return SyncReport(success=False, reason="no_sync_client", retry_count=self.retry_count)

        self.sync_in_progress = True
        try:
            sessions, events = SyncTally(), SyncTally()
            await self._sync_sessions(sessions)
            await self._sync_events(events)

            if sessions.failed or events.failed or events.retrying:
                self.retry_count += 1
            else:
                self.retry_count = 0
            logger.info(
                f"Sync completed: sessions {sessions.synced} ok/{sessions.failed} failed, "
                f"events {events.synced} ok/{events.retrying} retrying/{events.failed} dropped/"
                f"{events.conflicts} conflicts"
            )
            return SyncReport(success=True, retry_count=self.retry_count, sessions=sessions, events=events)
        except OSError as e:
            self.retry_count += 1
            logger.error(f"Sync failed: {e}")
            return SyncReport(success=False, error=str(e), retry_count=self.retry_count)
        finally:
            self.sync_in_progress = False

    def schedule_sync(self) -> asyncio.Task | None:
        """Start `sync_queue` in the background; joins the run already in flight, if any."""
        if not self.is_online or self.client is None:
            return None
        if self._sync_run is None or self._sync_run.done():
            self._sync_run = asyncio.get_running_loop().create_task(self.sync_queue())
            self._sync_run.add_done_callback(self._sync_run_done)
        return self._sync_run

    def _sync_run_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background sync failed: {error!r}")

    async def wait_for_sync(self) -> SyncReport | None:
        """Wait for the background sync started by `schedule_sync`."""
        task = self._sync_run
        if task is None:
            return None
        await asyncio.wait({task})
        return None if task.cancelled() else task.result()

    async def _sync_sessions(self, tally: SyncTally) -> None:
        for record in [s for s in self._sessions.values() if not s.synced]:
            try:
                backend_id = await self.client.create_session(record)
            except SyncError as e:
                logger.error(f"Failed to sync session {record.id}: {e}")
                tally.failed += 1
                tally.errors.append({"session_id": record.id, "error": str(e)})
                continue
            record.backend_id = backend_id
            record.synced = True
            # Write through: the id must survive a crash before the events go out
            self.flush_sessions()
            tally.synced += 1

    async def _sync_events(self, tally: SyncTally) -> None:
        snapshot = self.storage.load_queue()
        removed: set[str] = set()
        updated: dict[str, QueueEntry] = {}
        conflicts: list[QueueEntry] = []

        for entry in snapshot:
            try:
                event = decompress_event(entry.event, entry.compressed)
                session = self._sessions.get(event.get("session_id"))
                if session is None or not session.backend_id:
                    raise SessionNotSyncedError(f"Session {event.get('session_id')} not found or not synced")
                await self.client.create_event(event, session.backend_id)
            except SyncConflictError as e:
                entry.last_error = str(e)
                conflicts.append(entry)
                removed.add(entry.id)
                tally.conflicts += 1
                tally.errors.append({"event_id": entry.id, "error": str(e), "conflict": True})
                logger.warning(f"Event {entry.id} conflicts with server state; moved to conflicts")
                continue
            except SyncError as e:
                entry.retries += 1
                entry.last_error = str(e)
                if entry.retries >= self.max_retries:
                    removed.add(entry.id)
                    tally.failed += 1
                    tally.errors.append({"event_id": entry.id, "error": str(e), "permanent": True})
                    logger.warning(f"Event {entry.id} exceeded max retries, removing from queue")
                else:
                    updated[entry.id] = entry
                    tally.retrying += 1
                    logger.error(f"Failed to sync event {entry.id} ({entry.retries}/{self.max_retries}): {e}")
                continue
            except Exception as e:
                # Malformed entry: dropped, the rest of the queue carries on
                entry.last_error = str(e)
                removed.add(entry.id)
                tally.failed += 1
                tally.errors.append({"event_id": entry.id, "error": str(e), "permanent": True})
                logger.exception(f"Event {entry.id} cannot be synced, removing from queue")
                continue
            removed.add(entry.id)
            tally.synced += 1

        # Re-read: entries may have been queued or abandoned while requests were in flight
        current = self.storage.load_queue()
        self.storage.save_queue([updated.get(e.id, e) for e in current if e.id not in removed])
        if conflicts:
            self.storage.save_conflicts(self.storage.load_conflicts() + conflicts)

    # === Conflicts ===

    def get_conflicts(self) -> list[dict]:
        return [
            {**entry.to_dict(), "event": decompress_event(entry.event, entry.compressed)}
            for entry in self.storage.load_conflicts()
        ]

    def resolve_conflict(self, entry_id: str, action: str) -> bool:
        """'retry' puts the entry back in the queue with a fresh retry budget; 'discard' drops it."""
        if action not in ("retry", "discard"):
            raise ValueError(f"Unknown conflict action '{action}'")
        conflicts = self.storage.load_conflicts()
        entry = next((e for e in conflicts if e.id == entry_id), None)
        if entry is None:
            return False
        self.storage.save_conflicts([e for e in conflicts if e.id != entry_id])
        if action == "retry":
            entry.retries = 0
            entry.last_error = None
            self.storage.save_queue(self.storage.load_queue() + [entry])
        logger.info(f"Conflict {entry_id} resolved: {action}")
        return True

    # === Connectivity ===

    async def set_online(self, online: bool) -> SyncReport | None:
        """ONLINE: immediate sync plus auto-sync. OFFLINE: auto-sync stops."""
        if online == self.is_online:
            return None
        self.is_online = online
        if online:
            logger.info("OfflineEventManager: Coming online")
            self.retry_count = 0
            self.start_auto_sync()
            return await self.sync_queue()
        logger.info("OfflineEventManager: Going offline")
        await self.stop_auto_sync()
        return None

    def next_sync_delay(self) -> float:
        return min(self.sync_interval * (2 ** self.retry_count), self.max_backoff)

    def start_auto_sync(self) -> None:
        if self._sync_task is None or self._sync_task.done():
            self._sync_task = asyncio.get_running_loop().create_task(self._auto_sync())

    async def stop_auto_sync(self) -> None:
        task, self._sync_task = self._sync_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def _auto_sync(self) -> None:
        while self.is_online:
            await asyncio.sleep(self.next_sync_delay())
            if not self.is_online or self.sync_in_progress or not self.has_pending():
                continue
            logger.info("OfflineEventManager: Auto-sync triggered")
            try:
                await self.sync_queue()
            except Exception:
                logger.exception("OfflineEventManager: Auto-sync round failed")

    # === Status / lifecycle ===

    def get_status(self) -> dict:
        return {
            "is_online": self.is_online,
            "sync_in_progress": self.sync_in_progress,
            "queued_events": len(self.storage.load_queue()),
            "unsynced_sessions": sum(1 for s in self._sessions.values() if not s.synced),
            "retry_count": self.retry_count,
            "conflicts": len(self.storage.load_conflicts()),
            "storage_used": self.storage.usage(),
        }

    def flush_sessions(self) -> None:
        """Merge the in-memory session cache into durable storage."""
        durable = self.storage.load_sessions()
        durable.update(self._sessions)
        self.storage.save_sessions(durable)

    def clear_offline_data(self) -> None:
        self.storage.clear()
        self._sessions.clear()
        logger.info("OfflineEventManager: All offline data cleared")

    async def shutdown(self) -> None:
        await self.stop_auto_sync()
        if self._sync_run is not None:
            await asyncio.gather(self._sync_run, return_exceptions=True)
            self._sync_run = None
        self.flush_sessions()
        if self.client is not None:
            self.client.close()
