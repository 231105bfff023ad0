"""
HTTP client for the remote session/event endpoints.

    POST {base}/sessions  {sessionType, metadata}                          -> {id}
    POST {base}/events    {sessionId, intent, payload, transcript,
                           confidenceScore, timestamp}                      -> {id}

Blocking `requests` calls run in a worker thread; every failure class maps
to its own SyncError subclass.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import requests

from constants import SYNC_TIMEOUT_S
from offline.errors import (
    SyncConflictError,
    SyncHTTPError,
    SyncTimeoutError,
    SyncTransportError,
)
from offline.models import SessionRecord

logger = logging.getLogger(__name__)


def to_iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class SyncClient:
    def __init__(self, base_url: str, token: str | None = None, timeout: float = SYNC_TIMEOUT_S):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._session = requests.Session()

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def create_session(self, record: SessionRecord) -> str:
        body = {
            "sessionType": record.type,
            "metadata": {
                **record.metadata,
                "offlineQueued": True,
                "originalTimestamp": to_iso(record.start_time),
            },
        }
        result = await self._post("/sessions", body)
        return str(result["id"])

    async def create_event(self, event: dict, backend_session_id: str) -> str:
        timestamp = event.get("timestamp")
        body = {
            "sessionId": backend_session_id,
            "intent": event.get("intent") or event.get("type"),
            "payload": {
                **(event.get("payload") or {}),
                "offlineQueued": True,
                "originalTimestamp": to_iso(timestamp) if timestamp else None,
            },
            "transcript": event.get("transcript"),
            "confidenceScore": event.get("confidence"),
            "timestamp": to_iso(timestamp) if timestamp else None,
        }
        result = await self._post("/events", body)
        return str(result["id"])

    async def _post(self, path: str, body: dict) -> dict:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._post_sync, path, body),
                timeout=self.timeout + 1,
            )
        except asyncio.TimeoutError:
            raise SyncTimeoutError(f"POST {path} timed out after {self.timeout}s")

    def _post_sync(self, path: str, body: dict) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.post(url, json=body, headers=self._headers(), timeout=self.timeout)
        except requests.Timeout as e:
            raise SyncTimeoutError(f"POST {path} timed out: {e}")
        except requests.RequestException as e:
            raise SyncTransportError(f"POST {path} failed: {e}")

        if resp.status_code == 409:
            raise SyncConflictError(f"POST {path} conflict: {resp.text[:200]}")
        if not 200 <= resp.status_code < 300:
            logger.error(f"Sync endpoint {path} answered {resp.status_code}: {resp.text[:200]}")
            raise SyncHTTPError(f"Server responded with {resp.status_code}", status=resp.status_code)

        try:
            data = resp.json()
        except ValueError:
            raise SyncHTTPError(f"POST {path} returned invalid JSON", status=resp.status_code)
        if not isinstance(data, dict) or "id" not in data:
            raise SyncHTTPError(f"POST {path} response has no id", status=resp.status_code)
        return data

    def close(self) -> None:
        self._session.close()
