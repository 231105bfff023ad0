"""
Offline queue / sync exceptions.

Sync errors carry `retryable`: the manager keeps retryable entries queued,
moves conflicts aside and never retries contract errors.
"""

from __future__ import annotations


class OfflineError(Exception):
    """Base class for offline storage and sync errors."""


class InvalidEventError(OfflineError, ValueError):
    """Malformed event handed to the queue (missing session id or intent)."""


class SyncError(OfflineError):
    retryable = True

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class SyncTimeoutError(SyncError):
    """The remote endpoint did not answer within the configured bound."""


class SyncTransportError(SyncError):
    """Connection refused, DNS failure, TLS error..."""


class SyncHTTPError(SyncError):
    """Non-2xx answer other than 409."""


class SyncConflictError(SyncError):
    """HTTP 409: server-side state diverged. Needs a decision above this layer."""

    retryable = False

    def __init__(self, message: str):
        super().__init__(message, status=409)


class SessionNotSyncedError(SyncError):
    """The event's session has no backend id yet."""
