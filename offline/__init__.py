"""
RepVoice Offline Layer
Durable event/session queue and the sync protocol to the remote endpoints.
"""

from offline.connectivity import ConnectivityMonitor
from offline.errors import InvalidEventError, SyncConflictError, SyncError
from offline.manager import OfflineEventManager
from offline.models import QueueEntry, SessionRecord, SyncReport
from offline.storage import OfflineStorage
from offline.sync_client import SyncClient
