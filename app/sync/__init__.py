from app.sync.connectivity import ConnectivityMonitor
from app.sync.local_cache import LocalCache
from app.sync.sync_service import SyncService
from app.sync.write_queue import FlushResult, QueuedOperation, WriteQueue

__all__ = ['ConnectivityMonitor', 'FlushResult', 'LocalCache', 'QueuedOperation', 'SyncService', 'WriteQueue']
