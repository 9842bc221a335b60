from __future__ import annotations

import logging
from typing import Any, Callable

from app.store.errors import StoreError, StoreOfflineError
from app.store.remote import RemoteStore
from app.sync.connectivity import ConnectivityMonitor
from app.sync.write_queue import FlushResult, QueuedOperation, WriteQueue


logger = logging.getLogger(__name__)


class SyncService:
    """Routes every remote call through the connectivity monitor and the write queue."""

    def __init__(self, remote: RemoteStore, queue: WriteQueue, monitor: ConnectivityMonitor | None = None) -> None:
        self.remote = remote
        self.queue = queue
        self.monitor = monitor or ConnectivityMonitor()
        self.monitor.on_reconnect(self.flush)

    def read(self, path: str) -> Any:
        if len(self.queue):
            self.flush(count_attempts=False)
        try:
            value = self.remote.get(path)
        except StoreOfflineError:
            self.monitor.mark_offline()
            raise
        self.monitor.mark_online()
        return value

    def write(self, operation: QueuedOperation) -> bool:
        """Apply a mutation, queueing it when the store is unreachable.

        Returns True when the mutation is pending in the queue. While anything is still
        queued after the replay attempt, the new mutation waits behind it. Any other store
        error propagates to the caller unqueued.
        """
        if len(self.queue):
            result = self.flush(count_attempts=False)
            if result.stalled or result.skipped or result.remaining:
                self.queue.enqueue(operation)
                return True
        try:
            operation.apply(self.remote)
        except StoreOfflineError:
            self.monitor.mark_offline()
            self.queue.enqueue(operation)
            return True
        self.monitor.mark_online()
        return False

    def flush(self, *, count_attempts: bool = True) -> FlushResult:
        """Replay the queue.

        Reconnects, sign-in, the scheduler and explicit requests count as retries of
        rejected operations; the replays in front of reads and writes do not.
        """
        result = self.queue.flush(self.remote, count_attempts=count_attempts)
        if result.stalled:
            self.monitor.mark_offline()
        elif result.replayed:
            self.monitor.mark_online()
        return result

    def probe(self) -> bool:
        try:
            self.remote.ping()
        except StoreOfflineError:
            self.monitor.mark_offline()
            return False
        except StoreError as exc:
            # The store answered, so it is reachable.
            logger.warning('connectivity_probe_rejected error=%s', exc)
        if not self.monitor.mark_online() and len(self.queue):
            self.flush()
        return True

    def subscribe(self, path: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        return self.remote.subscribe(path, callback)

    def status(self) -> dict[str, Any]:
        return {
            'online': self.monitor.is_online,
            'pending_operations': len(self.queue),
            'dead_letters': len(self.queue.dead_letters()),
        }
