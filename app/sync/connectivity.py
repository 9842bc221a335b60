from __future__ import annotations

import logging
import threading
from typing import Callable

from app.metrics import record_sync_event


logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Online/offline state as observed from remote store calls."""

    def __init__(self, online: bool = True) -> None:
        self._lock = threading.Lock()
        self._online = online
        self._listeners: list[Callable[[], object]] = []

    @property
    def is_online(self) -> bool:
        with self._lock:
            return self._online

    def on_reconnect(self, callback: Callable[[], object]) -> None:
        with self._lock:
            self._listeners.append(callback)

    def mark_offline(self) -> bool:
        with self._lock:
            changed = self._online
            self._online = False
        if changed:
            record_sync_event('store_offline')
            logger.warning('connectivity_lost')
        return changed

    def mark_online(self) -> bool:
        with self._lock:
            changed = not self._online
            self._online = True
            listeners = list(self._listeners) if changed else []
        if changed:
            record_sync_event('store_online')
            logger.info('connectivity_restored listeners=%s', len(listeners))
        for callback in listeners:
            try:
                callback()
            except Exception:
                logger.exception('connectivity_listener_failed')
        return changed
