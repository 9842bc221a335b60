from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from fastapi import Depends, HTTPException
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.db import SessionLocal
from app.services.auth_service import AuthenticationError, AuthProviderUnavailableError, refresh_id_token
from app.services.migration_service import run_startup_migration
from app.services.session_service import SessionState, SessionStore
from app.services.transport_repository import TransportRepository
from app.store.device_storage import DeviceStorage
from app.store.errors import StoreError
from app.store.remote import RemoteStore, build_remote_store
from app.sync.connectivity import ConnectivityMonitor
from app.sync.sync_service import SyncService
from app.sync.write_queue import WriteQueue


logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Process-wide wiring: device storage, remote store, queue and the signed-in session."""

    storage: DeviceStorage
    remote: RemoteStore
    queue: WriteQueue
    monitor: ConnectivityMonitor
    sync: SyncService
    sessions: SessionStore
    session: SessionState | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def id_token(self) -> str | None:
        return self.session.id_token if self.session and self.session.id_token else None

    def repository(self) -> TransportRepository:
        return TransportRepository(self.sync, self.storage, self.session)

    def restore_session(self) -> SessionState | None:
        with self._lock:
            self.session = self.sessions.load()
        if self.session:
            logger.info('session_restored account=%s', self.session.uid)
        return self.session

    def start_session(self, session: SessionState) -> dict[str, Any]:
        with self._lock:
            self.session = session
            self.sessions.save(session)
        return self.prepare_account()

    def prepare_account(self) -> dict[str, Any]:
        """Migration, namespace placeholders and queue replay for the current account."""
        if self.session is None:
            return {'ready': False}
        migration = run_startup_migration(self.remote, self.storage, self.session)
        repo = self.repository()
        try:
            namespace_ready = repo.ensure_namespace()
        except StoreError as exc:
            logger.warning('namespace_prepare_failed account=%s error=%s', self.session.uid, exc)
            namespace_ready = False
        flush = self.sync.flush()
        return {'ready': True, 'migration': migration, 'namespace_ready': namespace_ready, 'flush': flush.as_dict()}

    def refresh_session(self) -> bool:
        """Swap the session id token for a fresh one before it expires."""
        current = self.session
        if current is None or not current.refresh_token:
            return False
        try:
            refreshed = refresh_id_token(current)
        except (AuthenticationError, AuthProviderUnavailableError) as exc:
            logger.warning('session_refresh_failed account=%s error=%s', current.uid, exc)
            return False
        with self._lock:
            if self.session is not current:
                return False
            self.session = refreshed
            self.sessions.save(refreshed)
        return True

    def end_session(self) -> None:
        with self._lock:
            previous = self.session
            self.session = None
            self.sessions.clear()
        if previous:
            logger.info('session_ended account=%s', previous.uid)

    def shutdown(self) -> None:
        with self._lock:
            if self.session is not None:
                self.sessions.save(self.session)
        self.remote.close()


def build_context(session_factory: sessionmaker = SessionLocal, *, remote: RemoteStore | None = None) -> AppContext:
    storage = DeviceStorage(session_factory)
    holder: dict[str, AppContext] = {}

    def _token() -> str | None:
        ctx = holder.get('ctx')
        return ctx.id_token() if ctx else None

    store = remote or build_remote_store(
        settings.remote_backend,
        database_url=settings.firebase_database_url,
        auth_token_provider=_token,
        timeout=settings.remote_timeout_seconds,
    )
    queue = WriteQueue(storage, max_attempts=settings.write_queue_max_attempts)
    monitor = ConnectivityMonitor()
    ctx = AppContext(
        storage=storage,
        remote=store,
        queue=queue,
        monitor=monitor,
        sync=SyncService(store, queue, monitor),
        sessions=SessionStore(storage),
    )
    holder['ctx'] = ctx
    return ctx


_context: AppContext | None = None
_context_lock = threading.Lock()


def get_context() -> AppContext:
    global _context
    with _context_lock:
        if _context is None:
            _context = build_context()
        return _context


def set_context(ctx: AppContext | None) -> None:
    global _context
    with _context_lock:
        _context = ctx


def require_session(ctx: AppContext = Depends(get_context)) -> SessionState:
    if ctx.session is None or not ctx.session.uid:
        raise HTTPException(status_code=401, detail='Sign in required')
    return ctx.session


def get_repository(ctx: AppContext = Depends(get_context), _: SessionState = Depends(require_session)) -> TransportRepository:
    return ctx.repository()
