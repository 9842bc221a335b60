from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass

from app.store.device_storage import DeviceStorage


logger = logging.getLogger(__name__)

SESSION_KEY = 'ctms_session'


@dataclass
class SessionState:
    """The signed-in account, passed explicitly to everything that needs it."""

    uid: str
    email: str = ''
    id_token: str = ''
    refresh_token: str = ''
    fees_unlocked: bool = False


class SessionStore:
    """Persists the session only at sign-in, sign-out and shutdown; restored at start-up."""

    def __init__(self, storage: DeviceStorage) -> None:
        self._storage = storage

    def load(self) -> SessionState | None:
        raw = self._storage.get_item(SESSION_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
            session = SessionState(
                uid=str(data.get('uid') or ''),
                email=str(data.get('email') or ''),
                id_token=str(data.get('id_token') or ''),
                refresh_token=str(data.get('refresh_token') or ''),
                fees_unlocked=bool(data.get('fees_unlocked')),
            )
        except (TypeError, ValueError, AttributeError):
            logger.warning('session_restore_failed reason=corrupt')
            return None
        return session if session.uid else None

    def save(self, session: SessionState) -> None:
        self._storage.set_item(SESSION_KEY, json.dumps(asdict(session)))

    def clear(self) -> None:
        self._storage.remove_item(SESSION_KEY)
