from __future__ import annotations

import json
import logging

from app.services.session_service import SessionState
from app.store.device_storage import DeviceStorage


logger = logging.getLogger(__name__)

FEES_AUTH_KEY = 'ctms_fees_auth'

MODE_SETUP = 'setup'
MODE_LOGIN = 'login'


class FeesGateError(ValueError):
    pass


class FeesGateService:
    """Local username/password gate in front of the fees screens.

    Credentials stay on this device and are stored as entered (see DESIGN.md).
    The unlocked flag lives on the session, so signing out locks the gate again.
    """

    def __init__(self, storage: DeviceStorage) -> None:
        self._storage = storage

    def _saved(self) -> dict[str, str] | None:
        raw = self._storage.get_item(FEES_AUTH_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning('fees_gate_credentials_corrupt')
            return None
        return data if isinstance(data, dict) else None

    def _store(self, username: str, password: str, recovery_code: str) -> None:
        self._storage.set_item(
            FEES_AUTH_KEY,
            json.dumps({'username': username, 'password': password, 'recoveryCode': recovery_code}),
        )

    def mode(self) -> str:
        return MODE_LOGIN if self._saved() else MODE_SETUP

    def status(self, session: SessionState) -> dict[str, object]:
        return {'mode': self.mode(), 'unlocked': bool(session.fees_unlocked)}

    def setup(self, username: str, password: str, confirm_password: str, recovery_code: str) -> str:
        if not username.strip() or not password or not recovery_code.strip():
            raise FeesGateError('All fields are required.')
        if password != confirm_password:
            raise FeesGateError('Password and confirm password do not match.')
        self._store(username.strip(), password, recovery_code.strip())
        logger.info('fees_gate_setup')
        return 'Account created. Please login.'

    def login(self, session: SessionState, username: str, password: str) -> None:
        saved = self._saved()
        if saved is None:
            raise FeesGateError('No account found. Please create one first.')
        if saved.get('username') != username or saved.get('password') != password:
            logger.warning('fees_gate_login_rejected account=%s', session.uid)
            raise FeesGateError('Invalid username or password.')
        session.fees_unlocked = True

    def reset(self, recovery_code: str, username: str, password: str, confirm_password: str) -> str:
        saved = self._saved()
        if saved is None:
            raise FeesGateError('No account found. Please create one first.')
        if saved.get('recoveryCode') != recovery_code.strip():
            raise FeesGateError('Invalid recovery code.')
        if not username.strip() or not password:
            raise FeesGateError('New username and password are required.')
        if password != confirm_password:
            raise FeesGateError('Password and confirm password do not match.')
        self._store(username.strip(), password, saved.get('recoveryCode') or '')
        logger.info('fees_gate_reset')
        return 'Credentials reset. Please login.'

    @staticmethod
    def logout(session: SessionState) -> None:
        session.fees_unlocked = False
