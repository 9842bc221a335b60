from __future__ import annotations

import json
import logging
from typing import Any

from app.schemas import SCOPED_KINDS, EntityKind
from app.services.session_service import SessionState
from app.services.transport_repository import PLACEHOLDER_KEY, USERS_ROOT, has_real_entries
from app.store.device_storage import DeviceStorage
from app.store.errors import StoreError
from app.store.remote import RemoteStore


logger = logging.getLogger(__name__)

MIGRATED_KEY = 'ctms_firestore_migrated'

LEGACY_LOCAL_KEYS: dict[EntityKind, str] = {
    EntityKind.STUDENTS: 'ctms_students',
    EntityKind.ATTENDANCE: 'ctms_attendance',
    EntityKind.FEES: 'ctms_fees',
    EntityKind.VEHICLES: 'ctms_vehicles',
    EntityKind.ATTENTION: 'ctms_attention',
    EntityKind.DESTINATIONS: 'ctms_destinations',
}


def local_flag_key(uid: str) -> str:
    return f'{MIGRATED_KEY}_{uid}'


def root_flag_key(uid: str) -> str:
    return f'{MIGRATED_KEY}_root_{uid}'


def read_legacy_records(storage: DeviceStorage, key: str) -> list[dict[str, Any]]:
    raw = storage.get_item(key)
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning('migration_legacy_corrupt key=%s', key)
        return []
    if not isinstance(parsed, list):
        return []
    return [item for item in parsed if isinstance(item, dict)]


def _target_path(uid: str, kind: EntityKind) -> str:
    if kind == EntityKind.ATTENTION:
        return kind.value
    return f'{USERS_ROOT}/{uid}/{kind.value}'


class MigrationService:
    """Copies legacy data into the account namespace exactly once per account.

    Copy-if-destination-empty only: existing remote data is never overwritten and the
    legacy source is never deleted.
    """

    def __init__(self, remote: RemoteStore, storage: DeviceStorage) -> None:
        self._remote = remote
        self._storage = storage

    def user_has_any_data(self, uid: str) -> bool:
        return any(has_real_entries(self._remote.get(_target_path(uid, kind))) for kind in SCOPED_KINDS)

    def migrate_root_data_to_user(self, uid: str) -> int:
        updates: dict[str, Any] = {}
        for kind in SCOPED_KINDS:
            data = self._remote.get(kind.value)
            if not isinstance(data, dict):
                continue
            for record_id, value in data.items():
                if record_id == PLACEHOLDER_KEY:
                    continue
                updates[f'{_target_path(uid, kind)}/{record_id}'] = value
        if updates:
            self._remote.update('', updates)
        return len(updates)

    def migrate_local_collection(self, uid: str, kind: EntityKind) -> int:
        records = read_legacy_records(self._storage, LEGACY_LOCAL_KEYS[kind])
        if not records:
            return 0
        target = _target_path(uid, kind)
        if has_real_entries(self._remote.get(target)):
            logger.info('migration_local_skipped kind=%s reason=destination_not_empty', kind.value)
            return 0

        updates: dict[str, Any] = {}
        for record in records:
            if kind == EntityKind.DESTINATIONS:
                record_id = str(record.get('studentId') or '')
                value = dict(record)
            else:
                record_id = str(record.get('id') or '')
                value = {key: item for key, item in record.items() if key != 'id'}
            if record_id:
                updates[f'{target}/{record_id}'] = value
        if updates:
            self._remote.update('', updates)
        return len(updates)

    def run(self, session: SessionState) -> dict[str, Any]:
        uid = session.uid
        report: dict[str, Any] = {'root_copied': 0, 'local_copied': {}, 'ran': False}

        if self._storage.get_item(root_flag_key(uid)) != 'true':
            report['ran'] = True
            if not self.user_has_any_data(uid):
                try:
                    report['root_copied'] = self.migrate_root_data_to_user(uid)
                except StoreError as exc:
                    # Legacy root paths may be unreadable under per-user rules.
                    logger.warning('migration_root_failed account=%s error=%s', uid, exc)
            self._storage.set_item(root_flag_key(uid), 'true')

        if self._storage.get_item(local_flag_key(uid)) == 'true':
            return report

        report['ran'] = True
        for kind in LEGACY_LOCAL_KEYS:
            copied = self.migrate_local_collection(uid, kind)
            if copied:
                report['local_copied'][kind.value] = copied
        self._storage.set_item(local_flag_key(uid), 'true')
        logger.info('migration_done account=%s root_copied=%s local_copied=%s', uid, report['root_copied'], report['local_copied'])
        return report


def run_startup_migration(remote: RemoteStore, storage: DeviceStorage, session: SessionState | None) -> dict[str, Any]:
    if session is None or not session.uid:
        return {'ran': False, 'reason': 'no_session'}
    try:
        return MigrationService(remote, storage).run(session)
    except Exception as exc:
        logger.exception('migration_failed account=%s', session.uid)
        return {'ran': False, 'error': str(exc)}
