from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from app.core.fees import derive_payment_status
from app.core.push_ids import new_push_id
from app.core.time_provider import TimeProvider, default_time_provider
from app.core.vehicles import km_used
from app.metrics import record_sync_event, timed_service
from app.schemas import RECORD_MODELS, SCOPED_KINDS, EntityKind, StoreRecord
from app.services.errors import DuplicateFeeError, NotAuthenticatedError, RecordNotFoundError, RecordValidationError
from app.services.session_service import SessionState
from app.store.device_storage import DeviceStorage
from app.store.errors import StoreAccessError, StoreError, StoreOfflineError
from app.sync.local_cache import LocalCache
from app.sync.sync_service import SyncService
from app.sync.write_queue import QueuedOperation


logger = logging.getLogger(__name__)

PLACEHOLDER_KEY = '__placeholder'
USERS_ROOT = 'users'
ATTENDANCE_STATUSES = ('Present', 'Absent')

_CREATED_AT_KINDS = (EntityKind.STUDENTS, EntityKind.FEES, EntityKind.VEHICLES)


def records_from_snapshot(kind: EntityKind, snapshot: Any) -> list[dict[str, Any]]:
    """Turn a collection snapshot into records with their key attached as ``id``."""
    if not isinstance(snapshot, dict):
        return []
    records = []
    for key, value in snapshot.items():
        if key == PLACEHOLDER_KEY or not isinstance(value, dict):
            continue
        record = dict(value)
        if kind == EntityKind.DESTINATIONS:
            record.setdefault('studentId', key)
        record['id'] = key
        records.append(record)
    return records


def has_real_entries(snapshot: Any) -> bool:
    return isinstance(snapshot, dict) and any(key != PLACEHOLDER_KEY for key in snapshot)


class TransportRepository:
    """Domain operations translated into store paths under the signed-in account.

    Every scoped path is ``users/<uid>/<collection>/<id>``; attention messages are global
    and live under ``attention/<id>``. Mutations that cannot reach the store are queued and
    reflected in the local cache right away.
    """

    def __init__(
        self,
        sync: SyncService,
        storage: DeviceStorage,
        session: SessionState | None,
        *,
        time_provider: TimeProvider = default_time_provider,
        id_factory: Callable[[], str] = new_push_id,
    ) -> None:
        self._sync = sync
        self._session = session
        self._time_provider = time_provider
        self._id_factory = id_factory
        self._global_cache = LocalCache(storage)
        self._scoped_cache = LocalCache(storage, namespace=session.uid) if session and session.uid else None

    @property
    def account_id(self) -> str:
        uid = self._session.uid if self._session else ''
        if not uid:
            raise NotAuthenticatedError('Sign in required')
        return uid

    def today(self) -> date:
        return self._time_provider.today()

    def today_iso(self) -> str:
        return self._time_provider.today_iso()

    def user_root(self) -> str:
        return f'{USERS_ROOT}/{self.account_id}'

    def collection_path(self, kind: EntityKind) -> str:
        if kind == EntityKind.ATTENTION:
            return kind.value
        return f'{self.user_root()}/{kind.value}'

    def record_path(self, kind: EntityKind, record_id: str) -> str:
        if not record_id:
            raise RecordValidationError('Record id is required.')
        return f'{self.collection_path(kind)}/{record_id}'

    def cache_for(self, kind: EntityKind) -> LocalCache:
        if kind == EntityKind.ATTENTION:
            return self._global_cache
        if self._scoped_cache is None:
            raise NotAuthenticatedError('Sign in required')
        return self._scoped_cache

    # Reads

    @timed_service('repository_list')
    def list_raw(self, kind: EntityKind) -> list[dict[str, Any]]:
        path = self.collection_path(kind)
        cache = self.cache_for(kind)
        try:
            snapshot = self._sync.read(path)
        except StoreAccessError:
            raise
        except StoreError as exc:
            record_sync_event('cache_fallback')
            logger.warning('repository_cache_fallback kind=%s error=%s', kind.value, exc)
            return cache.read(kind.value)
        records = records_from_snapshot(kind, snapshot)
        cache.write(kind.value, records)
        return records

    def list(self, kind: EntityKind) -> list[StoreRecord]:
        model = RECORD_MODELS[kind]
        parsed = []
        for record in self.list_raw(kind):
            try:
                parsed.append(model.model_validate(record))
            except ValidationError as exc:
                logger.warning('repository_skip_invalid kind=%s id=%s errors=%s', kind.value, record.get('id'), exc.error_count())
        return parsed

    def get_raw(self, kind: EntityKind, record_id: str) -> dict[str, Any] | None:
        path = self.record_path(kind, record_id)
        try:
            value = self._sync.read(path)
        except StoreAccessError:
            raise
        except StoreError:
            record_sync_event('cache_fallback')
            cached = [item for item in self.cache_for(kind).read(kind.value) if str(item.get('id')) == str(record_id)]
            return cached[0] if cached else None
        if not isinstance(value, dict):
            return None
        record = dict(value)
        if kind == EntityKind.DESTINATIONS:
            record.setdefault('studentId', record_id)
        record['id'] = record_id
        return record

    def get(self, kind: EntityKind, record_id: str) -> StoreRecord:
        record = self.get_raw(kind, record_id)
        if record is None:
            raise RecordNotFoundError(f'{kind.value} record not found')
        return RECORD_MODELS[kind].model_validate(record)

    # Writes

    @staticmethod
    def _store_dict(payload: StoreRecord | Mapping[str, Any]) -> dict[str, Any]:
        if isinstance(payload, StoreRecord):
            data = payload.to_store()
        else:
            data = dict(payload)
        data.pop('id', None)
        return data

    def _write(self, kind: EntityKind, operation: QueuedOperation, cache_change: Callable[[LocalCache], object]) -> bool:
        pending = self._sync.write(operation)
        cache_change(self.cache_for(kind))
        logger.info('repository_write kind=%s op=%s path=%s pending=%s', kind.value, operation.op, operation.path, pending)
        return pending

    def _reject_duplicate_fee(self, data: dict[str, Any]) -> None:
        for existing in self.list_raw(EntityKind.FEES):
            if (
                existing.get('studentId') == data.get('studentId')
                and existing.get('feeType') == data.get('feeType')
                and existing.get('feeDate') == data.get('feeDate')
            ):
                raise DuplicateFeeError('A fee record already exists for this student on this date.')

    @staticmethod
    def _derived_fields(kind: EntityKind, merged: dict[str, Any]) -> dict[str, Any]:
        if kind == EntityKind.FEES:
            return {'status': derive_payment_status(merged.get('totalAmount') or 0, merged.get('paidAmount') or 0)}
        if kind == EntityKind.VEHICLES:
            return {'kmCalculation': km_used(merged.get('dieselKMReading'), merged.get('previousDieselKM'))}
        return {}

    def add(self, kind: EntityKind, payload: StoreRecord | Mapping[str, Any]) -> dict[str, Any]:
        data = self._store_dict(payload)
        if kind == EntityKind.DESTINATIONS:
            record_id = str(data.get('studentId') or '')
            if not record_id:
                raise RecordValidationError('Destination requires a student.')
        else:
            record_id = self._id_factory()

        if kind in _CREATED_AT_KINDS and not data.get('createdAt'):
            data['createdAt'] = self._time_provider.today_iso()
        if kind == EntityKind.FEES:
            self._reject_duplicate_fee(data)
        data.update(self._derived_fields(kind, data))

        record = {**data, 'id': record_id}
        pending = self._write(
            kind,
            QueuedOperation.set(self.record_path(kind, record_id), data),
            lambda cache: cache.upsert(kind.value, record),
        )
        return {'id': record_id, 'pending': pending, 'record': record}

    def update(self, kind: EntityKind, record_id: str, partial: StoreRecord | Mapping[str, Any]) -> dict[str, Any]:
        data = self._store_dict(partial)
        if kind == EntityKind.DESTINATIONS:
            data.pop('studentId', None)
        if kind in (EntityKind.FEES, EntityKind.VEHICLES):
            existing = self.get_raw(kind, record_id)
            if existing is None:
                raise RecordNotFoundError(f'{kind.value} record not found')
            data.update(self._derived_fields(kind, {**existing, **data}))
        if not data:
            return {'id': record_id, 'pending': False}

        pending = self._write(
            kind,
            QueuedOperation.update(self.record_path(kind, record_id), data),
            lambda cache: cache.upsert(kind.value, {**data, 'id': record_id}, insert_missing=False),
        )
        return {'id': record_id, 'pending': pending}

    def remove(self, kind: EntityKind, record_id: str) -> dict[str, Any]:
        if kind == EntityKind.STUDENTS:
            return self._remove_student(record_id)
        pending = self._write(
            kind,
            QueuedOperation.remove(self.record_path(kind, record_id)),
            lambda cache: cache.evict(kind.value, lambda item: str(item.get('id')) == str(record_id)),
        )
        return {'id': record_id, 'pending': pending}

    def _remove_student(self, student_id: str) -> dict[str, Any]:
        if not student_id:
            raise RecordValidationError('Record id is required.')
        fee_ids = [item['id'] for item in self.list_raw(EntityKind.FEES) if item.get('studentId') == student_id]
        attendance_ids = [item['id'] for item in self.list_raw(EntityKind.ATTENDANCE) if item.get('studentId') == student_id]

        updates: dict[str, Any] = {
            f'{EntityKind.STUDENTS.value}/{student_id}': None,
            f'{EntityKind.DESTINATIONS.value}/{student_id}': None,
        }
        for fee_id in fee_ids:
            updates[f'{EntityKind.FEES.value}/{fee_id}'] = None
        for attendance_id in attendance_ids:
            updates[f'{EntityKind.ATTENDANCE.value}/{attendance_id}'] = None

        pending = self._sync.write(QueuedOperation.update(self.user_root(), updates))

        cache = self.cache_for(EntityKind.STUDENTS)
        cache.evict(EntityKind.STUDENTS.value, lambda item: item.get('id') == student_id)
        cache.evict(
            EntityKind.DESTINATIONS.value,
            lambda item: item.get('id') == student_id or item.get('studentId') == student_id,
        )
        cache.evict(EntityKind.FEES.value, lambda item: item.get('studentId') == student_id)
        cache.evict(EntityKind.ATTENDANCE.value, lambda item: item.get('studentId') == student_id)
        logger.info(
            'repository_student_cascade id=%s fees=%s attendance=%s pending=%s',
            student_id,
            len(fee_ids),
            len(attendance_ids),
            pending,
        )
        return {
            'id': student_id,
            'pending': pending,
            'removed': {'fees': len(fee_ids), 'attendance': len(attendance_ids)},
        }

    # Attendance

    def batch_set_attendance(self, on_date: str, status_by_student: Mapping[str, str]) -> dict[str, Any]:
        """Replace the whole attendance sheet of ``on_date`` in one multi-path update."""
        if not on_date:
            raise RecordValidationError('Attendance date is required.')
        for student_id, status in status_by_student.items():
            if status not in ATTENDANCE_STATUSES:
                raise RecordValidationError(f'Invalid attendance status for {student_id}: {status}')

        stale_ids = [item['id'] for item in self.list_raw(EntityKind.ATTENDANCE) if item.get('date') == on_date]
        updates: dict[str, Any] = {record_id: None for record_id in stale_ids}
        fresh: list[dict[str, Any]] = []
        for student_id, status in status_by_student.items():
            record_id = self._id_factory()
            row = {'studentId': student_id, 'date': on_date, 'status': status}
            updates[record_id] = row
            fresh.append({**row, 'id': record_id})

        if not updates:
            return {'date': on_date, 'saved': 0, 'replaced': 0, 'pending': False}

        pending = self._sync.write(QueuedOperation.update(self.collection_path(EntityKind.ATTENDANCE), updates))
        cache = self.cache_for(EntityKind.ATTENDANCE)
        kept = [item for item in cache.read(EntityKind.ATTENDANCE.value) if item.get('date') != on_date]
        cache.write(EntityKind.ATTENDANCE.value, kept + fresh)
        logger.info('repository_attendance_batch date=%s saved=%s replaced=%s pending=%s', on_date, len(fresh), len(stale_ids), pending)
        return {'date': on_date, 'saved': len(fresh), 'replaced': len(stale_ids), 'pending': pending}

    def mark_attendance(self, student_id: str, on_date: str, status: str) -> dict[str, Any]:
        if status not in ATTENDANCE_STATUSES:
            raise RecordValidationError(f'Invalid attendance status: {status}')
        for item in self.list_raw(EntityKind.ATTENDANCE):
            if item.get('studentId') == student_id and item.get('date') == on_date:
                return self.update(EntityKind.ATTENDANCE, item['id'], {'status': status})
        return self.add(EntityKind.ATTENDANCE, {'studentId': student_id, 'date': on_date, 'status': status})

    # Namespace upkeep

    def ensure_namespace(self) -> bool:
        """Write the placeholder into every scoped collection that does not exist yet."""
        try:
            for kind in SCOPED_KINDS:
                path = self.collection_path(kind)
                if self._sync.read(path) is None:
                    self._sync.write(QueuedOperation.set(f'{path}/{PLACEHOLDER_KEY}', True))
        except StoreOfflineError:
            logger.warning('repository_ensure_namespace_offline account=%s', self.account_id)
            return False
        return True

    def watch(self, kind: EntityKind, callback: Callable[[list[dict[str, Any]]], object] | None = None) -> Callable[[], None]:
        cache = self.cache_for(kind)

        def _on_snapshot(snapshot: Any) -> None:
            records = records_from_snapshot(kind, snapshot)
            cache.write(kind.value, records)
            if callback is not None:
                callback(records)

        return self._sync.subscribe(self.collection_path(kind), _on_snapshot)
