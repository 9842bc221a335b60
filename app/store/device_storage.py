from __future__ import annotations

import logging
import threading

from sqlalchemy.orm import Session, sessionmaker

from app.core.time_provider import utc_now
from app.models import DeviceStorageItem


logger = logging.getLogger(__name__)


class DeviceStorage:
    """Synchronous string key/value storage kept on the local device.

    Missing keys read as ``None``; the table may be cleared externally at any time.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self._lock = threading.Lock()

    def get_item(self, key: str) -> str | None:
        db: Session = self._session_factory()
        try:
            row = db.get(DeviceStorageItem, key)
            return row.value if row else None
        finally:
            db.close()

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            db: Session = self._session_factory()
            try:
                row = db.get(DeviceStorageItem, key)
                if row is None:
                    db.add(DeviceStorageItem(key=key, value=value, updated_at=utc_now()))
                else:
                    row.value = value
                    row.updated_at = utc_now()
                db.commit()
            finally:
                db.close()

    def remove_item(self, key: str) -> None:
        with self._lock:
            db: Session = self._session_factory()
            try:
                db.query(DeviceStorageItem).filter(DeviceStorageItem.key == key).delete()
                db.commit()
            finally:
                db.close()

    def keys(self, prefix: str = '') -> list[str]:
        db: Session = self._session_factory()
        try:
            query = db.query(DeviceStorageItem.key)
            if prefix:
                query = query.filter(DeviceStorageItem.key.startswith(prefix))
            return [row[0] for row in query.order_by(DeviceStorageItem.key.asc()).all()]
        finally:
            db.close()

    def clear(self) -> None:
        with self._lock:
            db: Session = self._session_factory()
            try:
                deleted = db.query(DeviceStorageItem).delete()
                db.commit()
                logger.info('device_storage_cleared rows=%s', deleted)
            finally:
                db.close()
