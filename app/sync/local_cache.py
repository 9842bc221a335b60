from __future__ import annotations

import json
import logging
from typing import Any, Callable

from app.store.device_storage import DeviceStorage


logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = 'ctms_cache'


class LocalCache:
    """Best-effort per-collection snapshot kept in device storage.

    Advisory only: no versions, no staleness tracking. A missing or unreadable snapshot
    reads as an empty collection.
    """

    def __init__(self, storage: DeviceStorage, namespace: str = '') -> None:
        self._storage = storage
        self._namespace = namespace

    def key(self, kind: str) -> str:
        if self._namespace:
            return f'{CACHE_KEY_PREFIX}_{self._namespace}_{kind}'
        return f'{CACHE_KEY_PREFIX}_{kind}'

    def write(self, kind: str, records: list[dict[str, Any]]) -> None:
        self._storage.set_item(self.key(kind), json.dumps(records, default=str))

    def read(self, kind: str) -> list[dict[str, Any]]:
        raw = self._storage.get_item(self.key(kind))
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning('local_cache_corrupt key=%s', self.key(kind))
            return []
        if not isinstance(parsed, list):
            logger.warning('local_cache_corrupt key=%s', self.key(kind))
            return []
        return [item for item in parsed if isinstance(item, dict)]

    def evict(self, kind: str, predicate: Callable[[dict[str, Any]], bool]) -> int:
        records = self.read(kind)
        kept = [record for record in records if not predicate(record)]
        removed = len(records) - len(kept)
        if removed:
            self.write(kind, kept)
        return removed

    def upsert(self, kind: str, record: dict[str, Any], *, insert_missing: bool = True) -> None:
        records = self.read(kind)
        record_id = str(record.get('id') or '')
        for index, existing in enumerate(records):
            if str(existing.get('id') or '') == record_id:
                records[index] = {**existing, **record}
                break
        else:
            if not insert_missing:
                return
            records.append(dict(record))
        self.write(kind, records)

    def clear(self, kind: str) -> None:
        self._storage.remove_item(self.key(kind))
