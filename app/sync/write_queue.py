from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from typing import Any

from app.core.time_provider import utc_now
from app.metrics import record_sync_event
from app.store.device_storage import DeviceStorage
from app.store.errors import StoreError, StoreOfflineError
from app.store.remote import RemoteStore


logger = logging.getLogger(__name__)

QUEUE_KEY = 'ctms_write_queue'
DEAD_LETTER_KEY = 'ctms_write_queue_dead'

OP_SET = 'set'
OP_UPDATE = 'update'
OP_REMOVE = 'remove'
_OPS = (OP_SET, OP_UPDATE, OP_REMOVE)


def _now_iso() -> str:
    return utc_now().isoformat()


@dataclass
class QueuedOperation:
    op: str
    path: str
    value: Any = None
    attempts: int = 0
    queued_at: str = field(default_factory=_now_iso)

    def __post_init__(self) -> None:
        if self.op not in _OPS:
            raise ValueError(f'Unsupported queued operation: {self.op}')

    @classmethod
    def set(cls, path: str, value: Any) -> 'QueuedOperation':
        return cls(op=OP_SET, path=path, value=value)

    @classmethod
    def update(cls, path: str, values: dict[str, Any]) -> 'QueuedOperation':
        return cls(op=OP_UPDATE, path=path, value=values)

    @classmethod
    def remove(cls, path: str) -> 'QueuedOperation':
        return cls(op=OP_REMOVE, path=path)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> 'QueuedOperation':
        return cls(
            op=str(raw.get('op') or ''),
            path=str(raw.get('path') or ''),
            value=raw.get('value'),
            attempts=int(raw.get('attempts') or 0),
            queued_at=str(raw.get('queued_at') or _now_iso()),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply(self, remote: RemoteStore) -> None:
        if self.op == OP_SET:
            remote.set(self.path, self.value)
        elif self.op == OP_UPDATE:
            remote.update(self.path, dict(self.value or {}))
        else:
            remote.remove(self.path)


@dataclass
class FlushResult:
    replayed: int = 0
    remaining: int = 0
    dead: int = 0
    stalled: bool = False
    skipped: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class WriteQueue:
    """Durable FIFO of mutations that could not reach the remote store.

    Consume-once: an operation that replays successfully is dropped and never replayed
    again. No coalescing; two updates to the same path replay in order. A rejected
    operation holds back everything queued after it until it succeeds or is dead-lettered.
    """

    def __init__(self, storage: DeviceStorage, *, max_attempts: int = 5) -> None:
        self._storage = storage
        self._max_attempts = max(1, int(max_attempts))
        self._lock = threading.RLock()
        self._flush_lock = threading.Lock()

    def _load(self, key: str) -> list[QueuedOperation]:
        raw = self._storage.get_item(key)
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
            if not isinstance(parsed, list):
                raise ValueError('queue payload is not a list')
            return [QueuedOperation.from_dict(item) for item in parsed if isinstance(item, dict)]
        except (TypeError, ValueError):
            logger.warning('write_queue_corrupt key=%s', key)
            return []

    def _save(self, key: str, operations: list[QueuedOperation]) -> None:
        if not operations:
            self._storage.remove_item(key)
            return
        self._storage.set_item(key, json.dumps([item.to_dict() for item in operations], default=str))

    def pending(self) -> list[QueuedOperation]:
        with self._lock:
            return self._load(QUEUE_KEY)

    def dead_letters(self) -> list[QueuedOperation]:
        with self._lock:
            return self._load(DEAD_LETTER_KEY)

    def __len__(self) -> int:
        return len(self.pending())

    def enqueue(self, operation: QueuedOperation) -> None:
        with self._lock:
            operations = self._load(QUEUE_KEY)
            operations.append(operation)
            self._save(QUEUE_KEY, operations)
        record_sync_event('queue_enqueue')
        logger.info('write_queue_enqueue op=%s path=%s depth=%s', operation.op, operation.path, len(operations))

    def clear(self) -> None:
        with self._lock:
            self._storage.remove_item(QUEUE_KEY)

    def flush(self, remote: RemoteStore, *, count_attempts: bool = True) -> FlushResult:
        """Replay pending operations in order.

        A rejected operation stays in place. Its ``attempts`` only grows when
        ``count_attempts`` is set, so incidental replays before reads and writes
        never push an operation into the dead-letter list.
        """
        if not self._flush_lock.acquire(blocking=False):
            return FlushResult(skipped=True, remaining=len(self))
        try:
            with self._lock:
                return self._flush_locked(remote, count_attempts)
        finally:
            self._flush_lock.release()

    def _flush_locked(self, remote: RemoteStore, count_attempts: bool) -> FlushResult:
        operations = self._load(QUEUE_KEY)
        result = FlushResult()
        if not operations:
            return result

        kept: list[QueuedOperation] = []
        dead: list[QueuedOperation] = []
        for index, operation in enumerate(operations):
            try:
                operation.apply(remote)
            except StoreOfflineError:
                kept.extend(operations[index:])
                result.stalled = True
                break
            except StoreError as exc:
                if count_attempts:
                    operation.attempts += 1
                if count_attempts and operation.attempts >= self._max_attempts:
                    dead.append(operation)
                    record_sync_event('queue_dead')
                    logger.error(
                        'write_queue_dead op=%s path=%s attempts=%s error=%s',
                        operation.op,
                        operation.path,
                        operation.attempts,
                        exc,
                    )
                    continue
                logger.warning(
                    'write_queue_rejected op=%s path=%s attempts=%s error=%s',
                    operation.op,
                    operation.path,
                    operation.attempts,
                    exc,
                )
                kept.extend(operations[index:])
                break
            result.replayed += 1
            record_sync_event('queue_replay')

        self._save(QUEUE_KEY, kept)
        if dead:
            self._save(DEAD_LETTER_KEY, self._load(DEAD_LETTER_KEY) + dead)
        result.remaining = len(kept)
        result.dead = len(dead)
        logger.info(
            'write_queue_flush replayed=%s remaining=%s dead=%s stalled=%s',
            result.replayed,
            result.remaining,
            result.dead,
            result.stalled,
        )
        return result
