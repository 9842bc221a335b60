from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Callable

from app.config import settings


logger = logging.getLogger('app.metrics')

SYNC_EVENTS = ('store_offline', 'store_online', 'queue_enqueue', 'queue_replay', 'queue_dead', 'cache_fallback')


class MetricsExporter:
    def export_sync_minute(self, *, minute_start: datetime, counts: dict[str, int]) -> None:
        raise NotImplementedError


class LogMetricsExporter(MetricsExporter):
    def export_sync_minute(self, *, minute_start: datetime, counts: dict[str, int]) -> None:
        logger.info(
            'sync_metrics minute=%s %s',
            minute_start.isoformat(),
            ' '.join(f'{name}={counts.get(name, 0)}' for name in SYNC_EVENTS),
        )


_exporter: MetricsExporter = LogMetricsExporter()


class _MinuteCounter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._minute_start_epoch: int | None = None
        self._counts: dict[str, int] = {}

    def _minute_epoch(self, ts: float) -> int:
        return int(ts // 60) * 60

    def _flush_locked(self, minute_epoch: int) -> None:
        if not self._counts:
            return
        minute_start = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=minute_epoch)
        try:
            _exporter.export_sync_minute(minute_start=minute_start, counts=dict(self._counts))
        except Exception:
            logger.exception('metrics_export_failed minute=%s', minute_start.isoformat())
        self._counts.clear()

    def record(self, key: str) -> None:
        now = time.time()
        minute_epoch = self._minute_epoch(now)
        with self._lock:
            if self._minute_start_epoch is None:
                self._minute_start_epoch = minute_epoch
            if minute_epoch != self._minute_start_epoch:
                self._flush_locked(self._minute_start_epoch)
                self._minute_start_epoch = minute_epoch
            self._counts[key] = self._counts.get(key, 0) + 1

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def flush(self) -> None:
        with self._lock:
            if self._minute_start_epoch is None:
                return
            self._flush_locked(self._minute_start_epoch)


_sync_counter = _MinuteCounter()


def record_sync_event(event: str) -> None:
    _sync_counter.record(event)


def current_sync_counts() -> dict[str, int]:
    return _sync_counter.snapshot()


def flush_sync_metrics() -> None:
    _sync_counter.flush()


def timed_service(label: str, *, threshold_ms: int | None = None) -> Callable[[Callable[..., object]], Callable[..., object]]:
    def decorator(func: Callable[..., object]) -> Callable[..., object]:
        threshold_value = threshold_ms if threshold_ms is not None else settings.metrics_slow_ms

        @wraps(func)
        def wrapper(*args: object, **kwargs: object):
            started = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                duration_ms = (time.perf_counter() - started) * 1000.0
                if duration_ms >= threshold_value:
                    logger.info('service_timer label=%s duration_ms=%.2f', label, duration_ms)

        return wrapper

    return decorator


def run_timed_job(label: str, fn: Callable[[], object]) -> object:
    start = time.perf_counter()
    logger.info('job_start name=%s', label)
    status = 'ok'
    try:
        return fn()
    except Exception:
        status = 'failed'
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.exception('job_failed name=%s duration_ms=%.2f', label, duration_ms)
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info('job_end name=%s status=%s duration_ms=%.2f', label, status, duration_ms)
