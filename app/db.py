import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import settings
from app.request_context import current_account, current_endpoint


Base = declarative_base()

_SLOW_QUERY_MS = settings.db_slow_query_ms
_slow_logger = logging.getLogger('app.db.slow_query')


def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    context._query_start_time = time.perf_counter()


def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    start = getattr(context, '_query_start_time', None)
    if start is None:
        return
    duration_ms = (time.perf_counter() - start) * 1000.0
    if duration_ms >= _SLOW_QUERY_MS:
        endpoint = current_endpoint.get()
        sql_text = (statement or '').replace('\n', ' ').strip()
        _slow_logger.warning(
            'slow_query duration_ms=%.2f endpoint=%s account=%s sql=%s',
            duration_ms,
            endpoint,
            current_account.get() or '-',
            sql_text,
        )


def build_engine(url: str) -> Engine:
    connect_args = {'check_same_thread': False} if url.startswith('sqlite') else {}
    built = create_engine(url, connect_args=connect_args)
    event.listen(built, 'before_cursor_execute', _before_cursor_execute)
    event.listen(built, 'after_cursor_execute', _after_cursor_execute)
    return built


engine = build_engine(settings.device_storage_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
