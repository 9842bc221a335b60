import sys

from sqlalchemy import text

from app.app_state import get_context
from app.config import settings
from app.db import Base, engine
from app.scheduler import scheduler, start_scheduler, stop_scheduler


EXPECTED_SCHEDULER_JOBS = {
    'connectivity_probe',
    'write_queue_flush',
    'sync_metrics_flush',
    'session_token_refresh',
}

GREEN = '\033[32m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_device_storage_write():
    Base.metadata.create_all(bind=engine)
    with engine.begin() as conn:
        conn.execute(text('SELECT 1'))
        conn.execute(text("INSERT INTO device_storage (key, value, updated_at) VALUES ('_healthcheck_probe', 'probe', CURRENT_TIMESTAMP)"))
        conn.execute(text("DELETE FROM device_storage WHERE key='_healthcheck_probe'"))
    return 'connect + write ok'


def check_required_env():
    if (settings.remote_backend or '').strip().lower() == 'memory':
        return 'memory backend, nothing required'
    required = {
        'FIREBASE_DATABASE_URL': settings.firebase_database_url,
        'FIREBASE_API_KEY': settings.firebase_api_key,
    }
    missing = [key for key, value in required.items() if not str(value).strip()]
    if missing:
        raise RuntimeError(f'Missing env vars: {", ".join(missing)}')
    return 'all required vars present'


def check_remote_reachable():
    ctx = get_context()
    ctx.restore_session()
    if not ctx.sync.probe():
        raise RuntimeError('Remote store unreachable')
    return 'probe ok'


def check_write_queue():
    ctx = get_context()
    status = ctx.sync.status()
    if status['dead_letters']:
        raise RuntimeError(f"{status['dead_letters']} operations in the dead-letter list")
    return f"pending={status['pending_operations']}"


def check_scheduler_jobs_registered():
    start_scheduler()
    try:
        registered = {job.id for job in scheduler.get_jobs()}
        missing = sorted(EXPECTED_SCHEDULER_JOBS - registered)
        if missing:
            raise RuntimeError(f'Missing jobs: {missing}')
        return f'jobs={sorted(registered)}'
    finally:
        stop_scheduler()


def main():
    checks = [
        ('Device storage connectivity and write access', check_device_storage_write),
        ('Required environment variables present', check_required_env),
        ('Remote store reachable', check_remote_reachable),
        ('Write queue has no dead letters', check_write_queue),
        ('Scheduler jobs registered', check_scheduler_jobs_registered),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok

    if not all_ok:
        sys.exit(1)
    sys.exit(0)


if __name__ == '__main__':
    main()
