import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.app_state import get_context
from app.config import settings
from app.metrics import flush_sync_metrics, run_timed_job


scheduler = BackgroundScheduler(timezone=settings.app_timezone)
logger = logging.getLogger(__name__)


def _run_job(label: str, task) -> None:
    run_timed_job(label, lambda: task(get_context()))


def connectivity_probe_job():
    def _job(ctx):
        online = ctx.sync.probe()
        if not online:
            logger.info('connectivity_probe_offline pending_operations=%s', len(ctx.queue))

    _run_job('connectivity_probe', _job)


def write_queue_flush_job():
    def _job(ctx):
        if len(ctx.queue) and ctx.monitor.is_online:
            ctx.sync.flush()

    _run_job('write_queue_flush', _job)


def session_token_refresh_job():
    def _job(ctx):
        ctx.refresh_session()

    _run_job('session_token_refresh', _job)


def sync_metrics_flush_job():
    run_timed_job('sync_metrics_flush', flush_sync_metrics)


def start_scheduler():
    probe_seconds = max(5, int(settings.connectivity_probe_seconds or 30))
    scheduler.add_job(connectivity_probe_job, 'interval', seconds=probe_seconds, id='connectivity_probe', replace_existing=True)
    scheduler.add_job(write_queue_flush_job, 'interval', minutes=1, id='write_queue_flush', replace_existing=True)
    scheduler.add_job(sync_metrics_flush_job, 'interval', minutes=1, id='sync_metrics_flush', replace_existing=True)
    scheduler.add_job(
        session_token_refresh_job,
        'interval',
        minutes=max(5, int(settings.token_refresh_minutes or 45)),
        id='session_token_refresh',
        replace_existing=True,
    )

    if not scheduler.running:
        scheduler.start()


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
