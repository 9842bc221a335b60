from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request

from app.app_state import get_context
from app.config import settings
from app.db import Base, engine
from app.metrics import flush_sync_metrics
from app.routers import attendance, attention, auth, daily_log, dashboard, destinations, fee, fees_gate, students, sync, vehicles
from app.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    ctx = get_context()
    if ctx.restore_session():
        ctx.prepare_account()
    if settings.enable_scheduler:
        start_scheduler()
    yield
    stop_scheduler()
    ctx.shutdown()
    flush_sync_metrics()


app = FastAPI(title=settings.app_name, version='0.1.0', lifespan=lifespan)


@app.middleware('http')
async def slow_request_logger(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if duration_ms >= settings.metrics_slow_ms:
        logging.getLogger('app.request').info(
            'request_slow path=%s method=%s status_code=%s duration_ms=%.2f',
            request.url.path,
            request.method,
            response.status_code,
            duration_ms,
        )
    return response

app.include_router(auth.router)
app.include_router(students.router)
app.include_router(destinations.router)
app.include_router(attendance.router)
app.include_router(fee.router)
app.include_router(fees_gate.router)
app.include_router(vehicles.router)
app.include_router(attention.router)
app.include_router(dashboard.router)
app.include_router(daily_log.router)
app.include_router(sync.router)


@app.get('/')
def health():
    return {'app': settings.app_name, 'status': 'ok'}


@app.get('/health')
def healthcheck():
    ctx = get_context()
    return {'status': 'ok', 'sync': ctx.sync.status()}
