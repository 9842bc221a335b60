from fastapi import APIRouter, Depends

from app.app_state import AppContext, get_context, require_session
from app.metrics import current_sync_counts
from app.route_logging import EndpointNameRoute


router = APIRouter(
    prefix='/sync',
    tags=['Sync'],
    route_class=EndpointNameRoute,
    dependencies=[Depends(require_session)],
)


@router.get('/status')
def status(ctx: AppContext = Depends(get_context)):
    return {**ctx.sync.status(), 'events_this_minute': current_sync_counts()}


@router.post('/flush')
def flush(ctx: AppContext = Depends(get_context)):
    return ctx.sync.flush().as_dict()


@router.post('/probe')
def probe(ctx: AppContext = Depends(get_context)):
    online = ctx.sync.probe()
    return {'online': online, **ctx.sync.status()}


@router.get('/dead-letters')
def dead_letters(ctx: AppContext = Depends(get_context)):
    return [operation.to_dict() for operation in ctx.queue.dead_letters()]
