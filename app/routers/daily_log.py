from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from app.app_state import get_repository
from app.core.router_guard import require_view, translate_errors
from app.route_logging import EndpointNameRoute
from app.services.access_control_service import ViewType
from app.services.daily_log_service import data_by_date, export_daily_log
from app.services.transport_repository import TransportRepository


router = APIRouter(
    prefix='/daily-log',
    tags=['Daily Log'],
    route_class=EndpointNameRoute,
    dependencies=[Depends(require_view(ViewType.DAILY_LOG))],
)


@router.get('')
def daily_log(on_date: str | None = Query(default=None, alias='date'), repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        day = on_date or repo.today_iso()
        return {'date': day, **data_by_date(repo, day)}


@router.get('/{entity}.csv')
def export_csv(entity: str, on_date: str | None = Query(default=None, alias='date'), repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        filename, content = export_daily_log(repo, entity, on_date or repo.today_iso())
    return Response(
        content=content,
        media_type='text/csv; charset=utf-8',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )
