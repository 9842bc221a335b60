from fastapi import APIRouter, Depends

from app.app_state import get_repository
from app.core.router_guard import translate_errors
from app.route_logging import EndpointNameRoute
from app.services.dashboard_service import get_dashboard
from app.services.transport_repository import TransportRepository


router = APIRouter(prefix='/dashboard', tags=['Dashboard'], route_class=EndpointNameRoute)


@router.get('')
def dashboard(repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return get_dashboard(repo)
