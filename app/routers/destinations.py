from fastapi import APIRouter, Depends

from app.app_state import get_repository
from app.core.router_guard import require_view, translate_errors
from app.route_logging import EndpointNameRoute
from app.schemas import DestinationRecord
from app.services.access_control_service import ViewType
from app.services.destination_service import assign_destination, destination_board, remove_destination
from app.services.transport_repository import TransportRepository


router = APIRouter(
    prefix='/destinations',
    tags=['Destinations'],
    route_class=EndpointNameRoute,
    dependencies=[Depends(require_view(ViewType.DESTINATIONS))],
)


@router.get('')
def destinations(repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return destination_board(repo)


@router.put('')
def save_destination(payload: DestinationRecord, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return assign_destination(repo, payload)


@router.delete('/{student_id}')
def delete_destination(student_id: str, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return remove_destination(repo, student_id)
