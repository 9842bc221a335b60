from fastapi import APIRouter, Depends

from app.app_state import get_repository
from app.core.router_guard import require_view, translate_errors
from app.route_logging import EndpointNameRoute
from app.schemas import OilLogUpdate, VehicleCreate, VehicleDocumentUpdate, VehicleUpdate
from app.services.access_control_service import ViewType
from app.services.transport_repository import TransportRepository
from app.services.vehicle_service import (
    delete_vehicle,
    list_vehicles,
    save_vehicle,
    update_document,
    update_oil_log,
    update_vehicle,
    vehicle_overview,
)


router = APIRouter(
    prefix='/vehicles',
    tags=['Vehicles'],
    route_class=EndpointNameRoute,
    dependencies=[Depends(require_view(ViewType.MAINTENANCE))],
)


@router.get('')
def vehicles(repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        today = repo.today()
        return [vehicle_overview(vehicle, today) for vehicle in list_vehicles(repo)]


@router.post('')
def create_vehicle(payload: VehicleCreate, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return save_vehicle(repo, payload)


@router.put('/{vehicle_id}')
def edit_vehicle(vehicle_id: str, payload: VehicleUpdate, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return update_vehicle(repo, vehicle_id, payload)


@router.put('/{vehicle_id}/documents/{document_key}')
def edit_document(
    vehicle_id: str,
    document_key: str,
    payload: VehicleDocumentUpdate,
    repo: TransportRepository = Depends(get_repository),
):
    with translate_errors():
        return update_document(repo, vehicle_id, document_key, payload.issue_date, payload.due_date)


@router.put('/{vehicle_id}/oil/{oil_key}')
def edit_oil_log(vehicle_id: str, oil_key: str, payload: OilLogUpdate, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return update_oil_log(repo, vehicle_id, oil_key, payload.km, payload.date)


@router.delete('/{vehicle_id}')
def remove_vehicle(vehicle_id: str, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return delete_vehicle(repo, vehicle_id)
