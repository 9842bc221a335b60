from fastapi import APIRouter, Depends

from app.app_state import get_repository
from app.core.router_guard import require_fees_unlocked, translate_errors
from app.route_logging import EndpointNameRoute
from app.schemas import FeesCreate, FeesUpdate
from app.services.fee_service import (
    delete_fee,
    fee_summary,
    list_fees,
    overdue_fees,
    save_fee,
    suggest_transport_fee,
    update_fee,
)
from app.services.transport_repository import TransportRepository


router = APIRouter(
    prefix='/fees',
    tags=['Fees'],
    route_class=EndpointNameRoute,
    dependencies=[Depends(require_fees_unlocked)],
)


@router.get('')
def fees(repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        rows = list_fees(repo)
        return {'fees': rows, 'summary': fee_summary(rows)}


@router.get('/overdue')
def overdue(repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return overdue_fees(list_fees(repo), repo.today())


@router.get('/suggested/{student_id}')
def suggested(student_id: str, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return suggest_transport_fee(repo, student_id)


@router.post('')
def create_fee(payload: FeesCreate, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return save_fee(repo, payload)


@router.put('/{fee_id}')
def edit_fee(fee_id: str, payload: FeesUpdate, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return update_fee(repo, fee_id, payload)


@router.delete('/{fee_id}')
def remove_fee(fee_id: str, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return delete_fee(repo, fee_id)
