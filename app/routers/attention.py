from fastapi import APIRouter, Depends

from app.app_state import get_repository
from app.core.router_guard import translate_errors
from app.route_logging import EndpointNameRoute
from app.schemas import AttentionCreate, AttentionUpdate
from app.services.attention_service import add_attention, delete_attention, list_attention, update_attention
from app.services.transport_repository import TransportRepository


router = APIRouter(prefix='/attention', tags=['Attention'], route_class=EndpointNameRoute)


@router.get('')
def messages(repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return list_attention(repo)


@router.post('')
def create_message(payload: AttentionCreate, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return add_attention(repo, payload)


@router.put('/{message_id}')
def edit_message(message_id: str, payload: AttentionUpdate, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return update_attention(repo, message_id, payload)


@router.delete('/{message_id}')
def remove_message(message_id: str, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return delete_attention(repo, message_id)
