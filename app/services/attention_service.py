from __future__ import annotations

from typing import Any

from app.schemas import AttentionCreate, AttentionMessage, EntityKind, update_payload
from app.services.errors import RecordValidationError
from app.services.transport_repository import TransportRepository


def list_attention(repo: TransportRepository) -> list[AttentionMessage]:
    messages = repo.list(EntityKind.ATTENTION)
    return sorted(messages, key=lambda item: item.date or '', reverse=True)


def add_attention(repo: TransportRepository, payload: AttentionCreate) -> dict[str, Any]:
    if not payload.title.strip():
        raise RecordValidationError('Title is required.')
    if not payload.date:
        payload = payload.model_copy(update={'date': repo.today_iso()})
    result = repo.add(EntityKind.ATTENTION, payload)
    return {'success': True, 'pending': result['pending'], 'data': result['record']}


def update_attention(repo: TransportRepository, message_id: str, update) -> dict[str, Any]:
    data = update_payload(update)
    if 'title' in data and not str(data['title'] or '').strip():
        raise RecordValidationError('Title is required.')
    return repo.update(EntityKind.ATTENTION, message_id, data)


def delete_attention(repo: TransportRepository, message_id: str) -> dict[str, Any]:
    return repo.remove(EntityKind.ATTENTION, message_id)
