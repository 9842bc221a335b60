from __future__ import annotations

from datetime import date
from typing import Any

from app.core.vehicles import document_changes, document_rows, expired_documents, oil_log_changes, OIL_LOG_FIELDS
from app.schemas import EntityKind, VehicleCreate, VehicleRecord, update_payload
from app.services.errors import RecordValidationError
from app.services.transport_repository import TransportRepository


def list_vehicles(repo: TransportRepository) -> list[VehicleRecord]:
    return repo.list(EntityKind.VEHICLES)


def save_vehicle(repo: TransportRepository, payload: VehicleCreate) -> dict[str, Any]:
    if not payload.bus_number.strip():
        raise RecordValidationError('Bus Number is required!')
    result = repo.add(EntityKind.VEHICLES, payload)
    return {'success': True, 'pending': result['pending'], 'data': result['record']}


def update_vehicle(repo: TransportRepository, vehicle_id: str, update) -> dict[str, Any]:
    data = update_payload(update)
    if 'busNumber' in data and not str(data['busNumber'] or '').strip():
        raise RecordValidationError('Bus Number is required!')
    # Derived on the write path from the readings.
    data.pop('kmCalculation', None)
    return repo.update(EntityKind.VEHICLES, vehicle_id, data)


def update_document(repo: TransportRepository, vehicle_id: str, document_key: str, issue_date: str, due_date: str) -> dict[str, Any]:
    try:
        changes = document_changes(document_key, issue_date, due_date)
    except ValueError as exc:
        raise RecordValidationError(str(exc)) from exc
    return repo.update(EntityKind.VEHICLES, vehicle_id, changes)


def update_oil_log(repo: TransportRepository, vehicle_id: str, oil_key: str, km: float, on_date: str) -> dict[str, Any]:
    try:
        changes = oil_log_changes(oil_key, km, on_date)
    except ValueError as exc:
        raise RecordValidationError(str(exc)) from exc
    return repo.update(EntityKind.VEHICLES, vehicle_id, changes)


def delete_vehicle(repo: TransportRepository, vehicle_id: str) -> dict[str, Any]:
    return repo.remove(EntityKind.VEHICLES, vehicle_id)


def vehicle_overview(vehicle: VehicleRecord, today: date) -> dict[str, Any]:
    raw = vehicle.model_dump(by_alias=True)
    return {
        **raw,
        'documents': document_rows(raw),
        'oil_logs': [
            {'key': field.key, 'label': field.label, 'km': raw.get(field.km_key) or 0, 'date': raw.get(field.date_key) or ''}
            for field in OIL_LOG_FIELDS
        ],
        'expired_documents': expired_documents(raw, today),
    }
