from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable


@dataclass(frozen=True)
class DocumentField:
    key: str
    label: str
    short_label: str
    issue_date_key: str
    due_date_key: str


@dataclass(frozen=True)
class OilLogField:
    key: str
    label: str
    km_key: str
    date_key: str


# Keys are the camelCase names records carry in the remote store.
DOCUMENT_FIELDS: tuple[DocumentField, ...] = (
    DocumentField('insurance', 'Insurance', 'Insurance', 'insuranceDate', 'insuranceDueDate'),
    DocumentField('fc', 'Fitness Certificate (FC)', 'FC', 'fcDate', 'fcDueDate'),
    DocumentField('pollution', 'Pollution (PUC)', 'Pollution', 'pollutionDate', 'pollutionDueDate'),
    DocumentField('sticker', 'Route Sticker', 'Sticker', 'stickerDate', 'stickerDueDate'),
    DocumentField('fireExtinguisher', 'Fire Extinguisher', 'Fire Ext.', 'fireExtinguisherDate', 'fireExtinguisherDueDate'),
    DocumentField('firstAidBox', 'First Aid Box', 'First Aid', 'firstAidBoxDate', 'firstAidBoxDueDate'),
)

OIL_LOG_FIELDS: tuple[OilLogField, ...] = (
    OilLogField('vehicleOil', 'Vehicle Oil', 'vehicleOilKM', 'vehicleOilDate'),
    OilLogField('engineOil', 'Engine Oil', 'engineOilKM', 'engineOilDate'),
    OilLogField('brakeOil', 'Brake Oil', 'brakeOilKM', 'brakeOilDate'),
    OilLogField('steeringOil', 'Steering Oil', 'steeringOilKM', 'steeringOilDate'),
)

_DOCUMENTS_BY_KEY = {item.key: item for item in DOCUMENT_FIELDS}
_OIL_LOGS_BY_KEY = {item.key: item for item in OIL_LOG_FIELDS}


def document_field(key: str) -> DocumentField:
    try:
        return _DOCUMENTS_BY_KEY[key]
    except KeyError:
        raise ValueError(f'Unknown vehicle document: {key}') from None


def oil_log_field(key: str) -> OilLogField:
    try:
        return _OIL_LOGS_BY_KEY[key]
    except KeyError:
        raise ValueError(f'Unknown oil log: {key}') from None


def km_used(current_km: float | None, previous_km: float | None) -> float:
    diff = float(current_km or 0) - float(previous_km or 0)
    return diff if diff > 0 else 0


def document_changes(key: str, issue_date: str, due_date: str) -> dict[str, str]:
    field = document_field(key)
    return {field.issue_date_key: issue_date or '', field.due_date_key: due_date or ''}


def oil_log_changes(key: str, km: float, on_date: str) -> dict[str, Any]:
    field = oil_log_field(key)
    return {field.km_key: float(km or 0), field.date_key: on_date or ''}


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def document_rows(vehicle: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {
            'key': field.key,
            'label': field.label,
            'issue_date': vehicle.get(field.issue_date_key) or '',
            'due_date': vehicle.get(field.due_date_key) or '',
        }
        for field in DOCUMENT_FIELDS
    ]


def expired_documents(vehicle: dict[str, Any], today: date) -> list[str]:
    expired = []
    for field in DOCUMENT_FIELDS:
        due = _parse_date(vehicle.get(field.due_date_key))
        if due is not None and due < today:
            expired.append(field.short_label)
    return expired


def upcoming_document_alerts(vehicles: Iterable[dict[str, Any]], today: date, window_days: int = 30) -> list[dict[str, Any]]:
    """Documents due within ``window_days`` (already expired ones included), soonest first."""
    alerts = []
    for vehicle in vehicles:
        for field in DOCUMENT_FIELDS:
            due = _parse_date(vehicle.get(field.due_date_key))
            if due is None:
                continue
            days_left = (due - today).days
            if days_left <= window_days:
                alerts.append(
                    {
                        'id': f"{vehicle.get('id', '')}-{field.short_label}",
                        'vehicle_id': vehicle.get('id', ''),
                        'bus_number': vehicle.get('busNumber', ''),
                        'document': field.short_label,
                        'due_date': due.isoformat(),
                        'days_left': days_left,
                    }
                )
    alerts.sort(key=lambda item: item['days_left'])
    return alerts
