from __future__ import annotations

from datetime import date
from typing import Any, Iterable

from app.config import settings
from app.core.fees import PAID, PARTIALLY_PAID, PENDING, balance_due, suggested_transport_fee
from app.schemas import EntityKind, FeesCreate, FeesRecord, update_payload
from app.services.errors import RecordValidationError
from app.services.transport_repository import TransportRepository


def list_fees(repo: TransportRepository) -> list[FeesRecord]:
    return repo.list(EntityKind.FEES)


def save_fee(repo: TransportRepository, payload: FeesCreate) -> dict[str, Any]:
    if not payload.student_id or payload.total_amount <= 0:
        raise RecordValidationError('Validation Failed: Student and Total Fee are required.')
    if payload.paid_amount < 0:
        raise RecordValidationError('Validation Failed: Paid amount cannot be negative.')

    today = repo.today_iso()
    payload = payload.model_copy(
        update={name: getattr(payload, name) or today for name in ('fee_date', 'payment_date', 'due_date')}
    )
    # Status sent by the caller is ignored; the repository derives it from the amounts.
    result = repo.add(EntityKind.FEES, payload)
    record = result['record']
    return {
        'success': True,
        'message': 'Fees record saved offline.' if result['pending'] else 'Fees record successfully saved.',
        'pending': result['pending'],
        'data': record,
    }


def update_fee(repo: TransportRepository, fee_id: str, update) -> dict[str, Any]:
    data = update_payload(update)
    if 'totalAmount' in data and float(data['totalAmount'] or 0) <= 0:
        raise RecordValidationError('Validation Failed: Total Fee must be greater than zero.')
    if 'paidAmount' in data and float(data['paidAmount'] or 0) < 0:
        raise RecordValidationError('Validation Failed: Paid amount cannot be negative.')
    data.pop('status', None)
    result = repo.update(EntityKind.FEES, fee_id, data)
    return {
        'success': True,
        'message': 'Fee record updated offline.' if result['pending'] else 'Fee record updated successfully.',
        'pending': result['pending'],
    }


def delete_fee(repo: TransportRepository, fee_id: str) -> dict[str, Any]:
    return repo.remove(EntityKind.FEES, fee_id)


def suggest_transport_fee(repo: TransportRepository, student_id: str, *, rate_per_km: float | None = None) -> dict[str, Any]:
    destination = repo.get_raw(EntityKind.DESTINATIONS, student_id)
    distance = float((destination or {}).get('distance') or 0)
    rate = settings.transport_fee_per_km if rate_per_km is None else rate_per_km
    return {
        'student_id': student_id,
        'distance': distance,
        'rate_per_km': rate,
        'suggested_amount': suggested_transport_fee(distance, rate),
    }


def overdue_fees(fees: Iterable[FeesRecord], today: date) -> list[FeesRecord]:
    today_iso = today.isoformat()
    return [fee for fee in fees if fee.status == PENDING and fee.due_date and fee.due_date < today_iso]


def fee_summary(fees: Iterable[FeesRecord]) -> dict[str, Any]:
    rows = list(fees)
    return {
        'total_billed': sum(fee.total_amount for fee in rows),
        'total_collected': sum(fee.paid_amount for fee in rows),
        'total_balance': sum(balance_due(fee.total_amount, fee.paid_amount) for fee in rows),
        'counts': {
            PAID: sum(1 for fee in rows if fee.status == PAID),
            PARTIALLY_PAID: sum(1 for fee in rows if fee.status == PARTIALLY_PAID),
            PENDING: sum(1 for fee in rows if fee.status == PENDING),
        },
    }
