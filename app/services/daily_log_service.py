from __future__ import annotations

from typing import Any

from app.schemas import EntityKind
from app.services.errors import RecordValidationError
from app.services.student_service import student_directory
from app.services.transport_repository import TransportRepository
from app.utils.csv_export import build_csv, export_filename


EXPORT_ENTITIES = ('fees', 'attendance', 'vehicles')

_EXPORT_COLUMNS: dict[str, tuple[tuple[str, str], ...]] = {
    'fees': (
        ('studentName', 'Student'),
        ('registrationNumber', 'Registration Number'),
        ('feeType', 'Fee Type'),
        ('totalAmount', 'Total Amount'),
        ('paidAmount', 'Paid Amount'),
        ('status', 'Status'),
        ('dueDate', 'Due Date'),
    ),
    'attendance': (
        ('studentName', 'Student'),
        ('registrationNumber', 'Registration Number'),
        ('date', 'Date'),
        ('status', 'Status'),
    ),
    'vehicles': (
        ('busNumber', 'Bus Number'),
        ('driverName', 'Driver'),
        ('driverContact', 'Contact'),
        ('kmCalculation', 'KM Used'),
    ),
}


def data_by_date(repo: TransportRepository, on_date: str) -> dict[str, list[dict[str, Any]]]:
    """Everything entered on ``on_date``: fees by fee date, vehicles by creation date, attendance by day."""
    if not on_date:
        raise RecordValidationError('Date is required.')
    directory = student_directory(repo)

    def _with_student(row: dict[str, Any]) -> dict[str, Any]:
        student = directory.get(row.get('studentId', ''))
        return {
            **row,
            'studentName': student.name if student else 'Unknown',
            'registrationNumber': student.registration_number if student else '',
        }

    return {
        'fees': [_with_student(row) for row in repo.list_raw(EntityKind.FEES) if row.get('feeDate') == on_date],
        'vehicles': [row for row in repo.list_raw(EntityKind.VEHICLES) if row.get('createdAt') == on_date],
        'attendance': [_with_student(row) for row in repo.list_raw(EntityKind.ATTENDANCE) if row.get('date') == on_date],
    }


def export_daily_log(repo: TransportRepository, entity: str, on_date: str) -> tuple[str, str]:
    if entity not in EXPORT_ENTITIES:
        raise RecordValidationError(f'Unsupported export: {entity}')
    rows = data_by_date(repo, on_date)[entity]
    columns = _EXPORT_COLUMNS[entity]
    content = build_csv([key for key, _ in columns], rows, headers=[label for _, label in columns])
    return export_filename(entity, on_date), content
