from __future__ import annotations

from typing import Any

from app.schemas import EntityKind, Student, StudentCreate, update_payload
from app.services.errors import RecordValidationError
from app.services.transport_repository import TransportRepository


def _saved_message(entity: str, pending: bool) -> str:
    if pending:
        return f'{entity} saved offline. It will sync when the connection returns.'
    return f'{entity} successfully saved.'


def list_students(repo: TransportRepository) -> list[Student]:
    return repo.list(EntityKind.STUDENTS)


def student_directory(repo: TransportRepository) -> dict[str, Student]:
    return {student.id: student for student in list_students(repo)}


def save_student(repo: TransportRepository, payload: StudentCreate) -> dict[str, Any]:
    if not payload.name.strip() or not payload.registration_number.strip() or not payload.series_number.strip():
        raise RecordValidationError('Validation Error: Missing mandatory fields.')
    cleaned = payload.model_copy(
        update={
            'name': payload.name.strip(),
            'registration_number': payload.registration_number.strip(),
            'series_number': payload.series_number.strip(),
        }
    )
    result = repo.add(EntityKind.STUDENTS, cleaned)
    return {
        'success': True,
        'message': _saved_message('Student record', result['pending']),
        'pending': result['pending'],
        'data': result['record'],
    }


def update_student(repo: TransportRepository, student_id: str, update) -> dict[str, Any]:
    data = update_payload(update)
    if not str(data.get('name') or '').strip():
        raise RecordValidationError('Validation Error: Student name cannot be empty.')
    result = repo.update(EntityKind.STUDENTS, student_id, data)
    return {
        'success': True,
        'message': 'Student record updated offline.' if result['pending'] else 'Student record successfully updated.',
        'pending': result['pending'],
    }


def delete_student(repo: TransportRepository, student_id: str) -> dict[str, Any]:
    return repo.remove(EntityKind.STUDENTS, student_id)
