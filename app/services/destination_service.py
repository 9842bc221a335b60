from __future__ import annotations

from typing import Any

from app.schemas import DestinationRecord, EntityKind
from app.services.errors import RecordNotFoundError, RecordValidationError
from app.services.student_service import list_students
from app.services.transport_repository import TransportRepository


def list_destinations(repo: TransportRepository) -> list[DestinationRecord]:
    return repo.list(EntityKind.DESTINATIONS)


def assign_destination(repo: TransportRepository, payload: DestinationRecord) -> dict[str, Any]:
    """Create or replace the single destination of a student."""
    if not payload.student_id:
        raise RecordValidationError('Please select a student.')
    if payload.distance < 0:
        raise RecordValidationError('Distance cannot be negative.')
    if repo.get_raw(EntityKind.STUDENTS, payload.student_id) is None:
        raise RecordNotFoundError('Student not found')
    result = repo.add(EntityKind.DESTINATIONS, payload)
    return {'success': True, 'pending': result['pending'], 'data': result['record']}


def remove_destination(repo: TransportRepository, student_id: str) -> dict[str, Any]:
    return repo.remove(EntityKind.DESTINATIONS, student_id)


def destination_board(repo: TransportRepository) -> dict[str, Any]:
    students = list_students(repo)
    destinations = {item.student_id: item for item in list_destinations(repo)}

    assigned = []
    unassigned = []
    for student in students:
        dest = destinations.get(student.id)
        if dest is None:
            unassigned.append({'student_id': student.id, 'student_name': student.name})
            continue
        assigned.append(
            {
                'student_id': student.id,
                'student_name': student.name,
                'pickup_point': dest.pickup_point,
                'drop_point': dest.drop_point,
                'route_name': dest.route_name,
                'distance': dest.distance,
            }
        )
    return {'assigned': assigned, 'unassigned': unassigned}
