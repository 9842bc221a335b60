from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from app.schemas import AttendanceRecord, EntityKind
from app.services.student_service import list_students
from app.services.transport_repository import TransportRepository

logger = logging.getLogger(__name__)


def list_attendance(repo: TransportRepository, on_date: str | None = None) -> list[AttendanceRecord]:
    records = repo.list(EntityKind.ATTENDANCE)
    if on_date:
        records = [record for record in records if record.date == on_date]
    return records


def attendance_sheet(repo: TransportRepository, on_date: str) -> list[dict[str, Any]]:
    students = list_students(repo)
    by_student = {record.student_id: record for record in list_attendance(repo, on_date)}

    result = []
    for student in students:
        rec = by_student.get(student.id)
        result.append({
            'student_id': student.id,
            'student_name': student.name,
            'registration_number': student.registration_number,
            'attendance_id': rec.id if rec else '',
            'status': rec.status if rec else 'Unmarked',
        })
    return result


def save_attendance_batch(repo: TransportRepository, on_date: str, statuses: Mapping[str, str]) -> dict[str, Any]:
    result = repo.batch_set_attendance(on_date, statuses)
    logger.info('attendance_batch_saved date=%s saved=%s pending=%s', on_date, result['saved'], result['pending'])
    return result


def mark_attendance(repo: TransportRepository, student_id: str, on_date: str, status: str) -> dict[str, Any]:
    return repo.mark_attendance(student_id, on_date, status)


def delete_attendance(repo: TransportRepository, attendance_id: str) -> dict[str, Any]:
    return repo.remove(EntityKind.ATTENDANCE, attendance_id)


def attendance_counts(records: Iterable[AttendanceRecord]) -> dict[str, int]:
    rows = list(records)
    return {
        'present': sum(1 for rec in rows if rec.status == 'Present'),
        'absent': sum(1 for rec in rows if rec.status == 'Absent'),
        'total': len(rows),
    }
