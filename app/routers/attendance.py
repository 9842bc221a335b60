from fastapi import APIRouter, Depends, Query

from app.app_state import get_repository
from app.core.router_guard import require_view, translate_errors
from app.route_logging import EndpointNameRoute
from app.schemas import AttendanceBatchRequest, AttendanceMarkRequest
from app.services.access_control_service import ViewType
from app.services.attendance_service import (
    attendance_counts,
    attendance_sheet,
    delete_attendance,
    list_attendance,
    mark_attendance,
    save_attendance_batch,
)
from app.services.transport_repository import TransportRepository


router = APIRouter(
    prefix='/attendance',
    tags=['Attendance'],
    route_class=EndpointNameRoute,
    dependencies=[Depends(require_view(ViewType.ATTENDANCE))],
)


@router.get('')
def attendance_for_day(on_date: str | None = Query(default=None, alias='date'), repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        day = on_date or repo.today_iso()
        return {
            'date': day,
            'sheet': attendance_sheet(repo, day),
            'counts': attendance_counts(list_attendance(repo, day)),
        }


@router.post('/batch')
def submit_batch(payload: AttendanceBatchRequest, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return save_attendance_batch(repo, payload.date, payload.statuses)


@router.post('/mark')
def mark(payload: AttendanceMarkRequest, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return mark_attendance(repo, payload.student_id, payload.date, payload.status)


@router.delete('/{attendance_id}')
def remove(attendance_id: str, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return delete_attendance(repo, attendance_id)
