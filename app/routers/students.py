from fastapi import APIRouter, Depends

from app.app_state import get_repository
from app.core.router_guard import translate_errors
from app.route_logging import EndpointNameRoute
from app.schemas import EntityKind, StudentCreate, StudentUpdate
from app.services.student_service import delete_student, list_students, save_student, update_student
from app.services.transport_repository import TransportRepository


router = APIRouter(prefix='/students', tags=['Students'], route_class=EndpointNameRoute)


@router.get('')
def students(repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return list_students(repo)


@router.get('/{student_id}')
def student_detail(student_id: str, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return repo.get(EntityKind.STUDENTS, student_id)


@router.post('')
def create_student(payload: StudentCreate, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return save_student(repo, payload)


@router.put('/{student_id}')
def edit_student(student_id: str, payload: StudentUpdate, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return update_student(repo, student_id, payload)


@router.delete('/{student_id}')
def remove_student(student_id: str, repo: TransportRepository = Depends(get_repository)):
    with translate_errors():
        return delete_student(repo, student_id)
