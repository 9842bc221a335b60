import logging

from app.schemas import DestinationRecord, EntityKind, StudentCreate
from app.services.transport_repository import TransportRepository


logger = logging.getLogger(__name__)

DEFAULT_STUDENTS = (
    StudentCreate(
        name='Sathish Kumar R',
        registration_number='2322k1443',
        series_number='S-001',
        department='Computer Science',
        academic_year='3rd Year / 5th Sem',
    ),
    StudentCreate(
        name='Karthikeyan M',
        registration_number='2322k1417',
        series_number='S-002',
        department='Computer Science',
        academic_year='2nd Year / 3rd Sem',
    ),
    StudentCreate(
        name='Abdul Kalam J',
        registration_number='2322k1398',
        series_number='S-003',
        department='Computer Science',
        academic_year='4th Year / 7th Sem',
    ),
)

DEFAULT_ROUTE = {'pickup_point': 'Pollachi', 'drop_point': 'Poosaripatti', 'route_name': 'ROUTE-01', 'distance': 14}


def seed_default_students(repo: TransportRepository) -> dict:
    existing = repo.list_raw(EntityKind.STUDENTS)
    if existing:
        logger.info('bootstrap_skip students=%s', len(existing))
        return {'ran': False, 'students_count': len(existing)}

    logger.warning('bootstrap_run_empty_students_detected account=%s', repo.account_id)
    created = []
    for student in DEFAULT_STUDENTS:
        result = repo.add(EntityKind.STUDENTS, student)
        repo.add(EntityKind.DESTINATIONS, DestinationRecord(student_id=result['id'], **DEFAULT_ROUTE))
        created.append(result['id'])

    logger.warning('bootstrap_complete created_students=%s', len(created))
    return {'ran': True, 'created_students': len(created), 'student_ids': created}
