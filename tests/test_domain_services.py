import tempfile
import unittest
from datetime import date
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.fees import derive_payment_status, suggested_transport_fee
from app.core.time_provider import FixedTimeProvider
from app.core.vehicles import expired_documents, km_used, upcoming_document_alerts
from app.db import Base
from app.schemas import (
    AttentionCreate,
    DestinationRecord,
    EntityKind,
    FeesCreate,
    FeesRecord,
    StudentCreate,
    StudentUpdate,
    VehicleCreate,
)
from app.services.attendance_service import attendance_sheet, save_attendance_batch
from app.services.attention_service import add_attention, list_attention
from app.services.bootstrap_service import seed_default_students
from app.services.daily_log_service import data_by_date
from app.services.destination_service import assign_destination, destination_board
from app.services.errors import RecordNotFoundError, RecordValidationError
from app.services.fee_service import overdue_fees, save_fee, suggest_transport_fee, update_fee
from app.services.session_service import SessionState
from app.services.student_service import save_student, update_student
from app.services.transport_repository import TransportRepository
from app.services.vehicle_service import save_vehicle, update_document, update_oil_log, vehicle_overview
from app.store.device_storage import DeviceStorage
from app.store.remote import InMemoryRemoteStore
from app.sync.connectivity import ConnectivityMonitor
from app.sync.sync_service import SyncService
from app.sync.write_queue import WriteQueue


TODAY = date(2026, 3, 10)


class FeeAndVehicleRuleTests(unittest.TestCase):
    def test_payment_status_table(self):
        cases = [
            (1000, 0, 'Pending'),
            (1000, 400, 'Partially Paid'),
            (1000, 1000, 'Paid'),
            (1000, 1200, 'Paid'),
            (0, 0, 'Pending'),
            (0, 50, 'Paid'),
        ]
        for total, paid, expected in cases:
            with self.subTest(total=total, paid=paid):
                self.assertEqual(derive_payment_status(total, paid), expected)

    def test_suggested_transport_fee(self):
        self.assertEqual(suggested_transport_fee(20, 150), 3000)
        self.assertEqual(suggested_transport_fee(0, 150), 0)
        self.assertEqual(suggested_transport_fee(None, 150), 0)

    def test_km_used_never_negative(self):
        self.assertEqual(km_used(15000, 14200), 800)
        self.assertEqual(km_used(12800, 12000), 800)
        self.assertEqual(km_used(100, 500), 0)
        self.assertEqual(km_used(None, None), 0)

    def test_expired_documents_and_alert_window(self):
        vehicle = {
            'id': 'v1',
            'busNumber': 'TN-41-1234',
            'insuranceDueDate': '2026-03-20',
            'fcDueDate': '2026-03-01',
            'pollutionDueDate': '2026-06-01',
            'stickerDueDate': 'not-a-date',
        }
        self.assertEqual(expired_documents(vehicle, TODAY), ['FC'])

        alerts = upcoming_document_alerts([vehicle], TODAY, window_days=30)
        self.assertEqual([(a['document'], a['days_left']) for a in alerts], [('FC', -9), ('Insurance', 10)])
        self.assertEqual(alerts[0]['bus_number'], 'TN-41-1234')

    def test_overdue_fees_only_pending_past_due(self):
        fees = [
            FeesRecord(id='f1', status='Pending', due_date='2026-03-01'),
            FeesRecord(id='f2', status='Partially Paid', due_date='2026-03-01'),
            FeesRecord(id='f3', status='Pending', due_date='2026-03-10'),
            FeesRecord(id='f4', status='Pending', due_date=''),
        ]
        self.assertEqual([fee.id for fee in overdue_fees(fees, TODAY)], ['f1'])


class DomainServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_domain_services.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)
        cls.storage = DeviceStorage(cls._session_factory)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.storage.clear()
        self.remote = InMemoryRemoteStore()
        sync = SyncService(self.remote, WriteQueue(self.storage), ConnectivityMonitor())
        self.repo = TransportRepository(
            sync,
            self.storage,
            SessionState(uid='uid-a', email='a@example.com'),
            time_provider=FixedTimeProvider(TODAY),
        )

    def _student(self, name='Asha'):
        return save_student(self.repo, StudentCreate(name=name, registration_number=f'R-{name}', series_number='S-1'))['data']['id']

    def test_save_student_requires_mandatory_fields(self):
        with self.assertRaises(RecordValidationError) as ctx:
            save_student(self.repo, StudentCreate(name='Asha', registration_number='', series_number='S-1'))
        self.assertEqual(str(ctx.exception), 'Validation Error: Missing mandatory fields.')

        result = save_student(self.repo, StudentCreate(name='  Asha ', registration_number='R1', series_number='S1'))
        self.assertTrue(result['success'])
        self.assertEqual(result['data']['name'], 'Asha')

    def test_update_student_requires_name(self):
        student_id = self._student()
        with self.assertRaises(RecordValidationError):
            update_student(self.repo, student_id, StudentUpdate(name='  '))
        update_student(self.repo, student_id, StudentUpdate(name='Asha K', department='Mechanical'))
        student = self.repo.get(EntityKind.STUDENTS, student_id)
        self.assertEqual((student.name, student.department), ('Asha K', 'Mechanical'))

    def test_save_fee_validation_message(self):
        with self.assertRaises(RecordValidationError) as ctx:
            save_fee(self.repo, FeesCreate(student_id='', total_amount=100))
        self.assertEqual(str(ctx.exception), 'Validation Failed: Student and Total Fee are required.')
        with self.assertRaises(RecordValidationError):
            save_fee(self.repo, FeesCreate(student_id='s1', total_amount=0))

    def test_save_fee_defaults_missing_dates_to_today(self):
        student_id = self._student()
        saved = save_fee(self.repo, FeesCreate(student_id=student_id, total_amount=1500, due_date='2026-04-01'))['data']
        fee = self.repo.get(EntityKind.FEES, saved['id'])
        self.assertEqual((fee.fee_date, fee.payment_date, fee.due_date), ('2026-03-10', '2026-03-10', '2026-04-01'))
        self.assertEqual([row['id'] for row in data_by_date(self.repo, '2026-03-10')['fees']], [saved['id']])

    def test_update_fee_rederives_status(self):
        student_id = self._student()
        fee_id = save_fee(self.repo, FeesCreate(student_id=student_id, total_amount=2100))['data']['id']
        update_fee(self.repo, fee_id, {'paidAmount': 2100})
        self.assertEqual(self.repo.get(EntityKind.FEES, fee_id).status, 'Paid')

    def test_suggested_fee_uses_destination_distance(self):
        student_id = self._student()
        assign_destination(self.repo, DestinationRecord(student_id=student_id, route_name='ROUTE-01', distance=20))
        self.assertEqual(suggest_transport_fee(self.repo, student_id)['suggested_amount'], 3000)
        self.assertEqual(suggest_transport_fee(self.repo, 'no-destination')['suggested_amount'], 0)

    def test_assign_destination_requires_existing_student(self):
        with self.assertRaises(RecordNotFoundError):
            assign_destination(self.repo, DestinationRecord(student_id='ghost', distance=5))

    def test_destination_board_lists_unassigned_students(self):
        assigned = self._student('Asha')
        unassigned = self._student('Bala')
        assign_destination(self.repo, DestinationRecord(student_id=assigned, pickup_point='Pollachi', distance=14))
        board = destination_board(self.repo)
        self.assertEqual([row['student_id'] for row in board['assigned']], [assigned])
        self.assertEqual([row['student_id'] for row in board['unassigned']], [unassigned])

    def test_attendance_sheet_marks_missing_students_unmarked(self):
        student_a = self._student('Asha')
        student_b = self._student('Bala')
        save_attendance_batch(self.repo, '2026-03-10', {student_a: 'Present'})
        sheet = {row['student_id']: row['status'] for row in attendance_sheet(self.repo, '2026-03-10')}
        self.assertEqual(sheet, {student_a: 'Present', student_b: 'Unmarked'})

    def test_vehicle_documents_and_oil_logs(self):
        with self.assertRaises(RecordValidationError):
            save_vehicle(self.repo, VehicleCreate(bus_number=' '))
        vehicle_id = save_vehicle(self.repo, VehicleCreate(bus_number='TN-41-1234'))['data']['id']

        update_document(self.repo, vehicle_id, 'fc', '2025-03-01', '2026-03-01')
        update_oil_log(self.repo, vehicle_id, 'engineOil', 45000, '2026-03-05')
        with self.assertRaises(RecordValidationError):
            update_document(self.repo, vehicle_id, 'permit', '', '')

        vehicle = self.repo.get(EntityKind.VEHICLES, vehicle_id)
        self.assertEqual((vehicle.fc_date, vehicle.fc_due_date), ('2025-03-01', '2026-03-01'))
        self.assertEqual((vehicle.engine_oil_km, vehicle.engine_oil_date), (45000, '2026-03-05'))
        overview = vehicle_overview(vehicle, TODAY)
        self.assertEqual(overview['expired_documents'], ['FC'])
        self.assertEqual(len(overview['documents']), 6)

    def test_attention_defaults_date_and_sorts_newest_first(self):
        add_attention(self.repo, AttentionCreate(title='Older', date='2026-03-01'))
        add_attention(self.repo, AttentionCreate(title='Today'))
        with self.assertRaises(RecordValidationError):
            add_attention(self.repo, AttentionCreate(title='  '))
        messages = list_attention(self.repo)
        self.assertEqual([(m.title, m.date) for m in messages], [('Today', '2026-03-10'), ('Older', '2026-03-01')])

    def test_seed_default_students_only_when_empty(self):
        first = seed_default_students(self.repo)
        self.assertTrue(first['ran'])
        self.assertEqual(first['created_students'], 3)
        destinations = self.repo.list(EntityKind.DESTINATIONS)
        self.assertEqual({(d.pickup_point, d.drop_point, d.route_name, d.distance) for d in destinations}, {('Pollachi', 'Poosaripatti', 'ROUTE-01', 14)})

        second = seed_default_students(self.repo)
        self.assertFalse(second['ran'])
        self.assertEqual(len(self.repo.list(EntityKind.STUDENTS)), 3)


if __name__ == '__main__':
    unittest.main()
