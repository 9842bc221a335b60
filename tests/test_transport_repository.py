import itertools
import tempfile
import unittest
from datetime import date
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.time_provider import FixedTimeProvider
from app.db import Base
from app.schemas import AttentionCreate, DestinationRecord, EntityKind, FeesCreate, StudentCreate, VehicleCreate
from app.services.errors import DuplicateFeeError, NotAuthenticatedError, RecordNotFoundError, RecordValidationError
from app.services.session_service import SessionState
from app.services.transport_repository import PLACEHOLDER_KEY, TransportRepository
from app.store.device_storage import DeviceStorage
from app.store.errors import StoreAccessError
from app.store.remote import InMemoryRemoteStore
from app.sync.connectivity import ConnectivityMonitor
from app.sync.sync_service import SyncService
from app.sync.write_queue import WriteQueue


TODAY = date(2026, 3, 10)


class TransportRepositoryTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_transport_repository.db'
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
        self.queue = WriteQueue(self.storage)
        self.sync = SyncService(self.remote, self.queue, ConnectivityMonitor())

    def _repo(self, uid='uid-a', *, id_factory=None, remote=None):
        sync = self.sync
        if remote is not None:
            sync = SyncService(remote, WriteQueue(self.storage), ConnectivityMonitor())
        kwargs = {'time_provider': FixedTimeProvider(TODAY)}
        if id_factory is not None:
            kwargs['id_factory'] = id_factory
        return TransportRepository(sync, self.storage, SessionState(uid=uid, email=f'{uid}@example.com'), **kwargs)

    def _student(self, repo, name):
        return repo.add(EntityKind.STUDENTS, StudentCreate(name=name, registration_number=f'R-{name}', series_number=f'S-{name}'))['id']

    def test_add_student_writes_under_account_namespace(self):
        repo = self._repo()
        result = repo.add(EntityKind.STUDENTS, StudentCreate(name='Asha', registration_number='R1', series_number='S1'))

        self.assertFalse(result['pending'])
        stored = self.remote.snapshot()['users']['uid-a']['students'][result['id']]
        self.assertEqual(stored['name'], 'Asha')
        self.assertEqual(stored['registrationNumber'], 'R1')
        self.assertEqual(stored['createdAt'], '2026-03-10')
        self.assertNotIn('id', stored)
        self.assertEqual([s.name for s in repo.list(EntityKind.STUDENTS)], ['Asha'])

    def test_accounts_do_not_see_each_other(self):
        self._student(self._repo('uid-a'), 'Asha')
        self.assertEqual(self._repo('uid-b').list(EntityKind.STUDENTS), [])

    def test_ensure_namespace_writes_placeholders_that_lists_ignore(self):
        repo = self._repo()
        self.assertTrue(repo.ensure_namespace())

        user_tree = self.remote.snapshot()['users']['uid-a']
        for kind in ('students', 'attendance', 'fees', 'vehicles', 'destinations'):
            self.assertEqual(user_tree[kind], {PLACEHOLDER_KEY: True})
        self.assertNotIn('attention', user_tree)
        self.assertEqual(repo.list(EntityKind.FEES), [])

        student_id = self._student(repo, 'Asha')
        repo.ensure_namespace()
        self.assertEqual([s.id for s in repo.list(EntityKind.STUDENTS)], [student_id])

    def test_ensure_namespace_offline_reports_false(self):
        self.remote.online = False
        self.assertFalse(self._repo().ensure_namespace())

    def test_delete_student_cascades_only_that_student(self):
        repo = self._repo()
        student_a = self._student(repo, 'Asha')
        student_b = self._student(repo, 'Bala')
        for student_id in (student_a, student_b):
            repo.add(EntityKind.FEES, FeesCreate(student_id=student_id, total_amount=1000, fee_date='2026-03-01'))
            repo.mark_attendance(student_id, '2026-03-10', 'Present')
            repo.add(EntityKind.DESTINATIONS, DestinationRecord(student_id=student_id, pickup_point='Pollachi', distance=14))

        result = repo.remove(EntityKind.STUDENTS, student_a)

        self.assertEqual(result['removed'], {'fees': 1, 'attendance': 1})
        self.assertEqual([s.id for s in repo.list(EntityKind.STUDENTS)], [student_b])
        self.assertEqual({f.student_id for f in repo.list(EntityKind.FEES)}, {student_b})
        self.assertEqual({a.student_id for a in repo.list(EntityKind.ATTENDANCE)}, {student_b})
        self.assertEqual([d.student_id for d in repo.list(EntityKind.DESTINATIONS)], [student_b])

    def test_batch_attendance_replaces_the_whole_day(self):
        repo = self._repo()
        student_a = self._student(repo, 'Asha')
        student_b = self._student(repo, 'Bala')
        repo.batch_set_attendance('2026-03-09', {student_a: 'Present'})
        repo.batch_set_attendance('2026-03-10', {student_a: 'Present', student_b: 'Absent'})

        result = repo.batch_set_attendance('2026-03-10', {student_a: 'Absent'})

        self.assertEqual(result['saved'], 1)
        self.assertEqual(result['replaced'], 2)
        rows = repo.list(EntityKind.ATTENDANCE)
        day = [(row.student_id, row.status) for row in rows if row.date == '2026-03-10']
        self.assertEqual(day, [(student_a, 'Absent')])
        self.assertEqual([row.date for row in rows if row.date == '2026-03-09'], ['2026-03-09'])

    def test_batch_attendance_rejects_unknown_status(self):
        with self.assertRaises(RecordValidationError):
            self._repo().batch_set_attendance('2026-03-10', {'s1': 'Late'})

    def test_mark_attendance_updates_existing_row(self):
        repo = self._repo()
        student_id = self._student(repo, 'Asha')
        first = repo.mark_attendance(student_id, '2026-03-10', 'Present')
        second = repo.mark_attendance(student_id, '2026-03-10', 'Absent')
        self.assertEqual(first['id'], second['id'])
        rows = repo.list(EntityKind.ATTENDANCE)
        self.assertEqual([(row.id, row.status) for row in rows], [(first['id'], 'Absent')])

    def test_duplicate_fee_is_rejected(self):
        repo = self._repo()
        student_id = self._student(repo, 'Asha')
        payload = FeesCreate(student_id=student_id, total_amount=1000, fee_type='Transport', fee_date='2026-03-10')
        repo.add(EntityKind.FEES, payload)
        with self.assertRaises(DuplicateFeeError):
            repo.add(EntityKind.FEES, payload)
        repo.add(EntityKind.FEES, payload.model_copy(update={'fee_type': 'Tuition'}))
        self.assertEqual(len(repo.list(EntityKind.FEES)), 2)

    def test_fee_status_follows_amounts_on_update(self):
        repo = self._repo()
        student_id = self._student(repo, 'Asha')
        fee_id = repo.add(
            EntityKind.FEES,
            FeesCreate(student_id=student_id, total_amount=1000, paid_amount=0, status='Paid'),
        )['id']
        self.assertEqual(repo.get(EntityKind.FEES, fee_id).status, 'Pending')

        repo.update(EntityKind.FEES, fee_id, {'paidAmount': 400})
        self.assertEqual(repo.get(EntityKind.FEES, fee_id).status, 'Partially Paid')

        repo.update(EntityKind.FEES, fee_id, {'paidAmount': 1000})
        fee = repo.get(EntityKind.FEES, fee_id)
        self.assertEqual(fee.status, 'Paid')
        self.assertEqual(fee.total_amount, 1000)

    def test_update_missing_fee_raises_not_found(self):
        with self.assertRaises(RecordNotFoundError):
            self._repo().update(EntityKind.FEES, 'missing', {'paidAmount': 10})

    def test_offline_mutations_replay_to_the_same_state(self):
        def run(repo):
            student_id = self._student(repo, 'Asha')
            repo.update(EntityKind.STUDENTS, student_id, {'name': 'Asha K'})
            repo.add(EntityKind.FEES, FeesCreate(student_id=student_id, total_amount=500, fee_date='2026-03-10'))
            repo.add(EntityKind.DESTINATIONS, DestinationRecord(student_id=student_id, route_name='ROUTE-01', distance=14))
            return student_id

        online_remote = InMemoryRemoteStore()
        counter = itertools.count(1)
        run(self._repo(remote=online_remote, id_factory=lambda: f'id-{next(counter)}'))

        self.storage.clear()
        counter = itertools.count(1)
        repo = self._repo(id_factory=lambda: f'id-{next(counter)}')
        self.remote.online = False
        student_id = run(repo)

        self.assertEqual(len(self.queue), 4)
        self.assertEqual(self.remote.snapshot(), {})
        # Cache reflects the queued writes while offline.
        self.assertEqual([s.name for s in repo.list(EntityKind.STUDENTS)], ['Asha K'])
        self.assertEqual(repo.get_raw(EntityKind.STUDENTS, student_id)['name'], 'Asha K')

        self.remote.online = True
        result = self.sync.flush()
        self.assertEqual(result.replayed, 4)
        self.assertEqual(self.remote.snapshot(), online_remote.snapshot())

    def test_cached_vehicles_are_served_when_remote_fails(self):
        repo = self._repo()
        repo.add(EntityKind.VEHICLES, VehicleCreate(bus_number='TN-41-1234', driver_name='Ravi'))
        self.assertEqual(len(repo.list(EntityKind.VEHICLES)), 1)

        self.remote.online = False
        vehicles = repo.list(EntityKind.VEHICLES)
        self.assertEqual([v.bus_number for v in vehicles], ['TN-41-1234'])

    def test_access_denied_is_not_masked_or_queued(self):
        repo = self._repo()
        self._student(repo, 'Asha')
        self.remote.denied_prefixes = {'users/uid-a'}

        with self.assertRaises(StoreAccessError):
            repo.list_raw(EntityKind.STUDENTS)
        with self.assertRaises(StoreAccessError):
            self._student(repo, 'Bala')
        self.assertEqual(len(self.queue), 0)

    def test_scoped_operations_need_an_account(self):
        repo = TransportRepository(self.sync, self.storage, None, time_provider=FixedTimeProvider(TODAY))
        with self.assertRaises(NotAuthenticatedError):
            repo.list(EntityKind.STUDENTS)
        with self.assertRaises(NotAuthenticatedError):
            repo.add(EntityKind.FEES, FeesCreate(student_id='s1', total_amount=10))
        self.assertEqual(self.remote.snapshot(), {})

    def test_attention_messages_are_global(self):
        result = self._repo('uid-a').add(EntityKind.ATTENTION, AttentionCreate(title='Route change', date='2026-03-10'))
        self.assertIn(result['id'], self.remote.snapshot()['attention'])
        self.assertEqual([m.title for m in self._repo('uid-b').list(EntityKind.ATTENTION)], ['Route change'])

    def test_destinations_are_keyed_by_student(self):
        repo = self._repo()
        student_id = self._student(repo, 'Asha')
        repo.add(EntityKind.DESTINATIONS, DestinationRecord(student_id=student_id, route_name='ROUTE-01', distance=14))
        repo.add(EntityKind.DESTINATIONS, DestinationRecord(student_id=student_id, route_name='ROUTE-02', distance=9))

        stored = self.remote.snapshot()['users']['uid-a']['destinations']
        self.assertEqual(list(stored), [student_id])
        self.assertEqual(stored[student_id]['routeName'], 'ROUTE-02')
        with self.assertRaises(RecordValidationError):
            repo.add(EntityKind.DESTINATIONS, {'routeName': 'ROUTE-03'})

    def test_vehicle_km_is_derived_on_write(self):
        repo = self._repo()
        vehicle_id = repo.add(
            EntityKind.VEHICLES,
            VehicleCreate(bus_number='TN-41-1234', diesel_km_reading=12800, previous_diesel_km=12000),
        )['id']
        self.assertEqual(repo.get(EntityKind.VEHICLES, vehicle_id).km_calculation, 800)

        repo.update(EntityKind.VEHICLES, vehicle_id, {'previousDieselKM': 13000})
        self.assertEqual(repo.get(EntityKind.VEHICLES, vehicle_id).km_calculation, 0)

    def test_watch_keeps_cache_current(self):
        repo = self._repo()
        seen = []
        unsubscribe = repo.watch(EntityKind.STUDENTS, lambda records: seen.append([r['name'] for r in records]))
        self._student(repo, 'Asha')
        unsubscribe()
        self._student(repo, 'Bala')

        self.assertEqual(seen, [[], ['Asha']])
        self.assertEqual(len(repo.cache_for(EntityKind.STUDENTS).read('students')), 2)


if __name__ == '__main__':
    unittest.main()
