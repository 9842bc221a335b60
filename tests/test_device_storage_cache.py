import tempfile
import unittest
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db import Base
from app.services.session_service import SESSION_KEY, SessionState, SessionStore
from app.store.device_storage import DeviceStorage
from app.sync.local_cache import LocalCache


class DeviceStorageCacheTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_device_storage.db'
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

    def test_storage_set_get_remove(self):
        self.assertIsNone(self.storage.get_item('missing'))
        self.storage.set_item('k', 'v1')
        self.storage.set_item('k', 'v2')
        self.assertEqual(self.storage.get_item('k'), 'v2')
        self.storage.remove_item('k')
        self.assertIsNone(self.storage.get_item('k'))

    def test_storage_keys_by_prefix(self):
        self.storage.set_item('ctms_cache_u1_students', '[]')
        self.storage.set_item('ctms_cache_u1_fees', '[]')
        self.storage.set_item('other', 'x')
        self.assertEqual(self.storage.keys('ctms_cache_u1_'), ['ctms_cache_u1_fees', 'ctms_cache_u1_students'])

    def test_cache_keys_are_namespaced_per_account(self):
        scoped = LocalCache(self.storage, namespace='u1')
        shared = LocalCache(self.storage)
        self.assertEqual(scoped.key('students'), 'ctms_cache_u1_students')
        self.assertEqual(shared.key('attention'), 'ctms_cache_attention')

        scoped.write('students', [{'id': 's1'}])
        self.assertEqual(LocalCache(self.storage, namespace='u2').read('students'), [])
        self.assertEqual(scoped.read('students'), [{'id': 's1'}])

    def test_corrupt_cache_reads_as_empty(self):
        cache = LocalCache(self.storage, namespace='u1')
        self.storage.set_item(cache.key('fees'), '{not json')
        self.assertEqual(cache.read('fees'), [])
        self.storage.set_item(cache.key('fees'), '{"id": "f1"}')
        self.assertEqual(cache.read('fees'), [])

    def test_cache_evict_and_upsert(self):
        cache = LocalCache(self.storage, namespace='u1')
        cache.write('fees', [{'id': 'f1', 'studentId': 's1'}, {'id': 'f2', 'studentId': 's2'}])

        removed = cache.evict('fees', lambda item: item.get('studentId') == 's1')
        self.assertEqual(removed, 1)
        self.assertEqual([item['id'] for item in cache.read('fees')], ['f2'])

        cache.upsert('fees', {'id': 'f2', 'status': 'Paid'})
        cache.upsert('fees', {'id': 'f3', 'status': 'Pending'}, insert_missing=False)
        self.assertEqual(cache.read('fees'), [{'id': 'f2', 'studentId': 's2', 'status': 'Paid'}])

    def test_session_store_persists_and_tolerates_corruption(self):
        sessions = SessionStore(self.storage)
        self.assertIsNone(sessions.load())

        sessions.save(SessionState(uid='u1', email='a@example.com', id_token='tok', fees_unlocked=True))
        restored = sessions.load()
        self.assertEqual(restored.uid, 'u1')
        self.assertTrue(restored.fees_unlocked)

        self.storage.set_item(SESSION_KEY, 'garbage')
        self.assertIsNone(sessions.load())

        sessions.clear()
        self.assertIsNone(self.storage.get_item(SESSION_KEY))


if __name__ == '__main__':
    unittest.main()
