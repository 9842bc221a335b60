import tempfile
import unittest
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db import Base
from app.store.device_storage import DeviceStorage
from app.store.remote import InMemoryRemoteStore
from app.sync.write_queue import DEAD_LETTER_KEY, QUEUE_KEY, QueuedOperation, WriteQueue


class WriteQueueTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_write_queue.db'
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
        self.queue = WriteQueue(self.storage, max_attempts=2)

    def test_flush_replays_in_fifo_order(self):
        self.queue.enqueue(QueuedOperation.set('users/u1/students/s1', {'name': 'A'}))
        self.queue.enqueue(QueuedOperation.update('users/u1/students/s1', {'name': 'B'}))
        self.queue.enqueue(QueuedOperation.set('users/u1/students/s2', {'name': 'C'}))
        self.queue.enqueue(QueuedOperation.remove('users/u1/students/s2'))

        result = self.queue.flush(self.remote)

        self.assertEqual(result.replayed, 4)
        self.assertEqual(len(self.queue), 0)
        self.assertEqual(self.remote.snapshot(), {'users': {'u1': {'students': {'s1': {'name': 'B'}}}}})
        self.assertIsNone(self.storage.get_item(QUEUE_KEY))

    def test_offline_flush_stalls_and_keeps_order(self):
        self.queue.enqueue(QueuedOperation.set('a', 1))
        self.queue.enqueue(QueuedOperation.set('b', 2))
        self.remote.online = False

        result = self.queue.flush(self.remote)

        self.assertTrue(result.stalled)
        self.assertEqual(result.replayed, 0)
        self.assertEqual([item.path for item in self.queue.pending()], ['a', 'b'])
        self.assertEqual([item.attempts for item in self.queue.pending()], [0, 0])

        self.remote.online = True
        self.assertEqual(self.queue.flush(self.remote).replayed, 2)
        self.assertEqual(self.remote.snapshot(), {'a': 1, 'b': 2})

    def test_rejected_operation_moves_to_dead_letters(self):
        self.remote.denied_prefixes = {'locked'}
        self.queue.enqueue(QueuedOperation.set('locked/x', 1))
        self.queue.enqueue(QueuedOperation.set('open/y', 2))

        first = self.queue.flush(self.remote)
        self.assertEqual(first.replayed, 0)
        self.assertEqual(first.remaining, 2)
        self.assertEqual([item.attempts for item in self.queue.pending()], [1, 0])

        second = self.queue.flush(self.remote)
        self.assertEqual(second.dead, 1)
        self.assertEqual(second.replayed, 1)
        self.assertEqual(len(self.queue), 0)
        self.assertEqual(self.remote.snapshot(), {'open': {'y': 2}})
        dead = self.queue.dead_letters()
        self.assertEqual([item.path for item in dead], ['locked/x'])
        self.assertEqual(dead[0].attempts, 2)
        self.assertIsNotNone(self.storage.get_item(DEAD_LETTER_KEY))

    def test_rejected_operation_holds_back_later_writes_to_same_path(self):
        self.remote.denied_prefixes = {'x'}
        self.queue.enqueue(QueuedOperation.set('x', 'old'))
        self.queue.enqueue(QueuedOperation.set('x', 'new'))

        self.queue.flush(self.remote)
        self.assertEqual([item.value for item in self.queue.pending()], ['old', 'new'])

        self.remote.denied_prefixes = set()
        self.assertEqual(self.queue.flush(self.remote).replayed, 2)
        self.assertEqual(self.remote.get('x'), 'new')

    def test_uncounted_flush_keeps_attempts(self):
        self.remote.denied_prefixes = {'locked'}
        self.queue.enqueue(QueuedOperation.set('locked/x', 1))

        for _ in range(5):
            result = self.queue.flush(self.remote, count_attempts=False)
            self.assertEqual(result.dead, 0)

        self.assertEqual(self.queue.pending()[0].attempts, 0)
        self.assertEqual(self.queue.dead_letters(), [])

    def test_concurrent_flush_is_skipped(self):
        self.queue.enqueue(QueuedOperation.set('a', 1))
        self.queue._flush_lock.acquire()
        try:
            result = self.queue.flush(self.remote)
        finally:
            self.queue._flush_lock.release()
        self.assertTrue(result.skipped)
        self.assertEqual(result.remaining, 1)
        self.assertEqual(self.remote.snapshot(), {})

    def test_corrupt_queue_reads_as_empty(self):
        self.storage.set_item(QUEUE_KEY, 'not-json')
        self.assertEqual(self.queue.pending(), [])
        self.assertEqual(self.queue.flush(self.remote).replayed, 0)

    def test_unknown_operation_is_rejected(self):
        with self.assertRaises(ValueError):
            QueuedOperation(op='push', path='a')


if __name__ == '__main__':
    unittest.main()
