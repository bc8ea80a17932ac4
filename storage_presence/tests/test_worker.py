import unittest
from unittest.mock import MagicMock

from storage_presence.db import InMemoryEdgeStore
from storage_presence.errors import StoreUnavailable
from storage_presence.queue import InMemoryRefreshQueue
from storage_presence.rollup import CollectionAggregator
from storage_presence.types import ItemType
from storage_presence.worker import process_next

COLLECTION = "1c9e6a0e-5b7d-4c3e-9f2a-8b1d0e4f6a7b"
ITEM = "3f2504e0-4f89-41d3-9a0c-0305e82c3301"


class WorkerTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryEdgeStore()
        self.queue = InMemoryRefreshQueue()
        self.aggregator = CollectionAggregator(self.store, clock=lambda: 42.0)

    def test_process_once_refreshes_rollup(self):
        self.store.add_collection_item(COLLECTION, ITEM, ItemType.IMAGE)
        self.queue.enqueue(COLLECTION)

        processed = process_next(aggregator=self.aggregator, queue=self.queue, block=False)
        self.assertTrue(processed)

        cached = self.store.get_collection_presence(COLLECTION)
        self.assertEqual(cached.total_items, 1)
        self.assertEqual(cached.computed_at, 42.0)
        self.assertEqual(self.queue.items, [])

    def test_process_once_no_jobs(self):
        processed = process_next(aggregator=self.aggregator, queue=self.queue, block=False)
        self.assertFalse(processed)

    def test_malformed_id_is_dropped(self):
        self.queue.enqueue("not-a-uuid")
        processed = process_next(aggregator=self.aggregator, queue=self.queue, block=False)
        self.assertTrue(processed)
        self.assertEqual(self.queue.items, [])

    def test_store_outage_requeues(self):
        store = MagicMock()
        store.count_collection_items.side_effect = StoreUnavailable("down")
        self.queue.enqueue(COLLECTION)
        with self.assertRaises(StoreUnavailable):
            process_next(
                aggregator=CollectionAggregator(store), queue=self.queue, block=False
            )
        self.assertEqual(self.queue.items, [COLLECTION])

    def test_failed_requeue_keeps_original_error(self):
        store = MagicMock()
        store.count_collection_items.side_effect = StoreUnavailable("database down")
        queue = MagicMock()
        queue.dequeue.return_value = COLLECTION
        queue.enqueue.side_effect = StoreUnavailable("refresh queue down")
        with self.assertRaisesRegex(StoreUnavailable, "database down"):
            process_next(aggregator=CollectionAggregator(store), queue=queue, block=False)
        queue.enqueue.assert_called_once_with(COLLECTION)


if __name__ == "__main__":
    unittest.main()
