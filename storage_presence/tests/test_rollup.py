import unittest
from unittest.mock import MagicMock

from storage_presence.db import InMemoryEdgeStore
from storage_presence.edges import EdgeService
from storage_presence.errors import StoreUnavailable, ValidationError
from storage_presence.queue import InMemoryRefreshQueue
from storage_presence.rollup import (
    CollectionAggregator,
    completeness_percentage,
    summarize_collection,
)
from storage_presence.types import ItemType, PresenceStatus

COLLECTION = "1c9e6a0e-5b7d-4c3e-9f2a-8b1d0e4f6a7b"
ITEMS = [
    "3f2504e0-4f89-41d3-9a0c-0305e82c3301",
    "6fa459ea-ee8a-4ca4-894e-db77e160355e",
    "9b2c8f1e-2d3a-4b5c-8d6e-7f8091a2b3c4",
    "0a1b2c3d-4e5f-4a6b-8c7d-9e0f1a2b3c4d",
]


class CollectionAggregatorTests(unittest.TestCase):
    def setUp(self):
        self.now = 2000.0
        self.store = InMemoryEdgeStore()
        self.service = EdgeService(self.store, clock=lambda: self.now)
        self.queue = InMemoryRefreshQueue()
        self.aggregator = CollectionAggregator(
            self.store, queue=self.queue, clock=lambda: self.now
        )
        for item_id in ITEMS:
            self.store.add_collection_item(COLLECTION, item_id, ItemType.IMAGE)

    def _ledger(self, item_id, *artifacts):
        for artifact in artifacts:
            self.service.complete_migration(
                item_id, "image", artifact, location=f"ledger://{item_id}/{artifact}"
            )

    def _two_full_one_partial(self):
        self._ledger(ITEMS[0], "metadata", "asset")
        self._ledger(ITEMS[1], "metadata", "asset")
        self._ledger(ITEMS[2], "asset")
        self.service.record_upload(ITEMS[3], "image", location="blob://4")

    def test_mixed_collection_is_half_complete(self):
        self._two_full_one_partial()
        summary = self.aggregator.compute(COLLECTION)
        self.assertEqual(summary.total_items, 4)
        self.assertEqual(summary.fully_durable_items, 2)
        self.assertEqual(summary.completeness_percentage, 50)
        self.assertEqual(summary.status, PresenceStatus.PARTIALLY_DURABLE)
        self.assertTrue(summary.any_ledger_presence)
        self.assertEqual(summary.computed_at, 2000.0)

    def test_empty_collection_is_zero_percent(self):
        other = "2d0f7b1f-6c8e-4d4f-a03b-9c2e1f5a7b8c"
        summary = self.aggregator.compute(other)
        self.assertEqual(summary.total_items, 0)
        self.assertEqual(summary.completeness_percentage, 0)
        self.assertEqual(summary.status, PresenceStatus.TRANSIENT_ONLY)

    def test_all_fully_durable(self):
        for item_id in ITEMS:
            self._ledger(item_id, "metadata", "asset")
        summary = self.aggregator.compute(COLLECTION)
        self.assertEqual(summary.completeness_percentage, 100)
        self.assertEqual(summary.status, PresenceStatus.FULLY_DURABLE)

    def test_cached_read_lags_until_refresh(self):
        cached = self.aggregator.cached(COLLECTION)
        self.assertIsNone(cached.computed_at)
        self.assertEqual(cached.total_items, 0)

        self.aggregator.refresh(COLLECTION)
        self._two_full_one_partial()
        self.now = 2600.0

        stale = self.aggregator.cached(COLLECTION)
        self.assertEqual(stale.fully_durable_items, 0)
        self.assertEqual(stale.computed_at, 2000.0)

        fresh = self.aggregator.refresh(COLLECTION)
        self.assertEqual(fresh.completeness_percentage, 50)
        self.assertEqual(self.aggregator.cached(COLLECTION).computed_at, 2600.0)

    def test_cached_read_failure_reports_unknown(self):
        store = MagicMock()
        store.get_collection_presence.side_effect = StoreUnavailable("down")
        summary = CollectionAggregator(store).cached(COLLECTION)
        self.assertEqual(summary.status, PresenceStatus.UNKNOWN)

    def test_request_refresh_enqueues(self):
        self.aggregator.request_refresh(COLLECTION)
        self.aggregator.request_refresh(COLLECTION)
        self.assertEqual(self.queue.items, [COLLECTION])
        self.assertIsNone(self.store.get_collection_presence(COLLECTION))

    def test_request_refresh_without_queue_runs_inline(self):
        aggregator = CollectionAggregator(self.store, clock=lambda: self.now)
        aggregator.request_refresh(COLLECTION)
        self.assertIsNotNone(self.store.get_collection_presence(COLLECTION))

    def test_invalid_collection_id(self):
        with self.assertRaises(ValidationError):
            self.aggregator.compute("collection-1")
        with self.assertRaises(ValidationError):
            self.aggregator.request_refresh("collection-1")

    def test_cached_many(self):
        self.aggregator.refresh(COLLECTION)
        other = "2d0f7b1f-6c8e-4d4f-a03b-9c2e1f5a7b8c"
        summaries = self.aggregator.cached_many([COLLECTION, other])
        self.assertEqual(summaries[0].total_items, 4)
        self.assertIsNone(summaries[1].computed_at)


class SummarizeCollectionTests(unittest.TestCase):
    def test_unknown_members_leave_the_denominator(self):
        summary = summarize_collection(
            COLLECTION,
            4,
            [PresenceStatus.FULLY_DURABLE, PresenceStatus.UNKNOWN, PresenceStatus.UNKNOWN],
            computed_at=1.0,
        )
        self.assertEqual(summary.unknown_items, 2)
        self.assertEqual(summary.completeness_percentage, 50)
        self.assertEqual(summary.status, PresenceStatus.PARTIALLY_DURABLE)

    def test_all_unknown(self):
        summary = summarize_collection(
            COLLECTION, 2, [PresenceStatus.UNKNOWN] * 2, computed_at=1.0
        )
        self.assertEqual(summary.completeness_percentage, 0)
        self.assertEqual(summary.status, PresenceStatus.UNKNOWN)
        self.assertFalse(summary.any_ledger_presence)

    def test_status_uses_counts_not_rounded_percentage(self):
        summary = summarize_collection(
            COLLECTION, 200, [PresenceStatus.FULLY_DURABLE] * 199, computed_at=1.0
        )
        self.assertEqual(summary.completeness_percentage, 100)
        self.assertEqual(summary.status, PresenceStatus.PARTIALLY_DURABLE)

    def test_percentage_rounds_half_up(self):
        self.assertEqual(completeness_percentage(1, 8), 13)
        self.assertEqual(completeness_percentage(1, 3), 33)
        self.assertEqual(completeness_percentage(2, 3), 67)
        self.assertEqual(completeness_percentage(0, 0), 0)


if __name__ == "__main__":
    unittest.main()
