import unittest
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from storage_presence.db import InMemoryEdgeStore
from storage_presence.edges import EdgeService
from storage_presence.errors import StoreUnavailable
from storage_presence.presence import PresenceAggregator, classify_ledger_artifacts
from storage_presence.types import Artifact, Backend, ItemType, PresenceStatus

M1 = "3f2504e0-4f89-41d3-9a0c-0305e82c3301"
M2 = "6fa459ea-ee8a-4ca4-894e-db77e160355e"


class PresenceAggregatorTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryEdgeStore()
        self.service = EdgeService(self.store, clock=lambda: 500.0)
        self.aggregator = PresenceAggregator(self.store)

    def _partial_ledger_item(self):
        self.service.upsert_edge(M1, "image", "metadata", "transient-relational", present=True)
        self.service.upsert_edge(M1, "image", "asset", "permanent-ledger", present=True)

    def test_fully_durable_when_both_artifacts_on_ledger(self):
        self._partial_ledger_item()
        self.service.upsert_edge(M1, "image", "metadata", "permanent-ledger", present=True)

        summary = self.aggregator.presence_of(M1, ItemType.IMAGE)
        self.assertEqual(summary.status, PresenceStatus.FULLY_DURABLE)
        self.assertEqual(summary.complete_artifacts, [Artifact.METADATA, Artifact.ASSET])

    def test_partially_durable_with_one_ledger_artifact(self):
        self._partial_ledger_item()

        summary = self.aggregator.presence_of(M1, ItemType.IMAGE)
        self.assertEqual(summary.status, PresenceStatus.PARTIALLY_DURABLE)
        self.assertTrue(summary.has(Artifact.METADATA, Backend.TRANSIENT_RELATIONAL))
        self.assertTrue(summary.has(Artifact.ASSET, Backend.PERMANENT_LEDGER))
        self.assertFalse(summary.has(Artifact.METADATA, Backend.PERMANENT_LEDGER))
        self.assertEqual(summary.tracked_edges, 2)

    def test_item_without_edges_is_transient_only(self):
        summary = self.aggregator.presence_of(M2, ItemType.NOTE)
        self.assertEqual(summary.status, PresenceStatus.TRANSIENT_ONLY)
        payload = summary.as_dict()
        self.assertEqual(payload["tracked_edges"], 0)
        self.assertFalse(any(
            present
            for backends in payload["presence"].values()
            for present in backends.values()
        ))

    def test_absent_ledger_edges_do_not_count(self):
        self.service.upsert_edge(M1, "image", "metadata", "permanent-ledger", present=False)
        self.service.begin_migration(M1, "image", "asset")

        summary = self.aggregator.presence_of(M1, ItemType.IMAGE)
        self.assertEqual(summary.status, PresenceStatus.TRANSIENT_ONLY)
        self.assertEqual(summary.migrating_edges, 1)

    def test_presence_reflects_latest_write(self):
        self._partial_ledger_item()
        self.service.upsert_edge(M1, "image", "asset", "permanent-ledger", present=False)
        self.assertEqual(
            self.aggregator.presence_of(M1, ItemType.IMAGE).status,
            PresenceStatus.TRANSIENT_ONLY,
        )

    def test_item_type_scopes_the_lookup(self):
        self._partial_ledger_item()
        self.assertEqual(
            self.aggregator.presence_of(M1, ItemType.VIDEO).status,
            PresenceStatus.TRANSIENT_ONLY,
        )

    def test_read_failure_reports_unknown(self):
        for error in (
            StoreUnavailable("connection refused"),
            OperationalError("SELECT 1", {}, Exception("gone")),
        ):
            with self.subTest(error=type(error).__name__):
                store = MagicMock()
                store.edges_for_item.side_effect = error
                summary = PresenceAggregator(store).presence_of(M1, ItemType.IMAGE)
                self.assertEqual(summary.status, PresenceStatus.UNKNOWN)
                self.assertEqual(summary.as_dict()["status"], "unknown")

    def test_presence_of_many_keeps_order(self):
        self._partial_ledger_item()
        summaries = self.aggregator.presence_of_many(
            [(M2, ItemType.IMAGE), (M1, ItemType.IMAGE)]
        )
        self.assertEqual([s.item_id for s in summaries], [M2, M1])
        self.assertEqual(
            [s.status for s in summaries],
            [PresenceStatus.TRANSIENT_ONLY, PresenceStatus.PARTIALLY_DURABLE],
        )


class ClassifyLedgerArtifactsTests(unittest.TestCase):
    def test_classification(self):
        self.assertEqual(classify_ledger_artifacts([]), PresenceStatus.TRANSIENT_ONLY)
        self.assertEqual(
            classify_ledger_artifacts([Artifact.ASSET]), PresenceStatus.PARTIALLY_DURABLE
        )
        self.assertEqual(
            classify_ledger_artifacts({Artifact.ASSET, Artifact.METADATA}),
            PresenceStatus.FULLY_DURABLE,
        )


if __name__ == "__main__":
    unittest.main()
