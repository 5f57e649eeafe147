from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock

from opp_match import (
    AlreadyExistsError,
    DimensionMismatchError,
    InvalidArgumentError,
    NotFoundError,
    PineconeVectorStore,
    UnsupportedOperationError,
    VectorRecord,
)


def _client_with_index(namespaces: dict | None = None) -> tuple[MagicMock, MagicMock]:
    index = MagicMock()
    index.describe_index_stats.return_value = SimpleNamespace(namespaces=namespaces or {})
    client = MagicMock()
    client.has_index.return_value = True
    client.Index.return_value = index
    return client, index


class PineconeVectorStoreTests(unittest.TestCase):
    def test_requires_api_key_without_client(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            PineconeVectorStore(api_key=None)

    def test_collections_are_namespaces_sharing_index_dimension(self) -> None:
        client, _ = _client_with_index({"opportunities": {"vector_count": 2}})
        store = PineconeVectorStore(client=client, dimension=3)

        store.create_collection("company_profiles", dimension=3)

        self.assertEqual(store.list_collections(), ["company_profiles", "opportunities"])
        with self.assertRaises(AlreadyExistsError):
            store.create_collection("opportunities", dimension=3)
        with self.assertRaises(UnsupportedOperationError):
            store.create_collection("other_dim", dimension=4)
        client.Index.assert_called_once_with("opportunities")

    def test_index_is_created_on_first_use(self) -> None:
        client, _ = _client_with_index()
        client.has_index.return_value = False
        store = PineconeVectorStore(client=client, dimension=3, index_name="opps-idx")

        store.list_collections()

        kwargs = client.create_index.call_args.kwargs
        self.assertEqual(kwargs["name"], "opps-idx")
        self.assertEqual(kwargs["dimension"], 3)
        self.assertEqual(kwargs["metric"], "cosine")

    def test_upsert_sends_batches_to_namespace(self) -> None:
        client, index = _client_with_index({"opportunities": {}})
        store = PineconeVectorStore(client=client, dimension=2)
        records = [VectorRecord(f"o{i}", [1, 0], {"tags": ["a"], "none": None}) for i in range(150)]

        written = store.upsert("opportunities", records)

        self.assertEqual(written, 150)
        self.assertEqual(index.upsert.call_count, 2)
        first = index.upsert.call_args_list[0].kwargs
        self.assertEqual(first["namespace"], "opportunities")
        self.assertEqual(len(first["vectors"]), 100)
        self.assertEqual(first["vectors"][0]["metadata"], {"tags": ["a"]})

    def test_upsert_validates_before_writing(self) -> None:
        client, index = _client_with_index({"opportunities": {}})
        store = PineconeVectorStore(client=client, dimension=2)

        with self.assertRaises(DimensionMismatchError):
            store.upsert("opportunities", [VectorRecord("ok", [1, 0]), VectorRecord("bad", [1])])
        with self.assertRaises(NotFoundError):
            store.upsert("missing", [VectorRecord("ok", [1, 0])])
        index.upsert.assert_not_called()

    def test_query_pushes_native_filters_and_post_filters_date_ranges(self) -> None:
        client, index = _client_with_index({"opportunities": {}})
        index.query.return_value = {
            "matches": [
                {"id": "late", "score": 0.9, "values": [1, 0], "metadata": {"responseDeadline": "2026-06-01"}},
                {"id": "b", "score": 0.8, "values": [1, 0], "metadata": {"responseDeadline": "2026-02-01"}},
                {"id": "a", "score": 0.8, "values": [1, 0], "metadata": {"responseDeadline": "2026-01-15"}},
            ]
        }
        store = PineconeVectorStore(client=client, dimension=2, overfetch=5)

        hits = store.query(
            "opportunities",
            [1, 0],
            top_k=2,
            filters={"type": "opportunity", "responseDeadline": {"$lte": "2026-03-31"}},
        )

        kwargs = index.query.call_args.kwargs
        self.assertEqual(kwargs["filter"], {"type": {"$eq": "opportunity"}})
        self.assertEqual(kwargs["top_k"], 10)
        self.assertEqual(kwargs["namespace"], "opportunities")
        self.assertEqual([hit.id for hit in hits], ["a", "b"])
        self.assertEqual(hits[0].score, 0.8)

    def test_query_without_residual_fetches_a_tie_margin(self) -> None:
        client, index = _client_with_index({"opportunities": {}})
        index.query.return_value = SimpleNamespace(matches=[])
        store = PineconeVectorStore(client=client, dimension=2)

        self.assertEqual(store.query("opportunities", [1, 0], top_k=3), [])
        self.assertEqual(index.query.call_args.kwargs["top_k"], 6)
        self.assertIsNone(index.query.call_args.kwargs["filter"])
        with self.assertRaises(DimensionMismatchError):
            store.query("opportunities", [1, 0, 0])

    def test_ties_at_the_cut_resolve_by_id(self) -> None:
        client, index = _client_with_index({"opportunities": {}})
        index.query.return_value = {
            "matches": [
                {"id": "b", "score": 0.5, "values": [1, 0], "metadata": {}},
                {"id": "a", "score": 0.5, "values": [1, 0], "metadata": {}},
            ]
        }
        store = PineconeVectorStore(client=client, dimension=2)

        hits = store.query("opportunities", [1, 0], top_k=1)

        self.assertEqual(index.query.call_args.kwargs["top_k"], 2)
        self.assertEqual([hit.id for hit in hits], ["a"])

    def test_get_and_delete_vectors(self) -> None:
        client, index = _client_with_index({"opportunities": {}})
        index.fetch.return_value = SimpleNamespace(
            vectors={"o1": SimpleNamespace(id="o1", values=[1.0, 0.0], metadata={"k": "v"})}
        )
        store = PineconeVectorStore(client=client, dimension=2)

        record = store.get_vector("opportunities", "o1")
        deleted = store.delete_vectors("opportunities", ["o1", "missing", "o1"])

        self.assertEqual(record.id, "o1")
        self.assertEqual(list(record.values), [1.0, 0.0])
        self.assertEqual(record.metadata, {"k": "v"})
        self.assertEqual(deleted, 1)
        index.delete.assert_called_once_with(ids=["o1"], namespace="opportunities")

    def test_delete_collection(self) -> None:
        client, index = _client_with_index({"opportunities": {}})
        store = PineconeVectorStore(client=client, dimension=2)

        store.delete_collection("opportunities")

        index.delete.assert_called_once_with(delete_all=True, namespace="opportunities")
        with self.assertRaises(NotFoundError):
            store.delete_collection("missing")

    def test_is_connected(self) -> None:
        client, _ = _client_with_index()
        self.assertTrue(PineconeVectorStore(client=client).is_connected())
        client.list_indexes.side_effect = RuntimeError("network")
        self.assertFalse(PineconeVectorStore(client=client).is_connected())


if __name__ == "__main__":
    unittest.main()
