"""Chroma adapter implementing vector store operations (local backend).

This adapter is optional and requires `chromadb` package installed.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from ...core.errors import AlreadyExistsError, NotFoundError
from ...core.vectors.vector_codecs import JsonListMetadataCodec, MetadataCodec
from ...core.vectors.vector_filters import matches_normalized, normalize_filters
from ...core.vectors.vector_metrics import (
    VectorMetric,
    VectorMetricInput,
    normalize_vector_metric,
)
from ...core.vectors.vector_policies import (
    coerce_vector,
    sort_results,
    tie_break_fetch_size,
    validate_collection_name,
    validate_dimension,
    validate_records,
)
from ...core.vectors.vector_types import VectorRecord, VectorSearchResult

logger = logging.getLogger(__name__)

_SPACES = {
    VectorMetric.COSINE: "cosine",
    VectorMetric.DOT: "ip",
    VectorMetric.L2: "l2",
}


class ChromaVectorStore:
    """Vector store adapter for ChromaDB.

    Scores for cosine collections are `1 - distance`, i.e. cosine similarity in
    [-1, 1]. Metadata filters are applied by a post-query scan over the full
    similarity ordering, because list-valued metadata is stored as JSON text.
    """

    def __init__(
        self,
        *,
        path: str = "./.chroma",
        host: str | None = None,
        port: int | None = None,
        client: Any | None = None,
        metric: VectorMetricInput = VectorMetric.COSINE,
        codec: MetadataCodec | None = None,
    ) -> None:
        self._metric = normalize_vector_metric(metric, aliases={"euclid": VectorMetric.L2})
        self._codec = codec or JsonListMetadataCodec()
        self._collections: dict[str, Any] = {}
        self._dimensions: dict[str, int] = {}
        self._metrics: dict[str, VectorMetric] = {}

        if client is not None:
            self._client = client
            return

        try:
            import chromadb  # type: ignore[import-not-found]
        except ImportError as exc:  # pragma: no cover - env dependent
            raise ImportError(
                "chromadb is required for ChromaVectorStore. "
                "Install with `pip install chromadb`."
            ) from exc

        if host:
            self._client = chromadb.HttpClient(host=host, port=port or 8000)
        elif path == ":memory:":
            self._client = chromadb.EphemeralClient()
        else:
            self._client = chromadb.PersistentClient(path=path)
        logger.info("Chroma client initialised (%s)", host or path)

    def create_collection(self, name: str, dimension: int) -> None:
        validate_collection_name(name)
        validate_dimension(dimension)
        if self._collection_exists(name):
            raise AlreadyExistsError(f"Collection already exists: {name}")

        collection = self._client.create_collection(
            name=name,
            metadata={
                "hnsw:space": _SPACES[self._metric],
                "dimension": dimension,
            },
        )
        self._collections[name] = collection
        self._dimensions[name] = dimension
        self._metrics[name] = self._metric
        logger.info("Created Chroma collection %s (dimension=%d)", name, dimension)

    def delete_collection(self, name: str) -> None:
        if not self._collection_exists(name):
            raise NotFoundError(f"Collection does not exist: {name}")
        self._client.delete_collection(name=name)
        self._collections.pop(name, None)
        self._dimensions.pop(name, None)
        self._metrics.pop(name, None)
        logger.info("Deleted Chroma collection %s", name)

    def list_collections(self) -> list[str]:
        names = []
        for item in self._client.list_collections():
            names.append(item if isinstance(item, str) else getattr(item, "name", str(item)))
        return sorted(names)

    def upsert(self, collection: str, records: Sequence[VectorRecord]) -> int:
        col = self._get_collection(collection)
        if not records:
            return 0

        dimension = self._dimensions.get(collection)
        if dimension is None:
            dimension = len(records[0].values)
            self._dimensions[collection] = dimension
        validated = validate_records(records, dimension)

        with_metadata: list[tuple[VectorRecord, dict[str, Any]]] = []
        without_metadata: list[VectorRecord] = []
        for record in validated:
            encoded = self._codec.encode(record.metadata)
            if encoded:
                with_metadata.append((record, encoded))
            else:
                without_metadata.append(record)

        if with_metadata:
            col.upsert(
                ids=[record.id for record, _ in with_metadata],
                embeddings=[list(record.values) for record, _ in with_metadata],
                metadatas=[encoded for _, encoded in with_metadata],
            )
        if without_metadata:
            col.upsert(
                ids=[record.id for record in without_metadata],
                embeddings=[list(record.values) for record in without_metadata],
            )
        return len(validated)

    def query(
        self,
        collection: str,
        vector: Sequence[float],
        *,
        top_k: int = 10,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> list[VectorSearchResult]:
        if top_k <= 0:
            return []
        normalized = normalize_filters(filters)
        try:
            col = self._get_collection(collection)
        except NotFoundError:
            return []

        dimension = self._dimensions.get(collection)
        query_vector = (
            coerce_vector(vector, dimension) if dimension else tuple(float(v) for v in vector)
        )
        total = int(col.count())
        if total == 0:
            return []

        n_results = total if normalized else min(tie_break_fetch_size(top_k), total)
        result = col.query(
            query_embeddings=[list(query_vector)],
            n_results=n_results,
            include=["metadatas", "distances", "embeddings"],
        )

        ids = self._first_batch(result.get("ids"))
        distances = self._first_batch(result.get("distances"))
        metadatas = self._first_batch(result.get("metadatas"))
        embeddings = self._first_batch(result.get("embeddings"))

        metric = self._metrics.get(collection, VectorMetric.COSINE)
        parsed: list[VectorSearchResult] = []
        for idx, item_id in enumerate(ids):
            metadata = self._codec.decode(metadatas[idx] if idx < len(metadatas) else None)
            if not matches_normalized(metadata, normalized):
                continue
            distance = float(distances[idx]) if idx < len(distances) else 0.0
            values = self._as_list(embeddings[idx]) if idx < len(embeddings) else None
            parsed.append(
                VectorSearchResult(
                    id=str(item_id),
                    score=self._distance_to_score(metric, distance),
                    metadata=metadata,
                    values=values,
                )
            )
        return sort_results(parsed)[:top_k]

    def get_vector(self, collection: str, id: str) -> VectorRecord | None:
        try:
            col = self._get_collection(collection)
        except NotFoundError:
            return None
        rows = col.get(ids=[id], include=["embeddings", "metadatas"])
        row_ids = self._as_list(rows.get("ids"))
        if not row_ids:
            return None
        vectors = self._as_list(rows.get("embeddings"))
        metadatas = self._as_list(rows.get("metadatas"))
        return VectorRecord(
            id=str(row_ids[0]),
            values=[float(v) for v in self._as_list(vectors[0])] if vectors else [],
            metadata=self._codec.decode(metadatas[0] if metadatas else None),
        )

    def delete_vectors(self, collection: str, ids: Sequence[str]) -> int:
        col = self._get_collection(collection)
        if not ids:
            return 0
        unique_ids = list(dict.fromkeys(ids))
        rows = col.get(ids=unique_ids, include=["metadatas"])
        existing_ids = [str(item) for item in self._as_list(rows.get("ids"))]
        if not existing_ids:
            return 0
        col.delete(ids=existing_ids)
        return len(existing_ids)

    def is_connected(self) -> bool:
        try:
            self._client.heartbeat()
        except Exception:  # noqa: BLE001
            logger.warning("Chroma heartbeat failed", exc_info=True)
            return False
        return True

    def _get_collection(self, name: str) -> Any:
        if name in self._collections:
            return self._collections[name]

        if not self._collection_exists(name):
            raise NotFoundError(f"Collection does not exist: {name}")

        collection = self._client.get_collection(name=name)
        self._collections[name] = collection

        metadata = getattr(collection, "metadata", None) or {}
        dimension = metadata.get("dimension")
        if isinstance(dimension, int) and dimension > 0:
            self._dimensions[name] = dimension

        hnsw_space = metadata.get("hnsw:space", "cosine")
        self._metrics[name] = {
            "cosine": VectorMetric.COSINE,
            "ip": VectorMetric.DOT,
            "l2": VectorMetric.L2,
        }.get(str(hnsw_space), VectorMetric.COSINE)

        return collection

    def _collection_exists(self, name: str) -> bool:
        return name in self.list_collections()

    @staticmethod
    def _distance_to_score(metric: VectorMetric, distance: float) -> float:
        if metric == VectorMetric.COSINE:
            return 1.0 - distance
        return -distance

    @staticmethod
    def _as_list(values: Any) -> list[Any]:
        if values is None:
            return []
        if hasattr(values, "tolist"):
            values = values.tolist()
        return list(values)

    @classmethod
    def _first_batch(cls, values: Any) -> list[Any]:
        outer = cls._as_list(values)
        if not outer:
            return []

        first = outer[0]
        if hasattr(first, "tolist"):
            first = first.tolist()
        if isinstance(first, (list, tuple)):
            return list(first)
        return outer
