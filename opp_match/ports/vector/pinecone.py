"""Pinecone adapter implementing vector store operations (cloud backend).

This adapter is optional and requires `pinecone` package installed.

All collections live in one serverless index as namespaces, so every collection
shares the index dimension. The index is created on first use.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from ...core.errors import (
    AlreadyExistsError,
    InvalidArgumentError,
    NotFoundError,
    UnsupportedOperationError,
)
from ...core.vectors.vector_codecs import MetadataCodec, PassthroughMetadataCodec
from ...core.vectors.vector_filters import matches_normalized, split_filters
from ...core.vectors.vector_policies import (
    DEFAULT_DIMENSION,
    coerce_vector,
    sort_results,
    tie_break_fetch_size,
    validate_collection_name,
    validate_dimension,
    validate_records,
)
from ...core.vectors.vector_types import VectorRecord, VectorSearchResult

logger = logging.getLogger(__name__)

UPSERT_BATCH_SIZE = 100
MAX_TOP_K = 10_000


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read `name` from SDK response objects or plain dicts."""
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


class PineconeVectorStore:
    """Vector store adapter for a Pinecone serverless index.

    Scores are Pinecone's native cosine similarity ([-1, 1]); they are passed
    through unchanged. Filters are pushed down except range filters on
    non-numeric values (Pinecone ranges are numeric only); those are applied to
    an over-fetched candidate set.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        index_name: str = "opportunities",
        dimension: int = DEFAULT_DIMENSION,
        cloud: str = "aws",
        region: str = "us-east-1",
        client: Any | None = None,
        overfetch: int = 10,
        codec: MetadataCodec | None = None,
    ) -> None:
        validate_dimension(dimension)
        self._index_name = index_name
        self._dimension = dimension
        self._cloud = cloud
        self._region = region
        self._overfetch = max(1, overfetch)
        self._codec = codec or PassthroughMetadataCodec()
        self._index: Any | None = None
        self._known_namespaces: set[str] = set()

        if client is not None:
            self._pc = client
            return

        if not api_key:
            raise InvalidArgumentError("PineconeVectorStore requires an API key")
        try:
            from pinecone import Pinecone  # type: ignore[import-not-found]
        except ImportError as exc:  # pragma: no cover - env dependent
            raise ImportError(
                "pinecone is required for PineconeVectorStore. "
                "Install with `pip install pinecone`."
            ) from exc
        self._pc = Pinecone(api_key=api_key)
        logger.info("Pinecone client initialised (index=%s)", index_name)

    @property
    def dimension(self) -> int:
        return self._dimension

    def create_collection(self, name: str, dimension: int) -> None:
        validate_collection_name(name)
        validate_dimension(dimension)
        if dimension != self._dimension:
            raise UnsupportedOperationError(
                f"Pinecone index {self._index_name!r} has dimension {self._dimension}; "
                f"cannot host a collection of dimension {dimension}"
            )
        if self._namespace_exists(name):
            raise AlreadyExistsError(f"Collection already exists: {name}")
        self._known_namespaces.add(name)
        logger.info("Registered Pinecone namespace %s in index %s", name, self._index_name)

    def delete_collection(self, name: str) -> None:
        stored = self._stored_namespaces()
        if name not in stored and name not in self._known_namespaces:
            raise NotFoundError(f"Collection does not exist: {name}")
        if name in stored:
            self._get_index().delete(delete_all=True, namespace=name)
        self._known_namespaces.discard(name)
        logger.info("Deleted Pinecone namespace %s", name)

    def list_collections(self) -> list[str]:
        return sorted(self._stored_namespaces() | self._known_namespaces)

    def upsert(self, collection: str, records: Sequence[VectorRecord]) -> int:
        self._require_namespace(collection)
        validated = validate_records(records, self._dimension)
        index = self._get_index()

        payload = []
        for record in validated:
            item: dict[str, Any] = {"id": record.id, "values": list(record.values)}
            metadata = self._codec.encode(record.metadata)
            if metadata:
                item["metadata"] = metadata
            payload.append(item)

        for start in range(0, len(payload), UPSERT_BATCH_SIZE):
            index.upsert(
                vectors=payload[start : start + UPSERT_BATCH_SIZE],
                namespace=collection,
            )
        self._known_namespaces.add(collection)
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
        query_vector = coerce_vector(vector, self._dimension)
        native, residual = split_filters(filters)
        fetch_k = top_k * self._overfetch if residual else tie_break_fetch_size(top_k)
        fetch_k = min(MAX_TOP_K, max(fetch_k, tie_break_fetch_size(top_k)))

        response = self._get_index().query(
            vector=list(query_vector),
            top_k=fetch_k,
            filter=native or None,
            include_values=True,
            include_metadata=True,
            namespace=collection,
        )

        parsed: list[VectorSearchResult] = []
        for match in _field(response, "matches", None) or []:
            metadata = self._codec.decode(_field(match, "metadata", None))
            if residual and not matches_normalized(metadata, residual):
                continue
            values = _field(match, "values", None)
            parsed.append(
                VectorSearchResult(
                    id=str(_field(match, "id")),
                    score=float(_field(match, "score", 0.0) or 0.0),
                    metadata=metadata,
                    values=list(values) if values else None,
                )
            )
        return sort_results(parsed)[:top_k]

    def get_vector(self, collection: str, id: str) -> VectorRecord | None:
        response = self._get_index().fetch(ids=[id], namespace=collection)
        vectors = _field(response, "vectors", None) or {}
        data = vectors.get(id)
        if data is None:
            return None
        return VectorRecord(
            id=str(_field(data, "id", id)),
            values=[float(v) for v in (_field(data, "values", None) or [])],
            metadata=self._codec.decode(_field(data, "metadata", None)),
        )

    def delete_vectors(self, collection: str, ids: Sequence[str]) -> int:
        self._require_namespace(collection)
        if not ids:
            return 0
        index = self._get_index()
        unique_ids = list(dict.fromkeys(ids))
        response = index.fetch(ids=unique_ids, namespace=collection)
        existing = [item_id for item_id in unique_ids if item_id in (_field(response, "vectors", None) or {})]
        if existing:
            index.delete(ids=existing, namespace=collection)
        return len(existing)

    def is_connected(self) -> bool:
        try:
            self._pc.list_indexes()
        except Exception:  # noqa: BLE001
            logger.warning("Pinecone connection check failed", exc_info=True)
            return False
        return True

    def _get_index(self) -> Any:
        if self._index is not None:
            return self._index

        if not self._pc.has_index(self._index_name):
            from pinecone import ServerlessSpec  # type: ignore[import-not-found]

            logger.info(
                "Creating Pinecone index %s (dimension=%d, %s/%s)",
                self._index_name,
                self._dimension,
                self._cloud,
                self._region,
            )
            self._pc.create_index(
                name=self._index_name,
                dimension=self._dimension,
                metric="cosine",
                spec=ServerlessSpec(cloud=self._cloud, region=self._region),
            )
        self._index = self._pc.Index(self._index_name)
        return self._index

    def _stored_namespaces(self) -> set[str]:
        stats = self._get_index().describe_index_stats()
        namespaces = _field(stats, "namespaces", None) or {}
        return {str(name) for name in namespaces if name}

    def _namespace_exists(self, name: str) -> bool:
        return name in self._known_namespaces or name in self._stored_namespaces()

    def _require_namespace(self, name: str) -> None:
        if not self._namespace_exists(name):
            raise NotFoundError(f"Collection does not exist: {name}")
