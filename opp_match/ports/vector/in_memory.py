"""In-memory vector store adapter for testing and local development."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

import numpy as np

from ...core.errors import AlreadyExistsError, NotFoundError
from ...core.vectors.vector_filters import matches_normalized, normalize_filters
from ...core.vectors.vector_metrics import (
    VectorMetric,
    VectorMetricInput,
    normalize_vector_metric,
    score_matrix,
)
from ...core.vectors.vector_policies import (
    coerce_vector,
    sort_results,
    validate_collection_name,
    validate_dimension,
    validate_records,
)
from ...core.vectors.vector_types import VectorRecord, VectorSearchResult

logger = logging.getLogger(__name__)


@dataclass
class _CollectionState:
    dimension: int
    metric: VectorMetric
    records: dict[str, VectorRecord] = field(default_factory=dict)


class InMemoryVectorStore:
    """Simple in-memory implementation of vector database operations.

    Scores are exact cosine similarities in [-1, 1] (or dot / negated L2 distance
    for collections created with those metrics). Filters are fully evaluated in
    process. Safe to share across threads.
    """

    def __init__(self, *, metric: VectorMetricInput = VectorMetric.COSINE) -> None:
        self._metric = normalize_vector_metric(metric)
        self._collections: dict[str, _CollectionState] = {}
        self._lock = threading.RLock()

    def create_collection(
        self,
        name: str,
        dimension: int,
        metric: VectorMetricInput | None = None,
    ) -> None:
        validate_collection_name(name)
        validate_dimension(dimension)
        normalized_metric = normalize_vector_metric(metric or self._metric)
        with self._lock:
            if name in self._collections:
                raise AlreadyExistsError(f"Collection already exists: {name}")
            self._collections[name] = _CollectionState(
                dimension=dimension,
                metric=normalized_metric,
            )
        logger.info("Created in-memory collection %s (dimension=%d)", name, dimension)

    def delete_collection(self, name: str) -> None:
        with self._lock:
            if name not in self._collections:
                raise NotFoundError(f"Collection does not exist: {name}")
            del self._collections[name]
        logger.info("Deleted in-memory collection %s", name)

    def list_collections(self) -> list[str]:
        with self._lock:
            return sorted(self._collections)

    def upsert(self, collection: str, records: Sequence[VectorRecord]) -> int:
        with self._lock:
            state = self._get_collection(collection)
            validated = validate_records(records, state.dimension)
            for record in validated:
                state.records[record.id] = record
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

        with self._lock:
            state = self._collections.get(collection)
            if state is None:
                return []
            query_vector = coerce_vector(vector, state.dimension)
            candidates = [
                record
                for record in state.records.values()
                if matches_normalized(record.metadata, normalized)
            ]
            metric = state.metric

        if not candidates:
            return []

        matrix = np.asarray([record.values for record in candidates], dtype=np.float64)
        scores = score_matrix(metric, query_vector, matrix)
        scored = [
            VectorSearchResult(
                id=record.id,
                score=float(score),
                metadata=dict(record.metadata) if record.metadata is not None else None,
                values=record.values,
            )
            for record, score in zip(candidates, scores)
        ]
        return sort_results(scored)[:top_k]

    def get_vector(self, collection: str, id: str) -> VectorRecord | None:
        with self._lock:
            state = self._collections.get(collection)
            if state is None:
                return None
            return state.records.get(id)

    def delete_vectors(self, collection: str, ids: Sequence[str]) -> int:
        with self._lock:
            state = self._get_collection(collection)
            deleted = 0
            for item_id in ids:
                if state.records.pop(item_id, None) is not None:
                    deleted += 1
        return deleted

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._get_collection(collection).records)

    def is_connected(self) -> bool:
        return True

    def _get_collection(self, name: str) -> _CollectionState:
        if name not in self._collections:
            raise NotFoundError(f"Collection does not exist: {name}")
        return self._collections[name]
