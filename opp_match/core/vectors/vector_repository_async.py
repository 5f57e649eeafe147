"""Async repository abstraction for vector database operations."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from .._async_utils import call_bounded
from ..contracts import AsyncVectorStorePort, VectorStorePort
from ..errors import AlreadyExistsError, DimensionMismatchError
from .vector_filters import normalize_filters
from .vector_policies import coerce_vector, validate_collection_name, validate_dimension
from .vector_types import QueryOutcome, UpsertResult, VectorRecord, VectorSearchResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10.0


async def call_store(
    store: VectorStorePort | AsyncVectorStorePort,
    method: str,
    *args: Any,
    timeout: float | None = DEFAULT_TIMEOUT_S,
    **kwargs: Any,
) -> Any:
    """Invoke `store.<method>` off the event loop with a bounded timeout."""

    fn = getattr(store, method)
    return await call_bounded(
        fn,
        *args,
        timeout=timeout,
        operation=f"{type(store).__name__}.{method}",
        **kwargs,
    )


class AsyncVectorRepository:
    """Async collection-bound vector operations backed by a vector store port."""

    def __init__(
        self,
        store: VectorStorePort | AsyncVectorStorePort,
        collection: str,
        *,
        dimension: int,
        timeout: float | None = DEFAULT_TIMEOUT_S,
        auto_create: bool = True,
    ) -> None:
        """Create an async vector repository.

        Args:
            store: Concrete vector store adapter (sync or async).
            collection: Logical collection name.
            dimension: Vector dimension for this collection.
            timeout: Seconds allowed for each backend call.
            auto_create: Create the collection on first write if it is missing.
        """

        validate_collection_name(collection)
        validate_dimension(dimension)
        self.store = store
        self.collection = collection
        self.dimension = dimension
        self.timeout = timeout
        self.auto_create = auto_create
        self._ensured = False

    async def create_collection(self) -> None:
        await self._call("create_collection", self.collection, self.dimension)
        self._ensured = True

    async def ensure_collection(self) -> None:
        """Create the collection unless it already exists."""

        if self._ensured:
            return
        try:
            await self.create_collection()
        except AlreadyExistsError:
            self._ensured = True

    async def upsert(
        self,
        records: Sequence[VectorRecord],
        *,
        skip_invalid: bool = False,
    ) -> UpsertResult:
        """Insert or update vector records.

        With `skip_invalid`, records whose dimension disagrees with the collection
        are left out and reported in the result; otherwise the first such record
        raises `DimensionMismatchError` and nothing is written.
        """

        accepted: list[VectorRecord] = []
        skipped_ids: list[str] = []
        for record in records:
            if len(record.values) == self.dimension:
                accepted.append(record)
            elif skip_invalid:
                skipped_ids.append(record.id)
            else:
                raise DimensionMismatchError(
                    self.dimension, len(record.values), record_id=record.id
                )
        if skipped_ids:
            logger.warning(
                "Skipped %d record(s) with wrong dimension for %s: %s",
                len(skipped_ids),
                self.collection,
                skipped_ids,
            )
        if not accepted:
            return UpsertResult(skipped=len(skipped_ids), skipped_ids=tuple(skipped_ids))

        if self.auto_create:
            await self.ensure_collection()
        upserted = await self._call("upsert", self.collection, accepted)
        return UpsertResult(
            upserted=int(upserted),
            skipped=len(skipped_ids),
            skipped_ids=tuple(skipped_ids),
        )

    async def query(
        self,
        vector: Sequence[float],
        *,
        top_k: int = 10,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> QueryOutcome:
        """Search nearest vectors in the collection.

        Hits whose stored vector length disagrees with the collection dimension
        are excluded and counted in `skipped`.
        """

        query_vector = coerce_vector(vector, self.dimension)
        normalized = normalize_filters(filters)
        raw_results: list[VectorSearchResult] = await self._call(
            "query",
            self.collection,
            list(query_vector),
            top_k=top_k,
            filters=normalized or None,
        )

        kept: list[VectorSearchResult] = []
        skipped = 0
        for item in raw_results:
            if item.values is not None and len(item.values) != self.dimension:
                skipped += 1
                continue
            kept.append(item)
        if skipped:
            logger.warning(
                "Excluded %d result(s) with wrong dimension from %s",
                skipped,
                self.collection,
            )
        return QueryOutcome(results=tuple(kept), skipped=skipped)

    async def get_vector(self, id: str) -> VectorRecord | None:
        return await self._call("get_vector", self.collection, id)

    async def delete(self, ids: Sequence[str]) -> int:
        """Delete records by ids and return number of deleted rows."""

        return int(await self._call("delete_vectors", self.collection, list(ids)))

    async def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        return await call_store(self.store, method, *args, timeout=self.timeout, **kwargs)
