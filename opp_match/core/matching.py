"""Similarity matching of profiles and free-text queries against opportunities."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from .cache import SEARCH_NAMESPACE, CacheLayer, search_key
from .contracts import AsyncVectorStorePort, VectorStorePort
from .embeddings import EmbeddingService
from .errors import InvalidArgumentError
from .models import (
    OPPORTUNITY_TYPE,
    CompanyProfile,
    MatchFilters,
    MatchResult,
    Opportunity,
    SearchResponse,
)
from .vectors.vector_filters import normalize_filters
from .vectors.vector_repository_async import DEFAULT_TIMEOUT_S, AsyncVectorRepository
from .vectors.vector_types import UpsertResult, VectorRecord, VectorSearchResult

logger = logging.getLogger(__name__)

OPPORTUNITIES_COLLECTION = "opportunities"
PROFILES_COLLECTION = "company_profiles"

QueryInput = Union[str, Sequence[float]]
FiltersInput = Union[MatchFilters, Mapping[str, Any], None]


def _as_filters(filters: FiltersInput) -> dict[str, Any]:
    if filters is None:
        return {}
    if isinstance(filters, MatchFilters):
        return filters.to_filters()
    return dict(filters)


class MatchingEngine:
    """Scores profiles, texts or raw vectors against a candidate collection.

    Scores are the backend's cosine similarity, passed through unchanged.
    Search results are cached by vector, collection, `top_k` and normalized
    filters; any write through the engine drops cached searches.
    """

    def __init__(
        self,
        store: VectorStorePort | AsyncVectorStorePort,
        embeddings: EmbeddingService,
        *,
        dimension: int,
        cache: CacheLayer | None = None,
        timeout: float | None = DEFAULT_TIMEOUT_S,
        opportunities_collection: str = OPPORTUNITIES_COLLECTION,
        profiles_collection: str = PROFILES_COLLECTION,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.dimension = dimension
        self.cache = cache
        self.timeout = timeout
        self.opportunities_collection = opportunities_collection
        self.profiles_collection = profiles_collection
        self._repositories: dict[str, AsyncVectorRepository] = {}

    def repository(self, collection: str) -> AsyncVectorRepository:
        repo = self._repositories.get(collection)
        if repo is None:
            repo = AsyncVectorRepository(
                self.store,
                collection,
                dimension=self.dimension,
                timeout=self.timeout,
            )
            self._repositories[collection] = repo
        return repo

    def forget_collection(self, collection: str) -> None:
        """Drop the cached repository and cached searches after a collection is deleted."""
        self._repositories.pop(collection, None)
        self._invalidate_searches()

    async def query(
        self,
        query: QueryInput,
        *,
        collection: Optional[str] = None,
        top_k: int = 10,
        filters: FiltersInput = None,
    ) -> SearchResponse:
        """Search `collection` with a text query or a ready-made vector."""

        target = collection or self.opportunities_collection
        vector = await self._vector_for(query)
        normalized = normalize_filters(_as_filters(filters))

        key = search_key(vector, target, top_k, normalized)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        outcome = await self.repository(target).query(
            vector,
            top_k=top_k,
            filters=normalized or None,
        )
        response = SearchResponse(
            results=tuple(self._to_match(item) for item in outcome.results),
            skipped=outcome.skipped,
        )
        if self.cache is not None:
            self.cache.set(key, response)
        logger.debug(
            "Query on %s returned %d result(s), %d skipped",
            target,
            response.total_results,
            response.skipped,
        )
        return response

    async def match_profile(
        self,
        profile: CompanyProfile,
        *,
        top_k: int = 10,
        filters: FiltersInput = None,
    ) -> SearchResponse:
        """Rank opportunities for `profile`; only `type == "opportunity"` records qualify."""

        text = profile.embedding_text()
        if not text:
            raise InvalidArgumentError(f"Profile {profile.id!r} has no text to match on")
        vector = await self.embeddings.embed(text, allow_fallback=False)
        merged = _as_filters(filters)
        merged["type"] = {"$eq": OPPORTUNITY_TYPE}
        return await self.query(
            vector,
            collection=self.opportunities_collection,
            top_k=top_k,
            filters=merged,
        )

    async def add_company_profile(self, profile: CompanyProfile) -> UpsertResult:
        text = profile.embedding_text()
        if not text:
            raise InvalidArgumentError(f"Profile {profile.id!r} has no text to vectorize")
        vector = await self.embeddings.embed(text, allow_fallback=False)
        result = await self.repository(self.profiles_collection).upsert(
            [VectorRecord(id=profile.vector_id, values=vector, metadata=profile.to_metadata())]
        )
        self._invalidate_searches()
        logger.info("Stored company profile %s as %s", profile.id, profile.vector_id)
        return result

    async def add_opportunities(self, opportunities: Iterable[Opportunity]) -> UpsertResult:
        """Embed and upsert opportunities, skipping and counting unusable records."""

        records: list[VectorRecord] = []
        empty_ids: list[str] = []
        for opportunity in opportunities:
            text = opportunity.embedding_text()
            if not text:
                empty_ids.append(opportunity.id)
                continue
            vector = await self.embeddings.embed(text, allow_fallback=False)
            records.append(
                VectorRecord(id=opportunity.id, values=vector, metadata=opportunity.to_metadata())
            )
        if empty_ids:
            logger.warning(
                "Skipped %d opportunity record(s) without text: %s", len(empty_ids), empty_ids
            )

        result = UpsertResult(skipped=len(empty_ids), skipped_ids=tuple(empty_ids))
        if records:
            result = result + await self.repository(self.opportunities_collection).upsert(
                records,
                skip_invalid=True,
            )
            self._invalidate_searches()
        logger.info(
            "Upserted %d opportunity record(s), skipped %d",
            result.upserted,
            result.skipped,
        )
        return result

    async def _vector_for(self, query: QueryInput) -> list[float]:
        if isinstance(query, str):
            return await self.embeddings.embed(query)
        vector = [float(v) for v in query]
        if not vector:
            raise InvalidArgumentError("Query vector must not be empty")
        return vector

    def _invalidate_searches(self) -> None:
        if self.cache is not None:
            self.cache.clear_by_prefix(f"{SEARCH_NAMESPACE}:")

    @staticmethod
    def _to_match(item: VectorSearchResult) -> MatchResult:
        metadata = dict(item.metadata or {})
        opportunity = None
        if metadata.get("type") == OPPORTUNITY_TYPE:
            opportunity = Opportunity.from_metadata(item.id, metadata)
        return MatchResult(id=item.id, score=item.score, metadata=metadata, opportunity=opportunity)
