"""Explicit wiring of the single-instance collaborators behind one facade."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence

from .config import Settings
from .core.cache import CHAT_NAMESPACE, EMBEDDING_NAMESPACE, SEARCH_NAMESPACE, CacheLayer
from .core.contracts import EmbeddingProviderPort, Notifier, VectorStorePort
from .core.embeddings import EmbeddingService, build_embedding_provider
from .core.errors import BackendUnavailableError
from .core.matching import FiltersInput, MatchingEngine, QueryInput
from .core.models import CompanyProfile, MatchAlert, Opportunity, SearchResponse
from .core.rate_limit import FixedWindowRateLimiter, RateLimitDecision
from .core.realtime import MatcherConfig, RealTimeMatcher
from .core.vectors.factory import VectorStoreFactory
from .core.vectors.vector_repository_async import call_store
from .core.vectors.vector_types import UpsertResult

logger = logging.getLogger(__name__)


class MatchingService:
    """Builds the vector store, cache, embeddings, engine and matcher once.

    Construct one per process at start-up and `await close()` at shutdown.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        vector_store: VectorStorePort | None = None,
        embedding_provider: EmbeddingProviderPort | None = None,
        notifier: Notifier | None = None,
        rate_limiter: FixedWindowRateLimiter | None = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.factory = VectorStoreFactory(self.settings)
        self.store = vector_store if vector_store is not None else self.factory.get()

        self.cache = CacheLayer(
            enabled=self.settings.cache_enabled,
            ttls={
                CHAT_NAMESPACE: self.settings.cache_chat_ttl_s,
                EMBEDDING_NAMESPACE: self.settings.cache_embedding_ttl_s,
                SEARCH_NAMESPACE: self.settings.cache_search_ttl_s,
            },
            default_ttl=self.settings.cache_default_ttl_s,
        )
        self.embeddings = EmbeddingService(
            embedding_provider or build_embedding_provider(self.settings),
            cache=self.cache,
            dimension=self.settings.vector_dimension,
            timeout=self.settings.backend_timeout_s,
            fallback_on_error=self.settings.embedding_fallback_on_error,
        )
        self.engine = MatchingEngine(
            self.store,
            self.embeddings,
            dimension=self.settings.vector_dimension,
            cache=self.cache,
            timeout=self.settings.backend_timeout_s,
        )
        self.matcher = RealTimeMatcher(
            self.engine,
            config=MatcherConfig.from_settings(self.settings),
            notifier=notifier,
        )
        self.rate_limiter = rate_limiter or FixedWindowRateLimiter()
        logger.info(
            "Matching service ready (vector=%s, embeddings=%s)",
            self.settings.vector_provider,
            self.embeddings.provider.name,
        )

    # matcher control

    async def start(self, profile: CompanyProfile) -> None:
        await self.matcher.start(profile)

    def stop(self, profile_id: str | None = None) -> None:
        self.matcher.stop(profile_id)

    def update_config(self, changes: Mapping[str, Any] | None = None, **kwargs: Any) -> MatcherConfig:
        return self.matcher.update_config(changes, **kwargs)

    def get_stats(self) -> dict[str, Any]:
        return self.matcher.get_stats()

    def get_alerts(self, profile_id: str) -> list[MatchAlert]:
        return self.matcher.get_alerts(profile_id)

    def mark_alert_as_read(self, alert_id: str, profile_id: str) -> bool:
        return self.matcher.mark_alert_as_read(alert_id, profile_id)

    def mark_alert_action_taken(self, alert_id: str, profile_id: str, action: str) -> bool:
        return self.matcher.mark_alert_action_taken(alert_id, profile_id, action)

    def clear_alerts(self, profile_id: str) -> int:
        return self.matcher.clear_alerts(profile_id)

    # search and ingestion

    async def query(
        self,
        query: QueryInput,
        *,
        collection: Optional[str] = None,
        top_k: int = 10,
        filters: FiltersInput = None,
    ) -> SearchResponse:
        return await self.engine.query(query, collection=collection, top_k=top_k, filters=filters)

    async def add_company_profile(self, profile: CompanyProfile) -> UpsertResult:
        return await self.engine.add_company_profile(profile)

    async def add_opportunities(self, opportunities: Iterable[Opportunity]) -> UpsertResult:
        return await self.engine.add_opportunities(opportunities)

    # cache administration

    def cache_stats(self) -> dict[str, Any]:
        return self.cache.get_stats()

    def clear_cache(self) -> None:
        self.cache.clear()

    def clear_cache_by_prefix(self, prefix: str) -> int:
        return self.cache.clear_by_prefix(prefix)

    def delete_cache_key(self, key: str) -> bool:
        return self.cache.delete_key(key)

    # collection administration

    async def list_collections(self) -> Sequence[str]:
        return await call_store(self.store, "list_collections", timeout=self.settings.backend_timeout_s)

    async def delete_collection(self, name: str) -> None:
        await call_store(self.store, "delete_collection", name, timeout=self.settings.backend_timeout_s)
        self.engine.forget_collection(name)
        logger.info("Deleted collection %s", name)

    async def vector_store_status(self) -> dict[str, Any]:
        try:
            connected = bool(
                await call_store(self.store, "is_connected", timeout=self.settings.backend_timeout_s)
            )
        except BackendUnavailableError:
            connected = False
        collections: Sequence[str] = []
        if connected:
            collections = await self.list_collections()
        return {
            "provider": self.settings.vector_provider,
            "connected": connected,
            "collections": list(collections),
            "dimension": self.settings.vector_dimension,
        }

    # ingress

    def check_rate_limit(self, client_id: str, endpoint_class: str = "default") -> RateLimitDecision:
        return self.rate_limiter.check(client_id, endpoint_class)

    async def close(self) -> None:
        await self.matcher.shutdown()
        self.factory.reset()
        logger.info("Matching service closed")
