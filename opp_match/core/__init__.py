"""Public core API for vector matching, caching and alerting."""

from .cache import CacheEntry, CacheLayer, chat_key, embedding_key, search_key
from .contracts import AsyncVectorStorePort, EmbeddingProviderPort, Notifier, VectorStorePort
from .embeddings import (
    EmbeddingService,
    HashEmbeddingProvider,
    OpenAIEmbeddingProvider,
    build_embedding_provider,
)
from .errors import (
    AlreadyExistsError,
    BackendUnavailableError,
    DimensionMismatchError,
    InvalidArgumentError,
    MatchCoreError,
    NotFoundError,
    ProviderUnavailableError,
    UnsupportedOperationError,
)
from .matching import MatchingEngine
from .models import (
    AlertPriority,
    AlertType,
    CompanyProfile,
    ContactInfo,
    MatchAlert,
    MatchFilters,
    MatchResult,
    Opportunity,
    SearchResponse,
)
from .rate_limit import FixedWindowRateLimiter, RateLimitDecision, RateLimitRule
from .realtime import MatcherConfig, RealTimeMatcher, classify_alert, format_alert_message
from .validated_model import ValidatedModel, ValidationError
from .vectors.factory import VectorStoreFactory, create_vector_store
from .vectors.vector_codecs import JsonListMetadataCodec, MetadataCodec, PassthroughMetadataCodec
from .vectors.vector_filters import matches, normalize_filters
from .vectors.vector_metrics import VectorMetric, VectorMetricInput, normalize_vector_metric
from .vectors.vector_repository_async import AsyncVectorRepository, call_store
from .vectors.vector_types import QueryOutcome, UpsertResult, VectorRecord, VectorSearchResult

__all__ = [
    "CacheEntry",
    "CacheLayer",
    "chat_key",
    "embedding_key",
    "search_key",
    "AsyncVectorStorePort",
    "EmbeddingProviderPort",
    "Notifier",
    "VectorStorePort",
    "EmbeddingService",
    "HashEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "build_embedding_provider",
    "MatchCoreError",
    "InvalidArgumentError",
    "AlreadyExistsError",
    "DimensionMismatchError",
    "UnsupportedOperationError",
    "NotFoundError",
    "BackendUnavailableError",
    "ProviderUnavailableError",
    "MatchingEngine",
    "AlertPriority",
    "AlertType",
    "CompanyProfile",
    "ContactInfo",
    "MatchAlert",
    "MatchFilters",
    "MatchResult",
    "Opportunity",
    "SearchResponse",
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "RateLimitRule",
    "MatcherConfig",
    "RealTimeMatcher",
    "classify_alert",
    "format_alert_message",
    "ValidatedModel",
    "ValidationError",
    "VectorStoreFactory",
    "create_vector_store",
    "MetadataCodec",
    "JsonListMetadataCodec",
    "PassthroughMetadataCodec",
    "matches",
    "normalize_filters",
    "VectorMetric",
    "VectorMetricInput",
    "normalize_vector_metric",
    "AsyncVectorRepository",
    "call_store",
    "QueryOutcome",
    "UpsertResult",
    "VectorRecord",
    "VectorSearchResult",
]
