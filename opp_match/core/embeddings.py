"""Embedding providers and the cached embedding service."""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING, Any, List

import numpy as np
from openai import AsyncOpenAI

from ._async_utils import call_bounded
from .cache import CacheLayer, embedding_key
from .contracts import EmbeddingProviderPort
from .errors import (
    BackendUnavailableError,
    DimensionMismatchError,
    InvalidArgumentError,
    ProviderUnavailableError,
)

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

OPENAI_EMBEDDING_MODEL = "text-embedding-3-small"
OPENAI_EMBEDDING_DIMENSIONS = 1536


class OpenAIEmbeddingProvider:
    """Embeddings from the OpenAI API via `AsyncOpenAI`."""

    name = "openai"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = OPENAI_EMBEDDING_MODEL,
        dimension: int = OPENAI_EMBEDDING_DIMENSIONS,
        timeout: float = 10.0,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.dimension = dimension
        if client is None:
            if not api_key:
                raise InvalidArgumentError("OpenAIEmbeddingProvider requires an API key")
            client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=1)
        self._client = client

    async def embed(self, text: str) -> List[float]:
        logger.debug("Generating embedding for text (first 50 chars): %s", text[:50])
        kwargs: dict[str, Any] = {"model": self.model, "input": text}
        if self.model.startswith("text-embedding-3") and self.dimension != OPENAI_EMBEDDING_DIMENSIONS:
            kwargs["dimensions"] = self.dimension
        response = await self._client.embeddings.create(**kwargs)
        embedding = list(response.data[0].embedding)
        logger.debug("Generated embedding of length %d", len(embedding))
        return embedding


class HashEmbeddingProvider:
    """Deterministic pseudo-embedding seeded by the SHA-256 of the text.

    Equal texts map to equal unit vectors, which is enough for local development
    and tests; it carries no semantic similarity.
    """

    name = "hash"
    model = "sha256-normal-v1"

    def __init__(self, *, dimension: int = OPENAI_EMBEDDING_DIMENSIONS) -> None:
        if dimension <= 0:
            raise InvalidArgumentError("dimension must be > 0")
        self.dimension = dimension

    def vector(self, text: str) -> List[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        rng = np.random.default_rng(int.from_bytes(digest[:8], "big"))
        values = rng.standard_normal(self.dimension)
        values /= np.linalg.norm(values)
        return values.tolist()

    async def embed(self, text: str) -> List[float]:
        return self.vector(text)


class EmbeddingService:
    """Embeds text through a provider, with caching and an optional hash fallback."""

    def __init__(
        self,
        provider: EmbeddingProviderPort,
        *,
        cache: CacheLayer | None = None,
        dimension: int | None = None,
        timeout: float | None = 10.0,
        fallback_on_error: bool = False,
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.dimension = dimension or provider.dimension
        self.timeout = timeout
        self.fallback_on_error = fallback_on_error
        self._fallback = HashEmbeddingProvider(dimension=self.dimension)

    async def embed(self, text: str, *, allow_fallback: bool = True) -> List[float]:
        """Embed `text` through the provider, using the cache when present.

        The hash fallback is used only when both `fallback_on_error` and
        `allow_fallback` are true. Callers that store vectors or raise alerts
        pass `allow_fallback=False`.
        """

        if not isinstance(text, str) or not text.strip():
            raise InvalidArgumentError("Cannot embed empty text")

        key = embedding_key(text, self.provider.name, self.provider.model)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return list(cached)

        try:
            vector = await call_bounded(
                self.provider.embed,
                text,
                timeout=self.timeout,
                operation=f"{self.provider.name} embedding",
            )
        except BackendUnavailableError as exc:
            if not (self.fallback_on_error and allow_fallback):
                raise ProviderUnavailableError(str(exc)) from exc
            logger.warning("Embedding provider failed (%s); using hash fallback", exc)
            return self._fallback.vector(text)

        vector = [float(v) for v in vector]
        if len(vector) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(vector))
        if self.cache is not None:
            self.cache.set(key, vector)
        return vector


def build_embedding_provider(settings: "Settings") -> EmbeddingProviderPort:
    """Pick the configured provider; without an OpenAI key, fall back to hashing."""

    if settings.embed_provider == "openai":
        if settings.openai_api_key:
            return OpenAIEmbeddingProvider(
                api_key=settings.openai_api_key,
                model=settings.embedding_model,
                dimension=settings.vector_dimension,
                timeout=settings.backend_timeout_s,
            )
        logger.warning("OPENAI_API_KEY is not set; using hash embeddings")
    return HashEmbeddingProvider(dimension=settings.vector_dimension)
