"""Builds the one vector backend selected by configuration."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable

from ..contracts import VectorStorePort
from ..errors import InvalidArgumentError

if TYPE_CHECKING:
    from ...config import Settings

logger = logging.getLogger(__name__)


def _build_memory(settings: "Settings") -> VectorStorePort:
    from ...ports.vector.in_memory import InMemoryVectorStore

    return InMemoryVectorStore()


def _build_chroma(settings: "Settings") -> VectorStorePort:
    from ...ports.vector.chroma import ChromaVectorStore

    return ChromaVectorStore(
        path=settings.chroma_path,
        host=settings.chroma_host,
        port=settings.chroma_port,
    )


def _build_pinecone(settings: "Settings") -> VectorStorePort:
    from ...ports.vector.pinecone import PineconeVectorStore

    if not settings.pinecone_api_key:
        raise InvalidArgumentError("VECTOR_PROVIDER=pinecone requires PINECONE_API_KEY")
    return PineconeVectorStore(
        api_key=settings.pinecone_api_key,
        index_name=settings.pinecone_index_name,
        dimension=settings.vector_dimension,
        cloud=settings.pinecone_cloud,
        region=settings.pinecone_region,
    )


PROVIDERS: dict[str, Callable[["Settings"], VectorStorePort]] = {
    "memory": _build_memory,
    "chroma": _build_chroma,
    "pinecone": _build_pinecone,
}


def create_vector_store(settings: "Settings") -> VectorStorePort:
    """Build a new backend for `settings.vector_provider`."""

    builder = PROVIDERS.get(settings.vector_provider)
    if builder is None:
        raise InvalidArgumentError(
            f"Unknown vector provider {settings.vector_provider!r}. "
            f"Supported: {sorted(PROVIDERS)}"
        )
    store = builder(settings)
    logger.info("Vector store ready: %s", settings.vector_provider)
    return store


class VectorStoreFactory:
    """Lazily builds and caches exactly one backend for its lifetime."""

    def __init__(self, settings: "Settings") -> None:
        self.settings = settings
        self._store: VectorStorePort | None = None
        self._lock = threading.Lock()

    @property
    def provider(self) -> str:
        return self.settings.vector_provider

    def get(self) -> VectorStorePort:
        with self._lock:
            if self._store is None:
                self._store = create_vector_store(self.settings)
            return self._store

    def reset(self) -> None:
        with self._lock:
            self._store = None
