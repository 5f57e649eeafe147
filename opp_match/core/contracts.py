"""Core port contracts used by adapters, the matching engine and the matcher."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, List, Mapping, Optional, Protocol, Sequence

from .vectors.vector_types import VectorRecord, VectorSearchResult

if TYPE_CHECKING:
    from .models import MatchAlert


class VectorStorePort(Protocol):
    """Vector database behavior shared by every backend."""

    def create_collection(self, name: str, dimension: int) -> None: ...

    def delete_collection(self, name: str) -> None: ...

    def list_collections(self) -> List[str]: ...

    def upsert(self, collection: str, records: Sequence[VectorRecord]) -> int: ...

    def query(
        self,
        collection: str,
        vector: Sequence[float],
        *,
        top_k: int = 10,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[VectorSearchResult]: ...

    def get_vector(self, collection: str, id: str) -> Optional[VectorRecord]: ...

    def delete_vectors(self, collection: str, ids: Sequence[str]) -> int: ...

    def is_connected(self) -> bool: ...


class AsyncVectorStorePort(Protocol):
    """Async variant of `VectorStorePort`, accepted wherever the sync one is."""

    async def create_collection(self, name: str, dimension: int) -> None: ...

    async def delete_collection(self, name: str) -> None: ...

    async def list_collections(self) -> List[str]: ...

    async def upsert(self, collection: str, records: Sequence[VectorRecord]) -> int: ...

    async def query(
        self,
        collection: str,
        vector: Sequence[float],
        *,
        top_k: int = 10,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[VectorSearchResult]: ...

    async def get_vector(self, collection: str, id: str) -> Optional[VectorRecord]: ...

    async def delete_vectors(self, collection: str, ids: Sequence[str]) -> int: ...

    async def is_connected(self) -> bool: ...


class EmbeddingProviderPort(Protocol):
    """Turns text into a fixed-length vector."""

    name: str
    model: str
    dimension: int

    async def embed(self, text: str) -> List[float]: ...


class Notifier(Protocol):
    """Fire-and-forget alert notification hook (sync or async)."""

    def __call__(self, alert: "MatchAlert") -> Optional[Awaitable[None]]: ...
