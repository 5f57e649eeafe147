"""Public port exports for concrete adapter implementations."""

from .vector import ChromaVectorStore, InMemoryVectorStore, PineconeVectorStore

__all__ = [
    "InMemoryVectorStore",
    "ChromaVectorStore",
    "PineconeVectorStore",
]
