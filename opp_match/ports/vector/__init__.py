"""Vector store adapter exports."""

from .in_memory import InMemoryVectorStore
from .chroma import ChromaVectorStore
from .pinecone import PineconeVectorStore

__all__ = [
    "InMemoryVectorStore",
    "ChromaVectorStore",
    "PineconeVectorStore",
]
