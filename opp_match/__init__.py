"""opp_match: vector matching of business profiles against opportunities."""

from .config import Settings
from .core import *  # noqa: F401,F403
from .core import __all__ as _core_all
from .logging_config import configure_logging
from .ports import ChromaVectorStore, InMemoryVectorStore, PineconeVectorStore
from .service import MatchingService

__all__ = [
    *_core_all,
    "Settings",
    "configure_logging",
    "InMemoryVectorStore",
    "ChromaVectorStore",
    "PineconeVectorStore",
    "MatchingService",
]
