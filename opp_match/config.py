"""Centralised configuration for opp_match.

Environment variables (and a `.env` file, when present) are read by
`Settings.from_env()`; everything else receives a `Settings` instance.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal, Mapping, Optional

from dotenv import load_dotenv

from .core.errors import InvalidArgumentError
from .core.validated_model import ValidatedModel

VectorProvider = Literal["memory", "chroma", "pinecone"]
EmbedProvider = Literal["openai", "hash"]

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings(ValidatedModel):
    # vector store
    vector_provider: VectorProvider = "memory"
    vector_dimension: int = field(default=1536, metadata={"gt": 0})
    chroma_path: str = "./.chroma"
    chroma_host: Optional[str] = None
    chroma_port: Optional[int] = None
    pinecone_api_key: Optional[str] = None
    pinecone_index_name: str = field(default="opportunities", metadata={"non_empty": True})
    pinecone_cloud: str = "aws"
    pinecone_region: str = "us-east-1"
    backend_timeout_s: float = field(default=10.0, metadata={"gt": 0})

    # embeddings
    embed_provider: EmbedProvider = "openai"
    openai_api_key: Optional[str] = None
    embedding_model: str = field(default="text-embedding-3-small", metadata={"non_empty": True})
    embedding_fallback_on_error: bool = False

    # cache
    cache_enabled: bool = True
    cache_chat_ttl_s: float = field(default=300.0, metadata={"gt": 0})
    cache_embedding_ttl_s: float = field(default=1800.0, metadata={"gt": 0})
    cache_search_ttl_s: float = field(default=600.0, metadata={"gt": 0})
    cache_default_ttl_s: float = field(default=3600.0, metadata={"gt": 0})

    # matcher defaults
    match_check_interval_ms: int = field(default=300_000, metadata={"gt": 0})
    match_min_score: float = field(default=70.0, metadata={"ge": 0, "le": 100})
    match_max_alerts: int = field(default=10, metadata={"ge": 1})
    match_enable_notifications: bool = True
    match_auto_refresh: bool = True

    log_level: str = field(default="INFO", metadata={"choices": _LOG_LEVELS})

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        dotenv: bool = True,
    ) -> "Settings":
        """Build settings from environment variables.

        `environ` defaults to `os.environ`; `.env` is loaded first unless
        `dotenv` is false or an explicit mapping is given.
        """

        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ
        env = _Env(environ)

        return cls(
            vector_provider=env.text("VECTOR_PROVIDER", "memory").lower(),  # type: ignore[arg-type]
            vector_dimension=env.integer("VECTOR_DIMENSION", 1536),
            chroma_path=env.text("CHROMA_PATH", "./.chroma"),
            chroma_host=env.optional("CHROMA_HOST"),
            chroma_port=env.optional_int("CHROMA_PORT"),
            pinecone_api_key=env.optional("PINECONE_API_KEY"),
            pinecone_index_name=env.text("PINECONE_INDEX_NAME", "opportunities"),
            pinecone_cloud=env.text("PINECONE_CLOUD", "aws"),
            pinecone_region=env.text("PINECONE_REGION", "us-east-1"),
            backend_timeout_s=env.number("BACKEND_TIMEOUT_S", 10.0),
            embed_provider=env.text("EMBED_PROVIDER", "openai").lower(),  # type: ignore[arg-type]
            openai_api_key=env.optional("OPENAI_API_KEY"),
            embedding_model=env.text("EMBEDDING_MODEL", "text-embedding-3-small"),
            embedding_fallback_on_error=env.flag("EMBEDDING_FALLBACK_ON_ERROR", False),
            cache_enabled=env.flag("CACHE_ENABLED", True),
            cache_chat_ttl_s=env.number("CACHE_CHAT_TTL_S", 300.0),
            cache_embedding_ttl_s=env.number("CACHE_EMBEDDING_TTL_S", 1800.0),
            cache_search_ttl_s=env.number("CACHE_SEARCH_TTL_S", 600.0),
            cache_default_ttl_s=env.number("CACHE_DEFAULT_TTL_S", 3600.0),
            match_check_interval_ms=env.integer("MATCH_CHECK_INTERVAL_MS", 300_000),
            match_min_score=env.number("MATCH_MIN_SCORE", 70.0),
            match_max_alerts=env.integer("MATCH_MAX_ALERTS", 10),
            match_enable_notifications=env.flag("MATCH_ENABLE_NOTIFICATIONS", True),
            match_auto_refresh=env.flag("MATCH_AUTO_REFRESH", True),
            log_level=env.text("LOG_LEVEL", "INFO").upper(),
        )


class _Env:
    """Typed accessors over a string environment mapping."""

    def __init__(self, environ: Mapping[str, str]) -> None:
        self._environ = environ

    def optional(self, name: str) -> Optional[str]:
        value = self._environ.get(name)
        if value is None or not value.strip():
            return None
        return value.strip()

    def text(self, name: str, default: str) -> str:
        value = self.optional(name)
        return default if value is None else value

    def integer(self, name: str, default: int) -> int:
        value = self.optional_int(name)
        return default if value is None else value

    def optional_int(self, name: str) -> Optional[int]:
        value = self.optional(name)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError as exc:
            raise InvalidArgumentError(f"{name} must be an integer, got {value!r}") from exc

    def number(self, name: str, default: float) -> float:
        value = self.optional(name)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError as exc:
            raise InvalidArgumentError(f"{name} must be a number, got {value!r}") from exc

    def flag(self, name: str, default: bool) -> bool:
        value = self.optional(name)
        if value is None:
            return default
        lowered = value.lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise InvalidArgumentError(f"{name} must be a boolean, got {value!r}")
