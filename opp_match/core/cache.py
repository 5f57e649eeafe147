"""In-process TTL cache for chat responses, embeddings and search results."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence

from .vectors.vector_filters import normalize_filters

logger = logging.getLogger(__name__)

CHAT_NAMESPACE = "chat"
EMBEDDING_NAMESPACE = "embedding"
SEARCH_NAMESPACE = "search"
DEFAULT_NAMESPACE = "default"

DEFAULT_TTLS: dict[str, float] = {
    CHAT_NAMESPACE: 300.0,
    EMBEDDING_NAMESPACE: 1800.0,
    SEARCH_NAMESPACE: 600.0,
}
DEFAULT_TTL_S = 3600.0


@dataclass
class CacheEntry:
    key: str
    value: Any
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


def namespace_of(key: str) -> str:
    """Return the key prefix before the first `:`."""
    prefix, sep, _ = key.partition(":")
    return prefix if sep else DEFAULT_NAMESPACE


def _digest(payload: Any) -> str:
    text = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def chat_key(
    messages: Sequence[Mapping[str, Any]],
    profile_id: str,
    provider: str,
    model: str,
) -> str:
    """Key over the whole message list (order matters), profile, provider and model."""

    payload = {
        "messages": [dict(message) for message in messages],
        "profile_id": profile_id,
        "provider": provider,
        "model": model,
    }
    return f"{CHAT_NAMESPACE}:{_digest(payload)}"


def embedding_key(text: str, provider: str, model: str) -> str:
    return f"{EMBEDDING_NAMESPACE}:{_digest({'text': text, 'provider': provider, 'model': model})}"


def search_key(
    vector: Sequence[float],
    collection: str,
    top_k: int,
    filters: Optional[Mapping[str, Any]] = None,
) -> str:
    """Key over the query vector, collection, `top_k` and normalized filters.

    Filters that differ only in key order produce the same key.
    """

    payload = {
        "vector": [float(v) for v in vector],
        "collection": collection,
        "top_k": int(top_k),
        "filters": normalize_filters(filters),
    }
    return f"{SEARCH_NAMESPACE}:{_digest(payload)}"


class CacheLayer:
    """Thread-safe key/value cache with per-entry TTL.

    Expired entries are never returned. They are evicted when touched, by
    `purge_expired()`, or by a sweep that writes trigger at most once per
    `purge_interval` seconds. With `enabled=False` every lookup misses and
    writes are dropped.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        ttls: Mapping[str, float] | None = None,
        default_ttl: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.monotonic,
        purge_interval: float = 60.0,
    ) -> None:
        self.enabled = enabled
        self.ttls = dict(DEFAULT_TTLS)
        if ttls:
            self.ttls.update(ttls)
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()
        self.purge_interval = purge_interval
        self._next_purge = clock() + purge_interval

    def ttl_for(self, key: str) -> float:
        return self.ttls.get(namespace_of(key), self.default_ttl)

    def get(self, key: str) -> Any | None:
        if not self.enabled:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                del self._entries[key]
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
        logger.debug("Cache hit: %s", key)
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if not self.enabled:
            return
        effective_ttl = self.ttl_for(key) if ttl is None else float(ttl)
        with self._lock:
            now = self._clock()
            if now >= self._next_purge:
                purged = self._purge_locked(now)
                if purged:
                    logger.debug("Purged %d expired cache entries", purged)
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                ttl=effective_ttl,
            )

    def delete_key(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        logger.info("Cache cleared")

    def clear_by_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        logger.info("Cleared %d cache entries with prefix %r", len(doomed), prefix)
        return len(doomed)

    def stored_entries(self) -> int:
        """Count held entries, including expired ones not yet evicted."""
        with self._lock:
            return len(self._entries)

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked(self._clock())

    def _purge_locked(self, now: float) -> int:
        doomed = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in doomed:
            del self._entries[key]
        self._next_purge = now + self.purge_interval
        return len(doomed)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            now = self._clock()
            entries: dict[str, int] = {}
            for key, entry in self._entries.items():
                if entry.is_expired(now):
                    continue
                namespace = namespace_of(key)
                entries[namespace] = entries.get(namespace, 0) + 1
            return {
                "entries": entries,
                "total_entries": sum(entries.values()),
                "hits": self._hits,
                "misses": self._misses,
                "enabled": self.enabled,
            }

    def get_chat_response(
        self,
        messages: Sequence[Mapping[str, Any]],
        profile_id: str,
        provider: str,
        model: str,
    ) -> Any | None:
        return self.get(chat_key(messages, profile_id, provider, model))

    def set_chat_response(
        self,
        messages: Sequence[Mapping[str, Any]],
        profile_id: str,
        provider: str,
        model: str,
        response: Any,
    ) -> None:
        self.set(chat_key(messages, profile_id, provider, model), response)
