"""Fixed-window request limiter for HTTP ingress."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping

from .errors import InvalidArgumentError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    max_requests: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.max_requests <= 0:
            raise InvalidArgumentError("max_requests must be > 0")
        if self.window_seconds <= 0:
            raise InvalidArgumentError("window_seconds must be > 0")


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at: float


DEFAULT_RULES: dict[str, RateLimitRule] = {
    "chat": RateLimitRule(max_requests=10, window_seconds=60.0),
    "default": RateLimitRule(max_requests=60, window_seconds=60.0),
}


@dataclass
class _Window:
    started_at: float
    count: int


class FixedWindowRateLimiter:
    """Per-client, per-endpoint-class fixed-window counters.

    Rejected requests do not increment the counter. The first request after a
    window elapses starts a new window with a count of one. Expired windows are
    pruned at most once per shortest rule window, so memory tracks active clients.
    """

    def __init__(
        self,
        rules: Mapping[str, RateLimitRule] | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rules = dict(DEFAULT_RULES)
        if rules:
            self.rules.update(rules)
        self._clock = clock
        self._windows: dict[tuple[str, str], _Window] = {}
        self._lock = threading.Lock()
        self._prune_every = min(rule.window_seconds for rule in self.rules.values())
        self._next_prune = self._clock() + self._prune_every

    def rule_for(self, endpoint_class: str) -> RateLimitRule:
        rule = self.rules.get(endpoint_class) or self.rules.get("default")
        if rule is None:
            raise InvalidArgumentError(f"No rate limit rule for {endpoint_class!r}")
        return rule

    def check(self, client_id: str, endpoint_class: str = "default") -> RateLimitDecision:
        rule = self.rule_for(endpoint_class)
        key = (endpoint_class, client_id)
        with self._lock:
            now = self._clock()
            if now >= self._next_prune:
                self._prune(now)
            window = self._windows.get(key)
            if window is None or now - window.started_at >= rule.window_seconds:
                window = _Window(started_at=now, count=0)
                self._windows[key] = window
            reset_at = window.started_at + rule.window_seconds
            if window.count >= rule.max_requests:
                logger.debug("Rate limit exceeded for %s on %s", client_id, endpoint_class)
                return RateLimitDecision(allowed=False, remaining=0, reset_at=reset_at)
            window.count += 1
            return RateLimitDecision(
                allowed=True,
                remaining=rule.max_requests - window.count,
                reset_at=reset_at,
            )

    def active_windows(self) -> int:
        with self._lock:
            return len(self._windows)

    def reset(self, client_id: str | None = None) -> None:
        with self._lock:
            if client_id is None:
                self._windows.clear()
                return
            for key in [key for key in self._windows if key[1] == client_id]:
                del self._windows[key]

    def _prune(self, now: float) -> None:
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.started_at >= self.rule_for(key[0]).window_seconds
        ]
        for key in expired:
            del self._windows[key]
        self._next_prune = now + self._prune_every
        if expired:
            logger.debug("Pruned %d expired rate limit window(s)", len(expired))
