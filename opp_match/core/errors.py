"""Error taxonomy shared by vector backends, matching and alerting."""

from __future__ import annotations


class MatchCoreError(Exception):
    """Base class for every error raised by opp_match."""

    retryable = False


class InvalidArgumentError(MatchCoreError, ValueError):
    """Raised for bad caller input. Never retried."""


class AlreadyExistsError(InvalidArgumentError):
    """Raised when creating a collection that already exists."""


class DimensionMismatchError(InvalidArgumentError):
    """Raised when a vector length disagrees with its collection dimension."""

    def __init__(self, expected: int, got: int, *, record_id: str | None = None) -> None:
        self.expected = expected
        self.got = got
        self.record_id = record_id
        where = f" (record {record_id!r})" if record_id is not None else ""
        super().__init__(
            f"Vector dimension mismatch{where}: expected {expected}, got {got}"
        )


class UnsupportedOperationError(InvalidArgumentError):
    """Raised when a backend cannot honour an otherwise valid request."""


class NotFoundError(MatchCoreError, KeyError):
    """Raised when a required collection, vector or alert is missing."""

    def __str__(self) -> str:
        # KeyError repr-quotes its message; keep it readable.
        return str(self.args[0]) if self.args else ""


class BackendUnavailableError(MatchCoreError, ConnectionError):
    """Raised for transient I/O failures. Safe to retry."""

    retryable = True


class ProviderUnavailableError(BackendUnavailableError):
    """Raised when the embedding provider fails or times out."""
