"""Shared vector entities used by vector ports and repositories."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence


@dataclass(frozen=True)
class VectorRecord:
    """Represents one vector document stored in a vector database."""

    id: str
    values: Sequence[float]
    metadata: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class VectorSearchResult:
    """Represents one scored search hit returned by vector similarity query.

    `values` is populated when the backend returns the stored vector, which lets
    callers detect records whose dimension disagrees with the query.
    """

    id: str
    score: float
    metadata: Mapping[str, Any] | None = None
    values: Sequence[float] | None = None


@dataclass(frozen=True)
class UpsertResult:
    """Aggregate outcome of a batch upsert."""

    upserted: int = 0
    skipped: int = 0
    skipped_ids: tuple[str, ...] = field(default_factory=tuple)

    def __add__(self, other: "UpsertResult") -> "UpsertResult":
        return UpsertResult(
            upserted=self.upserted + other.upserted,
            skipped=self.skipped + other.skipped,
            skipped_ids=self.skipped_ids + other.skipped_ids,
        )


@dataclass(frozen=True)
class QueryOutcome:
    """Search hits plus the number of stored records dropped for a bad dimension."""

    results: tuple[VectorSearchResult, ...] = ()
    skipped: int = 0
