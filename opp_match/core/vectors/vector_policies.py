"""Collection naming and dimension policies shared by every backend."""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from ..errors import DimensionMismatchError, InvalidArgumentError
from .vector_types import VectorRecord

COLLECTION_NAME_PATTERN = re.compile(r"[A-Za-z0-9](?:[A-Za-z0-9._-]{1,61})[A-Za-z0-9]")
DEFAULT_DIMENSION = 1536


def validate_collection_name(name: str) -> str:
    """Return `name` if it is a backend-safe collection identifier.

    3-63 characters of `[A-Za-z0-9._-]`, starting and ending with an alphanumeric.
    This is the intersection of what Chroma collection names and Pinecone
    namespaces accept.
    """

    if not isinstance(name, str) or COLLECTION_NAME_PATTERN.fullmatch(name) is None:
        raise InvalidArgumentError(
            f"Invalid collection name {name!r}: expected 3-63 chars of "
            "[A-Za-z0-9._-] starting and ending with a letter or digit."
        )
    return name


def validate_dimension(dimension: int) -> int:
    if isinstance(dimension, bool) or not isinstance(dimension, int) or dimension <= 0:
        raise InvalidArgumentError("dimension must be a positive integer")
    return dimension


def coerce_vector(
    values: Sequence[float],
    dimension: int,
    *,
    record_id: str | None = None,
) -> tuple[float, ...]:
    """Convert `values` to floats and reject anything not exactly `dimension` long."""

    vector = tuple(float(v) for v in values)
    if len(vector) != dimension:
        raise DimensionMismatchError(dimension, len(vector), record_id=record_id)
    return vector


def validate_records(records: Iterable[VectorRecord], dimension: int) -> list[VectorRecord]:
    """Validate a whole batch before anything is written.

    Raises on the first bad record so that backends can keep upserts all-or-nothing.
    Later duplicates of the same id replace earlier ones.
    """

    by_id: dict[str, VectorRecord] = {}
    for record in records:
        if not isinstance(record.id, str) or not record.id:
            raise InvalidArgumentError(f"Vector id must be a non-empty string: {record.id!r}")
        vector = coerce_vector(record.values, dimension, record_id=record.id)
        metadata = dict(record.metadata) if record.metadata is not None else None
        by_id.pop(record.id, None)
        by_id[record.id] = VectorRecord(id=record.id, values=vector, metadata=metadata)
    return list(by_id.values())


def sort_results(results: list) -> list:
    """Order hits by descending score, ties by ascending id."""

    results.sort(key=lambda item: (-item.score, item.id))
    return results


def tie_break_fetch_size(top_k: int) -> int:
    """How many hits to request from a backend before `sort_results` and the cut.

    Backends order equal scores arbitrarily. Fetching past `top_k` lets ties that
    straddle the cut resolve by id. A tie group wider than `top_k` can still be
    truncated by the backend.
    """

    return top_k * 2
