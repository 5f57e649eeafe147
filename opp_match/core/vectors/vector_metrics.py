"""Vector metric definitions and numpy scoring helpers."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Mapping, Sequence

import numpy as np

from ..errors import InvalidArgumentError


class VectorMetric(str, Enum):
    """Supported normalized vector metric values."""

    COSINE = "cosine"
    DOT = "dot"
    L2 = "l2"


VectorMetricInput = str | VectorMetric


def normalize_vector_metric(
    metric: VectorMetricInput,
    *,
    supported: Iterable[VectorMetric] | None = None,
    aliases: Mapping[str, VectorMetric] | None = None,
) -> VectorMetric:
    """Normalize user metric input into a `VectorMetric` value."""

    alias_map = {key.lower(): value for key, value in (aliases or {}).items()}

    if isinstance(metric, VectorMetric):
        normalized = metric
    elif isinstance(metric, str):
        key = metric.strip().lower()
        if key in VectorMetric._value2member_map_:
            normalized = VectorMetric(key)
        elif key in alias_map:
            normalized = alias_map[key]
        else:
            allowed = sorted(
                set(VectorMetric._value2member_map_.keys()) | set(alias_map.keys())
            )
            raise InvalidArgumentError(
                f"Unsupported metric: {metric}. Supported: {allowed}"
            )
    else:
        raise InvalidArgumentError(f"Unsupported metric type: {type(metric).__name__}")

    if supported is not None and normalized not in set(supported):
        allowed = sorted(item.value for item in supported)
        raise InvalidArgumentError(
            f"Unsupported metric: {normalized.value}. Supported: {allowed}"
        )

    return normalized


def score_matrix(
    metric: VectorMetric,
    query: Sequence[float],
    matrix: np.ndarray,
) -> np.ndarray:
    """Score every row of `matrix` against `query`; higher is always better.

    Cosine returns similarity in [-1, 1]; zero-norm rows score 0.0. L2 returns the
    negated euclidean distance so that ordering stays descending.
    """

    q = np.asarray(query, dtype=np.float64)
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)
    if metric == VectorMetric.DOT:
        return matrix @ q
    if metric == VectorMetric.L2:
        return -np.linalg.norm(matrix - q, axis=1)

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    dots = matrix @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms > 0.0, dots / norms, 0.0)
    return np.clip(scores, -1.0, 1.0)
