"""Metadata filter dialect shared by every vector backend.

Filters use the Mongo-style operator form that Pinecone understands natively::

    {"type": "opportunity", "naicsCode": {"$in": ["541511", "541512"]},
     "responseDeadline": {"$gte": "2026-01-01", "$lte": "2026-03-31"}}

On list-valued metadata, `$eq` means "contains" and `$in` means "overlaps".
Range operators compare numbers numerically and strings lexicographically, which
is correct for ISO-8601 dates.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Mapping

from ..errors import InvalidArgumentError

EQUALITY_OPERATORS = frozenset({"$eq", "$ne"})
MEMBERSHIP_OPERATORS = frozenset({"$in", "$nin"})
RANGE_OPERATORS = frozenset({"$gt", "$gte", "$lt", "$lte"})
SUPPORTED_OPERATORS = EQUALITY_OPERATORS | MEMBERSHIP_OPERATORS | RANGE_OPERATORS

Filters = Mapping[str, Mapping[str, Any]]


def _normalize_scalar(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    raise InvalidArgumentError(
        f"Unsupported filter value type: {type(value).__name__}"
    )


def _sort_key(value: Any) -> tuple[str, str]:
    return (type(value).__name__, repr(value))


def normalize_filters(filters: Mapping[str, Any] | None) -> dict[str, dict[str, Any]]:
    """Return filters in canonical `{field: {op: operand}}` form, sorted by field.

    Two filter mappings that mean the same thing normalize to equal dicts, which is
    what search cache keys rely on.
    """

    if not filters:
        return {}

    normalized: dict[str, dict[str, Any]] = {}
    for field in sorted(filters):
        if not isinstance(field, str) or not field or field.startswith("$"):
            raise InvalidArgumentError(f"Invalid filter field: {field!r}")
        condition = filters[field]
        if not isinstance(condition, Mapping):
            condition = {"$eq": condition}

        ops: dict[str, Any] = {}
        for op in sorted(condition):
            if op not in SUPPORTED_OPERATORS:
                raise InvalidArgumentError(
                    f"Unsupported filter operator {op!r} on {field!r}. "
                    f"Supported: {sorted(SUPPORTED_OPERATORS)}"
                )
            operand = condition[op]
            if op in MEMBERSHIP_OPERATORS:
                if isinstance(operand, (str, bytes)) or not hasattr(operand, "__iter__"):
                    raise InvalidArgumentError(f"{op} on {field!r} expects a list")
                items = {_normalize_scalar(item) for item in operand}
                ops[op] = sorted(items, key=_sort_key)
            elif isinstance(operand, (list, tuple, set)):
                raise InvalidArgumentError(f"{op} on {field!r} expects a scalar")
            else:
                ops[op] = _normalize_scalar(operand)
        if ops:
            normalized[field] = ops
    return normalized


def filters_fingerprint(filters: Mapping[str, Any] | None) -> str:
    """Stable text form of normalized filters, suitable for hashing."""

    return json.dumps(normalize_filters(filters), sort_keys=True, separators=(",", ":"))


def _compare(op: str, value: Any, operand: Any) -> bool:
    numeric = (int, float)
    if isinstance(value, bool) or isinstance(operand, bool):
        return False
    if isinstance(value, numeric) and isinstance(operand, numeric):
        pass
    elif isinstance(value, str) and isinstance(operand, str):
        pass
    else:
        return False
    if op == "$gt":
        return value > operand
    if op == "$gte":
        return value >= operand
    if op == "$lt":
        return value < operand
    return value <= operand


def _check(op: str, value: Any, operand: Any) -> bool:
    is_list = isinstance(value, (list, tuple))
    if op == "$eq":
        return operand in value if is_list else value == operand
    if op == "$ne":
        return operand not in value if is_list else value != operand
    if op == "$in":
        if is_list:
            return any(item in operand for item in value)
        return value in operand
    if op == "$nin":
        if is_list:
            return not any(item in operand for item in value)
        return value not in operand
    if value is None:
        return False
    if is_list:
        return any(_compare(op, item, operand) for item in value)
    return _compare(op, value, operand)


def matches(metadata: Mapping[str, Any] | None, filters: Mapping[str, Any] | None) -> bool:
    """Evaluate normalized or raw filters against one metadata mapping."""

    return matches_normalized(metadata, normalize_filters(filters))


def matches_normalized(
    metadata: Mapping[str, Any] | None,
    normalized: Mapping[str, Mapping[str, Any]],
) -> bool:
    """Like `matches` but skips normalization; use inside per-record scans."""

    if not normalized:
        return True
    payload = metadata or {}
    for field, ops in normalized.items():
        value = payload.get(field)
        for op, operand in ops.items():
            if not _check(op, value, operand):
                return False
    return True


def split_filters(
    filters: Mapping[str, Any] | None,
) -> tuple[dict[str, dict[str, Any]], dict[str, dict[str, Any]]]:
    """Split filters into (native, residual) for backends with numeric-only ranges.

    Range operators with a non-numeric operand (for example ISO date strings) are
    returned as residual and must be applied by a post-query scan.
    """

    native: dict[str, dict[str, Any]] = {}
    residual: dict[str, dict[str, Any]] = {}
    for field, ops in normalize_filters(filters).items():
        for op, operand in ops.items():
            numeric = isinstance(operand, (int, float)) and not isinstance(operand, bool)
            target = residual if op in RANGE_OPERATORS and not numeric else native
            target.setdefault(field, {})[op] = operand
    return native, residual
