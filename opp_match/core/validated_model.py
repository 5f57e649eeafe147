"""Dataclass validation mixin used by configuration objects."""

from __future__ import annotations

import dataclasses
import types
from abc import ABC
from dataclasses import fields, is_dataclass
from typing import Any, Literal, Mapping, TypeVar, Union, get_args, get_origin, get_type_hints

from .errors import InvalidArgumentError

M = TypeVar("M", bound="ValidatedModel")


class ValidationError(InvalidArgumentError):
    """Raised when dataclass field validation fails."""


class ValidatedModel(ABC):
    """Base class for dataclasses that need runtime input validation.

    Usage:
    - Inherit this class and decorate child model with `@dataclass`.
    - Add field constraints in dataclass field metadata
      (`ge`, `gt`, `le`, `lt`, `choices`, `non_empty`).
    - Optionally override `model_validate()` for model-level checks.
    """

    def __post_init__(self) -> None:
        if not is_dataclass(self):
            raise TypeError("ValidatedModel must be used with @dataclass models.")
        self._validate_fields()
        self.model_validate()

    def model_validate(self) -> None:
        """Hook for model-level custom validation after field checks."""

    def with_changes(self: M, changes: Mapping[str, Any]) -> M:
        """Return a validated copy with `changes` applied; unknown keys are rejected."""

        known = {field.name for field in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValidationError(f"Unknown field(s) for {type(self).__name__}: {unknown}")
        return dataclasses.replace(self, **dict(changes))

    def to_dict(self) -> dict[str, Any]:
        return {field.name: getattr(self, field.name) for field in fields(self)}

    def _validate_fields(self) -> None:
        hints = get_type_hints(type(self), include_extras=True)
        for field in fields(self):
            name = field.name
            value = getattr(self, name)
            _validate_type(name, value, hints.get(name, Any))
            _validate_constraints(name, value, dict(field.metadata))


def _validate_type(name: str, value: Any, annotation: Any) -> None:
    if annotation is Any:
        return
    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is Literal:
        if value not in args:
            raise ValidationError(f"Field '{name}' must be one of {args!r}.")
        return

    if origin in (Union, types.UnionType):
        for option in args:
            try:
                _validate_type(name, value, option)
                return
            except ValidationError:
                continue
        raise ValidationError(
            f"Field '{name}' got unsupported type {type(value).__name__}."
        )

    if origin is not None:
        if not isinstance(value, origin):
            raise ValidationError(f"Field '{name}' must be a {origin.__name__}.")
        return

    if annotation is type(None):
        if value is not None:
            raise ValidationError(f"Field '{name}' expects None.")
        return

    if not isinstance(annotation, type):
        return
    if value is None:
        raise ValidationError(f"Field '{name}' cannot be None (expected {annotation.__name__}).")
    if annotation in (int, float) and isinstance(value, bool):
        raise ValidationError(f"Field '{name}' expects {annotation.__name__}, got bool.")
    if annotation is float and isinstance(value, int):
        return
    if not isinstance(value, annotation):
        raise ValidationError(
            f"Field '{name}' expects {annotation.__name__}, got {type(value).__name__}."
        )


def _validate_constraints(name: str, value: Any, metadata: dict[str, Any]) -> None:
    if value is None:
        return

    if metadata.get("non_empty") and isinstance(value, str) and not value.strip():
        raise ValidationError(f"Field '{name}' must be non-empty.")

    if "choices" in metadata and value not in set(metadata["choices"]):
        raise ValidationError(f"Field '{name}' must be one of {metadata['choices']!r}.")

    for key, op in (("gt", ">"), ("ge", ">="), ("lt", "<"), ("le", "<=")):
        if key not in metadata:
            continue
        bound = metadata[key]
        ok = (
            (key == "gt" and value > bound)
            or (key == "ge" and value >= bound)
            or (key == "lt" and value < bound)
            or (key == "le" and value <= bound)
        )
        if not ok:
            raise ValidationError(f"Field '{name}' must satisfy {op} {bound!r}.")
