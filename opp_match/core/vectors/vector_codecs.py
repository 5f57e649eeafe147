"""Metadata codecs used by backends with restricted metadata value types."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from ..errors import InvalidArgumentError

_SCALARS = (str, bool, int, float)


class MetadataCodec(Protocol):
    """Codec interface for metadata serialization and deserialization."""

    def encode(self, metadata: Mapping[str, Any] | None) -> dict[str, Any]: ...

    def decode(self, metadata: Mapping[str, Any] | None) -> dict[str, Any]: ...


def _clean(metadata: Mapping[str, Any] | None) -> dict[str, Any]:
    """Drop `None` values and check the `scalar | list[str]` contract."""

    cleaned: dict[str, Any] = {}
    for key, value in (metadata or {}).items():
        if value is None:
            continue
        if isinstance(value, _SCALARS):
            cleaned[str(key)] = value
        elif isinstance(value, (list, tuple, set, frozenset)):
            cleaned[str(key)] = [str(item) for item in value]
        else:
            raise InvalidArgumentError(
                f"Metadata value for {key!r} must be a scalar or list of strings, "
                f"got {type(value).__name__}"
            )
    return cleaned


@dataclass(frozen=True)
class PassthroughMetadataCodec:
    """Keeps list values as lists (Pinecone stores `list[str]` natively)."""

    def encode(self, metadata: Mapping[str, Any] | None) -> dict[str, Any]:
        return _clean(metadata)

    def decode(self, metadata: Mapping[str, Any] | None) -> dict[str, Any]:
        return dict(metadata or {})


@dataclass(frozen=True)
class JsonListMetadataCodec:
    """Stores list values as prefixed JSON strings for scalar-only backends.

    Plain strings that happen to start with the prefix are escaped so they decode
    back unchanged.
    """

    prefix: str = "__oppmatch_json__:"

    def encode(self, metadata: Mapping[str, Any] | None) -> dict[str, Any]:
        encoded: dict[str, Any] = {}
        for key, value in _clean(metadata).items():
            if isinstance(value, list):
                encoded[key] = self.prefix + json.dumps(value, separators=(",", ":"))
            elif isinstance(value, str) and value.startswith(self.prefix):
                encoded[key] = self.prefix + json.dumps({"str": value}, separators=(",", ":"))
            else:
                encoded[key] = value
        return encoded

    def decode(self, metadata: Mapping[str, Any] | None) -> dict[str, Any]:
        decoded: dict[str, Any] = {}
        for key, value in (metadata or {}).items():
            if isinstance(value, str) and value.startswith(self.prefix):
                try:
                    loaded = json.loads(value[len(self.prefix):])
                except json.JSONDecodeError:
                    decoded[key] = value
                    continue
                if isinstance(loaded, dict) and set(loaded) == {"str"}:
                    decoded[key] = loaded["str"]
                else:
                    decoded[key] = loaded
            else:
                decoded[key] = value
        return decoded
