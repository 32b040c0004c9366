"""Snapshot serialization — JSON payloads and content hashes for version rows."""

from __future__ import annotations

import base64
import enum
import hashlib
import json
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any


def _encode_value(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"Cannot serialize {type(value).__name__} into version data")


def _canonical_json(attributes: dict[str, Any]) -> str:
    return json.dumps(
        attributes,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_encode_value,
    )


def content_hash(attributes: dict[str, Any], timestamp_field: str | None = "updated_at") -> str:
    """Hash an attribute mapping with its last-modified field left out.

    Two snapshots of the same data saved at different times hash equally.
    """
    hashed_view = {k: v for k, v in attributes.items() if k != timestamp_field}
    return hashlib.sha256(_canonical_json(hashed_view).encode()).hexdigest()


def serialize(
    attributes: dict[str, Any],
    timestamp_field: str | None = "updated_at",
) -> tuple[str, str]:
    """Return ``(payload, content_hash)`` for an entity's attribute mapping."""
    return _canonical_json(attributes), content_hash(attributes, timestamp_field)


def deserialize(payload: str) -> dict[str, Any]:
    data = json.loads(payload)
    if not isinstance(data, dict):
        raise ValueError("Version data must decode to a mapping")
    return data
