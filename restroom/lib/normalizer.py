"""Validation and canonicalization of raw station readings.

Stations post a flat object with a device id and four sensor payloads. The
payloads are kept opaque: each is stored as a string, either the value as
sent (if it already was a string) or its compact JSON encoding.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from restroom.lib.exceptions import ValidationError
from restroom.logging import get_logger

logger = get_logger("lib.normalizer")

# Accepted spellings per field, canonical name first. Station firmware posts
# the Indonesian names (deviceID, air, sabun, tisu).
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "device_id": ("deviceId", "deviceID", "device_id"),
    "amonia": ("amonia", "ammonia"),
    "water": ("water", "air"),
    "soap": ("soap", "sabun"),
    "tissue": ("tissue", "tisu"),
}

_EMPTY_OBJECT = "{}"


def _lookup(raw: Mapping[str, Any], field: str) -> Any:
    for key in _FIELD_ALIASES[field]:
        if key in raw:
            return raw[key]
    return None


def canonicalize(value: Any) -> str:
    """Turn one sensor payload into its canonical string form."""
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        logger.warning("Unserializable sensor payload, storing {}: %s", e)
        return _EMPTY_OBJECT


@dataclass(frozen=True, slots=True)
class NormalizedReading:
    """A validated reading with canonicalized sensor payloads."""

    device_id: str
    amonia: str
    water: str
    soap: str
    tissue: str

    @classmethod
    def from_raw(cls, raw: Any) -> NormalizedReading:
        """Create a normalized reading from a raw request body.

        Raises:
            ValidationError: If the body is not an object or the device id
                is missing, not a string, or blank.
        """
        if not isinstance(raw, Mapping):
            raise ValidationError(
                f"Reading must be an object, got {type(raw).__name__}"
            )
        device_id = cls._validate_device_id(_lookup(raw, "device_id"))
        return cls(
            device_id=device_id,
            amonia=canonicalize(_lookup(raw, "amonia")),
            water=canonicalize(_lookup(raw, "water")),
            soap=canonicalize(_lookup(raw, "soap")),
            tissue=canonicalize(_lookup(raw, "tissue")),
        )

    @staticmethod
    def _validate_device_id(value: Any) -> str:
        if value is None:
            raise ValidationError(
                "deviceId is required",
                [{"field": "deviceId", "message": "Field required"}],
            )
        if not isinstance(value, str):
            raise ValidationError(
                f"deviceId must be a string, got {type(value).__name__}",
                [{"field": "deviceId", "message": "Must be a string"}],
            )
        device_id = value.strip()
        if not device_id:
            raise ValidationError(
                "deviceId must not be empty",
                [{"field": "deviceId", "message": "Must not be empty"}],
            )
        return device_id


def normalize_reading(raw: Any) -> NormalizedReading:
    """Validate and canonicalize one raw reading. Pure, no I/O."""
    return NormalizedReading.from_raw(raw)
