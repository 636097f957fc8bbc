"""Decoding of the opaque sensor payloads stored on snapshots.

Stations report four payloads:

    amonia  {"ppm": 1.12, "score": 1.3, "status": "Bagus"}
    water   {"status": "Aman"}
    soap    {"sabun1": {"distance": 4.2, "status": "Ada"}, ...}
    tissue  {"tisu1": {"status": "Tersedia", "value": 1}, ...}

Decoding is tolerant at the slot level: a payload or slot that cannot be
decoded reads as unknown, which is never treated as empty.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from restroom.lib.config import NO_DATA, EngineConfig, OdorLevel
from restroom.lib.exceptions import MalformedSensorPayload
from restroom.logging import get_logger

logger = get_logger("lib.sensors")


class AmmoniaReading(BaseModel):
    """Ammonia sensor payload."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    ppm: float | None = None
    score: float | None = None
    status: str | None = None

    @property
    def finite_ppm(self) -> float | None:
        if self.ppm is None or not math.isfinite(self.ppm):
            return None
        return self.ppm


class WaterReading(BaseModel):
    """Water puddle sensor payload."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    status: str | None = None


class SlotReading(BaseModel):
    """A single soap or tissue dispenser slot."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    distance: float | None = None
    status: str | None = None
    value: float | None = None


def decode_object(raw: str) -> dict[str, Any] | None:
    """Decode a stored payload to a JSON object.

    Returns None for an empty payload (nothing reported).

    Raises:
        MalformedSensorPayload: If the payload is not a JSON object.
    """
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedSensorPayload(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedSensorPayload(
            f"Expected a JSON object, got {type(data).__name__}"
        )
    return data


def _decode_model[M: BaseModel](
    raw: str, model: type[M], label: str, device_id: str
) -> M | None:
    try:
        data = decode_object(raw)
        if data is None:
            return None
        return model.model_validate(data)
    except (MalformedSensorPayload, PydanticValidationError) as e:
        logger.warning(
            "Malformed %s payload from %s, reading as unknown: %s",
            label,
            device_id,
            e,
        )
        return None


def decode_ammonia(raw: str, device_id: str = "") -> AmmoniaReading | None:
    return _decode_model(raw, AmmoniaReading, "ammonia", device_id)


def decode_water(raw: str, device_id: str = "") -> WaterReading | None:
    return _decode_model(raw, WaterReading, "water", device_id)


def decode_slots(
    raw: str, slots: tuple[str, ...], device_id: str = ""
) -> dict[str, SlotReading | None]:
    """Decode the requested dispenser slots from a payload.

    Each slot decodes independently; a missing or malformed slot maps to
    None (unknown) without affecting its neighbours.
    """
    result: dict[str, SlotReading | None] = dict.fromkeys(slots)
    try:
        data = decode_object(raw)
    except MalformedSensorPayload as e:
        logger.warning(
            "Malformed slot payload from %s, reading as unknown: %s",
            device_id,
            e,
        )
        return result
    if data is None:
        return result

    for slot in slots:
        if slot not in data:
            continue
        try:
            result[slot] = SlotReading.model_validate(data[slot])
        except PydanticValidationError as e:
            logger.warning(
                "Malformed slot %s from %s, reading as unknown: %s",
                slot,
                device_id,
                e.errors()[0]["msg"] if e.errors() else e,
            )
    return result


def is_soap_slot_empty(slot: SlotReading | None, config: EngineConfig) -> bool:
    """Check whether a soap slot reads empty.

    Empty when the firmware says so, or when the level sensor measures a
    distance beyond the configured threshold. Negative distances are the
    firmware's "no echo" marker and are ignored.
    """
    if slot is None:
        return False
    if slot.status == config.empty_status:
        return True
    distance = slot.distance
    if distance is None or not math.isfinite(distance) or distance < 0:
        return False
    return distance > config.soap_empty_threshold_cm


def is_tissue_slot_empty(
    slot: SlotReading | None, config: EngineConfig
) -> bool:
    """Check whether a tissue slot reads empty."""
    if slot is None:
        return False
    if slot.status == config.empty_status:
        return True
    return slot.value is not None and slot.value == config.tissue_empty_value


def any_soap_empty(raw: str, device_id: str, config: EngineConfig) -> bool:
    slots = decode_slots(raw, config.soap_slots_for(device_id), device_id)
    return any(is_soap_slot_empty(s, config) for s in slots.values())


def any_tissue_empty(raw: str, device_id: str, config: EngineConfig) -> bool:
    slots = decode_slots(raw, config.tissue_slots_for(device_id), device_id)
    return any(is_tissue_slot_empty(s, config) for s in slots.values())


def classify_odor(ppm: float, config: EngineConfig) -> OdorLevel:
    """Classify an ammonia concentration against the configured limits."""
    if ppm <= config.ammonia_good_max_ppm:
        return OdorLevel.GOOD
    if ppm <= config.ammonia_warning_max_ppm:
        return OdorLevel.NORMAL
    return OdorLevel.CRITICAL


def _format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True, slots=True)
class StatusSummary:
    """Human-readable sensor status appended to every notification."""

    odor: str
    ppm: float | None
    water: str
    soap_empty: bool
    tissue_empty: bool

    @property
    def any_empty(self) -> bool:
        return self.soap_empty or self.tissue_empty

    def lines(self) -> list[str]:
        ppm_text = (
            f"{_format_number(self.ppm)} ppm" if self.ppm is not None else NO_DATA
        )
        return [
            f"Bau: {self.odor} ({ppm_text})",
            f"Genangan Air: {self.water}",
            f"Sabun: {'HAMPIR HABIS' if self.soap_empty else 'Aman'}",
            f"Tisu: {'HAMPIR HABIS' if self.tissue_empty else 'Tersedia'}",
        ]

    def __str__(self) -> str:
        return "\n".join(self.lines())


def summarize(
    device_id: str,
    amonia: str,
    water: str,
    soap: str,
    tissue: str,
    config: EngineConfig,
) -> StatusSummary:
    """Build the status summary for a device's current payloads.

    The odor label is the status reported by the station; stations that only
    report a concentration are classified against the configured limits.
    """
    ammonia = decode_ammonia(amonia, device_id)
    ppm = ammonia.finite_ppm if ammonia is not None else None
    if ammonia is not None and ammonia.status:
        odor = ammonia.status
    elif ppm is not None:
        odor = classify_odor(ppm, config).value
    else:
        odor = NO_DATA

    water_reading = decode_water(water, device_id)
    water_status = (
        water_reading.status
        if water_reading is not None and water_reading.status
        else NO_DATA
    )

    return StatusSummary(
        odor=odor,
        ppm=ppm,
        water=water_status,
        soap_empty=any_soap_empty(soap, device_id, config),
        tissue_empty=any_tissue_empty(tissue, device_id, config),
    )
