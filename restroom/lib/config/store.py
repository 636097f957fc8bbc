"""Hot-swappable engine configuration.

The active EngineConfig is immutable; updates build a complete new config and
swap the reference under a lock, so readers never observe a mix of old and
new values. Derived millisecond values are properties of the config itself.
"""

import threading
from collections.abc import Mapping
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from restroom.lib.config.constants import (
    EMPTY_STATUS,
    SOAP_SLOTS,
    TISSUE_SLOTS,
)
from restroom.lib.exceptions import ValidationError
from restroom.logging import get_logger

logger = get_logger("lib.config.store")

_MINUTE_MS = 60 * 1000


class DeviceSensors(BaseModel):
    """Per-device override of which dispenser slots are installed."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    soap_slots: tuple[str, ...] | None = None
    tissue_slots: tuple[str, ...] | None = None


class EngineConfig(BaseModel):
    """Tunable intervals and sensor thresholds for the telemetry engine."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    historical_interval_minutes: int = Field(default=5, ge=1)
    max_reminders: int = Field(default=3, ge=0)
    reminder_interval_minutes: int = Field(default=10, ge=1)
    soap_empty_threshold_cm: float = Field(default=10.0, ge=0)
    empty_status: str = Field(default=EMPTY_STATUS, min_length=1)
    tissue_empty_value: int = 0
    ammonia_good_max_ppm: float = Field(default=1.15, gt=0)
    ammonia_warning_max_ppm: float = Field(default=1.18, gt=0)
    soap_slots: tuple[str, ...] = SOAP_SLOTS
    tissue_slots: tuple[str, ...] = TISSUE_SLOTS
    device_sensors: dict[str, DeviceSensors] = {}

    @model_validator(mode="after")
    def validate_ammonia_limits(self) -> Self:
        if self.ammonia_warning_max_ppm <= self.ammonia_good_max_ppm:
            raise ValueError(
                "ammoniaWarningMaxPpm must be greater than ammoniaGoodMaxPpm"
            )
        return self

    @property
    def historical_interval_ms(self) -> int:
        return self.historical_interval_minutes * _MINUTE_MS

    @property
    def reminder_interval_ms(self) -> int:
        return self.reminder_interval_minutes * _MINUTE_MS

    @property
    def max_alert_duration_ms(self) -> int:
        """Window after incident start during which reminders may be sent."""
        return self.max_reminders * self.reminder_interval_ms

    def soap_slots_for(self, device_id: str) -> tuple[str, ...]:
        """Get the enabled soap slots for a device."""
        override = self.device_sensors.get(device_id)
        if override is not None and override.soap_slots is not None:
            return override.soap_slots
        return self.soap_slots

    def tissue_slots_for(self, device_id: str) -> tuple[str, ...]:
        """Get the enabled tissue slots for a device."""
        override = self.device_sensors.get(device_id)
        if override is not None and override.tissue_slots is not None:
            return override.tissue_slots
        return self.tissue_slots

    def to_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys and derived values included."""
        data = self.model_dump(mode="json", by_alias=True)
        data["historicalIntervalMs"] = self.historical_interval_ms
        data["reminderIntervalMs"] = self.reminder_interval_ms
        data["maxAlertDurationMs"] = self.max_alert_duration_ms
        return data


def _field_name(key: str) -> str | None:
    """Resolve a snake_case or camelCase key to an EngineConfig field name."""
    if key in EngineConfig.model_fields:
        return key
    for name, field in EngineConfig.model_fields.items():
        if field.alias == key:
            return name
    return None


def _to_details(exc: PydanticValidationError) -> list[dict[str, Any]]:
    details = []
    for err in exc.errors():
        loc = [str(p) for p in err["loc"]]
        if loc and loc[0] in EngineConfig.model_fields:
            loc[0] = EngineConfig.model_fields[loc[0]].alias or loc[0]
        details.append(
            {"field": ".".join(loc) or "config", "message": err["msg"]}
        )
    return details


def build_config(
    base: EngineConfig, partial: Mapping[str, Any]
) -> EngineConfig:
    """Merge a partial update into a config and validate the result.

    Raises:
        ValidationError: On unknown keys or invalid values.
    """
    if not isinstance(partial, Mapping):
        raise ValidationError("Config update must be an object")

    updates: dict[str, Any] = {}
    unknown: list[dict[str, Any]] = []
    for key, value in partial.items():
        name = _field_name(key)
        if name is None:
            unknown.append({"field": key, "message": "Unknown config key"})
        else:
            updates[name] = value
    if unknown:
        raise ValidationError("Invalid config update", unknown)

    merged = base.model_dump()
    merged.update(updates)
    try:
        return EngineConfig.model_validate(merged)
    except PydanticValidationError as e:
        raise ValidationError("Invalid config update", _to_details(e)) from e


class ConfigStore:
    """Holds the active EngineConfig and swaps it atomically on update.

    Thread-safe: Updates are serialized by a lock; reads return the current
    immutable instance without locking.
    """

    def __init__(self, initial: EngineConfig | None = None) -> None:
        self._lock = threading.Lock()
        self._config = initial if initial is not None else EngineConfig()

    def get(self) -> EngineConfig:
        """Get the active config."""
        return self._config

    def set(self, partial: Mapping[str, Any]) -> EngineConfig:
        """Apply a partial update and return the new active config.

        Raises:
            ValidationError: If the merged config is invalid. The active
                config is left unchanged.
        """
        with self._lock:
            new_config = build_config(self._config, partial)
            self._config = new_config
        logger.info(
            "Engine config updated: %s",
            ", ".join(sorted(partial)) or "no changes",
        )
        return new_config
