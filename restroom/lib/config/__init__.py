"""Centralized configuration for the restroom monitor.

This package provides:
- Enums for engine states, event kinds and settings keys
- Pydantic settings models loaded from the environment
- The hot-swappable engine config store
"""

from .constants import (
    EMPTY_STATUS,
    INACTIVE_THRESHOLD_MS,
    NO_DATA,
    SOAP_DEBOUNCE_MS,
    SOAP_SLOTS,
    TISSUE_SLOTS,
)
from .enums import (
    Condition,
    EventKind,
    IncidentState,
    LivenessStatus,
    NotificationMode,
    OdorLevel,
    SettingsKey,
    SoapState,
)
from .settings import (
    EventBusSettings,
    NotificationSettings,
    ServerSettings,
    Settings,
    get_settings,
)
from .store import ConfigStore, DeviceSensors, EngineConfig, build_config

__all__ = [
    # Constants
    "EMPTY_STATUS",
    "INACTIVE_THRESHOLD_MS",
    "NO_DATA",
    "SOAP_DEBOUNCE_MS",
    "SOAP_SLOTS",
    "TISSUE_SLOTS",
    # Enums
    "Condition",
    "EventKind",
    "IncidentState",
    "LivenessStatus",
    "NotificationMode",
    "OdorLevel",
    "SettingsKey",
    "SoapState",
    # Settings models
    "EventBusSettings",
    "NotificationSettings",
    "ServerSettings",
    "Settings",
    # Engine config
    "ConfigStore",
    "DeviceSensors",
    "EngineConfig",
    # Functions
    "build_config",
    "get_settings",
]
