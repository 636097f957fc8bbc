"""Enumerations for the restroom monitor."""

from enum import StrEnum


class NotificationMode(StrEnum):
    """Where incident and routine events are delivered from."""

    INLINE = "inline"  # Fan-out runs inside the server process
    EVENTBUS = "eventbus"  # Relayed over Redis to the notification service


class LivenessStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class SoapState(StrEnum):
    """Debounced soap dispenser condition."""

    SAFE = "safe"
    PENDING = "pending"  # Empty reported, waiting out the debounce window
    CRITICAL = "critical"


class IncidentState(StrEnum):
    IDLE = "idle"
    ALERTING = "alerting"


class EventKind(StrEnum):
    """Notification event kinds, named as stored by the deployed system."""

    NEW = "accident_new"
    REMINDER = "accident_repeat"
    RECOVERY = "recovery"
    ROUTINE = "routine"


class Condition(StrEnum):
    """Alert condition labels, as shown to cleaning staff."""

    SOAP_EMPTY = "SABUN HAMPIR HABIS"
    TISSUE_EMPTY = "TISU HAMPIR HABIS"


class OdorLevel(StrEnum):
    GOOD = "Bagus"
    NORMAL = "Normal"
    CRITICAL = "Kritis"


class SettingsKey(StrEnum):
    """Valid DB settings keys for engine config overrides."""

    HISTORICAL_INTERVAL = "engine.historical_interval_minutes"
    MAX_REMINDERS = "engine.max_reminders"
    REMINDER_INTERVAL = "engine.reminder_interval_minutes"
    SOAP_EMPTY_THRESHOLD = "engine.soap_empty_threshold_cm"
    EMPTY_STATUS = "engine.empty_status"
    TISSUE_EMPTY_VALUE = "engine.tissue_empty_value"
    AMMONIA_GOOD_MAX = "engine.ammonia_good_max_ppm"
    AMMONIA_WARNING_MAX = "engine.ammonia_warning_max_ppm"
