"""Settings models and configuration loading for the restroom monitor."""

from functools import cached_property, lru_cache
from typing import Annotated, Any, Self
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    SecretStr,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from restroom.lib.config.constants import EMPTY_STATUS
from restroom.lib.config.enums import NotificationMode
from restroom.lib.config.store import EngineConfig


def _parse_bool(v: Any) -> bool:
    """Parse boolean from string '1'/'0' or actual bool."""
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        return v == "1"
    return bool(v)


_BoolFromStr = Annotated[bool, BeforeValidator(_parse_bool)]


class NotificationSettings(BaseModel):
    """Notification delivery settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    mode: NotificationMode = NotificationMode.INLINE
    telegram_bot_token: SecretStr = SecretStr("")
    telegram_api_url: str = "https://api.telegram.org"
    timeout_sec: int = 10
    display_timezone: str = "UTC"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.display_timezone)


class EventBusSettings(BaseModel):
    """Redis event bus settings."""

    model_config = ConfigDict(frozen=True)

    redis_url: str = "redis://localhost:6379/0"


class ServerSettings(BaseModel):
    """HTTP surface settings."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_keys: frozenset[str] = frozenset()

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_keys)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Database
    db_path: str = "restroom.sqlite3"
    db_timeout_sec: float = 30.0

    # Engine defaults (overridden at runtime by DB settings)
    historical_interval_minutes: int = Field(default=5, ge=1)
    max_reminders: int = Field(default=3, ge=0)
    reminder_interval_minutes: int = Field(default=10, ge=1)
    soap_empty_threshold_cm: float = Field(default=10.0, ge=0)
    empty_status: str = Field(default=EMPTY_STATUS, min_length=1)
    tissue_empty_value: int = 0
    ammonia_good_max_ppm: float = Field(default=1.15, gt=0)
    ammonia_warning_max_ppm: float = Field(default=1.18, gt=0)

    # Notifications
    enable_notifications: _BoolFromStr = False
    notification_mode: NotificationMode = NotificationMode.INLINE
    telegram_bot_token: SecretStr = SecretStr("")
    telegram_api_url: str = "https://api.telegram.org"
    notification_timeout_sec: int = Field(default=10, ge=1)
    display_timezone: str = "UTC"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Server
    server_host: str = "0.0.0.0"
    server_port: int = Field(default=8000, gt=0)
    api_keys: str = ""  # Comma-separated list, empty disables the check

    @cached_property
    def engine_defaults(self) -> EngineConfig:
        """Get the engine config built from environment values."""
        return EngineConfig(
            historical_interval_minutes=self.historical_interval_minutes,
            max_reminders=self.max_reminders,
            reminder_interval_minutes=self.reminder_interval_minutes,
            soap_empty_threshold_cm=self.soap_empty_threshold_cm,
            empty_status=self.empty_status,
            tissue_empty_value=self.tissue_empty_value,
            ammonia_good_max_ppm=self.ammonia_good_max_ppm,
            ammonia_warning_max_ppm=self.ammonia_warning_max_ppm,
        )

    @cached_property
    def notifications(self) -> NotificationSettings:
        """Get notification settings as nested object."""
        return NotificationSettings(
            enabled=self.enable_notifications,
            mode=self.notification_mode,
            telegram_bot_token=self.telegram_bot_token,
            telegram_api_url=self.telegram_api_url,
            timeout_sec=self.notification_timeout_sec,
            display_timezone=self.display_timezone,
        )

    @cached_property
    def eventbus(self) -> EventBusSettings:
        """Get event bus settings."""
        return EventBusSettings(redis_url=self.redis_url)

    @cached_property
    def server(self) -> ServerSettings:
        """Get HTTP server settings."""
        return ServerSettings(
            host=self.server_host,
            port=self.server_port,
            api_keys=frozenset(
                k.strip() for k in self.api_keys.split(",") if k.strip()
            ),
        )

    @model_validator(mode="after")
    def validate_settings(self) -> Self:
        """Validate cross-field configuration constraints."""
        errors: list[str] = []

        if self.ammonia_warning_max_ppm <= self.ammonia_good_max_ppm:
            errors.append(
                f"AMMONIA_WARNING_MAX_PPM ({self.ammonia_warning_max_ppm}) "
                f"must be greater than AMMONIA_GOOD_MAX_PPM "
                f"({self.ammonia_good_max_ppm})"
            )

        try:
            ZoneInfo(self.display_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"Unknown DISPLAY_TIMEZONE: {self.display_timezone}")

        if (
            self.enable_notifications
            and not self.telegram_bot_token.get_secret_value()
        ):
            errors.append(
                "Notifications enabled but TELEGRAM_BOT_TOKEN is not set"
            )

        if errors:
            raise ValueError(
                "Configuration validation failed:\n  - "
                + "\n  - ".join(errors)
            )

        return self


# Settings override for testing - allows injecting custom Settings without
# modifying environment variables or clearing the lru_cache.
_settings_override: Settings | None = None


@lru_cache(maxsize=1)
def _load_settings() -> Settings:
    """Load settings from environment (cached)."""
    return Settings()


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns the test override if set, otherwise loads from environment
    variables (cached after first load). For testing, use set_settings()
    from restroom.lib.config.testing to override.
    """
    if _settings_override is not None:
        return _settings_override
    return _load_settings()
