"""Settings overrides for tests. Not for production code."""

from collections.abc import Iterator
from contextlib import contextmanager

import restroom.lib.config.settings as _settings_module
from restroom.lib.config.settings import Settings, _load_settings


def set_settings(settings: Settings | None) -> None:
    """Install a Settings instance for get_settings(), or None to reset."""
    _settings_module._settings_override = settings
    _load_settings.cache_clear()


@contextmanager
def override_settings(**values: object) -> Iterator[Settings]:
    """Temporarily run with Settings built from keyword values.

    The previous override, if any, is restored on exit.
    """
    previous = _settings_module._settings_override
    settings = Settings(**values)  # type: ignore[arg-type]
    set_settings(settings)
    try:
        yield settings
    finally:
        set_settings(previous)
