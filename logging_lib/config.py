"""Configuration utilities for the logging library."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, replace
from typing import Any, Mapping


def _comma_tuple(value: str | None, *, default: tuple[str, ...]) -> tuple[str, ...]:
    """Convert a comma-separated string to a tuple."""

    if not value:
        return default

    return tuple(filter(None, (part.strip() for part in value.split(","))))


def _int_env(value: str | None, default: int) -> int:
    if value is None:
        return default

    try:
        return int(value)
    except (TypeError, ValueError):
        return default


_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class LoggingSettings:
    """Immutable runtime configuration."""

    service: str = "logitrack"
    env: str = "local"
    level: str = "INFO"
    sinks: tuple[str, ...] = ("stdout",)
    redact_keys: tuple[str, ...] = (
        "authorization",
        "token",
        "id_token",
        "refresh_token",
        "access_token",
        "password",
        "private_key",
    )
    max_field_length: int = 2048
    request_id_header: str = "X-Request-ID"
    exclude_routes: tuple[str, ...] = ("/healthz",)

    def with_overrides(self, **kwargs: Any) -> "LoggingSettings":
        return replace(self, **kwargs)

    def allows(self, level: str) -> bool:
        """Return True when ``level`` is at or above the configured threshold."""

        try:
            return _LEVELS.index(level.upper()) >= _LEVELS.index(self.level.upper())
        except ValueError:
            return True


_SETTINGS_LOCK = threading.RLock()
_SETTINGS: LoggingSettings | None = None


def load_settings(env: Mapping[str, str] | None = None) -> LoggingSettings:
    """Build settings from environment variables."""

    env = env if env is not None else os.environ
    defaults = LoggingSettings()

    return LoggingSettings(
        service=env.get("LOG_SERVICE", defaults.service),
        env=env.get("LOG_ENV", env.get("APP_ENV", defaults.env)),
        level=env.get("LOG_LEVEL", defaults.level).upper(),
        sinks=_comma_tuple(env.get("LOG_SINKS"), default=defaults.sinks),
        redact_keys=_comma_tuple(env.get("LOG_REDACT_KEYS"), default=defaults.redact_keys),
        max_field_length=_int_env(env.get("LOG_MAX_FIELD_LENGTH"), defaults.max_field_length),
        request_id_header=env.get("LOG_REQUEST_ID_HEADER", defaults.request_id_header),
        exclude_routes=_comma_tuple(env.get("LOG_EXCLUDE_ROUTES"), default=defaults.exclude_routes),
    )


def configure_settings(settings: LoggingSettings | None = None, **overrides: Any) -> LoggingSettings:
    """Resolve and store the active settings."""

    global _SETTINGS

    resolved = settings or load_settings()
    if overrides:
        if "sinks" in overrides and isinstance(overrides["sinks"], str):
            overrides["sinks"] = _comma_tuple(overrides["sinks"], default=resolved.sinks)
        resolved = resolved.with_overrides(**overrides)

    with _SETTINGS_LOCK:
        _SETTINGS = resolved

    return resolved


def get_settings() -> LoggingSettings:
    """Return the active settings, loading them from the environment on first use."""

    global _SETTINGS

    with _SETTINGS_LOCK:
        if _SETTINGS is None:
            _SETTINGS = load_settings()
        return _SETTINGS
