"""Public API for the structured logging library."""

from __future__ import annotations

from .config import LoggingSettings, configure_settings, get_settings, load_settings
from .logger import (
    clear_context,
    configure_manager,
    dump_memory_sink,
    get_context,
    get_logger,
    get_memory_records,
    logger_context,
    pop_context,
    push_context,
    reset_loggers,
)
from .redaction import scrub_identifier

__all__ = [
    "configure",
    "get_logger",
    "logger_context",
    "LoggingSettings",
    "load_settings",
    "get_settings",
    "push_context",
    "pop_context",
    "get_context",
    "clear_context",
    "get_memory_records",
    "dump_memory_sink",
    "reset_loggers",
    "scrub_identifier",
]


def configure(settings: LoggingSettings | None = None, **overrides) -> LoggingSettings:
    """Configure the logging library."""

    resolved = configure_settings(settings, **overrides)
    configure_manager(resolved)

    return resolved
