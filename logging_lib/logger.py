"""Structured logging facade."""

from __future__ import annotations

import json
from contextlib import contextmanager
from contextvars import ContextVar, Token
from threading import RLock
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

from .config import LoggingSettings, get_settings
from .redaction import Redactor
from .schema import build_log_record
from .sinks import InMemorySink, StdoutSink


_CONTEXT: ContextVar[Mapping[str, Any]] = ContextVar("logging_lib_context", default={})


class StructuredLogger:
    """Structured logger bound to a component name."""

    def __init__(self, name: str, manager: "LoggerManager") -> None:
        self._name = name # Component name
        self._manager = manager # Owning manager

    @property
    def name(self) -> str:
        return self._name

    def debug(self, message: str, **fields: Any) -> None:
        """Log a debug message."""

        self._log("DEBUG", message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        """Log an info message."""

        self._log("INFO", message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        """Log a warning message."""

        self._log("WARNING", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        """Log an error message."""

        self._log("ERROR", message, **fields)

    def critical(self, message: str, **fields: Any) -> None:
        """Log a critical message."""

        self._log("CRITICAL", message, **fields)

    def _log(self, level: str, message: str, **fields: Any) -> None:
        manager = self._manager
        settings = manager.settings

        if not settings.allows(level):
            return

        runtime_context = dict(manager.base_context)
        runtime_context.update(_CONTEXT.get())

        explicit_context = fields.pop("context", {}) or {}
        if explicit_context:
            runtime_context.update(explicit_context)

        # exc_info mirrors the stdlib keyword; only the flag is recorded
        fields.pop("exc_info", None)

        record = build_log_record(
            level=level,
            message=message,
            settings=settings,
            component=self._name,
            context=runtime_context,
            **fields,
        )

        manager.emit(manager.redactor.apply(record))


class LoggerManager:
    """Owns sinks, settings and the logger registry."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._loggers: Dict[str, StructuredLogger] = {}
        self._settings: Optional[LoggingSettings] = None
        self._sinks: List[Any] = []
        self._base_context: MutableMapping[str, Any] = {}
        self._redactor: Optional[Redactor] = None

    @property
    def settings(self) -> LoggingSettings:
        with self._lock:
            if self._settings is None:
                self._configure_locked(get_settings())
            return self._settings  # type: ignore[return-value]

    @property
    def base_context(self) -> Mapping[str, Any]:
        return self._base_context

    @property
    def redactor(self) -> Redactor:
        with self._lock:
            if self._redactor is None:
                self._configure_locked(get_settings())
            return self._redactor  # type: ignore[return-value]

    @property
    def sinks(self) -> List[Any]:
        return list(self._sinks)

    def configure(self, settings: LoggingSettings) -> None:
        """Configure sinks and redaction from ``settings``."""

        with self._lock:
            self._configure_locked(settings)

    def _configure_locked(self, settings: LoggingSettings) -> None:
        self._settings = settings
        self._redactor = Redactor(settings.redact_keys)
        self._base_context = {"service": settings.service, "env": settings.env}

        sinks: List[Any] = []
        for sink_name in settings.sinks:
            name = sink_name.strip().lower()
            if name == "stdout":
                sinks.append(StdoutSink())
            elif name == "memory":
                sinks.append(InMemorySink())

        if not sinks:
            sinks.append(StdoutSink())

        self._sinks = sinks

    def emit(self, record: Mapping[str, Any]) -> None:
        for sink in self.sinks:
            try:
                sink.emit(record)
            except Exception:  # noqa: BLE001 - a broken sink must not break callers
                continue

    def get_logger(self, name: str) -> StructuredLogger:
        """Get a logger with a given name."""

        with self._lock:
            logger = self._loggers.get(name)

            if logger is None:
                logger = StructuredLogger(name, self)
                self._loggers[name] = logger

            return logger

    def reset(self) -> None:
        """Reset the manager to an unconfigured state."""

        with self._lock:
            self._loggers.clear()
            self._settings = None
            self._sinks = []
            self._base_context = {}
            self._redactor = None


_MANAGER = LoggerManager()


def configure_manager(settings: LoggingSettings) -> None:
    """Configure the manager with a given settings."""

    _MANAGER.configure(settings)


def get_logger(name: str) -> StructuredLogger:
    """Get a logger with a given name."""

    return _MANAGER.get_logger(name)


def get_memory_records() -> List[Mapping[str, Any]]:
    """Return records captured by the memory sink, if one is configured."""

    for sink in _MANAGER.sinks:
        if isinstance(sink, InMemorySink):
            return list(sink.records)

    return []


def dump_memory_sink() -> str:
    """Dump the memory sink as pretty JSON."""

    return json.dumps(get_memory_records(), indent=2, default=str)


@contextmanager
def logger_context(**context: Any):
    """Context manager for temporary context variables."""

    token = push_context(**context)
    try:
        yield
    finally:
        pop_context(token)


def reset_loggers() -> None:
    """Reset the logger manager."""

    _MANAGER.reset()


def push_context(**context: Any) -> Token:
    current = dict(_CONTEXT.get())
    current.update(context)
    return _CONTEXT.set(current)


def pop_context(token: Token) -> None:
    _CONTEXT.reset(token)


def get_context() -> Mapping[str, Any]:
    return dict(_CONTEXT.get())


def clear_context() -> None:
    _CONTEXT.set({})
