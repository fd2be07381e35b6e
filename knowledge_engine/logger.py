"""
Structured logging.

Every module gets a named logger through ``get_logger(__name__)``. All named
loggers write JSON lines to one process-wide sink, so a single
``configure_logger`` or ``get_logger(level=...)`` call retargets the stream
and level for loggers created at import time too. Writes are serialized
because the engine logs from caller threads and the maintainer thread at once.

Each line carries ``timestamp``, ``level``, ``logger`` and ``message``, plus an
optional ``context`` mapping and any extra keyword fields, e.g.::

    {"timestamp": "...Z", "level": "INFO", "logger": "knowledge_engine.engine",
     "message": "Configuration updated", "keys": ["log_level"]}
"""

import json
import sys
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, TextIO

ROOT_LOGGER_NAME = "knowledge_engine"


class LogLevel(Enum):
    """Log level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @classmethod
    def parse(cls, level: str) -> "LogLevel":
        """Level from its name, case-insensitive; unknown names mean INFO."""
        try:
            return cls[level.upper()]
        except KeyError:
            return cls.INFO


_SEVERITY = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARNING: 30,
    LogLevel.ERROR: 40,
    LogLevel.CRITICAL: 50,
}


class LogSink:
    """Level threshold and output stream shared by a family of loggers."""

    def __init__(self, level: str = "INFO", output_stream: Optional[TextIO] = None):
        self.level = LogLevel.parse(level)
        self.output_stream = output_stream or sys.stdout
        self._lock = threading.Lock()

    def accepts(self, level: LogLevel) -> bool:
        return level.severity >= self.level.severity

    def write(self, line: str) -> None:
        with self._lock:
            self.output_stream.write(line + "\n")
            self.output_stream.flush()


class StructuredLogger:
    """
    Named JSON logger.

    A logger built directly owns a private sink; loggers from ``get_logger``
    share the process sink.
    """

    def __init__(
        self,
        name: str = ROOT_LOGGER_NAME,
        level: str = "INFO",
        output_stream: Optional[TextIO] = None,
        sink: Optional[LogSink] = None,
    ):
        """
        Args:
            name: Value of the ``logger`` field on every line
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); ignored with ``sink``
            output_stream: Output stream, defaults to sys.stdout; ignored with ``sink``
            sink: Shared sink to write through
        """
        self.name = name
        self.sink = sink or LogSink(level, output_stream)

    @property
    def level(self) -> LogLevel:
        return self.sink.level

    @property
    def output_stream(self) -> TextIO:
        return self.sink.output_stream

    def set_level(self, level: str) -> None:
        """Set the level of this logger's sink."""
        self.sink.level = LogLevel.parse(level)

    def _format(
        self,
        level: LogLevel,
        message: str,
        context: Optional[Dict[str, Any]],
        fields: Dict[str, Any],
    ) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level.value,
            "logger": self.name,
            "message": message,
        }
        if context is not None:
            entry["context"] = context
        # extra fields never shadow the standard ones
        entry.update((k, v) for k, v in fields.items() if k not in entry)
        return json.dumps(entry, ensure_ascii=False, default=str)

    def _emit(
        self,
        level: LogLevel,
        message: str,
        context: Optional[Dict[str, Any]],
        fields: Dict[str, Any],
    ) -> None:
        if self.sink.accepts(level):
            self.sink.write(self._format(level, message, context, fields))

    def log(
        self, level: str, message: str, context: Optional[Dict[str, Any]] = None, **fields
    ) -> None:
        """Log at the level named by ``level``."""
        self._emit(LogLevel.parse(level), message, context, fields)

    def debug(self, message: str, context: Optional[Dict[str, Any]] = None, **fields) -> None:
        self._emit(LogLevel.DEBUG, message, context, fields)

    def info(self, message: str, context: Optional[Dict[str, Any]] = None, **fields) -> None:
        self._emit(LogLevel.INFO, message, context, fields)

    def warning(self, message: str, context: Optional[Dict[str, Any]] = None, **fields) -> None:
        self._emit(LogLevel.WARNING, message, context, fields)

    def error(self, message: str, context: Optional[Dict[str, Any]] = None, **fields) -> None:
        self._emit(LogLevel.ERROR, message, context, fields)

    def critical(self, message: str, context: Optional[Dict[str, Any]] = None, **fields) -> None:
        self._emit(LogLevel.CRITICAL, message, context, fields)


_process_sink = LogSink()
_loggers: Dict[str, StructuredLogger] = {}
_registry_lock = threading.Lock()


def get_logger(
    name: str = ROOT_LOGGER_NAME,
    level: Optional[str] = None,
    output_stream: Optional[TextIO] = None,
) -> StructuredLogger:
    """
    Get the named logger attached to the process sink.

    Args:
        name: Logger name, usually the calling module's ``__name__``
        level: If given, the new process-wide level
        output_stream: If given, the new process-wide output stream

    Returns:
        The StructuredLogger for ``name``; repeated calls return the same object
    """
    with _registry_lock:
        logger = _loggers.get(name)
        if logger is None:
            logger = StructuredLogger(name=name, sink=_process_sink)
            _loggers[name] = logger

    if level is not None:
        _process_sink.level = LogLevel.parse(level)
    if output_stream is not None:
        _process_sink.output_stream = output_stream
    return logger


def configure_logger(
    level: str = "INFO", name: str = ROOT_LOGGER_NAME, output_stream: Optional[TextIO] = None
) -> StructuredLogger:
    """
    Reset the process sink's level and stream.

    Every logger obtained from ``get_logger`` follows the new settings,
    including module loggers created before this call.

    Returns:
        The logger named ``name``
    """
    _process_sink.level = LogLevel.parse(level)
    _process_sink.output_stream = output_stream or sys.stdout
    return get_logger(name)
