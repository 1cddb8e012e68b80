"""Structured logging for signgate.

Every trust decision must be traceable after the fact. Records therefore carry
structured fields rather than interpolated text, and every record logged while
a validation run is in progress picks up that run's fields (validation id,
package id, package version) from the thread's correlation context.

Architecture:
    correlation_context(...)  ->  CorrelationContext (per thread)
                                          |
    StructuredLogger.info(...) --merge----+
           |
           v
       LogRecord  --render()-->  console | json | logfmt
           |
           +---> ConsoleSink (stdout/stderr or a given stream)
           +---> FileSink (append, size-based rotation)
           +---> MemorySink (kept in memory for tests and embedding hosts)

Usage:
    >>> from signgate.infrastructure.logging import configure_logging, get_logger
    >>> configure_logging(level="info", format="json")
    >>> logger = get_logger("signgate.engine")
    >>> with correlation_context(validation_id="8c1f..."):
    ...     logger.info("Package is unsigned", package_id="Contoso.Lib")
"""

from __future__ import annotations

import json
import os
import socket
import sys
import threading
import time
import traceback
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any, Callable, Iterator, TextIO


# =============================================================================
# Levels
# =============================================================================


class LogLevel(IntEnum):
    """Record severities. ``AUDIT`` sits above every other level."""

    TRACE = 5
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50
    AUDIT = 60

    @classmethod
    def from_string(cls, level: str) -> "LogLevel":
        """Parse a level name; unknown names fall back to ``INFO``."""
        name = level.strip().upper()
        aliases = {"WARN": "WARNING", "FATAL": "CRITICAL"}
        return cls.__members__.get(aliases.get(name, name), cls.INFO)


# =============================================================================
# Correlation
# =============================================================================


class CorrelationContext:
    """Per-thread stack of fields merged into every record.

    Runs on different threads never share frames, so concurrent validations
    cannot leak fields into each other's records.
    """

    _state = threading.local()

    @classmethod
    def _frames(cls) -> list[dict[str, Any]]:
        frames = getattr(cls._state, "frames", None)
        if frames is None:
            frames = cls._state.frames = []
        return frames

    @classmethod
    def get_current(cls) -> dict[str, Any]:
        """Fields of every open frame, innermost winning."""
        merged: dict[str, Any] = {}
        for frame in cls._frames():
            merged.update(frame)
        return merged

    @classmethod
    def get_correlation_id(cls) -> str | None:
        return cls.get_current().get("correlation_id")

    @classmethod
    def push(cls, **fields: Any) -> None:
        cls._frames().append(fields)

    @classmethod
    def pop(cls) -> dict[str, Any]:
        frames = cls._frames()
        return frames.pop() if frames else {}

    @classmethod
    def clear(cls) -> None:
        cls._state.frames = []


@contextmanager
def correlation_context(**fields: Any) -> Iterator[None]:
    """Open a correlation frame for the duration of the block.

    The outermost frame on a thread gets a fresh ``correlation_id`` unless one
    is passed in.

    Example:
        >>> with correlation_context(validation_id="abc"):
        ...     logger.info("Validating")  # carries validation_id
    """
    if "correlation_id" not in fields and get_correlation_id() is None:
        fields["correlation_id"] = generate_correlation_id()

    CorrelationContext.push(**fields)
    try:
        yield
    finally:
        CorrelationContext.pop()


def get_correlation_id() -> str | None:
    """Correlation id of the innermost open frame on this thread."""
    return CorrelationContext.get_correlation_id()


def generate_correlation_id() -> str:
    """New correlation id: 8 hex digits of epoch millis, then 12 random."""
    millis = int(time.time() * 1000) & 0xFFFFFFFF
    return f"{millis:08x}-{uuid.uuid4().hex[:12]}"


# =============================================================================
# Records
# =============================================================================


@dataclass
class LogRecord:
    """One structured log event.

    Attributes:
        timestamp: Creation time (UTC).
        level: Severity.
        message: Fixed, human-readable event text.
        logger_name: Name of the emitting logger.
        fields: Structured data, bound, contextual and per-call.
        exception: Attached exception, if any.
        correlation_id: Correlation id of the enclosing run.
        service: Service name from the logger's configuration.
        environment: Environment name from the logger's configuration.
    """

    timestamp: datetime
    level: LogLevel
    message: str
    logger_name: str
    fields: dict[str, Any] = field(default_factory=dict)
    exception: BaseException | None = None
    correlation_id: str | None = None
    service: str = ""
    environment: str = ""
    thread_name: str = field(default_factory=lambda: threading.current_thread().name)
    process_id: int = field(default_factory=os.getpid)
    hostname: str = field(default_factory=socket.gethostname)

    def to_dict(self, include_meta: bool = True) -> dict[str, Any]:
        """Flatten into a JSON-ready dictionary.

        Args:
            include_meta: Add thread, process and host identification.
        """
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.name.lower(),
            "message": self.message,
            "logger": self.logger_name,
        }
        data.update(self.fields)
        for key in ("correlation_id", "service", "environment"):
            value = getattr(self, key)
            if value:
                data[key] = value
        if include_meta:
            data.update(
                thread_name=self.thread_name,
                process_id=self.process_id,
                hostname=self.hostname,
            )
        if self.exception is not None:
            data["exception"] = {
                "type": type(self.exception).__name__,
                "message": str(self.exception),
                "traceback": _format_traceback(self.exception),
            }
        return data

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), default=str, indent=indent)

    def to_logfmt(self) -> str:
        pairs: list[tuple[str, Any]] = [
            ("ts", self.timestamp.isoformat()),
            ("level", self.level.name.lower()),
            ("msg", self.message),
            ("logger", self.logger_name),
        ]
        if self.correlation_id:
            pairs.append(("correlation_id", self.correlation_id))
        pairs.extend(self.fields.items())
        return " ".join(f"{key}={_logfmt_value(key, value)}" for key, value in pairs)


def _format_traceback(exc: BaseException) -> list[str]:
    return traceback.format_exception(type(exc), exc, exc.__traceback__)


def _logfmt_value(key: str, value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value)
    if key == "msg" or not isinstance(value, str) or any(c in text for c in ' "='):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
        return f'"{escaped}"'
    return text


def render(record: LogRecord, fmt: str, *, timestamp_format: str = "%Y-%m-%d %H:%M:%S") -> str:
    """Render a record as ``json``, ``logfmt`` or human-readable ``console`` text."""
    if fmt == "json":
        return record.to_json()
    if fmt == "logfmt":
        return record.to_logfmt()

    line = f"{record.timestamp.strftime(timestamp_format)} {record.level.name:<8}"
    if record.correlation_id:
        line += f" [{record.correlation_id[:8]}]"
    line += f" [{record.logger_name}] {record.message}"
    if record.fields:
        line += " " + " ".join(f"{k}={v}" for k, v in record.fields.items())
    if record.exception is not None:
        line += "\n" + "".join(_format_traceback(record.exception))
    return line


# =============================================================================
# Sinks
# =============================================================================


class LogSink(ABC):
    """Destination for records.

    Args:
        level: Records below this level are dropped by the sink.
        filters: Predicates that must all accept a record.
    """

    def __init__(
        self,
        level: LogLevel = LogLevel.DEBUG,
        filters: list[Callable[[LogRecord], bool]] | None = None,
    ) -> None:
        self._level = level
        self._filters = list(filters or [])
        self._lock = threading.Lock()

    @property
    def level(self) -> LogLevel:
        return self._level

    def should_emit(self, record: LogRecord) -> bool:
        return record.level >= self._level and all(accept(record) for accept in self._filters)

    @abstractmethod
    def emit(self, record: LogRecord) -> None:
        pass

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


class ConsoleSink(LogSink):
    """Writes rendered records to a stream.

    Without an explicit stream, ``WARNING`` and above go to stderr and the
    rest to stdout (unless ``split_stderr`` is off).
    """

    def __init__(
        self,
        *,
        stream: TextIO | None = None,
        format: str = "console",
        split_stderr: bool = True,
        timestamp_format: str = "%Y-%m-%d %H:%M:%S",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._stream = stream
        self._format = format
        self._split_stderr = split_stderr
        self._timestamp_format = timestamp_format

    def _target(self, record: LogRecord) -> TextIO:
        if self._stream is not None:
            return self._stream
        if self._split_stderr and record.level >= LogLevel.WARNING:
            return sys.stderr
        return sys.stdout

    def emit(self, record: LogRecord) -> None:
        text = render(record, self._format, timestamp_format=self._timestamp_format)
        target = self._target(record)
        with self._lock:
            target.write(text + "\n")
            target.flush()


class FileSink(LogSink):
    """Appends rendered records to a file, rotating by size.

    ``signgate.log`` rotates to ``signgate.log.1``, ``.1`` to ``.2`` and so on;
    at most ``backup_count`` old files are kept.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        format: str = "json",
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 5,
        encoding: str = "utf-8",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._path = Path(path)
        self._format = format
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._encoding = encoding
        self._handle: TextIO | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _backup(self, index: int) -> Path:
        return self._path.with_name(f"{self._path.name}.{index}")

    def _rotate_if_needed(self) -> None:
        if not self._path.exists() or self._path.stat().st_size < self._max_bytes:
            return
        if self._handle is not None:
            self._handle.close()
            self._handle = None
        for index in range(self._backup_count - 1, 0, -1):
            if self._backup(index).exists():
                self._backup(index).replace(self._backup(index + 1))
        self._path.replace(self._backup(1))

    def emit(self, record: LogRecord) -> None:
        text = render(record, self._format)
        with self._lock:
            self._rotate_if_needed()
            if self._handle is None:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._handle = open(self._path, "a", encoding=self._encoding)
            self._handle.write(text + "\n")
            self._handle.flush()

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None


class MemorySink(LogSink):
    """Keeps records in memory.

    Example:
        >>> sink = MemorySink()
        >>> StructuredLogger("test", sinks=[sink]).info("hello", key="value")
        >>> sink.records[0].fields["key"]
        'value'
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._records: list[LogRecord] = []

    def emit(self, record: LogRecord) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> list[LogRecord]:
        with self._lock:
            return list(self._records)

    def messages(self) -> list[str]:
        return [record.message for record in self.records]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


_SINK_TYPES: dict[str, type[LogSink]] = {
    "console": ConsoleSink,
    "file": FileSink,
    "memory": MemorySink,
}


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class LogConfig:
    """How loggers are built.

    Attributes:
        level: Minimum level, as a name or ``LogLevel``.
        format: Console rendering (``console``, ``json``, ``logfmt``).
        service: Service name stamped on records.
        environment: Environment name stamped on records.
        sinks: Sink specs such as ``{"type": "file", "path": "signgate.log"}``.
    """

    level: str | LogLevel = LogLevel.INFO
    format: str = "console"
    service: str = "signgate"
    environment: str = ""
    sinks: list[dict[str, Any]] = field(default_factory=lambda: [{"type": "console"}])

    @property
    def min_level(self) -> LogLevel:
        if isinstance(self.level, LogLevel):
            return self.level
        return LogLevel.from_string(self.level)

    @classmethod
    def development(cls) -> "LogConfig":
        return cls(level=LogLevel.DEBUG, environment="development")

    @classmethod
    def production(cls, service: str = "signgate") -> "LogConfig":
        return cls(level=LogLevel.INFO, format="json", service=service, environment="production")

    @classmethod
    def from_environment(cls) -> "LogConfig":
        """Read ``SIGNGATE_LOG_LEVEL``, ``SIGNGATE_LOG_FORMAT`` and ``SIGNGATE_ENV``."""
        return cls(
            level=os.getenv("SIGNGATE_LOG_LEVEL", "INFO"),
            format=os.getenv("SIGNGATE_LOG_FORMAT", "console"),
            environment=os.getenv("SIGNGATE_ENV", ""),
        )

    def build_sinks(self) -> list[LogSink]:
        """Instantiate the configured sinks; console sinks use ``format``."""
        sinks: list[LogSink] = []
        for sink_options in self.sinks:
            options = dict(sink_options)
            sink_type = _SINK_TYPES.get(options.pop("type", "console"))
            if sink_type is None:
                continue
            if sink_type is ConsoleSink:
                options.setdefault("format", self.format)
            sinks.append(sink_type(**options))
        return sinks or [ConsoleSink(format=self.format)]


# =============================================================================
# Logger
# =============================================================================


class StructuredLogger:
    """Logger emitting ``LogRecord`` objects to its sinks.

    Field precedence, lowest to highest: bound fields, correlation context,
    call-time fields. ``correlation_id`` is lifted out of the fields onto the
    record.

    Example:
        >>> logger = StructuredLogger("signgate.engine", config=LogConfig.production())
        >>> logger.bind(validation_id="abc").info("Verifying", package_id="Contoso.Lib")
    """

    def __init__(
        self,
        name: str,
        *,
        config: LogConfig | None = None,
        sinks: list[LogSink] | None = None,
    ) -> None:
        self._name = name
        self._config = config or LogConfig()
        self._level = self._config.min_level
        self._bound: dict[str, Any] = {}
        self._sinks = sinks if sinks is not None else self._config.build_sinks()

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> LogConfig:
        return self._config

    @property
    def level(self) -> LogLevel:
        return self._level

    @level.setter
    def level(self, value: LogLevel) -> None:
        self._level = value

    @property
    def sinks(self) -> list[LogSink]:
        return self._sinks

    def bind(self, **fields: Any) -> "StructuredLogger":
        """Child logger sharing these sinks, with extra fields on every record."""
        child = StructuredLogger(self._name, config=self._config, sinks=self._sinks)
        child._level = self._level
        child._bound = {**self._bound, **fields}
        return child

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level >= self._level

    def _log(self, level: LogLevel, message: str, exception: BaseException | None = None, **fields: Any) -> None:
        if not self.is_enabled_for(level):
            return
        merged = {**self._bound, **CorrelationContext.get_current(), **fields}
        record = LogRecord(
            timestamp=datetime.now(timezone.utc),
            level=level,
            message=message,
            logger_name=self._name,
            fields=merged,
            exception=exception,
            correlation_id=merged.pop("correlation_id", None),
            service=self._config.service,
            environment=self._config.environment,
        )
        for sink in self._sinks:
            if sink.should_emit(record):
                sink.emit(record)

    def trace(self, message: str, **fields: Any) -> None:
        self._log(LogLevel.TRACE, message, **fields)

    def debug(self, message: str, **fields: Any) -> None:
        self._log(LogLevel.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self._log(LogLevel.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._log(LogLevel.WARNING, message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self._log(LogLevel.ERROR, message, **fields)

    def critical(self, message: str, **fields: Any) -> None:
        self._log(LogLevel.CRITICAL, message, **fields)

    def exception(self, message: str, exc: BaseException | None = None, **fields: Any) -> None:
        """Log at ``ERROR`` with ``exc`` (or the exception being handled) attached."""
        self._log(LogLevel.ERROR, message, exception=exc or sys.exc_info()[1], **fields)

    def audit(self, message: str, **fields: Any) -> None:
        """Log an audit event; emitted whatever the configured level."""
        self._log(LogLevel.AUDIT, message, **fields)

    def flush(self) -> None:
        for sink in self._sinks:
            sink.flush()

    def close(self) -> None:
        for sink in self._sinks:
            sink.close()


# =============================================================================
# Process-wide loggers
# =============================================================================

_loggers: dict[str, StructuredLogger] = {}
_global_config: LogConfig | None = None
_lock = threading.Lock()


def _discard_loggers() -> None:
    for logger in _loggers.values():
        logger.close()
    _loggers.clear()


def configure_logging(
    *,
    level: str | LogLevel = LogLevel.INFO,
    format: str = "console",
    service: str = "signgate",
    environment: str = "",
    sinks: list[dict[str, Any]] | None = None,
) -> None:
    """Set the configuration used by ``get_logger``.

    Existing loggers are closed; later ``get_logger`` calls build new ones.
    """
    global _global_config

    with _lock:
        _global_config = LogConfig(
            level=level,
            format=format,
            service=service,
            environment=environment,
            sinks=sinks or [{"type": "console"}],
        )
        _discard_loggers()


def get_logger(name: str) -> StructuredLogger:
    """Cached logger for ``name``, built from the global configuration.

    Before ``configure_logging`` is called the configuration comes from the
    environment (``LogConfig.from_environment``).
    """
    with _lock:
        logger = _loggers.get(name)
        if logger is None:
            logger = _loggers[name] = StructuredLogger(
                name, config=_global_config or LogConfig.from_environment()
            )
        return logger


def reset_logging() -> None:
    """Close every cached logger and forget the global configuration."""
    global _global_config

    with _lock:
        _discard_loggers()
        _global_config = None
