"""Infrastructure for signgate: configuration and structured logging."""

from signgate.infrastructure.config import (
    ConfigError,
    ConfigManager,
    ConfigProfile,
    ConfigSchema,
    ConfigValidationError,
    EnvConfigSource,
    Environment,
    FileConfigSource,
    get_config,
    load_config,
    reset_config,
)
from signgate.infrastructure.logging import (
    ConsoleSink,
    CorrelationContext,
    FileSink,
    LogConfig,
    LogLevel,
    LogRecord,
    MemorySink,
    StructuredLogger,
    configure_logging,
    correlation_context,
    get_correlation_id,
    get_logger,
    reset_logging,
)

__all__ = [
    # Config
    "ConfigError",
    "ConfigManager",
    "ConfigProfile",
    "ConfigSchema",
    "ConfigValidationError",
    "EnvConfigSource",
    "Environment",
    "FileConfigSource",
    "get_config",
    "load_config",
    "reset_config",
    # Logging
    "ConsoleSink",
    "CorrelationContext",
    "FileSink",
    "LogConfig",
    "LogLevel",
    "LogRecord",
    "MemorySink",
    "StructuredLogger",
    "configure_logging",
    "correlation_context",
    "get_correlation_id",
    "get_logger",
    "reset_logging",
]
