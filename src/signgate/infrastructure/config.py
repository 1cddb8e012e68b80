"""Environment-aware configuration for signgate.

Sources are merged by priority (higher overrides lower) on top of the schema
defaults, then validated:

    schema defaults
    FileConfigSource  base.{yaml,yml,json,toml}       (10)
    FileConfigSource  <environment>.{...}             (20)
    FileConfigSource  local.{...}                     (30)
    EnvConfigSource   SIGNGATE_* variables            (100)
         |
         v
    ConfigManager ---> ConfigValidator(ConfigSchema)
         |
         v
    ConfigProfile (typed access)

Usage:
    >>> from signgate.infrastructure.config import load_config
    >>> config = load_config(config_path="config/")
    >>> config.get_str("registry.path", default=".signgate")
    >>> config.get_float("verifier.timeout")

Environment variables nest on ``_``: ``SIGNGATE_STATE_BACKEND=memory``
becomes ``{"state": {"backend": "memory"}}``. Keys that themselves contain an
underscore (``runner.max_workers``) can only be set from files.
"""

from __future__ import annotations

import json
import os
import threading
import tomllib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import yaml

CONFIG_SUFFIXES = (".yaml", ".yml", ".json", ".toml")


# =============================================================================
# Environment
# =============================================================================


class Environment(Enum):
    """Deployment environment; selects the ``<environment>`` config file."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"
    LOCAL = "local"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """Parse a name or short alias (``prod``, ``dev``...); unknown is DEVELOPMENT."""
        value = value.strip().lower()
        aliases = {"dev": "development", "test": "testing", "stage": "staging", "prod": "production"}
        try:
            return cls(aliases.get(value, value))
        except ValueError:
            return cls.DEVELOPMENT

    @classmethod
    def current(cls) -> "Environment":
        """Environment named by ``SIGNGATE_ENV``, ``ENVIRONMENT`` or ``ENV``."""
        name = next(
            (os.environ[var] for var in ("SIGNGATE_ENV", "ENVIRONMENT", "ENV") if os.environ.get(var)),
            None,
        )
        return cls.from_string(name) if name else cls.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self in (Environment.STAGING, Environment.PRODUCTION)


# =============================================================================
# Errors
# =============================================================================


class ConfigError(Exception):
    """Base configuration error."""

    pass


class ConfigValidationError(ConfigError):
    """The merged configuration does not satisfy the schema.

    Attributes:
        errors: Every problem found, one message each.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("Configuration validation failed: " + "; ".join(errors))


class ConfigSourceError(ConfigError):
    """A configuration source could not be read."""

    pass


# =============================================================================
# Nested dictionaries
# =============================================================================


def _lookup(data: dict[str, Any], key: str) -> Any:
    """Value at a dotted key, or None when any segment is missing."""
    node: Any = data
    for segment in key.split("."):
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return node


def _assign(data: dict[str, Any], path: list[str], value: Any) -> None:
    node = data
    for segment in path[:-1]:
        child = node.get(segment)
        if not isinstance(child, dict):
            child = node[segment] = {}
        node = child
    node[path[-1]] = value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


# =============================================================================
# Sources
# =============================================================================


class ConfigSource(ABC):
    """A provider of (partial) configuration.

    Args:
        priority: Merge order; higher priorities override lower ones.
    """

    def __init__(self, priority: int = 0) -> None:
        self._priority = priority

    @property
    def priority(self) -> int:
        return self._priority

    @abstractmethod
    def load(self) -> dict[str, Any]:
        pass


def _coerce(raw: str) -> Any:
    """Interpret an environment string as bool, None, number, JSON or text."""
    lowered = raw.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    if lowered in ("", "null", "none"):
        return None
    for number in (int, float):
        try:
            return number(raw)
        except ValueError:
            continue
    if raw.startswith(("[", "{")):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            pass
    return raw


class EnvConfigSource(ConfigSource):
    """Configuration from ``<PREFIX>_*`` environment variables.

    Example:
        SIGNGATE_REGISTRY_BACKEND=memory
        SIGNGATE_VERIFIER_TIMEOUT=30

        gives {"registry": {"backend": "memory"}, "verifier": {"timeout": 30}}
    """

    def __init__(
        self,
        prefix: str = "SIGNGATE",
        separator: str = "_",
        priority: int = 100,
        environ: dict[str, str] | None = None,
    ) -> None:
        super().__init__(priority)
        self._prefix = f"{prefix}{separator}"
        self._separator = separator
        self._environ = environ

    def load(self) -> dict[str, Any]:
        environ = os.environ if self._environ is None else self._environ
        result: dict[str, Any] = {}
        for name, raw in environ.items():
            if name.startswith(self._prefix):
                path = name[len(self._prefix):].lower().split(self._separator)
                _assign(result, path, _coerce(raw))
        return result


def _load_yaml(text: str) -> Any:
    return yaml.safe_load(text) or {}


_LOADERS: dict[str, Callable[[str], Any]] = {
    ".yaml": _load_yaml,
    ".yml": _load_yaml,
    ".json": json.loads,
    ".toml": tomllib.loads,
}

_PARSE_ERRORS = (yaml.YAMLError, json.JSONDecodeError, tomllib.TOMLDecodeError)


class FileConfigSource(ConfigSource):
    """Configuration from a YAML, JSON or TOML file, chosen by suffix.

    Args:
        path: File to read.
        required: Raise when the file is missing instead of contributing nothing.
        priority: Merge priority.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        required: bool = False,
        priority: int = 50,
    ) -> None:
        super().__init__(priority)
        self._path = Path(path)
        self._required = required

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        """Read the file.

        Raises:
            ConfigSourceError: If a required file is missing, the format is
                unknown, the content does not parse, or the root is not a
                mapping.
        """
        if not self._path.exists():
            if self._required:
                raise ConfigSourceError(f"Configuration file not found: {self._path}")
            return {}

        loader = _LOADERS.get(self._path.suffix.lower())
        if loader is None:
            raise ConfigSourceError(f"Unsupported configuration format: {self._path}")

        try:
            data = loader(self._path.read_text(encoding="utf-8"))
        except _PARSE_ERRORS as e:
            raise ConfigSourceError(f"Failed to parse {self._path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigSourceError(f"Configuration root must be a mapping: {self._path}")
        return data


# =============================================================================
# Schema
# =============================================================================


@dataclass
class ConfigField:
    """A known configuration key and its constraints."""

    name: str
    type: type | tuple[type, ...] = str
    required: bool = False
    default: Any = None
    min_value: float | None = None
    max_value: float | None = None
    choices: list[Any] | None = None
    description: str = ""

    @property
    def types(self) -> tuple[type, ...]:
        return self.type if isinstance(self.type, tuple) else (self.type,)

    def check(self, value: Any) -> list[str]:
        """Problems with ``value`` for this field (empty if acceptable)."""
        if value is None:
            return [f"Required field '{self.name}' is missing"] if self.required else []

        # bool is an int subclass and must not pass as a number
        if not isinstance(value, self.types) or (isinstance(value, bool) and bool not in self.types):
            expected = "/".join(t.__name__ for t in self.types)
            return [f"Field '{self.name}' should be {expected}, got {type(value).__name__}"]

        problems = []
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if self.min_value is not None and value < self.min_value:
                problems.append(f"Field '{self.name}' must be >= {self.min_value}")
            if self.max_value is not None and value > self.max_value:
                problems.append(f"Field '{self.name}' must be <= {self.max_value}")
        if self.choices and value not in self.choices:
            problems.append(f"Field '{self.name}' must be one of {self.choices}")
        return problems


@dataclass
class ConfigSchema:
    """The set of known configuration keys.

    Example:
        >>> schema = ConfigSchema().add_field("verifier.timeout", (int, float), min_value=0.001)
    """

    fields: list[ConfigField] = field(default_factory=list)

    def add_field(self, name: str, type: type | tuple[type, ...] = str, **kwargs: Any) -> "ConfigSchema":
        self.fields.append(ConfigField(name=name, type=type, **kwargs))
        return self

    def defaults(self) -> dict[str, Any]:
        """Nested dictionary holding every field that has a default."""
        result: dict[str, Any] = {}
        for config_field in self.fields:
            if config_field.default is not None:
                _assign(result, config_field.name.split("."), config_field.default)
        return result


class ConfigValidator:
    """Checks a merged configuration against a schema."""

    def __init__(self, schema: ConfigSchema) -> None:
        self._schema = schema

    def validate(self, config: dict[str, Any]) -> list[str]:
        """Every problem found, in schema order (empty if valid)."""
        return [
            problem
            for config_field in self._schema.fields
            for problem in config_field.check(_lookup(config, config_field.name))
        ]


# =============================================================================
# Profile
# =============================================================================


class ConfigProfile:
    """Read-only typed view over a merged configuration.

    Example:
        >>> profile = ConfigProfile({"state": {"backend": "memory"}})
        >>> profile.get_str("state.backend")
        'memory'
    """

    def __init__(
        self,
        config: dict[str, Any],
        *,
        environment: Environment = Environment.DEVELOPMENT,
    ) -> None:
        self._data = config
        self._environment = environment

    @property
    def environment(self) -> Environment:
        return self._environment

    def get(self, key: str, default: Any = None, *, required: bool = False) -> Any:
        """Value at a dotted key.

        Raises:
            ConfigError: If ``required`` and the key is absent.
        """
        value = _lookup(self._data, key)
        if value is not None:
            return value
        if required:
            raise ConfigError(f"Required configuration '{key}' not found")
        return default

    def get_str(self, key: str, default: str = "") -> str:
        value = self.get(key)
        return default if value is None else str(value)

    def get_int(self, key: str, default: int = 0) -> int:
        try:
            return int(self.get(key, default))
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float | None = None) -> float | None:
        value = self.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key, default)
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "1", "on")
        return bool(value)

    def get_dict(self, key: str, default: dict[str, Any] | None = None) -> dict[str, Any]:
        value = self.get(key)
        return value if isinstance(value, dict) else dict(default or {})

    def to_dict(self) -> dict[str, Any]:
        """Deep copy of the configuration, JSON-compatible."""
        return json.loads(json.dumps(self._data, default=str))

    def __contains__(self, key: str) -> bool:
        return _lookup(self._data, key) is not None

    def __getitem__(self, key: str) -> Any:
        value = _lookup(self._data, key)
        if value is None:
            raise KeyError(key)
        return value


# =============================================================================
# Manager
# =============================================================================


class ConfigManager:
    """Merges sources over schema defaults into a validated profile.

    Example:
        >>> manager = ConfigManager(environment=Environment.PRODUCTION)
        >>> manager.add_source(FileConfigSource("config/base.yaml", priority=10))
        >>> manager.add_source(EnvConfigSource())
        >>> config = manager.set_schema(create_default_schema()).load()
    """

    def __init__(self, environment: Environment | None = None) -> None:
        self._environment = environment or Environment.current()
        self._sources: list[ConfigSource] = []
        self._schema: ConfigSchema | None = None
        self._profile: ConfigProfile | None = None
        self._lock = threading.RLock()

    @property
    def environment(self) -> Environment:
        return self._environment

    @property
    def sources(self) -> list[ConfigSource]:
        """Sources in merge order."""
        return sorted(self._sources, key=lambda source: source.priority)

    def add_source(self, source: ConfigSource) -> "ConfigManager":
        with self._lock:
            self._sources.append(source)
        return self

    def set_schema(self, schema: ConfigSchema) -> "ConfigManager":
        self._schema = schema
        return self

    def load(self, validate: bool = True) -> ConfigProfile:
        """Merge every source and build the profile.

        Raises:
            ConfigSourceError: If a source cannot be read.
            ConfigValidationError: If validation is on and the result is invalid.
        """
        with self._lock:
            merged = self._schema.defaults() if self._schema else {}
            for source in self.sources:
                _deep_merge(merged, source.load())

            if validate and self._schema:
                errors = ConfigValidator(self._schema).validate(merged)
                if errors:
                    raise ConfigValidationError(errors)

            self._profile = ConfigProfile(merged, environment=self._environment)
            return self._profile

    @property
    def config(self) -> ConfigProfile:
        """The last loaded profile, loading on first access."""
        return self._profile or self.load()


# =============================================================================
# Default schema
# =============================================================================

_LEVEL_NAMES = ["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
_BACKENDS = ["filesystem", "memory"]


def create_default_schema() -> ConfigSchema:
    """Schema of every key signgate reads."""
    return (
        ConfigSchema()
        .add_field("logging.level", str, default="INFO",
                   choices=_LEVEL_NAMES + [name.lower() for name in _LEVEL_NAMES])
        .add_field("logging.format", str, default="console", choices=["console", "json", "logfmt"])
        .add_field("registry.backend", str, default="filesystem", choices=_BACKENDS)
        .add_field("registry.path", str, default=".signgate")
        .add_field("state.backend", str, default="filesystem", choices=_BACKENDS)
        .add_field("state.path", str, default=".signgate")
        .add_field("extraction.backend", str, default="filesystem", choices=_BACKENDS)
        .add_field("extraction.path", str, default=".signgate/certificates")
        .add_field("verifier.timeout", (int, float), min_value=0.001,
                   description="Seconds allowed for one verify call; unset means unbounded")
        .add_field("runner.max_workers", int, default=4, min_value=1, max_value=64)
    )


# =============================================================================
# Global configuration
# =============================================================================

_global_manager: ConfigManager | None = None
_lock = threading.Lock()


def _find_config_file(directory: Path, stem: str) -> Path | None:
    for suffix in CONFIG_SUFFIXES:
        candidate = directory / f"{stem}{suffix}"
        if candidate.exists():
            return candidate
    return None


def load_config(
    *,
    environment: Environment | str | None = None,
    config_path: str | Path | None = None,
    env_prefix: str = "SIGNGATE",
    validate: bool = True,
) -> ConfigProfile:
    """Load configuration and install it as the global configuration.

    Args:
        environment: Environment, or its name. Defaults to ``Environment.current()``.
        config_path: Directory holding ``base``, ``<environment>`` and
            ``local`` files. The first existing suffix of each wins.
        env_prefix: Environment variable prefix.
        validate: Validate against the default schema.

    Raises:
        ConfigSourceError: If a configuration file cannot be read.
        ConfigValidationError: If the configuration is invalid.
    """
    global _global_manager

    if isinstance(environment, str):
        environment = Environment.from_string(environment)
    manager = ConfigManager(environment=environment or Environment.current())

    if config_path:
        directory = Path(config_path)
        for stem, priority in (("base", 10), (manager.environment.value, 20), ("local", 30)):
            path = _find_config_file(directory, stem)
            if path is not None:
                manager.add_source(FileConfigSource(path, priority=priority))

    manager.add_source(EnvConfigSource(prefix=env_prefix, priority=100))
    manager.set_schema(create_default_schema())
    profile = manager.load(validate=validate)

    with _lock:
        _global_manager = manager
    return profile


def get_config() -> ConfigProfile:
    """The global configuration, loaded from defaults and environment on first use."""
    with _lock:
        manager = _global_manager
    return manager.config if manager is not None else load_config()


def reset_config() -> None:
    """Forget the global configuration."""
    global _global_manager

    with _lock:
        _global_manager = None
