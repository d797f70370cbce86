"""Runtime settings: refresh interval, per-registry switches and file locations.

Settings come from, in order of precedence:

1. the LSP ``initializationOptions`` mapping (``Settings.from_dict``),
2. a YAML file (explicit path, ``$VERSION_LSP_CONFIG`` or
   ``$XDG_CONFIG_HOME/version-lsp/config.yaml``),
3. built-in defaults.

Both camelCase (editor clients) and snake_case (YAML files) keys are read.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .constants import Constants
from .errors import ConfigError
from .versioning.models import RegistryType

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$")
_DURATION_UNITS = {"ms": 1, "s": 1000, "m": 60_000, "h": 3_600_000, "d": 86_400_000}


def _data_dir_with_env(xdg_data_home: Optional[str], home_dir: Optional[Path]) -> Path:
    if xdg_data_home:
        base = Path(xdg_data_home)
    elif home_dir is not None:
        base = home_dir / ".local" / "share"
    else:
        base = Path(".")
    return base / Constants.APP_NAME


def _home() -> Optional[Path]:
    try:
        return Path.home()
    except RuntimeError:
        return None


def data_dir() -> Path:
    """``$XDG_DATA_HOME/version-lsp``, else ``~/.local/share/version-lsp``, else ``./version-lsp``."""
    return _data_dir_with_env(os.environ.get(Constants.ENV_XDG_DATA_HOME), _home())


def db_path() -> Path:
    return data_dir() / Constants.DB_FILE


def log_path() -> Path:
    return data_dir() / Constants.LOG_FILE


def config_dir() -> Path:
    xdg = os.environ.get(Constants.ENV_XDG_CONFIG_HOME)
    if xdg:
        return Path(xdg) / Constants.APP_NAME
    home = _home()
    return (home / ".config" if home else Path(".")) / Constants.APP_NAME


def parse_duration_ms(value: Any) -> int:
    """Milliseconds from an int/float or a string such as ``'12h'`` or ``'500ms'``."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ConfigError(f"Duration must not be negative: {value!r}")
        return int(value)
    if isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match:
            amount, unit = match.groups()
            return int(float(amount) * _DURATION_UNITS[unit or "ms"])
    raise ConfigError(f"Invalid duration: {value!r}")


def parse_timeout_seconds(value: Any) -> float:
    """Seconds from a number of seconds or a duration string such as ``'10s'``."""
    if isinstance(value, str):
        seconds = parse_duration_ms(value) / 1000
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        raise ConfigError(f"Invalid fetch timeout: {value!r}")
    if seconds <= 0:
        raise ConfigError(f"Fetch timeout must be positive: {value!r}")
    return seconds


@dataclass
class RegistrySettings:
    """Per-registry switch and optional endpoint override."""

    enabled: bool = True
    base_url: Optional[str] = None


def _default_registries() -> Dict[RegistryType, RegistrySettings]:
    return {registry_type: RegistrySettings() for registry_type in RegistryType}


@dataclass
class Settings:
    """Configuration consumed by the cache, registries and checker."""

    refresh_interval: timedelta = field(
        default_factory=lambda: timedelta(milliseconds=Constants.DEFAULT_REFRESH_INTERVAL_MS))
    fetch_timeout: float = Constants.REQUEST_TIMEOUT
    negative_cache: bool = True
    registries: Dict[RegistryType, RegistrySettings] = field(default_factory=_default_registries)
    db_path: Path = field(default_factory=db_path)
    # None logs to stderr.
    log_path: Optional[Path] = None
    log_level: Optional[str] = None

    def is_enabled(self, registry_type: RegistryType) -> bool:
        settings = self.registries.get(registry_type)
        return settings is None or settings.enabled

    def base_url(self, registry_type: RegistryType) -> Optional[str]:
        settings = self.registries.get(registry_type)
        return settings.base_url if settings else None

    @classmethod
    def from_dict(cls, options: Optional[Mapping[str, Any]], base: Optional["Settings"] = None) -> "Settings":
        """Overlay an options mapping on ``base`` (defaults when omitted).

        Raises:
            ConfigError: on unknown registries or wrongly typed values
        """
        settings = replace(base) if base is not None else cls()
        settings.registries = {k: replace(v) for k, v in settings.registries.items()}
        if not options:
            return settings
        if not isinstance(options, Mapping):
            raise ConfigError("Configuration must be a mapping")

        cache = _section(options, "cache")
        interval = _pick(cache, "refreshInterval", "refresh_interval")
        if interval is None:
            interval = _pick(options, "refreshInterval", "refresh_interval")
        if interval is not None:
            settings.refresh_interval = timedelta(milliseconds=parse_duration_ms(interval))

        negative = _pick(cache, "negativeCache", "negative_cache")
        if negative is not None:
            settings.negative_cache = _as_bool(negative, "cache.negative_cache")

        path = _pick(cache, "path", "dbPath", "db_path")
        if path is not None:
            settings.db_path = Path(str(path)).expanduser()

        timeout = _pick(options, "fetchTimeout", "fetch_timeout")
        if timeout is not None:
            settings.fetch_timeout = parse_timeout_seconds(timeout)

        for name, value in _section(options, "registries").items():
            try:
                registry_type = RegistryType.parse(str(name))
            except ValueError as exc:
                raise ConfigError(str(exc)) from exc
            target = settings.registries.setdefault(registry_type, RegistrySettings())
            if isinstance(value, bool):
                target.enabled = value
                continue
            if not isinstance(value, Mapping):
                raise ConfigError(f"registries.{name} must be a mapping or a boolean")
            enabled = _pick(value, "enabled")
            if enabled is not None:
                target.enabled = _as_bool(enabled, f"registries.{name}.enabled")
            url = _pick(value, "baseUrl", "base_url")
            if url is not None:
                target.base_url = str(url)

        log = _section(options, "log")
        level = _pick(log, "level")
        if level is not None:
            settings.log_level = str(level)
        log_file = _pick(log, "path", "file")
        if log_file is not None:
            settings.log_path = Path(str(log_file)).expanduser()
        return settings


def _section(options: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = options.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _pick(options: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in options and options[key] is not None:
            return options[key]
    return None


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings from YAML.

    An explicitly named file (argument or ``$VERSION_LSP_CONFIG``) must exist;
    the default location is optional.

    Raises:
        ConfigError: when the file cannot be read or parsed
    """
    explicit = path or os.environ.get(Constants.ENV_CONFIG)
    config_file = Path(explicit).expanduser() if explicit else config_dir() / Constants.CONFIG_FILE

    if not config_file.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_file}")
        logger.debug("No config file at %s, using defaults", config_file)
        return Settings()

    try:
        with open(config_file, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load config {config_file}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_file} must contain a mapping")
    logger.info("Loaded config from %s", config_file)
    return Settings.from_dict(data)
