"""
Runtime settings for page serving and the command line.

Settings come from three layers, later ones winning:
    1. Dataclass defaults
    2. An optional YAML file (snake_case or camelCase keys)
    3. BLOCKPAGE_* environment variables

Environment variables:
    BLOCKPAGE_COLLECT_URL: Lead-capture endpoint
    BLOCKPAGE_SUBMIT_TIMEOUT: Lead submission timeout in seconds
    BLOCKPAGE_RENDER_WORKERS: Render thread pool size (1 = sequential)
    BLOCKPAGE_STRICT_FORMULAS: Reject disallowed formula characters
    BLOCKPAGE_LOG_LEVEL: Logging level name (DEBUG, INFO, ...)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from blockpage.errors import BlockPageError
from blockpage.leads import DEFAULT_TIMEOUT

ENV_PREFIX = "BLOCKPAGE_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}

_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class ConfigError(BlockPageError):
    """Raised when a settings file or environment value is invalid."""
    pass


@dataclass(frozen=True)
class Settings:
    """
    Process-wide settings.

    Attributes:
        collect_url: Lead-capture endpoint passed into every RenderContext
        submit_timeout: Lead submission timeout in seconds
        render_workers: Thread pool size for block rendering (None = default)
        strict_formulas: Fail calculator blocks with disallowed characters
        log_level: Level name for logging.basicConfig
    """

    collect_url: str | None = None
    submit_timeout: float = DEFAULT_TIMEOUT
    render_workers: int | None = None
    strict_formulas: bool = False
    log_level: str = "WARNING"

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level)


def _parse_bool(name: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _parse_timeout(name: str, raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number of seconds, got {raw!r}") from e
    if not value > 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def _parse_workers(name: str, raw: Any) -> int | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    if value < 1:
        raise ConfigError(f"{name} must be at least 1, got {raw!r}")
    return value


def _parse_level(name: str, raw: Any) -> str:
    level = str(raw).strip().upper()
    if level not in _LEVELS:
        raise ConfigError(f"{name} must be one of {', '.join(sorted(_LEVELS))}, got {raw!r}")
    return level


def _parse_url(name: str, raw: Any) -> str | None:
    if raw is None:
        return None
    url = str(raw).strip()
    return url or None


_PARSERS = {
    "collect_url": _parse_url,
    "submit_timeout": _parse_timeout,
    "render_workers": _parse_workers,
    "strict_formulas": _parse_bool,
    "log_level": _parse_level,
}

_CAMEL_KEYS = {
    "collectUrl": "collect_url",
    "submitTimeout": "submit_timeout",
    "renderWorkers": "render_workers",
    "strictFormulas": "strict_formulas",
    "logLevel": "log_level",
}


def settings_from_dict(d: Mapping[str, Any], base: Settings | None = None) -> Settings:
    """
    Overlay a mapping onto base settings.

    Raises:
        ConfigError: On unknown keys or invalid values.
    """
    known = {f.name for f in fields(Settings)}
    updates: Dict[str, Any] = {}
    for key, raw in d.items():
        name = _CAMEL_KEYS.get(key, key)
        if name not in known:
            raise ConfigError(f"Unknown setting: {key}")
        updates[name] = _PARSERS[name](key, raw)
    return replace(base or Settings(), **updates)


def settings_from_env(environ: Mapping[str, str] | None = None, base: Settings | None = None) -> Settings:
    """Overlay BLOCKPAGE_* environment variables onto base settings."""
    environ = os.environ if environ is None else environ
    updates: Dict[str, Any] = {}
    for f in fields(Settings):
        var = f"{ENV_PREFIX}{f.name.upper()}"
        if var in environ:
            updates[f.name] = _PARSERS[f.name](var, environ[var])
    return replace(base or Settings(), **updates)


def load_settings(path: str | Path | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    """
    Load settings from an optional YAML file, then the environment.

    Raises:
        ConfigError: If the file cannot be read or parsed, or a value is invalid.
    """
    settings = Settings()

    if path is not None:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read settings file {path}: {e}") from e
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in settings file {path}: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Settings file {path} must contain a mapping")
        settings = settings_from_dict(data, settings)

    return settings_from_env(environ, settings)


__all__ = [
    "ConfigError",
    "Settings",
    "ENV_PREFIX",
    "settings_from_dict",
    "settings_from_env",
    "load_settings",
]
