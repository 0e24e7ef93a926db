"""calendar_poller.config

Configuration loader for calendar_poller.

- Reads YAML (PyYAML) from an explicit path, ``$CALENDAR_POLLER_CONFIG``, or
  ``./calendar_poller.yaml``.
- Exposes a typed dataclass `Config` and a `load_config()` helper.
- Values are coerced conservatively: bad values log a warning and fall back to
  defaults instead of failing startup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import CalendarSource

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "CALENDAR_POLLER_CONFIG"
DEFAULT_CONFIG_FILENAME = "calendar_poller.yaml"


@dataclass
class Config:
    """Typed configuration for calendar_poller.

    Fields:
        sources: ICS source URLs or mappings with ``name``/``url``/``refresh_interval``
        refresh_interval_seconds: default poll interval for sources without their own
        window_days: length of the expansion window starting at "now"
        all_day_drift_hours: DST tolerance of the all-day heuristic
        request_timeout: HTTP read timeout in seconds
        max_iterations: cap on instances generated per recurring event
        timezone: IANA zone used for floating times and date-only values
        log_level: root logging level name, applied with `configure_logging(level=...)`
    """

    sources: list[Any] = field(default_factory=list)
    refresh_interval_seconds: float = 300.0
    window_days: int = 7
    all_day_drift_hours: float = 2.0
    request_timeout: float = 30.0
    max_iterations: int = 1000
    timezone: str = "UTC"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation."""
        if data is None:
            data = {}

        sources_raw = data.get("sources", [])
        if sources_raw is None:
            sources_raw = []
        if not isinstance(sources_raw, (list, tuple)):
            logger.warning("Config `sources` is not a list; coercing to single-item list")
            sources_raw = [sources_raw]

        def _coerce_number(key: str, default: float, minimum: float, cast: type = float) -> Any:
            raw = data.get(key, default)
            try:
                value = cast(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not a number; using default %s", key, raw, default)
                return default
            if value < minimum:
                logger.warning("Config %s=%r below minimum %s; using default %s", key, raw, minimum, default)
                return default
            return value

        refresh = _coerce_number("refresh_interval_seconds", 300.0, 1.0)
        window_days = _coerce_number("window_days", 7, 1, int)
        drift = _coerce_number("all_day_drift_hours", 2.0, 0.0)
        timeout = _coerce_number("request_timeout", 30.0, 1.0)
        max_iterations = _coerce_number("max_iterations", 1000, 1, int)

        timezone = data.get("timezone") or "UTC"
        log_level = str(data.get("log_level") or "INFO").upper()

        return cls(
            sources=list(sources_raw),
            refresh_interval_seconds=refresh,
            window_days=window_days,
            all_day_drift_hours=drift,
            request_timeout=timeout,
            max_iterations=max_iterations,
            timezone=str(timezone),
            log_level=log_level,
        )

    @property
    def window(self) -> timedelta:
        return timedelta(days=self.window_days)

    @property
    def drift_tolerance(self) -> timedelta:
        return timedelta(hours=self.all_day_drift_hours)

    def build_sources(self) -> list[CalendarSource]:
        """Turn ``sources`` entries into validated CalendarSource models.

        Entries that cannot be turned into a source are logged and skipped.
        """
        built: list[CalendarSource] = []
        for index, entry in enumerate(self.sources, start=1):
            if isinstance(entry, str):
                entry = {"url": entry}
            if not isinstance(entry, dict) or not entry.get("url"):
                logger.warning("Skipping source #%d without a url: %r", index, entry)
                continue

            url = str(entry["url"])
            name = entry.get("name") or urlparse(url).hostname or f"calendar-{index}"
            try:
                built.append(
                    CalendarSource(
                        name=str(name),
                        url=url,
                        refresh_interval=entry.get("refresh_interval", self.refresh_interval_seconds),
                        timeout=entry.get("timeout", self.request_timeout),
                    )
                )
            except ValidationError as e:
                logger.warning("Skipping invalid source #%d (%s): %s", index, name, e)
        return built


def _default_config_path() -> Path:
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return Path.cwd() / DEFAULT_CONFIG_FILENAME


def load_config(path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to $CALENDAR_POLLER_CONFIG,
              then ./calendar_poller.yaml.

    Returns:
        Config dataclass instance with values from file (or defaults).

    Raises:
        ConfigError: If the file exists but is not valid YAML or not a mapping
    """
    p = Path(path) if path else _default_config_path()
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Unable to parse config file {p}: {e}") from e

    # safe_load returns None for empty files
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {p} must contain a mapping at top level")

    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg
