"""
Central logging configuration for calendar_poller.

Keeps the poller's own modules at the configured level (INFO by default, DEBUG on request) while quieting
chatty third-party libraries such as httpx and httpcore.
"""

import logging
import os
from collections.abc import Callable
from typing import Optional

DEBUG_ENV = "CALENDAR_POLLER_DEBUG"
LOG_LEVEL_ENV = "CALENDAR_POLLER_LOG_LEVEL"

LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"

logger = logging.getLogger(__name__)

# Third-party libraries that generate excessive debug logs
_NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}


def _level_from_name(name: Optional[str], default: int) -> int:
    if not name:
        return default
    level = logging.getLevelName(name.upper())
    if isinstance(level, int):
        return level
    logger.warning("Unknown log level %r; using %s", name, logging.getLevelName(default))
    return default


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    level: Optional[str] = None,
) -> None:
    """
    Configure logging levels for calendar_poller.

    Args:
        debug_mode: Whether to enable debug logging for calendar_poller modules
        force_debug: Override debug mode setting (None to use env var detection)
        level: Root level name when not in debug mode, usually `Config.log_level`

    Environment Variables:
        CALENDAR_POLLER_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALENDAR_POLLER_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv(DEBUG_ENV, "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv(LOG_LEVEL_ENV, "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else _level_from_name(level, logging.INFO)
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if the host application has not installed one
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)

    for logger_name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(noisy_level)

    logging.getLogger("calendar_poller").setLevel(logging.DEBUG if final_debug else root_level)

    if final_debug:
        root_logger.debug("Debug logging enabled for calendar_poller modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("calendar_poller", *_NOISY_LOGGERS):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status


def make_log_sink(name: str) -> Callable[[str], None]:
    """Return a scheduler log sink that writes INFO records for calendar ``name``."""
    sink_logger = logging.getLogger(f"calendar_poller.calendars.{name}")

    def _sink(message: str) -> None:
        sink_logger.info("%s", message)

    return _sink
