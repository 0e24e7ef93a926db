"""calendar_poller - periodic ICS feed polling with all-day filtering.

A :class:`PollScheduler` fetches a calendar feed on a fixed interval, expands
it over the next seven days, drops all-day events and emits the rest to
subscribers.
"""

__version__ = "1.0.0"

from typing import Optional

from .all_day import AllDayClassifier, looks_all_day, normalize_times
from .config import Config, load_config
from .exceptions import (
    CalendarPollerError,
    ConfigError,
    ExpansionError,
    FeedFetchError,
    FeedHTTPError,
    FeedNetworkError,
    FeedTimeoutError,
)
from .expander import IcsExpander, RecurrenceExpander
from .fetcher import FeedFetcher, normalize_feed_url
from .http_client import close_all_clients
from .logging_config import configure_logging, make_log_sink
from .models import (
    CalendarItem,
    CalendarSource,
    ExpandedOccurrence,
    OccurrenceTimes,
    OccurrenceWindow,
    PollerState,
)
from .scheduler import (
    EVENT_DATA,
    EVENT_ERROR,
    EVENT_STARTED,
    EVENT_STOPPED,
    LogSink,
    PollScheduler,
)
from .time_utils import resolve_timezone

__all__ = [
    "EVENT_DATA",
    "EVENT_ERROR",
    "EVENT_STARTED",
    "EVENT_STOPPED",
    "AllDayClassifier",
    "CalendarItem",
    "CalendarPollerError",
    "CalendarSource",
    "Config",
    "ConfigError",
    "ExpandedOccurrence",
    "ExpansionError",
    "FeedFetchError",
    "FeedFetcher",
    "FeedHTTPError",
    "FeedNetworkError",
    "FeedTimeoutError",
    "IcsExpander",
    "OccurrenceTimes",
    "OccurrenceWindow",
    "PollScheduler",
    "PollerState",
    "RecurrenceExpander",
    "close_all_clients",
    "configure_logging",
    "create_pollers",
    "load_config",
    "looks_all_day",
    "normalize_feed_url",
    "normalize_times",
]


def create_pollers(config: Config, log: Optional[LogSink] = None) -> list[PollScheduler]:
    """Build one PollScheduler per configured source.

    The schedulers share an expander, a classifier and the pooled HTTP client.
    Both the expander and the classifier's midnight check use
    ``config.timezone``. Without an explicit ``log`` sink each scheduler logs
    through its own ``calendar_poller.calendars.<name>`` logger.

    The pooled client outlives the schedulers; call :func:`close_all_clients`
    on shutdown after closing them.
    """
    tz = resolve_timezone(config.timezone)
    expander = IcsExpander(max_iterations=config.max_iterations, tz=tz)
    classifier = AllDayClassifier(drift_tolerance=config.drift_tolerance, tz=tz)

    pollers = []
    for source in config.build_sources():
        pollers.append(
            PollScheduler.from_source(
                source,
                log=log if log is not None else make_log_sink(source.name),
                fetcher=FeedFetcher(timeout=source.timeout, use_shared_client=True),
                expander=expander,
                classifier=classifier,
                window=config.window,
            )
        )
    return pollers
