"""Poll-expand-filter-schedule loop for a single calendar feed.

One :class:`PollScheduler` owns one feed. Once started it fetches the feed
immediately, expands it over ``[now, now + window)``, drops all-day entries,
emits the result as ``data`` and re-arms a timer for the next cycle. Failures
are emitted as ``error`` and never stop the loop.

Everything runs on the asyncio event loop of the caller: the fetch is awaited
inside a task and the wait between cycles is a ``loop.call_later`` handle. At
most one of the two exists at a time.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from .all_day import AllDayClassifier
from .emitter import EventEmitter
from .exceptions import ExpansionError
from .expander import IcsExpander, RecurrenceExpander
from .fetcher import FeedFetcher, normalize_feed_url
from .models import CalendarSource, PollerState
from .time_utils import now_utc

logger = logging.getLogger(__name__)

EVENT_STARTED = "started"
EVENT_STOPPED = "stopped"
EVENT_DATA = "data"
EVENT_ERROR = "error"

DEFAULT_WINDOW = timedelta(days=7)

LogSink = Callable[[str], Any]


def _coerce_interval(interval: Union[int, float, timedelta]) -> float:
    if isinstance(interval, timedelta):
        seconds = interval.total_seconds()
    elif isinstance(interval, bool) or not isinstance(interval, (int, float)):
        raise TypeError(f"interval must be seconds or a timedelta, got {interval!r}")
    else:
        seconds = float(interval)
    if not seconds > 0:
        raise ValueError(f"interval must be positive, got {interval!r}")
    return seconds


class PollScheduler(EventEmitter):
    """Periodically publishes the non-all-day occurrences of one calendar feed.

    Events:
        started: lifecycle, no payload
        stopped: lifecycle, no payload
        data: the filtered :class:`~calendar_poller.models.OccurrenceWindow`
        error: the exception that ended the cycle (fetch or expansion failure)
    """

    def __init__(
        self,
        log: Optional[LogSink],
        name: str,
        url: str,
        interval: Union[int, float, timedelta],
        *,
        fetcher: Optional[FeedFetcher] = None,
        expander: Optional[RecurrenceExpander] = None,
        classifier: Optional[AllDayClassifier] = None,
        window: timedelta = DEFAULT_WINDOW,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the scheduler in the stopped state.

        Args:
            log: Sink for informational messages; defaults to this module's logger
            name: Human-readable calendar name used in messages
            url: Feed locator; ``webcal://`` is rewritten to ``https://``
            interval: Delay between cycles, seconds or timedelta, strictly positive
            fetcher: Feed downloader; one owned by the scheduler is created if omitted
            expander: Recurrence expansion collaborator
            classifier: All-day classifier used to filter the expanded window
            window: Length of the expansion range starting at "now"
            now: Clock returning an aware datetime

        Raises:
            ValueError: If ``interval`` or ``window`` is not positive
            TypeError: If ``interval`` is not a number or timedelta
        """
        super().__init__()
        if window <= timedelta(0):
            raise ValueError(f"window must be positive, got {window!r}")

        self.log: LogSink = log if log is not None else logger.info
        self.name = name

        self._url = normalize_feed_url(url)
        self._interval = _coerce_interval(interval)
        self._owns_fetcher = fetcher is None
        self._fetcher = fetcher if fetcher is not None else FeedFetcher()
        self._expander: RecurrenceExpander = expander if expander is not None else IcsExpander()
        self._classifier = classifier if classifier is not None else AllDayClassifier()
        self._window = window
        self._now = now if now is not None else now_utc

        self._is_started = False
        self._refresh_timer: Optional[asyncio.TimerHandle] = None
        self._cycle_task: Optional[asyncio.Task[None]] = None

    @classmethod
    def from_source(
        cls, source: CalendarSource, log: Optional[LogSink] = None, **kwargs: Any
    ) -> PollScheduler:
        """Build a scheduler for a configured :class:`CalendarSource`."""
        owns_fetcher = kwargs.get("fetcher") is None
        if owns_fetcher:
            kwargs["fetcher"] = FeedFetcher(timeout=source.timeout)
        scheduler = cls(log, source.name, source.url, source.refresh_interval, **kwargs)
        scheduler._owns_fetcher = owns_fetcher
        return scheduler

    @property
    def url(self) -> str:
        return self._url

    @property
    def interval(self) -> float:
        """Seconds between the end of one cycle and the start of the next."""
        return self._interval

    @property
    def state(self) -> PollerState:
        return PollerState.STARTED if self._is_started else PollerState.STOPPED

    @property
    def is_started(self) -> bool:
        return self._is_started

    @property
    def has_pending_timer(self) -> bool:
        return self._refresh_timer is not None

    @property
    def is_fetching(self) -> bool:
        return self._cycle_task is not None and not self._cycle_task.done()

    def start(self) -> None:
        """Start polling; the first fetch begins immediately.

        Must be called from code running on an asyncio event loop. Calling it
        while already started does nothing.

        Raises:
            RuntimeError: If no event loop is running
        """
        if self._is_started:
            return

        asyncio.get_running_loop()
        self._is_started = True
        self.emit(EVENT_STARTED)
        if self._is_started:
            self._load_calendar()

    def stop(self) -> None:
        """Stop polling and cancel the pending timer.

        A fetch already in flight runs to completion but its result is
        discarded. Calling it while already stopped does nothing.
        """
        if not self._is_started:
            return

        self._is_started = False
        if self._refresh_timer is not None:
            self._refresh_timer.cancel()
            self._refresh_timer = None
        self.emit(EVENT_STOPPED)

    async def aclose(self) -> None:
        """Stop, wait for an in-flight cycle to settle, and release the fetcher."""
        self.stop()
        task = self._cycle_task
        if task is not None and not task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._owns_fetcher:
            await self._fetcher.aclose()

    async def __aenter__(self) -> PollScheduler:
        self.start()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.aclose()

    def _load_calendar(self) -> None:
        if self.is_fetching:
            # A cycle from before the last stop() is still running; it re-arms on completion
            logger.debug("Calendar %s already has a fetch in flight", self.name)
            return

        loop = asyncio.get_running_loop()
        self._cycle_task = loop.create_task(self._run_cycle())

    async def _run_cycle(self) -> None:
        try:
            await self._refresh()
        finally:
            self._cycle_task = None
        self._schedule_next_iteration()

    async def _refresh(self) -> None:
        self.log(f"Updating calendar {self.name}")

        try:
            document = await self._fetcher.fetch(self._url)
        except Exception as err:
            if not self._is_started:
                logger.debug("Calendar %s stopped during fetch; dropping error %s", self.name, err)
                return
            self.log(f"Failed to load iCal calendar: {self._url} with error {err}")
            self.emit(EVENT_ERROR, err)
            return

        if not self._is_started:
            logger.debug("Calendar %s stopped during fetch; discarding document", self.name)
            return

        try:
            self._refresh_calendar(document)
        except Exception as err:
            logger.exception("Unexpected error refreshing calendar %s", self.name)
            self.emit(EVENT_ERROR, err)

    def _refresh_calendar(self, document: str) -> None:
        start = self._now()
        end = start + self._window

        try:
            window = self._expander.between(document, start, end)
        except ExpansionError as err:
            self.log(f"Failed to expand calendar {self.name}: {err}")
            self.emit(EVENT_ERROR, err)
            return

        if window is None:
            logger.debug("Calendar %s produced no expansion result", self.name)
            return

        filtered, removed = self._classifier.filter_window(window)
        if removed > 0:
            self.log(f"Filtered {removed} all-day event(s) from calendar {self.name}")

        self.emit(EVENT_DATA, filtered)

    def _schedule_next_iteration(self) -> None:
        if self._refresh_timer is not None or not self._is_started:
            return

        loop = asyncio.get_running_loop()
        self._refresh_timer = loop.call_later(self._interval, self._on_timer)

    def _on_timer(self) -> None:
        self._refresh_timer = None
        self._load_calendar()
