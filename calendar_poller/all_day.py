"""All-day event detection.

Every input shape (plain event, expanded occurrence, raw icalendar component,
mapping) is first reduced to an :class:`OccurrenceTimes` by
:func:`normalize_times`; the classifier only ever sees that canonical shape.

Decision order:

1. A date-only DTSTART or DTEND (``VALUE=DATE``) is authoritative: all-day.
2. Otherwise fall back to a heuristic: both instants on local midnight and the
   span within ``drift_tolerance`` of a whole number (>= 1) of 24-hour days.
   The tolerance absorbs daylight-saving transitions, where a
   midnight-to-midnight day lasts 23 or 25 hours.

Malformed values are never rejected; they classify as "not all-day" so that
questionable events stay visible.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Any, Optional, TypeVar

from .models import OccurrenceTimes, OccurrenceWindow
from .time_utils import date_to_datetime

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)
DEFAULT_DRIFT_TOLERANCE = timedelta(hours=2)

T = TypeVar("T")


def _coerce_instant(raw: Any) -> tuple[Optional[datetime], bool]:
    """Return ``(datetime, is_date_only)`` for a calendar time value."""
    if raw is None:
        return None, False
    # icalendar property wrappers (vDDDTypes) carry the value in .dt
    raw = getattr(raw, "dt", raw)
    if isinstance(raw, datetime):
        return raw, False
    if isinstance(raw, date):
        return date_to_datetime(raw), True
    return None, False


def _lookup(value: Any, *names: str) -> Any:
    if isinstance(value, Mapping):
        for name in names:
            if name in value:
                return value[name]
        return None
    for name in names:
        found = getattr(value, name, None)
        if found is not None:
            return found
    return None


def _raw_start_end(value: Any) -> tuple[Any, Any]:
    start = _lookup(value, "start", "DTSTART", "dtstart")
    end = _lookup(value, "end", "DTEND", "dtend")
    if start is None or end is None:
        # Expanded occurrences without their own times fall back to the master event
        item = _lookup(value, "item")
        if item is not None and item is not value:
            return (
                _lookup(item, "start", "DTSTART", "dtstart"),
                _lookup(item, "end", "DTEND", "dtend"),
            )
    return start, end


def normalize_times(value: Any) -> OccurrenceTimes:
    """Extract start/end instants and date-only flags from any occurrence-like value."""
    if isinstance(value, OccurrenceTimes):
        return value
    if value is None:
        return OccurrenceTimes()

    raw_start, raw_end = _raw_start_end(value)
    start, start_is_date = _coerce_instant(raw_start)
    end, end_is_date = _coerce_instant(raw_end)
    return OccurrenceTimes(start=start, end=end, start_is_date=start_is_date, end_is_date=end_is_date)


def _is_midnight(value: datetime) -> bool:
    return value.hour == 0 and value.minute == 0 and value.second == 0


def _elapsed(start: datetime, end: datetime) -> timedelta:
    """Real elapsed time between two instants.

    Aware values are compared in UTC so a DST switch inside the span is
    counted; subtracting two datetimes sharing a tzinfo would give wall-clock
    difference instead.
    """
    if (start.tzinfo is None) != (end.tzinfo is None):
        if start.tzinfo is None:
            start = start.replace(tzinfo=end.tzinfo)
        else:
            end = end.replace(tzinfo=start.tzinfo)
    if start.tzinfo is None:
        return end - start
    return end.astimezone(UTC) - start.astimezone(UTC)


@dataclass(frozen=True)
class AllDayClassifier:
    """Decides whether an occurrence is an all-day event.

    Attributes:
        drift_tolerance: Maximum distance from a whole number of days
        tz: Zone whose midnight counts as "local"; when unset each value's own
            wall clock is used
    """

    drift_tolerance: timedelta = DEFAULT_DRIFT_TOLERANCE
    tz: Optional[tzinfo] = None

    def is_all_day(self, value: Any) -> bool:
        try:
            return self._classify(normalize_times(value))
        except Exception:
            logger.debug("All-day classification failed for %r; keeping event", value, exc_info=True)
            return False

    __call__ = is_all_day

    def _local(self, value: datetime) -> datetime:
        if self.tz is not None and value.tzinfo is not None:
            return value.astimezone(self.tz)
        return value

    def _classify(self, times: OccurrenceTimes) -> bool:
        start, end = times.start, times.end
        if start is None or end is None:
            return False

        if times.start_is_date or times.end_is_date:
            return True

        if not (_is_midnight(self._local(start)) and _is_midnight(self._local(end))):
            return False

        duration = _elapsed(start, end)
        days = math.floor(duration / ONE_DAY + 0.5)
        if days < 1:
            return False

        drift = abs(duration - days * ONE_DAY)
        return drift <= self.drift_tolerance

    def filter_all_day(self, values: Iterable[T]) -> tuple[list[T], int]:
        """Drop all-day entries, preserving order.

        Returns:
            Tuple of (retained entries, number removed)
        """
        kept: list[T] = []
        removed = 0
        for value in values:
            if self.is_all_day(value):
                removed += 1
            else:
                kept.append(value)
        return kept, removed

    def filter_window(self, window: OccurrenceWindow) -> tuple[OccurrenceWindow, int]:
        """Return a copy of ``window`` without all-day entries and the removed count."""
        events, removed_events = self.filter_all_day(window.events)
        occurrences, removed_occurrences = self.filter_all_day(window.occurrences)
        filtered = window.model_copy(update={"events": events, "occurrences": occurrences})
        return filtered, removed_events + removed_occurrences


_default_classifier = AllDayClassifier()


def looks_all_day(value: Any) -> bool:
    """Classify with the default tolerance and each value's own wall clock."""
    return _default_classifier.is_all_day(value)
