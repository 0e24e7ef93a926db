"""Time helpers for calendar_poller."""

from __future__ import annotations

import datetime
import logging
import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "CALENDAR_POLLER_TEST_TIME"


def now_utc() -> datetime.datetime:
    """Return current UTC time with tzinfo.

    Can be overridden for testing via the CALENDAR_POLLER_TEST_TIME environment
    variable. Format: ISO 8601 datetime string (e.g. "2025-10-27T08:20:00-07:00").
    Naive override values are taken to be UTC.
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            dt = date_parser.isoparse(test_time)
            if dt.tzinfo is not None:
                return dt.astimezone(datetime.timezone.utc)
            return dt.replace(tzinfo=datetime.timezone.utc)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.datetime.now(datetime.timezone.utc)


def resolve_timezone(name: str | None) -> datetime.tzinfo:
    """Resolve an IANA timezone name, falling back to UTC when unknown."""
    if not name or name.upper() == "UTC":
        return datetime.timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; using UTC", name)
        return datetime.timezone.utc


def date_to_datetime(value: datetime.date, tz: datetime.tzinfo | None = None) -> datetime.datetime:
    """Midnight at the start of ``value``, attached to ``tz`` when given."""
    dt = datetime.datetime.combine(value, datetime.time.min)
    if tz is not None:
        dt = dt.replace(tzinfo=tz)
    return dt


def to_aware(value: datetime.date, tz: datetime.tzinfo) -> datetime.datetime:
    """Coerce a date or datetime into an aware datetime.

    Dates become midnight in ``tz``; floating (naive) datetimes are read as
    wall-clock time in ``tz``; aware datetimes pass through unchanged.
    """
    if not isinstance(value, datetime.datetime):
        return date_to_datetime(value, tz)
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value
