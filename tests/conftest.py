"""Shared fixtures for calendar_poller tests."""

import asyncio
from collections.abc import Generator
from datetime import UTC, datetime
from typing import Any, Optional

import pytest

from calendar_poller.models import OccurrenceWindow
from calendar_poller.scheduler import PollScheduler

FIXED_NOW = datetime(2024, 1, 15, 8, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear CALENDAR_POLLER_* overrides so host settings never leak into tests."""
    for name in (
        "CALENDAR_POLLER_TEST_TIME",
        "CALENDAR_POLLER_CONFIG",
        "CALENDAR_POLLER_DEBUG",
        "CALENDAR_POLLER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def fixed_now() -> datetime:
    """Deterministic "now" used as the start of the expansion window."""
    return FIXED_NOW


class FakeFetcher:
    """Stands in for FeedFetcher; optionally blocks on ``gate`` to keep a fetch in flight."""

    def __init__(self, document: str = "", error: Optional[Exception] = None) -> None:
        self.document = document
        self.error = error
        self.calls: list[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.document

    async def aclose(self) -> None:
        self.closed = True


class FakeExpander:
    """Returns a canned window (or None) and records the requested range."""

    def __init__(self, window: Optional[OccurrenceWindow] = None, error: Optional[Exception] = None):
        self.window = window
        self.error = error
        self.requests: list[tuple[str, datetime, datetime]] = []

    def between(self, document: str, start: datetime, end: datetime) -> Optional[OccurrenceWindow]:
        self.requests.append((document, start, end))
        if self.error is not None:
            raise self.error
        return self.window


class EventRecorder:
    """Subscribes to all scheduler events and records them in order."""

    def __init__(self, scheduler: PollScheduler) -> None:
        self.events: list[tuple[str, tuple[Any, ...]]] = []
        for name in ("started", "stopped", "data", "error"):
            scheduler.on(name, self._make_listener(name))

    def _make_listener(self, name: str) -> Any:
        def _listener(*args: Any) -> None:
            self.events.append((name, args))

        return _listener

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def payloads(self, name: str) -> list[Any]:
        return [args[0] for event, args in self.events if event == name]


async def wait_for_cycle(scheduler: PollScheduler) -> None:
    """Await the scheduler's in-flight cycle, if any."""
    task = scheduler._cycle_task
    if task is not None:
        await task


@pytest.fixture
def log_messages() -> list[str]:
    return []


@pytest.fixture
def log_sink(log_messages: list[str]) -> Any:
    return log_messages.append


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics_mixed() -> str:
    """
    Return an ICS calendar with one timed and one multi-day all-day event.

    - "Design review": 2024-01-16 10:00-12:00 UTC (2 hours)
    - "Offsite": VALUE=DATE 2024-01-17 through 2024-01-19 (3 days)
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//calendar_poller test//EN
CALSCALE:GREGORIAN
BEGIN:VEVENT
UID:timed-001@calendar-poller.test
DTSTAMP:20240115T000000Z
DTSTART:20240116T100000Z
DTEND:20240116T120000Z
SUMMARY:Design review
LOCATION:Room 4
END:VEVENT
BEGIN:VEVENT
UID:allday-001@calendar-poller.test
DTSTAMP:20240115T000000Z
DTSTART;VALUE=DATE:20240117
DTEND;VALUE=DATE:20240120
SUMMARY:Offsite
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def sample_ics_recurring() -> str:
    """
    Return an ICS calendar with recurring events.

    - "Standup": daily at 17:00 UTC from 2024-01-15, COUNT=10, EXDATE on the 17th,
      the 18th moved to 19:00 by a RECURRENCE-ID override
    - "No-meeting day": weekly all-day event starting Tuesday 2024-01-16
    - "Old sync": weekly since 2020, no end, to exercise long-running rules
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//calendar_poller test//EN
BEGIN:VEVENT
UID:standup@calendar-poller.test
DTSTAMP:20240101T000000Z
DTSTART:20240115T170000Z
DTEND:20240115T171500Z
RRULE:FREQ=DAILY;COUNT=10
EXDATE:20240117T170000Z
SUMMARY:Standup
END:VEVENT
BEGIN:VEVENT
UID:standup@calendar-poller.test
DTSTAMP:20240101T000000Z
RECURRENCE-ID:20240118T170000Z
DTSTART:20240118T190000Z
DTEND:20240118T191500Z
SUMMARY:Standup (moved)
END:VEVENT
BEGIN:VEVENT
UID:no-meetings@calendar-poller.test
DTSTAMP:20240101T000000Z
DTSTART;VALUE=DATE:20240116
DTEND;VALUE=DATE:20240117
RRULE:FREQ=WEEKLY
SUMMARY:No-meeting day
END:VEVENT
BEGIN:VEVENT
UID:old-sync@calendar-poller.test
DTSTAMP:20200101T000000Z
DTSTART:20200106T150000Z
DTEND:20200106T153000Z
RRULE:FREQ=WEEKLY;BYDAY=MO
SUMMARY:Old sync
END:VEVENT
END:VCALENDAR
"""
