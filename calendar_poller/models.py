"""Data models for calendar polling."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .fetcher import normalize_feed_url

# A calendar instant: full date-time, or a date-only value (VALUE=DATE)
CalendarTime = Union[datetime, date]


class PollerState(str, Enum):
    """Lifecycle state of a PollScheduler."""

    STOPPED = "stopped"
    STARTED = "started"


class CalendarSource(BaseModel):
    """Configuration for one polled calendar feed."""

    name: str = Field(..., description="Human-readable name for this calendar source")
    url: str = Field(..., description="ICS calendar URL (webcal:// is rewritten to https://)")
    refresh_interval: float = Field(default=300.0, gt=0, description="Poll interval in seconds")
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")

    model_config = ConfigDict(frozen=True)

    @field_validator("url", mode="before")
    @classmethod
    def _normalize_url(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_feed_url(value)
        return value


class CalendarItem(BaseModel):
    """A plain (non-expanded) calendar event as read from the feed."""

    uid: str = Field(default="", description="Event UID")
    summary: str = Field(default="", description="Event summary/title")
    start: CalendarTime = Field(..., description="DTSTART, date-only for VALUE=DATE")
    end: Optional[CalendarTime] = Field(default=None, description="DTEND, date-only for VALUE=DATE")
    location: Optional[str] = None
    description: Optional[str] = None
    is_recurring: bool = Field(default=False, description="Master event carries an RRULE/RDATE")


class ExpandedOccurrence(BaseModel):
    """One instance generated from a recurring master event."""

    item: CalendarItem = Field(..., description="Master event this instance belongs to")
    start: Optional[CalendarTime] = None
    end: Optional[CalendarTime] = None
    recurrence_id: Optional[CalendarTime] = Field(
        default=None, description="Original start of the instance (RECURRENCE-ID)"
    )

    @property
    def summary(self) -> str:
        return self.item.summary

    @property
    def uid(self) -> str:
        return self.item.uid


class OccurrenceWindow(BaseModel):
    """Result of expanding a feed over a bounded time range."""

    events: list[CalendarItem] = Field(default_factory=list, description="Non-recurring events")
    occurrences: list[ExpandedOccurrence] = Field(
        default_factory=list, description="Recurrence-expanded instances"
    )
    range_start: Optional[datetime] = None
    range_end: Optional[datetime] = None

    @property
    def total(self) -> int:
        """Number of entries across both subsets."""
        return len(self.events) + len(self.occurrences)


@dataclass(frozen=True)
class OccurrenceTimes:
    """Canonical shape fed to the all-day classifier.

    Date-only inputs are converted to midnight datetimes and flagged.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    start_is_date: bool = False
    end_is_date: bool = False

    @property
    def is_complete(self) -> bool:
        return self.start is not None and self.end is not None
