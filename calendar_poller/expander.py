"""Recurrence expansion of ICS documents over a bounded time range."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Any, Optional, Protocol, Union

from dateutil.rrule import rruleset, rrulestr
from icalendar import Calendar
from icalendar import Event as ICalEvent

from .exceptions import ExpansionError
from .models import CalendarItem, CalendarTime, ExpandedOccurrence, OccurrenceWindow
from .time_utils import date_to_datetime, resolve_timezone, to_aware

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 1000

_UNTIL_PATTERN = re.compile(r"UNTIL=[^;]+", re.IGNORECASE)


class RecurrenceExpander(Protocol):
    """Turns a feed document into the concrete occurrences inside a time range."""

    def between(
        self, document: str, start: datetime, end: datetime
    ) -> Optional[OccurrenceWindow]:
        """Expand ``document`` over ``[start, end)``.

        Returns:
            The expanded window, or None when the document holds no calendar

        Raises:
            ExpansionError: If the document cannot be read
        """
        ...


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _list_values(prop: Any) -> Iterable[Any]:
    """Flatten RDATE/EXDATE properties (single or repeated) into raw values."""
    for entry in _as_list(prop):
        for item in getattr(entry, "dts", ()):
            yield item.dt


class IcsExpander:
    """Default :class:`RecurrenceExpander` built on icalendar and dateutil.

    Non-recurring VEVENTs land in ``events``; VEVENTs carrying RRULE/RDATE are
    expanded into ``occurrences``, honouring EXDATE and RECURRENCE-ID overrides.
    Date-only values stay ``date`` objects on the produced models.
    """

    def __init__(
        self,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        tz: Union[str, tzinfo, None] = "UTC",
    ) -> None:
        """Initialize the expander.

        Args:
            max_iterations: Maximum instances generated per recurring event
            tz: Zone used to place floating times and dates on the timeline
        """
        self.max_iterations = max(1, int(max_iterations))
        self.tz: tzinfo = tz if isinstance(tz, tzinfo) else resolve_timezone(tz)

    def between(
        self, document: str, start: datetime, end: datetime
    ) -> Optional[OccurrenceWindow]:
        if not document or "BEGIN:VCALENDAR" not in document.upper():
            logger.debug("Document has no VCALENDAR; nothing to expand")
            return None

        try:
            calendar = Calendar.from_ical(document)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ExpansionError(f"Unable to parse calendar: {e}") from e

        range_start = to_aware(start, self.tz)
        range_end = to_aware(end, self.tz)

        singles: list[ICalEvent] = []
        masters: list[ICalEvent] = []
        overrides: dict[str, dict[datetime, ICalEvent]] = {}

        for component in calendar.walk("VEVENT"):
            uid = str(component.get("UID", ""))
            recurrence_id = component.get("RECURRENCE-ID")
            if recurrence_id is not None:
                key = to_aware(recurrence_id.dt, self.tz).astimezone(UTC)
                overrides.setdefault(uid, {})[key] = component
            elif component.get("RRULE") is not None or component.get("RDATE") is not None:
                masters.append(component)
            else:
                singles.append(component)

        events: list[CalendarItem] = []
        for component in singles:
            item = self._build_item(component)
            if item is not None and self._overlaps(item.start, item.end, range_start, range_end):
                events.append(item)

        occurrences: list[ExpandedOccurrence] = []
        for component in masters:
            uid = str(component.get("UID", ""))
            try:
                occurrences.extend(
                    self._expand_master(component, overrides.pop(uid, {}), range_start, range_end)
                )
            except (ValueError, TypeError, OverflowError) as e:
                logger.warning("Skipping recurring event %r: %s", uid, e)

        # Overrides whose master is absent from this document are concrete instances
        for orphans in overrides.values():
            for component in orphans.values():
                item = self._build_item(component)
                if item is not None and self._overlaps(item.start, item.end, range_start, range_end):
                    events.append(item)

        logger.debug(
            "Expanded calendar: %d events, %d occurrences in [%s, %s)",
            len(events),
            len(occurrences),
            range_start.isoformat(),
            range_end.isoformat(),
        )
        return OccurrenceWindow(
            events=events,
            occurrences=occurrences,
            range_start=range_start,
            range_end=range_end,
        )

    def _build_item(self, component: ICalEvent, is_recurring: bool = False) -> Optional[CalendarItem]:
        dtstart = component.get("DTSTART")
        if dtstart is None:
            logger.debug("Skipping VEVENT %r without DTSTART", component.get("UID"))
            return None

        start = dtstart.dt
        return CalendarItem(
            uid=str(component.get("UID", "")),
            summary=str(component.get("SUMMARY", "")),
            start=start,
            end=self._component_end(component, start),
            location=str(component["LOCATION"]) if component.get("LOCATION") else None,
            description=str(component["DESCRIPTION"]) if component.get("DESCRIPTION") else None,
            is_recurring=is_recurring,
        )

    @staticmethod
    def _component_end(component: ICalEvent, start: CalendarTime) -> CalendarTime:
        """DTEND, else DTSTART + DURATION, else the RFC 5545 default length."""
        dtend = component.get("DTEND")
        if dtend is not None:
            return dtend.dt
        duration = component.get("DURATION")
        if duration is not None and isinstance(duration.dt, timedelta):
            return start + duration.dt
        if not isinstance(start, datetime):
            return start + timedelta(days=1)
        return start

    def _overlaps(
        self,
        start: CalendarTime,
        end: Optional[CalendarTime],
        range_start: datetime,
        range_end: datetime,
    ) -> bool:
        aware_start = to_aware(start, self.tz)
        aware_end = to_aware(end, self.tz) if end is not None else aware_start
        if aware_start >= range_end:
            return False
        if aware_end <= aware_start:
            # Zero-length events count only when they begin inside the range
            return aware_start >= range_start
        return aware_end > range_start

    def _until_clause(self, until: Any) -> str:
        """Render UNTIL as a UTC timestamp matching an aware DTSTART."""
        if isinstance(until, datetime):
            bound = to_aware(until, self.tz)
        else:
            # A date-only UNTIL includes the whole day
            bound = date_to_datetime(until + timedelta(days=1), self.tz) - timedelta(seconds=1)
        return "UNTIL=" + bound.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")

    def _build_ruleset(self, component: ICalEvent, anchor: datetime) -> rruleset:
        rules = rruleset()
        for recur in _as_list(component.get("RRULE")):
            rule_text = recur.to_ical().decode()
            until = recur.get("UNTIL")
            if until:
                rule_text = _UNTIL_PATTERN.sub(self._until_clause(until[0]), rule_text)
            rules.rrule(rrulestr(rule_text, dtstart=anchor))

        rdates = list(_list_values(component.get("RDATE")))
        for value in rdates:
            if isinstance(value, (datetime, date)):
                rules.rdate(to_aware(value, self.tz))
        if rdates:
            # RDATE-only masters still occur at DTSTART
            rules.rdate(anchor)

        for value in _list_values(component.get("EXDATE")):
            if isinstance(value, (datetime, date)):
                rules.exdate(to_aware(value, self.tz))
        return rules

    def _expand_master(
        self,
        component: ICalEvent,
        overrides: dict[datetime, ICalEvent],
        range_start: datetime,
        range_end: datetime,
    ) -> list[ExpandedOccurrence]:
        master = self._build_item(component, is_recurring=True)
        if master is None:
            return []

        raw_start = master.start
        raw_end = master.end if master.end is not None else raw_start
        is_date = not isinstance(raw_start, datetime)
        is_floating = not is_date and raw_start.tzinfo is None
        if is_date:
            duration = raw_end - raw_start
        else:
            duration = to_aware(raw_end, self.tz) - to_aware(raw_start, self.tz)

        anchor = to_aware(raw_start, self.tz)
        rules = self._build_ruleset(component, anchor)

        results: list[ExpandedOccurrence] = []
        search_from = range_start - max(duration, timedelta(0))
        for instance in rules.xafter(search_from, count=self.max_iterations, inc=True):
            if instance >= range_end:
                break

            override = overrides.get(instance.astimezone(UTC))
            if is_date:
                occurrence_start: CalendarTime = instance.astimezone(self.tz).date()
            elif is_floating:
                occurrence_start = instance.astimezone(self.tz).replace(tzinfo=None)
            else:
                occurrence_start = instance

            if override is not None:
                item = self._build_item(override, is_recurring=True)
                if item is None:
                    continue
                occurrence = ExpandedOccurrence(
                    item=item, start=item.start, end=item.end, recurrence_id=occurrence_start
                )
            else:
                occurrence = ExpandedOccurrence(
                    item=master,
                    start=occurrence_start,
                    end=occurrence_start + duration,
                    recurrence_id=occurrence_start,
                )

            if self._overlaps(occurrence.start, occurrence.end, range_start, range_end):
                results.append(occurrence)

        return results
