"""Validation tests for calendar_poller.models."""

from datetime import UTC, date, datetime

import pytest
from pydantic import ValidationError

from calendar_poller.models import (
    CalendarItem,
    CalendarSource,
    ExpandedOccurrence,
    OccurrenceTimes,
    OccurrenceWindow,
    PollerState,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]


class TestCalendarSource:
    def test_calendar_source_when_webcal_url_then_normalized(self) -> None:
        source = CalendarSource(name="Work", url="webcal://example.com/work.ics")
        assert source.url == "https://example.com/work.ics"
        assert source.refresh_interval == 300.0
        assert source.timeout == 30.0

    @pytest.mark.parametrize("field", ["refresh_interval", "timeout"])
    def test_calendar_source_when_non_positive_then_validation_error(self, field: str) -> None:
        with pytest.raises(ValidationError):
            CalendarSource(name="Work", url="https://example.com/work.ics", **{field: 0})

    def test_calendar_source_when_assigned_then_frozen(self) -> None:
        source = CalendarSource(name="Work", url="https://example.com/work.ics")
        with pytest.raises(ValidationError):
            source.name = "Other"


class TestCalendarItem:
    def test_calendar_item_when_date_values_then_kept_as_dates(self) -> None:
        item = CalendarItem(start=date(2024, 1, 17), end=date(2024, 1, 18))

        assert type(item.start) is date
        assert type(item.end) is date
        assert item.is_recurring is False

    def test_calendar_item_when_start_missing_then_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            CalendarItem(summary="No start")


def test_expanded_occurrence_exposes_master_summary_and_uid() -> None:
    master = CalendarItem(uid="abc", summary="Standup", start=datetime(2024, 1, 15, 17, tzinfo=UTC))
    occurrence = ExpandedOccurrence(item=master, start=datetime(2024, 1, 16, 17, tzinfo=UTC))

    assert occurrence.summary == "Standup"
    assert occurrence.uid == "abc"
    assert occurrence.end is None


def test_occurrence_window_total_counts_both_subsets() -> None:
    master = CalendarItem(start=date(2024, 1, 16))
    window = OccurrenceWindow(events=[master], occurrences=[ExpandedOccurrence(item=master)] * 2)

    assert window.total == 3
    assert OccurrenceWindow().total == 0


def test_occurrence_times_is_complete_requires_both_instants() -> None:
    assert OccurrenceTimes(start=datetime(2024, 1, 15), end=datetime(2024, 1, 16)).is_complete
    assert not OccurrenceTimes(start=datetime(2024, 1, 15)).is_complete


def test_poller_state_values() -> None:
    assert PollerState.STARTED.value == "started"
    assert PollerState("stopped") is PollerState.STOPPED
