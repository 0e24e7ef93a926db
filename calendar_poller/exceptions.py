"""Exception hierarchy for calendar_poller.

Fetch and expansion failures are absorbed at the scheduler's cycle boundary and
surfaced to subscribers through the ``error`` event. Nothing in this hierarchy
is fatal to a running scheduler.
"""

from typing import Optional


class CalendarPollerError(Exception):
    """Base exception for all calendar_poller errors."""


class FeedFetchError(CalendarPollerError):
    """Retrieving a calendar feed failed.

    Raised when:
    - The locator is not a usable HTTP(S) URL
    - The server returned an empty body
    - An unexpected error occurred while talking to the server
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FeedNetworkError(FeedFetchError):
    """Transport-level failure (DNS, refused connection, TLS handshake)."""


class FeedTimeoutError(FeedFetchError):
    """The server did not answer within the configured timeout."""


class FeedHTTPError(FeedFetchError):
    """The server answered with a non-success status code."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message, status_code)


class ExpansionError(CalendarPollerError):
    """The recurrence expander could not read or expand a feed document.

    Raised when:
    - The document is not valid iCalendar text
    - A recurrence rule cannot be parsed
    """


class ConfigError(CalendarPollerError):
    """Configuration file is present but unusable."""
