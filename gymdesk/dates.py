import re
from datetime import date, datetime
from typing import Optional, Union

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"
DISPLAY_DATE_FORMAT = "%d/%m/%Y"

# A date part, optionally followed by a time introduced by 'T' or a space.
_CALENDAR_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")


class Clock:
    """Source of the current local date and time.

    Every place that needs "today" or "now" receives a Clock instead of
    calling date.today() directly, so tests can pin the calendar.
    """

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()

    def today_str(self) -> str:
        return self.today().strftime(DATE_FORMAT)

    def time_str(self) -> str:
        return self.now().strftime(TIME_FORMAT)

    def timestamp_str(self) -> str:
        return self.now().isoformat(timespec="seconds")


class FixedClock(Clock):
    """A clock frozen at a given moment. `advance` moves it forward."""

    def __init__(self, moment: Union[datetime, date]):
        if not isinstance(moment, datetime):
            moment = datetime(moment.year, moment.month, moment.day, 12, 0, 0)
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, delta) -> None:
        self.moment = self.moment + delta


def parse_calendar_date(value: Union[str, date, datetime]) -> date:
    """Returns the calendar date for a YYYY-MM-DD string (or a date/datetime).

    Strings are split into integer year/month/day. A time (and offset) after
    a "T" or a space is ignored, so the result never depends on the time zone
    the value was written in.
    Raises ValueError for anything that is not a valid calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date: {value!r}")
    match = _CALENDAR_DATE.match(value.strip())
    if match is None:
        raise ValueError(f"Invalid date: {value!r}. Expected YYYY-MM-DD.")
    year, month, day = (int(p) for p in match.groups())
    return date(year, month, day)


def format_calendar_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def format_display_date(value: Optional[Union[str, date]]) -> str:
    """dd/mm/YYYY for tables; empty string for missing values."""
    if not value:
        return ""
    return parse_calendar_date(value).strftime(DISPLAY_DATE_FORMAT)


def day_bounds(day: date):
    """First and last second of a local calendar day as ISO timestamps."""
    day_str = format_calendar_date(day)
    return f"{day_str}T00:00:00", f"{day_str}T23:59:59"
