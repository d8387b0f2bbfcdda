"""Calendar periods, date normalization, and week arithmetic."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date as date_type
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Optional, Union
from zoneinfo import ZoneInfo

DateLike = Union[datetime, date_type]

# Python weekday numbers (Monday == 0)
MONDAY = 0
SUNDAY = 6


class Period(Enum):
    """Time period a spread is bound to."""
    YEAR = "year"
    MONTH = "month"
    DAY = "day"
    MULTIDAY = "multiday"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def can_have_assignments(self) -> bool:
        """Multiday spreads aggregate by range and never own assignments."""
        return self is not Period.MULTIDAY

    @property
    def parent(self) -> Optional["Period"]:
        """Next coarser period (day -> month -> year)."""
        return _PARENTS.get(self)

    @property
    def child(self) -> Optional["Period"]:
        """Next finer period (year -> month -> day)."""
        return _CHILDREN.get(self)

    def is_ancestor_of(self, other: "Period") -> bool:
        """True if this period is strictly coarser than `other` in the hierarchy."""
        current = other.parent
        while current is not None:
            if current is self:
                return True
            current = current.parent
        return False


_PARENTS = {
    Period.DAY: Period.MONTH,
    Period.MONTH: Period.YEAR,
}

_CHILDREN = {
    Period.YEAR: Period.MONTH,
    Period.MONTH: Period.DAY,
}

# Finest first; used by assignment search and deletion fallback
ASSIGNABLE_PERIODS = (Period.DAY, Period.MONTH, Period.YEAR)


class FirstWeekday(Enum):
    """User preference for the first day of the week."""
    SYSTEM_DEFAULT = "system_default"
    SUNDAY = "sunday"
    MONDAY = "monday"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    def weekday(self, calendar: "JournalCalendar") -> int:
        """Resolve to a Python weekday number (Monday == 0)."""
        if self is FirstWeekday.SUNDAY:
            return SUNDAY
        if self is FirstWeekday.MONDAY:
            return MONDAY
        return calendar.first_weekday


@dataclass(frozen=True)
class JournalCalendar:
    """Calendar context every date computation runs in.

    Supplied by the caller rather than read from the system so that engine
    operations are deterministic for a given input.
    """
    tz: tzinfo = field(default=timezone.utc)
    first_weekday: int = SUNDAY

    @classmethod
    def for_zone(cls, name: str, first_weekday: int = SUNDAY) -> "JournalCalendar":
        """Build a calendar for an IANA zone name such as "Europe/Paris"."""
        if name.upper() == "UTC":
            return cls(tz=timezone.utc, first_weekday=first_weekday)
        return cls(tz=ZoneInfo(name), first_weekday=first_weekday)

    def localize(self, value: DateLike) -> datetime:
        """Express a date or datetime in this calendar's zone.

        Plain dates become local midnight; naive datetimes are read as local
        wall-clock time.
        """
        if not isinstance(value, datetime):
            return datetime(value.year, value.month, value.day, tzinfo=self.tz)
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def date(self, year: int, month: int, day: int) -> datetime:
        """Local midnight of the given calendar day."""
        return datetime(year, month, day, tzinfo=self.tz)


def start_of_day(value: DateLike, calendar: JournalCalendar) -> datetime:
    local = calendar.localize(value)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def first_day_of_month(value: DateLike, calendar: JournalCalendar) -> datetime:
    return start_of_day(value, calendar).replace(day=1)


def first_day_of_year(value: DateLike, calendar: JournalCalendar) -> datetime:
    return start_of_day(value, calendar).replace(month=1, day=1)


def normalize_date(period: Period, value: DateLike, calendar: JournalCalendar) -> datetime:
    """Map a date to the canonical representative of its period.

    Year, month and day normalize to the start of the enclosing period.
    Multiday normalizes to the start of the supplied day; the caller is
    responsible for passing the range start.

    Idempotent: normalize_date(p, normalize_date(p, d)) == normalize_date(p, d).
    """
    if period is Period.YEAR:
        return first_day_of_year(value, calendar)
    if period is Period.MONTH:
        return first_day_of_month(value, calendar)
    return start_of_day(value, calendar)


def period_end(period: Period, start: datetime) -> datetime:
    """Exclusive end of a year/month/day period beginning at `start`."""
    if period is Period.YEAR:
        return start.replace(year=start.year + 1)
    if period is Period.MONTH:
        if start.month == 12:
            return start.replace(year=start.year + 1, month=1)
        return start.replace(month=start.month + 1)
    if period is Period.DAY:
        return start + timedelta(days=1)
    raise ValueError("Multiday spreads carry their own end date")


def same_period(period: Period, a: DateLike, b: DateLike, calendar: JournalCalendar) -> bool:
    """True if both dates normalize to the same value under `period`."""
    return normalize_date(period, a, calendar) == normalize_date(period, b, calendar)


def first_day_of_week(
    value: DateLike,
    calendar: JournalCalendar,
    first_weekday: FirstWeekday = FirstWeekday.SYSTEM_DEFAULT,
) -> datetime:
    """Start of the week containing `value`."""
    day = start_of_day(value, calendar)
    offset = (day.weekday() - first_weekday.weekday(calendar)) % 7
    return day - timedelta(days=offset)


def last_day_of_week(
    value: DateLike,
    calendar: JournalCalendar,
    first_weekday: FirstWeekday = FirstWeekday.SYSTEM_DEFAULT,
) -> datetime:
    """Last day (start of day) of the week containing `value`."""
    return first_day_of_week(value, calendar, first_weekday) + timedelta(days=6)


def is_within_week_of(
    value: DateLike,
    reference: DateLike,
    calendar: JournalCalendar,
    first_weekday: FirstWeekday = FirstWeekday.SYSTEM_DEFAULT,
) -> bool:
    """True if `value` falls in the same week as `reference`."""
    day = start_of_day(value, calendar)
    week_start = first_day_of_week(reference, calendar, first_weekday)
    week_end = last_day_of_week(reference, calendar, first_weekday)
    return week_start <= day <= week_end


class MultidayPreset(Enum):
    """Preset ranges for multiday spread creation."""
    THIS_WEEK = "this_week"
    NEXT_WEEK = "next_week"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    def date_range(
        self,
        today: DateLike,
        calendar: JournalCalendar,
        first_weekday: FirstWeekday = FirstWeekday.SYSTEM_DEFAULT,
    ) -> tuple[datetime, datetime]:
        """Compute (start, end) for this preset relative to `today`."""
        week_start = first_day_of_week(today, calendar, first_weekday)
        if self is MultidayPreset.NEXT_WEEK:
            week_start = week_start + timedelta(days=7)
        return week_start, week_start + timedelta(days=6)
