"""Data models for spreads, entries, and per-spread assignments."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from .periods import (
    DateLike,
    FirstWeekday,
    JournalCalendar,
    MultidayPreset,
    Period,
    normalize_date,
    period_end,
    same_period,
    start_of_day,
)


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate an opaque identifier."""
    return str(uuid.uuid4())


def format_timestamp(dt: datetime) -> str:
    """Format datetime as ISO 8601 with timezone."""
    return dt.isoformat(timespec='microseconds')


def parse_timestamp(s: str) -> datetime:
    """Parse ISO 8601 timestamp string."""
    return datetime.fromisoformat(s)


def _optional_timestamp(value: Optional[str]) -> Optional[datetime]:
    return parse_timestamp(value) if value else None


class EntryKind(Enum):
    """Discriminator for the entry union."""
    TASK = "task"
    EVENT = "event"
    NOTE = "note"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class TaskStatus(Enum):
    OPEN = "open"
    COMPLETE = "complete"
    MIGRATED = "migrated"
    CANCELLED = "cancelled"


class NoteStatus(Enum):
    ACTIVE = "active"
    MIGRATED = "migrated"


class EventTiming(Enum):
    SINGLE_DAY = "single_day"
    ALL_DAY = "all_day"
    TIMED = "timed"
    MULTI_DAY = "multi_day"


# ========== Spreads ==========

@dataclass
class Spread:
    """A journal page bound to one period and a normalized date.

    For year/month/day spreads `date` is the start of that period. For
    multiday spreads `date == start_date` and both range bounds are
    normalized to the start of their day.
    """
    period: Period
    date: datetime
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    id: str = field(default_factory=new_id)
    created_date: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        period: Period,
        date: DateLike,
        calendar: JournalCalendar,
        id: Optional[str] = None,
        created_date: Optional[datetime] = None,
    ) -> "Spread":
        """Create a year, month, or day spread with a normalized date."""
        if period is Period.MULTIDAY:
            raise ValueError("Use Spread.create_multiday for multiday spreads")
        return cls(
            period=period,
            date=normalize_date(period, date, calendar),
            id=id or new_id(),
            created_date=created_date or utc_now(),
        )

    @classmethod
    def create_multiday(
        cls,
        start_date: DateLike,
        end_date: DateLike,
        calendar: JournalCalendar,
        id: Optional[str] = None,
        created_date: Optional[datetime] = None,
    ) -> "Spread":
        """Create a multiday spread covering [start_date, end_date]."""
        start = start_of_day(start_date, calendar)
        return cls(
            period=Period.MULTIDAY,
            date=start,
            start_date=start,
            end_date=start_of_day(end_date, calendar),
            id=id or new_id(),
            created_date=created_date or utc_now(),
        )

    @classmethod
    def from_preset(
        cls,
        preset: MultidayPreset,
        today: DateLike,
        calendar: JournalCalendar,
        first_weekday: FirstWeekday = FirstWeekday.SYSTEM_DEFAULT,
        id: Optional[str] = None,
        created_date: Optional[datetime] = None,
    ) -> "Spread":
        start, end = preset.date_range(today, calendar, first_weekday)
        return cls.create_multiday(start, end, calendar, id=id, created_date=created_date)

    def key(self, calendar: JournalCalendar) -> tuple:
        """Identity used for duplicate detection."""
        if self.period is Period.MULTIDAY:
            return (
                self.period,
                start_of_day(self.start_date or self.date, calendar),
                start_of_day(self.end_date or self.date, calendar),
            )
        return (self.period, normalize_date(self.period, self.date, calendar), None)

    def matches(self, period: Period, date: DateLike, calendar: JournalCalendar) -> bool:
        """True if this spread is the (period, date) page."""
        return self.period is period and same_period(period, self.date, date, calendar)

    def contains(self, value: DateLike, calendar: JournalCalendar) -> bool:
        """True if `value` falls within this spread's period or range."""
        if self.period is Period.MULTIDAY:
            if self.start_date is None or self.end_date is None:
                return False
            day = start_of_day(value, calendar)
            return (start_of_day(self.start_date, calendar) <= day
                    <= start_of_day(self.end_date, calendar))
        return same_period(self.period, self.date, value, calendar)

    def bounds(self, calendar: JournalCalendar) -> tuple[datetime, datetime]:
        """Inclusive start and exclusive end of the covered time."""
        if self.period is Period.MULTIDAY:
            start = start_of_day(self.start_date or self.date, calendar)
            end = start_of_day(self.end_date or self.date, calendar)
            return start, period_end(Period.DAY, end)
        start = normalize_date(self.period, self.date, calendar)
        return start, period_end(self.period, start)

    def display_label(self, calendar: JournalCalendar) -> str:
        """Short label for navigation: "2026", "Jan", "5", "5-11", "Jan 29-Feb 4"."""
        local = calendar.localize(self.date)
        if self.period is Period.YEAR:
            return str(local.year)
        if self.period is Period.MONTH:
            return local.strftime("%b")
        if self.period is Period.DAY:
            return str(local.day)
        if self.start_date is None or self.end_date is None:
            return ""
        start = calendar.localize(self.start_date)
        end = calendar.localize(self.end_date)
        if (start.year, start.month) == (end.year, end.month):
            return f"{start.day}-{end.day}"
        return f"{start.strftime('%b')} {start.day}-{end.strftime('%b')} {end.day}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "period": self.period.value,
            "date": format_timestamp(self.date),
            "start_date": format_timestamp(self.start_date) if self.start_date else None,
            "end_date": format_timestamp(self.end_date) if self.end_date else None,
            "created_date": format_timestamp(self.created_date),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Spread":
        return cls(
            id=data["id"],
            period=Period(data["period"]),
            date=parse_timestamp(data["date"]),
            start_date=_optional_timestamp(data.get("start_date")),
            end_date=_optional_timestamp(data.get("end_date")),
            created_date=parse_timestamp(data["created_date"]),
        )


# ========== Assignments ==========

def _assignment_matches(assignment, period: Period, date: DateLike, calendar: JournalCalendar) -> bool:
    # Exact period equality, then equal normalized dates. No containment.
    if assignment.period is not period:
        return False
    return same_period(period, assignment.date, date, calendar)


@dataclass(frozen=True)
class TaskAssignment:
    """Status of a task on one spread."""
    period: Period
    date: datetime
    status: TaskStatus = TaskStatus.OPEN

    def matches(self, period: Period, date: DateLike, calendar: JournalCalendar) -> bool:
        return _assignment_matches(self, period, date, calendar)

    def to_dict(self) -> dict:
        return {
            "period": self.period.value,
            "date": format_timestamp(self.date),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskAssignment":
        return cls(
            period=Period(data["period"]),
            date=parse_timestamp(data["date"]),
            status=TaskStatus(data["status"]),
        )


@dataclass(frozen=True)
class NoteAssignment:
    """Status of a note on one spread."""
    period: Period
    date: datetime
    status: NoteStatus = NoteStatus.ACTIVE

    def matches(self, period: Period, date: DateLike, calendar: JournalCalendar) -> bool:
        return _assignment_matches(self, period, date, calendar)

    def to_dict(self) -> dict:
        return {
            "period": self.period.value,
            "date": format_timestamp(self.date),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NoteAssignment":
        return cls(
            period=Period(data["period"]),
            date=parse_timestamp(data["date"]),
            status=NoteStatus(data["status"]),
        )


Assignment = Union[TaskAssignment, NoteAssignment]


# ========== Entries ==========

@dataclass
class Task:
    """An assignable entry with a status and migration history."""
    title: str
    date: datetime
    period: Period = Period.DAY
    status: TaskStatus = TaskStatus.OPEN
    assignments: list[TaskAssignment] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_date: datetime = field(default_factory=utc_now)

    kind: ClassVar[EntryKind] = EntryKind.TASK

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "title": self.title,
            "created_date": format_timestamp(self.created_date),
            "date": format_timestamp(self.date),
            "period": self.period.value,
            "status": self.status.value,
            "assignments": [a.to_dict() for a in self.assignments],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            created_date=parse_timestamp(data["created_date"]),
            date=parse_timestamp(data["date"]),
            period=Period(data.get("period", Period.DAY.value)),
            status=TaskStatus(data.get("status", TaskStatus.OPEN.value)),
            assignments=[TaskAssignment.from_dict(a) for a in data.get("assignments", [])],
        )


@dataclass
class Note:
    """An assignable entry with free-form content; migrates only on request."""
    title: str
    date: datetime
    content: str = ""
    period: Period = Period.DAY
    status: NoteStatus = NoteStatus.ACTIVE
    assignments: list[NoteAssignment] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_date: datetime = field(default_factory=utc_now)

    kind: ClassVar[EntryKind] = EntryKind.NOTE

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "created_date": format_timestamp(self.created_date),
            "date": format_timestamp(self.date),
            "period": self.period.value,
            "status": self.status.value,
            "assignments": [a.to_dict() for a in self.assignments],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Note":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            created_date=parse_timestamp(data["created_date"]),
            date=parse_timestamp(data["date"]),
            period=Period(data.get("period", Period.DAY.value)),
            status=NoteStatus(data.get("status", NoteStatus.ACTIVE.value)),
            assignments=[NoteAssignment.from_dict(a) for a in data.get("assignments", [])],
        )


@dataclass
class Event:
    """A date-range entry; spread membership is always computed."""
    title: str
    start_date: datetime
    end_date: datetime
    timing: EventTiming = EventTiming.SINGLE_DAY
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    id: str = field(default_factory=new_id)
    created_date: datetime = field(default_factory=utc_now)

    kind: ClassVar[EntryKind] = EntryKind.EVENT

    def overlaps(self, start: DateLike, end: DateLike, calendar: JournalCalendar) -> bool:
        """True if the event's days intersect the inclusive day range [start, end]."""
        event_start = start_of_day(self.start_date, calendar)
        event_end = start_of_day(self.end_date, calendar)
        return event_start <= start_of_day(end, calendar) and event_end >= start_of_day(start, calendar)

    def appears_on(
        self,
        period: Period,
        date: DateLike,
        calendar: JournalCalendar,
        end_date: Optional[DateLike] = None,
    ) -> bool:
        """Whether the event shows on the (period, date) spread.

        Multiday spreads need their `end_date`; without it the single start
        day is used.
        """
        if period is Period.MULTIDAY:
            return self.overlaps(date, end_date if end_date is not None else date, calendar)
        spread_start = normalize_date(period, date, calendar)
        spread_end = period_end(period, spread_start)
        event_start = start_of_day(self.start_date, calendar)
        event_end = start_of_day(self.end_date, calendar)
        return event_start < spread_end and event_end >= spread_start

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "title": self.title,
            "created_date": format_timestamp(self.created_date),
            "timing": self.timing.value,
            "start_date": format_timestamp(self.start_date),
            "end_date": format_timestamp(self.end_date),
            "start_time": format_timestamp(self.start_time) if self.start_time else None,
            "end_time": format_timestamp(self.end_time) if self.end_time else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Event":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            created_date=parse_timestamp(data["created_date"]),
            timing=EventTiming(data.get("timing", EventTiming.SINGLE_DAY.value)),
            start_date=parse_timestamp(data["start_date"]),
            end_date=parse_timestamp(data["end_date"]),
            start_time=_optional_timestamp(data.get("start_time")),
            end_time=_optional_timestamp(data.get("end_time")),
        )


Entry = Union[Task, Note, Event]
AssignableEntry = Union[Task, Note]

_ENTRY_TYPES = {
    EntryKind.TASK: Task,
    EntryKind.NOTE: Note,
    EntryKind.EVENT: Event,
}


def entry_from_dict(data: dict[str, Any]) -> Entry:
    """Rebuild an entry from its `to_dict()` form using the `kind` tag."""
    return _ENTRY_TYPES[EntryKind(data["kind"])].from_dict(data)


def is_assignable(entry: Entry) -> bool:
    return entry.kind in (EntryKind.TASK, EntryKind.NOTE)


def is_cancelled(entry: Entry) -> bool:
    return entry.kind is EntryKind.TASK and entry.status is TaskStatus.CANCELLED


def active_status(entry: AssignableEntry):
    """Status an entry carries on the spread it currently lives on."""
    if entry.kind is EntryKind.TASK:
        return TaskStatus.OPEN
    if entry.kind is EntryKind.NOTE:
        return NoteStatus.ACTIVE
    raise TypeError(f"{entry.kind.display_name} entries have no assignment status")


def migrated_status(entry: AssignableEntry):
    if entry.kind is EntryKind.TASK:
        return TaskStatus.MIGRATED
    if entry.kind is EntryKind.NOTE:
        return NoteStatus.MIGRATED
    raise TypeError(f"{entry.kind.display_name} entries have no assignment status")


def build_assignment(entry: AssignableEntry, period: Period, date: datetime, status) -> Assignment:
    """Construct the assignment record type matching the entry kind."""
    if entry.kind is EntryKind.TASK:
        return TaskAssignment(period=period, date=date, status=status)
    if entry.kind is EntryKind.NOTE:
        return NoteAssignment(period=period, date=date, status=status)
    raise TypeError(f"{entry.kind.display_name} entries cannot hold assignments")


def copy_entry(entry: Entry) -> Entry:
    """Shallow copy with an independent assignment list.

    Assignments are frozen, so sharing the records themselves is safe.
    """
    if is_assignable(entry):
        return replace(entry, assignments=list(entry.assignments))
    return replace(entry)


@dataclass
class JournalSnapshot:
    """Everything the engine reasons over for one call.

    Engine functions read a snapshot and return new objects; they never
    mutate the snapshot they were given.
    """
    spreads: list[Spread] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)

    def assignable_entries(self) -> list[AssignableEntry]:
        return [*self.tasks, *self.notes]

    def entries(self) -> list[Entry]:
        return [*self.tasks, *self.notes, *self.events]

    def find_entry(self, entry_id: str) -> Optional[Entry]:
        """Direct lookup by id; the only surface that returns cancelled tasks."""
        for entry in self.entries():
            if entry.id == entry_id:
                return entry
        return None

    def find_spread(self, spread_id: str) -> Optional[Spread]:
        for spread in self.spreads:
            if spread.id == spread_id:
                return spread
        return None
