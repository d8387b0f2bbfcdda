"""Read-only projections: multiday aggregation and per-spread contents."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from .assignment import has_assignment_on
from .models import (
    Entry,
    EntryKind,
    Event,
    JournalSnapshot,
    Note,
    Spread,
    Task,
    is_cancelled,
)
from .periods import DateLike, JournalCalendar, Period, normalize_date, start_of_day


def entries_for_range(
    start_date: DateLike,
    end_date: DateLike,
    entries: Iterable[Entry],
    calendar: JournalCalendar,
    include_events: bool = True,
) -> list[Entry]:
    """Entries that fall inside the inclusive day range [start_date, end_date].

    Tasks and notes match on their preferred date; events match when their
    own range intersects. Cancelled tasks are left out. No assignments are
    read or created; multiday spreads never own entries.
    """
    start = start_of_day(start_date, calendar)
    end = start_of_day(end_date, calendar)

    matched: list[Entry] = []
    for entry in entries:
        if entry.kind is EntryKind.EVENT:
            if include_events and entry.overlaps(start, end, calendar):
                matched.append(entry)
        elif not is_cancelled(entry):
            if start <= start_of_day(entry.date, calendar) <= end:
                matched.append(entry)
    return matched


def event_appears_on_spread(event: Event, spread: Spread, calendar: JournalCalendar) -> bool:
    if spread.period is Period.MULTIDAY:
        if spread.start_date is None or spread.end_date is None:
            return False
        return event.overlaps(spread.start_date, spread.end_date, calendar)
    return event.appears_on(spread.period, spread.date, calendar)


@dataclass
class SpreadContents:
    """Entries shown on one spread."""
    spread: Spread
    tasks: list[Task] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "spread": self.spread.to_dict(),
            "tasks": [t.to_dict() for t in self.tasks],
            "notes": [n.to_dict() for n in self.notes],
            "events": [e.to_dict() for e in self.events],
        }


def spread_contents(
    spread: Spread,
    snapshot: JournalSnapshot,
    calendar: JournalCalendar,
    include_events: bool = True,
) -> SpreadContents:
    """Collect the tasks, notes and events visible on `spread`.

    Year, month and day spreads list entries by assignment (migrated and
    completed ones included, cancelled ones not). Multiday spreads aggregate
    by preferred date.
    """
    contents = SpreadContents(spread=spread)

    if spread.period is Period.MULTIDAY:
        if spread.start_date is None or spread.end_date is None:
            return contents
        in_range = entries_for_range(
            spread.start_date,
            spread.end_date,
            snapshot.assignable_entries(),
            calendar,
            include_events=False,
        )
        contents.tasks = [e for e in in_range if e.kind is EntryKind.TASK]
        contents.notes = [e for e in in_range if e.kind is EntryKind.NOTE]
    else:
        contents.tasks = [
            t for t in snapshot.tasks
            if not is_cancelled(t) and has_assignment_on(t, spread, calendar)
        ]
        contents.notes = [n for n in snapshot.notes if has_assignment_on(n, spread, calendar)]

    if include_events:
        contents.events = [
            e for e in snapshot.events if event_appears_on_spread(e, spread, calendar)
        ]
    return contents


def build_data_model(
    snapshot: JournalSnapshot,
    calendar: JournalCalendar,
    include_events: bool = True,
) -> dict[Period, dict[datetime, SpreadContents]]:
    """Contents of every spread, keyed by period then normalized date."""
    model: dict[Period, dict[datetime, SpreadContents]] = {}
    for spread in snapshot.spreads:
        key = normalize_date(spread.period, spread.date, calendar)
        model.setdefault(spread.period, {})[key] = spread_contents(
            spread, snapshot, calendar, include_events
        )
    return model
