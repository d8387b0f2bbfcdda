"""Conventional-mode assignment of tasks and notes to spreads, and the Inbox.

An assignable entry belongs to a spread when it holds an assignment whose
(period, date) matches that spread. Entries with no such assignment on any
existing spread form the Inbox, which is recomputed on every read.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from .models import (
    Assignment,
    AssignableEntry,
    EntryKind,
    JournalSnapshot,
    NoteStatus,
    Spread,
    TaskStatus,
    build_assignment,
    copy_entry,
    is_cancelled,
)
from .periods import ASSIGNABLE_PERIODS, JournalCalendar, Period, normalize_date


def find_best_spread(
    entry: AssignableEntry,
    spreads: Sequence[Spread],
    calendar: JournalCalendar,
    parent_fallback: bool = False,
) -> Optional[Spread]:
    """Find the spread an entry should attach to, or None for the Inbox.

    Periods are searched finest first (day, month, year). A candidate must
    have exactly the entry's preferred period and the same normalized date;
    a month spread is not a match for a day-period entry even if it contains
    the date. With `parent_fallback` the search also walks up the entry's
    parent periods (day -> month -> year).

    Multiday spreads are never candidates.
    """
    assignable = [s for s in spreads if s.period.can_have_assignments]
    wanted = _periods_to_search(entry.period, parent_fallback)

    for period in ASSIGNABLE_PERIODS:
        if period not in wanted:
            continue
        target = normalize_date(period, entry.date, calendar)
        for spread in assignable:
            if spread.period is period and normalize_date(period, spread.date, calendar) == target:
                return spread
    return None


def _periods_to_search(period: Period, parent_fallback: bool) -> set[Period]:
    if not period.can_have_assignments:
        return set()
    periods = {period}
    if parent_fallback:
        parent = period.parent
        while parent is not None:
            periods.add(parent)
            parent = parent.parent
    return periods


def initial_status(entry: AssignableEntry):
    """Assignment status mirroring the entry's own status at creation."""
    if entry.kind is EntryKind.TASK:
        if entry.status in (TaskStatus.COMPLETE, TaskStatus.CANCELLED):
            return entry.status
        return TaskStatus.OPEN
    return NoteStatus.ACTIVE


def make_assignment(entry: AssignableEntry, spread: Spread, calendar: JournalCalendar) -> Assignment:
    """Assignment binding `entry` to `spread`, using the spread's normalized date."""
    if not spread.period.can_have_assignments:
        raise ValueError(f"{spread.period.display_name} spreads do not accept assignments")
    return build_assignment(
        entry,
        spread.period,
        normalize_date(spread.period, spread.date, calendar),
        initial_status(entry),
    )


def find_assignment(
    entry: AssignableEntry,
    period: Period,
    date,
    calendar: JournalCalendar,
) -> Optional[Assignment]:
    for assignment in entry.assignments:
        if assignment.matches(period, date, calendar):
            return assignment
    return None


def upsert_assignment(
    assignments: list[Assignment],
    assignment: Assignment,
    calendar: JournalCalendar,
) -> list[Assignment]:
    """Return a new list with `assignment` inserted or replacing its key.

    Keyed by (period, normalized date); at most one record per key survives.
    Existing records keep their position so history order is preserved.
    """
    def key(a: Assignment) -> tuple:
        return (a.period, normalize_date(a.period, a.date, calendar))

    index: dict[tuple, int] = {}
    result: list[Assignment] = []
    for existing in assignments:
        k = key(existing)
        if k in index:
            # Collapse duplicates that predate this invariant; newest wins
            result[index[k]] = existing
            continue
        index[k] = len(result)
        result.append(existing)

    k = key(assignment)
    if k in index:
        result[index[k]] = assignment
    else:
        result.append(assignment)
    return result


def assign_to_spread(entry: AssignableEntry, spread: Spread, calendar: JournalCalendar) -> AssignableEntry:
    """Copy of `entry` holding an assignment on `spread`."""
    updated = copy_entry(entry)
    updated.assignments = upsert_assignment(
        updated.assignments, make_assignment(entry, spread, calendar), calendar
    )
    return updated


def has_assignment_on(entry: AssignableEntry, spread: Spread, calendar: JournalCalendar) -> bool:
    return find_assignment(entry, spread.period, spread.date, calendar) is not None


def has_matching_assignment(
    entry: AssignableEntry,
    spreads: Iterable[Spread],
    calendar: JournalCalendar,
) -> bool:
    """True if any of the entry's assignments matches an existing spread."""
    return any(has_assignment_on(entry, spread, calendar) for spread in spreads)


def inbox_entries(snapshot: JournalSnapshot, calendar: JournalCalendar) -> list[AssignableEntry]:
    """Tasks and notes with no assignment on any existing spread.

    Cancelled tasks and all events are excluded.
    """
    return [
        entry
        for entry in snapshot.assignable_entries()
        if not is_cancelled(entry)
        and not has_matching_assignment(entry, snapshot.spreads, calendar)
    ]


def entries_resolved_by(
    spread: Spread,
    snapshot: JournalSnapshot,
    calendar: JournalCalendar,
    parent_fallback: bool = False,
) -> list[AssignableEntry]:
    """Inbox entries whose best spread becomes `spread` once it exists."""
    if not spread.period.can_have_assignments:
        return []
    candidates = [*snapshot.spreads, spread]
    resolved = []
    for entry in inbox_entries(snapshot, calendar):
        best = find_best_spread(entry, candidates, calendar, parent_fallback)
        if best is not None and best.id == spread.id:
            resolved.append(entry)
    return resolved
