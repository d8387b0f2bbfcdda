"""Spread creation policy and the deletion cascade.

Creation is validated against duplicates and the calendar; deletion hands
the deleted spread's entries to the nearest existing ancestor spread, or
leaves them to fall into the Inbox. Entries are never deleted here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from .assignment import assign_to_spread, entries_resolved_by, find_assignment, upsert_assignment
from .models import (
    AssignableEntry,
    EntryKind,
    JournalSnapshot,
    NoteStatus,
    Spread,
    TaskStatus,
    build_assignment,
    copy_entry,
    migrated_status,
)
from .periods import (
    DateLike,
    FirstWeekday,
    JournalCalendar,
    Period,
    is_within_week_of,
    normalize_date,
    start_of_day,
)


class CreationCheck(Enum):
    """Outcome of validating a spread before it is created."""
    VALID = "valid"
    DUPLICATE = "duplicate"
    PAST_DATE = "past_date"
    INVALID_RANGE = "invalid_range"

    @property
    def is_valid(self) -> bool:
        return self is CreationCheck.VALID

    @property
    def message(self) -> str:
        return _CHECK_MESSAGES[self]


_CHECK_MESSAGES = {
    CreationCheck.VALID: "Spread can be created",
    CreationCheck.DUPLICATE: "A spread already exists for this period and date",
    CreationCheck.PAST_DATE: "Spreads cannot be created for past dates",
    CreationCheck.INVALID_RANGE: "The end date must not be before the start date",
}


@dataclass(frozen=True)
class StandardCreationPolicy:
    """Present-or-future creation rules.

    - Year/month/day: the normalized date must not be before normalized today.
    - Multiday: the end must not be before today; the start may be in the
      past only when it falls inside the current week, so a "this week"
      preset works on any day of the week.
    - No duplicates.
    """
    today: DateLike
    first_weekday: FirstWeekday = FirstWeekday.SYSTEM_DEFAULT

    def check(
        self,
        period: Period,
        date: DateLike,
        spreads: Sequence[Spread],
        calendar: JournalCalendar,
        end_date: Optional[DateLike] = None,
    ) -> CreationCheck:
        if period is Period.MULTIDAY:
            if end_date is None:
                raise ValueError("Multiday spreads need an end date")
            return self.check_multiday(date, end_date, spreads, calendar)

        target = normalize_date(period, date, calendar)
        if any(s.key(calendar) == (period, target, None) for s in spreads):
            return CreationCheck.DUPLICATE
        if target < normalize_date(period, self.today, calendar):
            return CreationCheck.PAST_DATE
        return CreationCheck.VALID

    def check_multiday(
        self,
        start_date: DateLike,
        end_date: DateLike,
        spreads: Sequence[Spread],
        calendar: JournalCalendar,
    ) -> CreationCheck:
        start = start_of_day(start_date, calendar)
        end = start_of_day(end_date, calendar)
        today = start_of_day(self.today, calendar)

        if end < start:
            return CreationCheck.INVALID_RANGE
        if any(s.key(calendar) == (Period.MULTIDAY, start, end) for s in spreads):
            return CreationCheck.DUPLICATE
        if end < today:
            return CreationCheck.PAST_DATE
        if start >= today:
            return CreationCheck.VALID
        if is_within_week_of(start, today, calendar, self.first_weekday):
            return CreationCheck.VALID
        return CreationCheck.PAST_DATE

    def check_spread(self, spread: Spread, spreads: Sequence[Spread], calendar: JournalCalendar) -> CreationCheck:
        """Validate an already-constructed spread (presets go through here)."""
        if spread.period is Period.MULTIDAY:
            return self.check_multiday(
                spread.start_date or spread.date, spread.end_date or spread.date, spreads, calendar
            )
        return self.check(spread.period, spread.date, spreads, calendar)


# ========== Creation ==========

@dataclass
class CreationPlan:
    """Effects of adding a spread: the spread plus Inbox entries it absorbs."""
    spread: Spread
    resolved_entries: list[AssignableEntry] = field(default_factory=list)


def plan_spread_creation(
    spread: Spread,
    snapshot: JournalSnapshot,
    calendar: JournalCalendar,
    parent_fallback: bool = False,
) -> CreationPlan:
    """Compute the assignments a new spread picks up from the Inbox."""
    resolved = [
        assign_to_spread(entry, spread, calendar)
        for entry in entries_resolved_by(spread, snapshot, calendar, parent_fallback)
    ]
    return CreationPlan(spread=spread, resolved_entries=resolved)


# ========== Deletion ==========

@dataclass
class DeletionPlan:
    """Effects of deleting a spread.

    `reassigned_to` maps each affected entry id to the id of the spread it
    moved to, or None when it fell back to the Inbox.
    """
    spread: Spread
    updated_entries: list[AssignableEntry] = field(default_factory=list)
    reassigned_to: dict[str, Optional[str]] = field(default_factory=dict)


def nearest_ancestor_spread(
    spread: Spread,
    spreads: Sequence[Spread],
    calendar: JournalCalendar,
) -> Optional[Spread]:
    """Closest existing spread up the day -> month -> year chain."""
    period = spread.period.parent
    while period is not None:
        for candidate in spreads:
            if candidate.id != spread.id and candidate.matches(period, spread.date, calendar):
                return candidate
        period = period.parent
    return None


def _reassigned_status(entry: AssignableEntry, retired_status):
    if entry.kind is EntryKind.TASK:
        if retired_status in (TaskStatus.COMPLETE, TaskStatus.CANCELLED):
            return retired_status
        return TaskStatus.OPEN
    return NoteStatus.ACTIVE


def _reassign(
    entry: AssignableEntry,
    deleted: Spread,
    parent: Spread,
    calendar: JournalCalendar,
) -> AssignableEntry:
    source = find_assignment(entry, deleted.period, deleted.date, calendar)
    updated = copy_entry(entry)
    parent_date = normalize_date(parent.period, parent.date, calendar)

    if source.status is migrated_status(entry):
        # History only; the current assignment lives on another spread
        if find_assignment(entry, parent.period, parent.date, calendar) is None:
            history = build_assignment(entry, parent.period, parent_date, source.status)
            updated.assignments = upsert_assignment(updated.assignments, history, calendar)
        return updated

    status = _reassigned_status(entry, source.status)
    retired = build_assignment(entry, source.period, source.date, migrated_status(entry))
    assignments = upsert_assignment(updated.assignments, retired, calendar)
    moved = build_assignment(entry, parent.period, parent_date, status)
    updated.assignments = upsert_assignment(assignments, moved, calendar)

    if entry.kind is EntryKind.NOTE or entry.status is not TaskStatus.CANCELLED:
        updated.status = status
    return updated


def plan_spread_deletion(
    spread: Spread,
    snapshot: JournalSnapshot,
    calendar: JournalCalendar,
) -> DeletionPlan:
    """Work out how deleting `spread` moves its entries.

    Every task and note holding an assignment on the spread is handed to the
    nearest existing ancestor spread: the old assignment is kept as migrated
    history and a new one is added on the ancestor, keeping a complete status
    complete. When the spread only holds migrated history for an entry, that
    history is carried to the ancestor and the current assignment and status
    are left alone. Without an ancestor the entry is left as is and, since its
    binding no longer matches an existing spread, shows up in the Inbox.

    Multiday spreads own no assignments, so deleting one changes no entry.
    """
    plan = DeletionPlan(spread=spread)
    if not spread.period.can_have_assignments:
        return plan

    remaining = [s for s in snapshot.spreads if s.id != spread.id]
    parent = nearest_ancestor_spread(spread, remaining, calendar)

    for entry in snapshot.assignable_entries():
        assignment = find_assignment(entry, spread.period, spread.date, calendar)
        if assignment is None:
            continue
        if parent is None:
            if assignment.status is migrated_status(entry):
                continue
            plan.reassigned_to[entry.id] = None
            continue
        plan.updated_entries.append(_reassign(entry, spread, parent, calendar))
        plan.reassigned_to[entry.id] = parent.id

    return plan
