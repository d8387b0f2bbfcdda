"""Manual migration of tasks and notes between spreads.

Migration never deletes history: the source assignment is kept with a
migrated status and the destination assignment is created or reopened.
Nothing in the engine migrates automatically.
"""

from __future__ import annotations

from typing import Sequence

from .assignment import find_assignment, upsert_assignment
from .errors import (
    DestinationNotAssignableError,
    NoSourceAssignmentError,
    TaskCancelledError,
    UnsupportedEntryKindError,
)
from .models import (
    AssignableEntry,
    Entry,
    EntryKind,
    Spread,
    Task,
    TaskStatus,
    active_status,
    build_assignment,
    copy_entry,
    is_assignable,
    is_cancelled,
    migrated_status,
)
from .periods import JournalCalendar, normalize_date


def migrate_entry(
    entry: Entry,
    source: Spread,
    destination: Spread,
    calendar: JournalCalendar,
) -> AssignableEntry:
    """Move an entry's active assignment from `source` to `destination`.

    Returns an updated copy; the input entry is left untouched.

    Raises:
        UnsupportedEntryKindError: If the entry is an event.
        TaskCancelledError: If the entry is a cancelled task.
        DestinationNotAssignableError: If the destination is a multiday spread.
        NoSourceAssignmentError: If the entry has no assignment on `source`.
    """
    if not is_assignable(entry):
        raise UnsupportedEntryKindError(
            f"{entry.kind.display_name} entries cannot be migrated"
        )
    if is_cancelled(entry):
        raise TaskCancelledError(f"Task {entry.id} is cancelled")
    if not destination.period.can_have_assignments:
        raise DestinationNotAssignableError(
            f"{destination.period.display_name} spreads do not accept assignments"
        )

    source_assignment = find_assignment(entry, source.period, source.date, calendar)
    if source_assignment is None:
        raise NoSourceAssignmentError(
            f"{entry.kind.display_name} {entry.id} has no assignment on "
            f"{source.period.value} spread {source.id}"
        )

    updated = copy_entry(entry)
    retired = build_assignment(
        entry, source_assignment.period, source_assignment.date, migrated_status(entry)
    )
    assignments = upsert_assignment(updated.assignments, retired, calendar)

    status = active_status(entry)
    reopened = build_assignment(
        entry,
        destination.period,
        normalize_date(destination.period, destination.date, calendar),
        status,
    )
    updated.assignments = upsert_assignment(assignments, reopened, calendar)
    updated.status = status
    return updated


def migrate_tasks_batch(
    tasks: Sequence[Entry],
    source: Spread,
    destination: Spread,
    calendar: JournalCalendar,
) -> list[Task]:
    """Migrate several tasks at once.

    Only tasks take part; a note or event anywhere in the batch rejects the
    whole batch. Cancelled tasks are skipped. Returns the updated tasks.
    """
    for entry in tasks:
        if entry.kind is not EntryKind.TASK:
            raise UnsupportedEntryKindError(
                f"{entry.kind.display_name} entries cannot be batch migrated"
            )
    return [
        migrate_entry(task, source, destination, calendar)
        for task in tasks
        if not is_cancelled(task)
    ]


def eligible_tasks_for_migration(
    source: Spread,
    destination: Spread,
    tasks: Sequence[Task],
    calendar: JournalCalendar,
) -> list[Task]:
    """Open tasks on `source` that may be batch-migrated to `destination`.

    `source` must be a strict ancestor of `destination` in the period
    hierarchy and contain its date. A task qualifies when its preferred date
    falls inside the destination and it has no assignment there yet.
    """
    if not source.period.is_ancestor_of(destination.period):
        return []
    if not source.contains(destination.date, calendar):
        return []

    eligible = []
    for task in tasks:
        if task.status is TaskStatus.CANCELLED:
            continue
        if not destination.contains(task.date, calendar):
            continue
        if find_assignment(task, destination.period, destination.date, calendar) is not None:
            continue
        assignment = find_assignment(task, source.period, source.date, calendar)
        if assignment is not None and assignment.status is TaskStatus.OPEN:
            eligible.append(task)
    return eligible
