"""Journal coordinator: owns the snapshot and persists engine effects.

The modules this one calls are pure. JournalEngine reads the current
snapshot, asks them for new entities or plans, writes those through the
repositories, reloads, then notifies the on_change hook.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from .aggregation import SpreadContents, build_data_model, spread_contents
from .assignment import assign_to_spread, find_best_spread, inbox_entries
from .config import JournalConfig
from .errors import JournalError, NotFoundError, SpreadCreationError
from .hierarchy import SpreadHierarchyOrganizer
from .lifecycle import (
    CreationCheck,
    StandardCreationPolicy,
    plan_spread_creation,
    plan_spread_deletion,
)
from .migration import eligible_tasks_for_migration, migrate_entry, migrate_tasks_batch
from .models import (
    AssignableEntry,
    Entry,
    EntryKind,
    Event,
    EventTiming,
    JournalSnapshot,
    Note,
    Spread,
    Task,
    TaskStatus,
    copy_entry,
)
from .periods import DateLike, JournalCalendar, MultidayPreset, Period, start_of_day
from .storage import RepositorySet

logger = logging.getLogger(__name__)


class JournalEngine:
    """Coordinator for spreads, entries, and their assignments."""

    def __init__(
        self,
        config: JournalConfig,
        repositories: Optional[RepositorySet] = None,
        calendar: Optional[JournalCalendar] = None,
        today: Optional[DateLike] = None,
    ):
        self.config = config
        self.calendar = calendar or config.calendar()
        self.repositories = repositories or RepositorySet.json_dir(config.get_data_path())
        self._today = today
        self.data_version = 0
        self.snapshot = JournalSnapshot()
        self.reload()

    @property
    def today(self) -> datetime:
        """Reference "now"; fixed when supplied, otherwise the wall clock."""
        if self._today is not None:
            return self.calendar.localize(self._today)
        return datetime.now(self.calendar.tz)

    @property
    def policy(self) -> StandardCreationPolicy:
        return StandardCreationPolicy(today=self.today, first_weekday=self.config.first_weekday)

    def reload(self) -> JournalSnapshot:
        """Re-read every repository into a fresh snapshot."""
        self.snapshot = JournalSnapshot(
            spreads=self.repositories.spreads.get_all(),
            tasks=self.repositories.tasks.get_all(),
            notes=self.repositories.notes.get_all(),
            events=self.repositories.events.get_all(),
        )
        return self.snapshot

    def _changed(self, event_name: str, payload: dict[str, Any]) -> None:
        self.reload()
        self.data_version += 1
        if "on_change" in self.config.hooks:
            self.config.hooks["on_change"](event_name, payload)

    def _save_entry(self, entry: Entry) -> None:
        if entry.kind is EntryKind.TASK:
            self.repositories.tasks.save(entry)
        elif entry.kind is EntryKind.NOTE:
            self.repositories.notes.save(entry)
        else:
            self.repositories.events.save(entry)

    # ========== Lookup ==========

    def get_entry(self, entry_id: str) -> Entry:
        """Any entry by id, cancelled tasks included."""
        entry = self.snapshot.find_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        return entry

    def get_spread(self, spread_id: str) -> Spread:
        spread = self.snapshot.find_spread(spread_id)
        if spread is None:
            raise NotFoundError(f"Spread not found: {spread_id}")
        return spread

    def _get_kind(self, entry_id: str, kind: EntryKind) -> Entry:
        entry = self.get_entry(entry_id)
        if entry.kind is not kind:
            raise NotFoundError(f"{kind.display_name} not found: {entry_id}")
        return entry

    # ========== Spreads ==========

    def check_spread(
        self,
        period: Period,
        date: DateLike,
        end_date: Optional[DateLike] = None,
    ) -> CreationCheck:
        return self.policy.check(period, date, self.snapshot.spreads, self.calendar, end_date)

    def add_spread(self, period: Period, date: DateLike) -> Spread:
        """Create a year, month, or day spread.

        Raises:
            SpreadCreationError: If the spread is a duplicate or in the past
        """
        if period is Period.MULTIDAY:
            raise ValueError("Use add_multiday_spread for multiday spreads")
        return self._create_spread(Spread.create(period, date, self.calendar))

    def add_multiday_spread(self, start_date: DateLike, end_date: DateLike) -> Spread:
        return self._create_spread(Spread.create_multiday(start_date, end_date, self.calendar))

    def add_preset_spread(self, preset: MultidayPreset) -> Spread:
        spread = Spread.from_preset(preset, self.today, self.calendar, self.config.first_weekday)
        return self._create_spread(spread)

    def _create_spread(self, spread: Spread) -> Spread:
        check = self.policy.check_spread(spread, self.snapshot.spreads, self.calendar)
        if not check.is_valid:
            raise SpreadCreationError(check, check.message)

        plan = plan_spread_creation(spread, self.snapshot, self.calendar, self.config.parent_fallback)

        originals = {e.id: e for e in self.snapshot.assignable_entries()}
        written: list[AssignableEntry] = []
        spread_saved = False
        try:
            self.repositories.spreads.save(spread)
            spread_saved = True
            for entry in plan.resolved_entries:
                self._save_entry(entry)
                written.append(entry)
        except Exception:
            logger.error("Creating spread %s failed; rolling back", spread.id)
            self._restore([originals[e.id] for e in written], remove_spread=spread if spread_saved else None)
            self.reload()
            raise

        for entry in plan.resolved_entries:
            logger.info(
                "Assignment created: %s %s -> %s spread %s",
                entry.kind.value, entry.id, spread.period.value, spread.id,
            )

        logger.info("Spread created: %s %s", spread.period.value, spread.display_label(self.calendar))
        if plan.resolved_entries:
            logger.info(
                "Inbox resolved: %d entries moved to spread %s",
                len(plan.resolved_entries), spread.id,
            )

        self._changed("spread_created", {
            "spread_id": spread.id,
            "resolved": [e.id for e in plan.resolved_entries],
        })
        return spread

    def delete_spread(self, spread_id: str) -> dict[str, Optional[str]]:
        """Delete a spread, handing its entries to the nearest ancestor spread.

        Returns a map of affected entry id to the spread id it moved to
        (None when it fell back to the Inbox). Entries are never deleted.
        If a repository write fails, entries already rewritten and the
        spread itself are restored before the error propagates.
        """
        spread = self.get_spread(spread_id)
        plan = plan_spread_deletion(spread, self.snapshot, self.calendar)

        originals = {e.id: e for e in self.snapshot.assignable_entries()}
        written: list[AssignableEntry] = []
        spread_deleted = False
        try:
            for entry in plan.updated_entries:
                self._save_entry(entry)
                written.append(entry)
            self.repositories.spreads.delete(spread)
            spread_deleted = True
        except Exception:
            logger.error("Deleting spread %s failed; rolling back", spread.id)
            self._restore([originals[e.id] for e in written], add_spread=spread if spread_deleted else None)
            self.reload()
            raise

        logger.info(
            "Spread deleted: %s %s, %d entries reassigned",
            spread.period.value, spread.display_label(self.calendar), len(plan.reassigned_to),
        )
        self._changed("spread_deleted", {
            "spread_id": spread.id,
            "reassigned_to": dict(plan.reassigned_to),
        })
        return dict(plan.reassigned_to)

    def _restore(
        self,
        originals: Sequence[AssignableEntry],
        add_spread: Optional[Spread] = None,
        remove_spread: Optional[Spread] = None,
    ) -> None:
        """Put back entries and spreads touched by a write that failed partway."""
        # Failures here are logged; the original error is the one re-raised
        for entry in originals:
            try:
                self._save_entry(entry)
            except Exception:
                logger.exception("Rollback could not restore %s %s", entry.kind.value, entry.id)
        if add_spread is not None:
            try:
                self.repositories.spreads.save(add_spread)
            except Exception:
                logger.exception("Rollback could not restore spread %s", add_spread.id)
        if remove_spread is not None:
            try:
                self.repositories.spreads.delete(remove_spread)
            except Exception:
                logger.exception("Rollback could not remove spread %s", remove_spread.id)

    # ========== Entries ==========

    def _place(self, entry: AssignableEntry) -> AssignableEntry:
        best = find_best_spread(entry, self.snapshot.spreads, self.calendar, self.config.parent_fallback)
        if best is None:
            logger.info("%s created: %s -> Inbox", entry.kind.display_name, entry.id)
            return entry
        placed = assign_to_spread(entry, best, self.calendar)
        logger.info(
            "%s created: %s -> %s spread %s",
            entry.kind.display_name, entry.id, best.period.value, best.id,
        )
        logger.info("Assignment created: %s %s -> %s spread %s",
                    entry.kind.value, entry.id, best.period.value, best.id)
        return placed

    def add_task(
        self,
        title: str,
        date: Optional[DateLike] = None,
        period: Period = Period.DAY,
        status: TaskStatus = TaskStatus.OPEN,
    ) -> Task:
        """Create a task and attach it to its best spread, or leave it in the Inbox.

        A complete or cancelled status is mirrored onto the new assignment.
        Migrated is reached only through migration.
        """
        if status is TaskStatus.MIGRATED:
            raise ValueError("Tasks become migrated only through migration")
        if not period.can_have_assignments:
            raise ValueError("Tasks cannot prefer the multiday period")
        task = Task(
            title=title,
            date=self.calendar.localize(date if date is not None else self.today),
            period=period,
            status=status,
        )
        task = self._place(task)
        self.repositories.tasks.save(task)
        self._changed("task_created", {"entry_id": task.id})
        return task

    def add_note(
        self,
        title: str,
        date: Optional[DateLike] = None,
        period: Period = Period.DAY,
        content: str = "",
    ) -> Note:
        if not period.can_have_assignments:
            raise ValueError("Notes cannot prefer the multiday period")
        note = Note(
            title=title,
            content=content,
            date=self.calendar.localize(date if date is not None else self.today),
            period=period,
        )
        note = self._place(note)
        self.repositories.notes.save(note)
        self._changed("note_created", {"entry_id": note.id})
        return note

    def add_event(
        self,
        title: str,
        start_date: DateLike,
        end_date: Optional[DateLike] = None,
        timing: EventTiming = EventTiming.SINGLE_DAY,
        start_time: Optional[DateLike] = None,
        end_time: Optional[DateLike] = None,
    ) -> Event:
        """Create an event. Events never get assignments."""
        if not self.config.events_enabled:
            raise JournalError("Events are disabled for this journal")
        start = self.calendar.localize(start_date)
        end = self.calendar.localize(end_date) if end_date is not None else start
        if start_of_day(end, self.calendar) < start_of_day(start, self.calendar):
            raise ValueError("Event end date is before its start date")

        event = Event(
            title=title,
            start_date=start,
            end_date=end,
            timing=timing,
            start_time=self.calendar.localize(start_time) if start_time is not None else None,
            end_time=self.calendar.localize(end_time) if end_time is not None else None,
        )
        self.repositories.events.save(event)
        logger.info("Event created: %s", event.id)
        self._changed("event_created", {"entry_id": event.id})
        return event

    def set_task_status(self, task_id: str, status: TaskStatus) -> Task:
        """Complete, cancel, or reopen a task.

        The status is mirrored onto every assignment that is not migrated
        history. Migrated is reached only through migration.
        """
        if status is TaskStatus.MIGRATED:
            raise ValueError("Tasks become migrated only through migration")
        task = self._get_kind(task_id, EntryKind.TASK)

        updated = copy_entry(task)
        updated.status = status
        updated.assignments = [
            a if a.status is TaskStatus.MIGRATED else type(a)(period=a.period, date=a.date, status=status)
            for a in task.assignments
        ]
        self.repositories.tasks.save(updated)
        logger.info("Task %s status -> %s", task.id, status.value)
        self._changed("task_updated", {"entry_id": task.id, "status": status.value})
        return updated

    # ========== Migration ==========

    def _migrate(self, entry_id: str, kind: EntryKind, source_id: str, destination_id: str) -> AssignableEntry:
        entry = self._get_kind(entry_id, kind)
        source = self.get_spread(source_id)
        destination = self.get_spread(destination_id)

        updated = migrate_entry(entry, source, destination, self.calendar)
        self._save_entry(updated)
        logger.info(
            "Migration performed: %s %s from %s spread %s to %s spread %s",
            kind.value, entry.id, source.period.value, source.id,
            destination.period.value, destination.id,
        )
        self._changed(f"{kind.value}_migrated", {
            "entry_id": entry.id,
            "source_id": source.id,
            "destination_id": destination.id,
        })
        return updated

    def migrate_task(self, task_id: str, source_id: str, destination_id: str) -> Task:
        return self._migrate(task_id, EntryKind.TASK, source_id, destination_id)

    def migrate_note(self, note_id: str, source_id: str, destination_id: str) -> Note:
        return self._migrate(note_id, EntryKind.NOTE, source_id, destination_id)

    def migrate_tasks_batch(
        self,
        task_ids: Sequence[str],
        source_id: str,
        destination_id: str,
    ) -> list[Task]:
        """Migrate several tasks; cancelled ones are skipped, notes/events rejected."""
        entries = [self.get_entry(entry_id) for entry_id in task_ids]
        source = self.get_spread(source_id)
        destination = self.get_spread(destination_id)

        migrated = migrate_tasks_batch(entries, source, destination, self.calendar)
        if not migrated:
            return []

        originals = {t.id: t for t in self.snapshot.tasks}
        written: list[Task] = []
        try:
            for task in migrated:
                self.repositories.tasks.save(task)
                written.append(task)
        except Exception:
            logger.error("Batch migration to spread %s failed; rolling back", destination.id)
            self._restore([originals[t.id] for t in written])
            self.reload()
            raise

        logger.info(
            "Batch migration performed: %d tasks from spread %s to spread %s",
            len(migrated), source.id, destination.id,
        )
        self._changed("tasks_migrated", {
            "entry_ids": [t.id for t in migrated],
            "source_id": source.id,
            "destination_id": destination.id,
        })
        return migrated

    def eligible_tasks_for_migration(self, source_id: str, destination_id: str) -> list[Task]:
        return eligible_tasks_for_migration(
            self.get_spread(source_id),
            self.get_spread(destination_id),
            self.snapshot.tasks,
            self.calendar,
        )

    # ========== Views ==========

    def inbox_entries(self) -> list[AssignableEntry]:
        return inbox_entries(self.snapshot, self.calendar)

    @property
    def inbox_count(self) -> int:
        return len(self.inbox_entries())

    def spread_contents(self, spread_id: str) -> SpreadContents:
        return spread_contents(
            self.get_spread(spread_id), self.snapshot, self.calendar, self.config.events_enabled
        )

    def data_model(self) -> dict[Period, dict[datetime, SpreadContents]]:
        return build_data_model(self.snapshot, self.calendar, self.config.events_enabled)

    def hierarchy(self) -> SpreadHierarchyOrganizer:
        return SpreadHierarchyOrganizer(self.snapshot.spreads, self.calendar)

    def initial_selection(self, date: Optional[DateLike] = None) -> Optional[Spread]:
        return self.hierarchy().initial_selection(date if date is not None else self.today)
