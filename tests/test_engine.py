"""Tests for the journal coordinator."""

import logging

import pytest

from spread_journal.assignment import find_assignment
from spread_journal.engine import JournalEngine
from spread_journal.errors import (
    JournalError,
    NotFoundError,
    SpreadCreationError,
    TaskCancelledError,
    UnsupportedEntryKindError,
)
from spread_journal.lifecycle import CreationCheck
from spread_journal.models import EventTiming, NoteStatus, TaskStatus
from spread_journal.periods import MultidayPreset, Period
from spread_journal.storage import InMemoryRepository, RepositorySet

from conftest import TODAY, utc


class FlakyRepository(InMemoryRepository):
    """In-memory repository that starts failing after a number of writes."""

    def __init__(self):
        super().__init__()
        self.writes_left = None

    def _spend(self):
        if self.writes_left is not None:
            if self.writes_left == 0:
                raise OSError("disk full")
            self.writes_left -= 1

    def save(self, entity):
        self._spend()
        super().save(entity)

    def delete(self, entity):
        self._spend()
        super().delete(entity)


def flaky_engine(config, calendar, **flaky):
    """Engine whose named repositories are FlakyRepository instances."""
    repos = RepositorySet(**{
        name: FlakyRepository() if name in flaky else InMemoryRepository()
        for name in ("spreads", "tasks", "notes", "events")
    })
    return JournalEngine(config, repos, calendar, today=TODAY), repos


class TestAddEntries:
    """Tests for task, note, and event creation."""

    def test_task_attaches_to_matching_day(self, engine):
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        task = engine.add_task("Write report", utc(2026, 1, 5))

        assert find_assignment(task, Period.DAY, day.date, engine.calendar).status is TaskStatus.OPEN
        assert engine.inbox_count == 0

    def test_day_task_with_only_month_goes_to_inbox(self, engine):
        engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        task = engine.add_task("Write report", utc(2026, 1, 5))

        assert task.assignments == []
        assert [e.id for e in engine.inbox_entries()] == [task.id]

    def test_parent_fallback(self, config, calendar):
        config.parent_fallback = True
        engine = JournalEngine(config, RepositorySet.in_memory(), calendar, today=TODAY)
        month = engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        task = engine.add_task("Write report", utc(2026, 1, 5))

        assert find_assignment(task, Period.MONTH, month.date, engine.calendar) is not None

    def test_defaults_to_today(self, engine):
        task = engine.add_task("Today")
        assert task.date == TODAY
        assert task.period is Period.DAY

    def test_complete_task(self, engine):
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        task = engine.add_task("Done", utc(2026, 1, 5), status=TaskStatus.COMPLETE)
        assert find_assignment(task, Period.DAY, day.date, engine.calendar).status is TaskStatus.COMPLETE

    def test_migrated_status_rejected(self, engine):
        with pytest.raises(ValueError, match="only through migration"):
            engine.add_task("t", utc(2026, 1, 5), status=TaskStatus.MIGRATED)
        assert engine.snapshot.tasks == []

    def test_cancelled_task_mirrored_on_assignment(self, engine):
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        task = engine.add_task("Dropped", utc(2026, 1, 5), status=TaskStatus.CANCELLED)
        assert find_assignment(task, Period.DAY, day.date, engine.calendar).status is TaskStatus.CANCELLED
        assert engine.inbox_count == 0

    def test_multiday_preference_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.add_task("t", utc(2026, 1, 5), period=Period.MULTIDAY)
        with pytest.raises(ValueError):
            engine.add_note("n", utc(2026, 1, 5), period=Period.MULTIDAY)

    def test_note(self, engine):
        month = engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        note = engine.add_note("Ideas", utc(2026, 1, 9), period=Period.MONTH, content="...")
        assert find_assignment(note, Period.MONTH, month.date, engine.calendar).status is NoteStatus.ACTIVE

    def test_event(self, engine):
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        event = engine.add_event("Offsite", utc(2026, 1, 4), utc(2026, 1, 6), timing=EventTiming.MULTI_DAY)

        assert engine.spread_contents(day.id).events == [event]
        assert engine.inbox_count == 0

    def test_event_end_before_start(self, engine):
        with pytest.raises(ValueError):
            engine.add_event("Backwards", utc(2026, 1, 6), utc(2026, 1, 4))

    def test_events_disabled(self, config, calendar):
        config.events_enabled = False
        engine = JournalEngine(config, RepositorySet.in_memory(), calendar, today=TODAY)
        with pytest.raises(JournalError):
            engine.add_event("Offsite", utc(2026, 1, 4))


class TestSpreads:
    """Tests for spread creation through the coordinator."""

    def test_past_spread_rejected(self, engine):
        with pytest.raises(SpreadCreationError) as exc_info:
            engine.add_spread(Period.DAY, utc(2025, 12, 31))
        assert exc_info.value.reason is CreationCheck.PAST_DATE
        assert engine.snapshot.spreads == []

    def test_duplicate_rejected(self, engine):
        engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        with pytest.raises(SpreadCreationError) as exc_info:
            engine.add_spread(Period.MONTH, utc(2026, 1, 20))
        assert exc_info.value.reason is CreationCheck.DUPLICATE

    def test_multiday_through_add_spread_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.add_spread(Period.MULTIDAY, utc(2026, 1, 5))

    def test_invalid_range(self, engine):
        with pytest.raises(SpreadCreationError) as exc_info:
            engine.add_multiday_spread(utc(2026, 1, 11), utc(2026, 1, 5))
        assert exc_info.value.reason is CreationCheck.INVALID_RANGE

    def test_this_week_preset(self, engine):
        spread = engine.add_preset_spread(MultidayPreset.THIS_WEEK)
        assert (spread.start_date, spread.end_date) == (utc(2025, 12, 28), utc(2026, 1, 3))

    def test_check_spread(self, engine):
        assert engine.check_spread(Period.DAY, utc(2026, 1, 5)) is CreationCheck.VALID
        assert engine.check_spread(Period.DAY, utc(2025, 1, 5)) is CreationCheck.PAST_DATE

    def test_new_spread_resolves_inbox(self, engine):
        task = engine.add_task("Later", utc(2026, 1, 5))
        note = engine.add_note("Later too", utc(2026, 1, 5))
        assert engine.inbox_count == 2

        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))

        assert engine.inbox_count == 0
        assert [t.id for t in engine.spread_contents(day.id).tasks] == [task.id]
        assert [n.id for n in engine.spread_contents(day.id).notes] == [note.id]

    def test_failed_creation_rolls_back(self, config, calendar):
        engine, repos = flaky_engine(config, calendar, tasks=True)
        task = engine.add_task("t", utc(2026, 1, 5))

        repos.tasks.writes_left = 0
        with pytest.raises(OSError):
            engine.add_spread(Period.DAY, utc(2026, 1, 5))

        assert repos.spreads.get_all() == []
        assert engine.snapshot.spreads == []
        assert engine.get_entry(task.id).assignments == []

        repos.tasks.writes_left = None
        engine.add_spread(Period.DAY, utc(2026, 1, 5))
        assert len(repos.spreads.get_all()) == 1
        assert engine.inbox_count == 0
        with pytest.raises(SpreadCreationError):
            engine.add_spread(Period.DAY, utc(2026, 1, 5))

    def test_failed_spread_write_leaves_nothing(self, config, calendar):
        engine, repos = flaky_engine(config, calendar, spreads=True)
        repos.spreads.writes_left = 0
        with pytest.raises(OSError):
            engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        assert engine.snapshot.spreads == []
        assert engine.data_version == 0

    def test_get_spread_unknown(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_spread("missing")


class TestDeleteSpread:
    """Tests for delete_spread."""

    def test_month_task_moves_to_year(self, engine):
        year = engine.add_spread(Period.YEAR, utc(2026, 1, 1))
        month = engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        task = engine.add_task("Plan", utc(2026, 1, 5), period=Period.MONTH)

        reassigned = engine.delete_spread(month.id)

        assert reassigned == {task.id: year.id}
        stored = engine.get_entry(task.id)
        assert find_assignment(stored, Period.MONTH, month.date, engine.calendar).status is TaskStatus.MIGRATED
        assert find_assignment(stored, Period.YEAR, year.date, engine.calendar).status is TaskStatus.OPEN
        assert [s.id for s in engine.snapshot.spreads] == [year.id]
        assert [t.id for t in engine.spread_contents(year.id).tasks] == [task.id]

    def test_no_parent_falls_to_inbox(self, engine):
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        task = engine.add_task("Orphan", utc(2026, 1, 5))

        assert engine.delete_spread(day.id) == {task.id: None}
        assert [e.id for e in engine.inbox_entries()] == [task.id]
        assert len(engine.snapshot.tasks) == 1

    def test_entries_never_deleted(self, engine):
        month = engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        for i in range(3):
            engine.add_task(f"t{i}", utc(2026, 1, 5))
        engine.add_note("n", utc(2026, 1, 5))

        engine.delete_spread(day.id)
        engine.delete_spread(month.id)

        assert len(engine.snapshot.tasks) == 3
        assert len(engine.snapshot.notes) == 1
        assert engine.inbox_count == 4

    def test_completed_task_stays_complete(self, engine):
        month = engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        day5 = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        day6 = engine.add_spread(Period.DAY, utc(2026, 1, 6))
        task = engine.add_task("t", utc(2026, 1, 5))
        engine.migrate_task(task.id, day5.id, day6.id)
        engine.set_task_status(task.id, TaskStatus.COMPLETE)

        assert engine.delete_spread(day5.id) == {task.id: month.id}

        updated = engine.get_entry(task.id)
        assert updated.status is TaskStatus.COMPLETE
        statuses = {(a.period, a.date.day): a.status for a in updated.assignments}
        assert statuses == {
            (Period.DAY, 5): TaskStatus.MIGRATED,
            (Period.DAY, 6): TaskStatus.COMPLETE,
            (Period.MONTH, 1): TaskStatus.MIGRATED,
        }
        assert [t.id for t in engine.spread_contents(day6.id).tasks] == [task.id]
        assert engine.spread_contents(month.id).tasks == []

    def test_rollback_when_entry_write_fails(self, config, calendar):
        repos = RepositorySet(
            spreads=InMemoryRepository(),
            tasks=FlakyRepository(),
            notes=InMemoryRepository(),
            events=InMemoryRepository(),
        )
        engine = JournalEngine(config, repos, calendar, today=TODAY)
        engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        first = engine.add_task("first", utc(2026, 1, 5))
        second = engine.add_task("second", utc(2026, 1, 5))

        # First rewrite succeeds, second fails, then the restore writes are allowed again
        repos.tasks.writes_left = 1
        original_save = repos.tasks.save

        def save(entity):
            try:
                original_save(entity)
            except OSError:
                repos.tasks.writes_left = None
                raise

        repos.tasks.save = save

        with pytest.raises(OSError):
            engine.delete_spread(day.id)

        assert day.id in [s.id for s in engine.snapshot.spreads]
        assert engine.get_entry(first.id).assignments == first.assignments
        assert engine.get_entry(second.id).assignments == second.assignments

    def test_rollback_when_spread_delete_fails(self, config, calendar):
        repos = RepositorySet(
            spreads=FlakyRepository(),
            tasks=InMemoryRepository(),
            notes=InMemoryRepository(),
            events=InMemoryRepository(),
        )
        engine = JournalEngine(config, repos, calendar, today=TODAY)
        engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        task = engine.add_task("t", utc(2026, 1, 5))

        repos.spreads.writes_left = 0
        with pytest.raises(OSError):
            engine.delete_spread(day.id)

        assert engine.get_entry(task.id).assignments == task.assignments
        assert len(engine.snapshot.spreads) == 2


class TestTaskStatus:
    """Tests for set_task_status."""

    def test_complete_mirrors_current_assignment(self, engine):
        month = engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        task = engine.add_task("t", utc(2026, 1, 5), period=Period.MONTH)
        engine.migrate_task(task.id, month.id, day.id)

        done = engine.set_task_status(task.id, TaskStatus.COMPLETE)

        assert done.status is TaskStatus.COMPLETE
        assert find_assignment(done, Period.DAY, day.date, engine.calendar).status is TaskStatus.COMPLETE
        assert find_assignment(done, Period.MONTH, month.date, engine.calendar).status is TaskStatus.MIGRATED

    def test_cancelled_only_reachable_by_id(self, engine):
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        task = engine.add_task("t", utc(2026, 1, 5))
        inbox_task = engine.add_task("u", utc(2026, 1, 9))

        engine.set_task_status(task.id, TaskStatus.CANCELLED)
        engine.set_task_status(inbox_task.id, TaskStatus.CANCELLED)

        assert engine.spread_contents(day.id).tasks == []
        assert engine.inbox_count == 0
        assert engine.get_entry(task.id).status is TaskStatus.CANCELLED

    def test_migrated_not_settable(self, engine):
        task = engine.add_task("t", utc(2026, 1, 5))
        with pytest.raises(ValueError):
            engine.set_task_status(task.id, TaskStatus.MIGRATED)

    def test_notes_are_not_tasks(self, engine):
        note = engine.add_note("n", utc(2026, 1, 5))
        with pytest.raises(NotFoundError):
            engine.set_task_status(note.id, TaskStatus.COMPLETE)


class TestMigration:
    """Tests for migration through the coordinator."""

    @pytest.fixture
    def spreads(self, engine):
        return (
            engine.add_spread(Period.MONTH, utc(2026, 1, 1)),
            engine.add_spread(Period.DAY, utc(2026, 1, 5)),
        )

    def test_migrate_task_persists(self, engine, spreads):
        month, day = spreads
        task = engine.add_task("t", utc(2026, 1, 5), period=Period.MONTH)

        engine.migrate_task(task.id, month.id, day.id)

        stored = engine.get_entry(task.id)
        assert find_assignment(stored, Period.MONTH, month.date, engine.calendar).status is TaskStatus.MIGRATED
        assert find_assignment(stored, Period.DAY, day.date, engine.calendar).status is TaskStatus.OPEN

    def test_migrate_note(self, engine, spreads):
        month, day = spreads
        note = engine.add_note("n", utc(2026, 1, 5), period=Period.MONTH)
        moved = engine.migrate_note(note.id, month.id, day.id)
        assert moved.status is NoteStatus.ACTIVE
        assert [n.id for n in engine.spread_contents(day.id).notes] == [note.id]

    def test_migrate_task_with_note_id(self, engine, spreads):
        month, day = spreads
        note = engine.add_note("n", utc(2026, 1, 5), period=Period.MONTH)
        with pytest.raises(NotFoundError):
            engine.migrate_task(note.id, month.id, day.id)

    def test_cancelled_rejected(self, engine, spreads):
        month, day = spreads
        task = engine.add_task("t", utc(2026, 1, 5), period=Period.MONTH)
        engine.set_task_status(task.id, TaskStatus.CANCELLED)
        with pytest.raises(TaskCancelledError):
            engine.migrate_task(task.id, month.id, day.id)

    def test_batch(self, engine, spreads):
        month, day = spreads
        open_tasks = [engine.add_task(f"t{i}", utc(2026, 1, 5), period=Period.MONTH) for i in range(2)]
        cancelled = engine.add_task("c", utc(2026, 1, 5), period=Period.MONTH)
        engine.set_task_status(cancelled.id, TaskStatus.CANCELLED)

        eligible = engine.eligible_tasks_for_migration(month.id, day.id)
        assert [t.id for t in eligible] == [t.id for t in open_tasks]

        moved = engine.migrate_tasks_batch([t.id for t in open_tasks] + [cancelled.id], month.id, day.id)
        assert [t.id for t in moved] == [t.id for t in open_tasks]
        assert engine.eligible_tasks_for_migration(month.id, day.id) == []

    def test_batch_rolls_back_on_write_failure(self, config, calendar):
        engine, repos = flaky_engine(config, calendar, tasks=True)
        month = engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        tasks = [engine.add_task(f"t{i}", utc(2026, 1, 5), period=Period.MONTH) for i in range(2)]

        # First write succeeds, second fails, then the restore writes are allowed again
        repos.tasks.writes_left = 1
        original_save = repos.tasks.save

        def save(entity):
            try:
                original_save(entity)
            except OSError:
                repos.tasks.writes_left = None
                raise

        repos.tasks.save = save

        with pytest.raises(OSError):
            engine.migrate_tasks_batch([t.id for t in tasks], month.id, day.id)

        for task in tasks:
            assert engine.get_entry(task.id).assignments == task.assignments
        assert {t.id: t.assignments for t in repos.tasks.get_all()} == {t.id: t.assignments for t in tasks}
        assert len(engine.eligible_tasks_for_migration(month.id, day.id)) == 2

    def test_batch_rejects_notes(self, engine, spreads):
        month, day = spreads
        note = engine.add_note("n", utc(2026, 1, 5), period=Period.MONTH)
        with pytest.raises(UnsupportedEntryKindError):
            engine.migrate_tasks_batch([note.id], month.id, day.id)

    def test_empty_batch_is_not_a_change(self, engine, spreads):
        month, day = spreads
        version = engine.data_version
        assert engine.migrate_tasks_batch([], month.id, day.id) == []
        assert engine.data_version == version


class TestNotifications:
    """Tests for change hooks, data_version, and lifecycle logging."""

    def test_on_change_hook(self, config, calendar):
        seen = []
        config.hooks["on_change"] = lambda name, payload: seen.append((name, payload))
        engine = JournalEngine(config, RepositorySet.in_memory(), calendar, today=TODAY)

        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        task = engine.add_task("t", utc(2026, 1, 5))
        engine.delete_spread(day.id)

        assert [name for name, _ in seen] == ["spread_created", "task_created", "spread_deleted"]
        assert seen[1][1] == {"entry_id": task.id}
        assert seen[2][1]["reassigned_to"] == {task.id: None}

    def test_data_version_increments(self, engine):
        assert engine.data_version == 0
        engine.add_task("t", utc(2026, 1, 5))
        engine.add_spread(Period.DAY, utc(2026, 1, 5))
        assert engine.data_version == 2

    def test_failed_creation_is_not_a_change(self, engine):
        with pytest.raises(SpreadCreationError):
            engine.add_spread(Period.DAY, utc(2025, 1, 5))
        assert engine.data_version == 0

    def test_lifecycle_logging(self, engine, caplog):
        caplog.set_level(logging.INFO, logger="spread_journal.engine")
        engine.add_task("t", utc(2026, 1, 5))
        month = engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        note = engine.add_note("n", utc(2026, 1, 5), period=Period.MONTH)
        engine.migrate_note(note.id, month.id, day.id)
        engine.delete_spread(day.id)

        text = caplog.text
        assert "-> Inbox" in text
        assert "Inbox resolved" in text
        assert "Assignment created" in text
        assert "Migration performed" in text
        assert "Spread deleted" in text


class TestViews:
    """Tests for read-only views."""

    def test_hierarchy_and_initial_selection(self, engine):
        year = engine.add_spread(Period.YEAR, utc(2026, 1, 1))
        month = engine.add_spread(Period.MONTH, utc(2026, 1, 1))
        today = engine.add_spread(Period.DAY, utc(2026, 1, 1))

        [node] = engine.hierarchy().years
        assert node.spread.id == year.id
        assert [m.spread.id for m in node.months] == [month.id]
        assert engine.initial_selection().id == today.id
        assert engine.initial_selection(utc(2026, 1, 20)).id == month.id

    def test_data_model(self, engine):
        day = engine.add_spread(Period.DAY, utc(2026, 1, 5))
        task = engine.add_task("t", utc(2026, 1, 5))
        model = engine.data_model()
        assert [t.id for t in model[Period.DAY][day.date].tasks] == [task.id]

    def test_get_entry_unknown(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_entry("missing")


class TestPersistence:
    """Tests for the JSON-backed engine."""

    def test_reopened_engine_sees_data(self, file_engine, config, calendar):
        day = file_engine.add_spread(Period.DAY, utc(2026, 1, 5))
        task = file_engine.add_task("t", utc(2026, 1, 5))

        reopened = JournalEngine(config, calendar=calendar, today=TODAY)
        assert [s.id for s in reopened.snapshot.spreads] == [day.id]
        assert reopened.get_entry(task.id).assignments == task.assignments
        assert (config.get_data_path() / "tasks.json").exists()
