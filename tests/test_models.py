"""Tests for spreads, entries, and serialization."""

import pytest

from spread_journal.models import (
    EntryKind,
    Event,
    EventTiming,
    JournalSnapshot,
    Note,
    NoteAssignment,
    NoteStatus,
    Spread,
    Task,
    TaskAssignment,
    TaskStatus,
    active_status,
    build_assignment,
    copy_entry,
    entry_from_dict,
    is_cancelled,
    migrated_status,
)
from spread_journal.periods import FirstWeekday, MultidayPreset, Period

from conftest import utc


class TestSpread:
    """Tests for Spread construction and queries."""

    def test_create_normalizes_date(self, calendar):
        spread = Spread.create(Period.MONTH, utc(2026, 3, 17, 8), calendar)
        assert spread.date == utc(2026, 3, 1)
        assert spread.start_date is None
        assert spread.end_date is None

    def test_create_rejects_multiday(self, calendar):
        with pytest.raises(ValueError):
            Spread.create(Period.MULTIDAY, utc(2026, 1, 1), calendar)

    def test_multiday_bounds_normalized(self, calendar):
        spread = Spread.create_multiday(utc(2026, 1, 5, 13), utc(2026, 1, 11, 22), calendar)
        assert spread.period is Period.MULTIDAY
        assert spread.date == spread.start_date == utc(2026, 1, 5)
        assert spread.end_date == utc(2026, 1, 11)

    def test_from_preset(self, calendar):
        spread = Spread.from_preset(MultidayPreset.NEXT_WEEK, utc(2026, 1, 1), calendar, FirstWeekday.MONDAY)
        assert (spread.start_date, spread.end_date) == (utc(2026, 1, 5), utc(2026, 1, 11))

    def test_ids_are_unique(self, calendar):
        a = Spread.create(Period.DAY, utc(2026, 1, 1), calendar)
        b = Spread.create(Period.DAY, utc(2026, 1, 1), calendar)
        assert a.id != b.id
        assert a.key(calendar) == b.key(calendar)

    def test_contains(self, calendar):
        month = Spread.create(Period.MONTH, utc(2026, 1, 1), calendar)
        assert month.contains(utc(2026, 1, 31, 23), calendar)
        assert not month.contains(utc(2026, 2, 1), calendar)

        week = Spread.create_multiday(utc(2026, 1, 5), utc(2026, 1, 11), calendar)
        assert week.contains(utc(2026, 1, 5), calendar)
        assert week.contains(utc(2026, 1, 11, 23, 59), calendar)
        assert not week.contains(utc(2026, 1, 12), calendar)

    def test_matches_requires_same_period(self, calendar):
        month = Spread.create(Period.MONTH, utc(2026, 1, 1), calendar)
        assert month.matches(Period.MONTH, utc(2026, 1, 20), calendar)
        assert not month.matches(Period.DAY, utc(2026, 1, 1), calendar)

    @pytest.mark.parametrize("period,value,label", [
        (Period.YEAR, utc(2026, 5, 5), "2026"),
        (Period.MONTH, utc(2026, 1, 5), "Jan"),
        (Period.DAY, utc(2026, 1, 5), "5"),
    ])
    def test_display_label(self, calendar, period, value, label):
        assert Spread.create(period, value, calendar).display_label(calendar) == label

    def test_multiday_labels(self, calendar):
        same_month = Spread.create_multiday(utc(2026, 1, 5), utc(2026, 1, 11), calendar)
        across = Spread.create_multiday(utc(2026, 1, 29), utc(2026, 2, 4), calendar)
        assert same_month.display_label(calendar) == "5-11"
        assert across.display_label(calendar) == "Jan 29-Feb 4"

    def test_round_trip(self, calendar):
        spread = Spread.create_multiday(utc(2026, 1, 5), utc(2026, 1, 11), calendar)
        assert Spread.from_dict(spread.to_dict()) == spread


class TestAssignments:
    """Tests for assignment matching."""

    def test_exact_period_match(self, calendar):
        assignment = TaskAssignment(period=Period.DAY, date=utc(2026, 1, 5))
        assert assignment.matches(Period.DAY, utc(2026, 1, 5, 17), calendar)
        assert not assignment.matches(Period.MONTH, utc(2026, 1, 1), calendar)
        assert not assignment.matches(Period.DAY, utc(2026, 1, 6), calendar)

    def test_build_assignment_by_kind(self, calendar):
        task = Task(title="t", date=utc(2026, 1, 5))
        note = Note(title="n", date=utc(2026, 1, 5))
        assert isinstance(build_assignment(task, Period.DAY, utc(2026, 1, 5), TaskStatus.OPEN), TaskAssignment)
        assert isinstance(build_assignment(note, Period.DAY, utc(2026, 1, 5), NoteStatus.ACTIVE), NoteAssignment)

    def test_events_have_no_assignment_status(self):
        event = Event(title="e", start_date=utc(2026, 1, 5), end_date=utc(2026, 1, 5))
        with pytest.raises(TypeError):
            active_status(event)
        with pytest.raises(TypeError):
            migrated_status(event)
        with pytest.raises(TypeError):
            build_assignment(event, Period.DAY, utc(2026, 1, 5), TaskStatus.OPEN)


class TestEntries:
    """Tests for the entry union."""

    def test_kinds(self):
        assert Task(title="t", date=utc(2026, 1, 1)).kind is EntryKind.TASK
        assert Note(title="n", date=utc(2026, 1, 1)).kind is EntryKind.NOTE
        assert Event(title="e", start_date=utc(2026, 1, 1), end_date=utc(2026, 1, 1)).kind is EntryKind.EVENT

    def test_entry_from_dict_dispatches_on_kind(self):
        task = Task(
            title="Write report",
            date=utc(2026, 1, 5),
            status=TaskStatus.COMPLETE,
            assignments=[TaskAssignment(Period.DAY, utc(2026, 1, 5), TaskStatus.COMPLETE)],
        )
        note = Note(title="Idea", date=utc(2026, 1, 5), content="details")
        event = Event(
            title="Offsite",
            start_date=utc(2026, 1, 5),
            end_date=utc(2026, 1, 7),
            timing=EventTiming.MULTI_DAY,
        )
        assert entry_from_dict(task.to_dict()) == task
        assert entry_from_dict(note.to_dict()) == note
        assert entry_from_dict(event.to_dict()) == event

    def test_copy_entry_has_independent_assignments(self):
        task = Task(title="t", date=utc(2026, 1, 5),
                    assignments=[TaskAssignment(Period.DAY, utc(2026, 1, 5))])
        copied = copy_entry(task)
        copied.assignments.append(TaskAssignment(Period.MONTH, utc(2026, 1, 1)))
        assert len(task.assignments) == 1
        assert copied.id == task.id

    def test_is_cancelled(self):
        assert is_cancelled(Task(title="t", date=utc(2026, 1, 1), status=TaskStatus.CANCELLED))
        assert not is_cancelled(Task(title="t", date=utc(2026, 1, 1)))
        assert not is_cancelled(Note(title="n", date=utc(2026, 1, 1)))


class TestEventAppearsOn:
    """Tests for computed event visibility."""

    def test_day_and_month(self, calendar):
        event = Event(title="e", start_date=utc(2026, 1, 3), end_date=utc(2026, 1, 6))
        assert event.appears_on(Period.DAY, utc(2026, 1, 5), calendar)
        assert event.appears_on(Period.DAY, utc(2026, 1, 6), calendar)
        assert not event.appears_on(Period.DAY, utc(2026, 1, 7), calendar)
        assert event.appears_on(Period.MONTH, utc(2026, 1, 1), calendar)
        assert not event.appears_on(Period.MONTH, utc(2026, 2, 1), calendar)

    def test_event_crossing_year_boundary(self, calendar):
        event = Event(title="e", start_date=utc(2025, 12, 30), end_date=utc(2026, 1, 2))
        assert event.appears_on(Period.YEAR, utc(2026, 1, 1), calendar)
        assert event.appears_on(Period.YEAR, utc(2025, 1, 1), calendar)
        assert not event.appears_on(Period.YEAR, utc(2027, 1, 1), calendar)

    def test_multiday_range(self, calendar):
        event = Event(title="e", start_date=utc(2026, 1, 11), end_date=utc(2026, 1, 12))
        assert event.appears_on(Period.MULTIDAY, utc(2026, 1, 5), calendar, end_date=utc(2026, 1, 11))
        assert not event.appears_on(Period.MULTIDAY, utc(2026, 1, 1), calendar, end_date=utc(2026, 1, 10))


class TestSnapshot:
    """Tests for JournalSnapshot lookups."""

    def test_find_entry_includes_cancelled(self):
        task = Task(title="t", date=utc(2026, 1, 1), status=TaskStatus.CANCELLED)
        snapshot = JournalSnapshot(tasks=[task])
        assert snapshot.find_entry(task.id) is task
        assert snapshot.find_entry("missing") is None

    def test_find_spread(self, calendar):
        spread = Spread.create(Period.DAY, utc(2026, 1, 1), calendar)
        snapshot = JournalSnapshot(spreads=[spread])
        assert snapshot.find_spread(spread.id) is spread
        assert snapshot.find_spread("missing") is None
