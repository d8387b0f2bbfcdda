"""Shared pytest fixtures for spread-journal tests."""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from spread_journal.config import JournalConfig
from spread_journal.engine import JournalEngine
from spread_journal.models import JournalSnapshot
from spread_journal.periods import JournalCalendar
from spread_journal.storage import RepositorySet

# Thursday; the Sunday-first week around it runs Dec 28 - Jan 3
TODAY = datetime(2026, 1, 1, 9, 30, tzinfo=timezone.utc)


def utc(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def calendar():
    """UTC calendar with Sunday as the first weekday."""
    return JournalCalendar()


@pytest.fixture
def temp_project():
    """Create a temporary journal root."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_project):
    """Create a test configuration."""
    return JournalConfig(name="test-journal", root=temp_project)


@pytest.fixture
def repositories():
    return RepositorySet.in_memory()


@pytest.fixture
def engine(config, repositories, calendar):
    """In-memory engine pinned to TODAY."""
    return JournalEngine(config, repositories=repositories, calendar=calendar, today=TODAY)


@pytest.fixture
def file_engine(config, calendar):
    """Engine persisting to JSON files under the temp root."""
    return JournalEngine(config, calendar=calendar, today=TODAY)


@pytest.fixture
def snapshot():
    return JournalSnapshot()
