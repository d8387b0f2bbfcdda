"""Spread Journal - a bullet-journal engine of spreads, entries, and migrations."""

from .config import JournalConfig, load_config
from .engine import JournalEngine
from .errors import (
    DestinationNotAssignableError,
    JournalError,
    MigrationError,
    NoSourceAssignmentError,
    NotFoundError,
    SpreadCreationError,
    TaskCancelledError,
    UnsupportedEntryKindError,
)
from .lifecycle import CreationCheck, StandardCreationPolicy
from .models import (
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
)
from .periods import FirstWeekday, JournalCalendar, MultidayPreset, Period
from .storage import RepositorySet

__version__ = "0.1.0"
