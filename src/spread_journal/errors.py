"""Exception hierarchy for journal operations."""

from __future__ import annotations

from typing import Optional


class JournalError(Exception):
    """Base exception for journal operations."""
    pass


class SpreadCreationError(JournalError):
    """Raised when asked to create a spread the creation policy rejects.

    `reason` carries the structured CreationCheck so callers can render a
    specific message.
    """

    def __init__(self, reason, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or f"Spread cannot be created: {reason.value}")


class NotFoundError(JournalError, LookupError):
    """Raised when an entry or spread id no longer exists."""
    pass


class MigrationError(JournalError):
    """Base class for rejected migrations."""
    pass


class NoSourceAssignmentError(MigrationError):
    """The entry has no assignment on the source spread."""
    pass


class UnsupportedEntryKindError(MigrationError, TypeError):
    """The entry kind cannot take part in this migration (events, batch notes)."""
    pass


class TaskCancelledError(MigrationError):
    """Cancelled tasks are never migrated."""
    pass


class DestinationNotAssignableError(MigrationError):
    """The destination spread does not accept assignments (multiday)."""
    pass
