"""Error types raised by the notes repository.

Every failure that can reach the HTTP layer derives from ``NotesError`` so
the API can translate it into a single descriptive message.
"""
from __future__ import annotations


class NotesError(Exception):
    """Base class for repository failures."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(NotesError, ValueError):
    """A user supplied name or path was rejected before any I/O."""

    status_code = 400


class NotFoundError(NotesError):
    status_code = 404


class ConflictError(NotesError):
    """The target already exists where a unique name is required."""

    status_code = 409


class SelfMoveError(NotesError):
    """A folder cannot be moved into itself or one of its descendants."""

    status_code = 400


class StorageError(NotesError):
    """The underlying storage failed to read, write or list."""

    status_code = 500
