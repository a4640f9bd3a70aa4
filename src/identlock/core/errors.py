"""Exceptions raised by identlock."""

from __future__ import annotations


class IdentLockError(Exception):
    """Base exception for identlock."""


class StorageError(IdentLockError):
    """A storage backend could not complete an operation."""


class StorageUnavailableError(StorageError):
    """The backend failed with an I/O error, a quota error or similar."""

    def __init__(self, message: str, *, key: str | None = None):
        super().__init__(message)
        self.key = key


class SerializationError(StorageError):
    """A value could not be encoded for storage."""
