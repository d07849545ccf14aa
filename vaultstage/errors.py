"""Exceptions raised when committing staged changes."""

from __future__ import annotations


class DriftError(ValueError):
    """The store's content no longer matches the baseline a staged change was made against."""

    def __init__(self, path: str, message: str | None = None):
        self.path = path
        super().__init__(message or f"Conflict on {path}: disk changed since snapshot")


class MissingTargetError(FileNotFoundError):
    """A commit needs an existing file that is not in the store."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Expected file at {path}")
