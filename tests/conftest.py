"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from vaultstage.changes import CreateChange, DeleteChange, ModifyChange, RenameChange
from vaultstage.store import FileSystemStore


class ChangeFactory:
    """Builds tracked changes with unique ids and increasing timestamps."""

    def __init__(self) -> None:
        self._count = 0
        self._base = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _next(self) -> dict:
        self._count += 1
        return {
            "id": f"change-{self._count:03d}",
            "timestamp": self._base + timedelta(seconds=self._count),
        }

    def create(self, path: str, after: str, message_id: str = "m1") -> CreateChange:
        return CreateChange(path=path, after=after, message_id=message_id, **self._next())

    def modify(self, path: str, before: str, after: str, message_id: str = "m1") -> ModifyChange:
        return ModifyChange(path=path, before=before, after=after, message_id=message_id, **self._next())

    def delete(self, path: str, before: str, message_id: str = "m1") -> DeleteChange:
        return DeleteChange(path=path, before=before, message_id=message_id, **self._next())

    def rename(self, old_path: str, path: str, message_id: str = "m1") -> RenameChange:
        return RenameChange(old_path=old_path, path=path, message_id=message_id, **self._next())


@pytest.fixture
def changes() -> ChangeFactory:
    """Factory for tracked changes."""
    return ChangeFactory()


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """Empty vault content directory."""
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def store(vault: Path) -> FileSystemStore:
    return FileSystemStore(vault)
