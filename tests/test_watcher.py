from __future__ import annotations

import time
from pathlib import Path

from watchdog.events import FileCreatedEvent, FileDeletedEvent, FileModifiedEvent, FileMovedEvent

from vaultstage.renames import RenameTracker
from vaultstage.watcher import RENAME_PAIR_SECONDS, VaultRenameHandler, compute_file_hash


def _handler(vault: Path) -> tuple[VaultRenameHandler, RenameTracker, list[tuple[str, str]]]:
    seen: list[tuple[str, str]] = []
    tracker = RenameTracker()
    handler = VaultRenameHandler(vault, tracker, on_rename=lambda old, new: seen.append((old, new)))
    return handler, tracker, seen


def test_move_is_logged_with_relative_paths(vault: Path) -> None:
    handler, tracker, seen = _handler(vault)
    (vault / "notes").mkdir()
    (vault / "notes" / "b.md").write_text("x", encoding="utf-8")

    handler.on_moved(FileMovedEvent(str(vault / "a.md"), str(vault / "notes" / "b.md")))

    assert seen == [("a.md", "notes/b.md")]
    assert tracker.find_rename("a.md") == "notes/b.md"


def test_irrelevant_and_hidden_files_are_ignored(vault: Path) -> None:
    handler, tracker, seen = _handler(vault)

    handler.on_moved(FileMovedEvent(str(vault / "a.png"), str(vault / "b.png")))
    handler.on_moved(FileMovedEvent(str(vault / ".obsidian" / "a.md"), str(vault / ".obsidian" / "b.md")))
    handler.on_moved(FileMovedEvent(str(vault / "a.md"), str(vault.parent / "outside.md")))

    assert seen == []
    assert len(tracker) == 0


def test_delete_then_create_with_same_content_is_a_rename(vault: Path) -> None:
    handler, tracker, seen = _handler(vault)
    old = vault / "old.md"
    new = vault / "new.md"
    old.write_text("same content", encoding="utf-8")
    handler.on_created(FileCreatedEvent(str(old)))

    old.rename(new)
    handler.on_deleted(FileDeletedEvent(str(old)))
    handler.on_created(FileCreatedEvent(str(new)))

    assert seen == [("old.md", "new.md")]


def test_delete_then_create_with_new_content_is_not_a_rename(vault: Path) -> None:
    handler, tracker, seen = _handler(vault)
    old = vault / "old.md"
    old.write_text("before", encoding="utf-8")
    handler.on_created(FileCreatedEvent(str(old)))
    old.write_text("after", encoding="utf-8")
    handler.on_modified(FileModifiedEvent(str(old)))

    old.unlink()
    handler.on_deleted(FileDeletedEvent(str(old)))
    (vault / "new.md").write_text("before", encoding="utf-8")
    handler.on_created(FileCreatedEvent(str(vault / "new.md")))

    assert seen == []


def test_old_deletions_are_forgotten(vault: Path) -> None:
    handler, _tracker, seen = _handler(vault)
    handler.deleted_hashes["stale"] = ("long-gone.md", time.time() - 10 * RENAME_PAIR_SECONDS)
    note = vault / "note.md"
    note.write_text("x", encoding="utf-8")
    handler.on_created(FileCreatedEvent(str(note)))

    note.unlink()
    handler.on_deleted(FileDeletedEvent(str(note)))

    assert "stale" not in handler.deleted_hashes
    assert [path for path, _ in handler.deleted_hashes.values()] == ["note.md"]
    assert seen == []


def test_compute_file_hash(tmp_path: Path) -> None:
    path = tmp_path / "f.md"
    path.write_text("x", encoding="utf-8")
    assert compute_file_hash(path) is not None
    assert len(compute_file_hash(path) or "") == 16
    assert compute_file_hash(tmp_path / "missing.md") is None
