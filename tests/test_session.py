from __future__ import annotations

from pathlib import Path

import pytest

from vaultstage.changes import ChangeKind
from vaultstage.config import state_dir_for
from vaultstage.overlay import ConflictBundle
from vaultstage.renames import RenameTracker
from vaultstage.session import CommitResult, StagingSession
from vaultstage.store import FileSystemStore


def test_propose_assigns_identity(store: FileSystemStore) -> None:
    session = StagingSession(store)
    first = session.propose("create", "a.md", after="A", message_id="m1")
    second = session.propose(ChangeKind.CREATE, "./b.md", after="B", message_id="m1")

    assert first.id != second.id
    assert len(first.id) == 26
    assert first.timestamp.tzinfo is not None
    assert second.path == "b.md"


def test_propose_validates_required_fields(store: FileSystemStore) -> None:
    session = StagingSession(store)
    with pytest.raises(ValueError, match="create requires"):
        session.propose("create", "a.md")
    with pytest.raises(ValueError, match="modify requires"):
        session.propose("modify", "a.md", after="x")
    with pytest.raises(ValueError, match="delete requires"):
        session.propose("delete", "a.md")
    with pytest.raises(ValueError, match="rename requires"):
        session.propose("rename", "a.md")
    with pytest.raises(ValueError):
        session.propose("copy", "a.md", after="x")
    assert session.pending() == []


def test_peek_view_and_abandon(vault: Path, store: FileSystemStore) -> None:
    (vault / "note.md").write_text("Hello", encoding="utf-8")
    session = StagingSession(store)
    session.propose("modify", "note.md", before="Hello", after="Hi", message_id="step-1")

    composite = session.peek("note.md")
    assert composite is not None
    assert composite.kind == ChangeKind.MODIFY
    assert session.view("note.md") == "Hi"

    assert session.abandon("step-1") == 1
    assert session.peek("note.md") is None
    assert session.view("note.md") == "Hello"
    assert session.abandon("step-1") == 0


def test_commit_reports_each_path(vault: Path, store: FileSystemStore) -> None:
    (vault / "drifted.md").write_text("edited by hand", encoding="utf-8")
    session = StagingSession(store)
    session.propose("create", "new.md", after="fresh")
    session.propose("modify", "drifted.md", before="original", after="agent")
    session.propose("delete", "missing.md", before="x")

    results = session.commit()
    by_path = {r.path: r for r in results}

    assert by_path["new.md"] == CommitResult(path="new.md", ok=True, kind=ChangeKind.CREATE)
    assert by_path["drifted.md"].ok is False
    assert by_path["drifted.md"].error_type == "DriftError"
    assert by_path["missing.md"].ok is False
    assert by_path["missing.md"].error_type == "MissingTargetError"

    assert (vault / "new.md").read_text(encoding="utf-8") == "fresh"
    assert (vault / "drifted.md").read_text(encoding="utf-8") == "edited by hand"
    assert set(session.ledger.paths()) == {"drifted.md", "missing.md"}


def test_commit_selected_paths(store: FileSystemStore) -> None:
    session = StagingSession(store)
    session.propose("create", "a.md", after="A")
    session.propose("create", "b.md", after="B")

    results = session.commit(["b.md", "nothing.md"])
    assert results[0].ok is True
    assert results[1].to_dict() == {
        "path": "nothing.md",
        "ok": False,
        "error": "nothing staged",
        "error_type": "NotStaged",
    }
    assert session.ledger.paths() == ["a.md"]


def test_conflict_blocks_commit_until_resolved(vault: Path, store: FileSystemStore) -> None:
    (vault / "note.md").write_text("Goodbye", encoding="utf-8")
    session = StagingSession(store)
    session.propose("modify", "note.md", before="Hello", after="Hi", message_id="m1")

    assert isinstance(session.view("note.md"), ConflictBundle)
    [result] = session.commit(["note.md"])
    assert result.ok is False
    assert (vault / "note.md").read_text(encoding="utf-8") == "Goodbye"

    # Resolution: drop the staged edit and keep the human's version.
    session.abandon("m1")
    assert session.view("note.md") == "Goodbye"


def test_locate_prefers_staged_rename(vault: Path, store: FileSystemStore) -> None:
    (vault / "old.md").write_text("A", encoding="utf-8")
    session = StagingSession(store)
    session.propose("modify", "old.md", before="A", after="B")
    session.propose("rename", "new.md", old_path="old.md")

    assert session.locate("new.md") == "new.md"
    assert session.locate("old.md") == "old.md"  # still on disk


def test_commit_rename_only(vault: Path, store: FileSystemStore) -> None:
    (vault / "draft.md").write_text("text", encoding="utf-8")
    session = StagingSession(store)
    session.propose("rename", "final.md", old_path="draft.md", message_id="m1")

    assert session.pending() == []
    assert session.moves() == {"final.md": "draft.md"}
    assert session.locate("final.md") == "final.md"

    (result,) = session.commit()
    assert result == CommitResult(path="final.md", ok=True, kind=ChangeKind.RENAME)
    assert (vault / "final.md").read_text(encoding="utf-8") == "text"
    assert session.moves() == {}


def test_commit_rename_only_reports_missing_file(store: FileSystemStore) -> None:
    session = StagingSession(store)
    session.propose("rename", "final.md", old_path="draft.md")

    (result,) = session.commit(["final.md"])
    assert result.ok is False
    assert result.kind == ChangeKind.RENAME
    assert result.error_type == "MissingTargetError"
    assert session.locate("draft.md") == "final.md"


def test_locate_falls_back_to_rename_log(vault: Path, store: FileSystemStore) -> None:
    tracker = RenameTracker()
    tracker.log_rename("moved.md", "archive/moved.md")
    session = StagingSession(store, renames=tracker)

    assert session.locate("moved.md") == "archive/moved.md"
    assert session.locate("never-existed.md") == "never-existed.md"


def test_locate_finds_staged_rename_of_missing_origin(vault: Path, store: FileSystemStore) -> None:
    session = StagingSession(store)
    session.propose("create", "draft.md", after="x")
    session.propose("rename", "final.md", old_path="draft.md")

    assert session.locate("draft.md") == "final.md"


def test_for_vault_wires_state_dir(vault: Path) -> None:
    session = StagingSession.for_vault(vault)
    session.propose("create", "a.md", after="hello", message_id="m1")
    session.commit()

    state_dir = state_dir_for(vault)
    assert (vault / "a.md").read_text(encoding="utf-8") == "hello"
    assert (state_dir / "audit.log").exists()
    assert session.renames is not None
    assert session.renames.log_path == state_dir / "renames.json"


def test_reset_drops_everything(store: FileSystemStore) -> None:
    session = StagingSession(store)
    session.propose("create", "a.md", after="A")
    session.reset()
    assert session.pending() == []
