"""
Tests for the CLI command functions.

Each run_* function loads the vault's journal, acts, and saves it again, so
consecutive calls behave like separate CLI invocations.
"""

from __future__ import annotations

import json
from pathlib import Path

from vaultstage.commands.audit_cmd import run_audit
from vaultstage.commands.renames_cmd import run_renames_find, run_renames_list
from vaultstage.commands.stage_cmd import (
    run_abandon,
    run_commit,
    run_propose,
    run_reset,
    run_show,
    run_status,
)
from vaultstage.config import state_dir_for
from vaultstage.renames import RenameTracker


def test_stage_status_and_commit(vault: Path, capsys) -> None:
    assert run_propose(vault, "create", "idea.md", content="# Idea\n", message_id="step-1") == 0
    capsys.readouterr()

    assert run_status(vault, output_json=True) == 1
    data = json.loads(capsys.readouterr().out)
    assert data[0]["path"] == "idea.md"
    assert data[0]["kind"] == "create"
    assert data[0]["message_id"] == "step-1"

    assert run_commit(vault) == 0
    assert (vault / "idea.md").read_text(encoding="utf-8") == "# Idea\n"
    assert run_status(vault) == 0

    capsys.readouterr()
    assert run_audit(vault, output_json=True) == 1
    entry = json.loads(capsys.readouterr().out)
    assert entry["operation"] == "commit-create"
    assert entry["path"] == "idea.md"


def test_modify_uses_current_view_as_baseline(vault: Path, capsys) -> None:
    (vault / "note.md").write_text("Hello", encoding="utf-8")

    assert run_propose(vault, "modify", "note.md", content="Hi") == 0
    assert run_propose(vault, "modify", "note.md", content="Hi!") == 0
    capsys.readouterr()

    assert run_show(vault, "note.md") == 0
    assert capsys.readouterr().out == "Hi!\n"

    assert run_commit(vault, ["note.md"]) == 0
    assert (vault / "note.md").read_text(encoding="utf-8") == "Hi!"


def test_propose_rejects_wrong_kind_for_path(vault: Path) -> None:
    (vault / "exists.md").write_text("x", encoding="utf-8")

    assert run_propose(vault, "create", "exists.md", content="y") == 1
    assert run_propose(vault, "modify", "missing.md", content="y") == 1
    assert run_propose(vault, "delete", "missing.md") == 1
    assert run_status(vault) == 0


def test_show_reports_conflict(vault: Path, capsys) -> None:
    (vault / "note.md").write_text("Hello", encoding="utf-8")
    run_propose(vault, "modify", "note.md", content="Hi")
    (vault / "note.md").write_text("Goodbye", encoding="utf-8")
    capsys.readouterr()

    assert run_show(vault, "note.md", output_json=True) == 2
    bundle = json.loads(capsys.readouterr().out)
    assert bundle == {"conflict": True, "reason": "text", "disk": "Goodbye", "staged": "Hi", "base": "Hello"}

    # The conflict also blocks further staging and the commit.
    assert run_propose(vault, "modify", "note.md", content="Hey") == 1
    assert run_commit(vault) == 1
    assert (vault / "note.md").read_text(encoding="utf-8") == "Goodbye"


def test_show_rebase_is_kept_between_invocations(vault: Path, capsys) -> None:
    (vault / "note.md").write_text("Hello", encoding="utf-8")
    run_propose(vault, "modify", "note.md", content="Hi")
    (vault / "note.md").write_text("Hello there", encoding="utf-8")

    assert run_show(vault, "note.md") == 0
    assert capsys.readouterr().out == "Hi there\n"

    # The rebased baseline was journaled, so the commit guard passes.
    assert run_commit(vault) == 0
    assert (vault / "note.md").read_text(encoding="utf-8") == "Hi there"


def test_show_missing_path(vault: Path) -> None:
    assert run_show(vault, "nothing.md") == 1


def test_abandon_and_reset(vault: Path) -> None:
    run_propose(vault, "create", "a.md", content="A", message_id="m1")
    run_propose(vault, "create", "b.md", content="B", message_id="m2")

    assert run_abandon(vault, "m1") == 0
    assert run_status(vault) == 1

    assert run_reset(vault) == 0
    assert run_status(vault) == 0
    assert not (state_dir_for(vault) / "staged.jsonl").exists()


def test_staged_rename_then_commit(vault: Path) -> None:
    (vault / "draft.md").write_text("text", encoding="utf-8")
    run_propose(vault, "modify", "draft.md", content="text, edited")
    assert run_propose(vault, "rename", "final.md", old_path="draft.md") == 0

    assert run_commit(vault) == 0
    assert not (vault / "draft.md").exists()
    assert (vault / "final.md").read_text(encoding="utf-8") == "text, edited"


def test_rename_only_is_listed_and_committed(vault: Path, capsys) -> None:
    (vault / "draft.md").write_text("text", encoding="utf-8")
    assert run_propose(vault, "rename", "final.md", old_path="draft.md", message_id="step-1") == 0

    assert run_status(vault, output_json=True) == 1
    (row,) = json.loads(capsys.readouterr().out)
    assert row["kind"] == "rename"
    assert (row["path"], row["origin_path"], row["message_id"]) == ("final.md", "draft.md", "step-1")

    assert run_show(vault, "final.md") == 0
    assert capsys.readouterr().out == "text\n"

    assert run_commit(vault) == 0
    assert not (vault / "draft.md").exists()
    assert (vault / "final.md").read_text(encoding="utf-8") == "text"
    assert run_status(vault) == 0


def test_rename_only_commit_fails_without_file(vault: Path) -> None:
    run_propose(vault, "rename", "final.md", old_path="draft.md")

    assert run_commit(vault) == 1
    assert run_status(vault) == 1


def test_renames_list_and_find(vault: Path, capsys) -> None:
    tracker = RenameTracker(state_dir_for(vault))
    tracker.log_rename("a.md", "b.md")
    tracker.log_rename("b.md", "c.md")

    assert run_renames_list(vault, output_json=True) == 2
    data = json.loads(capsys.readouterr().out)
    assert [e["old_path"] for e in data] == ["a.md", "b.md"]

    assert run_renames_find(vault, "a.md") == 0
    assert capsys.readouterr().out.strip() == "c.md"
    assert run_renames_find(vault, "zzz.md") == 1


def test_audit_empty(vault: Path) -> None:
    assert run_audit(vault) == 0
