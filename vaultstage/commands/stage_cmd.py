"""Staging CLI commands - propose, inspect, abandon and commit edits."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..changes import ChangeKind, CompositeChange
from ..config import load_config, state_dir_for
from ..journal import SessionJournal
from ..overlay import ConflictBundle
from ..patching import TextPatcher
from ..session import StagingSession


KIND_ICONS = {
    ChangeKind.CREATE: "+",
    ChangeKind.MODIFY: "~",
    ChangeKind.DELETE: "-",
    ChangeKind.RENAME: ">",
}


def open_session(vault_path: Path) -> tuple[StagingSession, SessionJournal]:
    """Load the vault's staged changes from its journal."""
    state_dir = state_dir_for(vault_path)
    config = load_config(state_dir)
    journal = SessionJournal(state_dir)
    session = StagingSession.for_vault(vault_path, config=config, ledger=journal.load(TextPatcher(config.patch)))
    return session, journal


def run_propose(
    vault_path: Path,
    kind: str,
    path: str,
    *,
    content: str | None = None,
    old_path: str | None = None,
    message_id: str = "cli",
    description: str = "",
) -> int:
    """
    Stage one edit. Baselines for modify/delete are read from the vault.

    Returns exit code.
    """
    err = Console(stderr=True)
    session, journal = open_session(vault_path)
    change_kind = ChangeKind(kind)

    current = session.view(path)
    if isinstance(current, ConflictBundle):
        err.print(f"[red]Resolve the conflict on {path} before staging more edits.[/red]")
        return 1

    try:
        if change_kind == ChangeKind.CREATE:
            if current is not None:
                err.print(f"[red]{path} already exists; use modify.[/red]")
                return 1
            change = session.propose(
                change_kind, path, after=content or "", message_id=message_id, description=description
            )
        elif change_kind == ChangeKind.MODIFY:
            if current is None:
                err.print(f"[red]{path} does not exist; use create.[/red]")
                return 1
            change = session.propose(
                change_kind, path, before=current, after=content or "", message_id=message_id, description=description
            )
        elif change_kind == ChangeKind.DELETE:
            if current is None:
                err.print(f"[red]{path} does not exist.[/red]")
                return 1
            change = session.propose(
                change_kind, path, before=current, message_id=message_id, description=description
            )
        else:
            change = session.propose(
                change_kind, path, old_path=old_path, message_id=message_id, description=description
            )
    except ValueError as e:
        err.print(f"[red]{e}[/red]")
        return 1

    journal.save(session.ledger)
    err.print(f"Staged {change.kind.value} {change.path} [dim]({change.id})[/dim]")
    return 0


def _status_row(composite: CompositeChange) -> tuple[str, ...]:
    renamed = composite.origin_path if composite.is_renamed else ""
    return (
        f"{KIND_ICONS.get(composite.kind, '?')} {composite.kind.value}",
        composite.path,
        renamed or "",
        composite.message_id,
        composite.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
    )


def _move_dict(session: StagingSession, path: str, origin: str) -> dict:
    newest = session.ledger.history(path)[-1]
    return {
        "path": path,
        "kind": ChangeKind.RENAME.value,
        "id": newest.id,
        "timestamp": newest.timestamp.isoformat(),
        "message_id": newest.message_id,
        "origin_path": origin,
    }


def run_status(vault_path: Path, *, output_json: bool = False) -> int:
    """
    Show pending composites and files staged only for renaming.

    Returns the number of staged paths.
    """
    console = Console()
    session, _journal = open_session(vault_path)
    pending = session.pending()
    moves = [_move_dict(session, path, origin) for path, origin in session.moves().items()]
    total = len(pending) + len(moves)

    if output_json:
        print(json.dumps([c.to_dict() for c in pending] + moves, indent=2))
        return total

    if not total:
        console.print("[dim]Nothing staged.[/dim]")
        return 0

    table = Table(title="Staged changes")
    table.add_column("kind", style="bold")
    table.add_column("path", style="cyan")
    table.add_column("from", style="dim")
    table.add_column("message")
    table.add_column("updated", style="dim")
    for composite in pending:
        table.add_row(*_status_row(composite))
    for move in moves:
        table.add_row(
            f"{KIND_ICONS[ChangeKind.RENAME]} rename",
            move["path"],
            move["origin_path"],
            move["message_id"],
            move["timestamp"][:19].replace("T", " "),
        )
    console.print(table)
    return total


def run_show(vault_path: Path, path: str, *, output_json: bool = False, diff: bool = False) -> int:
    """
    Print the drift-reconciled view of a path.

    Returns 0 for content, 1 if the path does not exist, 2 on conflict.
    """
    console = Console()
    session, journal = open_session(vault_path)
    result = session.view(path)
    # A successful rebase updates the ledger; keep it.
    journal.save(session.ledger)

    if isinstance(result, ConflictBundle):
        if output_json:
            print(json.dumps(result.to_dict(), indent=2))
        else:
            title = "deleted on one side" if result.reason == "deleted" else "text diverged"
            body = [f"[bold]disk:[/bold]\n{result.disk if result.disk is not None else '(missing)'}"]
            if result.staged is not None:
                body.append(f"[bold]staged:[/bold]\n{result.staged}")
            console.print(Panel("\n\n".join(body), title=f"Conflict on {path}: {title}", border_style="red"))
        return 2

    if result is None:
        Console(stderr=True).print(f"[dim]{path} does not exist.[/dim]")
        return 1

    if output_json:
        print(json.dumps({"path": path, "content": result}))
    elif diff:
        composite = session.peek(path)
        base = composite.before if composite is not None and composite.before is not None else ""
        print(session.ledger.patcher.patch_text(base, result), end="")
    else:
        print(result, end="" if result.endswith("\n") else "\n")
    return 0


def run_abandon(vault_path: Path, message_id: str) -> int:
    """Discard all edits from one message. Returns exit code."""
    err = Console(stderr=True)
    session, journal = open_session(vault_path)
    removed = session.abandon(message_id)
    journal.save(session.ledger)
    if removed:
        err.print(f"Discarded {removed} change(s) from {message_id}")
    else:
        err.print(f"[dim]No changes from {message_id}[/dim]")
    return 0


def run_commit(vault_path: Path, paths: list[str] | None = None, *, output_json: bool = False) -> int:
    """
    Commit staged paths.

    Returns 0 if every path committed, 1 otherwise.
    """
    console = Console()
    session, journal = open_session(vault_path)
    results = session.commit(paths)
    journal.save(session.ledger)

    if output_json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
    elif not results:
        console.print("[dim]Nothing to commit.[/dim]")
    else:
        for r in results:
            if r.ok:
                console.print(f"[green]committed[/green] {r.path}")
            else:
                console.print(f"[red]failed[/red]    {r.path}: {r.error}", highlight=False)

    return 0 if all(r.ok for r in results) else 1


def run_reset(vault_path: Path) -> int:
    """Drop every staged change."""
    session, journal = open_session(vault_path)
    count = len(session.ledger.committable())
    session.reset()
    journal.clear()
    Console(stderr=True).print(f"Dropped {count} staged path(s)")
    return 0
