"""Rename tracking commands - watch the vault and query the rename log."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config import OverlayConfig, load_config, state_dir_for
from ..renames import RenameTracker
from ..watcher import run_watch_loop


def _tracker(vault_path: Path) -> tuple[RenameTracker, OverlayConfig]:
    state_dir = state_dir_for(vault_path)
    config = load_config(state_dir)
    return RenameTracker(state_dir, settings=config.renames), config


def run_watch(vault_path: Path) -> int:
    """
    Watch the vault and log renames until interrupted (Ctrl+C).

    Returns the number of renames logged.
    """
    console = Console(stderr=True)
    tracker, config = _tracker(vault_path)

    console.print(f"[bold]Watching[/bold] {vault_path}")
    console.print(f"  Extensions: {', '.join(sorted(config.watch.relevant_extensions))}")
    console.print(f"  Rename log: {tracker.log_path}")
    console.print()
    console.print("[dim]Press Ctrl+C to stop watching[/dim]")
    console.print()

    count = 0

    def on_rename(old_path: str, new_path: str) -> None:
        nonlocal count
        count += 1
        timestamp = datetime.now().strftime("%H:%M:%S")
        console.print(f"[dim]{timestamp}[/dim] > {old_path} -> {new_path}", highlight=False)

    run_watch_loop(vault_path, tracker, settings=config.watch, on_rename=on_rename)

    console.print()
    console.print(f"[bold]Stopped.[/bold] Logged {count} renames.")
    return count


def run_renames_list(vault_path: Path, *, max_age_days: float | None = None, output_json: bool = False) -> int:
    """
    Show recent renames.

    Returns the number of renames displayed.
    """
    console = Console()
    tracker, _config = _tracker(vault_path)
    max_age = max_age_days * 24 * 60 * 60 if max_age_days is not None else None
    events = tracker.recent_renames(max_age)

    if output_json:
        print(json.dumps([e.to_dict() for e in events], indent=2))
        return len(events)

    if not events:
        console.print("[dim]No renames logged.[/dim]")
        return 0

    table = Table(title="Recent renames")
    table.add_column("when", style="dim")
    table.add_column("from", style="cyan")
    table.add_column("to", style="green")
    for e in events:
        table.add_row(datetime.fromtimestamp(e.timestamp).strftime("%Y-%m-%d %H:%M:%S"), e.old_path, e.new_path)
    console.print(table)
    return len(events)


def run_renames_find(vault_path: Path, path: str, *, max_age_days: float | None = None) -> int:
    """
    Resolve where a path has moved to.

    Returns 0 if a rename was found, 1 otherwise.
    """
    tracker, _config = _tracker(vault_path)
    max_age = max_age_days * 24 * 60 * 60 if max_age_days is not None else None
    found = tracker.find_rename(path, max_age)
    if found is None:
        Console(stderr=True).print(f"[dim]No rename recorded for {path}[/dim]")
        return 1
    print(found)
    return 0
