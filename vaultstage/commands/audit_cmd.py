"""Audit command - review committed changes."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console

from ..audit_log import AuditLog, format_audit_entry
from ..config import state_dir_for


def run_audit(vault_path: Path, *, last_n: int | None = None, output_json: bool = False) -> int:
    """
    Display entries from the audit log.

    Returns the number of entries displayed.
    """
    console = Console()
    entries = AuditLog(state_dir_for(vault_path)).read(last_n=last_n)

    if not entries:
        console.print("[dim]No commits logged yet.[/dim]")
        return 0

    for entry in entries:
        if output_json:
            print(json.dumps(entry.to_dict()))
        else:
            console.print(format_audit_entry(entry), highlight=False)
            console.print()

    return len(entries)
