"""
Audit log for committed changes.

Staged state disappears once a path is committed, so every write a flush makes
to the vault is recorded here: which change and agent step produced it, and
how many bytes it removed and wrote.

Storage format: JSON Lines in <state_dir>/audit.log, oldest first.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_FILE_NAME = "audit.log"


@dataclass(frozen=True)
class AuditEntry:
    """One committed path."""

    timestamp: str
    operation: str
    path: str
    change_id: str = ""
    message_id: str = ""
    bytes_erased: int = 0
    bytes_written: int = 0
    renamed_from: str | None = None

    @property
    def created_file(self) -> bool:
        return self.operation == "commit-create"

    @property
    def erased_file(self) -> bool:
        return self.operation == "commit-delete"

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        if d["renamed_from"] is None:
            del d["renamed_from"]
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditEntry":
        known = {f.name for f in fields(cls)}
        for required in ("timestamp", "operation", "path"):
            if required not in data:
                raise KeyError(required)
        return cls(**{k: v for k, v in data.items() if k in known})


def _byte_len(text: str | None) -> int:
    return len(text.encode("utf-8")) if text else 0


class AuditLog:
    """Append-only record of commits for one vault."""

    def __init__(self, state_dir: Path):
        self.state_dir = state_dir
        self.log_path = state_dir / AUDIT_FILE_NAME

    def record(
        self,
        operation: str,
        path: str,
        *,
        before: str | None = None,
        after: str | None = None,
        change_id: str = "",
        message_id: str = "",
        renamed_from: str | None = None,
    ) -> AuditEntry:
        """
        Append an entry for one committed path.

        Args:
            operation: "commit-create", "commit-modify", "commit-delete" or "commit-rename"
            path: Vault-relative path that was written or removed
            before: Content the commit replaced or deleted
            after: Content the commit wrote
            change_id: Id of the newest change folded into the commit
            message_id: Agent step that change belongs to
            renamed_from: Previous location when the commit also moved the file
        """
        entry = AuditEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            operation=operation,
            path=path,
            change_id=change_id,
            message_id=message_id,
            bytes_erased=_byte_len(before),
            bytes_written=_byte_len(after),
            renamed_from=renamed_from,
        )

        self.state_dir.mkdir(parents=True, exist_ok=True)
        with self.log_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict()) + "\n")
        return entry

    def read(self, last_n: int | None = None) -> list[AuditEntry]:
        """Entries oldest first; `last_n` keeps only the newest N. Malformed lines are skipped."""
        if not self.log_path.exists():
            return []

        entries: list[AuditEntry] = []
        with self.log_path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(AuditEntry.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, TypeError):
                    continue

        if last_n is not None:
            return entries[-last_n:] if last_n > 0 else []
        return entries


def format_audit_entry(entry: AuditEntry) -> str:
    """Multi-line summary of an entry for the terminal."""
    header = f"[{entry.timestamp}] {entry.operation} {entry.path}"
    if entry.renamed_from:
        header += f" (moved from {entry.renamed_from})"

    lines = [header]
    if entry.erased_file:
        lines.append(f"  Removed file ({entry.bytes_erased} bytes)")
    elif entry.created_file:
        lines.append(f"  New file ({entry.bytes_written} bytes)")
    elif entry.operation == "commit-rename":
        lines.append("  Moved file, content unchanged")
    else:
        lines.append(f"  Replaced {entry.bytes_erased} bytes with {entry.bytes_written} bytes")

    if entry.change_id:
        lines.append(f"  change: {entry.change_id}")
    if entry.message_id:
        lines.append(f"  message: {entry.message_id}")
    return "\n".join(lines)
