"""
Staging session: the surface tool and UI layers use.

A session wires a ledger, an overlay and (optionally) a rename tracker
together and exposes the five operations callers need: propose, peek,
abandon, view and commit. Commit reports a result per path instead of
raising, so one drifted file does not hide the outcome of the others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from .audit_log import AuditLog
from .changes import (
    ChangeKind,
    CompositeChange,
    CreateChange,
    DeleteChange,
    ModifyChange,
    RenameChange,
    TrackedChange,
)
from .config import OverlayConfig, load_config, state_dir_for
from .errors import DriftError, MissingTargetError
from .ledger import ChangeLedger
from .overlay import ReadResult, VaultOverlay
from .patching import TextPatcher
from .renames import RenameTracker
from .store import DocumentStore, FileSystemStore
from .util import new_ulid, normalize_path, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitResult:
    """Outcome of committing one path."""

    path: str
    ok: bool
    kind: ChangeKind | None = None
    error: str | None = None
    error_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"path": self.path, "ok": self.ok}
        if self.kind is not None:
            d["kind"] = self.kind.value
        if self.error is not None:
            d["error"] = self.error
            d["error_type"] = self.error_type
        return d


class StagingSession:
    """Stages agent edits against a store and commits them on request."""

    def __init__(
        self,
        store: DocumentStore,
        ledger: ChangeLedger | None = None,
        *,
        renames: RenameTracker | None = None,
        audit: AuditLog | None = None,
        patcher: TextPatcher | None = None,
    ):
        self.store = store
        self.ledger = ledger if ledger is not None else ChangeLedger(patcher)
        self.overlay = VaultOverlay(store, self.ledger, audit=audit)
        self.renames = renames

    @classmethod
    def for_vault(
        cls,
        vault_path: Path,
        *,
        config: OverlayConfig | None = None,
        ledger: ChangeLedger | None = None,
    ) -> "StagingSession":
        """Session over a vault directory with state in its `.vaultstage/` sibling."""
        state_dir = state_dir_for(vault_path)
        config = config or load_config(state_dir)
        patcher = TextPatcher(config.patch)
        return cls(
            FileSystemStore(vault_path),
            ledger if ledger is not None else ChangeLedger(patcher),
            renames=RenameTracker(state_dir, settings=config.renames),
            audit=AuditLog(state_dir),
            patcher=patcher,
        )

    def propose(
        self,
        kind: ChangeKind | str,
        path: str,
        *,
        before: str | None = None,
        after: str | None = None,
        old_path: str | None = None,
        message_id: str = "",
        description: str = "",
        timestamp: datetime | None = None,
    ) -> TrackedChange:
        """
        Stage an edit. The change id and (unless given) timestamp are assigned here.

        Raises:
            ValueError: If a field the kind requires is missing
        """
        kind = ChangeKind(kind)
        path = normalize_path(path)
        common = {
            "id": new_ulid(),
            "timestamp": timestamp or utc_now(),
            "message_id": message_id,
            "path": path,
            "description": description,
        }

        change: TrackedChange
        if kind == ChangeKind.CREATE:
            if after is None:
                raise ValueError("create requires 'after'")
            change = CreateChange(after=after, **common)
        elif kind == ChangeKind.MODIFY:
            if before is None or after is None:
                raise ValueError("modify requires 'before' and 'after'")
            change = ModifyChange(before=before, after=after, **common)
        elif kind == ChangeKind.DELETE:
            if before is None:
                raise ValueError("delete requires 'before'")
            change = DeleteChange(before=before, **common)
        else:
            if old_path is None:
                raise ValueError("rename requires 'old_path'")
            change = RenameChange(old_path=normalize_path(old_path), **common)

        self.overlay.write_change(change)
        return change

    def peek(self, path: str) -> CompositeChange | None:
        """Pending net effect for a path."""
        return self.ledger.get(normalize_path(path))

    def pending(self) -> list[CompositeChange]:
        return list(self.ledger)

    def moves(self) -> dict[str, str]:
        """Files staged only for renaming: new path -> current path."""
        return self.ledger.moves()

    def abandon(self, message_id: str) -> int:
        """Discard every edit from one agent step. Unknown ids are a no-op."""
        return self.ledger.discard(message_id)

    def view(self, path: str) -> ReadResult:
        """Drift-reconciled content of a path."""
        return self.overlay.read_file(normalize_path(path))

    def commit(self, paths: Iterable[str] | None = None) -> list[CommitResult]:
        """
        Commit staged paths one at a time.

        A failed path stays staged and is reported; the remaining paths are
        still attempted.
        """
        targets = [normalize_path(p) for p in paths] if paths is not None else self.ledger.committable()
        results: list[CommitResult] = []

        for path in targets:
            entry = self.ledger.get(path)
            if entry is not None:
                kind = entry.kind
            elif self.ledger.move_origin(path) is not None:
                kind = ChangeKind.RENAME
            else:
                results.append(CommitResult(path=path, ok=False, error="nothing staged", error_type="NotStaged"))
                continue
            try:
                self.overlay.flush([path])
            except (DriftError, MissingTargetError, FileExistsError, OSError) as e:
                logger.warning("commit of %s failed: %s", path, e)
                results.append(
                    CommitResult(path=path, ok=False, kind=kind, error=str(e), error_type=type(e).__name__)
                )
                continue
            results.append(CommitResult(path=path, ok=True, kind=kind))

        return results

    def locate(self, path: str) -> str:
        """
        Current location of a file that may have moved.

        Staged renames are checked first; the on-disk rename log is the
        fallback when the ledger knows nothing about the path.
        """
        path = normalize_path(path)
        if self.ledger.has(path) or self.store.exists(path):
            return path

        for composite in self.ledger:
            if composite.is_renamed and composite.origin_path == path:
                return composite.path
        for new_path, origin in self.ledger.moves().items():
            if origin == path:
                return new_path

        if self.renames is not None:
            moved = self.renames.find_rename(path)
            if moved is not None:
                return moved
        return path

    def reset(self) -> None:
        self.ledger.reset()
