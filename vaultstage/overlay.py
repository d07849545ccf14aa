"""
Overlay mediator between the change ledger and the real store.

Reads consult the ledger first and reconcile staged edits with whatever is on
disk now. When disk has drifted from a staged edit's baseline, the edit is
re-based onto the live text with a fuzzy patch; if that fails, the caller gets
a ConflictBundle instead of text. Writes only touch the ledger. Flush is the
only operation that mutates the store.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from typing import Any, Iterable, Literal

from .audit_log import AuditLog
from .changes import ChangeKind, CompositeChange, TrackedChange
from .errors import DriftError, MissingTargetError
from .ledger import ChangeLedger
from .patching import Patched, TextPatcher
from .store import DocumentStore

logger = logging.getLogger(__name__)

ConflictReason = Literal["text", "deleted"]


@dataclass(frozen=True)
class ConflictBundle:
    """
    Automatic reconciliation failed; the caller must decide.

    reason "text": disk and staged edits diverged beyond auto-merge.
    reason "deleted": one side deleted the file while the other kept it.
    """

    reason: ConflictReason
    disk: str | None
    staged: str | None = None
    base: str | None = None

    @property
    def conflict(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"conflict": True, "reason": self.reason, "disk": self.disk}
        if self.staged is not None:
            d["staged"] = self.staged
        if self.base is not None:
            d["base"] = self.base
        return d


ReadResult = str | ConflictBundle | None


class VaultOverlay:
    """
    Lazily reconciling view of a store with staged changes on top.

    The ledger is injected so several overlays (per test, per scope) can exist
    side by side. Only this class calls `ChangeLedger.update`; the rebase it
    performs happens within a single `read_file` call with no ledger mutation
    in between.
    """

    def __init__(
        self,
        store: DocumentStore,
        ledger: ChangeLedger,
        *,
        patcher: TextPatcher | None = None,
        audit: AuditLog | None = None,
    ):
        self.store = store
        self.ledger = ledger
        self.patcher = patcher or ledger.patcher
        self.audit = audit

    def read_file(self, path: str, *, raw: bool = False) -> ReadResult:
        """
        Read a path as it would look with staged changes applied.

        Args:
            path: Vault-relative path
            raw: Bypass the ledger and return the store's content

        Returns:
            Text, None if the file does not exist (or is staged for deletion
            and already gone), or a ConflictBundle
        """
        if raw:
            return self.store.read_current(path)

        entry = self.ledger.get(path)
        if entry is None:
            origin = self.ledger.move_origin(path)
            if origin is not None and not self.store.exists(path):
                return self.store.read_current(origin)
            return self.store.read_current(path)

        disk = self._read_live(entry)

        if entry.kind == ChangeKind.DELETE:
            if disk is None:
                return None
            return ConflictBundle(reason="deleted", disk=disk, base=entry.before)

        if entry.kind in (ChangeKind.CREATE, ChangeKind.MODIFY):
            if entry.before is None or disk == entry.before:
                return entry.after

            if disk is None:
                logger.info("staged edit for %s lost its file on disk", path)
                return ConflictBundle(reason="deleted", disk=None, staged=entry.after, base=entry.before)

            result = self.patcher.rebase(entry.before, entry.after or "", disk)
            if isinstance(result, Patched):
                # Promote the live text to the new baseline so the commit guard passes.
                self.ledger.update(path, entry.copy(before=disk, after=result.content))
                logger.debug("rebased staged edit for %s onto drifted disk content", path)
                return result.content

            logger.info("staged edit for %s conflicts with disk: %s", path, result.reason)
            return ConflictBundle(reason="text", disk=disk, staged=entry.after, base=entry.before)

        raise TypeError(f"Unexpected composite kind for {path}: {entry.kind}")

    def write_change(self, change: TrackedChange) -> CompositeChange | None:
        """Stage a change. No disk access."""
        return self.ledger.add(change)

    def flush(self, paths: Iterable[str] | None = None) -> list[str]:
        """
        Commit composites to the store, in order, removing each from the ledger.

        There is no cross-path atomicity: a failure leaves the failing path
        staged and propagates, while earlier paths stay committed.

        A path staged only for renaming is committed as a move of its file.

        Raises:
            DriftError: A modification's baseline no longer matches disk
            MissingTargetError: A modification, deletion or move has no file to act on
            FileExistsError: A creation or move would overwrite an existing file

        Returns:
            Paths that were committed
        """
        targets = list(paths) if paths is not None else self.ledger.committable()
        committed: list[str] = []

        for path in targets:
            entry = self.ledger.get(path)
            if entry is not None:
                self._commit(entry)
            else:
                origin = self.ledger.move_origin(path)
                if origin is None:
                    continue
                self._commit_move(path, origin)
            self.ledger.remove(path)
            committed.append(path)

        return committed

    # --- helpers ---

    def _source_path(self, entry: CompositeChange) -> str:
        """Where the entry's baseline lives on disk: its origin until the rename is committed."""
        if entry.is_renamed and not self.store.exists(entry.path) and self.store.exists(entry.origin_path):
            return entry.origin_path
        return entry.path

    def _read_live(self, entry: CompositeChange) -> str | None:
        return self.store.read_current(self._source_path(entry))

    def _ensure_parent_exists(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if parent and not self.store.exists(parent):
            self.store.ensure_container(parent)

    def _commit(self, entry: CompositeChange) -> None:
        path = entry.path

        if entry.kind == ChangeKind.CREATE:
            self._ensure_parent_exists(path)
            self.store.create(path, entry.after or "")
            self._record("commit-create", entry, path, None, entry.after)

        elif entry.kind == ChangeKind.MODIFY:
            source = self._source_path(entry)
            live = self.store.read_current(source)
            if live is None:
                raise MissingTargetError(path)
            if live != entry.before:
                logger.warning("refusing to commit %s: disk changed since snapshot", path)
                raise DriftError(path)
            renamed_from = None
            if source != path:
                self._ensure_parent_exists(path)
                self.store.rename(source, path)
                renamed_from = source
            self.store.overwrite(path, entry.after or "")
            self._record("commit-modify", entry, path, live, entry.after, renamed_from=renamed_from)

        elif entry.kind == ChangeKind.DELETE:
            source = self._source_path(entry)
            live = self.store.read_current(source)
            if live is None:
                raise MissingTargetError(path)
            self.store.delete(source)
            self._record("commit-delete", entry, source, live, None)

        else:
            raise TypeError(f"Unexpected composite kind for {path}: {entry.kind}")

        logger.info("committed %s %s", entry.kind.value, path)

    def _commit_move(self, path: str, origin: str) -> None:
        if not self.store.exists(origin):
            raise MissingTargetError(origin)
        if self.store.exists(path):
            raise FileExistsError(f"File already exists: {path}")

        self._ensure_parent_exists(path)
        self.store.rename(origin, path)
        newest = self.ledger.history(path)[-1]
        self._record("commit-rename", newest, path, None, None, renamed_from=origin)
        logger.info("committed rename %s -> %s", origin, path)

    def _record(
        self,
        operation: str,
        entry: CompositeChange | TrackedChange,
        path: str,
        before: str | None,
        after: str | None,
        *,
        renamed_from: str | None = None,
    ) -> None:
        if self.audit is None:
            return
        self.audit.record(
            operation,
            path,
            before=before,
            after=after,
            change_id=entry.id,
            message_id=entry.message_id,
            renamed_from=renamed_from,
        )
