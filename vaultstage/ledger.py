"""
Path-keyed change ledger.

The ledger owns the ordered history of proposed edits for every current path
and the composite change derived from it. Composites are computed state: they
are produced by folding a path's history and can always be recomputed from it.
The ledger performs no disk I/O.

Rules for folding a history are in `fold_changes`. A rename moves the whole
history of its source path to the destination key, so a path's list always
describes one lineage.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Sequence

from .changes import (
    ChangeKind,
    CompositeChange,
    CreateChange,
    DeleteChange,
    ModifyChange,
    RenameChange,
    TrackedChange,
)
from .patching import Patched, TextPatcher

logger = logging.getLogger(__name__)


def _ordered(changes: Iterable[TrackedChange]) -> list[TrackedChange]:
    # sorted() is stable, so equal timestamps keep insertion order.
    return sorted(changes, key=lambda c: c.timestamp)


def _identity(change: TrackedChange) -> dict:
    return {
        "id": change.id,
        "timestamp": change.timestamp,
        "message_id": change.message_id,
        "description": change.description,
        "path": change.path,
    }


def _first_composite(change: TrackedChange) -> CompositeChange:
    """Start a composite from the first content change of a lineage."""
    if isinstance(change, CreateChange):
        return CompositeChange(kind=ChangeKind.CREATE, before=None, after=change.after, **_identity(change))
    if isinstance(change, ModifyChange):
        return CompositeChange(kind=ChangeKind.MODIFY, before=change.before, after=change.after, **_identity(change))
    if isinstance(change, DeleteChange):
        return CompositeChange(kind=ChangeKind.DELETE, before=change.before, after=None, **_identity(change))
    raise TypeError(f"Not a content change: {type(change).__name__}")


def _replay_modify(current: str | None, change: ModifyChange, patcher: TextPatcher) -> str:
    """
    Apply a modification on top of the accumulated content.

    If the modification was made against different text than what has
    accumulated (an intermediate edit was discarded), its diff is patched onto
    the accumulated text. When the patch does not apply, the modification's own
    `after` wins.
    """
    if current is None or change.before == current:
        return change.after

    result = patcher.rebase(change.before, change.after, current, require_change=True)
    if isinstance(result, Patched):
        return result.content

    logger.debug("replay of %s on %s fell back to its own content: %s", change.id, change.path, result.reason)
    return change.after


def _merge(acc: CompositeChange, change: TrackedChange, patcher: TextPatcher) -> CompositeChange | None:
    """Fold one content change into the accumulator. Returns None on cancellation."""
    ident = _identity(change)
    lineage = {"renamed_from": acc.renamed_from, "origin_path": acc.origin_path}

    if acc.kind == ChangeKind.CREATE:
        if isinstance(change, CreateChange):
            return CompositeChange(kind=ChangeKind.CREATE, before=None, after=change.after, **lineage, **ident)
        if isinstance(change, ModifyChange):
            after = _replay_modify(acc.after, change, patcher)
            return CompositeChange(kind=ChangeKind.CREATE, before=None, after=after, **lineage, **ident)
        if isinstance(change, DeleteChange):
            return None

    elif acc.kind == ChangeKind.MODIFY:
        if isinstance(change, CreateChange):
            return CompositeChange(kind=ChangeKind.CREATE, before=None, after=change.after, **lineage, **ident)
        if isinstance(change, ModifyChange):
            after = _replay_modify(acc.after, change, patcher)
            return CompositeChange(kind=ChangeKind.MODIFY, before=acc.before, after=after, **lineage, **ident)
        if isinstance(change, DeleteChange):
            return CompositeChange(kind=ChangeKind.DELETE, before=acc.before, after=None, **lineage, **ident)

    elif acc.kind == ChangeKind.DELETE:
        if isinstance(change, (CreateChange, ModifyChange)):
            # Re-creating a deleted file is a modification of the original.
            return CompositeChange(kind=ChangeKind.MODIFY, before=acc.before, after=change.after, **lineage, **ident)
        if isinstance(change, DeleteChange):
            return CompositeChange(kind=ChangeKind.DELETE, before=acc.before, after=None, **lineage, **ident)

    raise TypeError(f"Cannot fold {type(change).__name__} into {acc.kind.value} composite")


def fold_changes(
    changes: Sequence[TrackedChange],
    *,
    patcher: TextPatcher | None = None,
    seed: CompositeChange | None = None,
) -> CompositeChange | None:
    """
    Compute the net change of a lineage by folding its history.

    Changes are applied in timestamp order. `seed` starts the fold from an
    existing composite instead of from nothing (used to continue from a rebased
    composite). Returns None when there is no content change or the lineage
    cancels out (a creation followed by a deletion).
    """
    patcher = patcher or TextPatcher()
    acc = seed.copy() if seed is not None else None

    # A rename seen before any content change only moves the lineage.
    moved_from: str | None = None
    origin: str | None = None

    for change in _ordered(changes):
        if isinstance(change, RenameChange):
            if acc is None:
                origin = origin or change.old_path
                moved_from = change.old_path
            else:
                acc = acc.copy(renamed_from=acc.path, **_identity(change))
            continue

        if acc is None:
            acc = _first_composite(change)
            acc.origin_path = origin or change.path
            acc.renamed_from = moved_from
            moved_from = origin = None
            continue

        acc = _merge(acc, change, patcher)
        if acc is None:
            logger.debug("lineage for %s cancelled out at %s", change.path, change.id)

    return acc


class ChangeLedger:
    """
    In-memory, path-keyed history of proposed edits.

    The ledger is the sole owner of tracked changes and composites. Callers
    mutate it only through `add`, `discard`, `remove`, `reset`, and (for the
    overlay's rebase step) `update`.
    """

    def __init__(self, patcher: TextPatcher | None = None):
        self.patcher = patcher or TextPatcher()
        self._changes: dict[str, list[TrackedChange]] = {}
        self._composites: dict[str, CompositeChange] = {}
        # path -> (id of the newest change when rebased, rebased composite)
        self._rebases: dict[str, tuple[str, CompositeChange]] = {}

    def __len__(self) -> int:
        return len(self._composites)

    def __iter__(self) -> Iterator[CompositeChange]:
        for path in self.paths():
            yield self._composites[path]

    # --- Mutation ---

    def add(self, change: TrackedChange) -> CompositeChange | None:
        """
        Append a change to its lineage and recompute the composite.

        A rename moves the history of `old_path` to `path`. Renaming onto a
        path that already has a pending composite is rejected.

        Returns the lineage's new composite, or None if it has no net effect.
        """
        if isinstance(change, RenameChange):
            if change.path != change.old_path and (
                change.path in self._composites or self.move_origin(change.path) is not None
            ):
                raise ValueError(
                    f"Cannot rename {change.old_path} to {change.path}: destination has staged changes"
                )
            moved = self._changes.pop(change.old_path, [])
            self._composites.pop(change.old_path, None)
            rebase = self._rebases.pop(change.old_path, None)

            self._changes[change.path] = [*moved, change]
            self._rebases.pop(change.path, None)
            if rebase is not None:
                self._rebases[change.path] = rebase
            key = change.path
        elif isinstance(change, (CreateChange, ModifyChange, DeleteChange)):
            self._changes.setdefault(change.path, []).append(change)
            key = change.path
        else:
            raise TypeError(f"Unknown change type: {type(change).__name__}")

        self._recompute(key)
        return self._composites.get(key)

    def update(self, path: str, patched: CompositeChange) -> CompositeChange:
        """
        Replace the composite's before/after after a successful rebase.

        The history is left untouched. The correction is anchored to the newest
        change in the lineage: later additions fold on top of it, and it is
        dropped if that change is discarded.
        """
        current = self._composites.get(path)
        if current is None:
            raise KeyError(f"No staged changes for {path}")

        rebased = current.copy(before=patched.before, after=patched.after)
        anchor = _ordered(self._changes[path])[-1]
        self._rebases[path] = (anchor.id, rebased)
        self._composites[path] = rebased
        return rebased

    def discard(self, message_id: str) -> int:
        """
        Remove every change from one agent step and recompute affected lineages.

        Unknown message ids are a no-op. Never raises.

        Returns the number of changes removed.
        """
        removed = 0
        for path in list(self._changes):
            changes = self._changes[path]
            kept = [c for c in changes if c.message_id != message_id]
            if len(kept) == len(changes):
                continue

            if not kept:
                removed += len(changes)
                self._drop(path)
                continue

            # Undoing a rename moves the lineage back to where it now lives.
            key = _ordered(kept)[-1].path
            if key != path and key in self._changes:
                # The old location is staged again, so the lineage stays put.
                logger.info("keeping rename of %s from message %s: %s has staged changes", path, message_id, key)
                kept = [c for c in changes if c.message_id != message_id or isinstance(c, RenameChange)]
                key = path
            elif key != path:
                rebase = self._rebases.get(path)
                self._drop(path)
                if rebase is not None:
                    self._rebases[key] = rebase

            removed += len(changes) - len(kept)
            if len(kept) == len(changes):
                continue
            self._changes[key] = kept
            self._recompute(key)

        if removed:
            logger.debug("discarded %d change(s) from message %s", removed, message_id)
        return removed

    def remove(self, path: str) -> list[TrackedChange]:
        """Drop the full history of a path. Returns the removed changes."""
        return self._drop(path)

    def reset(self) -> None:
        self._changes.clear()
        self._composites.clear()
        self._rebases.clear()

    # --- Queries ---

    def get(self, path: str) -> CompositeChange | None:
        return self._composites.get(path)

    def has(self, path: str) -> bool:
        return self.get(path) is not None

    def paths(self) -> list[str]:
        """Paths with a pending composite, in order of first staging."""
        return [p for p in self._changes if p in self._composites]

    def move_origin(self, path: str) -> str | None:
        """
        Where a file staged only for renaming currently lives.

        A lineage made of renames alone has no composite but still moves a
        file when committed. Returns None for any other lineage, and for a
        file renamed back to where it started.
        """
        changes = self._changes.get(path)
        if not changes or path in self._composites:
            return None
        if not all(isinstance(c, RenameChange) for c in changes):
            return None
        origin = _ordered(changes)[0].old_path
        return origin if origin != path else None

    def moves(self) -> dict[str, str]:
        """Rename-only lineages: destination path -> origin path."""
        found: dict[str, str] = {}
        for path in self._changes:
            origin = self.move_origin(path)
            if origin is not None:
                found[path] = origin
        return found

    def committable(self) -> list[str]:
        """Paths a flush acts on: composites and rename-only moves, in order of first staging."""
        return [p for p in self._changes if p in self._composites or self.move_origin(p) is not None]

    def history(self, path: str) -> list[TrackedChange]:
        """Ordered changes recorded under a path (including cancelled lineages)."""
        return _ordered(self._changes.get(path, []))

    def lineages(self) -> dict[str, list[TrackedChange]]:
        """All recorded histories keyed by current path."""
        return {path: list(changes) for path, changes in self._changes.items()}

    def rebases(self) -> dict[str, tuple[str, CompositeChange]]:
        return dict(self._rebases)

    def message_ids(self) -> list[str]:
        """Distinct message ids with changes in the ledger, oldest first."""
        seen: dict[str, None] = {}
        for change in _ordered(c for changes in self._changes.values() for c in changes):
            seen.setdefault(change.message_id, None)
        return list(seen)

    # --- Internals ---

    def _drop(self, path: str) -> list[TrackedChange]:
        self._composites.pop(path, None)
        self._rebases.pop(path, None)
        return self._changes.pop(path, [])

    def _recompute(self, path: str) -> None:
        ordered = _ordered(self._changes.get(path, []))
        if not ordered:
            self._drop(path)
            return

        seed: CompositeChange | None = None
        tail: list[TrackedChange] = ordered
        rebase = self._rebases.get(path)
        if rebase is not None:
            anchor_id, rebased = rebase
            index = next((i for i, c in enumerate(ordered) if c.id == anchor_id), None)
            if index is None:
                del self._rebases[path]
            else:
                seed = rebased
                tail = ordered[index + 1:]

        composite = fold_changes(tail, patcher=self.patcher, seed=seed)
        if composite is None:
            self._composites.pop(path, None)
        else:
            self._composites[path] = composite
