"""
Tracked change types for the staging ledger.

A TrackedChange is one atomic, attributable edit proposed by an agent step.
The four kinds form a closed set; every site that inspects a change matches
on the concrete class and rejects anything else.

CompositeChange is the net effect of a path's change history. It is derived
state: the ledger recomputes it by folding the history and never stores it as
the source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Union


class ChangeKind(str, Enum):
    """Kinds of proposed edits."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    RENAME = "rename"


# Kinds a composite may carry; renames are absorbed into these.
CONTENT_KINDS = frozenset({ChangeKind.CREATE, ChangeKind.MODIFY, ChangeKind.DELETE})


@dataclass(frozen=True)
class CreateChange:
    """A new file with full content."""

    kind = ChangeKind.CREATE

    id: str
    timestamp: datetime
    message_id: str
    path: str
    after: str
    description: str = ""

    @property
    def before(self) -> None:
        return None


@dataclass(frozen=True)
class ModifyChange:
    """A content edit from a baseline snapshot to new content."""

    kind = ChangeKind.MODIFY

    id: str
    timestamp: datetime
    message_id: str
    path: str
    before: str
    after: str
    description: str = ""


@dataclass(frozen=True)
class DeleteChange:
    """Removal of a file; `before` is its content at the time of deletion."""

    kind = ChangeKind.DELETE

    id: str
    timestamp: datetime
    message_id: str
    path: str
    before: str
    description: str = ""

    @property
    def after(self) -> None:
        return None


@dataclass(frozen=True)
class RenameChange:
    """A move from `old_path` to `path`. Carries no content."""

    kind = ChangeKind.RENAME

    id: str
    timestamp: datetime
    message_id: str
    old_path: str
    path: str
    description: str = ""

    @property
    def before(self) -> None:
        return None

    @property
    def after(self) -> None:
        return None


TrackedChange = Union[CreateChange, ModifyChange, DeleteChange, RenameChange]


@dataclass
class CompositeChange:
    """
    Net effective change for one current path.

    `before` is None when the lineage began with a creation; `after` is None
    when the net effect is a deletion. `renamed_from` is the path held before
    the most recent rename, `origin_path` the path of the earliest change.
    Identity fields come from the most recent contributing change.
    """

    path: str
    kind: ChangeKind
    id: str
    timestamp: datetime
    message_id: str = ""
    description: str = ""
    before: str | None = None
    after: str | None = None
    renamed_from: str | None = None
    origin_path: str | None = None

    @property
    def is_renamed(self) -> bool:
        return self.origin_path is not None and self.origin_path != self.path

    def copy(self, **changes: Any) -> "CompositeChange":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding unset optional fields."""
        d: dict[str, Any] = {
            "path": self.path,
            "kind": self.kind.value,
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "message_id": self.message_id,
        }
        if self.description:
            d["description"] = self.description
        if self.before is not None:
            d["before"] = self.before
        if self.after is not None:
            d["after"] = self.after
        if self.renamed_from:
            d["renamed_from"] = self.renamed_from
        if self.origin_path and self.origin_path != self.path:
            d["origin_path"] = self.origin_path
        return d


def change_to_dict(change: TrackedChange) -> dict[str, Any]:
    """Convert a tracked change to a JSON-serializable dict."""
    if not isinstance(change, (CreateChange, ModifyChange, DeleteChange, RenameChange)):
        raise TypeError(f"Unknown change type: {type(change).__name__}")

    d: dict[str, Any] = {
        "kind": change.kind.value,
        "id": change.id,
        "timestamp": change.timestamp.isoformat(),
        "message_id": change.message_id,
        "path": change.path,
    }
    if change.description:
        d["description"] = change.description

    if isinstance(change, CreateChange):
        d["after"] = change.after
    elif isinstance(change, ModifyChange):
        d["before"] = change.before
        d["after"] = change.after
    elif isinstance(change, DeleteChange):
        d["before"] = change.before
    else:
        d["old_path"] = change.old_path
    return d


def change_from_dict(data: dict[str, Any]) -> TrackedChange:
    """Reconstruct a tracked change from its dict form."""
    kind = ChangeKind(data["kind"])
    common: dict[str, Any] = {
        "id": data["id"],
        "timestamp": datetime.fromisoformat(data["timestamp"]),
        "message_id": data.get("message_id", ""),
        "path": data["path"],
        "description": data.get("description", ""),
    }

    if kind == ChangeKind.CREATE:
        return CreateChange(after=data["after"], **common)
    if kind == ChangeKind.MODIFY:
        return ModifyChange(before=data["before"], after=data["after"], **common)
    if kind == ChangeKind.DELETE:
        return DeleteChange(before=data["before"], **common)
    return RenameChange(old_path=data["old_path"], **common)
