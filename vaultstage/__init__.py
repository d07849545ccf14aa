"""
vaultstage - staged edits over a vault of text notes.

An agent proposes edits; they accumulate in a change ledger without touching
the vault, can be viewed per path with live-disk drift reconciled by text
patching, and are committed selectively with a drift guard.
"""

__version__ = "0.1.0"

from .changes import (
    ChangeKind,
    CompositeChange,
    CreateChange,
    DeleteChange,
    ModifyChange,
    RenameChange,
    TrackedChange,
)
from .errors import DriftError, MissingTargetError
from .ledger import ChangeLedger, fold_changes
from .overlay import ConflictBundle, VaultOverlay
from .patching import Patched, PatchFailed, TextPatcher
from .renames import RenameEvent, RenameTracker
from .session import CommitResult, StagingSession
from .store import DocumentStore, FileSystemStore

__all__ = [
    "__version__",
    # Changes
    "ChangeKind",
    "CompositeChange",
    "CreateChange",
    "DeleteChange",
    "ModifyChange",
    "RenameChange",
    "TrackedChange",
    # Ledger
    "ChangeLedger",
    "fold_changes",
    # Overlay
    "ConflictBundle",
    "VaultOverlay",
    "DriftError",
    "MissingTargetError",
    # Patching
    "Patched",
    "PatchFailed",
    "TextPatcher",
    # Renames
    "RenameEvent",
    "RenameTracker",
    # Session
    "CommitResult",
    "StagingSession",
    # Store
    "DocumentStore",
    "FileSystemStore",
]
