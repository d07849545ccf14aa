"""
File system watcher feeding the rename tracker.

This module provides:
- Watchdog-based monitoring of the vault directory
- Rename detection from move events and from delete+create pairs with
  identical content (editors that save by replacing files)
- Vault-relative path normalization before logging
"""

import hashlib
import logging
import time
from pathlib import Path
from typing import Callable

from watchdog.events import (
    FileSystemEventHandler,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)
from watchdog.observers import Observer

from .config import WatchSettings
from .renames import RenameTracker

logger = logging.getLogger(__name__)

# Delete+create with the same content within this window counts as a rename.
RENAME_PAIR_SECONDS = 5.0


def compute_file_hash(path: Path) -> str | None:
    """Compute SHA-256 hash of file contents."""
    try:
        content = path.read_bytes()
        return hashlib.sha256(content).hexdigest()[:16]  # First 16 chars
    except OSError:
        return None


class VaultRenameHandler(FileSystemEventHandler):
    """
    Turns file system events into rename log entries.

    Key behaviors:
    - Ignores hidden files and directories (including the state directory)
    - Filters to relevant file types
    - Logs vault-relative POSIX paths
    """

    def __init__(
        self,
        vault_path: Path,
        tracker: RenameTracker,
        settings: WatchSettings | None = None,
        on_rename: Callable[[str, str], None] | None = None,
    ):
        """
        Initialize the event handler.

        Args:
            vault_path: Path to vault content directory
            tracker: Rename tracker that records the renames
            settings: Which file types to track
            on_rename: Callback for rename notifications (old path, new path)
        """
        super().__init__()
        self.vault_path = vault_path.resolve()
        self.tracker = tracker
        self.settings = settings or WatchSettings()
        self.on_rename = on_rename

        # Track file hashes so delete+create pairs can be matched
        self.file_hashes: dict[str, str] = {}  # relative path -> hash
        self.deleted_hashes: dict[str, tuple[str, float]] = {}  # hash -> (relative path, timestamp)

    def _relative(self, path: str) -> str | None:
        """Vault-relative path if the file is relevant for tracking."""
        p = Path(path)
        try:
            rel = p.resolve().relative_to(self.vault_path)
        except ValueError:
            return None

        # Skip hidden files and directories
        if any(part.startswith(".") for part in rel.parts):
            return None

        if p.suffix.lower() not in self.settings.relevant_extensions:
            return None

        return rel.as_posix()

    def _emit(self, old_path: str, new_path: str) -> None:
        event = self.tracker.log_rename(old_path, new_path)
        if event is not None and self.on_rename:
            self.on_rename(old_path, new_path)

    def on_created(self, event: FileCreatedEvent) -> None:
        """Match a new file against recently deleted content."""
        if event.is_directory:
            return
        rel = self._relative(event.src_path)
        if rel is None:
            return

        new_hash = compute_file_hash(Path(event.src_path))
        if not new_hash:
            return
        self.file_hashes[rel] = new_hash

        deleted = self.deleted_hashes.pop(new_hash, None)
        if deleted is not None:
            old_rel, timestamp = deleted
            if time.time() - timestamp < RENAME_PAIR_SECONDS and old_rel != rel:
                self._emit(old_rel, rel)

    def on_modified(self, event: FileModifiedEvent) -> None:
        """Keep the content hash current."""
        if event.is_directory:
            return
        rel = self._relative(event.src_path)
        if rel is None:
            return
        new_hash = compute_file_hash(Path(event.src_path))
        if new_hash:
            self.file_hashes[rel] = new_hash

    def on_deleted(self, event: FileDeletedEvent) -> None:
        """Remember the deleted file's hash for rename detection."""
        if event.is_directory:
            return
        rel = self._relative(event.src_path)
        if rel is None:
            return
        now = time.time()
        self.deleted_hashes = {
            h: (path, timestamp)
            for h, (path, timestamp) in self.deleted_hashes.items()
            if now - timestamp < RENAME_PAIR_SECONDS
        }
        old_hash = self.file_hashes.pop(rel, None)
        if old_hash:
            self.deleted_hashes[old_hash] = (rel, now)

    def on_moved(self, event: FileMovedEvent) -> None:
        """Handle file rename/move."""
        if event.is_directory:
            return

        src = self._relative(event.src_path)
        dest = self._relative(event.dest_path)
        if src is None or dest is None:
            # Moved across the vault boundary: not a rename we can follow
            return

        if src in self.file_hashes:
            self.file_hashes[dest] = self.file_hashes.pop(src)
        self._emit(src, dest)


def watch_vault(
    vault_path: Path,
    tracker: RenameTracker,
    settings: WatchSettings | None = None,
    on_rename: Callable[[str, str], None] | None = None,
    recursive: bool = True,
) -> tuple[Observer, VaultRenameHandler]:
    """
    Start watching a vault for renames.

    Returns:
        Tuple of (observer, handler) - caller should call observer.stop() to stop watching
    """
    handler = VaultRenameHandler(
        vault_path=vault_path,
        tracker=tracker,
        settings=settings,
        on_rename=on_rename,
    )

    observer = Observer()
    observer.schedule(handler, str(vault_path), recursive=recursive)
    observer.start()
    logger.debug("watching %s for renames", vault_path)

    return observer, handler


def run_watch_loop(
    vault_path: Path,
    tracker: RenameTracker,
    settings: WatchSettings | None = None,
    on_rename: Callable[[str, str], None] | None = None,
) -> None:
    """
    Run the watch loop until interrupted.

    This is a blocking function.
    """
    observer, _handler = watch_vault(
        vault_path=vault_path,
        tracker=tracker,
        settings=settings,
        on_rename=on_rename,
    )

    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        observer.stop()

    observer.join()
