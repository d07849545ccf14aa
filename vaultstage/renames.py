"""
Rename tracking for files moved on disk.

Renames observed in the vault (not staged renames) are kept in a bounded,
time-windowed log. When staged state is lost, e.g. after a reset or restart,
the log recovers where a file has moved to. The log is the only state here
that survives a restart: it is loaded once when the tracker is built and saved
after every recorded rename.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from .config import RenameSettings

logger = logging.getLogger(__name__)

RENAMES_FILE_NAME = "renames.json"


@dataclass(frozen=True)
class RenameEvent:
    """A file moved from `old_path` to `new_path` at `timestamp` (epoch seconds)."""

    old_path: str
    new_path: str
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {"old_path": self.old_path, "new_path": self.new_path, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RenameEvent":
        return cls(
            old_path=str(data["old_path"]),
            new_path=str(data["new_path"]),
            timestamp=float(data["timestamp"]),
        )


class RenameTracker:
    """
    Bounded log of on-disk renames.

    Entries older than the retention window are pruned, and only the most
    recent `max_entries` are kept.
    """

    def __init__(
        self,
        state_dir: Path | None = None,
        *,
        settings: RenameSettings | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or RenameSettings()
        self.log_path = state_dir / RENAMES_FILE_NAME if state_dir is not None else None
        self._clock = clock
        self._events: list[RenameEvent] = []
        self._load()

    def log_rename(self, old_path: str, new_path: str) -> RenameEvent | None:
        """
        Record a rename, prune, and persist.

        Returns the recorded event, or None if either path is ignored.
        """
        if self._is_ignored(old_path) or self._is_ignored(new_path):
            return None

        event = RenameEvent(old_path=old_path, new_path=new_path, timestamp=self._clock())
        self._events.append(event)
        self._prune()
        self._save()
        logger.debug("logged rename: %s -> %s", old_path, new_path)
        return event

    def find_rename(self, old_path: str, max_age: float | None = None) -> str | None:
        """
        Follow the rename chain starting at `old_path` (A→B→C returns C).

        Args:
            old_path: Path to resolve
            max_age: Only consider renames newer than this many seconds
                (defaults to the retention window)

        Returns:
            The final path, or None if the path was not renamed
        """
        recent = self.recent_renames(max_age)

        current = old_path
        visited: set[str] = set()
        while current not in visited:
            visited.add(current)
            # The earliest rename out of a path starts its chain.
            event = next((e for e in recent if e.old_path == current), None)
            if event is None:
                break
            current = event.new_path
        else:
            logger.debug("circular rename detected for path: %s", current)

        return current if current != old_path else None

    def recent_renames(self, max_age: float | None = None) -> list[RenameEvent]:
        """Renames newer than `max_age` seconds, oldest first."""
        window = self.settings.max_age_seconds if max_age is None else max_age
        cutoff = self._clock() - window
        return [e for e in self._events if e.timestamp > cutoff]

    def __len__(self) -> int:
        return len(self._events)

    # --- internals ---

    def _is_ignored(self, path: str) -> bool:
        return any(path.endswith(suffix) for suffix in self.settings.ignore_suffixes)

    def _prune(self) -> None:
        cutoff = self._clock() - self.settings.max_age_seconds
        self._events = [e for e in self._events if e.timestamp > cutoff]
        if len(self._events) > self.settings.max_entries:
            self._events = self._events[-self.settings.max_entries:]

    def _load(self) -> None:
        if self.log_path is None or not self.log_path.exists():
            return
        try:
            data = json.loads(self.log_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("ignoring unreadable rename log at %s", self.log_path)
            return
        if not isinstance(data, list):
            return

        events = []
        for raw in data:
            try:
                events.append(RenameEvent.from_dict(raw))
            except (KeyError, TypeError, ValueError):
                continue  # Skip malformed entries
        self._events = events
        self._prune()
        logger.debug("loaded %d rename entries from %s", len(self._events), self.log_path)

    def _save(self) -> None:
        if self.log_path is None:
            return
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.log_path.with_suffix(".tmp")
        temp_path.write_text(json.dumps([e.to_dict() for e in self._events], indent=2), encoding="utf-8")
        temp_path.replace(self.log_path)
