"""
On-disk journal of staged changes.

The ledger itself is in memory. The journal lets a session outlive one
process (the CLI stages edits across invocations) by writing every recorded
change, plus any rebase corrections, to <state_dir>/staged.jsonl.

Storage format: JSON Lines - one record per line, in timestamp order.
Change records carry `"record": "change"`, rebase records `"record": "rebase"`
and follow the change they are anchored to.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .changes import change_from_dict, change_to_dict
from .ledger import ChangeLedger
from .patching import TextPatcher

logger = logging.getLogger(__name__)

JOURNAL_FILE_NAME = "staged.jsonl"


class SessionJournal:
    """Saves and restores a ChangeLedger."""

    def __init__(self, state_dir: Path):
        self.state_dir = state_dir
        self.journal_path = state_dir / JOURNAL_FILE_NAME

    def save(self, ledger: ChangeLedger) -> int:
        """
        Write the ledger's full state, replacing the previous journal.

        Returns the number of change records written.
        """
        changes = sorted(
            (c for lineage in ledger.lineages().values() for c in lineage),
            key=lambda c: c.timestamp,
        )
        anchors: dict[str, dict[str, Any]] = {}
        for path, (anchor_id, rebased) in ledger.rebases().items():
            anchors[anchor_id] = {
                "record": "rebase",
                "path": path,
                "anchor_id": anchor_id,
                "before": rebased.before,
                "after": rebased.after,
            }

        lines: list[str] = []
        for change in changes:
            lines.append(json.dumps({"record": "change", **change_to_dict(change)}, separators=(",", ":")))
            if change.id in anchors:
                # Replay re-anchors under the key the change was recorded at.
                rebase = {**anchors[change.id], "path": change.path}
                lines.append(json.dumps(rebase, separators=(",", ":")))

        self.state_dir.mkdir(parents=True, exist_ok=True)
        temp_path = self.journal_path.with_suffix(".tmp")
        temp_path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
        temp_path.replace(self.journal_path)
        return len(changes)

    def load(self, patcher: TextPatcher | None = None) -> ChangeLedger:
        """
        Rebuild a ledger by replaying the journal.

        Malformed lines are skipped. A missing journal yields an empty ledger.
        """
        ledger = ChangeLedger(patcher)
        if not self.journal_path.exists():
            return ledger

        with self.journal_path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                    self._replay(ledger, data)
                except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                    logger.warning("skipping journal record: %s", e)
                    continue

        return ledger

    def clear(self) -> None:
        if self.journal_path.exists():
            self.journal_path.unlink()

    def _replay(self, ledger: ChangeLedger, data: dict[str, Any]) -> None:
        record = data.get("record")
        if record == "change":
            ledger.add(change_from_dict(data))
        elif record == "rebase":
            composite = ledger.get(data["path"])
            if composite is None:
                return
            history = ledger.history(data["path"])
            if not history or history[-1].id != data["anchor_id"]:
                return
            ledger.update(data["path"], composite.copy(before=data.get("before"), after=data.get("after")))
