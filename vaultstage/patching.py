"""
Text patching for rebasing staged edits onto drifted content.

A staged edit records the text it was based on (`before`) and the text it
wants (`after`). When the live text has moved on, the before→after diff is
turned into a fuzzy patch and applied to the live text. The outcome is one of
two values, Patched or PatchFailed; patch failure is an expected result and
is never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from diff_match_patch import diff_match_patch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Patched:
    """All patch fragments applied cleanly."""

    content: str


@dataclass(frozen=True)
class PatchFailed:
    """At least one fragment did not apply, or the patch had no effect."""

    reason: str
    applied: int = 0
    total: int = 0


PatchResult = Union[Patched, PatchFailed]


@dataclass(frozen=True)
class PatchSettings:
    """Tuning knobs passed through to diff-match-patch."""

    match_threshold: float = 0.5
    delete_threshold: float = 0.5
    margin: int = 4


class TextPatcher:
    """Builds and applies diff-match-patch patches."""

    def __init__(self, settings: PatchSettings | None = None):
        self.settings = settings or PatchSettings()
        self.dmp = diff_match_patch()
        self.dmp.Match_Threshold = self.settings.match_threshold
        self.dmp.Patch_DeleteThreshold = self.settings.delete_threshold
        self.dmp.Patch_Margin = self.settings.margin

    def rebase(
        self,
        before: str,
        after: str,
        current: str,
        *,
        require_change: bool = False,
    ) -> PatchResult:
        """
        Apply the before→after edit onto `current`.

        Args:
            before: Text the edit was made against
            after: Text the edit produced
            current: Text to apply the edit to
            require_change: Treat a patch that leaves `current` untouched as a
                failure (used when replaying history, where a no-op means the
                edit did not land)

        Returns:
            Patched with the merged text, or PatchFailed
        """
        if before == current:
            return Patched(after)

        try:
            patches = self.dmp.patch_make(before, after)
            if not patches:
                return Patched(current)
            merged, results = self.dmp.patch_apply(patches, current)
        except ValueError as e:
            logger.debug("patch engine rejected input: %s", e)
            return PatchFailed(reason=f"patch engine error: {e}")

        applied = sum(1 for ok in results if ok)
        if applied != len(results):
            return PatchFailed(
                reason=f"{len(results) - applied} of {len(results)} fragment(s) did not apply",
                applied=applied,
                total=len(results),
            )
        if require_change and merged == current:
            return PatchFailed(reason="patch had no effect", applied=applied, total=len(results))
        return Patched(merged)

    def patch_text(self, before: str, after: str) -> str:
        """Render the before→after edit in diff-match-patch's textual patch format."""
        return self.dmp.patch_toText(self.dmp.patch_make(before, after))
