"""
Configuration for the staging engine.

Settings live in <state_dir>/config.toml, where the state directory is
`.vaultstage/` next to the vault content directory. A missing file means
defaults; unknown keys are ignored.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .patching import PatchSettings

STATE_DIR_NAME = ".vaultstage"
CONFIG_FILE_NAME = "config.toml"

DEFAULT_RENAME_MAX_ENTRIES = 1000
DEFAULT_RENAME_MAX_AGE_DAYS = 30


@dataclass(frozen=True)
class RenameSettings:
    max_entries: int = DEFAULT_RENAME_MAX_ENTRIES
    max_age_days: float = DEFAULT_RENAME_MAX_AGE_DAYS
    ignore_suffixes: tuple[str, ...] = (".chat",)

    @property
    def max_age_seconds(self) -> float:
        return self.max_age_days * 24 * 60 * 60


@dataclass(frozen=True)
class WatchSettings:
    relevant_extensions: frozenset[str] = frozenset({".md", ".txt", ".canvas"})


@dataclass(frozen=True)
class OverlayConfig:
    """Effective configuration."""

    patch: PatchSettings = field(default_factory=PatchSettings)
    renames: RenameSettings = field(default_factory=RenameSettings)
    watch: WatchSettings = field(default_factory=WatchSettings)


def state_dir_for(vault_path: Path) -> Path:
    """State directory for a vault: a sibling `.vaultstage/` folder."""
    return vault_path.resolve().parent / STATE_DIR_NAME


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _number(section: dict[str, Any], key: str, default: float, *, where: str) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{where}.{key} must be a number, got {value!r}")
    return value


def _string_list(section: dict[str, Any], key: str, default: tuple[str, ...], *, where: str) -> tuple[str, ...]:
    value = section.get(key)
    if value is None:
        return default
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{where}.{key} must be a list of strings")
    return tuple(value)


def parse_config(data: dict[str, Any]) -> OverlayConfig:
    """Build an OverlayConfig from parsed TOML data."""
    patch_raw = _coerce_dict(data.get("patch"))
    defaults = PatchSettings()
    patch = PatchSettings(
        match_threshold=float(_number(patch_raw, "match_threshold", defaults.match_threshold, where="patch")),
        delete_threshold=float(_number(patch_raw, "delete_threshold", defaults.delete_threshold, where="patch")),
        margin=int(_number(patch_raw, "margin", defaults.margin, where="patch")),
    )
    for name in ("match_threshold", "delete_threshold"):
        if not 0.0 <= getattr(patch, name) <= 1.0:
            raise ValueError(f"patch.{name} must be between 0.0 and 1.0")

    renames_raw = _coerce_dict(data.get("renames"))
    rename_defaults = RenameSettings()
    renames = RenameSettings(
        max_entries=int(_number(renames_raw, "max_entries", rename_defaults.max_entries, where="renames")),
        max_age_days=float(_number(renames_raw, "max_age_days", rename_defaults.max_age_days, where="renames")),
        ignore_suffixes=_string_list(renames_raw, "ignore_suffixes", rename_defaults.ignore_suffixes, where="renames"),
    )
    if renames.max_entries <= 0:
        raise ValueError("renames.max_entries must be a positive integer")

    watch_raw = _coerce_dict(data.get("watch"))
    watch_defaults = WatchSettings()
    extensions = _string_list(
        watch_raw, "relevant_extensions", tuple(sorted(watch_defaults.relevant_extensions)), where="watch"
    )
    watch = WatchSettings(relevant_extensions=frozenset(e.lower() for e in extensions))

    return OverlayConfig(patch=patch, renames=renames, watch=watch)


def load_config(state_dir: Path) -> OverlayConfig:
    """
    Load configuration from <state_dir>/config.toml.

    Raises:
        ValueError: If the TOML is malformed or a value has the wrong type
    """
    path = state_dir / CONFIG_FILE_NAME
    if not path.exists():
        return OverlayConfig()

    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Failed to parse {path}: {e}") from e

    return parse_config(data)
