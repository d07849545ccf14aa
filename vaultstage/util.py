"""
Small helpers shared across the staging engine: change ids, clocks, paths.
"""

from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone
from pathlib import PurePosixPath

# Crockford base32: no I, L, O or U.
_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_TIME_CHARS = 10
_RANDOM_CHARS = 16


def _base32(value: int, width: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 32)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits)).rjust(width, "0")


def new_ulid(*, timestamp_ms: int | None = None) -> str:
    """
    A new change id: 10 chars of millisecond time, then 16 random chars.

    Ids created in different milliseconds sort by creation time.
    """
    ms = int(time.time() * 1000) if timestamp_ms is None else timestamp_ms
    if ms < 0 or ms.bit_length() > 48:
        raise ValueError(f"timestamp_ms does not fit in 48 bits: {ms}")
    return _base32(ms, _TIME_CHARS) + _base32(secrets.randbits(80), _RANDOM_CHARS)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_path(path: str) -> str:
    """Normalize a vault-relative path to POSIX form without leading './' or '/'."""
    cleaned = path.replace("\\", "/").strip()
    if not cleaned:
        raise ValueError("path must not be empty")
    normalized = PurePosixPath(cleaned).as_posix().lstrip("/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    if normalized in ("", "."):
        raise ValueError(f"path does not name a file: {path!r}")
    return normalized
