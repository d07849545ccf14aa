"""
Document store boundary.

The overlay talks to the real store only through the DocumentStore protocol.
FileSystemStore maps vault-relative POSIX paths onto a directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from .util import normalize_path


@runtime_checkable
class DocumentStore(Protocol):
    """Primitives the overlay needs from the host store."""

    def read_current(self, path: str) -> str | None:
        """Current content, or None if the file does not exist."""
        ...

    def create(self, path: str, content: str) -> None: ...

    def overwrite(self, path: str, content: str) -> None: ...

    def delete(self, path: str) -> None: ...

    def rename(self, old_path: str, new_path: str) -> None: ...

    def exists(self, path: str) -> bool: ...

    def ensure_container(self, path: str) -> None:
        """Create the container (folder) at `path` and any missing parents."""
        ...


class FileSystemStore:
    """DocumentStore over a vault directory, UTF-8 text only."""

    def __init__(self, root: Path):
        self.root = root.resolve()

    def resolve(self, path: str) -> Path:
        """Absolute filesystem path for a vault-relative path."""
        full = (self.root / normalize_path(path)).resolve()
        try:
            full.relative_to(self.root)
        except ValueError:
            raise ValueError(f"Path escapes vault root: {path}") from None
        return full

    def relative(self, full_path: Path) -> str | None:
        """Vault-relative POSIX path for a filesystem path, or None if outside the vault."""
        try:
            return full_path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return None

    def read_current(self, path: str) -> str | None:
        full = self.resolve(path)
        if not full.is_file():
            return None
        with full.open("r", encoding="utf-8", newline="") as f:
            return f.read()

    def create(self, path: str, content: str) -> None:
        full = self.resolve(path)
        if full.exists():
            raise FileExistsError(f"File already exists: {path}")
        # "x" mode refuses to clobber a file created since the check above.
        with full.open("x", encoding="utf-8", newline="") as f:
            f.write(content)

    def overwrite(self, path: str, content: str) -> None:
        full = self.resolve(path)
        if not full.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        # Write atomically (write to temp, then replace)
        temp_path = full.with_name(full.name + ".tmp")
        temp_path.write_text(content, encoding="utf-8", newline="")
        temp_path.replace(full)

    def delete(self, path: str) -> None:
        full = self.resolve(path)
        if not full.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        full.unlink()

    def rename(self, old_path: str, new_path: str) -> None:
        source = self.resolve(old_path)
        target = self.resolve(new_path)
        if not source.is_file():
            raise FileNotFoundError(f"File not found: {old_path}")
        if target.exists():
            raise FileExistsError(f"File already exists: {new_path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        source.rename(target)

    def exists(self, path: str) -> bool:
        return self.resolve(path).exists()

    def ensure_container(self, path: str) -> None:
        self.resolve(path).mkdir(parents=True, exist_ok=True)
