"""Key-value stores used to persist garden snapshots.

The engine serialises its own state to JSON strings; a store only has
to keep opaque string blobs under string keys.  ``MemoryStore`` is used
in tests and headless runs, ``FileStore`` keeps one file per key on
disk.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class PersistenceFailure(Exception):
    """A snapshot could not be read, decoded, or written."""


class KeyValueStore(Protocol):
    """Minimal string store consumed by the simulation engine."""

    def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    def remove(self, key: str) -> None:
        """Delete ``key``.  Removing a missing key is a no-op."""
        ...


@dataclass
class MemoryStore:
    """Dictionary-backed store.

    Attributes:
        data: Stored key/value pairs.
    """

    data: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


@dataclass
class FileStore:
    """Directory-backed store with one UTF-8 file per key.

    Attributes:
        root: Directory holding the value files.  Created on first write.
    """

    root: Path

    def __post_init__(self) -> None:
        self.root = Path(self.root)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            msg = f"invalid storage key {key!r}"
            raise PersistenceFailure(msg)
        return self.root / key

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            msg = f"failed to read {path}: {exc}"
            raise PersistenceFailure(msg) from exc

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            msg = f"failed to write {path}: {exc}"
            raise PersistenceFailure(msg) from exc

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            msg = f"failed to remove {path}: {exc}"
            raise PersistenceFailure(msg) from exc
