"""
Storage backends for the quote store.

This module provides an abstract key/value interface and implementations
for local disk and process memory. Values are opaque bytes; the store
decides how to encode them.
"""

import fcntl
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .exceptions import StorageUnavailable

logger = logging.getLogger(__name__)

QUOTES_KEY = "quotes"
SELECTED_CATEGORY_KEY = "selected_category"
AUTO_SYNC_KEY = "auto_sync_enabled"
LAST_SYNC_KEY = "last_sync"

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStorage(ABC):
    """
    Abstract base class for persistence backends.

    Implementations must raise StorageUnavailable for any failure of the
    underlying medium, never a lower-level exception.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """
        Read the value stored under key.

        Returns:
            The stored bytes, or None if the key is absent

        Raises:
            StorageUnavailable: If reading fails
        """

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """
        Store value under key, replacing any previous value.

        Raises:
            StorageUnavailable: If writing fails
        """

    @abstractmethod
    def remove(self, key: str) -> None:
        """
        Delete key. Removing an absent key is not an error.

        Raises:
            StorageUnavailable: If deletion fails
        """


class InMemoryStorage(KeyValueStorage):
    """Dictionary-backed storage, scoped to the current process."""

    def __init__(self, initial: Optional[dict[str, bytes]] = None):
        self._data: dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class LocalDiskStorage(KeyValueStorage):
    """
    Local file system storage implementation.

    Each key is stored as ``<base_path>/<key>.json`` with atomic writes
    and file locking for concurrent access safety.
    """

    def __init__(self, base_path: str | Path | None = None):
        """
        Initialize local disk storage.

        Args:
            base_path: Directory holding the data files.
                      Defaults to ~/.quotesync/
        """
        if base_path is None:
            base_path = Path.home() / ".quotesync"

        self.base_path = Path(base_path).expanduser().resolve()

    def _path_for(self, key: str) -> Path:
        if not key or not _KEY_PATTERN.match(key) or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.base_path / f"{key}.json"

    def get(self, key: str) -> Optional[bytes]:
        """Read a value with a shared lock."""
        path = self._path_for(key)

        if not path.exists():
            return None

        try:
            with open(path, "rb") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    return f.read()
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            raise StorageUnavailable(f"Failed to read {key}: {e}") from e

    def set(self, key: str, value: bytes) -> None:
        """
        Write a value atomically.

        Uses a temp file + rename so a crash never leaves a half-written
        value behind.
        """
        path = self._path_for(key)

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)

            fd, temp_path = tempfile.mkstemp(
                dir=self.base_path,
                prefix=f".{path.name}.",
                suffix=".tmp",
            )

            try:
                with os.fdopen(fd, "wb") as f:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                    try:
                        f.write(value)
                        f.flush()
                        os.fsync(f.fileno())
                    finally:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)

                os.replace(temp_path, path)
            except OSError:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise

        except OSError as e:
            raise StorageUnavailable(f"Failed to write {key}: {e}") from e

        logger.debug(f"Wrote {len(value)} bytes to {path}")

    def remove(self, key: str) -> None:
        path = self._path_for(key)

        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Failed to remove {key}: {e}") from e

    def __repr__(self) -> str:
        return f"LocalDiskStorage(base_path='{self.base_path}')"
