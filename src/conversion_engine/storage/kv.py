"""Quota-constrained key/value areas for profile persistence."""

import errno
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote, unquote

from ..core.errors import StorageError, StorageQuotaExceeded

logger = logging.getLogger(__name__)

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class KeyValueStore(ABC):
    """A string key/value area that may reject writes once it is full."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None."""
        pass

    @abstractmethod
    def set(self, key: str, value: str):
        """Store value under key. Raises StorageQuotaExceeded when full."""
        pass

    @abstractmethod
    def remove(self, key: str):
        """Delete key if present."""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """All keys currently stored."""
        pass

    def purge_temporary(self) -> int:
        """Remove leftovers of interrupted writes. Returns how many were removed."""
        return 0


class MemoryKeyValueStore(KeyValueStore):
    """In-process area with a byte and key-count ceiling.

    Size is counted as characters of key plus value, the way browser
    storage areas account for their quota.
    """

    def __init__(self, max_bytes: Optional[int] = None, max_keys: Optional[int] = None):
        self.max_bytes = max_bytes
        self.max_keys = max_keys
        self._data: Dict[str, str] = {}

    @property
    def used_bytes(self) -> int:
        return sum(len(k) + len(v) for k, v in self._data.items())

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str):
        existing = self._data.get(key)
        projected = self.used_bytes + len(value) - (len(existing) if existing is not None else -len(key))

        if self.max_bytes is not None and projected > self.max_bytes:
            raise StorageQuotaExceeded(
                f"Writing {key} needs {projected} bytes, quota is {self.max_bytes}"
            )
        if self.max_keys is not None and existing is None and len(self._data) >= self.max_keys:
            raise StorageQuotaExceeded(f"Key limit of {self.max_keys} reached")

        self._data[key] = value

    def remove(self, key: str):
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())


class FileKeyValueStore(KeyValueStore):
    """One JSON document per key under a data directory.

    Writes go to a temporary file that is renamed into place, so a crash
    mid-write leaves the previous value intact plus a ``.tmp`` leftover.

    Usage is measured from disk once at construction and then tracked per
    write and removal, so files changed by another process are not seen
    until ``refresh_usage`` is called.
    """

    SUFFIX = ".json"
    TEMP_SUFFIX = ".tmp"

    def __init__(self, directory: Path, max_bytes: Optional[int] = None):
        self.directory = Path(directory)
        self.max_bytes = max_bytes
        self.directory.mkdir(parents=True, exist_ok=True)
        self._sizes: Dict[str, int] = {}
        self._used_bytes = 0
        self.refresh_usage()

    def _path(self, key: str) -> Path:
        return self.directory / (quote(key, safe="") + self.SUFFIX)

    def refresh_usage(self) -> int:
        """Re-measure the directory from disk."""
        sizes = {}
        for path in self.directory.glob(f"*{self.SUFFIX}"):
            try:
                sizes[path.name] = path.stat().st_size
            except FileNotFoundError:
                continue
        self._sizes = sizes
        self._used_bytes = sum(sizes.values())
        return self._used_bytes

    @property
    def used_bytes(self) -> int:
        return self._used_bytes

    def _track(self, path: Path, size: int):
        self._used_bytes += size - self._sizes.pop(path.name, 0)
        if size:
            self._sizes[path.name] = size

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Could not read {key}: {e}") from e

    def set(self, key: str, value: str):
        path = self._path(key)
        encoded = value.encode('utf-8')

        if self.max_bytes is not None:
            existing = self._sizes.get(path.name, 0)
            projected = self._used_bytes - existing + len(encoded)
            if projected > self.max_bytes:
                raise StorageQuotaExceeded(
                    f"Writing {key} needs {projected} bytes, quota is {self.max_bytes}"
                )

        tmp_path = path.with_name(path.name + self.TEMP_SUFFIX)
        try:
            with open(tmp_path, 'wb') as f:
                f.write(encoded)
            os.replace(tmp_path, path)
        except OSError as e:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            if e.errno in _QUOTA_ERRNOS:
                raise StorageQuotaExceeded(f"Storage full writing {key}: {e}") from e
            raise StorageError(f"Could not write {key}: {e}") from e
        self._track(path, len(encoded))

    def remove(self, key: str):
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Could not remove {key}: {e}") from e
        self._track(path, 0)

    def keys(self) -> List[str]:
        return sorted(
            unquote(path.name[:-len(self.SUFFIX)])
            for path in self.directory.glob(f"*{self.SUFFIX}")
        )

    def purge_temporary(self) -> int:
        removed = 0
        for path in self.directory.glob(f"*{self.TEMP_SUFFIX}"):
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                logger.warning(f"Could not remove temporary file {path}: {e}")
        return removed
