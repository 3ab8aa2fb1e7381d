"""
Persistent key/value storage backends for the catalog cache.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..core.errors import StorageError, StorageQuotaExceededError

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """String key/value storage with an optional size quota."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Store a value.

        Raises:
            StorageQuotaExceededError: If the write would exceed the quota
            StorageError: If the backend cannot be written
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        pass


def _size(items: Dict[str, str]) -> int:
    return sum(len(k) + len(v) for k, v in items.items())


def _check_quota(items: Dict[str, str], key: str, value: str, max_bytes: Optional[int]) -> None:
    if max_bytes is None:
        return
    candidate = dict(items)
    candidate[key] = value
    if _size(candidate) > max_bytes:
        raise StorageQuotaExceededError(
            f"Storage quota exceeded writing {key} ({_size(candidate)} > {max_bytes} bytes)"
        )


class MemoryStorage(KeyValueStorage):
    """In-process storage, the default when no storage path is configured."""

    def __init__(self, max_bytes: Optional[int] = None):
        self._items: Dict[str, str] = {}
        self._max_bytes = max_bytes

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        _check_quota(self._items, key, value, self._max_bytes)
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)


class JsonFileStorage(KeyValueStorage):
    """
    Storage persisted as one JSON object on disk.

    The whole file is rewritten on every change; records are small and
    writes are rare (one per successful catalog fetch).
    """

    def __init__(self, path: Union[str, Path], max_bytes: Optional[int] = None):
        self._path = Path(path)
        self._max_bytes = max_bytes
        self._items = self._load()

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache storage {self._path}: {e}")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self._items, f)
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise StorageError(f"Failed to write cache storage {self._path}: {e}")

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        _check_quota(self._items, key, value, self._max_bytes)
        previous = self._items.get(key)
        self._items[key] = value
        try:
            self._flush()
        except StorageError:
            # Keep memory in step with the file.
            if previous is None:
                self._items.pop(key, None)
            else:
                self._items[key] = previous
            raise

    def remove_item(self, key: str) -> None:
        previous = self._items.pop(key, None)
        if previous is None:
            return
        try:
            self._flush()
        except StorageError:
            self._items[key] = previous
            raise

    def keys(self) -> List[str]:
        return list(self._items)
