"""
Persistent tier of the model catalog cache.

One record per provider is stored under "ai_models_cache_<provider>" as
{timestamp, provider, models, count, source, ...metadata}, with a companion
"<key>_last_update" timestamp.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..core.errors import StorageError, StorageQuotaExceededError
from ..models.catalog import CatalogEntry, CatalogSource, ModelDescriptor
from ..models.provider import ProviderId
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

CACHE_PREFIX = "ai_models_cache_"
LAST_UPDATE_SUFFIX = "_last_update"


class ModelsCache:
    """
    Provider-keyed persistent catalog records.

    Reads never delete: an expired record is simply not returned for the
    requested max age, so the tiered reader can still fall back to it.
    Records older than the retention horizon are pruned on every write.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        ttl_seconds: float = 24 * 60 * 60,
        retention_seconds: float = 7 * 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._ttl = ttl_seconds
        self._retention = retention_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _key(self, provider: str) -> str:
        return f"{CACHE_PREFIX}{provider}"

    def _read(self, key: str) -> Optional[CatalogEntry]:
        raw = self._storage.get_item(key)
        if raw is None:
            return None
        try:
            return CatalogEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache record {key}: {e.error_count()} errors")
            try:
                self._storage.remove_item(key)
            except StorageError as remove_error:
                logger.warning(f"Could not discard cache record {key}: {remove_error.message}")
            return None

    def get_cache(self, provider: str, max_age: Optional[float] = None) -> Optional[CatalogEntry]:
        """
        Get the cached record for a provider.

        Args:
            provider: Provider id
            max_age: Maximum age in seconds; defaults to the freshness TTL

        Returns:
            The record, or None if absent or older than max_age
        """
        entry = self._read(self._key(provider))
        if entry is None:
            return None
        limit = self._ttl if max_age is None else max_age
        if entry.age(self._clock()) >= limit:
            return None
        return entry

    def set_cache(
        self,
        provider: str,
        models: List[ModelDescriptor],
        source: str = CatalogSource.API.value,
        **metadata: Any,
    ) -> bool:
        """
        Write the record for a provider.

        Expired records are pruned first. On a quota failure they are
        pruned once more and the write is retried once; the provider's
        previous record is left in place so it can still serve as stale.

        Returns:
            True if the record was written
        """
        key = self._key(provider)
        entry = CatalogEntry(
            provider=provider,
            timestamp=self._clock(),
            models=models,
            count=len(models),
            source=source,
            metadata=metadata,
        )
        payload = entry.model_dump_json()

        try:
            self.cleanup_old_caches()
            try:
                self._storage.set_item(key, payload)
            except StorageQuotaExceededError as e:
                logger.warning(f"Cache write for {provider} hit the storage quota, pruning: {e}")
                self.cleanup_old_caches()
                self._storage.set_item(key, payload)
        except StorageError as e:
            logger.error(f"Cache write for {provider} failed: {e.message}")
            return False

        self.set_last_update_time(provider)
        return True

    def remove_cache(self, provider: str) -> None:
        key = self._key(provider)
        try:
            self._storage.remove_item(key)
            self._storage.remove_item(f"{key}{LAST_UPDATE_SUFFIX}")
        except StorageError as e:
            logger.error(f"Failed to remove model cache for {provider}: {e.message}")

    def cleanup_old_caches(self, max_age: Optional[float] = None) -> int:
        """
        Remove records older than max_age (defaults to the retention horizon).

        Returns:
            Number of records removed
        """
        limit = self._retention if max_age is None else max_age
        now = self._clock()
        removed = 0

        for key in self._storage.keys():
            if not key.startswith(CACHE_PREFIX) or key.endswith(LAST_UPDATE_SUFFIX):
                continue
            entry = self._read(key)
            if entry is None or entry.age(now) > limit:
                self._storage.remove_item(key)
                self._storage.remove_item(f"{key}{LAST_UPDATE_SUFFIX}")
                removed += 1

        if removed:
            logger.info(f"Pruned {removed} expired model caches")
        return removed

    def get_last_update_time(self, provider: str) -> Optional[float]:
        raw = self._storage.get_item(f"{self._key(provider)}{LAST_UPDATE_SUFFIX}")
        try:
            return float(raw) if raw is not None else None
        except ValueError:
            return None

    def set_last_update_time(self, provider: str) -> None:
        key = f"{self._key(provider)}{LAST_UPDATE_SUFFIX}"
        try:
            self._storage.set_item(key, str(self._clock()))
        except StorageError as e:
            logger.error(f"Failed to save last update time for {provider}: {e}")

    def needs_update(self, provider: str, update_interval: Optional[float] = None) -> bool:
        interval = update_interval or self._ttl
        last_update = self.get_last_update_time(provider)
        if last_update is None:
            return True
        return self._clock() - last_update > interval

    def get_cache_stats(self) -> Dict[str, Any]:
        """Per-provider record statistics, including expired records."""
        stats: Dict[str, Any] = {"providers": {}, "total_size": 0, "total_models": 0}
        now = self._clock()

        for provider in ProviderId:
            key = self._key(provider.value)
            entry = self._read(key)
            if entry is None:
                continue
            size = len(self._storage.get_item(key) or "")
            stats["providers"][provider.value] = {
                "timestamp": entry.timestamp,
                "age": entry.age(now),
                "model_count": len(entry.models),
                "size": size,
                "is_expired": not entry.is_fresh(self._ttl, now),
            }
            stats["total_size"] += size
            stats["total_models"] += len(entry.models)

        return stats

    def export_all_caches(self) -> Dict[str, Any]:
        exports = {}
        for key in self._storage.keys():
            if not key.startswith(CACHE_PREFIX):
                continue
            raw = self._storage.get_item(key)
            try:
                exports[key] = json.loads(raw) if raw is not None else None
            except ValueError:
                logger.warning(f"Skipping unreadable cache record {key} during export")
        return exports

    def import_caches(self, data: Optional[Dict[str, Any]]) -> bool:
        if not data:
            return False
        try:
            for key, value in data.items():
                if key.startswith(CACHE_PREFIX):
                    self._storage.set_item(key, json.dumps(value))
        except StorageError as e:
            logger.error(f"Cache import failed: {e}")
            return False
        return True
