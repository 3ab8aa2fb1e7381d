"""
Tiered model catalog reader.

Tiers are consulted in a fixed order on every non-forced read:

1. in-memory copy (short TTL)
2. persistent record (long TTL)
3. live fetch from the vendor, written through to tiers 1 and 2
4. degraded fallback: a stale persistent record within the grace window,
   otherwise the provider's hardcoded list

`force_refresh` skips tiers 1-2 only. Reads never raise.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from ..core.config import CacheConfig
from ..core.errors import GatewayError
from ..models.catalog import CatalogResult, CatalogSource, ModelDescriptor
from ..models.provider import ProviderId
from .models_cache import ModelsCache

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[List[ModelDescriptor]]]


@dataclass
class _MemoryEntry:
    timestamp: float
    models: List[ModelDescriptor]
    source: CatalogSource


class TieredModelCatalog:
    """
    Catalog cache for one provider.

    Concurrent live fetches share a single in-flight call, so two forced
    refreshes cannot race each other on the persistent record.
    """

    def __init__(
        self,
        provider_id: ProviderId,
        persistent: ModelsCache,
        fetcher: Fetcher,
        fallback: Callable[[], List[ModelDescriptor]],
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.time,
        **metadata,
    ):
        self._provider_id = provider_id
        self._persistent = persistent
        self._fetcher = fetcher
        self._fallback = fallback
        self._config = config or CacheConfig()
        self._clock = clock
        self._metadata = metadata
        self._memory: Optional[_MemoryEntry] = None
        self._inflight: Optional[asyncio.Future] = None

    @property
    def provider(self) -> str:
        return self._provider_id.value

    def clear(self) -> None:
        """Drop the in-memory tier and the persistent record."""
        self._memory = None
        self._persistent.remove_cache(self.provider)

    def _remember(self, models: List[ModelDescriptor], source: CatalogSource, timestamp: float) -> None:
        self._memory = _MemoryEntry(timestamp=timestamp, models=models, source=source)

    async def get(self, api_key: Optional[str], force_refresh: bool = False) -> CatalogResult:
        """
        Read the catalog through the tiers.

        Args:
            api_key: Credential for the live fetch
            force_refresh: Skip the memory and persistent tiers

        Returns:
            Tagged result naming the tier that answered
        """
        now = self._clock()

        if not force_refresh:
            memory = self._memory
            if memory is not None and now - memory.timestamp < self._config.memory_ttl_seconds:
                logger.debug(f"{self.provider}: {len(memory.models)} models from memory")
                return self._result(memory.models, CatalogSource.MEMORY, memory.timestamp)

            entry = self._persistent.get_cache(self.provider, self._config.persistent_ttl_seconds)
            if entry is not None and entry.models:
                self._remember(entry.models, CatalogSource.PERSISTENT, now)
                logger.info(f"{self.provider}: {len(entry.models)} models from persistent cache")
                return self._result(entry.models, CatalogSource.PERSISTENT, entry.timestamp)

        models = await self._fetch_live(api_key)
        if models:
            return self._result(models, CatalogSource.API, self._clock())

        return self._degrade()

    async def _fetch_live(self, api_key: Optional[str]) -> Optional[List[ModelDescriptor]]:
        if not api_key:
            logger.warning(f"{self.provider}: no API key, skipping live catalog fetch")
            return None

        if self._inflight is not None:
            return await asyncio.shield(self._inflight)

        future = asyncio.get_running_loop().create_future()
        self._inflight = future
        try:
            models = await self._fetch_and_store(api_key)
            future.set_result(models)
            return models
        finally:
            self._inflight = None
            if not future.done():
                future.set_result(None)

    async def _fetch_and_store(self, api_key: str) -> Optional[List[ModelDescriptor]]:
        try:
            models = await self._fetcher(api_key)
        except GatewayError as e:
            logger.warning(f"{self.provider}: live catalog fetch failed: {e.message}")
            return None
        except Exception as e:
            logger.warning(f"{self.provider}: live catalog fetch failed: {e!r}")
            return None

        if not models:
            logger.warning(f"{self.provider}: live catalog returned no models")
            return None

        now = self._clock()
        self._remember(models, CatalogSource.API, now)
        self._persistent.set_cache(
            self.provider, models, source=CatalogSource.API.value, **self._metadata
        )
        logger.info(f"{self.provider}: {len(models)} models from api")
        return models

    def _degrade(self) -> CatalogResult:
        entry = self._persistent.get_cache(self.provider, self._config.stale_grace_seconds)
        if entry is not None and entry.models:
            logger.warning(
                f"{self.provider}: using stale model cache from "
                f"{self._clock() - entry.timestamp:.0f}s ago"
            )
            return self._result(entry.models, CatalogSource.STALE, entry.timestamp)

        logger.warning(f"{self.provider}: using fallback model list")
        return self._result(self._fallback(), CatalogSource.FALLBACK, None)

    def _result(self, models: List[ModelDescriptor], source: CatalogSource, timestamp: Optional[float]) -> CatalogResult:
        return CatalogResult(
            provider=self._provider_id,
            models=list(models),
            source=source,
            timestamp=timestamp,
        )
