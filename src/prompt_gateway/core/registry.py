"""
Provider registry.

The provider set is closed: every `ProviderId` maps to exactly one adapter
class, and all adapters are built up front with shared dependencies.
"""

import logging
import time
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Type, Union

from ..adapters import (
    AnthropicAdapter,
    BaseProviderAdapter,
    GeminiAdapter,
    GrokAdapter,
    OpenAIAdapter,
    OpenRouterAdapter,
)
from ..cache.models_cache import ModelsCache
from ..models.provider import ProviderDescriptor, ProviderId
from .config import GatewayConfig
from .credentials import to_provider_id
from .errors import ProviderNotFoundError
from .http import HttpCapability

logger = logging.getLogger(__name__)

ADAPTER_CLASSES: Dict[ProviderId, Type[BaseProviderAdapter]] = {
    ProviderId.OPENAI: OpenAIAdapter,
    ProviderId.ANTHROPIC: AnthropicAdapter,
    ProviderId.GEMINI: GeminiAdapter,
    ProviderId.GROK: GrokAdapter,
    ProviderId.OPENROUTER: OpenRouterAdapter,
}


class ProviderRegistry:
    """
    Holds one adapter instance per provider.

    All adapters share the HTTP capability, the persistent catalog tier and
    the configuration passed in here.
    """

    def __init__(
        self,
        http: HttpCapability,
        models_cache: Optional[ModelsCache] = None,
        config: Optional[GatewayConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._adapters: Dict[ProviderId, BaseProviderAdapter] = {}
        for provider_id, adapter_class in ADAPTER_CLASSES.items():
            self._adapters[provider_id] = adapter_class(
                http,
                models_cache=models_cache,
                config=config,
                clock=clock,
            )
            logger.info(f"Registered provider adapter: {provider_id.value}")

    def get(self, provider: Union[ProviderId, str]) -> BaseProviderAdapter:
        """
        Get the adapter for a provider.

        Raises:
            ProviderNotFoundError: If the provider id is not supported
        """
        return self._adapters[to_provider_id(provider)]

    def __contains__(self, provider: object) -> bool:
        try:
            return to_provider_id(provider) in self._adapters
        except ProviderNotFoundError:
            return False

    def __iter__(self) -> Iterator[ProviderId]:
        return iter(self._adapters)

    def items(self) -> List[Tuple[ProviderId, BaseProviderAdapter]]:
        return list(self._adapters.items())

    def descriptors(self) -> List[ProviderDescriptor]:
        return [adapter.descriptor for adapter in self._adapters.values()]
