"""
Abstract provider interface definition.

Defines the contract that all provider adapters must implement.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Union

from ..models.catalog import ModelDescriptor
from ..models.provider import ProviderCapability, ProviderDescriptor, ProviderId
from ..models.request import RequestOptions
from ..models.response import AIResult, ConnectionTestResult


class AdapterState(str, Enum):
    """Lifecycle of an adapter instance."""
    UNCONFIGURED = "unconfigured"
    READY = "ready"
    IN_FLIGHT = "in_flight"


class AbstractProvider(ABC):
    """
    Abstract base class for provider adapters.

    Every operation that may suspend on network I/O is async. Failures are
    returned as data rather than raised, except for `get_available_models`,
    which always resolves to some model list.
    """

    @property
    @abstractmethod
    def provider_id(self) -> ProviderId:
        """Identifier of the vendor this adapter talks to."""
        pass

    @property
    @abstractmethod
    def descriptor(self) -> ProviderDescriptor:
        """Static provider descriptor."""
        pass

    @property
    @abstractmethod
    def state(self) -> AdapterState:
        """Current lifecycle state."""
        pass

    @abstractmethod
    def set_api_key(self, api_key: Optional[str]) -> None:
        """Replace the in-memory credential. Passing None unconfigures."""
        pass

    @abstractmethod
    async def send_request(
        self,
        prompt: str,
        options: Union[RequestOptions, Mapping[str, Any], None] = None,
    ) -> AIResult:
        """
        Send one generation request.

        Args:
            prompt: Prompt text
            options: Normalized request options

        Returns:
            AIResponse on success, AIErrorResponse on failure
        """
        pass

    @abstractmethod
    async def get_available_models(
        self,
        api_key: Optional[str] = None,
        force_refresh: bool = False,
    ) -> List[ModelDescriptor]:
        """
        Return the provider's model catalog. Never raises.
        """
        pass

    @abstractmethod
    async def test_connection(self, api_key: str) -> ConnectionTestResult:
        """
        Issue the smallest possible real call to validate a key.
        """
        pass

    @abstractmethod
    async def resolve_model_alias(self, alias: str, api_key: Optional[str] = None) -> str:
        """
        Resolve a symbolic "latest" model id to a concrete one.
        """
        pass

    @abstractmethod
    def get_capabilities(self) -> FrozenSet[ProviderCapability]:
        """Static capability declaration; never touches the network."""
        pass

    def supports(self, capability: ProviderCapability) -> bool:
        return capability in self.get_capabilities()

    def get_provider_info(self) -> Dict[str, Any]:
        """Descriptor as a plain dict."""
        info = self.descriptor.model_dump()
        info["capabilities"] = sorted(c.value for c in self.descriptor.capabilities)
        return info

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider={self.provider_id.value!r}, state={self.state.value!r})"
