"""
AI gateway: the single entry point used by the host application.

Dispatches to provider adapters, pulls credentials from the credential
store and keeps the model configuration registry. Vendor failures come back
as data; nothing raised by an adapter crosses this boundary.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..cache.models_cache import ModelsCache
from ..cache.storage import JsonFileStorage, MemoryStorage
from ..models.catalog import AllModelsResult, ModelDescriptor, ProviderModelsResult
from ..models.configuration import ModelConfiguration
from ..models.provider import ProviderId, ProviderStatus
from ..models.request import RequestOptions
from ..models.response import AIErrorResponse, AIResult, ConnectionTestResult, ModelConfigRef
from .config import GatewayConfig
from .credentials import CredentialStore, InMemorySecretBackend, JsonFileSecretBackend, to_provider_id
from .errors import CredentialStoreError, ErrorKind, GatewayError, ProviderNotFoundError
from .http import HttpCapability, HttpxCapability
from .model_configs import AIConfigFile, ModelConfigRegistry
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)

ProviderRef = Union[ProviderId, str]


class AIGateway:
    """
    Orchestrates provider adapters, credentials and model configurations.

    Construct it explicitly with its collaborators, or use `from_config`
    to build the default file-backed stack.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        http: HttpCapability,
        config: Optional[GatewayConfig] = None,
        models_cache: Optional[ModelsCache] = None,
        model_configs: Optional[ModelConfigRegistry] = None,
        config_file: Optional[AIConfigFile] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the gateway.

        Args:
            credentials: Credential store wrapping the secure capability
            http: Outbound HTTP capability shared by all adapters
            config: Gateway configuration
            models_cache: Persistent catalog tier shared by all adapters
            model_configs: Model configuration registry
            config_file: Optional on-disk document for the registry
            clock: Time source for the catalog cache
        """
        self._config = config or GatewayConfig()
        self._credentials = credentials
        self._http = http
        self._models_cache = models_cache or ModelsCache(
            MemoryStorage(),
            ttl_seconds=self._config.cache.persistent_ttl_seconds,
            retention_seconds=self._config.cache.retention_seconds,
            clock=clock,
        )
        self._providers = ProviderRegistry(
            http,
            models_cache=self._models_cache,
            config=self._config,
            clock=clock,
        )
        self._model_configs = model_configs or ModelConfigRegistry()
        self._config_file = config_file
        self._loaded_models: Dict[ProviderId, List[ModelDescriptor]] = {}

    @classmethod
    def from_config(cls, config: Optional[GatewayConfig] = None, **kwargs: Any) -> "AIGateway":
        """Build a gateway with httpx and the storage backends named in the config."""
        config = config or GatewayConfig()

        if config.cache.storage_path:
            storage = JsonFileStorage(config.cache.storage_path, max_bytes=config.cache.max_storage_bytes)
        else:
            storage = MemoryStorage(max_bytes=config.cache.max_storage_bytes)
        clock = kwargs.pop("clock", time.time)
        models_cache = ModelsCache(
            storage,
            ttl_seconds=config.cache.persistent_ttl_seconds,
            retention_seconds=config.cache.retention_seconds,
            clock=clock,
        )

        if config.credentials.storage_path:
            backend = JsonFileSecretBackend(config.credentials.storage_path)
        else:
            backend = InMemorySecretBackend()
        credentials = CredentialStore(backend, service_name=config.credentials.service_name)

        return cls(
            credentials,
            kwargs.pop("http", None) or HttpxCapability(),
            config=config,
            models_cache=models_cache,
            clock=clock,
            **kwargs,
        )

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    @property
    def providers(self) -> ProviderRegistry:
        return self._providers

    @property
    def models_cache(self) -> ModelsCache:
        return self._models_cache

    @property
    def model_configs(self) -> ModelConfigRegistry:
        return self._model_configs

    async def aclose(self) -> None:
        await self._http.aclose()

    # -- providers ------------------------------------------------------------

    def get_available_providers(self) -> List[Dict[str, Any]]:
        """Descriptor of every supported provider."""
        return [adapter.get_provider_info() for _, adapter in self._providers.items()]

    async def check_providers_status(self) -> Dict[str, ProviderStatus]:
        """Report which providers have a stored key. Never touches the network."""
        key_status = await self._credentials.get_all_providers_status()

        statuses = {}
        for provider_id, adapter in self._providers.items():
            status = key_status[provider_id]
            statuses[provider_id.value] = ProviderStatus(
                provider=adapter.display_name,
                has_key=status.has_key,
                status="configured" if status.has_key else "not_configured",
                capabilities=sorted(c.value for c in adapter.get_capabilities()),
                error=status.error,
            )
        return statuses

    async def store_api_key(self, provider: ProviderRef, api_key: str) -> None:
        """
        Persist a key and hand it to the provider's adapter.

        Raises:
            ProviderNotFoundError: If the provider id is not supported
            GatewayInvalidRequestError: If the key is empty
            CredentialStoreError: If the backend fails
        """
        provider_id = to_provider_id(provider)
        await self._credentials.store_api_key(provider_id, api_key)
        self._providers.get(provider_id).set_api_key(api_key.strip())

    async def remove_api_key(self, provider: ProviderRef) -> None:
        """
        Forget a provider's key, in the store and in its adapter.

        Raises:
            ProviderNotFoundError: If the provider id is not supported
            CredentialStoreError: If the backend fails
        """
        provider_id = to_provider_id(provider)
        await self._credentials.remove_api_key(provider_id)
        self._providers.get(provider_id).set_api_key(None)
        self._loaded_models.pop(provider_id, None)

    async def test_provider_connection(self, provider: ProviderRef, api_key: str) -> ConnectionTestResult:
        try:
            adapter = self._providers.get(provider)
        except ProviderNotFoundError as e:
            return ConnectionTestResult(success=False, error=e.message, type=ErrorKind.VALIDATION)

        logger.info(f"Testing connection to {adapter.display_name}")
        return await adapter.test_connection(api_key)

    async def _get_key(self, provider_id: ProviderId) -> Optional[str]:
        try:
            return await self._credentials.get_api_key(provider_id)
        except CredentialStoreError as e:
            logger.error(f"Credential lookup failed for {provider_id.value}: {e.message}")
            return None

    # -- model catalogs -------------------------------------------------------

    async def load_provider_models(self, provider: ProviderRef, force_refresh: bool = False) -> ProviderModelsResult:
        """
        Load a provider's models with its stored key.

        Failures are returned in the result; the catalog itself always
        resolves to some model list once a key is available.
        """
        try:
            provider_id = to_provider_id(provider)
        except ProviderNotFoundError as e:
            return ProviderModelsResult(provider=str(provider), success=False, error=e.message, type=ErrorKind.VALIDATION)

        api_key = await self._get_key(provider_id)
        if not api_key:
            return ProviderModelsResult(
                provider=provider_id.value,
                success=False,
                error=f"API key for {provider_id.value} not found",
                type=ErrorKind.AUTHENTICATION,
            )

        adapter = self._providers.get(provider_id)
        adapter.set_api_key(api_key)
        catalog = await adapter.get_catalog(api_key, force_refresh=force_refresh)

        if catalog.models:
            self._loaded_models[provider_id] = catalog.models
        logger.info(f"Loaded {len(catalog.models)} models for {provider_id.value} from {catalog.source.value}")
        return ProviderModelsResult(
            provider=provider_id.value,
            success=True,
            models=catalog.models,
            source=catalog.source,
        )

    async def load_all_available_models(self) -> AllModelsResult:
        """Load models for every configured provider, collecting failures per provider."""
        result = AllModelsResult()
        statuses = await self.check_providers_status()

        for provider, status in statuses.items():
            if not status.is_configured:
                continue
            try:
                loaded = await self.load_provider_models(provider)
            except GatewayError as e:
                result.errors[provider] = e.message
                continue
            if loaded.success:
                result.models[provider] = loaded.models
            else:
                result.errors[provider] = loaded.error or "Failed to load models"

        return result

    def get_cached_models(self, provider: ProviderRef) -> List[ModelDescriptor]:
        return list(self._loaded_models.get(to_provider_id(provider), []))

    def get_all_cached_models(self) -> Dict[str, List[ModelDescriptor]]:
        return {provider_id.value: list(models) for provider_id, models in self._loaded_models.items()}

    async def refresh_provider_models(self, provider: ProviderRef) -> ProviderModelsResult:
        return await self.load_provider_models(provider, force_refresh=True)

    # -- requests -------------------------------------------------------------

    async def send_request(
        self,
        prompt: str,
        model_config: Union[ModelConfiguration, str],
        options: Union[RequestOptions, Mapping[str, Any], None] = None,
    ) -> AIResult:
        """
        Send a prompt using a model configuration.

        The configuration's temperature and max tokens are defaults that
        `options` may override.

        Args:
            prompt: Prompt text
            model_config: Configuration or its id
            options: Request options

        Returns:
            AIResponse carrying the configuration reference, or AIErrorResponse
        """
        if isinstance(model_config, str):
            try:
                model_config = self._model_configs.get(model_config)
            except GatewayError as e:
                return AIErrorResponse(error=e.message, type=ErrorKind.VALIDATION)

        provider_id = model_config.provider
        try:
            overrides = options if isinstance(options, RequestOptions) else RequestOptions(**(options or {}))
        except ValidationError as e:
            return AIErrorResponse(
                error=f"Invalid request options: {e.error_count()} errors",
                type=ErrorKind.VALIDATION,
                provider=provider_id.value,
                model=model_config.model_id,
            )

        api_key = await self._get_key(provider_id)
        if not api_key:
            return AIErrorResponse(
                error=f"API key for {provider_id.value} not found",
                type=ErrorKind.AUTHENTICATION,
                provider=provider_id.value,
                model=model_config.model_id,
            )

        request_options = RequestOptions(
            model=model_config.model_id,
            temperature=model_config.temperature,
            max_tokens=model_config.max_tokens,
        ).merged_with(overrides)

        adapter = self._providers.get(provider_id)
        adapter.set_api_key(api_key)

        logger.info(
            f"Sending request with configuration {model_config.id}: "
            f"{provider_id.value}/{request_options.model}"
        )
        started = time.monotonic()
        result = await adapter.send_request(prompt, request_options)

        if result.success:
            result.configuration = ModelConfigRef(
                id=model_config.id,
                name=model_config.custom_name or model_config.name,
                provider=provider_id.value,
                model_id=model_config.model_id,
            )
            result.metadata["request_duration_ms"] = int((time.monotonic() - started) * 1000)
        return result

    # -- model configurations -----------------------------------------------

    def add_model_config(self, provider: ProviderRef, model_id: str, **fields: Any) -> ModelConfiguration:
        return self._model_configs.add(provider, model_id, **fields)

    def update_model_config(self, config_id: str, **updates: Any) -> ModelConfiguration:
        return self._model_configs.update(config_id, **updates)

    def remove_model_config(self, config_id: str) -> ModelConfiguration:
        return self._model_configs.remove(config_id)

    def set_default_model(self, config_id: str) -> ModelConfiguration:
        return self._model_configs.set_default(config_id)

    def get_default_model_config(self) -> Optional[ModelConfiguration]:
        return self._model_configs.get_default()

    def get_active_model_configs(self) -> List[ModelConfiguration]:
        return self._model_configs.list()

    def get_usage_stats(self) -> Dict[str, Any]:
        return self._model_configs.get_usage_stats()

    def save_model_configs(self) -> bool:
        if self._config_file is None:
            logger.warning("No model configuration file set, nothing saved")
            return False
        return self._config_file.save(self._model_configs)

    def load_model_configs(self) -> bool:
        if self._config_file is None:
            return False
        try:
            return self._config_file.load_into(self._model_configs)
        except GatewayError as e:
            logger.error(f"Could not load model configurations: {e.message}")
            return False
