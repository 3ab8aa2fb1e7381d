"""
Shared machinery for provider adapters.

Concrete adapters only describe their vendor: endpoints, payload shapes,
static model tables and error rules. Validation, alias resolution, the
tiered catalog, timeouts and error classification live here.
"""

import asyncio
import logging
import time
from abc import abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from ..cache.catalog import TieredModelCatalog
from ..cache.models_cache import ModelsCache
from ..cache.storage import MemoryStorage
from ..core.classification import ErrorRule, classify_error
from ..core.config import GatewayConfig
from ..core.errors import (
    ErrorKind,
    GatewayAuthenticationError,
    GatewayAuthorizationError,
    GatewayBillingError,
    GatewayConnectionError,
    GatewayError,
    GatewayInvalidRequestError,
    GatewayModelNotFoundError,
    GatewayRateLimitError,
    GatewayRequestError,
    GatewayResponseError,
    GatewayTimeoutError,
)
from ..core.http import HttpCapability
from ..core.interface import AbstractProvider, AdapterState
from ..models.catalog import CatalogResult, ModelDescriptor, ModelPricing
from ..models.provider import ProviderCapability, ProviderDescriptor, ProviderId
from ..models.request import OutboundRequest, RequestOptions
from ..models.response import AIErrorResponse, AIResponse, AIResult, ConnectionTestResult

logger = logging.getLogger(__name__)

# Grace on top of the HTTP capability's own deadline, so that a capability
# which ignores timeout_ms still cannot hang the caller.
TIMEOUT_GRACE_SECONDS = 1.0

# Vendor statuses with a dedicated error type; any other status raises
# GatewayRequestError.
STATUS_ERRORS = {
    401: GatewayAuthenticationError,
    402: GatewayBillingError,
    403: GatewayAuthorizationError,
    404: GatewayModelNotFoundError,
    408: GatewayTimeoutError,
    429: GatewayRateLimitError,
}


def parse_created(value: Any) -> Optional[datetime]:
    """Parse a vendor creation time (epoch seconds or ISO 8601)."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class BaseProviderAdapter(AbstractProvider):
    """
    Base class for the concrete vendor adapters.

    Subclasses set the class-level tables and implement the request
    builders and payload parsers.
    """

    PROVIDER_ID: ProviderId
    DISPLAY_NAME: str = ""
    DEFAULT_BASE_URL: str = ""
    DEFAULT_MODEL: str = ""
    CAPABILITIES: FrozenSet[ProviderCapability] = frozenset()

    FALLBACK_MODELS: Sequence[str] = ()
    MODEL_NAMES: Dict[str, str] = {}
    CONTEXT_LENGTHS: Dict[str, int] = {}
    DESCRIPTIONS: Dict[str, str] = {}
    PRIORITIES: Dict[str, int] = {}
    PRICING: Dict[str, ModelPricing] = {}
    ALIASES: Dict[str, str] = {}
    ERROR_RULES: Sequence[ErrorRule] = ()

    DEFAULT_CONTEXT_LENGTH = 4096
    DEFAULT_PRIORITY = 0
    DEFAULT_DESCRIPTION = ""

    def __init__(
        self,
        http: HttpCapability,
        models_cache: Optional[ModelsCache] = None,
        config: Optional[GatewayConfig] = None,
        clock: Callable[[], float] = time.time,
        api_key: Optional[str] = None,
    ):
        """
        Initialize the adapter.

        Args:
            http: Outbound HTTP capability
            models_cache: Persistent catalog tier shared by all adapters
            config: Gateway configuration
            clock: Time source for the catalog cache
            api_key: Optional initial credential
        """
        self._http = http
        self._config = config or GatewayConfig()
        self._clock = clock
        self._api_key = api_key or None
        self._pending = 0
        self._base_url = self._config.base_urls.get(
            self.PROVIDER_ID.value, self.DEFAULT_BASE_URL
        ).rstrip("/")

        cache_config = self._config.cache
        self._models_cache = models_cache or ModelsCache(
            MemoryStorage(),
            ttl_seconds=cache_config.persistent_ttl_seconds,
            retention_seconds=cache_config.retention_seconds,
            clock=clock,
        )
        self._catalog = TieredModelCatalog(
            self.PROVIDER_ID,
            self._models_cache,
            fetcher=self._fetch_models,
            fallback=self.get_fallback_models,
            config=cache_config,
            clock=clock,
            **self._catalog_metadata(),
        )

    # -- identity and state -------------------------------------------------

    @property
    def provider_id(self) -> ProviderId:
        return self.PROVIDER_ID

    @property
    def display_name(self) -> str:
        return self.DISPLAY_NAME

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            id=self.PROVIDER_ID,
            name=self.DISPLAY_NAME,
            base_url=self._base_url,
            capabilities=self.CAPABILITIES,
        )

    @property
    def state(self) -> AdapterState:
        if not self._api_key:
            return AdapterState.UNCONFIGURED
        if self._pending:
            return AdapterState.IN_FLIGHT
        return AdapterState.READY

    def set_api_key(self, api_key: Optional[str]) -> None:
        self._api_key = api_key or None
        if self._api_key:
            logger.info(f"API key set for {self.DISPLAY_NAME}")
        else:
            logger.info(f"API key cleared for {self.DISPLAY_NAME}")

    def get_capabilities(self) -> FrozenSet[ProviderCapability]:
        return self.CAPABILITIES

    @contextmanager
    def _in_flight(self):
        self._pending += 1
        try:
            yield
        finally:
            self._pending -= 1

    # -- vendor hooks ---------------------------------------------------------

    @abstractmethod
    def _build_request(self, prompt: str, options: RequestOptions, api_key: str) -> OutboundRequest:
        """Build the generation call for an already validated prompt."""
        pass

    @abstractmethod
    def _parse_response(self, data: Dict[str, Any], model: str) -> AIResponse:
        """Map a vendor success payload to the normalized response."""
        pass

    @abstractmethod
    def _catalog_request(self, api_key: str) -> OutboundRequest:
        pass

    @abstractmethod
    def _parse_catalog(self, data: Any) -> List[ModelDescriptor]:
        pass

    @abstractmethod
    def _connection_request(self, api_key: str) -> OutboundRequest:
        pass

    def _connection_result(self, data: Any) -> ConnectionTestResult:
        return ConnectionTestResult(
            success=True,
            message=f"Connected to {self.DISPLAY_NAME}",
            models_count=len(self.FALLBACK_MODELS),
            available_models=list(self.FALLBACK_MODELS[:3]),
        )

    def _catalog_metadata(self) -> Dict[str, Any]:
        """Extra fields stored with the persistent catalog record."""
        return {}

    # -- static model tables -----------------------------------------------

    def get_model_display_name(self, model_id: str) -> str:
        return self.MODEL_NAMES.get(model_id, model_id)

    def get_model_context_length(self, model_id: str) -> int:
        return self.CONTEXT_LENGTHS.get(model_id, self.DEFAULT_CONTEXT_LENGTH)

    def get_model_description(self, model_id: str) -> str:
        return self.DESCRIPTIONS.get(model_id, self.DEFAULT_DESCRIPTION)

    def get_model_priority(self, model_id: str) -> int:
        return self.PRIORITIES.get(model_id, self.DEFAULT_PRIORITY)

    def get_model_pricing(self, model_id: str) -> Optional[ModelPricing]:
        return self.PRICING.get(model_id)

    def get_model_capabilities(self, model_id: str) -> Dict[str, bool]:
        return {"text_generation": True, "streaming": True}

    def describe_model(self, model_id: str, **overrides: Any) -> ModelDescriptor:
        """Build a descriptor for a model id from the static tables."""
        fields = dict(
            id=model_id,
            name=self.get_model_display_name(model_id),
            provider=self.PROVIDER_ID,
            context_length=self.get_model_context_length(model_id),
            description=self.get_model_description(model_id),
            capabilities=self.get_model_capabilities(model_id),
            pricing=self.get_model_pricing(model_id),
        )
        fields.update({k: v for k, v in overrides.items() if v is not None})
        return ModelDescriptor(**fields)

    def get_fallback_models(self) -> List[ModelDescriptor]:
        """Hardcoded known-good models, used when no catalog is reachable."""
        return [self.describe_model(model_id) for model_id in self.FALLBACK_MODELS]

    def _sort_models(self, models: List[ModelDescriptor]) -> List[ModelDescriptor]:
        """Newest first, then by the static priority table."""
        return sorted(
            models,
            key=lambda m: (-(m.created_timestamp() or 0.0), -self.get_model_priority(m.id)),
        )

    # -- validation ---------------------------------------------------------

    def validate_prompt(self, prompt: Any) -> str:
        """
        Validate a prompt before it is sent.

        Returns:
            The trimmed prompt

        Raises:
            GatewayInvalidRequestError: If the prompt is empty or too long
        """
        if not isinstance(prompt, str):
            raise GatewayInvalidRequestError("Prompt must be a non-empty string", self.PROVIDER_ID.value)

        trimmed = prompt.strip()
        if not trimmed:
            raise GatewayInvalidRequestError("Prompt cannot be empty", self.PROVIDER_ID.value)

        limit = self._config.defaults.max_prompt_length
        if len(trimmed) > limit:
            raise GatewayInvalidRequestError(
                f"Prompt is too long (maximum {limit:,} characters)", self.PROVIDER_ID.value
            )
        return trimmed

    def _coerce_options(self, options: Union[RequestOptions, Mapping[str, Any], None]) -> RequestOptions:
        if options is None:
            return RequestOptions()
        if isinstance(options, RequestOptions):
            return options
        return RequestOptions(**options)

    def _temperature(self, options: RequestOptions) -> float:
        if options.temperature is not None:
            return options.temperature
        return self._config.defaults.temperature

    def _max_tokens(self, options: RequestOptions) -> int:
        if options.max_tokens is not None:
            return options.max_tokens
        return self._config.defaults.max_tokens

    # -- outbound calls -----------------------------------------------------

    async def _call(self, request: OutboundRequest) -> Any:
        """
        Issue one outbound call.

        Raises:
            GatewayTimeoutError: If the deadline passed
            GatewayConnectionError: If the transport failed
            GatewayError: The STATUS_ERRORS type for a known error status,
                GatewayRequestError for any other
        """
        provider = self.PROVIDER_ID.value
        try:
            result = await asyncio.wait_for(
                self._http.request(
                    request.url,
                    method=request.method,
                    headers=request.headers,
                    body=request.body,
                    timeout_ms=request.timeout_ms,
                ),
                timeout=request.timeout_ms / 1000 + TIMEOUT_GRACE_SECONDS,
            )
        except asyncio.TimeoutError:
            raise GatewayTimeoutError("Request timeout", provider)

        if result.success:
            return result.data

        message = result.error or f"{self.DISPLAY_NAME} request failed"
        if result.timed_out:
            raise GatewayTimeoutError(message, provider)
        if result.status_code is None:
            raise GatewayConnectionError(message, provider)
        error_class = STATUS_ERRORS.get(result.status_code)
        if error_class is not None:
            raise error_class(message, provider)
        raise GatewayRequestError(message, provider, status_code=result.status_code)

    def classify(self, error: GatewayError):
        """Classify an error with this provider's rules, then the generic ones."""
        return classify_error(error, self.ERROR_RULES)

    def _error_response(self, error: GatewayError, model: Optional[str]) -> AIErrorResponse:
        kind, message = self.classify(error)
        logger.error(f"{self.DISPLAY_NAME} request failed ({kind.value}): {error.message}")
        return AIErrorResponse(
            error=message,
            type=kind,
            provider=self.PROVIDER_ID.value,
            model=model,
        )

    # -- public operations ----------------------------------------------------

    async def send_request(
        self,
        prompt: str,
        options: Union[RequestOptions, Mapping[str, Any], None] = None,
    ) -> AIResult:
        try:
            opts = self._coerce_options(options)
        except ValidationError as e:
            return self._error_response(
                GatewayInvalidRequestError(f"Invalid request options: {e.error_count()} errors"),
                None,
            )

        model = opts.model or self.DEFAULT_MODEL
        with self._in_flight():
            try:
                text = self.validate_prompt(prompt)
                if not self._api_key:
                    raise GatewayAuthenticationError(
                        f"API key is not configured for {self.DISPLAY_NAME}", self.PROVIDER_ID.value
                    )

                if "latest" in model:
                    resolved = await self.resolve_model_alias(model, self._api_key)
                    logger.info(f"Resolved model alias {model} -> {resolved}")
                    model = resolved

                request = self._build_request(text, opts.model_copy(update={"model": model}), self._api_key)
                logger.info(
                    f"Sending request to {self.DISPLAY_NAME}: model={model}, prompt_length={len(text)}"
                )

                started = time.monotonic()
                data = await self._call(request)
                duration_ms = int((time.monotonic() - started) * 1000)

                try:
                    response = self._parse_response(data, model)
                except (KeyError, IndexError, TypeError, AttributeError) as e:
                    raise GatewayResponseError(
                        f"Malformed response from {self.DISPLAY_NAME}: {e!r}", self.PROVIDER_ID.value
                    )
            except GatewayError as e:
                return self._error_response(e, model)

        response.duration_ms = duration_ms
        logger.info(
            f"{self.DISPLAY_NAME} request complete: model={model}, duration_ms={duration_ms}, "
            f"tokens={response.usage.total_tokens}"
        )
        return response

    async def _fetch_models(self, api_key: str) -> List[ModelDescriptor]:
        data = await self._call(self._catalog_request(api_key))
        return self._sort_models(self._parse_catalog(data))

    async def get_catalog(self, api_key: Optional[str] = None, force_refresh: bool = False) -> CatalogResult:
        """Read the catalog and report which tier answered."""
        with self._in_flight():
            return await self._catalog.get(api_key or self._api_key, force_refresh=force_refresh)

    async def get_available_models(
        self,
        api_key: Optional[str] = None,
        force_refresh: bool = False,
    ) -> List[ModelDescriptor]:
        result = await self.get_catalog(api_key, force_refresh)
        return result.models

    async def refresh_models(self, api_key: Optional[str] = None) -> List[ModelDescriptor]:
        return await self.get_available_models(api_key, force_refresh=True)

    def clear_models_cache(self) -> None:
        self._catalog.clear()

    def get_cache_stats(self) -> Optional[Dict[str, Any]]:
        """Persistent cache statistics for this provider, or None if nothing is cached."""
        return self._models_cache.get_cache_stats()["providers"].get(self.PROVIDER_ID.value)

    async def test_connection(self, api_key: str) -> ConnectionTestResult:
        if not api_key:
            return ConnectionTestResult(
                success=False,
                error="API key is required to test the connection",
                type=ErrorKind.AUTHENTICATION,
            )

        with self._in_flight():
            try:
                data = await self._call(self._connection_request(api_key))
                result = self._connection_result(data)
            except GatewayError as e:
                kind, message = self.classify(e)
                logger.warning(f"{self.DISPLAY_NAME} connection test failed ({kind.value}): {e.message}")
                return ConnectionTestResult(success=False, error=message, type=kind)
            except (KeyError, IndexError, TypeError, AttributeError) as e:
                logger.warning(f"{self.DISPLAY_NAME} connection test returned a malformed payload: {e!r}")
                return ConnectionTestResult(
                    success=False,
                    error=f"Unexpected response from {self.DISPLAY_NAME}",
                    type=ErrorKind.UNKNOWN,
                )

        logger.info(f"{self.DISPLAY_NAME} connection test succeeded")
        return result

    async def resolve_model_alias(self, alias: str, api_key: Optional[str] = None) -> str:
        if "latest" not in alias:
            return alias

        models = await self.get_available_models(api_key)
        base_pattern = alias.replace("-latest", "", 1).replace("latest", "", 1).strip().lower()

        # Catalog is ordered newest first, so the first match is the newest.
        # A bare "latest" leaves no pattern and is never matched by substring.
        if base_pattern:
            for model in models:
                if base_pattern in model.id.lower():
                    return model.id

        resolved = self.ALIASES.get(alias)
        if resolved:
            return resolved

        logger.warning(f"Could not resolve model alias {alias} for {self.DISPLAY_NAME}")
        return alias
