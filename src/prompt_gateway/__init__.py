"""
Prompt Gateway

Provider-neutral access to AI text generation:
- One adapter contract over OpenAI, Anthropic, Gemini, Grok and OpenRouter
- Tiered model catalog cache (memory, persistent, live, stale, fallback)
- Secure per-provider credential storage
- Errors returned as classified data, never raised across the gateway
"""

from .core.config import GatewayConfig, load_config
from .core.credentials import CredentialStore, InMemorySecretBackend, JsonFileSecretBackend, SecretBackend
from .core.errors import ErrorKind, GatewayError
from .core.gateway import AIGateway
from .core.http import HttpCapability, HttpResult, HttpxCapability
from .core.interface import AbstractProvider, AdapterState
from .core.model_configs import AIConfigFile, ModelConfigRegistry
from .core.registry import ProviderRegistry
from .models import (
    AIErrorResponse,
    AIResponse,
    CatalogSource,
    ModelConfiguration,
    ModelDescriptor,
    ProviderCapability,
    ProviderId,
    RequestOptions,
)

__version__ = "1.0.0"

__all__ = [
    "AIGateway",
    "AbstractProvider",
    "AdapterState",
    "AIConfigFile",
    "AIErrorResponse",
    "AIResponse",
    "CatalogSource",
    "CredentialStore",
    "ErrorKind",
    "GatewayConfig",
    "GatewayError",
    "HttpCapability",
    "HttpResult",
    "HttpxCapability",
    "InMemorySecretBackend",
    "JsonFileSecretBackend",
    "ModelConfigRegistry",
    "ModelConfiguration",
    "ModelDescriptor",
    "ProviderCapability",
    "ProviderId",
    "ProviderRegistry",
    "RequestOptions",
    "SecretBackend",
    "load_config",
]
