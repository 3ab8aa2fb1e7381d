"""
Gateway error types and the provider-independent error taxonomy.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Provider-independent classification of a failed call."""
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK = "network"
    BILLING = "billing"
    MODEL_UNAVAILABLE = "model_unavailable"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class GatewayError(Exception):
    """Base exception for gateway errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, provider: Optional[str] = None):
        self.message = message
        self.provider = provider
        super().__init__(message)


class ProviderNotFoundError(GatewayError):
    """Raised when a provider id is not registered."""
    kind = ErrorKind.VALIDATION


class GatewayAuthenticationError(GatewayError):
    """Raised when the API key is missing or rejected."""
    kind = ErrorKind.AUTHENTICATION


class GatewayAuthorizationError(GatewayError):
    """Raised when the API key lacks permission."""
    kind = ErrorKind.AUTHORIZATION


class GatewayRateLimitError(GatewayError):
    """Raised when rate limit is exceeded."""
    kind = ErrorKind.RATE_LIMIT

    def __init__(self, message: str, provider: Optional[str] = None, retry_after: Optional[float] = None):
        super().__init__(message, provider)
        self.retry_after = retry_after


class GatewayTimeoutError(GatewayError):
    """Raised when request times out."""
    kind = ErrorKind.TIMEOUT


class GatewayConnectionError(GatewayError):
    """Raised when the transport fails before a response arrives."""
    kind = ErrorKind.NETWORK


class GatewayBillingError(GatewayError):
    """Raised when the vendor reports an insufficient balance."""
    kind = ErrorKind.BILLING


class GatewayModelNotFoundError(GatewayError):
    """Raised when requested model is not available."""
    kind = ErrorKind.MODEL_UNAVAILABLE

    def __init__(self, message: str, provider: Optional[str] = None, model: Optional[str] = None):
        super().__init__(message, provider)
        self.model = model


class GatewayInvalidRequestError(GatewayError):
    """Raised when a request is rejected locally before reaching the wire."""
    kind = ErrorKind.VALIDATION


class GatewayRequestError(GatewayError):
    """Raised when the vendor answered with a non-2xx status."""

    def __init__(self, message: str, provider: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, provider)
        self.status_code = status_code


class GatewayResponseError(GatewayError):
    """Raised when a vendor payload does not have the expected shape."""


class CredentialStoreError(GatewayError):
    """Raised when the secure credential capability fails."""


class ModelConfigNotFoundError(GatewayError):
    """Raised when a model configuration id is unknown."""

    def __init__(self, config_id: str):
        super().__init__(f"Model configuration not found: {config_id}")
        self.config_id = config_id


class StorageError(GatewayError):
    """Raised when a persistent storage backend cannot be written."""


class StorageQuotaExceededError(StorageError):
    """Raised by a persistent storage backend when its quota is full."""
