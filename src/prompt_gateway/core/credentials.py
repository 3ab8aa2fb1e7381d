"""
Credential store contract.

One API key per provider is kept in a host-supplied secure storage
capability under a single service name, with accounts namespaced as
"<provider>-api-key". Secrets are never logged.
"""

import json
import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from ..models.provider import ProviderId
from .errors import CredentialStoreError, GatewayInvalidRequestError, ProviderNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "prompt-constructor-ai"

KEY_FORMATS = {
    ProviderId.OPENAI: re.compile(r"^sk-[a-zA-Z0-9\-_]{20,}$"),
    ProviderId.ANTHROPIC: re.compile(r"^sk-ant-[a-zA-Z0-9\-_]{20,}$"),
    ProviderId.OPENROUTER: re.compile(r"^sk-or-[a-zA-Z0-9\-_]{20,}$"),
    ProviderId.GEMINI: re.compile(r"^AIza[a-zA-Z0-9\-_]{30,}$"),
    ProviderId.GROK: re.compile(r"^xai-[a-zA-Z0-9\-_]{20,}$"),
}
GENERIC_KEY_FORMAT = re.compile(r"^[a-zA-Z0-9\-_]{20,}$")


@dataclass
class SecretResult:
    """Result of a secure storage operation."""
    success: bool
    secret: Optional[str] = None
    not_found: bool = False
    error: Optional[str] = None


class SecretBackend(ABC):
    """Host-supplied secure credential capability."""

    @abstractmethod
    async def store(self, service: str, account: str, secret: str) -> SecretResult:
        pass

    @abstractmethod
    async def get(self, service: str, account: str) -> SecretResult:
        pass

    @abstractmethod
    async def remove(self, service: str, account: str) -> SecretResult:
        pass


class InMemorySecretBackend(SecretBackend):
    """Process-local secret storage, mostly for tests and embedding."""

    def __init__(self):
        self._secrets: Dict[str, str] = {}

    async def store(self, service: str, account: str, secret: str) -> SecretResult:
        self._secrets[f"{service}:{account}"] = secret
        return SecretResult(success=True)

    async def get(self, service: str, account: str) -> SecretResult:
        secret = self._secrets.get(f"{service}:{account}")
        if not secret:
            return SecretResult(success=False, not_found=True)
        return SecretResult(success=True, secret=secret)

    async def remove(self, service: str, account: str) -> SecretResult:
        self._secrets.pop(f"{service}:{account}", None)
        return SecretResult(success=True)


class JsonFileSecretBackend(SecretBackend):
    """
    Secret storage in a JSON file readable only by the current user.

    Keys are stored as "<service>:<account>".
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        with open(self._path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _save(self, secrets: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(secrets, f, indent=2)
        os.replace(tmp_path, self._path)

    async def store(self, service: str, account: str, secret: str) -> SecretResult:
        try:
            secrets = self._load()
            secrets[f"{service}:{account}"] = secret
            self._save(secrets)
        except (OSError, ValueError) as e:
            return SecretResult(success=False, error=str(e))
        return SecretResult(success=True)

    async def get(self, service: str, account: str) -> SecretResult:
        try:
            secrets = self._load()
        except (OSError, ValueError) as e:
            return SecretResult(success=False, error=str(e))
        secret = secrets.get(f"{service}:{account}")
        if not secret:
            return SecretResult(success=False, not_found=True)
        return SecretResult(success=True, secret=secret)

    async def remove(self, service: str, account: str) -> SecretResult:
        try:
            secrets = self._load()
            secrets.pop(f"{service}:{account}", None)
            self._save(secrets)
        except (OSError, ValueError) as e:
            return SecretResult(success=False, error=str(e))
        return SecretResult(success=True)


@dataclass
class KeyStatus:
    """Whether a provider has a stored key."""
    has_key: bool
    error: Optional[str] = None


def to_provider_id(provider: Union[ProviderId, str]) -> ProviderId:
    """Normalize a provider id, raising ProviderNotFoundError if unknown."""
    try:
        return ProviderId(provider)
    except ValueError:
        raise ProviderNotFoundError(f"Unknown provider: {provider}")


class CredentialStore:
    """
    Secure get/set/remove of one API key per provider.

    Adapters only ever receive a transient copy of a key; this store is the
    single owner of persisted credentials.
    """

    def __init__(self, backend: SecretBackend, service_name: str = DEFAULT_SERVICE_NAME):
        self._backend = backend
        self._service_name = service_name

    @property
    def service_name(self) -> str:
        return self._service_name

    @staticmethod
    def account_for(provider: Union[ProviderId, str]) -> str:
        return f"{to_provider_id(provider).value}-api-key"

    async def store_api_key(self, provider: Union[ProviderId, str], api_key: str) -> None:
        """
        Store the API key for a provider, replacing any previous one.

        Raises:
            GatewayInvalidRequestError: If the key is empty
            CredentialStoreError: If the backend fails
        """
        account = self.account_for(provider)
        if not api_key or not api_key.strip():
            raise GatewayInvalidRequestError("API key is required", provider=str(provider))

        result = await self._backend.store(self._service_name, account, api_key.strip())
        if not result.success:
            logger.error(f"Failed to store credential {account}: {result.error}")
            raise CredentialStoreError(result.error or "Failed to store key", provider=str(provider))
        logger.info(f"Stored credential {account}")

    async def get_api_key(self, provider: Union[ProviderId, str]) -> Optional[str]:
        """
        Get the API key for a provider.

        Returns:
            The key, or None when no key is stored

        Raises:
            CredentialStoreError: If the backend fails
        """
        account = self.account_for(provider)
        result = await self._backend.get(self._service_name, account)
        if result.success and result.secret:
            return result.secret
        if result.not_found or result.success:
            logger.debug(f"No credential stored for {account}")
            return None
        logger.error(f"Failed to read credential {account}: {result.error}")
        raise CredentialStoreError(result.error or "Failed to get key", provider=str(provider))

    async def remove_api_key(self, provider: Union[ProviderId, str]) -> None:
        """Remove the API key for a provider."""
        account = self.account_for(provider)
        result = await self._backend.remove(self._service_name, account)
        if not result.success:
            logger.error(f"Failed to remove credential {account}: {result.error}")
            raise CredentialStoreError(result.error or "Failed to remove key", provider=str(provider))
        logger.info(f"Removed credential {account}")

    async def has_api_key(self, provider: Union[ProviderId, str]) -> bool:
        return bool(await self.get_api_key(provider))

    async def get_all_providers_status(self) -> Dict[ProviderId, KeyStatus]:
        """Check every provider for a stored key without touching the network."""
        status = {}
        for provider in ProviderId:
            try:
                status[provider] = KeyStatus(has_key=await self.has_api_key(provider))
            except CredentialStoreError as e:
                status[provider] = KeyStatus(has_key=False, error=e.message)
        return status

    @staticmethod
    def validate_api_key_format(provider: Union[ProviderId, str], api_key: Optional[str]) -> bool:
        """Check that a key looks like one issued by the provider."""
        if not api_key or not isinstance(api_key, str):
            return False
        try:
            pattern = KEY_FORMATS[ProviderId(provider)]
        except (ValueError, KeyError):
            pattern = GENERIC_KEY_FORMAT
        return bool(pattern.match(api_key.strip()))

    @staticmethod
    def mask_api_key(api_key: Optional[str]) -> str:
        """Mask a key for display, keeping the first 6 and last 4 characters."""
        if not api_key or not isinstance(api_key, str):
            return "***"
        key = api_key.strip()
        if len(key) <= 8:
            return "***"
        middle = "*" * max(0, min(12, len(key) - 10))
        return f"{key[:6]}{middle}{key[-4:]}"
