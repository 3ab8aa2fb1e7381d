"""
Outbound HTTP capability.

Adapters never open sockets themselves; they go through an `HttpCapability`
supplied by the host application. Transport failures, timeouts and non-2xx
statuses all come back as `HttpResult(success=False, ...)` so that adapters
can classify them uniformly.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "prompt-gateway/1.0.0"


@dataclass
class HttpResult:
    """Result of one outbound call."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    timed_out: bool = False


class HttpCapability(ABC):
    """Host-supplied outbound HTTP capability."""

    @abstractmethod
    async def request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
        timeout_ms: int = 60000,
    ) -> HttpResult:
        """
        Issue one request with a JSON body and return its JSON payload.

        Args:
            url: Absolute URL
            method: HTTP method
            headers: Request headers (bearer tokens, API version headers)
            body: JSON body
            timeout_ms: Deadline for the whole call

        Returns:
            HttpResult; never raises for transport or HTTP failures
        """
        pass

    async def aclose(self) -> None:
        """Close any underlying resources (optional)."""
        return None


class HttpxCapability(HttpCapability):
    """
    HTTP capability backed by httpx.AsyncClient.

    A single client is reused across calls; the per-call timeout overrides
    the client default.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: bool = True,
    ):
        """
        Initialize the capability.

        Args:
            transport: Optional transport (used by tests with MockTransport)
            verify: Verify TLS certificates
        """
        self._transport = transport
        self._verify = verify
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                verify=self._verify,
                headers={"User-Agent": USER_AGENT},
            )
        return self._client

    async def request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
        timeout_ms: int = 60000,
    ) -> HttpResult:
        client = self._get_client()
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})

        logger.debug(f"HTTP {method} {url.split('?', 1)[0]}")

        try:
            response = await client.request(
                method,
                url,
                headers=request_headers,
                json=body,
                timeout=httpx.Timeout(timeout_ms / 1000),
            )
        except httpx.TimeoutException:
            return HttpResult(success=False, error="Request timeout", timed_out=True)
        except httpx.RequestError as e:
            return HttpResult(success=False, error=f"Network error: {e}")

        text = response.text
        if not text:
            return HttpResult(
                success=False,
                error=f"Empty response from server (status: {response.status_code})",
                status_code=response.status_code,
            )

        if not response.is_success:
            return HttpResult(
                success=False,
                error=f"HTTP {response.status_code}: {text[:1000]}",
                status_code=response.status_code,
            )

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            return HttpResult(
                success=False,
                error=f"Parse error: {e}",
                status_code=response.status_code,
            )

        return HttpResult(success=True, data=data, status_code=response.status_code)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
