"""
Shared fixtures: a recording HTTP capability and a controllable clock.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from prompt_gateway.cache.models_cache import ModelsCache
from prompt_gateway.cache.storage import MemoryStorage
from prompt_gateway.core.config import GatewayConfig
from prompt_gateway.core.credentials import CredentialStore, InMemorySecretBackend
from prompt_gateway.core.gateway import AIGateway
from prompt_gateway.core.http import HttpCapability, HttpResult


@dataclass
class RecordedCall:
    url: str
    method: str
    headers: Dict[str, str]
    body: Optional[Dict[str, Any]]
    timeout_ms: int


@dataclass
class Route:
    method: str
    url_part: str
    responder: Union[HttpResult, Callable[[RecordedCall], HttpResult]]


class FakeHttp(HttpCapability):
    """Records every call and answers from registered routes (latest wins)."""

    def __init__(self):
        self.calls: List[RecordedCall] = []
        self._routes: List[Route] = []

    def reply(self, method: str, url_part: str, data: Any) -> None:
        self._routes.append(Route(method, url_part, HttpResult(success=True, data=data, status_code=200)))

    def fail(self, method: str, url_part: str, error: str, status_code: Optional[int] = None,
             timed_out: bool = False) -> None:
        self._routes.append(Route(
            method,
            url_part,
            HttpResult(success=False, error=error, status_code=status_code, timed_out=timed_out),
        ))

    def route(self, method: str, url_part: str, responder: Callable[[RecordedCall], HttpResult]) -> None:
        self._routes.append(Route(method, url_part, responder))

    def calls_to(self, url_part: str) -> List[RecordedCall]:
        return [c for c in self.calls if url_part in c.url]

    async def request(self, url, method="GET", headers=None, body=None, timeout_ms=60000):
        call = RecordedCall(url=url, method=method, headers=dict(headers or {}), body=body, timeout_ms=timeout_ms)
        self.calls.append(call)
        for route in reversed(self._routes):
            if route.method == method and route.url_part in url:
                if callable(route.responder):
                    return route.responder(call)
                return route.responder
        return HttpResult(success=False, error="Network error: connection refused")


@dataclass
class FakeClock:
    now: float = 1_700_000_000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return GatewayConfig()


@pytest.fixture
def models_cache(clock):
    return ModelsCache(MemoryStorage(), clock=clock)


@pytest.fixture
def credentials():
    return CredentialStore(InMemorySecretBackend())


@pytest.fixture
def gateway(credentials, http, config, models_cache, clock):
    return AIGateway(credentials, http, config=config, models_cache=models_cache, clock=clock)
