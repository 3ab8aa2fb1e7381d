"""
xAI Grok adapter.
"""

import logging
from typing import Any, Dict, List

from ..core.classification import ErrorRule
from ..core.errors import ErrorKind
from ..models.catalog import ModelDescriptor, ModelPricing
from ..models.provider import ProviderCapability, ProviderId
from ..models.request import OutboundRequest, RequestOptions
from .base import parse_created
from .openai_compat import ChatCompletionsAdapter

logger = logging.getLogger(__name__)

API_VERSION = "v1"


class GrokAdapter(ChatCompletionsAdapter):
    """
    Adapter for the xAI chat-completions API.

    Understands two extra options: `humor` (0-10) and `real_time`.
    """

    PROVIDER_ID = ProviderId.GROK
    DISPLAY_NAME = "Grok"
    DEFAULT_BASE_URL = "https://api.x.ai/v1"
    DEFAULT_MODEL = "grok-2"

    CAPABILITIES = frozenset({
        ProviderCapability.STREAMING,
        ProviderCapability.FUNCTIONS,
        ProviderCapability.LONG_CONTEXT,
        ProviderCapability.REAL_TIME_DATA,
    })

    FALLBACK_MODELS = (
        "grok-2",
        "grok-2-mini",
        "grok-beta",
    )

    MODEL_NAMES = {
        "grok-2": "Grok 2",
        "grok-2-mini": "Grok 2 Mini",
        "grok-beta": "Grok Beta",
    }

    CONTEXT_LENGTHS = {
        "grok-2": 131072,
        "grok-2-mini": 131072,
        "grok-beta": 131072,
    }

    DESCRIPTIONS = {
        "grok-2": "Grok model with up-to-date data and a large context",
        "grok-2-mini": "Smaller, faster Grok 2 model",
        "grok-beta": "Preview Grok model",
    }

    PRIORITIES = {
        "grok-2": 100,
        "grok-2-mini": 90,
        "grok-beta": 50,
    }

    PRICING = {
        "grok-2": ModelPricing(input=2, output=10),
        "grok-beta": ModelPricing(input=5, output=15),
    }

    ALIASES = {
        "grok-2-latest": "grok-2",
        "grok-latest": "grok-2",
    }

    ERROR_RULES = (
        ErrorRule("invalid_api_key", ErrorKind.AUTHENTICATION, "Invalid xAI API key"),
        ErrorRule("rate_limit", ErrorKind.RATE_LIMIT, "Grok API rate limit exceeded"),
        ErrorRule("model_not_available", ErrorKind.MODEL_UNAVAILABLE, "The requested Grok model is not available"),
    )

    DEFAULT_CONTEXT_LENGTH = 8192
    DEFAULT_DESCRIPTION = "Grok model from xAI"

    def get_model_capabilities(self, model_id: str) -> Dict[str, bool]:
        is_v2 = "2" in model_id
        return {
            "text_generation": True,
            "code_generation": True,
            "reasoning": True,
            "streaming": True,
            "functions": is_v2,
            "vision": "vision" in model_id,
            "long_context": is_v2,
            "real_time_data": True,
        }

    def _headers(self, api_key: str) -> Dict[str, str]:
        headers = super()._headers(api_key)
        headers["X-API-Version"] = API_VERSION
        return headers

    def _body(self, prompt: str, options: RequestOptions) -> Dict[str, Any]:
        body = super()._body(prompt, options)
        extras = options.extras
        if extras.get("humor") is not None:
            body["humor_level"] = extras["humor"]
        real_time = extras.get("real_time", extras.get("realTime"))
        if real_time is not None:
            body["real_time_data"] = real_time
        return body

    def _response_metadata(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "humor_detected": data.get("humor_score") or 0,
            "real_time_used": bool(data.get("real_time_sources")),
        }

    def _parse_catalog(self, data: Any) -> List[ModelDescriptor]:
        models = []
        for item in self._catalog_items(data):
            if item.get("active") is False:
                continue
            model_id = item.get("id")
            if not model_id:
                continue
            models.append(self.describe_model(
                model_id,
                context_length=item.get("context_window"),
                description=item.get("description"),
                created_at=parse_created(item.get("created")),
            ))
        logger.debug(f"Grok catalog: {len(models)} models")
        return models

    def _connection_request(self, api_key: str) -> OutboundRequest:
        return OutboundRequest(
            url=f"{self._base_url}/chat/completions",
            method="POST",
            headers=self._headers(api_key),
            body={
                "model": self.DEFAULT_MODEL,
                "messages": [{"role": "user", "content": "Hi"}],
                "max_tokens": 10,
                "temperature": 0.1,
            },
            timeout_ms=self._config.timeouts.connection_test_ms,
        )
