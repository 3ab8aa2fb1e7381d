"""
Anthropic Messages API adapter.
"""

import logging
from typing import Any, Dict, List

from ..core.classification import ErrorRule
from ..core.errors import ErrorKind
from ..models.catalog import ModelDescriptor, ModelPricing
from ..models.provider import ProviderCapability, ProviderId
from ..models.request import OutboundRequest, RequestOptions
from ..models.response import AIResponse, Usage
from .base import BaseProviderAdapter, parse_created

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(BaseProviderAdapter):
    """
    Adapter for Anthropic's Messages API.

    Requests use the `x-api-key` header and a pinned `anthropic-version`.
    """

    PROVIDER_ID = ProviderId.ANTHROPIC
    DISPLAY_NAME = "Anthropic"
    DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
    DEFAULT_MODEL = "claude-sonnet-4-20250514"
    CONNECTION_TEST_MODEL = "claude-3-5-haiku-20241022"

    CAPABILITIES = frozenset({
        ProviderCapability.STREAMING,
        ProviderCapability.VISION,
        ProviderCapability.MULTI_MODAL,
        ProviderCapability.LONG_CONTEXT,
        ProviderCapability.SAFETY,
        ProviderCapability.REASONING,
    })

    FALLBACK_MODELS = (
        "claude-sonnet-4-20250514",
        "claude-opus-4-20250514",
        "claude-3-7-sonnet-20250224",
        "claude-3-5-sonnet-20241022",
        "claude-3-5-sonnet-20240620",
        "claude-3-5-haiku-20241022",
        "claude-3-opus-20240229",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
    )

    MODEL_NAMES = {
        "claude-sonnet-4-20250514": "Claude Sonnet 4",
        "claude-opus-4-20250514": "Claude Opus 4",
        "claude-3-7-sonnet-20250224": "Claude 3.7 Sonnet",
        "claude-3-5-sonnet-20241022": "Claude 3.5 Sonnet (Oct 2024)",
        "claude-3-5-sonnet-20240620": "Claude 3.5 Sonnet (June 2024)",
        "claude-3-5-haiku-20241022": "Claude 3.5 Haiku",
        "claude-3-opus-20240229": "Claude 3 Opus",
        "claude-3-sonnet-20240229": "Claude 3 Sonnet",
        "claude-3-haiku-20240307": "Claude 3 Haiku",
    }

    DESCRIPTIONS = {
        "claude-sonnet-4-20250514": "Claude 4 model with strong coding and reasoning",
        "claude-opus-4-20250514": "The most capable Claude 4 model for complex tasks",
        "claude-3-7-sonnet-20250224": "Hybrid model with extended thinking",
        "claude-3-5-sonnet-20241022": "Claude 3.5 Sonnet with improved capabilities",
        "claude-3-5-sonnet-20240620": "Claude 3.5 Sonnet for demanding tasks",
        "claude-3-5-haiku-20241022": "Fast and economical Claude 3.5 model",
        "claude-3-opus-20240229": "Powerful Claude 3 model for analysis",
        "claude-3-sonnet-20240229": "Balances performance and speed",
        "claude-3-haiku-20240307": "Fast Claude model for simple tasks",
    }

    PRIORITIES = {
        "claude-opus-4-20250514": 100,
        "claude-sonnet-4-20250514": 95,
        "claude-3-7-sonnet-20250224": 90,
        "claude-3-5-sonnet-20241022": 85,
        "claude-3-5-sonnet-20240620": 80,
        "claude-3-5-haiku-20241022": 75,
        "claude-3-opus-20240229": 70,
        "claude-3-sonnet-20240229": 65,
        "claude-3-haiku-20240307": 60,
    }

    PRICING = {
        "claude-opus-4-20250514": ModelPricing(input=15, output=75),
        "claude-sonnet-4-20250514": ModelPricing(input=3, output=15),
        "claude-3-7-sonnet-20250224": ModelPricing(input=3, output=15),
        "claude-3-5-sonnet-20241022": ModelPricing(input=3, output=15),
        "claude-3-5-sonnet-20240620": ModelPricing(input=3, output=15),
        "claude-3-5-haiku-20241022": ModelPricing(input=0.8, output=4),
        "claude-3-opus-20240229": ModelPricing(input=15, output=75),
        "claude-3-sonnet-20240229": ModelPricing(input=3, output=15),
        "claude-3-haiku-20240307": ModelPricing(input=0.25, output=1.25),
    }

    ALIASES = {
        "claude-3-latest": "claude-3-5-sonnet-20241022",
        "claude-3-sonnet-latest": "claude-3-5-sonnet-20241022",
        "claude-3-opus-latest": "claude-3-opus-20240229",
        "claude-3-haiku-latest": "claude-3-5-haiku-20241022",
        "claude-4-latest": "claude-sonnet-4-20250514",
        "claude-sonnet-latest": "claude-sonnet-4-20250514",
        "claude-opus-latest": "claude-opus-4-20250514",
    }

    ERROR_RULES = (
        ErrorRule("credit_balance_too_low", ErrorKind.BILLING, "Insufficient credit balance on the Anthropic account"),
        ErrorRule("rate_limit_exceeded", ErrorKind.RATE_LIMIT, "Anthropic API rate limit exceeded"),
        ErrorRule("model_not_found", ErrorKind.MODEL_UNAVAILABLE, "The requested Claude model is not available"),
    )

    DEFAULT_CONTEXT_LENGTH = 200000
    DEFAULT_PRIORITY = 50
    DEFAULT_DESCRIPTION = "Anthropic Claude model"

    def get_model_capabilities(self, model_id: str) -> Dict[str, bool]:
        is_claude3 = "claude-3" in model_id
        is_claude35 = "claude-3-5" in model_id
        is_claude37 = "claude-3-7" in model_id
        is_claude4 = "-4-" in model_id or "sonnet-4" in model_id or "opus-4" in model_id
        is_sonnet = "sonnet" in model_id
        is_opus = "opus" in model_id
        recent = is_claude35 or is_claude37 or is_claude4
        return {
            "text_generation": True,
            "code_generation": True,
            "reasoning": is_claude3 or is_claude4,
            "streaming": True,
            "functions": False,
            "vision": (is_claude3 or is_claude4) and (is_sonnet or is_opus),
            "long_context": True,
            "tool_use": recent,
            "extended_thinking": is_claude37 or is_claude4,
        }

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _catalog_metadata(self) -> Dict[str, Any]:
        return {"api_version": ANTHROPIC_VERSION}

    def _build_request(self, prompt: str, options: RequestOptions, api_key: str) -> OutboundRequest:
        body: Dict[str, Any] = {
            "model": options.model,
            "max_tokens": self._max_tokens(options),
            "temperature": self._temperature(options),
            "stream": options.stream,
            "messages": [{"role": "user", "content": prompt}],
        }
        if options.system_prompt:
            body["system"] = options.system_prompt
        if options.top_p is not None:
            body["top_p"] = options.top_p
        if options.top_k is not None:
            body["top_k"] = options.top_k
        if options.stop_sequences:
            body["stop_sequences"] = options.stop_sequences

        return OutboundRequest(
            url=f"{self._base_url}/messages",
            method="POST",
            headers=self._headers(api_key),
            body=body,
            timeout_ms=self._config.timeouts.request_ms,
        )

    def _parse_response(self, data: Dict[str, Any], model: str) -> AIResponse:
        blocks = data.get("content") or []
        if not blocks:
            raise KeyError("content")

        content = "".join(block.get("text", "") for block in blocks if block.get("type") == "text")
        usage = data.get("usage") or {}
        return AIResponse(
            content=content,
            provider=self.PROVIDER_ID.value,
            model=model,
            usage=Usage.from_counts(usage.get("input_tokens"), usage.get("output_tokens")),
            finish_reason=data.get("stop_reason") or "stop",
        )

    def _catalog_request(self, api_key: str) -> OutboundRequest:
        return OutboundRequest(
            url=f"{self._base_url}/models",
            method="GET",
            headers=self._headers(api_key),
            timeout_ms=self._config.timeouts.catalog_ms,
        )

    def _parse_catalog(self, data: Any) -> List[ModelDescriptor]:
        if isinstance(data, list):
            items = data
        else:
            data = data or {}
            items = data.get("data") or data.get("models") or []

        models = []
        for item in items:
            if item.get("type") not in (None, "model"):
                continue
            model_id = item.get("id") or item.get("model_id") or item.get("name")
            if not model_id:
                continue
            models.append(self.describe_model(
                model_id,
                name=item.get("display_name"),
                context_length=item.get("context_length"),
                description=item.get("description"),
                created_at=parse_created(item.get("created_at") or item.get("created")),
                max_output_tokens=item.get("max_tokens") or item.get("max_output_tokens"),
            ))
        logger.debug(f"Anthropic catalog: {len(models)} models")
        return models

    def _connection_request(self, api_key: str) -> OutboundRequest:
        return OutboundRequest(
            url=f"{self._base_url}/messages",
            method="POST",
            headers=self._headers(api_key),
            body={
                "model": self.CONNECTION_TEST_MODEL,
                "max_tokens": 10,
                "messages": [{"role": "user", "content": "Hi"}],
            },
            timeout_ms=self._config.timeouts.connection_test_ms,
        )
