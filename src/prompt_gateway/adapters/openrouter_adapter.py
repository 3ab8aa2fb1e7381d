"""
OpenRouter adapter.

OpenRouter fronts many vendors behind one OpenAI-compatible API. Model ids
are namespaced by the upstream vendor ("anthropic/claude-3-opus").
"""

import logging
import re
from typing import Any, Dict, List, Optional

from ..core.classification import ErrorRule
from ..core.errors import ErrorKind
from ..models.catalog import ModelDescriptor, ModelPricing
from ..models.provider import ProviderCapability, ProviderId
from ..models.request import OutboundRequest, RequestOptions
from ..models.response import ConnectionTestResult
from .base import parse_created
from .openai_compat import ChatCompletionsAdapter

logger = logging.getLogger(__name__)

APP_REFERER = "https://prompt-constructor.app"
APP_TITLE = "Prompt Constructor"

UPSTREAM_NAMES = {
    "openai": "OpenAI",
    "anthropic": "Anthropic",
    "meta-llama": "Meta",
    "google": "Google",
    "mistralai": "Mistral AI",
    "cohere": "Cohere",
    "huggingface": "Hugging Face",
}


class OpenRouterAdapter(ChatCompletionsAdapter):
    """Adapter for OpenRouter's multi-vendor chat-completions API."""

    PROVIDER_ID = ProviderId.OPENROUTER
    DISPLAY_NAME = "OpenRouter"
    DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
    DEFAULT_MODEL = "openai/gpt-3.5-turbo"

    CAPABILITIES = frozenset({
        ProviderCapability.STREAMING,
        ProviderCapability.FUNCTIONS,
        ProviderCapability.VISION,
        ProviderCapability.MULTI_MODAL,
        ProviderCapability.MULTI_PROVIDER,
        ProviderCapability.PRICING,
    })

    FALLBACK_MODELS = (
        "openai/gpt-4-turbo",
        "openai/gpt-4",
        "openai/gpt-3.5-turbo",
        "anthropic/claude-3-opus",
        "anthropic/claude-3-sonnet",
        "anthropic/claude-3-haiku",
        "meta-llama/llama-2-70b-chat",
        "google/gemini-pro",
        "mistralai/mixtral-8x7b-instruct",
        "cohere/command-r-plus",
    )

    # Popular models first, in the order above.
    PRIORITIES = {model_id: 100 - index for index, model_id in enumerate(FALLBACK_MODELS)}

    ERROR_RULES = (
        ErrorRule("insufficient_quota", ErrorKind.BILLING, "Insufficient balance on the OpenRouter account"),
        ErrorRule("model_not_found", ErrorKind.MODEL_UNAVAILABLE, "The requested model is not available through OpenRouter"),
        ErrorRule("provider_error", ErrorKind.UNKNOWN, "The upstream model provider returned an error"),
    )

    DEFAULT_CONTEXT_LENGTH = 4096

    @staticmethod
    def upstream_provider(model_id: str) -> str:
        vendor = model_id.split("/", 1)[0]
        return UPSTREAM_NAMES.get(vendor, vendor)

    def get_model_display_name(self, model_id: str) -> str:
        name = model_id.split("/")[-1].replace("-", " ")
        name = re.sub(r"\b\w", lambda m: m.group(0).upper(), name)
        return name.replace("Gpt", "GPT").replace("Llama", "LLaMA")

    def get_model_description(self, model_id: str, context_length: Optional[int] = None,
                              prompt_cost: Optional[float] = None) -> str:
        description = f"{self.upstream_provider(model_id)} model"
        context_length = context_length or self.DEFAULT_CONTEXT_LENGTH
        if context_length > 32000:
            description += " with an extended context"
        elif context_length > 16000:
            description += " with a large context"

        if prompt_cost is not None:
            if prompt_cost == 0:
                description += " (free)"
            elif prompt_cost < 0.001:
                description += " (low cost)"
            elif prompt_cost > 0.01:
                description += " (premium)"
        return description

    def get_model_capabilities(self, model_id: str) -> Dict[str, bool]:
        model_id = model_id.lower()
        is_gpt4 = "gpt-4" in model_id
        is_claude3 = "claude-3" in model_id
        return {
            "text_generation": True,
            "code_generation": is_gpt4 or is_claude3 or "code" in model_id,
            "reasoning": is_gpt4 or is_claude3,
            "streaming": True,
            "functions": is_gpt4,
            "vision": "vision" in model_id or (is_gpt4 and "turbo" in model_id),
            "open_source": "llama" in model_id or "mixtral" in model_id,
        }

    def _headers(self, api_key: str) -> Dict[str, str]:
        headers = super()._headers(api_key)
        headers["HTTP-Referer"] = APP_REFERER
        headers["X-Title"] = APP_TITLE
        return headers

    def _body(self, prompt: str, options: RequestOptions) -> Dict[str, Any]:
        body = super()._body(prompt, options)
        if options.frequency_penalty is not None:
            body["frequency_penalty"] = options.frequency_penalty
        if options.presence_penalty is not None:
            body["presence_penalty"] = options.presence_penalty
        return body

    @staticmethod
    def _is_listed(model_id: str) -> bool:
        return "moderated" not in model_id and "deprecated" not in model_id

    @staticmethod
    def _per_token(value: Any) -> float:
        # OpenRouter quotes USD per token as a string.
        try:
            return float(value or 0)
        except (TypeError, ValueError):
            return 0.0

    def _parse_catalog(self, data: Any) -> List[ModelDescriptor]:
        models = []
        for item in self._catalog_items(data):
            model_id = item.get("id") or ""
            pricing = item.get("pricing")
            if not model_id or not self._is_listed(model_id):
                continue
            if not pricing or (pricing.get("prompt") is None and pricing.get("completion") is None):
                continue

            context_length = item.get("context_length") or self.DEFAULT_CONTEXT_LENGTH
            prompt_cost = self._per_token(pricing.get("prompt"))
            completion_cost = self._per_token(pricing.get("completion"))
            models.append(self.describe_model(
                model_id,
                name=item.get("name"),
                context_length=context_length,
                description=item.get("description") or self.get_model_description(
                    model_id, context_length, prompt_cost
                ),
                pricing=ModelPricing(
                    input=prompt_cost * 1_000_000,
                    output=completion_cost * 1_000_000,
                ),
                created_at=parse_created(item.get("created")),
                extra={
                    "upstream_provider": self.upstream_provider(model_id),
                    "top_provider": item.get("top_provider"),
                },
            ))
        logger.debug(f"OpenRouter catalog: {len(models)} priced models")
        return models

    def _connection_request(self, api_key: str) -> OutboundRequest:
        request = self._catalog_request(api_key)
        request.timeout_ms = self._config.timeouts.connection_list_models_ms
        return request

    def _connection_result(self, data: Any) -> ConnectionTestResult:
        listed = [item for item in self._catalog_items(data) if self._is_listed(item.get("id") or "")]
        return ConnectionTestResult(
            success=True,
            message="Connected to OpenRouter",
            models_count=len(listed),
            available_models=list(self.FALLBACK_MODELS[:5]),
        )
