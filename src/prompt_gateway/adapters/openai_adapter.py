"""
OpenAI API adapter.

Talks to api.openai.com directly with a bearer key.
"""

import logging
from typing import Any, Dict, List

from ..core.classification import ErrorRule
from ..core.errors import ErrorKind
from ..models.catalog import ModelDescriptor, ModelPricing
from ..models.provider import ProviderCapability, ProviderId
from ..models.request import OutboundRequest, RequestOptions
from ..models.response import ConnectionTestResult
from .base import parse_created
from .openai_compat import ChatCompletionsAdapter

logger = logging.getLogger(__name__)


class OpenAIAdapter(ChatCompletionsAdapter):
    """
    Direct OpenAI API adapter.

    Only GPT chat models are exposed from the catalog.
    """

    PROVIDER_ID = ProviderId.OPENAI
    DISPLAY_NAME = "OpenAI"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    DEFAULT_MODEL = "gpt-3.5-turbo"

    CAPABILITIES = frozenset({
        ProviderCapability.STREAMING,
        ProviderCapability.FUNCTIONS,
        ProviderCapability.VISION,
        ProviderCapability.MULTI_MODAL,
        ProviderCapability.FINE_TUNING,
        ProviderCapability.EMBEDDINGS,
    })

    FALLBACK_MODELS = (
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4-turbo",
        "gpt-4",
        "gpt-3.5-turbo",
    )

    MODEL_NAMES = {
        "gpt-4o": "GPT-4o",
        "gpt-4o-mini": "GPT-4o Mini",
        "gpt-4-turbo": "GPT-4 Turbo",
        "gpt-4-turbo-preview": "GPT-4 Turbo Preview",
        "gpt-4": "GPT-4",
        "gpt-4-32k": "GPT-4 32K",
        "gpt-3.5-turbo": "GPT-3.5 Turbo",
        "gpt-3.5-turbo-16k": "GPT-3.5 Turbo 16K",
    }

    CONTEXT_LENGTHS = {
        "gpt-4o": 128000,
        "gpt-4o-mini": 128000,
        "gpt-4-turbo": 128000,
        "gpt-4-turbo-preview": 128000,
        "gpt-4": 8192,
        "gpt-4-32k": 32768,
        "gpt-3.5-turbo": 16385,
        "gpt-3.5-turbo-16k": 16384,
    }

    DESCRIPTIONS = {
        "gpt-4o": "Multimodal flagship model with fast responses",
        "gpt-4o-mini": "Small, inexpensive model for everyday tasks",
        "gpt-4-turbo": "The most capable GPT-4 model with improved speed",
        "gpt-4": "OpenAI's flagship model with excellent quality",
        "gpt-4-32k": "GPT-4 with an extended 32K token context",
        "gpt-3.5-turbo": "Fast and efficient model for most tasks",
        "gpt-3.5-turbo-16k": "GPT-3.5 with an extended context",
    }

    PRIORITIES = {
        "gpt-4o": 100,
        "gpt-4o-mini": 95,
        "gpt-4-turbo": 90,
        "gpt-4": 80,
        "gpt-4-32k": 75,
        "gpt-3.5-turbo": 60,
        "gpt-3.5-turbo-16k": 55,
    }

    PRICING = {
        "gpt-4o": ModelPricing(input=2.5, output=10),
        "gpt-4o-mini": ModelPricing(input=0.15, output=0.6),
        "gpt-4-turbo": ModelPricing(input=10, output=30),
        "gpt-4": ModelPricing(input=30, output=60),
        "gpt-3.5-turbo": ModelPricing(input=0.5, output=1.5),
    }

    ALIASES = {
        "gpt-4-latest": "gpt-4o",
        "gpt-4o-latest": "gpt-4o",
        "gpt-3.5-latest": "gpt-3.5-turbo",
    }

    ERROR_RULES = (
        ErrorRule("insufficient_quota", ErrorKind.BILLING, "Insufficient quota on the OpenAI account"),
        ErrorRule("model_not_found", ErrorKind.MODEL_UNAVAILABLE, "The requested OpenAI model is not available"),
        ErrorRule("invalid_api_key", ErrorKind.AUTHENTICATION, "Invalid OpenAI API key"),
    )

    DEFAULT_DESCRIPTION = "OpenAI GPT model"

    def get_model_capabilities(self, model_id: str) -> Dict[str, bool]:
        is_gpt4 = "gpt-4" in model_id
        return {
            "text_generation": True,
            "code_generation": True,
            "reasoning": is_gpt4,
            "streaming": True,
            "functions": is_gpt4,
            "vision": "vision" in model_id or "turbo" in model_id or "4o" in model_id,
        }

    def get_model_priority(self, model_id: str) -> int:
        if model_id in self.PRIORITIES:
            return self.PRIORITIES[model_id]
        return 50 if "gpt-4" in model_id else 10

    def _body(self, prompt: str, options: RequestOptions) -> Dict[str, Any]:
        body = super()._body(prompt, options)
        if options.frequency_penalty is not None:
            body["frequency_penalty"] = options.frequency_penalty
        if options.presence_penalty is not None:
            body["presence_penalty"] = options.presence_penalty
        return body

    @staticmethod
    def _is_chat_model(model_id: str) -> bool:
        return "gpt" in model_id and ("gpt-4" in model_id or "gpt-3.5" in model_id)

    def _parse_catalog(self, data: Any) -> List[ModelDescriptor]:
        models = []
        for item in self._catalog_items(data):
            model_id = item.get("id") or ""
            if not self._is_chat_model(model_id):
                continue
            models.append(self.describe_model(model_id, created_at=parse_created(item.get("created"))))
        logger.debug(f"OpenAI catalog: {len(models)} chat models")
        return models

    def _connection_request(self, api_key: str) -> OutboundRequest:
        request = self._catalog_request(api_key)
        request.timeout_ms = self._config.timeouts.connection_list_models_ms
        return request

    def _connection_result(self, data: Any) -> ConnectionTestResult:
        gpt_models = [
            item.get("id") for item in self._catalog_items(data)
            if "gpt" in (item.get("id") or "")
        ]
        return ConnectionTestResult(
            success=True,
            message="Connected to OpenAI",
            models_count=len(gpt_models),
            available_models=gpt_models[:5],
        )
