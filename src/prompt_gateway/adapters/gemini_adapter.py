"""
Google Gemini (Generative Language API) adapter.
"""

import logging
from typing import Any, Dict, List

from ..core.classification import ErrorRule
from ..core.errors import ErrorKind
from ..models.catalog import ModelDescriptor, ModelPricing
from ..models.provider import ProviderCapability, ProviderId
from ..models.request import OutboundRequest, RequestOptions
from ..models.response import AIResponse, Usage
from .base import BaseProviderAdapter

logger = logging.getLogger(__name__)


class GeminiAdapter(BaseProviderAdapter):
    """
    Adapter for the Gemini `generateContent` API.

    The key is sent in the `x-goog-api-key` header rather than the `?key=`
    query parameter so that request URLs are safe to log.
    """

    PROVIDER_ID = ProviderId.GEMINI
    DISPLAY_NAME = "Gemini"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-1.5-flash"

    CAPABILITIES = frozenset({
        ProviderCapability.STREAMING,
        ProviderCapability.VISION,
        ProviderCapability.MULTI_MODAL,
        ProviderCapability.LONG_CONTEXT,
        ProviderCapability.SAFETY,
        ProviderCapability.VIDEO,
    })

    FALLBACK_MODELS = (
        "gemini-1.5-flash",
        "gemini-1.5-flash-8b",
        "gemini-1.5-pro",
        "gemini-1.0-pro",
    )

    MODEL_NAMES = {
        "gemini-1.5-flash": "Gemini 1.5 Flash",
        "gemini-1.5-flash-8b": "Gemini 1.5 Flash 8B",
        "gemini-1.5-pro": "Gemini 1.5 Pro",
        "gemini-1.0-pro": "Gemini 1.0 Pro",
    }

    CONTEXT_LENGTHS = {
        "gemini-1.5-flash": 1048576,
        "gemini-1.5-flash-8b": 1048576,
        "gemini-1.5-pro": 2097152,
        "gemini-1.0-pro": 32768,
    }

    DESCRIPTIONS = {
        "gemini-1.5-flash": "Fast model with a very large context",
        "gemini-1.5-flash-8b": "Lightweight fast model with a large context",
        "gemini-1.5-pro": "Powerful model with a context of up to 2M tokens",
        "gemini-1.0-pro": "General purpose text model",
    }

    PRIORITIES = {
        "gemini-1.5-pro": 100,
        "gemini-1.5-flash": 80,
        "gemini-1.5-flash-8b": 70,
        "gemini-1.0-pro": 60,
    }

    PRICING = {
        "gemini-1.5-pro": ModelPricing(input=1.25, output=5),
        "gemini-1.5-flash": ModelPricing(input=0.075, output=0.3),
        "gemini-1.5-flash-8b": ModelPricing(input=0.0375, output=0.15),
        "gemini-1.0-pro": ModelPricing(input=0.5, output=1.5),
    }

    ALIASES = {
        "gemini-pro-latest": "gemini-1.5-pro",
        "gemini-flash-latest": "gemini-1.5-flash",
    }

    ERROR_RULES = (
        ErrorRule("INVALID_API_KEY", ErrorKind.AUTHENTICATION, "Invalid Google AI Studio API key"),
        ErrorRule("API_KEY_INVALID", ErrorKind.AUTHENTICATION, "Invalid Google AI Studio API key"),
        ErrorRule("QUOTA_EXCEEDED", ErrorKind.RATE_LIMIT, "Gemini API quota exceeded"),
        ErrorRule("RESOURCE_EXHAUSTED", ErrorKind.RATE_LIMIT, "Gemini token or request limit exhausted"),
    )

    DEFAULT_CONTEXT_LENGTH = 32768
    DEFAULT_DESCRIPTION = "Google Gemini model"

    def get_model_capabilities(self, model_id: str) -> Dict[str, bool]:
        is_15 = "1.5" in model_id
        return {
            "text_generation": True,
            "code_generation": True,
            "reasoning": True,
            "streaming": True,
            "functions": False,
            "vision": "vision" in model_id or is_15,
            "long_context": is_15,
            "video": is_15,
        }

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {"x-goog-api-key": api_key}

    @staticmethod
    def _short_id(name: str) -> str:
        return name.split("/")[-1]

    def _build_request(self, prompt: str, options: RequestOptions, api_key: str) -> OutboundRequest:
        generation_config: Dict[str, Any] = {
            "temperature": self._temperature(options),
            "maxOutputTokens": self._max_tokens(options),
        }
        if options.top_p is not None:
            generation_config["topP"] = options.top_p
        if options.top_k is not None:
            generation_config["topK"] = options.top_k
        if options.stop_sequences:
            generation_config["stopSequences"] = options.stop_sequences

        body: Dict[str, Any] = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        if options.system_prompt:
            body["systemInstruction"] = {"parts": [{"text": options.system_prompt}]}

        return OutboundRequest(
            url=f"{self._base_url}/models/{options.model}:generateContent",
            method="POST",
            headers=self._headers(api_key),
            body=body,
            timeout_ms=self._config.timeouts.request_ms,
        )

    def _parse_response(self, data: Dict[str, Any], model: str) -> AIResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            raise KeyError("candidates")

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        content = "".join(part.get("text", "") for part in parts)

        usage = data.get("usageMetadata") or {}
        return AIResponse(
            content=content,
            provider=self.PROVIDER_ID.value,
            model=model,
            usage=Usage.from_counts(
                usage.get("promptTokenCount"),
                usage.get("candidatesTokenCount"),
                usage.get("totalTokenCount"),
            ),
            finish_reason=candidate.get("finishReason") or "STOP",
        )

    def _catalog_request(self, api_key: str) -> OutboundRequest:
        return OutboundRequest(
            url=f"{self._base_url}/models",
            method="GET",
            headers=self._headers(api_key),
            timeout_ms=self._config.timeouts.catalog_ms,
        )

    def _parse_catalog(self, data: Any) -> List[ModelDescriptor]:
        models = []
        for item in (data or {}).get("models") or []:
            if "generateContent" not in (item.get("supportedGenerationMethods") or []):
                continue
            model_id = self._short_id(item.get("name") or "")
            if not model_id:
                continue
            models.append(self.describe_model(
                model_id,
                name=self.MODEL_NAMES.get(model_id) or item.get("displayName"),
                context_length=item.get("inputTokenLimit"),
                description=item.get("description"),
                max_output_tokens=item.get("outputTokenLimit"),
                extra={"version": item.get("version") or "1.0"},
            ))
        logger.debug(f"Gemini catalog: {len(models)} generative models")
        return models

    def _connection_request(self, api_key: str) -> OutboundRequest:
        return OutboundRequest(
            url=f"{self._base_url}/models/{self.DEFAULT_MODEL}:generateContent",
            method="POST",
            headers=self._headers(api_key),
            body={
                "contents": [{"parts": [{"text": "Hi"}]}],
                "generationConfig": {"maxOutputTokens": 10, "temperature": 0.1},
            },
            timeout_ms=self._config.timeouts.connection_test_ms,
        )
