"""
Base for vendors that speak the OpenAI chat-completions dialect.

OpenAI, Grok and OpenRouter share the request and response shapes; they
differ in headers, extras and catalog filtering.
"""

from typing import Any, Dict, List

from ..models.request import OutboundRequest, RequestOptions
from ..models.response import AIResponse, Usage
from .base import BaseProviderAdapter


class ChatCompletionsAdapter(BaseProviderAdapter):
    """Adapter for `/chat/completions` style APIs with bearer authentication."""

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def _messages(self, prompt: str, options: RequestOptions) -> List[Dict[str, str]]:
        messages = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _body(self, prompt: str, options: RequestOptions) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": options.model,
            "messages": self._messages(prompt, options),
            "temperature": self._temperature(options),
            "max_tokens": self._max_tokens(options),
            "stream": options.stream,
        }
        if options.top_p is not None:
            body["top_p"] = options.top_p
        if options.stop_sequences:
            body["stop"] = options.stop_sequences
        return body

    def _build_request(self, prompt: str, options: RequestOptions, api_key: str) -> OutboundRequest:
        return OutboundRequest(
            url=f"{self._base_url}/chat/completions",
            method="POST",
            headers=self._headers(api_key),
            body=self._body(prompt, options),
            timeout_ms=self._config.timeouts.request_ms,
        )

    def _response_metadata(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    def _parse_response(self, data: Dict[str, Any], model: str) -> AIResponse:
        choices = data.get("choices") or []
        if not choices:
            raise KeyError("choices")

        choice = choices[0]
        message = choice.get("message") or {}
        content = message.get("content") or choice.get("text") or ""

        usage = data.get("usage") or {}
        return AIResponse(
            content=content,
            provider=self.PROVIDER_ID.value,
            model=model,
            usage=Usage.from_counts(
                usage.get("prompt_tokens"),
                usage.get("completion_tokens"),
                usage.get("total_tokens"),
            ),
            finish_reason=choice.get("finish_reason") or "unknown",
            metadata=self._response_metadata(data),
        )

    def _catalog_request(self, api_key: str) -> OutboundRequest:
        return OutboundRequest(
            url=f"{self._base_url}/models",
            method="GET",
            headers=self._headers(api_key),
            timeout_ms=self._config.timeouts.catalog_ms,
        )

    def _catalog_items(self, data: Any) -> List[Dict[str, Any]]:
        if isinstance(data, list):
            return data
        return (data or {}).get("data") or []
