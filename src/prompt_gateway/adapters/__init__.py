"""
Provider adapters, one per supported vendor.
"""

from .base import BaseProviderAdapter
from .openai_compat import ChatCompletionsAdapter
from .openai_adapter import OpenAIAdapter
from .anthropic_adapter import AnthropicAdapter
from .gemini_adapter import GeminiAdapter
from .grok_adapter import GrokAdapter
from .openrouter_adapter import OpenRouterAdapter

__all__ = [
    "BaseProviderAdapter",
    "ChatCompletionsAdapter",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GeminiAdapter",
    "GrokAdapter",
    "OpenRouterAdapter",
]
