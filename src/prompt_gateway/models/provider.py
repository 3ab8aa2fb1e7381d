"""
Provider identity and capability models.
"""

from enum import Enum
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProviderId(str, Enum):
    """The closed set of supported vendors."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    GROK = "grok"
    OPENROUTER = "openrouter"


class ProviderCapability(str, Enum):
    """Capabilities that a provider may declare."""
    STREAMING = "streaming"
    FUNCTIONS = "functions"
    VISION = "vision"
    LONG_CONTEXT = "long_context"
    MULTI_MODAL = "multi_modal"
    EMBEDDINGS = "embeddings"
    FINE_TUNING = "fine_tuning"
    SAFETY = "safety"
    REASONING = "reasoning"
    VIDEO = "video"
    REAL_TIME_DATA = "real_time_data"
    MULTI_PROVIDER = "multi_provider"
    PRICING = "pricing"


class ProviderDescriptor(BaseModel):
    """Immutable description of one provider, created at process start."""
    model_config = ConfigDict(frozen=True)

    id: ProviderId
    name: str
    base_url: str
    capabilities: FrozenSet[ProviderCapability]


class ProviderStatus(BaseModel):
    """Whether a provider is usable, as seen by the credential store."""
    provider: str
    has_key: bool
    status: str
    capabilities: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return self.status == "configured"
