"""
Model catalog data models.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.errors import ErrorKind
from .provider import ProviderId


class CatalogSource(str, Enum):
    """Which tier answered a catalog read."""
    MEMORY = "memory"
    PERSISTENT = "persistent"
    API = "api"
    STALE = "stale"
    FALLBACK = "fallback"


class ModelPricing(BaseModel):
    """Input/output cost of a model."""
    input: float = 0.0
    output: float = 0.0
    unit: str = "usd_per_million_tokens"


class ModelDescriptor(BaseModel):
    """A callable model as exposed by a provider."""
    id: str
    name: str
    provider: ProviderId
    context_length: int = 4096
    description: str = ""
    capabilities: Dict[str, bool] = Field(default_factory=dict)
    pricing: Optional[ModelPricing] = None
    created_at: Optional[datetime] = None
    max_output_tokens: Optional[int] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    def created_timestamp(self) -> Optional[float]:
        if self.created_at is None:
            return None
        return self.created_at.timestamp()


class CatalogEntry(BaseModel):
    """
    Persistent cache record for one provider.

    Serialized as {timestamp, provider, models, count, source, ...metadata}.
    """
    provider: str
    timestamp: float
    models: List[ModelDescriptor] = Field(default_factory=list)
    count: int = 0
    source: str = CatalogSource.API.value
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_fresh(self, ttl: float, now: float) -> bool:
        return self.age(now) < ttl


class CatalogResult(BaseModel):
    """Tagged catalog read result, so callers can tell which tier answered."""
    provider: ProviderId
    models: List[ModelDescriptor]
    source: CatalogSource
    timestamp: Optional[float] = None

    @property
    def is_degraded(self) -> bool:
        return self.source in (CatalogSource.STALE, CatalogSource.FALLBACK)

    @property
    def is_live(self) -> bool:
        return self.source is CatalogSource.API


class ProviderModelsResult(BaseModel):
    """Outcome of loading one provider's models through the gateway."""
    provider: str
    success: bool
    models: List[ModelDescriptor] = Field(default_factory=list)
    source: Optional[CatalogSource] = None
    error: Optional[str] = None
    type: Optional[ErrorKind] = None


class AllModelsResult(BaseModel):
    """Per-provider models, with failures collected alongside."""
    models: Dict[str, List[ModelDescriptor]] = Field(default_factory=dict)
    errors: Dict[str, str] = Field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
