"""
User-defined model configuration profiles.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .provider import ProviderId


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModelConfiguration(BaseModel):
    """
    A named profile binding a provider, a model id and sampling parameters.

    The registry, not this model, guarantees that at most one profile has
    `is_default` set.
    """
    model_config = ConfigDict(protected_namespaces=(), validate_assignment=True)

    id: str
    provider: ProviderId
    model_id: str
    name: Optional[str] = None
    custom_name: Optional[str] = None
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=4000, ge=1)
    is_default: bool = False
    created: datetime = Field(default_factory=_utcnow)
    updated: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.custom_name or self.name or self.model_id
