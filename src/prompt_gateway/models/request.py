"""
Normalized request models.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RequestOptions(BaseModel):
    """
    Normalized generation options.

    Unknown keys are kept as provider-specific extras and are read by the
    adapters that understand them (e.g. Grok's `humor`).
    """
    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    system_prompt: Optional[str] = None
    stream: bool = False
    top_p: Optional[float] = Field(default=None, ge=0, le=1)
    top_k: Optional[int] = Field(default=None, ge=1)
    frequency_penalty: Optional[float] = Field(default=None, ge=-2, le=2)
    presence_penalty: Optional[float] = Field(default=None, ge=-2, le=2)
    stop_sequences: Optional[List[str]] = None

    @property
    def extras(self) -> Dict[str, Any]:
        """Provider-specific options not covered by the declared fields."""
        return dict(self.model_extra or {})

    def merged_with(self, overrides: "RequestOptions") -> "RequestOptions":
        """Return a copy where every explicitly set field of `overrides` wins."""
        data = self.model_dump()
        data.update(overrides.model_dump(exclude_unset=True))
        return RequestOptions(**data)


class OutboundRequest(BaseModel):
    """One call to be issued through the HTTP capability."""
    url: str
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None
    timeout_ms: int = 60000
