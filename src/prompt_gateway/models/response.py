"""
Normalized response envelopes.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import ErrorKind


class Usage(BaseModel):
    """Token usage information."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(
        cls,
        input_tokens: Optional[int],
        output_tokens: Optional[int],
        total_tokens: Optional[int] = None,
    ) -> "Usage":
        """Build usage, computing the total when the vendor omits it."""
        input_tokens = input_tokens or 0
        output_tokens = output_tokens or 0
        if not total_tokens:
            total_tokens = input_tokens + output_tokens
        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
        )


class ModelConfigRef(BaseModel):
    """The configuration a response was produced with."""
    model_config = ConfigDict(protected_namespaces=())

    id: str
    name: Optional[str] = None
    provider: str
    model_id: str


class AIResponse(BaseModel):
    """Successful generation result."""
    success: Literal[True] = True
    content: str
    provider: str
    model: str
    usage: Usage = Field(default_factory=Usage)
    finish_reason: str = "unknown"
    duration_ms: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = Field(default_factory=dict)
    configuration: Optional[ModelConfigRef] = None


class AIErrorResponse(BaseModel):
    """Failed call, classified into one error kind."""
    success: Literal[False] = False
    error: str
    type: ErrorKind = ErrorKind.UNKNOWN
    provider: Optional[str] = None
    model: Optional[str] = None


AIResult = Union[AIResponse, AIErrorResponse]


class ConnectionTestResult(BaseModel):
    """Outcome of a connectivity test."""
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    type: Optional[ErrorKind] = None
    models_count: int = 0
    available_models: List[str] = Field(default_factory=list)
