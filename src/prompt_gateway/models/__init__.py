"""
Gateway data models.
"""

from .catalog import (
    AllModelsResult,
    CatalogEntry,
    CatalogResult,
    CatalogSource,
    ModelDescriptor,
    ModelPricing,
    ProviderModelsResult,
)
from .configuration import ModelConfiguration
from .provider import ProviderCapability, ProviderDescriptor, ProviderId, ProviderStatus
from .request import OutboundRequest, RequestOptions
from .response import AIErrorResponse, AIResponse, AIResult, ConnectionTestResult, ModelConfigRef, Usage

__all__ = [
    "AllModelsResult",
    "AIErrorResponse",
    "AIResponse",
    "AIResult",
    "CatalogEntry",
    "CatalogResult",
    "CatalogSource",
    "ConnectionTestResult",
    "ModelConfigRef",
    "ModelConfiguration",
    "ModelDescriptor",
    "ModelPricing",
    "OutboundRequest",
    "ProviderCapability",
    "ProviderDescriptor",
    "ProviderId",
    "ProviderModelsResult",
    "ProviderStatus",
    "RequestOptions",
    "Usage",
]
