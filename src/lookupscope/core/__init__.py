"""Core components for LookupScope."""

from lookupscope.core.client import RequestLimiter, WebApiClient
from lookupscope.core.config import ClientConfig, get_base_url
from lookupscope.core.types import (
    ColumnClassification,
    ColumnDescriptor,
    ColumnKind,
    Confidence,
    DiagnosticReport,
    DiscoveredRelationship,
    EntityMetadata,
    EntityReference,
    FieldValue,
    LookupAttribute,
    LookupReference,
    NormalizedRecord,
    RateLimitState,
    RefreshErrorAnalysis,
    TargetResolution,
)

__all__ = [
    "ClientConfig",
    "get_base_url",
    "RequestLimiter",
    "WebApiClient",
    "ColumnClassification",
    "ColumnDescriptor",
    "ColumnKind",
    "Confidence",
    "DiagnosticReport",
    "DiscoveredRelationship",
    "EntityMetadata",
    "EntityReference",
    "FieldValue",
    "LookupAttribute",
    "LookupReference",
    "NormalizedRecord",
    "RateLimitState",
    "RefreshErrorAnalysis",
    "TargetResolution",
]
