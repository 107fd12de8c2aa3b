"""LookupScope - Metadata & Relationship Discovery for OData Web APIs.

A client-side engine for development harnesses of components hosted in a
low-code business-application runtime. It caches entity schema metadata,
infers lookup relationships from metadata and live record shapes, normalizes
raw records into the host's canonical record shape, and turns failed HTTP
responses into actionable diagnostics.

Example:
    import asyncio

    from lookupscope import (
        ClientConfig,
        MetadataCache,
        RecordNormalizer,
        RelationshipDiscoveryEngine,
        WebApiClient,
        fetch_records,
    )

    async def main() -> None:
        async with WebApiClient(ClientConfig.from_env()) as client:
            cache = MetadataCache(client)
            metadata = await cache.get_entity_metadata("pum_initiative")
            records = await fetch_records(client, metadata, top=50)

            # Lookup relationships, never emitting primary keys as edges
            engine = RelationshipDiscoveryEngine(cache)
            for rel in await engine.discover_relationships(records, "pum_initiative"):
                print(rel.lookup_column, "->", rel.targets or rel.warning)

            # Canonical records keyed by id
            normalized = await RecordNormalizer(cache).normalize(records, "pum_initiative")

    asyncio.run(main())
"""

from lookupscope.core.client import RequestLimiter, WebApiClient
from lookupscope.core.config import ClientConfig
from lookupscope.core.query import (
    build_record_query,
    build_relationship_filter,
    fetch_records,
)
from lookupscope.core.types import (
    UNNAMED_RECORD,
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
    RelationshipMapping,
    TargetResolution,
)
from lookupscope.diagnostics import analyze_refresh_error, describe, describe_async
from lookupscope.exceptions import (
    ApiRequestError,
    LookupScopeError,
    MetadataFetchError,
    NameResolutionError,
)
from lookupscope.metadata import (
    ColumnClassifier,
    MetadataCache,
    MetadataSource,
    RelationshipDiscoveryEngine,
    RelationshipMapper,
    classify_columns,
    discover_relationships,
)
from lookupscope.records import RecordNormalizer, normalize_records, resolve_primary_name

__version__ = "0.1.0"

__all__ = [
    # Client
    "ClientConfig",
    "WebApiClient",
    "RequestLimiter",
    "build_record_query",
    "build_relationship_filter",
    "fetch_records",
    # Types
    "UNNAMED_RECORD",
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
    "RelationshipMapping",
    "TargetResolution",
    # Engine
    "MetadataCache",
    "MetadataSource",
    "ColumnClassifier",
    "classify_columns",
    "RelationshipDiscoveryEngine",
    "discover_relationships",
    "RelationshipMapper",
    "RecordNormalizer",
    "normalize_records",
    "resolve_primary_name",
    # Diagnostics
    "describe",
    "describe_async",
    "analyze_refresh_error",
    # Exceptions
    "LookupScopeError",
    "MetadataFetchError",
    "NameResolutionError",
    "ApiRequestError",
]
