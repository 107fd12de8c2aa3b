"""Schema metadata, column classification and relationship discovery."""

from lookupscope.metadata.cache import MetadataCache, MetadataSource
from lookupscope.metadata.classifier import (
    ColumnClassifier,
    classify_columns,
    extract_field_name,
    is_lookup_column,
    lookup_column_name,
)
from lookupscope.metadata.discovery import (
    RelationshipDiscoveryEngine,
    discover_relationships,
    guess_parent_entity,
)
from lookupscope.metadata.mapper import RelationshipMapper

__all__ = [
    "MetadataCache",
    "MetadataSource",
    "ColumnClassifier",
    "classify_columns",
    "extract_field_name",
    "is_lookup_column",
    "lookup_column_name",
    "RelationshipDiscoveryEngine",
    "discover_relationships",
    "guess_parent_entity",
    "RelationshipMapper",
]
