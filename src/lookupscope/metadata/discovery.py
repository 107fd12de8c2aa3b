"""Relationship discovery from column shapes, live records and lookup metadata.

Discovery is advisory: a bad column never aborts a record set. Phantom and
unresolved lookup columns are logged and, for unresolved ones, reported inline
with an empty target list. A parent entity is never invented.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from lookupscope.core.query import build_relationship_filter
from lookupscope.core.types import (
    ColumnClassification,
    ColumnKind,
    Confidence,
    DiscoveredRelationship,
    EntityMetadata,
    LookupAttribute,
    RawRecord,
    TargetResolution,
)
from lookupscope.metadata.cache import MetadataSource
from lookupscope.metadata.classifier import (
    ColumnClassifier,
    ColumnInput,
    is_annotation,
    lookup_column_name,
    to_descriptor,
)

logger = logging.getLogger(__name__)
# Logger for advisory problems; discovery never raises them
DISCOVERY_WARNING_LOGGER = f"{__name__}.RelationshipDiscoveryWarning"
warning_logger = logging.getLogger(DISCOVERY_WARNING_LOGGER)

KNOWN_SUFFIXES = ("_id", "id")
KNOWN_PREFIXES = ("parent", "primary")


def union_columns(records: Iterable[RawRecord]) -> list[str]:
    """Ordered union of data column names across a (possibly sparse) sample."""
    columns: dict[str, None] = {}
    for record in records:
        for key in record:
            if not is_annotation(key):
                columns.setdefault(key, None)
    return list(columns)


def guess_parent_entity(attribute_name: str) -> str | None:
    """Guess a parent entity from a lookup attribute name.

    Strips one known suffix (``_id``, ``id``), then one known prefix
    (``parent``, ``primary``) when something remains after it.

    Returns:
        The guessed logical name, or None when nothing is left
    """
    name = attribute_name
    for suffix in KNOWN_SUFFIXES:
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    for prefix in KNOWN_PREFIXES:
        if name.startswith(prefix) and len(name) > len(prefix):
            name = name[len(prefix) :]
            break
    name = name.strip("_")
    return name or None


class RelationshipDiscoveryEngine:
    """Builds the lookup relationship graph of entities.

    Uses lookup metadata first and falls back to column-name patterns only when
    the metadata is unavailable.
    """

    def __init__(
        self,
        metadata_source: MetadataSource,
        classifier: ColumnClassifier | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            metadata_source: Schema source, usually a MetadataCache
            classifier: Column classifier (a default one if omitted)
        """
        self._source = metadata_source
        self._classifier = classifier or ColumnClassifier()
        self._discovered: dict[tuple[str, str], DiscoveredRelationship] = {}
        self._pairwise: dict[tuple[str, str], DiscoveredRelationship] = {}

    async def discover_relationships(
        self, records: Sequence[RawRecord], entity_name: str
    ) -> list[DiscoveredRelationship]:
        """Discover lookup relationships of an entity from a record sample.

        Args:
            records: Raw records of the entity (columns may vary per record)
            entity_name: Logical name of the entity the records belong to

        Returns:
            Relationships deduplicated by (child entity, lookup column); unresolved
            lookups are included with parent_entity None and a warning

        Raises:
            MetadataFetchError: If the entity's own metadata cannot be fetched
        """
        if not records:
            return []
        columns = union_columns(records)
        logger.info(
            f"Analyzing {len(columns)} columns across {len(records)} {entity_name} records"
        )
        return await self.discover_from_columns(columns, entity_name)

    async def discover_from_columns(
        self, columns: Iterable[ColumnInput], entity_name: str
    ) -> list[DiscoveredRelationship]:
        """Discover lookup relationships from column descriptors alone."""
        owner = await self._source.get_entity_metadata(entity_name)
        listed = await self._source.get_lookup_attributes(entity_name)
        by_name = {a.logical_name: a for a in listed} if listed is not None else None

        names = [
            name for name in (to_descriptor(c).name for c in columns) if not is_annotation(name)
        ]
        classifications = self._classifier.classify_columns(
            names, owner, by_name.keys() if by_name is not None else None
        )

        relationships: list[DiscoveredRelationship] = []
        seen: set[tuple[str, str]] = set()
        for classification in classifications:
            if classification.kind in (ColumnKind.PRIMARY_KEY, ColumnKind.PHANTOM):
                if classification.warning:
                    warning_logger.warning(
                        f"{entity_name}.{classification.column_name}: {classification.warning}"
                    )
                continue
            if classification.kind != ColumnKind.LOOKUP:
                continue

            key = (owner.logical_name, classification.column_name)
            if key in seen:
                continue
            seen.add(key)

            relationship = await self._resolve(owner, classification, by_name)
            if relationship.warning:
                warning_logger.warning(
                    f"{entity_name}.{classification.column_name}: {relationship.warning}"
                )
            self._discovered[key] = relationship
            relationships.append(relationship)

        resolved = sum(1 for r in relationships if r.is_resolved)
        logger.info(
            f"Discovered {len(relationships)} relationships on {entity_name} "
            f"({resolved} resolved)"
        )
        return relationships

    async def _resolve(
        self,
        owner: EntityMetadata,
        classification: ColumnClassification,
        by_name: dict[str, LookupAttribute] | None,
    ) -> DiscoveredRelationship:
        attribute_name = classification.inferred_field_name
        if by_name is not None:
            attribute = by_name.get(attribute_name)
        else:
            attribute = await self._source.get_lookup_attribute(
                owner.logical_name, attribute_name
            )

        base: dict[str, Any] = {
            "child_entity": owner.logical_name,
            "lookup_column": classification.column_name,
            "attribute_name": attribute_name,
        }

        if attribute is not None:
            if attribute.targets:
                return DiscoveredRelationship(
                    **base,
                    parent_entity=attribute.targets[0],
                    targets=list(attribute.targets),
                    display_name=attribute.display_name,
                    source=TargetResolution.METADATA,
                    confidence=(
                        Confidence.HIGH if len(attribute.targets) == 1 else Confidence.MEDIUM
                    ),
                )
            return DiscoveredRelationship(
                **base,
                display_name=attribute.display_name,
                source=TargetResolution.POLYMORPHIC,
                confidence=Confidence.NONE,
                warning=(
                    f"Lookup '{attribute_name}' declares no target entities "
                    "(polymorphic or restricted metadata)"
                ),
            )

        guess = guess_parent_entity(attribute_name)
        if guess is not None:
            return DiscoveredRelationship(
                **base,
                parent_entity=guess,
                targets=[guess],
                display_name=f"{guess} lookup",
                source=TargetResolution.PATTERN,
                confidence=Confidence.LOW,
            )

        return DiscoveredRelationship(
            **base,
            source=TargetResolution.UNRESOLVED,
            confidence=Confidence.NONE,
            warning=f"Could not determine a parent entity for lookup '{attribute_name}'",
        )

    async def discover_relationship_between(
        self, parent_entity: str, child_entity: str
    ) -> DiscoveredRelationship:
        """Find the lookup column linking a child entity to a parent entity.

        Strategies, in order:
        1. Child lookup metadata targeting the parent
        2. The reverse direction (parent lookup metadata targeting the child)
        3. The conventional column name ``_{parent}id_value`` (low confidence)

        Returns:
            The relationship; pattern guesses carry low confidence
        """
        key = (parent_entity, child_entity)
        if key in self._pairwise:
            logger.debug(f"Using cached relationship: {parent_entity} -> {child_entity}")
            return self._pairwise[key]

        relationship = await self._match_lookup(parent_entity, child_entity)
        if relationship is None:
            relationship = await self._match_lookup(child_entity, parent_entity)
            if relationship is not None:
                logger.info(f"Reverse lookup matched for {parent_entity} -> {child_entity}")
        if relationship is None:
            relationship = DiscoveredRelationship(
                child_entity=child_entity,
                lookup_column=lookup_column_name(f"{parent_entity}id"),
                attribute_name=f"{parent_entity}id",
                parent_entity=parent_entity,
                targets=[parent_entity],
                display_name=f"{parent_entity} lookup",
                source=TargetResolution.PATTERN,
                confidence=Confidence.LOW,
            )
            logger.info(
                f"Guessed {relationship.lookup_column} for {parent_entity} -> {child_entity}"
            )

        self._pairwise[key] = relationship
        return relationship

    async def _match_lookup(
        self, parent_entity: str, child_entity: str
    ) -> DiscoveredRelationship | None:
        attributes = await self._source.get_lookup_attributes(child_entity)
        if not attributes:
            return None
        matching = [a for a in attributes if parent_entity in a.targets]
        if not matching:
            return None

        parent_lower = parent_entity.lower()
        preferred = next(
            (
                a
                for a in matching
                if parent_lower in a.logical_name.lower()
                or "parent" in a.logical_name.lower()
                or "primary" in a.logical_name.lower()
            ),
            matching[0],
        )
        return DiscoveredRelationship(
            child_entity=child_entity,
            lookup_column=preferred.data_field_name,
            attribute_name=preferred.logical_name,
            parent_entity=parent_entity,
            targets=list(preferred.targets),
            display_name=preferred.display_name,
            source=TargetResolution.METADATA,
            confidence=Confidence.HIGH if len(matching) == 1 else Confidence.MEDIUM,
        )

    async def build_filter(self, parent_entity: str, child_entity: str, parent_id: str) -> str:
        """Build the ``$filter`` selecting a parent record's children."""
        relationship = await self.discover_relationship_between(parent_entity, child_entity)
        return build_relationship_filter(relationship.lookup_column, parent_id)

    def discovered(self) -> list[DiscoveredRelationship]:
        """Every relationship discovered so far, deduplicated."""
        unique: dict[tuple[str, str, str | None], DiscoveredRelationship] = {}
        candidates = [*self._discovered.values(), *self._pairwise.values()]
        for rel in candidates:
            unique.setdefault((rel.child_entity, rel.lookup_column, rel.parent_entity), rel)
        return list(unique.values())

    def export_mappings(self) -> list[dict[str, Any]]:
        """Export confident, resolved discoveries as static mappings."""
        return [
            {
                "relationship_name": f"{rel.parent_entity}_{rel.child_entity}",
                "lookup_column": rel.lookup_column,
                "parent_entity": rel.parent_entity,
                "child_entity": rel.child_entity,
                "description": (
                    f"{rel.display_name or rel.attribute_name} "
                    f"(discovered {rel.discovered_at.isoformat()})"
                ),
            }
            for rel in self.discovered()
            if rel.is_resolved and rel.confidence in (Confidence.HIGH, Confidence.MEDIUM)
        ]


async def discover_relationships(
    records: Sequence[RawRecord], entity_name: str, metadata_source: MetadataSource
) -> list[DiscoveredRelationship]:
    """Convenience function to run discovery with a throwaway engine."""
    engine = RelationshipDiscoveryEngine(metadata_source)
    return await engine.discover_relationships(records, entity_name)
