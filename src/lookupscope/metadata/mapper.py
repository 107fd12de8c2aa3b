"""Relationship-name registry.

Dataset navigation refers to relationships by name (e.g.
``contact_customer_accounts``), while queries need the lookup column. The
registry starts empty and is filled from discovery; nothing is hardcoded.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from typing import Any

from lookupscope.core.config import ENV_PAGE_TABLE, ENV_TARGET_TABLE
from lookupscope.core.query import build_relationship_filter
from lookupscope.core.types import RelationshipMapping
from lookupscope.metadata.discovery import RelationshipDiscoveryEngine

logger = logging.getLogger(__name__)


class RelationshipMapper:
    """Maps relationship names to lookup columns, discovering unknown ones.

    Mappings live on the instance. The first mapping registered under a name
    wins; later ones are ignored with a warning.
    """

    def __init__(
        self,
        engine: RelationshipDiscoveryEngine,
        default_parent: str | None = None,
        default_child: str | None = None,
    ) -> None:
        """Initialize the mapper.

        Args:
            engine: Discovery engine used for names not yet registered
            default_parent: Parent entity used when a call does not name one
            default_child: Child entity used when a call does not name one
        """
        self._engine = engine
        self.default_parent = default_parent
        self.default_child = default_child
        self._mappings: dict[str, RelationshipMapping] = {}

    @classmethod
    def from_env(cls, engine: RelationshipDiscoveryEngine) -> RelationshipMapper:
        """Create a mapper whose default entities come from the environment.

        Reads LOOKUPSCOPE_PAGE_TABLE (parent) and LOOKUPSCOPE_TARGET_TABLE (child).
        """
        return cls(
            engine,
            default_parent=os.getenv(ENV_PAGE_TABLE) or None,
            default_child=os.getenv(ENV_TARGET_TABLE) or None,
        )

    def add_mapping(self, mapping: RelationshipMapping) -> bool:
        """Register a mapping.

        Returns:
            True if added, False if the name was already registered
        """
        if mapping.relationship_name in self._mappings:
            logger.warning(
                f"Relationship mapping for '{mapping.relationship_name}' already exists"
            )
            return False
        self._mappings[mapping.relationship_name] = mapping
        logger.info(
            f"Added new relationship mapping: {mapping.relationship_name} -> "
            f"{mapping.lookup_column}"
        )
        return True

    def add_mappings(self, mappings: Iterable[RelationshipMapping | dict[str, Any]]) -> int:
        """Register several mappings, e.g. the engine's ``export_mappings()``.

        Returns:
            Number of mappings actually added
        """
        added = 0
        for mapping in mappings:
            if isinstance(mapping, dict):
                mapping = RelationshipMapping.model_validate(mapping)
            added += self.add_mapping(mapping)
        return added

    def get_mapping(self, relationship_name: str) -> RelationshipMapping | None:
        return self._mappings.get(relationship_name)

    def mappings(self) -> list[RelationshipMapping]:
        return list(self._mappings.values())

    def is_known(self, relationship_name: str) -> bool:
        """Whether a mapping is registered under this name."""
        return relationship_name in self._mappings

    def lookup_column(self, relationship_name: str) -> str | None:
        """Registered lookup column for a relationship, without discovery."""
        mapping = self._mappings.get(relationship_name)
        return mapping.lookup_column if mapping is not None else None

    async def map_relationship(
        self,
        relationship_name: str,
        parent_entity: str | None = None,
        child_entity: str | None = None,
    ) -> str | None:
        """Map a relationship name to its lookup column, discovering it if needed.

        Args:
            relationship_name: Relationship name used by the dataset
            parent_entity: Parent entity (falls back to the default parent)
            child_entity: Child entity (falls back to the default child)

        Returns:
            The lookup column, or None when it is not registered and the
            entities needed for discovery are unknown
        """
        known = self.lookup_column(relationship_name)
        if known is not None:
            return known

        parent = parent_entity or self.default_parent
        child = child_entity or self.default_child
        if (parent_entity is None or child_entity is None) and (parent or child):
            logger.debug(f"Using default entities - parent: {parent}, child: {child}")
        if not parent or not child:
            logger.warning(f"Could not find lookup column for relationship: {relationship_name}")
            return None

        logger.info(f"Discovering relationship through metadata: {relationship_name}")
        relationship = await self._engine.discover_relationship_between(parent, child)
        self.add_mapping(
            RelationshipMapping(
                relationship_name=relationship_name,
                lookup_column=relationship.lookup_column,
                parent_entity=relationship.parent_entity or parent,
                child_entity=relationship.child_entity,
                description=(
                    f"{relationship.display_name or relationship.attribute_name} "
                    "(auto-discovered)"
                ),
                is_discovered=True,
                confidence=relationship.confidence,
            )
        )
        return relationship.lookup_column

    def mappings_for_parent(self, parent_entity: str) -> list[RelationshipMapping]:
        """Every mapping whose parent is ``parent_entity``."""
        return [m for m in self._mappings.values() if m.parent_entity == parent_entity]

    def mappings_for_child(self, child_entity: str) -> list[RelationshipMapping]:
        """Every mapping whose child is ``child_entity``."""
        return [m for m in self._mappings.values() if m.child_entity == child_entity]

    def suggest(self, parent_entity: str, child_entity: str) -> list[RelationshipMapping]:
        """Mappings touching either entity, in either role."""
        entities = {parent_entity, child_entity}
        return [
            m
            for m in self._mappings.values()
            if m.parent_entity in entities or m.child_entity in entities
        ]

    def build_filter(self, relationship_name: str, parent_id: str) -> str | None:
        """Build a ``$filter`` from a registered relationship, without discovery."""
        column = self.lookup_column(relationship_name)
        if column is None or not parent_id:
            return None
        return build_relationship_filter(column, parent_id)

    async def build_filter_with_discovery(
        self,
        relationship_name: str,
        parent_id: str,
        parent_entity: str | None = None,
        child_entity: str | None = None,
    ) -> str | None:
        """Build a ``$filter`` from a relationship name, discovering it if needed.

        Returns:
            The filter, or None when the column cannot be determined or the
            parent id is empty
        """
        column = await self.map_relationship(relationship_name, parent_entity, child_entity)
        if column is None or not parent_id:
            return None
        return build_relationship_filter(column, parent_id)
