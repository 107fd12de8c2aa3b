"""Record normalizer: raw Web API records to canonical host records.

The display name of a record comes from the entity's declared primary name
attribute first. A placeholder is never substituted for a record that carries
a usable name; when no name can be found the failure is raised with the full
debug context so callers can decide to degrade.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from lookupscope.core.types import (
    UNNAMED_RECORD,
    EntityMetadata,
    EntityReference,
    FieldValue,
    JsonValue,
    LookupReference,
    NormalizedRecord,
    RawRecord,
)
from lookupscope.exceptions import NameResolutionError
from lookupscope.metadata.cache import MetadataSource
from lookupscope.metadata.classifier import extract_field_name, is_annotation, is_lookup_column

logger = logging.getLogger(__name__)

FORMATTED_VALUE = "@OData.Community.Display.V1.FormattedValue"
LOOKUP_LOGICAL_NAME = "@Microsoft.Dynamics.CRM.lookuplogicalname"

NAME_CONVENTIONS = ("name", "fullname", "subject", "title")

PUBLISHER_PREFIX = re.compile(r"^[^_]+_")


def _without_prefix(attribute: str) -> str:
    """``pum_name`` -> ``name``; names without a prefix are returned unchanged."""
    return PUBLISHER_PREFIX.sub("", attribute, count=1)


def _usable(value: JsonValue) -> bool:
    if value is None or isinstance(value, (dict, list)):
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def name_candidates(metadata: EntityMetadata) -> list[str]:
    """Field names tried, in order, when resolving a record's display name."""
    candidates = [
        metadata.primary_name_attribute,
        *NAME_CONVENTIONS,
        f"{metadata.logical_name}_name",
        _without_prefix(metadata.primary_name_attribute),
    ]
    return list(dict.fromkeys(candidates))


def get_record_id(record: RawRecord, metadata: EntityMetadata) -> str | None:
    """Primary key value of a record, or None if the record has none."""
    for key in (metadata.primary_id_attribute, _without_prefix(metadata.primary_id_attribute)):
        value = record.get(key)
        if _usable(value):
            return str(value)
    return None


def resolve_primary_name(
    record: RawRecord, metadata: EntityMetadata, record_id: str | None = None
) -> str:
    """Resolve the display name of a record.

    Args:
        record: Raw record from the Web API
        metadata: Metadata of the record's entity
        record_id: Record id, for error context

    Returns:
        The value of the first candidate field holding a usable value

    Raises:
        NameResolutionError: If no candidate field holds a usable value
    """
    attempted = name_candidates(metadata)
    for field_name in attempted:
        value = record.get(field_name)
        if _usable(value):
            if field_name != metadata.primary_name_attribute:
                logger.debug(
                    f"{metadata.logical_name} {record_id}: display name taken from "
                    f"'{field_name}' instead of '{metadata.primary_name_attribute}'"
                )
            return value if isinstance(value, str) else str(value)

    raise NameResolutionError(
        entity_name=metadata.logical_name,
        record_id=record_id,
        primary_name_attribute=metadata.primary_name_attribute,
        raw_keys=list(record.keys()),
        attempted_fields=attempted,
    )


def _build_fields(record: RawRecord, metadata: EntityMetadata) -> dict[str, FieldValue]:
    fields: dict[str, FieldValue] = {}
    for key, value in record.items():
        if key.startswith("@") or is_annotation(key):
            continue

        formatted = record.get(f"{key}{FORMATTED_VALUE}")
        formatted_value = str(formatted) if formatted is not None else None

        if not is_lookup_column(key):
            fields[key] = FieldValue(value=value, formatted_value=formatted_value)
            continue

        attribute = extract_field_name(key)
        if attribute in record:
            # Never let a decorated column shadow a plain one (e.g. the primary key)
            logger.debug(f"Skipping {key}: plain column '{attribute}' already present")
            continue

        lookup = None
        if value is not None:
            entity_type = record.get(f"{key}{LOOKUP_LOGICAL_NAME}")
            lookup = LookupReference(
                id=str(value),
                name=formatted_value,
                entity_type=str(entity_type) if entity_type is not None else None,
            )
        fields[attribute] = FieldValue(value=value, formatted_value=formatted_value, lookup=lookup)
    return fields


def normalize_record(
    record: RawRecord,
    metadata: EntityMetadata,
    allow_placeholder: bool = False,
) -> NormalizedRecord | None:
    """Normalize one raw record.

    Returns:
        The normalized record, or None when the record has no primary key

    Raises:
        NameResolutionError: If no display name can be found and placeholders
            are not allowed
    """
    record_id = get_record_id(record, metadata)
    if record_id is None:
        return None

    try:
        primary_name = resolve_primary_name(record, metadata, record_id)
    except NameResolutionError as e:
        if not allow_placeholder:
            raise
        logger.warning(f"{e.message} Using placeholder '{UNNAMED_RECORD}'.")
        primary_name = UNNAMED_RECORD

    return NormalizedRecord(
        entity_reference=EntityReference(
            entity_type_name=metadata.logical_name,
            record_id=record_id,
            primary_name=primary_name,
        ),
        primary_field_name=metadata.primary_name_attribute,
        fields=_build_fields(record, metadata),
    )


def normalize_records(
    raw_entities: Sequence[RawRecord],
    metadata: EntityMetadata,
    allow_placeholder: bool = False,
) -> dict[str, NormalizedRecord]:
    """Normalize raw records of one entity, keyed by record id.

    Records without a primary key are skipped. When ids repeat, the later
    record wins.
    """
    records: dict[str, NormalizedRecord] = {}
    duplicates = 0
    for index, raw in enumerate(raw_entities):
        normalized = normalize_record(raw, metadata, allow_placeholder)
        if normalized is None:
            logger.warning(
                f"Could not find primary key '{metadata.primary_id_attribute}' on "
                f"{metadata.logical_name} record {index + 1}: {list(raw.keys())[:10]}"
            )
            continue
        record_id = normalized.entity_reference.record_id
        if record_id in records:
            duplicates += 1
            logger.warning(f"Duplicate record ID found: {record_id} (record {index + 1})")
        records[record_id] = normalized

    if duplicates:
        logger.warning(f"Found {duplicates} duplicate record IDs")
    logger.info(
        f"Normalized {len(records)} of {len(raw_entities)} {metadata.logical_name} records "
        f"(primary id: {metadata.primary_id_attribute})"
    )
    return records


class RecordNormalizer:
    """Normalizes raw records using metadata from a MetadataSource."""

    def __init__(self, metadata_source: MetadataSource) -> None:
        """Initialize the normalizer.

        Args:
            metadata_source: Schema source, usually a MetadataCache
        """
        self._source = metadata_source

    async def normalize(
        self,
        raw_entities: Sequence[RawRecord],
        entity_logical_name: str,
        allow_placeholder: bool = False,
    ) -> dict[str, NormalizedRecord]:
        """Normalize raw records of an entity.

        Args:
            raw_entities: Records as returned by the Web API
            entity_logical_name: Logical name of the records' entity
            allow_placeholder: Substitute "Unnamed Record" (after logging the
                NameResolutionError) instead of raising

        Returns:
            Mapping of record id to NormalizedRecord

        Raises:
            MetadataFetchError: If the entity's metadata cannot be fetched
            NameResolutionError: If a record has no display name and
                placeholders are not allowed
        """
        metadata = await self._source.get_entity_metadata(entity_logical_name)
        return normalize_records(raw_entities, metadata, allow_placeholder)
