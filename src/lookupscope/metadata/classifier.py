"""Column classifier for wire-level record columns.

A lookup column travels on the wire as ``_{attribute}_value``. Primary-key
detection runs before lookup detection: a decorated column whose inferred name
is the entity's own primary id is a phantom lookup, never a relationship.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Collection, Iterable, Mapping
from typing import Any

from lookupscope.core.types import (
    ColumnClassification,
    ColumnDescriptor,
    ColumnKind,
    EntityMetadata,
)

logger = logging.getLogger(__name__)

LOOKUP_COLUMN = re.compile(r"^_(?P<name>.+)_value$")

PRIMARY_KEY_WARNING = "This appears to be the primary key, not a lookup"

ColumnInput = ColumnDescriptor | Mapping[str, Any] | str


def is_annotation(column_name: str) -> bool:
    """Whether the column is an OData annotation (``col@Some.Annotation``)."""
    return "@" in column_name


def _strip_annotation(column_name: str) -> str:
    return column_name.split("@", 1)[0]


def is_lookup_column(column_name: str) -> bool:
    """Whether the column carries lookup decoration (``_foo_value``)."""
    return LOOKUP_COLUMN.match(_strip_annotation(column_name)) is not None


def extract_field_name(column_name: str) -> str:
    """Strip lookup decoration: ``_foo_value`` -> ``foo``.

    Undecorated names are returned unchanged (minus any annotation suffix).
    """
    base = _strip_annotation(column_name)
    match = LOOKUP_COLUMN.match(base)
    return match.group("name") if match else base


def lookup_column_name(attribute_name: str) -> str:
    """Decorate an attribute name as a lookup column: ``foo`` -> ``_foo_value``."""
    return f"_{attribute_name}_value"


def to_descriptor(column: ColumnInput) -> ColumnDescriptor:
    """Accept descriptors, host-style dicts ({name, dataType}) or bare names."""
    if isinstance(column, ColumnDescriptor):
        return column
    if isinstance(column, str):
        return ColumnDescriptor(name=column)
    name = column.get("name") or column.get("Name")
    if not name:
        raise ValueError(f"Column descriptor has no name: {dict(column)}")
    return ColumnDescriptor(name=str(name), data_type=column.get("dataType"))


class ColumnClassifier:
    """Classifies columns as primary key, lookup, attribute or phantom.

    Two stages, applied in order:
    1. Metadata: the owner's primary id attribute, and when given, the set of
       known lookup attribute names (decorated columns outside it are phantoms)
    2. Pattern: the ``_{name}_value`` decoration shape alone
    """

    def classify(
        self,
        column_name: str,
        owner: EntityMetadata,
        known_attributes: Collection[str] | None = None,
    ) -> ColumnClassification:
        """Classify a single column name."""
        inferred = extract_field_name(column_name)
        decorated = is_lookup_column(column_name)

        if inferred == owner.primary_id_attribute:
            return ColumnClassification(
                column_name=column_name,
                inferred_field_name=inferred,
                kind=ColumnKind.PRIMARY_KEY,
                is_primary_key=True,
                warning=PRIMARY_KEY_WARNING if decorated else None,
            )

        if decorated and known_attributes is not None and inferred not in known_attributes:
            return ColumnClassification(
                column_name=column_name,
                inferred_field_name=inferred,
                kind=ColumnKind.PHANTOM,
                warning=(
                    f"'{column_name}' looks like a lookup, but '{inferred}' is not a "
                    f"known lookup attribute of {owner.logical_name}"
                ),
            )

        return ColumnClassification(
            column_name=column_name,
            inferred_field_name=inferred,
            kind=ColumnKind.LOOKUP if decorated else ColumnKind.ATTRIBUTE,
        )

    def classify_columns(
        self,
        columns: Iterable[ColumnInput],
        owner: EntityMetadata,
        known_attributes: Collection[str] | None = None,
    ) -> list[ColumnClassification]:
        """Classify every column of one entity.

        Args:
            columns: Column descriptors, host-style dicts or bare column names
            owner: Metadata of the entity owning the columns
            known_attributes: Logical names of the owner's lookup attributes,
                or None when that metadata is unavailable

        Returns:
            One classification per column, in input order
        """
        known = set(known_attributes) if known_attributes is not None else None
        results: list[ColumnClassification] = []
        for column in columns:
            descriptor = to_descriptor(column)
            result = self.classify(descriptor.name, owner, known)
            logger.debug(
                f"{owner.logical_name}.{descriptor.name}: {result.kind} "
                f"(inferred '{result.inferred_field_name}')"
            )
            results.append(result)

        skipped = sum(1 for r in results if r.kind == ColumnKind.PRIMARY_KEY and r.warning)
        if skipped:
            logger.info(
                f"Skipped {skipped} decorated primary key column(s) on {owner.logical_name}"
            )
        return results


def classify_columns(
    columns: Iterable[ColumnInput],
    owner: EntityMetadata,
    known_attributes: Collection[str] | None = None,
) -> list[ColumnClassification]:
    """Convenience function to classify columns with a default classifier."""
    return ColumnClassifier().classify_columns(columns, owner, known_attributes)
