"""Core types for LookupScope.

All types are value objects designed to be JSON-serializable. None of them hold
references back into the metadata cache.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

# A wire-level record has no fixed schema: callers must tolerate extra columns.
JsonValue = str | int | float | bool | None | dict[str, Any] | list[Any]
RawRecord = dict[str, JsonValue]

UNNAMED_RECORD = "Unnamed Record"


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def _localized_label(value: Any, default: str) -> str:
    """Read DisplayName.UserLocalizedLabel.Label from a metadata body."""
    if isinstance(value, dict):
        label = value.get("UserLocalizedLabel")
        if isinstance(label, dict) and label.get("Label"):
            return str(label["Label"])
    return default


class ColumnKind(StrEnum):
    """Classification of a wire-level column."""

    PRIMARY_KEY = "primary_key"
    LOOKUP = "lookup"
    ATTRIBUTE = "attribute"
    PHANTOM = "phantom"  # Decorated like a lookup, but matches no known attribute

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid column kind values."""
        return [k.value for k in cls]


class TargetResolution(StrEnum):
    """Where a relationship's parent candidates came from."""

    METADATA = "metadata"  # Lookup metadata declared one or more targets
    POLYMORPHIC = "polymorphic"  # Lookup metadata declared zero targets
    PATTERN = "pattern"  # No lookup metadata; guessed from the column name
    UNRESOLVED = "unresolved"  # No candidate could be produced

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid resolution values."""
        return [r.value for r in cls]


class Confidence(StrEnum):
    """Confidence attached to a discovered relationship."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class EntityMetadata(BaseModel):
    """Schema descriptor for one remote entity type."""

    model_config = ConfigDict(frozen=True)

    logical_name: str
    primary_id_attribute: str
    primary_name_attribute: str
    collection_name: str
    display_name: str

    REQUIRED_API_FIELDS: ClassVar[tuple[str, ...]] = (
        "LogicalName",
        "PrimaryIdAttribute",
        "PrimaryNameAttribute",
        "LogicalCollectionName",
    )

    @classmethod
    def missing_fields(cls, body: dict[str, Any]) -> list[str]:
        """Return the required wire fields that are absent or empty."""
        return [name for name in cls.REQUIRED_API_FIELDS if not body.get(name)]

    @classmethod
    def from_api(cls, body: dict[str, Any]) -> EntityMetadata:
        """Build from an EntityDefinitions response body.

        Raises:
            ValueError: If a required field is missing or empty
        """
        missing = cls.missing_fields(body)
        if missing:
            raise ValueError(f"missing required fields: {', '.join(missing)}")
        logical_name = str(body["LogicalName"])
        return cls(
            logical_name=logical_name,
            primary_id_attribute=str(body["PrimaryIdAttribute"]),
            primary_name_attribute=str(body["PrimaryNameAttribute"]),
            collection_name=str(body["LogicalCollectionName"]),
            display_name=_localized_label(body.get("DisplayName"), logical_name),
        )


class LookupAttribute(BaseModel):
    """A foreign-key-like attribute and its candidate parent entities."""

    model_config = ConfigDict(frozen=True)

    logical_name: str
    data_field_name: str
    targets: list[str] = Field(default_factory=list)
    display_name: str

    @classmethod
    def from_api(cls, body: dict[str, Any]) -> LookupAttribute:
        """Build from a LookupAttributeMetadata response body."""
        logical_name = str(body["LogicalName"])
        return cls(
            logical_name=logical_name,
            data_field_name=f"_{logical_name}_value",
            targets=[str(t) for t in body.get("Targets") or []],
            display_name=_localized_label(body.get("DisplayName"), logical_name),
        )


class ColumnDescriptor(BaseModel):
    """A column as surfaced by the hosting dataset abstraction."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    data_type: str | None = Field(default=None, alias="dataType")


class ColumnClassification(BaseModel):
    """Classification of one raw column on a record."""

    column_name: str
    inferred_field_name: str
    kind: ColumnKind
    is_primary_key: bool = False
    warning: str | None = None


class DiscoveredRelationship(BaseModel):
    """A directed lookup edge from a child entity to its parent candidates."""

    child_entity: str
    lookup_column: str
    attribute_name: str
    parent_entity: str | None = None
    targets: list[str] = Field(default_factory=list)
    display_name: str | None = None
    source: TargetResolution
    confidence: Confidence
    warning: str | None = None
    discovered_at: datetime = Field(default_factory=utc_now)

    @property
    def is_resolved(self) -> bool:
        """Whether at least one parent candidate is known."""
        return bool(self.targets)

    @property
    def is_polymorphic(self) -> bool:
        """Whether the lookup can point at more than one entity type."""
        return len(self.targets) > 1 or self.source == TargetResolution.POLYMORPHIC


class RelationshipMapping(BaseModel):
    """A named relationship and the lookup column that implements it."""

    relationship_name: str
    lookup_column: str
    parent_entity: str
    child_entity: str
    description: str = ""
    is_discovered: bool = False
    confidence: Confidence | None = None


class LookupReference(BaseModel):
    """The referenced side of a lookup field."""

    id: str
    name: str | None = None
    entity_type: str | None = None


class FieldValue(BaseModel):
    """A single field on a normalized record."""

    value: JsonValue = None
    formatted_value: str | None = None
    lookup: LookupReference | None = None


class EntityReference(BaseModel):
    """The canonical {type, id, display name} triple identifying a record."""

    entity_type_name: str
    record_id: str
    primary_name: str


class NormalizedRecord(BaseModel):
    """Record in the canonical shape consumed by the hosted component."""

    entity_reference: EntityReference
    primary_field_name: str
    fields: dict[str, FieldValue] = Field(default_factory=dict)

    def get_value(self, name: str) -> JsonValue:
        """Get the raw value of a field, or None if absent."""
        field = self.fields.get(name)
        return field.value if field is not None else None

    def to_host_record(self) -> dict[str, Any]:
        """Render the dataset-record dictionary the host framework expects."""
        ref = self.entity_reference
        host_fields: dict[str, Any] = {}
        for name, field in self.fields.items():
            entry: dict[str, Any] = {
                "value": field.value,
                "validationResult": {
                    "errorId": None,
                    "errorMessage": None,
                    "isValueValid": True,
                    "userInput": None,
                    "isOfflineSyncError": False,
                },
            }
            if field.formatted_value is not None:
                entry["formatted"] = field.formatted_value
            if field.lookup is not None:
                entry["reference"] = {
                    "etn": field.lookup.entity_type,
                    "id": {"guid": field.lookup.id},
                    "name": field.lookup.name,
                }
            host_fields[name] = entry

        record: dict[str, Any] = {
            "_record": {
                "initialized": 2,
                "identifier": {"etn": ref.entity_type_name, "id": {"guid": ref.record_id}},
                "fields": host_fields,
            },
            "_columnAliasNameMap": {},
            "_primaryFieldName": self.primary_field_name,
            "_isDirty": False,
            "_entityReference": {
                "_etn": ref.entity_type_name,
                "_id": ref.record_id,
                "_name": ref.primary_name,
            },
        }
        record[self.primary_field_name] = ref.primary_name
        if self.primary_field_name != "name":
            record["name"] = ref.primary_name
        return record


class RateLimitState(BaseModel):
    """Service protection limits reported on a response."""

    remaining: int | None = None
    window_seconds: float | None = None


class DiagnosticReport(BaseModel):
    """Structured description of a failed HTTP response."""

    status_code: int
    status_text: str
    error_code: str | None = None
    message: str | None = None
    hints: list[str] = Field(default_factory=list)
    correlation_id: str | None = None
    request_id: str | None = None
    rate_limit: RateLimitState | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    requested_url: str | None = None
    raw_body: str | None = None
    parse_failed: bool = False

    def render(self) -> str:
        """Render as multi-line text for logs and the debugging panel."""
        lines = [f"Web API Error: {self.status_code} {self.status_text}"]
        if self.requested_url:
            lines.append(f"API: {self.requested_url}")
        if self.raw_body:
            lines.append(f"Raw Response: {self.raw_body}")
        if self.error_code:
            lines.append(f"Error Code: {self.error_code}")
        if self.message:
            lines.append(f"Message: {self.message}")
        lines.extend(f"Hint: {hint}" for hint in self.hints)
        if self.correlation_id:
            lines.append(f"Correlation ID: {self.correlation_id}")
        if self.request_id:
            lines.append(f"Request ID: {self.request_id}")
        if self.rate_limit is not None:
            remaining = "N/A" if self.rate_limit.remaining is None else self.rate_limit.remaining
            window = (
                "N/A" if self.rate_limit.window_seconds is None else self.rate_limit.window_seconds
            )
            lines.append(f"Rate Limit: {remaining} requests remaining, {window}s window")
        lines.append(f"Time: {self.timestamp.isoformat()}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()


class RefreshErrorAnalysis(BaseModel):
    """Coarse classification of a failed dataset refresh."""

    is_relationship_error: bool = False
    is_field_error: bool = False
    is_entity_error: bool = False
    is_permission_error: bool = False
    suggestions: list[str] = Field(default_factory=list)
    error_code: str | None = None
    correlation_id: str | None = None
