"""Tests for core types."""

import pytest
from pydantic import ValidationError

from lookupscope.core.types import (
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
    TargetResolution,
)


class TestEnums:
    """Tests for enum types."""

    def test_column_kind_values(self) -> None:
        """Test ColumnKind enum values."""
        assert ColumnKind.values() == ["primary_key", "lookup", "attribute", "phantom"]

    def test_target_resolution_values(self) -> None:
        """Test TargetResolution enum values."""
        assert set(TargetResolution.values()) == {"metadata", "polymorphic", "pattern", "unresolved"}

    def test_str_enum(self) -> None:
        """Enums compare equal to their string values."""
        assert Confidence.HIGH == "high"
        assert str(ColumnKind.LOOKUP) == "lookup"


class TestEntityMetadata:
    """Tests for EntityMetadata."""

    def test_from_api(self) -> None:
        """Test building from an EntityDefinitions body."""
        metadata = EntityMetadata.from_api(
            {
                "LogicalName": "account",
                "PrimaryIdAttribute": "accountid",
                "PrimaryNameAttribute": "name",
                "LogicalCollectionName": "accounts",
                "DisplayName": {"UserLocalizedLabel": {"Label": "Account"}},
            }
        )
        assert metadata.logical_name == "account"
        assert metadata.primary_id_attribute == "accountid"
        assert metadata.primary_name_attribute == "name"
        assert metadata.collection_name == "accounts"
        assert metadata.display_name == "Account"

    def test_display_name_defaults_to_logical_name(self) -> None:
        """A missing localized label falls back to the logical name."""
        metadata = EntityMetadata.from_api(
            {
                "LogicalName": "account",
                "PrimaryIdAttribute": "accountid",
                "PrimaryNameAttribute": "name",
                "LogicalCollectionName": "accounts",
                "DisplayName": {"UserLocalizedLabel": None},
            }
        )
        assert metadata.display_name == "account"

    def test_missing_fields_rejected(self) -> None:
        """Missing or empty required fields raise ValueError naming them."""
        with pytest.raises(ValueError, match="PrimaryNameAttribute"):
            EntityMetadata.from_api(
                {
                    "LogicalName": "account",
                    "PrimaryIdAttribute": "accountid",
                    "PrimaryNameAttribute": "",
                    "LogicalCollectionName": "accounts",
                }
            )

    def test_frozen(self) -> None:
        """Metadata is immutable once built."""
        metadata = EntityMetadata(
            logical_name="account",
            primary_id_attribute="accountid",
            primary_name_attribute="name",
            collection_name="accounts",
            display_name="Account",
        )
        with pytest.raises(ValidationError):
            metadata.logical_name = "contact"  # type: ignore[misc]

    def test_required_fields_not_a_model_field(self) -> None:
        """The required wire field list is class data, not model data."""
        assert "REQUIRED_API_FIELDS" not in EntityMetadata.model_fields


class TestLookupAttribute:
    """Tests for LookupAttribute."""

    def test_from_api(self) -> None:
        """Test building from a LookupAttributeMetadata body."""
        attribute = LookupAttribute.from_api(
            {"LogicalName": "parentcustomerid", "Targets": ["account", "contact"]}
        )
        assert attribute.data_field_name == "_parentcustomerid_value"
        assert attribute.targets == ["account", "contact"]
        assert attribute.display_name == "parentcustomerid"

    def test_null_targets(self) -> None:
        """Null targets become an empty list."""
        attribute = LookupAttribute.from_api({"LogicalName": "regardingobjectid", "Targets": None})
        assert attribute.targets == []


class TestColumnDescriptor:
    """Tests for ColumnDescriptor."""

    def test_alias(self) -> None:
        """Host-style dataType is accepted by alias or field name."""
        assert ColumnDescriptor.model_validate({"name": "a", "dataType": "Lookup"}).data_type == "Lookup"
        assert ColumnDescriptor(name="a", data_type="Text").data_type == "Text"


class TestDiscoveredRelationship:
    """Tests for DiscoveredRelationship."""

    def test_resolved(self) -> None:
        """A relationship with targets is resolved."""
        rel = DiscoveredRelationship(
            child_entity="contact",
            lookup_column="_parentcustomerid_value",
            attribute_name="parentcustomerid",
            parent_entity="account",
            targets=["account", "contact"],
            source=TargetResolution.METADATA,
            confidence=Confidence.MEDIUM,
        )
        assert rel.is_resolved
        assert rel.is_polymorphic

    def test_unresolved(self) -> None:
        """A relationship without targets is unresolved."""
        rel = DiscoveredRelationship(
            child_entity="contact",
            lookup_column="_x_value",
            attribute_name="x",
            source=TargetResolution.UNRESOLVED,
            confidence=Confidence.NONE,
        )
        assert not rel.is_resolved
        assert rel.parent_entity is None

    def test_serializable(self) -> None:
        """Relationships dump to JSON-compatible dicts."""
        rel = DiscoveredRelationship(
            child_entity="contact",
            lookup_column="_x_value",
            attribute_name="x",
            source=TargetResolution.PATTERN,
            confidence=Confidence.LOW,
        )
        data = rel.model_dump(mode="json")
        assert data["source"] == "pattern"
        assert isinstance(data["discovered_at"], str)


class TestNormalizedRecord:
    """Tests for NormalizedRecord."""

    @pytest.fixture
    def record(self) -> NormalizedRecord:
        return NormalizedRecord(
            entity_reference=EntityReference(
                entity_type_name="pum_gantttask", record_id="t1", primary_name="Task 1"
            ),
            primary_field_name="pum_name",
            fields={
                "pum_name": FieldValue(value="Task 1"),
                "pum_initiative": FieldValue(
                    value="i1",
                    formatted_value="Initiative 1",
                    lookup=LookupReference(id="i1", name="Initiative 1", entity_type="pum_initiative"),
                ),
            },
        )

    def test_get_value(self, record: NormalizedRecord) -> None:
        """Test reading raw field values."""
        assert record.get_value("pum_name") == "Task 1"
        assert record.get_value("missing") is None

    def test_to_host_record(self, record: NormalizedRecord) -> None:
        """The host record carries identity, fields and mirrored name."""
        host = record.to_host_record()
        assert host["_record"]["identifier"] == {"etn": "pum_gantttask", "id": {"guid": "t1"}}
        assert host["_entityReference"] == {
            "_etn": "pum_gantttask",
            "_id": "t1",
            "_name": "Task 1",
        }
        assert host["_primaryFieldName"] == "pum_name"
        assert host["pum_name"] == "Task 1"
        assert host["name"] == "Task 1"
        lookup = host["_record"]["fields"]["pum_initiative"]
        assert lookup["reference"] == {
            "etn": "pum_initiative",
            "id": {"guid": "i1"},
            "name": "Initiative 1",
        }
        assert lookup["formatted"] == "Initiative 1"
        assert lookup["validationResult"]["isValueValid"] is True


class TestDiagnosticReport:
    """Tests for DiagnosticReport rendering."""

    def test_render(self) -> None:
        """Every populated field appears in the rendered text."""
        report = DiagnosticReport(
            status_code=404,
            status_text="Not Found",
            error_code="0x80060888",
            message="Resource not found for the segment 'foo'.",
            hints=["Entity 'foo' not found"],
            correlation_id="corr-1",
            request_id="req-1",
            rate_limit=RateLimitState(remaining=None, window_seconds=12.5),
            requested_url="foo",
        )
        text = report.render()
        assert text.startswith("Web API Error: 404 Not Found")
        assert "API: foo" in text
        assert "Error Code: 0x80060888" in text
        assert "Hint: Entity 'foo' not found" in text
        assert "Correlation ID: corr-1" in text
        assert "Request ID: req-1" in text
        assert "Rate Limit: N/A requests remaining, 12.5s window" in text
        assert str(report) == text

    def test_render_minimal(self) -> None:
        """Absent fields are omitted."""
        text = DiagnosticReport(status_code=500, status_text="Internal Server Error").render()
        assert "Message:" not in text
        assert "Rate Limit:" not in text
        assert "Time:" in text
