"""Custom exceptions for LookupScope.

All exceptions are designed to surface the true cause of a failure:
- Actionable error messages that tell what went wrong AND where to look
- Include the debug context (raw keys, attempted fields, diagnostics) when relevant
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from lookupscope.core.types import DiagnosticReport


class LookupScopeError(Exception):
    """Base exception for all LookupScope errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class MetadataFetchError(LookupScopeError):
    """Entity metadata could not be fetched or was malformed."""

    def __init__(
        self,
        entity_name: str,
        reason: str,
        report: DiagnosticReport | None = None,
    ) -> None:
        message = f"Failed to fetch metadata for entity '{entity_name}': {reason}"
        context: dict[str, Any] = {"entity_name": entity_name, "reason": reason}
        if report is not None:
            context["diagnostics"] = report.model_dump(mode="json")
        super().__init__(message, context)
        self.entity_name = entity_name
        self.reason = reason
        self.report = report


class NameResolutionError(LookupScopeError):
    """The primary display value of a record could not be located."""

    def __init__(
        self,
        entity_name: str,
        record_id: str | None,
        primary_name_attribute: str,
        raw_keys: list[str],
        attempted_fields: list[str],
    ) -> None:
        message = (
            f"Could not resolve a display name for '{entity_name}' record "
            f"'{record_id or '?'}'. Primary name attribute '{primary_name_attribute}' "
            f"is empty or missing. Tried: {', '.join(attempted_fields)}. "
            f"Record keys: {', '.join(raw_keys) or '(none)'}"
        )
        super().__init__(
            message,
            {
                "entity_name": entity_name,
                "record_id": record_id,
                "primary_name_attribute": primary_name_attribute,
                "raw_keys": raw_keys,
                "attempted_fields": attempted_fields,
            },
        )
        self.entity_name = entity_name
        self.record_id = record_id
        self.primary_name_attribute = primary_name_attribute
        self.raw_keys = raw_keys
        self.attempted_fields = attempted_fields


class ApiRequestError(LookupScopeError):
    """A record query against the Web API returned a non-success status."""

    def __init__(self, report: DiagnosticReport) -> None:
        message = f"Web API error: {report.status_code} {report.status_text}"
        if report.message:
            message = f"{message} - {report.message}"
        super().__init__(message, {"diagnostics": report.model_dump(mode="json")})
        self.report = report
        self.status_code = report.status_code
