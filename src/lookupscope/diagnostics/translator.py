"""Diagnostic translator for failed Web API responses.

Turns a failed ``httpx.Response`` into a structured ``DiagnosticReport``:
- Error code and message from the OData error body (raw text kept when unparseable)
- Correlation and request identifiers for support
- Service protection (rate limit) state
- Actionable hints from a fixed set of message patterns
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from lookupscope.core.types import DiagnosticReport, RateLimitState, RefreshErrorAnalysis

logger = logging.getLogger(__name__)

CORRELATION_HEADERS = ("mise-correlation-id", "ms-cv")
REQUEST_ID_HEADERS = ("x-ms-service-request-id", "req_id")
RATE_LIMIT_REMAINING_HEADER = "x-ms-ratelimit-burst-remaining-xrm-requests"
RATE_LIMIT_WINDOW_HEADER = "x-ms-ratelimit-time-remaining-xrm-requests"

QUOTED_TOKEN = re.compile(r"'([^']+)'")
POSITION = re.compile(r"position (\d+)")


@dataclass(frozen=True)
class HintRule:
    """One message pattern and the hint it produces."""

    name: str
    matches: Callable[[str], bool]
    hint: Callable[[str], str | None]


def _quoted(message: str) -> str | None:
    match = QUOTED_TOKEN.search(message)
    return match.group(1) if match else None


def _unknown_property_hint(message: str) -> str | None:
    token = _quoted(message)
    if token is None:
        return None
    return f"Field '{token}' doesn't exist - check spelling or entity metadata"


def _unknown_segment_hint(message: str) -> str | None:
    token = _quoted(message)
    if token is None:
        return None
    return (
        f"Entity '{token}' not found - check the name or use the plural form "
        "(e.g., 'contacts')"
    )


def _syntax_error_hint(message: str) -> str | None:
    match = POSITION.search(message)
    if match is None:
        return None
    return f"Query syntax error at position {match.group(1)} - check OData syntax"


# Rules are independent: every matching rule contributes a hint, in order.
HINT_RULES: list[HintRule] = [
    HintRule(
        name="unknown_property",
        matches=lambda m: "Could not find a property named" in m,
        hint=_unknown_property_hint,
    ),
    HintRule(
        name="unknown_segment",
        matches=lambda m: "Resource not found for the segment" in m,
        hint=_unknown_segment_hint,
    ),
    HintRule(
        name="syntax_error",
        matches=lambda m: "Syntax error at position" in m,
        hint=_syntax_error_hint,
    ),
    HintRule(
        name="record_not_found",
        matches=lambda m: "Entity" in m and "Does Not Exist" in m,
        hint=lambda m: "Record not found - check ID or verify record wasn't deleted",
    ),
    HintRule(
        name="parent_lookup",
        matches=lambda m: "parentcustomerid" in m or "parentaccountid" in m,
        hint=lambda m: (
            "Relationship field error - use '_parentcustomerid_value' "
            "for account-contact relationships"
        ),
    ),
]


def _first_header(headers: httpx.Headers, names: tuple[str, ...]) -> str | None:
    for name in names:
        value = headers.get(name)
        if value:
            return value
    return None


def _parse_number(raw: str | None, kind: type[int] | type[float]) -> int | float | None:
    if raw is None:
        return None
    try:
        return kind(raw)
    except ValueError:
        return None


def _read_text(response: httpx.Response) -> str:
    try:
        return response.text
    except httpx.ResponseNotRead:
        return ""


def _status_text(response: httpx.Response) -> str:
    return response.reason_phrase or httpx.codes.get_reason_phrase(response.status_code)


def message_hints(message: str) -> list[str]:
    """Apply every hint rule to an error message.

    Args:
        message: Error message from the response body

    Returns:
        Hints from all matching rules (may be empty)
    """
    hints: list[str] = []
    for rule in HINT_RULES:
        if rule.matches(message):
            hint = rule.hint(message)
            if hint:
                hints.append(hint)
    return hints


def status_hints(status_code: int) -> list[str]:
    """Hints that depend only on the HTTP status."""
    if status_code in (401, 403):
        return ["Check user permissions for the target entity and related records"]
    if status_code == 429:
        return ["Request was throttled - retry after the rate limit window resets"]
    return []


def parse_error_body(text: str) -> tuple[dict[str, Any] | None, bool]:
    """Parse an OData error body.

    Returns:
        Tuple of (error object or None, parse_failed)
    """
    if not text:
        return None, False
    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        # RecursionError: pathologically nested arrays or objects
        return None, True
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return data["error"], False
    return None, False


def describe(response: httpx.Response, requested_url: str | None = None) -> DiagnosticReport:
    """Describe a failed response. Never raises.

    Args:
        response: The failed response (body already read)
        requested_url: URL or relative path that was requested, for context

    Returns:
        DiagnosticReport with every field that could be determined
    """
    text = _read_text(response)
    error, parse_failed = parse_error_body(text)

    error_code: str | None = None
    message: str | None = None
    hints: list[str] = []
    if error is not None:
        if error.get("code") is not None:
            error_code = str(error["code"])
        if error.get("message") is not None:
            message = str(error["message"])
            hints.extend(message_hints(message))
    hints.extend(status_hints(response.status_code))

    headers = response.headers
    remaining = _parse_number(headers.get(RATE_LIMIT_REMAINING_HEADER), int)
    window = _parse_number(headers.get(RATE_LIMIT_WINDOW_HEADER), float)
    rate_limit = None
    if RATE_LIMIT_REMAINING_HEADER in headers or RATE_LIMIT_WINDOW_HEADER in headers:
        rate_limit = RateLimitState(remaining=remaining, window_seconds=window)

    if parse_failed:
        logger.debug(f"Response body for {response.status_code} is not JSON; keeping raw text")

    return DiagnosticReport(
        status_code=response.status_code,
        status_text=_status_text(response),
        error_code=error_code,
        message=message,
        hints=hints,
        correlation_id=_first_header(headers, CORRELATION_HEADERS),
        request_id=_first_header(headers, REQUEST_ID_HEADERS),
        rate_limit=rate_limit,
        requested_url=requested_url,
        raw_body=text if text and error is None else None,
        parse_failed=parse_failed,
    )


async def describe_async(
    response: httpx.Response, requested_url: str | None = None
) -> DiagnosticReport:
    """Read a streamed body, then describe the response. Never raises."""
    try:
        await response.aread()
    except httpx.HTTPError as e:
        logger.warning(f"Could not read error response body: {e}")
    return describe(response, requested_url)


def analyze_refresh_error(
    response: httpx.Response, query: str | None = None
) -> RefreshErrorAnalysis:
    """Classify a failed dataset refresh and suggest a fix.

    Args:
        response: The failed response
        query: The OData query that was attempted, for logging

    Returns:
        RefreshErrorAnalysis with flags and suggestions
    """
    report = describe(response, query)
    analysis = RefreshErrorAnalysis(
        error_code=report.error_code,
        correlation_id=report.correlation_id,
    )
    message = report.message or ""

    if (
        "parentcustomerid" in message
        or "parentaccountid" in message
        or "could not find a property named" in message.lower()
        or "Invalid column name" in message
    ):
        analysis.is_relationship_error = True
        field_name = _quoted(message)
        if field_name and "_value" in field_name:
            analysis.suggestions.append(f'Invalid lookup field: "{field_name}"')
            analysis.suggestions.append(
                "Run relationship discovery to find the correct lookup column"
            )
        else:
            analysis.suggestions.append(
                'Use the lookup column form, e.g. "_parentcustomerid_value" '
                "for account-contact relationships"
            )

    if "Could not find a property named" in message:
        analysis.is_field_error = True
        field_name = _quoted(message)
        if field_name:
            analysis.suggestions.append(
                f"Field '{field_name}' doesn't exist. Check entity metadata or field spelling."
            )

    if "Resource not found for the segment" in message:
        analysis.is_entity_error = True
        analysis.suggestions.append(
            'Check entity name and use plural form (e.g., "contacts" not "contact")'
        )

    if report.status_code in (401, 403):
        analysis.is_permission_error = True
        analysis.suggestions.extend(status_hints(report.status_code))

    return analysis
