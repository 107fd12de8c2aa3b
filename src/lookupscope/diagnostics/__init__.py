"""Structured diagnostics for failed Web API responses."""

from lookupscope.diagnostics.translator import (
    HINT_RULES,
    analyze_refresh_error,
    describe,
    describe_async,
    message_hints,
)

__all__ = [
    "HINT_RULES",
    "analyze_refresh_error",
    "describe",
    "describe_async",
    "message_hints",
]
