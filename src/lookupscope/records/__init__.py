"""Normalization of raw Web API records."""

from lookupscope.records.normalizer import (
    RecordNormalizer,
    normalize_record,
    normalize_records,
    resolve_primary_name,
)

__all__ = [
    "RecordNormalizer",
    "normalize_record",
    "normalize_records",
    "resolve_primary_name",
]
