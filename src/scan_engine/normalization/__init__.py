"""Normalization of detector output into canonical findings."""

from .finding_normalizer import (
    CATEGORIES,
    SEVERITY_TABLES,
    FindingNormalizer,
    canonical_category,
    dedup_key,
    map_severity,
    normalize,
    raw_finding_from_mapping,
)

__all__ = [
    "CATEGORIES",
    "SEVERITY_TABLES",
    "FindingNormalizer",
    "canonical_category",
    "dedup_key",
    "map_severity",
    "normalize",
    "raw_finding_from_mapping",
]
