"""Adapter layer for converting external detector output into raw findings."""

from .external import (
    ADAPTERS,
    ESLintAdapter,
    ExternalFindingAdapter,
    GitleaksAdapter,
    PartialSourceError,
    SemgrepAdapter,
    TruffleHogAdapter,
    available_adapters,
    get_adapter,
)

__all__ = [
    "ADAPTERS",
    "ESLintAdapter",
    "ExternalFindingAdapter",
    "GitleaksAdapter",
    "PartialSourceError",
    "SemgrepAdapter",
    "TruffleHogAdapter",
    "available_adapters",
    "get_adapter",
]
