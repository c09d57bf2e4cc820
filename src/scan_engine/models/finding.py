"""Finding models shared across detectors, normalization and reporting layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class InputError(ValueError):
    """Raised when input handed to the engine is malformed."""


class FindingSeverity(str, Enum):
    """Severity levels supported by the scan engine."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {
    FindingSeverity.INFO: 0,
    FindingSeverity.LOW: 1,
    FindingSeverity.MEDIUM: 2,
    FindingSeverity.HIGH: 3,
    FindingSeverity.CRITICAL: 4,
}


class FindingKind(str, Enum):
    """Discriminator for the type of issue a finding describes."""

    SECRET = "secret"
    VULNERABILITY = "vulnerability"
    QUALITY = "quality"


@dataclass(slots=True)
class RawFinding:
    """A finding as emitted by a single detector, before normalization.

    ``severity`` may hold a :class:`FindingSeverity` or the tool-native value
    (ESLint ``2``, Semgrep ``"ERROR"``...). ``line`` and ``column`` are 1-based.
    """

    source: str
    kind: FindingKind
    rule_id: str
    severity: Any
    message: str
    line: int = 1
    column: int = 1
    matched_text: str = ""
    confidence: float = 0.5
    context: Tuple[str, ...] = ()
    category: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CanonicalFinding:
    """A normalized, deduplicated finding that may combine several detectors."""

    dedup_key: str
    kind: FindingKind
    category: str
    severity: FindingSeverity
    confidence: float
    sources: Tuple[str, ...]
    rule_id: str
    message: str
    line: int
    column: int = 1
    rule_ids: Tuple[str, ...] = ()
    masked_value: Optional[str] = None
    context: Tuple[str, ...] = ()
    recommendation: Optional[str] = None
    cwe: Optional[str] = None
    owasp: Optional[str] = None

    @property
    def location(self) -> str:
        return f"Line {self.line}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dedup_key": self.dedup_key,
            "kind": self.kind.value,
            "category": self.category,
            "severity": self.severity.value,
            "confidence": round(self.confidence, 4),
            "sources": list(self.sources),
            "rule_id": self.rule_id,
            "rule_ids": list(self.rule_ids),
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "masked_value": self.masked_value,
            "context": list(self.context),
            "recommendation": self.recommendation,
            "cwe": self.cwe,
            "owasp": self.owasp,
        }
