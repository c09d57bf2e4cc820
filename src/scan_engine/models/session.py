"""Scan session model tying a single engine invocation together."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping

from .finding import CanonicalFinding, FindingSeverity


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_scan_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, slots=True)
class SourceMetrics:
    """Size of the scanned text."""

    lines: int = 0
    chars: int = 0

    @classmethod
    def from_text(cls, text: str) -> "SourceMetrics":
        return cls(lines=len(text.split("\n")), chars=len(text))


@dataclass
class ScanSession:
    """Mutable state of one scan until the report is built, read-only afterwards."""

    language: str
    source_metrics: SourceMetrics = field(default_factory=SourceMetrics)
    scan_id: str = field(default_factory=_new_scan_id)
    timestamp: str = field(default_factory=_now_iso)
    findings: List[CanonicalFinding] = field(default_factory=list)
    metadata: Mapping[str, Any] = field(default_factory=dict)
    _frozen: bool = field(default=False, init=False, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_frozen", False):
            raise RuntimeError(f"Scan session {self.scan_id} is frozen")
        super().__setattr__(name, value)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def set_findings(self, findings: Iterable[CanonicalFinding]) -> None:
        """Replace the canonical finding set for this session."""

        self.findings = list(findings)

    def record_detector(self, name: str, status: str, findings: int = 0, **extra: Any) -> None:
        if self._frozen:
            raise RuntimeError(f"Scan session {self.scan_id} is frozen")
        entry: Dict[str, Any] = {"detector": name, "status": status, "findings": findings}
        entry.update(extra)
        self.metadata.setdefault("detectors", []).append(entry)

    def freeze(self) -> None:
        """Make the session read-only; called once its report is built."""

        if self._frozen:
            return
        object.__setattr__(self, "findings", tuple(self.findings))
        metadata = dict(self.metadata)
        if "detectors" in metadata:
            metadata["detectors"] = tuple(MappingProxyType(dict(entry)) for entry in metadata["detectors"])
        object.__setattr__(self, "metadata", MappingProxyType(metadata))
        object.__setattr__(self, "_frozen", True)

    @property
    def severity_counts(self) -> Dict[str, int]:
        """Severity buckets, always derived from the canonical finding set."""

        counts = {severity.value: 0 for severity in _COUNT_ORDER}
        for finding in self.findings:
            counts[finding.severity.value] += 1
        return counts

    @property
    def total_findings(self) -> int:
        return len(self.findings)


_COUNT_ORDER = (
    FindingSeverity.CRITICAL,
    FindingSeverity.HIGH,
    FindingSeverity.MEDIUM,
    FindingSeverity.LOW,
    FindingSeverity.INFO,
)
