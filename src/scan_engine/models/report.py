"""Report models handed to persistence, HTTP and notification consumers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple

from .finding import CanonicalFinding


@dataclass(frozen=True, slots=True)
class SecurityScore:
    score: int
    grade: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "grade": self.grade, "description": self.description}


@dataclass(frozen=True, slots=True)
class ExecutiveSummary:
    """High level overview of a scan for non-technical readers."""

    scan_id: str
    timestamp: str
    language: str
    lines_of_code: int
    characters: int
    overall_risk: str
    total_issues: int
    critical_findings: int
    high_findings: int
    status: str
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "timestamp": self.timestamp,
            "language": self.language,
            "code_metrics": {
                "lines_of_code": self.lines_of_code,
                "characters": self.characters,
            },
            "overall_risk": self.overall_risk,
            "total_issues": self.total_issues,
            "critical_findings": self.critical_findings,
            "high_findings": self.high_findings,
            "status": self.status,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True, slots=True)
class ImmediateAction:
    action: str
    location: str
    rule_id: str
    priority: str = "CRITICAL"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "location": self.location,
            "rule_id": self.rule_id,
            "priority": self.priority,
        }


@dataclass(frozen=True, slots=True)
class Recommendations:
    immediate: Tuple[ImmediateAction, ...] = ()
    short_term: Tuple[str, ...] = ()
    long_term: Tuple[str, ...] = ()
    preventive: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "immediate": [action.to_dict() for action in self.immediate],
            "short_term": list(self.short_term),
            "long_term": list(self.long_term),
            "preventive": list(self.preventive),
        }


@dataclass(frozen=True, slots=True)
class NextStep:
    priority: int
    action: str
    timeline: str

    def to_dict(self) -> Dict[str, Any]:
        return {"priority": self.priority, "action": self.action, "timeline": self.timeline}


@dataclass(frozen=True, slots=True)
class RiskFactor:
    level: str
    description: str
    impact: str

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "description": self.description, "impact": self.impact}


@dataclass(frozen=True, slots=True)
class Report:
    """Read-only view over a completed scan session."""

    executive: ExecutiveSummary
    score: SecurityScore
    risk_level: str
    severity_counts: Mapping[str, int]
    findings: Mapping[str, Tuple[CanonicalFinding, ...]]
    category_distribution: Mapping[str, int]
    recommendations: Recommendations
    risk_factors: Tuple[RiskFactor, ...] = ()
    compliance: Mapping[str, Any] = field(default_factory=dict)
    next_steps: Tuple[NextStep, ...] = ()
    next_scan: str = ""

    @property
    def all_findings(self) -> Tuple[CanonicalFinding, ...]:
        return tuple(finding for group in self.findings.values() for finding in group)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "executive": self.executive.to_dict(),
            "score": self.score.to_dict(),
            "risk_level": self.risk_level,
            "severity_counts": dict(self.severity_counts),
            "findings": {
                group: [finding.to_dict() for finding in findings]
                for group, findings in self.findings.items()
            },
            "category_distribution": dict(self.category_distribution),
            "risk_factors": [factor.to_dict() for factor in self.risk_factors],
            "compliance": _plain(self.compliance),
            "recommendations": self.recommendations.to_dict(),
            "next_steps": {
                "action_plan": [step.to_dict() for step in self.next_steps],
                "next_scan_recommended": self.next_scan,
            },
        }


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value
