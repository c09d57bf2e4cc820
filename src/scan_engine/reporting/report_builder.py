"""Build the executive report for a completed scan session."""

from __future__ import annotations

import logging
from collections import Counter
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from ..models import (
    CanonicalFinding,
    ExecutiveSummary,
    FindingKind,
    FindingSeverity,
    ImmediateAction,
    NextStep,
    Recommendations,
    Report,
    RiskFactor,
    ScanSession,
    SecurityScore,
)
from .scoring import (
    calculate_score,
    describe_score,
    executive_recommendation,
    grade_for,
    next_scan_recommendation,
    risk_level_for,
    status_for,
)

log = logging.getLogger(__name__)

PREVENTIVE_MEASURES: Tuple[str, ...] = (
    "Implement automated security scanning in CI/CD pipeline",
    "Set up secret scanning hooks in the repository",
    "Regular security training for development team",
    "Establish secure coding standards",
)

FINDING_GROUPS = {
    FindingKind.SECRET: "secrets",
    FindingKind.VULNERABILITY: "vulnerabilities",
    FindingKind.QUALITY: "code_quality",
}


class ReportBuilder:
    """Derive a read-only :class:`Report` from a scan session."""

    def build(self, session: ScanSession) -> Report:
        # Counts always come from the session so summary and details cannot drift.
        counts = session.severity_counts
        session.freeze()
        findings: Sequence[CanonicalFinding] = session.findings

        total = session.total_findings
        risk_level = risk_level_for(counts)
        score = calculate_score(counts)

        executive = ExecutiveSummary(
            scan_id=session.scan_id,
            timestamp=session.timestamp,
            language=session.language,
            lines_of_code=session.source_metrics.lines,
            characters=session.source_metrics.chars,
            overall_risk=risk_level,
            total_issues=total,
            critical_findings=counts["critical"],
            high_findings=counts["high"],
            status=status_for(risk_level, total),
            recommendation=executive_recommendation(risk_level, total),
        )

        report = Report(
            executive=executive,
            score=SecurityScore(score=score, grade=grade_for(score), description=describe_score(score)),
            risk_level=risk_level,
            severity_counts=MappingProxyType(dict(counts)),
            findings=MappingProxyType(_group_findings(findings)),
            category_distribution=MappingProxyType(_category_distribution(findings)),
            recommendations=build_recommendations(findings),
            risk_factors=_risk_factors(counts, findings),
            compliance=MappingProxyType(_compliance(counts, findings)),
            next_steps=_next_steps(counts),
            next_scan=next_scan_recommendation(counts),
        )
        log.debug(
            "Built report for scan %s: score=%d risk=%s findings=%d",
            session.scan_id,
            score,
            risk_level,
            total,
        )
        return report


def build_report(session: ScanSession) -> Report:
    return ReportBuilder().build(session)


def build_recommendations(findings: Sequence[CanonicalFinding]) -> Recommendations:
    """Sort remediation advice into immediate, short-term, long-term and preventive buckets."""

    immediate = tuple(
        ImmediateAction(
            action=f"Fix {finding.message}",
            location=finding.location,
            rule_id=finding.rule_id,
        )
        for finding in findings
        if finding.severity is FindingSeverity.CRITICAL
    )
    short_term = _distinct(
        finding.recommendation or finding.message
        for finding in findings
        if finding.severity is FindingSeverity.HIGH
    )
    long_term = _distinct(
        finding.recommendation or finding.message
        for finding in findings
        if finding.severity in (FindingSeverity.MEDIUM, FindingSeverity.LOW)
    )
    return Recommendations(
        immediate=immediate,
        short_term=short_term,
        long_term=long_term,
        preventive=PREVENTIVE_MEASURES,
    )


def _distinct(values: Iterable[str]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for value in values:
        if value and value not in seen:
            seen[value] = None
    return tuple(seen)


def _group_findings(
    findings: Sequence[CanonicalFinding],
) -> Dict[str, Tuple[CanonicalFinding, ...]]:
    groups: Dict[str, List[CanonicalFinding]] = {name: [] for name in FINDING_GROUPS.values()}
    for finding in findings:
        groups[FINDING_GROUPS[finding.kind]].append(finding)
    return {name: tuple(items) for name, items in groups.items()}


def _category_distribution(findings: Sequence[CanonicalFinding]) -> Dict[str, int]:
    counts = Counter(finding.category for finding in findings)
    return {category: counts[category] for category in sorted(counts)}


def _risk_factors(
    counts: Mapping[str, int],
    findings: Sequence[CanonicalFinding],
) -> Tuple[RiskFactor, ...]:
    factors: List[RiskFactor] = []
    if counts["critical"] > 0:
        factors.append(
            RiskFactor(
                level="critical",
                description="Critical security vulnerabilities detected",
                impact="Complete system compromise possible",
            )
        )
    if counts["high"] > 0:
        factors.append(
            RiskFactor(
                level="high",
                description="High-priority security issues found",
                impact="Significant security risk",
            )
        )
    if any(finding.kind is FindingKind.SECRET for finding in findings):
        factors.append(
            RiskFactor(
                level="high",
                description="Hardcoded secrets detected in code",
                impact="Credential compromise and unauthorized access",
            )
        )
    return tuple(factors)


def _compliance(counts: Mapping[str, int], findings: Sequence[CanonicalFinding]) -> Dict[str, Any]:
    owasp_findings = [
        finding
        for finding in findings
        if finding.kind is FindingKind.VULNERABILITY and finding.owasp
    ]
    has_secrets = any(finding.kind is FindingKind.SECRET for finding in findings)

    if counts["critical"] > 0 or counts["high"] > 0 or has_secrets:
        overall = "non-compliant"
    elif counts["medium"] > 0:
        overall = "partial-compliance"
    else:
        overall = "compliant"

    return {
        "owasp": {
            "status": "non-compliant" if owasp_findings else "compliant",
            "issues": len(owasp_findings),
            "categories": sorted({str(finding.owasp) for finding in owasp_findings}),
        },
        "pci": {
            "status": "non-compliant" if has_secrets else "compliant",
            "issues": ["Hardcoded secrets detected"] if has_secrets else [],
        },
        "overall": overall,
    }


def _next_steps(counts: Mapping[str, int]) -> Tuple[NextStep, ...]:
    steps: List[NextStep] = []
    if counts["critical"] > 0:
        steps.append(
            NextStep(
                priority=1,
                action=f"Address {counts['critical']} critical security issues immediately",
                timeline="Within 24 hours",
            )
        )
    if counts["high"] > 0:
        steps.append(
            NextStep(
                priority=2,
                action=f"Fix {counts['high']} high-priority vulnerabilities",
                timeline="Within 1 week",
            )
        )
    steps.append(
        NextStep(
            priority=3,
            action="Implement security scanning in CI/CD pipeline",
            timeline="Within 2 weeks",
        )
    )
    return tuple(steps)
