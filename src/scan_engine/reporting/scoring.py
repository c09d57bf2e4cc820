"""Deterministic security scoring, grading and risk classification."""

from __future__ import annotations

from typing import Mapping

MAX_SCORE = 100
SEVERITY_DEDUCTIONS = {
    "critical": 25,
    "high": 10,
    "medium": 5,
    "low": 2,
}

GRADE_THRESHOLDS = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
)

RISK_CRITICAL = "critical"
RISK_HIGH = "high"
RISK_MEDIUM = "medium"
RISK_LOW = "low"
RISK_MINIMAL = "minimal"

_STATUS = {
    RISK_CRITICAL: "IMMEDIATE ACTION REQUIRED",
    RISK_HIGH: "HIGH RISK - ACTION NEEDED",
    RISK_MEDIUM: "MODERATE RISK",
    RISK_LOW: "LOW RISK",
}

_EXECUTIVE_RECOMMENDATIONS = {
    RISK_CRITICAL: (
        "Suspend deployment and address critical vulnerabilities immediately. "
        "Security team intervention required."
    ),
    RISK_HIGH: (
        "Prioritize security fixes before next deployment. "
        "Review and remediate high-risk issues within 48 hours."
    ),
    RISK_MEDIUM: (
        "Plan security improvements in next sprint. "
        "Address medium-priority issues within 2 weeks."
    ),
    RISK_LOW: (
        "Consider security enhancements as technical debt. "
        "Address in upcoming maintenance cycle."
    ),
    RISK_MINIMAL: "Excellent security posture. Continue following security best practices.",
}


def calculate_score(counts: Mapping[str, int]) -> int:
    """Return ``100`` minus the severity-weighted deductions, clamped to ``[0, 100]``."""

    deductions = sum(
        weight * int(counts.get(severity, 0)) for severity, weight in SEVERITY_DEDUCTIONS.items()
    )
    return max(0, min(MAX_SCORE, MAX_SCORE - deductions))


def grade_for(score: int) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def describe_score(score: int) -> str:
    if score >= 90:
        return "Excellent security posture"
    if score >= 80:
        return "Good security with minor improvements needed"
    if score >= 70:
        return "Moderate security, several issues to address"
    if score >= 60:
        return "Poor security, significant improvements required"
    return "Critical security issues, immediate action required"


def risk_level_for(counts: Mapping[str, int]) -> str:
    for level in (RISK_CRITICAL, RISK_HIGH, RISK_MEDIUM, RISK_LOW):
        if counts.get(level, 0) > 0:
            return level
    return RISK_MINIMAL


def status_for(risk_level: str, total_issues: int) -> str:
    if risk_level in _STATUS:
        return _STATUS[risk_level]
    if total_issues == 0:
        return "SECURE"
    # Only informational findings remain.
    return "REVIEW NEEDED"


def executive_recommendation(risk_level: str, total_issues: int) -> str:
    if risk_level == RISK_MINIMAL and total_issues > 0:
        return "Review informational findings and keep following security best practices."
    return _EXECUTIVE_RECOMMENDATIONS.get(
        risk_level, "Review findings and implement appropriate security measures."
    )


def next_scan_recommendation(counts: Mapping[str, int]) -> str:
    if counts.get("critical", 0) > 0 or counts.get("high", 0) > 0:
        return "within 24 hours after fixes are implemented"
    if counts.get("medium", 0) > 0:
        return "within 1 week after fixes are implemented"
    return "monthly or before major releases"
