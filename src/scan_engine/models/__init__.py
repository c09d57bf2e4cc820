"""Data models for rules, findings, scan sessions and reports."""

from .finding import (
    SEVERITY_RANK,
    CanonicalFinding,
    FindingKind,
    FindingSeverity,
    InputError,
    RawFinding,
)
from .report import (
    ExecutiveSummary,
    ImmediateAction,
    NextStep,
    Recommendations,
    Report,
    RiskFactor,
    SecurityScore,
)
from .rule import DetectionSettings, Rule, RuleTable
from .session import ScanSession, SourceMetrics

__all__ = [
    "SEVERITY_RANK",
    "CanonicalFinding",
    "DetectionSettings",
    "ExecutiveSummary",
    "FindingKind",
    "FindingSeverity",
    "ImmediateAction",
    "InputError",
    "NextStep",
    "RawFinding",
    "Recommendations",
    "Report",
    "RiskFactor",
    "Rule",
    "RuleTable",
    "ScanSession",
    "SecurityScore",
    "SourceMetrics",
]
