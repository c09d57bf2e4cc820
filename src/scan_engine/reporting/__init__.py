"""Risk scoring and report generation."""

from .report_builder import PREVENTIVE_MEASURES, ReportBuilder, build_recommendations, build_report
from .scoring import (
    calculate_score,
    describe_score,
    executive_recommendation,
    grade_for,
    risk_level_for,
    status_for,
)

__all__ = [
    "PREVENTIVE_MEASURES",
    "ReportBuilder",
    "build_recommendations",
    "build_report",
    "calculate_score",
    "describe_score",
    "executive_recommendation",
    "grade_for",
    "risk_level_for",
    "status_for",
]
