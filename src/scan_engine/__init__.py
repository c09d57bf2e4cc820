"""Static secret and vulnerability detection with finding aggregation and risk reporting."""

from .models import CanonicalFinding, FindingKind, FindingSeverity, InputError, RawFinding, Report
from .service import ScanResult, ScanService

__all__ = [
    "CanonicalFinding",
    "FindingKind",
    "FindingSeverity",
    "InputError",
    "RawFinding",
    "Report",
    "ScanResult",
    "ScanService",
]

__version__ = "0.1.0"
