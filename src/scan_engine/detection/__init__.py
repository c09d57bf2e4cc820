"""Internal pattern based detectors."""

from .secrets import detect_secrets
from .validators import (
    entropy,
    extract_context,
    has_package_metadata,
    has_secret_context,
    is_likely_noise,
    mask_secret,
)
from .vulnerabilities import detect_vulnerabilities

__all__ = [
    "detect_secrets",
    "detect_vulnerabilities",
    "entropy",
    "extract_context",
    "has_package_metadata",
    "has_secret_context",
    "is_likely_noise",
    "mask_secret",
]
