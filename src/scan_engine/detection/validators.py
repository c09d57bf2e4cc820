"""Pure helpers for entropy, context windows, noise filtering and confidence."""

from __future__ import annotations

import math
import re
from collections import Counter
from typing import List, Sequence

from ..models import DetectionSettings, Rule

DEFAULT_SETTINGS = DetectionSettings()

ENTROPY_BONUS_CAP = 0.2
ENTROPY_BONUS_DIVISOR = 6.0
LENGTH_BONUS = 0.1
CONTEXT_BONUS = 0.1
SPECIFICITY_BONUS = 0.1
CONTEXT_VALIDATION_BONUS = 0.1
DEFAULT_OPTIMAL_LENGTH = 20
MAX_CONFIDENCE = 1.0

_HEX_LINE = re.compile(r"^[a-f0-9]+$", re.IGNORECASE)
_BASE64_LINE = re.compile(r"^[A-Za-z0-9+/=]+$")


def entropy(value: str) -> float:
    """Return the Shannon entropy of ``value`` in bits per character."""

    if not value:
        return 0.0

    length = len(value)
    result = 0.0
    for count in Counter(value).values():
        probability = count / length
        result -= probability * math.log2(probability)
    # -0.0 for single-symbol strings
    return abs(result)


def extract_context(lines: Sequence[str], index: int, radius: int) -> List[str]:
    """Return the lines within ``radius`` of the 0-based ``index``."""

    start = max(0, index - radius)
    end = min(len(lines), index + radius + 1)
    return list(lines[start:end])


def has_secret_context(
    context_lines: Sequence[str],
    settings: DetectionSettings = DEFAULT_SETTINGS,
) -> bool:
    """Return ``True`` when a credential keyword appears anywhere in the window."""

    window = "\n".join(context_lines).lower()
    return any(keyword in window for keyword in settings.secret_context_keywords)


def has_package_metadata(
    context_lines: Sequence[str],
    settings: DetectionSettings = DEFAULT_SETTINGS,
) -> bool:
    """Return ``True`` when the window looks like lockfile or package metadata."""

    window = "\n".join(context_lines).lower()
    return any(marker in window for marker in settings.package_markers)


def is_likely_noise(line: str, settings: DetectionSettings = DEFAULT_SETTINGS) -> bool:
    """Cheap line-level filter applied before any secret rule is evaluated.

    Lockfile integrity fields, bare hash or base64 lines, minified blobs and
    lines mentioning test fixtures are skipped. These are heuristics and can
    both over- and under-suppress.
    """

    if any(marker in line for marker in settings.lockfile_markers):
        return True

    stripped = line.strip()
    if len(stripped) >= settings.hash_min_length and (
        _HEX_LINE.match(stripped) or _BASE64_LINE.match(stripped)
    ):
        return True

    if len(line) > settings.minified_line_length and len(line.split()) < settings.minified_max_tokens:
        return True

    lowered = line.lower()
    return any(keyword in lowered for keyword in settings.noise_keywords)


def mask_secret(value: str) -> str:
    """Mask the middle of a secret, keeping three characters at each end."""

    if len(value) <= 8:
        return "*" * len(value)
    return value[:3] + "*" * (len(value) - 6) + value[-3:]


def secret_confidence(
    value: str,
    rule: Rule,
    line: str,
    settings: DetectionSettings = DEFAULT_SETTINGS,
) -> float:
    confidence = rule.base_confidence

    if rule.requires_entropy:
        confidence += min(entropy(value) / ENTROPY_BONUS_DIVISOR, ENTROPY_BONUS_CAP)

    if len(value) >= (rule.optimal_length or DEFAULT_OPTIMAL_LENGTH):
        confidence += LENGTH_BONUS

    lowered = line.lower()
    if any(word in lowered for word in settings.confidence_keywords):
        confidence += CONTEXT_BONUS

    return min(confidence, MAX_CONFIDENCE)


def vulnerability_confidence(rule: Rule) -> float:
    confidence = rule.base_confidence
    if rule.high_specificity:
        confidence += SPECIFICITY_BONUS
    if rule.validates_context:
        confidence += CONTEXT_VALIDATION_BONUS
    return min(confidence, MAX_CONFIDENCE)
