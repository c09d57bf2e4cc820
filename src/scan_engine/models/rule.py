"""Immutable detection rule definitions and the rule table that groups them."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from .finding import FindingSeverity


@dataclass(frozen=True, slots=True)
class DetectionSettings:
    """Heuristic thresholds used by the detectors and the normalizer.

    The defaults reproduce the hand-tuned values of the pattern matcher. They
    are heuristics, so every one of them can be overridden from a manifest.
    """

    secret_context_radius: int = 3
    finding_context_radius: int = 2
    exclude_context_radius: int = 2
    require_context_radius: int = 3
    secret_context_keywords: Tuple[str, ...] = (
        "key",
        "secret",
        "token",
        "password",
        "credential",
        "auth",
        "api",
        "bearer",
        "access",
        "jwt",
        "oauth",
        "session",
    )
    confidence_keywords: Tuple[str, ...] = ("api", "key", "token", "secret", "password")
    noise_keywords: Tuple[str, ...] = ("test", "mock", "example", "sample")
    lockfile_markers: Tuple[str, ...] = (
        '"integrity":',
        '"shasum":',
        '"resolved":',
        '"tarball":',
    )
    package_markers: Tuple[str, ...] = (
        "package-lock.json",
        "node_modules",
        "integrity",
        "dependencies",
    )
    hash_min_length: int = 32
    minified_line_length: int = 500
    minified_max_tokens: int = 3
    line_tolerance: int = 1
    corroboration_boost: float = 0.05

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "DetectionSettings":
        """Build settings from a manifest ``settings`` block, ignoring unknown keys."""

        if not data:
            return cls()

        values: dict[str, Any] = {}
        for spec in fields(cls):
            if spec.name not in data:
                continue
            value = data[spec.name]
            default = spec.default
            if isinstance(default, tuple):
                if isinstance(value, str):
                    value = (value,)
                value = tuple(str(item) for item in value or ())
            elif isinstance(default, bool):
                value = bool(value)
            elif isinstance(default, int):
                value = int(value)
            elif isinstance(default, float):
                value = float(value)
            values[spec.name] = value
        return cls(**values)


@dataclass(frozen=True, slots=True)
class Rule:
    """A secret or vulnerability detection rule with pre-compiled patterns."""

    id: str
    name: str
    regex: re.Pattern[str]
    severity: FindingSeverity
    category: str
    message: str = ""
    requires_entropy: bool = False
    min_entropy: float = 3.0
    requires_context: bool = False
    require: Tuple[re.Pattern[str], ...] = ()
    exclude: Tuple[re.Pattern[str], ...] = ()
    base_confidence: float = 0.7
    optimal_length: int = 20
    high_specificity: bool = False
    recommendation: str = ""
    cwe: Optional[str] = None
    owasp: Optional[str] = None

    @property
    def validates_context(self) -> bool:
        return bool(self.require or self.exclude)


@dataclass(frozen=True)
class RuleTable:
    """Read-only collection of every rule the detectors evaluate.

    A table is built once by the loader and shared across scans. Replacing
    rules means building a new table, never mutating this one.
    """

    secret_rules: Tuple[Rule, ...] = ()
    vulnerability_rules: Mapping[str, Tuple[Rule, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    language_aliases: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    settings: DetectionSettings = field(default_factory=DetectionSettings)

    def __post_init__(self) -> None:
        object.__setattr__(self, "secret_rules", tuple(self.secret_rules))
        object.__setattr__(
            self,
            "vulnerability_rules",
            MappingProxyType(
                {lang: tuple(rules) for lang, rules in dict(self.vulnerability_rules).items()}
            ),
        )
        object.__setattr__(
            self, "language_aliases", MappingProxyType(dict(self.language_aliases))
        )

    def resolve_language(self, language: str) -> str:
        normalized = (language or "").strip().lower()
        return self.language_aliases.get(normalized, normalized)

    def rules_for(self, language: str) -> Tuple[Rule, ...]:
        """Return the vulnerability rules for ``language``; unknown languages get none."""

        return self.vulnerability_rules.get(self.resolve_language(language), ())

    @property
    def languages(self) -> Tuple[str, ...]:
        return tuple(sorted(self.vulnerability_rules))
