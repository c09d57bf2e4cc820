"""Conversion of heterogeneous detector output into canonical, deduplicated findings."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..detection.validators import mask_secret
from ..models import (
    CanonicalFinding,
    DetectionSettings,
    FindingKind,
    FindingSeverity,
    InputError,
    RawFinding,
)

log = logging.getLogger(__name__)

_S = FindingSeverity

GENERIC_SEVERITY: Mapping[str, FindingSeverity] = {
    "critical": _S.CRITICAL,
    "fatal": _S.CRITICAL,
    "severe": _S.CRITICAL,
    "blocker": _S.CRITICAL,
    "high": _S.HIGH,
    "error": _S.HIGH,
    "major": _S.HIGH,
    "important": _S.HIGH,
    "medium": _S.MEDIUM,
    "moderate": _S.MEDIUM,
    "warning": _S.MEDIUM,
    "advisory": _S.MEDIUM,
    "low": _S.LOW,
    "minor": _S.LOW,
    "note": _S.LOW,
    "info": _S.INFO,
    "information": _S.INFO,
    "informational": _S.INFO,
    "none": _S.INFO,
}

SEVERITY_TABLES: Mapping[str, Mapping[Any, FindingSeverity]] = {
    "eslint": {2: _S.HIGH, 1: _S.MEDIUM, 0: _S.INFO},
    "semgrep": {"ERROR": _S.HIGH, "WARNING": _S.MEDIUM, "INFO": _S.LOW},
    "trufflehog": {"verified": _S.HIGH, "unverified": _S.MEDIUM},
}

CATEGORIES = (
    "secrets",
    "sql-injection",
    "command-injection",
    "code-injection",
    "xss",
    "path-traversal",
    "deserialization",
    "crypto",
    "auth",
    "security",
    "code-quality",
)

_CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("sql-injection", ("sql",)),
    (
        "command-injection",
        ("command-injection", "command_injection", "child-process", "child_process",
         "os-command", "subprocess", "shell"),
    ),
    ("xss", ("xss", "innerhtml", "cross-site", "script-url")),
    ("code-injection", ("code-injection", "eval", "new-func", "function-constructor", "exec")),
    ("path-traversal", ("path-traversal", "traversal", "non-literal-fs")),
    ("deserialization", ("deserial", "pickle", "unsafe-load", "yaml-load")),
    ("crypto", ("crypto", "md5", "sha1", "weak-hash", "random", "cipher", "tls", "ssl")),
    ("auth", ("auth", "jwt", "session", "csrf")),
)


def map_severity(source: str, value: Any) -> FindingSeverity:
    """Translate a tool-native severity into the engine's vocabulary."""

    if isinstance(value, FindingSeverity):
        return value

    table = SEVERITY_TABLES.get(source.strip().lower())
    if table is not None and not isinstance(value, bool):
        candidates: List[Any] = [value]
        if isinstance(value, str):
            stripped = value.strip()
            candidates.extend([stripped, stripped.upper(), stripped.lower()])
            if stripped.isdigit():
                candidates.append(int(stripped))
        for candidate in candidates:
            if candidate in table:
                return table[candidate]

    if isinstance(value, str):
        mapped = GENERIC_SEVERITY.get(value.strip().lower())
        if mapped is not None:
            return mapped

    log.warning("Unmapped severity %r from %s; treating as info", value, source)
    return FindingSeverity.INFO


def canonical_category(kind: FindingKind, category: str, rule_id: str, message: str = "") -> str:
    """Place a finding in the engine's category taxonomy."""

    if kind is FindingKind.SECRET:
        return "secrets"
    if kind is FindingKind.QUALITY:
        return "code-quality"

    normalized = (category or "").strip().lower()
    if normalized in CATEGORIES and normalized not in ("security", "code-quality", "secrets"):
        return normalized

    for haystack in (f"{normalized} {rule_id.lower()}", message.lower()):
        for name, keywords in _CATEGORY_KEYWORDS:
            if any(keyword in haystack for keyword in keywords):
                return name
    return "security"


def dedup_key(kind: FindingKind, category: str, line: int) -> str:
    """Source-agnostic identity of an underlying issue."""

    return hashlib.sha1(f"{kind.value}|{category}|{line}".encode("utf-8")).hexdigest()[:16]


@dataclass(slots=True)
class _Prepared:
    raw: RawFinding
    source: str
    kind: FindingKind
    category: str
    severity: FindingSeverity
    line: int
    column: int
    confidence: float


class FindingNormalizer:
    """Normalize raw findings from every detector into :class:`CanonicalFinding` values."""

    def __init__(self, settings: DetectionSettings | None = None) -> None:
        self.settings = settings or DetectionSettings()

    def normalize(self, raw_findings: Iterable[RawFinding | Mapping[str, Any]]) -> List[CanonicalFinding]:
        """Return deduplicated canonical findings sorted by severity then confidence."""

        prepared: List[_Prepared] = []
        for raw in raw_findings:
            try:
                prepared.append(self._prepare(raw))
            except InputError as exc:
                log.warning("Dropping malformed raw finding: %s", exc)

        groups: Dict[Tuple[FindingKind, str], List[_Prepared]] = {}
        for item in prepared:
            groups.setdefault((item.kind, item.category), []).append(item)

        canonical: List[CanonicalFinding] = []
        for (kind, category), items in groups.items():
            for cluster in self._cluster(items):
                canonical.append(self._collapse(kind, category, cluster))

        canonical.sort(
            key=lambda finding: (
                -finding.severity.rank,
                -finding.confidence,
                finding.line,
                finding.kind.value,
                finding.category,
            )
        )
        log.debug("Normalized %d raw findings into %d canonical findings", len(prepared), len(canonical))
        return canonical

    # ------------------------------------------------------------------
    def _prepare(self, raw: RawFinding | Mapping[str, Any]) -> _Prepared:
        if isinstance(raw, Mapping):
            raw = raw_finding_from_mapping(raw)
        if not isinstance(raw, RawFinding):
            raise InputError(f"Unsupported finding type: {type(raw).__name__}")

        source = str(raw.source or "").strip()
        if not source:
            raise InputError(f"Finding {raw.rule_id!r} has no source")

        try:
            kind = FindingKind(raw.kind)
        except ValueError as exc:
            raise InputError(f"Finding {raw.rule_id!r} has unknown kind {raw.kind!r}") from exc

        return _Prepared(
            raw=raw,
            source=source,
            kind=kind,
            category=canonical_category(kind, raw.category, raw.rule_id or "", raw.message or ""),
            severity=map_severity(source, raw.severity),
            line=_position(raw.line, "line", raw.rule_id),
            column=_position(raw.column, "column", raw.rule_id),
            confidence=_confidence(raw.confidence, raw.rule_id),
        )

    def _cluster(self, items: Sequence[_Prepared]) -> List[List[_Prepared]]:
        """Group findings whose lines fall within the tolerance of the group's first line."""

        ordered = sorted(
            items,
            key=lambda item: (item.line, item.column, item.source, item.raw.rule_id),
        )
        clusters: List[List[_Prepared]] = []
        anchor: Optional[int] = None
        for item in ordered:
            if anchor is None or item.line - anchor > self.settings.line_tolerance:
                clusters.append([])
                anchor = item.line
            clusters[-1].append(item)
        return clusters

    def _collapse(self, kind: FindingKind, category: str, cluster: List[_Prepared]) -> CanonicalFinding:
        anchor = cluster[0].line
        primary = max(cluster, key=lambda item: (item.severity.rank, item.confidence))
        members = [primary] + [item for item in cluster if item is not primary]

        sources = tuple(sorted({item.source for item in cluster}))
        confidence = max(item.confidence for item in cluster)
        confidence = min(1.0, confidence + self.settings.corroboration_boost * (len(sources) - 1))

        masked_value = None
        if kind is FindingKind.SECRET:
            value = _first_present(item.raw.matched_text for item in members)
            masked_value = mask_secret(value) if value else None

        return CanonicalFinding(
            dedup_key=dedup_key(kind, category, anchor),
            kind=kind,
            category=category,
            severity=primary.severity,
            confidence=confidence,
            sources=sources,
            rule_id=primary.raw.rule_id,
            rule_ids=tuple(sorted({item.raw.rule_id for item in cluster})),
            message=primary.raw.message,
            line=anchor,
            column=primary.column,
            masked_value=masked_value,
            context=tuple(primary.raw.context),
            recommendation=_first_present(item.raw.metadata.get("recommendation") for item in members),
            cwe=_first_present(item.raw.metadata.get("cwe") for item in members),
            owasp=_first_present(item.raw.metadata.get("owasp") for item in members),
        )


def normalize(
    raw_findings: Iterable[RawFinding | Mapping[str, Any]],
    settings: DetectionSettings | None = None,
) -> List[CanonicalFinding]:
    return FindingNormalizer(settings).normalize(raw_findings)


_MAPPING_ALIASES = {
    "ruleId": "rule_id",
    "matchedText": "matched_text",
}


def raw_finding_from_mapping(data: Mapping[str, Any]) -> RawFinding:
    """Build a :class:`RawFinding` from a JSON-style mapping."""

    values: Dict[str, Any] = {}
    for key, value in data.items():
        values[_MAPPING_ALIASES.get(key, key)] = value

    for required in ("source", "kind", "rule_id", "severity", "message"):
        if required not in values:
            raise InputError(f"Raw finding is missing {required!r}")

    metadata = values.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise InputError(f"Raw finding metadata must be an object, got {type(metadata).__name__}")
    metadata = dict(metadata)
    for extra in ("recommendation", "cwe", "owasp"):
        if values.get(extra) is not None:
            metadata.setdefault(extra, values[extra])

    return RawFinding(
        source=str(values["source"]),
        kind=values["kind"],
        rule_id=str(values["rule_id"]),
        severity=values["severity"],
        message=str(values["message"]),
        line=values.get("line", 1),
        column=values.get("column", 1),
        matched_text=str(values.get("matched_text") or ""),
        confidence=values.get("confidence", 0.5),
        context=tuple(values.get("context") or ()),
        category=str(values.get("category") or ""),
        metadata=metadata,
    )


def _position(value: Any, name: str, rule_id: str) -> int:
    if isinstance(value, bool):
        raise InputError(f"Finding {rule_id!r} has an invalid {name}: {value!r}")
    try:
        position = int(value)
    except (TypeError, ValueError) as exc:
        raise InputError(f"Finding {rule_id!r} has an invalid {name}: {value!r}") from exc
    return max(position, 1)


def _confidence(value: Any, rule_id: str) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError) as exc:
        raise InputError(f"Finding {rule_id!r} has an invalid confidence: {value!r}") from exc
    if confidence != confidence:
        raise InputError(f"Finding {rule_id!r} has an invalid confidence: {value!r}")
    if 1.0 < confidence <= 100.0:
        # Percentages, as reported by some secret scanners.
        confidence /= 100.0
    return min(max(confidence, 0.0), 1.0)


def _first_present(values: Iterable[Any]) -> Optional[str]:
    for value in values:
        if value:
            return str(value)
    return None
