"""Secret detection driven by the secret rules of a :class:`RuleTable`."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Set, Tuple

from ..models import DetectionSettings, FindingKind, RawFinding, Rule, RuleTable
from .validators import (
    entropy,
    extract_context,
    has_package_metadata,
    has_secret_context,
    is_likely_noise,
    mask_secret,
    secret_confidence,
)

log = logging.getLogger(__name__)

SOURCE_NAME = "pattern-matcher"


def detect_secrets(
    text: str,
    rules: RuleTable | Iterable[Rule],
    settings: DetectionSettings | None = None,
) -> List[RawFinding]:
    """Scan ``text`` line by line and return candidate secret findings.

    Overlapping rules on the same value are all reported; cross-rule merging
    happens during normalization.
    """

    if isinstance(rules, RuleTable):
        settings = settings or rules.settings
        secret_rules: Tuple[Rule, ...] = rules.secret_rules
    else:
        secret_rules = tuple(rules)
    settings = settings or DetectionSettings()

    lines = text.split("\n")
    best: Dict[Tuple[str, int, int], RawFinding] = {}
    values: Set[str] = set()

    for index, line in enumerate(lines):
        if is_likely_noise(line, settings):
            continue

        for rule in secret_rules:
            try:
                candidates = _evaluate_rule(rule, lines, index, settings)
            except Exception as exc:  # noqa: BLE001 - one rule must not abort the scan
                log.warning("Secret rule %s failed on line %d: %s", rule.id, index + 1, exc)
                continue

            for finding, value in candidates:
                values.add(value)
                key = (finding.rule_id, finding.line, finding.column)
                current = best.get(key)
                if current is None or finding.confidence > current.confidence:
                    best[key] = finding

    for finding in best.values():
        finding.context = _redact(finding.context, values)

    findings = sorted(best.values(), key=lambda finding: -finding.confidence)
    log.debug("Secret detection produced %d findings", len(findings))
    return findings


def _evaluate_rule(
    rule: Rule,
    lines: List[str],
    index: int,
    settings: DetectionSettings,
) -> List[Tuple[RawFinding, str]]:
    line = lines[index]
    results: List[Tuple[RawFinding, str]] = []

    for match in rule.regex.finditer(line):
        value = match.group(0)
        if not value:
            continue

        if rule.requires_entropy and entropy(value) < rule.min_entropy:
            continue

        window = extract_context(lines, index, settings.secret_context_radius)
        if rule.requires_context and not has_secret_context(window, settings):
            continue
        if has_package_metadata(window, settings):
            continue

        window_text = "\n".join(window)
        if any(pattern.search(window_text) for pattern in rule.exclude):
            continue
        if not all(pattern.search(window_text) for pattern in rule.require):
            continue

        finding = RawFinding(
            source=SOURCE_NAME,
            kind=FindingKind.SECRET,
            rule_id=rule.id,
            severity=rule.severity,
            message=f"{rule.name} detected",
            line=index + 1,
            column=match.start() + 1,
            matched_text=mask_secret(value),
            confidence=secret_confidence(value, rule, line, settings),
            context=tuple(extract_context(lines, index, settings.finding_context_radius)),
            category=rule.category,
            metadata={
                "type": rule.name,
                "recommendation": rule.recommendation
                or "Remove secret and use environment variables",
            },
        )
        results.append((finding, value))

    return results


def _redact(context: Iterable[str], values: Set[str]) -> Tuple[str, ...]:
    """Mask every detected secret value in the context lines of a finding."""

    ordered = sorted(values, key=len, reverse=True)
    redacted = []
    for line in context:
        for value in ordered:
            if value in line:
                line = line.replace(value, mask_secret(value))
        redacted.append(line)
    return tuple(redacted)
