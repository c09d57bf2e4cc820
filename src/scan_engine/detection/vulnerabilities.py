"""Language specific vulnerability pattern detection."""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from ..models import DetectionSettings, FindingKind, RawFinding, Rule, RuleTable
from .validators import extract_context, vulnerability_confidence

log = logging.getLogger(__name__)

SOURCE_NAME = "pattern-matcher"


def detect_vulnerabilities(
    text: str,
    language: str,
    rules: RuleTable | Iterable[Rule],
    settings: DetectionSettings | None = None,
) -> List[RawFinding]:
    """Return vulnerability findings for ``text`` written in ``language``.

    ``rules`` is either a full rule table, resolved through its language
    aliases, or the rules of a single language. An unknown language has no
    rules and therefore yields no findings.
    """

    if isinstance(rules, RuleTable):
        settings = settings or rules.settings
        language_rules: Tuple[Rule, ...] = rules.rules_for(language)
    else:
        language_rules = tuple(rules)
    settings = settings or DetectionSettings()

    if not language_rules:
        log.debug("No vulnerability rules for language %r", language)
        return []

    lines = text.split("\n")
    findings: List[RawFinding] = []

    for index, line in enumerate(lines):
        for rule in language_rules:
            try:
                findings.extend(_evaluate_rule(rule, lines, index, settings))
            except Exception as exc:  # noqa: BLE001 - one rule must not abort the scan
                log.warning(
                    "Vulnerability rule %s failed on line %d: %s", rule.id, index + 1, exc
                )

    findings.sort(key=lambda finding: -finding.confidence)
    log.debug("Vulnerability detection produced %d findings for %s", len(findings), language)
    return findings


def passes_context_validation(
    rule: Rule,
    lines: List[str],
    index: int,
    settings: DetectionSettings,
) -> bool:
    """Apply a rule's exclusion and requirement patterns around ``index``."""

    if rule.exclude:
        context = "\n".join(extract_context(lines, index, settings.exclude_context_radius))
        if any(pattern.search(context) for pattern in rule.exclude):
            return False

    if rule.require:
        context = "\n".join(extract_context(lines, index, settings.require_context_radius))
        if not all(pattern.search(context) for pattern in rule.require):
            return False

    return True


def _evaluate_rule(
    rule: Rule,
    lines: List[str],
    index: int,
    settings: DetectionSettings,
) -> List[RawFinding]:
    results: List[RawFinding] = []
    for match in rule.regex.finditer(lines[index]):
        if not passes_context_validation(rule, lines, index, settings):
            # Context is the same for every match on this line.
            break

        results.append(
            RawFinding(
                source=SOURCE_NAME,
                kind=FindingKind.VULNERABILITY,
                rule_id=rule.id,
                severity=rule.severity,
                message=rule.message,
                line=index + 1,
                column=match.start() + 1,
                matched_text=match.group(0),
                confidence=vulnerability_confidence(rule),
                context=tuple(extract_context(lines, index, settings.finding_context_radius)),
                category=rule.category,
                metadata={
                    "recommendation": rule.recommendation,
                    "cwe": rule.cwe,
                    "owasp": rule.owasp,
                },
            )
        )
    return results
