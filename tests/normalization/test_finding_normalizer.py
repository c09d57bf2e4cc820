from __future__ import annotations

import logging

import pytest

from scan_engine.models import DetectionSettings, FindingKind, FindingSeverity, RawFinding
from scan_engine.normalization import (
    FindingNormalizer,
    canonical_category,
    dedup_key,
    map_severity,
    normalize,
)


def _raw(**overrides: object) -> RawFinding:
    values = {
        "source": "pattern-matcher",
        "kind": FindingKind.VULNERABILITY,
        "rule_id": "js-sql-injection",
        "severity": FindingSeverity.CRITICAL,
        "message": "Potential SQL injection vulnerability",
        "line": 10,
        "confidence": 0.85,
        "category": "sql-injection",
    }
    values.update(overrides)
    return RawFinding(**values)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("source", "value", "expected"),
    [
        ("eslint", 2, FindingSeverity.HIGH),
        ("eslint", "1", FindingSeverity.MEDIUM),
        ("eslint", 0, FindingSeverity.INFO),
        ("semgrep", "ERROR", FindingSeverity.HIGH),
        ("semgrep", "warning", FindingSeverity.MEDIUM),
        ("trufflehog", "verified", FindingSeverity.HIGH),
        ("trufflehog", "unverified", FindingSeverity.MEDIUM),
        ("gitleaks", "low", FindingSeverity.LOW),
        ("custom", "Moderate", FindingSeverity.MEDIUM),
        ("custom", FindingSeverity.CRITICAL, FindingSeverity.CRITICAL),
    ],
)
def test_map_severity(source: str, value: object, expected: FindingSeverity) -> None:
    assert map_severity(source, value) is expected


def test_unmapped_severity_becomes_info_and_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        assert map_severity("custom", "purple") is FindingSeverity.INFO
    assert "purple" in caplog.text


def test_canonical_category() -> None:
    assert canonical_category(FindingKind.SECRET, "aws", "aws-access-key") == "secrets"
    assert canonical_category(FindingKind.QUALITY, "", "no-unused-vars") == "code-quality"
    assert canonical_category(FindingKind.VULNERABILITY, "xss", "") == "xss"
    assert (
        canonical_category(FindingKind.VULNERABILITY, "security", "python.lang.security.audit.formatted-sql-query")
        == "sql-injection"
    )
    assert canonical_category(FindingKind.VULNERABILITY, "", "no-eval") == "code-injection"
    assert canonical_category(FindingKind.VULNERABILITY, "", "unrelated-rule") == "security"


def test_corroborated_findings_collapse_into_one() -> None:
    internal = _raw(metadata={"recommendation": "Use parameterized queries", "cwe": "CWE-89"})
    external = _raw(
        source="semgrep",
        rule_id="javascript.express.security.injection.tainted-sql-string",
        severity="ERROR",
        category="security",
        confidence=0.9,
    )

    findings = FindingNormalizer().normalize([internal, external])

    assert len(findings) == 1
    finding = findings[0]
    assert finding.sources == ("pattern-matcher", "semgrep")
    assert finding.severity is FindingSeverity.CRITICAL
    assert finding.rule_id == "js-sql-injection"
    assert finding.confidence == pytest.approx(0.95)
    assert finding.category == "sql-injection"
    assert finding.recommendation == "Use parameterized queries"
    assert finding.cwe == "CWE-89"
    assert set(finding.rule_ids) == {internal.rule_id, external.rule_id}
    assert finding.dedup_key == dedup_key(FindingKind.VULNERABILITY, "sql-injection", 10)


def test_corroboration_is_capped() -> None:
    raws = [
        _raw(source=source, confidence=0.99)
        for source in ("pattern-matcher", "semgrep", "eslint", "custom")
    ]

    assert normalize(raws)[0].confidence == pytest.approx(1.0)


def test_same_source_does_not_boost_confidence() -> None:
    findings = normalize([_raw(line=10), _raw(line=11, rule_id="js-other")])

    assert len(findings) == 1
    assert findings[0].confidence == pytest.approx(0.85)


def test_line_tolerance_is_anchored_on_first_line() -> None:
    findings = normalize([_raw(line=10), _raw(line=11), _raw(line=12)])

    assert [finding.line for finding in findings] == [10, 12]


def test_line_tolerance_is_configurable() -> None:
    settings = DetectionSettings(line_tolerance=0)

    findings = normalize([_raw(line=10), _raw(line=11)], settings)

    assert len(findings) == 2


def test_distinct_categories_stay_separate() -> None:
    findings = normalize([_raw(), _raw(category="xss", rule_id="js-xss-innerhtml")])

    assert len(findings) == 2
    assert len({finding.dedup_key for finding in findings}) == 2


def test_dedup_keys_are_unique_across_detectors() -> None:
    raws = [
        _raw(line=3),
        _raw(source="semgrep", severity="WARNING", line=4, category="security", rule_id="sqli"),
        _raw(line=30, category="xss", rule_id="js-xss-innerhtml", severity=FindingSeverity.HIGH),
        _raw(
            source="gitleaks",
            kind=FindingKind.SECRET,
            rule_id="stripe-access-token",
            severity="high",
            line=3,
            category="secrets",
            matched_text="sk_live_abcdefghijklmnop",
        ),
        _raw(
            source="eslint",
            kind=FindingKind.QUALITY,
            rule_id="no-unused-vars",
            severity=1,
            line=3,
            category="code-quality",
        ),
    ]

    findings = normalize(raws)

    keys = [finding.dedup_key for finding in findings]
    assert len(keys) == len(set(keys)) == 4


def test_secret_values_are_masked() -> None:
    internal = _raw(
        kind=FindingKind.SECRET,
        rule_id="stripe-secret-key",
        category="secrets",
        matched_text="sk_********************def",
    )
    external = _raw(
        source="gitleaks",
        kind=FindingKind.SECRET,
        rule_id="stripe-access-token",
        severity="high",
        category="secrets",
        matched_text="sk_live_1234567890abcdef",
    )

    findings = normalize([external, internal])

    assert len(findings) == 1
    assert findings[0].masked_value == "sk_********************def"
    assert findings[0].sources == ("gitleaks", "pattern-matcher")


def test_output_sorted_by_severity_then_confidence() -> None:
    findings = normalize(
        [
            _raw(line=1, category="xss", severity=FindingSeverity.MEDIUM, confidence=0.9),
            _raw(line=20, severity=FindingSeverity.CRITICAL, confidence=0.6),
            _raw(line=40, severity=FindingSeverity.CRITICAL, confidence=0.9),
        ]
    )

    assert [(finding.severity, finding.line) for finding in findings] == [
        (FindingSeverity.CRITICAL, 40),
        (FindingSeverity.CRITICAL, 20),
        (FindingSeverity.MEDIUM, 1),
    ]


def test_mapping_inputs_and_malformed_findings(caplog: pytest.LogCaptureFixture) -> None:
    raws = [
        {
            "source": "custom",
            "kind": "vulnerability",
            "ruleId": "custom-sqli",
            "severity": "high",
            "message": "SQL built from input",
            "line": "7",
            "confidence": 85,
            "category": "sql-injection",
            "recommendation": "Bind parameters",
        },
        {"source": "custom", "kind": "vulnerability", "message": "missing rule id"},
        {"source": "custom", "kind": "bogus", "ruleId": "x", "severity": "low", "message": "m"},
        _raw(source="", line=50),
        _raw(line="not-a-number"),
    ]

    with caplog.at_level(logging.WARNING):
        findings = normalize(raws)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.rule_id == "custom-sqli"
    assert finding.line == 7
    assert finding.confidence == pytest.approx(0.85)
    assert finding.recommendation == "Bind parameters"
    assert caplog.text.count("Dropping malformed raw finding") == 4


def test_normalization_is_deterministic() -> None:
    raws = [
        _raw(line=5),
        _raw(source="semgrep", severity="ERROR", line=6, category="security", rule_id="sqli"),
        _raw(line=9, category="xss", rule_id="js-xss-innerhtml"),
    ]

    first = [finding.to_dict() for finding in normalize(raws)]
    second = [finding.to_dict() for finding in normalize(list(reversed(raws)))]

    assert first == second
