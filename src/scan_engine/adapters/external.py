"""Adapters that turn external scanner output into :class:`RawFinding` lists.

The engine never runs these tools. Callers run them (subprocess, container,
hosted API) and hand the parsed JSON to the matching adapter.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Mapping, Sequence

from ..detection.validators import mask_secret
from ..models import FindingKind, RawFinding

log = logging.getLogger(__name__)


class PartialSourceError(RuntimeError):
    """Raised when a detector produced no usable output."""


class ExternalFindingAdapter(ABC):
    """Abstract base class describing the external detector contract."""

    source_name: str = ""

    @abstractmethod
    def parse(self, output: Any) -> List[RawFinding]:
        """Convert the tool's output into raw findings."""

    # ------------------------------------------------------------------
    def _load(self, output: Any) -> Any:
        if output is None:
            raise PartialSourceError(f"{self.source_name} produced no output")
        if isinstance(output, (bytes, bytearray)):
            output = output.decode("utf-8")
        if isinstance(output, str):
            if not output.strip():
                raise PartialSourceError(f"{self.source_name} produced no output")
            try:
                return json.loads(output)
            except json.JSONDecodeError as exc:
                raise PartialSourceError(f"Failed to parse {self.source_name} output") from exc
        return output


class ESLintAdapter(ExternalFindingAdapter):
    """Parse ``eslint --format json`` output."""

    source_name = "eslint"

    _SECURITY_PREFIXES = (
        "security/",
        "no-eval",
        "no-implied-eval",
        "no-new-func",
        "no-script-url",
    )

    _CATEGORIES = {
        "security/detect-eval-with-expression": "code-injection",
        "security/detect-child-process": "command-injection",
        "security/detect-non-literal-fs-filename": "path-traversal",
        "security/detect-non-literal-require": "code-injection",
        "security/detect-object-injection": "security",
        "security/detect-unsafe-regex": "security",
        "security/detect-pseudoRandomBytes": "crypto",
        "no-eval": "code-injection",
        "no-implied-eval": "code-injection",
        "no-new-func": "code-injection",
        "no-script-url": "xss",
    }

    _RECOMMENDATIONS = {
        "security/detect-object-injection": "Validate object keys to prevent prototype pollution",
        "security/detect-unsafe-regex": "Review regex patterns for ReDoS vulnerabilities",
        "security/detect-eval-with-expression": "Replace eval() with safer alternatives like JSON.parse()",
        "security/detect-child-process": "Validate and sanitize all inputs to child processes",
        "security/detect-non-literal-fs-filename": "Use path.resolve() and validate file paths",
        "no-eval": "Replace eval() with JSON.parse() or Function constructor alternatives",
        "no-implied-eval": "Avoid setTimeout/setInterval with string arguments",
        "no-new-func": "Use regular functions instead of Function constructor",
    }

    def parse(self, output: Any) -> List[RawFinding]:
        data = self._load(output)

        if isinstance(data, Mapping):
            files: Iterable[Any] = [data]
        elif isinstance(data, list):
            files = data
        else:
            raise PartialSourceError("ESLint output must be a list of file results")

        findings: List[RawFinding] = []
        for file_result in files:
            if not isinstance(file_result, Mapping):
                continue
            messages = file_result.get("messages") or []
            if not isinstance(messages, list):
                log.debug("Skipping ESLint file result without a message list")
                continue
            for message in messages:
                if not isinstance(message, Mapping):
                    continue
                rule_id = str(message.get("ruleId") or "").strip()
                if not rule_id:
                    # Parse errors carry no rule id.
                    continue

                security = rule_id.startswith(self._SECURITY_PREFIXES)
                if security:
                    recommendation = self._RECOMMENDATIONS.get(
                        rule_id, "Follow security best practices for this rule"
                    )
                else:
                    recommendation = "Improve code quality according to best practices"

                findings.append(
                    RawFinding(
                        source=self.source_name,
                        kind=FindingKind.VULNERABILITY if security else FindingKind.QUALITY,
                        rule_id=rule_id,
                        severity=message.get("severity", 0),
                        message=str(message.get("message") or rule_id),
                        line=message.get("line") or 1,
                        column=message.get("column") or 1,
                        confidence=0.8 if security else 0.6,
                        category=self._CATEGORIES.get(rule_id, "" if security else "code-quality"),
                        metadata={
                            "recommendation": recommendation,
                            "file": file_result.get("filePath"),
                        },
                    )
                )
        return findings


class SemgrepAdapter(ExternalFindingAdapter):
    """Parse ``semgrep --json`` output."""

    source_name = "semgrep"

    _SECURITY_MARKERS = (
        "security",
        "vulnerability",
        "injection",
        "xss",
        "csrf",
        "auth",
        "crypto",
        "insecure",
    )
    _SECRET_MARKERS = ("secret", "key", "token", "password", "credential")
    _CONFIDENCE = {"HIGH": 0.9, "MEDIUM": 0.7, "LOW": 0.5}

    def parse(self, output: Any) -> List[RawFinding]:
        data = self._load(output)
        if not isinstance(data, Mapping):
            raise PartialSourceError("Semgrep output must be an object")

        findings: List[RawFinding] = []
        results = data.get("results") or []
        if not isinstance(results, list):
            raise PartialSourceError("Semgrep results must be a list")

        for result in results:
            if not isinstance(result, Mapping):
                continue
            check_id = str(result.get("check_id") or "").strip()
            if not check_id:
                continue

            extra = _mapping(result.get("extra"))
            metadata = _mapping(extra.get("metadata"))
            start = _mapping(result.get("start"))

            lowered = check_id.lower()
            if any(marker in lowered for marker in self._SECURITY_MARKERS):
                kind = FindingKind.VULNERABILITY
            elif any(marker in lowered for marker in self._SECRET_MARKERS):
                kind = FindingKind.SECRET
            else:
                kind = FindingKind.QUALITY

            confidence = self._CONFIDENCE.get(str(metadata.get("confidence", "HIGH")).upper(), 0.7)

            findings.append(
                RawFinding(
                    source=self.source_name,
                    kind=kind,
                    rule_id=check_id,
                    severity=extra.get("severity", "WARNING"),
                    message=str(extra.get("message") or check_id),
                    line=start.get("line") or 1,
                    column=start.get("col") or 1,
                    matched_text=str(extra.get("lines") or ""),
                    confidence=confidence,
                    category=str(metadata.get("category") or ""),
                    metadata={
                        "recommendation": _semgrep_recommendation(lowered, extra),
                        "cwe": _first(metadata.get("cwe")),
                        "owasp": _first(metadata.get("owasp")),
                        "file": result.get("path"),
                    },
                )
            )
        return findings


def _semgrep_recommendation(check_id: str, extra: Mapping[str, Any]) -> str:
    if "injection" in check_id:
        return "Use parameterized queries and input validation to prevent injection attacks"
    if "xss" in check_id:
        return "Sanitize user input and use proper encoding when displaying data"
    if "crypto" in check_id:
        return "Use cryptographically secure algorithms and proper key management"
    if "auth" in check_id:
        return "Implement proper authentication and authorization mechanisms"
    return str(extra.get("message") or "Review and address this security finding")


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _first(value: Any) -> str | None:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return str(value) if value else None


class GitleaksAdapter(ExternalFindingAdapter):
    """Parse ``gitleaks detect --report-format json`` output."""

    source_name = "gitleaks"

    _HIGH_SEVERITY = frozenset(
        {
            "aws-access-token",
            "aws-secret-key",
            "github-pat",
            "gitlab-pat",
            "stripe-access-token",
            "rsa-private-key",
            "ssh-private-key",
        }
    )
    _MEDIUM_SEVERITY = frozenset(
        {
            "github-oauth",
            "slack-access-token",
            "discord-api-token",
            "twilio-api-key",
            "sendgrid-api-token",
            "jwt",
        }
    )
    _HIGH_CONFIDENCE = frozenset(
        {"aws-access-token", "github-pat", "stripe-access-token", "rsa-private-key"}
    )

    def parse(self, output: Any) -> List[RawFinding]:
        data = self._load(output)
        if not isinstance(data, list):
            raise PartialSourceError("Gitleaks output must be a list of findings")

        findings: List[RawFinding] = []
        for entry in data:
            if not isinstance(entry, Mapping):
                continue
            rule_id = str(entry.get("RuleID") or "").strip()
            if not rule_id:
                continue

            secret = str(entry.get("Secret") or entry.get("Match") or "")
            findings.append(
                RawFinding(
                    source=self.source_name,
                    kind=FindingKind.SECRET,
                    rule_id=rule_id,
                    severity=self.severity_for(rule_id),
                    message=str(entry.get("Description") or entry.get("Message") or "Secret detected"),
                    line=entry.get("StartLine") or 1,
                    column=entry.get("StartColumn") or 1,
                    matched_text=mask_secret(secret) if secret else "",
                    confidence=0.95 if rule_id in self._HIGH_CONFIDENCE else 0.8,
                    category="secrets",
                    metadata={
                        "type": _title_from_rule(rule_id),
                        "recommendation": "Rotate the credential and remove it from source control",
                        "file": entry.get("File"),
                        "fingerprint": entry.get("Fingerprint"),
                    },
                )
            )
        return findings

    def severity_for(self, rule_id: str) -> str:
        if rule_id in self._HIGH_SEVERITY:
            return "high"
        if rule_id in self._MEDIUM_SEVERITY:
            return "medium"
        return "low"


def _title_from_rule(rule_id: str) -> str:
    return " ".join(part.capitalize() for part in rule_id.split("-"))


class TruffleHogAdapter(ExternalFindingAdapter):
    """Parse ``trufflehog --json`` output (a JSON list or newline-delimited JSON)."""

    source_name = "trufflehog"

    def parse(self, output: Any) -> List[RawFinding]:
        entries = self._entries(output)

        findings: List[RawFinding] = []
        for entry in entries:
            detector = str(entry.get("DetectorName") or "").strip()
            if not detector:
                continue
            verified = bool(entry.get("Verified"))
            raw = str(entry.get("Raw") or "")

            findings.append(
                RawFinding(
                    source=self.source_name,
                    kind=FindingKind.SECRET,
                    rule_id=f"trufflehog-{detector.lower()}",
                    severity="verified" if verified else "unverified",
                    message=f"{detector} credential detected",
                    line=_trufflehog_line(entry),
                    matched_text=mask_secret(raw) if raw else "",
                    confidence=0.95 if verified else 0.7,
                    category="secrets",
                    metadata={
                        "type": detector,
                        "verified": verified,
                        "recommendation": f"Revoke the {detector} credential and rotate it",
                    },
                )
            )
        return findings

    def _entries(self, output: Any) -> List[Mapping[str, Any]]:
        if output is None:
            raise PartialSourceError("trufflehog produced no output")
        if isinstance(output, (bytes, bytearray)):
            output = output.decode("utf-8")

        if isinstance(output, str):
            stripped = output.strip()
            if not stripped:
                raise PartialSourceError("trufflehog produced no output")
            if stripped.startswith("["):
                output = self._load(stripped)
            else:
                entries = []
                for line in stripped.splitlines():
                    try:
                        entry = json.loads(line)
                    except json.JSONDecodeError:
                        log.debug("Skipping malformed trufflehog line")
                        continue
                    if isinstance(entry, Mapping):
                        entries.append(entry)
                return entries

        if not isinstance(output, list):
            raise PartialSourceError("trufflehog output must be a list of findings")
        return [entry for entry in output if isinstance(entry, Mapping)]


def _trufflehog_line(entry: Mapping[str, Any]) -> int:
    source = entry.get("SourceMetadata")
    data = source.get("Data") if isinstance(source, Mapping) else None
    if not isinstance(data, Mapping):
        return 1
    for location in data.values():
        if isinstance(location, Mapping) and location.get("line"):
            try:
                return int(location["line"])
            except (TypeError, ValueError):
                log.debug("Ignoring non-numeric trufflehog line %r", location["line"])
                return 1
    return 1


ADAPTERS: Mapping[str, type[ExternalFindingAdapter]] = {
    ESLintAdapter.source_name: ESLintAdapter,
    SemgrepAdapter.source_name: SemgrepAdapter,
    GitleaksAdapter.source_name: GitleaksAdapter,
    TruffleHogAdapter.source_name: TruffleHogAdapter,
}


def get_adapter(name: str) -> ExternalFindingAdapter:
    """Return an adapter instance for the named tool."""

    key = name.strip().lower()
    if key not in ADAPTERS:
        raise KeyError(f"No adapter registered for detector {name!r}")
    return ADAPTERS[key]()


def available_adapters() -> Sequence[str]:
    return sorted(ADAPTERS)


__all__ = [
    "ADAPTERS",
    "ESLintAdapter",
    "ExternalFindingAdapter",
    "GitleaksAdapter",
    "PartialSourceError",
    "SemgrepAdapter",
    "TruffleHogAdapter",
    "available_adapters",
    "get_adapter",
]
