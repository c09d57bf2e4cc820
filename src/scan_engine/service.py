"""Orchestration layer used by the CLI and library callers to run a scan."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence

from .adapters import ADAPTERS, PartialSourceError, get_adapter
from .detection import detect_secrets, detect_vulnerabilities
from .detection.secrets import SOURCE_NAME
from .models import InputError, RawFinding, Report, RuleTable, ScanSession, SourceMetrics
from .normalization import FindingNormalizer
from .reporting import ReportBuilder
from .rules import default_rule_table

log = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanResult:
    """Result returned by :class:`ScanService` runs."""

    session: ScanSession
    report: Report

    def to_dict(self) -> Dict[str, Any]:
        payload = self.report.to_dict()
        payload["detectors"] = [dict(entry) for entry in self.session.metadata.get("detectors", ())]
        return payload


ExternalFindings = Mapping[str, Any]


class ScanService:
    """Run the built-in detectors, merge external findings and build the report."""

    def __init__(
        self,
        *,
        rule_table: RuleTable | None = None,
        normalizer: FindingNormalizer | None = None,
        report_builder: ReportBuilder | None = None,
    ) -> None:
        self._rule_table = rule_table
        self._normalizer = normalizer
        self._report_builder = report_builder or ReportBuilder()

    @property
    def rule_table(self) -> RuleTable:
        if self._rule_table is None:
            self._rule_table = default_rule_table()
        return self._rule_table

    # ------------------------------------------------------------------
    def scan(
        self,
        text: str,
        language: str = "javascript",
        *,
        external_findings: ExternalFindings | None = None,
    ) -> ScanResult:
        """Scan ``text`` and return the frozen session with its report."""

        if not isinstance(text, str):
            raise InputError(f"Scan input must be text, got {type(text).__name__}")

        table = self.rule_table
        resolved = table.resolve_language(language or "")
        session = ScanSession(language=resolved, source_metrics=SourceMetrics.from_text(text))

        raw: List[RawFinding | Mapping[str, Any]] = []

        secrets = detect_secrets(text, table)
        session.record_detector(f"{SOURCE_NAME}:secrets", "completed", findings=len(secrets))
        raw.extend(secrets)

        if table.rules_for(resolved):
            vulnerabilities = detect_vulnerabilities(text, resolved, table)
            session.record_detector(
                f"{SOURCE_NAME}:vulnerabilities", "completed", findings=len(vulnerabilities)
            )
            raw.extend(vulnerabilities)
        else:
            log.info("No vulnerability rules for language %r; skipping pattern checks", resolved)
            session.record_detector(
                f"{SOURCE_NAME}:vulnerabilities", "skipped", reason=f"unsupported language {resolved!r}"
            )

        for source, output in (external_findings or {}).items():
            raw.extend(self._external(session, source, output))

        normalizer = self._normalizer or FindingNormalizer(table.settings)
        session.set_findings(normalizer.normalize(raw))

        report = self._report_builder.build(session)
        log.debug(
            "Scan %s finished: %d raw findings, %d canonical",
            session.scan_id,
            len(raw),
            session.total_findings,
        )
        return ScanResult(session=session, report=report)

    # ------------------------------------------------------------------
    def _external(
        self, session: ScanSession, source: str, output: Any
    ) -> List[RawFinding | Mapping[str, Any]]:
        if output is None:
            log.warning("External detector %s produced no output; skipping", source)
            session.record_detector(source, "skipped", reason="no output")
            return []

        findings: List[RawFinding | Mapping[str, Any]]
        if _is_raw_findings(output):
            findings = list(output)
        elif source.strip().lower() not in ADAPTERS:
            try:
                findings = _producer_findings(source, output)
            except PartialSourceError as exc:
                log.warning("Skipping external detector %s: %s", source, exc)
                session.record_detector(source, "skipped", reason=str(exc))
                return []
        else:
            try:
                findings = list(get_adapter(source).parse(output))
            except PartialSourceError as exc:
                log.warning("Skipping external detector %s: %s", source, exc)
                session.record_detector(source, "skipped", reason=str(exc))
                return []
            except Exception as exc:  # noqa: BLE001 - a broken source must not abort the scan
                log.exception("Adapter for external detector %s failed", source)
                session.record_detector(source, "skipped", reason=f"adapter error: {exc}")
                return []

        if not findings:
            session.record_detector(source, "empty")
            return []

        session.record_detector(source, "completed", findings=len(findings))
        return findings


def _is_raw_findings(output: Any) -> bool:
    return isinstance(output, Sequence) and not isinstance(output, (str, bytes, bytearray)) and all(
        isinstance(item, RawFinding) for item in output
    )


def _producer_findings(source: str, output: Any) -> List[RawFinding | Mapping[str, Any]]:
    """Accept raw-finding JSON from a detector that has no registered adapter.

    Entries are validated by the normalizer, which drops malformed ones.
    """

    if isinstance(output, (bytes, bytearray)):
        output = output.decode("utf-8", errors="replace")
    if isinstance(output, str):
        if not output.strip():
            raise PartialSourceError(f"{source} produced no output")
        try:
            output = json.loads(output)
        except json.JSONDecodeError as exc:
            raise PartialSourceError(f"Failed to parse {source} output") from exc

    if not isinstance(output, (list, tuple)) or not all(
        isinstance(item, (RawFinding, Mapping)) for item in output
    ):
        raise PartialSourceError(
            f"No adapter registered for detector {source!r} and its output is not a raw finding list"
        )
    return list(output)


__all__ = ["ScanResult", "ScanService", "PartialSourceError", "InputError"]
