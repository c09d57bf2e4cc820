"""Publish a ``scan-engine scan --format json`` report to GitHub Actions.

The job summary gets the score, the severity breakdown and the most severe
findings. Every finding also becomes a workflow command annotation.
"""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import Iterable, List, Mapping, Sequence

SEVERITY_ORDER = ("critical", "high", "medium", "low", "info")
ANNOTATION_LEVELS = {
    "critical": "error",
    "high": "error",
    "medium": "warning",
}
FINDING_GROUPS = ("secrets", "vulnerabilities", "code_quality")
DISPLAY_LIMIT = 10


def _findings(report: Mapping[str, object]) -> List[Mapping[str, object]]:
    """All grouped findings, most severe first."""

    grouped = report.get("findings")
    if not isinstance(grouped, Mapping):
        return []
    findings = [finding for group in FINDING_GROUPS for finding in grouped.get(group) or ()]
    findings.sort(key=lambda finding: _severity_rank(_severity(finding)))
    return findings


def _severity(finding: Mapping[str, object]) -> str:
    return str(finding.get("severity") or "info").lower()


def _severity_rank(severity: str) -> int:
    return SEVERITY_ORDER.index(severity) if severity in SEVERITY_ORDER else len(SEVERITY_ORDER)


def _summary_bullet(finding: Mapping[str, object]) -> str:
    rule_id = str(finding.get("rule_id") or "").strip()
    message = str(finding.get("message") or "").strip()
    sources = ", ".join(str(source) for source in finding.get("sources") or ())

    bullet = f"- **{_severity(finding).title()}**"
    if rule_id:
        bullet += f" `{rule_id}`"
    if message:
        bullet += f": {message}"
    if finding.get("line"):
        bullet += f" (line {finding['line']})"
    if sources:
        bullet += f" _[{sources}]_"
    return bullet


def format_summary(report: Mapping[str, object]) -> str:
    """Render a Markdown job summary for the provided scan report."""

    executive: Mapping[str, object] = report.get("executive") or {}
    score: Mapping[str, object] = report.get("score") or {}
    counts: Mapping[str, object] = report.get("severity_counts") or {}
    findings = _findings(report)
    risk = str(report.get("risk_level") or "minimal")

    lines = [
        "# Security Scan Report",
        "",
        f"**Security score:** {score.get('score', 100)}/100 (grade {score.get('grade', 'A')})",
        f"**Overall risk:** {risk.title()}",
        f"**Status:** {executive.get('status', 'SECURE')}",
        f"**Total findings:** {executive.get('total_issues', len(findings))}",
        "",
        "| Severity | Findings |",
        "| --- | ---: |",
    ]
    lines.extend(f"| {severity.title()} | {counts.get(severity, 0)} |" for severity in SEVERITY_ORDER)

    if executive.get("recommendation"):
        lines += ["", f"> {executive['recommendation']}"]

    if findings:
        lines += ["", "## Findings", ""]
        lines.extend(_summary_bullet(finding) for finding in findings[:DISPLAY_LIMIT])
        if len(findings) > DISPLAY_LIMIT:
            lines.append(f"- ...and {len(findings) - DISPLAY_LIMIT} more findings.")

    lines.append("")
    return "\n".join(lines)


def _escape(text: str) -> str:
    # Workflow command data must not contain raw newlines or percent signs.
    return text.replace("%", "%25").replace("\r", "").replace("\n", "%0A")


def iter_annotations(report: Mapping[str, object], source_file: str | None = None) -> Iterable[str]:
    """Generate one workflow command annotation per finding."""

    for finding in _findings(report):
        severity = _severity(finding)
        rule_id = str(finding.get("rule_id") or "").strip()
        message = str(finding.get("message") or "").strip()
        recommendation = str(finding.get("recommendation") or "").strip()

        attributes = [f"file={source_file}"] if source_file else []
        for key, name in (("line", "line"), ("column", "col")):
            value = finding.get(key)
            if isinstance(value, int) and not isinstance(value, bool):
                attributes.append(f"{name}={value}")
        attributes.append("title=" + " - ".join(part for part in (severity.title(), rule_id) if part))

        body = "; ".join(part for part in (message, recommendation and f"Fix: {recommendation}") if part)
        level = ANNOTATION_LEVELS.get(severity, "notice")
        yield f"::{level} {','.join(attributes)}::{_escape(body or 'Security finding reported without message.')}"


def load_report(path: Path) -> Mapping[str, object]:
    """Read a JSON report written by ``scan-engine scan --format json``."""

    try:
        data = json.loads(path.read_text(encoding="utf-8-sig") or "{}")
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse report JSON from '{path}': {exc.msg}.") from exc
    if not isinstance(data, Mapping):
        raise ValueError("Report JSON must be an object.")
    return data


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Publish scan findings as GitHub job summary and annotations."
    )
    parser.add_argument("report", type=Path, help="Path to the scan report JSON file.")
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Job summary file; defaults to $GITHUB_STEP_SUMMARY.",
    )
    parser.add_argument(
        "--source-file",
        default=None,
        help="Repository path of the scanned file, attached to each annotation.",
    )
    args = parser.parse_args(argv)

    try:
        report = load_report(args.report)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}")
        return 2

    summary_path = args.summary_path or (
        Path(os.environ["GITHUB_STEP_SUMMARY"]) if os.getenv("GITHUB_STEP_SUMMARY") else None
    )
    if summary_path is not None:
        summary_path.parent.mkdir(parents=True, exist_ok=True)
        with summary_path.open("a", encoding="utf-8") as handle:
            handle.write(format_summary(report))

    for command in iter_annotations(report, source_file=args.source_file):
        print(command)
    return 0


def run() -> None:  # pragma: no cover - wrapper for console entry point
    raise SystemExit(main())


if __name__ == "__main__":  # pragma: no cover
    run()
