"""Command-line interface implementation for the scan engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, Sequence

from ..adapters import available_adapters
from ..models import CanonicalFinding, FindingSeverity, RuleTable
from ..rules import RuleTableError, RuleTableLoader
from ..service import ScanResult, ScanService


def render_table(result: ScanResult) -> str:
    """Render the report as a score header followed by a findings table."""

    report = result.report
    header = (
        f"Security score: {report.score.score}/100 (grade {report.score.grade}), "
        f"risk: {report.risk_level}, findings: {report.executive.total_issues}"
    )
    findings = report.all_findings
    if not findings:
        return f"{header}\nNo findings detected."

    headers = ("Severity", "Rule ID", "Location", "Sources", "Message")
    rows = [headers]
    for finding in _by_severity(findings):
        rows.append(
            (
                finding.severity.value,
                finding.rule_id,
                finding.location,
                ",".join(finding.sources),
                finding.message,
            )
        )

    widths = [max(len(str(row[idx])) for row in rows) for idx in range(len(headers))]

    def format_row(values: tuple[str, ...]) -> str:
        return "  ".join(value.ljust(width) for value, width in zip(values, widths, strict=True))

    lines = [header, "", format_row(headers)]
    lines.append("  ".join("=" * width for width in widths))
    for row in rows[1:]:
        lines.append(format_row(row))
    return "\n".join(lines)


def render_rules(table: RuleTable) -> str:
    lines = [f"Secret rules: {len(table.secret_rules)}"]
    for rule in table.secret_rules:
        lines.append(f"  {rule.id}  [{rule.severity.value}]  {rule.name}")
    for language in table.languages:
        rules = table.rules_for(language)
        lines.append(f"Vulnerability rules ({language}): {len(rules)}")
        for rule in rules:
            lines.append(f"  {rule.id}  [{rule.severity.value}]  {rule.category}")
    lines.append(f"External adapters: {', '.join(available_adapters())}")
    return "\n".join(lines)


def _by_severity(findings: Sequence[CanonicalFinding]) -> list[CanonicalFinding]:
    return sorted(findings, key=lambda finding: (-finding.severity.rank, finding.line))


def build_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser."""

    parser = argparse.ArgumentParser(
        prog="scan-engine", description="Static secret and vulnerability scanner"
    )
    subparsers = parser.add_subparsers(dest="command")

    scan_parser = subparsers.add_parser(
        "scan", help="Scan a source file and report security findings."
    )
    scan_parser.add_argument(
        "path",
        help="Path to the source file to scan, or '-' to read from standard input.",
    )
    scan_parser.add_argument(
        "--language",
        default=None,
        help="Source language. Defaults to the file extension, or javascript for stdin.",
    )
    scan_parser.add_argument(
        "--external",
        dest="external",
        action="append",
        default=None,
        metavar="TOOL=REPORT",
        help=(
            "JSON report produced by an external scanner "
            f"({', '.join(available_adapters())}), or a JSON list of raw findings "
            "from any other detector, to merge into the results."
        ),
    )
    scan_parser.add_argument(
        "--rule-manifest",
        dest="rule_manifests",
        action="append",
        default=None,
        type=str,
        help="Additional rule manifest YAML file merged over the packaged rules.",
    )
    scan_parser.add_argument(
        "--fail-on",
        choices=[severity.value for severity in FindingSeverity],
        default=FindingSeverity.HIGH.value,
        help="Fail the run when findings at or above the provided severity are present.",
    )
    scan_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format for scan results.",
    )
    scan_parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")

    rules_parser = subparsers.add_parser("rules", help="List the loaded detection rules.")
    rules_parser.add_argument(
        "--rule-manifest",
        dest="rule_manifests",
        action="append",
        default=None,
        type=str,
        help="Additional rule manifest YAML file merged over the packaged rules.",
    )
    rules_parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")

    return parser


def create_service(manifests: Sequence[str] | None = None) -> ScanService:
    """Create a scan service, compiling a dedicated rule table when overrides are given."""

    if not manifests:
        return ScanService()
    return ScanService(rule_table=RuleTableLoader().load(list(manifests)))


def _parse_external(values: Sequence[str] | None) -> Dict[str, str]:
    if not values:
        return {}

    reports: Dict[str, str] = {}
    for value in values:
        if "=" not in value:
            raise ValueError(f"External reports must be in TOOL=REPORT form: {value}")
        tool, raw_path = value.split("=", 1)
        path = Path(raw_path)
        try:
            reports[tool.strip().lower()] = path.read_text(encoding="utf-8-sig")
        except OSError as exc:
            raise ValueError(f"Failed to read external report '{path}': {exc}") from exc
    return reports


def _read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise ValueError(f"Failed to read source file '{path}': {exc}") from exc


def _guess_language(path: str, explicit: str | None) -> str:
    if explicit:
        return explicit
    suffix = Path(path).suffix.lstrip(".") if path != "-" else ""
    return suffix or "javascript"


def _format_report(
    result: ScanResult,
    *,
    fail_on: FindingSeverity,
    output_format: str,
) -> tuple[str, bool]:
    if output_format not in {"table", "json"}:
        raise ValueError("format must be either 'table' or 'json'")

    findings = result.report.all_findings
    should_fail = any(finding.severity.rank >= fail_on.rank for finding in findings)

    if output_format == "json":
        output = json.dumps(result.to_dict(), indent=2)
    else:
        output = render_table(result)

    return output, should_fail


def _handle_scan(args: argparse.Namespace) -> int:
    try:
        external = _parse_external(args.external)
        text = _read_source(args.path)
        service = create_service(args.rule_manifests)
        result = service.scan(
            text,
            _guess_language(args.path, args.language),
            external_findings=external,
        )
    except (ValueError, RuleTableError) as exc:
        print(f"Error: {exc}")
        return 2

    output, should_fail = _format_report(
        result,
        fail_on=FindingSeverity(args.fail_on),
        output_format=args.format,
    )

    print(output)
    return 1 if should_fail else 0


def _handle_rules(args: argparse.Namespace) -> int:
    try:
        table = RuleTableLoader().load(list(args.rule_manifests or []))
    except RuleTableError as exc:
        print(f"Error: {exc}")
        return 2

    print(render_rules(table))
    return 0


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by tests and the ``python -m`` invocation."""

    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(getattr(args, "verbose", False))

    if args.command == "scan":
        return _handle_scan(args)
    if args.command == "rules":
        return _handle_rules(args)

    parser.print_help()
    return 0


def run() -> None:  # pragma: no cover - thin wrapper for module execution
    """Execute the CLI and exit with the produced status code."""

    raise SystemExit(main())


if __name__ == "__main__":  # pragma: no cover - module execution guard
    run()
