"""Integration tests for the ``scan-engine scan`` command."""

from __future__ import annotations

import io
import json
from contextlib import redirect_stdout
from pathlib import Path
from typing import Any

import pytest

from scan_engine.cli import app

FIXTURES_ROOT = Path(__file__).resolve().parent / "fixtures"
FINDINGS_FILENAME = "expected-findings.json"


def _discover_fixtures() -> dict[str, tuple[Path, dict[str, Any]]]:
    fixtures: dict[str, tuple[Path, dict[str, Any]]] = {}
    for fixture_dir in sorted(FIXTURES_ROOT.iterdir()):
        if not fixture_dir.is_dir():
            continue
        (source,) = sorted(fixture_dir.glob("source.*"))
        expected = json.loads((fixture_dir / FINDINGS_FILENAME).read_text(encoding="utf-8"))
        fixtures[fixture_dir.name] = (source, expected)
    return fixtures


FIXTURES = _discover_fixtures()


def _run_cli(args: list[str]) -> tuple[int, str]:
    buffer = io.StringIO()
    with redirect_stdout(buffer):
        exit_code = app.main(args)
    return exit_code, buffer.getvalue()


@pytest.mark.parametrize("fixture_name", sorted(FIXTURES))
def test_scan_matches_expected_findings(fixture_name: str) -> None:
    source, expected = FIXTURES[fixture_name]

    exit_code, output = _run_cli(["scan", str(source), "--format", "json"])
    payload = json.loads(output)

    observed = sorted(
        (finding["rule_id"], finding["line"], finding["severity"], group)
        for group, findings in payload["findings"].items()
        for finding in findings
    )
    wanted = sorted(
        (finding["rule_id"], finding["line"], finding["severity"], finding["group"])
        for finding in expected["findings"]
    )

    assert observed == wanted
    assert payload["score"]["score"] == expected["score"]
    assert payload["score"]["grade"] == expected["grade"]
    assert payload["risk_level"] == expected["risk_level"]
    assert exit_code == (1 if expected["findings"] else 0)


def test_secret_values_never_reach_the_output() -> None:
    source, _ = FIXTURES["vulnerable_app"]

    _, json_output = _run_cli(["scan", str(source), "--format", "json"])
    _, table_output = _run_cli(["scan", str(source), "--format", "table"])

    for output in (json_output, table_output):
        assert "4eC39HqLyjWDarjtT1zdp7dc9sXk" not in output
