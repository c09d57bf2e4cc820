"""Utilities for loading, merging and compiling rule manifest files."""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Sequence, Tuple

import yaml

from ..models import DetectionSettings, FindingSeverity, Rule, RuleTable

log = logging.getLogger(__name__)


class RuleTableError(RuntimeError):
    """Raised when rule manifests cannot be loaded or parsed."""


class RuleCompilationError(RuleTableError):
    """Raised when a rule's pattern or flags cannot be compiled."""


_MANIFEST_DIR = Path(__file__).resolve().parent / "manifests"
_DEFAULT_MANIFESTS = (
    _MANIFEST_DIR / "secrets.yaml",
    _MANIFEST_DIR / "vulnerabilities.yaml",
)

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "g": 0,
    "u": 0,
}

_CONTEXT_FLAGS = re.IGNORECASE | re.MULTILINE


class RuleTableLoader:
    """Load rule manifests and compile them into an immutable :class:`RuleTable`."""

    def __init__(self, default_manifests: Sequence[Path | str] | None = None) -> None:
        manifest_paths: List[Path]
        if default_manifests is None:
            manifest_paths = [path for path in _DEFAULT_MANIFESTS if path.exists()]
        else:
            manifest_paths = [Path(path) for path in default_manifests]

        self._default_manifests = manifest_paths

    # ------------------------------------------------------------------
    def load(self, manifests: Sequence[Path | str] | None = None) -> RuleTable:
        """Merge the default and supplied manifests and compile every rule."""

        manifest_paths = [Path(path) for path in self._default_manifests]
        if manifests:
            manifest_paths.extend(Path(path) for path in manifests)

        settings: Dict[str, Any] = {}
        aliases: Dict[str, str] = {}
        secret_configs: MutableMapping[str, Dict[str, Any]] = {}
        vuln_configs: MutableMapping[str, MutableMapping[str, Dict[str, Any]]] = {}

        for manifest_path in manifest_paths:
            data = self._load_manifest(manifest_path)

            manifest_settings = data.get("settings")
            if isinstance(manifest_settings, Mapping):
                settings.update(manifest_settings)

            manifest_aliases = data.get("language_aliases")
            if isinstance(manifest_aliases, Mapping):
                for alias, language in manifest_aliases.items():
                    aliases[str(alias).strip().lower()] = str(language).strip().lower()

            _merge_rule_configs(secret_configs, data.get("secrets"), manifest_path)

            vulnerabilities = data.get("vulnerabilities")
            if isinstance(vulnerabilities, Mapping):
                for language, rule_configs in vulnerabilities.items():
                    language_key = str(language).strip().lower()
                    bucket = vuln_configs.setdefault(language_key, {})
                    _merge_rule_configs(bucket, rule_configs, manifest_path)

        secret_rules = tuple(
            compile_rule(config, default_category="secrets")
            for config in secret_configs.values()
            if config.get("enabled", True)
        )
        vulnerability_rules = {
            language: tuple(
                compile_rule(config) for config in configs.values() if config.get("enabled", True)
            )
            for language, configs in vuln_configs.items()
        }

        table = RuleTable(
            secret_rules=secret_rules,
            vulnerability_rules=vulnerability_rules,
            language_aliases=aliases,
            settings=DetectionSettings.from_mapping(settings),
        )
        log.debug(
            "Loaded %d secret rules and rules for %d languages from %d manifests",
            len(table.secret_rules),
            len(table.vulnerability_rules),
            len(manifest_paths),
        )
        return table

    # ------------------------------------------------------------------
    def _load_manifest(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise RuleTableError(f"Rule manifest not found: {path}")

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem errors surfaced to caller
            raise RuleTableError(f"Failed to read rule manifest {path}") from exc

        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as exc:
            raise RuleTableError(f"Invalid YAML in rule manifest {path}") from exc

        if not isinstance(data, Mapping):
            raise RuleTableError(f"Rule manifest must be a mapping: {path}")

        return dict(data)


def _merge_rule_configs(
    target: MutableMapping[str, Dict[str, Any]],
    configs: object,
    manifest_path: Path,
) -> None:
    if configs is None:
        return
    if not isinstance(configs, list):
        raise RuleTableError(f"Rule list expected in manifest {manifest_path}")

    for config in configs:
        if not isinstance(config, Mapping):
            raise RuleTableError(f"Rule entries must be mappings in manifest {manifest_path}")
        rule_id = str(config.get("id") or "").strip()
        if not rule_id:
            continue
        merged = target.get(rule_id, {"id": rule_id})
        merged.update(config)
        target[rule_id] = merged


def compile_rule(config: Mapping[str, Any], *, default_category: str = "security") -> Rule:
    """Compile a single manifest rule entry, failing fast on invalid patterns."""

    rule_id = str(config.get("id") or "").strip()
    if not rule_id:
        raise RuleCompilationError("Rule entries require an 'id'")

    pattern = config.get("pattern")
    if not isinstance(pattern, str) or not pattern:
        raise RuleCompilationError(f"Rule {rule_id} has no pattern")

    flags = _parse_flags(rule_id, config.get("flags", "i"))
    try:
        regex = re.compile(pattern, flags)
    except re.error as exc:
        raise RuleCompilationError(f"Rule {rule_id} has an invalid pattern: {exc}") from exc

    severity_value = str(config.get("severity", "medium")).strip().lower()
    try:
        severity = FindingSeverity(severity_value)
    except ValueError as exc:
        raise RuleCompilationError(
            f"Rule {rule_id} has an unknown severity: {severity_value}"
        ) from exc

    message = str(config.get("message") or config.get("name") or rule_id)

    return Rule(
        id=rule_id,
        name=str(config.get("name") or message),
        regex=regex,
        severity=severity,
        category=str(config.get("category") or default_category),
        message=message,
        requires_entropy=bool(config.get("requires_entropy", False)),
        min_entropy=float(config.get("min_entropy", 3.0)),
        requires_context=bool(config.get("requires_context", False)),
        require=_compile_context(rule_id, config.get("require_patterns")),
        exclude=_compile_context(rule_id, config.get("exclude_patterns")),
        base_confidence=float(config.get("base_confidence", 0.7)),
        optimal_length=int(config.get("optimal_length", 20)),
        high_specificity=bool(config.get("high_specificity", False)),
        recommendation=str(config.get("recommendation") or ""),
        cwe=config.get("cwe"),
        owasp=config.get("owasp"),
    )


def _parse_flags(rule_id: str, flags: object) -> int:
    if flags is None:
        return 0
    if not isinstance(flags, str):
        raise RuleCompilationError(f"Rule {rule_id} flags must be a string")

    value = 0
    for flag in flags:
        if flag not in _FLAG_MAP:
            raise RuleCompilationError(f"Rule {rule_id} has an unknown regex flag: {flag!r}")
        value |= _FLAG_MAP[flag]
    return value


def _compile_context(rule_id: str, patterns: object) -> Tuple[re.Pattern[str], ...]:
    if not patterns:
        return ()
    if isinstance(patterns, str):
        patterns = [patterns]
    if not isinstance(patterns, Iterable):
        raise RuleCompilationError(f"Rule {rule_id} context patterns must be a list")

    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(str(pattern), _CONTEXT_FLAGS))
        except re.error as exc:
            raise RuleCompilationError(
                f"Rule {rule_id} has an invalid context pattern {pattern!r}: {exc}"
            ) from exc
    return tuple(compiled)


@lru_cache(maxsize=1)
def default_rule_table() -> RuleTable:
    """Return the packaged rule table, compiled once per process."""

    return RuleTableLoader().load()
