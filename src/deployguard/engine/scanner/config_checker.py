"""Configuration check -- hardcoded secrets and insecure flags in config files."""
from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from deployguard.domain.entities.scan_result import ConfigurationCheckResult, Finding, ScanCategory
from deployguard.domain.value_objects.severity import FindingSeverity
from deployguard.engine.scanner.patterns import INSECURE_FLAG_RULES, SECRET_RULES, looks_secret

logger = structlog.get_logger(__name__)

CONFIG_CANDIDATES: tuple[str, ...] = (
    ".env",
    ".env.local",
    ".env.production",
    "config.json",
    "config.js",
    "config.ts",
    "config.py",
    "config.yaml",
    "config.yml",
    "config.toml",
)


def inspect_config_text(text: str, path: str) -> list[Finding]:
    """Return secret and insecure-flag findings for one config file.

    Each rule fires at most once per file.
    """
    findings: list[Finding] = []
    for rule in SECRET_RULES:
        for match in rule.regex.finditer(text):
            if looks_secret(match.group(1), rule.min_length):
                findings.append(
                    Finding(
                        rule_id=rule.rule_id,
                        severity=FindingSeverity.SECRET,
                        category=ScanCategory.CONFIGURATION_CHECK,
                        message="hardcoded secret-like value",
                        file=path,
                        line=text.count("\n", 0, match.start()) + 1,
                    )
                )
                break
    for flag in INSECURE_FLAG_RULES:
        match = flag.regex.search(text)
        if match is not None:
            findings.append(
                Finding(
                    rule_id=flag.rule_id,
                    severity=FindingSeverity.INSECURE,
                    category=ScanCategory.CONFIGURATION_CHECK,
                    message=flag.message,
                    file=path,
                    line=text.count("\n", 0, match.start()) + 1,
                )
            )
    return findings


class ConfigChecker:
    """Inspects the fixed set of configuration files in a project directory."""

    def _inspect(self, directory: Path) -> tuple[list[str], list[Finding]]:
        checked: list[str] = []
        findings: list[Finding] = []
        for name in CONFIG_CANDIDATES:
            path = directory / name
            if not path.is_file():
                continue
            checked.append(str(path))
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning("config_file_unreadable", path=str(path), error=str(exc))
                findings.append(
                    Finding(
                        rule_id="config-unreadable",
                        severity=FindingSeverity.ADVISORY,
                        category=ScanCategory.CONFIGURATION_CHECK,
                        message=f"configuration file could not be read: {exc.strerror or exc}",
                        file=str(path),
                    )
                )
                continue
            findings.extend(inspect_config_text(text, str(path)))
        return checked, findings

    async def check(self, directory: Path) -> ConfigurationCheckResult:
        checked, findings = await asyncio.to_thread(self._inspect, directory)
        findings.sort(key=Finding.sort_key)
        passed = not any(f.severity is FindingSeverity.SECRET for f in findings)
        return ConfigurationCheckResult(passed=passed, files_checked=checked, findings=findings)
