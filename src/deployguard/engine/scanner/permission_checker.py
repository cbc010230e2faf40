"""Permission/path check -- existence, executability and placement of the target."""
from __future__ import annotations

import asyncio
import os
import re
import stat
from pathlib import Path

from deployguard.domain.entities.policy import SecurityStandards
from deployguard.domain.entities.scan_result import Finding, PermissionCheckResult, ScanCategory
from deployguard.domain.value_objects.severity import FindingSeverity

WINDOWS_EXECUTABLE_SUFFIXES: frozenset[str] = frozenset({".exe", ".bat", ".cmd", ".js", ".py"})

_SEPARATORS = re.compile(r"[\\/]")


def has_traversal(raw_path: str) -> bool:
    """``..`` as any path component, or a home-relative ``~`` prefix."""
    return raw_path.startswith("~") or ".." in _SEPARATORS.split(raw_path)


def normalize(raw_path: str) -> str:
    return os.path.normpath(os.path.abspath(os.path.expanduser(raw_path)))


def is_executable(path: Path) -> bool:
    if os.name == "nt":
        return path.suffix.lower() in WINDOWS_EXECUTABLE_SUFFIXES
    try:
        return bool(path.stat().st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))
    except OSError:
        return False


class PermissionChecker:
    def __init__(self, standards: SecurityStandards | None = None) -> None:
        self.secure_prefixes = tuple((standards or SecurityStandards()).secure_path_prefixes)

    def in_secure_location(self, normalized: str) -> bool:
        if os.name == "nt":
            lowered = normalized.lower()
            return any(lowered.startswith(p.lower()) for p in self.secure_prefixes)
        return any(normalized.startswith(p) for p in self.secure_prefixes)

    def inspect(self, raw_path: str) -> PermissionCheckResult:
        normalized = normalize(raw_path)
        path = Path(normalized)
        exists = path.is_file()
        traversal = has_traversal(raw_path)
        secure = self.in_secure_location(normalized)
        executable = exists and is_executable(path)

        findings: list[Finding] = []

        def _add(rule_id: str, severity: FindingSeverity, message: str) -> None:
            findings.append(
                Finding(
                    rule_id=rule_id,
                    severity=severity,
                    category=ScanCategory.PERMISSION_CHECK,
                    message=message,
                    file=raw_path,
                )
            )

        if not exists:
            _add("target-missing", FindingSeverity.DANGEROUS, "target file does not exist")
        elif not executable:
            _add("target-not-executable", FindingSeverity.ADVISORY, "target file is not marked executable")
        if traversal:
            _add("path-traversal", FindingSeverity.DANGEROUS, "path contains a traversal sequence")
        if not secure:
            _add("insecure-location", FindingSeverity.ADVISORY, "target is outside the secure path prefixes")

        return PermissionCheckResult(
            passed=exists and not traversal,
            exists=exists,
            executable=executable,
            path_traversal=traversal,
            secure_location=secure,
            normalized_path=normalized,
            findings=sorted(findings, key=Finding.sort_key),
        )

    async def check(self, raw_path: str) -> PermissionCheckResult:
        return await asyncio.to_thread(self.inspect, raw_path)
