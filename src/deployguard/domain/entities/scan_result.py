"""Scan result entities produced by the static security scanner.

A :class:`ScanResult` is produced fresh for every scan request.  It is
returned to the caller and logged, never persisted.
"""
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from deployguard.domain.value_objects.severity import FindingSeverity, SecurityLevel


class ScanCategory(str, enum.Enum):
    """The four independent checks that make up a scan."""

    CODE_ANALYSIS = "code_analysis"
    DEPENDENCY_CHECK = "dependency_check"
    CONFIGURATION_CHECK = "configuration_check"
    PERMISSION_CHECK = "permission_check"


class Finding(BaseModel):
    """A single issue discovered by one of the checks.

    Attributes:
        rule_id: Identifier of the rule that fired.
        severity: Bucket the finding is filed into.
        category: Check that produced the finding.
        message: Human-readable description.
        file: File the finding refers to, when there is one.
        line: 1-based line of the first match, when known.
    """

    rule_id: str
    severity: FindingSeverity
    category: ScanCategory
    message: str
    file: str = ""
    line: int | None = None

    model_config = {"frozen": True}

    def sort_key(self) -> tuple[str, str, int, str]:
        return (self.file, self.rule_id, self.line or 0, self.message)


def _of(findings: list[Finding], severity: FindingSeverity) -> list[Finding]:
    return [f for f in findings if f.severity == severity]


class CodeAnalysisResult(BaseModel):
    passed: bool = True
    files_scanned: int = 0
    findings: list[Finding] = Field(default_factory=list)

    @property
    def dangerous(self) -> list[Finding]:
        return _of(self.findings, FindingSeverity.DANGEROUS)

    @property
    def suspicious(self) -> list[Finding]:
        return _of(self.findings, FindingSeverity.SUSPICIOUS)

    @property
    def malicious(self) -> list[Finding]:
        return _of(self.findings, FindingSeverity.MALICIOUS)


class DependencyCheckResult(BaseModel):
    passed: bool = True
    manifests: list[str] = Field(default_factory=list)
    dependency_count: int = 0
    findings: list[Finding] = Field(default_factory=list)

    @property
    def vulnerable(self) -> list[Finding]:
        return _of(self.findings, FindingSeverity.VULNERABLE)

    @property
    def unpinned(self) -> list[Finding]:
        return _of(self.findings, FindingSeverity.UNPINNED)


class ConfigurationCheckResult(BaseModel):
    passed: bool = True
    files_checked: list[str] = Field(default_factory=list)
    findings: list[Finding] = Field(default_factory=list)

    @property
    def secrets(self) -> list[Finding]:
        return _of(self.findings, FindingSeverity.SECRET)

    @property
    def insecure(self) -> list[Finding]:
        return _of(self.findings, FindingSeverity.INSECURE)


class PermissionCheckResult(BaseModel):
    """Filesystem placement of the scan target.

    Attributes:
        passed: File exists and its path has no traversal sequence.
        exists: Whether the target is an existing regular file.
        executable: Platform heuristic for executability.
        path_traversal: ``..`` component or leading ``~`` in the raw path.
        secure_location: Path sits under one of the secure prefixes.
        normalized_path: Absolute, normalised form of the target path.
    """

    passed: bool = True
    exists: bool = False
    executable: bool = False
    path_traversal: bool = False
    secure_location: bool = False
    normalized_path: str = ""
    findings: list[Finding] = Field(default_factory=list)


class ScanCategories(BaseModel):
    code_analysis: CodeAnalysisResult = Field(default_factory=CodeAnalysisResult, alias="codeAnalysis")
    dependency_check: DependencyCheckResult = Field(default_factory=DependencyCheckResult, alias="dependencyCheck")
    configuration_check: ConfigurationCheckResult = Field(
        default_factory=ConfigurationCheckResult, alias="configurationCheck"
    )
    permission_check: PermissionCheckResult = Field(default_factory=PermissionCheckResult, alias="permissionCheck")

    model_config = {"populate_by_name": True}

    def all_findings(self) -> list[Finding]:
        return [
            *self.code_analysis.findings,
            *self.dependency_check.findings,
            *self.configuration_check.findings,
            *self.permission_check.findings,
        ]


class ScanResult(BaseModel):
    """Aggregate outcome of one scan.

    ``passed`` and ``score`` are independent signals: ``passed`` is the
    conjunction of the four category checks, ``score`` is the weighted
    deduction total.  The policy gate consumes both.

    Attributes:
        target: Path that was scanned.
        project_root: Project root that was walked, if any.
        passed: All four category checks passed.
        score: Weighted 0-100 score, higher is safer.
        level: Qualitative band of ``score``.
        recommendation: Advice matching ``level``.
        errors: Human-readable descriptions of blocking findings.
        warnings: Human-readable descriptions of non-blocking findings.
        categories: Per-check results.
        scanned_at: When the scan ran.
    """

    target: str
    project_root: str | None = None
    passed: bool
    score: int = Field(..., ge=0, le=100)
    level: SecurityLevel = SecurityLevel.DANGEROUS
    recommendation: str = ""
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    categories: ScanCategories = Field(default_factory=ScanCategories)
    scanned_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> dict[str, Any]:
        """Return a compact dict suitable for logging."""
        cats = self.categories
        return {
            "target": self.target,
            "passed": self.passed,
            "score": self.score,
            "level": self.level.value,
            "dangerous": len(cats.code_analysis.dangerous),
            "malicious": len(cats.code_analysis.malicious),
            "suspicious": len(cats.code_analysis.suspicious),
            "vulnerable": len(cats.dependency_check.vulnerable),
            "unpinned": len(cats.dependency_check.unpinned),
            "secrets": len(cats.configuration_check.secrets),
            "insecure": len(cats.configuration_check.insecure),
            "errors": len(self.errors),
            "warnings": len(self.warnings),
        }
