"""Static security scanner -- aggregate the four checks into one ScanResult.

The four checks run concurrently.  Each one sorts its own findings, so the
aggregate score is reproducible regardless of scheduling order.
"""
from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from deployguard.domain.entities.policy import SecurityStandards
from deployguard.domain.entities.scan_result import ScanCategories, ScanResult
from deployguard.domain.value_objects.severity import classify_score
from deployguard.engine.scanner.code_analyzer import CodeAnalyzer
from deployguard.engine.scanner.config_checker import ConfigChecker
from deployguard.engine.scanner.dependency_checker import DependencyChecker
from deployguard.engine.scanner.permission_checker import PermissionChecker, normalize
from deployguard.engine.scanner.scoring import compute_score, level_breakpoints

logger = structlog.get_logger(__name__)


class SecurityScanner:
    """Produces a :class:`ScanResult` for a candidate executable.

    Args:
        standards: Data tables (blocklists, secure prefixes, weights, depth).
            Defaults are used when omitted.
    """

    def __init__(self, standards: SecurityStandards | None = None) -> None:
        self.standards = standards or SecurityStandards()
        self.code_analyzer = CodeAnalyzer(max_depth=self.standards.max_scan_depth)
        self.dependency_checker = DependencyChecker(self.standards)
        self.config_checker = ConfigChecker()
        self.permission_checker = PermissionChecker(self.standards)

    async def scan(self, target: str | Path, project_root: str | Path | None = None) -> ScanResult:
        """Scan *target* and, when given, the project tree under *project_root*.

        The dependency and configuration checks look in *project_root* when
        given, otherwise in the directory containing *target*.
        """
        raw_target = str(target)
        target_path = Path(normalize(raw_target))
        root = Path(normalize(str(project_root))) if project_root else None
        context_dir = root or target_path.parent

        code, deps, config, perm = await asyncio.gather(
            self.code_analyzer.analyze(target_path, root),
            self.dependency_checker.check(context_dir),
            self.config_checker.check(context_dir),
            self.permission_checker.check(raw_target),
        )
        categories = ScanCategories(
            code_analysis=code,
            dependency_check=deps,
            configuration_check=config,
            permission_check=perm,
        )

        score = compute_score(categories, self.standards.scoring)
        classification = classify_score(score, level_breakpoints(self.standards))
        errors: list[str] = []
        warnings: list[str] = []
        for finding in categories.all_findings():
            where = f"{finding.file}:{finding.line}" if finding.line else finding.file
            text = f"[{finding.severity.value}] {finding.message} ({where})" if where else finding.message
            (errors if finding.severity.is_blocking else warnings).append(text)

        result = ScanResult(
            target=raw_target,
            project_root=str(root) if root else None,
            passed=code.passed and deps.passed and config.passed and perm.passed,
            score=score,
            level=classification.level,
            recommendation=classification.recommendation,
            errors=errors,
            warnings=warnings,
            categories=categories,
        )
        logger.info("security_scan_complete", **result.summary())
        return result
