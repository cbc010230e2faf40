"""Code analysis -- apply the pattern library to source files.

The target file is always analysed.  When a project root is given every
source file below it is analysed too, down to a bounded depth, skipping
hidden directories and dependency caches.  Files are read concurrently in
worker threads; findings are sorted before they are returned so the result
never depends on traversal or completion order.
"""
from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from deployguard.domain.entities.scan_result import CodeAnalysisResult, Finding, ScanCategory
from deployguard.domain.value_objects.severity import FindingSeverity
from deployguard.engine.scanner.patterns import SOURCE_EXTENSIONS, family_for, rules_for_family

logger = structlog.get_logger(__name__)

SKIP_DIRS: frozenset[str] = frozenset(
    {
        "node_modules",
        "__pycache__",
        "venv",
        "env",
        "site-packages",
        "bower_components",
        "vendor",
    }
)


def iter_source_files(root: Path, max_depth: int) -> list[Path]:
    """Return every source file below *root*, sorted, at most *max_depth* levels down."""
    found: list[Path] = []

    def _walk(directory: Path, depth: int) -> None:
        if depth > max_depth:
            return
        try:
            children = sorted(directory.iterdir())
        except OSError as exc:
            logger.warning("scan_directory_unreadable", directory=str(directory), error=str(exc))
            return
        for child in children:
            if child.is_dir() and not child.is_symlink():
                if child.name.startswith(".") or child.name in SKIP_DIRS:
                    continue
                _walk(child, depth + 1)
            elif child.is_file() and child.suffix.lower() in SOURCE_EXTENSIONS:
                found.append(child)

    _walk(root, 0)
    return found


def analyze_text(text: str, path: str, family: str | None) -> list[Finding]:
    """Apply the family's rules plus the common rules to *text*.

    Each rule is recorded at most once per file, at its first match.
    """
    findings: list[Finding] = []
    for rule in rules_for_family(family):
        match = rule.regex.search(text)
        if match is None:
            continue
        findings.append(
            Finding(
                rule_id=rule.rule_id,
                severity=rule.severity,
                category=ScanCategory.CODE_ANALYSIS,
                message=rule.message,
                file=path,
                line=text.count("\n", 0, match.start()) + 1,
            )
        )
    return findings


def _read_and_analyze(path: Path) -> list[Finding]:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        # Unreadable source cannot be vouched for.
        return [
            Finding(
                rule_id="unreadable-source",
                severity=FindingSeverity.DANGEROUS,
                category=ScanCategory.CODE_ANALYSIS,
                message=f"source file could not be analysed: {exc.strerror or exc}",
                file=str(path),
            )
        ]
    return analyze_text(text, str(path), family_for(path.suffix))


class CodeAnalyzer:
    """Runs the pattern library over a target file and its project tree."""

    def __init__(self, max_depth: int = 3) -> None:
        self.max_depth = max_depth
        self.log = structlog.get_logger(self.__class__.__name__)

    def collect(self, target: Path, project_root: Path | None) -> list[Path]:
        """Return the de-duplicated, sorted set of files to analyse."""
        candidates: list[Path] = []
        if target.is_file():
            candidates.append(target)
        if project_root is not None and project_root.is_dir():
            candidates.extend(iter_source_files(project_root, self.max_depth))

        unique: dict[str, Path] = {}
        for path in candidates:
            unique.setdefault(str(path.resolve()), path)
        return [unique[key] for key in sorted(unique)]

    async def analyze(self, target: Path, project_root: Path | None = None) -> CodeAnalysisResult:
        files = await asyncio.to_thread(self.collect, target, project_root)
        batches = await asyncio.gather(*(asyncio.to_thread(_read_and_analyze, p) for p in files))

        findings = sorted((f for batch in batches for f in batch), key=Finding.sort_key)
        passed = not any(
            f.severity in (FindingSeverity.DANGEROUS, FindingSeverity.MALICIOUS) for f in findings
        )
        self.log.debug(
            "code_analysis_complete",
            target=str(target),
            files_scanned=len(files),
            findings=len(findings),
            passed=passed,
        )
        return CodeAnalysisResult(passed=passed, files_scanned=len(files), findings=findings)
