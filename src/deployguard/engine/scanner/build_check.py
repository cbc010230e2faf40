"""Build-time security check.

Scans a project's entry files before a build, optionally runs a
caller-provided build command under a hard wall-clock timeout, then scans a
sample of the build output.  The build process is killed when the timeout
expires.
"""
from __future__ import annotations

import asyncio
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

from deployguard.domain.entities.scan_result import ScanResult
from deployguard.engine.scanner.security_scanner import SecurityScanner
from deployguard.shared.exceptions import BuildTimeoutError, ScanError

logger = structlog.get_logger(__name__)

ENTRY_CANDIDATES: tuple[str, ...] = (
    "server.js",
    "server.ts",
    "server.py",
    "index.js",
    "index.ts",
    "main.py",
    "src/server.js",
    "src/server.ts",
    "src/index.js",
    "src/index.ts",
    "src/main.py",
    "dist/server.js",
    "dist/index.js",
)

OUTPUT_SUFFIXES: frozenset[str] = frozenset({".js", ".py"})
MAX_OUTPUT_SAMPLES = 3


class BuildCheckReport(BaseModel):
    """Outcome of a build-time check.

    Attributes:
        project_dir: Project that was checked.
        passed: Every pre- and post-build scan passed and the build succeeded.
        average_score: Mean score over all scans, 0 when nothing was scanned.
        pre_build: Scans of the entry files.
        post_build: Scans of sampled build output files.
        build_exit_code: Exit code of the build command, if one ran.
        build_output: Tail of the combined build output.
        recommendations: Follow-up advice.
    """

    project_dir: str
    passed: bool
    average_score: int = 0
    pre_build: list[ScanResult] = Field(default_factory=list)
    post_build: list[ScanResult] = Field(default_factory=list)
    build_exit_code: int | None = None
    build_output: str = ""
    recommendations: list[str] = Field(default_factory=list)


def find_entry_files(project_dir: Path) -> list[Path]:
    return [project_dir / rel for rel in ENTRY_CANDIDATES if (project_dir / rel).is_file()]


def sample_output_files(output_dir: Path, limit: int = MAX_OUTPUT_SAMPLES) -> list[Path]:
    if not output_dir.is_dir():
        return []
    files = sorted(
        p for p in output_dir.rglob("*")
        if p.is_file() and p.suffix in OUTPUT_SUFFIXES and "node_modules" not in p.parts
    )
    return files[:limit]


async def run_build(command: str, cwd: Path, timeout: float) -> tuple[int, str]:
    """Run *command* in a shell under *cwd*, killing it after *timeout* seconds.

    Raises:
        BuildTimeoutError: The command did not finish in time.
    """
    proc = await asyncio.create_subprocess_shell(
        command,
        cwd=str(cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.error("build_timeout", command=command, timeout=timeout)
        raise BuildTimeoutError(
            f"Build command exceeded {timeout:.0f}s and was terminated",
            context={"command": command, "timeout": timeout},
        ) from None
    return proc.returncode or 0, stdout.decode("utf-8", errors="replace")


class BuildChecker:
    """Pre-build scan, optional build, post-build scan."""

    def __init__(self, scanner: SecurityScanner, timeout_seconds: float = 600.0) -> None:
        self.scanner = scanner
        self.timeout_seconds = timeout_seconds

    async def check(
        self,
        project_dir: str | Path,
        build_command: str | None = None,
        output_dir: str | None = "dist",
    ) -> BuildCheckReport:
        project = Path(project_dir).expanduser().resolve()
        if not project.is_dir():
            raise ScanError(f"Project directory not found: {project}", context={"project_dir": str(project)})

        entries = find_entry_files(project)
        pre = [await self.scanner.scan(p, project) for p in entries]
        recommendations: list[str] = []
        if not entries:
            recommendations.append("No entry file found; expected one of: " + ", ".join(ENTRY_CANDIDATES))

        exit_code: int | None = None
        output = ""
        if build_command:
            exit_code, output = await run_build(build_command, project, self.timeout_seconds)
            if exit_code != 0:
                recommendations.append(f"Build command failed with exit code {exit_code}")

        post: list[ScanResult] = []
        if output_dir:
            post = [await self.scanner.scan(p, project) for p in sample_output_files(project / output_dir)]

        scans = [*pre, *post]
        average = round(sum(s.score for s in scans) / len(scans)) if scans else 0
        passed = bool(scans) and all(s.passed for s in scans) and (exit_code in (None, 0))
        for scan in scans:
            if not scan.passed:
                recommendations.append(f"Fix blocking findings in {scan.target}")

        report = BuildCheckReport(
            project_dir=str(project),
            passed=passed,
            average_score=average,
            pre_build=pre,
            post_build=post,
            build_exit_code=exit_code,
            build_output=output[-4000:],
            recommendations=recommendations,
        )
        logger.info(
            "build_check_complete",
            project_dir=str(project),
            passed=passed,
            average_score=average,
            scans=len(scans),
        )
        return report

