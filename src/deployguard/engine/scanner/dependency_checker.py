"""Dependency check -- inspect declared dependencies for risky versions.

Supported manifests: ``package.json`` (dependencies + devDependencies),
``requirements.txt`` and ``pyproject.toml`` (``[project].dependencies`` and
``[project.optional-dependencies]``).  A dependency is *unpinned* when its
version specifier admits more than one release and *vulnerable* when its
name is on the known-bad list.
"""
from __future__ import annotations

import asyncio
import json
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from deployguard.domain.entities.policy import SecurityStandards
from deployguard.domain.entities.scan_result import DependencyCheckResult, Finding, ScanCategory
from deployguard.domain.value_objects.severity import FindingSeverity

logger = structlog.get_logger(__name__)

MANIFEST_NAMES: tuple[str, ...] = ("package.json", "requirements.txt", "pyproject.toml")

_NPM_RANGE = re.compile(r"^[\^~]|^\*$|^latest$|[<>|]|(^|\.)[xX*](\.|$)")
_REQUIREMENT = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[[^\]]*\])?\s*(.*)$")
_EXACT_PIN = re.compile(r"^===?\s*[^\s,*;]+$")


@dataclass(frozen=True, slots=True)
class Dependency:
    """One declared dependency.

    Attributes:
        name: Package name as declared.
        specifier: Version specifier, empty when absent.
        ecosystem: ``npm`` or ``pypi``.
        manifest: Manifest file that declared it.
    """

    name: str
    specifier: str
    ecosystem: str
    manifest: str


def normalize_pypi_name(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()


def is_npm_unpinned(specifier: str) -> bool:
    spec = specifier.strip()
    return not spec or bool(_NPM_RANGE.search(spec))


def is_pypi_unpinned(specifier: str) -> bool:
    spec = specifier.split(";", 1)[0].strip()
    return not _EXACT_PIN.match(spec)


def parse_requirement(line: str, manifest: str) -> Dependency | None:
    """Parse one PEP 508-ish requirement string, ignoring options and URLs."""
    text = line.split("#", 1)[0].strip()
    if not text or text.startswith("-") or "://" in text:
        return None
    match = _REQUIREMENT.match(text)
    if match is None:
        return None
    return Dependency(name=match.group(1), specifier=match.group(2).strip(), ecosystem="pypi", manifest=manifest)


def parse_package_json(text: str, manifest: str) -> list[Dependency]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("package.json is not a JSON object")
    deps: list[Dependency] = []
    for section in ("dependencies", "devDependencies"):
        declared = data.get(section) or {}
        if not isinstance(declared, dict):
            raise ValueError(f"package.json {section} is not an object")
        for name, spec in declared.items():
            deps.append(Dependency(name=name, specifier=str(spec), ecosystem="npm", manifest=manifest))
    return deps


def parse_requirements_txt(text: str, manifest: str) -> list[Dependency]:
    return [d for d in (parse_requirement(line, manifest) for line in text.splitlines()) if d is not None]


def _requirement_list(value: Any, where: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"pyproject.toml {where} is not a list of strings")
    return value


def parse_pyproject(text: str, manifest: str) -> list[Dependency]:
    """Read ``[project].dependencies`` and every optional-dependency group.

    Raises:
        ValueError: A section has the wrong TOML type.
    """
    project = tomllib.loads(text).get("project", {})
    if not isinstance(project, dict):
        raise ValueError("pyproject.toml [project] is not a table")
    lines = list(_requirement_list(project.get("dependencies", []), "project.dependencies"))
    extras = project.get("optional-dependencies", {})
    if not isinstance(extras, dict):
        raise ValueError("pyproject.toml project.optional-dependencies is not a table")
    for extra in sorted(extras):
        lines.extend(_requirement_list(extras[extra], f"optional-dependencies.{extra}"))
    return [d for d in (parse_requirement(line, manifest) for line in lines) if d is not None]


_PARSERS = {
    "package.json": parse_package_json,
    "requirements.txt": parse_requirements_txt,
    "pyproject.toml": parse_pyproject,
}


class DependencyChecker:
    """Checks the dependency manifests found in a project directory."""

    def __init__(self, standards: SecurityStandards | None = None) -> None:
        standards = standards or SecurityStandards()
        self._npm_blocklist = frozenset(standards.vulnerable_npm_packages)
        self._pypi_blocklist = frozenset(normalize_pypi_name(n) for n in standards.vulnerable_python_packages)

    def is_vulnerable(self, dep: Dependency) -> bool:
        if dep.ecosystem == "npm":
            return dep.name in self._npm_blocklist
        return normalize_pypi_name(dep.name) in self._pypi_blocklist

    def evaluate(self, deps: list[Dependency]) -> list[Finding]:
        findings: list[Finding] = []
        for dep in deps:
            if self.is_vulnerable(dep):
                findings.append(
                    Finding(
                        rule_id="dependency-vulnerable",
                        severity=FindingSeverity.VULNERABLE,
                        category=ScanCategory.DEPENDENCY_CHECK,
                        message=f"known-bad package {dep.name} ({dep.specifier or 'any version'})",
                        file=dep.manifest,
                    )
                )
            unpinned = is_npm_unpinned(dep.specifier) if dep.ecosystem == "npm" else is_pypi_unpinned(dep.specifier)
            if unpinned:
                findings.append(
                    Finding(
                        rule_id="dependency-unpinned",
                        severity=FindingSeverity.UNPINNED,
                        category=ScanCategory.DEPENDENCY_CHECK,
                        message=f"unpinned version for {dep.name}: {dep.specifier or '<none>'}",
                        file=dep.manifest,
                    )
                )
        return findings

    def _load(self, directory: Path) -> tuple[list[str], list[Dependency], list[Finding]]:
        manifests: list[str] = []
        deps: list[Dependency] = []
        notes: list[Finding] = []
        for name in MANIFEST_NAMES:
            path = directory / name
            if not path.is_file():
                continue
            manifests.append(str(path))
            try:
                deps.extend(_PARSERS[name](path.read_text(encoding="utf-8"), str(path)))
            except (OSError, ValueError, tomllib.TOMLDecodeError) as exc:
                logger.warning("manifest_unparseable", manifest=str(path), error=str(exc))
                notes.append(
                    Finding(
                        rule_id="manifest-unparseable",
                        severity=FindingSeverity.ADVISORY,
                        category=ScanCategory.DEPENDENCY_CHECK,
                        message=f"dependency manifest could not be parsed: {exc}",
                        file=str(path),
                    )
                )
        return manifests, deps, notes

    async def check(self, directory: Path) -> DependencyCheckResult:
        manifests, deps, notes = await asyncio.to_thread(self._load, directory)
        findings = sorted([*notes, *self.evaluate(deps)], key=Finding.sort_key)
        passed = not any(f.severity is FindingSeverity.VULNERABLE for f in findings)
        return DependencyCheckResult(
            passed=passed,
            manifests=manifests,
            dependency_count=len(deps),
            findings=findings,
        )
