"""Unit tests for the dependency check."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from deployguard.domain.entities.policy import SecurityStandards
from deployguard.domain.value_objects.severity import FindingSeverity
from deployguard.engine.scanner.dependency_checker import (
    Dependency,
    DependencyChecker,
    is_npm_unpinned,
    is_pypi_unpinned,
    normalize_pypi_name,
    parse_pyproject,
    parse_requirement,
)


@pytest.mark.parametrize(
    "spec, unpinned",
    [
        ("1.2.3", False),
        ("^1.2.3", True),
        ("~1.2", True),
        ("*", True),
        ("latest", True),
        (">=1.0.0", True),
        ("1.x", True),
        ("1 || 2", True),
        ("", True),
    ],
)
def test_npm_unpinned(spec: str, unpinned: bool) -> None:
    assert is_npm_unpinned(spec) is unpinned


@pytest.mark.parametrize(
    "spec, unpinned",
    [
        ("==1.0", False),
        ("===1.0", False),
        ("==1.0 ; python_version >= '3.8'", False),
        (">=1.0", True),
        ("~=1.4", True),
        ("==1.*", True),
        ("==1.0,<2", True),
        ("", True),
    ],
)
def test_pypi_unpinned(spec: str, unpinned: bool) -> None:
    assert is_pypi_unpinned(spec) is unpinned


def test_parse_requirement() -> None:
    dep = parse_requirement("django[bcrypt]==4.2  # web", "requirements.txt")
    assert dep == Dependency(name="django", specifier="==4.2", ecosystem="pypi", manifest="requirements.txt")
    assert parse_requirement("-r base.txt", "r") is None
    assert parse_requirement("git+https://example.org/x.git", "r") is None
    assert parse_requirement("   # only a comment", "r") is None


def test_parse_pyproject_reads_optional_dependencies() -> None:
    text = """
[project]
name = "demo"
dependencies = ["httpx==0.27.0"]

[project.optional-dependencies]
test = ["pytest>=8"]
"""
    deps = parse_pyproject(text, "pyproject.toml")
    assert [(d.name, d.specifier) for d in deps] == [("httpx", "==0.27.0"), ("pytest", ">=8")]


def test_normalize_pypi_name() -> None:
    assert normalize_pypi_name("Python3_DateUtil") == "python3-dateutil"


class TestDependencyChecker:
    @pytest.mark.asyncio
    async def test_no_manifests(self, tmp_path: Path) -> None:
        result = await DependencyChecker().check(tmp_path)
        assert result.passed is True
        assert result.manifests == []
        assert result.dependency_count == 0

    @pytest.mark.asyncio
    async def test_vulnerable_npm_package_fails(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text(
            json.dumps({"dependencies": {"event-stream": "3.3.6", "express": "^4.18.0"}})
        )
        result = await DependencyChecker().check(tmp_path)
        assert result.passed is False
        assert result.dependency_count == 2
        assert [f.message for f in result.vulnerable] == ["known-bad package event-stream (3.3.6)"]
        assert len(result.unpinned) == 1

    @pytest.mark.asyncio
    async def test_vulnerable_python_package_uses_normalised_name(self, tmp_path: Path) -> None:
        (tmp_path / "requirements.txt").write_text("PyCrypto==2.6.1\nrequests==2.31.0\n")
        result = await DependencyChecker().check(tmp_path)
        assert result.passed is False
        assert len(result.vulnerable) == 1
        assert result.unpinned == []

    @pytest.mark.asyncio
    async def test_unpinned_only_passes(self, tmp_path: Path) -> None:
        (tmp_path / "requirements.txt").write_text("requests\nflask>=2\n")
        result = await DependencyChecker().check(tmp_path)
        assert result.passed is True
        assert len(result.unpinned) == 2

    @pytest.mark.asyncio
    async def test_custom_blocklist(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text(json.dumps({"devDependencies": {"left-pad": "1.0.0"}}))
        checker = DependencyChecker(SecurityStandards(vulnerable_npm_packages=["left-pad"]))
        result = await checker.check(tmp_path)
        assert result.passed is False

    @pytest.mark.asyncio
    async def test_unparseable_manifest_is_advisory(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("{not json")
        result = await DependencyChecker().check(tmp_path)
        assert result.passed is True
        assert [f.rule_id for f in result.findings] == ["manifest-unparseable"]
        assert result.findings[0].severity is FindingSeverity.ADVISORY


@pytest.mark.parametrize(
    "text",
    [
        'project = "oops"\n',
        "[project]\ndependencies = \"httpx\"\n",
        "[project]\ndependencies = [1, 2]\n",
        "[project]\noptional-dependencies = [\"pytest\"]\n",
        "[project.optional-dependencies]\ntest = \"pytest\"\n",
        "[project.optional-dependencies]\ntest = [{name = \"pytest\"}]\n",
    ],
)
def test_parse_pyproject_rejects_wrong_shapes(text: str) -> None:
    with pytest.raises(ValueError, match="pyproject.toml"):
        parse_pyproject(text, "pyproject.toml")


class TestMalformedPyproject:
    @pytest.mark.asyncio
    async def test_non_table_project_is_advisory(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text('project = "oops"\n')
        (tmp_path / "requirements.txt").write_text("requests==2.31.0\n")

        result = await DependencyChecker().check(tmp_path)

        assert result.passed is True
        assert result.dependency_count == 1
        assert [f.rule_id for f in result.findings] == ["manifest-unparseable"]
        assert "[project] is not a table" in result.findings[0].message
