"""Unit tests for the permission/path check."""
from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

import pytest

from deployguard.domain.entities.policy import SecurityStandards
from deployguard.domain.value_objects.severity import FindingSeverity
from deployguard.engine.scanner.permission_checker import PermissionChecker, has_traversal, normalize


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("/opt/tools/server.js", False),
        ("./server.js", False),
        ("../server.js", True),
        ("a/../b.js", True),
        ("~/bin/server.js", True),
        ("C:\\tools\\..\\x.exe", True),
        ("/srv/..hidden/x.js", False),
    ],
)
def test_has_traversal(raw: str, expected: bool) -> None:
    assert has_traversal(raw) is expected


def test_normalize_is_absolute() -> None:
    assert os.path.isabs(normalize("relative/../x.js"))
    assert normalize("/a/b/../c") == os.path.normpath("/a/c")


class TestPermissionChecker:
    def test_missing_file(self, tmp_path: Path) -> None:
        result = PermissionChecker().inspect(str(tmp_path / "absent.js"))
        assert result.passed is False
        assert result.exists is False
        rules = {f.rule_id: f.severity for f in result.findings}
        assert rules["target-missing"] is FindingSeverity.DANGEROUS

    @pytest.mark.skipif(os.name == "nt", reason="POSIX mode bits")
    def test_executable_in_secure_location(
        self, tmp_path: Path, make_script: Callable[..., Path], trusted_standards: SecurityStandards
    ) -> None:
        script = make_script("server.py", "print('ok')\n")
        result = PermissionChecker(trusted_standards).inspect(str(script))
        assert result.passed is True
        assert result.exists is True
        assert result.executable is True
        assert result.secure_location is True
        assert result.findings == []

    @pytest.mark.skipif(os.name == "nt", reason="POSIX mode bits")
    def test_non_executable_is_advisory(
        self, make_script: Callable[..., Path], trusted_standards: SecurityStandards
    ) -> None:
        script = make_script("server.js", "console.log(1)\n", executable=False)
        result = PermissionChecker(trusted_standards).inspect(str(script))
        assert result.passed is True
        assert result.executable is False
        assert [(f.rule_id, f.severity) for f in result.findings] == [
            ("target-not-executable", FindingSeverity.ADVISORY)
        ]

    def test_outside_secure_prefixes(self, make_script: Callable[..., Path]) -> None:
        script = make_script("server.py", "")
        result = PermissionChecker(SecurityStandards(secure_path_prefixes=["/nowhere/"])).inspect(str(script))
        assert result.secure_location is False
        assert result.passed is True
        assert "insecure-location" in {f.rule_id for f in result.findings}

    def test_traversal_fails_even_when_file_exists(
        self, tmp_path: Path, make_script: Callable[..., Path], trusted_standards: SecurityStandards
    ) -> None:
        make_script("server.py", "")
        (tmp_path / "sub").mkdir()
        raw = str(tmp_path / "sub" / ".." / "server.py")
        result = PermissionChecker(trusted_standards).inspect(raw)
        assert result.exists is True
        assert result.path_traversal is True
        assert result.passed is False
        assert result.normalized_path == str(tmp_path / "server.py")

    @pytest.mark.asyncio
    async def test_check_is_async(self, make_script: Callable[..., Path], trusted_standards: SecurityStandards) -> None:
        script = make_script("server.py", "")
        result = await PermissionChecker(trusted_standards).check(str(script))
        assert result.exists is True
