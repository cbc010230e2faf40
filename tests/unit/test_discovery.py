"""Unit tests for server discovery and project-root lookup."""
from __future__ import annotations

from pathlib import Path

import pytest

from deployguard.engine.discovery import discover_servers, find_project_root


@pytest.mark.asyncio
async def test_discover_servers(tmp_path: Path) -> None:
    for name in ("weather-server.js", "mcp_tools.py", "utils.js", "server.rb", "api.mjs", "MyServer.mjs"):
        (tmp_path / name).write_text("")
    (tmp_path / "server-dir.js").mkdir()

    servers = await discover_servers(tmp_path)

    assert [(s.name, s.launcher) for s in servers] == [
        ("MyServer", "node"),
        ("mcp_tools", "python"),
        ("weather-server", "node"),
    ]


@pytest.mark.asyncio
async def test_discover_servers_on_missing_directory(tmp_path: Path) -> None:
    assert await discover_servers(tmp_path / "absent") == []


def test_find_project_root_walks_upward(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text("{}")
    nested = tmp_path / "src" / "lib"
    nested.mkdir(parents=True)
    (nested / "server.js").write_text("")

    assert find_project_root(nested) == tmp_path.resolve()
    assert find_project_root(nested / "server.js") == tmp_path.resolve()


def test_find_project_root_prefers_nearest_marker(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text("{}")
    inner = tmp_path / "packages" / "svc"
    inner.mkdir(parents=True)
    (inner / "pyproject.toml").write_text("")

    assert find_project_root(inner) == inner.resolve()
