"""Discovery of candidate service entry files and project roots."""
from __future__ import annotations

import asyncio
from pathlib import Path

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)

_LAUNCHER_BY_SUFFIX: dict[str, str] = {".js": "node", ".mjs": "node", ".py": "python"}
_NAME_MARKERS: tuple[str, ...] = ("server", "mcp")

PROJECT_MARKERS: tuple[str, ...] = (
    "package.json",
    "pyproject.toml",
    "requirements.txt",
    "setup.py",
    "tsconfig.json",
    "Cargo.toml",
    ".git",
)


class DiscoveredServer(BaseModel):
    """A file that looks like a launchable service entry point."""

    name: str
    path: str
    launcher: str


def _discover_sync(directory: Path) -> list[DiscoveredServer]:
    if not directory.is_dir():
        return []
    found: list[DiscoveredServer] = []
    for path in sorted(directory.iterdir()):
        launcher = _LAUNCHER_BY_SUFFIX.get(path.suffix.lower())
        if launcher is None or not path.is_file():
            continue
        if any(marker in path.name.lower() for marker in _NAME_MARKERS):
            found.append(DiscoveredServer(name=path.stem, path=str(path), launcher=launcher))
    return found


async def discover_servers(directory: str | Path) -> list[DiscoveredServer]:
    """List ``.js``/``.mjs``/``.py`` files in *directory* named like a server."""
    servers = await asyncio.to_thread(_discover_sync, Path(directory).expanduser())
    logger.debug("servers_discovered", directory=str(directory), count=len(servers))
    return servers


def find_project_root(start: str | Path) -> Path | None:
    """Walk upward from *start* to the nearest directory holding a project marker."""
    current = Path(start).expanduser().resolve()
    if current.is_file():
        current = current.parent
    for candidate in (current, *current.parents):
        if any((candidate / marker).exists() for marker in PROJECT_MARKERS):
            return candidate
    return None
