"""Shared fixtures for the DeployGuard test suites."""
from __future__ import annotations

import json
import os
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
import structlog

from deployguard.application.service import DeployGuardService
from deployguard.config import Settings
from deployguard.domain.entities.policy import GlobalPolicy, SecurityStandards
from deployguard.engine.backup.manager import BackupManager
from deployguard.engine.registry.store import RegistryStore
from deployguard.engine.scanner.security_scanner import SecurityScanner


@pytest.fixture(autouse=True, scope="session")
def _route_structlog_through_stdlib() -> Iterator[None]:
    # Keep log output off stdout so CLI tests can parse it.
    structlog.configure(
        processors=[structlog.stdlib.add_log_level, structlog.processors.JSONRenderer()],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def registry_path(tmp_path: Path) -> Path:
    return tmp_path / "cursor" / "mcp.json"


@pytest.fixture
def backup_dir(registry_path: Path) -> Path:
    return registry_path.parent / "mcp-backups"


@pytest.fixture
def settings(tmp_path: Path, registry_path: Path) -> Settings:
    return Settings(
        registry_path=registry_path,
        policy_dir=tmp_path / "policy",
        max_backups=5,
        lock_timeout_seconds=2.0,
        build_timeout_seconds=5.0,
    )


@pytest.fixture
def service(settings: Settings) -> DeployGuardService:
    return DeployGuardService(settings)


@pytest.fixture
def advisory_policy(settings: Settings) -> GlobalPolicy:
    """Persist a policy with enforcement switched off."""
    policy = GlobalPolicy(enforced=False)
    settings.policy_dir.mkdir(parents=True, exist_ok=True)
    settings.policy_path.write_text(json.dumps(policy.model_dump(mode="json", by_alias=True)))
    return policy


@pytest.fixture
def store(registry_path: Path) -> RegistryStore:
    return RegistryStore(registry_path)


@pytest.fixture
def backups(registry_path: Path, backup_dir: Path) -> BackupManager:
    return BackupManager(registry_path, backup_dir, max_backups=3)


@pytest.fixture
def trusted_standards(tmp_path: Path) -> SecurityStandards:
    """Standards that treat the test's temporary directory as a secure location."""
    return SecurityStandards(secure_path_prefixes=[str(tmp_path)])


@pytest.fixture
def scanner(trusted_standards: SecurityStandards) -> SecurityScanner:
    return SecurityScanner(trusted_standards)


@pytest.fixture
def make_script(tmp_path: Path) -> Callable[..., Path]:
    """Write an executable file under the temporary directory."""

    def _make(name: str, content: str, executable: bool = True) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        if executable:
            os.chmod(path, 0o755)
        return path

    return _make
