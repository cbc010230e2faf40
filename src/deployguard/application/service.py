"""Caller-facing facade over the DeployGuard engine.

Each method is one caller operation.  Expected failure modes (conflict,
policy rejection, validation failure, missing targets, backup failure) come
back as result objects with remediation text; only exceptional faults such
as OS-level I/O errors, a corrupt registry file or a lock timeout raise.

The global policy and the security standards are read once per operation
and passed down explicitly.
"""
from __future__ import annotations

import contextlib
import platform
import sys
import uuid
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from deployguard.config import Settings, get_settings
from deployguard.domain.entities.policy import GlobalPolicy
from deployguard.domain.entities.results import (
    BackupResult,
    DeploymentResult,
    OperationResult,
    ResultKind,
)
from deployguard.domain.entities.scan_result import ScanResult
from deployguard.domain.entities.service_descriptor import ServiceDescriptor
from deployguard.engine.backup.manager import BackupManager
from deployguard.engine.discovery import discover_servers, find_project_root
from deployguard.engine.enforcer.policy_gate import PolicyGate
from deployguard.engine.enforcer.policy_store import PolicyStore
from deployguard.engine.orchestrator.deployment import DeploymentOrchestrator, DeployOptions
from deployguard.engine.registry.lock import RegistryLock
from deployguard.engine.registry.store import RegistryStore
from deployguard.engine.registry.validation import validate_document
from deployguard.engine.scanner.build_check import BuildChecker, BuildCheckReport
from deployguard.engine.scanner.security_scanner import SecurityScanner
from deployguard.infrastructure.logging import bind_operation, clear_operation
from deployguard.shared.exceptions import BackupFailure, PolicyError

logger = structlog.get_logger(__name__)


@contextlib.asynccontextmanager
async def _operation(name: str) -> AsyncIterator[str]:
    operation_id = uuid.uuid4().hex[:12]
    bind_operation(operation_id, name)
    try:
        yield operation_id
    finally:
        clear_operation()


class DeployGuardService:
    """Wires the registry store, backup manager, policy store, scanner and orchestrator.

    Args:
        settings: Resolved configuration.  Defaults to :func:`get_settings`.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        s = self.settings
        self.store = RegistryStore(s.registry_path, s.registry_key)
        self.backups = BackupManager(s.registry_path, s.resolved_backup_dir, s.max_backups, s.registry_key)
        self.policy_store = PolicyStore(s.policy_path, s.standards_path)
        self.gate = PolicyGate()

    def _lock(self) -> AbstractAsyncContextManager[Any]:
        if not self.settings.lock_enabled:
            return contextlib.nullcontext()
        return RegistryLock(self.settings.registry_path, timeout=self.settings.lock_timeout_seconds)

    async def _scanner(self) -> SecurityScanner:
        return SecurityScanner(await self.policy_store.load_standards())

    async def _orchestrator(self) -> DeploymentOrchestrator:
        return DeploymentOrchestrator(
            store=self.store,
            backups=self.backups,
            scanner=await self._scanner(),
            gate=self.gate,
            lock_factory=self._lock,
        )

    # -- registry mutations --------------------------------------------------

    async def deploy(
        self,
        name: str,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        disabled: bool = False,
        auto_approve: list[str] | None = None,
        options: DeployOptions | None = None,
    ) -> DeploymentResult:
        """Deploy one entry through the protected workflow."""
        async with _operation("deploy"):
            try:
                descriptor = ServiceDescriptor(
                    name=name,
                    command=command,
                    args=list(args or []),
                    env=env,
                    disabled=disabled,
                    auto_approve=auto_approve,
                )
            except PydanticValidationError as exc:
                problems = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
                return DeploymentResult(
                    name=str(name),
                    kind=ResultKind.VALIDATION_FAILED,
                    message="Invalid service descriptor; nothing was changed.",
                    errors=problems,
                )
            policy = await self.policy_store.load_policy()
            orchestrator = await self._orchestrator()
            return await orchestrator.deploy(descriptor, policy, options)

    async def remove(self, name: str) -> DeploymentResult:
        """Remove one entry, taking a backup first."""
        async with _operation("remove"):
            orchestrator = await self._orchestrator()
            return await orchestrator.remove(name)

    async def restore(self, backup_name: str) -> BackupResult:
        """Restore the registry from a named backup."""
        async with _operation("restore"):
            orchestrator = await self._orchestrator()
            return await orchestrator.restore(backup_name)

    async def backup(self, comment: str | None = None) -> BackupResult:
        """Take a snapshot of the registry on demand."""
        async with _operation("backup"), self._lock():
            try:
                record = await self.backups.create_backup(comment=comment)
            except BackupFailure as exc:
                return BackupResult(kind=ResultKind.BACKUP_FAILED, message=exc.message, errors=[exc.message])
            return BackupResult(
                message=f"Backup '{record.filename}' created ({record.entry_count} entries).",
                record=record,
                backup_path=record.path,
            )

    # -- read-only -----------------------------------------------------------

    async def list_entries(self) -> OperationResult:
        entries = await self.store.list_entries()
        return OperationResult(message=f"{len(entries)} registry entries", data={"entries": entries})

    async def list_backups(self) -> OperationResult:
        records = await self.backups.list_backups()
        return OperationResult(
            message=f"{len(records)} backup(s)",
            data={"backups": [r.model_dump(mode="json") for r in records]},
        )

    async def scan(self, path: str, project_root: str | None = None) -> ScanResult:
        """Scan a candidate executable without deploying it."""
        async with _operation("scan"):
            scanner = await self._scanner()
            return await scanner.scan(path, project_root)

    async def validate(self) -> OperationResult:
        """Validate the live registry without writing anything."""
        document = await self.store.read()
        violations = validate_document(document)
        if violations:
            return OperationResult(
                kind=ResultKind.VALIDATION_FAILED,
                message=f"Registry has {len(violations)} violation(s)",
                errors=violations,
                data={"entry_count": len(document.entries)},
            )
        return OperationResult(message="Registry is valid", data={"entry_count": len(document.entries)})

    async def status(self) -> OperationResult:
        exists = self.store.exists()
        entry_count = len((await self.store.read()).entries) if exists else 0
        backups = await self.backups.list_backups()
        return OperationResult(
            message="ok",
            data={
                "registry_path": str(self.store.path),
                "registry_exists": exists,
                "entry_count": entry_count,
                "backup_dir": str(self.backups.backup_dir),
                "backup_count": len(backups),
                "last_backup": backups[0].timestamp.isoformat() if backups else None,
                "platform": sys.platform,
                "python_version": platform.python_version(),
            },
        )

    async def discover(self, directory: str) -> OperationResult:
        servers = await discover_servers(directory)
        root = find_project_root(directory)
        return OperationResult(
            message=f"{len(servers)} candidate server(s)",
            data={
                "servers": [s.model_dump() for s in servers],
                "project_root": str(root) if root else None,
            },
        )

    async def build_check(
        self,
        project_dir: str,
        build_command: str | None = None,
        output_dir: str | None = "dist",
    ) -> BuildCheckReport:
        """Scan, optionally build, and rescan a project.

        Raises:
            BuildTimeoutError: The build exceeded ``build_timeout_seconds``.
        """
        async with _operation("build_check"):
            checker = BuildChecker(await self._scanner(), timeout_seconds=self.settings.build_timeout_seconds)
            return await checker.check(project_dir, build_command, output_dir)

    # -- policy --------------------------------------------------------------

    async def get_policy(self) -> GlobalPolicy:
        return await self.policy_store.load_policy()

    async def set_policy(self, changes: dict[str, Any]) -> OperationResult:
        """Apply a partial policy update."""
        try:
            policy = await self.policy_store.update_policy(changes)
        except PolicyError as exc:
            logger.warning("policy_update_rejected", error=exc.message)
            return OperationResult(kind=ResultKind.VALIDATION_FAILED, message=exc.message, errors=[exc.message])
        return OperationResult(message="Policy updated", data={"policy": policy.model_dump(mode="json")})

    async def enable_policy(self, strict: bool = False) -> OperationResult:
        policy = await self.policy_store.enable(strict)
        mode = "strict" if strict else "standard"
        return OperationResult(
            message=f"Security policy enforced in {mode} mode (minimum score {policy.minimum_score})",
            data={"policy": policy.model_dump(mode="json")},
        )

    async def disable_policy(self) -> OperationResult:
        policy = await self.policy_store.disable()
        return OperationResult(
            message="Security policy set to advisory mode",
            warnings=["deployments will no longer be blocked by scan results"],
            data={"policy": policy.model_dump(mode="json")},
        )

    async def policy_status(self) -> OperationResult:
        return OperationResult(message="ok", data=await self.policy_store.status())
