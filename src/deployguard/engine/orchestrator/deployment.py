"""Protected deployment orchestrator -- state machine around every registry mutation.

Deployment:

    START → BACKUP → CONFLICT_CHECK → SECURITY_GATE → WRITE → VERIFY → SUCCESS

with early exits to ``REJECTED_BACKUP``, ``REJECTED_CONFLICT``,
``REJECTED_POLICY``, ``REJECTED_VALIDATION`` and ``FAILED_VERIFICATION``.
Removal runs the same sequence without the security gate and exits to
``REJECTED_NOT_FOUND`` when the entry is absent.

The orchestrator owns no persistent state.  It sequences the registry
store, the backup manager, the scanner and the policy gate, and holds the
advisory registry lock from BACKUP through VERIFY.  Expected failures come
back as :class:`DeploymentResult` values; lock timeouts, corrupt registry
files and OS-level I/O faults propagate.
"""
from __future__ import annotations

import contextlib
import time
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel

from deployguard.domain.entities.policy import GlobalPolicy
from deployguard.domain.entities.results import (
    BackupResult,
    DeploymentResult,
    DeploymentStage,
    ResultKind,
)
from deployguard.domain.entities.service_descriptor import ServiceDescriptor
from deployguard.engine.backup.manager import BackupManager
from deployguard.engine.enforcer.policy_gate import PolicyGate
from deployguard.engine.registry.store import RegistryStore
from deployguard.engine.registry.validation import is_absolute_command
from deployguard.engine.scanner.security_scanner import SecurityScanner
from deployguard.infrastructure.logging import audit_log
from deployguard.shared.exceptions import (
    BackupError,
    BackupFailure,
    DeployGuardError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

S = DeploymentStage

_TRANSITIONS: dict[DeploymentStage, frozenset[DeploymentStage]] = {
    S.START: frozenset({S.BACKUP}),
    S.BACKUP: frozenset({S.CONFLICT_CHECK, S.REJECTED_BACKUP}),
    S.CONFLICT_CHECK: frozenset({S.SECURITY_GATE, S.WRITE, S.REJECTED_CONFLICT, S.REJECTED_NOT_FOUND}),
    S.SECURITY_GATE: frozenset({S.WRITE, S.REJECTED_POLICY}),
    S.WRITE: frozenset({S.VERIFY, S.REJECTED_VALIDATION}),
    S.VERIFY: frozenset({S.SUCCESS, S.FAILED_VERIFICATION}),
    S.SUCCESS: frozenset(),
    S.REJECTED_BACKUP: frozenset(),
    S.REJECTED_CONFLICT: frozenset(),
    S.REJECTED_NOT_FOUND: frozenset(),
    S.REJECTED_POLICY: frozenset(),
    S.REJECTED_VALIDATION: frozenset(),
    S.FAILED_VERIFICATION: frozenset(),
}


class InvalidTransitionError(DeployGuardError):
    """Raised when the state machine is driven along an undefined edge."""

    def __init__(self, message: str = "Invalid deployment state transition", **kwargs: Any) -> None:
        super().__init__(message, error_code=kwargs.pop("error_code", "DG_INVALID_TRANSITION"), **kwargs)


class DeployOptions(BaseModel):
    """Caller options for a deployment.

    Attributes:
        override: Replace an existing entry of the same name.
        executable_path: File to scan instead of the one inferred from the
            command line.
        project_root: Project tree to include in the scan.
    """

    override: bool = False
    executable_path: str | None = None
    project_root: str | None = None


def scan_target(descriptor: ServiceDescriptor, options: DeployOptions) -> str:
    """Pick the file to scan: explicit path, absolute command, else the first argument."""
    if options.executable_path:
        candidate = options.executable_path
    elif is_absolute_command(descriptor.command):
        candidate = descriptor.command
    elif descriptor.args:
        candidate = descriptor.args[0]
    else:
        candidate = descriptor.command
    if options.project_root and not Path(candidate).expanduser().is_absolute() and not candidate.startswith("~"):
        return str(Path(options.project_root).expanduser() / candidate)
    return candidate


class _Attempt:
    """Tracks the state of one orchestrated operation."""

    def __init__(self, operation: str, name: str) -> None:
        self.operation = operation
        self.name = name
        self.stage = S.START
        self.started = time.monotonic()

    def advance(self, target: DeploymentStage) -> None:
        allowed = _TRANSITIONS.get(self.stage, frozenset())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from {self.stage.value} to {target.value}. "
                f"Allowed: {', '.join(s.value for s in allowed) or 'none'}"
            )
        previous, self.stage = self.stage, target
        logger.debug(
            "deployment_transition",
            operation=self.operation,
            name=self.name,
            from_stage=previous.value,
            to_stage=target.value,
        )

    def finish(self, stage: DeploymentStage, kind: ResultKind, message: str, **fields: Any) -> DeploymentResult:
        self.advance(stage)
        result = DeploymentResult(name=self.name, stage=stage, kind=kind, message=message, **fields)
        log = logger.info if kind is ResultKind.SUCCESS else logger.warning
        log(
            "deployment_finished",
            operation=self.operation,
            name=self.name,
            stage=stage.value,
            kind=kind.value,
            duration_ms=round((time.monotonic() - self.started) * 1000, 2),
        )
        return result


class DeploymentOrchestrator:
    """Runs deploy, remove and restore under the backup-before-mutate discipline.

    Args:
        store: Owner of the live registry file.
        backups: Owner of the backup directory.
        scanner: Static security scanner.
        gate: Policy gate.
        lock_factory: Returns a fresh async context manager guarding the
            mutation span.  Defaults to no locking.
    """

    def __init__(
        self,
        store: RegistryStore,
        backups: BackupManager,
        scanner: SecurityScanner,
        gate: PolicyGate | None = None,
        lock_factory: Callable[[], AbstractAsyncContextManager[Any]] | None = None,
    ) -> None:
        self.store = store
        self.backups = backups
        self.scanner = scanner
        self.gate = gate or PolicyGate()
        self._lock_factory = lock_factory or contextlib.nullcontext

    # -- deploy --------------------------------------------------------------

    async def deploy(
        self,
        descriptor: ServiceDescriptor,
        policy: GlobalPolicy,
        options: DeployOptions | None = None,
    ) -> DeploymentResult:
        """Add or (with override) replace one registry entry."""
        options = options or DeployOptions()
        attempt = _Attempt("deploy", descriptor.name)

        async with self._lock_factory():
            document = await self.store.read()

            attempt.advance(S.BACKUP)
            try:
                backup = await self.backups.create_backup(comment=f"pre-deploy of {descriptor.name}")
            except BackupFailure as exc:
                return attempt.finish(
                    S.REJECTED_BACKUP,
                    ResultKind.BACKUP_FAILED,
                    f"Deployment aborted: {exc.message}. No change was made; fix the backup "
                    "directory and retry.",
                    errors=[exc.message],
                )

            attempt.advance(S.CONFLICT_CHECK)
            overwritten = document.has(descriptor.name)
            warnings: list[str] = []
            if overwritten and not options.override:
                return attempt.finish(
                    S.REJECTED_CONFLICT,
                    ResultKind.CONFLICT,
                    f"Entry '{descriptor.name}' already exists. Remove it first or redeploy with override "
                    "enabled to replace it.",
                    errors=[f"entry '{descriptor.name}' already exists"],
                    warnings=[
                        f"remove '{descriptor.name}' before deploying again",
                        "or pass override=True to replace the existing entry",
                    ],
                    backup=backup,
                )
            if overwritten:
                warnings.append(f"existing entry '{descriptor.name}' will be replaced (override)")

            attempt.advance(S.SECURITY_GATE)
            target = scan_target(descriptor, options)
            scan = await self.scanner.scan(target, options.project_root)
            decision = self.gate.evaluate(scan, policy)
            warnings.extend(decision.warnings)
            if not decision.accept:
                return attempt.finish(
                    S.REJECTED_POLICY,
                    ResultKind.POLICY_REJECTED,
                    f"Rejected by global security policy: {decision.reason}. Fix the reported findings "
                    "and rescan, or adjust the policy.",
                    errors=[decision.reason, *scan.errors],
                    warnings=[*warnings, *scan.warnings],
                    backup=backup,
                    scan=scan,
                    gate=decision,
                )

            attempt.advance(S.WRITE)
            try:
                await self.store.write(document.with_entry(descriptor))
            except ValidationError as exc:
                return attempt.finish(
                    S.REJECTED_VALIDATION,
                    ResultKind.VALIDATION_FAILED,
                    f"Registry validation failed; nothing was written. Fix these problems: "
                    f"{'; '.join(exc.violations)}",
                    errors=exc.violations,
                    warnings=warnings,
                    backup=backup,
                    scan=scan,
                    gate=decision,
                )

            attempt.advance(S.VERIFY)
            expected = descriptor.to_registry()
            actual = (await self.store.read()).get(descriptor.name)
            if actual != expected:
                logger.error(
                    "write_verification_failed",
                    name=descriptor.name,
                    expected=expected,
                    actual=actual,
                    registry_path=str(self.store.path),
                    backup=backup.filename,
                )
                return attempt.finish(
                    S.FAILED_VERIFICATION,
                    ResultKind.WRITE_VERIFICATION_FAILED,
                    f"Write of '{descriptor.name}' could not be verified; the registry may be corrupt. "
                    f"Restore from backup '{backup.filename}'.",
                    errors=["post-write read-back does not match the written entry"],
                    warnings=warnings,
                    data={"expected": expected, "actual": actual},
                    backup=backup,
                    scan=scan,
                    gate=decision,
                )

        audit_log(
            "deploy",
            name=descriptor.name,
            overwritten=overwritten,
            score=scan.score,
            gate=decision.status.value,
            backup=backup.filename,
        )
        return attempt.finish(
            S.SUCCESS,
            ResultKind.SUCCESS,
            f"Entry '{descriptor.name}' deployed (score {scan.score}/100, {decision.status.value}).",
            warnings=warnings,
            overwritten=overwritten,
            backup=backup,
            scan=scan,
            gate=decision,
        )

    # -- remove --------------------------------------------------------------

    async def remove(self, name: str) -> DeploymentResult:
        """Delete one registry entry after taking a backup."""
        attempt = _Attempt("remove", name)

        async with self._lock_factory():
            document = await self.store.read()

            attempt.advance(S.BACKUP)
            try:
                backup = await self.backups.create_backup(comment=f"pre-remove of {name}")
            except BackupFailure as exc:
                return attempt.finish(
                    S.REJECTED_BACKUP,
                    ResultKind.BACKUP_FAILED,
                    f"Removal aborted: {exc.message}. No change was made.",
                    errors=[exc.message],
                )

            attempt.advance(S.CONFLICT_CHECK)
            if not document.has(name):
                return attempt.finish(
                    S.REJECTED_NOT_FOUND,
                    ResultKind.NOT_FOUND,
                    f"Entry '{name}' not found; list entries to see what is registered.",
                    errors=[f"entry '{name}' not found"],
                    backup=backup,
                )

            attempt.advance(S.WRITE)
            try:
                await self.store.write(document.without_entry(name))
            except ValidationError as exc:
                return attempt.finish(
                    S.REJECTED_VALIDATION,
                    ResultKind.VALIDATION_FAILED,
                    "Removal would leave an invalid registry; nothing was written. Fix these problems: "
                    f"{'; '.join(exc.violations)}",
                    errors=exc.violations,
                    backup=backup,
                )

            attempt.advance(S.VERIFY)
            if (await self.store.read()).has(name):
                logger.error("write_verification_failed", name=name, registry_path=str(self.store.path))
                return attempt.finish(
                    S.FAILED_VERIFICATION,
                    ResultKind.WRITE_VERIFICATION_FAILED,
                    f"Entry '{name}' is still present after removal; restore from backup '{backup.filename}'.",
                    errors=["post-write read-back still contains the removed entry"],
                    backup=backup,
                )

        audit_log("remove", name=name, backup=backup.filename)
        return attempt.finish(
            S.SUCCESS,
            ResultKind.SUCCESS,
            f"Entry '{name}' removed.",
            backup=backup,
        )

    # -- restore -------------------------------------------------------------

    async def restore(self, backup_name: str) -> BackupResult:
        """Replace the live registry with a snapshot, snapshotting the current state first."""
        async with self._lock_factory():
            try:
                pre_restore = await self.backups.restore_from_backup(backup_name)
            except NotFoundError as exc:
                return BackupResult(kind=ResultKind.NOT_FOUND, message=exc.message, errors=[exc.message])
            except BackupFailure as exc:
                return BackupResult(
                    kind=ResultKind.BACKUP_FAILED,
                    message=f"Restore aborted: {exc.message}. The current registry was not changed.",
                    errors=[exc.message],
                )
            except BackupError as exc:
                return BackupResult(
                    kind=ResultKind.VALIDATION_FAILED,
                    message=f"Restore aborted: {exc.message}. Choose another backup.",
                    errors=[exc.message],
                )

        return BackupResult(
            message=f"Registry restored from '{backup_name}'.",
            record=pre_restore,
            backup_path=str(self.backups.backup_dir / backup_name),
            data={"pre_restore_backup": pre_restore.filename if pre_restore else None},
        )
