"""Result shapes returned by caller-facing operations.

Every operation returns an :class:`OperationResult` (or a subclass) tagged
with a :class:`ResultKind`.  Expected failure modes are results, not
exceptions.
"""
from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from deployguard.domain.entities.backup import BackupRecord
from deployguard.domain.entities.policy import GateDecision
from deployguard.domain.entities.scan_result import ScanResult


class ResultKind(StrEnum):
    """Tag identifying which outcome an operation produced."""

    SUCCESS = "success"
    BACKUP_FAILED = "backup_failed"
    CONFLICT = "conflict"
    POLICY_REJECTED = "policy_rejected"
    VALIDATION_FAILED = "validation_failed"
    WRITE_VERIFICATION_FAILED = "write_verification_failed"
    NOT_FOUND = "not_found"


class DeploymentStage(StrEnum):
    """States of the protected deployment state machine."""

    START = "start"
    BACKUP = "backup"
    CONFLICT_CHECK = "conflict_check"
    SECURITY_GATE = "security_gate"
    WRITE = "write"
    VERIFY = "verify"
    SUCCESS = "success"
    REJECTED_BACKUP = "rejected_backup"
    REJECTED_CONFLICT = "rejected_conflict"
    REJECTED_NOT_FOUND = "rejected_not_found"
    REJECTED_POLICY = "rejected_policy"
    REJECTED_VALIDATION = "rejected_validation"
    FAILED_VERIFICATION = "failed_verification"


class OperationResult(BaseModel):
    """Shared shape of every operation outcome.

    Attributes:
        kind: Which outcome this is.
        message: Human-readable summary, including remediation on failure.
        errors: Structured error descriptions.
        warnings: Non-fatal notes.
        data: Operation-specific payload.
    """

    kind: ResultKind = ResultKind.SUCCESS
    message: str = ""
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.kind is ResultKind.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json")
        payload["success"] = self.success
        return payload


class DeploymentResult(OperationResult):
    """Outcome of a deploy or remove call.

    Attributes:
        name: Entry the operation targeted.
        stage: Terminal state the state machine reached.
        overwritten: An existing entry was replaced via override.
        backup: Snapshot taken before the mutation, if any.
        scan: Scan result, when the security gate ran.
        gate: Gate verdict, when the security gate ran.
    """

    name: str
    stage: DeploymentStage = DeploymentStage.START
    overwritten: bool = False
    backup: BackupRecord | None = None
    scan: ScanResult | None = None
    gate: GateDecision | None = None


class BackupResult(OperationResult):
    """Outcome of a backup or restore call."""

    record: BackupRecord | None = None
    backup_path: str | None = None
