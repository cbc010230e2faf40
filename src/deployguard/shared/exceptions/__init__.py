"""Exception hierarchy for DeployGuard.

Every exception carries a machine-readable ``error_code``, a ``severity``
indicator and an arbitrary ``context`` dict for structured logging.  The
orchestrator and the application facade translate the expected kinds
(validation, backup, not-found) into
result objects; everything else propagates to the caller.
"""
from __future__ import annotations

from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Severity levels
# ---------------------------------------------------------------------------

class Severity(str, Enum):
    """Severity levels for DeployGuard exceptions."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class DeployGuardError(Exception):
    """Root exception for every DeployGuard failure.

    Attributes:
        message:    Human-readable description.
        error_code: Machine-readable code (e.g. ``"DG_CONFLICT"``).
        severity:   Impact severity.
        context:    Arbitrary key-value context for structured logging.
    """

    def __init__(
        self,
        message: str = "DeployGuard error",
        error_code: str = "DG_ERROR",
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.context: dict[str, Any] = context or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}("
            f"error_code={self.error_code!r}, "
            f"severity={self.severity.value!r}, "
            f"message={self.message!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise the exception for structured output."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
        }


# ---------------------------------------------------------------------------
# Registry exceptions
# ---------------------------------------------------------------------------

class RegistryError(DeployGuardError):
    """Raised when a registry document operation fails."""

    def __init__(self, message: str = "Registry operation failed", **kwargs: Any) -> None:
        super().__init__(message, error_code=kwargs.pop("error_code", "DG_REGISTRY_ERROR"), **kwargs)


class ValidationError(RegistryError):
    """Raised when one or more registry entries fail validation.

    Nothing is written when this is raised.  ``violations`` lists every
    problem found, not just the first.
    """

    def __init__(
        self,
        message: str = "Registry validation failed",
        violations: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        self.violations: list[str] = list(violations or [])
        context = kwargs.pop("context", None) or {}
        context.setdefault("violations", self.violations)
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "DG_VALIDATION_ERROR"),
            context=context,
            **kwargs,
        )


class NotFoundError(RegistryError):
    """Raised when a remove or restore target does not exist."""

    def __init__(self, message: str = "Target not found", **kwargs: Any) -> None:
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "DG_NOT_FOUND"),
            severity=kwargs.pop("severity", Severity.LOW),
            **kwargs,
        )


class RegistryCorruptError(RegistryError):
    """Raised when the live registry file is not a JSON object of the expected shape."""

    def __init__(self, message: str = "Registry file is corrupt", **kwargs: Any) -> None:
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "DG_REGISTRY_CORRUPT"),
            severity=kwargs.pop("severity", Severity.CRITICAL),
            **kwargs,
        )


class RegistryLockError(RegistryError):
    """Raised when the advisory registry lock cannot be acquired in time."""

    def __init__(self, message: str = "Registry lock could not be acquired", **kwargs: Any) -> None:
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "DG_REGISTRY_LOCKED"),
            severity=kwargs.pop("severity", Severity.HIGH),
            **kwargs,
        )


# ---------------------------------------------------------------------------
# Backup exceptions
# ---------------------------------------------------------------------------

class BackupError(DeployGuardError):
    """Raised when a backup operation fails."""

    def __init__(self, message: str = "Backup operation failed", **kwargs: Any) -> None:
        super().__init__(message, error_code=kwargs.pop("error_code", "DG_BACKUP_ERROR"), **kwargs)


class BackupFailure(BackupError):
    """Raised when a snapshot of the registry cannot be taken.

    Mutations never proceed after this is raised.
    """

    def __init__(self, message: str = "Unable to create registry backup", **kwargs: Any) -> None:
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "DG_BACKUP_FAILED"),
            severity=kwargs.pop("severity", Severity.HIGH),
            **kwargs,
        )


# ---------------------------------------------------------------------------
# Policy exceptions
# ---------------------------------------------------------------------------

class PolicyError(DeployGuardError):
    """Raised when a policy operation fails."""

    def __init__(self, message: str = "Policy operation failed", **kwargs: Any) -> None:
        super().__init__(message, error_code=kwargs.pop("error_code", "DG_POLICY_ERROR"), **kwargs)


# ---------------------------------------------------------------------------
# Scanning exceptions
# ---------------------------------------------------------------------------

class ScanError(DeployGuardError):
    """Raised when a security scan encounters an irrecoverable problem."""

    def __init__(self, message: str = "Scan failed", **kwargs: Any) -> None:
        super().__init__(message, error_code=kwargs.pop("error_code", "DG_SCAN_ERROR"), **kwargs)


class BuildTimeoutError(ScanError):
    """Raised when a caller-provided build command exceeds its wall-clock limit."""

    def __init__(self, message: str = "Build command timed out", **kwargs: Any) -> None:
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "DG_BUILD_TIMEOUT"),
            severity=kwargs.pop("severity", Severity.HIGH),
            **kwargs,
        )


# ---------------------------------------------------------------------------
# Configuration exceptions
# ---------------------------------------------------------------------------

class ConfigurationError(DeployGuardError):
    """Raised for invalid or missing configuration."""

    def __init__(self, message: str = "Invalid configuration", **kwargs: Any) -> None:
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "DG_CONFIG_ERROR"),
            severity=kwargs.pop("severity", Severity.HIGH),
            **kwargs,
        )


__all__ = [
    "Severity",
    "DeployGuardError",
    "RegistryError",
    "ValidationError",
    "NotFoundError",
    "RegistryCorruptError",
    "RegistryLockError",
    "BackupError",
    "BackupFailure",
    "PolicyError",
    "ScanError",
    "BuildTimeoutError",
    "ConfigurationError",
]
