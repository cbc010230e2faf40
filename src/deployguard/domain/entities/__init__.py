"""Domain entities."""
from deployguard.domain.entities.backup import BackupRecord
from deployguard.domain.entities.policy import (
    GateDecision,
    GateStatus,
    GlobalPolicy,
    ScoringWeights,
    SecurityStandards,
)
from deployguard.domain.entities.results import (
    BackupResult,
    DeploymentResult,
    DeploymentStage,
    OperationResult,
    ResultKind,
)
from deployguard.domain.entities.scan_result import (
    CodeAnalysisResult,
    ConfigurationCheckResult,
    DependencyCheckResult,
    Finding,
    PermissionCheckResult,
    ScanCategories,
    ScanCategory,
    ScanResult,
)
from deployguard.domain.entities.service_descriptor import RegistryDocument, ServiceDescriptor

__all__ = [
    "BackupRecord",
    "BackupResult",
    "CodeAnalysisResult",
    "ConfigurationCheckResult",
    "DependencyCheckResult",
    "DeploymentResult",
    "DeploymentStage",
    "Finding",
    "GateDecision",
    "GateStatus",
    "GlobalPolicy",
    "OperationResult",
    "PermissionCheckResult",
    "RegistryDocument",
    "ResultKind",
    "ScanCategories",
    "ScanCategory",
    "ScanResult",
    "ScoringWeights",
    "SecurityStandards",
    "ServiceDescriptor",
]
