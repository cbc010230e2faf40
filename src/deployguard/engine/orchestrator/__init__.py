"""Protected deployment orchestrator."""
from deployguard.engine.orchestrator.deployment import (
    DeploymentOrchestrator,
    DeployOptions,
    InvalidTransitionError,
    scan_target,
)

__all__ = ["DeploymentOrchestrator", "DeployOptions", "InvalidTransitionError", "scan_target"]
