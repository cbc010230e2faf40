"""Application layer: the caller-facing service facade."""
from deployguard.application.service import DeployGuardService

__all__ = ["DeployGuardService"]
