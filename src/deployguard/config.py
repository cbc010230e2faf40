"""Centralized configuration for DeployGuard."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """DeployGuard configuration loaded from ``DEPLOYGUARD_*`` environment variables."""

    # Registry
    registry_path: Path = Field(default_factory=lambda: Path.home() / ".cursor" / "mcp.json")
    registry_key: str = "mcpServers"

    # Backups
    backup_dir: Path | None = None
    max_backups: int = Field(default=10, ge=1)

    # Policy / standards
    policy_dir: Path = Field(default_factory=lambda: Path.home() / ".deployguard")

    # Concurrency
    lock_enabled: bool = True
    lock_timeout_seconds: float = Field(default=10.0, gt=0)

    # Build-time checks
    build_timeout_seconds: float = Field(default=600.0, gt=0)

    # Logging
    log_level: str = "info"
    log_json: bool = False
    log_file: str | None = None

    model_config = {"env_prefix": "DEPLOYGUARD_", "env_file": ".env", "extra": "ignore"}

    @field_validator("registry_path", "backup_dir", "policy_dir", mode="after")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None

    @property
    def resolved_backup_dir(self) -> Path:
        """Backup directory, defaulting to ``mcp-backups`` beside the registry."""
        if self.backup_dir is not None:
            return self.backup_dir
        return self.registry_path.parent / "mcp-backups"

    @property
    def policy_path(self) -> Path:
        return self.policy_dir / "global-security-policy.json"

    @property
    def standards_path(self) -> Path:
        return self.policy_dir / "global-security-standards.json"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings()
