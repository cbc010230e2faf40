"""Registry backup manager."""
from deployguard.engine.backup.manager import BackupManager

__all__ = ["BackupManager"]
