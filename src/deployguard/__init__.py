"""DeployGuard -- protected deployment of service registry entries.

Static security scanning, a global policy gate, backup-before-mutate and
atomic writes for a shared JSON service registry.
"""

__version__ = "1.0.0"
