"""Global policy, security standards and gate decision entities.

:class:`GlobalPolicy` and :class:`SecurityStandards` are persisted as small
JSON documents (camelCase keys) by the policy store.  They are read once per
operation and passed down explicitly; nothing here is process-global.
"""
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

_PERSISTED = {"alias_generator": to_camel, "populate_by_name": True, "extra": "ignore"}


class GlobalPolicy(BaseModel):
    """Deployment policy applied to every scan result.

    Attributes:
        enforced: When False the gate only advises and always accepts.
        minimum_score: Score a scan must reach to be accepted.
        strict_mode: Require every category check to pass as well as the score.
        allowed_bypass: Accept sub-threshold scores at or above ``bypass_floor``
            with a warning (standard mode only).
        bypass_floor: Lowest score the bypass can admit.
        version: Policy document version.
        last_updated: When the policy was last changed.
    """

    enforced: bool = True
    minimum_score: int = Field(default=85, ge=0, le=100)
    strict_mode: bool = False
    allowed_bypass: bool = False
    bypass_floor: int = Field(default=70, ge=0, le=100)
    version: str = "1.0.0"
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = _PERSISTED

    def updated(self, changes: dict[str, Any]) -> GlobalPolicy:
        """Return a validated copy with *changes* applied and a fresh timestamp.

        *changes* may use either snake_case or camelCase keys.  Unknown keys
        raise ``ValueError``.
        """
        known = {name: name for name in type(self).model_fields}
        known.update({to_camel(name): name for name in type(self).model_fields})
        unknown = sorted(k for k in changes if k not in known)
        if unknown:
            raise ValueError(f"Unknown policy field(s): {', '.join(unknown)}")
        merged = self.model_dump()
        merged.update({known[k]: v for k, v in changes.items()})
        merged["last_updated"] = datetime.now(timezone.utc)
        return type(self).model_validate(merged)


class ScoringWeights(BaseModel):
    """Per-finding deductions and per-category caps used by the scorer."""

    dangerous: int = 15
    malicious: int = 20
    suspicious: int = 0
    code_cap: int = 40
    vulnerable: int = 10
    vulnerable_cap: int = 20
    unpinned_group_size: int = Field(default=3, ge=1)
    unpinned_per_group: int = 5
    unpinned_cap: int = 15
    secret: int = 15
    insecure: int = 5
    config_cap: int = 20
    missing_file: int = 10
    path_traversal: int = 5
    insecure_location: int = 5
    permission_cap: int = 10

    model_config = _PERSISTED


def _default_npm_blocklist() -> list[str]:
    return ["crypto-miner", "event-stream", "flatmap-stream", "malicious-package", "moment", "request"]


def _default_pypi_blocklist() -> list[str]:
    return ["colourama", "jeIlyfish", "pycrypto", "python3-dateutil"]


def _default_secure_prefixes() -> list[str]:
    return ["/home/", "/opt/", "/usr/local/", "/Users/", "C:\\Users\\", "C:\\Program Files\\"]


def _default_level_breakpoints() -> dict[str, int]:
    return {"excellent": 95, "good": 85, "fair": 70, "poor": 50}


class SecurityStandards(BaseModel):
    """Data tables consumed by the scanner."""

    vulnerable_npm_packages: list[str] = Field(default_factory=_default_npm_blocklist)
    vulnerable_python_packages: list[str] = Field(default_factory=_default_pypi_blocklist)
    secure_path_prefixes: list[str] = Field(default_factory=_default_secure_prefixes)
    max_scan_depth: int = Field(default=3, ge=0)
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    level_breakpoints: dict[str, int] = Field(default_factory=_default_level_breakpoints)
    version: str = "1.0.0"

    model_config = _PERSISTED


class GateStatus(str, enum.Enum):
    """Outcome of a policy gate evaluation."""

    OPEN = "open"
    BYPASSED = "bypassed"
    ADVISORY = "advisory"
    BLOCKED = "blocked"

    @property
    def allows_passage(self) -> bool:
        """Return True when the gate permits progress."""
        return self is not GateStatus.BLOCKED


class GateDecision(BaseModel):
    """Accept/reject verdict of the policy gate.

    Attributes:
        accept: Whether the deployment may proceed.
        status: Which branch of the gate produced the verdict.
        reason: Human-readable explanation.
        warnings: Non-fatal notes (bypass used, advisory mode...).
        score: Score that was evaluated.
        passed: Category pass flag that was evaluated.
        policy_enforced: Policy ``enforced`` flag at evaluation time.
        strict_mode: Policy ``strict_mode`` flag at evaluation time.
        minimum_score: Threshold at evaluation time.
    """

    accept: bool
    status: GateStatus
    reason: str
    warnings: list[str] = Field(default_factory=list)
    score: int
    passed: bool
    policy_enforced: bool
    strict_mode: bool
    minimum_score: int
