"""Global policy gate -- accept or reject a scan result.

The decision has three independent tiers:

1. ``enforced`` -- when off, always accept and only report what would
   have happened.
2. ``strict_mode`` -- all-or-nothing: every category check must pass *and*
   the score must reach the threshold.
3. ``allowed_bypass`` (standard mode only) -- a sub-threshold score at or
   above the bypass floor is accepted with a warning.

:func:`evaluate_policy` is pure; :class:`PolicyGate` adds logging.
"""
from __future__ import annotations

import structlog

from deployguard.domain.entities.policy import GateDecision, GateStatus, GlobalPolicy
from deployguard.domain.entities.scan_result import ScanResult

logger = structlog.get_logger(__name__)


def failed_categories(scan: ScanResult) -> list[str]:
    cats = scan.categories
    checks = {
        "code_analysis": cats.code_analysis.passed,
        "dependency_check": cats.dependency_check.passed,
        "configuration_check": cats.configuration_check.passed,
        "permission_check": cats.permission_check.passed,
    }
    return [name for name, ok in checks.items() if not ok]


def _enforced_verdict(scan: ScanResult, policy: GlobalPolicy) -> tuple[GateStatus, str, list[str]]:
    score, minimum = scan.score, policy.minimum_score
    if policy.strict_mode:
        if not scan.passed:
            failed = ", ".join(failed_categories(scan)) or "category checks"
            return GateStatus.BLOCKED, f"Strict mode: failed {failed} (score {score}/100)", []
        if score < minimum:
            return GateStatus.BLOCKED, f"Strict mode: score {score} is below the minimum of {minimum}", []
        return GateStatus.OPEN, f"Strict mode: all checks passed with score {score}/100", []

    if score >= minimum:
        return GateStatus.OPEN, f"Score {score} meets the minimum of {minimum}", []
    if policy.allowed_bypass and score >= policy.bypass_floor:
        warning = (
            f"Security bypass used: score {score} is below the minimum of {minimum} "
            f"but at or above the bypass floor of {policy.bypass_floor}"
        )
        return GateStatus.BYPASSED, f"Accepted via bypass with score {score}", [warning]
    return GateStatus.BLOCKED, f"Score {score} is below the minimum of {minimum}", []


def evaluate_policy(scan: ScanResult, policy: GlobalPolicy) -> GateDecision:
    """Return the gate verdict for *scan* under *policy*."""
    status, reason, warnings = _enforced_verdict(scan, policy)
    if not policy.enforced:
        would = "would have passed" if status.allows_passage else "would have been rejected"
        reason = f"Security policy not enforced; score {scan.score}/100 {would} ({reason})"
        warnings = ["Security policy is in advisory mode"]
        status = GateStatus.ADVISORY

    return GateDecision(
        accept=status.allows_passage,
        status=status,
        reason=reason,
        warnings=warnings,
        score=scan.score,
        passed=scan.passed,
        policy_enforced=policy.enforced,
        strict_mode=policy.strict_mode,
        minimum_score=policy.minimum_score,
    )


class PolicyGate:
    """Evaluates scan results against an explicitly supplied policy."""

    def __init__(self) -> None:
        self.log = structlog.get_logger(self.__class__.__name__)

    def evaluate(self, scan: ScanResult, policy: GlobalPolicy) -> GateDecision:
        decision = evaluate_policy(scan, policy)
        log = self.log.info if decision.accept else self.log.warning
        log(
            "policy_gate_evaluated",
            target=scan.target,
            status=decision.status.value,
            accept=decision.accept,
            score=scan.score,
            passed=scan.passed,
            minimum_score=policy.minimum_score,
            strict_mode=policy.strict_mode,
        )
        return decision
