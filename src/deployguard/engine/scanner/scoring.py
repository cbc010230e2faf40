"""Weighted scoring of scan categories.

The score starts at 100 and loses a capped deduction per category.
Deductions apply whether or not the category check failed, and every
deduction is non-negative, so adding a finding can never raise the score.
"""
from __future__ import annotations

from deployguard.domain.entities.policy import ScoringWeights, SecurityStandards
from deployguard.domain.entities.scan_result import ScanCategories
from deployguard.domain.value_objects.severity import SecurityLevel

MAX_SCORE = 100


def code_deduction(categories: ScanCategories, w: ScoringWeights) -> int:
    code = categories.code_analysis
    raw = (
        len(code.dangerous) * w.dangerous
        + len(code.malicious) * w.malicious
        + len(code.suspicious) * w.suspicious
    )
    return min(w.code_cap, max(0, raw))


def dependency_deduction(categories: ScanCategories, w: ScoringWeights) -> int:
    deps = categories.dependency_check
    vulnerable = min(w.vulnerable_cap, max(0, len(deps.vulnerable) * w.vulnerable))
    groups = len(deps.unpinned) // w.unpinned_group_size
    unpinned = min(w.unpinned_cap, max(0, groups * w.unpinned_per_group))
    return vulnerable + unpinned


def config_deduction(categories: ScanCategories, w: ScoringWeights) -> int:
    config = categories.configuration_check
    raw = len(config.secrets) * w.secret + len(config.insecure) * w.insecure
    return min(w.config_cap, max(0, raw))


def permission_deduction(categories: ScanCategories, w: ScoringWeights) -> int:
    perm = categories.permission_check
    raw = 0
    if not perm.exists:
        raw += w.missing_file
    if perm.path_traversal:
        raw += w.path_traversal
    if not perm.secure_location:
        raw += w.insecure_location
    return min(w.permission_cap, max(0, raw))


def compute_score(categories: ScanCategories, weights: ScoringWeights | None = None) -> int:
    """Return the clamped 0-100 score for *categories*."""
    w = weights or ScoringWeights()
    total = (
        code_deduction(categories, w)
        + dependency_deduction(categories, w)
        + config_deduction(categories, w)
        + permission_deduction(categories, w)
    )
    return max(0, min(MAX_SCORE, MAX_SCORE - total))


def level_breakpoints(standards: SecurityStandards) -> tuple[tuple[int, SecurityLevel], ...]:
    """Convert the persisted ``{level: lower_bound}`` table into classifier input."""
    return tuple(
        (bound, SecurityLevel(level))
        for level, bound in standards.level_breakpoints.items()
        if level in SecurityLevel._value2member_map_
    )
