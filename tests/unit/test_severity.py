"""Unit tests for finding severities and score classification."""
from __future__ import annotations

import pytest

from deployguard.domain.value_objects.severity import (
    FindingSeverity,
    SecurityLevel,
    classify_score,
)


@pytest.mark.parametrize(
    "severity, blocking",
    [
        (FindingSeverity.MALICIOUS, True),
        (FindingSeverity.DANGEROUS, True),
        (FindingSeverity.VULNERABLE, True),
        (FindingSeverity.SECRET, True),
        (FindingSeverity.SUSPICIOUS, False),
        (FindingSeverity.INSECURE, False),
        (FindingSeverity.UNPINNED, False),
        (FindingSeverity.ADVISORY, False),
    ],
)
def test_blocking_severities(severity: FindingSeverity, blocking: bool) -> None:
    assert severity.is_blocking is blocking


@pytest.mark.parametrize(
    "score, level",
    [
        (100, SecurityLevel.EXCELLENT),
        (95, SecurityLevel.EXCELLENT),
        (94, SecurityLevel.GOOD),
        (85, SecurityLevel.GOOD),
        (70, SecurityLevel.FAIR),
        (50, SecurityLevel.POOR),
        (49, SecurityLevel.DANGEROUS),
        (0, SecurityLevel.DANGEROUS),
    ],
)
def test_classify_score_default_breakpoints(score: int, level: SecurityLevel) -> None:
    classification = classify_score(score)
    assert classification.level is level
    assert classification.score == score
    assert classification.recommendation


def test_classify_score_custom_breakpoints() -> None:
    breakpoints = ((60, SecurityLevel.GOOD), (90, SecurityLevel.EXCELLENT))
    assert classify_score(92, breakpoints).level is SecurityLevel.EXCELLENT
    assert classify_score(61, breakpoints).level is SecurityLevel.GOOD
    assert classify_score(59, breakpoints).level is SecurityLevel.DANGEROUS
