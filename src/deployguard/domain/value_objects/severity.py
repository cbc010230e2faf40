"""Severity value objects for scan findings.

Defines the :class:`FindingSeverity` enum attached to every scanner finding
and the :class:`SecurityLevel` classification of an aggregate score.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass


class FindingSeverity(str, enum.Enum):
    """Severity of a single scanner finding.

    ``MALICIOUS`` and ``DANGEROUS`` come from code analysis, ``VULNERABLE``
    and ``UNPINNED`` from the dependency check, ``SECRET`` and ``INSECURE``
    from the configuration check.  ``SUSPICIOUS`` marks misusable but common
    capabilities and ``ADVISORY`` carries informational notes.
    """

    MALICIOUS = "malicious"
    DANGEROUS = "dangerous"
    VULNERABLE = "vulnerable"
    SECRET = "secret"
    SUSPICIOUS = "suspicious"
    INSECURE = "insecure"
    UNPINNED = "unpinned"
    ADVISORY = "advisory"

    @property
    def is_blocking(self) -> bool:
        """Return True for severities that fail their category check."""
        return self in {
            FindingSeverity.MALICIOUS,
            FindingSeverity.DANGEROUS,
            FindingSeverity.VULNERABLE,
            FindingSeverity.SECRET,
        }


# ---------------------------------------------------------------------------
# Score classification
# ---------------------------------------------------------------------------

class SecurityLevel(str, enum.Enum):
    """Qualitative band for an aggregate 0-100 security score."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DANGEROUS = "dangerous"


_RECOMMENDATIONS: dict[SecurityLevel, str] = {
    SecurityLevel.EXCELLENT: "Safe to deploy.",
    SecurityLevel.GOOD: "Safe to deploy; review the warnings when convenient.",
    SecurityLevel.FAIR: "Deploy with caution and address the reported issues.",
    SecurityLevel.POOR: "Not recommended for deployment until issues are fixed.",
    SecurityLevel.DANGEROUS: "Do not deploy.",
}

# Lower bounds, highest first.  Anything below the last bound is DANGEROUS.
DEFAULT_LEVEL_BREAKPOINTS: tuple[tuple[int, SecurityLevel], ...] = (
    (95, SecurityLevel.EXCELLENT),
    (85, SecurityLevel.GOOD),
    (70, SecurityLevel.FAIR),
    (50, SecurityLevel.POOR),
)


@dataclass(frozen=True, slots=True)
class SecurityClassification:
    """Classification of a score.

    Attributes:
        score: The classified score.
        level: Band the score falls into.
        recommendation: One-sentence advice for the caller.
    """

    score: int
    level: SecurityLevel
    recommendation: str


def classify_score(
    score: int,
    breakpoints: tuple[tuple[int, SecurityLevel], ...] = DEFAULT_LEVEL_BREAKPOINTS,
) -> SecurityClassification:
    """Map *score* onto a :class:`SecurityLevel` using *breakpoints*."""
    level = SecurityLevel.DANGEROUS
    for lower_bound, candidate in sorted(breakpoints, key=lambda b: b[0], reverse=True):
        if score >= lower_bound:
            level = candidate
            break
    return SecurityClassification(score=score, level=level, recommendation=_RECOMMENDATIONS[level])
