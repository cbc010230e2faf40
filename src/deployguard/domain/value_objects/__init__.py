"""Domain value objects."""
from deployguard.domain.value_objects.severity import (
    FindingSeverity,
    SecurityClassification,
    SecurityLevel,
    classify_score,
)

__all__ = ["FindingSeverity", "SecurityClassification", "SecurityLevel", "classify_score"]
