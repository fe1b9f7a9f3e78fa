"""Self-critique: confidence scoring and phase validators."""

from sopflow.critique.confidence import (
    WEIGHTS,
    accuracy_from_errors,
    calculate_confidence,
    completeness_from_missing,
    coverage_score,
    quick_score,
)
from sopflow.critique.engine import CritiqueEngine
from sopflow.critique.validators import ExecutionValidator, ProcedureValidator

__all__ = [
    "CritiqueEngine",
    "ProcedureValidator",
    "ExecutionValidator",
    "WEIGHTS",
    "calculate_confidence",
    "completeness_from_missing",
    "accuracy_from_errors",
    "coverage_score",
    "quick_score",
]
