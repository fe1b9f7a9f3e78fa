"""Weighted confidence scoring.

Four quality dimensions, each in [0, 1], combine into one overall score
with fixed weights. Validators derive the dimensions from issue counts
using the helpers below.
"""

from collections.abc import Mapping

from sopflow.core.schemas import ConfidenceDimensions, ConfidenceScore
from sopflow.exceptions import ConfidenceRangeError

WEIGHTS: dict[str, float] = {
    "completeness": 0.30,
    "accuracy": 0.30,
    "feasibility": 0.25,
    "coverage": 0.15,
}

DEFAULT_REVIEW_THRESHOLD = 0.6

# Below this, accuracy or feasibility alone forces a human review.
DIMENSION_FLOOR = 0.5


def calculate_confidence(
    dimensions: Mapping[str, float] | ConfidenceDimensions,
    reasoning: str = "",
    review_threshold: float = DEFAULT_REVIEW_THRESHOLD,
) -> ConfidenceScore:
    """Combine dimension scores into a ConfidenceScore.

    Args:
        dimensions: completeness, accuracy, feasibility and coverage scores
        reasoning: Free-text explanation stored on the score
        review_threshold: Overall score below which a human must review

    Returns:
        ConfidenceScore with ``overall`` rounded to 3 decimals

    Raises:
        ConfidenceRangeError: If any dimension is outside [0, 1]
    """
    if isinstance(dimensions, ConfidenceDimensions):
        dimensions = dimensions.model_dump()

    values: dict[str, float] = {}
    for name in WEIGHTS:
        value = float(dimensions[name])
        if not 0 <= value <= 1:
            raise ConfidenceRangeError(name, value)
        values[name] = value

    overall = round(sum(values[name] * weight for name, weight in WEIGHTS.items()), 3)
    review = (
        overall < review_threshold
        or values["accuracy"] < DIMENSION_FLOOR
        or values["feasibility"] < DIMENSION_FLOOR
    )

    return ConfidenceScore(
        overall=overall,
        dimensions=ConfidenceDimensions(**values),
        reasoning=reasoning,
        human_review_required=review,
    )


def completeness_from_missing(expected: int, missing: int) -> float:
    """``1 - missing/expected``, floored at 0. 1 when nothing is expected."""
    if expected == 0:
        return 1.0
    return max(0.0, 1 - missing / expected)


def accuracy_from_errors(total: int, errors: int) -> float:
    """``1 - errors/total``, floored at 0. 1 when there is nothing to check."""
    if total == 0:
        return 1.0
    return max(0.0, 1 - errors / total)


def coverage_score(covered: int, total: int) -> float:
    """Share of items covered, capped at 1. 1 when there are no items."""
    if total == 0:
        return 1.0
    return min(1.0, covered / total)


def quick_score(
    issue_descriptions: list[str],
    total_expected: int = 10,
    review_threshold: float = DEFAULT_REVIEW_THRESHOLD,
) -> ConfidenceScore:
    """Rough score from a flat list of issue descriptions."""
    count = len(issue_descriptions)
    completeness = completeness_from_missing(total_expected, count)
    if count == 0:
        reasoning = "No issues found"
    else:
        reasoning = f"Found {count} issues: {', '.join(issue_descriptions)}"
    return calculate_confidence(
        {
            "completeness": completeness,
            "accuracy": 1.0 if count == 0 else 0.7,
            "feasibility": 1.0 if count == 0 else 0.8,
            "coverage": completeness,
        },
        reasoning,
        review_threshold,
    )
