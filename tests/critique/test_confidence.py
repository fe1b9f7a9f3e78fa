"""Tests for weighted confidence scoring."""

import pytest

from sopflow.core.schemas import ConfidenceDimensions
from sopflow.critique import (
    WEIGHTS,
    accuracy_from_errors,
    calculate_confidence,
    completeness_from_missing,
    coverage_score,
    quick_score,
)
from sopflow.exceptions import ConfidenceRangeError, CritiqueError


def dims(completeness=1.0, accuracy=1.0, feasibility=1.0, coverage=1.0) -> dict[str, float]:
    return {
        "completeness": completeness,
        "accuracy": accuracy,
        "feasibility": feasibility,
        "coverage": coverage,
    }


class TestCalculateConfidence:
    """Tests for calculate_confidence."""

    def test_weights_sum_to_one(self) -> None:
        """Test the dimension weights form a weighted average."""
        assert sum(WEIGHTS.values()) == pytest.approx(1.0)

    def test_all_ones(self) -> None:
        """Test perfect dimensions give full confidence without review."""
        score = calculate_confidence(dims(), "perfect")
        assert score.overall == 1.0
        assert score.human_review_required is False
        assert score.reasoning == "perfect"

    def test_weighted_overall(self) -> None:
        """Test the overall score uses the fixed weights."""
        score = calculate_confidence(dims(completeness=0.5, coverage=0.0))
        assert score.overall == pytest.approx(0.3 * 0.5 + 0.3 + 0.25)

    def test_overall_rounded(self) -> None:
        """Test the overall score is rounded to three decimals."""
        score = calculate_confidence(dims(completeness=1 / 3, accuracy=1 / 3))
        assert score.overall == round(score.overall, 3)

    def test_accepts_model(self) -> None:
        """Test a ConfidenceDimensions model is accepted."""
        score = calculate_confidence(
            ConfidenceDimensions(completeness=1, accuracy=1, feasibility=1, coverage=0)
        )
        assert score.overall == 0.85

    def test_below_threshold_requires_review(self) -> None:
        """Test an overall score under the threshold flags review."""
        score = calculate_confidence(dims(0.5, 0.6, 0.6, 0.5))
        assert score.overall < 0.6
        assert score.human_review_required is True

    def test_low_accuracy_requires_review(self) -> None:
        """Test accuracy under 0.5 flags review even with a high overall."""
        score = calculate_confidence(dims(accuracy=0.4))
        assert score.overall >= 0.6
        assert score.human_review_required is True

    def test_low_feasibility_requires_review(self) -> None:
        """Test feasibility under 0.5 flags review even with a high overall."""
        score = calculate_confidence(dims(feasibility=0.4))
        assert score.human_review_required is True

    def test_custom_threshold(self) -> None:
        """Test the review threshold is configurable."""
        score = calculate_confidence(dims(coverage=0.0), review_threshold=0.9)
        assert score.overall == 0.85
        assert score.human_review_required is True

    @pytest.mark.parametrize("value", [-0.1, 1.5])
    def test_out_of_range(self, value: float) -> None:
        """Test dimensions outside [0, 1] are rejected."""
        with pytest.raises(ConfidenceRangeError) as exc_info:
            calculate_confidence(dims(coverage=value))
        assert exc_info.value.dimension == "coverage"
        assert isinstance(exc_info.value, ValueError)
        assert isinstance(exc_info.value, CritiqueError)


class TestHelpers:
    """Tests for the dimension helpers."""

    def test_completeness_from_missing(self) -> None:
        """Test completeness falls with missing items and floors at zero."""
        assert completeness_from_missing(4, 1) == 0.75
        assert completeness_from_missing(2, 5) == 0.0
        assert completeness_from_missing(0, 0) == 1.0

    def test_accuracy_from_errors(self) -> None:
        """Test accuracy falls with errors and floors at zero."""
        assert accuracy_from_errors(10, 2) == 0.8
        assert accuracy_from_errors(1, 3) == 0.0
        assert accuracy_from_errors(0, 0) == 1.0

    def test_coverage_score(self) -> None:
        """Test coverage is a capped share."""
        assert coverage_score(1, 4) == 0.25
        assert coverage_score(5, 4) == 1.0
        assert coverage_score(0, 0) == 1.0


class TestQuickScore:
    """Tests for quick_score."""

    def test_no_issues(self) -> None:
        """Test an empty issue list scores perfectly."""
        score = quick_score([])
        assert score.overall == 1.0
        assert score.reasoning == "No issues found"

    def test_with_issues(self) -> None:
        """Test issues lower the score and are listed in the reasoning."""
        score = quick_score(["missing label", "broken link"])
        assert score.overall < 1.0
        assert score.reasoning == "Found 2 issues: missing label, broken link"
