"""Tests for the file-backed review queue and review handlers."""

import json
from pathlib import Path

import pytest

from sopflow.cognitive import (
    AutoReviewHandler,
    ReviewDecisionKind,
    ReviewHandler,
    ReviewQueue,
    ReviewStatus,
)
from sopflow.core.schemas import (
    ConfidenceDimensions,
    ConfidenceScore,
    CritiqueResult,
    Issue,
    PhaseId,
    Severity,
)
from sopflow.exceptions import ReviewError, ReviewNotFoundError, ReviewTimeoutError


@pytest.fixture
def critique() -> CritiqueResult:
    return CritiqueResult(
        phase_id=PhaseId.ORCHESTRATE,
        confidence=ConfidenceScore(
            overall=0.55,
            dimensions=ConfidenceDimensions(
                completeness=0.5, accuracy=0.6, feasibility=0.6, coverage=0.4
            ),
            human_review_required=True,
        ),
        issues=[Issue(severity=Severity.HIGH, description="Step 2 needs a target selector")],
    )


@pytest.fixture
def queue(tmp_path: Path) -> ReviewQueue:
    return ReviewQueue(tmp_path)


class TestReviewQueue:
    """Tests for the review request lifecycle."""

    def test_creates_directories(self, tmp_path: Path) -> None:
        """Test pending and completed directories live under reviews/."""
        queue = ReviewQueue(tmp_path / "data")
        assert queue.pending_dir == tmp_path / "data" / "reviews" / "pending"
        assert queue.pending_dir.is_dir()
        assert queue.completed_dir.is_dir()

    def test_create_writes_pending_file(
        self, queue: ReviewQueue, critique: CritiqueResult
    ) -> None:
        """Test a new request is a pending JSON file."""
        request = queue.create("orchestrate", critique, {"name": "Log in"}, reason="Low score")

        path = queue.pending_dir / f"{request.id}.json"
        stored = json.loads(path.read_text())
        assert stored["phaseName"] == "orchestrate"
        assert stored["status"] == "pending"
        assert stored["data"] == {"name": "Log in"}
        assert [r.id for r in queue.pending()] == [request.id]

    def test_submit_moves_to_completed(
        self, queue: ReviewQueue, critique: CritiqueResult
    ) -> None:
        """Test a decision moves the request out of pending."""
        request = queue.create("orchestrate", critique)

        completed = queue.submit(request.id, ReviewDecisionKind.APPROVE, comments="LGTM")

        assert completed.status == ReviewStatus.APPROVED
        assert completed.decision.comments == "LGTM"
        assert queue.pending() == []
        assert (queue.completed_dir / f"{request.id}.json").exists()
        assert queue.get(request.id).status == ReviewStatus.APPROVED

    def test_reject_status(self, queue: ReviewQueue, critique: CritiqueResult) -> None:
        """Test reject marks the request rejected."""
        request = queue.create("execute", critique)
        assert queue.submit(request.id, "reject").status == ReviewStatus.REJECTED

    def test_modify_counts_as_approved(
        self, queue: ReviewQueue, critique: CritiqueResult
    ) -> None:
        """Test modify approves and keeps the replacement data."""
        request = queue.create("execute", critique, {"a": 1})
        completed = queue.submit(request.id, ReviewDecisionKind.MODIFY, {"a": 2})
        assert completed.status == ReviewStatus.APPROVED
        assert completed.decision.modified_data == {"a": 2}

    def test_unknown_review(self, queue: ReviewQueue) -> None:
        """Test unknown IDs raise ReviewNotFoundError."""
        with pytest.raises(ReviewNotFoundError) as exc_info:
            queue.get("missing")
        assert exc_info.value.review_id == "missing"
        with pytest.raises(ReviewNotFoundError):
            queue.submit("missing", ReviewDecisionKind.APPROVE)

    def test_submit_twice(self, queue: ReviewQueue, critique: CritiqueResult) -> None:
        """Test a completed request cannot be decided again."""
        request = queue.create("execute", critique)
        queue.submit(request.id, ReviewDecisionKind.APPROVE)
        with pytest.raises(ReviewNotFoundError):
            queue.submit(request.id, ReviewDecisionKind.REJECT)

    def test_corrupt_file(self, queue: ReviewQueue) -> None:
        """Test an unreadable request file raises ReviewError."""
        (queue.pending_dir / "broken.json").write_text("{}")
        with pytest.raises(ReviewError, match="Corrupt review file"):
            queue.get("broken")


class TestWaitForDecision:
    """Tests for polling for a decision."""

    def test_returns_decision_submitted_while_waiting(
        self, queue: ReviewQueue, critique: CritiqueResult
    ) -> None:
        """Test a decision made between polls is returned."""
        request = queue.create("execute", critique)
        polls: list[float] = []

        def decide_on_first_poll(seconds: float) -> None:
            polls.append(seconds)
            queue.submit(request.id, ReviewDecisionKind.REJECT, comments="no")

        decision = queue.wait_for_decision(
            request.id, timeout_seconds=60, poll_interval=0.5, sleep=decide_on_first_poll
        )
        assert decision.decision == ReviewDecisionKind.REJECT
        assert polls == [0.5]

    def test_timeout(self, queue: ReviewQueue, critique: CritiqueResult) -> None:
        """Test waiting past the timeout raises."""
        request = queue.create("execute", critique)
        with pytest.raises(ReviewTimeoutError) as exc_info:
            queue.wait_for_decision(request.id, timeout_seconds=0, sleep=lambda _: None)
        assert exc_info.value.timeout_seconds == 0


class TestRenderPrompt:
    """Tests for the reviewer prompt."""

    def test_prompt_contents(self, queue: ReviewQueue, critique: CritiqueResult) -> None:
        """Test the prompt shows the request, scores, issues and data."""
        request = queue.create("orchestrate", critique, {"name": "Log in"}, reason="Low score")
        prompt = queue.render_prompt(request)

        assert prompt.startswith("# Review Request: orchestrate")
        assert f"> **Review ID**: `{request.id}`" in prompt
        assert "**Overall confidence**: 55.0%" in prompt
        assert "- **HIGH**: Step 2 needs a target selector" in prompt
        assert '"name": "Log in"' in prompt
        assert "Decide: **approve**, **reject** or **modify**." in prompt

    def test_prompt_without_data(self, queue: ReviewQueue, critique: CritiqueResult) -> None:
        """Test the data section is omitted when there is no data."""
        prompt = queue.render_prompt(queue.create("execute", critique))
        assert "## Data" not in prompt


class TestAutoReviewHandler:
    """Tests for AutoReviewHandler."""

    def test_records_requests(self, queue: ReviewQueue, critique: CritiqueResult) -> None:
        """Test the handler returns its fixed decision and records the request."""
        handler = AutoReviewHandler(ReviewDecisionKind.MODIFY, {"fixed": True})
        request = queue.create("execute", critique)

        decision = handler.request_review(request, queue.render_prompt(request))

        assert isinstance(handler, ReviewHandler)
        assert decision.decision == ReviewDecisionKind.MODIFY
        assert decision.modified_data == {"fixed": True}
        assert handler.requests == [request]
