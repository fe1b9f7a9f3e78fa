"""Human review queue and review handlers.

Review requests are JSON files under ``<data_dir>/reviews/pending``. A
decision moves the request to ``<data_dir>/reviews/completed``.
"""

import json
import logging
import time
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import Field, JsonValue, ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.prompt import Prompt

from sopflow.core.schemas import CritiqueResult, WireModel, new_id, utc_now
from sopflow.exceptions import ReviewError, ReviewNotFoundError, ReviewTimeoutError
from sopflow.render import render_review_request

logger = logging.getLogger(__name__)


class ReviewDecisionKind(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    MODIFY = "modify"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewDecision(WireModel):
    """A reviewer's decision. ``modify`` approves with replacement data."""

    decision: ReviewDecisionKind
    modified_data: JsonValue = None
    comments: str | None = None
    reviewed_at: datetime = Field(default_factory=utc_now)


class ReviewRequest(WireModel):
    """An artifact waiting for a human decision."""

    id: str = Field(default_factory=new_id)
    phase_name: str
    critique: CritiqueResult
    data: JsonValue = None
    context: str = ""
    reason: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    status: ReviewStatus = ReviewStatus.PENDING
    decision: ReviewDecision | None = None


class ReviewQueue:
    """File-backed queue of review requests.

    Usage:
        queue = ReviewQueue(Path("./data"))
        request = queue.create("orchestrate", critique, workflow_json)
        queue.submit(request.id, ReviewDecisionKind.APPROVE, comments="LGTM")
    """

    def __init__(self, data_dir: Path | str) -> None:
        self.data_dir = Path(data_dir)
        self.pending_dir = self.data_dir / "reviews" / "pending"
        self.completed_dir = self.data_dir / "reviews" / "completed"
        self.pending_dir.mkdir(parents=True, exist_ok=True)
        self.completed_dir.mkdir(parents=True, exist_ok=True)

    def _write(self, path: Path, request: ReviewRequest) -> None:
        path.write_text(request.model_dump_json(by_alias=True, indent=2))

    def _read(self, path: Path) -> ReviewRequest:
        try:
            return ReviewRequest.model_validate_json(path.read_text())
        except ValidationError as e:
            raise ReviewError(f"Corrupt review file {path}: {e}") from e

    def create(
        self,
        phase_name: str,
        critique: CritiqueResult,
        data: JsonValue = None,
        context: str = "",
        reason: str = "",
    ) -> ReviewRequest:
        """File a new pending review request."""
        request = ReviewRequest(
            phase_name=phase_name,
            critique=critique,
            data=data,
            context=context,
            reason=reason,
        )
        self._write(self.pending_dir / f"{request.id}.json", request)
        logger.info("Review %s requested for %s: %s", request.id, phase_name, reason)
        return request

    def pending(self) -> list[ReviewRequest]:
        """All pending requests, oldest first."""
        requests = [self._read(path) for path in self.pending_dir.glob("*.json")]
        return sorted(requests, key=lambda r: r.created_at)

    def get(self, review_id: str) -> ReviewRequest:
        """Load a request, pending or completed.

        Raises:
            ReviewNotFoundError: If no request with this ID exists
        """
        for directory in (self.pending_dir, self.completed_dir):
            path = directory / f"{review_id}.json"
            if path.exists():
                return self._read(path)
        raise ReviewNotFoundError(review_id)

    def submit(
        self,
        review_id: str,
        decision: ReviewDecisionKind,
        modified_data: JsonValue = None,
        comments: str | None = None,
    ) -> ReviewRequest:
        """Record a decision and move the request to completed.

        Raises:
            ReviewNotFoundError: If no pending request with this ID exists
        """
        pending_path = self.pending_dir / f"{review_id}.json"
        if not pending_path.exists():
            raise ReviewNotFoundError(review_id)

        decision = ReviewDecisionKind(decision)
        request = self._read(pending_path)
        status = ReviewStatus.APPROVED
        if decision == ReviewDecisionKind.REJECT:
            status = ReviewStatus.REJECTED
        completed = request.model_copy(
            update={
                "status": status,
                "decision": ReviewDecision(
                    decision=decision, modified_data=modified_data, comments=comments
                ),
            }
        )
        self._write(self.completed_dir / f"{review_id}.json", completed)
        pending_path.unlink()
        logger.info("Review %s completed: %s", review_id, decision.value)
        return completed

    def wait_for_decision(
        self,
        review_id: str,
        timeout_seconds: float = 300.0,
        poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> ReviewDecision:
        """Poll until another process submits a decision.

        Raises:
            ReviewTimeoutError: If no decision arrives within the timeout
        """
        deadline = time.monotonic() + timeout_seconds
        completed_path = self.completed_dir / f"{review_id}.json"
        while True:
            if completed_path.exists():
                request = self._read(completed_path)
                if request.decision is not None:
                    return request.decision
            if time.monotonic() >= deadline:
                raise ReviewTimeoutError(review_id, timeout_seconds)
            sleep(poll_interval)

    def render_prompt(self, request: ReviewRequest) -> str:
        """Markdown prompt shown to the reviewer."""
        return render_review_request(
            request.id, request.phase_name, request.critique, request.data, request.reason
        )


@runtime_checkable
class ReviewHandler(Protocol):
    """Asks a human (or a stand-in) to decide on a review request."""

    def request_review(self, request: ReviewRequest, prompt: str) -> ReviewDecision:
        """Return the reviewer's decision."""
        ...


class ConsoleReviewHandler:
    """Interactive console review.

    Shows the rendered request and prompts for a decision via stdin.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def request_review(self, request: ReviewRequest, prompt: str) -> ReviewDecision:
        """Request a decision via console prompts."""
        self.console.print()
        self.console.print(f"[bold yellow]⏸[/] [bold]Review Required:[/] {request.phase_name}")
        self.console.print(Markdown(prompt))

        choice = Prompt.ask(
            "Decision",
            choices=[kind.value for kind in ReviewDecisionKind],
            default=ReviewDecisionKind.REJECT.value,
            console=self.console,
        )
        decision = ReviewDecisionKind(choice)

        modified_data: JsonValue = None
        if decision == ReviewDecisionKind.MODIFY:
            while True:
                raw = Prompt.ask("Modified data (JSON)", console=self.console)
                try:
                    modified_data = json.loads(raw)
                    break
                except json.JSONDecodeError as e:
                    self.console.print(f"[red]Invalid JSON:[/] {e.msg}")

        comments = Prompt.ask("Comments", default="", console=self.console)
        return ReviewDecision(
            decision=decision, modified_data=modified_data, comments=comments or None
        )


class AutoReviewHandler:
    """Returns a fixed decision without prompting (for testing)."""

    def __init__(
        self,
        decision: ReviewDecisionKind = ReviewDecisionKind.APPROVE,
        modified_data: JsonValue = None,
    ) -> None:
        self.decision = decision
        self.modified_data = modified_data
        self.requests: list[ReviewRequest] = []

    def request_review(self, request: ReviewRequest, prompt: str) -> ReviewDecision:  # noqa: ARG002
        """Decide without prompting."""
        self.requests.append(request)
        return ReviewDecision(decision=self.decision, modified_data=self.modified_data)


assert isinstance(AutoReviewHandler(), ReviewHandler)
