"""Quality gate tying critique, escalation and human review together."""

import logging

from pydantic import BaseModel, ConfigDict, JsonValue

from sopflow.cognitive.quadrant import CognitiveQuadrantManager
from sopflow.cognitive.review import (
    ReviewDecisionKind,
    ReviewHandler,
    ReviewQueue,
    ReviewRequest,
)
from sopflow.core.schemas import (
    CritiqueResult,
    EscalationVerdict,
    InterventionPoint,
    PhaseId,
    Recommendation,
    RecommendedAction,
)

logger = logging.getLogger(__name__)


class GateOutcome(BaseModel):
    """What the gate decided for one artifact.

    ``proceed`` is False when the artifact was rejected, or escalated with
    nobody available to decide. ``data`` is the reviewer's replacement
    when the decision was ``modify``, otherwise the data passed in.
    """

    model_config = ConfigDict(frozen=True)

    phase_id: PhaseId
    verdict: EscalationVerdict
    recommendation: Recommendation
    proceed: bool
    data: JsonValue = None
    review: ReviewRequest | None = None


class QualityGate:
    """Decides whether a phase's output may proceed.

    Usage:
        gate = QualityGate(manager, queue=ReviewQueue(data_dir), handler=ConsoleReviewHandler())
        outcome = gate.evaluate(PhaseId.EXECUTE, result.critique, result_json)
        if not outcome.proceed:
            ...
    """

    def __init__(
        self,
        manager: CognitiveQuadrantManager,
        queue: ReviewQueue | None = None,
        handler: ReviewHandler | None = None,
    ) -> None:
        self.manager = manager
        self.queue = queue
        self.handler = handler

    def evaluate(
        self,
        phase: PhaseId,
        critique: CritiqueResult,
        data: JsonValue = None,
        checkpoint: InterventionPoint | None = None,
    ) -> GateOutcome:
        """Compute the verdict and recommendation, and ask a human if needed.

        Args:
            phase: Phase that produced the artifact
            critique: Critique of the artifact
            data: JSON form of the artifact, shown to reviewers
            checkpoint: before_phase or after_phase, when the caller is at one.
                A configured checkpoint forces escalation.
        """
        verdict = self.manager.should_escalate(critique)
        recommendation = self.manager.recommend_action(critique)
        if checkpoint is not None and self.manager.requires_checkpoint(checkpoint):
            verdict = EscalationVerdict(
                should_escalate=True,
                reason=f"{checkpoint.value} checkpoint for {phase.value}",
            )
            if recommendation.action != RecommendedAction.REJECT:
                recommendation = Recommendation(
                    action=RecommendedAction.REVIEW, reason=verdict.reason
                )

        if not verdict.should_escalate:
            return GateOutcome(
                phase_id=phase,
                verdict=verdict,
                recommendation=recommendation,
                proceed=recommendation.action != RecommendedAction.REJECT,
                data=data,
            )

        logger.info("Escalating %s output: %s", phase.value, verdict.reason)
        if self.queue is None:
            return GateOutcome(
                phase_id=phase,
                verdict=verdict,
                recommendation=recommendation,
                proceed=False,
                data=data,
            )

        request = self.queue.create(phase.value, critique, data, reason=verdict.reason)
        if self.handler is None:
            return GateOutcome(
                phase_id=phase,
                verdict=verdict,
                recommendation=recommendation,
                proceed=False,
                data=data,
                review=request,
            )

        decision = self.handler.request_review(request, self.queue.render_prompt(request))
        completed = self.queue.submit(
            request.id, decision.decision, decision.modified_data, decision.comments
        )
        if decision.decision == ReviewDecisionKind.MODIFY:
            data = decision.modified_data
        return GateOutcome(
            phase_id=phase,
            verdict=verdict,
            recommendation=recommendation,
            proceed=decision.decision != ReviewDecisionKind.REJECT,
            data=data,
            review=completed,
        )
