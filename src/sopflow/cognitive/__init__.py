"""Cognitive quadrant: escalation decisions and human review."""

from sopflow.cognitive.gate import GateOutcome, QualityGate
from sopflow.cognitive.quadrant import (
    CognitiveQuadrantManager,
    intervention_fires,
    recommend_action,
    requires_checkpoint,
    should_attempt_auto_correct,
    should_escalate,
)
from sopflow.cognitive.review import (
    AutoReviewHandler,
    ConsoleReviewHandler,
    ReviewDecision,
    ReviewDecisionKind,
    ReviewHandler,
    ReviewQueue,
    ReviewRequest,
    ReviewStatus,
)

__all__ = [
    # Escalation
    "should_escalate",
    "recommend_action",
    "should_attempt_auto_correct",
    "intervention_fires",
    "requires_checkpoint",
    "CognitiveQuadrantManager",
    # Review
    "ReviewQueue",
    "ReviewRequest",
    "ReviewDecision",
    "ReviewDecisionKind",
    "ReviewStatus",
    "ReviewHandler",
    "ConsoleReviewHandler",
    "AutoReviewHandler",
    # Gate
    "QualityGate",
    "GateOutcome",
]
