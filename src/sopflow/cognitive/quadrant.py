"""Escalation decisions for the cognitive quadrant.

The decision functions are pure: they take the CognitiveQuadrant as an
explicit argument. CognitiveQuadrantManager holds the process-wide value
and replaces it wholesale on update.
"""

import logging
from collections.abc import Iterable, Mapping

from sopflow.core.schemas import (
    CognitiveMode,
    CognitiveQuadrant,
    CritiqueResult,
    EscalationVerdict,
    InterventionPoint,
    QuadrantThresholds,
    Recommendation,
    RecommendedAction,
)
from sopflow.render import percent

logger = logging.getLogger(__name__)

# Manual mode approves on its own only at or above this score with no issues.
MANUAL_APPROVE_FLOOR = 0.9

CHECKPOINT_POINTS = frozenset({InterventionPoint.BEFORE_PHASE, InterventionPoint.AFTER_PHASE})


def _escalate(reason: str) -> EscalationVerdict:
    return EscalationVerdict(should_escalate=True, reason=reason)


def _proceed(reason: str) -> EscalationVerdict:
    return EscalationVerdict(should_escalate=False, reason=reason)


def intervention_fires(critique: CritiqueResult, quadrant: CognitiveQuadrant) -> bool:
    """Whether any configured confidence or issue trigger fires.

    before_phase and after_phase are checkpoints the caller checks with
    requires_checkpoint; they never fire here.
    """
    for point in quadrant.human_intervention_points:
        if point == InterventionPoint.ON_LOW_CONFIDENCE:
            if critique.confidence.overall < quadrant.thresholds.require_review:
                return True
        elif point == InterventionPoint.ON_CRITICAL_ISSUE:
            if critique.has_critical_issues:
                return True
        elif point == InterventionPoint.ON_ERROR:
            if critique.issues:
                return True
    return False


def requires_checkpoint(quadrant: CognitiveQuadrant, point: InterventionPoint) -> bool:
    """Whether a before_phase or after_phase checkpoint is configured."""
    return point in CHECKPOINT_POINTS and point in quadrant.human_intervention_points


def should_escalate(critique: CritiqueResult, quadrant: CognitiveQuadrant) -> EscalationVerdict:
    """Decide whether a critiqued artifact must go to a human.

    The rules are evaluated in order per mode:

    - autonomous: escalate below auto_correct, else on a critical issue.
    - collaborative: proceed at or above auto_approve, escalate below
      require_review, else escalate when an intervention trigger fires.
    - supervised: proceed at or above auto_approve, escalate below
      require_review, else escalate on a critical issue.
    - manual: proceed only at or above 0.9 with zero issues.
    """
    overall = critique.confidence.overall
    thresholds = quadrant.thresholds
    mode = quadrant.mode

    if mode == CognitiveMode.AUTONOMOUS:
        if overall < thresholds.auto_correct:
            return _escalate(f"Confidence too low ({percent(overall)})")
        if critique.has_critical_issues:
            return _escalate("Critical issue detected")
        return _proceed("Handled automatically")

    if mode == CognitiveMode.COLLABORATIVE:
        if overall >= thresholds.auto_approve:
            return _proceed("High confidence, auto-approved")
        if overall < thresholds.require_review:
            return _escalate(f"Moderate confidence ({percent(overall)}), review needed")
        if intervention_fires(critique, quadrant):
            return _escalate("Human intervention point triggered")
        return _proceed("Handled automatically")

    if mode == CognitiveMode.SUPERVISED:
        if overall >= thresholds.auto_approve:
            return _proceed("High confidence, auto-approved")
        if overall < thresholds.require_review:
            return _escalate(f"Confidence below review threshold ({percent(overall)})")
        if critique.has_critical_issues:
            return _escalate("Critical issue detected")
        return _proceed("Handled automatically")

    if overall >= MANUAL_APPROVE_FLOOR and not critique.issues:
        return _proceed("Very high confidence, auto-approved")
    return _escalate("Manual mode requires human review")


def should_attempt_auto_correct(critique: CritiqueResult, quadrant: CognitiveQuadrant) -> bool:
    """Corrections are proposed, issues exist, and confidence allows fixing."""
    return (
        bool(critique.auto_corrections)
        and bool(critique.issues)
        and critique.confidence.overall >= quadrant.thresholds.auto_correct
    )


def recommend_action(critique: CritiqueResult, quadrant: CognitiveQuadrant) -> Recommendation:
    """Recommend approve, reject, review or auto_correct for an artifact."""
    verdict = should_escalate(critique, quadrant)
    overall = critique.confidence.overall

    if verdict.should_escalate:
        if overall < quadrant.thresholds.auto_correct:
            return Recommendation(action=RecommendedAction.REJECT, reason=verdict.reason)
        return Recommendation(action=RecommendedAction.REVIEW, reason=verdict.reason)

    if should_attempt_auto_correct(critique, quadrant):
        return Recommendation(
            action=RecommendedAction.AUTO_CORRECT,
            reason="Issues with proposed auto-corrections detected",
        )

    if overall >= quadrant.thresholds.auto_approve:
        return Recommendation(
            action=RecommendedAction.APPROVE, reason="High confidence, auto-approved"
        )

    return Recommendation(
        action=RecommendedAction.REVIEW, reason="Moderate confidence, review suggested"
    )


class CognitiveQuadrantManager:
    """Holds the process-wide quadrant and delegates decisions to it.

    Usage:
        manager = CognitiveQuadrantManager(config.quadrant)
        verdict = manager.should_escalate(critique)
        manager.update_config(mode=CognitiveMode.MANUAL)
    """

    def __init__(self, quadrant: CognitiveQuadrant | None = None) -> None:
        self._quadrant = quadrant or CognitiveQuadrant()

    @property
    def quadrant(self) -> CognitiveQuadrant:
        return self._quadrant

    def should_escalate(self, critique: CritiqueResult) -> EscalationVerdict:
        return should_escalate(critique, self._quadrant)

    def recommend_action(self, critique: CritiqueResult) -> Recommendation:
        return recommend_action(critique, self._quadrant)

    def should_attempt_auto_correct(self, critique: CritiqueResult) -> bool:
        return should_attempt_auto_correct(critique, self._quadrant)

    def requires_checkpoint(self, point: InterventionPoint) -> bool:
        return requires_checkpoint(self._quadrant, point)

    def update_config(
        self,
        mode: CognitiveMode | None = None,
        thresholds: Mapping[str, float] | QuadrantThresholds | None = None,
        human_intervention_points: Iterable[InterventionPoint] | None = None,
    ) -> CognitiveQuadrant:
        """Replace the quadrant with an updated copy.

        Threshold keys not given keep their current values.

        Returns:
            The new quadrant
        """
        current = self._quadrant
        if isinstance(thresholds, QuadrantThresholds):
            thresholds = thresholds.model_dump()
        merged = current.thresholds.model_dump()
        merged.update(thresholds or {})

        self._quadrant = CognitiveQuadrant(
            mode=mode if mode is not None else current.mode,
            thresholds=QuadrantThresholds(**merged),
            human_intervention_points=(
                list(human_intervention_points)
                if human_intervention_points is not None
                else list(current.human_intervention_points)
            ),
        )
        logger.info(
            "Cognitive quadrant updated: mode=%s thresholds=%s",
            self._quadrant.mode.value,
            merged,
        )
        return self._quadrant
