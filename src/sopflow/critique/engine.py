"""Critique engine: runs phase validators and decides on human review."""

from sopflow.core.schemas import CritiqueResult, ExecutionResult, Workflow
from sopflow.critique.confidence import DEFAULT_REVIEW_THRESHOLD
from sopflow.critique.validators import ExecutionValidator, ProcedureValidator
from sopflow.render import render_critique_report


class CritiqueEngine:
    """Self-critique for the orchestrate and execute phases.

    Usage:
        engine = CritiqueEngine(review_threshold=0.7)
        critique = engine.critique_procedure(workflow)
        if engine.requires_human_review(critique):
            print(engine.generate_review_report("Orchestrate", critique))
    """

    def __init__(self, review_threshold: float = DEFAULT_REVIEW_THRESHOLD) -> None:
        self.review_threshold = review_threshold
        self._procedure = ProcedureValidator(review_threshold)
        self._execution = ExecutionValidator(review_threshold)

    def critique_procedure(self, workflow: Workflow) -> CritiqueResult:
        """Critique a workflow produced by the orchestrate phase."""
        return self._procedure.validate(workflow)

    def critique_execution(
        self, result: ExecutionResult, workflow: Workflow | None = None
    ) -> CritiqueResult:
        """Critique an execution result.

        Args:
            result: Result to critique
            workflow: The executed workflow; its step count is the expected
                number of outcomes
        """
        expected = len(workflow.steps) if workflow is not None else None
        return self._execution.validate(result, expected_steps=expected)

    def requires_human_review(self, critique: CritiqueResult) -> bool:
        """True on the score's flag, a below-threshold score, or any critical issue."""
        return (
            critique.confidence.human_review_required
            or critique.confidence.overall < self.review_threshold
            or critique.has_critical_issues
        )

    def generate_review_report(self, phase_name: str, critique: CritiqueResult) -> str:
        """Render a markdown self-critique report."""
        return render_critique_report(phase_name, critique, self.requires_human_review(critique))
