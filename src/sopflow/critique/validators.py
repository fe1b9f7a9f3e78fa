"""Phase validators that turn an artifact into a CritiqueResult.

Each validator runs a fixed battery of structural checks, groups the
issues it finds by the dimension they affect, and feeds the counts into
the scoring helpers.
"""

import logging

from sopflow.core.schemas import (
    AutoCorrection,
    CritiqueResult,
    ErrorStrategy,
    ExecutionResult,
    ExecutionStatus,
    Issue,
    PhaseId,
    Severity,
    StateData,
    Step,
    StepAction,
    StepStatus,
    UserData,
    Workflow,
)
from sopflow.critique.confidence import (
    DEFAULT_REVIEW_THRESHOLD,
    accuracy_from_errors,
    calculate_confidence,
    completeness_from_missing,
    coverage_score,
)

logger = logging.getLogger(__name__)

DEFAULT_RETRY_BOUND = 3

SELECTOR_ACTIONS = frozenset(
    {StepAction.CLICK, StepAction.INPUT, StepAction.SELECT, StepAction.EXTRACT}
)

# Steps that write data.field into the variable bag.
WRITING_ACTIONS = frozenset({StepAction.INPUT, StepAction.EXTRACT})


def _missing_target(step: Step) -> str | None:
    target = step.target
    if step.action == StepAction.NAVIGATE and (target is None or not target.url):
        return "needs a target URL"
    if step.action in SELECTOR_ACTIONS and (target is None or not target.selector):
        return "needs a target selector"
    if step.action == StepAction.VERIFY and step.validation is None:
        return "has nothing to verify"
    return None


class ProcedureValidator:
    """Critiques a workflow produced by the orchestrate phase."""

    def __init__(self, review_threshold: float = DEFAULT_REVIEW_THRESHOLD) -> None:
        self.review_threshold = review_threshold

    def validate(self, workflow: Workflow) -> CritiqueResult:
        corrections: list[AutoCorrection] = []
        completeness = self._completeness_issues(workflow)
        accuracy = self._accuracy_issues(workflow)
        feasibility = self._feasibility_issues(workflow, corrections)

        step_count = len(workflow.steps)
        checked = sum(
            1
            for step in workflow.steps
            if step.validation is not None or step.action == StepAction.VERIFY
        )
        blocking = [i for i in feasibility if i.severity in (Severity.CRITICAL, Severity.HIGH)]
        issues = completeness + accuracy + feasibility

        confidence = calculate_confidence(
            {
                "completeness": completeness_from_missing(3 + 2 * step_count, len(completeness)),
                "accuracy": accuracy_from_errors(step_count, len(accuracy)),
                "feasibility": accuracy_from_errors(step_count, len(blocking)),
                "coverage": coverage_score(checked, step_count),
            },
            f"{step_count} steps, {checked} with validation, {len(issues)} issues found",
            self.review_threshold,
        )
        logger.debug(
            "Procedure critique for %s: overall=%.3f issues=%d",
            workflow.name,
            confidence.overall,
            len(issues),
        )
        return CritiqueResult(
            phase_id=PhaseId.ORCHESTRATE,
            confidence=confidence,
            issues=issues,
            auto_corrections=corrections,
        )

    def _completeness_issues(self, workflow: Workflow) -> list[Issue]:
        issues: list[Issue] = []
        if not workflow.name or not workflow.name.strip():
            issues.append(Issue(severity=Severity.HIGH, description="Workflow has no name"))
        if not workflow.steps:
            issues.append(
                Issue(severity=Severity.CRITICAL, description="Workflow defines no steps")
            )
        for step in workflow.steps:
            if not step.action:
                issues.append(
                    Issue(
                        severity=Severity.HIGH,
                        description=f"Step {step.step_number} has no action",
                    )
                )
            if not step.description or not step.description.strip():
                issues.append(
                    Issue(
                        severity=Severity.MEDIUM,
                        description=f"Step {step.step_number} has no description",
                        suggestion="Describe what the step does for human reviewers",
                    )
                )
        if not workflow.success_criteria:
            issues.append(
                Issue(
                    severity=Severity.LOW,
                    description="Workflow has no success criteria",
                    suggestion="Add at least one success criterion with a validation expression",
                )
            )
        return issues

    def _accuracy_issues(self, workflow: Workflow) -> list[Issue]:
        issues: list[Issue] = []
        numbers = sorted(step.step_number for step in workflow.steps)
        for expected, found in enumerate(numbers, start=1):
            if found != expected:
                issues.append(
                    Issue(
                        severity=Severity.HIGH,
                        description=f"Step numbering gap: expected {expected}, found {found}",
                        suggestion="Renumber steps contiguously from 1",
                    )
                )
                break

        valid_numbers = set(numbers)
        for step in workflow.steps:
            policy = step.error_handling
            if policy is None or policy.fallback_step_number is None:
                continue
            if policy.fallback_step_number not in valid_numbers:
                issues.append(
                    Issue(
                        severity=Severity.HIGH,
                        description=(
                            f"Step {step.step_number} falls back to step "
                            f"{policy.fallback_step_number}, which does not exist"
                        ),
                    )
                )
        return issues

    def _feasibility_issues(
        self, workflow: Workflow, corrections: list[AutoCorrection]
    ) -> list[Issue]:
        issues: list[Issue] = []
        declared = {item.field for item in workflow.required_inputs}
        known = set(declared)

        for step in workflow.steps:
            n = step.step_number
            problem = _missing_target(step)
            if problem:
                issues.append(
                    Issue(
                        severity=Severity.HIGH,
                        description=f"Step {n} ({step.action.value}) {problem}",
                    )
                )

            data = step.data
            reads = step.action != StepAction.EXTRACT
            if reads and isinstance(data, StateData) and data.field not in known:
                issues.append(
                    Issue(
                        severity=Severity.HIGH,
                        description=(
                            f"Step {n} reads state variable '{data.field}' "
                            "that no earlier step produces"
                        ),
                    )
                )
            if reads and isinstance(data, UserData):
                field = data.field or "value"
                if field not in declared:
                    issues.append(
                        Issue(
                            severity=Severity.MEDIUM,
                            description=f"Step {n} reads user input '{field}' that is not declared",
                            suggestion=f"Add '{field}' to the required inputs",
                        )
                    )
                    corrections.append(
                        AutoCorrection(description=f"Declare required input '{field}'")
                    )
            if step.action in WRITING_ACTIONS and data is not None and data.field:
                known.add(data.field)

            policy = step.error_handling
            if policy is None:
                continue
            if policy.strategy == ErrorStrategy.RETRY and policy.max_retries is None:
                issues.append(
                    Issue(
                        severity=Severity.LOW,
                        description=f"Step {n} retries without an explicit bound",
                        suggestion=f"Set maxRetries (defaults to {DEFAULT_RETRY_BOUND})",
                    )
                )
                corrections.append(
                    AutoCorrection(
                        description=f"Set maxRetries to {DEFAULT_RETRY_BOUND} on step {n}"
                    )
                )
            if policy.strategy == ErrorStrategy.FALLBACK:
                issues.append(
                    Issue(
                        severity=Severity.MEDIUM,
                        description=f"Step {n} uses a fallback policy, which runs as abort",
                        suggestion="Use abort, skip or retry explicitly",
                    )
                )
        return issues


class ExecutionValidator:
    """Critiques the result of executing a workflow."""

    def __init__(self, review_threshold: float = DEFAULT_REVIEW_THRESHOLD) -> None:
        self.review_threshold = review_threshold

    def validate(
        self, result: ExecutionResult, expected_steps: int | None = None
    ) -> CritiqueResult:
        """Critique an execution result.

        Args:
            result: The result to critique
            expected_steps: Number of steps the workflow defines. Defaults
                to the number of recorded outcomes.
        """
        outcomes = result.step_results
        recorded = len(outcomes)
        expected = recorded if expected_steps is None else expected_steps
        failures = [o for o in outcomes if o.status == StepStatus.FAILURE]
        successes = result.count(StepStatus.SUCCESS)

        structural: list[Issue] = []
        if result.status == ExecutionStatus.FAILURE and not any(o.error for o in outcomes):
            structural.append(
                Issue(
                    severity=Severity.HIGH,
                    description="Execution failed silently: no step recorded an error",
                )
            )
        if recorded == 0:
            structural.append(
                Issue(
                    severity=Severity.CRITICAL,
                    description="Nothing executed: no step outcomes were recorded",
                )
            )

        step_issues = [
            Issue(
                severity=Severity.HIGH,
                description=f"Step {o.step_number} failed: {o.error or 'no error recorded'}",
            )
            for o in failures
        ]

        confidence = calculate_confidence(
            {
                "completeness": completeness_from_missing(expected, max(0, expected - recorded)),
                "accuracy": accuracy_from_errors(recorded, len(failures)),
                "feasibility": max(0.0, 1 - len(structural) / 2),
                "coverage": coverage_score(successes, expected),
            },
            (
                f"{recorded} of {expected} steps recorded, {successes} succeeded, "
                f"{len(failures)} failed"
            ),
            self.review_threshold,
        )
        return CritiqueResult(
            phase_id=PhaseId.EXECUTE,
            confidence=confidence,
            issues=structural + step_issues,
        )
