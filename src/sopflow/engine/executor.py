"""Step-by-step workflow execution against a browser session.

Each step goes Pending -> Running -> Success, Failure or Skipped. Step
failures never raise: they are recorded as outcomes and routed through the
step's error-handling policy. Anything escaping the step loop becomes a
synthetic failure result.
"""

import base64
import json
import logging
import time
from collections.abc import Callable, Mapping

from pydantic import JsonValue

from sopflow.core.schemas import (
    ConstantData,
    CritiqueResult,
    ErrorStrategy,
    ExecutionResult,
    ExecutionState,
    ExecutionStatus,
    FailedStep,
    GeneratorData,
    Issue,
    PhaseId,
    SessionSnapshot,
    Severity,
    StateData,
    Step,
    StepAction,
    StepOutcome,
    StepStatus,
    UserData,
    ValidationKind,
    Workflow,
)
from sopflow.critique.confidence import calculate_confidence
from sopflow.critique.engine import CritiqueEngine
from sopflow.engine.generators import FakerValueGenerator
from sopflow.engine.protocols import BrowserSession, ValueGenerator
from sopflow.exceptions import ExecutionError, SopflowError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_WAIT_TIMEOUT_MS = 5000

CustomCheck = Callable[[BrowserSession, Step], bool]


def derive_status(outcomes: list[StepOutcome]) -> ExecutionStatus:
    """Overall status from step outcomes.

    success when every outcome succeeded (also for no outcomes), failure
    when any failed, otherwise partial.
    """
    if all(o.status == StepStatus.SUCCESS for o in outcomes):
        return ExecutionStatus.SUCCESS
    if any(o.status == StepStatus.FAILURE for o in outcomes):
        return ExecutionStatus.FAILURE
    return ExecutionStatus.PARTIAL


def as_text(value: JsonValue) -> str:
    """Render a JSON value as the text typed into a page."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def seed_variables(workflow: Workflow, inputs: Mapping[str, JsonValue] | None) -> dict:
    """Required-input defaults, overlaid with caller inputs."""
    variables: dict[str, JsonValue] = {
        item.field: item.default_value
        for item in workflow.required_inputs
        if item.default_value is not None
    }
    variables.update(inputs or {})
    return variables


def _error_text(error: Exception) -> str:
    if isinstance(error, SopflowError):
        return error.message
    return str(error) or type(error).__name__


class WorkflowExecutor:
    """Runs one workflow against one browser session.

    Usage:
        executor = WorkflowExecutor(session)
        result = executor.execute(workflow, {"email": "a@example.com"})
        print(result.status)

    An executor owns its session for the duration of a run and must not
    be shared across concurrent runs.
    """

    def __init__(
        self,
        session: BrowserSession,
        generator: ValueGenerator | None = None,
        critique: CritiqueEngine | None = None,
        default_max_retries: int = DEFAULT_MAX_RETRIES,
        default_wait_timeout_ms: int = DEFAULT_WAIT_TIMEOUT_MS,
        custom_check: CustomCheck | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.generator = generator or FakerValueGenerator()
        self.critique = critique or CritiqueEngine()
        self.default_max_retries = default_max_retries
        self.default_wait_timeout_ms = default_wait_timeout_ms
        self.custom_check = custom_check
        self._sleep = sleep

    def execute(
        self, workflow: Workflow, inputs: Mapping[str, JsonValue] | None = None
    ) -> ExecutionResult:
        """Execute every step of a workflow in order.

        Args:
            workflow: Workflow to run
            inputs: Caller-supplied variables, overriding required-input defaults

        Returns:
            Frozen ExecutionResult with its execution critique attached.
            Never raises for a well-formed workflow.
        """
        start = time.perf_counter()
        state = ExecutionState(
            workflow_id=workflow.id, variables=seed_variables(workflow, inputs)
        )
        outcomes: list[StepOutcome] = []
        logger.info("Executing workflow %s (%d steps)", workflow.name, len(workflow.steps))

        try:
            for step in workflow.steps:
                state.current_step_number = step.step_number
                outcome = self._run_step(step, state)
                halt = False
                if outcome.status == StepStatus.FAILURE:
                    outcome, halt = self._apply_policy(step, state, outcome)
                outcomes.append(outcome)
                self._record(state, outcome)
                if halt:
                    break

            self._capture_storage(state)
            result = ExecutionResult(
                workflow_id=workflow.id,
                execution_state_id=state.id,
                status=derive_status(outcomes),
                duration=(time.perf_counter() - start) * 1000,
                step_results=outcomes,
                screenshots=[
                    f"step_{o.step_number}_screenshot.png" for o in outcomes if o.screenshot
                ],
                final_state=state,
            )
            result = result.model_copy(
                update={"critique": self.critique.critique_execution(result, workflow)}
            )
        except Exception as e:
            logger.exception("Workflow %s failed outside step dispatch", workflow.name)
            duration = (time.perf_counter() - start) * 1000
            return failure_result(workflow, state, outcomes, e, duration)

        logger.info(
            "Workflow %s finished: %s (%d/%d steps succeeded)",
            workflow.name,
            result.status.value,
            result.count(StepStatus.SUCCESS),
            len(workflow.steps),
        )
        return result

    # Policies

    def _apply_policy(
        self, step: Step, state: ExecutionState, failed: StepOutcome
    ) -> tuple[StepOutcome, bool]:
        """Route a failed step through its policy. Returns (outcome, halt)."""
        policy = step.error_handling
        n = step.step_number
        if policy is None:
            logger.warning("Step %d failed with no policy, continuing: %s", n, failed.error)
            return failed, False

        if policy.strategy == ErrorStrategy.ABORT:
            logger.error("Step %d failed, aborting: %s", n, failed.error)
            return failed, True

        if policy.strategy == ErrorStrategy.FALLBACK:
            logger.error(
                "Step %d failed; fallback to step %s is not supported, aborting",
                n,
                policy.fallback_step_number,
            )
            return failed, True

        if policy.strategy == ErrorStrategy.SKIP:
            logger.warning("Step %d failed, skipping: %s", n, failed.error)
            return failed.model_copy(update={"status": StepStatus.SKIPPED}), False

        bound = policy.max_retries if policy.max_retries is not None else self.default_max_retries
        attempts = failed.attempts
        duration = failed.duration
        last = failed
        for retry in range(1, bound + 1):
            logger.info("Retrying step %d (%d/%d)", n, retry, bound)
            last = self._run_step(step, state)
            attempts += 1
            duration += last.duration
            if last.status == StepStatus.SUCCESS:
                return last.model_copy(update={"attempts": attempts, "duration": duration}), False

        # Exhausted retries halt the run exactly like abort.
        logger.error("Step %d failed after %d retries, aborting", n, bound)
        return last.model_copy(update={"attempts": attempts, "duration": duration}), True

    def _record(self, state: ExecutionState, outcome: StepOutcome) -> None:
        if outcome.status == StepStatus.SUCCESS:
            state.completed_steps.append(outcome.step_number)
        else:
            state.failed_steps.append(
                FailedStep(step_number=outcome.step_number, error=outcome.error or "")
            )

    def _capture_storage(self, state: ExecutionState) -> None:
        snapshot = getattr(self.session, "storage_snapshot", None)
        if not callable(snapshot):
            return
        captured = SessionSnapshot.model_validate(snapshot())
        state.session = captured.model_copy(update={"current_url": state.session.current_url})

    # Steps

    def _run_step(self, step: Step, state: ExecutionState) -> StepOutcome:
        logger.debug("Step %d: %s %s", step.step_number, step.action.value, step.description)
        started = time.perf_counter()
        try:
            output, screenshot = self._dispatch(step, state)
            if step.validation is not None and step.action != StepAction.VERIFY:
                self._validate(step)
        except Exception as e:
            logger.debug("Step %d failed: %s", step.step_number, e)
            return StepOutcome(
                step_number=step.step_number,
                status=StepStatus.FAILURE,
                duration=(time.perf_counter() - started) * 1000,
                error=_error_text(e),
            )
        return StepOutcome(
            step_number=step.step_number,
            status=StepStatus.SUCCESS,
            duration=(time.perf_counter() - started) * 1000,
            output=output,
            screenshot=screenshot,
        )

    def _dispatch(self, step: Step, state: ExecutionState) -> tuple[JsonValue, str | None]:
        action = step.action
        target = step.target

        if action == StepAction.NAVIGATE:
            if target is None or not target.url:
                raise ExecutionError("No URL specified")
            self.session.navigate(target.url)
            state.session.current_url = target.url
            return {"url": target.url}, None

        if action == StepAction.WAIT:
            timeout = self._wait_timeout(step)
            if target is not None and target.selector:
                self.session.wait_for_selector(target.selector, timeout)
            else:
                self._sleep(timeout / 1000)
            return {"waited": timeout}, None

        if action == StepAction.VERIFY:
            if step.validation is not None:
                self._validate(step)
            return None, None

        if action == StepAction.SCREENSHOT:
            image = self.session.screenshot()
            encoded = base64.b64encode(image).decode("ascii")
            return {"bytes": len(image)}, f"data:image/png;base64,{encoded}"

        if action in (StepAction.CONDITIONAL, StepAction.LOOP):
            raise ExecutionError(f"Unsupported action: {action.value}")

        if target is None or not target.selector:
            raise ExecutionError("No selector specified")
        selector = target.selector

        if action == StepAction.CLICK:
            self.session.click(selector)
            return {"selector": selector}, None

        if action == StepAction.INPUT:
            value = self._resolve_value(step, state)
            self.session.fill(selector, value)
            self._store_resolved(step, state, value)
            return {"selector": selector, "value": value}, None

        if action == StepAction.SELECT:
            value = self._resolve_value(step, state)
            if not value:
                raise ExecutionError("No value specified")
            self.session.select_option(selector, value)
            self._store_resolved(step, state, value)
            return {"selector": selector, "value": value}, None

        if action == StepAction.EXTRACT:
            text = self.session.text_content(selector)
            self._store(step, state, text)
            return {"text": text}, None

        raise ExecutionError(f"Unknown action: {action}")

    def _wait_timeout(self, step: Step) -> int:
        if step.validation is not None and step.validation.timeout:
            return step.validation.timeout
        return self.default_wait_timeout_ms

    def _store(self, step: Step, state: ExecutionState, value: JsonValue) -> None:
        if step.data is not None and step.data.field:
            state.variables[step.data.field] = value

    def _store_resolved(self, step: Step, state: ExecutionState, value: str) -> None:
        # User and state values are already in the bag with their original type.
        if isinstance(step.data, GeneratorData):
            self._store(step, state, value)
        elif isinstance(step.data, ConstantData):
            self._store(step, state, step.data.value)

    def _resolve_value(self, step: Step, state: ExecutionState) -> str:
        """Value for input and select steps, from the step's data source."""
        data = step.data
        if isinstance(data, UserData):
            return as_text(state.variables.get(data.field or "value"))
        if isinstance(data, StateData):
            if data.field not in state.variables:
                raise ExecutionError(f"State variable '{data.field}' is not set")
            return as_text(state.variables[data.field])
        if isinstance(data, GeneratorData):
            return as_text(self.generator.generate(data.method))
        if isinstance(data, ConstantData):
            return as_text(data.value)
        if step.target is not None and step.target.value is not None:
            return step.target.value
        return ""

    # Validation

    def _validate(self, step: Step) -> None:
        """Evaluate the step's validation, raising ExecutionError when it fails."""
        validation = step.validation
        if validation is None:
            return
        kind = validation.kind
        selector = "body"
        if step.target is not None and step.target.selector:
            selector = step.target.selector

        if kind in (ValidationKind.EXISTS, ValidationKind.VISIBLE):
            expected = True if validation.expected is None else validation.expected
            if validation.timeout and expected is True:
                self.session.wait_for_selector(selector, validation.timeout)
            if kind == ValidationKind.EXISTS:
                if self.session.exists(selector) != expected:
                    raise ExecutionError(f"Element {selector} existence check failed")
            elif self.session.is_visible(selector) != expected:
                raise ExecutionError(f"Element {selector} visibility check failed")
            return

        if kind == ValidationKind.TEXT:
            expected_text = as_text(validation.expected)
            text = self.session.text_content(selector) or ""
            if expected_text not in text:
                raise ExecutionError(
                    f'Text validation failed: expected "{expected_text}", got "{text}"'
                )
            return

        if kind == ValidationKind.VALUE:
            if step.target is None or not step.target.selector:
                raise ExecutionError("No selector specified")
            expected_value = as_text(validation.expected)
            value = self.session.input_value(step.target.selector)
            if value != expected_value:
                raise ExecutionError(
                    f'Value validation failed: expected "{expected_value}", got "{value}"'
                )
            return

        if kind == ValidationKind.COUNT:
            counter = getattr(self.session, "count", None)
            if not callable(counter):
                logger.warning(
                    "Session cannot count elements; count check on step %d not evaluated",
                    step.step_number,
                )
                return
            actual = counter(selector)
            if actual != validation.expected:
                raise ExecutionError(
                    f"Count validation failed: expected {validation.expected}, got {actual}"
                )
            return

        if self.custom_check is None:
            logger.warning(
                "No custom check configured; custom check on step %d not evaluated",
                step.step_number,
            )
            return
        if not self.custom_check(self.session, step):
            raise ExecutionError("Custom validation failed")


def failure_result(
    workflow: Workflow,
    state: ExecutionState,
    outcomes: list[StepOutcome],
    error: Exception,
    duration: float = 0,
) -> ExecutionResult:
    """Synthetic failure result for a run that could not complete.

    Carries a critical issue and a zero-confidence critique.
    """
    message = _error_text(error)
    critique = CritiqueResult(
        phase_id=PhaseId.EXECUTE,
        confidence=calculate_confidence(
            {"completeness": 0, "accuracy": 0, "feasibility": 0, "coverage": 0},
            "Workflow execution failed with an exception",
        ),
        issues=[Issue(severity=Severity.CRITICAL, description=f"Workflow failed: {message}")],
    )
    return ExecutionResult(
        workflow_id=workflow.id,
        execution_state_id=state.id,
        status=ExecutionStatus.FAILURE,
        duration=duration,
        step_results=outcomes,
        logs=[message],
        final_state=state,
        critique=critique,
    )
