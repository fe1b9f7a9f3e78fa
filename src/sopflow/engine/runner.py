"""Workflow runner with dependency injection.

WorkflowRunner checks out a session per run, drives a WorkflowExecutor,
and hands results to the artifact store.
"""

import base64
import logging
import time
from collections.abc import Callable, Mapping

from pydantic import JsonValue

from sopflow.config import ExecutionConfig
from sopflow.core.schemas import (
    ArtifactRecord,
    ExecutionResult,
    ExecutionState,
    PhaseId,
    Workflow,
)
from sopflow.critique.engine import CritiqueEngine
from sopflow.engine.executor import CustomCheck, WorkflowExecutor, failure_result
from sopflow.engine.generators import FakerValueGenerator
from sopflow.engine.protocols import ArtifactStore, BrowserSession, SessionFactory, ValueGenerator
from sopflow.render import render_execution_report

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/png;base64,"


class WorkflowRunner:
    """Executes workflows with injected dependencies.

    Separates execution orchestration from:
    - Session management (one fresh session per run)
    - Artifact persistence (local, in-memory, etc.)
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        store: ArtifactStore,
        generator: ValueGenerator | None = None,
        critique: CritiqueEngine | None = None,
        execution: ExecutionConfig | None = None,
        custom_check: CustomCheck | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize runner with dependencies.

        Args:
            session_factory: Returns a new browser session for each run
            store: Artifact store for results, states and screenshots
            generator: Value generator for generator-sourced step data
            critique: Critique engine applied to each result
            execution: Retry and wait defaults
            custom_check: Evaluates ``custom`` validations
            sleep: Used by wait steps without a selector
        """
        self._session_factory = session_factory
        self._store = store
        self._generator = generator or FakerValueGenerator()
        self._critique = critique or CritiqueEngine()
        self._execution = execution or ExecutionConfig()
        self._custom_check = custom_check
        self._sleep = sleep

    def execute(
        self, workflow: Workflow, inputs: Mapping[str, JsonValue] | None = None
    ) -> ExecutionResult:
        """Run a workflow on a fresh session and save its artifacts.

        Args:
            workflow: Workflow to run
            inputs: Caller-supplied variables

        Returns:
            The execution result
        """
        session = self._session_factory()
        try:
            executor = WorkflowExecutor(
                session,
                generator=self._generator,
                critique=self._critique,
                default_max_retries=self._execution.default_max_retries,
                default_wait_timeout_ms=self._execution.default_wait_timeout_ms,
                custom_check=self._custom_check,
                sleep=self._sleep,
            )
            result = executor.execute(workflow, inputs)
        finally:
            self._close(session)

        self._save(result)
        return result

    def execute_batch(
        self,
        workflows: list[Workflow],
        inputs_by_id: Mapping[str, Mapping[str, JsonValue]] | None = None,
    ) -> list[ExecutionResult]:
        """Run workflows one after another, each on its own session.

        A run that fails before producing a result becomes a synthetic
        failure result and the batch continues.
        """
        inputs_by_id = inputs_by_id or {}
        results: list[ExecutionResult] = []
        for workflow in workflows:
            try:
                results.append(self.execute(workflow, inputs_by_id.get(workflow.id)))
            except Exception as e:
                logger.exception("Workflow %s could not be executed", workflow.name)
                state = ExecutionState(workflow_id=workflow.id)
                results.append(failure_result(workflow, state, [], e))
        return results

    def resume(
        self,
        workflow: Workflow,
        prior_state: ExecutionState,
        from_step: int,
        inputs: Mapping[str, JsonValue] | None = None,
    ) -> ExecutionResult:
        """Run the steps numbered from_step and later, seeded with prior variables.

        Args:
            workflow: The full workflow
            prior_state: State of the interrupted run
            from_step: First step number to run
            inputs: Extra variables, overriding the prior ones
        """
        remaining = [step for step in workflow.steps if step.step_number >= from_step]
        partial = workflow.model_copy(update={"steps": remaining})
        variables = {**prior_state.variables, **(inputs or {})}
        logger.info(
            "Resuming workflow %s from step %d (%d steps left)",
            workflow.name,
            from_step,
            len(remaining),
        )
        return self.execute(partial, variables)

    def generate_report(self, result: ExecutionResult, workflow: Workflow | None = None) -> str:
        """Render a markdown execution report."""
        return render_execution_report(result, workflow)

    def _close(self, session: BrowserSession) -> None:
        close = getattr(session, "close", None)
        if not callable(close):
            return
        try:
            close()
        except Exception as e:
            logger.warning("Failed to close browser session: %s", e)

    def _save(self, result: ExecutionResult) -> None:
        attachments: dict[str, bytes] = {}
        for outcome in result.step_results:
            if outcome.screenshot and outcome.screenshot.startswith(DATA_URL_PREFIX):
                data = outcome.screenshot[len(DATA_URL_PREFIX) :]
                attachments[f"step_{outcome.step_number}_screenshot.png"] = base64.b64decode(data)

        self._store.save(
            ArtifactRecord(
                phase_id=PhaseId.EXECUTE,
                name=f"result_{result.id}",
                payload=result.model_dump(mode="json", by_alias=True),
                attachments=attachments,
            )
        )
        self._store.save(
            ArtifactRecord(
                phase_id=PhaseId.EXECUTE,
                name=f"state_{result.final_state.id}",
                payload=result.final_state.model_dump(mode="json", by_alias=True),
            )
        )
