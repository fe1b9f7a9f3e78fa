"""Template rendering for reports and review prompts."""

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from sopflow.core.schemas import CritiqueResult, ExecutionResult, Workflow

TEMPLATES_DIR = Path(__file__).parent / "templates"


def percent(value: float) -> str:
    """Format a [0, 1] score as a percentage with one decimal."""
    return f"{value * 100:.1f}%"


def get_jinja_env() -> Environment:
    """Get configured Jinja2 environment."""
    env = Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(default=False),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["percent"] = percent
    return env


def _render(template_name: str, **context: Any) -> str:
    template = get_jinja_env().get_template(template_name)
    result: str = template.render(**context)
    if not result.endswith("\n"):
        result += "\n"
    return result


def render_execution_report(result: ExecutionResult, workflow: Workflow | None = None) -> str:
    """Render a markdown report of one execution.

    Args:
        result: Execution result to report on
        workflow: Workflow that was executed, used for step descriptions

    Returns:
        Rendered markdown string
    """
    descriptions: dict[int, str] = {}
    if workflow is not None:
        descriptions = {step.step_number: step.description for step in workflow.steps}
    return _render(
        "execution_report.md.j2",
        result=result,
        workflow=workflow,
        descriptions=descriptions,
    )


def render_critique_report(
    phase_name: str, critique: CritiqueResult, requires_review: bool
) -> str:
    """Render a markdown self-critique report for one phase."""
    return _render(
        "critique_report.md.j2",
        phase_name=phase_name,
        critique=critique,
        requires_review=requires_review,
    )


def render_review_request(
    review_id: str,
    phase_name: str,
    critique: CritiqueResult,
    data: Any,
    reason: str,
) -> str:
    """Render the markdown prompt shown to a human reviewer."""
    return _render(
        "review_request.md.j2",
        review_id=review_id,
        phase_name=phase_name,
        critique=critique,
        data=data,
        reason=reason,
    )
