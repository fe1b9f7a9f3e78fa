"""Rich display utilities for sopflow results."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sopflow.cognitive.gate import GateOutcome
from sopflow.core.schemas import (
    CritiqueResult,
    ExecutionResult,
    ExecutionStatus,
    RecommendedAction,
    Severity,
    StepStatus,
    Workflow,
)
from sopflow.procedure.parser import ValidationReport

console = Console()

STATUS_COLORS = {
    ExecutionStatus.SUCCESS: "green",
    ExecutionStatus.FAILURE: "red",
    ExecutionStatus.PARTIAL: "yellow",
    ExecutionStatus.SKIPPED: "dim",
}

STEP_COLORS = {
    StepStatus.SUCCESS: "green",
    StepStatus.FAILURE: "red",
    StepStatus.SKIPPED: "yellow",
}

SEVERITY_COLORS = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "dim",
}

ACTION_COLORS = {
    RecommendedAction.APPROVE: "green",
    RecommendedAction.AUTO_CORRECT: "cyan",
    RecommendedAction.REVIEW: "yellow",
    RecommendedAction.REJECT: "red",
}


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]✓[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]✗[/] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]⚠[/] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[bold blue]ℹ[/] {message}")


def print_validation_report(report: ValidationReport) -> None:
    """Print the outcome of validating a workflow."""
    report.print(console)


def print_workflow(workflow: Workflow) -> None:
    """Print a table of a workflow's steps."""
    table = Table(title=f"SOP: {workflow.name}")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Action")
    table.add_column("Description")
    table.add_column("Target", style="dim")
    table.add_column("On error")

    for step in workflow.steps:
        target = "-"
        if step.target is not None:
            target = step.target.url or step.target.selector or step.target.value or "-"
        table.add_row(
            str(step.step_number),
            step.action.value,
            step.description,
            target,
            step.error_handling.strategy.value if step.error_handling else "-",
        )

    console.print(table)


def print_execution_result(result: ExecutionResult) -> None:
    """Print an execution result summary and step table."""
    color = STATUS_COLORS[result.status]
    lines = [
        f"[bold]Workflow:[/] {result.workflow_id}",
        f"[bold]Execution:[/] {result.id}",
        f"[bold]Status:[/] [{color}]{result.status.value}[/]",
        f"[bold]Duration:[/] {result.duration / 1000:.2f}s",
        f"[bold]Success rate:[/] {result.success_rate:.0%}",
    ]
    if result.critique is not None:
        lines.append(f"[bold]Confidence:[/] {result.critique.confidence.overall:.0%}")

    console.print()
    console.print(
        Panel("\n".join(lines), title="[bold]Execution Result[/]", border_style=color)
    )

    if result.step_results:
        table = Table()
        table.add_column("Step", style="cyan", justify="right")
        table.add_column("Status")
        table.add_column("Duration")
        table.add_column("Attempts", justify="right")
        table.add_column("Error", style="red")

        for outcome in result.step_results:
            step_color = STEP_COLORS[outcome.status]
            table.add_row(
                str(outcome.step_number),
                f"[{step_color}]{outcome.status.value}[/]",
                f"{outcome.duration:.0f}ms",
                str(outcome.attempts),
                outcome.error or "",
            )

        console.print(table)

    for line in result.logs:
        console.print(f"\n[bold red]Error:[/] {line}")


def print_critique(critique: CritiqueResult) -> None:
    """Print confidence dimensions and issues of a critique."""
    confidence = critique.confidence
    table = Table(title=f"Critique: {critique.phase_id.value}")
    table.add_column("Dimension")
    table.add_column("Score", justify="right")

    for name, score in confidence.dimensions.model_dump().items():
        table.add_row(name, f"{score:.0%}")
    table.add_row("[bold]overall[/]", f"[bold]{confidence.overall:.0%}[/]")

    console.print(table)
    if confidence.human_review_required:
        print_warning("Human review required")

    for issue in critique.issues:
        style = SEVERITY_COLORS[issue.severity]
        console.print(f"  • [{style}]{issue.severity.value}[/] {issue.description}")
        if issue.suggestion:
            console.print(f"    [dim]{issue.suggestion}[/]")


def print_gate_outcome(outcome: GateOutcome) -> None:
    """Print a quality gate decision."""
    action = outcome.recommendation.action
    color = ACTION_COLORS[action]
    escalated = "yes" if outcome.verdict.should_escalate else "no"
    body = (
        f"[bold]Phase:[/] {outcome.phase_id.value}\n"
        f"[bold]Escalated:[/] {escalated} ({outcome.verdict.reason})\n"
        f"[bold]Recommendation:[/] [{color}]{action.value}[/] ({outcome.recommendation.reason})"
    )
    if outcome.review is not None:
        body += f"\n[bold]Review:[/] {outcome.review.id} ({outcome.review.status.value})"

    title = "[bold green]✓ Proceed[/]" if outcome.proceed else "[bold red]✗ Halted[/]"
    console.print()
    console.print(Panel(body, title=title, border_style="green" if outcome.proceed else "red"))
