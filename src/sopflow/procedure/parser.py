"""Parse, validate and merge SOP workflows.

Steps are rebuilt only from the fenced JSON blocks of a document. Heading
text and summary lines are discarded, so hand edits to them are cosmetic.
"""

import json
import logging
import re
from datetime import datetime

from pydantic import BaseModel, Field, ValidationError
from rich.console import Console

from sopflow.core.schemas import (
    Complexity,
    ConfidenceDimensions,
    ConfidenceScore,
    CritiqueResult,
    ErrorStrategy,
    PhaseId,
    RequiredInput,
    Step,
    SuccessCriterion,
    Workflow,
)
from sopflow.exceptions import ProcedureParseError, WorkflowStructureError
from sopflow.procedure.escape import decode_cell_value, split_table_row, unwrap_inline_code

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Untitled Workflow"

TITLE_PATTERN = re.compile(r"^#\s+SOP:\s+(.+)$")
METADATA_PATTERN = re.compile(r"^>\s+\*\*([\w ]+)\*\*:\s*(.*)$")
SECTION_PATTERN = re.compile(r"^##\s+(.+)$")
CRITERION_PATTERN = re.compile(r"^\d+\.\s+(.*)$")
CRITERION_VALIDATION_PATTERN = re.compile(r"^Validation:\s*(.*)$")
SEPARATOR_CELL = re.compile(r"^:?-+:?$")

REQUIRED_INPUTS = "Required Inputs"
WORKFLOW_STEPS = "Workflow Steps"
SUCCESS_CRITERIA = "Success Criteria"


def full_confidence_critique(reasoning: str) -> CritiqueResult:
    """Orchestrate-phase critique attached to parsed and merged workflows."""
    return CritiqueResult(
        phase_id=PhaseId.ORCHESTRATE,
        confidence=ConfidenceScore(
            overall=1.0,
            dimensions=ConfidenceDimensions(
                completeness=1.0, accuracy=1.0, feasibility=1.0, coverage=1.0
            ),
            reasoning=reasoning,
            human_review_required=False,
        ),
    )


def _parse_step_block(content: str, line_number: int) -> Step:
    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        raise ProcedureParseError(f"step block is not valid JSON: {e.msg}", line=line_number) from e
    try:
        return Step.model_validate(payload)
    except ValidationError as e:
        raise ProcedureParseError(f"step block is not a valid step: {e}", line=line_number) from e


def _parse_input_rows(rows: list[tuple[int, str]]) -> list[RequiredInput]:
    inputs: list[RequiredInput] = []
    for line_number, row in rows:
        cells = split_table_row(row)
        if all(SEPARATOR_CELL.match(cell) for cell in cells if cell):
            continue
        if cells[:1] == ["Field"] and cells[1:2] == ["Type"]:
            continue
        if len(cells) < 4:
            raise ProcedureParseError(
                f"required input row has {len(cells)} cells, expected 4", line=line_number
            )
        field, type_, required, default = cells[:4]
        inputs.append(
            RequiredInput(
                field=field,
                type=type_ or "string",
                required=required.lower() in ("yes", "true"),
                default_value=decode_cell_value(default),
            )
        )
    return inputs


def _apply_metadata(fields: dict, key: str, value: str, line_number: int) -> None:
    value = value.strip()
    if key == "Generated":
        try:
            fields["timestamp"] = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise ProcedureParseError(
                f"invalid Generated timestamp: {value}", line=line_number
            ) from e
    elif key == "ID":
        fields["id"] = unwrap_inline_code(value)
    elif key == "Description":
        fields["description"] = "" if value == "-" else value
    elif key == "Complexity":
        try:
            fields["complexity"] = Complexity(value.lower())
        except ValueError as e:
            raise ProcedureParseError(f"unknown complexity: {value}", line=line_number) from e
    elif key == "Tags":
        fields["tags"] = [tag.strip() for tag in value.split(",") if tag.strip()]
    elif key == "Estimated Duration":
        try:
            fields["estimated_duration"] = float(value.rstrip("s").strip())
        except ValueError as e:
            raise ProcedureParseError(
                f"invalid Estimated Duration: {value}", line=line_number
            ) from e
    else:
        logger.debug("Ignoring unknown metadata key %s", key)


def from_markdown(markdown: str) -> Workflow:
    """Parse an SOP markdown document into a Workflow.

    Args:
        markdown: Document text as written by to_markdown (or hand-edited)

    Returns:
        Workflow whose steps come from the fenced JSON blocks, sorted by
        step number, with a full-confidence orchestrate critique attached

    Raises:
        ProcedureParseError: If a step block, table row or metadata value
            cannot be parsed
    """
    # Only \n ends a line; JSON strings may hold U+2028 and similar breaks.
    lines = [line.removesuffix("\r") for line in markdown.split("\n")]
    fields: dict = {}
    steps: list[Step] = []
    input_rows: list[tuple[int, str]] = []
    criteria: list[SuccessCriterion] = []
    section: str | None = None

    i = 0
    while i < len(lines):
        line = lines[i].strip()
        line_number = i + 1
        i += 1

        if not line:
            continue

        if "name" not in fields and section is None:
            title = TITLE_PATTERN.match(line)
            if title:
                fields["name"] = title.group(1).strip()
                continue

        if line.startswith(">"):
            meta = METADATA_PATTERN.match(line)
            if meta:
                _apply_metadata(fields, meta.group(1).strip(), meta.group(2), line_number)
            continue

        heading = SECTION_PATTERN.match(line)
        if heading:
            section = heading.group(1).strip()
            continue

        if section == REQUIRED_INPUTS:
            if line.startswith("|"):
                input_rows.append((line_number, line))
        elif section == WORKFLOW_STEPS:
            if line == "```json":
                block: list[str] = []
                while i < len(lines) and lines[i].strip() != "```":
                    block.append(lines[i])
                    i += 1
                if i >= len(lines):
                    raise ProcedureParseError("unterminated step block", line=line_number)
                i += 1
                steps.append(_parse_step_block("\n".join(block), line_number))
        elif section == SUCCESS_CRITERIA:
            validation = CRITERION_VALIDATION_PATTERN.match(line)
            if validation and criteria:
                last = criteria[-1]
                criteria[-1] = last.model_copy(update={"validation": validation.group(1).strip()})
                continue
            criterion = CRITERION_PATTERN.match(line)
            if criterion:
                criteria.append(SuccessCriterion(description=criterion.group(1).strip()))

    fields.setdefault("name", DEFAULT_NAME)
    try:
        workflow = Workflow(
            **fields,
            steps=sorted(steps, key=lambda s: s.step_number),
            required_inputs=_parse_input_rows(input_rows),
            success_criteria=criteria,
            critique=full_confidence_critique("Parsed from markdown"),
        )
    except ValidationError as e:
        raise ProcedureParseError(f"invalid workflow: {e}") from e

    logger.debug("Parsed workflow %s with %d steps", workflow.name, len(workflow.steps))
    return workflow


def from_json(text: str) -> Workflow:
    """Parse a whole workflow from its JSON form.

    Raises:
        ProcedureParseError: If the text is not JSON or not a valid workflow
    """
    try:
        return Workflow.model_validate_json(text)
    except ValidationError as e:
        raise ProcedureParseError(f"invalid workflow JSON: {e}") from e


class ValidationReport(BaseModel):
    """Result of structural workflow validation.

    Attributes:
        success: Whether validation passed
        errors: Structural errors that must be fixed
        warnings: Problems that do not block execution
    """

    success: bool = Field(..., description="Whether validation passed")
    errors: list[str] = Field(default_factory=list, description="Errors that must be fixed")
    warnings: list[str] = Field(
        default_factory=list, description="Warnings that should be addressed"
    )

    def format(self) -> str:
        """Format the report for display with Rich."""
        lines: list[str] = []

        if self.success:
            lines.append("[green]✓[/green] Workflow structure is valid")
        else:
            lines.append("[red]✗[/red] Workflow structure is invalid")

        if self.errors:
            lines.append("\n[red bold]Errors:[/red bold]")
            for error in self.errors:
                lines.append(f"  [red]•[/red] {error}")

        if self.warnings:
            lines.append("\n[yellow bold]Warnings:[/yellow bold]")
            for warning in self.warnings:
                lines.append(f"  [yellow]•[/yellow] {warning}")

        return "\n".join(lines)

    def print(self, console: Console | None = None) -> None:
        """Print the formatted report to the console."""
        (console or Console()).print(self.format())


def validate_workflow(workflow: Workflow) -> ValidationReport:
    """Report structural errors in a workflow.

    Checks, in order: missing name, empty step list, the first gap in
    step numbering, then per-step missing action or description.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not workflow.name or not workflow.name.strip():
        errors.append("Missing workflow name")

    if not workflow.steps:
        errors.append("No steps defined")

    numbers = sorted(step.step_number for step in workflow.steps)
    for expected, found in enumerate(numbers, start=1):
        if found != expected:
            errors.append(f"Step numbering gap: expected {expected}, found {found}")
            break

    for index, step in enumerate(workflow.steps, start=1):
        if not step.action:
            errors.append(f"Step {index} missing action")
        if not step.description or not step.description.strip():
            errors.append(f"Step {index} missing description")
        policy = step.error_handling
        if policy is not None and policy.strategy == ErrorStrategy.FALLBACK:
            warnings.append(
                f"Step {step.step_number} uses a fallback policy, which runs as abort"
            )

    return ValidationReport(success=not errors, errors=errors, warnings=warnings)


def ensure_valid(workflow: Workflow) -> Workflow:
    """Return the workflow unchanged, or raise if it is structurally invalid.

    Raises:
        WorkflowStructureError: Carrying every error validate_workflow found
    """
    report = validate_workflow(workflow)
    if not report.success:
        raise WorkflowStructureError(report.errors)
    return workflow


def merge_workflows(workflows: list[Workflow], name: str) -> Workflow:
    """Merge workflows into one, renumbering steps in input order.

    Inputs, criteria and metadata ids are concatenated, tags are
    deduplicated keeping first occurrence, durations are summed and the
    complexity is forced to the highest tier.
    """
    steps: list[Step] = []
    for workflow in workflows:
        for step in workflow.steps:
            steps.append(step.model_copy(update={"step_number": len(steps) + 1}))

    tags: list[str] = []
    for workflow in workflows:
        for tag in workflow.tags:
            if tag not in tags:
                tags.append(tag)

    return Workflow(
        name=name,
        description=f"Merged workflow from {len(workflows)} workflows",
        metadata_ids=[mid for w in workflows for mid in w.metadata_ids],
        steps=steps,
        required_inputs=[item for w in workflows for item in w.required_inputs],
        success_criteria=[item for w in workflows for item in w.success_criteria],
        estimated_duration=sum(w.estimated_duration for w in workflows),
        complexity=Complexity.COMPLEX,
        tags=tags,
        critique=full_confidence_critique("Merged workflow"),
    )
