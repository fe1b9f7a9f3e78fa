"""Write workflows as SOP markdown documents.

The document has a human-readable part and a machine-readable part. Each
step's fenced JSON block carries the complete step object and is the only
part the parser reads back; headings and summary lines are cosmetic.
"""

import json

from sopflow.core.schemas import (
    ConstantData,
    GeneratorData,
    StateData,
    Step,
    StepTarget,
    StepValidation,
    Workflow,
)
from sopflow.procedure.builders import MarkdownTable, SopDocument, json_fence
from sopflow.procedure.escape import encode_cell_value, escape_inline_code


def _one_line(text: str) -> str:
    return " ".join(text.split())


def step_payload(step: Step) -> dict:
    """The JSON object written into a step's fenced block."""
    return step.model_dump(mode="json", by_alias=True, exclude_none=True)


def format_target(target: StepTarget | None) -> str:
    if target is None:
        return "-"
    parts = []
    if target.url is not None:
        parts.append(escape_inline_code(target.url))
    if target.selector is not None:
        parts.append(escape_inline_code(target.selector))
    if target.value is not None:
        parts.append(f'"{target.value}"')
    return ", ".join(parts) if parts else "-"


def format_data(step: Step) -> str:
    data = step.data
    if data is None:
        return "-"
    if isinstance(data, ConstantData):
        summary = f"constant {json.dumps(data.value)}"
    elif isinstance(data, GeneratorData):
        summary = f"generator `{data.method}`"
    elif isinstance(data, StateData):
        summary = f"state `{data.field}`"
    else:
        summary = f"user `{data.field or 'value'}`"
    if data.field and not isinstance(data, StateData):
        summary += f" -> `{data.field}`"
    return summary


def format_validation(validation: StepValidation | None) -> str:
    if validation is None:
        return "-"
    parts = [f"Type: {validation.kind.value}", f"Expected: {json.dumps(validation.expected)}"]
    if validation.timeout:
        parts.append(f"Timeout: {validation.timeout}ms")
    return ", ".join(parts)


def _step_section(step: Step) -> str:
    lines = [
        f"### Step {step.step_number}: {_one_line(step.description)}",
        "",
        f"**Action**: `{step.action.value}`",
    ]
    if step.target is not None:
        lines.append(f"**Target**: {format_target(step.target)}")
    if step.data is not None:
        lines.append(f"**Data**: {format_data(step)}")
    if step.validation is not None:
        lines.append(f"**Validation**: {format_validation(step.validation)}")
    if step.error_handling is not None:
        policy = step.error_handling
        lines.append("**Error Handling**:")
        lines.append(f"- Strategy: {policy.strategy.value}")
        if policy.max_retries is not None:
            lines.append(f"- Max Retries: {policy.max_retries}")
        if policy.fallback_step_number is not None:
            lines.append(f"- Fallback Step: {policy.fallback_step_number}")
    lines.append("")
    lines.append(json_fence(step_payload(step)))
    return "\n".join(lines)


def to_markdown(workflow: Workflow) -> str:
    """Render a workflow as an SOP markdown document.

    Args:
        workflow: Workflow to render

    Returns:
        Markdown text that from_markdown parses back to the same steps
        and required inputs
    """
    doc = SopDocument(f"SOP: {_one_line(workflow.name)}")

    metadata = [
        ("Generated", workflow.timestamp.isoformat()),
        ("ID", f"`{workflow.id}`"),
        ("Description", _one_line(workflow.description) or "-"),
        ("Complexity", workflow.complexity.value),
    ]
    if workflow.tags:
        metadata.append(("Tags", ", ".join(workflow.tags)))
    if workflow.estimated_duration:
        metadata.append(("Estimated Duration", f"{workflow.estimated_duration:g}s"))
    doc.metadata(metadata)

    if workflow.required_inputs:
        inputs = MarkdownTable("Field", "Type", "Required", "Default")
        for item in workflow.required_inputs:
            inputs.row(
                item.field,
                item.type,
                "Yes" if item.required else "No",
                encode_cell_value(item.default_value),
            )
        doc.section("Required Inputs").table(inputs)

    doc.section("Workflow Steps")
    for step in workflow.steps:
        doc.block(_step_section(step))

    if workflow.success_criteria:
        doc.section("Success Criteria")
        lines = []
        for i, criterion in enumerate(workflow.success_criteria, start=1):
            lines.append(f"{i}. {_one_line(criterion.description)}")
            lines.append(f"   Validation: {_one_line(criterion.validation)}")
        doc.block("\n".join(lines))

    return doc.render()


def to_simple_markdown(workflow: Workflow) -> str:
    """Numbered quick preview of a workflow."""
    doc = SopDocument(_one_line(workflow.name))
    if workflow.description:
        doc.block(workflow.description)
    doc.block(
        "\n".join(
            f"{step.step_number}. **{step.action.value}**: {_one_line(step.description)}"
            for step in workflow.steps
        )
    )
    return doc.render()


def to_step_table(workflow: Workflow) -> str:
    """One-table overview of a workflow's steps."""
    table = MarkdownTable("Step", "Action", "Description", "Target")
    for step in workflow.steps:
        table.row(
            str(step.step_number),
            step.action.value,
            step.description,
            format_target(step.target),
        )
    return table.render()


def to_json(workflow: Workflow) -> str:
    """Serialize a whole workflow as camelCase JSON."""
    return workflow.model_dump_json(by_alias=True, indent=2, exclude_none=True)
