"""Tests for parsing, validating and merging SOP workflows."""

import pytest

from sopflow.core.schemas import (
    Complexity,
    ConstantData,
    ErrorHandling,
    ErrorStrategy,
    GeneratorData,
    RequiredInput,
    StateData,
    Step,
    StepAction,
    StepTarget,
    SuccessCriterion,
    Workflow,
)
from sopflow.exceptions import ProcedureParseError, WorkflowStructureError
from sopflow.procedure import (
    ensure_valid,
    from_json,
    from_markdown,
    merge_workflows,
    to_json,
    to_markdown,
    validate_workflow,
)


def _step(n: int, action: StepAction = StepAction.CLICK, description: str = "Do it") -> Step:
    return Step(
        step_number=n,
        action=action,
        description=description,
        target=StepTarget(selector=f"#s{n}"),
    )


class TestRoundTrip:
    """Writing then reading a document preserves what matters."""

    def test_steps_and_inputs_survive(self, login_workflow: Workflow) -> None:
        """Test steps and required inputs are identical after a round trip."""
        parsed = from_markdown(to_markdown(login_workflow))
        assert parsed.steps == login_workflow.steps
        assert parsed.required_inputs == login_workflow.required_inputs

    def test_unicode_line_separators_in_steps(self) -> None:
        """Test U+2028, U+2029 and U+0085 inside step fields do not split the block."""
        workflow = Workflow(
            name="Separators",
            steps=[
                Step(
                    step_number=1,
                    action=StepAction.INPUT,
                    description="Click\u2028the button",
                    target=StepTarget(selector="#a\u2029b"),
                    data=ConstantData(value="line\x85next"),
                )
            ],
        )
        parsed = from_markdown(to_markdown(workflow))
        assert parsed.steps == workflow.steps

    def test_crlf_document(self, login_workflow: Workflow) -> None:
        """Test a document saved with Windows line endings still parses."""
        markdown = to_markdown(login_workflow).replace("\n", "\r\n")
        parsed = from_markdown(markdown)
        assert parsed.steps == login_workflow.steps

    def test_metadata_survives(self, login_workflow: Workflow) -> None:
        """Test name, id, description, timestamp and complexity are read back."""
        parsed = from_markdown(to_markdown(login_workflow))
        assert parsed.name == login_workflow.name
        assert parsed.id == login_workflow.id
        assert parsed.description == login_workflow.description
        assert parsed.timestamp == login_workflow.timestamp
        assert parsed.complexity == login_workflow.complexity
        assert parsed.success_criteria == login_workflow.success_criteria

    def test_tags_and_duration_survive(self) -> None:
        """Test the optional metadata lines are read back."""
        workflow = Workflow(
            name="Tagged",
            tags=["auth", "smoke"],
            estimated_duration=30,
            complexity=Complexity.COMPLEX,
        )
        parsed = from_markdown(to_markdown(workflow))
        assert parsed.tags == ["auth", "smoke"]
        assert parsed.estimated_duration == 30
        assert parsed.complexity == Complexity.COMPLEX

    def test_tricky_defaults_survive(self) -> None:
        """Test defaults that need quoting in a table cell."""
        inputs = [
            RequiredInput(field="pipe", default_value="a|b"),
            RequiredInput(field="dash", default_value="-"),
            RequiredInput(field="empty", default_value=""),
            RequiredInput(field="numeric_text", default_value="42"),
            RequiredInput(field="number", type="number", default_value=42),
            RequiredInput(field="flag", type="boolean", required=False, default_value=False),
            RequiredInput(field="spaces", default_value="  two  spaces "),
            RequiredInput(field="multiline", default_value="line one\nline two"),
            RequiredInput(field="obj", type="object", default_value={"k": ["v", 1]}),
            RequiredInput(field="none"),
        ]
        workflow = Workflow(name="Defaults", required_inputs=inputs)
        parsed = from_markdown(to_markdown(workflow))
        assert parsed.required_inputs == inputs

    def test_every_data_source_survives(self) -> None:
        """Test each tagged data source is rebuilt with the right variant."""
        workflow = Workflow(
            name="Sources",
            steps=[
                Step(
                    step_number=1,
                    action=StepAction.INPUT,
                    description="Generated",
                    target=StepTarget(selector="#a"),
                    data=GeneratorData(method="email", field="email"),
                ),
                Step(
                    step_number=2,
                    action=StepAction.INPUT,
                    description="From state",
                    target=StepTarget(selector="#b"),
                    data=StateData(field="email"),
                ),
                Step(
                    step_number=3,
                    action=StepAction.SELECT,
                    description="Constant",
                    target=StepTarget(selector="#c"),
                    data=ConstantData(value={"nested": [1, 2]}),
                ),
            ],
        )
        parsed = from_markdown(to_markdown(workflow))
        assert isinstance(parsed.steps[0].data, GeneratorData)
        assert isinstance(parsed.steps[1].data, StateData)
        assert isinstance(parsed.steps[2].data, ConstantData)
        assert parsed.steps == workflow.steps

    def test_parsed_workflow_carries_full_confidence(self, login_workflow: Workflow) -> None:
        """Test parsing attaches a full-confidence orchestrate critique."""
        parsed = from_markdown(to_markdown(login_workflow))
        assert parsed.critique is not None
        assert parsed.critique.phase_id.value == "orchestrate"
        assert parsed.critique.confidence.overall == 1.0
        assert parsed.critique.confidence.reasoning == "Parsed from markdown"
        assert parsed.critique.confidence.human_review_required is False


class TestFromMarkdown:
    """Tests for reading hand-written or edited documents."""

    def test_heading_text_is_ignored(self, login_workflow: Workflow) -> None:
        """Test edits to step headings do not change the parsed step."""
        text = to_markdown(login_workflow).replace(
            "### Step 1: Open the login page", "### Step 1: Something else entirely"
        )
        parsed = from_markdown(text)
        assert parsed.steps[0].description == "Open the login page"

    def test_steps_sorted_by_number(self) -> None:
        """Test blocks out of order are sorted by step number."""
        text = "\n".join(
            [
                "# SOP: Sorted",
                "",
                "## Workflow Steps",
                "",
                "```json",
                '{"stepNumber": 2, "action": "click", "description": "second"}',
                "```",
                "",
                "```json",
                '{"stepNumber": 1, "action": "click", "description": "first"}',
                "```",
            ]
        )
        parsed = from_markdown(text)
        assert [s.step_number for s in parsed.steps] == [1, 2]
        assert parsed.steps[0].description == "first"

    def test_missing_title_uses_default_name(self) -> None:
        """Test a document without a title gets a placeholder name."""
        parsed = from_markdown("## Workflow Steps\n")
        assert parsed.name == "Untitled Workflow"
        assert parsed.steps == []

    def test_malformed_step_json_raises(self) -> None:
        """Test a broken step block is an error, not a silently dropped step."""
        text = "# SOP: Broken\n\n## Workflow Steps\n\n```json\n{not json}\n```\n"
        with pytest.raises(ProcedureParseError) as exc_info:
            from_markdown(text)
        assert exc_info.value.line == 5

    def test_invalid_step_object_raises(self) -> None:
        """Test a block with an unknown action is rejected."""
        text = (
            "# SOP: Bad action\n\n## Workflow Steps\n\n```json\n"
            '{"stepNumber": 1, "action": "teleport"}\n```\n'
        )
        with pytest.raises(ProcedureParseError, match="not a valid step"):
            from_markdown(text)

    def test_unterminated_block_raises(self) -> None:
        """Test a block without a closing fence is rejected."""
        text = '# SOP: Open\n\n## Workflow Steps\n\n```json\n{"stepNumber": 1}\n'
        with pytest.raises(ProcedureParseError, match="unterminated"):
            from_markdown(text)

    def test_unknown_complexity_raises(self) -> None:
        """Test an unknown complexity value is rejected."""
        with pytest.raises(ProcedureParseError, match="complexity"):
            from_markdown("# SOP: X\n\n> **Complexity**: enormous\n")

    def test_short_input_row_raises(self) -> None:
        """Test a required-input row with too few cells is rejected."""
        text = (
            "# SOP: X\n\n## Required Inputs\n\n"
            "| Field | Type | Required | Default |\n"
            "| --- | --- | --- | --- |\n"
            "| email | string |\n"
        )
        with pytest.raises(ProcedureParseError, match="expected 4"):
            from_markdown(text)

    def test_criteria_pair_with_validation(self) -> None:
        """Test each criterion takes the validation line that follows it."""
        text = "\n".join(
            [
                "# SOP: Criteria",
                "",
                "## Success Criteria",
                "",
                "1. Banner shown",
                "   Validation: visible:.banner",
                "2. No error",
            ]
        )
        parsed = from_markdown(text)
        assert parsed.success_criteria == [
            SuccessCriterion(description="Banner shown", validation="visible:.banner"),
            SuccessCriterion(description="No error"),
        ]


class TestFromJson:
    """Tests for the JSON reader."""

    def test_round_trip(self, login_workflow: Workflow) -> None:
        """Test the JSON writer and reader agree."""
        assert from_json(to_json(login_workflow)) == login_workflow

    def test_invalid_json_raises(self) -> None:
        """Test garbage input raises a parse error."""
        with pytest.raises(ProcedureParseError):
            from_json("{")


class TestValidateWorkflow:
    """Tests for structural validation."""

    def test_valid_workflow(self, login_workflow: Workflow) -> None:
        """Test a well-formed workflow has no errors."""
        report = validate_workflow(login_workflow)
        assert report.success is True
        assert report.errors == []

    def test_numbering_gap(self) -> None:
        """Test the first gap in step numbering is reported."""
        workflow = Workflow(name="Gap", steps=[_step(1), _step(2), _step(4)])
        report = validate_workflow(workflow)
        assert report.success is False
        assert report.errors == ["Step numbering gap: expected 3, found 4"]

    def test_missing_name_and_steps(self) -> None:
        """Test an empty workflow reports both errors."""
        report = validate_workflow(Workflow(name=""))
        assert report.errors == ["Missing workflow name", "No steps defined"]

    def test_missing_description(self) -> None:
        """Test steps without a description are reported by position."""
        workflow = Workflow(name="Quiet", steps=[_step(1), _step(2, description=" ")])
        report = validate_workflow(workflow)
        assert report.errors == ["Step 2 missing description"]

    def test_fallback_warns(self) -> None:
        """Test a fallback policy produces a warning, not an error."""
        step = _step(1).model_copy(
            update={
                "error_handling": ErrorHandling(
                    strategy=ErrorStrategy.FALLBACK, fallback_step_number=1
                )
            }
        )
        report = validate_workflow(Workflow(name="Fallback", steps=[step]))
        assert report.success is True
        assert report.warnings == ["Step 1 uses a fallback policy, which runs as abort"]

    def test_format_lists_errors(self) -> None:
        """Test the rich report shows each error."""
        report = validate_workflow(Workflow(name=""))
        formatted = report.format()
        assert "Workflow structure is invalid" in formatted
        assert "Missing workflow name" in formatted

    def test_ensure_valid_raises(self) -> None:
        """Test ensure_valid raises with every error attached."""
        workflow = Workflow(name="Gap", steps=[_step(2)])
        with pytest.raises(WorkflowStructureError) as exc_info:
            ensure_valid(workflow)
        assert exc_info.value.errors == ["Step numbering gap: expected 1, found 2"]

    def test_ensure_valid_returns_workflow(self, login_workflow: Workflow) -> None:
        """Test a valid workflow passes through unchanged."""
        assert ensure_valid(login_workflow) is login_workflow


class TestMergeWorkflows:
    """Tests for merging workflows."""

    def test_renumbers_in_input_order(self) -> None:
        """Test steps are renumbered contiguously across inputs."""
        first = Workflow(name="A", steps=[_step(1, description="a1"), _step(2, description="a2")])
        second = Workflow(name="B", steps=[_step(1, description="b1")])
        merged = merge_workflows([first, second], "A then B")
        assert [s.step_number for s in merged.steps] == [1, 2, 3]
        assert [s.description for s in merged.steps] == ["a1", "a2", "b1"]
        assert validate_workflow(merged).success is True

    def test_inputs_and_criteria_concatenated(self) -> None:
        """Test inputs and criteria keep input order."""
        first = Workflow(
            name="A",
            required_inputs=[RequiredInput(field="email")],
            success_criteria=[SuccessCriterion(description="A done")],
        )
        second = Workflow(
            name="B",
            required_inputs=[RequiredInput(field="code")],
            success_criteria=[SuccessCriterion(description="B done")],
        )
        merged = merge_workflows([first, second], "Both")
        assert [i.field for i in merged.required_inputs] == ["email", "code"]
        assert [c.description for c in merged.success_criteria] == ["A done", "B done"]

    def test_tags_deduplicated_and_complexity_forced(self) -> None:
        """Test tag dedup keeps first occurrence and complexity is the top tier."""
        first = Workflow(name="A", tags=["auth", "smoke"], complexity=Complexity.SIMPLE)
        second = Workflow(name="B", tags=["smoke", "billing"], complexity=Complexity.SIMPLE)
        merged = merge_workflows([first, second], "Both")
        assert merged.tags == ["auth", "smoke", "billing"]
        assert merged.complexity == Complexity.COMPLEX

    def test_inputs_are_not_mutated(self) -> None:
        """Test the source workflows keep their own numbering."""
        first = Workflow(name="A", steps=[_step(1)])
        second = Workflow(name="B", steps=[_step(1)])
        merge_workflows([first, second], "Both")
        assert second.steps[0].step_number == 1

    def test_merged_metadata(self) -> None:
        """Test description, durations and critique of the merged workflow."""
        merged = merge_workflows(
            [Workflow(name="A", estimated_duration=10), Workflow(name="B", estimated_duration=5)],
            "Both",
        )
        assert merged.name == "Both"
        assert merged.description == "Merged workflow from 2 workflows"
        assert merged.estimated_duration == 15
        assert merged.critique is not None
        assert merged.critique.confidence.reasoning == "Merged workflow"
