"""Pydantic schemas for sopflow workflows, executions and critiques.

Python attributes are snake_case. Persisted JSON (SOP step blocks, result
files) uses the camelCase aliases, e.g. ``stepNumber`` and ``errorHandling``.
Both spellings are accepted on input.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator
from pydantic.alias_generators import to_camel


def new_id() -> str:
    """Generate a new record identifier."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Base for records that round-trip through camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Enumerations


class StepAction(str, Enum):
    """Closed set of step actions."""

    NAVIGATE = "navigate"
    CLICK = "click"
    INPUT = "input"
    SELECT = "select"
    WAIT = "wait"
    VERIFY = "verify"
    SCREENSHOT = "screenshot"
    EXTRACT = "extract"
    CONDITIONAL = "conditional"
    LOOP = "loop"


class ValidationKind(str, Enum):
    """Kinds of post-action checks."""

    EXISTS = "exists"
    VISIBLE = "visible"
    TEXT = "text"
    VALUE = "value"
    COUNT = "count"
    CUSTOM = "custom"


class ErrorStrategy(str, Enum):
    """What to do when a step fails."""

    RETRY = "retry"
    SKIP = "skip"
    ABORT = "abort"
    FALLBACK = "fallback"


class Complexity(str, Enum):
    """Workflow complexity tier, ordered from lowest to highest."""

    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"

    @property
    def rank(self) -> int:
        return list(Complexity).index(self)


class PhaseId(str, Enum):
    """Pipeline phases."""

    SCAN = "scan"
    INTERPRET = "interpret"
    ORCHESTRATE = "orchestrate"
    EXECUTE = "execute"
    DERIVE = "derive"


class Severity(str, Enum):
    """Issue severity."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ExecutionStatus(str, Enum):
    """Overall status of a workflow run."""

    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"
    SKIPPED = "skipped"


class StepStatus(str, Enum):
    """Terminal status of a single step."""

    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class CognitiveMode(str, Enum):
    """How much autonomy automation is given."""

    AUTONOMOUS = "autonomous"
    SUPERVISED = "supervised"
    COLLABORATIVE = "collaborative"
    MANUAL = "manual"


class InterventionPoint(str, Enum):
    """Named triggers for human intervention."""

    BEFORE_PHASE = "before_phase"
    AFTER_PHASE = "after_phase"
    ON_LOW_CONFIDENCE = "on_low_confidence"
    ON_ERROR = "on_error"
    ON_CRITICAL_ISSUE = "on_critical_issue"


class RecommendedAction(str, Enum):
    """Action recommended by the escalation engine."""

    APPROVE = "approve"
    REJECT = "reject"
    REVIEW = "review"
    AUTO_CORRECT = "auto_correct"


# Critique


class ConfidenceDimensions(WireModel):
    """The four scored quality dimensions."""

    completeness: float = Field(ge=0, le=1)
    accuracy: float = Field(ge=0, le=1)
    feasibility: float = Field(ge=0, le=1)
    coverage: float = Field(ge=0, le=1)


class ConfidenceScore(WireModel):
    """Weighted confidence estimate with a human-review flag."""

    overall: float = Field(ge=0, le=1)
    dimensions: ConfidenceDimensions
    reasoning: str = ""
    human_review_required: bool


class Issue(WireModel):
    """A problem found while critiquing an artifact."""

    severity: Severity
    description: str
    suggestion: str | None = None


class AutoCorrection(WireModel):
    """A proposed fix; ``applied`` is False until something applies it."""

    description: str
    applied: bool = False


class CritiqueResult(WireModel):
    """Outcome of critiquing one phase's artifact."""

    phase_id: PhaseId
    timestamp: datetime = Field(default_factory=utc_now)
    confidence: ConfidenceScore
    issues: list[Issue] = Field(default_factory=list)
    auto_corrections: list[AutoCorrection] = Field(default_factory=list)

    @property
    def has_critical_issues(self) -> bool:
        return any(issue.severity == Severity.CRITICAL for issue in self.issues)


# Workflow


class StepTarget(WireModel):
    """What a step acts on: a selector, a URL, or a literal value."""

    selector: str | None = None
    url: str | None = None
    value: str | None = None


class UserData(WireModel):
    """Value supplied by the caller as a workflow input."""

    source: Literal["user"] = "user"
    field: str | None = None


class GeneratorData(WireModel):
    """Value produced by the value generator."""

    source: Literal["generator"] = "generator"
    method: str = "name"
    field: str | None = None


class StateData(WireModel):
    """Value read from a variable an earlier step produced."""

    source: Literal["state"] = "state"
    field: str


class ConstantData(WireModel):
    """Literal constant value."""

    source: Literal["constant"] = "constant"
    value: JsonValue = None
    field: str | None = None


DataSpec = Annotated[
    Union[UserData, GeneratorData, StateData, ConstantData],
    Field(discriminator="source"),
]


class StepValidation(WireModel):
    """Post-action check. Serialized with the key ``type`` for the kind."""

    kind: ValidationKind = Field(alias="type")
    expected: JsonValue = None
    timeout: int | None = None  # milliseconds


class ErrorHandling(WireModel):
    """Failure policy for a step."""

    strategy: ErrorStrategy
    max_retries: int | None = Field(default=None, ge=0)
    fallback_step_number: int | None = None


class Step(WireModel):
    """One typed action in a workflow."""

    step_number: int
    action: StepAction
    description: str = ""
    target: StepTarget | None = None
    data: DataSpec | None = None
    validation: StepValidation | None = None
    error_handling: ErrorHandling | None = None


class RequiredInput(WireModel):
    """A caller-supplied input the workflow declares."""

    field: str
    type: str = "string"
    required: bool = True
    default_value: JsonValue = None


class SuccessCriterion(WireModel):
    """How to tell the workflow achieved its goal."""

    description: str
    validation: str = ""


class Workflow(WireModel):
    """An ordered, contiguously numbered procedure plus metadata."""

    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    metadata_ids: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)
    steps: list[Step] = Field(default_factory=list)
    required_inputs: list[RequiredInput] = Field(default_factory=list)
    success_criteria: list[SuccessCriterion] = Field(default_factory=list)
    estimated_duration: float = 0  # seconds
    complexity: Complexity = Complexity.MEDIUM
    tags: list[str] = Field(default_factory=list)
    critique: CritiqueResult | None = None

    def get_step(self, step_number: int) -> Step | None:
        """Get a step by its number."""
        for step in self.steps:
            if step.step_number == step_number:
                return step
        return None


# Execution


class FailedStep(WireModel):
    """Record of a step whose final attempt failed."""

    step_number: int
    error: str
    timestamp: datetime = Field(default_factory=utc_now)


class SessionSnapshot(WireModel):
    """What the engine knows about the driven browser session."""

    current_url: str | None = None
    cookies: list[JsonValue] = Field(default_factory=list)
    local_storage: dict[str, str] = Field(default_factory=dict)
    session_storage: dict[str, str] = Field(default_factory=dict)


class ExecutionState(WireModel):
    """Mutable context of one workflow run."""

    id: str = Field(default_factory=new_id)
    workflow_id: str = ""
    timestamp: datetime = Field(default_factory=utc_now)
    variables: dict[str, JsonValue] = Field(default_factory=dict)
    current_step_number: int = 0
    completed_steps: list[int] = Field(default_factory=list)
    failed_steps: list[FailedStep] = Field(default_factory=list)
    session: SessionSnapshot = Field(default_factory=SessionSnapshot)


class StepOutcome(WireModel):
    """Result of one step. Frozen once recorded in a result."""

    model_config = ConfigDict(frozen=True)

    step_number: int
    status: StepStatus
    duration: float = 0  # milliseconds
    output: JsonValue = None
    error: str | None = None
    screenshot: str | None = None  # base64 PNG data URL
    attempts: int = 1


class ExecutionResult(WireModel):
    """Immutable record of one workflow run.

    Sequences are tuples and the final state is a private copy, so neither
    the executor nor a caller can change a result after it is built.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    workflow_id: str
    execution_state_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    status: ExecutionStatus
    duration: float = 0  # milliseconds
    step_results: tuple[StepOutcome, ...] = ()
    screenshots: tuple[str, ...] = ()
    logs: tuple[str, ...] = ()
    final_state: ExecutionState
    critique: CritiqueResult | None = None

    @field_validator("final_state")
    @classmethod
    def _own_final_state(cls, state: ExecutionState) -> ExecutionState:
        return state.model_copy(deep=True)

    def count(self, status: StepStatus) -> int:
        """Number of step outcomes with the given status."""
        return sum(1 for outcome in self.step_results if outcome.status == status)

    @property
    def success_rate(self) -> float:
        if not self.step_results:
            return 0.0
        return self.count(StepStatus.SUCCESS) / len(self.step_results)


# Cognitive quadrant


class QuadrantThresholds(WireModel):
    """Confidence thresholds driving escalation."""

    model_config = ConfigDict(frozen=True)

    auto_approve: float = Field(default=0.8, ge=0, le=1)
    require_review: float = Field(default=0.6, ge=0, le=1)
    auto_correct: float = Field(default=0.5, ge=0, le=1)


class CognitiveQuadrant(WireModel):
    """Process-wide human intervention policy."""

    model_config = ConfigDict(frozen=True)

    mode: CognitiveMode = CognitiveMode.SUPERVISED
    thresholds: QuadrantThresholds = Field(default_factory=QuadrantThresholds)
    human_intervention_points: list[InterventionPoint] = Field(
        default_factory=lambda: [
            InterventionPoint.ON_LOW_CONFIDENCE,
            InterventionPoint.ON_CRITICAL_ISSUE,
        ]
    )


class EscalationVerdict(BaseModel):
    """Whether an artifact must go to a human, and why."""

    model_config = ConfigDict(frozen=True)

    should_escalate: bool
    reason: str


class Recommendation(BaseModel):
    """Recommended next action for an artifact."""

    model_config = ConfigDict(frozen=True)

    action: RecommendedAction
    reason: str


# Artifacts


class ArtifactRecord(BaseModel):
    """What the engine hands to an artifact store."""

    phase_id: PhaseId
    name: str
    payload: dict[str, JsonValue]
    attachments: dict[str, bytes] = Field(default_factory=dict)
