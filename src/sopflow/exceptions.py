"""sopflow exception hierarchy.

Structural problems (bad documents, broken step numbering) are raised as
exceptions. Step failures are never raised: they are recorded in the
ExecutionResult and routed through the step's error-handling policy.

Usage:
    from sopflow.exceptions import ProcedureParseError, WorkflowStructureError

    try:
        workflow = from_markdown(text)
        ensure_valid(workflow)
    except ProcedureParseError as e:
        print(f"Unreadable SOP: {e.reason}")
    except WorkflowStructureError as e:
        for error in e.errors:
            print(error)
    except SopflowError as e:
        print(f"sopflow error: {e}")
"""


class SopflowError(Exception):
    """Base exception for all sopflow errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# Configuration Errors


class ConfigurationError(SopflowError):
    """Invalid sopflow configuration.

    Raised when .sopflow/config.yaml or an environment override cannot be
    parsed or fails schema validation.
    """

    pass


# Workflow Errors


class WorkflowError(SopflowError):
    """Base class for workflow-related errors."""

    pass


class ProcedureParseError(WorkflowError):
    """An SOP document or workflow JSON could not be parsed."""

    def __init__(self, reason: str, line: int | None = None) -> None:
        self.reason = reason
        self.line = line
        message = f"Failed to parse procedure: {reason}"
        if line is not None:
            message = f"Failed to parse procedure (line {line}): {reason}"
        super().__init__(message)


class WorkflowStructureError(WorkflowError):
    """A workflow failed structural validation.

    Carries every error found so callers can report them together.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid workflow structure: " + "; ".join(self.errors))


# Execution Errors


class ExecutionError(SopflowError):
    """Base class for execution-related errors."""

    pass


class SessionError(ExecutionError):
    """A browser session operation failed.

    Session implementations raise this; the executor turns it into a
    failed step outcome.
    """

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


# Critique Errors


class CritiqueError(SopflowError):
    """Base class for critique and scoring errors."""

    pass


class ConfidenceRangeError(CritiqueError, ValueError):
    """A confidence dimension fell outside [0, 1]."""

    def __init__(self, dimension: str, value: float) -> None:
        self.dimension = dimension
        self.value = value
        super().__init__(f"Dimension '{dimension}' must be between 0 and 1, got {value}")


# Review Errors


class ReviewError(SopflowError):
    """Base class for human review errors."""

    pass


class ReviewNotFoundError(ReviewError):
    """No review request with the given ID exists."""

    def __init__(self, review_id: str) -> None:
        self.review_id = review_id
        super().__init__(f"Review request not found: {review_id}")


class ReviewTimeoutError(ReviewError):
    """No decision arrived for a review request in time."""

    def __init__(self, review_id: str, timeout_seconds: float) -> None:
        self.review_id = review_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"No decision for review {review_id} after {timeout_seconds}s")
