"""sopflow - standard operating procedures as executable browser workflows.

Parse and write SOP documents, execute them step by step against a
browser session, critique the results and decide when a human must step in.
"""

from sopflow.exceptions import (
    ConfidenceRangeError,
    ConfigurationError,
    CritiqueError,
    ExecutionError,
    ProcedureParseError,
    ReviewError,
    ReviewNotFoundError,
    ReviewTimeoutError,
    SessionError,
    SopflowError,
    WorkflowError,
    WorkflowStructureError,
)

__version__ = "0.1.0"

__all__ = [
    # Base exception
    "SopflowError",
    # Configuration
    "ConfigurationError",
    # Workflow
    "WorkflowError",
    "ProcedureParseError",
    "WorkflowStructureError",
    # Execution
    "ExecutionError",
    "SessionError",
    # Critique
    "CritiqueError",
    "ConfidenceRangeError",
    # Review
    "ReviewError",
    "ReviewNotFoundError",
    "ReviewTimeoutError",
]
