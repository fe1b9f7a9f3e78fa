"""SOP procedure format.

Workflows have two representations: the markdown SOP document humans
review and edit, and the structured Workflow model. Each step's fenced
JSON block is the authoritative copy of that step.
"""

from sopflow.procedure.formatter import (
    to_json,
    to_markdown,
    to_simple_markdown,
    to_step_table,
)
from sopflow.procedure.parser import (
    ValidationReport,
    ensure_valid,
    from_json,
    from_markdown,
    merge_workflows,
    validate_workflow,
)

__all__ = [
    # Writing
    "to_markdown",
    "to_simple_markdown",
    "to_step_table",
    "to_json",
    # Reading
    "from_markdown",
    "from_json",
    # Validation
    "ValidationReport",
    "validate_workflow",
    "ensure_valid",
    # Merge
    "merge_workflows",
]
