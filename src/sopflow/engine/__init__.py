"""Execution engine for workflows.

This module provides workflow execution with clean architecture:

- WorkflowExecutor: Runs one workflow against one browser session
- WorkflowRunner: Session-per-run orchestration, batches, resume and artifacts
- BrowserSession: Protocol for the page a workflow drives
- ArtifactStore: Protocol for result persistence (local, in-memory, etc.)
"""

from sopflow.engine.container import Container, get_runner
from sopflow.engine.executor import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_WAIT_TIMEOUT_MS,
    WorkflowExecutor,
    derive_status,
    failure_result,
    seed_variables,
)
from sopflow.engine.generators import FakerValueGenerator
from sopflow.engine.protocols import ArtifactStore, BrowserSession, SessionFactory, ValueGenerator
from sopflow.engine.runner import WorkflowRunner
from sopflow.engine.storage import LocalArtifactStore

__all__ = [
    # Core classes
    "WorkflowExecutor",
    "WorkflowRunner",
    "Container",
    "get_runner",
    # Protocols
    "BrowserSession",
    "SessionFactory",
    "ValueGenerator",
    "ArtifactStore",
    # Implementations
    "FakerValueGenerator",
    "LocalArtifactStore",
    # Helpers
    "derive_status",
    "failure_result",
    "seed_variables",
    # Constants
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_WAIT_TIMEOUT_MS",
]
