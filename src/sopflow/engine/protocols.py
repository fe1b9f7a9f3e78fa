"""Protocols for the workflow execution engine.

Defines contracts for the browser session, value generator and artifact
store collaborators, enabling dependency injection and testability.
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from sopflow.core.schemas import ArtifactRecord


@runtime_checkable
class BrowserSession(Protocol):
    """Protocol for the browser session a workflow drives.

    Any call may raise; the executor records the error as a failed step.
    Implementations may also provide these optional capabilities, which
    the executor detects with getattr:

    - ``count(selector) -> int`` for count validations
    - ``storage_snapshot() -> dict`` with ``cookies``, ``localStorage`` and
      ``sessionStorage`` keys, captured at the end of a run
    - ``close()``, called by the runner when the run ends
    """

    def navigate(self, url: str) -> None:
        """Load a URL."""
        ...

    def click(self, selector: str) -> None:
        """Click the element matching selector."""
        ...

    def fill(self, selector: str, value: str) -> None:
        """Type value into the input matching selector."""
        ...

    def select_option(self, selector: str, value: str) -> None:
        """Choose value in the select element matching selector."""
        ...

    def wait_for_selector(self, selector: str, timeout: int) -> None:
        """Block until selector is present, or raise after timeout ms."""
        ...

    def text_content(self, selector: str) -> str | None:
        """Text content of the element matching selector."""
        ...

    def exists(self, selector: str) -> bool:
        """Whether an element matches selector."""
        ...

    def is_visible(self, selector: str) -> bool:
        """Whether the element matching selector is visible."""
        ...

    def input_value(self, selector: str) -> str:
        """Current value of the input matching selector."""
        ...

    def screenshot(self) -> bytes:
        """PNG screenshot of the current page."""
        ...


SessionFactory = Callable[[], BrowserSession]


@runtime_checkable
class ValueGenerator(Protocol):
    """Protocol for generated test values.

    Used for steps whose data comes from a generator method such as
    ``email`` or ``phone``.
    """

    def generate(self, method: str) -> str:
        """Produce a value for the named method."""
        ...


@runtime_checkable
class ArtifactStore(Protocol):
    """Protocol for artifact persistence.

    The engine only hands over records; layout and versioning belong to
    the implementation.
    """

    def save(self, record: ArtifactRecord) -> str:
        """Persist a record and return where it was stored."""
        ...
