"""Mock implementations for testing the engine layer.

Provides in-memory implementations of engine protocols that can be
used in tests and dry runs without a browser or filesystem.
"""

from typing import Any

from pydantic import BaseModel

from sopflow.core.schemas import ArtifactRecord
from sopflow.engine.protocols import ArtifactStore, BrowserSession, ValueGenerator
from sopflow.exceptions import SessionError

# Smallest valid PNG header, enough for screenshot plumbing.
PNG_BYTES = b"\x89PNG\r\n\x1a\n"


class MockElement(BaseModel):
    """State of one element on the mock page."""

    text: str | None = None
    value: str = ""
    visible: bool = True
    count: int = 1


class MockBrowserSession:
    """Scripted browser session.

    Elements are keyed by selector. ``body`` always exists. Unknown
    selectors raise SessionError for actions that need an element. Every
    call is recorded, and failures can be queued per method with fail_next.
    """

    def __init__(
        self,
        elements: dict[str, MockElement] | None = None,
        storage: dict[str, Any] | None = None,
    ) -> None:
        self.elements: dict[str, MockElement] = {
            selector: element.model_copy() for selector, element in (elements or {}).items()
        }
        self.storage = storage
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.current_url: str | None = None
        self.closed = False
        self._failures: dict[str, list[Exception]] = {}

    def fail_next(self, method: str, error: Exception | None = None, times: int = 1) -> None:
        """Make the next ``times`` calls to method raise."""
        queue = self._failures.setdefault(method, [])
        for _ in range(times):
            queue.append(error or SessionError(method, "scripted failure"))

    def _call(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        queue = self._failures.get(method)
        if queue:
            raise queue.pop(0)

    def _element(self, method: str, selector: str) -> MockElement:
        if selector not in self.elements:
            raise SessionError(method, f"No element matches {selector}")
        return self.elements[selector]

    def called(self, method: str) -> list[tuple[Any, ...]]:
        """Arguments of every recorded call to method."""
        return [args for name, args in self.calls if name == method]

    def navigate(self, url: str) -> None:
        self._call("navigate", url)
        self.current_url = url

    def click(self, selector: str) -> None:
        self._call("click", selector)
        self._element("click", selector)

    def fill(self, selector: str, value: str) -> None:
        self._call("fill", selector, value)
        self._element("fill", selector).value = value

    def select_option(self, selector: str, value: str) -> None:
        self._call("select_option", selector, value)
        self._element("select_option", selector).value = value

    def wait_for_selector(self, selector: str, timeout: int) -> None:
        self._call("wait_for_selector", selector, timeout)
        if not self.exists(selector):
            raise SessionError("wait_for_selector", f"Timeout {timeout}ms waiting for {selector}")

    def text_content(self, selector: str) -> str | None:
        self._call("text_content", selector)
        return self._element("text_content", selector).text

    def exists(self, selector: str) -> bool:
        return selector == "body" or selector in self.elements

    def is_visible(self, selector: str) -> bool:
        self._call("is_visible", selector)
        if selector == "body":
            return True
        element = self.elements.get(selector)
        return element is not None and element.visible

    def input_value(self, selector: str) -> str:
        self._call("input_value", selector)
        return self._element("input_value", selector).value

    def screenshot(self) -> bytes:
        self._call("screenshot")
        return PNG_BYTES

    def count(self, selector: str) -> int:
        self._call("count", selector)
        element = self.elements.get(selector)
        return element.count if element is not None else 0

    def storage_snapshot(self) -> dict[str, Any]:
        self._call("storage_snapshot")
        return self.storage or {"cookies": [], "localStorage": {}, "sessionStorage": {}}

    def close(self) -> None:
        self.closed = True


class MockSessionFactory:
    """Creates a fresh MockBrowserSession per run and keeps them for inspection."""

    def __init__(self, elements: dict[str, MockElement] | None = None) -> None:
        self.elements = elements or {}
        self.sessions: list[MockBrowserSession] = []

    def __call__(self) -> MockBrowserSession:
        session = MockBrowserSession(self.elements)
        self.sessions.append(session)
        return session


class MockValueGenerator:
    """Returns ``generated-<method>`` and records requested methods."""

    def __init__(self) -> None:
        self.methods: list[str] = []

    def generate(self, method: str) -> str:
        self.methods.append(method)
        return f"generated-{method}"


class MockArtifactStore:
    """Records saved artifacts without filesystem side effects."""

    def __init__(self) -> None:
        self.records: list[ArtifactRecord] = []

    def save(self, record: ArtifactRecord) -> str:
        """Record the save and return a mock location."""
        self.records.append(record)
        return f"mock://{record.phase_id.value}/{record.name}"

    def names(self) -> list[str]:
        return [record.name for record in self.records]

    def reset(self) -> None:
        """Clear all recorded saves."""
        self.records.clear()


# Verify protocol compliance at import time
assert isinstance(MockBrowserSession(), BrowserSession)
assert isinstance(MockValueGenerator(), ValueGenerator)
assert isinstance(MockArtifactStore(), ArtifactStore)
