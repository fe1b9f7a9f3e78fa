"""Shared pytest fixtures for sopflow tests.

Provides common fixtures for mocking engine components and sample workflows.
"""

import pytest

from sopflow.core.schemas import (
    ErrorHandling,
    ErrorStrategy,
    RequiredInput,
    Step,
    StepAction,
    StepTarget,
    StepValidation,
    SuccessCriterion,
    UserData,
    ValidationKind,
    Workflow,
)
from sopflow.engine import Container
from sopflow.engine.mocks import MockArtifactStore, MockElement, MockSessionFactory

LOGIN_ELEMENTS = {
    "#email": MockElement(),
    "#password": MockElement(),
    "#submit": MockElement(),
    ".welcome": MockElement(text="Welcome back, Jane"),
}


@pytest.fixture
def mock_session_factory() -> MockSessionFactory:
    """Fixture that sets up and tears down a mock session factory via Container.

    Yields:
        MockSessionFactory whose sessions know the login page elements
    """
    factory = MockSessionFactory(LOGIN_ELEMENTS)
    Container.set_session_factory(factory)
    yield factory
    Container.reset()


@pytest.fixture
def mock_store() -> MockArtifactStore:
    """Fixture that sets up and tears down a mock artifact store via Container.

    Yields:
        MockArtifactStore instance for tracking saved artifacts
    """
    store = MockArtifactStore()
    Container.set_store(store)
    yield store
    Container.reset()


@pytest.fixture
def login_workflow() -> Workflow:
    """A five-step login workflow that succeeds against LOGIN_ELEMENTS."""
    return Workflow(
        name="Log in",
        description="Sign in with email and password",
        steps=[
            Step(
                step_number=1,
                action=StepAction.NAVIGATE,
                description="Open the login page",
                target=StepTarget(url="https://example.com/login"),
            ),
            Step(
                step_number=2,
                action=StepAction.INPUT,
                description="Enter the email",
                target=StepTarget(selector="#email"),
                data=UserData(field="email"),
            ),
            Step(
                step_number=3,
                action=StepAction.INPUT,
                description="Enter the password",
                target=StepTarget(selector="#password"),
                data=UserData(field="password"),
            ),
            Step(
                step_number=4,
                action=StepAction.CLICK,
                description="Submit the form",
                target=StepTarget(selector="#submit"),
                error_handling=ErrorHandling(strategy=ErrorStrategy.RETRY, max_retries=2),
            ),
            Step(
                step_number=5,
                action=StepAction.VERIFY,
                description="Check the welcome banner",
                target=StepTarget(selector=".welcome"),
                validation=StepValidation(kind=ValidationKind.TEXT, expected="Welcome"),
            ),
        ],
        required_inputs=[
            RequiredInput(field="email"),
            RequiredInput(field="password"),
        ],
        success_criteria=[
            SuccessCriterion(description="Welcome banner shown", validation="text:Welcome"),
        ],
    )
