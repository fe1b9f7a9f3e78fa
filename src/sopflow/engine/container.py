"""Wiring of engine collaborators.

Session factory, artifact store and value generator are bound to their
protocols here and nowhere else.

Usage:
    # Production: bind a real browser session factory once
    Container.set_session_factory(my_playwright_factory)
    runner = Container.workflow_runner()

    # Testing with mocks
    Container.set_session_factory(MockSessionFactory())
    Container.set_store(MockArtifactStore())
    runner = Container.workflow_runner()

    # Reset to defaults
    Container.reset()
"""

from sopflow.config import SopflowConfig, load_config
from sopflow.critique.engine import CritiqueEngine
from sopflow.engine.generators import FakerValueGenerator
from sopflow.engine.protocols import ArtifactStore, SessionFactory, ValueGenerator
from sopflow.engine.runner import WorkflowRunner
from sopflow.engine.storage import LocalArtifactStore
from sopflow.exceptions import ConfigurationError


class Container:
    """Class-level registry of engine collaborators.

    Defaults are built on first use; every collaborator can be replaced,
    which is how tests inject mocks.
    """

    _config: SopflowConfig | None = None
    _session_factory: SessionFactory | None = None
    _store: ArtifactStore | None = None
    _generator: ValueGenerator | None = None

    @classmethod
    def config(cls) -> SopflowConfig:
        """Get the configuration.

        Loaded from the current directory and environment on first access.
        """
        if cls._config is None:
            cls._config = load_config()
        return cls._config

    @classmethod
    def session_factory(cls) -> SessionFactory:
        """Get the browser session factory.

        There is no default: sopflow ships no browser driver.

        Raises:
            ConfigurationError: If no factory has been set
        """
        if cls._session_factory is None:
            raise ConfigurationError(
                "No browser session factory configured. "
                "Call Container.set_session_factory() first."
            )
        return cls._session_factory

    @classmethod
    def store(cls) -> ArtifactStore:
        """Get the artifact store.

        Returns LocalArtifactStore under the configured data directory by default.
        """
        if cls._store is None:
            cls._store = LocalArtifactStore(cls.config().storage.data_dir)
        return cls._store

    @classmethod
    def generator(cls) -> ValueGenerator:
        """Get the value generator.

        Returns FakerValueGenerator by default.
        """
        if cls._generator is None:
            cls._generator = FakerValueGenerator()
        return cls._generator

    @classmethod
    def critique_engine(cls) -> CritiqueEngine:
        """Create a CritiqueEngine with the configured review threshold."""
        return CritiqueEngine(review_threshold=cls.config().critique.review_threshold)

    @classmethod
    def workflow_runner(cls) -> WorkflowRunner:
        """Build a WorkflowRunner from the bound collaborators and configuration."""
        return WorkflowRunner(
            session_factory=cls.session_factory(),
            store=cls.store(),
            generator=cls.generator(),
            critique=cls.critique_engine(),
            execution=cls.config().execution,
        )

    @classmethod
    def set_config(cls, config: SopflowConfig | None) -> None:
        """Override the configuration.

        Pass None to reload from disk on next access.
        """
        cls._config = config

    @classmethod
    def set_session_factory(cls, factory: SessionFactory | None) -> None:
        """Bind the browser session factory."""
        cls._session_factory = factory

    @classmethod
    def set_store(cls, store: ArtifactStore | None) -> None:
        """Override the artifact store.

        None restores the default on next access.
        """
        cls._store = store

    @classmethod
    def set_generator(cls, generator: ValueGenerator | None) -> None:
        """Override the value generator.

        None restores the default on next access.
        """
        cls._generator = generator

    @classmethod
    def reset(cls) -> None:
        """Forget every override and cached default, including the configuration."""
        cls._config = None
        cls._session_factory = None
        cls._store = None
        cls._generator = None


def get_runner() -> WorkflowRunner:
    """Runner wired from the container."""
    return Container.workflow_runner()
