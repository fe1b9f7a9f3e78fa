"""sopflow configuration schema and loading.

Precedence, lowest first:
1. Defaults
2. .sopflow/config.yaml
3. Environment variables (COGNITIVE_MODE, THRESHOLD_*, HUMAN_INTERVENTION_POINTS, DATA_DIR)
4. Explicit overrides passed to merge_overrides
"""

from pathlib import Path
from typing import Annotated

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from sopflow.core.schemas import CognitiveMode, CognitiveQuadrant, InterventionPoint
from sopflow.exceptions import ConfigurationError

CONFIG_DIR = ".sopflow"
CONFIG_FILE = "config.yaml"


class EnvironmentSettings(BaseSettings):
    """Overrides read from environment variables.

    Every field is optional; unset or empty variables leave the loaded
    configuration alone.
    """

    model_config = SettingsConfigDict(
        extra="ignore", env_ignore_empty=True, populate_by_name=True
    )

    cognitive_mode: CognitiveMode | None = Field(default=None, validation_alias="COGNITIVE_MODE")
    threshold_auto_approve: float | None = Field(
        default=None, ge=0, le=1, validation_alias="THRESHOLD_AUTO_APPROVE"
    )
    threshold_require_review: float | None = Field(
        default=None, ge=0, le=1, validation_alias="THRESHOLD_REQUIRE_REVIEW"
    )
    threshold_auto_correct: float | None = Field(
        default=None, ge=0, le=1, validation_alias="THRESHOLD_AUTO_CORRECT"
    )
    human_intervention_points: Annotated[list[InterventionPoint] | None, NoDecode] = Field(
        default=None, validation_alias="HUMAN_INTERVENTION_POINTS"
    )
    data_dir: Path | None = Field(default=None, validation_alias="DATA_DIR")

    @field_validator("cognitive_mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("human_intervention_points", mode="before")
    @classmethod
    def _split_points(cls, value: object) -> object:
        if isinstance(value, str):
            return [p.strip() for p in value.split(",") if p.strip()]
        return value

    def thresholds(self) -> dict[str, float]:
        """Threshold overrides keyed by QuadrantThresholds field name."""
        values = {
            "auto_approve": self.threshold_auto_approve,
            "require_review": self.threshold_require_review,
            "auto_correct": self.threshold_auto_correct,
        }
        return {key: value for key, value in values.items() if value is not None}


class ExecutionConfig(BaseModel):
    """Step execution defaults."""

    default_max_retries: int = Field(
        default=3, ge=0, description="Retry bound for retry policies without maxRetries"
    )
    default_wait_timeout_ms: int = Field(
        default=5000, ge=0, description="Wait step timeout when the step sets none"
    )


class CritiqueConfig(BaseModel):
    """Self-critique settings."""

    review_threshold: float = Field(
        default=0.6, ge=0, le=1, description="Overall score below which review is required"
    )


class StorageConfig(BaseModel):
    """Artifact and review storage."""

    data_dir: Path = Field(default=Path("./data"), description="Root for artifacts and reviews")


class SopflowConfig(BaseModel):
    """Complete sopflow configuration."""

    quadrant: CognitiveQuadrant = Field(default_factory=CognitiveQuadrant)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    critique: CritiqueConfig = Field(default_factory=CritiqueConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def load_config(project_root: Path | None = None) -> SopflowConfig:
    """Load configuration from .sopflow/config.yaml and the environment.

    Args:
        project_root: Project root directory (contains .sopflow/). Defaults to cwd.

    Returns:
        SopflowConfig with values from file, environment or defaults

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    if project_root is None:
        project_root = Path.cwd()

    config_path = project_root / CONFIG_DIR / CONFIG_FILE
    config = SopflowConfig()

    if config_path.exists():
        try:
            with open(config_path) as f:
                raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(raw_config, dict):
            raise ConfigurationError(f"Invalid config in {config_path}: expected a mapping")

        try:
            config = SopflowConfig.model_validate(raw_config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config in {config_path}: {e}") from e

    return apply_env_overrides(config)


def apply_env_overrides(
    config: SopflowConfig, settings: EnvironmentSettings | None = None
) -> SopflowConfig:
    """Apply environment variable overrides on a copy of config.

    Only variables that are set and non-empty take effect.

    Args:
        config: Configuration to start from
        settings: Overrides to apply. Read from the process environment when omitted

    Raises:
        ConfigurationError: If a variable holds an invalid value
    """
    if settings is None:
        try:
            settings = EnvironmentSettings()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid environment settings: {e}") from e

    update: dict = {}
    if settings.cognitive_mode is not None:
        update["mode"] = settings.cognitive_mode
    if settings.human_intervention_points is not None:
        update["human_intervention_points"] = settings.human_intervention_points
    thresholds = settings.thresholds()
    if thresholds:
        update["thresholds"] = config.quadrant.thresholds.model_copy(update=thresholds)

    updated = config.model_copy(deep=True)
    if update:
        updated.quadrant = config.quadrant.model_copy(update=update)
    if settings.data_dir is not None:
        updated.storage.data_dir = settings.data_dir

    return updated


def merge_overrides(
    config: SopflowConfig,
    mode: CognitiveMode | None = None,
    review_threshold: float | None = None,
    max_retries: int | None = None,
    data_dir: Path | None = None,
) -> SopflowConfig:
    """Merge explicit overrides into config.

    Returns:
        New SopflowConfig with overrides applied

    Example:
        config = load_config()
        config = merge_overrides(config, mode=CognitiveMode.MANUAL)
    """
    # Create a copy to avoid mutating original
    updated = config.model_copy(deep=True)

    if mode is not None:
        updated.quadrant = updated.quadrant.model_copy(update={"mode": CognitiveMode(mode)})

    if review_threshold is not None:
        updated.critique.review_threshold = review_threshold

    if max_retries is not None:
        updated.execution.default_max_retries = max_retries

    if data_dir is not None:
        updated.storage.data_dir = Path(data_dir)

    return updated


def save_example_config(output_path: Path) -> None:
    """Save an example configuration file.

    Args:
        output_path: Path to write the example config.yaml
    """
    example = {
        "quadrant": {
            "mode": CognitiveMode.SUPERVISED.value,
            "thresholds": {
                "auto_approve": 0.8,
                "require_review": 0.6,
                "auto_correct": 0.5,
            },
            "human_intervention_points": [
                InterventionPoint.ON_LOW_CONFIDENCE.value,
                InterventionPoint.ON_CRITICAL_ISSUE.value,
            ],
        },
        "execution": {
            "default_max_retries": 3,
            "default_wait_timeout_ms": 5000,
        },
        "critique": {
            "review_threshold": 0.6,
        },
        "storage": {
            "data_dir": "./data",
        },
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write("# sopflow configuration. Environment variables override these values.\n")
        yaml.dump(example, f, default_flow_style=False, sort_keys=False)
