"""Configuration settings and loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ctdforge.errors import ConfigurationError


class ForgeConfig(BaseSettings):
    """Configuration for a ctdforge run.

    Attributes:
        app_name: Label for the application under test, used in file names.
        classpath: Extra import roots added to sys.path of execution subprocesses.
        interaction_strength: The t in t-way coverage.
        max_partition_size: Split target classes into partitions of this size.
        max_recursion_depth: Ceiling for nested constructor synthesis; -1 is unbounded.
        allow_null_fallback: Permit None for reference arguments that cannot be built.
        synthesize_receivers: Build receivers for instance members when no pooled
            sequence exists.
        batch_size: Sequences per execution subprocess.
        execution_timeout: Seconds before an execution subprocess is killed.
        executions_per_sequence: Re-run passing sequences to weed out unstable values.
        record_all_results: Record value and type for every statement, not only
            the last one.
        coverage_tool_command: Command prefix for the t-way coverage tool.
        coverage_timeout: Seconds before the coverage tool is killed.
        partition_workers: Partitions processed concurrently.
        seed: Seed for the covering-array generator.
        output_dir: Where plan, results, coverage and pool files are written.
        verbose: Enable debug logging.
    """

    model_config = SettingsConfigDict(
        env_prefix="CTDFORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "app"
    # Read from the environment as an os.pathsep-separated string.
    classpath: Annotated[list[str], NoDecode] = Field(default_factory=list)
    interaction_strength: int = 2
    max_partition_size: int | None = None
    max_recursion_depth: int = 5
    allow_null_fallback: bool = True
    synthesize_receivers: bool = True
    batch_size: int = 50
    execution_timeout: float = 60.0
    executions_per_sequence: int = 1
    record_all_results: bool = False
    coverage_tool_command: list[str] | None = None
    coverage_timeout: float = 60.0
    partition_workers: int = 1
    seed: int | None = 0
    output_dir: str = "ctdforge-output"
    verbose: bool = False

    @field_validator("interaction_strength", "batch_size", "executions_per_sequence", "partition_workers")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("max_recursion_depth")
    @classmethod
    def validate_depth(cls, v: int) -> int:
        if v < -1:
            raise ValueError("max_recursion_depth must be -1 (unbounded) or non-negative")
        return v

    @field_validator("max_partition_size")
    @classmethod
    def validate_partition_size(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("max_partition_size must be at least 1")
        return v

    @field_validator("execution_timeout", "coverage_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("classpath", mode="before")
    @classmethod
    def validate_classpath(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [p for p in v.split(os.pathsep) if p]
        return v

    @property
    def depth_unbounded(self) -> bool:
        return self.max_recursion_depth == -1


def load_config(config_path: str | Path | None = None, **overrides: Any) -> ForgeConfig:
    """Load configuration from file and environment.

    Priority: keyword overrides > env vars > config file > defaults

    Raises:
        ConfigurationError: If the file is not a mapping or a value is invalid.
    """
    config_data: dict[str, Any] = {}

    if config_path is not None:
        config_path = Path(config_path)
        if config_path.exists():
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
            if not isinstance(config_data, dict):
                raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    config_data.update(_get_env_overrides())
    config_data.update(overrides)

    try:
        return ForgeConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", cause=e) from e


def _get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}

    def as_bool(x: str) -> bool:
        return x.lower() in ("true", "1", "yes")

    env_mappings = {
        "CTDFORGE_INTERACTION_STRENGTH": ("interaction_strength", int),
        "CTDFORGE_MAX_RECURSION_DEPTH": ("max_recursion_depth", int),
        "CTDFORGE_ALLOW_NULL_FALLBACK": ("allow_null_fallback", as_bool),
        "CTDFORGE_BATCH_SIZE": ("batch_size", int),
        "CTDFORGE_EXECUTION_TIMEOUT": ("execution_timeout", float),
        "CTDFORGE_OUTPUT_DIR": "output_dir",
        "CTDFORGE_VERBOSE": ("verbose", as_bool),
    }

    for env_key, config_key in env_mappings.items():
        value = os.environ.get(env_key)
        if value is not None:
            if isinstance(config_key, tuple):
                key, converter = config_key
                overrides[key] = converter(value)
            else:
                overrides[config_key] = value

    return overrides
