"""Error handling for ctdforge."""

from ctdforge.errors.base import (
    ConfigurationError,
    CoverageComputationError,
    ErrorCode,
    ErrorContext,
    ExecutionError,
    ExecutionTimeoutError,
    ForgeError,
    ModelResolutionError,
    NoBuildingBlockError,
    NonInstantiableTypeError,
    SequenceParseError,
    SynthesisError,
    SynthesisFailure,
    TestPlanError,
    TypeNameError,
)

__all__ = [
    # Base
    "ErrorCode",
    "ErrorContext",
    "ForgeError",
    "SynthesisFailure",
    # Model
    "ModelResolutionError",
    "TypeNameError",
    "TestPlanError",
    # Synthesis
    "SynthesisError",
    "NoBuildingBlockError",
    "NonInstantiableTypeError",
    "SequenceParseError",
    # Execution
    "ExecutionError",
    "ExecutionTimeoutError",
    # Coverage / configuration
    "CoverageComputationError",
    "ConfigurationError",
]
