"""Custom exception hierarchy for ctdforge.

Every ctdforge error carries:
- error_code: a unique ErrorCode enum for categorization
- context: ErrorContext with partition/class/member/row details
- suggestions: list of actionable steps to resolve the issue

Most of these errors are not fatal to a run. The planner, the extender and
the coverage computer catch them, count them in their summaries and keep
going. Only configuration errors stop the pipeline.

Example:
    try:
        pool.load_building_blocks(catalogue)
    except ForgeError as e:
        print(f"Error [{e.error_code.value}]: {e.message}")
        for suggestion in e.suggestions:
            print(f"  - {suggestion}")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for ctdforge.

    Error codes are organized by category:
    - E1xx: Model resolution errors (types, members, test plans)
    - E2xx: Sequence synthesis errors
    - E3xx: Sequence execution errors
    - E4xx: Coverage computation errors
    - E5xx: Configuration and I/O errors
    - E9xx: Unknown/internal errors
    """

    # Model resolution errors (E1xx)
    TYPE_NOT_FOUND = "E101"
    MEMBER_NOT_ANALYZABLE = "E102"
    INVALID_TYPE_NAME = "E103"
    INVALID_TEST_PLAN = "E104"

    # Synthesis errors (E2xx)
    NO_BUILDING_BLOCK = "E201"
    NON_INSTANTIABLE_TYPE = "E202"
    EXTENSION_FAILED = "E203"
    SEQUENCE_PARSE_FAILED = "E204"

    # Execution errors (E3xx)
    EXECUTION_TIMEOUT = "E301"
    EXECUTION_CRASHED = "E302"
    INVALID_RESULTS = "E303"

    # Coverage errors (E4xx)
    COVERAGE_TOOL_FAILED = "E401"
    COVERAGE_PARSE_FAILED = "E402"

    # Configuration errors (E5xx)
    INVALID_CONFIG = "E501"
    FILE_FORMAT_ERROR = "E502"

    # Unknown/internal errors (E9xx)
    UNKNOWN = "E999"

    @property
    def category(self) -> str:
        """Get the error category name."""
        code_num = int(self.value[1:])
        if code_num < 200:
            return "model"
        elif code_num < 300:
            return "synthesis"
        elif code_num < 400:
            return "execution"
        elif code_num < 500:
            return "coverage"
        elif code_num < 600:
            return "configuration"
        else:
            return "unknown"


class SynthesisFailure(Enum):
    """Per-row synthesis failure categories, as reported in run summaries."""

    NO_BUILDING_BLOCK_FOR_TARGET_MEMBER = "no_building_block_for_target_member"
    NON_INSTANTIABLE_PARAMETER_TYPE = "non_instantiable_parameter_type"
    EXCEPTION_DURING_EXTENSION = "exception_during_extension"


@dataclass
class ErrorContext:
    """Structured context for error logging and debugging.

    Attributes:
        partition: Partition being processed.
        class_name: Qualified name of the class under test.
        member: Signature of the target member.
        row_id: Test-plan row being extended or executed.
        extra: Additional context-specific information.
        timestamp: When the error occurred.
    """

    partition: str | None = None
    class_name: str | None = None
    member: str | None = None
    row_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for serialization."""
        result = {
            "partition": self.partition,
            "class_name": self.class_name,
            "member": self.member,
            "row_id": self.row_id,
            "extra": self.extra,
            "timestamp": self.timestamp.isoformat(),
        }
        return {k: v for k, v in result.items() if v is not None}

    def format_location(self) -> str:
        """Format the error location as a readable string."""
        parts = []
        if self.partition:
            parts.append(f"partition={self.partition}")
        if self.class_name:
            parts.append(f"class={self.class_name}")
        if self.member:
            parts.append(f"member={self.member}")
        if self.row_id:
            parts.append(f"row={self.row_id}")
        return " > ".join(parts) if parts else "unknown location"


class ForgeError(Exception):
    """Base exception for all ctdforge errors.

    Attributes:
        error_code: Unique ErrorCode for this error type.
        message: Human-readable error description.
        context: ErrorContext with execution details.
        suggestions: List of actionable steps to resolve the issue.
        cause: The underlying exception (if any).
    """

    error_code: ErrorCode = ErrorCode.UNKNOWN
    default_message: str = "An unexpected error occurred"
    default_suggestions: list[str] = []

    def __init__(
        self,
        message: str | None = None,
        error_code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
        suggestions: list[str] | None = None,
        **extra_context: Any,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.error_code
        self.context = context or ErrorContext()
        self.cause = cause
        self._suggestions = suggestions

        if extra_context:
            self.context.extra.update(extra_context)

        super().__init__(self.message)

    @property
    def suggestions(self) -> list[str]:
        """Get actionable suggestions for resolving this error."""
        if self._suggestions is not None:
            return self._suggestions
        return self.default_suggestions.copy()

    def __str__(self) -> str:
        parts = [f"[{self.error_code.value}] {self.message}"]

        location = self.context.format_location()
        if location != "unknown location":
            parts.append(f"at {location}")

        return " | ".join(parts)

    def format_verbose(self) -> str:
        """Format error with full details including suggestions."""
        lines = [f"Error [{self.error_code.value}]: {self.message}"]

        location = self.context.format_location()
        if location != "unknown location":
            lines.append(f"Location: {location}")

        if self.cause is not None:
            lines.append(f"Caused by: {type(self.cause).__name__}: {self.cause}")

        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            for suggestion in self.suggestions:
                lines.append(f"  - {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_code": self.error_code.value,
            "error_type": self.__class__.__name__,
            "message": self.message,
            "suggestions": self.suggestions,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


class ModelResolutionError(ForgeError):
    """A type or member could not be loaded or analyzed.

    The planner logs these, skips the offending member and counts it.
    """

    error_code = ErrorCode.TYPE_NOT_FOUND
    default_message = "Failed to resolve type model"
    default_suggestions = [
        "Check that the class is importable from the configured classpath",
        "Verify the qualified name is spelled as package.module.ClassName",
    ]


class TypeNameError(ModelResolutionError):
    """A type name string could not be parsed."""

    error_code = ErrorCode.INVALID_TYPE_NAME
    default_message = "Malformed type name"


class TestPlanError(ModelResolutionError):
    """A test-plan file is malformed or inconsistent with its model."""

    __test__ = False

    error_code = ErrorCode.INVALID_TEST_PLAN
    default_message = "Invalid test plan"


class SynthesisError(ForgeError):
    """A row could not be turned into an executable sequence."""

    error_code = ErrorCode.EXTENSION_FAILED
    default_message = "Sequence extension failed"
    failure: SynthesisFailure = SynthesisFailure.EXCEPTION_DURING_EXTENSION


class NoBuildingBlockError(SynthesisError):
    """No receiver sequence exists for an instance member."""

    error_code = ErrorCode.NO_BUILDING_BLOCK
    default_message = "No building block sequence for target member"
    default_suggestions = [
        "Add a building-block sequence constructing the declaring class",
        "Enable synthesize_receivers to let ctdforge build receivers itself",
    ]
    failure = SynthesisFailure.NO_BUILDING_BLOCK_FOR_TARGET_MEMBER


class NonInstantiableTypeError(SynthesisError):
    """A parameter type could not be constructed within the depth ceiling."""

    error_code = ErrorCode.NON_INSTANTIABLE_TYPE
    default_message = "Parameter type could not be instantiated"
    default_suggestions = [
        "Raise max_recursion_depth or set it to -1 for unbounded synthesis",
        "Enable allow_null_fallback to pass None for unbuildable arguments",
        "Provide a building-block sequence for the type",
    ]
    failure = SynthesisFailure.NON_INSTANTIABLE_PARAMETER_TYPE

    def __init__(self, type_name: str, message: str | None = None, **kwargs: Any) -> None:
        self.type_name = type_name
        super().__init__(message or f"Cannot instantiate type {type_name}", **kwargs)


class SequenceParseError(ForgeError):
    """A building-block snippet could not be parsed into a sequence."""

    error_code = ErrorCode.SEQUENCE_PARSE_FAILED
    default_message = "Failed to parse building-block sequence"


class ExecutionError(ForgeError):
    """A batch of sequences could not be executed to completion."""

    error_code = ErrorCode.EXECUTION_CRASHED
    default_message = "Sequence execution failed"

    def __init__(self, message: str | None = None, kind: str = "crash", **kwargs: Any) -> None:
        self.kind = kind
        super().__init__(message, **kwargs)


class ExecutionTimeoutError(ExecutionError):
    """The execution subprocess exceeded its time budget and was killed."""

    error_code = ErrorCode.EXECUTION_TIMEOUT
    default_message = "Sequence execution timed out"
    default_suggestions = [
        "Increase execution_timeout",
        "Reduce batch_size so a single hanging sequence affects fewer rows",
    ]

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, kind="timeout", **kwargs)


class CoverageComputationError(ForgeError):
    """The external coverage tool failed or produced unreadable output."""

    error_code = ErrorCode.COVERAGE_TOOL_FAILED
    default_message = "Coverage computation failed"


class ConfigurationError(ForgeError):
    """Settings or input files are invalid."""

    error_code = ErrorCode.INVALID_CONFIG
    default_message = "Invalid configuration"
