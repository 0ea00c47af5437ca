"""Tests for the ctdforge error hierarchy."""

from __future__ import annotations

import pytest

from ctdforge.errors import (
    ConfigurationError,
    ErrorCode,
    ErrorContext,
    ExecutionError,
    ExecutionTimeoutError,
    ForgeError,
    ModelResolutionError,
    NoBuildingBlockError,
    NonInstantiableTypeError,
    SynthesisError,
    SynthesisFailure,
    TestPlanError,
    TypeNameError,
)


class TestErrorCode:
    """Tests for ErrorCode categories."""

    @pytest.mark.parametrize(
        ("code", "category"),
        [
            (ErrorCode.TYPE_NOT_FOUND, "model"),
            (ErrorCode.NON_INSTANTIABLE_TYPE, "synthesis"),
            (ErrorCode.EXECUTION_TIMEOUT, "execution"),
            (ErrorCode.COVERAGE_TOOL_FAILED, "coverage"),
            (ErrorCode.INVALID_CONFIG, "configuration"),
            (ErrorCode.UNKNOWN, "unknown"),
        ],
    )
    def test_category(self, code: ErrorCode, category: str) -> None:
        assert code.category == category


class TestErrorContext:
    def test_format_location(self) -> None:
        ctx = ErrorContext(partition="monolithic", class_name="pkg.A", member="f(int)")
        assert ctx.format_location() == "partition=monolithic > class=pkg.A > member=f(int)"

    def test_empty_location(self) -> None:
        assert ErrorContext().format_location() == "unknown location"

    def test_to_dict_drops_missing_fields(self) -> None:
        data = ErrorContext(row_id="r1").to_dict()
        assert data["row_id"] == "r1"
        assert "partition" not in data
        assert "timestamp" in data


class TestForgeError:
    """Tests for the base exception."""

    def test_default_message(self) -> None:
        err = ModelResolutionError()
        assert err.message == "Failed to resolve type model"
        assert err.error_code is ErrorCode.TYPE_NOT_FOUND

    def test_str_includes_code_and_location(self) -> None:
        err = ForgeError("boom", context=ErrorContext(class_name="pkg.A"))
        assert str(err) == "[E999] boom | at class=pkg.A"

    def test_extra_context(self) -> None:
        err = ForgeError("boom", depth=3)
        assert err.context.extra == {"depth": 3}

    def test_suggestions_default_and_override(self) -> None:
        assert NonInstantiableTypeError("pkg.A").suggestions
        assert NonInstantiableTypeError("pkg.A", suggestions=["x"]).suggestions == ["x"]

    def test_format_verbose_includes_cause(self) -> None:
        err = ConfigurationError("bad", cause=ValueError("nope"))
        text = err.format_verbose()
        assert "Error [E501]: bad" in text
        assert "Caused by: ValueError: nope" in text

    def test_to_dict(self) -> None:
        data = TypeNameError("bad name").to_dict()
        assert data["error_code"] == "E103"
        assert data["error_type"] == "TypeNameError"
        assert data["cause"] is None


class TestHierarchy:
    """Tests for subclass relationships and synthesis failure categories."""

    def test_model_errors(self) -> None:
        assert issubclass(TypeNameError, ModelResolutionError)
        assert issubclass(TestPlanError, ModelResolutionError)

    def test_synthesis_failures(self) -> None:
        assert NoBuildingBlockError().failure is SynthesisFailure.NO_BUILDING_BLOCK_FOR_TARGET_MEMBER
        assert NonInstantiableTypeError("T").failure is SynthesisFailure.NON_INSTANTIABLE_PARAMETER_TYPE
        assert SynthesisError().failure is SynthesisFailure.EXCEPTION_DURING_EXTENSION

    def test_non_instantiable_message(self) -> None:
        err = NonInstantiableTypeError("pkg.Node")
        assert err.type_name == "pkg.Node"
        assert err.message == "Cannot instantiate type pkg.Node"

    def test_execution_kinds(self) -> None:
        assert ExecutionError().kind == "crash"
        timeout = ExecutionTimeoutError()
        assert timeout.kind == "timeout"
        assert isinstance(timeout, ExecutionError)
        assert timeout.error_code is ErrorCode.EXECUTION_TIMEOUT
