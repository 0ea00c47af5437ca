"""Execution result data classes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class StatementOutcome:
    """Outcome of one statement.

    Attributes:
        index: Variable index of the statement.
        normal_termination: Whether the statement completed without raising.
        value_repr: Truncated ``repr`` of the produced value, when recorded.
        value_type: Qualified runtime type of the produced value, when recorded.
        exception_type: Qualified type name of the raised exception.
        exception_message: Message of the raised exception.
    """

    index: int
    normal_termination: bool
    value_repr: str | None = None
    value_type: str | None = None
    exception_type: str | None = None
    exception_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"index": self.index, "normal_termination": self.normal_termination}
        for key in ("value_repr", "value_type", "exception_type", "exception_message"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StatementOutcome:
        return cls(
            index=data["index"],
            normal_termination=data["normal_termination"],
            value_repr=data.get("value_repr"),
            value_type=data.get("value_type"),
            exception_type=data.get("exception_type"),
            exception_message=data.get("exception_message"),
        )


@dataclass
class ExecutionResult:
    """Outcome of executing one extended sequence.

    Attributes:
        seq_id: The executed sequence.
        row_ids: Rows the sequence speaks for.
        normal_termination: Whether every statement completed.
        statements: Per-statement outcomes, in order, up to the first failure.
        error: ``timeout`` or ``crash`` when the batch itself failed.
    """

    seq_id: str
    row_ids: list[str]
    normal_termination: bool
    statements: list[StatementOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def failed_statement(self) -> StatementOutcome | None:
        for outcome in self.statements:
            if not outcome.normal_termination:
                return outcome
        return None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "normal_termination": self.normal_termination,
            "row_ids": list(self.row_ids),
            "per_statement_results": [s.to_dict() for s in self.statements],
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, seq_id: str, data: dict[str, Any]) -> ExecutionResult:
        return cls(
            seq_id=seq_id,
            row_ids=list(data.get("row_ids", [])),
            normal_termination=data["normal_termination"],
            statements=[StatementOutcome.from_dict(s) for s in data.get("per_statement_results", [])],
            error=data.get("error"),
        )
