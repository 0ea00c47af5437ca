"""Subprocess execution of extended sequences."""

from ctdforge.executor.results import ExecutionResult, StatementOutcome
from ctdforge.executor.runner import SequenceExecutor

__all__ = [
    "ExecutionResult",
    "SequenceExecutor",
    "StatementOutcome",
]
