"""Execution harness: runs a batch of sequences inside a subprocess.

Usage::

    python -m ctdforge.executor.harness BATCH_FILE RESULTS_FILE [--all-results] [--executions N]

The batch file is JSON ``{"sequences": {seq_id: {"row_ids": [...],
"statements": [...]}}}``. Statements run in order; the first exception
stops that sequence. The results file maps each seq_id to its outcome.
Exit status 0 means the harness itself completed, whatever the sequences did.
"""

from __future__ import annotations

import ast
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click

from ctdforge.executor.results import ExecutionResult, StatementOutcome
from ctdforge.log import setup_logging
from ctdforge.sequence.statements import CallSequence, Statement, StatementKind
from ctdforge.typemodel.names import load_class, qualified_name

logger = logging.getLogger(__name__)

MAX_REPR = 200


def evaluate(statement: Statement, values: list[Any]) -> Any:
    """Execute one statement against the values bound so far."""
    kind = statement.kind
    if kind is StatementKind.LITERAL:
        return ast.literal_eval(statement.name)
    if kind is StatementKind.NULL:
        return None
    if kind is StatementKind.ENUM:
        return getattr(load_class(statement.owner), statement.name)
    if kind is StatementKind.ARRAY:
        return ()
    if kind in (StatementKind.COLLECTION, StatementKind.MAP):
        return load_class(statement.type_name)()

    args = []
    kwargs = {}
    for index, keyword in zip(statement.inputs, statement.keywords):
        if keyword is None:
            args.append(values[index])
        else:
            kwargs[keyword] = values[index]

    if kind is StatementKind.CONSTRUCTOR:
        cls = load_class(statement.owner)
        target = cls if statement.name == "__init__" else getattr(cls, statement.name)
    elif statement.receiver is not None:
        target = getattr(values[statement.receiver], statement.name)
    else:
        target = getattr(load_class(statement.owner), statement.name)
    return target(*args, **kwargs)


def _describe(value: Any) -> tuple[str, str]:
    try:
        text = repr(value)
    except Exception as e:
        text = f"<unrepresentable: {type(e).__name__}>"
    if len(text) > MAX_REPR:
        text = text[:MAX_REPR] + "..."
    return text, qualified_name(type(value))


def run_sequence(seq_id: str, entry: dict[str, Any], record_all: bool) -> ExecutionResult:
    sequence = CallSequence.from_dict(entry)
    values: list[Any] = []
    outcomes: list[StatementOutcome] = []
    last = len(sequence) - 1

    for index, statement in enumerate(sequence):
        try:
            value = evaluate(statement, values)
        except Exception as e:
            outcomes.append(
                StatementOutcome(
                    index=index,
                    normal_termination=False,
                    exception_type=qualified_name(type(e)),
                    exception_message=str(e)[:MAX_REPR],
                )
            )
            return ExecutionResult(seq_id, list(entry.get("row_ids", [])), False, outcomes)

        values.append(value)
        outcome = StatementOutcome(index=index, normal_termination=True)
        if record_all or index == last:
            outcome.value_repr, outcome.value_type = _describe(value)
        outcomes.append(outcome)

    return ExecutionResult(seq_id, list(entry.get("row_ids", [])), True, outcomes)


def run_repeated(seq_id: str, entry: dict[str, Any], record_all: bool, executions: int) -> ExecutionResult:
    """Run a sequence up to ``executions`` times.

    Recorded values that differ between runs are dropped. A failing rerun
    makes the sequence fail.
    """
    first = run_sequence(seq_id, entry, record_all)
    for _ in range(executions - 1):
        if not first.normal_termination:
            break
        again = run_sequence(seq_id, entry, record_all)
        if not again.normal_termination:
            return again
        for mine, theirs in zip(first.statements, again.statements):
            if mine.value_repr != theirs.value_repr:
                mine.value_repr = None
    return first


@click.command()
@click.argument("batch_file", type=click.Path(exists=True, path_type=Path))
@click.argument("results_file", type=click.Path(path_type=Path))
@click.option("--all-results", "record_all", is_flag=True, help="Record value and type of every statement.")
@click.option("--executions", default=1, type=click.IntRange(min=1), help="Runs per sequence.")
@click.option("--verbose", is_flag=True)
def main(batch_file: Path, results_file: Path, record_all: bool, executions: int, verbose: bool) -> None:
    """Execute BATCH_FILE and write RESULTS_FILE."""
    setup_logging(verbose)
    try:
        batch = json.loads(batch_file.read_text())
        sequences = batch["sequences"]
    except (OSError, json.JSONDecodeError, KeyError) as e:
        logger.error(f"Unreadable batch file {batch_file}: {e}")
        sys.exit(2)

    results: dict[str, Any] = {}
    for seq_id, entry in sequences.items():
        result = run_repeated(seq_id, entry, record_all, executions)
        results[seq_id] = result.to_dict()
        logger.debug(f"{seq_id}: {'ok' if result.normal_termination else 'failed'}")

    results_file.write_text(json.dumps(results, indent=2))


if __name__ == "__main__":
    main()
