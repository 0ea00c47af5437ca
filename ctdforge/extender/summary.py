"""Run summary for sequence extension and execution."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from ctdforge.errors import SynthesisFailure


@dataclass
class ExtenderSummary:
    """Counters describing one partition's extension run.

    Attributes:
        rows_total: Rows handed to the extender.
        rows_extended: Rows for which a sequence was built.
        rows_from_building_blocks: Rows satisfied by a building block as is.
        sequences_generated: Distinct extended sequences.
        sequences_executed: Sequences that completed execution.
        sequences_failed: Sequences that raised during execution.
        sequences_errored: Sequences lost to timeouts or crashed batches.
        rows_covered: Rows whose sequence executed normally.
        rows_covered_existing: Covered rows built only from reused sequences.
        rows_error: Rows marked ERROR.
        uncovered: Per-category counts of rows that could not be extended.
        non_instantiable_types: Types synthesis gave up on.
        failure_exception_types: Exception types raised by failing sequences.
        pool: Building-block loading statistics.
    """

    rows_total: int = 0
    rows_extended: int = 0
    rows_from_building_blocks: int = 0
    sequences_generated: int = 0
    sequences_executed: int = 0
    sequences_failed: int = 0
    sequences_errored: int = 0
    rows_covered: int = 0
    rows_covered_existing: int = 0
    rows_error: int = 0
    uncovered: Counter[SynthesisFailure] = field(default_factory=Counter)
    non_instantiable_types: set[str] = field(default_factory=set)
    failure_exception_types: Counter[str] = field(default_factory=Counter)
    pool: dict[str, Any] = field(default_factory=dict)

    def record_failure(self, failure: SynthesisFailure, type_name: str | None = None) -> None:
        self.uncovered[failure] += 1
        if type_name is not None:
            self.non_instantiable_types.add(type_name)

    def merge(self, other: ExtenderSummary) -> None:
        """Fold another partition's counters into this one."""
        for name in (
            "rows_total", "rows_extended", "rows_from_building_blocks", "sequences_generated",
            "sequences_executed", "sequences_failed", "sequences_errored", "rows_covered",
            "rows_covered_existing", "rows_error",
        ):
            setattr(self, name, getattr(self, name) + getattr(other, name))
        self.uncovered.update(other.uncovered)
        self.non_instantiable_types |= other.non_instantiable_types
        self.failure_exception_types.update(other.failure_exception_types)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_total": self.rows_total,
            "rows_extended": self.rows_extended,
            "rows_from_building_blocks": self.rows_from_building_blocks,
            "sequences_generated": self.sequences_generated,
            "sequences_executed": self.sequences_executed,
            "sequences_failed": self.sequences_failed,
            "sequences_errored": self.sequences_errored,
            "rows_covered": self.rows_covered,
            "rows_covered_existing": self.rows_covered_existing,
            "rows_error": self.rows_error,
            "uncovered": {k.value: v for k, v in self.uncovered.items()},
            "non_instantiable_types": sorted(self.non_instantiable_types),
            "failure_exception_types": dict(self.failure_exception_types),
            "pool": self.pool,
        }

    def save(self, path: str | Path) -> None:
        Path(path).write_text(json.dumps(self.to_dict(), indent=2))

    def render(self, console: Console | None = None, title: str = "Extension summary") -> None:
        """Print the summary as a table."""
        if console is None:
            console = Console()

        table = Table(title=title, show_header=True)
        table.add_column("Metric")
        table.add_column("Count", justify="right")

        table.add_row("Rows", str(self.rows_total))
        table.add_row("Rows extended", str(self.rows_extended))
        table.add_row("Rows from building blocks", str(self.rows_from_building_blocks))
        table.add_row("Sequences generated", str(self.sequences_generated))
        table.add_row("Sequences executed", str(self.sequences_executed))
        table.add_row("[red]Sequences failed[/red]", str(self.sequences_failed))
        table.add_row("[red]Sequences errored[/red]", str(self.sequences_errored))
        table.add_row("[green]Rows covered[/green]", str(self.rows_covered))
        table.add_row("[green]Rows covered (existing)[/green]", str(self.rows_covered_existing))
        table.add_row("[yellow]Rows error[/yellow]", str(self.rows_error))
        for failure in SynthesisFailure:
            table.add_row(f"[dim]Uncovered: {failure.value}[/dim]", str(self.uncovered.get(failure, 0)))

        console.print(table)
        if self.non_instantiable_types:
            console.print("[bold]Non-instantiable types:[/bold] " + ", ".join(sorted(self.non_instantiable_types)))
