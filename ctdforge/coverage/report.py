"""Coverage report data classes."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from ctdforge.model import TestPlanRow

# Marks a coverage figure that could not be computed.
UNKNOWN_COVERAGE = -1.0


def aggregate(figures: list[float]) -> float:
    """Mean of the computed figures; ``UNKNOWN_COVERAGE`` if none was computed."""
    known = [f for f in figures if f != UNKNOWN_COVERAGE]
    if not figures:
        return 0.0
    if not known:
        return UNKNOWN_COVERAGE
    return sum(known) / len(known)


def format_coverage(value: float) -> str:
    if value == UNKNOWN_COVERAGE:
        return "n/a"
    return f"{value:.1%}"


@dataclass
class MethodCoverage:
    """Coverage of one member.

    Attributes:
        class_name: Declaring class.
        signature: ``name(T1,T2)``.
        strength: Strength the figures were computed at.
        rows_total: Rows in the member's plan.
        rows_covered: Rows whose sequence executed normally.
        rows_covered_existing: Covered rows built only from reused sequences.
        rows_error: Rows lost to a timeout or crash.
        coverage: t-way coverage over covered rows.
        coverage_existing: t-way coverage over the existing subset.
    """

    class_name: str
    signature: str
    strength: int
    rows_total: int
    rows_covered: int
    rows_covered_existing: int
    rows_error: int
    coverage: float
    coverage_existing: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "class": self.class_name,
            "signature": self.signature,
            "strength": self.strength,
            "rows_total": self.rows_total,
            "rows_covered": self.rows_covered,
            "rows_covered_existing": self.rows_covered_existing,
            "rows_error": self.rows_error,
            "coverage": self.coverage,
            "coverage_existing": self.coverage_existing,
        }


@dataclass
class CoverageReport:
    """Final row statuses and per-member coverage of a run."""

    strength: int
    statuses: dict[str, dict[str, dict[str, dict[str, str]]]] = field(default_factory=dict)
    methods: list[MethodCoverage] = field(default_factory=list)

    def record_status(self, row: TestPlanRow) -> None:
        by_class = self.statuses.setdefault(row.partition, {})
        by_member = by_class.setdefault(row.member.class_name, {})
        by_member.setdefault(row.member.signature, {})[row.row_id] = row.status.value

    def add(self, method: MethodCoverage) -> None:
        self.methods.append(method)

    def merge(self, other: CoverageReport) -> None:
        for partition, by_class in other.statuses.items():
            mine = self.statuses.setdefault(partition, {})
            for class_name, by_member in by_class.items():
                mine.setdefault(class_name, {}).update(by_member)
        self.methods.extend(other.methods)

    @property
    def coverage(self) -> float:
        return aggregate([m.coverage for m in self.methods])

    @property
    def coverage_existing(self) -> float:
        return aggregate([m.coverage_existing for m in self.methods])

    def to_dict(self) -> dict[str, Any]:
        return {
            "strength": self.strength,
            "coverage": self.coverage,
            "coverage_existing": self.coverage_existing,
            "methods": [m.to_dict() for m in self.methods],
        }

    def save(self, summary_path: str | Path, statuses_path: str | Path | None = None) -> None:
        """Write the figures and, optionally, the per-row status file."""
        Path(summary_path).write_text(json.dumps(self.to_dict(), indent=2))
        if statuses_path is not None:
            Path(statuses_path).write_text(json.dumps(self.statuses, indent=2))

    def render(self, console: Console | None = None, title: str = "Coverage") -> None:
        """Print per-member coverage as a table."""
        if console is None:
            console = Console()

        table = Table(title=title, show_header=True)
        table.add_column("Member")
        table.add_column("Rows", justify="right")
        table.add_column("Covered", justify="right")
        table.add_column("Errors", justify="right")
        table.add_column(f"{self.strength}-way", justify="right")
        table.add_column("Existing", justify="right")

        for m in self.methods:
            table.add_row(
                f"{m.class_name}::{m.signature}",
                str(m.rows_total),
                f"[green]{m.rows_covered}[/green]",
                f"[yellow]{m.rows_error}[/yellow]" if m.rows_error else "0",
                format_coverage(m.coverage),
                format_coverage(m.coverage_existing),
            )

        console.print(table)
        console.print(
            f"[bold]Coverage:[/bold] {format_coverage(self.coverage)}  "
            f"[bold]Existing:[/bold] {format_coverage(self.coverage_existing)}"
        )
