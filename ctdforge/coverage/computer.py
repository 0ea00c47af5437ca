"""t-way coverage of executed test-plan rows.

1-way coverage is computed directly: the number of distinct values seen per
slot over the number of values in each slot's domain. Higher strengths are
delegated to a covering-array coverage tool run as a subprocess, fed a CSV
of rows and an ACTS-style model file in which every value is replaced by an
ordinal token ``v0, v1, ...`` of its slot.

A failed computation is reported as ``UNKNOWN_COVERAGE`` (-1.0), never as 0.
"""

from __future__ import annotations

import csv
import logging
import re
import subprocess
import sys
import tempfile
from collections.abc import Sequence
from pathlib import Path

from ctdforge.coverage.report import UNKNOWN_COVERAGE, CoverageReport, MethodCoverage
from ctdforge.errors import CoverageComputationError
from ctdforge.executor.runner import subprocess_env
from ctdforge.model import CoverageStatus, MemberPlan, TestPlan

logger = logging.getLogger(__name__)

DEFAULT_TOOL = (sys.executable, "-m", "ctdforge.combinatorial.ccm")

_COVERAGE_LINE = re.compile(r"Total\s+\d+-way coverage:\s*([0-9.]+)\s*(%)?")


def parse_coverage_output(output: str) -> float:
    """Extract the coverage fraction from the tool's output.

    Raises:
        CoverageComputationError: If no coverage line is present or the
            value is out of range.
    """
    match = _COVERAGE_LINE.search(output)
    if match is None:
        raise CoverageComputationError("No coverage line in tool output")
    try:
        value = float(match.group(1))
    except ValueError as e:
        raise CoverageComputationError(f"Bad coverage value {match.group(1)!r}", cause=e) from e
    if match.group(2):
        value /= 100.0
    if not 0.0 <= value <= 1.0:
        raise CoverageComputationError(f"Coverage value {value} out of range")
    return value


class CoverageComputer:
    """Computes member and run coverage.

    Args:
        tool_command: Command prefix of the t-way coverage tool; defaults to
            ``python -m ctdforge.combinatorial.ccm``.
        timeout: Seconds before the tool is killed.
        classpath: Extra import roots for the tool's interpreter.

    Example:
        >>> computer = CoverageComputer()
        >>> computer.t_way([("0", "1"), ("a", "b")], [("0", "a"), ("1", "b")], strength=2)
        0.5
    """

    def __init__(
        self,
        tool_command: Sequence[str] | None = None,
        timeout: float = 60.0,
        classpath: Sequence[str] = (),
    ) -> None:
        self.tool_command = list(tool_command) if tool_command else list(DEFAULT_TOOL)
        self.timeout = timeout
        self.classpath = list(classpath)

    def one_way(self, domains: Sequence[Sequence[str]], rows: Sequence[Sequence[str]]) -> float:
        if not rows:
            return 0.0
        if not domains:
            return 1.0
        total = sum(len(set(domain)) for domain in domains)
        covered = sum(len({row[i] for row in rows}) for i in range(len(domains)))
        return min(1.0, covered / total) if total else 1.0

    def t_way(self, domains: Sequence[Sequence[str]], rows: Sequence[Sequence[str]], strength: int) -> float:
        """Coverage of ``rows`` at ``strength``, or ``UNKNOWN_COVERAGE`` on failure."""
        if not rows:
            return 0.0
        t = max(1, min(strength, len(domains)))
        if t == 1:
            return self.one_way(domains, rows)
        try:
            return self.run_tool(domains, rows, t)
        except CoverageComputationError as e:
            logger.warning(f"Coverage computation failed: {e}")
            return UNKNOWN_COVERAGE

    def run_tool(self, domains: Sequence[Sequence[str]], rows: Sequence[Sequence[str]], strength: int) -> float:
        """Write the CSV and model files and run the coverage tool.

        Raises:
            CoverageComputationError: On I/O failure, timeout, non-zero exit
                or unparseable output.
        """
        tokens: list[dict[str, str]] = []
        for i, domain in enumerate(domains):
            mapping = {value: f"v{n}" for n, value in enumerate(dict.fromkeys(domain))}
            for row in rows:
                mapping.setdefault(row[i], f"v{len(mapping)}")
            tokens.append(mapping)
        names = [f"p{i}" for i in range(len(domains))]

        try:
            with tempfile.TemporaryDirectory(prefix="ctdforge-ccm-") as workdir:
                csv_file = Path(workdir) / "rows.csv"
                model_file = Path(workdir) / "model.txt"

                with open(csv_file, "w", newline="") as f:
                    writer = csv.writer(f)
                    writer.writerow(names)
                    for row in rows:
                        writer.writerow([tokens[i][value] for i, value in enumerate(row)])

                lines = ["[System]", "Name: ctdforge", "", "[Parameter]"]
                for name, mapping in zip(names, tokens):
                    lines.append(f"{name} (enum) : {', '.join(mapping.values())}")
                model_file.write_text("\n".join(lines) + "\n")

                completed = subprocess.run(
                    [
                        *self.tool_command,
                        "--inputfile", str(csv_file),
                        "--model", str(model_file),
                        "--tway", str(strength),
                    ],
                    cwd=workdir,
                    env=subprocess_env(self.classpath),
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
        except subprocess.TimeoutExpired as e:
            raise CoverageComputationError(f"Coverage tool exceeded {self.timeout}s", cause=e) from e
        except OSError as e:
            raise CoverageComputationError(f"Coverage tool could not run: {e}", cause=e) from e

        if completed.returncode != 0:
            raise CoverageComputationError(
                f"Coverage tool exited with status {completed.returncode}: {completed.stderr.strip()}"
            )
        return parse_coverage_output(completed.stdout)

    def member_coverage(self, plan: MemberPlan, strength: int, existing_row_ids: set[str]) -> MethodCoverage:
        """Coverage of one member over all covered rows and over the existing subset."""
        domains = [slot.domain for slot in plan.member.slots]
        covered = [row for row in plan.rows if row.status is CoverageStatus.COVERED]
        existing = [row for row in covered if row.row_id in existing_row_ids]
        t = max(1, min(strength, len(domains))) if domains else 0

        return MethodCoverage(
            class_name=plan.member.class_name,
            signature=plan.member.signature,
            strength=t,
            rows_total=len(plan.rows),
            rows_covered=len(covered),
            rows_covered_existing=len(existing),
            rows_error=sum(1 for row in plan.rows if row.status is CoverageStatus.ERROR),
            coverage=self.t_way(domains, [row.values for row in covered], t),
            coverage_existing=self.t_way(domains, [row.values for row in existing], t),
        )

    def compute(
        self,
        plan: TestPlan,
        strength: int,
        existing_row_ids: set[str],
        partition: str | None = None,
    ) -> CoverageReport:
        """Build a report over ``plan``, or over one partition of it."""
        report = CoverageReport(strength=strength)
        for member_plan in plan.member_plans(partition):
            for row in member_plan.rows:
                report.record_status(row)
            report.add(self.member_coverage(member_plan, strength, existing_row_ids))
        return report
