"""Coverage computation and reporting."""

from ctdforge.coverage.computer import CoverageComputer, parse_coverage_output
from ctdforge.coverage.report import UNKNOWN_COVERAGE, CoverageReport, MethodCoverage, aggregate

__all__ = [
    # Computation
    "CoverageComputer",
    "parse_coverage_output",
    # Reports
    "CoverageReport",
    "MethodCoverage",
    "UNKNOWN_COVERAGE",
    "aggregate",
]
