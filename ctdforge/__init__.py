"""ctdforge - combinatorial test generation with sequence synthesis.

ctdforge introspects the public members of Python classes, plans a
t-way covering set of argument-type combinations for each member, and
synthesizes an executable call sequence for every planned row. Sequences
run in isolated subprocesses; the rows they satisfy are scored for t-way
coverage.

Example:
    >>> from ctdforge import Pipeline, load_config
    >>> pipeline = Pipeline(load_config(max_recursion_depth=3))
    >>> plan = pipeline.plan(modules=["myapp.models"])
    >>> run = pipeline.run(plan)
    >>> run.render()
"""

from ctdforge.config import ForgeConfig, load_config
from ctdforge.coverage import CoverageComputer, CoverageReport, MethodCoverage
from ctdforge.errors import ErrorCode, ForgeError, SynthesisFailure
from ctdforge.executor import ExecutionResult, SequenceExecutor
from ctdforge.extender import ExtendedSequence, ExtenderSummary, SequenceExtender, SynthesisContext
from ctdforge.model import CoverageStatus, TestPlan, TestPlanGenerator, TestPlanRow
from ctdforge.pipeline import PartitionResult, Pipeline, RunResult
from ctdforge.sequence import CallSequence, SequencePool, SnippetParser
from ctdforge.typemodel import ReflectiveTypeLoader, SubclassDomainResolver

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "ForgeConfig",
    "load_config",
    # Errors
    "ErrorCode",
    "ForgeError",
    "SynthesisFailure",
    # Planning
    "CoverageStatus",
    "ReflectiveTypeLoader",
    "SubclassDomainResolver",
    "TestPlan",
    "TestPlanGenerator",
    "TestPlanRow",
    # Synthesis
    "CallSequence",
    "ExtendedSequence",
    "ExtenderSummary",
    "SequenceExtender",
    "SequencePool",
    "SnippetParser",
    "SynthesisContext",
    # Execution and coverage
    "CoverageComputer",
    "CoverageReport",
    "ExecutionResult",
    "MethodCoverage",
    "SequenceExecutor",
    # Pipeline
    "PartitionResult",
    "Pipeline",
    "RunResult",
]
