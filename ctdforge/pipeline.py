"""End-to-end orchestration: plan, extend, execute, score.

Each partition runs independently with its own pool, memo and classpath:

1. The pool is restored from a snapshot (if any) and the building-block
   catalogue is mined into it.
2. The extender turns every row of the partition into an ExtendedSequence.
3. The executor runs the sequences in subprocess batches.
4. Row statuses are updated from the results; constructor sequences that
   were synthesized for a passing sequence are promoted into the pool.
5. Coverage is computed over the partition's member plans.

Partitions may run concurrently (``partition_workers``).
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.console import Console

from ctdforge.combinatorial import CoveringArrayTool, GreedyCoveringArrayTool
from ctdforge.config import ForgeConfig
from ctdforge.coverage import CoverageComputer, CoverageReport
from ctdforge.executor import ExecutionResult, SequenceExecutor
from ctdforge.extender import ExtendedSequence, ExtenderSummary, SequenceExtender, SynthesisContext
from ctdforge.model import (
    CoverageStatus,
    Partition,
    TargetFetcher,
    TestPlan,
    TestPlanGenerator,
    partition_classes,
)
from ctdforge.sequence import SequenceParser, SequencePool, SnippetParser
from ctdforge.typemodel import ReflectiveTypeLoader, SubclassDomainResolver, TypeDomainResolver

logger = logging.getLogger(__name__)


@dataclass
class PartitionResult:
    """Everything one partition's run produced."""

    partition: str
    summary: ExtenderSummary
    sequences: list[ExtendedSequence]
    results: dict[str, ExecutionResult]
    coverage: CoverageReport
    pool: SequencePool


@dataclass
class RunResult:
    """Merged outcome of a run over all partitions.

    Attributes:
        plan: The test plan, with final row statuses.
        partitions: Per-partition results.
        summary: Extension and execution counters over all partitions.
        coverage: Coverage over all partitions.
        failed_partitions: Partitions that aborted, with the error message.
    """

    plan: TestPlan
    partitions: dict[str, PartitionResult] = field(default_factory=dict)
    summary: ExtenderSummary = field(default_factory=ExtenderSummary)
    coverage: CoverageReport = field(default_factory=lambda: CoverageReport(strength=1))
    failed_partitions: dict[str, str] = field(default_factory=dict)

    def render(self, console: Console | None = None) -> None:
        if console is None:
            console = Console()
        self.summary.render(console)
        self.coverage.render(console)
        for name, error in sorted(self.failed_partitions.items()):
            console.print(f"[red]Partition {name} failed:[/red] {error}")


class Pipeline:
    """Wires the planner, extender, executor and coverage computer.

    Example:
        >>> config = load_config("ctdforge.yaml")
        >>> pipeline = Pipeline(config)
        >>> plan = pipeline.plan(modules=["myapp"])
        >>> run = pipeline.run(plan)
        >>> pipeline.write_outputs(run)
    """

    def __init__(
        self,
        config: ForgeConfig | None = None,
        loader: ReflectiveTypeLoader | None = None,
        resolver: TypeDomainResolver | None = None,
        tool: CoveringArrayTool | None = None,
        parser: SequenceParser | None = None,
        catalogue: dict[str, Any] | None = None,
        pool_snapshot: str | Path | None = None,
    ) -> None:
        self.config = config or ForgeConfig()
        self.loader = loader or ReflectiveTypeLoader(self.config.classpath)
        self.resolver = resolver or SubclassDomainResolver(self.loader)
        self.tool = tool or GreedyCoveringArrayTool(seed=self.config.seed)
        self.parser = parser or SnippetParser(self.loader)
        self.catalogue = catalogue or {}
        self.pool_snapshot = pool_snapshot

    def plan(
        self,
        classes: Iterable[str] = (),
        modules: Iterable[str] = (),
        excludes: Iterable[str] = (),
        partitions: dict[str, Partition] | None = None,
    ) -> TestPlan:
        """Select targets, partition them and generate the test plan."""
        fetcher = TargetFetcher(excludes)
        if partitions is None:
            targets = fetcher.fetch(classes, modules)
            partitions = partition_classes(targets, self.config.max_partition_size, self.config.classpath)
        else:
            partitions = {
                name: Partition(name, [c for c in p.classes if not fetcher.is_excluded(c)], p.classpath)
                for name, p in partitions.items()
            }
        generator = TestPlanGenerator(self.loader, self.resolver, self.tool, self.config.interaction_strength)
        return generator.generate(partitions)

    def run(self, plan: TestPlan) -> RunResult:
        """Extend, execute and score every partition of ``plan``."""
        run = RunResult(plan=plan, coverage=CoverageReport(strength=self.config.interaction_strength))
        names = sorted(set(plan.partitions) | set(plan.members))

        if self.config.partition_workers == 1 or len(names) <= 1:
            for name in names:
                self._collect(run, name, lambda n=name: self.run_partition(plan, n))
        else:
            with ThreadPoolExecutor(max_workers=self.config.partition_workers) as executor:
                futures = {executor.submit(self.run_partition, plan, name): name for name in names}
                for future in as_completed(futures):
                    self._collect(run, futures[future], future.result)

        # Merge in partition order regardless of completion order.
        for name in names:
            result = run.partitions.get(name)
            if result is None:
                continue
            run.summary.merge(result.summary)
            run.summary.pool[name] = result.summary.pool
            run.coverage.merge(result.coverage)
        return run

    def _collect(self, run: RunResult, name: str, produce: Callable[[], PartitionResult]) -> None:
        try:
            run.partitions[name] = produce()
        except Exception as e:
            logger.exception(f"Partition {name} raised exception")
            run.failed_partitions[name] = str(e)

    def run_partition(self, plan: TestPlan, name: str) -> PartitionResult:
        """Run one partition end to end."""
        partition = plan.partitions.get(name) or Partition(name)
        self.loader.add_paths(partition.classpath)
        logger.info(f"Running partition {name}")

        pool = SequencePool.load(self.pool_snapshot) if self.pool_snapshot else SequencePool()
        if self.catalogue:
            targets = {mp.member.member_id for mp in plan.member_plans(name)}
            pool.load_catalogue(self.catalogue, self.parser, targets)

        context = SynthesisContext(pool, self.loader, self.resolver, self.config)
        summary = context.summary
        summary.pool = pool.stats.to_dict()

        sequences = SequenceExtender(context).extend_rows(plan.rows(name))

        classpath = [*self.config.classpath, *partition.classpath]
        results = SequenceExecutor(self.config, classpath).execute(sequences)
        existing = self.apply_results(plan, sequences, results, pool, summary)

        computer = CoverageComputer(self.config.coverage_tool_command, self.config.coverage_timeout, classpath)
        coverage = computer.compute(plan, self.config.interaction_strength, existing, partition=name)
        return PartitionResult(name, summary, sequences, results, coverage, pool)

    @staticmethod
    def apply_results(
        plan: TestPlan,
        sequences: list[ExtendedSequence],
        results: dict[str, ExecutionResult],
        pool: SequencePool,
        summary: ExtenderSummary,
    ) -> set[str]:
        """Set row statuses from execution results and promote passing sequences.

        Returns:
            Ids of covered rows that were built only from reused sequences.
        """
        rows = {row.row_id: row for row in plan.rows()}
        existing: set[str] = set()
        for extended in sequences:
            result = results.get(extended.seq_id)
            if result is None or result.is_error:
                summary.sequences_errored += 1
                for row_id in extended.row_ids:
                    rows[row_id].status = CoverageStatus.ERROR
                    summary.rows_error += 1
                continue

            if not result.normal_termination:
                summary.sequences_failed += 1
                failed = result.failed_statement
                if failed is not None and failed.exception_type:
                    summary.failure_exception_types[failed.exception_type] += 1
                continue

            summary.sequences_executed += 1
            for row_id in extended.row_ids:
                rows[row_id].status = CoverageStatus.COVERED
                summary.rows_covered += 1
                if extended.row_is_existing(row_id):
                    summary.rows_covered_existing += 1
                    existing.add(row_id)

            for type_name, sequence in extended.synthesized:
                pool.insert(type_name, sequence)
            member = extended.member
            if member.is_constructor:
                pool.insert(member.class_name, extended.sequence)
            else:
                pool.insert_member(member.member_id, extended.sequence)
        return existing

    def write_outputs(self, run: RunResult, output_dir: str | Path | None = None) -> dict[str, Path]:
        """Write plan, sequences, results, coverage, summary and pool snapshots."""
        out = Path(output_dir or self.config.output_dir)
        out.mkdir(parents=True, exist_ok=True)
        app = self.config.app_name

        paths = {
            "plan": out / f"{app}_testplan.json",
            "sequences": out / f"{app}_extended_sequences.json",
            "results": out / f"{app}_execution_results.json",
            "coverage": out / f"{app}_coverage.json",
            "statuses": out / f"{app}_coverage_summary.json",
            "summary": out / f"{app}_extender_summary.json",
        }
        run.plan.save(paths["plan"])
        paths["sequences"].write_text(json.dumps(
            {name: {s.seq_id: s.to_dict() for s in p.sequences} for name, p in run.partitions.items()},
            indent=2,
        ))
        paths["results"].write_text(json.dumps(
            {name: {k: r.to_dict() for k, r in p.results.items()} for name, p in run.partitions.items()},
            indent=2,
        ))
        run.coverage.save(paths["coverage"], paths["statuses"])
        run.summary.save(paths["summary"])

        for name, result in run.partitions.items():
            paths[f"pool:{name}"] = out / f"{app}_{name}_pool.json"
            result.pool.save(paths[f"pool:{name}"])

        logger.info(f"Wrote {len(paths)} output files to {out}")
        return paths
