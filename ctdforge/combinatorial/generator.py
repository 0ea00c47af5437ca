"""Covering array generators for combinatorial test planning.

This module implements algorithms for generating covering arrays --
subsets of the full Cartesian product that guarantee every t-way
combination of values is exercised at least once.

- t=1: Every value of every dimension appears at least once.
- t=2 (pairwise): Every pair of dimension values appears together.
- t=N (exhaustive): All combinations (Cartesian product).

The test-plan generator only sees the CoveringArrayTool interface: domain
sizes in, index rows out. GreedyCoveringArrayTool adapts the greedy
generator to that interface.

Example:
    >>> tool = GreedyCoveringArrayTool(seed=0)
    >>> rows = tool.generate([2, 2, 2], strength=2)
    >>> len(rows) <= 8
    True
"""

from __future__ import annotations

import itertools
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Hashable
from dataclasses import dataclass

from ctdforge.combinatorial.dimensions import Combination, DimensionSpace

logger = logging.getLogger(__name__)


@dataclass
class CoverageStats:
    """Statistics about how well a set of rows covers the dimension space.

    Attributes:
        strength: The t-wise strength that was targeted.
        total_tuples: Total number of t-tuples in the space.
        covered_tuples: Number of t-tuples covered by the rows.
        coverage_pct: Percentage coverage (0-100).
        test_count: Number of rows measured.
    """

    strength: int
    total_tuples: int
    covered_tuples: int
    coverage_pct: float
    test_count: int

    @property
    def fraction(self) -> float:
        return self.coverage_pct / 100.0

    def __repr__(self) -> str:
        return (
            f"CoverageStats(t={self.strength}, "
            f"{self.covered_tuples}/{self.total_tuples} tuples covered "
            f"({self.coverage_pct:.1f}%), "
            f"{self.test_count} tests)"
        )


# A t-tuple: ((dimension name, value), ...) in dimension order.
TupleKey = tuple[tuple[str, Hashable], ...]


class CoveringArrayGenerator:
    """Greedy t-wise covering-array generator.

    Each round builds candidate rows around still-uncovered t-tuples, fills
    the remaining dimensions at random, and keeps the candidate that covers
    the most uncovered tuples. The lowest-numbered uncovered tuple always
    seeds one candidate, so every round makes progress.

    Attributes:
        space: The dimension space to generate from.
        seed: Random seed; the same seed always yields the same array.
    """

    def __init__(self, space: DimensionSpace, seed: int | None = None) -> None:
        self.space = space
        self._rng = random.Random(seed)

    def exhaustive(self) -> list[Combination]:
        """The full Cartesian product."""
        return self.space.all_combinations()

    def generate(self, strength: int = 2) -> list[Combination]:
        """Generate a t-wise covering array.

        Raises:
            ValueError: If strength is below 1 or above the number of dimensions.
        """
        n_dims = len(self.space.dimensions)
        if strength < 1:
            raise ValueError("Strength must be at least 1")
        if strength > n_dims:
            raise ValueError(f"Strength {strength} exceeds number of dimensions ({n_dims})")
        if strength == n_dims:
            return self.exhaustive()

        keys = self._t_tuples(strength)
        index = {key: i for i, key in enumerate(keys)}
        uncovered = set(range(len(keys)))
        logger.debug(f"Covering {len(keys)} {strength}-tuples over {n_dims} dimensions")

        rows: list[Combination] = []
        while uncovered:
            row, covered = self._best_candidate(keys, index, uncovered, strength)
            rows.append(row)
            uncovered -= covered

        logger.debug(f"{len(rows)} rows for {strength}-wise coverage (exhaustive: {self.space.total_combinations})")
        return rows

    def coverage_stats(self, combinations: list[Combination], strength: int = 2) -> CoverageStats:
        """Measure how many t-tuples of the space ``combinations`` cover.

        Values outside a dimension's domain cover nothing.
        """
        keys = set(self._t_tuples(strength))
        covered: set[TupleKey] = set()
        for combo in combinations:
            covered.update(self._covered_by(combo, strength))
        hit = len(covered & keys)
        total = len(keys)

        return CoverageStats(
            strength=strength,
            total_tuples=total,
            covered_tuples=hit,
            coverage_pct=(hit / total * 100) if total else 100.0,
            test_count=len(combinations),
        )

    def _t_tuples(self, strength: int) -> list[TupleKey]:
        keys: list[TupleKey] = []
        for dims in itertools.combinations(self.space.dimensions, strength):
            for values in itertools.product(*(d.values for d in dims)):
                keys.append(tuple(zip((d.name for d in dims), values)))
        return keys

    def _covered_by(self, combo: Combination, strength: int) -> set[TupleKey]:
        names = [n for n in self.space.dimension_names if n in combo]
        return {
            tuple((n, combo[n]) for n in subset)
            for subset in itertools.combinations(names, strength)
        }

    def _best_candidate(
        self,
        keys: list[TupleKey],
        index: dict[TupleKey, int],
        uncovered: set[int],
        strength: int,
    ) -> tuple[Combination, set[int]]:
        ordered = sorted(uncovered)

        def scored(seed: int) -> tuple[Combination, set[int]]:
            candidate = self._fill(keys[seed])
            return candidate, {index[k] for k in self._covered_by(candidate, strength)} & uncovered

        best, best_covered = scored(ordered[0])
        n_candidates = max(50, len(self.space.dimensions) * 10)
        for _ in range(n_candidates):
            candidate, covered = scored(self._rng.choice(ordered))
            if len(covered) > len(best_covered):
                best, best_covered = candidate, covered
        return best, best_covered

    def _fill(self, fixed: TupleKey) -> Combination:
        """A full row holding ``fixed`` with random values elsewhere."""
        values = dict(fixed)
        for dim in self.space.dimensions:
            if dim.name not in values:
                values[dim.name] = self._rng.choice(dim.values)
        return Combination({d.name: values[d.name] for d in self.space.dimensions})


class CoveringArrayTool(ABC):
    """Produces covering arrays over index-valued domains."""

    @abstractmethod
    def generate(self, domain_sizes: list[int], strength: int) -> list[tuple[int, ...]]:
        """Return rows of value indices covering all t-way combinations."""
        ...


class GreedyCoveringArrayTool(CoveringArrayTool):
    """Covering-array tool backed by CoveringArrayGenerator.

    Strength is clamped to the number of domains. No domains yields the
    single empty row. Rows come back in generation order.
    """

    def __init__(self, seed: int | None = 0) -> None:
        self.seed = seed

    def generate(self, domain_sizes: list[int], strength: int) -> list[tuple[int, ...]]:
        if not domain_sizes:
            return [()]
        if any(size < 1 for size in domain_sizes):
            raise ValueError("Every domain needs at least one value")
        space = DimensionSpace.from_sizes(domain_sizes)
        t = max(1, min(strength, len(domain_sizes)))
        generator = CoveringArrayGenerator(space, seed=self.seed)
        names = space.dimension_names
        return [combo.as_tuple(names) for combo in generator.generate(strength=t)]
