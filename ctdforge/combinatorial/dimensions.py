"""Dimensions and combinations for covering-array generation.

A Dimension is one parameter slot with its finite list of values. A
DimensionSpace is the ordered set of dimensions of one member, and a
Combination assigns one value to each dimension.

Example:
    >>> space = DimensionSpace([
    ...     Dimension("p0", [0, 1]),
    ...     Dimension("p1", ["a", "b"]),
    ... ])
    >>> space.total_combinations
    4
"""

from __future__ import annotations

import itertools
from collections.abc import Hashable, Iterator, Mapping
from typing import Any


class Dimension:
    """A named parameter with a finite, duplicate-free list of values."""

    def __init__(self, name: str, values: list[Hashable]) -> None:
        if not name:
            raise ValueError("Dimension name cannot be empty")
        if not values:
            raise ValueError(f"Dimension {name!r} needs at least one value")
        if len(set(values)) != len(values):
            raise ValueError(f"Dimension {name!r} has duplicate values")
        self.name = name
        self.values = list(values)

    @property
    def size(self) -> int:
        return len(self.values)

    def __repr__(self) -> str:
        return f"Dimension({self.name!r}, {self.values!r})"


class Combination(Mapping[str, Hashable]):
    """An assignment of one value to each of a set of dimensions.

    Combinations are immutable mappings that hash and compare by content.
    """

    def __init__(self, values: Mapping[str, Hashable]) -> None:
        self.values: dict[str, Hashable] = dict(values)
        self._key = tuple(sorted((k, repr(v)) for k, v in self.values.items()))

    def __getitem__(self, key: str) -> Hashable:
        return self.values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __hash__(self) -> int:
        return hash(self._key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Combination):
            return NotImplemented
        return self._key == other._key

    def as_tuple(self, names: list[str]) -> tuple[Any, ...]:
        """Values ordered by the given dimension names."""
        return tuple(self.values[n] for n in names)

    def __repr__(self) -> str:
        return "Combination(" + ", ".join(f"{k}={v}" for k, v in self.values.items()) + ")"


class DimensionSpace:
    """The ordered dimensions of one member."""

    def __init__(self, dimensions: list[Dimension]) -> None:
        names = [d.name for d in dimensions]
        if len(set(names)) != len(names):
            raise ValueError("Dimension names must be unique")
        self.dimensions = list(dimensions)

    @classmethod
    def from_sizes(cls, sizes: list[int]) -> DimensionSpace:
        """Index-valued dimensions ``p0..pN`` with values ``0..size-1``."""
        return cls([Dimension(f"p{i}", list(range(size))) for i, size in enumerate(sizes)])

    @property
    def dimension_names(self) -> list[str]:
        return [d.name for d in self.dimensions]

    @property
    def total_combinations(self) -> int:
        total = 1
        for d in self.dimensions:
            total *= d.size
        return total

    def all_combinations(self) -> list[Combination]:
        names = self.dimension_names
        return [
            Combination(dict(zip(names, values)))
            for values in itertools.product(*(d.values for d in self.dimensions))
        ]
