"""Combinatorial covering arrays for test planning.

Core classes:
- Dimension, DimensionSpace: the parameter slots of one member.
- Combination: one value per dimension.
- CoveringArrayGenerator: greedy t-wise covering arrays.
- CoveringArrayTool: the interface the test-plan generator depends on.
"""

from ctdforge.combinatorial.dimensions import (
    Combination,
    Dimension,
    DimensionSpace,
)
from ctdforge.combinatorial.generator import (
    CoverageStats,
    CoveringArrayGenerator,
    CoveringArrayTool,
    GreedyCoveringArrayTool,
)

__all__ = [
    # Dimensions
    "Combination",
    "Dimension",
    "DimensionSpace",
    # Generation
    "CoverageStats",
    "CoveringArrayGenerator",
    "CoveringArrayTool",
    "GreedyCoveringArrayTool",
]
