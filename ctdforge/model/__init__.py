"""Test-plan model and combinatorial planner."""

from ctdforge.model.plan import (
    CoverageStatus,
    MemberPlan,
    ParameterSlot,
    Partition,
    PlanStatistics,
    TargetMember,
    TestPlan,
    TestPlanRow,
)
from ctdforge.model.planner import (
    MONOLITHIC,
    TargetFetcher,
    TestPlanGenerator,
    load_partitions,
    partition_classes,
)

__all__ = [
    # Data model
    "CoverageStatus",
    "MemberPlan",
    "ParameterSlot",
    "Partition",
    "PlanStatistics",
    "TargetMember",
    "TestPlan",
    "TestPlanRow",
    # Planning
    "MONOLITHIC",
    "TargetFetcher",
    "TestPlanGenerator",
    "load_partitions",
    "partition_classes",
]
