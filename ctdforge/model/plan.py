"""Test-plan data model.

A TestPlan maps partition -> class -> member signature -> MemberPlan. Each
MemberPlan holds the modeled TargetMember and the TestPlanRows the covering
array produced for it. Plans round-trip through the JSON test-plan file.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from ctdforge.errors import TestPlanError
from ctdforge.typemodel.names import NULL


class CoverageStatus(str, Enum):
    """Coverage state of a single test-plan row."""

    UNCOVERED = "UNCOVERED"
    COVERED = "COVERED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ParameterSlot:
    """One parameter of a target member and its resolved value domain.

    Attributes:
        index: Position among the member's parameters.
        name: Parameter name, used for keyword-only arguments.
        declared_type: Type as declared in the signature.
        domain: Concrete type names usable for the slot; ``None`` marks null.
        keyword_only: Whether the argument must be passed by keyword.
    """

    index: int
    name: str
    declared_type: str
    domain: tuple[str, ...]
    keyword_only: bool = False

    @property
    def nullable(self) -> bool:
        return NULL in self.domain

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "declared_type": self.declared_type,
            "domain": list(self.domain),
            "keyword_only": self.keyword_only,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParameterSlot:
        return cls(
            index=data["index"],
            name=data["name"],
            declared_type=data["declared_type"],
            domain=tuple(data["domain"]),
            keyword_only=data.get("keyword_only", False),
        )


@dataclass(frozen=True)
class TargetMember:
    """A constructor or method under test.

    Attributes:
        class_name: Qualified name of the declaring class.
        name: Member name; ``__init__`` for the class call.
        slots: Modeled parameters.
        is_constructor: Whether the member is the class call.
        is_static: Whether the member is invoked on the class.
        return_type: Declared return type.
    """

    class_name: str
    name: str
    slots: tuple[ParameterSlot, ...] = ()
    is_constructor: bool = False
    is_static: bool = False
    return_type: str = "object"

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(s.declared_type for s in self.slots)})"

    @property
    def member_id(self) -> str:
        return f"{self.class_name}::{self.name}"

    @property
    def qualified_signature(self) -> str:
        return f"{self.class_name}::{self.signature}"

    @property
    def needs_receiver(self) -> bool:
        return not (self.is_constructor or self.is_static)

    def to_dict(self) -> dict[str, Any]:
        return {
            "class_name": self.class_name,
            "name": self.name,
            "is_constructor": self.is_constructor,
            "is_static": self.is_static,
            "return_type": self.return_type,
            "slots": [s.to_dict() for s in self.slots],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TargetMember:
        return cls(
            class_name=data["class_name"],
            name=data["name"],
            slots=tuple(ParameterSlot.from_dict(s) for s in data.get("slots", [])),
            is_constructor=data.get("is_constructor", False),
            is_static=data.get("is_static", False),
            return_type=data.get("return_type", "object"),
        )


@dataclass
class TestPlanRow:
    """One row of a member's covering array.

    Attributes:
        row_id: Globally unique ``partition::Class::sig::rowN``.
        partition: Owning partition.
        member: The member the row exercises.
        values: One concrete type name (or ``None``) per slot.
        status: Coverage status, updated after execution.
    """

    __test__ = False

    row_id: str
    partition: str
    member: TargetMember
    values: tuple[str, ...]
    status: CoverageStatus = CoverageStatus.UNCOVERED

    def __post_init__(self) -> None:
        if len(self.values) != len(self.member.slots):
            raise TestPlanError(
                f"Row {self.row_id} has {len(self.values)} values for "
                f"{len(self.member.slots)} parameters"
            )


@dataclass
class MemberPlan:
    """The rows generated for one member."""

    member: TargetMember
    strength: int
    rows: list[TestPlanRow] = field(default_factory=list)


@dataclass
class Partition:
    """A group of target classes planned, extended and executed together."""

    name: str
    classes: list[str] = field(default_factory=list)
    classpath: list[str] = field(default_factory=list)


@dataclass
class PlanStatistics:
    """Counts gathered while building a plan."""

    total_classes: int = 0
    target_classes: int = 0
    non_public_classes: int = 0
    classes_no_public_methods: int = 0
    target_methods: int = 0
    skipped_methods: int = 0
    total_tests: int = 0

    def to_dict(self) -> dict[str, int]:
        return dict(self.__dict__)


@dataclass
class TestPlan:
    """All member plans of a run, keyed partition -> class -> signature."""

    __test__ = False

    partitions: dict[str, Partition] = field(default_factory=dict)
    members: dict[str, dict[str, dict[str, MemberPlan]]] = field(default_factory=dict)
    statistics: PlanStatistics = field(default_factory=PlanStatistics)

    def add(self, partition: str, plan: MemberPlan) -> None:
        by_class = self.members.setdefault(partition, {})
        by_class.setdefault(plan.member.class_name, {})[plan.member.signature] = plan

    def member_plans(self, partition: str | None = None) -> Iterator[MemberPlan]:
        for part, by_class in self.members.items():
            if partition is not None and part != partition:
                continue
            for by_sig in by_class.values():
                yield from by_sig.values()

    def rows(self, partition: str | None = None) -> Iterator[TestPlanRow]:
        for plan in self.member_plans(partition):
            yield from plan.rows

    def row(self, row_id: str) -> TestPlanRow:
        for candidate in self.rows(row_id.split("::", 1)[0]):
            if candidate.row_id == row_id:
                return candidate
        raise KeyError(row_id)

    def to_dict(self) -> dict[str, Any]:
        models: dict[str, Any] = {}
        for part, by_class in self.members.items():
            models[part] = {
                class_name: {
                    sig: {
                        **plan.member.to_dict(),
                        "strength": plan.strength,
                        "test_plan": [
                            {"row_id": r.row_id, "types": list(r.values), "status": r.status.value}
                            for r in plan.rows
                        ],
                    }
                    for sig, plan in by_sig.items()
                }
                for class_name, by_sig in by_class.items()
            }
        return {
            "partitions": {
                name: {"classes": p.classes, "classpath": p.classpath}
                for name, p in self.partitions.items()
            },
            "models_and_test_plans": models,
            "statistics": self.statistics.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestPlan:
        try:
            plan = cls(
                partitions={
                    name: Partition(name, list(p.get("classes", [])), list(p.get("classpath", [])))
                    for name, p in data.get("partitions", {}).items()
                },
                statistics=PlanStatistics(**data.get("statistics", {})),
            )
            for part, by_class in data["models_and_test_plans"].items():
                plan.partitions.setdefault(part, Partition(part, sorted(by_class)))
                for by_sig in by_class.values():
                    for entry in by_sig.values():
                        member = TargetMember.from_dict(entry)
                        rows = [
                            TestPlanRow(
                                row_id=r["row_id"],
                                partition=part,
                                member=member,
                                values=tuple(r["types"]),
                                status=CoverageStatus(r.get("status", "UNCOVERED")),
                            )
                            for r in entry["test_plan"]
                        ]
                        plan.add(part, MemberPlan(member, entry.get("strength", 1), rows))
        except (KeyError, TypeError, ValueError) as e:
            raise TestPlanError(f"Malformed test plan: {e}", cause=e) from e
        return plan

    def save(self, path: str | Path) -> None:
        Path(path).write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(cls, path: str | Path) -> TestPlan:
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise TestPlanError(f"Cannot read test plan {path}: {e}", cause=e) from e
        return cls.from_dict(data)
