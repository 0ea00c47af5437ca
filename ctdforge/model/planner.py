"""Combinatorial test-plan generation.

The planner selects target classes, groups them into partitions, models
every public member as a list of ParameterSlots and asks a covering-array
tool for rows covering all t-way combinations of slot domains.

Example:
    >>> loader = ReflectiveTypeLoader()
    >>> planner = TestPlanGenerator(loader, SubclassDomainResolver(loader))
    >>> partitions = partition_classes(["shop.cart.Cart", "shop.cart.Item"])
    >>> plan = planner.generate(partitions)
    >>> plan.statistics.total_tests
    12
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
from collections.abc import Iterable
from pathlib import Path

import yaml

from ctdforge.combinatorial import CoveringArrayTool, GreedyCoveringArrayTool
from ctdforge.errors import ConfigurationError, ErrorContext, ModelResolutionError
from ctdforge.model.plan import (
    MemberPlan,
    ParameterSlot,
    Partition,
    TargetMember,
    TestPlan,
    TestPlanRow,
)
from ctdforge.typemodel import (
    NULL,
    MemberInfo,
    ParamInfo,
    ReflectiveTypeLoader,
    TypeDomainResolver,
    TypeInfo,
    TypeKind,
    TypeRef,
    qualified_name,
)

logger = logging.getLogger(__name__)

MONOLITHIC = "monolithic"


class TargetFetcher:
    """Selects the classes to test.

    Exclusions are exact qualified names or ``prefix.*`` wildcards.
    """

    def __init__(self, excludes: Iterable[str] = ()) -> None:
        self.excludes = list(excludes)

    def is_excluded(self, class_name: str) -> bool:
        for pattern in self.excludes:
            if pattern.endswith(".*"):
                if class_name.startswith(pattern[:-1]):
                    return True
            elif class_name == pattern:
                return True
        return False

    def fetch(
        self,
        classes: Iterable[str] = (),
        modules: Iterable[str] = (),
    ) -> list[str]:
        """Return sorted target class names from explicit names and module scans."""
        found = set(classes)
        for module_name in modules:
            found.update(self._scan(module_name))
        targets = sorted(name for name in found if not self.is_excluded(name))
        logger.info(f"Selected {len(targets)} target classes ({len(found) - len(targets)} excluded)")
        return targets

    def _scan(self, module_name: str) -> set[str]:
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise ModelResolutionError(f"Cannot import module {module_name}", cause=e) from e

        modules = [module]
        if hasattr(module, "__path__"):
            for info in pkgutil.walk_packages(module.__path__, prefix=f"{module_name}."):
                try:
                    modules.append(importlib.import_module(info.name))
                except Exception as e:
                    logger.warning(f"Skipping module {info.name}: {e}")

        names: set[str] = set()
        for mod in modules:
            for _, obj in inspect.getmembers(mod, inspect.isclass):
                if obj.__module__ == mod.__name__:
                    names.add(qualified_name(obj))
        return names


def partition_classes(
    classes: list[str],
    max_partition_size: int | None = None,
    classpath: Iterable[str] = (),
) -> dict[str, Partition]:
    """Group classes into partitions of at most ``max_partition_size``.

    Without a size limit everything lives in the ``monolithic`` partition.
    """
    ordered = sorted(classes)
    paths = list(classpath)
    if max_partition_size is None or len(ordered) <= max_partition_size:
        return {MONOLITHIC: Partition(MONOLITHIC, ordered, paths)}

    partitions: dict[str, Partition] = {}
    for i in range(0, len(ordered), max_partition_size):
        name = f"partition{i // max_partition_size + 1}"
        partitions[name] = Partition(name, ordered[i:i + max_partition_size], paths)
    return partitions


def load_partitions(path: str | Path) -> dict[str, Partition]:
    """Read a partitions file (YAML or JSON).

    Format::

        partition1:
          classes: [pkg.mod.A, pkg.mod.B]
          classpath: [./vendor]
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read partitions file {path}: {e}", cause=e) from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Partitions file {path} must contain a mapping")

    partitions: dict[str, Partition] = {}
    for name, entry in data.items():
        entry = entry or {}
        partitions[str(name)] = Partition(
            name=str(name),
            classes=sorted(entry.get("classes", [])),
            classpath=list(entry.get("classpath", [])),
        )
    return partitions


class TestPlanGenerator:
    """Builds combinatorial test plans for target classes.

    Attributes:
        loader: Introspects target classes.
        resolver: Supplies concrete types for each declared parameter type.
        tool: Covering-array tool producing index rows.
        strength: Requested interaction strength t.
    """

    __test__ = False

    def __init__(
        self,
        loader: ReflectiveTypeLoader,
        resolver: TypeDomainResolver,
        tool: CoveringArrayTool | None = None,
        strength: int = 2,
    ) -> None:
        if strength < 1:
            raise ValueError("Interaction strength must be at least 1")
        self.loader = loader
        self.resolver = resolver
        self.tool = tool or GreedyCoveringArrayTool()
        self.strength = strength

    def generate(self, partitions: dict[str, Partition]) -> TestPlan:
        """Model every public member of every target class and plan its rows."""
        plan = TestPlan(partitions=dict(partitions))
        stats = plan.statistics

        # Import everything first so subclass discovery sees all classes.
        for partition in partitions.values():
            self.loader.add_paths(partition.classpath)
            for class_name in partition.classes:
                try:
                    self.loader.load(class_name)
                except ModelResolutionError as e:
                    logger.warning(f"Cannot load target class {class_name}: {e}")

        for partition in partitions.values():
            for class_name in partition.classes:
                stats.total_classes += 1
                try:
                    info = self.loader.load(class_name)
                except ModelResolutionError:
                    continue
                if not info.is_public:
                    stats.non_public_classes += 1
                    logger.debug(f"Skipping non-public class {class_name}")
                    continue
                if info.kind is not TypeKind.OBJECT:
                    logger.debug(f"Skipping {class_name}: {info.kind.value} types are not targets")
                    continue

                members = self._target_members(info)
                if not members:
                    stats.classes_no_public_methods += 1
                    continue
                stats.target_classes += 1

                for member_info, is_constructor in members:
                    context = ErrorContext(partition=partition.name, class_name=class_name, member=member_info.name)
                    try:
                        member = self.model_member(member_info, is_constructor)
                    except ModelResolutionError as e:
                        e.context = context
                        stats.skipped_methods += 1
                        logger.warning(f"Skipping member: {e}")
                        continue
                    member_plan = self.plan_member(partition.name, member)
                    plan.add(partition.name, member_plan)
                    stats.target_methods += 1
                    stats.total_tests += len(member_plan.rows)

        logger.info(
            f"Planned {stats.total_tests} rows for {stats.target_methods} members "
            f"in {stats.target_classes} classes across {len(partitions)} partitions"
        )
        return plan

    def _target_members(self, info: TypeInfo) -> list[tuple[MemberInfo, bool]]:
        members: list[tuple[MemberInfo, bool]] = []
        if not info.is_abstract:
            init = next((c for c in info.constructors if not c.is_factory), None)
            if init is not None:
                members.append(
                    (MemberInfo(owner=info.name, name="__init__", params=init.params, return_type=TypeRef(info.name)), True)
                )
        members.extend((m, False) for m in info.members)
        return members

    def model_member(self, member_info: MemberInfo, is_constructor: bool = False) -> TargetMember:
        """Resolve the slot domains of one member.

        Raises:
            ModelResolutionError: If a parameter type cannot be resolved or
                its domain is empty.
        """
        try:
            slots = tuple(self._model_slot(i, p) for i, p in enumerate(member_info.params))
        except ModelResolutionError:
            raise
        except Exception as e:
            raise ModelResolutionError(f"Cannot model {member_info.owner}.{member_info.name}: {e}", cause=e) from e
        return TargetMember(
            class_name=member_info.owner,
            name=member_info.name,
            slots=slots,
            is_constructor=is_constructor,
            is_static=member_info.is_static,
            return_type=str(member_info.return_type),
        )

    def _model_slot(self, index: int, param: ParamInfo) -> ParameterSlot:
        declared = str(param.type)
        if param.type.name == NULL:
            raise ModelResolutionError(f"Parameter {param.name!r} is annotated as None")
        kind = self.loader.kind_of(param.type)
        domain = list(self.resolver.concrete_types(declared))
        if not domain:
            raise ModelResolutionError(f"No concrete types for parameter {param.name!r}: {declared}")
        if kind is not TypeKind.PRIMITIVE:
            domain.append(NULL)
        return ParameterSlot(
            index=index,
            name=param.name,
            declared_type=declared,
            domain=tuple(domain),
            keyword_only=param.keyword_only,
        )

    def plan_member(self, partition: str, member: TargetMember) -> MemberPlan:
        """Generate covering-array rows for one modeled member."""
        if not member.slots:
            row_id = f"{partition}::{member.qualified_signature}::row1"
            return MemberPlan(member, 0, [TestPlanRow(row_id, partition, member, ())])

        strength = 1 if len(member.slots) == 1 else min(self.strength, len(member.slots))
        sizes = [len(s.domain) for s in member.slots]
        index_rows = self.tool.generate(sizes, strength)

        rows = [
            TestPlanRow(
                row_id=f"{partition}::{member.qualified_signature}::row{n}",
                partition=partition,
                member=member,
                values=tuple(slot.domain[i] for slot, i in zip(member.slots, index_row)),
            )
            for n, index_row in enumerate(index_rows, start=1)
        ]
        logger.debug(f"{member.qualified_signature}: {len(rows)} rows at strength {strength}")
        return MemberPlan(member, strength, rows)
