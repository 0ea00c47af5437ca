"""Tests for constructor synthesis and sequence extension."""

from __future__ import annotations

import pytest

from ctdforge.errors import NonInstantiableTypeError, SynthesisFailure
from ctdforge.extender import ConstructorSequenceGenerator, ExtenderSummary, SequenceExtender
from ctdforge.model import MONOLITHIC, Partition, TestPlan, TestPlanGenerator, TestPlanRow
from ctdforge.sequence import CallSequence, SequencePool, SnippetParser, Statement, StatementKind
from ctdforge.typemodel import NULL

NODE = "sample_app.nodes.Node"
LINKER = "sample_app.nodes.Linker"
CANVAS = "sample_app.shapes.Canvas"
CIRCLE = "sample_app.shapes.Circle"
SQUARE = "sample_app.shapes.Square"
SHAPE = "sample_app.shapes.Shape"


def plan_for(planner: TestPlanGenerator, *classes: str) -> TestPlan:
    return planner.generate({MONOLITHIC: Partition(MONOLITHIC, list(classes))})


def rows_of(plan: TestPlan, class_name: str, signature: str) -> list[TestPlanRow]:
    return plan.members[MONOLITHIC][class_name][signature].rows


def row_with(plan: TestPlan, class_name: str, signature: str, values: tuple[str, ...]) -> TestPlanRow:
    return next(r for r in rows_of(plan, class_name, signature) if r.values == values)


def canvas_pool() -> SequencePool:
    pool = SequencePool()
    pool.insert(CANVAS, CallSequence.of([Statement(StatementKind.CONSTRUCTOR, CANVAS, "__init__", CANVAS)]))
    return pool


# ============================================================
# Constructor synthesis
# ============================================================


class TestConstructorSequenceGenerator:
    """Tests for argument resolution."""

    def generator(self, make_extender, pool: SequencePool | None = None, **overrides) -> ConstructorSequenceGenerator:
        return make_extender(pool, **overrides).constructors

    def test_primitive_uses_pool_value(self, make_extender) -> None:
        pool = SequencePool()
        pool.add_primitive("int", "17")
        resolved = self.generator(make_extender, pool).resolve("int", 0, allow_null=False)
        assert resolved.sequence.last.name == "17"
        assert resolved.existing

    def test_enum_takes_first_member(self, make_extender) -> None:
        resolved = self.generator(make_extender).resolve("sample_app.shapes.Color", 0, allow_null=False)
        assert resolved.sequence.last.kind is StatementKind.ENUM
        assert resolved.sequence.last.name == "RED"

    def test_containers_are_empty_concrete(self, make_extender) -> None:
        generator = self.generator(make_extender)
        mapping = generator.resolve("collections.abc.Mapping[str, int]", 0, allow_null=False)
        assert mapping.sequence.last.kind is StatementKind.MAP
        assert mapping.sequence.last.type_name == "dict[str, int]"
        assert generator.resolve("tuple", 0, allow_null=False).sequence.last.kind is StatementKind.ARRAY

    def test_union_takes_first_buildable_member(self, make_extender) -> None:
        resolved = self.generator(make_extender).resolve("typing.Union[int, str]", 0, allow_null=False)
        assert resolved.sequence.last.type_name == "int"

    def test_abstract_type_uses_concrete_subtype(self, make_extender) -> None:
        resolved = self.generator(make_extender).resolve(SHAPE, 0, allow_null=False)
        assert resolved.sequence.output_type == CIRCLE
        assert not resolved.existing
        assert resolved.depth == 1

    def test_pooled_subtype_is_reused(self, make_extender) -> None:
        pool = SequencePool()
        square = CallSequence.of([
            Statement(StatementKind.LITERAL, "float", "2.0"),
            Statement(StatementKind.CONSTRUCTOR, SQUARE, "__init__", SQUARE, inputs=(0,)),
        ])
        pool.insert(SQUARE, square)
        resolved = self.generator(make_extender, pool).resolve(SHAPE, 0, allow_null=False)
        assert resolved.sequence == square
        assert resolved.existing
        assert resolved.synthesized == ()

    def test_no_subtypes(self, make_extender) -> None:
        generator = self.generator(make_extender)
        with pytest.raises(NonInstantiableTypeError):
            generator.resolve("sample_app.shapes.Plugin", 0, allow_null=False)
        assert generator.resolve("sample_app.shapes.Plugin", 0, allow_null=True).sequence.last.kind is StatementKind.NULL

    def test_cycle_without_fallback_fails(self, make_extender) -> None:
        generator = self.generator(make_extender, max_recursion_depth=2, allow_null_fallback=False)
        with pytest.raises(NonInstantiableTypeError) as exc_info:
            generator.resolve(NODE, 0, allow_null=False)
        assert exc_info.value.type_name == NODE
        assert generator.ctx.failures[NODE] == 1

    def test_cycle_with_fallback_bottoms_out_in_none(self, make_extender) -> None:
        generator = self.generator(make_extender, max_recursion_depth=2, allow_null_fallback=True)
        resolved = generator.resolve(NODE, 0, allow_null=False)
        kinds = [s.kind for s in resolved.sequence]
        assert kinds == [StatementKind.NULL, StatementKind.CONSTRUCTOR, StatementKind.CONSTRUCTOR]
        assert resolved.depth == 2
        assert NODE in generator.ctx.memo

    def test_unbounded_ceiling_resolves(self, make_extender) -> None:
        resolved = self.generator(make_extender, max_recursion_depth=-1).resolve(CIRCLE, 0, allow_null=False)
        assert resolved.sequence.output_type == CIRCLE
        assert resolved.depth == 1

    def test_unbounded_cycle_without_fallback_fails(self, make_extender) -> None:
        generator = self.generator(make_extender, max_recursion_depth=-1, allow_null_fallback=False)
        with pytest.raises(NonInstantiableTypeError):
            generator.resolve(NODE, 0, allow_null=False)
        assert generator.ctx.failures[NODE] == 1
        assert not generator.ctx.in_progress

    def test_unbounded_cycle_with_fallback_stops_at_first_reentry(self, make_extender) -> None:
        generator = self.generator(make_extender, max_recursion_depth=-1, allow_null_fallback=True)
        resolved = generator.resolve(NODE, 0, allow_null=False)
        assert [s.kind for s in resolved.sequence] == [StatementKind.NULL, StatementKind.CONSTRUCTOR]

    def test_depth_zero_ceiling(self, make_extender) -> None:
        generator = self.generator(make_extender, max_recursion_depth=0, allow_null_fallback=True)
        with pytest.raises(NonInstantiableTypeError):
            generator.resolve(CIRCLE, 0, allow_null=False)

    def test_memoized_sequence_is_reused_but_not_existing(self, make_extender) -> None:
        generator = self.generator(make_extender)
        first = generator.resolve(CIRCLE, 0, allow_null=False)
        second = generator.resolve(CIRCLE, 0, allow_null=False)
        assert second.sequence == first.sequence
        assert not second.existing
        assert second.synthesized == ((CIRCLE, first.sequence),)


# ============================================================
# Row extension
# ============================================================


class TestSequenceExtender:
    """Tests for extending plan rows into sequences."""

    def test_non_instantiable_row_is_counted(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, LINKER)
        row = row_with(plan, LINKER, f"link({NODE})", (NODE,))
        extender = make_extender(max_recursion_depth=2, allow_null_fallback=False)

        assert extender.extend_rows([row]) == []
        summary = extender.ctx.summary
        assert summary.uncovered[SynthesisFailure.NON_INSTANTIABLE_PARAMETER_TYPE] == 1
        assert NODE in summary.non_instantiable_types
        assert summary.rows_extended == 0

    def test_unbounded_cyclic_row_is_counted(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, LINKER)
        row = row_with(plan, LINKER, f"link({NODE})", (NODE,))
        extender = make_extender(max_recursion_depth=-1, allow_null_fallback=False)

        assert extender.extend_rows([row]) == []
        summary = extender.ctx.summary
        assert summary.uncovered[SynthesisFailure.NON_INSTANTIABLE_PARAMETER_TYPE] == 1
        assert summary.rows_total == 1

    def test_null_fallback_extends_cyclic_row(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, LINKER)
        row = row_with(plan, LINKER, f"link({NODE})", (NODE,))
        extender = make_extender(max_recursion_depth=2, allow_null_fallback=True)

        (extended,) = extender.extend_rows([row])
        assert extended.max_depth <= 2
        assert extended.sequence.last.kind is StatementKind.METHOD
        assert extended.sequence.last.receiver is None
        assert extended.sequence.render().endswith(f"= {LINKER}.link(v2)")
        assert not extended.row_is_existing(row.row_id)
        assert [pair[0] for pair in extended.synthesized] == [NODE, NODE]

    def test_null_row_value(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, LINKER)
        row = row_with(plan, LINKER, f"link({NODE})", (NULL,))
        (extended,) = make_extender().extend_rows([row])
        assert extended.sequence[0].kind is StatementKind.NULL
        assert extended.sequence[0].type_name == NODE
        assert extended.row_is_existing(row.row_id)

    def test_zero_parameter_member_with_pooled_receiver(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, CANVAS)
        (row,) = rows_of(plan, CANVAS, "count()")
        (extended,) = make_extender(canvas_pool()).extend_rows([row])
        assert extended.max_depth == 0
        assert extended.sequence.render() == f"v0 = {CANVAS}()\nv1 = v0.count()"
        assert extended.row_is_existing(row.row_id)

    def test_zero_parameter_member_with_synthesized_receiver(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, CANVAS)
        (row,) = rows_of(plan, CANVAS, "count()")
        (extended,) = make_extender().extend_rows([row])
        assert extended.max_depth == 0
        assert not extended.receiver_existing
        assert extended.sequence.last.name == "count"

    def test_constructor_row(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, CANVAS)
        row = row_with(plan, CANVAS, "__init__(sample_app.shapes.Color)", ("sample_app.shapes.Color",))
        (extended,) = make_extender().extend_rows([row])
        assert extended.sequence.render() == (
            f"v0 = sample_app.shapes.Color.RED\nv1 = {CANVAS}(v0)"
        )

    def test_receiver_synthesis_disabled(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, CANVAS)
        (row,) = rows_of(plan, CANVAS, "count()")
        extender = make_extender(synthesize_receivers=False)
        assert extender.extend_rows([row]) == []
        assert extender.ctx.summary.uncovered[SynthesisFailure.NO_BUILDING_BLOCK_FOR_TARGET_MEMBER] == 1

    def test_covering_building_block_used_as_is(
        self, make_extender, planner: TestPlanGenerator, parser: SnippetParser
    ) -> None:
        pool = SequencePool()
        catalogue = {CANVAS: {
            "imports": ["from sample_app.shapes import Canvas, Circle"],
            "sequences": ["c = Canvas()\ns = Circle(2.0)\nc.add(s)"],
        }}
        pool.load_catalogue(catalogue, parser)
        plan = plan_for(planner, CANVAS)
        circle_row = row_with(plan, CANVAS, f"add({SHAPE})", (CIRCLE,))
        square_row = row_with(plan, CANVAS, f"add({SHAPE})", (SQUARE,))

        extender = make_extender(pool)
        circle, square = extender.extend_rows([circle_row, square_row])

        assert circle.from_building_block
        assert circle.sequence == pool.lookup_member(f"{CANVAS}::add")[0]
        assert not square.from_building_block
        assert square.sequence[0].kind is StatementKind.CONSTRUCTOR
        assert square.sequence[0].owner == CANVAS
        assert square.sequence[1].name == "2.0"
        assert extender.ctx.summary.rows_from_building_blocks == 1

    def test_identical_sequences_are_shared(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, CANVAS)
        (row,) = rows_of(plan, CANVAS, "count()")
        twin = TestPlanRow(f"{row.row_id}_twin", row.partition, row.member, row.values)

        extender = make_extender(canvas_pool())
        (extended,) = extender.extend_rows([row, twin])
        assert extended.row_ids == [row.row_id, twin.row_id]
        assert extender.ctx.summary.rows_extended == 2
        assert extender.ctx.summary.sequences_generated == 1

    def test_deterministic(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, CANVAS, LINKER, "sample_app.calc.Calculator")

        def render_all() -> list[tuple[str, list[str]]]:
            return [
                (e.sequence.render(), e.row_ids)
                for e in make_extender().extend_rows(plan.rows())
            ]

        assert render_all() == render_all()

    def test_seq_ids_are_sequential(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, CANVAS)
        sequences = make_extender().extend_rows(plan.rows())
        assert [s.seq_id for s in sequences] == [f"ext_seq_{i}" for i in range(len(sequences))]

    def test_rows_total(self, make_extender, planner: TestPlanGenerator) -> None:
        plan = plan_for(planner, CANVAS)
        extender = make_extender()
        extender.extend_rows(plan.rows())
        summary = extender.ctx.summary
        assert summary.rows_total == plan.statistics.total_tests
        assert summary.rows_extended + sum(summary.uncovered.values()) == summary.rows_total


class TestExtenderSummary:
    """Tests for summary counters."""

    def test_merge(self) -> None:
        a = ExtenderSummary(rows_total=2, rows_covered=1)
        a.record_failure(SynthesisFailure.NON_INSTANTIABLE_PARAMETER_TYPE, NODE)
        b = ExtenderSummary(rows_total=3, rows_error=2)
        b.failure_exception_types["ZeroDivisionError"] += 1
        a.merge(b)
        assert a.rows_total == 5
        assert a.rows_error == 2
        assert a.failure_exception_types["ZeroDivisionError"] == 1
        assert a.non_instantiable_types == {NODE}

    def test_to_dict_uses_category_names(self) -> None:
        summary = ExtenderSummary()
        summary.record_failure(SynthesisFailure.NO_BUILDING_BLOCK_FOR_TARGET_MEMBER)
        assert summary.to_dict()["uncovered"] == {"no_building_block_for_target_member": 1}
