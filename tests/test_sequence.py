"""Tests for call sequences, snippet parsing and the sequence pool."""

from __future__ import annotations

from pathlib import Path

import pytest

from ctdforge.errors import ConfigurationError, SequenceParseError
from ctdforge.sequence import (
    CallSequence,
    SequencePool,
    SnippetParser,
    Statement,
    StatementKind,
    load_catalogue_file,
)

NODE = "sample_app.nodes.Node"
CIRCLE = "sample_app.shapes.Circle"
CANVAS = "sample_app.shapes.Canvas"


def literal(value: str, type_name: str = "int") -> Statement:
    return Statement(StatementKind.LITERAL, type_name, name=value)


def circle_sequence(radius: str = "1.0") -> CallSequence:
    return CallSequence.of([
        literal(radius, "float"),
        Statement(StatementKind.CONSTRUCTOR, CIRCLE, name="__init__", owner=CIRCLE, inputs=(0,)),
    ])


# ============================================================
# Statements and sequences
# ============================================================


class TestCallSequence:
    """Tests for the persistent sequence structure."""

    def test_extend_shares_prefix(self) -> None:
        base = CallSequence.of([literal("1")])
        extended = base.extend(literal("2"))
        assert extended.prefix is base
        assert len(base) == 1
        assert len(extended) == 2

    def test_structural_equality(self) -> None:
        assert circle_sequence() == circle_sequence()
        assert hash(circle_sequence()) == hash(circle_sequence())
        assert circle_sequence("1.0") != circle_sequence("2.0")

    def test_extend_rejects_forward_reference(self) -> None:
        with pytest.raises(ValueError):
            CallSequence().extend(Statement(StatementKind.CONSTRUCTOR, NODE, "__init__", NODE, inputs=(0,)))

    def test_concatenate_shifts_references(self) -> None:
        joined = circle_sequence("1.0").concatenate(circle_sequence("2.0"))
        assert len(joined) == 4
        assert joined[3].inputs == (2,)
        assert joined.output_type == CIRCLE

    def test_slice_for(self) -> None:
        seq = CallSequence.of([
            literal("1.0", "float"),
            literal("7"),
            Statement(StatementKind.CONSTRUCTOR, CIRCLE, "__init__", CIRCLE, inputs=(0,)),
        ])
        sliced = seq.slice_for(2)
        assert sliced == circle_sequence()

    def test_head(self) -> None:
        seq = circle_sequence()
        assert seq.head(1) == CallSequence.of([literal("1.0", "float")])
        assert seq.head(5) is seq

    def test_dict_round_trip(self) -> None:
        seq = CallSequence.of([
            literal("0"),
            Statement(StatementKind.METHOD, "int", "f", "pkg.A", inputs=(0,), keywords=("x",)),
        ])
        assert CallSequence.from_dict(seq.to_dict()) == seq

    def test_render(self) -> None:
        assert circle_sequence().render() == f"v0 = 1.0\nv1 = {CIRCLE}(v0)"

    def test_keywords_must_align(self) -> None:
        with pytest.raises(ValueError):
            Statement(StatementKind.METHOD, "int", "f", "pkg.A", inputs=(0, 1), keywords=("x",))

    def test_callable_id(self) -> None:
        statement = Statement(StatementKind.METHOD, "int", "add", CANVAS, inputs=(), receiver=0)
        assert statement.callable_id == f"{CANVAS}::add"
        assert literal("1").callable_id == ""


# ============================================================
# Parser
# ============================================================


class TestSnippetParser:
    """Tests for building-block snippet parsing."""

    def test_constructor_with_literal(self, parser: SnippetParser) -> None:
        seq = parser.parse("c = Circle(2.5)", ["from sample_app.shapes import Circle"])
        assert [s.kind for s in seq] == [StatementKind.LITERAL, StatementKind.CONSTRUCTOR]
        assert seq[0].name == "2.5"
        assert seq[1].owner == CIRCLE

    def test_method_call_on_variable(self, parser: SnippetParser) -> None:
        source = "canvas = Canvas()\nshape = Circle(1.0)\ncanvas.add(shape)"
        seq = parser.parse(source, ["from sample_app.shapes import Canvas, Circle"])
        last = seq.last
        assert last.kind is StatementKind.METHOD
        assert last.receiver == 0
        assert last.inputs == (2,)
        assert last.type_name == "int"

    def test_enum_and_none(self, parser: SnippetParser) -> None:
        source = "canvas = shapes.Canvas(shapes.Color.GREEN)\nx = None"
        seq = parser.parse(source, ["import sample_app.shapes as shapes"])
        assert seq[0].kind is StatementKind.ENUM
        assert seq[0].name == "GREEN"
        assert seq[2].kind is StatementKind.NULL

    def test_factory_and_static_call(self, parser: SnippetParser) -> None:
        source = "p = Point.origin()\nn = Node(None)\nm = Linker.link(n)"
        imports = ["from sample_app.shapes import Point", "from sample_app.nodes import Node, Linker"]
        seq = parser.parse(source, imports)
        assert seq[0].kind is StatementKind.CONSTRUCTOR
        assert seq[0].name == "origin"
        assert seq.last.kind is StatementKind.METHOD
        assert seq.last.receiver is None
        assert seq.last.type_name == NODE

    def test_empty_containers(self, parser: SnippetParser) -> None:
        seq = parser.parse("a = []\nb = {}\nc = ()\nd = set()")
        assert [s.kind for s in seq] == [
            StatementKind.COLLECTION, StatementKind.MAP, StatementKind.ARRAY, StatementKind.COLLECTION,
        ]

    def test_keyword_arguments(self, parser: SnippetParser) -> None:
        seq = parser.parse("c = Circle(radius=3.0)", ["from sample_app.shapes import Circle"])
        assert seq.last.keywords == ("radius",)

    @pytest.mark.parametrize(
        "source",
        [
            "x = ",
            "for i in range(3): pass",
            "x = [1, 2]",
            "x = undefined_name()",
            "",
        ],
    )
    def test_unsupported(self, parser: SnippetParser, source: str) -> None:
        with pytest.raises(SequenceParseError):
            parser.parse(source)


# ============================================================
# Pool
# ============================================================


class TestSequencePool:
    """Tests for pool ordering, mining and snapshots."""

    def test_lookup_empty(self) -> None:
        pool = SequencePool()
        assert pool.lookup(NODE) == []
        assert pool.sample(NODE) is None

    def test_size_order_and_first_inserted_ties(self) -> None:
        pool = SequencePool()
        long = circle_sequence().concatenate(circle_sequence("3.0"))
        pool.insert(CIRCLE, long)
        pool.insert(CIRCLE, circle_sequence("2.0"))
        pool.insert(CIRCLE, circle_sequence("1.0"))
        assert pool.lookup(CIRCLE) == [circle_sequence("2.0"), circle_sequence("1.0"), long]
        assert pool.sample(CIRCLE) == circle_sequence("2.0")

    def test_structural_duplicates_discarded(self) -> None:
        pool = SequencePool()
        assert pool.insert(CIRCLE, circle_sequence())
        assert not pool.insert(CIRCLE, circle_sequence())
        assert len(pool) == 1

    def test_subtype_keys(self, loader) -> None:
        pool = SequencePool()
        pool.insert(CIRCLE, circle_sequence())
        assert pool.subtype_keys("sample_app.shapes.Shape", loader.is_subtype) == [CIRCLE]
        assert pool.subtype_keys(CIRCLE, loader.is_subtype) == []

    def test_primitive_values(self) -> None:
        pool = SequencePool()
        assert pool.primitive_value("int") == "0"
        assert pool.primitive_value("str") == "''"
        pool.add_primitive("int", "42")
        pool.add_primitive("int", "7")
        assert pool.primitive_value("int") == "42"

    def test_mining(self, parser: SnippetParser) -> None:
        pool = SequencePool()
        source = "canvas = Canvas()\nshape = Circle(4.0)\ncanvas.add(shape)"
        catalogue = {CANVAS: {"imports": ["from sample_app.shapes import Canvas, Circle"], "sequences": [source]}}
        pool.load_catalogue(catalogue, parser)

        assert len(pool.sample(CANVAS)) == 1
        assert pool.sample(CIRCLE) == circle_sequence("4.0")
        (member_seq,) = pool.lookup_member(f"{CANVAS}::add")
        assert len(member_seq) == 4
        assert pool.primitive_value("float") == "4.0"
        assert pool.stats.parsed == 1
        assert pool.stats.class_sequences == 2
        assert pool.stats.member_sequences == 1

    def test_member_targets_filter(self, parser: SnippetParser) -> None:
        pool = SequencePool()
        catalogue = {CANVAS: {
            "imports": ["from sample_app.shapes import Canvas"],
            "sequences": ["c = Canvas()\nc.count()"],
        }}
        pool.load_catalogue(catalogue, parser, targets={f"{CANVAS}::add"})
        assert pool.lookup_member(f"{CANVAS}::count") == []

    def test_parse_failures_counted(self, parser: SnippetParser) -> None:
        pool = SequencePool()
        catalogue = {CANVAS: {"imports": [], "sequences": ["x = (", "y = missing()", "z = 1"]}}
        pool.load_catalogue(catalogue, parser)
        assert pool.stats.total_snippets == 3
        assert pool.stats.failed == 2
        assert pool.stats.parsed == 1
        assert pool.stats.parse_exceptions["SyntaxError"] == 1
        assert pool.stats.parse_exceptions["SequenceParseError"] == 1

    def test_non_public_members_not_mined(self, parser: SnippetParser) -> None:
        pool = SequencePool()
        catalogue = {"x": {"imports": ["from sample_app.shapes import _Sketch"], "sequences": ["s = _Sketch()"]}}
        pool.load_catalogue(catalogue, parser)
        assert pool.stats.skipped == 1
        assert len(pool) == 0

    def test_snapshot_round_trip(self, tmp_path: Path) -> None:
        pool = SequencePool()
        pool.insert(CIRCLE, circle_sequence())
        pool.insert_member(f"{CANVAS}::add", circle_sequence("5.0"))
        pool.add_primitive("float", "1.0")
        path = tmp_path / "pool.json"
        pool.save(path)

        restored = SequencePool.load(path)
        assert restored.lookup(CIRCLE) == [circle_sequence()]
        assert restored.lookup_member(f"{CANVAS}::add") == [circle_sequence("5.0")]
        assert restored.primitive_value("float") == "1.0"

    def test_unreadable_snapshot(self, tmp_path: Path) -> None:
        path = tmp_path / "pool.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            SequencePool.load(path)

    def test_catalogue_file(self, tmp_path: Path) -> None:
        path = tmp_path / "blocks.yaml"
        path.write_text(f"{CIRCLE}:\n  imports: []\n  sequences: ['x = 1']\n")
        assert load_catalogue_file(path)[CIRCLE]["sequences"] == ["x = 1"]
