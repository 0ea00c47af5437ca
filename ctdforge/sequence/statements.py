"""Statements and immutable call sequences.

A CallSequence is an append-only list of Statements. Every statement binds
exactly one variable (its index in the sequence) and refers to earlier
variables by index. Extending a sequence returns a new one that shares the
old one as its prefix, so the many candidate sequences built during
synthesis do not copy each other.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


class StatementKind(str, Enum):
    LITERAL = "literal"
    ENUM = "enum"
    NULL = "null"
    ARRAY = "array"
    COLLECTION = "collection"
    MAP = "map"
    CONSTRUCTOR = "constructor"
    METHOD = "method"


CALL_KINDS = (StatementKind.CONSTRUCTOR, StatementKind.METHOD)


@dataclass(frozen=True)
class Statement:
    """One assignment in a call sequence.

    Attributes:
        kind: What the statement does.
        type_name: Type of the value the statement produces.
        name: Literal repr, enum member name, constructor/factory name
            (``__init__`` for the class call) or method name.
        owner: Qualified name of the class providing the callable or enum.
        inputs: Indices of earlier variables passed as arguments.
        keywords: Per input, the keyword to pass it under (None = positional).
        receiver: Index of the receiver variable for instance method calls.
    """

    kind: StatementKind
    type_name: str
    name: str = ""
    owner: str = ""
    inputs: tuple[int, ...] = ()
    keywords: tuple[str | None, ...] = ()
    receiver: int | None = None

    def __post_init__(self) -> None:
        if not self.keywords:
            object.__setattr__(self, "keywords", (None,) * len(self.inputs))
        elif len(self.keywords) != len(self.inputs):
            raise ValueError("keywords must align with inputs")

    def shifted(self, offset: int) -> Statement:
        """The same statement with all variable references moved by ``offset``."""
        if offset == 0 or (not self.inputs and self.receiver is None):
            return self
        return replace(
            self,
            inputs=tuple(i + offset for i in self.inputs),
            receiver=None if self.receiver is None else self.receiver + offset,
        )

    def remapped(self, mapping: dict[int, int]) -> Statement:
        return replace(
            self,
            inputs=tuple(mapping[i] for i in self.inputs),
            receiver=None if self.receiver is None else mapping[self.receiver],
        )

    @property
    def references(self) -> tuple[int, ...]:
        if self.receiver is None:
            return self.inputs
        return (self.receiver, *self.inputs)

    @property
    def is_call(self) -> bool:
        return self.kind in CALL_KINDS

    @property
    def callable_id(self) -> str:
        """``Class::name`` for calls, empty otherwise."""
        return f"{self.owner}::{self.name}" if self.is_call else ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "type": self.type_name}
        if self.name:
            data["name"] = self.name
        if self.owner:
            data["owner"] = self.owner
        if self.inputs:
            data["inputs"] = list(self.inputs)
        if any(k is not None for k in self.keywords):
            data["keywords"] = list(self.keywords)
        if self.receiver is not None:
            data["receiver"] = self.receiver
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Statement:
        inputs = tuple(data.get("inputs", ()))
        return cls(
            kind=StatementKind(data["kind"]),
            type_name=data["type"],
            name=data.get("name", ""),
            owner=data.get("owner", ""),
            inputs=inputs,
            keywords=tuple(data.get("keywords", (None,) * len(inputs))),
            receiver=data.get("receiver"),
        )

    def render(self, index: int) -> str:
        """Readable one-line form, e.g. ``v2 = pkg.Node(v0, v1)``."""
        args = ", ".join(
            f"{kw}=v{i}" if kw else f"v{i}"
            for i, kw in zip(self.inputs, self.keywords)
        )
        if self.kind is StatementKind.LITERAL:
            rhs = self.name
        elif self.kind is StatementKind.NULL:
            rhs = "None"
        elif self.kind is StatementKind.ENUM:
            rhs = f"{self.owner}.{self.name}"
        elif self.kind is StatementKind.ARRAY:
            rhs = "()"
        elif self.kind in (StatementKind.COLLECTION, StatementKind.MAP):
            rhs = f"{self.type_name.split('[', 1)[0]}()"
        elif self.kind is StatementKind.CONSTRUCTOR:
            target = self.owner if self.name == "__init__" else f"{self.owner}.{self.name}"
            rhs = f"{target}({args})"
        elif self.receiver is not None:
            rhs = f"v{self.receiver}.{self.name}({args})"
        else:
            rhs = f"{self.owner}.{self.name}({args})"
        return f"v{index} = {rhs}"


class CallSequence:
    """Immutable sequence of statements with a structurally shared prefix.

    Sequences compare and hash by their statements.
    """

    __slots__ = ("_prefix", "_statement", "_size", "_cache")

    def __init__(self, prefix: CallSequence | None = None, statement: Statement | None = None) -> None:
        if statement is None and prefix is not None:
            raise ValueError("A non-empty prefix needs a statement")
        self._prefix = prefix
        self._statement = statement
        self._size = 0 if statement is None else (len(prefix) if prefix else 0) + 1
        self._cache: tuple[Statement, ...] | None = None

    @classmethod
    def of(cls, statements: list[Statement] | tuple[Statement, ...]) -> CallSequence:
        seq = cls()
        for statement in statements:
            seq = seq.extend(statement)
        return seq

    @property
    def statements(self) -> tuple[Statement, ...]:
        if self._cache is None:
            items: list[Statement] = []
            node: CallSequence | None = self
            while node is not None and node._statement is not None:
                items.append(node._statement)
                node = node._prefix
            items.reverse()
            self._cache = tuple(items)
        return self._cache

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[Statement]:
        return iter(self.statements)

    def __getitem__(self, index: int) -> Statement:
        return self.statements[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CallSequence):
            return NotImplemented
        return self._size == other._size and self.statements == other.statements

    def __hash__(self) -> int:
        return hash(self.statements)

    def __repr__(self) -> str:
        return f"CallSequence({len(self)} statements)"

    @property
    def prefix(self) -> CallSequence | None:
        return self._prefix

    @property
    def last(self) -> Statement:
        if self._statement is None:
            raise IndexError("empty sequence")
        return self._statement

    @property
    def output_type(self) -> str:
        return self.last.type_name

    def extend(self, statement: Statement) -> CallSequence:
        """New sequence with ``statement`` appended; this one becomes its prefix."""
        for ref in statement.references:
            if ref < 0 or ref >= self._size:
                raise ValueError(f"Statement refers to v{ref} outside a sequence of {self._size}")
        return CallSequence(self, statement)

    def concatenate(self, other: CallSequence) -> CallSequence:
        """Append ``other``; its variable references are shifted past this sequence."""
        offset = len(self)
        seq = self
        for statement in other.statements:
            seq = CallSequence(seq, statement.shifted(offset))
        return seq

    def slice_for(self, index: int) -> CallSequence:
        """Backward data slice: the statements variable ``index`` depends on."""
        needed: set[int] = set()
        pending = [index]
        statements = self.statements
        while pending:
            i = pending.pop()
            if i in needed:
                continue
            needed.add(i)
            pending.extend(statements[i].references)
        mapping: dict[int, int] = {}
        kept: list[Statement] = []
        for i in sorted(needed):
            mapping[i] = len(kept)
            kept.append(statements[i].remapped(mapping))
        return CallSequence.of(kept)

    def head(self, size: int) -> CallSequence:
        """The prefix of the first ``size`` statements."""
        node: CallSequence = self
        while len(node) > size:
            assert node._prefix is not None
            node = node._prefix
        return node

    def to_dict(self) -> dict[str, Any]:
        return {"statements": [s.to_dict() for s in self.statements]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CallSequence:
        return cls.of([Statement.from_dict(s) for s in data["statements"]])

    def render(self) -> str:
        return "\n".join(s.render(i) for i, s in enumerate(self.statements))
