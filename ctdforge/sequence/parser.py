"""Parsing building-block snippets into call sequences.

Building blocks are straight-line Python snippets from an existing test
suite, for example::

    from shop.cart import Cart, Item
    item = Item("apple", 3)
    cart = Cart()
    cart.add(item)

Each assignment or bare call becomes one or more Statements. Nested call
arguments are hoisted into their own statements.
"""

from __future__ import annotations

import ast
import builtins
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from enum import Enum

from ctdforge.errors import ModelResolutionError, SequenceParseError
from ctdforge.sequence.statements import CallSequence, Statement, StatementKind
from ctdforge.typemodel import OBJECT, PRIMITIVE_TYPES, ReflectiveTypeLoader, qualified_name
from ctdforge.typemodel.names import COLLECTION_IMPLEMENTATIONS, MAP_IMPLEMENTATIONS

logger = logging.getLogger(__name__)

_EMPTY_CONTAINER_CALLS = {
    "list": StatementKind.COLLECTION,
    "set": StatementKind.COLLECTION,
    "frozenset": StatementKind.COLLECTION,
    "dict": StatementKind.MAP,
    "tuple": StatementKind.ARRAY,
}


class SequenceParser(ABC):
    """Turns a building-block snippet into a CallSequence."""

    @abstractmethod
    def parse(self, source: str, imports: Iterable[str] = ()) -> CallSequence:
        """Parse ``source``.

        Raises:
            SequenceParseError: If the snippet is not a supported sequence.
        """
        ...


class SnippetParser(SequenceParser):
    """AST-based parser for straight-line snippets.

    Supported right-hand sides: literals, ``None``, enum members, empty
    ``()``/``[]``/``{}``/``set()``, class calls, classmethod factories,
    static calls and method calls on earlier variables.
    """

    def __init__(self, loader: ReflectiveTypeLoader) -> None:
        self.loader = loader

    def parse(self, source: str, imports: Iterable[str] = ()) -> CallSequence:
        header = "\n".join(imports)
        try:
            tree = ast.parse(f"{header}\n{source}" if header else source)
        except SyntaxError as e:
            raise SequenceParseError(f"Invalid snippet syntax: {e.msg}", cause=e) from e

        state = _ParseState()
        for node in tree.body:
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.asname:
                        state.names[alias.asname] = alias.name
                    else:
                        root = alias.name.split(".", 1)[0]
                        state.names[root] = root
            elif isinstance(node, ast.ImportFrom):
                if node.level:
                    raise SequenceParseError("Relative imports are not supported in snippets")
                for alias in node.names:
                    state.names[alias.asname or alias.name] = f"{node.module}.{alias.name}"
            elif isinstance(node, ast.Assign):
                if len(node.targets) != 1 or not isinstance(node.targets[0], ast.Name):
                    raise SequenceParseError(f"Unsupported assignment at line {node.lineno}")
                index = self._expression(node.value, state)
                state.variables[node.targets[0].id] = index
            elif isinstance(node, ast.AnnAssign) and node.value is not None:
                if not isinstance(node.target, ast.Name):
                    raise SequenceParseError(f"Unsupported assignment at line {node.lineno}")
                state.variables[node.target.id] = self._expression(node.value, state)
            elif isinstance(node, ast.Expr) and isinstance(node.value, ast.Call):
                self._expression(node.value, state)
            else:
                raise SequenceParseError(
                    f"Unsupported statement {type(node).__name__} at line {getattr(node, 'lineno', '?')}"
                )

        if not state.statements:
            raise SequenceParseError("Snippet contains no statements")
        return CallSequence.of(state.statements)

    def _expression(self, node: ast.expr, state: _ParseState) -> int:
        if isinstance(node, ast.Name) and node.id in state.variables:
            return state.variables[node.id]

        if isinstance(node, (ast.Constant, ast.UnaryOp)):
            return self._literal(node, state)

        if isinstance(node, (ast.Tuple, ast.List, ast.Dict)):
            if (isinstance(node, ast.Dict) and node.keys) or getattr(node, "elts", None):
                raise SequenceParseError("Only empty container literals are supported")
            kind, type_name = {
                ast.Tuple: (StatementKind.ARRAY, "tuple"),
                ast.List: (StatementKind.COLLECTION, "list"),
                ast.Dict: (StatementKind.MAP, "dict"),
            }[type(node)]
            return state.add(Statement(kind, type_name))

        if isinstance(node, ast.Attribute):
            dotted = self._dotted(node, state)
            owner, _, member = dotted.rpartition(".")
            cls = self._try_class(owner)
            if cls is not None and issubclass(cls, Enum) and member in cls.__members__:
                return state.add(Statement(StatementKind.ENUM, qualified_name(cls), name=member, owner=qualified_name(cls)))
            raise SequenceParseError(f"Unsupported attribute expression {dotted}")

        if isinstance(node, ast.Call):
            return self._call(node, state)

        raise SequenceParseError(f"Unsupported expression {type(node).__name__}")

    def _literal(self, node: ast.expr, state: _ParseState) -> int:
        try:
            value = ast.literal_eval(node)
        except ValueError as e:
            raise SequenceParseError(f"Unsupported literal: {ast.unparse(node)}", cause=e) from e
        if value is None:
            return state.add(Statement(StatementKind.NULL, OBJECT))
        type_name = type(value).__name__
        if type_name not in PRIMITIVE_TYPES:
            raise SequenceParseError(f"Unsupported literal type {type_name}")
        return state.add(Statement(StatementKind.LITERAL, type_name, name=repr(value)))

    def _call(self, node: ast.Call, state: _ParseState) -> int:
        args = [self._expression(a, state) for a in node.args if not isinstance(a, ast.Starred)]
        if len(args) != len(node.args):
            raise SequenceParseError("Starred arguments are not supported")
        keywords: list[str | None] = [None] * len(args)
        for kw in node.keywords:
            if kw.arg is None:
                raise SequenceParseError("**kwargs arguments are not supported")
            args.append(self._expression(kw.value, state))
            keywords.append(kw.arg)
        inputs, kws = tuple(args), tuple(keywords)

        func = node.func
        # Method call on an earlier variable.
        if isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name) and func.value.id in state.variables:
            receiver = state.variables[func.value.id]
            owner = state.statements[receiver].type_name
            return_type = self._return_type(owner, func.attr)
            return state.add(
                Statement(
                    StatementKind.METHOD, return_type, name=func.attr, owner=owner,
                    inputs=inputs, keywords=kws, receiver=receiver,
                )
            )

        dotted = self._dotted(func, state)
        if dotted in _EMPTY_CONTAINER_CALLS and not inputs:
            return state.add(Statement(_EMPTY_CONTAINER_CALLS[dotted], dotted))
        if (dotted in COLLECTION_IMPLEMENTATIONS or dotted in MAP_IMPLEMENTATIONS) and not inputs:
            kind = StatementKind.COLLECTION if dotted in COLLECTION_IMPLEMENTATIONS else StatementKind.MAP
            return state.add(Statement(kind, dotted))

        cls = self._try_class(dotted)
        if cls is not None:
            name = qualified_name(cls)
            return state.add(Statement(StatementKind.CONSTRUCTOR, name, name="__init__", owner=name, inputs=inputs, keywords=kws))

        owner_name, _, attr = dotted.rpartition(".")
        owner = self._try_class(owner_name)
        if owner is None:
            raise SequenceParseError(f"Cannot resolve callable {dotted}")
        name = qualified_name(owner)
        factory = next(
            (c for c in self.loader.load(name).constructors if c.name == attr),
            None,
        )
        if factory is not None:
            return state.add(Statement(StatementKind.CONSTRUCTOR, name, name=attr, owner=name, inputs=inputs, keywords=kws))
        return state.add(
            Statement(
                StatementKind.METHOD, self._return_type(name, attr), name=attr, owner=name,
                inputs=inputs, keywords=kws,
            )
        )

    def _dotted(self, node: ast.expr, state: _ParseState) -> str:
        parts: list[str] = []
        while isinstance(node, ast.Attribute):
            parts.append(node.attr)
            node = node.value
        if not isinstance(node, ast.Name):
            raise SequenceParseError(f"Unsupported callable expression {ast.unparse(node)}")
        if node.id in state.names:
            parts.append(state.names[node.id])
        elif hasattr(builtins, node.id):
            parts.append(node.id)
        else:
            raise SequenceParseError(f"Undefined name {node.id!r}")
        return ".".join(reversed(parts))

    def _try_class(self, dotted: str) -> type | None:
        if not dotted:
            return None
        try:
            return self.loader.load_class(dotted)
        except ModelResolutionError:
            return None

    def _return_type(self, owner: str, member_name: str) -> str:
        try:
            member = self.loader.load_member(owner, member_name)
        except ModelResolutionError as e:
            logger.debug(f"No return type for {owner}.{member_name}: {e}")
            return OBJECT
        return str(member.return_type) if member is not None else OBJECT


class _ParseState:
    def __init__(self) -> None:
        self.names: dict[str, str] = {}
        self.variables: dict[str, int] = {}
        self.statements: list[Statement] = []

    def add(self, statement: Statement) -> int:
        self.statements.append(statement)
        return len(self.statements) - 1
