"""Type names: parsing, rendering and resolving qualified names to classes.

Types are addressed by qualified name throughout ctdforge so that plans,
pools and execution batches can be written to files and read back in
another process. Builtins use their bare name (``int``, ``list``); everything
else is ``package.module.QualName``. Generic arguments are rendered in
brackets, e.g. ``list[int]`` or ``dict[str, pkg.mod.Node]``.

This module only depends on the standard library because the execution
harness imports it inside the subprocess.
"""

from __future__ import annotations

import builtins
import importlib
from dataclasses import dataclass
from typing import Any

from ctdforge.errors import ModelResolutionError, TypeNameError

NULL = "None"
OBJECT = "object"

PRIMITIVE_TYPES = ("int", "float", "bool", "str", "bytes", "complex")

PRIMITIVE_DEFAULTS: dict[str, Any] = {
    "int": 0,
    "float": 0.0,
    "bool": False,
    "str": "",
    "bytes": b"",
    "complex": 0j,
}

# Abstract or concrete container -> concrete implementation used for empty instances.
COLLECTION_IMPLEMENTATIONS: dict[str, str] = {
    "list": "list",
    "set": "set",
    "frozenset": "frozenset",
    "collections.deque": "collections.deque",
    "collections.abc.Iterable": "list",
    "collections.abc.Collection": "list",
    "collections.abc.Sequence": "list",
    "collections.abc.MutableSequence": "list",
    "collections.abc.Set": "set",
    "collections.abc.MutableSet": "set",
}

MAP_IMPLEMENTATIONS: dict[str, str] = {
    "dict": "dict",
    "collections.OrderedDict": "collections.OrderedDict",
    "collections.Counter": "collections.Counter",
    "collections.defaultdict": "collections.defaultdict",
    "collections.abc.Mapping": "dict",
    "collections.abc.MutableMapping": "dict",
}

ARRAY_TYPES = ("tuple",)
ANY_TYPES = (OBJECT, "typing.Any")


@dataclass(frozen=True)
class TypeRef:
    """A type name with optional generic arguments.

    Attributes:
        name: Qualified name of the type (bare for builtins).
        args: Generic arguments, resolved one level deep.
    """

    name: str
    args: tuple[TypeRef, ...] = ()

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}[{', '.join(str(a) for a in self.args)}]"

    @property
    def is_null(self) -> bool:
        return self.name == NULL

    def erased(self) -> TypeRef:
        """Drop generic arguments."""
        return TypeRef(self.name)


def parse_type(text: str) -> TypeRef:
    """Parse a rendered type name back into a TypeRef.

    Raises:
        TypeNameError: If brackets are unbalanced or a name is empty.
    """
    text = text.strip()
    ref, end = _parse_at(text, 0)
    if end != len(text):
        raise TypeNameError(f"Unexpected trailing text in type name: {text!r}")
    return ref


def _parse_at(text: str, pos: int) -> tuple[TypeRef, int]:
    start = pos
    while pos < len(text) and text[pos] not in "[],":
        pos += 1
    name = text[start:pos].strip()
    if not name:
        raise TypeNameError(f"Empty type name in {text!r}")

    if pos >= len(text) or text[pos] != "[":
        return TypeRef(name), pos

    args: list[TypeRef] = []
    pos += 1
    while True:
        arg, pos = _parse_at(text, pos)
        args.append(arg)
        while pos < len(text) and text[pos] == " ":
            pos += 1
        if pos >= len(text):
            raise TypeNameError(f"Unbalanced brackets in type name: {text!r}")
        if text[pos] == ",":
            pos += 1
            continue
        if text[pos] == "]":
            return TypeRef(name, tuple(args)), pos + 1
        raise TypeNameError(f"Unexpected character {text[pos]!r} in type name: {text!r}")


def qualified_name(cls: type) -> str:
    """Return the ctdforge name of a class."""
    if cls is type(None):
        return NULL
    module = getattr(cls, "__module__", None)
    if module in (None, "builtins"):
        return cls.__qualname__
    return f"{module}.{cls.__qualname__}"


def load_class(name: str) -> type:
    """Resolve a qualified name (generic arguments ignored) to a class.

    Nested classes are supported by trying successively shorter module
    prefixes, so ``pkg.mod.Outer.Inner`` imports ``pkg.mod`` and walks
    ``Outer.Inner``.

    Raises:
        ModelResolutionError: If no prefix imports, a module raises while
            importing, or the attribute path is missing.
    """
    base = name.split("[", 1)[0].strip()
    if base == NULL:
        return type(None)
    if "." not in base:
        obj = getattr(builtins, base, None)
        if isinstance(obj, type):
            return obj
        raise ModelResolutionError(f"Unknown builtin type {base!r}")

    parts = base.split(".")
    last_error: Exception | None = None
    for split in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:split])
        try:
            obj: Any = importlib.import_module(module_name)
        except ImportError as e:
            last_error = e
            continue
        except Exception as e:
            raise ModelResolutionError(f"Importing module {module_name!r} failed: {e}", cause=e) from e
        try:
            for attr in parts[split:]:
                obj = getattr(obj, attr)
        except AttributeError as e:
            last_error = e
            continue
        if isinstance(obj, type):
            return obj
        raise ModelResolutionError(f"{base!r} does not name a class")

    raise ModelResolutionError(
        f"Cannot load type {base!r}",
        cause=last_error,
    )
