"""Reflective loading of classes into TypeInfo descriptions.

The loader imports classes of the application under test and describes
what ctdforge needs to know about them: their kind, their visible
constructors (the class call plus classmethod factories), their public
members, enum constants and abstractness. Parameter and return types
come from ``typing.get_type_hints`` and are normalized to TypeRefs.
"""

from __future__ import annotations

import inspect
import logging
import sys
import threading
import types
import typing
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ctdforge.errors import ModelResolutionError
from ctdforge.typemodel.names import (
    ANY_TYPES,
    ARRAY_TYPES,
    COLLECTION_IMPLEMENTATIONS,
    MAP_IMPLEMENTATIONS,
    NULL,
    OBJECT,
    PRIMITIVE_TYPES,
    TypeRef,
    load_class,
    parse_type,
    qualified_name,
)

logger = logging.getLogger(__name__)

UNION = "typing.Union"


class TypeKind(Enum):
    """How a type is instantiated during synthesis."""

    PRIMITIVE = "primitive"
    ENUM = "enum"
    ARRAY = "array"
    COLLECTION = "collection"
    MAP = "map"
    ANY = "any"
    UNION = "union"
    NULL = "null"
    OBJECT = "object"


@dataclass(frozen=True)
class ParamInfo:
    """A single parameter of a callable.

    Attributes:
        name: Parameter name.
        type: Declared type, ``object`` when unannotated.
        has_default: Whether the parameter may be omitted.
        keyword_only: Whether the parameter must be passed by keyword.
    """

    name: str
    type: TypeRef
    has_default: bool = False
    keyword_only: bool = False


@dataclass(frozen=True)
class ConstructorInfo:
    """A way of obtaining an instance: the class call or a factory.

    Attributes:
        owner: Qualified name of the class.
        name: ``__init__`` for the class call, otherwise the factory name.
        params: All named parameters.
    """

    owner: str
    name: str
    params: tuple[ParamInfo, ...] = ()

    @property
    def is_factory(self) -> bool:
        return self.name != "__init__"

    @property
    def required_params(self) -> tuple[ParamInfo, ...]:
        return tuple(p for p in self.params if not p.has_default)


@dataclass(frozen=True)
class MemberInfo:
    """A public method declared on a class.

    Attributes:
        owner: Qualified name of the declaring class.
        name: Method name.
        params: Parameters excluding the receiver.
        return_type: Declared return type with type variables erased to object.
        is_static: True for staticmethods and classmethods (no receiver needed).
    """

    owner: str
    name: str
    params: tuple[ParamInfo, ...] = ()
    return_type: TypeRef = TypeRef(OBJECT)
    is_static: bool = False


@dataclass
class TypeInfo:
    """Everything ctdforge knows about one type."""

    name: str
    kind: TypeKind
    is_abstract: bool = False
    is_public: bool = True
    enum_constants: tuple[str, ...] = ()
    constructors: list[ConstructorInfo] = field(default_factory=list)
    members: list[MemberInfo] = field(default_factory=list)

    @property
    def is_instantiable(self) -> bool:
        return not self.is_abstract and bool(self.constructors)


def is_public_name(name: str) -> bool:
    return not name.startswith("_")


def type_ref_from_annotation(annotation: Any, owner_module: str | None = None) -> TypeRef:
    """Convert a runtime annotation into a TypeRef.

    Optional[X] collapses to X since None is always part of a reference
    domain. Type variables, ``Any`` and missing annotations become ``object``.
    """
    if annotation is inspect.Parameter.empty or annotation is Any:
        return TypeRef(OBJECT)
    if annotation is None or annotation is type(None):
        return TypeRef(NULL)
    if isinstance(annotation, typing.TypeVar):
        return TypeRef(OBJECT)
    if isinstance(annotation, str):
        return _forward_ref(annotation, owner_module)
    if isinstance(annotation, typing.ForwardRef):
        return _forward_ref(annotation.__forward_arg__, owner_module)

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)

    if origin in (typing.Union, types.UnionType):
        members = [a for a in args if a is not type(None)]
        if len(members) == 1:
            return type_ref_from_annotation(members[0], owner_module)
        return TypeRef(UNION, tuple(type_ref_from_annotation(a, owner_module) for a in members))

    if origin is typing.Literal:
        return TypeRef(qualified_name(type(args[0]))) if args else TypeRef(OBJECT)

    if origin is not None and isinstance(origin, type):
        type_args = tuple(
            _erase_nested(type_ref_from_annotation(a, owner_module))
            for a in args
            if a is not Ellipsis and not isinstance(a, list)
        )
        return TypeRef(qualified_name(origin), type_args)

    if isinstance(annotation, type):
        return TypeRef(qualified_name(annotation))

    return TypeRef(OBJECT)


def _erase_nested(ref: TypeRef) -> TypeRef:
    # Type arguments resolve one level deep only.
    return ref.erased() if ref.name != UNION else TypeRef(OBJECT)


def _forward_ref(text: str, owner_module: str | None) -> TypeRef:
    module = sys.modules.get(owner_module) if owner_module else None
    obj = getattr(module, text, None) if module is not None else None
    if isinstance(obj, type):
        return TypeRef(qualified_name(obj))
    try:
        return parse_type(text)
    except ModelResolutionError:
        return TypeRef(OBJECT)


def _safe_hints(func: Callable[..., Any]) -> dict[str, Any]:
    try:
        return typing.get_type_hints(func)
    except Exception as e:
        logger.debug(f"Falling back to raw annotations for {func!r}: {e}")
        return dict(getattr(func, "__annotations__", {}) or {})


def _params_of(func: Callable[..., Any], skip_first: bool, owner_module: str | None) -> tuple[ParamInfo, ...]:
    signature = inspect.signature(func)
    hints = _safe_hints(func)
    params: list[ParamInfo] = []
    for i, param in enumerate(signature.parameters.values()):
        if skip_first and i == 0:
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = hints.get(param.name, param.annotation)
        params.append(
            ParamInfo(
                name=param.name,
                type=type_ref_from_annotation(annotation, owner_module),
                has_default=param.default is not inspect.Parameter.empty,
                keyword_only=param.kind is inspect.Parameter.KEYWORD_ONLY,
            )
        )
    return tuple(params)


def _return_type(func: Callable[..., Any], owner_module: str | None) -> TypeRef:
    hints = _safe_hints(func)
    if "return" not in hints:
        return TypeRef(OBJECT)
    return type_ref_from_annotation(hints["return"], owner_module)


class ReflectiveTypeLoader:
    """Loads and caches TypeInfo descriptions of importable classes.

    Attributes:
        extra_paths: Import roots added to ``sys.path`` before loading.

    Example:
        >>> loader = ReflectiveTypeLoader(["./legacy_app"])
        >>> info = loader.load("shop.cart.Cart")
        >>> [c.name for c in info.constructors]
        ['__init__', 'empty']
    """

    def __init__(self, extra_paths: Iterable[str] = ()) -> None:
        self._cache: dict[str, TypeInfo] = {}
        self._lock = threading.RLock()
        self.extra_paths: list[str] = []
        self.add_paths(extra_paths)

    def add_paths(self, paths: Iterable[str]) -> None:
        """Make more import roots visible to in-process introspection."""
        for path in paths:
            if path not in self.extra_paths:
                self.extra_paths.append(path)
            if path not in sys.path:
                sys.path.insert(0, path)

    def kind_of(self, ref: TypeRef | str) -> TypeKind:
        name = ref.name if isinstance(ref, TypeRef) else parse_type(ref).name
        if name == NULL:
            return TypeKind.NULL
        if name in PRIMITIVE_TYPES:
            return TypeKind.PRIMITIVE
        if name in ARRAY_TYPES:
            return TypeKind.ARRAY
        if name in COLLECTION_IMPLEMENTATIONS:
            return TypeKind.COLLECTION
        if name in MAP_IMPLEMENTATIONS:
            return TypeKind.MAP
        if name in ANY_TYPES:
            return TypeKind.ANY
        if name == UNION:
            return TypeKind.UNION
        return self.load(name).kind

    def load_class(self, name: str) -> type:
        with self._lock:
            return load_class(name)

    def load(self, name: str) -> TypeInfo:
        """Describe the class with the given qualified name.

        Raises:
            ModelResolutionError: If the class cannot be imported or introspected.
        """
        base = name.split("[", 1)[0].strip()
        with self._lock:
            cached = self._cache.get(base)
            if cached is not None:
                return cached
            cls = load_class(base)
            info = self._describe(cls)
            self._cache[base] = info
            return info

    def load_member(self, owner: str, member_name: str) -> MemberInfo | None:
        for member in self.load(owner).members:
            if member.name == member_name:
                return member
        return None

    def is_subtype(self, sub: str, sup: str) -> bool:
        """Whether ``sub`` may stand where ``sup`` is declared."""
        sub_base = sub.split("[", 1)[0].strip()
        sup_base = sup.split("[", 1)[0].strip()
        if sub_base == sup_base or sup_base in ANY_TYPES:
            return True
        if NULL in (sub_base, sup_base):
            return False
        try:
            return issubclass(self.load_class(sub_base), self.load_class(sup_base))
        except (ModelResolutionError, TypeError):
            return False

    def _describe(self, cls: type) -> TypeInfo:
        name = qualified_name(cls)
        if issubclass(cls, Enum):
            return TypeInfo(
                name=name,
                kind=TypeKind.ENUM,
                is_public=is_public_name(cls.__name__),
                enum_constants=tuple(m.name for m in cls),
            )

        is_abstract = inspect.isabstract(cls) or bool(getattr(cls, "_is_protocol", False))
        info = TypeInfo(
            name=name,
            kind=TypeKind.OBJECT,
            is_abstract=is_abstract,
            is_public=is_public_name(cls.__name__) and "<locals>" not in cls.__qualname__,
        )
        info.members = self._members(cls, name)
        if not is_abstract:
            info.constructors = self._constructors(cls, name, info.is_public)
        logger.debug(
            f"Loaded {name}: {len(info.constructors)} constructors, "
            f"{len(info.members)} public members"
        )
        return info

    def _constructors(self, cls: type, name: str, class_is_public: bool) -> list[ConstructorInfo]:
        module = cls.__module__
        constructors: list[ConstructorInfo] = []

        init = cls.__init__ if cls.__init__ is not object.__init__ else None
        if init is None:
            constructors.append(ConstructorInfo(owner=name, name="__init__"))
        else:
            try:
                constructors.append(
                    ConstructorInfo(owner=name, name="__init__", params=_params_of(init, True, module))
                )
            except (TypeError, ValueError):
                constructors.append(ConstructorInfo(owner=name, name="__init__"))

        for attr_name, attr in vars(cls).items():
            if not isinstance(attr, classmethod):
                continue
            if attr_name.startswith("__"):
                continue
            if attr_name.startswith("_") and class_is_public:
                continue
            func = attr.__func__
            returns = _return_type(func, module)
            if returns.name != name and _raw_return(func) not in ("Self", "typing.Self", cls.__name__):
                continue
            try:
                params = _params_of(func, True, module)
            except (TypeError, ValueError):
                continue
            constructors.append(ConstructorInfo(owner=name, name=attr_name, params=params))

        # Stable sort keeps the class call ahead of factories with equal arity.
        constructors.sort(key=lambda c: len(c.required_params))
        return constructors

    def _members(self, cls: type, name: str) -> list[MemberInfo]:
        module = cls.__module__
        members: list[MemberInfo] = []
        for attr_name, attr in vars(cls).items():
            if not is_public_name(attr_name):
                continue
            if isinstance(attr, staticmethod):
                func, is_static, skip_first = attr.__func__, True, False
            elif isinstance(attr, classmethod):
                func, is_static, skip_first = attr.__func__, True, True
            elif inspect.isfunction(attr):
                func, is_static, skip_first = attr, False, True
            else:
                continue
            try:
                params = _params_of(func, skip_first, module)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping {name}.{attr_name}: cannot read signature ({e})")
                continue
            members.append(
                MemberInfo(
                    owner=name,
                    name=attr_name,
                    params=params,
                    return_type=_return_type(func, module),
                    is_static=is_static,
                )
            )
        return members


def _raw_return(func: Callable[..., Any]) -> str | None:
    raw = getattr(func, "__annotations__", {}).get("return")
    if isinstance(raw, str):
        return raw
    if raw is not None and getattr(raw, "_name", None) == "Self":
        return "Self"
    return None
