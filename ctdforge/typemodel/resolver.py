"""Type domain resolution: which concrete types may stand for a declared type."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from ctdforge.errors import ModelResolutionError
from ctdforge.typemodel.loader import ReflectiveTypeLoader, TypeKind
from ctdforge.typemodel.names import (
    COLLECTION_IMPLEMENTATIONS,
    MAP_IMPLEMENTATIONS,
    OBJECT,
    TypeRef,
    parse_type,
    qualified_name,
)

logger = logging.getLogger(__name__)


class TypeDomainResolver(ABC):
    """Supplies the concrete instantiable types usable for a declared type."""

    @abstractmethod
    def concrete_types(self, declared: str) -> tuple[str, ...]:
        """Return concrete type names for ``declared``, sorted by name."""
        ...


def concrete_container(ref: TypeRef) -> TypeRef:
    """Map an abstract or concrete container to the implementation to instantiate.

    Type arguments are kept one level deep; wildcards are already ``object``.
    """
    impl = COLLECTION_IMPLEMENTATIONS.get(ref.name) or MAP_IMPLEMENTATIONS.get(ref.name)
    if impl is None:
        raise ModelResolutionError(f"{ref.name} is not a known container type")
    return TypeRef(impl, tuple(TypeRef(a.name) for a in ref.args))


class SubclassDomainResolver(TypeDomainResolver):
    """Resolves domains from the subclasses the interpreter knows about.

    Only classes that have been imported are visible, so the planner loads
    every target module before asking for domains. Abstract classes, classes
    with non-public names and classes local to a function are left out.
    """

    def __init__(self, loader: ReflectiveTypeLoader) -> None:
        self.loader = loader

    def concrete_types(self, declared: str) -> tuple[str, ...]:
        ref = parse_type(declared)
        kind = self.loader.kind_of(ref)

        if kind in (TypeKind.PRIMITIVE, TypeKind.ENUM, TypeKind.ARRAY, TypeKind.NULL):
            return (str(ref.erased()) if kind is TypeKind.ARRAY else ref.name,)
        if kind in (TypeKind.COLLECTION, TypeKind.MAP):
            return (str(concrete_container(ref)),)
        if kind is TypeKind.ANY:
            return (OBJECT,)
        if kind is TypeKind.UNION:
            seen: list[str] = []
            for arg in ref.args:
                for name in self.concrete_types(str(arg)):
                    if name not in seen:
                        seen.append(name)
            return tuple(seen)

        root = self.loader.load_class(ref.name)
        if issubclass(root, type):
            raise ModelResolutionError(f"Class-object type {declared!r} has no enumerable instances")
        found: set[str] = set()
        pending = [root]
        visited: set[type] = set()
        while pending:
            cls = pending.pop()
            if cls in visited:
                continue
            visited.add(cls)
            pending.extend(type.__subclasses__(cls))
            name = qualified_name(cls)
            if "<locals>" in cls.__qualname__:
                continue
            try:
                info = self.loader.load(name)
            except ModelResolutionError as e:
                logger.debug(f"Ignoring subtype {name} of {declared}: {e}")
                continue
            if info.is_public and info.is_instantiable:
                found.add(name)

        return tuple(sorted(found))
