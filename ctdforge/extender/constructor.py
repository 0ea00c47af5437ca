"""Argument resolution and recursive constructor synthesis.

``resolve`` produces a sequence whose last variable holds a value of the
requested type. Slots are resolved in a fixed order: primitives, enums,
arrays, collections and maps are built directly; any other type is taken
from the pool, then from a pooled subtype, then synthesized through one
of its constructors at the next depth, and finally replaced by None when
the caller permits it.

Constructor synthesis tries constructors by ascending arity, first with
every argument required to be a real instance (strict pass) and then,
when null fallback is enabled, allowing None for unbuildable arguments
(relaxed pass). Depth grows by one for every nested synthesis and is
capped by ``max_recursion_depth``, which is what terminates cycles such as
a Node whose constructor takes another Node.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ctdforge.errors import ModelResolutionError, NonInstantiableTypeError
from ctdforge.extender.context import SynthesisContext
from ctdforge.sequence import CallSequence, Statement, StatementKind
from ctdforge.typemodel import NULL, OBJECT, ConstructorInfo, TypeKind, concrete_container, parse_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolved:
    """A sequence producing one argument.

    Attributes:
        sequence: Statements ending in the argument's variable.
        depth: Deepest synthesis level used to build it (0 if none).
        existing: True unless fresh constructor synthesis was needed.
        synthesized: ``(type, sequence)`` pairs synthesized along the way.
    """

    sequence: CallSequence
    depth: int = 0
    existing: bool = True
    synthesized: tuple[tuple[str, CallSequence], ...] = ()


def null_value(type_name: str) -> Resolved:
    return Resolved(CallSequence.of([Statement(StatementKind.NULL, type_name)]))


def reused(type_name: str, sequence: CallSequence, pooled: bool) -> Resolved:
    """A known sequence; memoized ones still await promotion into the pool."""
    if pooled:
        return Resolved(sequence)
    return Resolved(sequence, existing=False, synthesized=((type_name, sequence),))


class ConstructorSequenceGenerator:
    """Builds argument sequences against a SynthesisContext."""

    def __init__(self, context: SynthesisContext) -> None:
        self.ctx = context

    def resolve(self, type_name: str, depth: int, allow_null: bool) -> Resolved:
        """Produce a value of exactly ``type_name`` at recursion ``depth``.

        Raises:
            NonInstantiableTypeError: If no value can be produced.
        """
        ref = parse_type(type_name)
        try:
            kind = self.ctx.loader.kind_of(ref)
        except ModelResolutionError as e:
            raise NonInstantiableTypeError(type_name, f"Cannot load {type_name}: {e.message}", cause=e) from e

        if kind is TypeKind.NULL:
            return null_value(NULL)
        if kind is TypeKind.PRIMITIVE:
            value = self.ctx.pool.primitive_value(ref.name)
            return Resolved(CallSequence.of([Statement(StatementKind.LITERAL, ref.name, name=value)]))
        if kind is TypeKind.ENUM:
            constants = self.ctx.loader.load(ref.name).enum_constants
            if not constants:
                raise NonInstantiableTypeError(ref.name, f"Enum {ref.name} has no members")
            return Resolved(
                CallSequence.of([Statement(StatementKind.ENUM, ref.name, name=constants[0], owner=ref.name)])
            )
        if kind is TypeKind.ARRAY:
            # Only the empty tuple is generated.
            return Resolved(CallSequence.of([Statement(StatementKind.ARRAY, str(ref))]))
        if kind in (TypeKind.COLLECTION, TypeKind.MAP):
            statement_kind = StatementKind.COLLECTION if kind is TypeKind.COLLECTION else StatementKind.MAP
            return Resolved(CallSequence.of([Statement(statement_kind, str(concrete_container(ref)))]))
        if kind is TypeKind.UNION:
            for member in ref.args:
                try:
                    return self.resolve(str(member), depth, allow_null=False)
                except NonInstantiableTypeError:
                    continue
            if allow_null:
                return null_value(type_name)
            raise NonInstantiableTypeError(type_name)
        if kind is TypeKind.ANY:
            return self._resolve_reference(OBJECT, depth, allow_null)
        return self._resolve_reference(ref.name, depth, allow_null)

    def _resolve_reference(self, type_name: str, depth: int, allow_null: bool) -> Resolved:
        sequence, pooled = self.ctx.known_sequence(type_name)
        if sequence is not None:
            return reused(type_name, sequence, pooled)

        if type_name != OBJECT:
            subtype, sequence, pooled = self.ctx.subtype_sequence(type_name)
            if subtype is not None and sequence is not None:
                return reused(subtype, sequence, pooled)

        if self.ctx.may_recurse(depth):
            try:
                return self.synthesize(type_name, depth + 1)
            except NonInstantiableTypeError:
                if not allow_null:
                    raise

        if allow_null:
            return null_value(type_name)
        raise NonInstantiableTypeError(type_name)

    def synthesize(self, type_name: str, depth: int) -> Resolved:
        """Build a constructor sequence for ``type_name`` at ``depth``.

        Raises:
            NonInstantiableTypeError: If no constructor can be satisfied.
        """
        failed_at = self.ctx.failures.get(type_name)
        if failed_at is not None and depth >= failed_at:
            raise NonInstantiableTypeError(type_name)

        # Without a ceiling only re-entrance stops a constructor cycle.
        if self.ctx.config.depth_unbounded and type_name in self.ctx.in_progress:
            raise NonInstantiableTypeError(type_name, f"{type_name} requires itself to be constructed")

        self.ctx.in_progress.add(type_name)
        try:
            return self._synthesize(type_name, depth)
        finally:
            self.ctx.in_progress.discard(type_name)

    def _synthesize(self, type_name: str, depth: int) -> Resolved:
        try:
            info = self.ctx.loader.load(type_name)
        except ModelResolutionError as e:
            self._record_failure(type_name, depth)
            raise NonInstantiableTypeError(type_name, cause=e) from e

        if not info.is_instantiable:
            return self._synthesize_subtype(type_name, depth)

        passes = (False, True) if self.ctx.config.allow_null_fallback else (False,)
        for allow_null in passes:
            for constructor in info.constructors:
                result = self._try_constructor(constructor, depth, allow_null)
                if result is not None:
                    self.ctx.memo.setdefault(type_name, result.sequence)
                    logger.debug(
                        f"Synthesized {type_name} via {constructor.name} at depth {depth}"
                        f"{' with null fallback' if allow_null else ''}"
                    )
                    return result

        self._record_failure(type_name, depth)
        raise NonInstantiableTypeError(type_name)

    def _synthesize_subtype(self, type_name: str, depth: int) -> Resolved:
        try:
            candidates = self.ctx.resolver.concrete_types(type_name)
        except ModelResolutionError as e:
            self._record_failure(type_name, depth)
            raise NonInstantiableTypeError(type_name, cause=e) from e
        for candidate in candidates:
            if candidate in (type_name, NULL):
                continue
            try:
                return self.synthesize(candidate, depth)
            except NonInstantiableTypeError:
                continue
        self._record_failure(type_name, depth)
        raise NonInstantiableTypeError(type_name, f"No instantiable subtype of {type_name}")

    def _try_constructor(self, constructor: ConstructorInfo, depth: int, allow_null: bool) -> Resolved | None:
        params = constructor.required_params
        arguments: list[Resolved] = []
        for param in params:
            try:
                arguments.append(self.resolve(str(param.type), depth, allow_null))
            except NonInstantiableTypeError:
                return None

        sequence, inputs = assemble(CallSequence(), arguments)
        sequence = sequence.extend(
            Statement(
                StatementKind.CONSTRUCTOR,
                constructor.owner,
                name=constructor.name,
                owner=constructor.owner,
                inputs=inputs,
                keywords=tuple(p.name if p.keyword_only else None for p in params),
            )
        )
        synthesized = tuple(pair for arg in arguments for pair in arg.synthesized)
        return Resolved(
            sequence=sequence,
            depth=max([depth, *(a.depth for a in arguments)]),
            existing=False,
            synthesized=(*synthesized, (constructor.owner, sequence)),
        )

    def _record_failure(self, type_name: str, depth: int) -> None:
        previous = self.ctx.failures.get(type_name)
        if previous is None or depth < previous:
            self.ctx.failures[type_name] = depth


def assemble(base: CallSequence, arguments: list[Resolved]) -> tuple[CallSequence, tuple[int, ...]]:
    """Append argument sequences to ``base``; return it with each argument's variable."""
    sequence = base
    inputs: list[int] = []
    for argument in arguments:
        sequence = sequence.concatenate(argument.sequence)
        inputs.append(len(sequence) - 1)
    return sequence, tuple(inputs)
