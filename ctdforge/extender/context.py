"""State threaded through one partition's synthesis run."""

from __future__ import annotations

from dataclasses import dataclass, field

from ctdforge.config import ForgeConfig
from ctdforge.extender.summary import ExtenderSummary
from ctdforge.sequence import CallSequence, SequencePool
from ctdforge.typemodel import ReflectiveTypeLoader, TypeDomainResolver


@dataclass
class SynthesisContext:
    """Everything the recursive synthesis needs, passed explicitly.

    Attributes:
        pool: Executed sequences available for reuse.
        loader: Type introspection.
        resolver: Concrete subtypes of abstract declared types.
        config: Depth ceiling and null-fallback settings.
        memo: Constructor sequences synthesized in this run, not yet executed.
        failures: Smallest depth at which synthesis of a type failed.
        in_progress: Types whose synthesis is on the current call stack.
        summary: Counters for the run.
    """

    pool: SequencePool
    loader: ReflectiveTypeLoader
    resolver: TypeDomainResolver
    config: ForgeConfig
    memo: dict[str, CallSequence] = field(default_factory=dict)
    failures: dict[str, int] = field(default_factory=dict)
    in_progress: set[str] = field(default_factory=set)
    summary: ExtenderSummary = field(default_factory=ExtenderSummary)

    @property
    def max_depth(self) -> int:
        return self.config.max_recursion_depth

    def may_recurse(self, depth: int) -> bool:
        return self.config.depth_unbounded or depth < self.config.max_recursion_depth

    def known_sequence(self, type_name: str) -> tuple[CallSequence | None, bool]:
        """Pooled sequence for the exact type, else a memoized one.

        Returns the sequence and whether it came from the pool.
        """
        pooled = self.pool.sample(type_name)
        if pooled is not None:
            return pooled, True
        return self.memo.get(type_name), False

    def subtype_sequence(self, type_name: str) -> tuple[str | None, CallSequence | None, bool]:
        """Sequence for the lexicographically smallest known subtype.

        Returns the subtype name, its sequence and whether it came from the pool.
        """
        candidates = set(self.pool.subtype_keys(type_name, self.loader.is_subtype))
        candidates.update(
            k for k in self.memo if k != type_name and self.loader.is_subtype(k, type_name)
        )
        if not candidates:
            return None, None, False
        name = min(candidates)
        return (name, *self.known_sequence(name))
