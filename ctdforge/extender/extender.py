"""The sequence extension engine.

For every test-plan row the extender builds one CallSequence that invokes
the row's member with arguments of exactly the row's types:

1. If a building block already calls the member with those argument
   types, it is used as is.
2. Otherwise a receiver is found for instance members (member pool, class
   pool, then synthesis) and every slot is resolved by
   ConstructorSequenceGenerator at depth 0 without null fallback.
3. The member invocation is appended.

Rows that end up with structurally identical sequences share one
ExtendedSequence. Rows that cannot be extended are counted in the
ExtenderSummary by failure category and skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ctdforge.errors import (
    ErrorContext,
    ForgeError,
    NoBuildingBlockError,
    NonInstantiableTypeError,
    SynthesisError,
    SynthesisFailure,
)
from ctdforge.extender.constructor import ConstructorSequenceGenerator, Resolved, assemble, null_value
from ctdforge.extender.context import SynthesisContext
from ctdforge.model import TargetMember, TestPlanRow
from ctdforge.sequence import CallSequence, Statement, StatementKind
from ctdforge.typemodel import NULL

logger = logging.getLogger(__name__)


@dataclass
class ExtendedSequence:
    """A sequence built to satisfy one or more test-plan rows.

    Attributes:
        seq_id: Identifier within the run, ``ext_seq_N``.
        member: The member the sequence ends by invoking.
        sequence: The statements.
        row_ids: Rows the sequence satisfies.
        existing: Per row, per slot: whether the argument needed no fresh synthesis.
        receiver_existing: Whether the receiver needed no fresh synthesis.
        max_depth: Deepest synthesis level used for the arguments. Receiver
            synthesis does not count toward it.
        synthesized: Constructor sequences synthesized for this sequence,
            promoted into the pool once it executes successfully.
        from_building_block: Whether a building block was used as is.
    """

    seq_id: str
    member: TargetMember
    sequence: CallSequence
    row_ids: list[str] = field(default_factory=list)
    existing: dict[str, tuple[bool, ...]] = field(default_factory=dict)
    receiver_existing: bool = True
    max_depth: int = 0
    synthesized: list[tuple[str, CallSequence]] = field(default_factory=list)
    from_building_block: bool = False

    def row_is_existing(self, row_id: str) -> bool:
        return self.receiver_existing and all(self.existing.get(row_id, ()))

    def to_batch_entry(self) -> dict[str, Any]:
        return {"row_ids": list(self.row_ids), **self.sequence.to_dict()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "member": self.member.qualified_signature,
            "row_ids": list(self.row_ids),
            "max_depth": self.max_depth,
            "from_building_block": self.from_building_block,
            "existing": {k: list(v) for k, v in self.existing.items()},
            "receiver_existing": self.receiver_existing,
            "sequence": self.sequence.render().splitlines(),
        }


class SequenceExtender:
    """Extends test-plan rows into executable sequences.

    Example:
        >>> ctx = SynthesisContext(pool, loader, resolver, config)
        >>> extender = SequenceExtender(ctx)
        >>> sequences = extender.extend_rows(plan.rows("monolithic"))
        >>> ctx.summary.sequences_generated
        42
    """

    def __init__(self, context: SynthesisContext) -> None:
        self.ctx = context
        self.constructors = ConstructorSequenceGenerator(context)
        self._by_sequence: dict[CallSequence, ExtendedSequence] = {}

    @property
    def sequences(self) -> list[ExtendedSequence]:
        return list(self._by_sequence.values())

    def extend_rows(self, rows: Iterable[TestPlanRow]) -> list[ExtendedSequence]:
        """Extend every row; failures are counted, never raised."""
        summary = self.ctx.summary
        for row in rows:
            summary.rows_total += 1
            context = ErrorContext(
                partition=row.partition,
                class_name=row.member.class_name,
                member=row.member.signature,
                row_id=row.row_id,
            )
            try:
                self.extend_row(row)
            except SynthesisError as e:
                e.context = context
                summary.record_failure(e.failure, getattr(e, "type_name", None))
                logger.info(f"Row not extended: {e}")
            except ForgeError as e:
                e.context = context
                summary.record_failure(SynthesisFailure.EXCEPTION_DURING_EXTENSION)
                logger.warning(f"Row not extended: {e}")
            except Exception as e:
                summary.record_failure(SynthesisFailure.EXCEPTION_DURING_EXTENSION)
                logger.warning(f"Unexpected error extending {row.row_id}: {e}", exc_info=True)

        logger.info(
            f"Extended {summary.rows_extended}/{summary.rows_total} rows into "
            f"{summary.sequences_generated} sequences"
        )
        return self.sequences

    def extend_row(self, row: TestPlanRow) -> ExtendedSequence:
        """Build the sequence for a single row.

        Raises:
            NoBuildingBlockError: No receiver could be found for an instance member.
            NonInstantiableTypeError: A slot's type could not be instantiated.
        """
        member = row.member

        covering = self._covering_building_block(row)
        if covering is not None:
            return self._register(
                row, covering, (True,) * len(member.slots), Resolved(CallSequence()), from_building_block=True
            )

        receiver = self._receiver(member) if member.needs_receiver else Resolved(CallSequence())

        arguments: list[Resolved] = []
        for slot, value in zip(member.slots, row.values):
            if value == NULL:
                arguments.append(null_value(slot.declared_type))
            else:
                arguments.append(self.constructors.resolve(value, depth=0, allow_null=False))

        sequence, inputs = assemble(receiver.sequence, arguments)
        keywords = tuple(s.name if s.keyword_only else None for s in member.slots)
        if member.is_constructor:
            final = Statement(
                StatementKind.CONSTRUCTOR, member.class_name, name="__init__",
                owner=member.class_name, inputs=inputs, keywords=keywords,
            )
        else:
            final = Statement(
                StatementKind.METHOD, member.return_type, name=member.name,
                owner=member.class_name, inputs=inputs, keywords=keywords,
                receiver=len(receiver.sequence) - 1 if member.needs_receiver else None,
            )
        sequence = sequence.extend(final)

        return self._register(
            row,
            sequence,
            tuple(a.existing for a in arguments),
            receiver,
            arguments=arguments,
        )

    def _covering_building_block(self, row: TestPlanRow) -> CallSequence | None:
        if row.member.is_constructor:
            return None
        for sequence in self.ctx.pool.lookup_member(row.member.member_id):
            final = sequence.last
            if len(final.inputs) != len(row.values):
                continue
            types = tuple(
                NULL if sequence[i].kind is StatementKind.NULL else sequence[i].type_name
                for i in final.inputs
            )
            if types == row.values:
                return sequence
        return None

    def _receiver(self, member: TargetMember) -> Resolved:
        for sequence in self.ctx.pool.lookup_member(member.member_id):
            if sequence.last.receiver is not None:
                return Resolved(sequence.slice_for(sequence.last.receiver))

        sequence, pooled = self.ctx.known_sequence(member.class_name)
        if sequence is not None and pooled:
            return Resolved(sequence)

        if not self.ctx.config.synthesize_receivers:
            _, sequence, pooled = self.ctx.subtype_sequence(member.class_name)
            if sequence is not None and pooled:
                return Resolved(sequence)
            raise NoBuildingBlockError(f"No building block constructs {member.class_name}")

        try:
            return self.constructors.resolve(member.class_name, depth=0, allow_null=False)
        except NonInstantiableTypeError as e:
            raise NoBuildingBlockError(
                f"Cannot build a receiver of type {member.class_name}", cause=e
            ) from e

    def _register(
        self,
        row: TestPlanRow,
        sequence: CallSequence,
        existing: tuple[bool, ...],
        receiver: Resolved,
        arguments: list[Resolved] | None = None,
        from_building_block: bool = False,
    ) -> ExtendedSequence:
        summary = self.ctx.summary
        summary.rows_extended += 1
        if from_building_block:
            summary.rows_from_building_blocks += 1

        extended = self._by_sequence.get(sequence)
        if extended is None:
            parts = [receiver, *(arguments or [])]
            synthesized: list[tuple[str, CallSequence]] = []
            for part in parts:
                for pair in part.synthesized:
                    if pair not in synthesized:
                        synthesized.append(pair)
            extended = ExtendedSequence(
                seq_id=f"ext_seq_{len(self._by_sequence)}",
                member=row.member,
                sequence=sequence,
                receiver_existing=receiver.existing,
                max_depth=max((a.depth for a in arguments or []), default=0),
                synthesized=synthesized,
                from_building_block=from_building_block,
            )
            self._by_sequence[sequence] = extended
            summary.sequences_generated += 1

        extended.row_ids.append(row.row_id)
        extended.existing[row.row_id] = existing
        return extended
