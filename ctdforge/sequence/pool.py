"""The sequence pool: reusable object-construction sequences.

The pool answers two questions during synthesis: "how do I get an
instance of T?" (the class pool, keyed by type name) and "how has member M
been called before?" (the member pool, keyed by ``Class::name``). It also
keeps literal values seen in building blocks so synthesized arguments look
like the values real tests use.

Pooled sequences are ordered by size. Ties keep insertion order, so
``sample`` is deterministic.

Example:
    >>> pool = SequencePool()
    >>> pool.load_catalogue(catalogue, SnippetParser(loader))
    >>> pool.sample("shop.cart.Cart")
    CallSequence(1 statements)
"""

from __future__ import annotations

import bisect
import json
import logging
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ctdforge.errors import ConfigurationError, ForgeError, SequenceParseError
from ctdforge.sequence.parser import SequenceParser
from ctdforge.sequence.statements import CallSequence, StatementKind
from ctdforge.typemodel import PRIMITIVE_DEFAULTS

logger = logging.getLogger(__name__)


@dataclass
class PoolStatistics:
    """Counts from loading building blocks.

    Attributes:
        total_snippets: Snippets in the catalogue.
        parsed: Snippets turned into sequences.
        skipped: Snippets that parsed but touched non-public members.
        failed: Snippets that failed to parse.
        parse_exceptions: Parse failures keyed by exception type.
        class_sequences: Constructor sequences mined.
        member_sequences: Member-invocation sequences mined.
    """

    total_snippets: int = 0
    parsed: int = 0
    skipped: int = 0
    failed: int = 0
    parse_exceptions: Counter[str] = field(default_factory=Counter)
    class_sequences: int = 0
    member_sequences: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.__dict__)
        data["parse_exceptions"] = dict(self.parse_exceptions)
        return data


def _touches_non_public(sequence: CallSequence) -> bool:
    for statement in sequence:
        if statement.is_call and statement.name.startswith("_") and statement.name != "__init__":
            return True
        if statement.owner and statement.owner.rsplit(".", 1)[-1].startswith("_"):
            return True
    return False


class SequencePool:
    """Cache of construction and invocation sequences."""

    def __init__(self) -> None:
        self._by_type: dict[str, list[CallSequence]] = {}
        self._by_member: dict[str, list[CallSequence]] = {}
        self._seen_type: dict[str, set[CallSequence]] = {}
        self._seen_member: dict[str, set[CallSequence]] = {}
        self._primitives: dict[str, list[str]] = {}
        self.stats = PoolStatistics()

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_type.values())

    @property
    def types(self) -> list[str]:
        return sorted(self._by_type)

    # -- class pool -----------------------------------------------------

    def lookup(self, type_name: str) -> list[CallSequence]:
        """Sequences constructing ``type_name``, shortest first."""
        return list(self._by_type.get(type_name, ()))

    def sample(self, type_name: str) -> CallSequence | None:
        """The shortest sequence for ``type_name``; earliest inserted on ties."""
        sequences = self._by_type.get(type_name)
        return sequences[0] if sequences else None

    def insert(self, type_name: str, sequence: CallSequence) -> bool:
        """Add a construction sequence. Returns False for structural duplicates."""
        seen = self._seen_type.setdefault(type_name, set())
        if sequence in seen:
            return False
        seen.add(sequence)
        sequences = self._by_type.setdefault(type_name, [])
        sizes = [len(s) for s in sequences]
        sequences.insert(bisect.bisect_right(sizes, len(sequence)), sequence)
        return True

    def subtype_keys(self, type_name: str, is_subtype: Callable[[str, str], bool]) -> list[str]:
        """Pool keys other than ``type_name`` that are its subtypes, sorted."""
        return sorted(k for k in self._by_type if k != type_name and is_subtype(k, type_name))

    # -- member pool ----------------------------------------------------

    def lookup_member(self, member_id: str) -> list[CallSequence]:
        """Sequences ending in a call to ``member_id`` (``Class::name``), shortest first."""
        return list(self._by_member.get(member_id, ()))

    def insert_member(self, member_id: str, sequence: CallSequence) -> bool:
        seen = self._seen_member.setdefault(member_id, set())
        if sequence in seen:
            return False
        seen.add(sequence)
        sequences = self._by_member.setdefault(member_id, [])
        sizes = [len(s) for s in sequences]
        sequences.insert(bisect.bisect_right(sizes, len(sequence)), sequence)
        return True

    # -- primitive values -----------------------------------------------

    def add_primitive(self, type_name: str, value_repr: str) -> None:
        values = self._primitives.setdefault(type_name, [])
        if value_repr not in values:
            values.append(value_repr)

    def primitive_value(self, type_name: str) -> str:
        """Repr of the first mined literal of a primitive type, or its default."""
        values = self._primitives.get(type_name)
        if values:
            return values[0]
        return repr(PRIMITIVE_DEFAULTS[type_name])

    # -- mining ---------------------------------------------------------

    def add_building_block(self, sequence: CallSequence, targets: set[str] | None = None) -> None:
        """Mine one parsed building block.

        Every constructor call contributes its backward slice to the class
        pool. Every prefix ending in a call to a targeted member (all
        members when ``targets`` is None) goes to the member pool. Literal
        values feed the primitive value pool.
        """
        for index, statement in enumerate(sequence.statements):
            if statement.kind is StatementKind.LITERAL:
                self.add_primitive(statement.type_name, statement.name)
            elif statement.kind is StatementKind.CONSTRUCTOR:
                if self.insert(statement.type_name, sequence.slice_for(index)):
                    self.stats.class_sequences += 1
            elif statement.kind is StatementKind.METHOD:
                member_id = statement.callable_id
                if targets is None or member_id in targets:
                    if self.insert_member(member_id, sequence.head(index + 1)):
                        self.stats.member_sequences += 1

    def load_catalogue(
        self,
        catalogue: dict[str, Any],
        parser: SequenceParser,
        targets: set[str] | None = None,
    ) -> None:
        """Bulk-load building blocks: ``{class_name: {imports, sequences}}``.

        Snippets that fail to parse are counted by exception type and skipped.
        """
        for class_name, entry in catalogue.items():
            imports = entry.get("imports", [])
            for source in entry.get("sequences", []):
                self.stats.total_snippets += 1
                try:
                    sequence = parser.parse(source, imports)
                except ForgeError as e:
                    self.stats.failed += 1
                    cause = e.cause if isinstance(e, SequenceParseError) and e.cause is not None else e
                    self.stats.parse_exceptions[type(cause).__name__] += 1
                    logger.debug(f"Skipping building block for {class_name}: {e}")
                    continue
                if _touches_non_public(sequence):
                    self.stats.skipped += 1
                    continue
                self.stats.parsed += 1
                self.add_building_block(sequence, targets)

        logger.info(
            f"Loaded {self.stats.parsed}/{self.stats.total_snippets} building blocks: "
            f"{self.stats.class_sequences} class sequences, "
            f"{self.stats.member_sequences} member sequences, {self.stats.failed} failed"
        )

    # -- snapshots ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "types": {k: [s.to_dict() for s in v] for k, v in self._by_type.items()},
            "members": {k: [s.to_dict() for s in v] for k, v in self._by_member.items()},
            "primitives": {k: list(v) for k, v in self._primitives.items()},
        }

    def save(self, path: str | Path) -> None:
        Path(path).write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(cls, path: str | Path) -> SequencePool:
        """Restore a pool snapshot written by ``save``."""
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read pool snapshot {path}: {e}", cause=e) from e
        pool = cls()
        for type_name, sequences in data.get("types", {}).items():
            for seq in sequences:
                pool.insert(type_name, CallSequence.from_dict(seq))
        for member_id, sequences in data.get("members", {}).items():
            for seq in sequences:
                pool.insert_member(member_id, CallSequence.from_dict(seq))
        for type_name, values in data.get("primitives", {}).items():
            for value in values:
                pool.add_primitive(type_name, value)
        return pool


def load_catalogue_file(path: str | Path) -> dict[str, Any]:
    """Read a building-block catalogue (YAML or JSON)."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read building-block catalogue {path}: {e}", cause=e) from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Building-block catalogue {path} must contain a mapping")
    return data

