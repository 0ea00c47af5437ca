"""Call sequences, building-block parsing and the sequence pool."""

from ctdforge.sequence.parser import SequenceParser, SnippetParser
from ctdforge.sequence.pool import PoolStatistics, SequencePool, load_catalogue_file
from ctdforge.sequence.statements import CallSequence, Statement, StatementKind

__all__ = [
    # Sequences
    "CallSequence",
    "Statement",
    "StatementKind",
    # Parsing
    "SequenceParser",
    "SnippetParser",
    # Pool
    "PoolStatistics",
    "SequencePool",
    "load_catalogue_file",
]
