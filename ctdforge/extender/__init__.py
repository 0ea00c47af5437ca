"""Recursive sequence synthesis for test-plan rows."""

from ctdforge.extender.constructor import ConstructorSequenceGenerator, Resolved
from ctdforge.extender.context import SynthesisContext
from ctdforge.extender.extender import ExtendedSequence, SequenceExtender
from ctdforge.extender.summary import ExtenderSummary

__all__ = [
    "ConstructorSequenceGenerator",
    "ExtendedSequence",
    "ExtenderSummary",
    "Resolved",
    "SequenceExtender",
    "SynthesisContext",
]
