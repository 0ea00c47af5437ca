"""Pytest fixtures for ctdforge tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

from ctdforge.combinatorial import GreedyCoveringArrayTool
from ctdforge.config import ForgeConfig
from ctdforge.extender import SequenceExtender, SynthesisContext
from ctdforge.model import TestPlanGenerator
from ctdforge.sequence import SequencePool, SnippetParser
from ctdforge.typemodel import ReflectiveTypeLoader, SubclassDomainResolver

TESTS_DIR = str(Path(__file__).resolve().parent)

# sample_app is imported by name both here and inside execution subprocesses.
if TESTS_DIR not in sys.path:
    sys.path.insert(0, TESTS_DIR)


@pytest.fixture
def tests_dir() -> str:
    return TESTS_DIR


@pytest.fixture
def loader() -> ReflectiveTypeLoader:
    return ReflectiveTypeLoader([TESTS_DIR])


@pytest.fixture
def resolver(loader: ReflectiveTypeLoader) -> SubclassDomainResolver:
    return SubclassDomainResolver(loader)


@pytest.fixture
def parser(loader: ReflectiveTypeLoader) -> SnippetParser:
    return SnippetParser(loader)


@pytest.fixture
def make_config(tmp_path: Path):
    """Factory for configs pointing at the sample app."""

    def _make(**overrides: Any) -> ForgeConfig:
        values: dict[str, Any] = {
            "classpath": [TESTS_DIR],
            "output_dir": str(tmp_path / "out"),
            "execution_timeout": 30.0,
        }
        values.update(overrides)
        return ForgeConfig(**values)

    return _make


@pytest.fixture
def config(make_config) -> ForgeConfig:
    return make_config()


@pytest.fixture
def planner(loader: ReflectiveTypeLoader, resolver: SubclassDomainResolver) -> TestPlanGenerator:
    return TestPlanGenerator(loader, resolver, GreedyCoveringArrayTool(seed=0), strength=2)


@pytest.fixture
def make_extender(loader: ReflectiveTypeLoader, resolver: SubclassDomainResolver, make_config):
    """Factory for an extender over a fresh (or given) pool."""

    def _make(pool: SequencePool | None = None, **overrides: Any) -> SequenceExtender:
        if pool is None:
            pool = SequencePool()
        context = SynthesisContext(pool, loader, resolver, make_config(**overrides))
        return SequenceExtender(context)

    return _make
