"""Tests for configuration loading."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from ctdforge.config import ForgeConfig, load_config
from ctdforge.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("CTDFORGE_"):
            monkeypatch.delenv(key)


class TestForgeConfig:
    """Tests for defaults and validation."""

    def test_defaults(self) -> None:
        config = ForgeConfig()
        assert config.interaction_strength == 2
        assert config.max_recursion_depth == 5
        assert config.allow_null_fallback is True
        assert config.batch_size == 50
        assert config.depth_unbounded is False

    def test_unbounded_depth(self) -> None:
        assert ForgeConfig(max_recursion_depth=-1).depth_unbounded is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"interaction_strength": 0},
            {"batch_size": 0},
            {"max_recursion_depth": -2},
            {"execution_timeout": 0},
            {"max_partition_size": 0},
        ],
    )
    def test_invalid_values(self, overrides: dict) -> None:
        with pytest.raises(ValueError):
            ForgeConfig(**overrides)

    def test_classpath_string_is_split(self) -> None:
        config = ForgeConfig(classpath=os.pathsep.join(["a", "b"]))
        assert config.classpath == ["a", "b"]

    def test_classpath_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CTDFORGE_CLASSPATH", os.pathsep.join(["/opt/app/lib", "/opt/app/vendor"]))
        assert ForgeConfig().classpath == ["/opt/app/lib", "/opt/app/vendor"]


class TestLoadConfig:
    """Tests for load_config precedence."""

    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "ctdforge.yaml"
        path.write_text("interaction_strength: 3\nbatch_size: 10\n")
        config = load_config(path)
        assert config.interaction_strength == 3
        assert config.batch_size == 10

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "absent.yaml")
        assert config.interaction_strength == 2

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "ctdforge.yaml"
        path.write_text("max_recursion_depth: 2\n")
        monkeypatch.setenv("CTDFORGE_MAX_RECURSION_DEPTH", "7")
        assert load_config(path).max_recursion_depth == 7

    def test_keyword_overrides_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CTDFORGE_BATCH_SIZE", "7")
        assert load_config(batch_size=3).batch_size == 3

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        path = tmp_path / "ctdforge.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_config(path)

    def test_invalid_value_raises_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            load_config(interaction_strength=0)
