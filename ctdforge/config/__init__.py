"""Configuration management for ctdforge."""

from ctdforge.config.settings import ForgeConfig, load_config

__all__ = [
    "ForgeConfig",
    "load_config",
]
