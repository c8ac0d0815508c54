"""Configuration module."""
from .settings import CommandsConfig, Config, SecurityConfig, load_config

__all__ = ["CommandsConfig", "Config", "SecurityConfig", "load_config"]
