"""Agent configuration."""
from .settings import AgentConfig, ConfigError, load_config, find_config

__all__ = ["AgentConfig", "ConfigError", "load_config", "find_config"]
