"""Agent configuration loaded from YAML with environment overrides."""
import dataclasses
import logging
import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

# Environment variables overriding single settings
ENV_OVERRIDES = {
    "NODE_AGENT_NODE_NAME": "node_name",
    "NODE_AGENT_SYNC_PERIOD": "sync_period",
    "NODE_AGENT_RECONCILE_TIMEOUT": "reconcile_timeout",
}


class ConfigError(Exception):
    """Invalid agent configuration."""
    pass


@dataclass
class AgentConfig:
    """Configuration of the node agent.

    Example ``node-agent.yaml``:

    ```yaml
    node_name: worker-1
    desired_config_path: /var/lib/node-agent/desired/config.yaml
    sync_period: 60
    reconcile_timeout: 180
    ```
    """
    node_name: str = field(default_factory=socket.gethostname)
    root_dir: str = "/"
    state_dir: str = "/var/lib/node-agent"
    unit_directory: str = "/etc/systemd/system"
    desired_config_path: str = "/var/lib/node-agent/desired/config.yaml"
    desired_checksum_path: Optional[str] = None
    node_state_path: str = "/var/lib/node-agent/node.yaml"
    event_log_dir: str = "/var/log/node-agent"
    sync_period: float = 60.0
    reconcile_timeout: float = 180.0
    node_requeue_delay: float = 5.0
    max_concurrent_commands: int = 10
    systemctl_path: str = "systemctl"
    systemctl_timeout: float = 60.0
    retry_min_wait: float = 1.0
    retry_max_wait: float = 300.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AgentConfig":
        """Build a config from a mapping, coercing and checking value types."""
        fields = {f.name: f for f in dataclasses.fields(cls)}
        values: dict[str, Any] = {}

        for key, value in data.items():
            if key not in fields:
                logger.warning(f"Ignoring unknown configuration key: {key}")
                continue
            if value is None:
                continue
            values[key] = _coerce(key, value, cls._default_type(fields[key]))

        config = cls(**values)
        config.validate()
        return config

    @staticmethod
    def _default_type(f: dataclasses.Field) -> type:
        if f.default is not dataclasses.MISSING and f.default is not None:
            return type(f.default)
        return str

    def validate(self) -> None:
        if not self.node_name:
            raise ConfigError("node_name must not be empty")
        for name in ("sync_period", "reconcile_timeout", "node_requeue_delay"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.max_concurrent_commands < 1:
            raise ConfigError("max_concurrent_commands must be at least 1")
        if self.retry_min_wait > self.retry_max_wait:
            raise ConfigError("retry_min_wait must not exceed retry_max_wait")


def _coerce(key: str, value: Any, expected: type) -> Any:
    if expected is str:
        if not isinstance(value, str):
            raise ConfigError(f"Setting {key} must be a string, got {value!r}")
        return value
    if isinstance(value, bool):
        raise ConfigError(f"Setting {key} must be a number, got {value!r}")
    try:
        return expected(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Setting {key} must be a number, got {value!r}")


def find_config() -> Optional[Path]:
    """Find the agent configuration file."""
    env_path = os.environ.get("NODE_AGENT_CONFIG")
    if env_path:
        return Path(env_path)

    search_paths = [
        Path.cwd() / "node-agent.yaml",
        Path.home() / ".config" / "node-agent" / "config.yaml",
        Path("/etc/node-agent/config.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def load_config(config_path: Optional[str] = None) -> AgentConfig:
    """
    Load the agent configuration.

    Args:
        config_path: Explicit config file; searched for when omitted

    Returns:
        AgentConfig with file values and environment overrides applied

    Raises:
        ConfigError: If the file is unreadable or holds invalid values
    """
    path = Path(config_path) if config_path else find_config()
    data: dict[str, Any] = {}

    if path is None:
        logger.info("No configuration file found, using defaults")
    else:
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Unable to load configuration {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration {path} must be a mapping")
        logger.info(f"Loaded configuration from {path}")

    for env_name, key in ENV_OVERRIDES.items():
        if env_name in os.environ:
            data[key] = os.environ[env_name]

    return AgentConfig.from_dict(data)
