"""Tests for the agent configuration."""
import pytest

from node_agent.config import AgentConfig, ConfigError, find_config, load_config


class TestAgentConfig:
    """Tests for AgentConfig.from_dict."""

    def test_defaults(self):
        config = AgentConfig.from_dict({"node_name": "node-1"})

        assert config.sync_period == 60.0
        assert config.reconcile_timeout == 180.0
        assert config.node_requeue_delay == 5.0
        assert config.max_concurrent_commands == 10
        assert config.unit_directory == "/etc/systemd/system"

    def test_numbers_are_coerced(self):
        config = AgentConfig.from_dict({
            "node_name": "node-1",
            "sync_period": "30.5",
            "max_concurrent_commands": 4,
        })

        assert config.sync_period == 30.5
        assert config.max_concurrent_commands == 4

    def test_invalid_number(self):
        with pytest.raises(ConfigError, match="sync_period"):
            AgentConfig.from_dict({"sync_period": "soon"})

    def test_bool_is_not_a_number(self):
        with pytest.raises(ConfigError):
            AgentConfig.from_dict({"sync_period": True})

    def test_non_positive_period(self):
        with pytest.raises(ConfigError, match="must be positive"):
            AgentConfig.from_dict({"reconcile_timeout": 0})

    def test_empty_node_name(self):
        with pytest.raises(ConfigError, match="node_name"):
            AgentConfig.from_dict({"node_name": ""})

    def test_retry_bounds(self):
        with pytest.raises(ConfigError, match="retry_min_wait"):
            AgentConfig.from_dict({"retry_min_wait": 10, "retry_max_wait": 1})

    def test_unknown_keys_ignored(self):
        config = AgentConfig.from_dict({"node_name": "n", "colour": "blue"})

        assert not hasattr(config, "colour")

    def test_optional_path(self):
        config = AgentConfig.from_dict({"desired_checksum_path": "/run/checksum"})

        assert config.desired_checksum_path == "/run/checksum"


class TestLoadConfig:
    """Tests for load_config and find_config."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch, tmp_path):
        for name in ("NODE_AGENT_CONFIG", "NODE_AGENT_NODE_NAME", "NODE_AGENT_SYNC_PERIOD",
                     "NODE_AGENT_RECONCILE_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.chdir(tmp_path)

    def test_load_file(self, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text("node_name: worker-1\nsync_period: 15\n")

        config = load_config(str(path))

        assert config.node_name == "worker-1"
        assert config.sync_period == 15.0

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "agent.yaml"
        path.write_text("node_name: worker-1\nsync_period: 15\n")
        monkeypatch.setenv("NODE_AGENT_NODE_NAME", "worker-2")
        monkeypatch.setenv("NODE_AGENT_SYNC_PERIOD", "5")

        config = load_config(str(path))

        assert config.node_name == "worker-2"
        assert config.sync_period == 5.0

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text("node_name: [\n")

        with pytest.raises(ConfigError, match="Unable to load"):
            load_config(str(path))

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text("- a\n")

        with pytest.raises(ConfigError, match="must be a mapping"):
            load_config(str(path))

    def test_find_config_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NODE_AGENT_CONFIG", str(tmp_path / "x.yaml"))

        assert find_config() == tmp_path / "x.yaml"

    def test_find_config_cwd(self, tmp_path):
        (tmp_path / "node-agent.yaml").write_text("node_name: here\n")

        assert find_config() == tmp_path / "node-agent.yaml"
        assert load_config().node_name == "here"
