"""Tests for the configuration model and env config loading."""

import json

import pytest

from chainbox.commands.chains import PrivateChainConfig
from chainbox.commands.constants import DEFAULT_LOG_DIR
from chainbox.commands.errors import ConfigLoadError, ConfigurationError
from chainbox.testenv.config import (
    GlobalTestConfig,
    TestEnvConfig,
    load_test_env_config,
)


class TestGlobalTestConfig:
    def test_defaults(self):
        cfg = GlobalTestConfig()

        assert cfg.logging.log_stream.log_targets == ["console"]
        assert cfg.logging.test_log_collect is False
        assert cfg.logging.log_dir == DEFAULT_LOG_DIR
        assert cfg.network.selected_networks == ["SIMULATED"]

    def test_from_dict(self):
        cfg = GlobalTestConfig.from_dict(
            {
                "logging": {
                    "test_log_collect": True,
                    "log_dir": "/tmp/chainbox-logs",
                    "log_stream": {"log_targets": ["file", "console"]},
                },
                "network": {
                    "selected_networks": ["sepolia"],
                    "evm_networks": {
                        "sepolia": {
                            "chain_id": 11155111,
                            "urls": ["wss://sepolia"],
                            "http_urls": ["https://sepolia"],
                        }
                    },
                },
                "node": {
                    "image": "smartcontract/chainlink",
                    "version": 2.9,
                    "chain_config_toml_by_chain_id": {"1337": "FinalityDepth = 1"},
                },
            }
        )

        assert cfg.logging.test_log_collect is True
        assert cfg.logging.log_stream.log_targets == ["file", "console"]
        sepolia = cfg.network.evm_networks["SEPOLIA"]
        assert sepolia.chain_id == 11155111
        assert sepolia.simulated is False
        assert cfg.node.version == "2.9"
        assert cfg.node.chain_config_toml_by_chain_id == {1337: "FinalityDepth = 1"}

    def test_network_without_chain_id_rejected(self):
        with pytest.raises(ConfigurationError, match="chain_id"):
            GlobalTestConfig.from_dict(
                {"network": {"evm_networks": {"broken": {"urls": []}}}}
            )


class TestPrivateChainConfig:
    def test_unknown_execution_layer_rejected(self):
        with pytest.raises(ConfigurationError, match="Unsupported execution layer"):
            PrivateChainConfig(execution_layer="besu")

    def test_describe(self):
        cfg = PrivateChainConfig(execution_layer="anvil", chain_id=31337)

        assert cfg.display_name == "Simulated anvil 31337"
        assert "chain id: 31337" in cfg.describe()


class TestLoadTestEnvConfig:
    def test_yaml(self, tmp_path):
        path = tmp_path / "env.yml"
        path.write_text(
            "networks:\n"
            "  - shared-net\n"
            "mock_adapter:\n"
            "  container_name: mock-adapter\n"
            "node:\n"
            "  image: local/node\n"
            "  container_names: [node-a, node-b]\n"
        )

        cfg = load_test_env_config(str(path))

        assert isinstance(cfg, TestEnvConfig)
        assert cfg.networks == ["shared-net"]
        assert cfg.mock_adapter.container_name == "mock-adapter"
        assert cfg.node.image == "local/node"
        assert cfg.node.container_names == ["node-a", "node-b"]

    def test_json(self, tmp_path):
        path = tmp_path / "env.json"
        path.write_text(json.dumps({"networks": ["net-1"]}))

        assert load_test_env_config(str(path)).networks == ["net-1"]

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "env.yml"
        path.write_text("")

        cfg = load_test_env_config(str(path))

        assert cfg.networks == []
        assert cfg.node.container_names == []

    def test_missing_file(self, tmp_path):
        missing = str(tmp_path / "nope.yml")

        with pytest.raises(ConfigLoadError) as exc_info:
            load_test_env_config(missing)

        assert exc_info.value.config_file == missing
        assert str(exc_info.value.message).startswith("test environment builder failed")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "env.yml"
        path.write_text("networks: [unterminated\n")

        with pytest.raises(ConfigLoadError, match="invalid test env config format"):
            load_test_env_config(str(path))

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "env.json"
        path.write_text("[1, 2]")

        with pytest.raises(ConfigLoadError, match="must be a mapping"):
            load_test_env_config(str(path))

    @pytest.mark.parametrize(
        "content, key",
        [
            ("mock_adapter: killgrave\n", "mock_adapter"),
            ("node: [local/node]\n", "node"),
            ("networks: shared-net\n", "networks"),
            ("networks: [shared-net, 5]\n", "networks"),
            ("node:\n  container_names: node-a\n", "container_names"),
        ],
    )
    def test_wrong_shape_rejected(self, tmp_path, content, key):
        path = tmp_path / "env.yml"
        path.write_text(content)

        with pytest.raises(ConfigLoadError, match=key) as exc_info:
            load_test_env_config(str(path))

        assert exc_info.value.config_file == str(path)
