"""
Configuration model for test environments.

GlobalTestConfig is what a test hands to the builder; TestEnvConfig is the
optional overlay read from TEST_ENV_CONFIG_PATH.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from chainbox.commands.constants import (
    DEFAULT_LOG_DIR,
    DEFAULT_NODE_IMAGE,
    DEFAULT_NODE_VERSION,
    SIMULATED_NETWORK_NAME,
)
from chainbox.commands.errors import ConfigLoadError
from chainbox.commands.chains import EVMNetwork

LOG_TARGET_FILE = "file"
LOG_TARGET_CONSOLE = "console"


@dataclass
class LogStreamConfig:
    log_targets: list[str] = field(default_factory=lambda: [LOG_TARGET_CONSOLE])
    log_producer_timeout: float = 10.0
    log_producer_retry_limit: int = 10


@dataclass
class LoggingConfig:
    """Where container logs go and whether they are kept for passing tests."""

    test_log_collect: bool = False
    log_stream: LogStreamConfig = field(default_factory=LogStreamConfig)
    log_dir: str = DEFAULT_LOG_DIR


@dataclass
class NetworkConfig:
    """Selected network names plus any user-defined network descriptors."""

    selected_networks: list[str] = field(
        default_factory=lambda: [SIMULATED_NETWORK_NAME]
    )
    evm_networks: dict[str, EVMNetwork] = field(default_factory=dict)


@dataclass
class NodeConfig:
    """Node image and TOML fragments that make up the node configuration."""

    image: str = DEFAULT_NODE_IMAGE
    version: str = DEFAULT_NODE_VERSION
    base_config_toml: str = ""
    common_chain_config_toml: str = ""
    chain_config_toml_by_chain_id: dict[int, str] = field(default_factory=dict)


@dataclass
class GlobalTestConfig:
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    node: NodeConfig = field(default_factory=NodeConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GlobalTestConfig":
        logging_data = data.get("logging") or {}
        stream_data = logging_data.get("log_stream") or {}
        network_data = data.get("network") or {}
        node_data = data.get("node") or {}

        log_stream = LogStreamConfig(
            log_targets=list(stream_data.get("log_targets", [LOG_TARGET_CONSOLE])),
            log_producer_timeout=float(stream_data.get("log_producer_timeout", 10.0)),
            log_producer_retry_limit=int(
                stream_data.get("log_producer_retry_limit", 10)
            ),
        )
        logging_cfg = LoggingConfig(
            test_log_collect=bool(logging_data.get("test_log_collect", False)),
            log_stream=log_stream,
            log_dir=logging_data.get("log_dir", DEFAULT_LOG_DIR),
        )
        network_cfg = NetworkConfig(
            selected_networks=list(
                network_data.get("selected_networks", [SIMULATED_NETWORK_NAME])
            ),
            evm_networks={
                name.upper(): EVMNetwork.from_dict(name, definition)
                for name, definition in (network_data.get("evm_networks") or {}).items()
            },
        )
        node_cfg = NodeConfig(
            image=node_data.get("image", DEFAULT_NODE_IMAGE),
            version=str(node_data.get("version", DEFAULT_NODE_VERSION)),
            base_config_toml=node_data.get("base_config_toml", ""),
            common_chain_config_toml=node_data.get("common_chain_config_toml", ""),
            chain_config_toml_by_chain_id={
                int(chain_id): fragment
                for chain_id, fragment in (
                    node_data.get("chain_config_toml_by_chain_id") or {}
                ).items()
            },
        )
        return cls(logging=logging_cfg, network=network_cfg, node=node_cfg)


def _section(data: dict[str, Any], key: str, config_file: Optional[str]) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigLoadError(
            f"'{key}' must be a mapping, got {type(value).__name__}",
            config_file=config_file,
        )
    return value


def _string_list(data: dict[str, Any], key: str, config_file: Optional[str]) -> list[str]:
    # a bare string would otherwise be split into characters
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigLoadError(
            f"'{key}' must be a list of names", config_file=config_file
        )
    return list(value)


@dataclass
class MockAdapterEnvConfig:
    container_name: Optional[str] = None
    impostors_path: Optional[str] = None


@dataclass
class NodeEnvConfig:
    image: Optional[str] = None
    version: Optional[str] = None
    container_names: list[str] = field(default_factory=list)


@dataclass
class TestEnvConfig:
    """Overlay applied on top of a test environment.

    Lets a developer point tests at already-running infrastructure (an existing
    container network, a fixed mock adapter) without touching test code.
    """

    __test__ = False  # keep pytest from collecting this class

    networks: list[str] = field(default_factory=list)
    mock_adapter: MockAdapterEnvConfig = field(default_factory=MockAdapterEnvConfig)
    node: NodeEnvConfig = field(default_factory=NodeEnvConfig)

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], config_file: Optional[str] = None
    ) -> "TestEnvConfig":
        """
        Raises:
            ConfigLoadError: If a section or list has the wrong shape.
        """
        mock_data = _section(data, "mock_adapter", config_file)
        node_data = _section(data, "node", config_file)
        return cls(
            networks=_string_list(data, "networks", config_file),
            mock_adapter=MockAdapterEnvConfig(
                container_name=mock_data.get("container_name"),
                impostors_path=mock_data.get("impostors_path"),
            ),
            node=NodeEnvConfig(
                image=node_data.get("image"),
                version=node_data.get("version"),
                container_names=_string_list(node_data, "container_names", config_file),
            ),
        )


def load_test_env_config(config_path: str) -> TestEnvConfig:
    """Load a test environment overlay from a YAML or JSON file.

    Raises:
        ConfigLoadError: If the file cannot be read or parsed.
    """
    path = Path(config_path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigLoadError(
            f"cannot read test env config: {e}", config_file=config_path
        ) from e

    try:
        if path.suffix == ".json":
            data = json.loads(raw)
        else:
            data = yaml.safe_load(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigLoadError(
            f"invalid test env config format: {e}", config_file=config_path
        ) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigLoadError(
            "test env config must be a mapping", config_file=config_path
        )
    return TestEnvConfig.from_dict(data, config_file=config_path)
