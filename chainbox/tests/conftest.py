"""Shared fixtures for chainbox tests.

Docker is never contacted: environments get a MagicMock client and their
launch methods are replaced with fakes that hand back descriptors.
"""

from unittest.mock import MagicMock

import pytest

from chainbox.commands.chains import EVMNetwork, RpcProvider
from chainbox.testenv.cleanup import StackTestHandle
from chainbox.testenv.config import (
    GlobalTestConfig,
    LoggingConfig,
    LogStreamConfig,
    NetworkConfig,
)
from chainbox.testenv.environment import ClusterNode, ClusterTestEnv, NodeCluster

LIVE_NETWORK = EVMNetwork(
    name="Sepolia",
    chain_id=11155111,
    urls=["wss://sepolia.example/ws"],
    http_urls=["https://sepolia.example/rpc"],
    simulated=False,
)


class RecordingLogger:
    """Logger double that keeps every call."""

    def __init__(self):
        self.records = []

    def _record(self, level, msg, **fields):
        self.records.append((level, msg, fields))

    def debug(self, msg, **fields):
        self._record("debug", msg, **fields)

    def info(self, msg, **fields):
        self._record("info", msg, **fields)

    def success(self, msg, **fields):
        self._record("success", msg, **fields)

    def warning(self, msg, **fields):
        self._record("warning", msg, **fields)

    def error(self, msg, error=None, **fields):
        if error is not None:
            fields["error"] = error
        self._record("error", msg, **fields)

    def messages(self, level):
        return [msg for lvl, msg, _ in self.records if lvl == level]


@pytest.fixture
def recorder(monkeypatch):
    """Route every chainbox logger lookup to a single RecordingLogger."""
    logger = RecordingLogger()
    for module in (
        "chainbox.testenv.builder",
        "chainbox.testenv.environment",
    ):
        monkeypatch.setattr(f"{module}.default_logger", logger)
        monkeypatch.setattr(f"{module}.get_test_logger", lambda handle=None: logger)
    return logger


@pytest.fixture
def test_config(tmp_path):
    """Simulated network selected, console-only logging under tmp_path."""
    return GlobalTestConfig(
        logging=LoggingConfig(
            log_stream=LogStreamConfig(log_targets=["console"]),
            log_dir=str(tmp_path / "logs"),
        )
    )


@pytest.fixture
def live_test_config(test_config):
    test_config.network = NetworkConfig(
        selected_networks=["sepolia"],
        evm_networks={"SEPOLIA": LIVE_NETWORK},
    )
    return test_config


@pytest.fixture
def handle(recorder):
    return StackTestHandle("test_cluster", logger=recorder)


def _fake_chain(chain_config):
    chain_id = chain_config.chain_id
    network = EVMNetwork(
        name=chain_config.display_name,
        chain_id=chain_id,
        urls=[f"ws://127.0.0.1:{chain_id}"],
        http_urls=[f"http://127.0.0.1:{chain_id}"],
        simulated=True,
    )
    provider = RpcProvider(
        public_http_urls=[f"http://127.0.0.1:{chain_id}"],
        public_ws_urls=[f"ws://127.0.0.1:{chain_id}"],
        private_http_urls=[f"http://geth-{chain_id}:8545"],
        private_ws_urls=[f"ws://geth-{chain_id}:8546"],
    )
    return network, provider


@pytest.fixture
def fake_env(recorder):
    """ClusterTestEnv whose chains, mock adapter and nodes are fakes."""
    env = ClusterTestEnv(client=MagicMock())
    network = MagicMock()
    network.name = "chainbox-network-test"
    env.docker_network = network
    env.owns_network = True

    env.start_ethereum_network = MagicMock(side_effect=_fake_chain)
    env.start_mock_adapter = MagicMock()

    node_manager = MagicMock()
    node_manager.get_csa_key.side_effect = lambda name, url: f"csa-{name}"

    def start_cluster(node_config, count, secrets, test_config, *opts):
        cluster = NodeCluster(manager=node_manager)
        for index in range(count):
            node = ClusterNode(name=f"cl-node-{index}", image="node:test", config=node_config)
            for opt in opts:
                opt(node)
            cluster.nodes.append(node)
        env.cl_cluster = cluster
        return cluster

    env.start_cl_cluster = MagicMock(side_effect=start_cluster)
    env.cleanup = MagicMock()
    return env


@pytest.fixture
def live_network():
    return LIVE_NETWORK


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep ambient config and the test summary out of the working directory."""
    monkeypatch.delenv("TEST_ENV_CONFIG_PATH", raising=False)
    monkeypatch.setenv("TEST_SUMMARY_PATH", str(tmp_path / "test_summary.json"))
