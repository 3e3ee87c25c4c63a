"""Tests for ClusterTestEnv."""

from unittest.mock import MagicMock

import docker
import pytest

from chainbox.commands.chains import EVMNetwork, PrivateChainConfig, RpcProvider
from chainbox.commands.errors import ChainboxError
from chainbox.testenv.config import GlobalTestConfig, NodeEnvConfig, TestEnvConfig
from chainbox.testenv.environment import (
    CleanupOpts,
    ClusterNode,
    ClusterTestEnv,
    NodeCluster,
    new_test_env,
)


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.networks.get.side_effect = docker.errors.NotFound("no such network")
    return client


@pytest.fixture
def env(mock_client):
    env = ClusterTestEnv(client=mock_client)
    env.docker_network = MagicMock()
    env.docker_network.name = "chainbox-network-test"
    env.owns_network = True
    return env


@pytest.fixture
def node_manager(env):
    manager = MagicMock()
    manager.run_node.side_effect = lambda name, *args, **kwargs: (
        MagicMock(name=f"container-{name}"),
        f"http://127.0.0.1/{name}",
    )
    env._managers["node"] = manager
    return manager


def test_new_test_env_creates_owned_network(mock_client):
    env = new_test_env(client=mock_client)

    [name] = mock_client.networks.create.call_args.args
    assert name.startswith("chainbox-network-")
    assert env.docker_network is mock_client.networks.create.return_value
    assert env.owns_network is True


def test_managers_share_the_client(env, mock_client):
    assert env.network_manager.client is mock_client
    assert env.node_manager.client is mock_client
    assert env.network_manager is env.network_manager


class TestEnvConfigOverlay:
    def test_reuses_existing_network(self, env, mock_client):
        shared = MagicMock()
        own = env.docker_network
        mock_client.networks.get.side_effect = None
        mock_client.networks.get.return_value = shared

        env.with_test_env_config(TestEnvConfig(networks=["shared-net"]))

        assert env.docker_network is shared
        assert env.owns_network is False
        own.remove.assert_called_once()

    def test_missing_network_rejected(self, env):
        with pytest.raises(ChainboxError) as exc_info:
            env.with_test_env_config(TestEnvConfig(networks=["shared-net"]))

        assert exc_info.value.code == "NETWORK_NOT_FOUND"

    def test_config_without_networks_keeps_network(self, env):
        network = env.docker_network

        env.with_test_env_config(TestEnvConfig())

        assert env.docker_network is network
        assert env.owns_network is True


class TestStartClCluster:
    def test_starts_nodes_with_options(self, env, node_manager):
        cfg = GlobalTestConfig()
        seen = []

        def tag(node):
            seen.append(node.name)
            node.config["Tag"] = node.name

        cluster = env.start_cl_cluster({"Log": {"Level": "info"}}, 2, "secrets", cfg, tag)

        assert env.cl_cluster is cluster
        assert len(cluster.nodes) == 2
        assert seen == [node.name for node in cluster.nodes]
        first_call = node_manager.run_node.call_args_list[0]
        assert first_call.args[1] == f"{cfg.node.image}:{cfg.node.version}"
        assert first_call.args[2] == "chainbox-network-test"
        assert f'Tag = "{cluster.nodes[0].name}"' in first_call.args[3]
        assert first_call.args[4] == "secrets"
        # each node gets its own copy of the config
        assert cluster.nodes[0].config["Tag"] != cluster.nodes[1].config["Tag"]

    def test_env_config_pins_names_and_image(self, env, node_manager):
        env.env_config = TestEnvConfig(
            node=NodeEnvConfig(image="local/node", container_names=["node-a"])
        )

        cluster = env.start_cl_cluster({}, 2, "", GlobalTestConfig())

        assert cluster.nodes[0].name == "node-a"
        assert cluster.nodes[1].name.startswith("cl-node-1-")
        assert cluster.nodes[0].image.startswith("local/node:")

    def test_partial_cluster_stays_reachable(self, env, node_manager):
        node_manager.run_node.side_effect = [
            (MagicMock(), "http://127.0.0.1:1"),
            RuntimeError("out of disk"),
        ]

        with pytest.raises(RuntimeError):
            env.start_cl_cluster({}, 3, "", GlobalTestConfig())

        assert len(env.cl_cluster.nodes) == 1

    def test_requires_network(self, env, node_manager):
        env.docker_network = None

        with pytest.raises(ChainboxError) as exc_info:
            env.start_cl_cluster({}, 1, "", GlobalTestConfig())

        assert exc_info.value.code == "NO_NETWORK"


def test_node_csa_keys_in_node_order():
    manager = MagicMock()
    manager.get_csa_key.side_effect = lambda name, url: f"key-{name}"
    cluster = NodeCluster(
        nodes=[
            ClusterNode(name=n, image="img", config={}, api_url=f"http://{n}")
            for n in ("b", "a")
        ],
        manager=manager,
    )

    assert cluster.node_csa_keys() == ["key-b", "key-a"]


def test_start_ethereum_network_connects_log_stream(env):
    chain_manager = MagicMock()
    container = MagicMock()
    network = EVMNetwork(name="sim", chain_id=1337, simulated=True)
    chain_manager.start_chain.return_value = (network, RpcProvider(), container)
    env._managers["chain"] = chain_manager
    env.log_stream = MagicMock()

    result = env.start_ethereum_network(PrivateChainConfig())

    assert result[0] is network
    env.log_stream.connect_container.assert_called_once_with(container)


class TestCleanup:
    def test_stops_everything_and_removes_owned_network(self, env):
        cluster = MagicMock()
        env.cl_cluster = cluster
        env.mock_adapter = MagicMock()
        env._managers["mock_adapter"] = MagicMock()
        env._managers["chain"] = MagicMock()
        env._managers["network"] = MagicMock()

        env.cleanup(CleanupOpts(test_name="test_x"))

        cluster.stop.assert_called_once()
        env._managers["mock_adapter"].stop.assert_called_once_with(env.mock_adapter)
        env._managers["chain"].stop_all.assert_called_once()
        env._managers["network"].remove_network.assert_called_once_with(env.docker_network)

    def test_shared_network_is_kept(self, env):
        env.owns_network = False
        env._managers["network"] = MagicMock()

        env.cleanup()

        env._managers["network"].remove_network.assert_not_called()

    def test_failures_are_collected(self, env):
        cluster = MagicMock()
        cluster.stop.side_effect = RuntimeError("node stuck")
        env.cl_cluster = cluster
        env._managers["chain"] = MagicMock()
        env._managers["network"] = MagicMock()
        env._managers["network"].remove_network.side_effect = RuntimeError("in use")

        with pytest.raises(ChainboxError) as exc_info:
            env.cleanup()

        assert exc_info.value.code == "CLEANUP_FAILED"
        assert "node cluster: node stuck" in exc_info.value.message
        assert "network: in use" in exc_info.value.message
        env._managers["chain"].stop_all.assert_called_once()


def test_context_manager_unwinds_cleanup_stack(env):
    calls = []
    env.cleanup_stack.push(lambda: calls.append("first"))
    env.cleanup_stack.push(lambda: calls.append("second"))

    with env:
        pass

    assert calls == ["second", "first"]
