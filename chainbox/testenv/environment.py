"""
ClusterTestEnv - the resources assembled for one test.

Owns the container network, simulated chains, the node cluster, the mock
adapter and the log stream, and tears them down again.
"""

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import docker
import toml

from chainbox.commands.constants import DEFAULT_NETWORK_PREFIX, DEFAULT_NODE_PREFIX
from chainbox.commands.errors import ChainboxError
from chainbox.commands.managers import (
    ChainManager,
    MockAdapter,
    MockAdapterManager,
    NetworkManager,
    NodeManager,
)
from chainbox.commands.utils import default_logger, get_test_logger
from chainbox.commands.chains import EVMNetwork, PrivateChainConfig, RpcProvider
from chainbox.testenv.cleanup import CleanupStack
from chainbox.testenv.config import GlobalTestConfig, TestEnvConfig


@dataclass
class CleanupOpts:
    test_name: Optional[str] = None


@dataclass
class ClusterNode:
    """One node of the cluster. Node options may edit any field before start."""

    name: str
    image: str
    config: dict[str, Any]
    secrets_toml: str = ""
    container: Any = None
    api_url: Optional[str] = None

    @property
    def container_name(self) -> str:
        return self.name

    def config_toml(self) -> str:
        return toml.dumps(self.config)


NodeOption = Callable[[ClusterNode], None]


@dataclass
class NodeCluster:
    nodes: list[ClusterNode] = field(default_factory=list)
    manager: Optional[NodeManager] = None

    def node_csa_keys(self) -> list[str]:
        """CSA public key of every node, in node order."""
        return [self.manager.get_csa_key(node.name, node.api_url) for node in self.nodes]

    def stop(self) -> None:
        for node in self.nodes:
            if node is not None and node.container is not None:
                self.manager.stop_node(node.container)


class ClusterTestEnv:
    """Resources of one test environment.

    Args:
        client: Optional Docker client shared by all managers.
    """

    def __init__(self, client: Optional[docker.DockerClient] = None):
        self._client = client
        self._managers: dict[str, Any] = {}
        self.docker_network = None
        self.owns_network = False
        self.log_stream = None
        self.mock_adapter: Optional[MockAdapter] = None
        self.cl_cluster: Optional[NodeCluster] = None
        self.evm_networks: list[EVMNetwork] = []
        self.rpc_providers: dict[int, RpcProvider] = {}
        self.private_ethereum_configs: list[PrivateChainConfig] = []
        self.is_simulated_network = False
        self.test_config: Optional[GlobalTestConfig] = None
        self.env_config: Optional[TestEnvConfig] = None
        self.test_handle = None
        self.logger = default_logger
        self.cleanup_stack = CleanupStack(logger=self.logger)

    def _manager(self, kind: str, factory):
        manager = self._managers.get(kind)
        if manager is None:
            manager = factory(self._client)
            self._client = manager.client
            self._managers[kind] = manager
        return manager

    @property
    def network_manager(self) -> NetworkManager:
        return self._manager("network", NetworkManager)

    @property
    def chain_manager(self) -> ChainManager:
        return self._manager("chain", ChainManager)

    @property
    def mock_adapter_manager(self) -> MockAdapterManager:
        return self._manager("mock_adapter", MockAdapterManager)

    @property
    def node_manager(self) -> NodeManager:
        return self._manager("node", NodeManager)

    def rpc_provider(self, chain_id: int) -> Optional[RpcProvider]:
        return self.rpc_providers.get(chain_id)

    def with_test_instance(self, test_handle) -> "ClusterTestEnv":
        self.test_handle = test_handle
        self.logger = get_test_logger(test_handle)
        self.cleanup_stack.logger = self.logger
        return self

    def with_test_env_config(self, cfg: TestEnvConfig) -> "ClusterTestEnv":
        """Overlay a loaded config: reuse an existing network, pin names and images."""
        self.env_config = cfg
        if cfg.networks:
            existing = self.network_manager.get_network(cfg.networks[0])
            if existing is None:
                raise ChainboxError(
                    f"Network {cfg.networks[0]} from test env config does not exist",
                    code="NETWORK_NOT_FOUND",
                )
            if self.docker_network is not None and self.owns_network:
                self.network_manager.remove_network(self.docker_network)
            self.docker_network = existing
            self.owns_network = False
        return self

    def start_mock_adapter(self, network_name: str, log_stream=None) -> MockAdapter:
        mock_cfg = self.env_config.mock_adapter if self.env_config else None
        self.mock_adapter = self.mock_adapter_manager.start(
            network_name,
            container_name=mock_cfg.container_name if mock_cfg else None,
            impostors_path=mock_cfg.impostors_path if mock_cfg else None,
            log_stream=log_stream,
        )
        return self.mock_adapter

    def start_ethereum_network(
        self, chain_config: PrivateChainConfig
    ) -> tuple[EVMNetwork, RpcProvider]:
        network, rpc_provider, container = self.chain_manager.start_chain(chain_config)
        if self.log_stream is not None:
            self.log_stream.connect_container(container)
        return network, rpc_provider

    def start_cl_cluster(
        self,
        node_config: dict[str, Any],
        count: int,
        secrets_config: str,
        test_config: GlobalTestConfig,
        *node_options: NodeOption,
    ) -> NodeCluster:
        """Start ``count`` nodes sharing one configuration.

        The cluster is attached to the environment before the first node
        starts, so a failure part-way leaves the started nodes reachable for
        teardown.
        """
        if self.docker_network is None:
            raise ChainboxError(
                "cannot start node cluster without a network", code="NO_NETWORK"
            )
        image = f"{test_config.node.image}:{test_config.node.version}"
        node_env = self.env_config.node if self.env_config else None
        if node_env and node_env.image:
            image = f"{node_env.image}:{node_env.version or test_config.node.version}"

        manager = self.node_manager
        self.cl_cluster = NodeCluster(manager=manager)
        suffix = uuid.uuid4().hex[:8]
        for index in range(count):
            if node_env and index < len(node_env.container_names):
                name = node_env.container_names[index]
            else:
                name = f"{DEFAULT_NODE_PREFIX}-{index}-{suffix}"
            node = ClusterNode(
                name=name,
                image=image,
                config=copy.deepcopy(node_config),
                secrets_toml=secrets_config,
            )
            for option in node_options:
                option(node)
            node.container, node.api_url = manager.run_node(
                node.name,
                node.image,
                self.docker_network.name,
                node.config_toml(),
                node.secrets_toml,
                log_stream=self.log_stream,
            )
            self.cl_cluster.nodes.append(node)
        return self.cl_cluster

    def cleanup(self, opts: Optional[CleanupOpts] = None) -> None:
        """Stop nodes, the mock adapter and chains, then drop the network.

        Every resource is attempted even if an earlier one fails.

        Raises:
            ChainboxError: Listing every resource that failed to stop.
        """
        opts = opts or CleanupOpts()
        self.logger.info("Cleaning up test environment", test=opts.test_name or "-")
        problems = []

        steps = []
        if self.cl_cluster is not None:
            steps.append(("node cluster", self.cl_cluster.stop))
        if self.mock_adapter is not None:
            steps.append(
                ("mock adapter", lambda: self.mock_adapter_manager.stop(self.mock_adapter))
            )
        if "chain" in self._managers:
            steps.append(("chains", self.chain_manager.stop_all))
        if self.docker_network is not None and self.owns_network:
            steps.append(
                ("network", lambda: self.network_manager.remove_network(self.docker_network))
            )

        for label, step in steps:
            try:
                step()
            except Exception as e:
                problems.append(f"{label}: {e}")

        if problems:
            raise ChainboxError(
                f"Test environment cleanup incomplete: {'; '.join(problems)}",
                code="CLEANUP_FAILED",
            )
        self.logger.success("Test environment cleaned up")

    def __enter__(self) -> "ClusterTestEnv":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup_stack.unwind()


def new_test_env(client: Optional[docker.DockerClient] = None) -> ClusterTestEnv:
    """Create an environment with its own freshly created container network."""
    env = ClusterTestEnv(client=client)
    env.docker_network = env.network_manager.create_network(
        f"{DEFAULT_NETWORK_PREFIX}-{uuid.uuid4().hex[:8]}"
    )
    env.owns_network = True
    return env
