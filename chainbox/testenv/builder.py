"""
TestEnvBuilder - fluent assembly of a test environment.

Typical use from a test::

    env = (
        TestEnvBuilder()
        .with_test_instance(handle)
        .with_test_config(config)
        .with_private_ethereum_network(PrivateChainConfig())
        .with_cl_nodes(3)
        .with_standard_cleanup()
        .build()
    )

Cleanup callbacks run in reverse registration order. The log stream teardown
is registered first so it runs after the environment teardown and captures
its output.
"""

import copy
import os
from typing import Any, Callable, Optional

from chainbox.commands.constants import ENV_TEST_ENV_CONFIG_PATH
from chainbox.commands.errors import (
    MissingRPCProviderError,
    MissingTestConfigError,
    NoNetworkError,
    StartupError,
    TestEnvBuilderError,
    UnsetCleanupError,
)
from chainbox.commands.utils import default_logger, get_test_logger
from chainbox.commands.chains import EVMNetwork, PrivateChainConfig
from chainbox.testenv.cleanup import CleanupMode, CleanupRegistrar, TestHandle
from chainbox.testenv.config import GlobalTestConfig, load_test_env_config
from chainbox.testenv.environment import (
    CleanupOpts,
    ClusterTestEnv,
    NodeOption,
    new_test_env,
)
from chainbox.testenv.log_orchestrator import LogStreamTeardown, start_log_stream
from chainbox.testenv.networks import arbitrate_networks
from chainbox.testenv.node_config import build_node_config, merge_config
from chainbox.testenv.scan_policy import LogScanPolicy, default_policy

# A mutator may edit the descriptor in place (returning None) or return a new one
EVMNetworkOption = Callable[[EVMNetwork], Optional[EVMNetwork]]


class TestEnvBuilder:
    """Collects test environment choices and assembles them in build()."""

    __test__ = False  # keep pytest from collecting this class

    def __init__(self):
        self.has_log_stream = True
        self.has_mock_adapter = False
        self.cl_node_config: Optional[dict[str, Any]] = None
        self.secrets_config = ""
        self.cl_nodes_count = 0
        self.cl_nodes_opts: list[NodeOption] = []
        self.custom_node_csa_keys: list[str] = []
        self.default_node_csa_keys: list[str] = []
        self.logger = default_logger
        self.test_handle: Optional[TestHandle] = None
        self.te: Optional[ClusterTestEnv] = None
        self.is_evm = True
        self.cleanup_mode = CleanupMode.UNSET
        self.custom_cleanup_fn: Optional[Callable[[], None]] = None
        self.evm_network_options: list[EVMNetworkOption] = []
        self.private_ethereum_networks: list[PrivateChainConfig] = []
        self.test_config: Optional[GlobalTestConfig] = None
        self.log_scan_policy: Optional[LogScanPolicy] = default_policy()

    def with_test_env(self, te: Optional[ClusterTestEnv] = None) -> "TestEnvBuilder":
        """Use ``te`` as the environment, or create a new one when it is None.

        If TEST_ENV_CONFIG_PATH is set, the config at that path is overlaid on
        whichever environment is used.

        Raises:
            ConfigLoadError: If the config file cannot be read or parsed.
            StartupError: If a new environment cannot be created.
        """
        env_config_path = os.getenv(ENV_TEST_ENV_CONFIG_PATH)
        env_config = None
        if env_config_path:
            env_config = load_test_env_config(env_config_path)

        if te is not None:
            self.te = te
        else:
            self.te = self._step("create test environment", new_test_env)

        if env_config is not None:
            self.te = self._step(
                "apply test env config", self.te.with_test_env_config, env_config
            )
        return self

    def with_test_instance(self, test_handle: TestHandle) -> "TestEnvBuilder":
        """Scope logging and cleanup to a running test."""
        self.test_handle = test_handle
        self.logger = get_test_logger(test_handle)
        return self

    def without_log_stream(self) -> "TestEnvBuilder":
        self.has_log_stream = False
        return self

    def without_log_scanner(self) -> "TestEnvBuilder":
        self.log_scan_policy = LogScanPolicy()
        return self

    def with_log_scanner(self, policy: LogScanPolicy) -> "TestEnvBuilder":
        self.log_scan_policy = copy.deepcopy(policy)
        return self

    def with_cl_nodes(self, count: int) -> "TestEnvBuilder":
        if count < 0:
            raise ValueError("node count must not be negative")
        self.cl_nodes_count = count
        return self

    def with_test_config(self, cfg: GlobalTestConfig) -> "TestEnvBuilder":
        self.test_config = cfg
        return self

    def with_cl_node_options(self, *opts: NodeOption) -> "TestEnvBuilder":
        self.cl_nodes_opts.extend(opts)
        return self

    def with_private_ethereum_network(self, cfg: PrivateChainConfig) -> "TestEnvBuilder":
        self.private_ethereum_networks.append(copy.deepcopy(cfg))
        return self

    def with_private_ethereum_networks(
        self, cfgs: list[PrivateChainConfig]
    ) -> "TestEnvBuilder":
        self.private_ethereum_networks = list(cfgs)
        return self

    def with_cl_node_config(self, cfg: dict[str, Any]) -> "TestEnvBuilder":
        """Structured node settings merged over the config built from TOML."""
        self.cl_node_config = cfg
        return self

    def with_secrets_config(self, secrets: str) -> "TestEnvBuilder":
        self.secrets_config = secrets
        return self

    def with_mock_adapter(self) -> "TestEnvBuilder":
        self.has_mock_adapter = True
        return self

    def with_non_evm(self) -> "TestEnvBuilder":
        self.is_evm = False
        return self

    def with_standard_cleanup(self) -> "TestEnvBuilder":
        self.cleanup_mode = CleanupMode.STANDARD
        return self

    def without_cleanup(self) -> "TestEnvBuilder":
        self.cleanup_mode = CleanupMode.NONE
        return self

    def with_custom_cleanup(self, custom_fn: Callable[[], None]) -> "TestEnvBuilder":
        self.cleanup_mode = CleanupMode.CUSTOM
        self.custom_cleanup_fn = custom_fn
        return self

    def with_evm_network_options(self, *opts: EVMNetworkOption) -> "TestEnvBuilder":
        """Replace the EVM network mutators.

        Mutators are applied in order to the primary network before node
        configuration is built. They are not applied when several private
        chains are started.
        """
        self.evm_network_options = list(opts)
        return self

    def _step(self, step: str, fn: Callable, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except TestEnvBuilderError:
            raise
        except Exception as e:
            raise StartupError(f"{step}: {e}", step=step) from e

    def _scan_policy_enabled(self) -> bool:
        return self.log_scan_policy is not None and self.log_scan_policy.is_enabled()

    def build(self) -> ClusterTestEnv:
        """Assemble the environment.

        Returns:
            The assembled environment.

        Raises:
            TestEnvBuilderError: Or one of its subclasses, naming the failed step.
                ``UnsetCleanupError.env`` still carries the environment.
        """
        if self.test_config is None:
            raise MissingTestConfigError()

        if self.te is None:
            self.with_test_env(None)

        te = self.te
        te.test_config = self.test_config
        if self.test_handle is not None:
            te.with_test_instance(self.test_handle)

        registrar = CleanupRegistrar(self.test_handle, te.cleanup_stack)

        if self.has_log_stream:
            self._step(
                "start log stream",
                start_log_stream,
                te,
                self.test_config,
                self.log_scan_policy,
                self.test_handle,
                self.logger,
            )
            # registered first so that it runs last
            if self.test_handle is not None and self.cleanup_mode != CleanupMode.NONE:
                registrar.register(
                    LogStreamTeardown(
                        te,
                        self.test_config,
                        self.log_scan_policy,
                        self.cl_nodes_count,
                        self.test_handle,
                        self.logger,
                    )
                )
            else:
                self.logger.warning(
                    "LogStream won't be cleaned up, because either test instance "
                    "is not set or cleanup type is set to none"
                )
                if self.test_handle is None:
                    # still release files and reader threads when the env's stack unwinds
                    te.cleanup_stack.push(te.log_stream.shutdown)

        if self.has_mock_adapter:
            if te.docker_network is None:
                raise NoNetworkError("mock adapter")
            self._step(
                "start mock adapter",
                te.start_mock_adapter,
                te.docker_network.name,
                te.log_stream,
            )

        if self.test_handle is not None:
            te.with_test_instance(self.test_handle)

        self._register_env_cleanup(te, registrar)

        if te.log_stream is None and self._scan_policy_enabled():
            self.logger.warning(
                "Node log scanner settings provided, but LogStream is not enabled. "
                "Ignoring node log scanner settings, as no logs will be available."
            )

        arbitration = self._step(
            "arbitrate networks",
            arbitrate_networks,
            te,
            self.test_config.network,
            self.private_ethereum_networks,
            te.logger,
        )
        te.evm_networks = arbitration.evm_networks
        te.rpc_providers = arbitration.rpc_providers
        te.private_ethereum_configs = arbitration.private_chains
        te.is_simulated_network = arbitration.is_simulated_network

        if self.is_evm and not arbitration.multi_chain:
            self._apply_evm_network_options(te)

        if self.cl_nodes_count > 0:
            self._start_cluster(te)

        self._log_summary(te)
        return te

    def _register_env_cleanup(self, te: ClusterTestEnv, registrar: CleanupRegistrar):
        if self.cleanup_mode == CleanupMode.STANDARD:
            test_handle = self.test_handle
            logger = self.logger

            def standard_cleanup():
                test_name = test_handle.name if test_handle is not None else None
                try:
                    te.cleanup(CleanupOpts(test_name=test_name))
                except Exception as e:
                    logger.error("Error cleaning up test environment", error=e)

            registrar.register(standard_cleanup)
        elif self.cleanup_mode == CleanupMode.CUSTOM:
            registrar.register(self.custom_cleanup_fn)
        elif self.cleanup_mode == CleanupMode.NONE:
            self.logger.warning("test environment won't be cleaned up")
        else:
            raise UnsetCleanupError(env=te)

    def _apply_evm_network_options(self, te: ClusterTestEnv) -> None:
        if not self.evm_network_options or not te.evm_networks:
            return
        network = te.evm_networks[0]
        for option in self.evm_network_options:
            updated = option(network)
            if updated is not None:
                network = updated
        te.evm_networks[0] = network

    def _effective_networks(self, te: ClusterTestEnv) -> list[EVMNetwork]:
        """Networks as the nodes see them: simulated chains use private URLs."""
        if not self.is_evm:
            return []
        networks = []
        for network in te.evm_networks:
            effective = copy.deepcopy(network)
            if effective.simulated:
                rpc_provider = te.rpc_providers.get(effective.chain_id)
                if rpc_provider is None:
                    raise MissingRPCProviderError(effective.chain_id)
                effective.http_urls = list(rpc_provider.private_http_urls)
                effective.urls = list(rpc_provider.private_ws_urls)
            networks.append(effective)
        return networks

    def _start_cluster(self, te: ClusterTestEnv) -> None:
        networks = self._effective_networks(te)
        node_cfg = self.test_config.node
        node_config, _ = self._step(
            "build node config",
            build_node_config,
            networks,
            node_cfg.base_config_toml,
            node_cfg.common_chain_config_toml,
            node_cfg.chain_config_toml_by_chain_id,
        )
        if self.cl_node_config:
            merge_config(node_config, copy.deepcopy(self.cl_node_config))

        self._step(
            "start node cluster",
            te.start_cl_cluster,
            node_config,
            self.cl_nodes_count,
            self.secrets_config,
            self.test_config,
            *self.cl_nodes_opts,
        )
        self.default_node_csa_keys = self._step(
            "read node CSA keys", te.cl_cluster.node_csa_keys
        )

    def _log_summary(self, te: ClusterTestEnv) -> None:
        if te.private_ethereum_configs:
            chains = "; ".join(cfg.describe() for cfg in te.private_ethereum_configs)
        else:
            chains = "none"
        self.logger.info(
            "Building node cluster test environment..",
            private_ethereum_network=chains,
            has_mock_adapter=self.has_mock_adapter,
            cl_nodes_count=self.cl_nodes_count,
            custom_node_csa_keys=self.custom_node_csa_keys,
            default_node_csa_keys=self.default_node_csa_keys,
        )
