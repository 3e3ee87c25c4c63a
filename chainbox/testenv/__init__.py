"""
Test environment assembly - networks, simulated chains, node clusters and log
pipelines behind a single build step.
"""

from chainbox.testenv.builder import EVMNetworkOption, TestEnvBuilder
from chainbox.commands.chains import EVMNetwork, PrivateChainConfig, RpcProvider
from chainbox.testenv.cleanup import (
    CleanupMode,
    CleanupRegistrar,
    CleanupStack,
    StackTestHandle,
    TestHandle,
)
from chainbox.testenv.config import (
    GlobalTestConfig,
    LoggingConfig,
    LogStreamConfig,
    NetworkConfig,
    NodeConfig,
    TestEnvConfig,
    load_test_env_config,
)
from chainbox.testenv.environment import (
    CleanupOpts,
    ClusterNode,
    ClusterTestEnv,
    NodeCluster,
    new_test_env,
)
from chainbox.testenv.log_scanner import AllowedLogMessage, LogLevel, scan_log_line
from chainbox.testenv.logstream import LogProcessor, LogStream, LogTarget
from chainbox.testenv.networks import (
    NetworkArbitration,
    arbitrate_networks,
    get_selected_network_config,
)
from chainbox.testenv.node_config import build_node_config
from chainbox.testenv.scan_policy import LogScanPolicy, default_policy, extend_default

__all__ = [
    "TestEnvBuilder",
    "EVMNetworkOption",
    "EVMNetwork",
    "PrivateChainConfig",
    "RpcProvider",
    "CleanupMode",
    "CleanupRegistrar",
    "CleanupStack",
    "StackTestHandle",
    "TestHandle",
    "GlobalTestConfig",
    "LoggingConfig",
    "LogStreamConfig",
    "NetworkConfig",
    "NodeConfig",
    "TestEnvConfig",
    "load_test_env_config",
    "CleanupOpts",
    "ClusterNode",
    "ClusterTestEnv",
    "NodeCluster",
    "new_test_env",
    "AllowedLogMessage",
    "LogLevel",
    "scan_log_line",
    "LogProcessor",
    "LogStream",
    "LogTarget",
    "NetworkArbitration",
    "arbitrate_networks",
    "get_selected_network_config",
    "build_node_config",
    "LogScanPolicy",
    "default_policy",
    "extend_default",
]
