"""
Network selection and arbitration.

Decides, from the selected network and the private chains a test asked for,
which chains get started and which RPC endpoints the nodes use.

| private chains | selected simulated | outcome                                         |
|----------------|--------------------|-------------------------------------------------|
| 0              | yes                | selected network recorded as-is, no provider    |
| 0              | no                 | provider from the network's public URLs         |
| 1              | yes                | chain started, replaces the selected network    |
| 1              | no                 | private chain ignored (warning), as (0, no)     |
| 2+             | any                | every chain started, selected network ignored   |
"""

import copy
from dataclasses import dataclass, field
from typing import Optional

from chainbox.commands.constants import (
    SIMULATED_CHAIN_ID,
    SIMULATED_HTTP_URL,
    SIMULATED_NETWORK_NAME,
    SIMULATED_PRIVATE_KEY,
    SIMULATED_WS_URL,
)
from chainbox.commands.errors import ConfigurationError, NoNetworkError
from chainbox.commands.utils import ConsoleLogger
from chainbox.commands.chains import EVMNetwork, PrivateChainConfig, RpcProvider
from chainbox.testenv.config import NetworkConfig

SIMULATED_NETWORK = EVMNetwork(
    name="Simulated Geth",
    chain_id=SIMULATED_CHAIN_ID,
    urls=[SIMULATED_WS_URL],
    http_urls=[SIMULATED_HTTP_URL],
    simulated=True,
    private_keys=[SIMULATED_PRIVATE_KEY],
    finality_depth=1,
)


def get_selected_network_config(network_config: NetworkConfig) -> list[EVMNetwork]:
    """Resolve selected network names to descriptors, in selection order.

    User-defined networks take precedence over the built-in SIMULATED one.

    Raises:
        ConfigurationError: If nothing is selected or a name is unknown.
    """
    if not network_config.selected_networks:
        raise ConfigurationError("No network selected in network config")

    resolved = []
    for name in network_config.selected_networks:
        key = name.upper()
        if key in network_config.evm_networks:
            resolved.append(copy.deepcopy(network_config.evm_networks[key]))
        elif key == SIMULATED_NETWORK_NAME:
            resolved.append(copy.deepcopy(SIMULATED_NETWORK))
        else:
            raise ConfigurationError(f"Selected network '{name}' is not defined")
    return resolved


def live_rpc_provider(network: EVMNetwork) -> RpcProvider:
    """Provider for a live network: public URLs fill the private slots too."""
    return RpcProvider(
        public_http_urls=list(network.http_urls),
        public_ws_urls=list(network.urls),
        private_http_urls=list(network.http_urls),
        private_ws_urls=list(network.urls),
    )


@dataclass
class NetworkArbitration:
    evm_networks: list[EVMNetwork] = field(default_factory=list)
    rpc_providers: dict[int, RpcProvider] = field(default_factory=dict)
    is_simulated_network: bool = False
    private_chains: list[PrivateChainConfig] = field(default_factory=list)
    multi_chain: bool = False

    @property
    def primary_network(self) -> Optional[EVMNetwork]:
        return self.evm_networks[0] if self.evm_networks else None


def _start_chain(env, chain_config: PrivateChainConfig) -> tuple[EVMNetwork, RpcProvider]:
    if env.docker_network is None:
        raise NoNetworkError("private ethereum network")
    chain_config.docker_network_names = [env.docker_network.name]
    return env.start_ethereum_network(chain_config)


def arbitrate_networks(
    env,
    network_config: NetworkConfig,
    private_chains: list[PrivateChainConfig],
    logger: ConsoleLogger,
) -> NetworkArbitration:
    """
    Start the chains a test needs and work out the effective networks.

    Args:
        env: Environment providing the container network and chain launcher.
        network_config: The test config's network section.
        private_chains: Private chains requested by the test, in order.
        logger: Logger for the live-network warning.

    Returns:
        The effective networks, their RPC providers and the simulated flag.

    Raises:
        NoNetworkError: A chain must be started but the environment has no network.
        ConfigurationError: The selected network cannot be resolved, or two
            private chains share a chain ID.
    """
    if len(private_chains) > 1:
        chain_ids = [chain_config.chain_id for chain_config in private_chains]
        repeated = sorted({chain_id for chain_id in chain_ids if chain_ids.count(chain_id) > 1})
        if repeated:
            # providers are keyed by chain id
            raise ConfigurationError(
                f"Private chains must have distinct chain IDs, repeated: {repeated}"
            )
        result = NetworkArbitration(multi_chain=True, is_simulated_network=True)
        for chain_config in private_chains:
            network, rpc_provider = _start_chain(env, chain_config)
            result.rpc_providers[network.chain_id] = rpc_provider
            result.evm_networks.append(network)
            result.private_chains.append(chain_config)
        return result

    selected = get_selected_network_config(network_config)[0]
    result = NetworkArbitration()

    if len(private_chains) == 1:
        if selected.simulated:
            network, rpc_provider = _start_chain(env, private_chains[0])
            selected = network
            result.rpc_providers[network.chain_id] = rpc_provider
            result.private_chains.append(private_chains[0])
            result.is_simulated_network = True
        else:
            logger.warning(
                "Private network config provided, but we are running on a live "
                "network. Ignoring private network config.",
                network=selected.name,
                chain_id=selected.chain_id,
            )
            result.rpc_providers[selected.chain_id] = live_rpc_provider(selected)
    elif not selected.simulated:
        # deliberately info, not the "Ignoring private network config" warning:
        # no private chain was requested, so there is nothing to ignore
        logger.info(
            "Running on a live network",
            network=selected.name,
            chain_id=selected.chain_id,
        )
        result.rpc_providers[selected.chain_id] = live_rpc_provider(selected)

    result.evm_networks.append(selected)
    return result
