"""
Build the node TOML configuration from chain descriptors and config fragments.
"""

import copy
from itertools import zip_longest
from typing import Any, Optional

import toml

from chainbox.commands.errors import ConfigurationError
from chainbox.commands.chains import EVMNetwork


def _parse_fragment(fragment: Optional[str], label: str) -> dict[str, Any]:
    if not fragment or not fragment.strip():
        return {}
    try:
        return toml.loads(fragment)
    except toml.TomlDecodeError as e:
        raise ConfigurationError(f"Invalid {label} TOML: {e}") from e


def merge_config(target: dict, overrides: dict) -> dict:
    """Recursively merge overrides into target; tables merge, other values replace.

    Values are copied, so target never shares tables with overrides.
    """
    for key, value in overrides.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merge_config(current, value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def _chain_nodes(network: EVMNetwork) -> list[dict[str, str]]:
    nodes = []
    pairs = zip_longest(network.urls, network.http_urls)
    for index, (ws_url, http_url) in enumerate(pairs):
        node: dict[str, str] = {"Name": f"{network.name}-{index}"}
        if ws_url:
            node["WSURL"] = ws_url
        if http_url:
            node["HTTPURL"] = http_url
        nodes.append(node)
    return nodes


def build_node_config(
    evm_networks: list[EVMNetwork],
    base_config_toml: str,
    common_chain_config_toml: str,
    chain_config_toml_by_chain_id: dict[int, str],
) -> tuple[dict[str, Any], str]:
    """
    Assemble a node configuration.

    Args:
        evm_networks: Chains the node connects to, in order.
        base_config_toml: Top-level node settings.
        common_chain_config_toml: Settings applied to every chain entry.
        chain_config_toml_by_chain_id: Per-chain overrides keyed by chain ID.

    Returns:
        The configuration as a dict and rendered as TOML.

    Raises:
        ConfigurationError: If any fragment is not valid TOML.
    """
    config = _parse_fragment(base_config_toml, "base config")
    common = _parse_fragment(common_chain_config_toml, "common chain config")

    chains = []
    for network in evm_networks:
        chain: dict[str, Any] = {"ChainID": str(network.chain_id)}
        merge_config(chain, common)
        per_chain = chain_config_toml_by_chain_id.get(network.chain_id)
        merge_config(
            chain, _parse_fragment(per_chain, f"chain {network.chain_id} config")
        )
        chain["Nodes"] = _chain_nodes(network)
        chains.append(chain)

    if chains:
        config["EVM"] = chains
    return config, toml.dumps(config)
