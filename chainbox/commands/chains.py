"""
Chain descriptors shared by the network arbitrator, the chain launcher and the
node-config builder.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from chainbox.commands.constants import (
    EXECUTION_LAYER_ANVIL,
    EXECUTION_LAYER_GETH,
    SIMULATED_CHAIN_ID,
)
from chainbox.commands.errors import ConfigurationError

SUPPORTED_EXECUTION_LAYERS = (EXECUTION_LAYER_GETH, EXECUTION_LAYER_ANVIL)


@dataclass
class EVMNetwork:
    """Description of one EVM-compatible network a node can connect to."""

    name: str
    chain_id: int
    urls: list[str] = field(default_factory=list)
    http_urls: list[str] = field(default_factory=list)
    simulated: bool = False
    private_keys: list[str] = field(default_factory=list)
    supports_eip1559: bool = True
    finality_depth: int = 0

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "EVMNetwork":
        try:
            chain_id = int(data["chain_id"])
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Network '{name}' must define an integer chain_id"
            ) from e
        return cls(
            name=data.get("name", name),
            chain_id=chain_id,
            urls=list(data.get("urls", [])),
            http_urls=list(data.get("http_urls", [])),
            simulated=bool(data.get("simulated", False)),
            private_keys=list(data.get("private_keys", [])),
            supports_eip1559=bool(data.get("supports_eip1559", True)),
            finality_depth=int(data.get("finality_depth", 0)),
        )


@dataclass
class RpcProvider:
    """Public (host-reachable) and private (in-network) RPC endpoints of a chain."""

    public_http_urls: list[str] = field(default_factory=list)
    public_ws_urls: list[str] = field(default_factory=list)
    private_http_urls: list[str] = field(default_factory=list)
    private_ws_urls: list[str] = field(default_factory=list)


@dataclass
class PrivateChainConfig:
    """A simulated chain the environment should launch.

    Args:
        execution_layer: Client to run, "geth" or "anvil".
        chain_id: Chain ID of the launched chain.
        image: Optional container image overriding the client default.
        docker_network_names: Container networks the chain joins. Filled in by
            the builder right before launch.
        name: Optional human name; defaults to "Simulated <layer> <chain id>".
    """

    execution_layer: str = EXECUTION_LAYER_GETH
    chain_id: int = SIMULATED_CHAIN_ID
    image: Optional[str] = None
    docker_network_names: list[str] = field(default_factory=list)
    name: Optional[str] = None

    def __post_init__(self):
        if self.execution_layer not in SUPPORTED_EXECUTION_LAYERS:
            raise ConfigurationError(
                f"Unsupported execution layer '{self.execution_layer}', "
                f"expected one of {', '.join(SUPPORTED_EXECUTION_LAYERS)}"
            )

    @property
    def display_name(self) -> str:
        return self.name or f"Simulated {self.execution_layer} {self.chain_id}"

    def describe(self) -> str:
        image = self.image or "default image"
        return (
            f"execution layer: {self.execution_layer}, chain id: {self.chain_id}, "
            f"image: {image}"
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PrivateChainConfig":
        return cls(
            execution_layer=data.get("execution_layer", EXECUTION_LAYER_GETH),
            chain_id=int(data.get("chain_id", SIMULATED_CHAIN_ID)),
            image=data.get("image"),
            docker_network_names=list(data.get("docker_network_names", [])),
            name=data.get("name"),
        )
