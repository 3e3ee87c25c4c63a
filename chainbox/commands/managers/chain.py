"""
ChainManager - run simulated EVM chains (geth --dev or anvil) in containers.
"""

import uuid
from typing import Optional

import docker
import requests

from chainbox.commands.constants import (
    CHAIN_HTTP_PORT,
    CHAIN_WS_PORT,
    CONTAINER_STOP_TIMEOUT,
    DEFAULT_ANVIL_IMAGE,
    DEFAULT_GETH_IMAGE,
    EXECUTION_LAYER_ANVIL,
    HTTP_TIMEOUT,
    SIMULATED_PRIVATE_KEY,
)
from chainbox.commands.errors import ChainboxError
from chainbox.commands.managers.base import BaseManager
from chainbox.commands.managers.network import NetworkManager
from chainbox.commands.retry import CHAIN_READY_RETRY_CONFIG, retry_call
from chainbox.commands.utils import console
from chainbox.commands.chains import EVMNetwork, PrivateChainConfig, RpcProvider

HTTP_PORT_BINDING = f"{CHAIN_HTTP_PORT}/tcp"
WS_PORT_BINDING = f"{CHAIN_WS_PORT}/tcp"


def _geth_command(chain_id: int) -> list[str]:
    return [
        "--dev",
        "--dev.period=1",
        f"--networkid={chain_id}",
        "--http",
        "--http.addr=0.0.0.0",
        f"--http.port={CHAIN_HTTP_PORT}",
        "--http.api=eth,net,web3,debug,txpool",
        "--http.corsdomain=*",
        "--http.vhosts=*",
        "--ws",
        "--ws.addr=0.0.0.0",
        f"--ws.port={CHAIN_WS_PORT}",
        "--ws.api=eth,net,web3,debug,txpool",
        "--ws.origins=*",
    ]


def _anvil_command(chain_id: int) -> list[str]:
    return [
        "anvil",
        "--host",
        "0.0.0.0",
        "--port",
        str(CHAIN_HTTP_PORT),
        "--chain-id",
        str(chain_id),
        "--block-time",
        "1",
    ]


def query_chain_id(http_url: str) -> int:
    """Ask a chain for its ID over JSON-RPC."""
    response = requests.post(
        http_url,
        json={"jsonrpc": "2.0", "method": "eth_chainId", "params": [], "id": 1},
        timeout=HTTP_TIMEOUT,
    )
    response.raise_for_status()
    return int(response.json()["result"], 16)


class ChainManager(BaseManager):
    """Launches and stops simulated chains."""

    def __init__(self, client: Optional[docker.DockerClient] = None):
        super().__init__(client)
        self.network_manager = NetworkManager(self.client)
        # keyed by container name; several chains may share a chain id
        self.containers: dict[str, object] = {}

    def start_chain(
        self, chain_config: PrivateChainConfig
    ) -> tuple[EVMNetwork, RpcProvider, object]:
        """
        Start a chain container attached to the configured container networks.

        Args:
            chain_config: Chain to launch. ``docker_network_names`` must not be empty.

        Returns:
            The network descriptor (public URLs), its RPC provider and the container.

        Raises:
            ChainboxError: If the image is unavailable or the chain does not come up.
        """
        if not chain_config.docker_network_names:
            raise ChainboxError(
                f"Chain {chain_config.chain_id} has no container network to join",
                code="CHAIN_START_FAILED",
            )

        is_anvil = chain_config.execution_layer == EXECUTION_LAYER_ANVIL
        image = chain_config.image or (DEFAULT_ANVIL_IMAGE if is_anvil else DEFAULT_GETH_IMAGE)
        if not self._ensure_image(image):
            raise ChainboxError(
                f"Cannot start chain without image: {image}", code="CHAIN_START_FAILED"
            )

        container_name = (
            f"{chain_config.execution_layer}-{chain_config.chain_id}-{uuid.uuid4().hex[:8]}"
        )
        ports = {HTTP_PORT_BINDING: None}
        container_config = {
            "name": container_name,
            "image": image,
            "detach": True,
            "network": chain_config.docker_network_names[0],
            "labels": {
                "chainbox.chain": "true",
                "chain.id": str(chain_config.chain_id),
            },
        }
        if is_anvil:
            container_config["entrypoint"] = ""
            container_config["command"] = _anvil_command(chain_config.chain_id)
        else:
            ports[WS_PORT_BINDING] = None
            container_config["command"] = _geth_command(chain_config.chain_id)
        container_config["ports"] = ports

        console.print(
            f"[yellow]Starting {chain_config.display_name} ({chain_config.describe()})...[/yellow]"
        )
        try:
            container = self.client.containers.run(**container_config)
        except docker.errors.APIError as e:
            raise ChainboxError(
                f"Failed to start chain container {container_name}: {e}",
                code="CHAIN_START_FAILED",
            ) from e
        self.containers[container_name] = container

        for extra_network in chain_config.docker_network_names[1:]:
            self.network_manager.connect_container_to_network(container, extra_network)

        container.reload()
        http_port = self._published_port(container, HTTP_PORT_BINDING)
        ws_port = http_port if is_anvil else self._published_port(container, WS_PORT_BINDING)
        if http_port is None or ws_port is None:
            raise ChainboxError(
                f"Chain container {container_name} did not publish its RPC ports",
                code="CHAIN_START_FAILED",
            )

        private_ws_port = CHAIN_HTTP_PORT if is_anvil else CHAIN_WS_PORT
        rpc_provider = RpcProvider(
            public_http_urls=[f"http://127.0.0.1:{http_port}"],
            public_ws_urls=[f"ws://127.0.0.1:{ws_port}"],
            private_http_urls=[f"http://{container_name}:{CHAIN_HTTP_PORT}"],
            private_ws_urls=[f"ws://{container_name}:{private_ws_port}"],
        )

        try:
            retry_call(
                query_chain_id,
                rpc_provider.public_http_urls[0],
                config=CHAIN_READY_RETRY_CONFIG,
            )
        except (requests.RequestException, ValueError) as e:
            raise ChainboxError(
                f"Chain {chain_config.chain_id} did not answer JSON-RPC: {e}",
                code="CHAIN_START_FAILED",
            ) from e

        network = EVMNetwork(
            name=chain_config.display_name,
            chain_id=chain_config.chain_id,
            urls=list(rpc_provider.public_ws_urls),
            http_urls=list(rpc_provider.public_http_urls),
            simulated=True,
            private_keys=[SIMULATED_PRIVATE_KEY],
            finality_depth=1,
        )
        console.print(
            f"[green]✓ {chain_config.display_name} is running at {rpc_provider.public_http_urls[0]}[/green]"
        )
        return network, rpc_provider, container

    def stop_all(self) -> None:
        for name, container in list(self.containers.items()):
            self._remove_container(container, CONTAINER_STOP_TIMEOUT)
            console.print(f"[green]✓ Stopped chain container {name}[/green]")
        self.containers.clear()
