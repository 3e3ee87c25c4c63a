"""
NodeManager - blockchain node container management.
"""

import os
import shutil
import stat
from typing import Optional

import docker
import requests

from chainbox.commands.constants import (
    CONTAINER_STOP_TIMEOUT,
    DEFAULT_NODE_API_PASSWORD,
    DEFAULT_NODE_API_USER,
    HTTP_TIMEOUT,
    NODE_API_CSA_KEYS,
    NODE_API_PORT,
    NODE_API_SESSIONS,
)
from chainbox.commands.errors import ChainboxError
from chainbox.commands.managers.base import BaseManager
from chainbox.commands.retry import NODE_READY_RETRY_CONFIG, retry_call
from chainbox.commands.utils import console

NODE_API_PORT_BINDING = f"{NODE_API_PORT}/tcp"
NODE_HOME = "/home/chainlink"


def _write_private_file(path: str, content: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)


def fetch_csa_key(
    api_url: str,
    email: str = DEFAULT_NODE_API_USER,
    password: str = DEFAULT_NODE_API_PASSWORD,
) -> str:
    """Log into a node's API and return its first CSA public key.

    Raises:
        requests.RequestException: If the node API cannot be reached.
        KeyError, ValueError: If the node has no CSA key yet.
    """
    session = requests.Session()
    response = session.post(
        f"{api_url}{NODE_API_SESSIONS}",
        json={"email": email, "password": password},
        timeout=HTTP_TIMEOUT,
    )
    response.raise_for_status()
    response = session.get(f"{api_url}{NODE_API_CSA_KEYS}", timeout=HTTP_TIMEOUT)
    response.raise_for_status()
    keys = response.json()["data"]
    if not keys:
        raise ValueError(f"node at {api_url} has no CSA key")
    return keys[0]["attributes"]["publicKey"]


class NodeManager(BaseManager):
    """Runs node containers from a rendered TOML configuration."""

    def __init__(self, client: Optional[docker.DockerClient] = None):
        super().__init__(client)
        # data dirs this manager created, by node name; they hold secrets
        self.data_dirs: dict[str, str] = {}

    def run_node(
        self,
        node_name: str,
        image: str,
        network_name: str,
        config_toml: str,
        secrets_toml: str = "",
        data_dir: Optional[str] = None,
        log_stream=None,
    ):
        """
        Start one node container.

        Args:
            node_name: Container name; also the name on the container network.
            image: Full image reference including tag.
            network_name: Container network the node joins.
            config_toml: Rendered node configuration.
            secrets_toml: Opaque secrets passed to the node as-is.
            data_dir: Host folder for config files. Defaults to ./data/<node_name>,
                which stop_node() removes again. A folder passed in is kept.
            log_stream: Optional LogStream receiving the node's output.

        Returns:
            Tuple of (container, host API URL or None).

        Raises:
            ChainboxError: If the container cannot be started.
        """
        if not self._ensure_image(image):
            raise ChainboxError(
                f"Cannot start node without image: {image}", code="NODE_START_FAILED"
            )

        try:
            existing = self.client.containers.get(node_name)
            console.print(
                f"[yellow]Container {node_name} already exists, removing it...[/yellow]"
            )
            existing.remove(force=True)
        except docker.errors.NotFound:
            pass

        if data_dir is None:
            data_dir = os.path.join("data", node_name)
            self.data_dirs[node_name] = data_dir
        os.makedirs(data_dir, exist_ok=True)
        # Node data holds keys, owner only
        os.chmod(data_dir, 0o700)
        _write_private_file(os.path.join(data_dir, "config.toml"), config_toml)
        _write_private_file(os.path.join(data_dir, "secrets.toml"), secrets_toml)
        _write_private_file(
            os.path.join(data_dir, ".api"),
            f"{DEFAULT_NODE_API_USER}\n{DEFAULT_NODE_API_PASSWORD}\n",
        )

        container_config = {
            "name": node_name,
            "image": image,
            "detach": True,
            "network": network_name,
            "command": [
                "node",
                "-config",
                f"{NODE_HOME}/config.toml",
                "-secrets",
                f"{NODE_HOME}/secrets.toml",
                "start",
                "-a",
                f"{NODE_HOME}/.api",
            ],
            "ports": {NODE_API_PORT_BINDING: None},
            "volumes": {
                os.path.abspath(data_dir): {"bind": NODE_HOME, "mode": "rw"}
            },
            "labels": {"chainbox.node": "true", "node.name": node_name},
        }

        console.print(f"[yellow]Starting node {node_name}...[/yellow]")
        try:
            container = self.client.containers.run(**container_config)
        except docker.errors.APIError as e:
            raise ChainboxError(
                f"Failed to start node {node_name}: {e}", code="NODE_START_FAILED"
            ) from e

        if log_stream is not None:
            log_stream.connect_container(container)

        container.reload()
        host_port = self._published_port(container, NODE_API_PORT_BINDING)
        api_url = f"http://127.0.0.1:{host_port}" if host_port else None
        console.print(f"[green]✓ Node {node_name} started[/green]")
        return container, api_url

    def get_csa_key(self, node_name: str, api_url: Optional[str]) -> str:
        """Wait for the node API and return the node's CSA public key.

        Raises:
            ChainboxError: If the key cannot be retrieved.
        """
        if not api_url:
            raise ChainboxError(
                f"Node {node_name} does not publish its API port",
                code="NODE_API_UNAVAILABLE",
            )
        try:
            return retry_call(fetch_csa_key, api_url, config=NODE_READY_RETRY_CONFIG)
        except (requests.RequestException, ValueError, KeyError) as e:
            raise ChainboxError(
                f"Could not read CSA key of node {node_name}: {e}",
                code="NODE_API_UNAVAILABLE",
            ) from e

    def stop_node(self, container) -> None:
        """Remove the node container and the data dir created for it."""
        self._remove_container(container, CONTAINER_STOP_TIMEOUT)
        data_dir = self.data_dirs.pop(container.name, None)
        if data_dir is not None and os.path.exists(data_dir):
            try:
                shutil.rmtree(data_dir)
            except OSError as e:
                console.print(
                    f"[yellow]⚠️  Could not remove data of {container.name} at {data_dir}: {e}[/yellow]"
                )
        console.print(f"[green]✓ Stopped node {container.name}[/green]")
