"""
NetworkManager - Docker network shared by every container of a test environment.
"""

import docker

from chainbox.commands.errors import ChainboxError
from chainbox.commands.managers.base import BaseManager
from chainbox.commands.utils import console


class NetworkManager(BaseManager):
    """Creates, looks up and removes test environment networks."""

    def create_network(self, network_name: str):
        """Create a bridge network, reusing it if it already exists.

        Raises:
            ChainboxError: If Docker refuses to create the network.
        """
        try:
            network = self.client.networks.get(network_name)
            console.print(f"[cyan]Reusing network {network_name}[/cyan]")
            return network
        except docker.errors.NotFound:
            pass

        try:
            network = self.client.networks.create(
                network_name, driver="bridge", labels={"chainbox.network": "true"}
            )
        except docker.errors.APIError as e:
            raise ChainboxError(
                f"Failed to create network {network_name}: {e}",
                code="NETWORK_CREATE_FAILED",
            ) from e
        console.print(f"[green]✓ Network {network_name} ready[/green]")
        return network

    def get_network(self, network_name: str):
        """The named network, or None."""
        try:
            return self.client.networks.get(network_name)
        except docker.errors.NotFound:
            return None

    def remove_network(self, network) -> None:
        """Remove a network after disconnecting any leftover containers."""
        try:
            network.reload()
            for container in network.containers:
                network.disconnect(container, force=True)
            network.remove()
            console.print(f"[green]✓ Network {network.name} removed[/green]")
        except docker.errors.NotFound:
            pass

    def connect_container_to_network(self, container, network_name: str) -> bool:
        """Connect a container to an additional network.

        Returns:
            True if connected successfully, False otherwise.
        """
        network = self.get_network(network_name)
        if network is None:
            console.print(f"[yellow]No network {network_name} to attach to[/yellow]")
            return False
        try:
            network.connect(container)
            return True
        except docker.errors.APIError as e:
            console.print(
                f"[yellow]⚠️  {container.name} not attached to {network_name}: {e}[/yellow]"
            )
            return False
