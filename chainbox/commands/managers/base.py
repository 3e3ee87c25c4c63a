"""
BaseManager - Docker client ownership and container helpers shared by the
chain, node, mock adapter and network managers.
"""

from typing import Optional

import docker

from chainbox.commands.errors import ChainboxError
from chainbox.commands.utils import console


class BaseManager:
    """Holds the Docker client every manager of one environment shares."""

    def __init__(self, client: Optional[docker.DockerClient] = None):
        """
        Args:
            client: Docker client to reuse. Defaults to one built from the
                DOCKER_* environment variables.

        Raises:
            ChainboxError: If the Docker daemon cannot be reached.
        """
        self.client = client if client is not None else self._connect()

    @staticmethod
    def _connect() -> docker.DockerClient:
        try:
            return docker.from_env()
        except docker.errors.DockerException as e:
            raise ChainboxError(
                f"Docker daemon unreachable ({e}); test containers cannot be started",
                code="DOCKER_UNAVAILABLE",
            ) from e

    def _ensure_image(self, image: str) -> bool:
        """Make ``image`` available locally. Returns False when it cannot be."""
        try:
            self.client.images.get(image)
            return True
        except docker.errors.ImageNotFound:
            console.print(f"[yellow]Pulling {image}[/yellow]")
        except docker.errors.APIError as e:
            console.print(f"[red]✗ Cannot inspect image {image}: {e}[/red]")
            return False

        try:
            self.client.images.pull(image)
        except (docker.errors.NotFound, docker.errors.APIError) as e:
            console.print(f"[red]✗ Cannot pull {image}: {e}[/red]")
            return False
        console.print(f"[green]✓ Pulled {image}[/green]")
        return True

    def _published_port(self, container, binding: str) -> Optional[int]:
        """Host port Docker published for ``binding`` (e.g. "8545/tcp")."""
        published = container.attrs.get("NetworkSettings", {}).get("Ports") or {}
        ports = [
            entry.get("HostPort", "") for entry in published.get(binding) or []
        ]
        return next((int(port) for port in ports if port.isdigit()), None)

    def _remove_container(self, container, timeout: int) -> None:
        """Stop then force-remove; a container that is already gone is fine."""
        try:
            container.stop(timeout=timeout)
        except docker.errors.NotFound:
            return
        except docker.errors.APIError as e:
            console.print(
                f"[yellow]⚠️  {container.name} did not stop cleanly ({e}), removing anyway[/yellow]"
            )
        try:
            container.remove(force=True)
        except docker.errors.NotFound:
            pass
