"""
MockAdapterManager - killgrave HTTP server emulating external data providers.
"""

import os
import uuid
from dataclasses import dataclass
from typing import Any, Optional

import docker

from chainbox.commands.constants import (
    CONTAINER_STOP_TIMEOUT,
    DEFAULT_MOCK_ADAPTER_IMAGE,
    DEFAULT_MOCK_ADAPTER_NAME,
    MOCK_ADAPTER_PORT,
)
from chainbox.commands.errors import ChainboxError
from chainbox.commands.managers.base import BaseManager
from chainbox.commands.utils import console

MOCK_ADAPTER_PORT_BINDING = f"{MOCK_ADAPTER_PORT}/tcp"


@dataclass
class MockAdapter:
    container: Any
    container_name: str
    internal_endpoint: str
    external_endpoint: Optional[str]


class MockAdapterManager(BaseManager):
    """Runs the mock adapter container for a test environment."""

    def start(
        self,
        network_name: str,
        container_name: Optional[str] = None,
        impostors_path: Optional[str] = None,
        image: str = DEFAULT_MOCK_ADAPTER_IMAGE,
        log_stream=None,
    ) -> MockAdapter:
        """
        Start the mock adapter on the given network.

        Args:
            network_name: Container network the adapter joins.
            container_name: Fixed container name; random when omitted.
            impostors_path: Host folder with killgrave imposter definitions.
            image: Container image to run.
            log_stream: Optional LogStream receiving the adapter's output.

        Raises:
            ChainboxError: If the container cannot be started.
        """
        if not self._ensure_image(image):
            raise ChainboxError(
                f"Cannot start mock adapter without image: {image}",
                code="MOCK_ADAPTER_START_FAILED",
            )

        name = container_name or f"{DEFAULT_MOCK_ADAPTER_NAME}-{uuid.uuid4().hex[:8]}"
        command = [
            "-host",
            "0.0.0.0",
            "-port",
            str(MOCK_ADAPTER_PORT),
            "-imposters",
            "/imposters",
            "-watcher",
        ]
        container_config = {
            "name": name,
            "image": image,
            "detach": True,
            "network": network_name,
            "command": command,
            "ports": {MOCK_ADAPTER_PORT_BINDING: None},
            "labels": {"chainbox.mock_adapter": "true"},
        }
        if impostors_path:
            container_config["volumes"] = {
                os.path.abspath(impostors_path): {"bind": "/imposters", "mode": "ro"}
            }

        console.print(f"[yellow]Starting mock adapter {name}...[/yellow]")
        try:
            container = self.client.containers.run(**container_config)
        except docker.errors.APIError as e:
            raise ChainboxError(
                f"Failed to start mock adapter {name}: {e}",
                code="MOCK_ADAPTER_START_FAILED",
            ) from e

        if log_stream is not None:
            log_stream.connect_container(container)

        container.reload()
        host_port = self._published_port(container, MOCK_ADAPTER_PORT_BINDING)
        adapter = MockAdapter(
            container=container,
            container_name=name,
            internal_endpoint=f"http://{name}:{MOCK_ADAPTER_PORT}",
            external_endpoint=f"http://127.0.0.1:{host_port}" if host_port else None,
        )
        console.print(f"[green]✓ Mock adapter {name} started[/green]")
        return adapter

    def stop(self, adapter: MockAdapter) -> None:
        self._remove_container(adapter.container, CONTAINER_STOP_TIMEOUT)
        console.print(f"[green]✓ Stopped mock adapter {adapter.container_name}[/green]")
