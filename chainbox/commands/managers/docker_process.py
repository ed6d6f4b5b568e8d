"""
DockerNodeProcess - Runs Ganache in a Docker container.
"""

import asyncio
import os
from typing import Any, Optional

import docker
from rich.console import Console

from chainbox.commands.config_utils import build_ganache_args
from chainbox.commands.constants import (
    CONTAINER_LABEL,
    CONTAINER_RPC_PORT,
    CONTAINER_STOP_TIMEOUT,
    DEFAULT_CONTAINER_PREFIX,
    DEFAULT_IMAGE,
    ENV_IMAGE,
    RPC_PORT_BINDING,
)
from chainbox.commands.errors import BindError, CloseError, ConfigurationError
from chainbox.commands.managers.base import BaseNodeProcess

console = Console()

ALIVE_CONTAINER_STATES = ("created", "running", "restarting", "paused")
PORT_CONFLICT_MARKERS = ("port is already allocated", "address already in use")


def create_docker_client() -> docker.DockerClient:
    """Create a Docker client from the environment.

    Raises:
        ConfigurationError: If the Docker daemon is unreachable
    """
    try:
        return docker.from_env()
    except docker.errors.DockerException as e:
        raise ConfigurationError(
            f"Failed to connect to Docker: {e}. "
            "Make sure Docker is running and you have permission to access it."
        ) from e


class DockerNodeProcess(BaseNodeProcess):
    """Manages one Ganache node as a Docker container."""

    def __init__(
        self,
        options: dict[str, Any],
        client: Optional[docker.DockerClient] = None,
        image: Optional[str] = None,
    ):
        """
        Args:
            options: Merged node options passed to Ganache
            client: Optional Docker client. If not provided, creates one from environment.
            image: Ganache image (defaults to CHAINBOX_IMAGE or trufflesuite/ganache:latest)
        """
        super().__init__(options)
        self.client = client if client is not None else create_docker_client()
        self.image = image or options.get("image") or os.getenv(ENV_IMAGE, DEFAULT_IMAGE)
        self.container = None
        self._container_status: Optional[str] = None

    @property
    def container_name(self) -> Optional[str]:
        if self.port is None:
            return None
        return f"{DEFAULT_CONTAINER_PREFIX}-{self.port}"

    def _ensure_image_pulled(self) -> None:
        """Ensure the image is available locally, pulling it if needed."""
        try:
            self.client.images.get(self.image)
            return
        except docker.errors.ImageNotFound:
            pass

        console.print(f"[yellow]Pulling image: {self.image}[/yellow]")
        try:
            self.client.images.pull(self.image)
        except docker.errors.APIError as e:
            raise ConfigurationError(f"Failed to pull image {self.image}: {e}") from e
        console.print(f"[green]✓ Successfully pulled image: {self.image}[/green]")

    def _remove_stale_container(self, name: str) -> None:
        try:
            existing = self.client.containers.get(name)
        except docker.errors.NotFound:
            return
        console.print(f"[yellow]Removing stale container {name}...[/yellow]")
        existing.remove(force=True)

    def _run_container(self, port: int):
        name = f"{DEFAULT_CONTAINER_PREFIX}-{port}"
        self._remove_stale_container(name)

        container_options = {
            **self.options,
            "port": CONTAINER_RPC_PORT,
            "host": "0.0.0.0",
        }
        try:
            return self.client.containers.run(
                self.image,
                command=build_ganache_args(container_options),
                name=name,
                detach=True,
                ports={RPC_PORT_BINDING: port},
                labels={
                    CONTAINER_LABEL: "true",
                    "chainbox.port": str(port),
                },
            )
        except docker.errors.APIError as e:
            message = str(e).lower()
            if any(marker in message for marker in PORT_CONFLICT_MARKERS):
                raise BindError(
                    f"Docker could not publish port {port}: {e}", port=port
                ) from e
            raise

    async def _spawn(self, port: int) -> None:
        await asyncio.to_thread(self._ensure_image_pulled)
        self.container = await asyncio.to_thread(self._run_container, port)
        await self.refresh()
        console.print(f"[cyan]  Container: {self.container_name} ({self.image})[/cyan]")

    def _container_state(self) -> Optional[str]:
        """Reload the container from the daemon; blocks on the Docker API."""
        if self.container is None:
            return None
        try:
            self.container.reload()
        except docker.errors.NotFound:
            return None
        return self.container.status

    async def refresh(self) -> None:
        if self.container is None:
            self._container_status = None
            return
        self._container_status = await asyncio.to_thread(self._container_state)

    def _is_alive(self) -> bool:
        return self._container_status in ALIVE_CONTAINER_STATES

    def _is_paused(self) -> bool:
        return self._container_status == "paused"

    def _stop_container(self) -> None:
        try:
            self.container.stop(timeout=CONTAINER_STOP_TIMEOUT)
            self.container.remove()
        except docker.errors.NotFound:
            return
        except docker.errors.APIError as e:
            raise CloseError(
                f"Failed to stop container {self.container_name}: {e}", port=self.port
            ) from e

    async def _terminate(self) -> None:
        if self.container is None:
            return
        await asyncio.to_thread(self._stop_container)
        self._container_status = None

    def _force_remove(self) -> None:
        try:
            self.container.remove(force=True)
        except docker.errors.NotFound:
            pass
        except docker.errors.APIError as e:
            raise CloseError(
                f"Failed to remove container {self.container_name}: {e}", port=self.port
            ) from e

    async def _discard(self) -> None:
        if self.container is None:
            return
        await asyncio.to_thread(self._force_remove)
        self._container_status = None
