"""
BaseNodeProcess - Shared status state machine for node process handles.
"""

import logging
import socket
from abc import ABC, abstractmethod
from typing import Any, Optional

from rich.console import Console

from chainbox.commands.constants import (
    ERROR_PORT_IN_USE,
    LOCALHOST,
    METHOD_CLIENT_VERSION,
    RPC_POLL_INTERVAL,
    RPC_READY_RETRIES,
    NodeStatus,
)
from chainbox.commands.errors import (
    BindError,
    ChainboxError,
    CloseError,
    ConfigurationError,
    RetryExhaustedError,
    RpcError,
)
from chainbox.commands.provider import JsonRpcProvider
from chainbox.commands.retry import RetryPolicy, retry_until_true

logger = logging.getLogger(__name__)
console = Console()


def is_port_free(port: int, host: str = LOCALHOST) -> bool:
    """Check whether a TCP port can be bound on host.

    SO_REUSEADDR matches how ganache binds, so a port left in TIME_WAIT by a
    previous node still counts as free.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((host, port))
        return True
    except OSError:
        return False


class BaseNodeProcess(ABC):
    """Base class for a single Ganache node process.

    Subclasses provide the backend (native process, Docker container) through
    _spawn, _is_alive, _terminate and _discard. This class owns the status
    transitions:

        STOPPED -> STARTING -> STARTED -> STOPPING -> STOPPED

    The status is recomputed on every read from the recorded state and the
    backend's liveness, so a backend that dies on its own reads as STOPPED.
    Backends whose liveness check blocks cache it in refresh(), which the
    lifecycle methods await before reading the status.
    """

    def __init__(self, options: dict[str, Any]):
        self.options = dict(options)
        self.port: Optional[int] = None
        self._state = NodeStatus.STOPPED
        self._provider: Optional[JsonRpcProvider] = None

    @property
    def status(self) -> NodeStatus:
        state = self._state
        if state in (NodeStatus.STARTED, NodeStatus.STOPPING) and not self._is_alive():
            return NodeStatus.STOPPED
        if state == NodeStatus.STARTED and self._is_paused():
            return NodeStatus.PAUSED
        return state

    @property
    def provider(self) -> Optional[JsonRpcProvider]:
        if self.status in (NodeStatus.STOPPED, NodeStatus.STOPPING):
            return None
        return self._provider

    @property
    def url(self) -> Optional[str]:
        if self.port is None:
            return None
        return f"http://{LOCALHOST}:{self.port}"

    @abstractmethod
    async def _spawn(self, port: int) -> None:
        """Start the backend listening on port."""

    @abstractmethod
    def _is_alive(self) -> bool:
        """Return True while the backend is running."""

    @abstractmethod
    async def _terminate(self) -> None:
        """Stop the backend, raising CloseError if it does not go down."""

    @abstractmethod
    async def _discard(self) -> None:
        """Best-effort teardown of a backend that failed to start."""

    def _is_paused(self) -> bool:
        return False

    async def refresh(self) -> None:
        """Update cached backend state; a no-op for backends with cheap checks."""

    async def listen(self, port: int) -> None:
        """
        Start the node and wait until it answers JSON-RPC on port.

        Raises:
            BindError: If already listening, the port is taken, or the node
                exits or never becomes reachable
        """
        if self.status != NodeStatus.STOPPED:
            raise BindError(
                f"Node is already {self.status.name.lower()} on port {self.port}",
                port=self.port,
            )
        if not is_port_free(port):
            raise BindError(ERROR_PORT_IN_USE.format(port=port), port=port)

        self.port = port
        self._state = NodeStatus.STARTING
        console.print(f"[cyan]Starting node on port {port}...[/cyan]")

        try:
            await self._spawn(port)
            self._provider = JsonRpcProvider(self.url)
            await self._wait_until_ready()
        except (BindError, ConfigurationError):
            await self._abort_start()
            raise
        except Exception as e:
            await self._abort_start()
            raise BindError(f"Node failed to listen on port {port}: {e}", port=port) from e

        self._state = NodeStatus.STARTED
        console.print(f"[green]✓ Node listening at {self.url}[/green]")

    async def _wait_until_ready(self) -> None:
        async def settled() -> bool:
            await self.refresh()
            if not self._is_alive():
                return True
            try:
                await self._provider.request(METHOD_CLIENT_VERSION)
            except RpcError:
                return False
            return True

        policy = RetryPolicy(
            max_retries=RPC_READY_RETRIES,
            delay=RPC_POLL_INTERVAL,
            rejection_message=f"Node on port {self.port} never answered JSON-RPC",
            throw_on_exhaustion=True,
        )
        try:
            await retry_until_true(policy, settled)
        except RetryExhaustedError as e:
            raise BindError(e.message, port=self.port) from e

        await self.refresh()
        if not self._is_alive():
            raise BindError(
                f"Node exited before listening on port {self.port}", port=self.port
            )

    async def _abort_start(self) -> None:
        try:
            await self._discard()
        except ChainboxError as e:
            logger.debug("Discarding failed node on port %s: %s", self.port, e)
        if self._provider is not None:
            await self._provider.close()
        self._state = NodeStatus.STOPPED

    async def close(self) -> None:
        """
        Stop the node and release its provider.

        Raises:
            CloseError: If the backend does not shut down. The status stays
                STOPPING until the backend is observed dead.
        """
        await self.refresh()
        if self.status == NodeStatus.STOPPED:
            self._state = NodeStatus.STOPPED
            return

        self._state = NodeStatus.STOPPING
        console.print(f"[yellow]Stopping node on port {self.port}...[/yellow]")
        try:
            await self._terminate()
        except CloseError:
            raise
        except Exception as e:
            raise CloseError(
                f"Failed to stop node on port {self.port}: {e}", port=self.port
            ) from e
        finally:
            if self._provider is not None:
                await self._provider.close()

        self._state = NodeStatus.STOPPED
        console.print(f"[green]✓ Stopped node on port {self.port}[/green]")
