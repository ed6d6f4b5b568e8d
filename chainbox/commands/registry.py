"""
NodeRegistry - Port-keyed table of node instances.
"""

import asyncio
import contextlib
import functools
from typing import Any, AsyncIterator, Optional

from rich.console import Console

from chainbox.commands.config_utils import merge_node_options
from chainbox.commands.constants import DEFAULT_BACKEND, NodeStatus
from chainbox.commands.errors import NotRunningError
from chainbox.commands.managers import create_node_process
from chainbox.commands.node import NodeInstance, ProcessFactory
from chainbox.commands.retry import START_RETRY_POLICY, RetryPolicy, retry

console = Console()


class NodeRegistry:
    """Holds at most one NodeInstance per port.

    Construct one registry per test run and pass it to whoever needs nodes.
    Instances are added on first use of a port and never removed; a stopped
    instance is restarted in place.
    """

    def __init__(
        self,
        process_factory: Optional[ProcessFactory] = None,
        backend: str = DEFAULT_BACKEND,
        start_policy: RetryPolicy = START_RETRY_POLICY,
        **process_kwargs: Any,
    ):
        """
        Args:
            process_factory: Callable creating a process handle from options.
                Defaults to create_node_process for the chosen backend.
            backend: "binary" or "docker", used when no factory is given
            start_policy: Retry policy wrapping each start
            **process_kwargs: Extra keyword arguments for the default factory
                (e.g. binary_path, log_dir, client, image)
        """
        if process_factory is None:
            process_factory = functools.partial(
                create_node_process, backend=backend, **process_kwargs
            )
        self._process_factory = process_factory
        self._start_policy = start_policy
        self._instances: dict[int, NodeInstance] = {}
        self._locks: dict[int, asyncio.Lock] = {}

    def __contains__(self, port: int) -> bool:
        return port in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def get(self, port: int) -> Optional[NodeInstance]:
        return self._instances.get(port)

    def ports(self) -> list[int]:
        return sorted(self._instances)

    def _lock_for(self, port: int) -> asyncio.Lock:
        lock = self._locks.get(port)
        if lock is None:
            lock = self._locks[port] = asyncio.Lock()
        return lock

    async def acquire(
        self, port: Optional[int] = None, options: Optional[dict[str, Any]] = None
    ) -> NodeInstance:
        """
        Start a node on port and return its instance once it is listening.

        Any node this registry already runs on the port is quit first. The
        start is retried under the registry's start policy; each failed
        attempt quits the half-started node before the next one.

        Args:
            port: Port to run on; overrides options["port"]
            options: Node options merged over DEFAULT_NODE_OPTIONS

        Raises:
            RetryExhaustedError: If every start attempt failed
            ValidationError: If the port is invalid
        """
        options = merge_node_options(options, port=port)
        port = options["port"]

        async with self._lock_for(port):
            instance = self._instances.get(port)
            if instance is None:
                instance = NodeInstance(self._process_factory)
                self._instances[port] = instance
            elif instance.needs_stopping():
                console.print(
                    f"[yellow]Node already running on port {port}, stopping it...[/yellow]"
                )
                await instance.quit()

            async def start_attempt() -> None:
                try:
                    await instance.start(options)
                except Exception as e:
                    console.print(
                        f"[yellow]Caught error starting node on port {port}: {e}[/yellow]"
                    )
                    with contextlib.suppress(NotRunningError):
                        await instance.quit()
                    raise

            await retry(self._start_policy, start_attempt)

        return instance

    async def quit_all(self) -> dict[int, NodeStatus]:
        """Quit every node that still needs stopping.

        Returns:
            Mapping of port to the status observed after quitting
        """
        results = {}
        for port in self.ports():
            instance = self._instances[port]
            if instance.needs_stopping():
                results[port] = await instance.quit()

        if results:
            console.print(f"[green]✓ Stopped {len(results)} node(s)[/green]")
        return results


@contextlib.asynccontextmanager
async def running_node(
    registry: NodeRegistry,
    port: Optional[int] = None,
    options: Optional[dict[str, Any]] = None,
) -> AsyncIterator[NodeInstance]:
    """Acquire a node for the duration of an async with block."""
    instance = await registry.acquire(port, options)
    try:
        yield instance
    finally:
        if instance.needs_stopping():
            await instance.quit()
