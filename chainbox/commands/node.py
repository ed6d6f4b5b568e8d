"""
NodeInstance - One disposable local node bound to a single port.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Callable, Optional, Union

from rich.console import Console

from chainbox.commands.constants import (
    ACTIVE_STATUSES,
    BALANCE_DECIMAL_PLACES,
    ERROR_NODE_NOT_RUNNING,
    METHOD_ACCOUNTS,
    METHOD_GET_BALANCE,
    WEI_PER_ETHER,
    NodeStatus,
)
from chainbox.commands.errors import NotRunningError, ValidationError
from chainbox.commands.managers import BaseNodeProcess, create_node_process
from chainbox.commands.provider import JsonRpcProvider
from chainbox.commands.retry import STOP_POLL_POLICY, retry_until_true

logger = logging.getLogger(__name__)
console = Console()

ProcessFactory = Callable[[dict[str, Any]], BaseNodeProcess]


def format_balance(wei: Union[int, str]) -> str:
    """
    Format a wei amount as whole ether.

    Whole amounts print as a plain integer ("1"); anything else is rounded
    half away from zero to four decimal places ("1.2346").

    Args:
        wei: Amount in wei, as an int or a hex string ("0x...")
    """
    if isinstance(wei, str):
        wei = int(wei, 16)

    with localcontext() as ctx:
        ctx.prec = 100
        ether = Decimal(wei) / Decimal(WEI_PER_ETHER)
        if ether == ether.to_integral_value():
            return str(int(ether))
        quantum = Decimal(1).scaleb(-BALANCE_DECIMAL_PLACES)
        return str(ether.quantize(quantum, rounding=ROUND_HALF_UP))


class NodeInstance:
    """A logical node on one port.

    The instance is reused across restarts: every start() creates a fresh
    process handle, while the port stays fixed once the first start happened.
    The status is always read from the current process handle.
    """

    def __init__(self, process_factory: Optional[ProcessFactory] = None):
        self._process_factory = process_factory or create_node_process
        self._process: Optional[BaseNodeProcess] = None
        self._port: Optional[int] = None

    def __repr__(self) -> str:
        return f"NodeInstance(port={self._port}, status={self.status.name})"

    @property
    def port(self) -> Optional[int]:
        return self._port

    @property
    def process(self) -> Optional[BaseNodeProcess]:
        return self._process

    @property
    def status(self) -> NodeStatus:
        if self._process is None:
            return NodeStatus.STOPPED
        return self._process.status

    async def start(self, options: dict[str, Any]) -> None:
        """
        Create a process handle from options and start listening on options["port"].

        Raises:
            ValidationError: If the port differs from the one this instance owns
            BindError: If the node cannot listen on the port
        """
        port = options["port"]
        if self._port is not None and port != self._port:
            raise ValidationError(
                f"Node instance is bound to port {self._port}, not {port}",
                field="port",
                value=port,
            )

        self._process = self._process_factory(options)
        self._port = port
        await self._process.listen(port)

    def get_provider(self) -> Optional[JsonRpcProvider]:
        if self._process is None:
            return None
        return self._process.provider

    def _require_provider(self) -> JsonRpcProvider:
        provider = self.get_provider()
        if provider is None:
            raise NotRunningError(
                ERROR_NODE_NOT_RUNNING.format(port=self._port), port=self._port
            )
        return provider

    async def get_accounts(self) -> list[str]:
        """Return the node's accounts in order.

        Raises:
            NotRunningError: If the node was never started or has stopped
            RpcError: If the request fails
        """
        provider = self._require_provider()
        accounts = await provider.request(METHOD_ACCOUNTS, [])
        return list(accounts or [])

    async def get_balance(self) -> Union[str, int]:
        """Return the first account's balance in ether, or 0 without accounts.

        Raises:
            NotRunningError: If the node was never started or has stopped
            RpcError: If a request fails
        """
        accounts = await self.get_accounts()
        if not accounts:
            console.print(f"[yellow]No accounts found on port {self._port}[/yellow]")
            return 0

        provider = self._require_provider()
        balance_hex = await provider.request(
            METHOD_GET_BALANCE, [accounts[0], "latest"]
        )
        return format_balance(balance_hex)

    def needs_stopping(self) -> bool:
        return self.status in ACTIVE_STATUSES

    async def quit(self) -> NodeStatus:
        """
        Stop the node, best effort.

        A failed close is logged and followed by polling until the status
        reads STOPPED; the failure is never re-raised. Quitting a node that is
        already stopped returns STOPPED without closing it again.

        Returns:
            The status observed once quitting is over.

        Raises:
            NotRunningError: If the node was never started
        """
        if self._process is None:
            raise NotRunningError(
                ERROR_NODE_NOT_RUNNING.format(port=self._port), port=self._port
            )

        process = self._process
        await process.refresh()
        if process.status == NodeStatus.STOPPED:
            logger.debug("Node on port %s already stopped", self._port)
            return NodeStatus.STOPPED

        try:
            await process.close()
        except Exception as e:
            # Some nodes never confirm shutdown; poll for it instead
            console.print(
                f"[yellow]⚠️  Error closing node on port {self._port} "
                f"(status {process.status.name}): {e}[/yellow]"
            )

            async def is_stopped() -> bool:
                await process.refresh()
                status = process.status
                logger.debug("Node on port %s status: %s", self._port, status.name)
                return status == NodeStatus.STOPPED

            stopped = await retry_until_true(STOP_POLL_POLICY, is_stopped)
            if not stopped:
                console.print(
                    f"[red]✗ Node on port {self._port} still {process.status.name} "
                    "after shutdown polling[/red]"
                )

        return process.status
