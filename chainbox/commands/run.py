"""
Run command - Start a local Ganache node and keep it alive until interrupted.
"""

import asyncio
import sys
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from chainbox.commands.config_utils import load_node_options
from chainbox.commands.constants import (
    BACKEND_BINARY,
    BACKEND_DOCKER,
    DEFAULT_BACKEND,
    VALID_BACKENDS,
    NodeStatus,
)
from chainbox.commands.errors import ChainboxError
from chainbox.commands.node import NodeInstance
from chainbox.commands.registry import NodeRegistry

console = Console()


def print_node_summary(
    instance: NodeInstance, accounts: list[str], balance: Any
) -> None:
    """Print the node's endpoint and accounts as a table."""
    table = Table(title=f"Node on port {instance.port}")
    table.add_column("#", style="cyan")
    table.add_column("Account", style="green")

    for index, account in enumerate(accounts):
        table.add_row(str(index), account)

    console.print(table)
    console.print(f"[cyan]RPC endpoint: {instance.process.url}[/cyan]")
    console.print(f"[cyan]Balance of first account: {balance} ETH[/cyan]")


def report_final_status(status: NodeStatus) -> None:
    if status == NodeStatus.STOPPED:
        console.print("[green]✓ Node stopped[/green]")
    else:
        console.print(f"[yellow]⚠️  Node ended in status {status.name}[/yellow]")


async def run_node(
    registry: NodeRegistry, options: dict[str, Any], hold: bool = True
) -> NodeStatus:
    """
    Acquire a node, print its summary and optionally wait until cancelled.

    Returns:
        The node's status after it was quit
    """
    instance = await registry.acquire(options=options)
    try:
        accounts = await instance.get_accounts()
        balance = await instance.get_balance()
        print_node_summary(instance, accounts, balance)

        if hold:
            console.print("[cyan]Press Ctrl+C to stop the node[/cyan]")
            await asyncio.Event().wait()
    finally:
        status = await instance.quit()
    return status


@click.command()
@click.option("--port", type=int, help="RPC port for the node (default 8545)")
@click.option(
    "--backend",
    type=click.Choice(VALID_BACKENDS),
    default=DEFAULT_BACKEND,
    show_default=True,
    help="Run ganache as a native process or a Docker container",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="TOML file with a [node] table of options",
)
@click.option("--mnemonic", help="Mnemonic for the deterministic wallet")
@click.option("--network-id", type=int, help="Network ID reported by the node")
@click.option("--hardfork", help="Hardfork to run (e.g. london)")
@click.option("--block-time", type=int, help="Seconds between mined blocks")
@click.option("--binary-path", help="Path to the ganache binary (binary backend)")
@click.option("--image", help="Ganache Docker image (docker backend)")
@click.option(
    "--hold/--no-hold",
    default=True,
    help="Keep the node running until interrupted",
)
def run(
    port: Optional[int],
    backend: str,
    config_file: Optional[str],
    mnemonic: Optional[str],
    network_id: Optional[int],
    hardfork: Optional[str],
    block_time: Optional[int],
    binary_path: Optional[str],
    image: Optional[str],
    hold: bool,
):
    """Run a disposable local Ganache node."""
    try:
        options = load_node_options(config_file) if config_file else {}
    except ChainboxError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    overrides = {
        "port": port,
        "mnemonic": mnemonic,
        "network_id": network_id,
        "hardfork": hardfork,
        "block_time": block_time,
    }
    options.update({key: value for key, value in overrides.items() if value is not None})

    process_kwargs = {}
    if backend == BACKEND_BINARY and binary_path:
        process_kwargs["binary_path"] = binary_path
    if backend == BACKEND_DOCKER and image:
        process_kwargs["image"] = image

    registry = NodeRegistry(backend=backend, **process_kwargs)

    try:
        status = asyncio.run(run_node(registry, options, hold=hold))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        for node_port in registry.ports():
            report_final_status(registry.get(node_port).status)
        return
    except ChainboxError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    report_final_status(status)
