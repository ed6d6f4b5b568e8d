#!/usr/bin/env python3
"""
Chainbox CLI
A Python CLI tool for running disposable local Ganache nodes.
"""

import click

from chainbox import __version__
from chainbox.commands import run


@click.group()
@click.version_option(version=__version__)
def cli():
    """Chainbox CLI - Run disposable local blockchain nodes."""
    pass


cli.add_command(run)


def main():
    """Main entry point for the chainbox CLI."""
    cli()


if __name__ == "__main__":
    main()
