"""
Configuration utilities for node options.

Node options are plain dictionaries passed through to Ganache. This module
merges them over the defaults, reads them from TOML files and turns them into
Ganache command-line arguments for both the binary and Docker backends.
"""

from pathlib import Path
from typing import Any, Optional, Union

import toml
from rich.console import Console

from chainbox.commands.constants import (
    DEFAULT_NODE_OPTIONS,
    ERROR_INVALID_PORT,
    GANACHE_OPTION_FLAGS,
)
from chainbox.commands.errors import ConfigurationError, ValidationError

console = Console()


def validate_port(port: Any) -> int:
    """Return port as an int, raising ValidationError if it is out of range."""
    if isinstance(port, bool):
        raise ValidationError(ERROR_INVALID_PORT, field="port", value=port)
    try:
        port = int(port)
    except (TypeError, ValueError):
        raise ValidationError(ERROR_INVALID_PORT, field="port", value=port) from None
    if not 1 <= port <= 65535:
        raise ValidationError(ERROR_INVALID_PORT, field="port", value=port)
    return port


def merge_node_options(
    options: Optional[dict[str, Any]] = None,
    port: Optional[int] = None,
    defaults: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """
    Merge caller options over the default node options.

    Args:
        options: Caller-supplied options (win over defaults)
        port: Explicit port, wins over options["port"]
        defaults: Base options, DEFAULT_NODE_OPTIONS when omitted

    Returns:
        A new dictionary; neither input is modified.
    """
    merged = dict(DEFAULT_NODE_OPTIONS if defaults is None else defaults)
    if options:
        merged.update(options)
    if port is not None:
        merged["port"] = port
    merged["port"] = validate_port(merged.get("port"))
    return merged


def load_node_options(config_file: Union[Path, str]) -> dict[str, Any]:
    """
    Load node options from the [node] table of a TOML file.

    Args:
        config_file: Path to the TOML file

    Raises:
        ConfigurationError: If the file is missing, malformed or has no [node] table
    """
    config_path = Path(config_file)
    if not config_path.exists():
        raise ConfigurationError(
            f"Config file not found: {config_file}", config_file=str(config_file)
        )

    try:
        with open(config_path, encoding="utf-8") as f:
            config = toml.load(f)
    except toml.TomlDecodeError as e:
        raise ConfigurationError(
            f"Invalid TOML in {config_file}: {e}", config_file=str(config_file)
        ) from e

    node_options = config.get("node")
    if not isinstance(node_options, dict):
        raise ConfigurationError(
            f"Config file {config_file} has no 'node' table",
            config_file=str(config_file),
        )

    console.print(
        f"[cyan]Loaded {len(node_options)} node option(s) from {config_file}[/cyan]"
    )
    return node_options


def _format_flag_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_ganache_args(options: dict[str, Any]) -> list[str]:
    """
    Translate node options into Ganache CLI arguments.

    Known snake_case options map to their Ganache flags. Keys containing a
    dot (e.g. "chain.chainId") are passed through verbatim as --key=value.
    Options set to None are skipped.
    """
    args = []
    for key, value in options.items():
        if value is None:
            continue
        flag = GANACHE_OPTION_FLAGS.get(key)
        if flag is None:
            if "." not in key:
                continue
            flag = f"--{key}"
        args.append(f"{flag}={_format_flag_value(value)}")
    return args
