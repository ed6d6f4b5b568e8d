"""
Commands module - CLI commands and the node management API.
"""

from chainbox.commands.constants import DEFAULT_NODE_OPTIONS, NodeStatus
from chainbox.commands.errors import (
    BindError,
    ChainboxError,
    CloseError,
    ConfigurationError,
    NodeError,
    NotRunningError,
    RetryExhaustedError,
    RpcError,
    ValidationError,
)
from chainbox.commands.node import NodeInstance, format_balance
from chainbox.commands.provider import JsonRpcProvider
from chainbox.commands.registry import NodeRegistry, running_node
from chainbox.commands.retry import RetryPolicy, retry, retry_until_true
from chainbox.commands.run import run

__all__ = [
    # Commands
    "run",
    # Node management
    "DEFAULT_NODE_OPTIONS",
    "JsonRpcProvider",
    "NodeInstance",
    "NodeRegistry",
    "NodeStatus",
    "RetryPolicy",
    "format_balance",
    "retry",
    "retry_until_true",
    "running_node",
    # Error classes
    "ChainboxError",
    "RetryExhaustedError",
    "NodeError",
    "BindError",
    "CloseError",
    "NotRunningError",
    "RpcError",
    "ValidationError",
    "ConfigurationError",
]
