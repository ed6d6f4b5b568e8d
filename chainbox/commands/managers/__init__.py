"""
Managers module - Process handles that run a Ganache node.

- BaseNodeProcess: Shared status state machine and JSON-RPC readiness check
- BinaryNodeProcess: Ganache as a native child process
- DockerNodeProcess: Ganache in a Docker container
"""

from typing import Any

from chainbox.commands.constants import (
    BACKEND_BINARY,
    BACKEND_DOCKER,
    DEFAULT_BACKEND,
    VALID_BACKENDS,
)
from chainbox.commands.errors import ConfigurationError
from chainbox.commands.managers.base import BaseNodeProcess, is_port_free
from chainbox.commands.managers.binary import BinaryNodeProcess, find_ganache_binary
from chainbox.commands.managers.docker_process import DockerNodeProcess


def create_node_process(
    options: dict[str, Any], backend: str = DEFAULT_BACKEND, **kwargs: Any
) -> BaseNodeProcess:
    """Create an unstarted process handle for the given backend.

    Raises:
        ConfigurationError: If the backend is unknown
    """
    if backend == BACKEND_BINARY:
        return BinaryNodeProcess(options, **kwargs)
    if backend == BACKEND_DOCKER:
        return DockerNodeProcess(options, **kwargs)
    raise ConfigurationError(
        f"Unknown backend '{backend}'. Valid backends: {', '.join(VALID_BACKENDS)}"
    )


__all__ = [
    "BaseNodeProcess",
    "BinaryNodeProcess",
    "DockerNodeProcess",
    "create_node_process",
    "find_ganache_binary",
    "is_port_free",
]
