"""
Constants and configuration values used across the chainbox codebase.
"""

from enum import Enum


class NodeStatus(Enum):
    """Lifecycle states reported by a node process handle.

    Values mirror Ganache's internal status flags, but states are always
    compared one at a time and never combined.
    """

    STARTED = 1
    STARTING = 2
    STOPPED = 4
    STOPPING = 8
    PAUSED = 16


# States in which a node still holds its port
ACTIVE_STATUSES = frozenset({NodeStatus.STARTING, NodeStatus.STARTED})

# Network ports
DEFAULT_RPC_PORT = 8545
CONTAINER_RPC_PORT = 8545
RPC_PORT_BINDING = f"{CONTAINER_RPC_PORT}/tcp"
LOCALHOST = "127.0.0.1"

# Default node options (caller-supplied values win)
DEFAULT_MNEMONIC = (
    "phrase upgrade clock rough situate wedding elder clever doctor stamp excess tent"
)
DEFAULT_NODE_OPTIONS = {
    "block_time": 2,
    "network_id": 1337,
    "mnemonic": DEFAULT_MNEMONIC,
    "port": DEFAULT_RPC_PORT,
    "vm_errors_on_rpc_response": False,
    "hardfork": "muirGlacier",
    "quiet": True,
}

# Ganache CLI flags for the known node options
GANACHE_OPTION_FLAGS = {
    "block_time": "--miner.blockTime",
    "network_id": "--chain.networkId",
    "mnemonic": "--wallet.mnemonic",
    "port": "--server.port",
    "host": "--server.host",
    "vm_errors_on_rpc_response": "--chain.vmErrorsOnRPCResponse",
    "hardfork": "--chain.hardfork",
    "quiet": "--logging.quiet",
}

# Backends
BACKEND_BINARY = "binary"
BACKEND_DOCKER = "docker"
VALID_BACKENDS = (BACKEND_BINARY, BACKEND_DOCKER)
DEFAULT_BACKEND = BACKEND_BINARY

# Binary backend
GANACHE_BINARY_NAME = "ganache"
DEFAULT_LOG_DIR = "./data/logs"

# Docker backend
DEFAULT_IMAGE = "trufflesuite/ganache:latest"
DEFAULT_CONTAINER_PREFIX = "chainbox-ganache"
CONTAINER_LABEL = "chainbox.node"

# Environment overrides
ENV_GANACHE_BINARY = "CHAINBOX_GANACHE_BINARY"
ENV_IMAGE = "CHAINBOX_IMAGE"
ENV_LOG_DIR = "CHAINBOX_LOG_DIR"

# Retry configuration
DEFAULT_REJECTION_MESSAGE = "Retry limit reached"
START_RETRIES = 2
START_RETRY_DELAY = 1.0  # seconds
STOP_POLL_RETRIES = 5
STOP_POLL_DELAY = 1.0  # seconds

# Process and container management timeouts
PROCESS_WAIT_TIMEOUT = 5  # seconds
CONTAINER_STOP_TIMEOUT = 10  # seconds
RPC_READY_RETRIES = 50
RPC_POLL_INTERVAL = 0.2  # seconds between RPC readiness checks

# HTTP timeouts
DEFAULT_CONNECTION_TIMEOUT = 10.0  # seconds
DEFAULT_READ_TIMEOUT = 30.0  # seconds

# JSON-RPC method names
JSONRPC_VERSION = "2.0"
METHOD_ACCOUNTS = "eth_accounts"
METHOD_GET_BALANCE = "eth_getBalance"
METHOD_CLIENT_VERSION = "web3_clientVersion"

# Balance formatting
WEI_PER_ETHER = 10**18
BALANCE_DECIMAL_PLACES = 4

# Error messages
ERROR_NODE_NOT_RUNNING = "Node on port {port} is not running"
ERROR_PORT_IN_USE = "Port {port} is already in use"
ERROR_INVALID_PORT = "Port must be between 1 and 65535"
