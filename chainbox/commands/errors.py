"""
Typed error classes for chainbox.

This module provides the error hierarchy used by the node manager:
- ChainboxError: Base exception for all chainbox errors
- RetryExhaustedError: A retried operation never reached its goal
- NodeError: Errors tied to a node on a port (bind, close, not running)
- RpcError: JSON-RPC request failures
- ValidationError: Input validation errors
- ConfigurationError: Environment or configuration problems
"""

from typing import Any, Optional


class ChainboxError(Exception):
    """Base exception class for all chainbox errors.

    Attributes:
        message: Human-readable error message
        code: Optional error code for programmatic handling
        details: Optional dictionary with additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a dictionary for serialization."""
        result: dict[str, Any] = {
            "type": self.__class__.__name__,
            "message": self.message,
        }
        if self.code:
            result["code"] = self.code
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class RetryExhaustedError(ChainboxError):
    """Raised when a retry policy runs out of attempts.

    The message is the policy's rejection message. In inverted mode this
    means the operation never failed within the budget.
    """

    def __init__(
        self,
        message: str,
        attempts: Optional[int] = None,
        last_error: Optional[BaseException] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.attempts = attempts
        self.last_error = last_error
        details = details or {}
        if attempts is not None:
            details["attempts"] = attempts
        if last_error is not None:
            details["last_error"] = repr(last_error)
        super().__init__(message, code="RETRY_EXHAUSTED", details=details)


class NodeError(ChainboxError):
    """Errors related to a node bound to a port.

    Raised when:
    - The node cannot bind or listen on its port
    - The node fails to shut down
    - An operation needs a running node and there is none
    """

    def __init__(
        self,
        message: str,
        port: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.port = port
        details = details or {}
        if port is not None:
            details["port"] = port
        super().__init__(message, code=code, details=details)


class BindError(NodeError):
    """Raised when the node process cannot bind or listen on its port."""

    def __init__(
        self,
        message: str,
        port: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, port=port, code="BIND_FAILED", details=details)


class CloseError(NodeError):
    """Raised when the node process fails to close."""

    def __init__(
        self,
        message: str,
        port: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, port=port, code="CLOSE_FAILED", details=details)


class NotRunningError(NodeError):
    """Raised when an operation needs a started node but none is available."""

    def __init__(
        self,
        message: str,
        port: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, port=port, code="NODE_NOT_RUNNING", details=details)


class RpcError(ChainboxError):
    """JSON-RPC communication errors.

    Raised when:
    - The HTTP request to the node fails or times out
    - The node answers with something that is not JSON
    - The node answers with a JSON-RPC error object
    """

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        url: Optional[str] = None,
        rpc_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.method = method
        self.url = url
        self.rpc_code = rpc_code
        details = details or {}
        if method:
            details["method"] = method
        if url:
            details["url"] = url
        if rpc_code is not None:
            details["rpc_code"] = rpc_code
        super().__init__(message, code="RPC_FAILED", details=details)


class ValidationError(ChainboxError):
    """Input validation errors.

    Raised when:
    - Function arguments are invalid
    - Configuration values are out of range
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.field = field
        self.value = value
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        super().__init__(message, code=code or "VALIDATION_FAILED", details=details)


class ConfigurationError(ChainboxError):
    """Configuration-related errors.

    Raised when:
    - An option file is missing or malformed
    - The ganache binary or Docker daemon cannot be found
    - An unknown backend is requested
    """

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.config_file = config_file
        details = details or {}
        if config_file:
            details["config_file"] = config_file
        super().__init__(message, code=code or "CONFIGURATION_ERROR", details=details)


__all__ = [
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
