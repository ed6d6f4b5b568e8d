"""
JSON-RPC provider for talking to a local node over HTTP.
"""

import asyncio
import itertools
import logging
from typing import Any, Optional

import aiohttp

from chainbox.commands.constants import (
    DEFAULT_CONNECTION_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    JSONRPC_VERSION,
)
from chainbox.commands.errors import RpcError

logger = logging.getLogger(__name__)


class JsonRpcProvider:
    """Sends JSON-RPC 2.0 requests to a node endpoint.

    The aiohttp session is created on first use and released by close().
    A closed provider opens a fresh session on its next request.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_READ_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECTION_TIMEOUT,
    ):
        self.url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout, connect=connect_timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)

    def __repr__(self) -> str:
        return f"JsonRpcProvider({self.url!r})"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                cookie_jar=aiohttp.DummyCookieJar(),
            )
        return self._session

    async def request(self, method: str, params: Optional[list] = None) -> Any:
        """
        Send a JSON-RPC request and return its result member.

        Args:
            method: JSON-RPC method name (e.g. "eth_accounts")
            params: Positional parameters, [] when omitted

        Raises:
            RpcError: On transport failure, timeout, a non-JSON body or a
                JSON-RPC error response
        """
        payload = {
            "jsonrpc": JSONRPC_VERSION,
            "id": next(self._ids),
            "method": method,
            "params": params if params is not None else [],
        }
        logger.debug("-> %s %s", self.url, payload)

        session = await self._get_session()
        try:
            async with session.post(
                self.url, json=payload, timeout=self._timeout
            ) as response:
                body = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise RpcError(
                f"Request {method} to {self.url} failed: {e}",
                method=method,
                url=self.url,
            ) from e
        except asyncio.TimeoutError as e:
            raise RpcError(
                f"Request {method} to {self.url} timed out",
                method=method,
                url=self.url,
            ) from e
        except ValueError as e:
            raise RpcError(
                f"Node at {self.url} returned an invalid response to {method}",
                method=method,
                url=self.url,
            ) from e

        logger.debug("<- %s %s", self.url, body)

        if not isinstance(body, dict):
            raise RpcError(
                f"Node at {self.url} returned an unexpected response to {method}",
                method=method,
                url=self.url,
            )

        error = body.get("error")
        if error:
            if isinstance(error, dict):
                message = error.get("message", "Unknown error")
                rpc_code = error.get("code")
            else:
                message, rpc_code = str(error), None
            raise RpcError(
                f"{method} failed: {message}",
                method=method,
                url=self.url,
                rpc_code=rpc_code,
            )

        return body.get("result")

    async def close(self) -> None:
        """Close the underlying HTTP session, if any."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
