"""
Unit tests for JsonRpcProvider.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from chainbox.commands.errors import RpcError
from chainbox.commands.provider import JsonRpcProvider

URL = "http://127.0.0.1:8545"


def mock_session(body=None, json_error=None, enter_error=None):
    """Build a session whose post() yields a response with the given JSON body."""
    response = MagicMock()
    response.json = AsyncMock(return_value=body, side_effect=json_error)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response, side_effect=enter_error)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.post.return_value = context
    return session


class TestRequest:
    """Tests for JsonRpcProvider.request."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        provider = JsonRpcProvider(URL)
        session = mock_session({"jsonrpc": "2.0", "id": 1, "result": ["0xabc"]})

        with patch.object(provider, "_get_session", AsyncMock(return_value=session)):
            result = await provider.request("eth_accounts")

        assert result == ["0xabc"]
        args, kwargs = session.post.call_args
        assert args == (URL,)
        assert kwargs["json"] == {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_accounts",
            "params": [],
        }

    @pytest.mark.asyncio
    async def test_ids_increase_and_params_are_sent(self):
        provider = JsonRpcProvider(URL)
        session = mock_session({"result": "0x0"})

        with patch.object(provider, "_get_session", AsyncMock(return_value=session)):
            await provider.request("eth_blockNumber")
            await provider.request("eth_getBalance", ["0xabc", "latest"])

        payloads = [c.kwargs["json"] for c in session.post.call_args_list]
        assert [p["id"] for p in payloads] == [1, 2]
        assert payloads[1]["params"] == ["0xabc", "latest"]

    @pytest.mark.asyncio
    async def test_error_object_raises(self):
        provider = JsonRpcProvider(URL)
        session = mock_session(
            {"id": 1, "error": {"code": -32601, "message": "Method not found"}}
        )

        with patch.object(provider, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(RpcError) as exc_info:
                await provider.request("eth_nope")

        assert exc_info.value.rpc_code == -32601
        assert exc_info.value.method == "eth_nope"
        assert "Method not found" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_object_body_raises(self):
        provider = JsonRpcProvider(URL)
        session = mock_session(["not", "an", "object"])

        with patch.object(provider, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(RpcError, match="unexpected response"):
                await provider.request("eth_accounts")

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        provider = JsonRpcProvider(URL)
        session = mock_session(json_error=ValueError("Expecting value"))

        with patch.object(provider, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(RpcError, match="invalid response"):
                await provider.request("eth_accounts")

    @pytest.mark.asyncio
    async def test_connection_error_raises(self):
        provider = JsonRpcProvider(URL)
        session = mock_session()
        session.post.side_effect = aiohttp.ClientConnectionError("refused")

        with patch.object(provider, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(RpcError) as exc_info:
                await provider.request("web3_clientVersion")

        assert exc_info.value.url == URL
        assert isinstance(exc_info.value.__cause__, aiohttp.ClientConnectionError)

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        provider = JsonRpcProvider(URL)
        session = mock_session(enter_error=asyncio.TimeoutError())

        with patch.object(provider, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(RpcError, match="timed out"):
                await provider.request("eth_accounts")


class TestClose:
    """Tests for releasing the HTTP session."""

    @pytest.mark.asyncio
    async def test_close_releases_session(self):
        provider = JsonRpcProvider(URL)
        session = MagicMock(closed=False)
        session.close = AsyncMock()
        provider._session = session

        await provider.close()

        session.close.assert_awaited_once()
        assert provider._session is None

    @pytest.mark.asyncio
    async def test_close_without_session(self):
        provider = JsonRpcProvider(URL)
        await provider.close()
        assert provider._session is None

    @pytest.mark.asyncio
    async def test_session_created_lazily(self):
        provider = JsonRpcProvider(URL)
        assert provider._session is None

        session = await provider._get_session()
        try:
            assert isinstance(session, aiohttp.ClientSession)
            assert await provider._get_session() is session
        finally:
            await provider.close()
