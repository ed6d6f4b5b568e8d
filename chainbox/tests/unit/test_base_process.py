"""
Unit tests for the BaseNodeProcess status state machine.
"""

import socket
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from chainbox.commands.constants import DEFAULT_NODE_OPTIONS, NodeStatus
from chainbox.commands.errors import BindError, CloseError, ConfigurationError, RpcError
from chainbox.commands.managers.base import BaseNodeProcess, is_port_free


class StubBackend(BaseNodeProcess):
    """Backend whose liveness is controlled by the test."""

    def __init__(self, options=None, spawn_error=None, terminate_error=None):
        super().__init__(options or DEFAULT_NODE_OPTIONS)
        self.alive = False
        self.paused = False
        self.spawn_error = spawn_error
        self.terminate_error = terminate_error
        self.die_on_spawn = False
        self.discarded = False
        self.refresh_calls = 0

    async def _spawn(self, port):
        if self.spawn_error is not None:
            raise self.spawn_error
        self.alive = not self.die_on_spawn

    def _is_alive(self):
        return self.alive

    def _is_paused(self):
        return self.paused

    async def refresh(self):
        self.refresh_calls += 1

    async def _terminate(self):
        if self.terminate_error is not None:
            raise self.terminate_error
        self.alive = False

    async def _discard(self):
        self.discarded = True
        self.alive = False


@pytest.fixture
def rpc_provider():
    """Patch JsonRpcProvider in the base module and yield the instance mock."""
    provider = MagicMock()
    provider.request = AsyncMock(return_value="Ganache/v7.9.1/EthereumJS TestRPC")
    provider.close = AsyncMock()
    with patch(
        "chainbox.commands.managers.base.JsonRpcProvider", return_value=provider
    ):
        yield provider


@pytest.fixture
def free_port():
    with patch(
        "chainbox.commands.managers.base.is_port_free", return_value=True
    ) as mock_free:
        yield mock_free


class TestIsPortFree:
    """Tests for checking whether a port can be bound."""

    def test_listening_port_is_taken(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(("127.0.0.1", 0))
            server.listen()
            port = server.getsockname()[1]

            assert is_port_free(port) is False

        assert is_port_free(port) is True

    def test_check_sets_reuseaddr(self):
        with patch("chainbox.commands.managers.base.socket.socket") as mock_socket:
            sock = mock_socket.return_value.__enter__.return_value

            assert is_port_free(8545) is True

        sock.setsockopt.assert_called_once_with(
            socket.SOL_SOCKET, socket.SO_REUSEADDR, 1
        )
        sock.bind.assert_called_once_with(("127.0.0.1", 8545))


class TestListen:
    """Tests for BaseNodeProcess.listen."""

    @pytest.mark.asyncio
    async def test_listen_success(self, rpc_provider, free_port, no_sleep):
        node = StubBackend()

        await node.listen(8545)

        assert node.status == NodeStatus.STARTED
        assert node.port == 8545
        assert node.url == "http://127.0.0.1:8545"
        assert node.provider is rpc_provider
        rpc_provider.request.assert_awaited_with("web3_clientVersion")
        free_port.assert_called_once_with(8545)

    def test_initial_status(self):
        node = StubBackend()
        assert node.status == NodeStatus.STOPPED
        assert node.provider is None
        assert node.url is None

    @pytest.mark.asyncio
    async def test_port_in_use(self, rpc_provider, no_sleep):
        node = StubBackend()

        with patch("chainbox.commands.managers.base.is_port_free", return_value=False):
            with pytest.raises(BindError, match="already in use"):
                await node.listen(8545)

        assert node.status == NodeStatus.STOPPED
        assert node.alive is False

    @pytest.mark.asyncio
    async def test_listen_twice(self, rpc_provider, free_port, no_sleep):
        node = StubBackend()
        await node.listen(8545)

        with pytest.raises(BindError, match="already started"):
            await node.listen(8545)

    @pytest.mark.asyncio
    async def test_waits_until_rpc_answers(self, rpc_provider, free_port, no_sleep):
        rpc_provider.request.side_effect = [
            RpcError("refused"),
            RpcError("refused"),
            "Ganache/v7",
        ]
        node = StubBackend()

        await node.listen(8545)

        assert node.status == NodeStatus.STARTED
        assert rpc_provider.request.await_count == 3
        assert no_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_never_ready(self, rpc_provider, free_port, no_sleep):
        rpc_provider.request.side_effect = RpcError("refused")
        node = StubBackend()

        with pytest.raises(BindError, match="never answered"):
            await node.listen(8545)

        assert node.status == NodeStatus.STOPPED
        assert node.discarded is True
        rpc_provider.close.assert_awaited()

    @pytest.mark.asyncio
    async def test_backend_exits_during_start(self, rpc_provider, free_port, no_sleep):
        node = StubBackend()
        node.die_on_spawn = True

        with pytest.raises(BindError, match="exited"):
            await node.listen(8545)

        assert node.status == NodeStatus.STOPPED
        assert node.discarded is True
        rpc_provider.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_spawn_error_is_wrapped(self, rpc_provider, free_port, no_sleep):
        node = StubBackend(spawn_error=OSError("exec format error"))

        with pytest.raises(BindError) as exc_info:
            await node.listen(8545)

        assert isinstance(exc_info.value.__cause__, OSError)
        assert node.status == NodeStatus.STOPPED

    @pytest.mark.asyncio
    async def test_configuration_error_is_not_wrapped(
        self, rpc_provider, free_port, no_sleep
    ):
        node = StubBackend(spawn_error=ConfigurationError("ganache not found"))

        with pytest.raises(ConfigurationError):
            await node.listen(8545)

        assert node.status == NodeStatus.STOPPED


class TestStatus:
    """Tests for the live status property."""

    @pytest.mark.asyncio
    async def test_backend_death_reads_as_stopped(
        self, rpc_provider, free_port, no_sleep
    ):
        node = StubBackend()
        await node.listen(8545)

        node.alive = False

        assert node.status == NodeStatus.STOPPED
        assert node.provider is None

    @pytest.mark.asyncio
    async def test_paused(self, rpc_provider, free_port, no_sleep):
        node = StubBackend()
        await node.listen(8545)

        node.paused = True

        assert node.status == NodeStatus.PAUSED
        assert node.provider is rpc_provider


class TestClose:
    """Tests for BaseNodeProcess.close."""

    @pytest.mark.asyncio
    async def test_close_success(self, rpc_provider, free_port, no_sleep):
        node = StubBackend()
        await node.listen(8545)

        await node.close()

        assert node.status == NodeStatus.STOPPED
        rpc_provider.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_when_stopped_is_noop(self):
        node = StubBackend()
        await node.close()
        assert node.status == NodeStatus.STOPPED

    @pytest.mark.asyncio
    async def test_close_failure_leaves_stopping(
        self, rpc_provider, free_port, no_sleep
    ):
        node = StubBackend(terminate_error=TimeoutError("still running"))
        await node.listen(8545)

        with pytest.raises(CloseError) as exc_info:
            await node.close()

        assert exc_info.value.port == 8545
        assert node.status == NodeStatus.STOPPING
        rpc_provider.close.assert_awaited_once()
        assert node.provider is None

        node.alive = False
        assert node.status == NodeStatus.STOPPED

    @pytest.mark.asyncio
    async def test_close_error_passes_through(self, rpc_provider, free_port, no_sleep):
        error = CloseError("container stuck", port=8545)
        node = StubBackend(terminate_error=error)
        await node.listen(8545)

        with pytest.raises(CloseError) as exc_info:
            await node.close()

        assert exc_info.value is error


class TestRefresh:
    """Tests for when cached backend state is refreshed."""

    @pytest.mark.asyncio
    async def test_listen_and_close_refresh_first(
        self, rpc_provider, free_port, no_sleep
    ):
        node = StubBackend()

        await node.listen(8545)
        after_listen = node.refresh_calls
        await node.close()

        assert after_listen >= 2
        assert node.refresh_calls == after_listen + 1

    @pytest.mark.asyncio
    async def test_status_reads_do_not_refresh(self, rpc_provider, free_port, no_sleep):
        node = StubBackend()
        await node.listen(8545)
        calls = node.refresh_calls

        for _ in range(3):
            assert node.status == NodeStatus.STARTED

        assert node.refresh_calls == calls
