"""Pytest configuration for chainbox tests.

Provides in-memory stand-ins for node process handles so the registry and
instance logic can be exercised without ganache or Docker.
"""

from unittest.mock import AsyncMock, patch

import pytest

from chainbox.commands.constants import NodeStatus

TEST_ACCOUNTS = [
    "0x5cfe73b6021e818b776b421b1c4db2474086a7e1",
    "0x7d4c8e6c8a5e0fd7a5a9bfb3a3e9a8d2c1b0a9f8",
]
ONE_ETHER_HEX = hex(10**18)


class FakeProvider:
    """Records JSON-RPC calls and answers from a method -> result table."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def request(self, method, params=None):
        self.calls.append((method, params))
        response = self.responses.get(method)
        if isinstance(response, Exception):
            raise response
        return response


class FakeNodeProcess:
    """Process handle double with a settable status."""

    def __init__(self, options, listen_error=None, close_error=None, responses=None):
        self.options = dict(options)
        self.port = None
        self.status = NodeStatus.STOPPED
        self.listen_error = listen_error
        self.close_error = close_error
        self.listen_calls = []
        self.close_calls = 0
        self.refresh_calls = 0
        self._provider = FakeProvider(responses)

    @property
    def provider(self):
        if self.status == NodeStatus.STOPPED:
            return None
        return self._provider

    @property
    def url(self):
        return f"http://127.0.0.1:{self.port}"

    async def refresh(self):
        self.refresh_calls += 1

    async def listen(self, port):
        self.listen_calls.append(port)
        self.port = port
        if self.listen_error is not None:
            raise self.listen_error
        self.status = NodeStatus.STARTED

    async def close(self):
        self.close_calls += 1
        if self.close_error is not None:
            self.status = NodeStatus.STOPPING
            raise self.close_error
        self.status = NodeStatus.STOPPED


class FakeProcessFactory:
    """Creates FakeNodeProcess objects and remembers them.

    listen_errors is consumed one entry per created process; None means the
    process starts cleanly.
    """

    def __init__(self, listen_errors=None, close_error=None, responses=None):
        self.listen_errors = list(listen_errors or [])
        self.close_error = close_error
        self.responses = (
            responses
            if responses is not None
            else {
                "eth_accounts": TEST_ACCOUNTS,
                "eth_getBalance": ONE_ETHER_HEX,
            }
        )
        self.created = []

    def __call__(self, options, **kwargs):
        listen_error = self.listen_errors.pop(0) if self.listen_errors else None
        process = FakeNodeProcess(
            options,
            listen_error=listen_error,
            close_error=self.close_error,
            responses=self.responses,
        )
        self.created.append(process)
        return process


@pytest.fixture
def process_factory():
    """A fresh FakeProcessFactory with default responses."""
    return FakeProcessFactory()


@pytest.fixture
def no_sleep():
    """Replace asyncio.sleep in the retry module and expose the mock."""
    with patch(
        "chainbox.commands.retry.asyncio.sleep", new_callable=AsyncMock
    ) as mock_sleep:
        yield mock_sleep
