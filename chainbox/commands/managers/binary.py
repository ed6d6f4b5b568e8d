"""
BinaryNodeProcess - Runs Ganache as a native child process (no Docker).
"""

import asyncio
import os
import shutil
from pathlib import Path
from typing import IO, Any, Optional

from rich.console import Console

from chainbox.commands.config_utils import build_ganache_args
from chainbox.commands.constants import (
    DEFAULT_LOG_DIR,
    ENV_GANACHE_BINARY,
    ENV_LOG_DIR,
    GANACHE_BINARY_NAME,
    PROCESS_WAIT_TIMEOUT,
)
from chainbox.commands.errors import CloseError, ConfigurationError
from chainbox.commands.managers.base import BaseNodeProcess

console = Console()


def find_ganache_binary(binary_path: Optional[str] = None) -> str:
    """Find the ganache executable.

    Search order: explicit path, CHAINBOX_GANACHE_BINARY, PATH, then common
    install locations.

    Raises:
        ConfigurationError: If no executable is found
    """
    candidates = [binary_path, os.getenv(ENV_GANACHE_BINARY)]
    for candidate in candidates:
        if candidate and os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
        if candidate:
            console.print(
                f"[yellow]Warning: ganache binary not found at {candidate!r}, searching PATH[/yellow]"
            )

    binary = shutil.which(GANACHE_BINARY_NAME)
    if binary:
        return binary

    common_paths = [
        "./node_modules/.bin/ganache",
        "/usr/local/bin/ganache",
        "/usr/bin/ganache",
        os.path.expanduser("~/.npm-global/bin/ganache"),
    ]
    for path in common_paths:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path

    raise ConfigurationError(
        "ganache binary not found. Install it with 'npm install -g ganache' "
        f"or set {ENV_GANACHE_BINARY}"
    )


class BinaryNodeProcess(BaseNodeProcess):
    """Manages one Ganache node as a native asyncio subprocess."""

    def __init__(
        self,
        options: dict[str, Any],
        binary_path: Optional[str] = None,
        log_dir: Optional[str] = None,
    ):
        """
        Args:
            options: Merged node options passed to Ganache
            binary_path: Path to the ganache executable. If None, searched for.
            log_dir: Directory for node logs (defaults to CHAINBOX_LOG_DIR or ./data/logs)
        """
        super().__init__(options)
        self.binary_path = find_ganache_binary(binary_path or options.get("binary_path"))
        self.log_dir = Path(log_dir or os.getenv(ENV_LOG_DIR, DEFAULT_LOG_DIR))
        self.process: Optional[asyncio.subprocess.Process] = None
        self._log_file: Optional[IO] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    async def _spawn(self, port: int) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.log_dir / f"ganache-{port}.log"
        self._log_file = open(log_path, "a", encoding="utf-8")

        cmd = [self.binary_path, *build_ganache_args({**self.options, "port": port})]
        console.print(f"[cyan]  Binary: {self.binary_path}[/cyan]")
        console.print(f"[cyan]  Log file: {log_path}[/cyan]")

        self.process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=self._log_file,
            stderr=asyncio.subprocess.STDOUT,
        )
        console.print(f"[cyan]  PID: {self.process.pid}[/cyan]")

    def _is_alive(self) -> bool:
        return self.process is not None and self.process.returncode is None

    def _close_log(self) -> None:
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None

    async def _terminate(self) -> None:
        if not self._is_alive():
            self._close_log()
            return

        self.process.terminate()
        try:
            await asyncio.wait_for(self.process.wait(), timeout=PROCESS_WAIT_TIMEOUT)
        except asyncio.TimeoutError:
            console.print(f"[yellow]Force killing node on port {self.port}...[/yellow]")
            self.process.kill()
            self._close_log()
            raise CloseError(
                f"Node on port {self.port} did not exit within {PROCESS_WAIT_TIMEOUT}s",
                port=self.port,
            ) from None
        self._close_log()

    async def _discard(self) -> None:
        if self._is_alive():
            self.process.kill()
            await self.process.wait()
        self._close_log()
