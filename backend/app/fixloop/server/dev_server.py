"""
Dev Server Manager

Makes sure the application under test is reachable: probes it, starts it
with the configured command if needed, and waits until it answers.
"""

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional, Union

import httpx

from ..config import DevServerConfig

logger = logging.getLogger(__name__)


@dataclass
class DevServerStatus:
    is_running: bool
    url: str
    port: int
    pid: Optional[int] = None


class DevServerManager:
    """Owns at most one dev server process per run."""

    PROBE_TIMEOUT_SECONDS = 2.0

    def __init__(self, config: Optional[DevServerConfig] = None, cwd: Optional[Union[str, Path]] = None):
        self.config = config or DevServerConfig()
        self.cwd = str(cwd) if cwd else None
        self.process: Optional[asyncio.subprocess.Process] = None
        self._tasks: List[asyncio.Task] = []
        self.status = DevServerStatus(is_running=False, url=self.config.url, port=self.config.port)

    async def check_server_status(self) -> bool:
        """HEAD the configured URL with a short timeout."""
        try:
            async with httpx.AsyncClient(timeout=self.PROBE_TIMEOUT_SECONDS, follow_redirects=True) as client:
                response = await client.head(self.config.url)
            self.status.is_running = response.is_success
        except httpx.HTTPError:
            self.status.is_running = False
        return self.status.is_running

    async def ensure_server_running(self) -> DevServerStatus:
        if await self.check_server_status():
            return self.get_status()

        await self.start_server()
        await self.wait_for_server()
        return self.get_status()

    async def start_server(self) -> None:
        if self.process and self.process.returncode is None:
            return

        logger.info(f"[Dev Server] Starting: {self.config.start_command}")
        self.process = await asyncio.create_subprocess_shell(
            self.config.start_command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.cwd
        )
        self.status.pid = self.process.pid

        self._tasks = [
            asyncio.create_task(self._relay(self.process.stdout, logging.INFO)),
            asyncio.create_task(self._relay(self.process.stderr, logging.WARNING)),
            asyncio.create_task(self._watch_exit(self.process)),
        ]

    async def _relay(self, stream: Optional[asyncio.StreamReader], level: int):
        if stream is None:
            return
        async for raw in stream:
            line = raw.decode(errors="replace").rstrip()
            if line:
                logger.log(level, f"[Dev Server] {line}")

    async def _watch_exit(self, process: asyncio.subprocess.Process):
        code = await process.wait()
        logger.info(f"[Dev Server] Process exited with code {code}")
        if self.process is process:
            self.process = None
            self.status.is_running = False
            self.status.pid = None

    async def wait_for_server(self, max_wait_ms: Optional[int] = None) -> None:
        max_wait_ms = max_wait_ms or self.config.startup_timeout_ms
        deadline = time.monotonic() + max_wait_ms / 1000

        while time.monotonic() < deadline:
            if await self.check_server_status():
                logger.info(f"[Dev Server] Ready at {self.config.url}")
                return
            await asyncio.sleep(self.config.poll_interval_ms / 1000)

        raise TimeoutError(f"Dev server did not start within {max_wait_ms}ms")

    async def stop_server(self) -> None:
        process, self.process = self.process, None
        if process and process.returncode is None:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=10)
            except asyncio.TimeoutError:
                logger.warning("[Dev Server] Did not exit after terminate, killing")
                process.kill()
                await process.wait()

        for task in self._tasks:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        self.status.is_running = False
        self.status.pid = None

    def get_status(self) -> DevServerStatus:
        return replace(self.status)
