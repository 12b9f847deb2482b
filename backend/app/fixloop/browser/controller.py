"""
Browser Controller

Picks a backend once (CDP first, Playwright as fallback) and forwards every
call to it for the life of the session.
"""

import logging
from enum import Enum
from typing import Any, List, Optional

from .base import BackendKind, BrowserBackend
from .cdp_client import CDPClient
from .playwright_client import PlaywrightClient
from ..config import BrowserConfig
from ..models import BrowserErrorBase

logger = logging.getLogger(__name__)


class BrowserInitializationError(RuntimeError):
    """Neither backend could be brought up."""


class ControllerState(Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTED = "connected"
    CLOSED = "closed"


class BrowserController:
    """
    Single shared browser session.

    The backend choice made by initialize() is never revisited; callers
    dispatch through the stored backend.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self.state = ControllerState.UNINITIALIZED
        self.kind: Optional[BackendKind] = None
        self._backend: Optional[BrowserBackend] = None

    def _create_cdp_client(self) -> CDPClient:
        return CDPClient(
            host=self.config.cdp_host,
            port=self.config.cdp_port,
            timeout_ms=self.config.timeout_ms
        )

    def _create_playwright_client(self) -> PlaywrightClient:
        return PlaywrightClient(timeout_ms=self.config.timeout_ms)

    async def initialize(self) -> BackendKind:
        if self.state == ControllerState.CLOSED:
            raise RuntimeError("Browser controller is closed")
        if self.state == ControllerState.CONNECTED:
            return self.kind

        try:
            cdp = self._create_cdp_client()
            await cdp.connect()
            self._backend = cdp
        except Exception as cdp_error:
            logger.warning(f"CDP connection failed, falling back to Playwright: {cdp_error}")
            playwright = self._create_playwright_client()
            try:
                await playwright.launch(headless=self.config.headless)
            except Exception as launch_error:
                raise BrowserInitializationError(
                    f"CDP connection failed ({cdp_error}) and Playwright launch failed ({launch_error})"
                ) from launch_error
            self._backend = playwright

        self.kind = self._backend.kind
        self.state = ControllerState.CONNECTED
        logger.info(f"Browser session ready using {self.kind.value} backend")
        return self.kind

    @property
    def is_initialized(self) -> bool:
        return self.state == ControllerState.CONNECTED and self._backend is not None

    def _require_backend(self) -> BrowserBackend:
        if not self.is_initialized:
            raise RuntimeError("Browser not initialized")
        return self._backend

    async def navigate(self, url: str) -> None:
        backend = self._require_backend()
        logger.info(f"Navigating to {url}")
        await backend.navigate(url)

    async def capture_errors(self) -> List[BrowserErrorBase]:
        if not self.is_initialized:
            return []
        return await self._backend.capture_errors()

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await self._require_backend().evaluate(expression, arg)

    def get_page(self):
        if not self.is_initialized:
            return None
        return self._backend.get_page()

    async def close(self) -> None:
        if self.state == ControllerState.CLOSED:
            return
        backend, self._backend = self._backend, None
        self.state = ControllerState.CLOSED
        if backend:
            await backend.close()
            logger.info("Browser closed")
