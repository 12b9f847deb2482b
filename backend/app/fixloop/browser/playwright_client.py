"""
Playwright Client

Fallback backend: launches its own Chromium through Playwright and listens
to page events for errors.
"""

import logging
from typing import Any, Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page

from .base import BackendKind, BrowserBackend, ErrorBuffer
from ..models import ConsoleError, NetworkError

logger = logging.getLogger(__name__)


class PlaywrightClient(BrowserBackend):
    """Higher-level automation client used when no debugging port is reachable."""

    kind = BackendKind.PLAYWRIGHT

    def __init__(self, timeout_ms: int = 30000, buffer: Optional[ErrorBuffer] = None):
        super().__init__(buffer)
        self.timeout_ms = timeout_ms
        self._playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    @property
    def is_connected(self) -> bool:
        return self.page is not None

    async def launch(self, headless: bool = True) -> None:
        """Start Playwright, launch Chromium and open a page."""
        try:
            self._playwright = await async_playwright().start()
            self.browser = await self._playwright.chromium.launch(headless=headless)
            self.context = await self.browser.new_context()
            self.page = await self.context.new_page()
            self.page.set_default_timeout(self.timeout_ms)
        except Exception:
            await self.close()
            raise

        self._setup_error_handling(self.page)
        logger.info(f"[PLAYWRIGHT] Chromium launched (headless={headless})")

    def _setup_error_handling(self, page: Page):
        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)
        page.on("requestfailed", self._on_request_failed)
        page.on("response", self._on_response)

    def _on_console(self, msg):
        msg_type = msg.type
        if msg_type not in ("error", "warning"):
            return

        location = msg.location or {}
        self.errors.push(ConsoleError(
            message=msg.text,
            level=msg_type,
            source=location.get("url") or None,
            line=location.get("lineNumber"),
            column=location.get("columnNumber"),
        ))

    def _on_page_error(self, error):
        self.errors.push(ConsoleError(
            message=getattr(error, "message", None) or str(error),
            stack=getattr(error, "stack", None),
            level="error",
        ))

    def _on_request_failed(self, request):
        failure = request.failure or "Unknown error"
        self.errors.push(NetworkError(
            message=f"Network request failed: {failure}",
            request_url=request.url,
            method=request.method,
            context={"failure": failure, "resourceType": request.resource_type},
        ))

    def _on_response(self, response):
        status = response.status
        if status < 400:
            return

        self.errors.push(NetworkError(
            message=f"Network error: {status} {response.status_text}".rstrip(),
            status=status,
            status_text=response.status_text,
            method=response.request.method,
            request_url=response.url,
        ))

    # ==================== Contract ====================

    async def navigate(self, url: str) -> None:
        if not self.page:
            raise RuntimeError("Playwright page not initialized")

        self.errors.clear()
        await self.page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if not self.page:
            raise RuntimeError("Playwright page not initialized")

        if arg is None:
            return await self.page.evaluate(expression)
        return await self.page.evaluate(expression, arg)

    def get_page(self) -> Optional[Page]:
        return self.page

    async def close(self) -> None:
        try:
            if self.context:
                await self.context.close()
            if self.browser:
                await self.browser.close()
            if self._playwright:
                await self._playwright.stop()
        except Exception as e:
            logger.warning(f"[PLAYWRIGHT] Error during cleanup: {e}")
        finally:
            self.context = None
            self.browser = None
            self.page = None
            self._playwright = None
