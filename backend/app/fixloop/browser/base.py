"""
Browser Backend Contract

Common interface for the two browser automation backends, plus the bounded
buffer their error channels feed.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, List, Optional

from ..models import BrowserErrorBase

logger = logging.getLogger(__name__)


class BackendKind(Enum):
    """Which backend a controller settled on"""
    CDP = "cdp"
    PLAYWRIGHT = "playwright"


class ErrorBuffer:
    """
    Bounded queue of errors captured from the page.

    Channel callbacks push; the aggregator drains. When the buffer is full
    the oldest error is dropped.
    """

    DEFAULT_MAX_SIZE = 1000

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self.dropped = 0

    def push(self, error: BrowserErrorBase) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning(f"Error buffer full, dropped oldest entry ({self.dropped} dropped so far)")
        self._queue.put_nowait(error)

    def drain(self) -> List[BrowserErrorBase]:
        """Return everything buffered so far, in arrival order, and empty the buffer."""
        errors = []
        while not self._queue.empty():
            errors.append(self._queue.get_nowait())
        return errors

    def clear(self) -> None:
        self.drain()

    def __len__(self) -> int:
        return self._queue.qsize()


class BrowserBackend(ABC):
    """Contract shared by the CDP client and the Playwright client."""

    kind: BackendKind

    def __init__(self, buffer: Optional[ErrorBuffer] = None):
        self.errors = buffer or ErrorBuffer()

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Clear buffered errors, navigate, and wait for the page to finish loading."""

    async def capture_errors(self) -> List[BrowserErrorBase]:
        """Drain errors captured since the last call or navigation."""
        return self.errors.drain()

    @abstractmethod
    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        """
        Run script in the page and return its JSON-serializable result.

        A function expression is called, the same way on both backends.
        With ``arg``, ``expression`` must be a function; it is called with
        ``arg`` passed as data, never spliced into the source.
        """

    @abstractmethod
    async def close(self) -> None:
        ...

    def get_page(self):
        """Underlying Playwright page, when there is one."""
        return None
