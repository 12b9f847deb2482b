"""
Error Detector

Aggregates everything the browser reported into one ErrorCollection:
console and network errors from the backend's buffer, UI errors pushed by
interactions, and React error boundaries found by probing the DOM.
"""

import asyncio
import logging
import time
from typing import List

from ..models import (
    BrowserErrorBase, ConsoleError, ErrorCollection, NetworkError,
    ReactError, UIError, ErrorType
)

logger = logging.getLogger(__name__)


# Only the error-boundary markers in the DOM are inspected; framework
# internals change between React versions.
REACT_ERROR_PROBE = """
() => {
    const errors = [];
    document.querySelectorAll('[data-react-error-boundary]').forEach(boundary => {
        const text = (boundary.textContent || '').trim();
        if (text.includes('Error') || text.includes('Something went wrong')) {
            errors.push({
                message: text.substring(0, 2000),
                errorBoundary: boundary.getAttribute('data-react-error-boundary') || null
            });
        }
    });
    return errors;
}
"""

POLL_INTERVAL_MS = 500


class ErrorDetector:
    """Builds one ErrorCollection per verification pass."""

    def __init__(self, browser):
        """
        Args:
            browser: BrowserController (or any object with capture_errors/evaluate)
        """
        self.browser = browser

    async def detect_all_errors(self) -> ErrorCollection:
        """Drain the buffer once, probe for React errors, and combine by type."""
        grouped = self.partition(await self.browser.capture_errors())
        grouped[ErrorType.REACT.value].extend(await self.detect_react_errors())

        return ErrorCollection.from_errors(
            grouped[ErrorType.CONSOLE.value]
            + grouped[ErrorType.NETWORK.value]
            + grouped[ErrorType.REACT.value]
            + grouped[ErrorType.UI.value]
        )

    async def detect_console_errors(self) -> List[ConsoleError]:
        errors = await self.browser.capture_errors()
        return [e for e in errors if isinstance(e, ConsoleError)]

    async def detect_network_errors(self) -> List[NetworkError]:
        errors = await self.browser.capture_errors()
        return [e for e in errors if isinstance(e, NetworkError)]

    async def detect_ui_errors(self) -> List[UIError]:
        errors = await self.browser.capture_errors()
        return [e for e in errors if isinstance(e, UIError)]

    async def detect_react_errors(self) -> List[ReactError]:
        """Best-effort probe; any failure counts as no errors found."""
        try:
            found = await self.browser.evaluate(REACT_ERROR_PROBE)
            if not isinstance(found, list):
                return []
            return [
                ReactError(
                    message=item.get("message") or "React component error",
                    error_boundary=item.get("errorBoundary"),
                    component_stack=item.get("componentStack"),
                )
                for item in found
                if isinstance(item, dict)
            ]
        except Exception as e:
            logger.debug(f"React error probe failed: {e}")
            return []

    async def wait_for_errors(self, timeout: int = 5000) -> ErrorCollection:
        """
        Poll until a pass comes back clean or the timeout elapses.

        Returns the last non-empty collection seen, or an empty one.
        """
        deadline = time.monotonic() + timeout / 1000
        last_collection = ErrorCollection.empty()

        while time.monotonic() < deadline:
            collection = await self.detect_all_errors()
            if not collection.has_errors:
                break
            last_collection = collection
            await asyncio.sleep(POLL_INTERVAL_MS / 1000)

        return last_collection

    @staticmethod
    def partition(errors: List[BrowserErrorBase]) -> dict:
        """Group errors by their type tag, keeping arrival order within each."""
        grouped = {t.value: [] for t in ErrorType}
        for error in errors:
            grouped.setdefault(error.type, []).append(error)
        return grouped
