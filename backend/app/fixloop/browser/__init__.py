"""
Browser Module

Two interchangeable automation backends behind one controller:
a raw DevTools protocol client and a Playwright fallback.
"""

from .base import BackendKind, BrowserBackend, ErrorBuffer
from .cdp_client import CDPClient
from .playwright_client import PlaywrightClient
from .controller import BrowserController, BrowserInitializationError, ControllerState

__all__ = [
    "BackendKind",
    "BrowserBackend",
    "ErrorBuffer",
    "CDPClient",
    "PlaywrightClient",
    "BrowserController",
    "BrowserInitializationError",
    "ControllerState"
]
