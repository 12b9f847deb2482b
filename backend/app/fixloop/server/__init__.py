"""
Server Module

Lifecycle of the development server hosting the application under test.
"""

from .dev_server import DevServerManager, DevServerStatus

__all__ = [
    "DevServerManager",
    "DevServerStatus"
]
