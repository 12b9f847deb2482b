"""
Detection Module

Turns the browser's buffered error signals into a single ErrorCollection.
"""

from .error_detector import ErrorDetector, REACT_ERROR_PROBE

__all__ = [
    "ErrorDetector",
    "REACT_ERROR_PROBE"
]
