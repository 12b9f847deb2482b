"""
Runner Module

UI rule validation and the per-feature verification pass.
"""

from .validator import UIValidator, InteractionOutcome, UIValidationResult
from .test_runner import TestRunner

__all__ = [
    "UIValidator",
    "InteractionOutcome",
    "UIValidationResult",
    "TestRunner"
]
