"""
Remediation Module

Fix generation, best-effort application, and the bounded retry loop.
"""

from .fix_generator import (
    FixGenerator,
    LLMFixGenerator,
    AIProvider,
    format_errors_for_analysis
)
from .fix_applier import FixApplier, FixApplication
from .integration import FixCoordinator, NO_FIX_MESSAGE, APPLY_FAILED_MESSAGE
from .loop import RemediationLoop

__all__ = [
    "FixGenerator",
    "LLMFixGenerator",
    "AIProvider",
    "format_errors_for_analysis",
    "FixApplier",
    "FixApplication",
    "FixCoordinator",
    "NO_FIX_MESSAGE",
    "APPLY_FAILED_MESSAGE",
    "RemediationLoop"
]
