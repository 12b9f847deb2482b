"""
fixloop

Browser-driven feature verification with an automatic fix-and-retest loop:
- Drives a page through a DevTools protocol client, or Playwright as fallback
- Collects console, network, React and UI interaction errors per pass
- Runs declarative UI rules against the page
- Feeds failures to a fix generator and retries up to an iteration cap
"""

from .config import AppConfig, load_config
from .models import (
    ErrorCollection,
    ConsoleError,
    NetworkError,
    ReactError,
    UIError,
    ValidationRule,
    RuleAction,
    FeatureTest,
    TestResult
)
from .browser import BrowserController, BackendKind, BrowserInitializationError
from .detection import ErrorDetector
from .runner import UIValidator, TestRunner
from .remediation import FixCoordinator, FixApplier, LLMFixGenerator, RemediationLoop
from .service import DebuggingService

__all__ = [
    # Config
    "AppConfig",
    "load_config",
    # Models
    "ErrorCollection",
    "ConsoleError",
    "NetworkError",
    "ReactError",
    "UIError",
    "ValidationRule",
    "RuleAction",
    "FeatureTest",
    "TestResult",
    # Browser
    "BrowserController",
    "BackendKind",
    "BrowserInitializationError",
    # Verification
    "ErrorDetector",
    "UIValidator",
    "TestRunner",
    # Remediation
    "FixCoordinator",
    "FixApplier",
    "LLMFixGenerator",
    "RemediationLoop",
    "DebuggingService"
]

__version__ = "1.0.0"
