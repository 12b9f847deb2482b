"""
Pytest configuration and shared fixtures for fixloop tests.
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import Mock, AsyncMock
from typing import Any, Dict, List, Optional

# Add backend app to path
sys.path.insert(0, str(Path(__file__).parent.parent / "app"))

from fixloop.config import AppConfig, TestConfig
from fixloop.detection.error_detector import REACT_ERROR_PROBE
from fixloop.models import FeatureTest, ValidationRule, RuleAction
from fixloop.remediation.fix_generator import FixGenerator
from fixloop.runner.validator import INTERACTION_EXECUTOR


# ==================== Mock Page Fixture ====================

@pytest.fixture
def mock_page():
    """Create a mock Playwright page object."""
    page = AsyncMock()

    page.url = "http://localhost:3000/"
    page.goto = AsyncMock(return_value=None)
    page.evaluate = AsyncMock(return_value=None)
    page.on = Mock()
    page.set_default_timeout = Mock()
    page.close = AsyncMock()

    return page


@pytest.fixture
def mock_browser(mock_page):
    """Create a mock Playwright browser object."""
    browser = AsyncMock()
    context = AsyncMock()

    context.new_page = AsyncMock(return_value=mock_page)
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    return browser


# ==================== Mock Controller Fixture ====================

def make_evaluate(
    interaction_results: Optional[List[Dict[str, Any]]] = None,
    react_errors: Optional[List[Dict[str, Any]]] = None
):
    """
    Build an evaluate() side effect that answers like a live page.

    Interaction results are handed out in order, one per rule; once they
    run out every interaction succeeds.
    """
    results = list(interaction_results or [])

    async def evaluate(expression, arg=None):
        if expression == REACT_ERROR_PROBE:
            return list(react_errors or [])
        if expression == INTERACTION_EXECUTOR:
            return results.pop(0) if results else {"success": True}
        return None

    return evaluate


@pytest.fixture
def mock_controller():
    """Stand-in for BrowserController with a clean, well-behaved page."""
    controller = AsyncMock()
    controller.navigate = AsyncMock(return_value=None)
    controller.capture_errors = AsyncMock(return_value=[])
    controller.evaluate = AsyncMock(side_effect=make_evaluate())
    controller.close = AsyncMock()
    controller.is_initialized = True
    return controller


# ==================== Fix Generator Fixture ====================

class StubFixGenerator(FixGenerator):
    """Returns queued fixes (or None) and records what it was asked."""

    def __init__(self, fixes=None, guidance: str = "Build it."):
        self.fixes = list(fixes or [])
        self.guidance = guidance
        self.calls = []

    async def generate_fix(self, errors, file_content=None, file_path=None):
        self.calls.append((errors, file_content, file_path))
        if not self.fixes:
            return None
        return self.fixes.pop(0)

    async def generate_implementation_guidance(self, plan):
        return self.guidance


@pytest.fixture
def stub_generator():
    return StubFixGenerator()


# ==================== Sample Test Data ====================

@pytest.fixture
def login_feature() -> FeatureTest:
    """Login feature with three UI rules."""
    return FeatureTest(
        name="login",
        url="http://localhost:3000/login",
        ui_rules=[
            ValidationRule(selector="#email", action=RuleAction.TYPE, value="user@example.com"),
            ValidationRule(selector="#password", action=RuleAction.TYPE, value="secret"),
            ValidationRule(selector="#login-button", action=RuleAction.CLICK),
        ]
    )


@pytest.fixture
def fast_test_config() -> TestConfig:
    """No pacing delays."""
    return TestConfig(max_retry_attempts=5, fix_settle_delay_ms=0)


@pytest.fixture
def project_dir(tmp_path) -> Path:
    """A small project tree with one source file."""
    src = tmp_path / "src"
    src.mkdir()
    lines = [f"// line {i}" for i in range(1, 21)]
    lines[9] = "const x = null;"
    (src / "App.js").write_text("\n".join(lines) + "\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def app_config(project_dir, fast_test_config) -> AppConfig:
    return AppConfig(test=fast_test_config, project_root=project_dir)
