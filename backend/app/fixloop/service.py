"""
Debugging Service

Caller-facing operations over one shared browser session: run a feature
test, capture errors, run the remediation loop for one feature or a suite,
and the guidance-then-remediate build workflow.
"""

import asyncio
import logging
from typing import List, Optional

from .browser.controller import BrowserController
from .config import AppConfig
from .models import ErrorCollection, FeatureTest, TestResult, ValidationRule
from .models_fix import BuildAndTestReport, LoopOutcome, RemediationReport, SuiteReport
from .remediation.fix_generator import FixGenerator, LLMFixGenerator
from .remediation.integration import FixCoordinator
from .remediation.loop import RemediationLoop
from .runner.test_runner import TestRunner
from .server.dev_server import DevServerManager

logger = logging.getLogger(__name__)


class DebuggingService:
    """
    Owns the browser, the dev server and the fix pipeline for a process.

    Operations are serialized: there is a single browser session, and
    concurrent navigation would mix up which errors belong to which pass.
    """

    def __init__(
        self,
        config: AppConfig,
        fix_generator: Optional[FixGenerator] = None,
        browser: Optional[BrowserController] = None,
        dev_server: Optional[DevServerManager] = None
    ):
        self.config = config
        self.fix_generator = fix_generator or LLMFixGenerator(config.llm)
        self.browser = browser or BrowserController(config.browser)
        self.dev_server = dev_server or DevServerManager(config.dev_server, cwd=config.project_root)
        self.coordinator = FixCoordinator(self.fix_generator, config.project_root)
        self.runner = TestRunner(self.browser, config.test)
        self.loop = RemediationLoop(
            self.runner,
            self.coordinator,
            base_url=config.dev_server.url,
            config=config.test
        )
        self._lock = asyncio.Lock()

    async def _prepare(self):
        if not self.browser.is_initialized:
            await self.browser.initialize()
        await self.dev_server.ensure_server_running()

    # ==================== Operations ====================

    async def test_feature(self, feature: FeatureTest) -> TestResult:
        async with self._lock:
            await self._prepare()
            return await self.runner.test_feature(feature.with_default_url(self.config.dev_server.url))

    async def capture_errors(self, url: Optional[str] = None) -> ErrorCollection:
        """Errors seen after (re)loading ``url`` or the base URL."""
        async with self._lock:
            await self._prepare()
            result = await self.runner.test_feature(
                FeatureTest(name="error-capture", url=url or self.config.dev_server.url)
            )
            return result.errors

    async def fix_and_retest(self, feature: FeatureTest, max_iterations: Optional[int] = None) -> RemediationReport:
        async with self._lock:
            await self._prepare()
            return await self.loop.run(feature, max_iterations)

    async def run_feature_suite(
        self,
        features: List[FeatureTest],
        max_iterations: Optional[int] = None
    ) -> SuiteReport:
        async with self._lock:
            await self._prepare()
            return await self.loop.run_suite(features, max_iterations)

    async def build_and_test_feature(
        self,
        plan: str,
        feature_name: str,
        url: Optional[str] = None,
        ui_rules: Optional[List[ValidationRule]] = None,
        max_iterations: Optional[int] = None,
        wait_for_build: bool = False,
        wait_time: Optional[int] = None
    ) -> BuildAndTestReport:
        """Get implementation guidance for a plan, then test and fix until the feature works."""
        guidance = await self.fix_generator.generate_implementation_guidance(plan)

        if wait_for_build:
            logger.info("Waiting for implementation to complete...")
            await asyncio.sleep((wait_time or 5000) / 1000)

        feature = FeatureTest(
            name=feature_name,
            url=url,
            ui_rules=ui_rules or [],
            wait_time=wait_time or 2000
        )
        report = await self.fix_and_retest(feature, max_iterations)

        phase = {
            LoopOutcome.SUCCESS: "complete",
            LoopOutcome.FIX_FAILED: "failed",
            LoopOutcome.EXHAUSTED: "max_iterations_reached",
        }[report.outcome]

        return BuildAndTestReport(
            phase=phase,
            guidance=guidance,
            success=report.success,
            iterations=report.iterations,
            message=report.message,
            error=report.error,
            last_errors=report.last_errors,
            fix_history=report.fix_history
        )

    async def cleanup(self) -> None:
        """Process shutdown: close the browser and stop any dev server we started."""
        try:
            await self.browser.close()
        finally:
            await self.dev_server.stop_server()
