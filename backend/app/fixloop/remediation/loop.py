"""
Remediation Loop

Test, and on failure ask for a fix, apply it, let the app rebuild, and test
again, until the feature passes, no fix can be produced, or the iteration
cap is reached.

    Running(1) -> ... -> Running(n) -> SUCCESS | FIX_FAILED | EXHAUSTED
"""

import asyncio
import logging
from typing import List, Optional

from ..config import TestConfig
from ..models import FeatureTest
from ..models_fix import IterationRecord, LoopOutcome, RemediationReport, SuiteReport
from ..runner.test_runner import TestRunner
from .integration import FixCoordinator

logger = logging.getLogger(__name__)


class RemediationLoop:
    """Bounded test-fix-retest cycle over a shared browser session."""

    def __init__(
        self,
        runner: TestRunner,
        coordinator: FixCoordinator,
        base_url: str,
        config: Optional[TestConfig] = None
    ):
        self.runner = runner
        self.coordinator = coordinator
        self.base_url = base_url
        self.config = config or TestConfig()

    async def run(self, feature: FeatureTest, max_iterations: Optional[int] = None) -> RemediationReport:
        max_iterations = max_iterations if max_iterations is not None else self.config.max_retry_attempts
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        feature = feature.with_default_url(self.base_url)
        history: List[IterationRecord] = []
        last_result = None

        for iteration in range(1, max_iterations + 1):
            logger.info(f"[LOOP] '{feature.name}' iteration {iteration}/{max_iterations}")
            result = await self.runner.test_feature(feature)
            last_result = result

            if result.success:
                return RemediationReport(
                    feature=feature.name,
                    success=True,
                    outcome=LoopOutcome.SUCCESS,
                    iterations=iteration,
                    message=f"Feature '{feature.name}' passed after {iteration} iteration(s)",
                    fix_history=history
                )

            fix_result = await self.coordinator.fix_error(result.errors)

            if not fix_result.success:
                logger.warning(f"[LOOP] '{feature.name}' stopped: {fix_result.error}")
                return RemediationReport(
                    feature=feature.name,
                    success=False,
                    outcome=LoopOutcome.FIX_FAILED,
                    iterations=iteration,
                    message=f"Failed to fix errors: {fix_result.error}",
                    error=fix_result.error,
                    last_errors=result.errors,
                    fix_history=history
                )

            history.append(IterationRecord(
                iteration=iteration,
                fix=fix_result.fix,
                errors_fixed=result.errors.summary
            ))

            if iteration < max_iterations:
                # Let hot reload / rebuild pick up the change
                await asyncio.sleep(self.config.fix_settle_delay_ms / 1000)

        logger.warning(f"[LOOP] '{feature.name}' exhausted {max_iterations} iteration(s)")
        return RemediationReport(
            feature=feature.name,
            success=False,
            outcome=LoopOutcome.EXHAUSTED,
            iterations=max_iterations,
            message=f"Reached maximum iterations ({max_iterations}) without success",
            last_errors=last_result.errors,
            fix_history=history
        )

    async def run_suite(
        self,
        features: List[FeatureTest],
        max_iterations: Optional[int] = None
    ) -> SuiteReport:
        """One loop per feature, strictly one after another (the session is shared)."""
        results = []
        for feature in features:
            results.append(await self.run(feature, max_iterations))

        passed = sum(1 for r in results if r.success)
        logger.info(f"[LOOP] Suite finished: {passed}/{len(results)} feature(s) passed")

        return SuiteReport(
            total_features=len(features),
            results=results,
            all_passed=all(r.success for r in results)
        )
