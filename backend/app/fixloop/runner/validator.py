"""
UI Validator

Runs declarative interaction rules against the current page. Each rule is
handed to a fixed in-page executor as a structured descriptor, so selector
and value text is passed as data and never becomes part of the script.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..models import RuleAction, UIError, ValidationRule

logger = logging.getLogger(__name__)


INTERACTION_EXECUTOR = """
(descriptor) => {
    let element;
    try {
        element = document.querySelector(descriptor.selector);
    } catch (error) {
        return { success: false, error: 'Invalid selector: ' + error.message };
    }
    if (!element) {
        return { success: false, error: 'Element not found' };
    }

    try {
        switch (descriptor.action) {
            case 'click':
                element.click();
                break;
            case 'type': {
                const value = descriptor.value == null ? '' : String(descriptor.value);
                // Native setter so framework-controlled inputs see the change
                const property = Object.getOwnPropertyDescriptor(Object.getPrototypeOf(element), 'value');
                if (property && property.set) {
                    property.set.call(element, value);
                } else {
                    element.value = value;
                }
                element.dispatchEvent(new Event('input', { bubbles: true }));
                element.dispatchEvent(new Event('change', { bubbles: true }));
                break;
            }
            case 'check': {
                const expected = descriptor.expected === 'checked';
                const actual = Boolean(element.checked);
                if (actual !== expected) {
                    return {
                        success: false,
                        error: 'Checkbox state mismatch',
                        expected: expected ? 'checked' : 'unchecked',
                        actual: actual ? 'checked' : 'unchecked'
                    };
                }
                break;
            }
            default:
                break;
        }
        return { success: true };
    } catch (error) {
        return { success: false, error: (error && error.message) || String(error) };
    }
}
"""

ELEMENT_EXISTS = """
(selector) => {
    try {
        return document.querySelector(selector) !== null;
    } catch (error) {
        return false;
    }
}
"""


@dataclass
class InteractionOutcome:
    """Result of a single rule"""
    success: bool
    error: Optional[UIError] = None


@dataclass
class UIValidationResult:
    """Result of a rule sequence"""
    success: bool
    errors: List[UIError] = field(default_factory=list)


class UIValidator:
    """Executes ValidationRules in order and reports what failed."""

    DEFAULT_WAIT_MS = 1000

    def __init__(self, browser):
        self.browser = browser

    @staticmethod
    def build_descriptor(rule: ValidationRule) -> Dict[str, Any]:
        return {
            "selector": rule.selector,
            "action": rule.action.value if rule.action else None,
            "value": rule.value,
            "expected": rule.expected,
        }

    def _failure(self, rule: ValidationRule, reason: str, expected=None, actual=None) -> InteractionOutcome:
        action = rule.action.value if rule.action else None
        return InteractionOutcome(
            success=False,
            error=UIError(
                message=f"{reason}: {rule.selector}",
                element=rule.selector,
                action=action,
                expected=expected,
                actual=actual,
            )
        )

    async def validate_element(self, selector: str) -> bool:
        try:
            return bool(await self.browser.evaluate(ELEMENT_EXISTS, selector))
        except Exception:
            return False

    async def validate_interaction(self, rule: ValidationRule) -> InteractionOutcome:
        """Run one rule. Failures come back as a UIError, never as an exception."""
        try:
            result = await self.browser.evaluate(INTERACTION_EXECUTOR, self.build_descriptor(rule))
        except Exception as e:
            logger.warning(f"Interaction on {rule.selector} raised: {e}")
            return self._failure(rule, str(e) or "Unknown validation error")

        if not isinstance(result, dict):
            return self._failure(rule, "Interaction returned no result")
        if not result.get("success"):
            return self._failure(
                rule,
                result.get("error") or "Interaction failed",
                expected=result.get("expected"),
                actual=result.get("actual"),
            )

        if rule.action == RuleAction.WAIT:
            await asyncio.sleep((rule.timeout or self.DEFAULT_WAIT_MS) / 1000)

        return InteractionOutcome(success=True)

    async def validate_multiple(self, rules: List[ValidationRule]) -> UIValidationResult:
        """Run every rule in order; a failure does not stop the rules after it."""
        errors: List[UIError] = []

        for index, rule in enumerate(rules, start=1):
            outcome = await self.validate_interaction(rule)
            if not outcome.success and outcome.error:
                logger.info(f"UI rule {index}/{len(rules)} failed: {outcome.error.message}")
                errors.append(outcome.error)

        return UIValidationResult(success=not errors, errors=errors)
