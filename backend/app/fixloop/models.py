from pydantic import BaseModel, ConfigDict, Field, computed_field
from typing import Annotated, List, Optional, Dict, Any, Tuple, Union, Literal, Sequence
from enum import Enum
import time


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class ErrorType(str, Enum):
    CONSOLE = "console"
    NETWORK = "network"
    REACT = "react"
    UI = "ui"


# Summary lists error types in this order
ERROR_TYPE_ORDER = [ErrorType.CONSOLE, ErrorType.NETWORK, ErrorType.REACT, ErrorType.UI]


class RuleAction(str, Enum):
    CLICK = "click"
    TYPE = "type"
    WAIT = "wait"
    CHECK = "check"


class BrowserErrorBase(BaseModel):
    """Fields shared by every error surfaced from the page."""
    model_config = ConfigDict(frozen=True)

    message: str
    stack: Optional[str] = None
    source: Optional[str] = None  # file path or script URL
    line: Optional[int] = None
    column: Optional[int] = None
    url: Optional[str] = None
    timestamp: int = Field(default_factory=now_ms)
    context: Optional[Dict[str, Any]] = None


class ConsoleError(BrowserErrorBase):
    type: Literal["console"] = "console"
    level: Literal["error", "warning", "info"] = "error"


class NetworkError(BrowserErrorBase):
    type: Literal["network"] = "network"
    status: Optional[int] = None
    status_text: Optional[str] = None
    method: Optional[str] = None
    request_url: Optional[str] = None


class ReactError(BrowserErrorBase):
    type: Literal["react"] = "react"
    component_stack: Optional[str] = None
    error_boundary: Optional[str] = None


class UIError(BrowserErrorBase):
    type: Literal["ui"] = "ui"
    element: Optional[str] = None  # selector
    action: Optional[str] = None
    expected: Optional[str] = None
    actual: Optional[str] = None


BrowserError = Annotated[
    Union[ConsoleError, NetworkError, ReactError, UIError],
    Field(discriminator="type"),
]


def count_errors_by_type(errors: Sequence[BrowserErrorBase]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for error in errors:
        counts[error.type] = counts.get(error.type, 0) + 1
    return counts


def summarize_errors(errors: Sequence[BrowserErrorBase]) -> str:
    """Human-readable count of errors per type."""
    if not errors:
        return "No errors detected"

    counts = count_errors_by_type(errors)

    parts = []
    for error_type in ERROR_TYPE_ORDER:
        count = counts.get(error_type.value)
        if count:
            parts.append(f"{count} {error_type.value} error{'s' if count > 1 else ''}")

    return f"Found {len(errors)} error(s): {', '.join(parts)}"


class ErrorCollection(BaseModel):
    """
    Errors detected during one verification pass, in detection order.

    Immutable: merging UI errors produces a new collection.
    """
    model_config = ConfigDict(frozen=True)

    errors: Tuple[BrowserError, ...] = ()
    summary: str = "No errors detected"

    @computed_field
    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @classmethod
    def from_errors(cls, errors: Sequence[BrowserErrorBase]) -> "ErrorCollection":
        return cls(errors=tuple(errors), summary=summarize_errors(errors))

    @classmethod
    def empty(cls) -> "ErrorCollection":
        return cls()

    def with_ui_errors(self, ui_errors: Sequence[UIError]) -> "ErrorCollection":
        """Append UI validation failures; the summary is extended, not recomputed."""
        if not ui_errors:
            return self
        return ErrorCollection(
            errors=self.errors + tuple(ui_errors),
            summary=f"{self.summary}. UI validation failed: {len(ui_errors)} error(s)",
        )

    def count_by_type(self) -> Dict[str, int]:
        return count_errors_by_type(self.errors)


class ValidationRule(BaseModel):
    """One declarative UI interaction step. Without an action the element only has to exist."""
    model_config = ConfigDict(frozen=True)

    selector: str
    action: Optional[RuleAction] = None
    value: Optional[str] = None
    expected: Optional[str] = None
    timeout: Optional[int] = None  # milliseconds


class FeatureTest(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: Optional[str] = None
    ui_rules: List[ValidationRule] = []
    wait_time: Optional[int] = None  # milliseconds after navigation

    def with_default_url(self, url: str) -> "FeatureTest":
        if self.url:
            return self
        return self.model_copy(update={"url": url})


class TestResult(BaseModel):
    __test__ = False  # not a pytest test class

    feature: str
    success: bool
    errors: ErrorCollection
    duration: int  # milliseconds
