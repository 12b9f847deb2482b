from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from enum import Enum

from .models import ErrorCollection


class LineChange(BaseModel):
    """A single line replacement proposed by the fix generator."""
    model_config = ConfigDict(populate_by_name=True)

    line: int  # 1-based
    old_code: str = Field(alias="oldCode")
    new_code: str = Field(alias="newCode")


class CodeFix(BaseModel):
    """A proposed code change. Untrusted until checked against the file on disk."""
    file: str
    changes: List[LineChange] = []
    explanation: str = ""


class FixResult(BaseModel):
    success: bool
    fix: Optional[CodeFix] = None
    error: Optional[str] = None


class IterationRecord(BaseModel):
    iteration: int
    fix: Optional[CodeFix] = None
    errors_fixed: str  # error summary seen at this iteration


class LoopOutcome(str, Enum):
    SUCCESS = "success"
    FIX_FAILED = "fix_failed"
    EXHAUSTED = "exhausted"


class RemediationReport(BaseModel):
    feature: str
    success: bool
    outcome: LoopOutcome
    iterations: int
    message: str
    error: Optional[str] = None
    last_errors: Optional[ErrorCollection] = None
    fix_history: List[IterationRecord] = []


class SuiteReport(BaseModel):
    total_features: int
    results: List[RemediationReport]
    all_passed: bool


class BuildAndTestReport(BaseModel):
    """Outcome of the guidance-then-remediate workflow."""
    phase: str  # implementation_guidance, complete, failed, max_iterations_reached
    guidance: str
    success: bool = False
    iterations: int = 0
    message: str = ""
    error: Optional[str] = None
    last_errors: Optional[ErrorCollection] = None
    fix_history: List[IterationRecord] = []
