"""
Fix Applier

Writes a proposed CodeFix to disk, one line replacement at a time. A change
is applied only when the line currently on disk matches the text the fix
expects to replace; mismatches are skipped, so a fix may land partially.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from ..models_fix import CodeFix, LineChange

logger = logging.getLogger(__name__)


@dataclass
class FixApplication:
    """What happened when a fix was written"""
    applied: bool
    path: Optional[str] = None
    applied_changes: List[LineChange] = field(default_factory=list)
    skipped_changes: List[LineChange] = field(default_factory=list)
    error: Optional[str] = None


class FixApplier:
    """Best-effort line replacement confined to the project root."""

    def __init__(self, project_root: Union[str, Path]):
        self.project_root = Path(project_root).resolve()

    def resolve_path(self, file: str) -> Path:
        path = Path(file)
        if not path.is_absolute():
            path = self.project_root / path
        path = path.resolve()

        if path != self.project_root and self.project_root not in path.parents:
            raise ValueError(f"{path} is outside the project root {self.project_root}")
        return path

    def apply(self, fix: CodeFix) -> FixApplication:
        try:
            path = self.resolve_path(fix.file)
        except ValueError as e:
            logger.error(f"[FIX] Refusing fix: {e}")
            return FixApplication(applied=False, error=str(e))

        if not path.is_file():
            logger.error(f"[FIX] File not found: {path}")
            return FixApplication(applied=False, path=str(path), error=f"File not found: {path}")

        with open(path, "r", encoding="utf-8", newline="") as f:
            lines = f.read().split("\n")

        result = FixApplication(applied=True, path=str(path))

        # Bottom-up so earlier replacements never shift later line numbers
        for change in sorted(fix.changes, key=lambda c: c.line, reverse=True):
            index = change.line - 1
            if index < 0 or index >= len(lines):
                logger.warning(f"[FIX] Line {change.line} is out of range for {path}. Skipping.")
                result.skipped_changes.append(change)
                continue

            current = lines[index]
            if current.strip() != change.old_code.strip():
                logger.warning(f"[FIX] Line {change.line} does not match expected content. Skipping.")
                result.skipped_changes.append(change)
                continue

            line_ending = "\r" if current.endswith("\r") else ""
            lines[index] = change.new_code.rstrip("\r\n") + line_ending
            result.applied_changes.append(change)

        if result.applied_changes:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write("\n".join(lines))
            logger.info(
                f"[FIX] Applied {len(result.applied_changes)}/{len(fix.changes)} change(s) to {path}"
            )
        else:
            logger.warning(f"[FIX] No change matched {path}; file left untouched")

        return result
