"""
Fix Coordinator

Bridges an ErrorCollection to the fix generator: finds the source file
behind the first locatable error, hands both to the generator, then applies
whatever comes back.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Tuple, Union

from ..models import ErrorCollection
from ..models_fix import FixResult
from .fix_applier import FixApplier
from .fix_generator import FixGenerator

logger = logging.getLogger(__name__)

NO_FIX_MESSAGE = "Could not generate fix for the error"
APPLY_FAILED_MESSAGE = "Failed to apply fix to file"

_LOCATION_SUFFIX = re.compile(r"^(.+?)(?::\d+){0,2}$")


class FixCoordinator:
    """Runs one generate-then-apply cycle for a failed verification pass."""

    def __init__(
        self,
        generator: FixGenerator,
        project_root: Union[str, Path],
        applier: Optional[FixApplier] = None
    ):
        self.generator = generator
        self.project_root = Path(project_root).resolve()
        self.applier = applier or FixApplier(self.project_root)

    def extract_file_path(self, source: Optional[str]) -> Optional[Path]:
        """Map an error source to a local path; remote URLs have no local file."""
        if not source or source.startswith(("http://", "https://")):
            return None

        if source.startswith("file://"):
            source = source[len("file://"):]

        match = _LOCATION_SUFFIX.match(source)
        if not match:
            return None

        path = Path(match.group(1))
        if not path.is_absolute():
            path = self.project_root / path
        path = path.resolve()

        # Same confinement as the applier: nothing outside the root is read
        if path != self.project_root and self.project_root not in path.parents:
            logger.debug(f"[FIX] Ignoring source outside project root: {path}")
            return None
        return path

    def find_source_context(self, errors: ErrorCollection) -> Tuple[Optional[str], Optional[str]]:
        """Path and content of the first error source that exists on disk."""
        for error in errors.errors:
            path = self.extract_file_path(error.source)
            if path and path.is_file():
                try:
                    return str(path), path.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning(f"[FIX] Could not read {path}: {e}")
        return None, None

    async def fix_error(self, errors: ErrorCollection) -> FixResult:
        try:
            file_path, file_content = self.find_source_context(errors)
            if file_path:
                logger.info(f"[FIX] Using source context from {file_path}")

            fix = await self.generator.generate_fix(errors, file_content, file_path)
            if not fix:
                return FixResult(success=False, error=NO_FIX_MESSAGE)

            application = self.applier.apply(fix)
            if not application.applied:
                return FixResult(success=False, fix=fix, error=APPLY_FAILED_MESSAGE)

            return FixResult(success=True, fix=fix)

        except Exception as e:
            logger.error(f"[FIX] Fix attempt failed: {e}")
            return FixResult(success=False, error=str(e) or "Unknown error during fix")

    @staticmethod
    def format_error_report(errors: ErrorCollection) -> str:
        """Markdown report of an ErrorCollection, for humans and editors."""
        report = f"## Error Summary\n\n{errors.summary}\n\n"

        details = []
        for index, error in enumerate(errors.errors, start=1):
            detail = f"### Error {index}: {error.type}\n\n"
            detail += f"**Message:** {error.message}\n\n"
            if error.stack:
                detail += f"**Stack Trace:**\n```\n{error.stack}\n```\n\n"
            if error.source:
                detail += f"**Source:** {error.source}"
                if error.line:
                    detail += f":{error.line}"
                    if error.column:
                        detail += f":{error.column}"
                detail += "\n\n"
            details.append(detail)

        return report + "\n".join(details)
