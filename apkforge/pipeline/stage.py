"""
Base class for pipeline stages.

Every stage follows the same state machine: PENDING -> RUNNING and then
COMPLETED, SKIPPED or FAILED. There are no retries; a failing stage records the
error and re-raises it so the build aborts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar

from ..core.exceptions import ExecutionError
from ..core.logging import get_logger, log_context
from ..core.types import StageResult
from .context import BuildContext

logger = get_logger(__name__)


class PipelineStage(ABC):
    """One build phase.

    Subclasses implement ``execute`` and may override ``should_skip`` and
    ``expected_outputs``.
    """

    name: ClassVar[str]
    phase: ClassVar[str]

    def __init__(self, context: BuildContext) -> None:
        self.context = context
        self.config = context.config
        self.layout = context.layout

    def should_skip(self) -> str | None:
        """Reason to skip this stage, or None to run it."""
        return None

    @abstractmethod
    def execute(self) -> list[Path]:
        """Do the stage's work.

        Returns:
            Files produced for later stages.
        """

    def expected_outputs(self) -> list[Path]:
        """Files that must exist once ``execute`` returns."""
        return []

    def validate_outputs(self) -> None:
        """Check every expected output exists.

        Raises:
            ExecutionError: If a tool reported success without writing its output.
        """
        missing = [p for p in self.expected_outputs() if not p.exists()]
        if missing:
            raise ExecutionError(
                message=f"Expected output missing after {self.name}: "
                + ", ".join(str(p) for p in missing),
                tool=self.name,
                exit_code=0,
            )

    def run(self, result: StageResult | None = None) -> StageResult:
        """Run the stage through its state machine.

        Args:
            result: Record to update, normally created by the pipeline runner.

        Returns:
            The COMPLETED or SKIPPED record.

        Raises:
            Exception: Whatever the stage raised, after marking the record FAILED.
        """
        result = result or StageResult(stage_name=self.name, phase=self.phase)
        result.mark_running()
        with log_context(stage=self.name):
            try:
                reason = self.should_skip()
                if reason is not None:
                    logger.info("Skipping stage", reason=reason)
                    result.mark_skipped(reason)
                    return result

                logger.info("Stage started", phase=self.phase)
                artifacts = self.execute()
                self.validate_outputs()
                result.mark_completed(artifacts)
                logger.info(
                    "Stage completed",
                    artifacts=len(artifacts),
                    duration=f"{result.duration_seconds:.2f}s",
                )
                return result
            except Exception as e:
                result.mark_failed(str(e))
                logger.error("Stage failed", error=str(e))
                raise
