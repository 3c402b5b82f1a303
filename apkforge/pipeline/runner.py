"""
Pipeline runner.

Runs the stages strictly in phase order, records each stage's result on a
PipelineRun and writes the run record as JSON under the build directory.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

from ..core.config import Config
from ..core.exceptions import ConfigurationError, PipelineError
from ..core.logging import get_logger, log_context
from ..core.types import PipelineRun, StageResult, StageStatus
from .compile_native import CompileNativeStage
from .context import BuildContext
from .dex import DexStage
from .generate_sources import GenerateSourcesStage
from .package import PackageStage
from .proguard import ProguardStage
from .stage import PipelineStage

logger = get_logger(__name__)

STAGES: tuple[type[PipelineStage], ...] = (
    GenerateSourcesStage,
    CompileNativeStage,
    ProguardStage,
    DexStage,
    PackageStage,
)


def phase_names() -> list[str]:
    return [stage.phase for stage in STAGES]


class BuildPipeline:
    """Runs a build end to end or up to a phase.

    Args:
        config: Build configuration.
        context: Shared build context; created from ``config`` when None.
        stages: Stage classes in execution order.
    """

    def __init__(
        self,
        config: Config,
        context: BuildContext | None = None,
        stages: Sequence[type[PipelineStage]] = STAGES,
    ) -> None:
        self.config = config
        self.context = context or BuildContext(config)
        self.stages = [stage(self.context) for stage in stages]

    def _check_until(self, until: str | None) -> None:
        if until is None:
            return
        known = {s.name for s in self.stages} | {s.phase for s in self.stages}
        if until not in known:
            raise ConfigurationError(
                message=f"Unknown phase '{until}', expected one of: "
                + ", ".join(s.phase for s in self.stages),
                setting="until",
            )

    def _write_record(self, run: PipelineRun) -> None:
        record = self.context.layout.run_record
        record.parent.mkdir(parents=True, exist_ok=True)
        record.write_text(run.model_dump_json(indent=2), encoding="utf-8")

    def run(self, until: str | None = None) -> PipelineRun:
        """Execute stages in order, stopping after ``until`` (a phase or stage name).

        Returns:
            The completed run record.

        Raises:
            ConfigurationError: If ``until`` names no stage or phase.
            PipelineError: Wrapping the first stage failure.
        """
        self._check_until(until)
        run = PipelineRun(run_id=uuid.uuid4().hex[:8], project=self.context.identity)
        with log_context(run_id=run.run_id):
            logger.info("Starting build", project=run.project, until=until)

            for stage in self.stages:
                result = StageResult(stage_name=stage.name, phase=stage.phase)
                run.stages.append(result)
                try:
                    stage.run(result)
                except Exception as e:
                    run.final_status = StageStatus.FAILED
                    run.completed_at = datetime.now(timezone.utc)
                    self._write_record(run)
                    raise PipelineError(
                        message=f"Stage '{stage.name}' failed: {e}",
                        stage=stage.name,
                        run_id=run.run_id,
                        cause=e,
                    ) from e
                if until in (stage.name, stage.phase):
                    break

            run.final_status = StageStatus.COMPLETED
            run.completed_at = datetime.now(timezone.utc)
            run.package_path = self.context.outputs.package
            self._write_record(run)

            logger.info(
                "Build completed",
                stages=len(run.stages),
                skipped=[s.stage_name for s in run.stages if s.status == StageStatus.SKIPPED],
                package=str(run.package_path) if run.package_path else None,
            )
        return run
