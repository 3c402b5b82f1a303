"""
Core type definitions for apkforge.

Provides the stage state machine and the run record persisted after every
build.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from pydantic import BaseModel, Field


ArtifactPath = Path


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StageStatus(str, Enum):
    """Status of a pipeline stage."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StageStatus.COMPLETED, StageStatus.FAILED, StageStatus.SKIPPED)


class StageResult(BaseModel):
    """Result of a pipeline stage execution.

    A stage moves PENDING -> RUNNING and then to exactly one of COMPLETED,
    SKIPPED or FAILED. Any other transition is a programming error.
    """

    stage_name: str = Field(description="Name of the pipeline stage")
    phase: str = Field(default="", description="Build phase the stage is bound to")
    status: StageStatus = Field(default=StageStatus.PENDING, description="Execution status")
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
    duration_seconds: float = Field(default=0.0)
    artifacts: list[ArtifactPath] = Field(default_factory=list, description="Produced files")
    skip_reason: str | None = Field(default=None)
    error_message: str | None = Field(default=None)

    def _require(self, *allowed: StageStatus) -> None:
        if self.status not in allowed:
            raise ValueError(
                f"Stage '{self.stage_name}' cannot leave state '{self.status.value}'"
            )

    def _finish(self, status: StageStatus) -> None:
        self.status = status
        self.completed_at = _now()
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def mark_running(self) -> None:
        """Mark stage as started."""
        self._require(StageStatus.PENDING)
        self.status = StageStatus.RUNNING
        self.started_at = _now()

    def mark_completed(self, artifacts: list[ArtifactPath]) -> None:
        """Mark stage as successfully completed."""
        self._require(StageStatus.RUNNING)
        self.artifacts = artifacts
        self._finish(StageStatus.COMPLETED)

    def mark_skipped(self, reason: str) -> None:
        """Mark stage as an intentional no-op."""
        self._require(StageStatus.RUNNING)
        self.skip_reason = reason
        self._finish(StageStatus.SKIPPED)

    def mark_failed(self, error: str) -> None:
        """Mark stage as failed."""
        self._require(StageStatus.RUNNING)
        self.error_message = error
        self._finish(StageStatus.FAILED)


class PipelineRun(BaseModel):
    """Represents a complete pipeline execution."""

    run_id: str = Field(description="Unique run identifier")
    project: str = Field(description="Coordinate of the project being built")
    started_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = Field(default=None)
    stages: list[StageResult] = Field(default_factory=list)
    final_status: StageStatus = Field(default=StageStatus.PENDING)
    package_path: ArtifactPath | None = Field(default=None)

    def get_stage(self, name: str) -> StageResult | None:
        """Get a stage result by name."""
        for stage in self.stages:
            if stage.stage_name == name:
                return stage
        return None

    @property
    def failed_stage(self) -> StageResult | None:
        for stage in self.stages:
            if stage.status == StageStatus.FAILED:
                return stage
        return None
