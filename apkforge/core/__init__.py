"""Core infrastructure components for apkforge."""

from .exceptions import (
    ApkForgeError,
    ConfigurationError,
    ConflictError,
    DuplicateFileError,
    ExecutionError,
    InvalidSdkError,
    MissingManifestError,
    PipelineError,
    ResolutionError,
    ToolNotFoundError,
)
from .logging import get_logger, setup_logging
from .types import ArtifactPath, PipelineRun, StageResult, StageStatus
from .config import Config, get_config

__all__ = [
    "Config",
    "get_config",
    "ApkForgeError",
    "ConfigurationError",
    "ConflictError",
    "DuplicateFileError",
    "ExecutionError",
    "InvalidSdkError",
    "MissingManifestError",
    "PipelineError",
    "ResolutionError",
    "ToolNotFoundError",
    "get_logger",
    "setup_logging",
    "ArtifactPath",
    "PipelineRun",
    "StageResult",
    "StageStatus",
]
