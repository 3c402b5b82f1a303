"""
Custom exception hierarchy for apkforge.

All exceptions inherit from ApkForgeError so the pipeline runner can record any
failure against the stage that raised it. Each exception carries context for
debugging and logging.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ApkForgeError(Exception):
    """Base exception for all apkforge errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ConfigurationError(ApkForgeError):
    """Raised when the build configuration is invalid.

    Configuration errors surface before any external tool is invoked.
    """

    setting: str | None = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.setting:
            return f"Invalid configuration '{self.setting}': {base}"
        return f"Invalid configuration: {base}"


@dataclass
class MissingManifestError(ConfigurationError):
    """Raised when a library artifact has no AndroidManifest.xml."""

    artifact: str = ""

    def __str__(self) -> str:
        return f"Missing AndroidManifest.xml in {self.artifact}: {self.message}"


@dataclass
class InvalidSdkError(ConfigurationError):
    """Raised when the Android SDK or NDK layout is unusable."""

    sdk_path: str = ""


@dataclass
class ResolutionError(ApkForgeError):
    """Raised when a dependency artifact cannot be read or unpacked."""

    artifact: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"[{self.artifact}] {base}" if self.artifact else base


@dataclass
class ExecutionError(ApkForgeError):
    """Raised when an external tool exits non-zero or cannot be launched."""

    tool: str = ""
    exit_code: int = -1
    stdout: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        output = (self.stderr or self.stdout).strip()
        detail = f"\n{output}" if output else ""
        return f"[{self.tool}] exit code {self.exit_code}: {base}{detail}"


@dataclass
class ToolNotFoundError(ApkForgeError):
    """Raised when a required external tool is not available."""

    tool_name: str = ""
    expected_path: str = ""
    install_hint: str = ""

    def __str__(self) -> str:
        hint = f" Install hint: {self.install_hint}" if self.install_hint else ""
        return f"Tool '{self.tool_name}' not found at '{self.expected_path}'.{hint}"


@dataclass
class ConflictError(ApkForgeError):
    """Raised when files from different sources cannot be reconciled."""

    path: str = ""
    sources: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        base = super().__str__()
        return f"Conflict on '{self.path}' between {', '.join(self.sources)}: {base}"


@dataclass
class DuplicateFileError(ConflictError):
    """Raised when a path that must be unique in the package appears twice."""

    first_source: str = ""
    second_source: str = ""

    def __post_init__(self) -> None:
        if not self.sources:
            self.sources = [self.first_source, self.second_source]

    def __str__(self) -> str:
        return (
            f"Duplicate file '{self.path}' contributed by "
            f"'{self.first_source}' and '{self.second_source}': {self.message}"
        )


@dataclass
class PipelineError(ApkForgeError):
    """Raised when pipeline orchestration fails."""

    stage: str = ""
    run_id: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"Pipeline error at stage '{self.stage}' (run: {self.run_id}): {base}"
