"""Assembled external tool invocations."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ToolDialect(str, Enum):
    """Argument dialect of the Android resource tool."""

    LEGACY = "legacy"  # aapt
    MODERN = "modern"  # aapt2


class ToolInvocation(BaseModel):
    """An immutable executable plus its fully ordered argument list."""

    model_config = ConfigDict(frozen=True)

    executable: Path
    arguments: tuple[str, ...] = Field(default=())

    @property
    def command(self) -> list[str]:
        return [str(self.executable), *self.arguments]

    @property
    def tool_name(self) -> str:
        return self.executable.name

    def __str__(self) -> str:
        return " ".join(self.command)


class CommandResult(BaseModel):
    """Captured outcome of a finished tool invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
