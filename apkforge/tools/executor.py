"""
External tool execution.

Every tool runs as a blocking subprocess in the project directory with its
output captured. There are no retries and no timeout.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from pathlib import Path

from ..core.exceptions import ExecutionError
from ..core.logging import get_logger, log_tool_output
from ..models.invocation import CommandResult, ToolInvocation

logger = get_logger(__name__)


class CommandExecutor:
    """Runs ToolInvocations synchronously.

    Args:
        working_directory: Directory every tool runs in, normally the project root.
    """

    def __init__(self, working_directory: Path) -> None:
        self.working_directory = working_directory

    def execute(
        self,
        invocation: ToolInvocation,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run a tool and wait for it.

        Args:
            invocation: Executable and arguments.
            env: Variables added to the inherited environment.
            cwd: Overrides the working directory.

        Returns:
            The captured result of a successful run.

        Raises:
            ExecutionError: If the tool cannot be launched or exits non-zero.
        """
        workdir = cwd or self.working_directory
        logger.info("Running tool", tool=invocation.tool_name, cwd=str(workdir))
        logger.debug("Tool command", command=str(invocation))

        environment = None
        if env:
            environment = {**os.environ, **env}

        try:
            completed = subprocess.run(
                invocation.command,
                cwd=workdir,
                env=environment,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise ExecutionError(
                message=f"Cannot launch {invocation.executable}",
                tool=invocation.tool_name,
                context={"command": str(invocation)},
                cause=e,
            ) from e

        result = CommandResult(
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        log_tool_output(logger, invocation.tool_name, result.stdout, result.stderr)

        if result.exit_code != 0:
            raise ExecutionError(
                message=f"{invocation.tool_name} failed",
                tool=invocation.tool_name,
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
                context={"command": str(invocation)},
            )
        logger.debug("Tool completed", tool=invocation.tool_name, exit_code=result.exit_code)
        return result
