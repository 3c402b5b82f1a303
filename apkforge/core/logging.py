"""
Build logging for apkforge.

Log events are structlog key/value records. Interactive builds render them
through rich on stderr; CI builds emit one JSON object per line so the
stage, run id and tool name can be filtered on afterwards.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from .config import Config

# Tool output is only interesting when a build is being debugged.
TOOL_OUTPUT_LEVEL = logging.DEBUG


def _use_json(log_format: str) -> bool:
    if log_format == "auto":
        return not sys.stderr.isatty()
    return log_format == "json"


def setup_logging(config: Config | None = None) -> None:
    """Configure logging for a build.

    Args:
        config: Build configuration. Without one, logs at INFO and picks the
            renderer from whether stderr is a terminal.
    """
    level_name = config.log_level if config else "INFO"
    log_format = config.log_format if config else "auto"
    level = logging.getLevelName(level_name)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
                tracebacks_show_locals=level == logging.DEBUG,
            )
        ],
        force=True,
    )

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if _use_json(log_format):
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger for a module (pass ``__name__``)."""
    return structlog.get_logger(name)


@contextmanager
def log_context(**values: object) -> Iterator[None]:
    """Attach ``values`` to every log event emitted inside the block.

    Used for the run id around a whole build and the stage name around
    each stage; keys are removed again on exit, including on error.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield


def log_tool_output(logger: structlog.stdlib.BoundLogger, tool: str, stdout: str, stderr: str) -> None:
    """Log captured tool output line by line, tagged with its stream."""
    for stream, text in (("stdout", stdout), ("stderr", stderr)):
        for line in text.splitlines():
            if line.strip():
                logger.log(TOOL_OUTPUT_LEVEL, line, tool=tool, stream=stream)
