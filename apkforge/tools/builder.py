"""
Base class for external tool command builders.

Builders are append-only: each chained call appends arguments in call order and
nothing is reordered or deduplicated, so callers must invoke methods in the
order the tool expects. Building never fails and never touches the filesystem
beyond existence checks made by ``*_if_exists`` methods.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Self

from ..models.invocation import ToolInvocation


class ToolCommandBuilder:
    """Fluent builder producing an ordered argument list for one tool."""

    def __init__(self, executable: Path) -> None:
        self.executable = executable
        self._arguments: list[str] = []

    def add(self, *arguments: object) -> Self:
        """Append raw arguments."""
        self._arguments.extend(str(a) for a in arguments)
        return self

    def add_if(self, condition: object, *arguments: object) -> Self:
        """Append arguments only when ``condition`` is truthy."""
        if condition:
            self.add(*arguments)
        return self

    def add_extra(self, arguments: list[str] | None) -> Self:
        """Append user-supplied pass-through arguments."""
        if arguments:
            self.add(*arguments)
        return self

    def build(self) -> list[str]:
        """The ordered argument list assembled so far."""
        return list(self._arguments)

    def to_invocation(self) -> ToolInvocation:
        return ToolInvocation(executable=self.executable, arguments=tuple(self._arguments))


def jvm_argument(argument: str) -> str:
    """Normalize a JVM option such as ``Xmx1024M`` to ``-Xmx1024M``."""
    argument = argument.strip()
    return argument if argument.startswith("-") else f"-{argument}"


class JavaToolCommandBuilder(ToolCommandBuilder):
    """A tool launched as ``java <jvm args> -jar <jar>``."""

    def __init__(self, java: Path, jar: Path, jvm_arguments: Sequence[str] = ()) -> None:
        super().__init__(java)
        for argument in jvm_arguments:
            self.add(jvm_argument(argument))
        self.add("-jar", jar)

    def add_inputs(self, inputs: Sequence[Path]) -> Self:
        return self.add(*inputs)
