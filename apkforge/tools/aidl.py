"""AIDL compiler command builder."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Self

from .builder import ToolCommandBuilder


class AidlCommandBuilder(ToolCommandBuilder):
    """``aidl -p<framework.aidl> -I<src>... <input.aidl> <output.java>``."""

    def set_framework(self, framework_aidl: Path) -> Self:
        return self.add(f"-p{framework_aidl}")

    def add_import_directories(self, directories: Sequence[Path]) -> Self:
        for directory in directories:
            self.add(f"-I{directory}")
        return self

    def set_input_output(self, source: Path, output: Path) -> Self:
        return self.add(source, output)
