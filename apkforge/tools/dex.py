"""
Dex conversion command builders.

Two backends convert class files to dex: the legacy ``dx`` dexer and the newer
``d8``. Which one runs is a pure function of the configured compiler id.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Self

from ..core.exceptions import ConfigurationError
from .builder import JavaToolCommandBuilder, ToolCommandBuilder


class DexCompiler(str, Enum):
    """Dex backend."""

    DEX = "dex"
    D8 = "d8"

    @classmethod
    def from_id(cls, value: str | None) -> DexCompiler:
        """Resolve a compiler id case-insensitively; unset means DEX.

        Raises:
            ConfigurationError: If the id names no known compiler.
        """
        if value is None or not value.strip():
            return cls.DEX
        normalized = value.strip().lower()
        for compiler in cls:
            if compiler.value == normalized:
                return compiler
        raise ConfigurationError(
            message=f"Unknown dex compiler '{value}', expected one of: "
            + ", ".join(c.value for c in cls),
            setting="dex.compiler",
        )


class DxCommandBuilder(JavaToolCommandBuilder):
    """``dx --dex``."""

    def __init__(self, java: Path, dx_jar: Path, jvm_arguments: Sequence[str] = ()) -> None:
        super().__init__(java, dx_jar, jvm_arguments)
        self.add("--dex")

    def optimize(self, enabled: bool = True) -> Self:
        return self.add_if(not enabled, "--no-optimize")

    def core_library(self, enabled: bool = True) -> Self:
        return self.add_if(enabled, "--core-library")

    def incremental(self, enabled: bool = True) -> Self:
        return self.add_if(enabled, "--incremental")

    def no_locals(self, enabled: bool = True) -> Self:
        return self.add_if(enabled, "--no-locals")

    def force_jumbo(self, enabled: bool = True) -> Self:
        return self.add_if(enabled, "--force-jumbo")

    def multi_dex(self, main_dex_list: Path | None = None, minimal_main_dex: bool = False) -> Self:
        self.add("--multi-dex")
        self.add_if(main_dex_list is not None, f"--main-dex-list={main_dex_list}")
        return self.add_if(minimal_main_dex, "--minimal-main-dex")

    def set_output(self, output: Path) -> Self:
        return self.add(f"--output={output}")


class D8CommandBuilder(JavaToolCommandBuilder):
    """``d8``."""

    def intermediate(self, enabled: bool = True) -> Self:
        return self.add_if(enabled, "--intermediate")

    def main_dex_list(self, main_dex_list: Path | None) -> Self:
        return self.add_if(main_dex_list is not None, "--main-dex-list", main_dex_list)

    def release(self, enabled: bool = True) -> Self:
        return self.add_if(enabled, "--release")

    def min_api(self, level: int | None) -> Self:
        return self.add_if(level is not None, "--min-api", level)

    def set_output(self, output: Path) -> Self:
        return self.add("--output", output)

    def add_library(self, android_jar: Path) -> Self:
        return self.add("--lib", android_jar)

    def add_classpath(self, jars: Sequence[Path]) -> Self:
        for jar in jars:
            self.add("--classpath", jar)
        return self


class MainDexListCommandBuilder(ToolCommandBuilder):
    """The build-tools ``mainDexClasses`` helper."""

    def set_output(self, output: Path) -> Self:
        return self.add("--output", output)

    def add_inputs(self, inputs: Sequence[Path]) -> Self:
        return self.add(os.pathsep.join(str(p) for p in inputs))
