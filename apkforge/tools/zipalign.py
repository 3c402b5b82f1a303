"""zipalign command builder."""

from __future__ import annotations

from pathlib import Path
from typing import Self

from .builder import ToolCommandBuilder

# Uncompressed entries must start on 32-bit boundaries.
ALIGNMENT = 4


class ZipalignCommandBuilder(ToolCommandBuilder):
    """``zipalign [-v] -f 4 <input.apk> <output.apk>``."""

    def verbose(self, enabled: bool) -> Self:
        return self.add_if(enabled, "-v")

    def set_input_output(self, source: Path, output: Path) -> Self:
        return self.add("-f", ALIGNMENT, source, output)
